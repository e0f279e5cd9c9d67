"""Settings from the environment plus the Node.js compatibility table."""
from __future__ import annotations

import logging
import os
import sys
from typing import List, Optional

import yaml
from pydantic import BaseModel, ValidationError, field_validator, model_validator

from amplify_health.errors import ConfigError

# External diagnosis CLI (override with AMPLIFY_MONITOR_CLI_PATH env).
CLI_PATH = os.environ.get("AMPLIFY_MONITOR_CLI_PATH", "amplify-monitor")
CLI_TIMEOUT = int(os.environ.get("AMPLIFY_MONITOR_CLI_TIMEOUT", "120"))
# Optional YAML/JSON file replacing the built-in compatibility table.
COMPAT_FILE = os.environ.get("AMPLIFY_HEALTH_COMPAT_FILE", "")
CHECK_TIMEOUT = float(os.environ.get("AMPLIFY_HEALTH_CHECK_TIMEOUT", "60"))
PROBE_TIMEOUT = float(os.environ.get("AMPLIFY_HEALTH_PROBE_TIMEOUT", "60"))
MAX_WORKERS = int(os.environ.get("AMPLIFY_HEALTH_WORKERS", "6"))
LOG_LEVEL = os.environ.get("AMPLIFY_HEALTH_LOG_LEVEL", "INFO").upper()
# Read-only mode: when set (MCP_READONLY=true), remediation and CLI mutations return an error.
READONLY_MODE = os.environ.get("MCP_READONLY", "").lower() in ("true", "1", "yes")
TRANSPORT = os.environ.get("MCP_TRANSPORT", "stdio")


def configure_logging(level: str = None) -> None:
    """Log to stderr; stdout belongs to the MCP stdio transport."""
    root = logging.getLogger()
    if any(getattr(h, "_amplify_health", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s"))
    handler._amplify_health = True
    root.addHandler(handler)
    root.setLevel(level or LOG_LEVEL)


class CompatibilityTable(BaseModel):
    """Node.js majors the Amplify build image supports, grouped by support class."""

    lts: List[str] = ["18", "20", "22"]
    current: List[str] = ["23", "24"]
    deprecated: List[str] = ["14", "16"]
    experimental: List[str] = ["25"]
    default: str = "18"
    recommended: str = "20"

    @field_validator("lts", "current", "deprecated", "experimental", mode="before")
    @classmethod
    def _stringify_list(cls, value):
        if value is None:
            return []
        return [str(v).strip() for v in value]

    @field_validator("default", "recommended", mode="before")
    @classmethod
    def _stringify(cls, value):
        return str(value).strip()

    @model_validator(mode="after")
    def _disjoint(self):
        seen = {}
        for name in ("lts", "current", "deprecated", "experimental"):
            for version in getattr(self, name):
                if version in seen:
                    raise ValueError(f"Node {version} listed in both {seen[version]} and {name}")
                seen[version] = name
        return self


def load_compatibility_table(path: Optional[str] = None) -> CompatibilityTable:
    """Load the compatibility table from `path` (or AMPLIFY_HEALTH_COMPAT_FILE).

    Keys missing from the file keep their built-in defaults.
    """
    path = path or COMPAT_FILE
    if not path:
        return CompatibilityTable()
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read compatibility table {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Compatibility table {path} is not valid YAML/JSON: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"Compatibility table {path} must be a mapping")
    try:
        return CompatibilityTable(**data)
    except ValidationError as e:
        raise ConfigError(f"Invalid compatibility table {path}: {e}") from e
