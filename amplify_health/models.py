"""Data models: VersionSource, Finding, RemediationRef, Report."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class Status(str, Enum):
    PASS = "pass"
    WARN = "warn"
    FAIL = "fail"
    SKIP = "skip"
    INFO = "info"


class Impact(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# Fixed order findings are grouped in; a report lists categories in this order.
CATEGORY_ORDER = ("runtime", "git", "dependencies", "build", "env", "config", "cache", "assets")


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class VersionSource(_Frozen):
    origin: str  # ci | ci-env | nvmrc | node-version | manifest | dockerfile | local
    raw_value: Optional[str] = None
    file: Optional[str] = None
    line: Optional[int] = None


class RemediationRef(_Frozen):
    action_id: str
    params: Dict[str, Any] = Field(default_factory=dict)


class Finding(_Frozen):
    id: str
    category: str
    name: str
    status: Status
    message: str
    details: List[str] = Field(default_factory=list)
    impact: Impact = Impact.MEDIUM
    blocking: bool = False
    remediation: Optional[RemediationRef] = None
    docs_url: Optional[str] = None

    @model_validator(mode="after")
    def _blocking_needs_fail(self):
        if self.blocking and self.status is not Status.FAIL:
            raise ValueError(f"finding {self.id}: blocking requires status=fail, got {self.status.value}")
        return self


class Summary(_Frozen):
    passed: int = 0
    warnings: int = 0
    failed: int = 0
    skipped: int = 0


class Report(_Frozen):
    findings: List[Finding]
    summary: Summary
    score: int
    can_proceed: bool
    generated_at: datetime
    estimated_savings: str = "Already optimized"
    fixable: List[str] = Field(default_factory=list)
    generation: int = 0

    def finding(self, finding_id: str) -> Optional[Finding]:
        for f in self.findings:
            if f.id == finding_id:
                return f
        return None
