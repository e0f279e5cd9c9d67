"""Built-in checks. Each is a pure `(ProjectSnapshot) -> List[Finding]`."""
from __future__ import annotations

from amplify_health.checks import amplify, assets, build, cache, dependencies, env, git

__all__ = ["amplify", "assets", "build", "cache", "dependencies", "env", "git"]
