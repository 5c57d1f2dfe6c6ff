"""Rule and request data structures."""

import re
from dataclasses import dataclass
from typing import Literal

RuleKind = Literal["literal", "wildcard", "regex", "invalid"]


@dataclass(frozen=True)
class CompiledRule:
    """A rule line classified and compiled once, ready for matching.

    Attributes:
        kind: How the line is matched against a path
        source: The line as authored (trimmed)
        text: Normalized text, reported as the match identifier
        pattern: Compiled regex for wildcard and regex rules
        anchored: Regex must match at the start of the path (``A`` flag)
        error: Why the rule is invalid, for ``kind == "invalid"``
    """

    kind: RuleKind
    source: str
    text: str
    pattern: re.Pattern | None = None
    anchored: bool = False
    error: str | None = None

    @property
    def valid(self) -> bool:
        return self.kind != "invalid"

    def matches(self, path: str) -> bool:
        """Check whether *path* matches this rule."""
        if self.kind == "literal":
            return path == self.text
        if self.pattern is None:
            return False
        if self.anchored:
            return self.pattern.match(path) is not None
        return self.pattern.search(path) is not None


@dataclass(frozen=True)
class RequestSignal:
    """Per-request inputs to the session decision.

    Constructed fresh for each request and never persisted.
    """

    path: str | None  # Raw request target (path + query), None outside a web request
    host: str = ""
    has_login_credential: bool = False
    upstream_verdict: bool | None = None  # Pre-computed external decision, if any
    query_path: str | None = None  # Rewritten path passed as ?it=

    @classmethod
    def from_dict(cls, data: dict) -> "RequestSignal":
        """Create a RequestSignal from a dictionary (e.g., a JSONL log record)."""
        return cls(
            path=data.get("path"),
            host=data.get("host", "") or "",
            has_login_credential=bool(data.get("login", False)),
            upstream_verdict=data.get("upstream"),
            query_path=data.get("it"),
        )

    def to_dict(self) -> dict:
        """Convert to dict for logging."""
        result: dict = {"path": self.path, "host": self.host}
        if self.has_login_credential:
            result["login"] = True
        if self.upstream_verdict is not None:
            result["upstream"] = self.upstream_verdict
        if self.query_path is not None:
            result["it"] = self.query_path
        return result
