"""Path and host matching - matches request paths and hosts against rule lists."""

from collections.abc import Iterable

from .parser import compile_rule
from .types import CompiledRule


def find_rule(path: str, rules: Iterable[str | CompiledRule]) -> CompiledRule | None:
    """Return the first rule (in list order) that matches *path*.

    Rules may be given as text lines or already compiled. Text lines are
    compiled on demand (cached per line); blank lines are skipped.
    """
    for rule in rules:
        if isinstance(rule, str):
            if not rule.strip():
                continue
            rule = compile_rule(rule.strip())
        if rule.matches(path):
            return rule
    return None


def match_path(path: str, rules: Iterable[str | CompiledRule]) -> str | None:
    """Match a request path against ordered rule lines.

    First match wins; there is no best-match or longest-match logic.
    Path comparison is case-sensitive. Malformed rules never match.

    Returns:
        The matching rule's normalized text, or None if no rule matches.
    """
    rule = find_rule(path, rules)
    return rule.text if rule is not None else None


def match_host(host: str | None, hosts: Iterable[str]) -> bool:
    """Match a host against a set of configured hosts.

    Hosts are case-insensitive and compared after trimming. No wildcards.
    A missing host matches nothing.
    """
    if not hosts:
        return False
    host = (host or "").strip().lower()
    if not host:
        return False
    for candidate in hosts:
        if candidate.strip().lower() == host:
            return True
    return False
