"""Session policy enforcer - decides whether a request may have a session.

The decision is a pure function of the configuration snapshot and the
request signal. Nothing is cached between requests, and session state is
never touched; the caller acts on the verdict.
"""

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from enum import Enum

from .config import Configuration
from .logging import log_decision
from .matcher import find_rule, match_host
from .request import extract_path, signal_from_environ
from .types import RequestSignal

logger = logging.getLogger(__name__)

# Pre-existing decision function: False vetoes, True or None defer to the rules
UpstreamVerdict = Callable[[RequestSignal], bool | None]


class Verdict(Enum):
    """Session decision verdict."""

    ALLOW = "allow"
    DENY = "deny"


@dataclass
class Decision:
    """Result of a session check.

    Attributes:
        verdict: Whether a session is allowed
        reason: Human-readable explanation of the decision
        matched_rule: Normalized text of the path rule that matched, if any
        path: Request path the decision was made for ("" if none)
    """

    verdict: Verdict
    reason: str
    matched_rule: str | None = None
    path: str = ""

    @property
    def allowed(self) -> bool:
        """Convenience property for checking if allowed."""
        return self.verdict == Verdict.ALLOW

    @property
    def denied(self) -> bool:
        """Convenience property for checking if denied."""
        return self.verdict == Verdict.DENY


def _verdict(allowed: bool) -> Verdict:
    return Verdict.ALLOW if allowed else Verdict.DENY


class SessionPolicy:
    """Makes session decisions for requests.

    Example:
        policy = SessionPolicy(load_config("session_allow.yaml"))

        decision = policy.decide(
            RequestSignal(path="/feeds/rss?page=2", host="www.example.com")
        )

        if decision.denied:
            # Do not start a session for this request
            ...
    """

    def __init__(
        self,
        config: Configuration,
        upstream: UpstreamVerdict | None = None,
    ):
        """Initialize the policy.

        Args:
            config: Configuration snapshot with compiled rules
            upstream: Pre-existing decision function consulted first. It can
                only veto (return False); it never forces a session on. If it
                raises, the error is logged and it counts as having no opinion.
        """
        self._config = config
        self.upstream = upstream

    @property
    def config(self) -> Configuration:
        return self._config

    def reload(self, config: Configuration) -> None:
        """Swap in a new configuration snapshot.

        Evaluations already running keep the snapshot they started with.
        """
        self._config = config
        logger.info("Session rules reloaded")

    def _upstream_verdict(self, signal: RequestSignal) -> bool | None:
        """Resolve the upstream decision; a failing callable has no opinion."""
        try:
            if self.upstream is not None:
                result = self.upstream(signal)
            else:
                result = signal.upstream_verdict
            return None if result is None else bool(result)
        except Exception:
            logger.exception("Upstream decision failed, ignoring it")
            return None

    def _finish(self, signal: RequestSignal, decision: Decision) -> Decision:
        logger.debug(
            "Session %s for %s %s: %s",
            decision.verdict.value,
            signal.host or "-",
            decision.path or "-",
            decision.reason,
        )
        log_decision(
            verdict=decision.verdict.value,
            host=signal.host,
            path=decision.path,
            reason=decision.reason,
            login=signal.has_login_credential,
            **({"it": signal.query_path} if signal.query_path is not None else {}),
        )
        return decision

    def decide(self, signal: RequestSignal) -> Decision:
        """Decide whether a session is allowed for a request.

        Resolution order:
        1. Upstream decision - False is a hard veto.
        2. No request path - nothing to gate, allow.
        3. Login credential - allow when login_overrides_allow is set.
        4. Host and path rules of the active mode, starting from
           default_allow (or True when the upstream decision said so).
        5. Admin paths - always allowed.
        6. Protected file paths - allowed iff secure_files_enabled.
        """
        config = self._config

        upstream = self._upstream_verdict(signal)
        if upstream is False:
            return self._finish(signal, Decision(Verdict.DENY, "Vetoed by upstream decision"))

        path = extract_path(signal.path, config.root_url, signal.query_path)
        if path == "":
            return self._finish(signal, Decision(Verdict.ALLOW, "No request path"))

        if config.login_overrides_allow and signal.has_login_credential:
            return self._finish(
                signal, Decision(Verdict.ALLOW, "Login credential present", path=path)
            )

        allow = True if upstream else config.default_allow
        matched = None

        if config.default_allow:
            reason = "Allowed by default"
            if config.deny_hosts and match_host(signal.host, config.deny_hosts):
                allow = False
                reason = f"Host {signal.host} is denied"
            elif config.deny_rules:
                rule = find_rule(path, config.deny_rules)
                if rule is not None:
                    allow = False
                    matched = rule.text
                    reason = f"Path matched deny rule: {rule.text}"
                else:
                    allow = True
                    reason = "No deny rule matches path"
        else:
            # Host list is authoritative: path rules apply only when no hosts are
            # configured. Checking path rules after a host match would conflict
            # with every path on an allowed host getting a session.
            if config.allow_hosts:
                allow = match_host(signal.host, config.allow_hosts)
                if allow:
                    reason = f"Host {signal.host} is allowed"
                else:
                    reason = f"Host {signal.host} is not in allowed hosts"
            elif config.allow_rules:
                rule = find_rule(path, config.allow_rules)
                allow = rule is not None
                if rule is not None:
                    matched = rule.text
                    reason = f"Path matched allow rule: {rule.text}"
                else:
                    reason = "No allow rule matches path"
            elif allow:
                reason = "Allowed by upstream decision"
            else:
                reason = "Denied by default"

        if not allow and config.admin_path_prefix and path.startswith(config.admin_path_prefix):
            allow = True
            reason = "Admin path is always allowed"

        if (
            not allow
            and config.protected_files_path_prefix
            and path.startswith(config.protected_files_path_prefix)
        ):
            allow = config.secure_files_enabled
            if allow:
                reason = "Protected files path with secure files enabled"

        return self._finish(signal, Decision(_verdict(allow), reason, matched, path))

    def allow_session(self, signal: RequestSignal) -> bool:
        """Return True if a session is allowed for the request."""
        return self.decide(signal).allowed

    def check_environ(
        self,
        environ: Mapping[str, str],
        login_cookie: str | None = None,
    ) -> Decision:
        """Decide for a WSGI request.

        Args:
            environ: WSGI environ of the request
            login_cookie: Name of the cookie whose presence signals a login
        """
        return self.decide(signal_from_environ(environ, login_cookie=login_cookie))


def decide(
    signal: RequestSignal,
    config: Configuration,
    upstream: UpstreamVerdict | None = None,
) -> bool:
    """Return True if a session is allowed for *signal* under *config*."""
    return SessionPolicy(config, upstream).allow_session(signal)
