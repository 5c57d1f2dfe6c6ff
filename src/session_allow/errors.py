"""Exception types raised by the session allow engine."""


class SessionAllowError(Exception):
    """Base error for all session allow failures."""


class ConfigError(SessionAllowError):
    """Configuration could not be loaded or contains an invalid value."""


class RuleSyntaxError(SessionAllowError):
    """A rule line could not be compiled."""

    def __init__(self, line: str, detail: str = "") -> None:
        self.line = line
        self.detail = detail
        msg = f"Invalid rule: {line}"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)
