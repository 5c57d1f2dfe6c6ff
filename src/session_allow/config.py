"""Configuration model - an immutable, normalized snapshot of session rules.

A ``Configuration`` is built once (from code, a dict or a YAML file) and
handed to each evaluation. Updates go through ``Configuration.set``, which
returns a new snapshot instead of mutating the one in use, so evaluations
never observe a half-applied change.
"""

import dataclasses
import logging
import os
import re
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError
from .parser import compile_rules
from .types import CompiledRule

logger = logging.getLogger(__name__)

# Environment variable naming the YAML configuration file
CONFIG_ENV = "SESSION_ALLOW_CONFIG"

BOOL_FIELDS = ("default_allow", "login_overrides_allow", "secure_files_enabled")
LIST_FIELDS = (
    "deny_hosts",
    "allow_hosts",
    "deny_path_rules",
    "allow_path_rules",
    "known_hosts",
)
STR_FIELDS = ("admin_path_prefix", "protected_files_path_prefix", "root_url")

# Alternate key spellings accepted when loading settings
ALIASES = {
    # Legacy module setting keys
    "defaultYes": "default_allow",
    "loginYes": "login_overrides_allow",
    "noHosts": "deny_hosts",
    "yesHosts": "allow_hosts",
    "noRules": "deny_path_rules",
    "yesRules": "allow_path_rules",
    "httpHosts": "known_hosts",
    "pagefileSecure": "secure_files_enabled",
    # camelCase
    "defaultAllow": "default_allow",
    "loginOverridesAllow": "login_overrides_allow",
    "denyHosts": "deny_hosts",
    "allowHosts": "allow_hosts",
    "denyPathRules": "deny_path_rules",
    "allowPathRules": "allow_path_rules",
    "knownHosts": "known_hosts",
    "adminPathPrefix": "admin_path_prefix",
    "protectedFilesPathPrefix": "protected_files_path_prefix",
    "secureFilesEnabled": "secure_files_enabled",
    "rootUrl": "root_url",
}

_LEADING_INT = re.compile(r"\s*[+-]?\d+")


def to_bool(value: Any) -> bool:
    """Coerce a value through integer truthiness.

    ``"0"`` and non-numeric strings are False, ``"1"`` or ``"12abc"`` are
    True, numbers are truncated to int first (so ``0.5`` is False).
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, (int, float)):
        try:
            return bool(int(value))
        except (ValueError, OverflowError):
            return False
    if isinstance(value, str):
        m = _LEADING_INT.match(value)
        return bool(int(m.group())) if m else False
    return bool(value)


def to_lines(value: Any) -> tuple[str, ...]:
    """Normalize a list setting.

    Accepts a sequence of strings or a single multi-line string. Items are
    trimmed, blank items dropped, and duplicates removed keeping the first.
    """
    if value is None:
        return ()
    if isinstance(value, str):
        items: Iterable = value.split("\n")
    elif isinstance(value, Iterable):
        items = value
    else:
        raise ConfigError(f"Expected a list or multi-line string, got {type(value).__name__}")

    lines: list[str] = []
    for item in items:
        if item is None:
            continue
        item = str(item).strip()
        if item and item not in lines:
            lines.append(item)
    return tuple(lines)


def resolve_key(key: str) -> str:
    """Map an alias to its field name, rejecting unknown keys."""
    name = ALIASES.get(key, key)
    if name not in BOOL_FIELDS + LIST_FIELDS + STR_FIELDS:
        raise ConfigError(f"Unknown setting: {key}")
    return name


@dataclass(frozen=True)
class Configuration:
    """Session allow settings.

    Attributes:
        default_allow: Allow sessions unless a rule denies (deny-list mode).
            When False, sessions are denied unless a rule allows.
        login_overrides_allow: A login credential always allows a session.
        deny_hosts: Hosts without sessions (deny-list mode only).
        allow_hosts: Hosts with sessions (allow-list mode only).
        deny_path_rules: Path rules denying sessions (deny-list mode only).
        allow_path_rules: Path rules allowing sessions (allow-list mode only).
        known_hosts: Hosts the site answers to; offered as host choices and
            checked against the host lists during validation.
        admin_path_prefix: Paths under it always get a session.
        protected_files_path_prefix: Paths under it get a session only when
            secure_files_enabled is set.
        secure_files_enabled: Protected file delivery needs a session.
        root_url: URL the site is installed under, stripped from request paths.
    """

    default_allow: bool = True
    login_overrides_allow: bool = True
    deny_hosts: tuple[str, ...] = ()
    allow_hosts: tuple[str, ...] = ()
    deny_path_rules: tuple[str, ...] = ()
    allow_path_rules: tuple[str, ...] = ()
    known_hosts: tuple[str, ...] = ()
    admin_path_prefix: str = ""
    protected_files_path_prefix: str = ""
    secure_files_enabled: bool = False
    root_url: str = "/"

    deny_rules: tuple[CompiledRule, ...] = field(init=False, repr=False, compare=False)
    allow_rules: tuple[CompiledRule, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        for name in BOOL_FIELDS:
            object.__setattr__(self, name, to_bool(getattr(self, name)))
        for name in LIST_FIELDS:
            object.__setattr__(self, name, to_lines(getattr(self, name)))
        for name in STR_FIELDS:
            value = getattr(self, name)
            object.__setattr__(self, name, "" if value is None else str(value).strip())
        if not self.root_url:
            object.__setattr__(self, "root_url", "/")

        # Rules are compiled here so requests never pay for it
        object.__setattr__(self, "deny_rules", compile_rules(self.deny_path_rules))
        object.__setattr__(self, "allow_rules", compile_rules(self.allow_path_rules))

    @property
    def active_hosts(self) -> tuple[str, ...]:
        """Host list consulted in the current mode."""
        return self.deny_hosts if self.default_allow else self.allow_hosts

    @property
    def active_rules(self) -> tuple[CompiledRule, ...]:
        """Compiled path rules consulted in the current mode."""
        return self.deny_rules if self.default_allow else self.allow_rules

    def set(self, key: str, value: Any) -> "Configuration":
        """Return a new snapshot with *key* set to the normalized *value*.

        Raises:
            ConfigError: If *key* is not a known setting.
        """
        return dataclasses.replace(self, **{resolve_key(key): value})

    def to_dict(self) -> dict:
        """Convert settings to plain types (lists, bools, strings)."""
        result: dict[str, Any] = {}
        for f in dataclasses.fields(self):
            if not f.init:
                continue
            value = getattr(self, f.name)
            result[f.name] = list(value) if isinstance(value, tuple) else value
        return result

    @classmethod
    def from_dict(cls, data: dict) -> "Configuration":
        """Create a Configuration from a mapping of settings.

        Keys may use the field names or any alias in ``ALIASES``.

        Raises:
            ConfigError: On unknown keys or a key given twice via aliases.
        """
        kwargs: dict[str, Any] = {}
        for key, value in data.items():
            name = resolve_key(str(key))
            if name in kwargs:
                raise ConfigError(f"Setting given more than once: {name}")
            kwargs[name] = value
        return cls(**kwargs)


def validate_config(config: Configuration) -> list[tuple[str, int, str, str]]:
    """Validate a configuration and return a list of problems.

    Reports malformed path rules, and hosts in the host lists that are not
    among ``known_hosts`` (only when known_hosts is configured).

    Returns:
        List of (setting, line_num, line_text, error_message) tuples.
        Empty list if the configuration is valid.
    """
    errors = []
    for name, rules in (("deny_path_rules", config.deny_rules), ("allow_path_rules", config.allow_rules)):
        for line_num, rule in enumerate(rules, start=1):
            if not rule.valid:
                errors.append((name, line_num, rule.source, rule.error or "invalid rule"))

    if config.known_hosts:
        known = {host.lower() for host in config.known_hosts}
        for name in ("deny_hosts", "allow_hosts"):
            for line_num, host in enumerate(getattr(config, name), start=1):
                if host.lower() not in known:
                    errors.append((name, line_num, host, "host is not in known_hosts"))

    return errors


def load_config(path: str | Path | None = None, strict: bool = False) -> Configuration:
    """Load a Configuration from a YAML file.

    Args:
        path: YAML file to read. Defaults to the file named by the
            SESSION_ALLOW_CONFIG environment variable.
        strict: Reject configurations that fail ``validate_config``
            instead of ignoring the offending rules.

    Raises:
        ConfigError: If the file is missing, unreadable, not a YAML mapping,
            has unknown settings, or (strict mode) fails validation.
    """
    if path is None:
        path = os.environ.get(CONFIG_ENV)
        if not path:
            raise ConfigError(f"No configuration file given and {CONFIG_ENV} is not set")
    path = Path(path)

    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"{path} is not a YAML mapping")

    config = Configuration.from_dict(data)

    errors = validate_config(config)
    if errors and strict:
        details = "; ".join(f"{name} line {num}: {line} ({error})" for name, num, line, error in errors)
        raise ConfigError(f"Invalid configuration in {path}: {details}")
    for name, num, line, error in errors:
        logger.warning("%s: %s line %d: %s (%s)", path, name, num, line, error)

    logger.debug("Loaded configuration from %s", path)
    return config
