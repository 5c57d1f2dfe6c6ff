"""Session allow - decides per request whether a server-side session may exist."""

from .config import Configuration, load_config, validate_config
from .defaults import DEFAULT_CONFIG, get_defaults, get_example
from .enforcer import Decision, SessionPolicy, UpstreamVerdict, Verdict, decide
from .errors import ConfigError, RuleSyntaxError, SessionAllowError
from .matcher import find_rule, match_host, match_path
from .parser import compile_rule, compile_rules, parse_rule, rule_to_dict, validate_rules
from .request import extract_path, signal_from_environ
from .types import CompiledRule, RequestSignal

__version__ = "0.1.0"

__all__ = [
    # Types
    "CompiledRule",
    "RequestSignal",
    # Errors
    "SessionAllowError",
    "ConfigError",
    "RuleSyntaxError",
    # Parser
    "parse_rule",
    "compile_rule",
    "compile_rules",
    "validate_rules",
    "rule_to_dict",
    # Matcher
    "find_rule",
    "match_path",
    "match_host",
    # Request
    "extract_path",
    "signal_from_environ",
    # Configuration
    "Configuration",
    "load_config",
    "validate_config",
    "DEFAULT_CONFIG",
    "get_defaults",
    "get_example",
    # Enforcer
    "SessionPolicy",
    "Decision",
    "Verdict",
    "UpstreamVerdict",
    "decide",
]
