#!/usr/bin/env python3
"""Command-line utility to validate and test session allow configurations.

Usage:
    python -m session_allow validate <config.yml> [--strict]
    python -m session_allow test <config.yml> /some/path www.example.com ...
    python -m session_allow check <config.yml> /some/path --host www.example.com
    python -m session_allow analyze-log <config.yml> <requests.jsonl>
    python -m session_allow dump-rules <config.yml>
    python -m session_allow defaults

Exit codes:
    0 - Valid configuration (or all requests allowed in analyze mode)
    1 - Invalid configuration (or some requests denied in analyze/check mode)
    2 - File not found or invalid YAML/JSON
"""

import argparse
import json
import sys
from pathlib import Path

from .config import Configuration, load_config, validate_config
from .defaults import get_example
from .enforcer import Decision, SessionPolicy
from .errors import ConfigError
from .logging import close_logging, init_logging
from .matcher import find_rule, match_host
from .parser import rule_to_dict
from .request import extract_path
from .types import RequestSignal


def check_rules(config: Configuration, items: list[str]) -> list[str]:
    """Test paths and hosts against the rules of the active mode.

    Items starting with "/" are paths, matched against the active path
    rules; anything else is a host, matched against the active host list.

    Returns one human-readable result line per non-blank item.
    """
    messages = []
    for item in items:
        item = item.strip()
        if not item:
            continue
        if item.startswith("/"):
            rule = find_rule(item, config.active_rules)
            if rule is not None:
                messages.append(f"PATH {item} MATCHED by rule: {rule.text}")
            else:
                messages.append(f"PATH {item} NOT MATCHED")
        elif match_host(item, config.active_hosts):
            messages.append(f"HOST {item} MATCHED")
        else:
            messages.append(f"HOST {item} NOT MATCHED")
    return messages


def request_key(record: dict, config: Configuration) -> tuple:
    """Generate a deduplication key for a logged request."""
    path = extract_path(record.get("path"), config.root_url, record.get("it"))
    return ((record.get("host") or "").lower(), path, bool(record.get("login", False)))


def format_request(record: dict, config: Configuration) -> str:
    """Format a logged request for human-readable output."""
    host = record.get("host") or "-"
    path = extract_path(record.get("path"), config.root_url, record.get("it")) or "(no path)"
    login = " [login]" if record.get("login") else ""
    return f"{host}{path}{login}"


def analyze_requests(config: Configuration, records: list[dict]) -> dict:
    """Analyze logged requests against a configuration.

    Uses the same SessionPolicy logic as live request handling.

    Returns dict with 'allowed' and 'denied' lists, each containing
    (record, count, reason) tuples for unique requests.
    """
    policy = SessionPolicy(config)

    counts: dict[tuple, dict] = {}
    for record in records:
        key = request_key(record, config)
        if key not in counts:
            counts[key] = {"record": record, "count": 0}
        counts[key]["count"] += 1

    allowed = []
    denied = []
    for data in counts.values():
        record = data["record"]
        decision = policy.decide(RequestSignal.from_dict(record))
        entry = (record, data["count"], decision.reason)
        if decision.allowed:
            allowed.append(entry)
        else:
            denied.append(entry)

    return {"allowed": allowed, "denied": denied}


def print_analysis_results(results: dict, config: Configuration, verbose: bool = False) -> int:
    """Print analysis results in human-readable format.

    Returns exit code (0 if all allowed, 1 if any denied).
    """
    allowed = results["allowed"]
    denied = results["denied"]

    def sort_key(entry):
        return format_request(entry[0], config)

    if denied:
        print("DENIED requests (no session with this configuration):")
        print("-" * 60)
        for record, count, reason in sorted(denied, key=sort_key):
            count_str = f" (x{count})" if count > 1 else ""
            print(f"  {format_request(record, config)}{count_str}  <- {reason}")
        print()

    if verbose and allowed:
        print("ALLOWED requests:")
        print("-" * 60)
        for record, count, reason in sorted(allowed, key=sort_key):
            count_str = f" (x{count})" if count > 1 else ""
            print(f"  {format_request(record, config)}{count_str}  <- {reason}")
        print()

    total = len(allowed) + len(denied)
    print(f"Summary: {len(allowed)} allowed, {len(denied)} denied (out of {total} unique requests)")
    return 1 if denied else 0


def load_requests_log(log_path: Path) -> list[dict]:
    """Load requests from a JSONL log file."""
    records = []
    with open(log_path) as f:
        for line_num, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                record = json.loads(line)
            except json.JSONDecodeError as e:
                print(f"Warning: Invalid JSON on line {line_num}: {e}", file=sys.stderr)
                continue
            if isinstance(record, dict):
                records.append(record)
    return records


def format_decision(decision: Decision) -> str:
    """Format a decision as a single line."""
    line = f"{decision.verdict.value.upper()}: {decision.reason}"
    if decision.path:
        line += f" (path {decision.path})"
    return line


def _load(path: Path) -> Configuration:
    try:
        return load_config(path)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)


def cmd_validate(args) -> int:
    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    errors = validate_config(config)
    for name, line_num, line, error in errors:
        print(f"{args.config}: {name} line {line_num}: {line}")
        print(f"    ^ {error}")
        if args.strict:
            print(f"\nValidation failed (strict mode): {len(errors)} error(s)")
            return 1

    if not args.quiet:
        rule_count = len(config.deny_rules) + len(config.allow_rules)
        if errors:
            print(f"\nValidation failed: {len(errors)} error(s), {rule_count} rule(s)")
        else:
            mode = "deny-list" if config.default_allow else "allow-list"
            print(f"Validation passed: {rule_count} rule(s), {mode} mode")
    return 1 if errors else 0


def cmd_test(args) -> int:
    config = _load(args.config)
    for message in check_rules(config, args.items):
        print(message)
    return 0


def cmd_check(args) -> int:
    config = _load(args.config)
    signal = RequestSignal(
        path=args.target,
        host=args.host,
        has_login_credential=args.login,
    )
    decision = SessionPolicy(config).decide(signal)
    print(format_decision(decision))
    if decision.matched_rule is not None:
        print(f"  matched rule: {decision.matched_rule}")
    return 0 if decision.allowed else 1


def cmd_analyze_log(args) -> int:
    config = _load(args.config)
    if not args.log.exists():
        print(f"Error: Log file not found: {args.log}", file=sys.stderr)
        return 2
    records = load_requests_log(args.log)
    if not records:
        print("No requests found in log file.", file=sys.stderr)
        return 0
    results = analyze_requests(config, records)
    return print_analysis_results(results, config, verbose=args.verbose)


def cmd_dump_rules(args) -> int:
    config = _load(args.config)
    dump = {
        "deny_path_rules": [rule_to_dict(rule) for rule in config.deny_rules],
        "allow_path_rules": [rule_to_dict(rule) for rule in config.allow_rules],
    }
    print(json.dumps(dump, indent=2))
    return 1 if any(not rule.valid for rule in config.deny_rules + config.allow_rules) else 0


def cmd_defaults(args) -> int:
    print(get_example(), end="")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="session-allow",
        description="Validate and test session allow rules.",
        epilog="Exit codes: 0=valid/all-allowed, 1=invalid/some-denied, 2=file error",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    p = subparsers.add_parser("validate", help="Report malformed rules and unknown hosts")
    p.add_argument("config", type=Path, help="Path to configuration YAML file")
    p.add_argument("--strict", action="store_true", help="Stop at the first error")
    p.add_argument("-q", "--quiet", action="store_true", help="Only output errors, no summary")
    p.set_defaults(func=cmd_validate)

    p = subparsers.add_parser("test", help="Test paths and hosts against the active rules")
    p.add_argument("config", type=Path, help="Path to configuration YAML file")
    p.add_argument("items", nargs="+", metavar="PATH_OR_HOST", help="Paths (/...) or host names")
    p.set_defaults(func=cmd_test)

    p = subparsers.add_parser("check", help="Decide a single request")
    p.add_argument("config", type=Path, help="Path to configuration YAML file")
    p.add_argument("target", help="Request target, e.g. /foo/bar?x=1")
    p.add_argument("--host", default="", help="Host header value")
    p.add_argument("--login", action="store_true", help="Request carries a login cookie")
    p.set_defaults(func=cmd_check)

    p = subparsers.add_parser("analyze-log", help="Evaluate a JSONL log of requests")
    p.add_argument("config", type=Path, help="Path to configuration YAML file")
    p.add_argument("log", type=Path, metavar="REQUESTS.jsonl", help="Requests log")
    p.add_argument("-v", "--verbose", action="store_true", help="Show allowed requests too")
    p.set_defaults(func=cmd_analyze_log)

    p = subparsers.add_parser("dump-rules", help="Output compiled path rules as JSON")
    p.add_argument("config", type=Path, help="Path to configuration YAML file")
    p.set_defaults(func=cmd_dump_rules)

    p = subparsers.add_parser("defaults", help="Print an annotated example configuration")
    p.set_defaults(func=cmd_defaults)

    return parser


def main(argv: list[str] | None = None):
    args = build_parser().parse_args(argv)
    init_logging()
    try:
        code = args.func(args)
    finally:
        close_logging()
    sys.exit(code)


if __name__ == "__main__":
    main()
