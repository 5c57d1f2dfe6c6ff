"""Rule parser - classifies rule lines and compiles them using a PEG grammar.

Uses parsimonious for PEG parsing. The grammar decides which form a line
takes (regex, wildcard or literal); compilation into a ``CompiledRule``
happens once per distinct line, when the configuration is built.
"""

import functools
import logging
import re
from collections.abc import Iterable

from parsimonious.exceptions import ParseError
from parsimonious.grammar import Grammar
from parsimonious.nodes import NodeVisitor

from .errors import RuleSyntaxError
from .types import CompiledRule

logger = logging.getLogger(__name__)

# =============================================================================
# PEG Grammar (source of truth for rule line forms)
# =============================================================================

GRAMMAR = Grammar(r"""
rule_line       = regex_rule / wildcard_rule / literal_rule

regex_rule      = delimiter regex_body
delimiter       = "!" / "#" / "%" / "@"
regex_body      = ~"[^\r\n]*"

wildcard_rule   = ~"[^*+?(\r\n]*" wildcard_char ~"[^\r\n]*"
wildcard_char   = "*" / "+" / "?" / "("

literal_rule    = ~"[^\r\n]+"
""")

# Characters that may open a regex line; all are rewritten to "!"
DELIMITERS = ("#", "%", "@")

# Trailing modifiers accepted after the closing delimiter
REGEX_FLAGS = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
    "u": 0,  # str patterns are unicode already
}


class RuleLineVisitor(NodeVisitor):
    """Reduces a parsed rule line to its kind."""

    def visit_rule_line(self, node, visited_children):
        return visited_children[0]

    def visit_regex_rule(self, node, visited_children):
        return "regex"

    def visit_wildcard_rule(self, node, visited_children):
        return "wildcard"

    def visit_literal_rule(self, node, visited_children):
        return "literal"

    def generic_visit(self, node, visited_children):
        return visited_children or node


_VISITOR = RuleLineVisitor()


def classify_rule(line: str) -> str:
    """Return the form of a trimmed, non-empty rule line.

    Raises:
        RuleSyntaxError: If the line is empty or spans several lines.
    """
    try:
        return _VISITOR.visit(GRAMMAR.parse(line))
    except ParseError:
        raise RuleSyntaxError(line, "rule must be a single non-empty line") from None


def normalize_delimiters(line: str) -> str:
    """Rewrite every alternate delimiter character to ``!``."""
    for delim in DELIMITERS:
        line = line.replace(delim, "!")
    return line


def split_delimited(text: str) -> tuple[str, str]:
    """Split ``!pattern!flags`` into pattern and flags.

    The closing delimiter is the first unescaped ``!`` after the opening one.
    """
    i = 1
    while i < len(text):
        char = text[i]
        if char == "\\":
            i += 2
            continue
        if char == "!":
            return text[1:i], text[i + 1 :]
        i += 1
    raise RuleSyntaxError(text, "missing closing delimiter")


def _compile_regex(text: str) -> tuple[re.Pattern, bool]:
    pattern, modifiers = split_delimited(text)
    flags = 0
    anchored = False
    for modifier in modifiers:
        if modifier == "A":
            anchored = True
        elif modifier in REGEX_FLAGS:
            flags |= REGEX_FLAGS[modifier]
        else:
            raise RuleSyntaxError(text, f"unknown modifier '{modifier}'")
    try:
        return re.compile(pattern, flags), anchored
    except (re.error, OverflowError) as e:
        raise RuleSyntaxError(text, str(e)) from None


def wildcard_to_regex(line: str) -> str:
    """Expand ``*`` and ``+`` wildcards; the rest of the line is used verbatim."""
    return line.replace("*", ".*").replace("+", ".+")


def parse_rule(line: str) -> CompiledRule:
    """Compile a single rule line, raising on malformed input.

    Raises:
        RuleSyntaxError: If the line is blank or its regex does not compile.
    """
    source = line.strip()
    kind = classify_rule(source)

    if kind == "regex":
        text = normalize_delimiters(source)
        pattern, anchored = _compile_regex(text)
        return CompiledRule("regex", source, text, pattern, anchored)

    if kind == "wildcard":
        text = wildcard_to_regex(source)
        try:
            pattern = re.compile(f"^{text}$")
        except (re.error, OverflowError) as e:
            raise RuleSyntaxError(source, str(e)) from None
        return CompiledRule("wildcard", source, text, pattern)

    return CompiledRule("literal", source, source)


@functools.lru_cache(maxsize=1024)
def compile_rule(line: str) -> CompiledRule:
    """Compile a rule line, turning malformed input into a rule that never matches.

    Results are cached per distinct line, so a malformed line is reported once.
    """
    try:
        return parse_rule(line)
    except RuleSyntaxError as e:
        logger.warning("Ignoring malformed rule %r: %s", line.strip(), e.detail)
        return CompiledRule("invalid", line.strip(), line.strip(), error=e.detail)


def compile_rules(lines: Iterable[str]) -> tuple[CompiledRule, ...]:
    """Compile rule lines in order, skipping blank ones."""
    return tuple(compile_rule(line.strip()) for line in lines if line.strip())


def validate_rules(rules: str | Iterable[str]) -> list[tuple[int, str, str]]:
    """Validate rule lines and return a list of errors for malformed ones.

    Args:
        rules: Multi-line rule text or a sequence of rule lines.

    Returns:
        List of (line_num, line_text, error_message) tuples for invalid lines.
        Empty list if all lines are valid.
    """
    if isinstance(rules, str):
        rules = rules.split("\n")

    errors = []
    for line_num, line in enumerate(rules, start=1):
        line_stripped = line.strip()
        if not line_stripped:
            continue
        try:
            parse_rule(line_stripped)
        except RuleSyntaxError as e:
            errors.append((line_num, line_stripped, e.detail))
    return errors


def rule_to_dict(rule: CompiledRule) -> dict:
    """Convert a CompiledRule to a JSON-friendly dictionary."""
    result = {
        "kind": rule.kind,
        "source": rule.source,
        "text": rule.text,
    }
    if rule.pattern is not None:
        result["regex"] = rule.pattern.pattern
    if rule.anchored:
        result["anchored"] = True
    if rule.error:
        result["error"] = rule.error
    return result
