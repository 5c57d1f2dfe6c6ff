"""Tests for rule line classification and compilation."""

import logging

import pytest

from session_allow.errors import RuleSyntaxError
from session_allow.parser import (
    classify_rule,
    compile_rule,
    compile_rules,
    normalize_delimiters,
    parse_rule,
    rule_to_dict,
    split_delimited,
    validate_rules,
    wildcard_to_regex,
)


class TestClassifyRule:
    @pytest.mark.parametrize(
        "line,kind",
        [
            ("/foo/bar", "literal"),
            ("/foo/bar/", "literal"),
            ("/sitemap.xml", "literal"),
            ("/foo/*", "wildcard"),
            ("*/foo", "wildcard"),
            ("/foo/+", "wildcard"),
            ("/foo/?", "wildcard"),
            ("/foo/(bar|baz)", "wildcard"),
            ("!^/foo!", "regex"),
            ("#^/foo#", "regex"),
            ("%^/foo%", "regex"),
            ("@^/foo@", "regex"),
            ("#/foo/*#", "regex"),
            ("/foo#bar", "literal"),
        ],
    )
    def test_kinds(self, line, kind):
        assert classify_rule(line) == kind

    def test_empty_line_rejected(self):
        with pytest.raises(RuleSyntaxError):
            classify_rule("")

    def test_multi_line_rejected(self):
        with pytest.raises(RuleSyntaxError):
            classify_rule("/a\n/b")


class TestHelpers:
    def test_normalize_delimiters(self):
        assert normalize_delimiters("#^/a%b@c#") == "!^/a!b!c!"

    def test_split_delimited(self):
        assert split_delimited("!^/foo$!i") == ("^/foo$", "i")

    def test_split_delimited_skips_escaped(self):
        assert split_delimited(r"!a\!b!") == (r"a\!b", "")

    def test_split_delimited_missing_close(self):
        with pytest.raises(RuleSyntaxError, match="missing closing delimiter"):
            split_delimited("!^/foo")

    def test_wildcard_to_regex(self):
        assert wildcard_to_regex("/a/*/b+") == "/a/.*/b.+"
        assert wildcard_to_regex("/a?/(b)") == "/a?/(b)"


class TestParseRule:
    def test_literal(self):
        rule = parse_rule("  /foo  ")
        assert rule.kind == "literal"
        assert rule.source == "/foo"
        assert rule.text == "/foo"
        assert rule.pattern is None
        assert rule.matches("/foo")
        assert not rule.matches("/foo/")

    def test_wildcard(self):
        rule = parse_rule("/foo/*")
        assert rule.kind == "wildcard"
        assert rule.text == "/foo/.*"
        assert rule.pattern.pattern == "^/foo/.*$"

    def test_regex_normalized(self):
        rule = parse_rule("#^/api/v[0-9]+/.*$#")
        assert rule.kind == "regex"
        assert rule.source == "#^/api/v[0-9]+/.*$#"
        assert rule.text == "!^/api/v[0-9]+/.*$!"
        assert rule.pattern.pattern == "^/api/v[0-9]+/.*$"
        assert rule.matches("/api/v2/users")
        assert not rule.matches("/apiv2/users")

    def test_regex_flags(self):
        rule = parse_rule("!^/foo!imsxu")
        assert rule.matches("/FOO")

    def test_regex_unknown_modifier(self):
        with pytest.raises(RuleSyntaxError, match="unknown modifier 'q'"):
            parse_rule("!^/foo!q")

    def test_regex_missing_delimiter(self):
        with pytest.raises(RuleSyntaxError):
            parse_rule("!^/foo")

    def test_regex_does_not_compile(self):
        with pytest.raises(RuleSyntaxError) as exc_info:
            parse_rule("!^/(foo!")
        assert exc_info.value.line == "!^/(foo!"
        assert exc_info.value.detail

    def test_wildcard_does_not_compile(self):
        with pytest.raises(RuleSyntaxError):
            parse_rule("/foo(")

    def test_blank_rejected(self):
        with pytest.raises(RuleSyntaxError):
            parse_rule("   ")


class TestCompileRule:
    def test_invalid_rule_never_matches(self):
        rule = compile_rule("/never-valid(")
        assert rule.kind == "invalid"
        assert not rule.valid
        assert rule.error
        assert not rule.matches("/never-valid(")
        assert not rule.matches("")

    def test_invalid_rule_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="session_allow.parser"):
            compile_rule("!unique-broken-rule-for-logging(!")
        assert "unique-broken-rule-for-logging" in caplog.text

    def test_cached(self):
        assert compile_rule("/cached/*") is compile_rule("/cached/*")

    def test_compile_rules_skips_blank_and_keeps_order(self):
        rules = compile_rules(["/b", "", "  ", " /a/* "])
        assert [rule.source for rule in rules] == ["/b", "/a/*"]
        assert [rule.kind for rule in rules] == ["literal", "wildcard"]


class TestValidateRules:
    def test_valid(self):
        assert validate_rules("/foo\n/bar/*\n#^/baz#") == []

    def test_reports_line_numbers(self):
        errors = validate_rules("/ok\n\n/bad(\n!^/x!z")
        assert [(num, line) for num, line, _ in errors] == [(3, "/bad("), (4, "!^/x!z")]

    def test_accepts_sequence(self):
        errors = validate_rules(["/ok", "#unclosed"])
        assert len(errors) == 1
        assert errors[0][0] == 2
        assert "missing closing delimiter" in errors[0][2]


class TestRuleToDict:
    def test_regex(self):
        d = rule_to_dict(parse_rule("!^/foo!A"))
        assert d == {
            "kind": "regex",
            "source": "!^/foo!A",
            "text": "!^/foo!A",
            "regex": "^/foo",
            "anchored": True,
        }

    def test_literal(self):
        assert rule_to_dict(parse_rule("/foo")) == {
            "kind": "literal",
            "source": "/foo",
            "text": "/foo",
        }

    def test_invalid(self):
        d = rule_to_dict(compile_rule("/dict-invalid("))
        assert d["kind"] == "invalid"
        assert "error" in d
