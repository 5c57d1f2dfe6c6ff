"""Tests for path and host matching.

Uses YAML test fixtures from tests/fixtures/.
"""

import pytest

from conftest import load_fixture
from session_allow.matcher import find_rule, match_host, match_path
from session_allow.parser import compile_rules

# =============================================================================
# Path Match Tests
# =============================================================================

MATCH_FIXTURE = load_fixture("rule_match")


def generate_match_test_cases():
    """Generate individual test cases from the match fixture."""
    cases = []
    for test in MATCH_FIXTURE["tests"]:
        for i, check in enumerate(test["paths"]):
            case_id = f"{test['name']} - path {i}"
            cases.append((case_id, test["rules"], check["path"], check["match"]))
    return cases


MATCH_TEST_CASES = generate_match_test_cases()


@pytest.mark.parametrize(
    "case_id,rules,path,expected",
    MATCH_TEST_CASES,
    ids=[c[0] for c in MATCH_TEST_CASES],
)
def test_path_match(case_id, rules, path, expected):
    """Test path matching against rule lines."""
    actual = match_path(path, rules)

    assert actual == expected, (
        f"Match mismatch for '{case_id}':\n"
        f"Rules: {rules}\n"
        f"Path: {path}\n"
        f"Expected: {expected}, Got: {actual}"
    )


@pytest.mark.parametrize(
    "case_id,rules,path,expected",
    MATCH_TEST_CASES,
    ids=[c[0] for c in MATCH_TEST_CASES],
)
def test_compiled_rules_match_like_text(case_id, rules, path, expected):
    """Precompiled rules give the same result as rule text."""
    assert match_path(path, compile_rules(rules)) == expected


class TestMatchPath:
    def test_empty_rule_list(self):
        assert match_path("/foo", []) is None

    def test_only_blank_rules(self):
        assert match_path("/foo", ["", "  ", "\t"]) is None

    def test_find_rule_returns_compiled_rule(self):
        rule = find_rule("/foo/bar", ["/other", "/foo/*"])
        assert rule is not None
        assert rule.kind == "wildcard"
        assert rule.source == "/foo/*"
        assert rule.text == "/foo/.*"

    def test_find_rule_no_match(self):
        assert find_rule("/nope", ["/foo/*"]) is None

    def test_dot_is_not_escaped_in_wildcards(self):
        # Wildcard text is used as a regex, so "." matches any character
        assert match_path("/sitemapXxml", ["/sitemap.xml*"]) == "/sitemap.xml.*"

    def test_literal_dot_only_matches_itself(self):
        assert match_path("/sitemapXxml", ["/sitemap.xml"]) is None
        assert match_path("/sitemap.xml", ["/sitemap.xml"]) == "/sitemap.xml"

    def test_alternate_delimiter_inside_regex(self):
        # Every # becomes !, so an inner # closes the pattern early
        assert match_path("/a", ["#^/a#b#"]) is None

    def test_escaped_delimiter(self):
        assert match_path("/a!b", [r"!^/a\!b$!"]) == r"!^/a\!b$!"

    def test_anchored_modifier(self):
        assert match_path("/foo/bar", ["!foo!A"]) is None
        assert match_path("foo/bar", ["!foo!A"]) == "!foo!A"

    def test_generator_of_rules(self):
        rules = (line for line in ["/a", "/b"])
        assert match_path("/b", rules) == "/b"


class TestMatchHost:
    def test_exact_match(self):
        assert match_host("a.example", ["a.example"])

    def test_case_insensitive(self):
        assert match_host("A.Example", ["a.EXAMPLE"])

    def test_whitespace_trimmed(self):
        assert match_host("  a.example ", [" a.example  "])

    def test_no_match(self):
        assert not match_host("b.example", ["a.example"])

    def test_empty_hosts_never_match(self):
        assert not match_host("a.example", [])
        assert not match_host("", [])

    def test_missing_host(self):
        assert not match_host(None, ["a.example"])
        assert not match_host(None, [])
        assert not match_host("   ", ["a.example"])

    def test_no_wildcards(self):
        assert not match_host("www.a.example", ["*.a.example"])

    def test_no_partial_match(self):
        assert not match_host("a.example.org", ["a.example"])
        assert not match_host("example", ["a.example"])
