import pytest

from app.backbone import email_domains as ed


def test_extract_domain_valid():
    assert ed.extract_domain("user@example.com") == "example.com"
    assert ed.extract_domain("user@Sub.Example.com") == "sub.example.com"


@pytest.mark.parametrize("email", ["invalid-email", "@example.com", "user@", ""])
def test_extract_domain_invalid(email):
    assert ed.extract_domain(email) is None


def test_exact_match():
    assert ed.matches("user@example.com", "example.com")
    assert not ed.matches("user@other.com", "example.com")


def test_brace_expansion():
    assert ed.matches("user@comp.com", "comp.{com,cn}")
    assert ed.matches("user@comp.cn", "comp.{com,cn}")
    assert not ed.matches("user@comp.net", "comp.{com,cn}")
    assert ed.matches("user@sub.example.com", "*.{example,test}.com")
    assert not ed.matches("user@example.com", "*.{example,test}.com")


def test_wildcard_is_exactly_one_label():
    assert ed.matches("user@sub.example.com", "*.example.com")
    assert not ed.matches("user@example.com", "*.example.com")
    assert not ed.matches("user@a.b.example.com", "*.example.com")


def test_multiple_patterns_and_case():
    patterns = "example.com, test.com,comp.{com,cn}"
    assert ed.matches("user@test.com", patterns)
    assert ed.matches("user@COMP.CN", patterns)
    assert not ed.matches("user@other.com", patterns)


def test_blank_patterns_never_match():
    assert not ed.matches_domain("example.com", None)
    assert not ed.matches_domain("example.com", "")
    assert not ed.matches_domain("example.com", "   ")


def test_pattern_to_regex_is_anchored():
    pattern = ed.pattern_to_regex("example.com")
    assert pattern.match("example.com")
    assert not pattern.match("sub.example.com")
    assert not pattern.match("example.com.evil.io")
    assert not pattern.match("exampleXcom")


def test_complex_pattern():
    pattern = ed.pattern_to_regex("*.{example,test}.{com,cn}")
    assert pattern.match("admin.example.cn")
    assert pattern.match("api.test.com")
    assert not pattern.match("test.org")


def test_empty_braces_match_nothing():
    assert not ed.matches("user@example.com", "example.{}")


def test_split_patterns_respects_braces():
    assert ed.split_patterns("a.{com,cn}, B.io ,,") == ["a.{com,cn}", "b.io"]


def test_expand_pattern():
    assert ed.expand_pattern("example.com") == ["example.com"]
    assert ed.expand_pattern("*.example.com") == ["*.example.com"]
    assert sorted(ed.expand_pattern("{example,test}.{com,cn}")) == [
        "example.cn",
        "example.com",
        "test.cn",
        "test.com",
    ]


def test_expand_all():
    assert ed.expand_all("comp.{com,cn},*.corp.io") == ["comp.com", "comp.cn", "*.corp.io"]
    assert ed.expand_all(None) == []
