"""
Unit tests for URL glob patterns.

Tests cover:
- Single-segment (*) and multi-segment (**) wildcards
- Anchoring to the whole URL
- Literal characters and case sensitivity
- Unusable patterns never matching
"""

import pytest

from fetchgate.policy.matcher import compile_pattern, translate


class TestDoubleStar:
    """Tests for the ** wildcard."""

    def test_matches_any_depth(self) -> None:
        """** crosses path separators."""
        matches = compile_pattern("https://api.example.com/**")

        assert matches("https://api.example.com/users")
        assert matches("https://api.example.com/users/42/repos")
        assert matches("https://api.example.com/users?page=2")

    def test_matches_empty_remainder(self) -> None:
        """** may match nothing at all."""
        matches = compile_pattern("https://api.example.com/**")
        assert matches("https://api.example.com/")

    def test_other_host_not_matched(self) -> None:
        """The host part is literal."""
        matches = compile_pattern("https://api.example.com/**")

        assert not matches("https://api.example.org/users")
        assert not matches("https://evil.com/https://api.example.com/users")

    def test_in_middle_of_pattern(self) -> None:
        """** can sit between literal segments."""
        matches = compile_pattern("https://api.example.com/**/items")

        assert matches("https://api.example.com/v1/shop/items")
        assert not matches("https://api.example.com/v1/shop/items/3")


class TestSingleStar:
    """Tests for the * wildcard."""

    def test_matches_one_segment(self) -> None:
        """* does not cross a slash."""
        matches = compile_pattern("https://api.example.com/*")

        assert matches("https://api.example.com/users")
        assert not matches("https://api.example.com/users/42")

    def test_subdomain_wildcard(self) -> None:
        """* works inside the host."""
        matches = compile_pattern("https://*.example.com/v1/**")

        assert matches("https://eu.example.com/v1/items")
        assert not matches("https://example.com/v1/items")

    def test_star_matches_query_without_slash(self) -> None:
        """The query string is part of the matched text."""
        matches = compile_pattern("https://api.example.com/search*")

        assert matches("https://api.example.com/search?q=python")
        assert not matches("https://api.example.com/search?q=a/b")


class TestLiteralMatching:
    """Tests for literal characters and anchoring."""

    def test_anchored_to_whole_url(self) -> None:
        """A pattern must describe the whole URL, not a substring."""
        matches = compile_pattern("https://api.example.com/users")

        assert matches("https://api.example.com/users")
        assert not matches("https://api.example.com/users/42")
        assert not matches("xhttps://api.example.com/users")

    def test_regex_characters_are_literal(self) -> None:
        """Dots, question marks and brackets are not special."""
        matches = compile_pattern("https://api.example.com/a.b?c=[1]")

        assert matches("https://api.example.com/a.b?c=[1]")
        assert not matches("https://api.example.com/aXb?c=[1]")
        assert not matches("https://api.example.com/a.bc=1")

    def test_case_sensitive(self) -> None:
        """No case folding is applied."""
        matches = compile_pattern("https://api.example.com/Users")

        assert matches("https://api.example.com/Users")
        assert not matches("https://api.example.com/users")
        assert not matches("HTTPS://api.example.com/Users")


class TestUnusablePatterns:
    """Tests for patterns that can never match."""

    @pytest.mark.parametrize("pattern", ["", None, 42])
    def test_never_matches(self, pattern: object) -> None:
        """Empty or non-string patterns yield a never-matching predicate."""
        matches = compile_pattern(pattern)  # type: ignore[arg-type]

        assert not matches("")
        assert not matches("https://api.example.com/")


class TestTranslate:
    """Tests for the glob-to-regex translation."""

    def test_triple_star_is_double_star(self) -> None:
        """Runs of three or more stars collapse to **."""
        assert translate("a/***") == translate("a/**")

    def test_compiled_predicates_are_cached(self) -> None:
        """The same pattern compiles once."""
        assert compile_pattern("https://x.test/**") is compile_pattern("https://x.test/**")
