"""Tests for customer tag matching.

Tests cover:
- All match modes: exact, contains, regex
- Case insensitivity
- Edge cases
"""

import re

import pytest

from src.config import TagMatchMode
from src.filters.tags import TagMatcher


class TestExactMatch:
    def test_matches_verified_tag(self):
        matcher = TagMatcher(["vat-verified"])
        assert matcher.matches(["wholesale", "vat-verified"]) is True

    def test_case_insensitive(self):
        matcher = TagMatcher(["VAT-Verified"])
        assert matcher.find(["vat-VERIFIED"]) == "vat-verified"

    def test_partial_tag_does_not_match(self):
        matcher = TagMatcher(["vat-verified"])
        assert matcher.matches(["vat-verified-pending"]) is False

    def test_no_tags(self):
        matcher = TagMatcher(["vat-verified"])
        assert matcher.matches([]) is False
        assert matcher.matches(None) is False


class TestContainsMatch:
    def test_substring_matches(self):
        matcher = TagMatcher(["verified"], TagMatchMode.CONTAINS)
        assert matcher.find(["trade", "VAT-Verified"]) == "vat-verified"

    def test_no_substring(self):
        matcher = TagMatcher(["verified"], TagMatchMode.CONTAINS)
        assert matcher.matches(["trade", "pending"]) is False


class TestRegexMatch:
    def test_pattern_matches(self):
        matcher = TagMatcher([r"^vat-(verified|approved)$"], TagMatchMode.REGEX)
        assert matcher.matches(["VAT-Approved"]) is True
        assert matcher.matches(["vat-pending"]) is False

    def test_invalid_pattern_raises(self):
        with pytest.raises(re.error):
            TagMatcher(["("], TagMatchMode.REGEX)


class TestEdgeCases:
    def test_empty_configured_tags_never_match(self):
        assert TagMatcher([]).matches(["vat-verified"]) is False
        assert TagMatcher([""]).matches([""]) is False

    def test_returns_first_matching_customer_tag(self):
        matcher = TagMatcher(["a", "b"])
        assert matcher.find(["b", "a"]) == "b"

    def test_repr(self):
        assert "exact" in repr(TagMatcher(["x"]))
