"""
Tests for the normalization utilities.
"""

import pytest

from octopus_sync.utils.normalization import normalize_email, normalize_string


class TestNormalizeEmail:
    """Tests for normalize_email."""

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("ada@example.com", "ada@example.com"),
            ("Ada@Example.COM", "ada@example.com"),
            ("  ada@example.com\t", "ada@example.com"),
            (" ADA@EXAMPLE.COM\n", "ada@example.com"),
        ],
    )
    def test_variants_share_a_key(self, raw, expected):
        """Test case and surrounding whitespace are ignored."""
        assert normalize_email(raw) == expected

    def test_empty(self):
        """Test empty and None values."""
        assert normalize_email("") == ""
        assert normalize_email(None) == ""
        assert normalize_email("   ") == ""

    def test_inner_characters_kept(self):
        """Test only the ends are trimmed."""
        assert normalize_email("first.last+tag@example.com") == "first.last+tag@example.com"


class TestNormalizeString:
    """Tests for normalize_string."""

    def test_lowercase_and_accents(self):
        """Test accents are removed and case folded."""
        assert normalize_string("Écôle Primaire") == "ecole primaire"

    def test_collapses_whitespace(self):
        """Test runs of whitespace become one space."""
        assert normalize_string("  Grade   5 ") == "grade 5"

    def test_remove_spaces(self):
        """Test spaces can be removed entirely."""
        assert normalize_string("Grade 5", remove_spaces=True) == "grade5"

    def test_empty(self):
        """Test empty input."""
        assert normalize_string("") == ""
