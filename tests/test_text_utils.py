"""
Tests for text normalization helpers.
"""

from case_harvester.extractors.text_utils import (
    clean_title,
    is_truncated_prompt,
    normalize_prompt,
    normalize_source_path,
    normalize_text,
)


class TestNormalizeText:
    """Test raw text normalization."""

    def test_line_endings_and_spaces(self):
        """CRLF, NBSP and ideographic spaces collapse; blank-line runs shrink to one."""
        raw = "a\r\nb  c　d\n\n\n\ne  "
        assert normalize_text(raw) == "a\nb c d\n\ne"

    def test_non_string_input(self):
        """Non-string input yields an empty string."""
        assert normalize_text(None) == ""
        assert normalize_text(42) == ""


class TestNormalizePrompt:
    """Test the comparison form of prompts."""

    def test_strips_fences_and_case(self):
        assert normalize_prompt("```\nCreate A  3D\nfigurine\n```") == "create a 3d figurine"

    def test_strips_stray_backticks(self):
        assert normalize_prompt("`Make a poster`") == "make a poster"

    def test_empty(self):
        assert normalize_prompt("") == ""


class TestTruncation:
    """Test truncated-prefix detection."""

    def test_truncated_pair(self):
        assert is_truncated_prompt("Create a 3D figurine of the uploaded photo", "Create a 3D figuri")

    def test_order_does_not_matter(self):
        assert is_truncated_prompt("Create a 3D figuri", "Create a 3D figurine of the uploaded photo")

    def test_small_difference_is_not_truncation(self):
        """Prefixes shorter than the threshold difference are not truncations."""
        assert not is_truncated_prompt("Create a 3D figurine", "Create a 3D figuri")

    def test_not_a_prefix(self):
        assert not is_truncated_prompt("Create a 3D figurine of the uploaded photo", "Make a poster")


class TestCleanTitle:
    """Test title cleanup."""

    def test_keycap_prefix(self):
        assert clean_title("1️⃣ Figurine Maker") == "Figurine Maker"

    def test_numbered_label_and_link(self):
        assert clean_title("例 3: [Photo to Figurine](https://x.com/a)") == "Photo to Figurine"

    def test_case_label(self):
        assert clean_title("Case 12: Vintage Poster ") == "Vintage Poster"

    def test_repeat_suffix_removed(self):
        assert clean_title("Moody Portrait (#2)") == "Moody Portrait"

    def test_leading_number_kept_when_part_of_word(self):
        """'3D' is content, not numbering."""
        assert clean_title("3D figurine") == "3D figurine"

    def test_html_removed(self):
        assert clean_title("<b>Retro</b> Look") == "Retro Look"


class TestSourcePath:
    def test_normalize_source_path(self):
        assert normalize_source_path("https://www.GitHub.com/User/Repo/") == "github.com/user/repo"

    def test_query_dropped(self):
        assert normalize_source_path("https://example.com/a?utm=1") == "example.com/a"
