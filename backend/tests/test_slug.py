"""Tests for catalog slug generation."""

from unittest.mock import patch

from app.catalog.slug import MAX_SLUG_LENGTH, slug_source, slugify, unique_slug


class TestSlugify:
    def test_basic(self):
        assert slugify("SSC CGL 2024: Maths (Part 1)") == "ssc-cgl-2024-maths-part-1"

    def test_diacritics_removed(self):
        assert slugify("Café Résumé") == "cafe-resume"

    def test_edges_trimmed(self):
        assert slugify("  --Hello--  ") == "hello"

    def test_non_latin_script_is_empty(self):
        assert slugify("सामान्य ज्ञान") == ""

    def test_truncated(self):
        assert len(slugify("a" * 500)) == MAX_SLUG_LENGTH

    def test_empty(self):
        assert slugify(None) == ""
        assert slugify("") == ""


class TestSlugSource:
    def test_first_title_that_slugs(self):
        assert slug_source("", "सामान्य ज्ञान", "General Knowledge") == "general-knowledge"

    def test_fallback(self):
        assert slug_source("सामान्य ज्ञान", None) == "pdf"


class TestUniqueSlug:
    def test_free_base(self):
        assert unique_slug("algebra", lambda s: False) == "algebra"

    @patch("app.catalog.slug.secrets.token_hex", return_value="a1b2c3")
    def test_collision_suffix(self, mock_hex):
        taken = {"algebra"}
        assert unique_slug("algebra", taken.__contains__) == "algebra-a1b2c3"
        mock_hex.assert_called_once_with(3)

    def test_gives_up_after_attempts(self):
        calls = []

        def exists(candidate):
            calls.append(candidate)
            return True

        slug = unique_slug("algebra", exists)

        assert len(calls) == 3
        assert slug.startswith("algebra-")

    @patch("app.catalog.slug.secrets.token_hex", return_value="a1b2c3")
    def test_suffixed_long_base_stays_within_limit(self, mock_hex):
        base = slugify("a" * 500)
        taken = {base}

        slug = unique_slug(base, taken.__contains__)

        assert len(slug) <= MAX_SLUG_LENGTH
        assert slug.endswith("-a1b2c3")
        assert slug != base
