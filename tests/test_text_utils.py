"""Tests for text helpers, markdown flattening and keyword lexicons."""

from script_ingestion.lexicons import (
    canonical_month,
    find_item_name,
    has_faction_keyword,
    has_location_indicator,
    has_place_indicator,
    is_noise_word,
    is_non_character_name,
    non_character_block_type,
)
from script_ingestion.markdown_stripper import strip_markdown
from script_ingestion.utils import (
    compute_source_hash,
    contains_name,
    names_overlap,
    normalize_name,
    to_title_case,
    truncate,
)


class TestNameHelpers:
    """Tests for name normalisation and comparison."""

    def test_normalize_collapses_whitespace(self):
        assert normalize_name("  The   Old  Mill ") == "the old mill"

    def test_normalize_strips_leading_article(self):
        assert normalize_name("The Warehouse", strip_articles=True) == "warehouse"
        assert normalize_name("An Outpost", strip_articles=True) == "outpost"

    def test_names_overlap_by_containment(self):
        """JOHN and JOHN DOE are the same character."""
        assert names_overlap("JOHN", "John Doe")
        assert names_overlap("john doe", "JOHN")
        assert not names_overlap("JOHN", "MARA")
        assert not names_overlap("", "MARA")

    def test_contains_name_uses_word_boundaries(self):
        assert contains_name("Elias kicks the door.", "Elias")
        assert not contains_name("Eliasson waits.", "Elias")
        assert contains_name("Then MARA-7 arrives", "mara-7")

    def test_title_case(self):
        assert to_title_case("ANCIENT SWORD") == "Ancient Sword"

    def test_truncate(self):
        assert truncate("short", 10) == "short"
        assert truncate("a" * 20, 10) == "aaaaaaa..."

    def test_source_hash_is_stable_sha256(self):
        first = compute_source_hash("PAGE 1")
        assert first == compute_source_hash("PAGE 1")
        assert first != compute_source_hash("PAGE 2")
        assert len(first) == 64


class TestStripMarkdown:
    """Tests for markdown flattening."""

    def test_bold_italic_and_headers(self):
        text = "## PAGE 1\n**ELIAS:** *Hello* there."
        assert strip_markdown(text) == "PAGE 1\nELIAS: Hello there."

    def test_table_rows_flattened_and_separator_blanked(self):
        text = "| Year | Event |\n|------|-------|\n| 2025 | Elias returns |"
        assert strip_markdown(text).split("\n") == ["Year Event", "", "2025 Elias returns"]

    def test_line_count_preserved(self):
        text = "> quoted\n`code`\n~~gone~~\nplain"
        assert strip_markdown(text) == "quoted\ncode\ngone\nplain"

    def test_empty(self):
        assert strip_markdown("") == ""


class TestLexicons:
    """Tests for keyword lookups."""

    def test_noise_words(self):
        assert is_noise_word("panel")
        assert is_noise_word(" CUT TO ")
        assert not is_noise_word("ELIAS")

    def test_non_character_sources(self):
        assert is_non_character_name("SIGN")
        assert is_non_character_name("NEWS ANCHOR ON TV")
        assert is_non_character_name("POLICE RADIO")
        assert not is_non_character_name("ELIAS")

    def test_non_character_block_type(self):
        assert non_character_block_type("SIREN") == "SFX"
        assert non_character_block_type("RADIO") == "CRAWLER"
        assert non_character_block_type("SIGN") == "CAPTION"

    def test_indicators(self):
        assert has_location_indicator("The old warehouse.")
        assert not has_location_indicator("The void")
        assert has_place_indicator("THE VOID")
        assert has_faction_keyword("ORDER OF THE FLAME")

    def test_canonical_month(self):
        assert canonical_month("oct") == "October"
        assert canonical_month("Dec.") == "December"
        assert canonical_month("October") == "October"
        assert canonical_month("Sept.") == "September"
        assert canonical_month("Later") is None

    def test_find_item_name(self):
        assert find_item_name("Elias draws the ancient sword.") == "ancient sword"
        assert find_item_name("She grabs a key.") == "key"
        assert find_item_name("He picks up his father's rusty dagger.") == "rusty dagger"
        assert find_item_name("She holds her breath for a long moment.") is None
        assert find_item_name("No verbs here.") is None
