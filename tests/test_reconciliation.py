"""Tests for merging the deterministic and comprehension passes."""

import pytest

from script_ingestion.ai_extractor import validate_and_repair
from script_ingestion.models import (
    Block,
    BlockType,
    Character,
    CharacterRole,
    LoreCategory,
    LoreEntry,
    Page,
    Panel,
    ParserSource,
    ProjectType,
    TimelineEvent,
    UnifiedParseResult,
)
from script_ingestion.reconciliation import MergePolicy, ReconciliationEngine
from script_ingestion.regex_extractor import RegexExtractor
from script_ingestion.utils import names_overlap


def _pages(count=1, marker=None, text="Something happens."):
    return [
        Page(page_number=n, panels=[
            Panel(panel_number=1, visual_marker=marker, blocks=[Block(type=BlockType.ART_NOTE, text=text)]),
        ])
        for n in range(1, count + 1)
    ]


def _result(source, pages=None, characters=(), lore=(), timeline=(), warnings=()):
    return UnifiedParseResult(
        source_hash="det-hash" if source == ParserSource.DETERMINISTIC else "ai-hash",
        project_type=ProjectType.COMIC,
        parser_source=source,
        pages=pages if pages is not None else _pages(),
        characters=list(characters),
        lore=list(lore),
        timeline=list(timeline),
        warnings=list(warnings),
        ai_model="fake-model" if source == ParserSource.AI else None,
    )


def det(**kwargs):
    return _result(ParserSource.DETERMINISTIC, **kwargs)


def ai(**kwargs):
    return _result(ParserSource.AI, **kwargs)


def lore(name, category, description=""):
    return LoreEntry(name=name, category=category, description=description or name, pages=[1])


@pytest.fixture
def engine():
    return ReconciliationEngine()


class TestCharacterIdentity:
    """Tests for containment-based identity and line count checks."""

    def test_john_vs_john_doe(self, engine):
        merged = engine.merge(
            det(characters=[Character(name="JOHN", lines_count=3, pages_present=[1])]),
            ai(characters=[Character(name="JOHN DOE", lines_count=5, pages_present=[2],
                                     first_appearance_page=2)]),
        )

        assert len(merged.characters) == 1
        john = merged.characters[0]
        assert john.name == "JOHN DOE"
        assert john.lines_count == 3
        assert john.pages_present == [1, 2]
        assert john.first_appearance_page == 1
        assert "lines_count corrected for JOHN DOE: AI said 5, deterministic found 3." in merged.warnings

    def test_small_disagreement_keeps_ai_count(self, engine):
        merged = engine.merge(
            det(characters=[Character(name="MARA", lines_count=4)]),
            ai(characters=[Character(name="Mara", lines_count=5)]),
        )

        assert merged.characters[0].lines_count == 5
        assert not any("lines_count corrected" in w for w in merged.warnings)

    def test_missed_character_added(self, engine):
        merged = engine.merge(
            det(characters=[Character(name="ELIAS", lines_count=4), Character(name="GUARD", lines_count=1)]),
            ai(characters=[Character(name="ELIAS", lines_count=4, description="Hero")]),
        )

        assert [c.name for c in merged.characters] == ["ELIAS", "GUARD"]
        assert merged.characters[0].description == "Hero"
        assert "AI missed character: GUARD (added by deterministic pass)." in merged.warnings

    def test_non_characters_filtered(self, engine):
        merged = engine.merge(
            det(characters=[Character(name="ELIAS", lines_count=1)]),
            ai(characters=[Character(name="ELIAS", lines_count=1), Character(name="SIGN", lines_count=1)]),
        )

        assert [c.name for c in merged.characters] == ["ELIAS"]
        assert 'Filtered non-character: "SIGN"' in merged.warnings


class TestLoreMerge:
    """Tests for category-scoped lore merging."""

    def test_rich_ai_lore_suppresses_deterministic(self, engine):
        merged = engine.merge(
            det(lore=[lore("HARBOR", LoreCategory.LOCATION), lore("Year 2031", LoreCategory.EVENT)]),
            ai(lore=[lore("The Order", LoreCategory.FACTION), lore("The Harbor", LoreCategory.LOCATION),
                     lore("The Rift", LoreCategory.CONCEPT)]),
        )

        assert [e.name for e in merged.lore] == ["The Order", "The Harbor", "The Rift"]
        assert ("AI found diverse lore; skipped deterministic lore enrichment to prevent dilution."
                in merged.warnings)
        assert not any("Low lore diversity" in w for w in merged.warnings)

    def test_missing_categories_filled(self, engine):
        merged = engine.merge(
            det(lore=[lore("HARBOR", LoreCategory.LOCATION), lore("THE GUILD", LoreCategory.FACTION)]),
            ai(lore=[lore("The Order", LoreCategory.FACTION)]),
        )

        assert [e.name for e in merged.lore] == ["The Order", "HARBOR"]
        assert "AI missed lore category 'location': added HARBOR from deterministic pass." in merged.warnings
        assert ("Low lore diversity: only 2 categories found (faction, location). Expected 4+."
                in merged.warnings)

    def test_no_lore_no_diversity_warning(self, engine):
        merged = engine.merge(det(), ai())
        assert not any("Low lore diversity" in w for w in merged.warnings)


class TestStructureMerge:
    """Tests for pages, timeline and provenance."""

    def test_page_count_mismatch(self, engine):
        merged = engine.merge(det(pages=_pages(1)), ai(pages=_pages(5)))

        assert "Page count mismatch: AI found 5 pages, deterministic found 1." in merged.warnings
        assert "Panel count mismatch: AI found 5 panels, deterministic found 1." in merged.warnings
        assert len(merged.pages) == 5

    def test_small_count_difference_is_quiet(self, engine):
        merged = engine.merge(det(pages=_pages(2)), ai(pages=_pages(4)))
        assert not any("count mismatch" in w for w in merged.warnings)

    def test_visual_markers_filled_from_deterministic(self, engine):
        merged = engine.merge(det(pages=_pages(1, marker="echo")), ai(pages=_pages(1)))
        assert merged.pages[0].panels[0].visual_marker == "echo"

    def test_visual_markers_found_in_ai_block_text(self, engine):
        merged = engine.merge(det(pages=_pages(1)), ai(pages=_pages(1, text="The page tears. [SPLIT]")))
        assert merged.pages[0].panels[0].visual_marker == "split"

    def test_timeline_appended_by_name(self, engine):
        merged = engine.merge(
            det(timeline=[TimelineEvent(name="October 2025"), TimelineEvent(name="Year 2031", year=2031)]),
            ai(timeline=[TimelineEvent(name="October 2025", description="Story opens.")]),
        )

        assert [e.name for e in merged.timeline] == ["October 2025", "Year 2031"]
        assert merged.timeline[0].description == "Story opens."

    def test_provenance(self, engine):
        merged = engine.merge(det(), ai())

        assert merged.parser_source == ParserSource.AI_DETERMINISTIC
        assert merged.source_hash == "det-hash"
        assert merged.ai_model == "fake-model"

    def test_inputs_not_mutated(self, engine):
        deterministic = det(characters=[Character(name="JOHN", lines_count=3)], pages=_pages(1, marker="echo"))
        comprehension = ai(characters=[Character(name="JOHN DOE", lines_count=9)])
        before = (deterministic.canonical_json(), comprehension.canonical_json())

        engine.merge(deterministic, comprehension)

        assert (deterministic.canonical_json(), comprehension.canonical_json()) == before


class TestDeterministicPrimary:
    """Tests for the deterministic-primary policy."""

    @pytest.fixture
    def engine(self):
        return ReconciliationEngine(MergePolicy.DETERMINISTIC_PRIMARY)

    def test_deterministic_structure_wins(self, engine):
        merged = engine.merge(det(pages=_pages(1), warnings=["det warning"]), ai(pages=_pages(2)))

        assert len(merged.pages) == 1
        assert merged.warnings[0] == "det warning"

    def test_ai_fills_descriptions_and_roles(self, engine):
        merged = engine.merge(
            det(characters=[Character(name="JOHN", lines_count=3)]),
            ai(characters=[Character(name="JOHN DOE", lines_count=5, role=CharacterRole.PROTAGONIST,
                                     description="A detective.", notable_quotes=["Nobody move."])]),
        )

        john = merged.characters[0]
        assert john.name == "JOHN"
        assert john.lines_count == 3
        assert john.role == CharacterRole.PROTAGONIST
        assert john.description == "A detective."
        assert john.notable_quotes == ["Nobody move."]
        assert "lines_count corrected for JOHN: AI said 5, deterministic found 3." in merged.warnings

    def test_ai_only_entities_added(self, engine):
        merged = engine.merge(
            det(characters=[Character(name="ELIAS", lines_count=2)], lore=[lore("HARBOR", LoreCategory.LOCATION)]),
            ai(characters=[Character(name="ELIAS", lines_count=2), Character(name="MARA", lines_count=1)],
               lore=[lore("The Harbor", LoreCategory.LOCATION), lore("The Order", LoreCategory.FACTION)]),
        )

        assert [c.name for c in merged.characters] == ["ELIAS", "MARA"]
        assert "Deterministic pass missed character: MARA (added from AI)." in merged.warnings
        assert [e.name for e in merged.lore] == ["HARBOR", "The Order"]
        assert "Added 1 lore entries from AI that the deterministic pass missed." in merged.warnings


class TestMergeWithRealPasses:
    """Merge the real deterministic scan with a repaired AI answer."""

    @pytest.fixture
    def passes(self, comic_script, ai_response):
        deterministic = RegexExtractor().extract(comic_script)
        comprehension = validate_and_repair(
            ai_response, ProjectType.COMIC, deterministic.source_hash, "fake-model"
        )
        return deterministic, comprehension

    def test_comprehension_primary(self, passes):
        deterministic, comprehension = passes
        merged = ReconciliationEngine().merge(deterministic, comprehension)

        assert merged.warnings == [
            "AI found diverse lore; skipped deterministic lore enrichment to prevent dilution."
        ]
        assert merged.pages[0].panels[0].visual_marker == "echo"
        assert [c.name for c in merged.characters] == ["ELIAS", "MARA"]

    @pytest.mark.parametrize("policy", list(MergePolicy))
    def test_monotonic(self, passes, policy):
        """Every character either pass found survives the merge."""
        deterministic, comprehension = passes
        merged = ReconciliationEngine(policy).merge(deterministic, comprehension)

        for character in deterministic.characters + comprehension.characters:
            assert any(names_overlap(character.name, kept.name) for kept in merged.characters)
        if policy == MergePolicy.DETERMINISTIC_PRIMARY:
            assert set(deterministic.lore_categories) <= set(merged.lore_categories)
        assert set(comprehension.lore_categories) <= set(merged.lore_categories)
