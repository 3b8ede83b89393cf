"""Tests for the comprehension extractor and its validate-and-repair stage."""

import json

import pytest

from script_ingestion.ai_extractor import (
    ComprehensionExtractor,
    clamp_confidence,
    parse_json_response,
    validate_and_repair,
)
from script_ingestion.errors import ComprehensionParseError, EmptyPagesError, HardFailure
from script_ingestion.models import (
    BlockType,
    CharacterRole,
    LoreCategory,
    ParserSource,
    ProjectType,
)


def _repair(raw):
    return validate_and_repair(raw, ProjectType.COMIC, "hash", "fake-model")


def _page(number, panels):
    return {"page_number": number, "panels": panels}


def _panel(number, blocks):
    return {"panel_number": number, "blocks": blocks}


class TestParseJsonResponse:
    """Tests for raw response parsing."""

    def test_plain_json(self):
        assert parse_json_response('{"pages": []}') == {"pages": []}

    def test_fenced_json(self):
        assert parse_json_response('```json\n{"pages": [1]}\n```') == {"pages": [1]}
        assert parse_json_response('```\n{"a": 1}\n```') == {"a": 1}

    def test_trailing_commas_repaired(self):
        assert parse_json_response('{"pages": [1, 2,], "x": {"y": 1,},}') == {"pages": [1, 2], "x": {"y": 1}}

    def test_invalid_json_raises(self):
        with pytest.raises(ComprehensionParseError) as exc_info:
            parse_json_response("I'm sorry, I can't do that.")
        assert exc_info.value.raw_response == "I'm sorry, I can't do that."
        assert isinstance(exc_info.value, HardFailure)

    def test_non_object_raises(self):
        with pytest.raises(ComprehensionParseError):
            parse_json_response("[1, 2, 3]")

    def test_empty_response_raises(self):
        with pytest.raises(ComprehensionParseError):
            parse_json_response("")


class TestValidateAndRepair:
    """Tests for field-by-field repair of untyped JSON."""

    def test_empty_pages_is_fatal(self):
        with pytest.raises(EmptyPagesError):
            _repair({"pages": []})
        with pytest.raises(EmptyPagesError):
            _repair({"characters": []})
        with pytest.raises(EmptyPagesError):
            _repair({"pages": ["not a page"]})

    def test_empty_pages_message(self):
        with pytest.raises(EmptyPagesError, match="empty pages array"):
            _repair({"pages": "nope"})

    def test_unknown_block_type_mapped_to_other(self):
        result = _repair({"pages": [_page(1, [_panel(1, [{"type": "SPEECH", "text": "hi"}])])]})

        block = result.pages[0].panels[0].blocks[0]
        assert block.type == BlockType.OTHER
        assert 'Page 1 Panel 1: unknown block type "SPEECH" mapped to OTHER' in result.warnings

    def test_missing_speaker_warns(self):
        result = _repair({"pages": [_page(1, [_panel(2, [{"type": "DIALOGUE", "text": "hi"}])])]})

        assert result.pages[0].panels[0].blocks[0].speaker is None
        assert "Page 1 Panel 2: DIALOGUE block missing speaker." in result.warnings

    def test_duplicate_page_dropped(self):
        result = _repair({"pages": [
            _page(1, [_panel(1, [])]),
            _page(1, [_panel(1, [])]),
            _page(2, []),
        ]})

        assert [p.page_number for p in result.pages] == [1, 2]
        assert "Duplicate page_number 1 - skipping duplicate." in result.warnings

    def test_duplicate_panel_dropped(self):
        result = _repair({"pages": [_page(3, [_panel(1, []), _panel(1, []), _panel(2, [])])]})

        assert [p.panel_number for p in result.pages[0].panels] == [1, 2]
        assert "Page 3: duplicate panel_number 1 - skipping." in result.warnings

    def test_non_numeric_numbers_become_positional(self):
        result = _repair({"pages": [
            {"page_number": "one", "panels": [{"panel_number": None, "blocks": []}]},
            {"page_number": True, "panels": []},
        ]})

        assert [p.page_number for p in result.pages] == [1, 2]
        assert result.pages[0].panels[0].panel_number == 1

    def test_characters_repaired(self):
        result = _repair({
            "pages": [_page(1, [])],
            "characters": [
                {"name": "ELIAS", "role": "Hero", "lines_count": "many",
                 "pages_present": [2, 1, 2, "x"], "notable_quotes": ["a", "b", "c"]},
                {"name": 42},
                {"role": "Protagonist"},
                "not a character",
                {"name": "MARA", "role": "Antagonist", "first_appearance_page": 3},
            ],
        })

        assert [c.name for c in result.characters] == ["ELIAS", "MARA"]
        elias, mara = result.characters
        assert elias.role is None
        assert elias.lines_count == 0
        assert elias.pages_present == [1, 2]
        assert elias.notable_quotes == ["a", "b"]
        assert mara.role == CharacterRole.ANTAGONIST
        assert mara.first_appearance_page == 3

    def test_lore_repaired(self):
        result = _repair({
            "pages": [_page(1, [])],
            "lore": [
                {"name": "The Pact", "category": "treaty", "confidence": 1.7},
                {"name": "Order", "category": "faction", "confidence": "high"},
                {"category": "item"},
            ],
        })

        pact, order = result.lore
        assert pact.category == LoreCategory.CONCEPT
        assert pact.confidence == 1.0
        assert 'Lore "The Pact": invalid category "treaty" mapped to concept.' in result.warnings
        assert order.category == LoreCategory.FACTION
        assert order.confidence == 0.5

    def test_missing_entities_warn(self):
        result = _repair({"pages": [_page(1, [])]})

        assert any("no characters" in w for w in result.warnings)
        assert any("no lore" in w for w in result.warnings)

    def test_timeline_repaired(self):
        result = _repair({
            "pages": [_page(1, [])],
            "timeline": [
                {"name": "October 2025", "page": 1.0, "year": 2025, "month": "October"},
                {"description": "nameless"},
            ],
        })

        assert len(result.timeline) == 1
        assert result.timeline[0].page == 1
        assert result.timeline[0].year == 2025

    def test_tagged_as_ai(self, ai_response):
        result = _repair(ai_response)

        assert result.parser_source == ParserSource.AI
        assert result.ai_model == "fake-model"
        assert result.source_hash == "hash"
        assert result.warnings == []


class TestClampConfidence:
    """Tests for confidence clamping."""

    @pytest.mark.parametrize("value,expected", [
        (0.3, 0.3),
        (-1, 0.0),
        (5, 1.0),
        (None, 0.5),
        ("0.9", 0.5),
        (True, 0.5),
    ])
    def test_values(self, value, expected):
        assert clamp_confidence(value) == expected


class TestComprehensionExtractor:
    """Tests for the extractor against a fake client."""

    async def test_single_call(self, fake_client, comic_script):
        extractor = ComprehensionExtractor(fake_client)
        result = await extractor.extract(comic_script, source_hash="abc")

        assert len(fake_client.calls) == 1
        prompt, document = fake_client.calls[0]
        assert document == comic_script
        assert "COMIC" in prompt.upper()
        assert result.source_hash == "abc"
        assert result.project_type == ProjectType.COMIC
        assert [c.name for c in result.characters] == ["ELIAS", "MARA"]

    async def test_existing_characters_and_canon_locks_reach_prompt(self, fake_client, comic_script):
        extractor = ComprehensionExtractor(fake_client)
        await extractor.extract(comic_script, existing_characters=["OLD SAM"], canon_locks=["The Pact"])

        prompt = fake_client.calls[0][0]
        assert "OLD SAM" in prompt
        assert "The Pact" in prompt

    async def test_truncation_warning(self, fake_client, comic_script):
        extractor = ComprehensionExtractor(fake_client, max_script_chars=20)
        result = await extractor.extract(comic_script)

        assert len(fake_client.calls[0][1]) == 20
        assert result.warnings[0].startswith("Script truncated to 20 characters")

    async def test_fenced_response(self, make_client, ai_response, comic_script):
        client = make_client(response="```json\n" + json.dumps(ai_response) + "\n```")
        result = await ComprehensionExtractor(client).extract(comic_script)
        assert len(result.pages) == 2

    async def test_transport_error_propagates(self, make_client, comic_script):
        client = make_client(error=ConnectionError("boom"))
        with pytest.raises(ConnectionError):
            await ComprehensionExtractor(client).extract(comic_script)
