"""Pytest configuration and fixtures."""

import asyncio
import json

import pytest

from script_ingestion.config import PipelineConfig


class FakeCompletionClient:
    """Stands in for the LLM: returns a canned response or raises."""

    def __init__(self, response=None, error=None, delay=0.0, model_name="fake-model"):
        self.response = response
        self.error = error
        self.delay = delay
        self.model_name = model_name
        self.calls = []

    async def complete(self, prompt, document):
        self.calls.append((prompt, document))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if isinstance(self.response, (dict, list)):
            return json.dumps(self.response)
        return self.response


@pytest.fixture
def offline_config():
    """Config with no API key so nothing reaches the network."""
    return PipelineConfig(openai_api_key=None, llm_timeout=5.0)


@pytest.fixture
def comic_script():
    return (
        "PAGE 1\n"
        "Panel 1\n"
        "Wide shot of the city at night. [ECHO]\n"
        "CAPTION: \"October 2025\"\n"
        "ELIAS: We have to get inside the warehouse before they do.\n"
        "MARA: Then stop talking and move.\n"
        "Panel 2\n"
        "SFX: KRAK\n"
        "ELIAS (thought): She never waits.\n"
        "\n"
        "PAGE 2\n"
        "Panel 1\n"
        "Elias draws the ancient sword.\n"
        "ELIAS: The ORDER OF THE FLAME sent us here for a reason.\n"
        "MARA: Fine.\n"
    )


@pytest.fixture
def screenplay_script():
    return (
        "FADE IN:\n"
        "\n"
        "INT. ELIAS'S APARTMENT - NIGHT\n"
        "\n"
        "Rain hammers the window.\n"
        "\n"
        "ELIAS\n"
        "(quietly)\n"
        "I know you're out there.\n"
        "\n"
        "MARA (V.O.)\n"
        "Then come find me.\n"
        "\n"
        "EXT. HARBOR - DAWN\n"
        "\n"
        "ELIAS\n"
        "Too late.\n"
    )


@pytest.fixture
def stage_script():
    return (
        "ACT ONE\n"
        "SCENE 1\n"
        "(A bare stage. A single chair.)\n"
        "HAMLET. To be, or not to be.\n"
        "OPHELIA. My lord?\n"
        "SCENE 2\n"
        "NARRATOR: Night falls over the castle.\n"
        "HAMLET. Words, words, words.\n"
    )


@pytest.fixture
def tv_script():
    return (
        "COLD OPEN\n"
        "\n"
        "INT. PRECINCT - DAY\n"
        "\n"
        "DETECTIVE REYES\n"
        "Where were you last night?\n"
        "\n"
        "ACT ONE\n"
        "\n"
        "EXT. DOCKS - NIGHT\n"
        "\n"
        "DETECTIVE REYES\n"
        "We're too late.\n"
    )


@pytest.fixture
def ai_response():
    """A well-formed comprehension answer for the comic fixture."""
    return {
        "pages": [
            {
                "page_number": 1,
                "panels": [
                    {
                        "panel_number": 1,
                        "blocks": [
                            {"type": "ART_NOTE", "text": "Wide shot of the city at night."},
                            {"type": "CAPTION", "text": "October 2025"},
                            {"type": "DIALOGUE", "speaker": "ELIAS",
                             "text": "We have to get inside the warehouse before they do."},
                            {"type": "DIALOGUE", "speaker": "MARA", "text": "Then stop talking and move."},
                        ],
                    },
                    {
                        "panel_number": 2,
                        "blocks": [
                            {"type": "SFX", "text": "KRAK"},
                            {"type": "THOUGHT", "speaker": "ELIAS", "text": "She never waits."},
                        ],
                    },
                ],
            },
            {
                "page_number": 2,
                "panels": [
                    {
                        "panel_number": 1,
                        "blocks": [
                            {"type": "ART_NOTE", "text": "Elias draws the ancient sword."},
                            {"type": "DIALOGUE", "speaker": "ELIAS",
                             "text": "The ORDER OF THE FLAME sent us here for a reason."},
                            {"type": "DIALOGUE", "speaker": "MARA", "text": "Fine."},
                        ],
                    },
                ],
            },
        ],
        "characters": [
            {"name": "ELIAS", "role": "Protagonist", "description": "A reluctant hero.",
             "pages_present": [1, 2], "first_appearance_page": 1, "lines_count": 3,
             "notable_quotes": ["We have to get inside the warehouse before they do."]},
            {"name": "MARA", "role": "Supporting", "description": "Impatient partner.",
             "pages_present": [1, 2], "first_appearance_page": 1, "lines_count": 2,
             "notable_quotes": []},
        ],
        "lore": [
            {"name": "Order of the Flame", "category": "faction", "description": "A secret order.",
             "pages": [2], "confidence": 0.9},
            {"name": "The Warehouse", "category": "location", "description": "Target site.",
             "pages": [1], "confidence": 0.8},
            {"name": "Ancient Sword", "category": "item", "description": "Elias's blade.",
             "pages": [2], "confidence": 0.85},
        ],
        "timeline": [
            {"name": "October 2025", "description": "Story opens.", "page": 1,
             "characters_involved": ["ELIAS", "MARA"], "year": 2025, "month": "October"},
        ],
    }


@pytest.fixture
def make_client():
    """Factory for FakeCompletionClient instances."""
    return FakeCompletionClient


@pytest.fixture
def fake_client(ai_response):
    return FakeCompletionClient(response=ai_response)
