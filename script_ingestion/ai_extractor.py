"""
Script Comprehension Extraction Service
One LLM call per script, then field-by-field validate-and-repair of the JSON answer.

The model is treated as an untrusted oracle: nothing in its response is
assumed well-typed. Repairs are recorded as warnings; the only fatal
conditions are an unparsable response and an empty pages array.
"""

import json
import logging
import re
import time
from typing import Any, Dict, Iterable, List, Optional, Union

from .errors import ComprehensionParseError, EmptyPagesError
from .format_detector import detect_format
from .llm_client import CompletionClient
from .models import (
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
    SPEAKER_REQUIRED_TYPES,
    TimelineEvent,
    UnifiedParseResult,
)
from .prompts import build_prompt
from .utils import compute_source_hash

logger = logging.getLogger(__name__)

_TRAILING_COMMA_OBJECT = re.compile(r',\s*}')
_TRAILING_COMMA_ARRAY = re.compile(r',\s*]')

VALID_BLOCK_TYPES = {t.value: t for t in BlockType}
VALID_LORE_CATEGORIES = {c.value: c for c in LoreCategory}
VALID_ROLES = {r.value: r for r in CharacterRole}
DEFAULT_CONFIDENCE = 0.5


# =============================================================================
# FIELD COERCION
# =============================================================================

def _as_int(value: Any) -> Optional[int]:
    """JSON number to int; bools, strings and fractional numbers are rejected."""
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return None


def _as_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _int_list(value: Any) -> List[int]:
    return [n for n in (_as_int(v) for v in _as_list(value)) if n is not None]


def _str_list(value: Any) -> List[str]:
    return [v for v in _as_list(value) if isinstance(v, str)]


def _as_dict(value: Any) -> Optional[Dict[str, Any]]:
    return value if isinstance(value, dict) else None


def clamp_confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE
    return max(0.0, min(1.0, float(value)))


# =============================================================================
# RESPONSE PARSING
# =============================================================================

def parse_json_response(response: str) -> Dict[str, Any]:
    """
    Parse the JSON object out of a raw model response.

    Strips ```json fences and retries once with trailing commas removed.
    Raises ComprehensionParseError when no JSON object can be recovered.
    """
    text = (response or '').strip()
    logger.debug(f"[AI] Raw response (first 500 chars): {text[:500]}")

    if text.startswith("```json"):
        text = text[7:]
    elif text.startswith("```"):
        text = text[3:]
    if text.endswith("```"):
        text = text[:-3]
    text = text.strip()

    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        repaired = _TRAILING_COMMA_ARRAY.sub(']', _TRAILING_COMMA_OBJECT.sub('}', text))
        try:
            parsed = json.loads(repaired)
        except json.JSONDecodeError as e:
            raise ComprehensionParseError(
                f"AI response is not valid JSON ({e.msg}). First 300 chars: {text[:300]}",
                raw_response=response,
            ) from e

    if not isinstance(parsed, dict):
        raise ComprehensionParseError(
            f"AI response is JSON but not an object (got {type(parsed).__name__})",
            raw_response=response,
        )
    return parsed


# =============================================================================
# VALIDATE AND REPAIR
# =============================================================================

def _repair_block(raw: Any, page_number: int, panel_number: int, warnings: List[str]) -> Block:
    raw = _as_dict(raw) or {}
    type_name = raw.get('type')
    block_type = VALID_BLOCK_TYPES.get(type_name) if isinstance(type_name, str) else None
    if block_type is None:
        warnings.append(
            f'Page {page_number} Panel {panel_number}: unknown block type "{type_name}" mapped to OTHER'
        )
        block_type = BlockType.OTHER

    speaker = _as_str(raw.get('speaker'))
    speaker = speaker.strip() if speaker and speaker.strip() else None
    if block_type in SPEAKER_REQUIRED_TYPES and speaker is None:
        warnings.append(f'Page {page_number} Panel {panel_number}: {block_type.value} block missing speaker.')

    return Block(
        type=block_type,
        text=_as_str(raw.get('text')) or '',
        speaker=speaker,
        meta=_as_dict(raw.get('meta')),
    )


def _repair_pages(raw_pages: List[Any], warnings: List[str]) -> List[Page]:
    pages: List[Page] = []
    seen_pages = set()

    for raw_page in raw_pages:
        raw_page = _as_dict(raw_page)
        if raw_page is None:
            warnings.append('Skipped page entry that is not an object.')
            continue
        page_number = _as_int(raw_page.get('page_number'))
        if page_number is None:
            page_number = len(pages) + 1
        if page_number in seen_pages:
            warnings.append(f'Duplicate page_number {page_number} - skipping duplicate.')
            continue
        seen_pages.add(page_number)

        panels: List[Panel] = []
        seen_panels = set()
        for raw_panel in _as_list(raw_page.get('panels')):
            raw_panel = _as_dict(raw_panel)
            if raw_panel is None:
                continue
            panel_number = _as_int(raw_panel.get('panel_number'))
            if panel_number is None:
                panel_number = len(panels) + 1
            if panel_number in seen_panels:
                warnings.append(f'Page {page_number}: duplicate panel_number {panel_number} - skipping.')
                continue
            seen_panels.add(panel_number)

            panels.append(Panel(
                panel_number=panel_number,
                blocks=[
                    _repair_block(raw_block, page_number, panel_number, warnings)
                    for raw_block in _as_list(raw_panel.get('blocks'))
                ],
                visual_marker=_as_str(raw_panel.get('visual_marker')),
                aspect_hint=_as_str(raw_panel.get('aspect_hint')),
            ))

        pages.append(Page(page_number=page_number, panels=panels))
    return pages


def _repair_characters(raw_characters: List[Any], warnings: List[str]) -> List[Character]:
    characters = []
    for raw in raw_characters:
        raw = _as_dict(raw) or {}
        name = _as_str(raw.get('name'))
        if not name or not name.strip():
            warnings.append('Dropped AI character without a name.')
            continue
        first_page = _as_int(raw.get('first_appearance_page'))
        lines_count = _as_int(raw.get('lines_count'))
        characters.append(Character(
            name=name.strip(),
            role=VALID_ROLES.get(raw.get('role')) if isinstance(raw.get('role'), str) else None,
            description=_as_str(raw.get('description')),
            pages_present=_int_list(raw.get('pages_present')),
            first_appearance_page=first_page if first_page is not None else 1,
            lines_count=max(lines_count, 0) if lines_count is not None else 0,
            notable_quotes=_str_list(raw.get('notable_quotes'))[:2],
        ))
    return characters


def _repair_lore(raw_lore: List[Any], warnings: List[str]) -> List[LoreEntry]:
    lore = []
    for raw in raw_lore:
        raw = _as_dict(raw) or {}
        name = _as_str(raw.get('name'))
        if not name or not name.strip():
            continue
        category_name = raw.get('category')
        category = VALID_LORE_CATEGORIES.get(category_name) if isinstance(category_name, str) else None
        if category is None:
            warnings.append(f'Lore "{name}": invalid category "{category_name}" mapped to concept.')
            category = LoreCategory.CONCEPT
        related = raw.get('related_characters')
        lore.append(LoreEntry(
            name=name.strip(),
            category=category,
            description=_as_str(raw.get('description')) or '',
            pages=_int_list(raw.get('pages')),
            confidence=clamp_confidence(raw.get('confidence')),
            related_characters=_str_list(related) if isinstance(related, list) else None,
            metadata=_as_dict(raw.get('metadata')),
        ))
    return lore


def _repair_timeline(raw_timeline: List[Any]) -> List[TimelineEvent]:
    timeline = []
    for raw in raw_timeline:
        raw = _as_dict(raw) or {}
        name = _as_str(raw.get('name'))
        if not name:
            continue
        page = _as_int(raw.get('page'))
        timeline.append(TimelineEvent(
            name=name,
            description=_as_str(raw.get('description')) or '',
            page=page if page is not None else 0,
            characters_involved=_str_list(raw.get('characters_involved')),
            year=_as_int(raw.get('year')),
            month=_as_str(raw.get('month')),
        ))
    return timeline


def validate_and_repair(
    raw: Dict[str, Any],
    project_type: ProjectType,
    source_hash: str,
    ai_model: Optional[str],
    warnings: Optional[List[str]] = None,
) -> UnifiedParseResult:
    """
    Turn an untyped model response into a UnifiedParseResult.

    Raises EmptyPagesError when no usable pages survive; every other
    problem is repaired and reported in warnings.
    """
    warnings = warnings if warnings is not None else []

    raw_pages = _as_list(raw.get('pages'))
    if not raw_pages:
        raise EmptyPagesError()
    pages = _repair_pages(raw_pages, warnings)
    if not pages:
        raise EmptyPagesError()

    characters = _repair_characters(_as_list(raw.get('characters')), warnings)
    if not characters:
        warnings.append('AI returned no characters - deterministic pass should fill these.')

    lore = _repair_lore(_as_list(raw.get('lore')), warnings)
    if not lore:
        warnings.append('AI returned no lore entries - deterministic pass should extract these.')

    return UnifiedParseResult(
        source_hash=source_hash,
        project_type=project_type,
        warnings=warnings,
        pages=pages,
        characters=characters,
        lore=lore,
        timeline=_repair_timeline(_as_list(raw.get('timeline'))),
        parser_source=ParserSource.AI,
        ai_model=ai_model,
    )


# =============================================================================
# EXTRACTOR
# =============================================================================

class ComprehensionExtractor:
    """
    LLM-backed extractor. Exactly one awaited completion call per parse.

    Transport errors from the client propagate unchanged; the orchestrator
    decides whether to degrade or re-raise.
    """

    def __init__(self, client: CompletionClient, max_script_chars: Optional[int] = None):
        self.client = client
        self.max_script_chars = max_script_chars

    @property
    def model_name(self) -> Optional[str]:
        return getattr(self.client, 'model_name', None)

    async def extract(
        self,
        script_text: str,
        project_type: Union[ProjectType, str, None] = None,
        source_hash: Optional[str] = None,
        existing_characters: Iterable[str] = (),
        canon_locks: Iterable[str] = (),
    ) -> UnifiedParseResult:
        start = time.time()
        raw_text = script_text or ''
        if source_hash is None:
            source_hash = compute_source_hash(raw_text)
        effective_type = detect_format(raw_text, project_type)
        warnings: List[str] = []

        document = raw_text
        if self.max_script_chars and len(document) > self.max_script_chars:
            warnings.append(
                f'Script truncated to {self.max_script_chars} characters for AI parsing '
                f'(original {len(document)}).'
            )
            document = document[:self.max_script_chars]

        prompt = build_prompt(effective_type, existing_characters, canon_locks)
        logger.info(f"[AI] Comprehension pass ({effective_type.value}, model={self.model_name})")

        response = await self.client.complete(prompt, document)
        parsed = parse_json_response(response)
        result = validate_and_repair(parsed, effective_type, source_hash, self.model_name, warnings)
        result.parse_duration_ms = int((time.time() - start) * 1000)

        logger.info(
            f"[AI] Parsed {len(result.pages)} pages, {len(result.characters)} characters, "
            f"{len(result.lore)} lore entries ({len(result.warnings)} warnings)"
        )
        return result
