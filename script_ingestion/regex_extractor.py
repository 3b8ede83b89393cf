"""
Regex-based Script Extractor
Fast, cost-free extraction using pattern matching instead of LLM calls.
Extracts: pages, panels, blocks, characters, lore candidates and timeline years.

A single-pass line scanner with explicit states:

    OUTSIDE_PAGE --page break--> IN_PAGE --panel break / content--> IN_PANEL

The dialect-specific matchers come from patterns.PATTERN_TABLE; the scan
logic is shared. Never raises for any input: problems become warnings.
"""

import logging
import re
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Set, Tuple, Union

from .format_detector import detect_format
from .lexicons import (
    MONTH_NAMES,
    canonical_month,
    find_item_name,
    has_faction_keyword,
    has_location_indicator,
    is_noise_word,
    is_non_character_name,
    non_character_block_type,
)
from .markdown_stripper import strip_markdown
from .models import (
    Block,
    BlockType,
    Character,
    LoreCategory,
    LoreEntry,
    Page,
    Panel,
    ParserSource,
    ProjectType,
    TimelineEvent,
    UnifiedParseResult,
)
from .patterns import FormatPatterns, get_patterns, parse_numeral
from .utils import compute_source_hash, normalize_name, normalize_speaker, to_title_case

logger = logging.getLogger(__name__)

# Confidence per heuristic
SLUG_LOCATION_CONFIDENCE = 0.8
LOCATION_INDICATOR_CONFIDENCE = 0.6
FACTION_CONFIDENCE = 0.7
ITEM_CONFIDENCE = 0.75
CAPTION_EVENT_CONFIDENCE = 0.85

LOCATION_LINE_MAX_CHARS = 60
QUOTE_MIN_CHARS = 20
MAX_NOTABLE_QUOTES = 2

NO_PAGES_WARNING = 'No pages detected. Check that script uses recognized page/scene headers.'
NO_CHARACTERS_WARNING = 'No characters detected. Check that dialogue follows NAME: text format.'


class ScanState(str, Enum):
    OUTSIDE_PAGE = "outside_page"
    IN_PAGE = "in_page"
    IN_PANEL = "in_panel"


@dataclass
class _CharacterTally:
    name: str
    order: int
    first_page: int
    count: int = 0
    pages: Set[int] = field(default_factory=set)
    quotes: List[str] = field(default_factory=list)


@dataclass
class _PendingCue:
    """A speaker cue on its own line waiting for its speech."""
    speaker: str
    is_character: bool
    parenthetical: Optional[str] = None
    block: Optional[Block] = None


@dataclass
class _ScanContext:
    """Mutable accumulation state for one parse. Never shared between calls."""
    patterns: FormatPatterns
    state: ScanState = ScanState.OUTSIDE_PAGE
    warnings: List[str] = field(default_factory=list)
    pages: List[Page] = field(default_factory=list)
    page_number: int = 0
    panels: List[Panel] = field(default_factory=list)
    panel_number: int = 0
    panel_marker: Optional[str] = None
    blocks: List[Block] = field(default_factory=list)
    pending: Optional[_PendingCue] = None
    characters: Dict[str, _CharacterTally] = field(default_factory=dict)
    lore: Dict[Tuple[str, LoreCategory], LoreEntry] = field(default_factory=dict)
    timeline: List[TimelineEvent] = field(default_factory=list)
    timeline_names: Set[str] = field(default_factory=set)

    @property
    def lore_page(self) -> List[int]:
        return [self.page_number] if self.page_number > 0 else []


class RegexExtractor:
    """
    Deterministic extractor for comic scripts, screenplays, stage plays and TV episodes.

    Key behaviours:
    1. Pre-compiled patterns; the dialect table is injected per parse
    2. Markdown is flattened first, one output line per input line
    3. Side extractors (locations, factions, items, years) run on every content line
    4. Duplicate page/panel numbers are renumbered with a warning
    """

    def __init__(self):
        self._compile_patterns()

    def _compile_patterns(self):
        """Pre-compile regex patterns for performance"""

        # === SIDE EXTRACTORS ===
        self.caps_phrase_re = re.compile(r"\b([A-Z][A-Z\s'.\-]{2,49})\b")
        self.year_re = re.compile(r'\b(2[01]\d{2})\b')
        months = '|'.join(MONTH_NAMES + tuple(name[:3] for name in MONTH_NAMES) + ('Sept',))
        self.month_year_re = re.compile(rf'\b({months})\.?\s+(\d{{4}})\b', re.IGNORECASE)

        # === CLEANUP ===
        self.slug_time_re = re.compile(
            r'\s*[-–—]+\s*(DAY|NIGHT|MORNING|EVENING|AFTERNOON|DAWN|DUSK|'
            r'CONTINUOUS|LATER|MOMENTS LATER|SAME TIME)\s*$',
            re.IGNORECASE,
        )
        self.trailing_punct_re = re.compile(r'[.\-:]+$')
        self.parenthetical_line_re = re.compile(r'^\(.*\)$')

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    def extract(
        self,
        script_text: str,
        project_type: Union[ProjectType, str, None] = None,
        source_hash: Optional[str] = None,
    ) -> UnifiedParseResult:
        """
        Run the deterministic pass over a raw script.

        Args:
            script_text: Raw script text (any dialect, Markdown allowed)
            project_type: Declared dialect; detected when omitted
            source_hash: Provenance key computed by the caller; computed here when omitted

        Returns:
            UnifiedParseResult tagged parser_source=deterministic
        """
        start = time.perf_counter()
        raw = script_text or ''
        if source_hash is None:
            source_hash = compute_source_hash(raw)

        effective_type = detect_format(raw, project_type)
        ctx = _ScanContext(patterns=get_patterns(effective_type))

        text = strip_markdown(raw.replace('\r\n', '\n').replace('\r', '\n'))
        for line in text.split('\n'):
            self._scan_line(ctx, line)
        self._flush_page(ctx)

        characters = self._build_characters(ctx)
        if not ctx.pages:
            ctx.warnings.append(NO_PAGES_WARNING)
        if not characters:
            ctx.warnings.append(NO_CHARACTERS_WARNING)
        ctx.warnings.extend(missing_speaker_warnings(ctx.pages))

        result = UnifiedParseResult(
            source_hash=source_hash,
            project_type=effective_type,
            warnings=ctx.warnings,
            pages=ctx.pages,
            characters=characters,
            lore=list(ctx.lore.values()),
            timeline=ctx.timeline,
            parser_source=ParserSource.DETERMINISTIC,
            parse_duration_ms=int((time.perf_counter() - start) * 1000),
        )
        logger.info(
            f"[DETERMINISTIC] {effective_type.value}: {len(result.pages)} pages, "
            f"{result.panel_count} panels, {len(characters)} characters, "
            f"{len(result.lore)} lore, {len(result.timeline)} timeline"
        )
        return result

    # =========================================================================
    # STATE MACHINE
    # =========================================================================

    def _scan_line(self, ctx: _ScanContext, line: str):
        patterns = ctx.patterns
        trimmed = line.strip()

        if not trimmed:
            ctx.pending = None
            return
        if patterns.ignore.match(trimmed):
            return

        page_match = patterns.page_break.match(trimmed)
        if page_match:
            self._start_page(ctx, page_match)
            return

        if ctx.state == ScanState.OUTSIDE_PAGE:
            return

        panel_match = patterns.panel_break.match(trimmed)
        if panel_match:
            self._start_panel(ctx, panel_match)
            return

        if ctx.state == ScanState.IN_PAGE:
            # Content before any panel marker opens panel 1
            ctx.panel_number = 1
            ctx.state = ScanState.IN_PANEL

        if patterns.visual_marker and ctx.panel_marker is None:
            marker = patterns.visual_marker.search(trimmed)
            if marker:
                ctx.panel_marker = marker.group(1).lower()

        block = self._classify(ctx, line, trimmed)
        if block is not None:
            ctx.blocks.append(block)
            content = block.text
            speech = block.type in (BlockType.DIALOGUE, BlockType.THOUGHT)
        else:
            content = trimmed
            speech = True
        self._scan_side_entities(ctx, content, speech)

    def _start_page(self, ctx: _ScanContext, match: re.Match):
        self._flush_page(ctx)
        used = {page.page_number for page in ctx.pages}
        number = parse_numeral(match.groupdict().get('number'))
        if number == 0:
            ctx.warnings.append(f'Page number 0 renumbered to {len(ctx.pages) + 1}.')
            number = None
        if number is None:
            number = len(ctx.pages) + 1
        if number in used:
            renumbered = max(used) + 1
            ctx.warnings.append(f'Duplicate page number {number} renumbered to {renumbered}.')
            number = renumbered

        ctx.page_number = number
        ctx.panel_number = 0
        ctx.state = ScanState.IN_PAGE
        ctx.pending = None

        if ctx.patterns.slug_breaks:
            self._add_slug_location(ctx, match)

    def _start_panel(self, ctx: _ScanContext, match: re.Match):
        self._flush_panel(ctx)
        used = {panel.panel_number for panel in ctx.panels}
        number = parse_numeral(match.groupdict().get('number'))
        if number == 0:
            ctx.warnings.append(
                f'Page {ctx.page_number}: panel number 0 renumbered to {len(ctx.panels) + 1}.'
            )
            number = None
        if number is None:
            number = len(ctx.panels) + 1
        if number in used:
            renumbered = max(used) + 1
            ctx.warnings.append(
                f'Page {ctx.page_number}: duplicate panel number {number} renumbered to {renumbered}.'
            )
            number = renumbered

        ctx.panel_number = number
        ctx.state = ScanState.IN_PANEL

        if ctx.patterns.slug_breaks:
            self._add_slug_location(ctx, match)

    def _flush_panel(self, ctx: _ScanContext):
        if ctx.panel_number > 0 and ctx.blocks:
            ctx.panels.append(Panel(
                panel_number=ctx.panel_number,
                blocks=ctx.blocks,
                visual_marker=ctx.panel_marker,
            ))
        ctx.blocks = []
        ctx.panel_marker = None
        ctx.pending = None

    def _flush_page(self, ctx: _ScanContext):
        self._flush_panel(ctx)
        if ctx.page_number > 0 and ctx.panels:
            ctx.pages.append(Page(page_number=ctx.page_number, panels=ctx.panels))
        ctx.panels = []

    # =========================================================================
    # CLASSIFICATION
    # =========================================================================

    def _classify(self, ctx: _ScanContext, line: str, trimmed: str) -> Optional[Block]:
        """
        Classify one content line. Precedence, first match wins:
        thought > caption > sfx > art note > dialogue > pending continuation > art note fallback.

        Returns None when the line only sets up a pending cue or extends
        the previous speech block.
        """
        patterns = ctx.patterns

        thought = patterns.thought.match(trimmed)
        if thought:
            speaker = normalize_speaker(thought.group('speaker'))
            if not is_noise_word(speaker) and len(speaker) >= 2:
                ctx.pending = None
                return self._speech_block(ctx, BlockType.THOUGHT, speaker, thought.group('text').strip())

        caption = patterns.caption.match(trimmed)
        if caption:
            ctx.pending = None
            text = caption.group('text').strip()
            self._scan_caption_date(ctx, text)
            return Block(type=patterns.caption_type, text=text)

        sfx = patterns.sfx.match(trimmed)
        if sfx:
            ctx.pending = None
            return Block(type=BlockType.SFX, text=sfx.group('text').strip())

        if patterns.art_note.match(trimmed):
            ctx.pending = None
            return Block(type=BlockType.ART_NOTE, text=trimmed.lstrip('[').rstrip(']').strip())

        dialogue = patterns.dialogue.match(trimmed)
        if dialogue:
            speaker = normalize_speaker(dialogue.group('speaker'))
            is_character = not is_non_character_name(speaker)
            if len(speaker) >= 2 and not (is_character and is_noise_word(speaker)):
                groups = dialogue.groupdict()
                text = (groups.get('text') or '').strip()
                paren = (groups.get('paren') or '').strip() or None
                if text:
                    ctx.pending = None
                    if is_character:
                        return self._speech_block(ctx, BlockType.DIALOGUE, speaker, text, paren)
                    return self._source_block(speaker, text)
                ctx.pending = _PendingCue(speaker=speaker, is_character=is_character, parenthetical=paren)
                return None

        pending = ctx.pending
        if pending and (patterns.cue_on_own_line or line[:1] in (' ', '\t')):
            if self.parenthetical_line_re.match(trimmed) and pending.block is None:
                pending.parenthetical = trimmed.strip('()').strip()
                return None
            if pending.block is not None:
                pending.block.text = f'{pending.block.text} {trimmed}'
                return None
            if pending.is_character:
                block = self._speech_block(ctx, BlockType.DIALOGUE, pending.speaker, trimmed, pending.parenthetical)
            else:
                block = self._source_block(pending.speaker, trimmed)
            pending.block = block
            return block

        ctx.pending = None
        return Block(type=BlockType.ART_NOTE, text=trimmed)

    def _speech_block(
        self,
        ctx: _ScanContext,
        block_type: BlockType,
        speaker: str,
        text: str,
        parenthetical: Optional[str] = None,
    ) -> Block:
        self._track_character(ctx, speaker, text if block_type == BlockType.DIALOGUE else None)
        meta = {'parenthetical': parenthetical} if parenthetical else None
        return Block(type=block_type, text=text, speaker=speaker, meta=meta)

    def _source_block(self, source: str, text: str) -> Block:
        """Line 'spoken' by a sign, broadcast, crowd or device."""
        return Block(type=BlockType(non_character_block_type(source)), text=text, meta={'source': source})

    def _track_character(self, ctx: _ScanContext, name: str, quote: Optional[str]):
        tally = ctx.characters.get(name)
        if tally is None:
            tally = _CharacterTally(name=name, order=len(ctx.characters), first_page=ctx.page_number or 1)
            ctx.characters[name] = tally
        tally.count += 1
        if ctx.page_number > 0:
            tally.pages.add(ctx.page_number)
        if quote and len(quote) >= QUOTE_MIN_CHARS and len(tally.quotes) < MAX_NOTABLE_QUOTES:
            tally.quotes.append(quote)

    # =========================================================================
    # SIDE EXTRACTORS
    # =========================================================================

    def _add_lore(self, ctx: _ScanContext, name: str, category: LoreCategory, confidence: float,
                  description: Optional[str] = None):
        key = (normalize_name(name), category)
        existing = ctx.lore.get(key)
        if existing is not None:
            if ctx.page_number > 0 and ctx.page_number not in existing.pages:
                existing.pages = sorted(existing.pages + [ctx.page_number])
            return
        ctx.lore[key] = LoreEntry(
            name=name,
            category=category,
            description=description or name,
            pages=ctx.lore_page,
            confidence=confidence,
        )

    def _add_timeline(self, ctx: _ScanContext, name: str, description: str,
                      year: Optional[int] = None, month: Optional[str] = None):
        if name in ctx.timeline_names:
            return
        ctx.timeline_names.add(name)
        ctx.timeline.append(TimelineEvent(
            name=name,
            description=description[:100],
            page=ctx.page_number,
            year=year,
            month=month,
        ))

    def _add_slug_location(self, ctx: _ScanContext, match: re.Match):
        location = match.groupdict().get('location')
        if not location:
            return
        name = self.slug_time_re.sub('', location).strip()
        if len(name) >= 3:
            self._add_lore(ctx, name, LoreCategory.LOCATION, SLUG_LOCATION_CONFIDENCE)

    def _scan_caption_date(self, ctx: _ScanContext, text: str):
        """CAPTION: "October 2025" -> timeline entry + event lore."""
        match = self.month_year_re.search(text)
        if not match:
            return
        month = canonical_month(match.group(1))
        if month is None:
            return
        year = int(match.group(2))
        name = f'{month} {year}'
        description = text.strip().strip('"“”').strip()
        self._add_timeline(ctx, name, description, year=year, month=month)
        self._add_lore(ctx, name, LoreCategory.EVENT, CAPTION_EVENT_CONFIDENCE, description=description)

    def _scan_side_entities(self, ctx: _ScanContext, text: str, speech: bool):
        # Locations: short descriptive lines naming a place
        if not speech and len(text) <= LOCATION_LINE_MAX_CHARS and has_location_indicator(text):
            name = self.trailing_punct_re.sub('', text).strip()
            if len(name) >= 3:
                self._add_lore(ctx, name, LoreCategory.LOCATION, LOCATION_INDICATOR_CONFIDENCE)

        # Factions: ALL-CAPS phrases containing an organisation keyword
        for match in self.caps_phrase_re.finditer(text):
            phrase = match.group(1).strip()
            if (3 <= len(phrase) <= 60 and not is_noise_word(phrase)
                    and not has_location_indicator(phrase) and has_faction_keyword(phrase)):
                self._add_lore(ctx, phrase, LoreCategory.FACTION, FACTION_CONFIDENCE)

        item = find_item_name(text)
        if item:
            self._add_lore(ctx, to_title_case(item), LoreCategory.ITEM, ITEM_CONFIDENCE)

        # Years: month-year captions already produced their own entry
        dated_years = {m.group(2) for m in self.month_year_re.finditer(text)}
        for match in self.year_re.finditer(text):
            if match.group(1) in dated_years:
                continue
            year = int(match.group(1))
            self._add_timeline(ctx, f'Year {year}', text, year=year)

    # =========================================================================
    # RESULT ASSEMBLY
    # =========================================================================

    def _build_characters(self, ctx: _ScanContext) -> List[Character]:
        tallies = sorted(ctx.characters.values(), key=lambda t: t.order)
        return [
            Character(
                name=tally.name,
                pages_present=sorted(tally.pages),
                first_appearance_page=tally.first_page,
                lines_count=tally.count,
                notable_quotes=tally.quotes,
            )
            for tally in tallies
            if not is_non_character_name(tally.name)
        ]


def missing_speaker_warnings(pages: List[Page]) -> List[str]:
    """One warning per DIALOGUE/THOUGHT block without a speaker."""
    warnings = []
    for page in pages:
        for panel in page.panels:
            for block in panel.blocks:
                if block.needs_speaker:
                    warnings.append(
                        f'Page {page.page_number}, panel {panel.panel_number}: '
                        f'{block.type.value} block has no speaker.'
                    )
    return warnings


def deterministic_parse(
    script_text: str,
    project_type: Union[ProjectType, str, None] = None,
) -> UnifiedParseResult:
    """Convenience wrapper: one-off deterministic parse."""
    return RegexExtractor().extract(script_text, project_type)
