"""
Timeline & Location Inference
Scans a raw script for places, dated events, speakers and items and turns them
into proposals against a read-only EntityRegistry.

Nothing here writes anywhere: every hit becomes a ProposedNewEntity,
ProposedEntityUpdate or ProposedTimelineEvent for an external commit step.
"""

import logging
import re
import time
from dataclasses import dataclass
from typing import Dict, List, Optional, Set, Tuple

from .lexicons import (
    canonical_month,
    find_item_name,
    has_place_indicator,
    is_noise_word,
    is_non_character_name,
)
from .markdown_stripper import strip_markdown
from .models import (
    CharacterRole,
    EntityRegistry,
    ParsedProposal,
    ProposalMeta,
    ProposedEntityType,
    ProposedEntityUpdate,
    ProposedNewEntity,
    ProposedTimelineEvent,
    TimelineAction,
)
from .utils import contains_name, new_temp_id, normalize_name, to_title_case, truncate

logger = logging.getLogger(__name__)

EMPTY_INPUT_WARNING = 'Empty or null input provided'

NEW_LOCATION_CONFIDENCE = 1.0
LOCATION_UPDATE_CONFIDENCE = 0.9
CHARACTER_CONFIDENCE = 0.9
ITEM_CONFIDENCE = 0.8
TIMELINE_CONFIDENCE = 1.0
MOVE_CONFIDENCE = 0.85

MIN_YEAR = 2000
MAX_YEAR = 2200
SNIPPET_CHARS = 100
BARE_YEAR_DESCRIPTION_CHARS = 50
LOCATION_NAME_MIN = 3
LOCATION_NAME_MAX = 50
MOVE_WINDOW_LINES = 3

REAL_WORLD_KEYWORDS = ('nyc', 'york', 'street', 'avenue', 'broadway', 'city')
DIMENSIONAL_KEYWORDS = ('dimension', 'realm', 'void', 'plane', 'space')
COMMAND_KEYWORDS = ('command', 'headquarters', 'hq', 'base', 'control')
PLACEHOLDER_CELLS = ('—', '–', '-')


@dataclass
class DetectedLocation:
    """A place mention; only the first occurrence per normalized name is kept."""
    name: str
    line_number: int
    context: str
    description: str
    time_of_day: Optional[str] = None


@dataclass
class DetectedTimelineEntry:
    year: int
    description: str
    line_number: int
    context: str
    month: Optional[str] = None


@dataclass
class DetectedName:
    name: str
    line_number: int
    context: str


def infer_location_tags(name: str) -> List[str]:
    lowered = name.lower()
    tags = []
    if any(keyword in lowered for keyword in REAL_WORLD_KEYWORDS):
        tags.append('real')
    if any(keyword in lowered for keyword in DIMENSIONAL_KEYWORDS):
        tags.append('dimensional')
    if any(re.search(rf'\b{keyword}\b', lowered) for keyword in COMMAND_KEYWORDS):
        tags.append('command_center')
    return tags


def infer_region(tags: List[str]) -> Optional[str]:
    if 'real' in tags:
        return 'Earth'
    if 'dimensional' in tags:
        return 'Abstract'
    return None


class TimelineLocationParser:
    """
    Deterministic proposal builder for locations, timeline entries, characters and items.

    Pipeline:
    1. Flatten markdown (line numbers are preserved)
    2. Scan for locations, timeline entries, speakers and items
    3. Match each location against the registry (update) or propose it (new)
    4. Infer character moves from a small window around each location mention
    5. Prepend summary warnings
    """

    def __init__(self):
        self._compile_patterns()

    def _compile_patterns(self):
        """Pre-compile regex patterns for performance"""

        # === LOCATIONS ===
        self.slug_re = re.compile(
            r'^(INT\./EXT\.|I/E\.|INT\.|EXT\.)\s+([^-–—]+?)(?:\s+[-–—]\s+(.*))?$', re.IGNORECASE
        )
        self.establishing_res = [
            re.compile(r'(?:wide\s+)?establishing\s+shot[:\s]+(.+)', re.IGNORECASE),
            re.compile(r'wide\s+shot\s+of\s+(.+)', re.IGNORECASE),
            re.compile(r'aerial\s+shot\s*[—–-]\s*(.+)', re.IGNORECASE),
            re.compile(r'exterior\s+establishing[:\s]+(.+)', re.IGNORECASE),
        ]
        self.interior_exterior_re = re.compile(
            r'(?:Panel\s+\d+\s+)?\b(Interior|Exterior)[.\s]+([^.]+?)(?:\.|$)'
        )
        self.named_location_res = [
            re.compile(r"\b(?:at|in|inside|near|outside)\s+the\s+([A-Z][A-Za-z\s'-]+?)(?:\.|,|$)"),
            re.compile(r"\bthe\s+([A-Z][A-Za-z\s'-]+?)\s+(?:building|theater|theatre|center|centre)\b",
                       re.IGNORECASE),
        ]
        self.caps_phrase_re = re.compile(r"\b[A-Z][A-Z\s'.,-]{2,}\b")
        self.trailing_punct_re = re.compile(r"[\s.,'-]+$")

        # === TIMELINE ===
        self.table_header_re = re.compile(r'TIMELINE\s+OVERVIEW', re.IGNORECASE)
        self.table_column_header_re = re.compile(r'^Year\b', re.IGNORECASE)
        self.table_row_re = re.compile(r'^(\d{4})\s+(.+)')
        self.table_placeholder_re = re.compile(r'(?:\s+[—–-])+\s*$')
        self.caption_res = [
            # CAPTION: "October 2025 — The city sleeps"
            re.compile(r'CAPTION:\s*"([A-Za-z]+)\s+(\d{4})\s*[—–-]\s*([^"]+)"', re.IGNORECASE),
            # CAPTION: "October 2025"
            re.compile(r'CAPTION:\s*"([A-Za-z]+)\s+(\d{4})"', re.IGNORECASE),
            # CAPTION: October 2025 — The city sleeps
            re.compile(r'CAPTION:\s*([A-Za-z]+)\s+(\d{4})\s*[—–-]\s*(.+)', re.IGNORECASE),
            # CAPTION: October 2025
            re.compile(r'CAPTION:\s*([A-Za-z]+)\s+(\d{4})\b', re.IGNORECASE),
            # CAPTION: 2025 — The city sleeps
            re.compile(r'CAPTION:\s*"?(\d{4})\s*[—–-]\s*([^"]+)"?', re.IGNORECASE),
            # CAPTION: 2025
            re.compile(r'CAPTION:\s*"?(\d{4})"?\s*$', re.IGNORECASE),
        ]
        self.setting_re = re.compile(r'Setting:\s*([A-Za-z]+)\s+(\d{4})', re.IGNORECASE)
        self.issue_header_re = re.compile(
            r'^(?:#{1,6}\s+)?Issue\s+#?[\d–-]+:\s*"[^"]*"\s*\|\s*(?:([A-Za-z]+)\s+)?(\d{4})'
            r'(?:\s*[–-]\s*(?:[A-Za-z]+\s+)?(\d{4}))?',
            re.IGNORECASE,
        )
        self.bare_year_res = [
            re.compile(r'\b(?:in|by|year)\s+(\d{4})\b', re.IGNORECASE),
            re.compile(r'\b(\d{4})\s*[—–-]\s*[A-Za-z]'),
        ]

        # === SPEAKERS ===
        self.standalone_speaker_re = re.compile(r"^([A-Z][A-Z\s'.,-]{2,29})(?:\s*\([^)]*\))?$")
        self.heading_re = re.compile(
            r'^(PAGE|PANEL|ACT|SCENE|COLD OPEN|TEASER|TAG|END|FADE|CUT|DISSOLVE|SMASH|MATCH|'
            r'INT|EXT|TIMELINE|ISSUE|CHAPTER|PART|EPISODE)\b'
        )
        self.inline_speaker_re = re.compile(r"^([A-Z][A-Z\s'.,-]{1,29})(?:\s*\([^)]*\))?\s*:\s*.+")

    # =========================================================================
    # ENTRY POINT
    # =========================================================================

    def parse(self, script_text: Optional[str], registry: Optional[EntityRegistry] = None) -> ParsedProposal:
        """
        Build proposals for one script.

        Args:
            script_text: Raw script (markdown allowed)
            registry: Committed entities to match against; empty if omitted

        Returns:
            ParsedProposal; never raises on malformed text
        """
        start = time.time()
        raw = script_text or ''
        if not raw.strip():
            logger.warning(f"[TIMELINE] {EMPTY_INPUT_WARNING}")
            return ParsedProposal(meta=ProposalMeta(
                raw_script_length=len(raw),
                line_count=0,
                warnings=[EMPTY_INPUT_WARNING],
            ))

        registry = registry or EntityRegistry()
        lines = strip_markdown(raw).split('\n')
        proposal = ParsedProposal()
        warnings: List[str] = []

        locations = self._scan_locations(lines)
        timeline = self._scan_timeline(lines)
        speakers = self._scan_speakers(lines)
        items = self._scan_items(lines)
        logger.info(
            f"[TIMELINE] Found {len(locations)} locations, {len(timeline)} timeline entries, "
            f"{len(speakers)} speakers, {len(items)} items"
        )

        self._propose_locations(locations, registry, proposal, warnings)
        self._propose_timeline(timeline, proposal)
        self._propose_characters(speakers, registry, proposal)
        self._propose_items(items, proposal)
        moves = self._propose_moves(locations, lines, registry, proposal)

        summary = self._summarize(proposal, timeline, moves, registry)
        proposal.meta = ProposalMeta(
            raw_script_length=len(raw),
            line_count=len(lines),
            parse_duration_ms=int((time.time() - start) * 1000),
            llm_was_used=False,
            warnings=summary + warnings,
        )
        logger.info(
            f"[TIMELINE] Proposed {len(proposal.new_entities)} new entities, "
            f"{len(proposal.updated_entities)} updates, {len(proposal.new_timeline_events)} timeline events"
        )
        return proposal

    # =========================================================================
    # LOCATION SCAN
    # =========================================================================

    def _scan_locations(self, lines: List[str]) -> List[DetectedLocation]:
        found: Dict[str, DetectedLocation] = {}

        def add(name: str, line_number: int, line: str, description: str, time_of_day: Optional[str] = None):
            name = self.trailing_punct_re.sub('', name.strip())
            key = normalize_name(name, strip_articles=True)
            if not key or key in found:
                return
            found[key] = DetectedLocation(name, line_number, truncate(line, SNIPPET_CHARS), description, time_of_day)

        for index, raw_line in enumerate(lines):
            line = raw_line.strip()
            if not line:
                continue
            line_number = index + 1

            slug = self.slug_re.match(line)
            if slug:
                prefix = slug.group(1).upper()
                time_of_day = (slug.group(3) or '').strip() or None
                description = f'{prefix} {time_of_day}' if time_of_day else prefix
                add(slug.group(2), line_number, line, description, time_of_day)
                continue

            establishing = self._match_establishing(line)
            if establishing:
                add(establishing, line_number, line, f'Establishing shot: {establishing}')
                continue

            interior = self.interior_exterior_re.search(line)
            if interior:
                name = interior.group(2).strip()
                if LOCATION_NAME_MIN <= len(name) <= LOCATION_NAME_MAX:
                    add(name, line_number, line, f'{interior.group(1).title()} location')
                continue

            for pattern in self.named_location_res:
                for match in pattern.finditer(line):
                    name = match.group(1).strip()
                    if LOCATION_NAME_MIN <= len(name) <= LOCATION_NAME_MAX:
                        add(name, line_number, line, f'Location mentioned: {name}')

            for match in self.caps_phrase_re.finditer(line):
                phrase = self.trailing_punct_re.sub('', match.group(0).strip())
                if (LOCATION_NAME_MIN <= len(phrase) <= LOCATION_NAME_MAX
                        and has_place_indicator(phrase) and not is_noise_word(phrase)):
                    add(phrase, line_number, line, f'Location from caps: {phrase}')

        return list(found.values())

    def _match_establishing(self, line: str) -> Optional[str]:
        for pattern in self.establishing_res:
            match = pattern.search(line)
            if match:
                return match.group(1).strip().rstrip('.') or None
        return None

    # =========================================================================
    # TIMELINE SCAN
    # =========================================================================

    def _scan_timeline(self, lines: List[str]) -> List[DetectedTimelineEntry]:
        entries: List[DetectedTimelineEntry] = []
        seen: Set[Tuple[int, Optional[str], str]] = set()
        in_table = False

        def add(year: int, description: str, line_number: int, line: str, month: Optional[str] = None) -> bool:
            if not MIN_YEAR <= year <= MAX_YEAR:
                return False
            key = (year, month, description)
            if key not in seen:
                seen.add(key)
                entries.append(DetectedTimelineEntry(
                    year, description.strip(), line_number, truncate(line, SNIPPET_CHARS), month
                ))
            return True

        for index, raw_line in enumerate(lines):
            line = raw_line.strip()
            line_number = index + 1
            if not line:
                continue

            if self.table_header_re.search(line):
                in_table = True
                continue
            if in_table:
                row = self.table_row_re.match(line)
                if row:
                    description = self.table_placeholder_re.sub('', row.group(2)).strip()
                    if description and description not in PLACEHOLDER_CELLS:
                        add(int(row.group(1)), description, line_number, line)
                    continue
                if line.startswith('|') or self.table_column_header_re.match(line):
                    continue
                in_table = False

            if self._scan_caption_date(line, line_number, add):
                continue

            setting = self.setting_re.search(line)
            if setting:
                month = canonical_month(setting.group(1))
                if month:
                    year = int(setting.group(2))
                    if add(year, f'{month} {year} (from Setting header)', line_number, line, month):
                        continue

            issue = self.issue_header_re.match(line)
            if issue:
                month = canonical_month(issue.group(1)) if issue.group(1) else None
                start_year = int(issue.group(2))
                end_year = int(issue.group(3)) if issue.group(3) else None
                epoch = f'{start_year}–{end_year}' if end_year and end_year != start_year else str(start_year)
                add(start_year, f'Issue epoch: {epoch}', line_number, line, month)
                if end_year and end_year != start_year:
                    add(end_year, f'Issue epoch: {epoch} (end)', line_number, line)
                continue

            for pattern in self.bare_year_res:
                for match in pattern.finditer(line):
                    add(int(match.group(1)), line[:BARE_YEAR_DESCRIPTION_CHARS], line_number, line)

        return entries

    def _scan_caption_date(self, line: str, line_number: int, add) -> bool:
        """Try each CAPTION date shape in order; True once one produced an entry."""
        for pattern in self.caption_res:
            match = pattern.search(line)
            if not match:
                continue
            groups = match.groups()
            if groups[0].isdigit():
                year = int(groups[0])
                description = groups[1].strip() if len(groups) > 1 else f'Year {year}'
                if add(year, description, line_number, line):
                    return True
                continue
            month = canonical_month(groups[0])
            if month is None:
                continue
            year = int(groups[1])
            description = groups[2].strip() if len(groups) > 2 else f'{month} {year}'
            if add(year, description, line_number, line, month):
                return True
        return False

    # =========================================================================
    # CHARACTER / ITEM SCAN
    # =========================================================================

    def _scan_speakers(self, lines: List[str]) -> List[DetectedName]:
        speakers: Dict[str, DetectedName] = {}
        for index, raw_line in enumerate(lines):
            line = raw_line.strip()
            if not line or self.slug_re.match(line) or self.heading_re.match(line):
                continue
            match = self.standalone_speaker_re.match(line) or self.inline_speaker_re.match(line)
            if not match:
                continue
            name = match.group(1).strip().rstrip('.,')
            if (len(name) < 2 or is_noise_word(name) or has_place_indicator(name)
                    or is_non_character_name(name)):
                continue
            key = normalize_name(name)
            if key not in speakers:
                speakers[key] = DetectedName(name, index + 1, truncate(line, SNIPPET_CHARS))
        return list(speakers.values())

    def _scan_items(self, lines: List[str]) -> List[DetectedName]:
        items: Dict[str, DetectedName] = {}
        for index, raw_line in enumerate(lines):
            line = raw_line.strip()
            item = find_item_name(line) if line else None
            if item and normalize_name(item) not in items:
                items[normalize_name(item)] = DetectedName(item, index + 1, truncate(line, SNIPPET_CHARS))
        return list(items.values())

    # =========================================================================
    # PROPOSALS
    # =========================================================================

    def _propose_locations(self, locations: List[DetectedLocation], registry: EntityRegistry,
                           proposal: ParsedProposal, warnings: List[str]):
        for location in locations:
            existing = registry.find_location(location.name)
            if existing is None:
                tags = infer_location_tags(location.name)
                proposal.new_entities.append(ProposedNewEntity(
                    temp_id=new_temp_id(),
                    entity_type=ProposedEntityType.LOCATION,
                    name=to_title_case(location.name),
                    confidence=NEW_LOCATION_CONFIDENCE,
                    context_snippet=location.context,
                    line_number=location.line_number,
                    suggested_description=location.description,
                    suggested_region=infer_region(tags),
                    suggested_time_of_day=location.time_of_day,
                    suggested_tags=tags or None,
                ))
                continue

            if normalize_name(existing.name, strip_articles=True) != normalize_name(location.name, strip_articles=True):
                warnings.append(f"'{location.name}' may be the same as existing '{existing.name}'")

            current = existing.description or ''
            if not location.description or location.description in current.split('; '):
                continue
            enriched = f'{current}; {location.description}' if current else location.description
            proposal.updated_entities.append(ProposedEntityUpdate(
                entity_id=existing.id,
                entity_type=ProposedEntityType.LOCATION,
                entity_name=existing.name,
                confidence=LOCATION_UPDATE_CONFIDENCE,
                context_snippet=location.context,
                line_number=location.line_number,
                change_description=f'Enrich description with: {location.description}',
                updates={'description': enriched},
            ))

    def _propose_timeline(self, timeline: List[DetectedTimelineEntry], proposal: ParsedProposal):
        for entry in timeline:
            label = f'{entry.month} {entry.year}' if entry.month else str(entry.year)
            proposal.new_timeline_events.append(ProposedTimelineEvent(
                temp_id=new_temp_id(),
                confidence=TIMELINE_CONFIDENCE,
                context_snippet=entry.context,
                line_number=entry.line_number,
                entity_type=ProposedEntityType.EVENT,
                entity_name=entry.description,
                action=TimelineAction.CREATED,
                payload={'year': entry.year, 'month': entry.month, 'description': entry.description},
                description=f'{label}: {entry.description}',
            ))

    def _propose_characters(self, speakers: List[DetectedName], registry: EntityRegistry,
                            proposal: ParsedProposal):
        known = {normalize_name(name) for name in registry.character_names}
        for speaker in speakers:
            if normalize_name(speaker.name) in known:
                continue
            proposal.new_entities.append(ProposedNewEntity(
                temp_id=new_temp_id(),
                entity_type=ProposedEntityType.CHARACTER,
                name=to_title_case(speaker.name),
                confidence=CHARACTER_CONFIDENCE,
                context_snippet=speaker.context,
                line_number=speaker.line_number,
                suggested_role=CharacterRole.SUPPORTING,
                suggested_description=f'Character introduced at line {speaker.line_number}',
            ))

    def _propose_items(self, items: List[DetectedName], proposal: ParsedProposal):
        for item in items:
            proposal.new_entities.append(ProposedNewEntity(
                temp_id=new_temp_id(),
                entity_type=ProposedEntityType.ITEM,
                name=to_title_case(item.name),
                confidence=ITEM_CONFIDENCE,
                context_snippet=item.context,
                line_number=item.line_number,
                suggested_item_description=f'Item detected in action at line {item.line_number}',
            ))

    def _propose_moves(self, locations: List[DetectedLocation], lines: List[str],
                       registry: EntityRegistry, proposal: ParsedProposal) -> int:
        """Known characters near a registry location they are not currently at."""
        moves = 0
        proposed: Set[Tuple[str, str]] = set()
        for location in locations:
            existing = registry.find_location(location.name)
            if existing is None:
                continue
            index = location.line_number - 1
            window = ' '.join(lines[max(0, index - MOVE_WINDOW_LINES):index + MOVE_WINDOW_LINES + 1])
            for character in registry.characters:
                if character.current_location_id == existing.id:
                    continue
                if (character.id, existing.id) in proposed or not contains_name(window, character.name):
                    continue
                proposed.add((character.id, existing.id))
                proposal.updated_entities.append(ProposedEntityUpdate(
                    entity_id=character.id,
                    entity_type=ProposedEntityType.CHARACTER,
                    entity_name=character.name,
                    confidence=MOVE_CONFIDENCE,
                    context_snippet=location.context,
                    line_number=location.line_number,
                    change_description=f'Move to {existing.name}',
                    updates={'currentLocationId': existing.id},
                ))
                moves += 1
        return moves

    def _summarize(self, proposal: ParsedProposal, timeline: List[DetectedTimelineEntry],
                   moves: int, registry: EntityRegistry) -> List[str]:
        locations = proposal.entities_of(ProposedEntityType.LOCATION)
        characters = proposal.entities_of(ProposedEntityType.CHARACTER)
        items = proposal.entities_of(ProposedEntityType.ITEM)
        summary = [
            f'Detected {len(locations)} new locations, {len(characters)} new characters, '
            f'{len(items)} new items, {len(timeline)} timeline entries.'
        ]
        if locations:
            summary.append(f'New location: {locations[0].name} (line {locations[0].line_number})')
        if characters:
            summary.append(f'New character: {characters[0].name} (line {characters[0].line_number})')
        if timeline:
            years = [entry.year for entry in timeline]
            summary.append(f'Timeline +{len(timeline)} entries from {min(years)}–{max(years)}')
        if moves:
            first = next(u for u in proposal.updated_entities if 'currentLocationId' in u.updates)
            target = registry.get_location(first.updates['currentLocationId'])
            summary.append(f'{first.entity_name} moves to {target.name if target else "unknown"}')
        return summary
