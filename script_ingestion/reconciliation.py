"""
Reconciliation Engine
Merges the deterministic and comprehension passes into one UnifiedParseResult.

Strategy:
1. COMPREHENSION_PRIMARY: AI pages and entities win; the deterministic pass fills
   gaps (missed characters, missing lore categories, timeline, visual markers)
   and sanity-checks line counts. AI descriptions are never overwritten.
2. DETERMINISTIC_PRIMARY: the literal scan is ground truth; the AI pass only adds
   entities the scan missed, plus descriptions/roles/quotes the scan cannot see.

Shared rules: count divergence warnings, containment-based character identity,
lines_count correction, non-character filtering, category-scoped lore dedup,
lore diversity guard and name-keyed timeline append.
"""

import logging
from enum import Enum
from typing import Dict, List, Optional, Tuple

from .lexicons import is_non_character_name
from .models import (
    Character,
    LoreCategory,
    LoreEntry,
    Page,
    ParserSource,
    TimelineEvent,
    UnifiedParseResult,
)
from .patterns import get_patterns
from .utils import names_overlap, sorted_unique

logger = logging.getLogger(__name__)

COUNT_DIVERGENCE_LIMIT = 2
LINES_COUNT_TOLERANCE = 0.5
RICH_LORE_CATEGORIES = 2
MIN_LORE_DIVERSITY = 3


class MergePolicy(str, Enum):
    DETERMINISTIC_PRIMARY = "deterministic_primary"
    COMPREHENSION_PRIMARY = "comprehension_primary"


def _find_character(characters: List[Character], name: str) -> Optional[Character]:
    for character in characters:
        if names_overlap(character.name, name):
            return character
    return None


def _lore_collides(entries: List[LoreEntry], candidate: LoreEntry) -> bool:
    """Same category and name containment in either direction."""
    return any(
        entry.category == candidate.category and names_overlap(entry.name, candidate.name)
        for entry in entries
    )


def _categories(lore: List[LoreEntry]) -> List[LoreCategory]:
    seen: List[LoreCategory] = []
    for entry in lore:
        if entry.category not in seen:
            seen.append(entry.category)
    return seen


class ReconciliationEngine:
    """
    Merge two passes under a selectable policy.

    Inputs are never mutated; the merged result is built from deep copies.
    """

    def __init__(self, policy: MergePolicy = MergePolicy.COMPREHENSION_PRIMARY):
        self.policy = MergePolicy(policy)

    def merge(self, deterministic: UnifiedParseResult, comprehension: UnifiedParseResult) -> UnifiedParseResult:
        logger.info(f"[MERGE] Reconciling passes with policy {self.policy.value}")
        det = deterministic.model_copy(deep=True)
        ai = comprehension.model_copy(deep=True)

        if self.policy == MergePolicy.COMPREHENSION_PRIMARY:
            warnings = list(ai.warnings)
        else:
            warnings = list(det.warnings)

        self._check_counts(det, ai, warnings)

        if self.policy == MergePolicy.COMPREHENSION_PRIMARY:
            pages = self._fill_visual_markers(ai.pages, det)
            characters = self._merge_characters_comprehension_primary(det.characters, ai.characters, warnings)
            lore = self._merge_lore_comprehension_primary(det.lore, ai.lore, warnings)
            timeline = self._append_timeline(ai.timeline, det.timeline)
        else:
            pages = det.pages
            characters = self._merge_characters_deterministic_primary(det.characters, ai.characters, warnings)
            lore = self._merge_lore_deterministic_primary(det.lore, ai.lore, warnings)
            timeline = self._append_timeline(det.timeline, ai.timeline)

        characters = self._filter_non_characters(characters, warnings)
        self._check_diversity(lore, warnings)

        merged = UnifiedParseResult(
            source_hash=deterministic.source_hash,
            project_type=det.project_type,
            warnings=warnings,
            pages=pages,
            characters=characters,
            lore=lore,
            timeline=timeline,
            parser_source=ParserSource.AI_DETERMINISTIC,
            ai_model=ai.ai_model,
        )
        logger.info(
            f"[MERGE] Result: {len(merged.pages)} pages, {len(merged.characters)} characters, "
            f"{len(merged.lore)} lore ({len(merged.lore_categories)} categories), "
            f"{len(merged.timeline)} timeline"
        )
        return merged

    # =========================================================================
    # SHARED CHECKS
    # =========================================================================

    def _check_counts(self, det: UnifiedParseResult, ai: UnifiedParseResult, warnings: List[str]):
        if det.pages and ai.pages:
            if abs(len(ai.pages) - len(det.pages)) > COUNT_DIVERGENCE_LIMIT:
                warnings.append(
                    f'Page count mismatch: AI found {len(ai.pages)} pages, '
                    f'deterministic found {len(det.pages)}.'
                )
            if abs(ai.panel_count - det.panel_count) > COUNT_DIVERGENCE_LIMIT:
                warnings.append(
                    f'Panel count mismatch: AI found {ai.panel_count} panels, '
                    f'deterministic found {det.panel_count}.'
                )

    def _cross_check_character(self, target: Character, det_char: Character, ai_char: Character,
                               warnings: List[str]):
        """Literal line counting wins when the sources disagree by more than half."""
        det_count = det_char.lines_count
        if det_count > 0 and abs(ai_char.lines_count - det_count) > det_count * LINES_COUNT_TOLERANCE:
            warnings.append(
                f'lines_count corrected for {target.name}: AI said {ai_char.lines_count}, '
                f'deterministic found {det_count}.'
            )
            target.lines_count = det_count
        target.pages_present = sorted_unique(det_char.pages_present + ai_char.pages_present)
        target.first_appearance_page = min(det_char.first_appearance_page, ai_char.first_appearance_page)

    def _filter_non_characters(self, characters: List[Character], warnings: List[str]) -> List[Character]:
        kept = []
        for character in characters:
            if is_non_character_name(character.name):
                warnings.append(f'Filtered non-character: "{character.name}"')
                continue
            kept.append(character)
        return kept

    def _check_diversity(self, lore: List[LoreEntry], warnings: List[str]):
        categories = _categories(lore)
        if lore and len(categories) < MIN_LORE_DIVERSITY:
            names = ', '.join(c.value for c in categories)
            warnings.append(
                f'Low lore diversity: only {len(categories)} categories found ({names}). Expected 4+.'
            )

    def _append_timeline(self, primary: List[TimelineEvent], secondary: List[TimelineEvent]) -> List[TimelineEvent]:
        names = {event.name for event in primary}
        merged = list(primary)
        for event in secondary:
            if event.name not in names:
                names.add(event.name)
                merged.append(event)
        return merged

    # =========================================================================
    # COMPREHENSION PRIMARY
    # =========================================================================

    def _fill_visual_markers(self, ai_pages: List[Page], det: UnifiedParseResult) -> List[Page]:
        det_markers: Dict[Tuple[int, int], str] = {
            (page.page_number, panel.panel_number): panel.visual_marker
            for page in det.pages
            for panel in page.panels
            if panel.visual_marker
        }
        marker_re = get_patterns(det.project_type).visual_marker

        for page in ai_pages:
            for panel in page.panels:
                if panel.visual_marker:
                    continue
                marker = det_markers.get((page.page_number, panel.panel_number))
                if marker is None and marker_re is not None:
                    for block in panel.blocks:
                        match = marker_re.search(block.text)
                        if match:
                            marker = match.group(1).lower()
                            break
                panel.visual_marker = marker
        return ai_pages

    def _merge_characters_comprehension_primary(
        self, det_chars: List[Character], ai_chars: List[Character], warnings: List[str]
    ) -> List[Character]:
        merged = list(ai_chars)
        missed = []
        for det_char in det_chars:
            ai_char = _find_character(merged, det_char.name)
            if ai_char is None:
                missed.append(det_char)
                warnings.append(f'AI missed character: {det_char.name} (added by deterministic pass).')
                continue
            self._cross_check_character(ai_char, det_char, ai_char.model_copy(), warnings)
        return merged + missed

    def _merge_lore_comprehension_primary(
        self, det_lore: List[LoreEntry], ai_lore: List[LoreEntry], warnings: List[str]
    ) -> List[LoreEntry]:
        ai_categories = _categories(ai_lore)
        if len(ai_categories) >= RICH_LORE_CATEGORIES:
            if det_lore:
                warnings.append(
                    'AI found diverse lore; skipped deterministic lore enrichment to prevent dilution.'
                )
            return list(ai_lore)

        merged = list(ai_lore)
        for entry in det_lore:
            if entry.category in ai_categories or _lore_collides(merged, entry):
                continue
            merged.append(entry)
            warnings.append(
                f"AI missed lore category '{entry.category.value}': added {entry.name} from deterministic pass."
            )
        return merged

    # =========================================================================
    # DETERMINISTIC PRIMARY
    # =========================================================================

    def _merge_characters_deterministic_primary(
        self, det_chars: List[Character], ai_chars: List[Character], warnings: List[str]
    ) -> List[Character]:
        merged = list(det_chars)
        added = []
        for ai_char in ai_chars:
            det_char = _find_character(merged, ai_char.name)
            if det_char is None:
                if _find_character(added, ai_char.name) is None:
                    added.append(ai_char)
                    warnings.append(f'Deterministic pass missed character: {ai_char.name} (added from AI).')
                continue

            original = det_char.model_copy()
            self._cross_check_character(det_char, original, ai_char, warnings)
            det_char.lines_count = original.lines_count
            if not det_char.description and ai_char.description:
                det_char.description = ai_char.description
            if det_char.role is None and ai_char.role is not None:
                det_char.role = ai_char.role
            if not det_char.notable_quotes and ai_char.notable_quotes:
                det_char.notable_quotes = ai_char.notable_quotes[:2]
        return merged + added

    def _merge_lore_deterministic_primary(
        self, det_lore: List[LoreEntry], ai_lore: List[LoreEntry], warnings: List[str]
    ) -> List[LoreEntry]:
        merged = list(det_lore)
        added = 0
        for entry in ai_lore:
            if _lore_collides(merged, entry):
                continue
            merged.append(entry)
            added += 1
        if added:
            warnings.append(f'Added {added} lore entries from AI that the deterministic pass missed.')
        return merged
