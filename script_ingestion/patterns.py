"""
Per-dialect pattern tables for the deterministic scanner.

The scanner is one algorithm; each dialect only supplies data. Named groups
the scanner reads:

    number    page/panel numeral (arabic, roman or spelled-out)
    location  slugline location (screenplay/TV breaks)
    speaker   character cue
    paren     parenthetical after the cue, e.g. V.O.
    text      spoken/caption/sfx text

Adding a dialect means adding a FormatPatterns record to PATTERN_TABLE.
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional, Pattern

from .models import BlockType, ProjectType

# A pattern that can never match a line
NEVER = re.compile(r'(?!x)x')

_SLUG = r'^(?:INT|EXT|INT/EXT|I/E)\.\s+(?P<location>.+)'
_ACT_NUMERAL = r'ONE|TWO|THREE|FOUR|FIVE|SIX|SEVEN|EIGHT|NINE|TEN|I|II|III|IV|V|VI|VII|VIII|IX|X|\d+'
_CUE = r"(?P<speaker>[A-Z][A-Z\s'.\-]{1,30}?)\s*(?:\((?P<paren>[^)]*)\))?\s*$"
_TRANSITIONS = r'^(?:FADE (?:IN|OUT|TO)|CUT TO|DISSOLVE TO|SMASH CUT|MATCH CUT|CONTINUED|\(CONTINUED\))'


@dataclass(frozen=True)
class FormatPatterns:
    """Compiled matchers for one dialect."""
    project_type: ProjectType
    page_break: Pattern
    panel_break: Pattern
    dialogue: Pattern
    art_note: Pattern
    caption: Pattern
    sfx: Pattern
    thought: Pattern
    ignore: Pattern
    visual_marker: Optional[Pattern] = None
    caption_type: BlockType = BlockType.CAPTION
    # True when the cue sits on its own line and the speech follows
    cue_on_own_line: bool = False
    # True when page/panel breaks carry a slugline location
    slug_breaks: bool = False


COMIC_PATTERNS = FormatPatterns(
    project_type=ProjectType.COMIC,
    page_break=re.compile(rf'^PAGE\s+(?P<number>{_ACT_NUMERAL})\b', re.IGNORECASE),
    panel_break=re.compile(r'^Panel\s+(?P<number>\d+)', re.IGNORECASE),
    dialogue=re.compile(
        r"^(?P<speaker>[A-Z][A-Z\s'.\-]+?)(?:\s*\((?P<paren>[^)]*)\))?\s*:\s*(?P<text>.+)"
    ),
    art_note=re.compile(r'^\[.*\]$|^ARTIST\s*NOTE', re.IGNORECASE),
    caption=re.compile(r'^CAPTION\s*(?:\([^)]*\))?\s*:\s*(?P<text>.+)', re.IGNORECASE),
    sfx=re.compile(r'^SFX\s*:\s*(?P<text>.+)', re.IGNORECASE),
    thought=re.compile(
        r"^(?P<speaker>[A-Z][A-Z\s'.\-]+?)\s*\(thought(?:\s+caption)?\)\s*:\s*(?P<text>.+)",
        re.IGNORECASE,
    ),
    ignore=re.compile(_TRANSITIONS),
    visual_marker=re.compile(r'\[(ECHO|HITCH|OVERFLOW|SHATTERED|SPLIT)\]', re.IGNORECASE),
)

SCREENPLAY_PATTERNS = FormatPatterns(
    project_type=ProjectType.SCREENPLAY,
    page_break=re.compile(_SLUG),
    panel_break=NEVER,
    dialogue=re.compile(r'^' + _CUE),
    art_note=re.compile(r'^\[.*\]$'),
    caption=re.compile(r'^(?:SUPER|TITLE CARD|CAPTION)\s*:\s*(?P<text>.+)', re.IGNORECASE),
    sfx=re.compile(r'^SFX\s*:\s*(?P<text>.+)', re.IGNORECASE),
    thought=NEVER,
    ignore=re.compile(_TRANSITIONS),
    cue_on_own_line=True,
    slug_breaks=True,
)

STAGE_PLAY_PATTERNS = FormatPatterns(
    project_type=ProjectType.STAGE_PLAY,
    page_break=re.compile(rf'^ACT\s+(?P<number>{_ACT_NUMERAL})\b', re.IGNORECASE),
    panel_break=re.compile(rf'^SCENE\s+(?P<number>{_ACT_NUMERAL})\b', re.IGNORECASE),
    dialogue=re.compile(r"^(?P<speaker>[A-Z][A-Z\s'\-]+?)(?:\s*\((?P<paren>[^)]*)\))?\.\s+(?P<text>.+)"),
    art_note=re.compile(r'^\(.*\)$|^\[.*\]$'),
    caption=re.compile(r'^NARRATOR\s*:\s*(?P<text>.+)', re.IGNORECASE),
    sfx=re.compile(r'^SFX\s*:\s*(?P<text>.+)', re.IGNORECASE),
    thought=re.compile(r"^(?P<speaker>[A-Z][A-Z\s'\-]+?)\s*\(aside\)\s*[.:]\s*(?P<text>.+)", re.IGNORECASE),
    ignore=re.compile(_TRANSITIONS),
    caption_type=BlockType.NARRATOR,
)

TV_SERIES_PATTERNS = FormatPatterns(
    project_type=ProjectType.TV_SERIES,
    page_break=re.compile(rf'^(?:COLD OPEN|TEASER|TAG|ACT\s+(?:{_ACT_NUMERAL}))\b'),
    panel_break=re.compile(_SLUG),
    dialogue=re.compile(r'^' + _CUE),
    art_note=re.compile(r'^\[.*\]$'),
    caption=re.compile(r'^(?:SUPER|CHYRON|TITLE CARD)\s*:\s*(?P<text>.+)', re.IGNORECASE),
    sfx=re.compile(r'^SFX\s*:\s*(?P<text>.+)', re.IGNORECASE),
    thought=NEVER,
    ignore=re.compile(_TRANSITIONS),
    cue_on_own_line=True,
    slug_breaks=True,
)

PATTERN_TABLE: Dict[ProjectType, FormatPatterns] = {
    ProjectType.COMIC: COMIC_PATTERNS,
    ProjectType.SCREENPLAY: SCREENPLAY_PATTERNS,
    ProjectType.STAGE_PLAY: STAGE_PLAY_PATTERNS,
    ProjectType.TV_SERIES: TV_SERIES_PATTERNS,
}


def get_patterns(project_type: ProjectType) -> FormatPatterns:
    return PATTERN_TABLE.get(project_type, COMIC_PATTERNS)


# =============================================================================
# NUMERALS
# =============================================================================

_ROMAN = {'I': 1, 'V': 5, 'X': 10, 'L': 50, 'C': 100}
_ROMAN_NUMERAL = re.compile(r'^[IVXLC]+$')
_WORD_NUMERALS = {
    'ONE': 1, 'TWO': 2, 'THREE': 3, 'FOUR': 4, 'FIVE': 5,
    'SIX': 6, 'SEVEN': 7, 'EIGHT': 8, 'NINE': 9, 'TEN': 10,
}


def parse_numeral(value: Optional[str]) -> Optional[int]:
    """'12' -> 12, 'IV' -> 4, 'three' -> 3; anything else -> None."""
    if not value:
        return None
    token = value.strip().upper()
    if token.isdigit():
        return int(token)
    if token in _WORD_NUMERALS:
        return _WORD_NUMERALS[token]
    if _ROMAN_NUMERAL.match(token):
        total = 0
        for current, following in zip(token, token[1:] + ' '):
            number = _ROMAN[current]
            if following != ' ' and _ROMAN[following] > number:
                total -= number
            else:
                total += number
        return total or None
    return None
