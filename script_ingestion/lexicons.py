"""
Keyword lexicons shared by the deterministic extractors.

NOISE_WORDS: genre jargon that looks like an ALL-CAPS speaker but never is one.
NON_CHARACTER_WORDS: sources that "speak" without being characters (signs,
broadcasts, crowds, devices).
"""

import re
from typing import Optional

NOISE_WORDS = frozenset([
    'PANEL', 'PAGE', 'SCENE', 'INT', 'EXT', 'CUT', 'FADE', 'DISSOLVE',
    'SMASH', 'MATCH', 'CONTINUED', 'CONT', 'ANGLE', 'CLOSE', 'WIDE',
    'PAN', 'ZOOM', 'SFX', 'VO', 'OS', 'OC', 'POV', 'INSERT', 'SUPER',
    'TITLE', 'THE', 'AND', 'BUT', 'FOR', 'NOT', 'WITH', 'FROM',
    'ACT', 'END', 'DAY', 'NIGHT', 'MORNING', 'EVENING', 'LATER',
    'CONTINUOUS', 'INTERCUT', 'FLASHBACK', 'MONTAGE', 'BEGIN',
    'RESUME', 'BACK', 'SAME', 'TIME', 'CAPTION', 'SETTING', 'SHOT',
    'ESTABLISHING', 'EXTERIOR', 'INTERIOR', 'TO', 'IN', 'ON', 'AT',
    'OF', 'A', 'AN', 'IS', 'ARE', 'WAS', 'WERE', 'BE', 'BEEN',
    'NARRATION', 'NARRATOR', 'DESCRIPTION', 'NOTE', 'ACTION',
    'ARTIST NOTE', 'FADE IN', 'FADE OUT', 'CUT TO', 'THE END',
])

NON_CHARACTER_WORDS = frozenset([
    'SIGN', 'BANNER', 'PLACARD', 'GRAFFITI', 'TEXT', 'SCREEN', 'DISPLAY',
    'RADIO', 'TV', 'TELEVISION', 'NEWS', 'BROADCAST', 'INTERCOM', 'PA',
    'SPEAKER', 'PHONE', 'RECORDING', 'VOICEMAIL', 'ANSWERING',
    'NEWSPAPER', 'LETTER', 'DOCUMENT', 'NOTE', 'POSTER', 'BILLBOARD', 'MARQUEE',
    'CROWD', 'CHANT', 'CHORUS', 'ALL', 'EVERYONE', 'VOICE', 'VOICES',
    'SFX', 'SOUND', 'MUSIC', 'SONG',
    'NARRATOR', 'CAPTION', 'TITLE', 'CRAWL', 'CRAWLER', 'CHYRON', 'SUPER',
    'MONITOR', 'COMPUTER', 'DEVICE', 'ALARM', 'SIREN', 'HORN',
    'ANNOUNCEMENT', 'ANNOUNCER', 'AUTOMATED', 'SYSTEM', 'GPS', 'AI',
])

# Which block a non-character source turns into
BROADCAST_SOURCES = frozenset([
    'RADIO', 'TV', 'TELEVISION', 'NEWS', 'BROADCAST', 'INTERCOM', 'PA',
    'SPEAKER', 'PHONE', 'RECORDING', 'VOICEMAIL', 'ANSWERING', 'SCREEN',
    'DISPLAY', 'MONITOR', 'COMPUTER', 'DEVICE', 'CRAWL', 'CRAWLER', 'CHYRON',
    'ANNOUNCEMENT', 'ANNOUNCER', 'AUTOMATED', 'SYSTEM', 'GPS', 'AI',
])
SOUND_SOURCES = frozenset([
    'SFX', 'SOUND', 'MUSIC', 'SONG', 'ALARM', 'SIREN', 'HORN',
])

LOCATION_INDICATORS = frozenset([
    'WAREHOUSE', 'ROOM', 'BUILDING', 'STREET', 'LAB', 'LABORATORY',
    'HOSPITAL', 'GARAGE', 'OFFICE', 'BUREAU', 'HEADQUARTERS', 'HQ',
    'APARTMENT', 'HOUSE', 'MANSION', 'CHURCH', 'TEMPLE', 'SCHOOL',
    'STATION', 'PARK', 'ALLEY', 'BRIDGE', 'TOWER', 'PRISON', 'JAIL',
    'COURT', 'COURTROOM', 'DINER', 'BAR', 'RESTAURANT', 'CAFE',
    'MALL', 'SHOP', 'STORE', 'MARKET', 'ARENA', 'STADIUM', 'LIBRARY',
    'MUSEUM', 'HALL', 'HALLWAY', 'CORRIDOR', 'BASEMENT', 'ROOFTOP',
    'ROOF', 'BUNKER', 'CAVE', 'FOREST', 'DOCK', 'PORT', 'HARBOR',
    'HANGAR', 'FACILITY', 'THEATRE', 'THEATER', 'STUDIO', 'CLINIC',
    'CENTER', 'CENTRE', 'LOBBY', 'ELEVATOR', 'SITE',
])

# Wider set used by the timeline/location scan (abstract places included)
PLACE_INDICATORS = LOCATION_INDICATORS | frozenset([
    'CAFÉ', 'BROWNSTONE', 'VOID', 'DIMENSION', 'REALM', 'COMMAND', 'BASE',
    'INTERSECTION', 'CROSSWALK', 'SIDEWALK',
])

FACTION_KEYWORDS = frozenset([
    'DEPARTMENT', 'AGENCY', 'INSTITUTE', 'ORGANIZATION', 'ORDER', 'GUILD',
    'SQUAD', 'DIVISION', 'BUREAU', 'TEAM', 'FORCE', 'CORPS', 'GROUP',
    'UNION', 'COUNCIL', 'COMMITTEE', 'ALLIANCE', 'LEAGUE', 'SYNDICATE',
    'COLLECTIVE', 'SOCIETY', 'BROTHERHOOD', 'SISTERHOOD', 'ASSOCIATION',
    'FOUNDATION', 'MINISTRY', 'COMMAND', 'AUTHORITY',
])

ITEM_ACTION_VERBS = (
    'holds', 'hold', 'holding', 'wields', 'wield', 'wielding',
    'carries', 'carry', 'carrying', 'grabs', 'grab', 'grabbing',
    'picks up', 'pick up', 'picking up', 'draws', 'draw', 'drawing',
    'clutches', 'clutch', 'clutching', 'brandishes', 'brandish', 'brandishing',
    'wears', 'wear', 'wearing', 'raises', 'raise', 'raising',
    'retrieves', 'retrieve', 'retrieving', 'activates', 'activate', 'activating',
)

ITEM_OBJECT_KEYWORDS = frozenset([
    'SWORD', 'BLADE', 'KNIFE', 'DAGGER', 'AXE', 'HAMMER', 'SPEAR', 'BOW',
    'GUN', 'PISTOL', 'RIFLE', 'WEAPON', 'SHIELD', 'ARMOR',
    'RING', 'AMULET', 'PENDANT', 'NECKLACE', 'CROWN', 'STAFF', 'WAND',
    'TOME', 'SCROLL', 'MAP', 'KEY', 'ARTIFACT', 'RELIC',
    'CRYSTAL', 'GEM', 'STONE', 'ORB', 'DEVICE', 'GADGET',
    'BADGE', 'VIAL', 'SERUM', 'SHARD', 'TALISMAN',
])

ARTICLE_WORDS = frozenset(['a', 'an', 'the', 'his', 'her', 'its', 'their', 'my', 'your', 'our'])

MONTH_NAMES = (
    'January', 'February', 'March', 'April', 'May', 'June', 'July',
    'August', 'September', 'October', 'November', 'December',
)
_MONTHS_BY_KEY = {name.lower(): name for name in MONTH_NAMES}
_MONTHS_BY_KEY.update({name[:3].lower(): name for name in MONTH_NAMES})
_MONTHS_BY_KEY['sept'] = 'September'

_PUNCTUATION = re.compile(r'[,.\-]')
_NAME_SPLIT = re.compile(r'[\s\-_/]+')
_VIA_DEVICE = re.compile(r'\b(ON|FROM|VIA)\s+(RADIO|TV|SCREEN|PHONE|INTERCOM)')
_NON_LETTERS = re.compile(r'[^A-Za-z]')
_ITEM_VERB = re.compile(
    r'\b(' + '|'.join(re.escape(v) for v in sorted(ITEM_ACTION_VERBS, key=len, reverse=True)) + r')\b',
    re.IGNORECASE,
)
ITEM_OBJECT_WINDOW = 6


def is_noise_word(name: str) -> bool:
    return name.strip().upper() in NOISE_WORDS


def _words(text: str):
    return [_PUNCTUATION.sub('', word) for word in text.upper().split()]


def has_location_indicator(text: str) -> bool:
    return any(word in LOCATION_INDICATORS for word in _words(text))


def has_place_indicator(text: str) -> bool:
    return any(word in PLACE_INDICATORS for word in _words(text))


def has_faction_keyword(text: str) -> bool:
    return any(word in FACTION_KEYWORDS for word in _words(text))


def is_non_character_name(name: str) -> bool:
    """True for speakers that are signs, broadcasts, crowds or devices."""
    upper = name.strip().upper()
    if upper in NON_CHARACTER_WORDS:
        return True
    if any(word in NON_CHARACTER_WORDS for word in _NAME_SPLIT.split(upper)):
        return True
    return _VIA_DEVICE.search(upper) is not None


def non_character_block_type(name: str) -> str:
    """Block type name a non-character speaker's line should become."""
    words = set(_NAME_SPLIT.split(name.strip().upper()))
    if words & SOUND_SOURCES:
        return 'SFX'
    if words & BROADCAST_SOURCES or _VIA_DEVICE.search(name.upper()):
        return 'CRAWLER'
    return 'CAPTION'


def canonical_month(value: str) -> Optional[str]:
    """Full month name for 'Oct', 'october', ...; None if not a month."""
    return _MONTHS_BY_KEY.get(value.strip().rstrip('.').lower())


def find_item_name(text: str) -> Optional[str]:
    """
    Object named after the first action verb in a line.

    "She draws the ancient sword" -> "ancient sword". The object keyword must
    appear within ITEM_OBJECT_WINDOW words of the verb; one preceding word is
    kept as a modifier unless it is an article or possessive.
    """
    verb = _ITEM_VERB.search(text)
    if not verb:
        return None
    words = text[verb.end():].split()
    for index, word in enumerate(words[:ITEM_OBJECT_WINDOW]):
        cleaned = _NON_LETTERS.sub('', word)
        if cleaned.upper() not in ITEM_OBJECT_KEYWORDS:
            continue
        modifier = _NON_LETTERS.sub('', words[index - 1]) if index > 0 else ''
        if modifier and modifier.lower() not in ARTICLE_WORDS:
            cleaned = f'{modifier} {cleaned}'
        return cleaned if len(cleaned) >= 3 else None
    return None
