"""
Shared text helpers for the script ingestion pipeline.
Name normalisation, hashing and snippet formatting used by every extractor.
"""

import hashlib
import re
import uuid
from typing import Iterable, List

_WHITESPACE = re.compile(r'\s+')
_LEADING_ARTICLE = re.compile(r'^(the|a|an)\s+', re.IGNORECASE)
_REGEX_SPECIALS = re.compile(r'[.*+?^${}()|\[\]\\]')


def compute_source_hash(text: str) -> str:
    """SHA-256 hex digest of the raw script. Computed once per parse."""
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def normalize_name(name: str, strip_articles: bool = False) -> str:
    """Lowercase, trim and collapse whitespace for name comparison."""
    normalized = _WHITESPACE.sub(' ', name.lower().strip())
    if strip_articles:
        normalized = _LEADING_ARTICLE.sub('', normalized)
    return normalized


def normalize_speaker(name: str) -> str:
    return _WHITESPACE.sub(' ', name.strip()).upper()


def names_overlap(a: str, b: str) -> bool:
    """Case-folded equality or containment in either direction ("JOHN" vs "JOHN DOE")."""
    left = a.casefold().strip()
    right = b.casefold().strip()
    if not left or not right:
        return False
    return left == right or left in right or right in left


def to_title_case(text: str) -> str:
    return ' '.join(word[:1].upper() + word[1:] for word in text.lower().split(' '))


def truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length - 3] + '...'


def contains_name(text: str, name: str) -> bool:
    """Word-boundary, case-insensitive match of a name inside text."""
    if not text or not name:
        return False
    escaped = _REGEX_SPECIALS.sub(lambda m: '\\' + m.group(0), name)
    return re.search(rf'\b{escaped}\b', text, re.IGNORECASE) is not None


def new_temp_id() -> str:
    return str(uuid.uuid4())


def sorted_unique(values: Iterable[int]) -> List[int]:
    return sorted(set(values))
