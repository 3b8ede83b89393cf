"""
Script Format Detection
Picks a script dialect from structural cues in the first 100 lines.
"""

import logging
import re
from typing import Optional, Union

from .markdown_stripper import strip_markdown
from .models import ProjectType

logger = logging.getLogger(__name__)

DETECTION_LINE_LIMIT = 100

_COMIC_PAGE = re.compile(r'^\s*PAGE\s+\d+', re.IGNORECASE | re.MULTILINE)
_COMIC_PANEL = re.compile(r'^\s*Panel\s+\d+', re.IGNORECASE | re.MULTILINE)
_SLUGLINE = re.compile(r'^\s*(INT|EXT|INT/EXT|I/E)\.\s', re.MULTILINE)
_STAGE_ACT = re.compile(r'^\s*ACT\s+(ONE|TWO|THREE|I|II|III|\d+)\b', re.IGNORECASE | re.MULTILINE)
_STAGE_SCENE = re.compile(r'^\s*SCENE\b', re.IGNORECASE | re.MULTILINE)
_TV_MARKER = re.compile(r'^\s*(COLD OPEN|TEASER|ACT ONE)\b', re.IGNORECASE | re.MULTILINE)


def coerce_project_type(value: Union[ProjectType, str, None]) -> Optional[ProjectType]:
    """Accept an enum or its string value; unknown strings give None."""
    if value is None or isinstance(value, ProjectType):
        return value
    try:
        return ProjectType(str(value).strip().lower())
    except ValueError:
        logger.warning(f"[DETECT] Unknown project type {value!r}; falling back to detection")
        return None


def detect_format(script_text: str, declared: Union[ProjectType, str, None] = None) -> ProjectType:
    """
    Resolve the dialect of a script. Never fails.

    A declared format is trusted outright. Otherwise the first rule that
    matches wins:
    1. comic: PAGE n and Panel n
    2. screenplay: INT./EXT. sluglines and no line starting COLD OPEN, TEASER or ACT ONE
    3. stage-play: ACT and SCENE headers
    4. tv-series: COLD OPEN/TEASER/ACT ONE together with sluglines
    5. comic
    """
    project_type = coerce_project_type(declared)
    if project_type is not None:
        return project_type

    prefix = '\n'.join((script_text or '').splitlines()[:DETECTION_LINE_LIMIT])
    prefix = strip_markdown(prefix)

    if _COMIC_PAGE.search(prefix) and _COMIC_PANEL.search(prefix):
        detected = ProjectType.COMIC
    elif _SLUGLINE.search(prefix) and not _TV_MARKER.search(prefix):
        detected = ProjectType.SCREENPLAY
    elif _STAGE_ACT.search(prefix) and _STAGE_SCENE.search(prefix):
        detected = ProjectType.STAGE_PLAY
    elif _TV_MARKER.search(prefix) and _SLUGLINE.search(prefix):
        detected = ProjectType.TV_SERIES
    else:
        detected = ProjectType.COMIC

    logger.debug(f"[DETECT] Detected format: {detected.value}")
    return detected
