# Script comprehension prompts - one prompt per dialect, shared scaffolding

from typing import Iterable, Optional

from .models import BlockType, CharacterRole, LoreCategory, ProjectType

SYSTEM_PROMPT = """You are a script parser for a story-bible tool. You work in two strict phases.

PHASE 1: READ AND COMPREHEND
Read the whole script before extracting anything. Identify:
- Every character (names, roles, relationships)
- The central conflict and themes
- Every setting and location
- Significant objects, factions, concepts and world rules
- The narrative arc and its key events

PHASE 2: EXTRACT STRUCTURED DATA
Use that comprehension to fill the JSON schema below. Do not skip anything.

CHARACTER RULES (READ CAREFULLY):
A character is a PERSON or SENTIENT BEING who acts in the story. These are NOT characters
and must NEVER appear in characters[]:
- Signs, placards, banners, graffiti, written text (CRAWLER or CAPTION block)
- Radio, TV news, intercoms, PA systems, phone recordings (CRAWLER block with meta.source)
- Newspapers, letters, documents being read aloud (CAPTION block)
- Sound effects and environmental noise (SFX block)
- Unnamed crowds or groups chanting (CAPTION block with meta.source = "crowd")
Only real characters get DIALOGUE blocks with a speaker.

QUALITY CHECKLIST (verify before responding):
- Every page in the script has a page object
- Every panel or scene beat has a panel object
- Every speaking character is in characters[]
- Only people and beings are in characters[]
- Lore spans AT LEAST 4 different categories
- Timeline events cover the major story beats

LORE EXTRACTION RULES:
Returning only locations is a failure. Expected minimum yield per category:
- 2-5 locations (settings, named places)
- 1-3 factions (any group, team, agency, order, crew)
- 1-3 events (battles, discoveries, deaths, meetings, rituals; past or present)
- 1-2 concepts (powers, phenomena, philosophies, technologies)
- 0-2 artifacts (named weapons, relics, significant objects)
- 0-2 rules (world mechanics, established laws)
- 0-2 items (ordinary objects characters interact with)
Factions, events and artifacts are often only mentioned in dialogue. Count your lore
categories before answering; if there are fewer than 4, extract more."""

FORMAT_CONTEXTS = {
    ProjectType.COMIC: """FORMAT: Comic book script.
STRUCTURE RULES:
- "PAGE X" headers define pages; "Panel Y" headers define panels (numbering restarts each page)
- [ECHO], [HITCH], [OVERFLOW], [SHATTERED], [SPLIT] are visual markers: put them in visual_marker
- ALL-CAPS NAME followed by a colon is dialogue
- Bracketed notes and "ARTIST NOTE:" lines are ART_NOTE blocks
- CAPTION: lines are CAPTION blocks; SFX: lines are SFX blocks
CRITICAL: Count every PAGE and every Panel. Missing panels = parse failure.""",

    ProjectType.SCREENPLAY: """FORMAT: Screenplay.
STRUCTURE RULES:
- INT./EXT. sluglines start new scenes; each scene is one page in the output
- Action paragraphs are ART_NOTE blocks, one per paragraph
- An ALL-CAPS character cue followed by speech is a DIALOGUE block
- Parentheticals such as (beat), (O.S.), (V.O.) go in block meta.parenthetical
- FADE IN/OUT, CUT TO, DISSOLVE are transitions: ignore them
- Split long scenes into panels at each distinct beat of action
CRITICAL: Keep ALL dialogue. Every speaking character must be in characters[].""",

    ProjectType.STAGE_PLAY: """FORMAT: Stage play.
STRUCTURE RULES:
- ACT headers define pages; SCENE headers define panels
- Stage directions in parentheses or italics are ART_NOTE blocks
- "CHARACTER NAME." followed by speech is a DIALOGUE block
- Entrances and exits are ART_NOTE blocks
- NARRATOR: lines are NARRATOR blocks
CRITICAL: Stage plays are dialogue-heavy. Extract ALL lines.""",

    ProjectType.TV_SERIES: """FORMAT: TV series episode.
STRUCTURE RULES:
- COLD OPEN, TEASER, ACT ONE ... TAG are act markers; each act is one page
- INT./EXT. sluglines inside an act are panels
- Dialogue rules are the same as for screenplays
- SMASH CUT, MATCH CUT and (CONTINUED) are ignored
CRITICAL: Preserve the act structure.""",
}

OUTPUT_SCHEMA = """OUTPUT SCHEMA: output ONLY valid JSON with exactly this structure. No markdown fences,
no commentary.

{
  "pages": [
    {
      "page_number": 1,
      "panels": [
        {
          "panel_number": 1,
          "blocks": [
            {"type": "ART_NOTE", "text": "..."},
            {"type": "DIALOGUE", "text": "...", "speaker": "CHARACTER"},
            {"type": "SFX", "text": "..."}
          ],
          "visual_marker": "echo",
          "aspect_hint": "wide"
        }
      ]
    }
  ],
  "characters": [
    {
      "name": "...",
      "role": "Protagonist",
      "description": "...",
      "pages_present": [1, 3, 5],
      "first_appearance_page": 1,
      "lines_count": 42,
      "notable_quotes": ["...", "..."]
    }
  ],
  "lore": [
    {
      "name": "...",
      "category": "faction",
      "description": "...",
      "pages": [2, 7],
      "confidence": 0.9,
      "related_characters": ["ELIAS"],
      "metadata": {}
    }
  ],
  "timeline": [
    {"name": "...", "description": "...", "page": 3, "characters_involved": ["ELIAS"]}
  ]
}"""

HUMAN_TEMPLATE = "Now parse this script:\n\n{document}"


def _bullet_list(values: Iterable[str]) -> str:
    return '\n'.join(f'- {value}' for value in values)


def build_prompt(
    project_type: ProjectType,
    existing_characters: Optional[Iterable[str]] = None,
    canon_locks: Optional[Iterable[str]] = None,
) -> str:
    """Assemble the full instruction prompt for one dialect."""
    sections = [SYSTEM_PROMPT]

    existing = [name for name in (existing_characters or []) if name]
    if existing:
        sections.append(
            'ALREADY TRACKED CHARACTERS (do not re-extract, but include in characters_involved '
            'where relevant):\n' + _bullet_list(existing)
        )

    locks = [name for name in (canon_locks or []) if name]
    if locks:
        sections.append(
            'CANON-LOCKED ENTITIES (never change these names or descriptions):\n' + _bullet_list(locks)
        )

    sections.append(FORMAT_CONTEXTS.get(project_type, FORMAT_CONTEXTS[ProjectType.COMIC]))
    sections.append(OUTPUT_SCHEMA)
    sections.append(
        'Valid block types: ' + ', '.join(t.value for t in BlockType) + '\n'
        'Valid lore categories: ' + ', '.join(c.value for c in LoreCategory) + '\n'
        'Valid character roles: ' + ', '.join(r.value for r in CharacterRole)
    )
    return '\n\n'.join(sections)
