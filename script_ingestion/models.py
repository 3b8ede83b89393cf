"""
Script Ingestion Pydantic Models
The single output contract shared by the deterministic pass, the AI pass and the merger,
plus the proposal types handed to the external commit step.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .utils import normalize_name, sorted_unique

# =============================================================================
# ENUMS
# =============================================================================

class ProjectType(str, Enum):
    COMIC = "comic"
    SCREENPLAY = "screenplay"
    STAGE_PLAY = "stage-play"
    TV_SERIES = "tv-series"


class BlockType(str, Enum):
    ART_NOTE = "ART_NOTE"        # Visual/artist directions
    DIALOGUE = "DIALOGUE"        # Spoken lines (requires speaker)
    CAPTION = "CAPTION"          # Narrator captions
    NARRATOR = "NARRATOR"        # Voice-over / narrator
    SFX = "SFX"                  # Sound effects
    THOUGHT = "THOUGHT"          # Internal monologue (requires speaker)
    CRAWLER = "CRAWLER"          # Screen text, news tickers
    TITLE_CARD = "TITLE_CARD"    # Title cards, chapter headers
    OTHER = "OTHER"


SPEAKER_REQUIRED_TYPES = frozenset([BlockType.DIALOGUE, BlockType.THOUGHT])


class LoreCategory(str, Enum):
    FACTION = "faction"
    LOCATION = "location"
    EVENT = "event"
    CONCEPT = "concept"
    ARTIFACT = "artifact"
    RULE = "rule"
    ITEM = "item"


class CharacterRole(str, Enum):
    PROTAGONIST = "Protagonist"
    ANTAGONIST = "Antagonist"
    SUPPORTING = "Supporting"
    MINOR = "Minor"


class ParserSource(str, Enum):
    DETERMINISTIC = "deterministic"
    AI = "ai"
    AI_DETERMINISTIC = "ai+deterministic"


class ProposalSource(str, Enum):
    DETERMINISTIC = "deterministic"
    AI = "ai"


class ProposedEntityType(str, Enum):
    CHARACTER = "character"
    LOCATION = "location"
    ITEM = "item"
    FACTION = "faction"
    EVENT = "event"
    CONCEPT = "concept"
    ARTIFACT = "artifact"
    RULE = "rule"


class TimelineAction(str, Enum):
    CREATED = "created"
    MOVED_TO = "moved_to"
    UPDATED = "updated"


# =============================================================================
# DOCUMENT STRUCTURE
# =============================================================================

class Block(BaseModel):
    """One unit of content inside a panel."""
    type: BlockType
    text: str = ""
    speaker: Optional[str] = None
    meta: Optional[Dict[str, Any]] = None

    @property
    def needs_speaker(self) -> bool:
        return self.type in SPEAKER_REQUIRED_TYPES and not (self.speaker or "").strip()


class Panel(BaseModel):
    panel_number: int
    blocks: List[Block] = Field(default_factory=list)
    visual_marker: Optional[str] = None
    aspect_hint: Optional[str] = None


class Page(BaseModel):
    page_number: int
    panels: List[Panel] = Field(default_factory=list)


# =============================================================================
# DERIVED ENTITIES
# =============================================================================

class Character(BaseModel):
    """A speaking person or sentient being."""
    name: str
    role: Optional[CharacterRole] = None
    description: Optional[str] = None
    pages_present: List[int] = Field(default_factory=list)
    first_appearance_page: int = 1
    lines_count: int = 0
    notable_quotes: List[str] = Field(default_factory=list)

    @field_validator('pages_present')
    @classmethod
    def validate_pages_present(cls, v):
        return sorted_unique(v)

    @field_validator('notable_quotes')
    @classmethod
    def validate_notable_quotes(cls, v):
        return v[:2]


class LoreEntry(BaseModel):
    """Faction, location, event, concept, artifact, rule or item."""
    name: str
    category: LoreCategory
    description: str = ""
    pages: List[int] = Field(default_factory=list)
    confidence: float = Field(default=0.5, ge=0.0, le=1.0)
    related_characters: Optional[List[str]] = None
    metadata: Optional[Dict[str, Any]] = None

    @field_validator('pages')
    @classmethod
    def validate_pages(cls, v):
        return sorted_unique(v)


class TimelineEvent(BaseModel):
    name: str
    description: str = ""
    page: int = 0
    characters_involved: List[str] = Field(default_factory=list)
    year: Optional[int] = None
    month: Optional[str] = None


class UnifiedParseResult(BaseModel):
    """The single contract every downstream consumer receives."""
    source_hash: str
    project_type: ProjectType
    warnings: List[str] = Field(default_factory=list)
    pages: List[Page] = Field(default_factory=list)
    characters: List[Character] = Field(default_factory=list)
    lore: List[LoreEntry] = Field(default_factory=list)
    timeline: List[TimelineEvent] = Field(default_factory=list)
    parser_source: ParserSource
    ai_model: Optional[str] = None
    parse_duration_ms: int = 0

    @property
    def character_names(self) -> List[str]:
        return [c.name for c in self.characters]

    @property
    def lore_categories(self) -> List[LoreCategory]:
        """Distinct lore categories in first-occurrence order."""
        seen: List[LoreCategory] = []
        for entry in self.lore:
            if entry.category not in seen:
                seen.append(entry.category)
        return seen

    @property
    def panel_count(self) -> int:
        return sum(len(page.panels) for page in self.pages)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode='json', exclude_none=True)

    def to_json(self, indent: Optional[int] = 2) -> str:
        return json.dumps(self.to_dict(), indent=indent)

    def canonical_json(self) -> str:
        """Serialisation without timing, for comparing two parses of the same input."""
        data = self.to_dict()
        data.pop('parse_duration_ms', None)
        return json.dumps(data, sort_keys=True)


# =============================================================================
# PROPOSALS (never committed by this package)
# =============================================================================

class ProposalModel(BaseModel):
    """camelCase on the wire, snake_case in Python."""
    model_config = ConfigDict(populate_by_name=True, use_enum_values=False)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(mode='json', by_alias=True, exclude_none=True)


class ProposedNewEntity(ProposalModel):
    temp_id: str = Field(alias="tempId")
    entity_type: ProposedEntityType = Field(alias="entityType")
    name: str
    source: ProposalSource = ProposalSource.DETERMINISTIC
    confidence: float = Field(ge=0.0, le=1.0)
    context_snippet: str = Field(default="", alias="contextSnippet")
    line_number: int = Field(alias="lineNumber")
    suggested_role: Optional[CharacterRole] = Field(default=None, alias="suggestedRole")
    suggested_description: Optional[str] = Field(default=None, alias="suggestedDescription")
    suggested_region: Optional[str] = Field(default=None, alias="suggestedRegion")
    suggested_time_of_day: Optional[str] = Field(default=None, alias="suggestedTimeOfDay")
    suggested_item_description: Optional[str] = Field(default=None, alias="suggestedItemDescription")
    suggested_tags: Optional[List[str]] = Field(default=None, alias="suggestedTags")


class ProposedEntityUpdate(ProposalModel):
    entity_id: str = Field(alias="entityId")
    entity_type: ProposedEntityType = Field(alias="entityType")
    entity_name: str = Field(alias="entityName")
    source: ProposalSource = ProposalSource.DETERMINISTIC
    confidence: float = Field(ge=0.0, le=1.0)
    context_snippet: str = Field(default="", alias="contextSnippet")
    line_number: int = Field(alias="lineNumber")
    change_description: str = Field(alias="changeDescription")
    updates: Dict[str, Any] = Field(default_factory=dict)


class ProposedTimelineEvent(ProposalModel):
    temp_id: str = Field(alias="tempId")
    source: ProposalSource = ProposalSource.DETERMINISTIC
    confidence: float = Field(ge=0.0, le=1.0)
    context_snippet: str = Field(default="", alias="contextSnippet")
    line_number: int = Field(alias="lineNumber")
    entity_type: ProposedEntityType = Field(alias="entityType")
    entity_id: str = Field(default="", alias="entityId")
    entity_name: str = Field(alias="entityName")
    action: TimelineAction = TimelineAction.CREATED
    payload: Dict[str, Any] = Field(default_factory=dict)
    description: str = ""


class ProposalMeta(ProposalModel):
    raw_script_length: int = Field(default=0, alias="rawScriptLength")
    line_count: int = Field(default=0, alias="lineCount")
    parse_duration_ms: int = Field(default=0, alias="parseDurationMs")
    llm_was_used: bool = Field(default=False, alias="llmWasUsed")
    warnings: List[str] = Field(default_factory=list)


class ParsedProposal(ProposalModel):
    meta: ProposalMeta = Field(default_factory=ProposalMeta)
    new_entities: List[ProposedNewEntity] = Field(default_factory=list, alias="newEntities")
    updated_entities: List[ProposedEntityUpdate] = Field(default_factory=list, alias="updatedEntities")
    new_timeline_events: List[ProposedTimelineEvent] = Field(default_factory=list, alias="newTimelineEvents")

    def entities_of(self, entity_type: ProposedEntityType) -> List[ProposedNewEntity]:
        return [e for e in self.new_entities if e.entity_type == entity_type]


# =============================================================================
# READ-ONLY ENTITY REGISTRY (arena + index)
# =============================================================================

class RegistryEntry(BaseModel):
    id: str
    name: str
    description: Optional[str] = None


class CharacterRecord(BaseModel):
    id: str
    name: str
    current_location_id: Optional[str] = None


class EntityRegistry:
    """
    Read-only view over committed entities.

    Locations and characters are stored in id-keyed maps with a separate
    normalized-name index; nothing here is mutated by a parse.
    """

    def __init__(
        self,
        locations: Optional[List[RegistryEntry]] = None,
        characters: Optional[List[CharacterRecord]] = None,
    ):
        self._locations: Dict[str, RegistryEntry] = {}
        self._location_ids: List[str] = []
        self._location_index: Dict[str, str] = {}
        self._characters: Dict[str, CharacterRecord] = {}
        self._character_ids: List[str] = []

        for entry in locations or []:
            self._locations[entry.id] = entry
            self._location_ids.append(entry.id)
            self._location_index.setdefault(normalize_name(entry.name, strip_articles=True), entry.id)
        for record in characters or []:
            self._characters[record.id] = record
            self._character_ids.append(record.id)

    def lookup(self, normalized_name: str) -> Optional[RegistryEntry]:
        """Exact lookup by normalized location name."""
        entry_id = self._location_index.get(normalized_name)
        return self._locations.get(entry_id) if entry_id else None

    def find_location(self, name: str) -> Optional[RegistryEntry]:
        """Normalized exact match first, then containment in either direction."""
        normalized = normalize_name(name, strip_articles=True)
        if not normalized:
            return None
        exact = self.lookup(normalized)
        if exact:
            return exact
        for entry_id in self._location_ids:
            entry = self._locations[entry_id]
            existing = normalize_name(entry.name, strip_articles=True)
            if existing and (normalized in existing or existing in normalized):
                return entry
        return None

    def get_location(self, entry_id: str) -> Optional[RegistryEntry]:
        return self._locations.get(entry_id)

    @property
    def characters(self) -> List[CharacterRecord]:
        return [self._characters[i] for i in self._character_ids]

    @property
    def character_names(self) -> List[str]:
        return [c.name for c in self.characters]
