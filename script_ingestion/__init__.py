"""
Script Ingestion Pipeline
Turns comic scripts, screenplays, stage plays and TV episodes into one
structured document plus derived story entities.

Components:
- detect_format: Dialect detection (comic, screenplay, stage play, TV series)
- RegexExtractor: Deterministic line scanner driven by per-dialect pattern tables
- ComprehensionExtractor: One LLM call + validate-and-repair of the JSON answer
- ReconciliationEngine: Merges both passes under a selectable MergePolicy
- ScriptProcessor: Orchestrates detect → deterministic → comprehension → merge
- TimelineLocationParser: Location/timeline/character/item proposals against an EntityRegistry

LLM Components:
- CompletionClient: The one external call, complete(prompt, document) -> str
- LangChainCompletionClient: ChatOpenAI-backed default client
"""

from .config import PipelineConfig, configure_logging
from .errors import (
    ScriptIngestionError,
    HardFailure,
    ComprehensionParseError,
    EmptyPagesError,
    ComprehensionTimeoutError,
    MissingCredentialsError,
)
from .models import (
    ProjectType,
    BlockType,
    LoreCategory,
    CharacterRole,
    ParserSource,
    Block,
    Panel,
    Page,
    Character,
    LoreEntry,
    TimelineEvent,
    UnifiedParseResult,
    ProposedEntityType,
    ProposedNewEntity,
    ProposedEntityUpdate,
    ProposedTimelineEvent,
    ParsedProposal,
    RegistryEntry,
    CharacterRecord,
    EntityRegistry,
)
from .format_detector import detect_format
from .regex_extractor import RegexExtractor, deterministic_parse
from .ai_extractor import ComprehensionExtractor, validate_and_repair
from .llm_client import CompletionClient, LangChainCompletionClient
from .reconciliation import ReconciliationEngine, MergePolicy
from .script_processor import ScriptProcessor, ParseMode, parse_script
from .timeline_locations import TimelineLocationParser

__all__ = [
    # Core pipeline
    'PipelineConfig',
    'configure_logging',
    'detect_format',
    'RegexExtractor',
    'deterministic_parse',
    'ComprehensionExtractor',
    'validate_and_repair',
    'ReconciliationEngine',
    'MergePolicy',
    'ScriptProcessor',
    'ParseMode',
    'parse_script',
    'TimelineLocationParser',

    # LLM components
    'CompletionClient',
    'LangChainCompletionClient',

    # Models
    'ProjectType',
    'BlockType',
    'LoreCategory',
    'CharacterRole',
    'ParserSource',
    'Block',
    'Panel',
    'Page',
    'Character',
    'LoreEntry',
    'TimelineEvent',
    'UnifiedParseResult',
    'ProposedEntityType',
    'ProposedNewEntity',
    'ProposedEntityUpdate',
    'ProposedTimelineEvent',
    'ParsedProposal',
    'RegistryEntry',
    'CharacterRecord',
    'EntityRegistry',

    # Errors
    'ScriptIngestionError',
    'HardFailure',
    'ComprehensionParseError',
    'EmptyPagesError',
    'ComprehensionTimeoutError',
    'MissingCredentialsError',
]
