"""
Script Processor - Orchestrates the extraction pipeline
Combines the deterministic scan + LLM comprehension + reconciliation
"""

import asyncio
import logging
import time
import traceback
from enum import Enum
from typing import Iterable, Optional, Union

from .ai_extractor import ComprehensionExtractor
from .config import PipelineConfig
from .errors import ComprehensionTimeoutError, MissingCredentialsError
from .format_detector import detect_format
from .llm_client import CompletionClient, LangChainCompletionClient
from .models import EntityRegistry, ParsedProposal, ProjectType, UnifiedParseResult
from .reconciliation import MergePolicy, ReconciliationEngine
from .regex_extractor import RegexExtractor
from .timeline_locations import TimelineLocationParser
from .utils import compute_source_hash

logger = logging.getLogger(__name__)


class ParseMode(str, Enum):
    RESILIENT = "resilient"   # AI when possible, deterministic fallback on any failure
    STRICT = "strict"         # AI mandatory, failures propagate


class ScriptProcessor:
    """
    Main processor that orchestrates the full extraction pipeline.

    Pipeline:
    1. Hash the raw script once (provenance key for every stage)
    2. Detect the dialect
    3. Deterministic scan (always)
    4. Comprehension pass (when a client or credentials are available), bounded by a timeout
    5. Reconcile both passes under the configured merge policy
    """

    def __init__(
        self,
        config: Optional[PipelineConfig] = None,
        client: Optional[CompletionClient] = None,
        regex_extractor: Optional[RegexExtractor] = None,
        mode: Union[ParseMode, str, None] = None,
        merge_policy: Union[MergePolicy, str, None] = None,
    ):
        """
        Initialize the script processor.

        Args:
            config: PipelineConfig (loaded from the environment if not provided)
            client: CompletionClient for the comprehension pass (LangChain client built from config if omitted)
            regex_extractor: RegexExtractor instance (created if not provided)
            mode: Overrides config.parse_mode
            merge_policy: Overrides config.merge_policy
        """
        self.config = config or PipelineConfig.from_env()
        self.config.validate()
        self.mode = ParseMode(mode or self.config.parse_mode)
        self.merge_policy = MergePolicy(merge_policy or self.config.merge_policy)
        self.regex_extractor = regex_extractor or RegexExtractor()
        self.reconciler = ReconciliationEngine(self.merge_policy)
        self.timeline_parser = TimelineLocationParser()
        self._client = client

    @property
    def client(self) -> Optional[CompletionClient]:
        """Injected client, else a LangChain client when an API key is configured."""
        if self._client is None and self.config.has_credentials:
            self._client = LangChainCompletionClient.from_config(self.config)
        return self._client

    async def parse(
        self,
        script_text: str,
        project_type: Union[ProjectType, str, None] = None,
        existing_characters: Iterable[str] = (),
        canon_locks: Iterable[str] = (),
    ) -> UnifiedParseResult:
        """
        Parse one script into a UnifiedParseResult.

        Raises (strict mode only):
            MissingCredentialsError: no client and no API key
            HardFailure / transport errors: comprehension pass failed
        """
        start = time.perf_counter()
        raw = script_text or ''
        source_hash = compute_source_hash(raw)
        effective_type = detect_format(raw, project_type)

        logger.info(f"[PIPELINE] Parsing {len(raw)} chars as {effective_type.value} ({self.mode.value} mode)")
        deterministic = self.regex_extractor.extract(raw, effective_type, source_hash)

        client = self.client
        if client is None:
            if self.mode == ParseMode.STRICT:
                raise MissingCredentialsError()
            logger.info("[PIPELINE] No comprehension credentials; returning deterministic result")
            result = deterministic
        else:
            try:
                comprehension = await self._run_comprehension(
                    client, raw, effective_type, source_hash, existing_characters, canon_locks
                )
            except Exception as e:
                if self.mode == ParseMode.STRICT:
                    raise
                logger.warning(f"[PIPELINE] Comprehension pass failed, using deterministic result: "
                               f"{type(e).__name__}: {e}")
                logger.debug(f"[PIPELINE] Traceback:\n{traceback.format_exc()}")
                deterministic.warnings.append(
                    f'AI parse failed ({type(e).__name__}); returned deterministic result.'
                )
                result = deterministic
            else:
                result = self.reconciler.merge(deterministic, comprehension)

        result.parse_duration_ms = int((time.perf_counter() - start) * 1000)
        logger.info(
            f"[PIPELINE] Done in {result.parse_duration_ms}ms: source={result.parser_source.value}, "
            f"{len(result.pages)} pages, {len(result.characters)} characters, "
            f"{len(result.lore)} lore, {len(result.warnings)} warnings"
        )
        return result

    async def _run_comprehension(
        self,
        client: CompletionClient,
        script_text: str,
        project_type: ProjectType,
        source_hash: str,
        existing_characters: Iterable[str],
        canon_locks: Iterable[str],
    ) -> UnifiedParseResult:
        extractor = ComprehensionExtractor(client, max_script_chars=self.config.max_script_chars)
        try:
            return await asyncio.wait_for(
                extractor.extract(script_text, project_type, source_hash, existing_characters, canon_locks),
                timeout=self.config.llm_timeout,
            )
        except asyncio.TimeoutError as e:
            raise ComprehensionTimeoutError(self.config.llm_timeout) from e

    def parse_sync(
        self,
        script_text: str,
        project_type: Union[ProjectType, str, None] = None,
        existing_characters: Iterable[str] = (),
        canon_locks: Iterable[str] = (),
    ) -> UnifiedParseResult:
        """Synchronous version of parse."""
        return asyncio.run(self.parse(script_text, project_type, existing_characters, canon_locks))

    def propose_entities(self, script_text: str, registry: Optional[EntityRegistry] = None) -> ParsedProposal:
        """Timeline/location proposals against a read-only registry."""
        return self.timeline_parser.parse(script_text, registry)


def parse_script(
    script_text: str,
    project_type: Union[ProjectType, str, None] = None,
    config: Optional[PipelineConfig] = None,
    client: Optional[CompletionClient] = None,
    **kwargs,
) -> UnifiedParseResult:
    """
    Parse a script with a one-off processor.

    Extra keyword arguments (existing_characters, canon_locks) go to ScriptProcessor.parse.
    """
    processor = ScriptProcessor(config=config, client=client)
    return processor.parse_sync(script_text, project_type, **kwargs)
