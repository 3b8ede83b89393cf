"""
Configuration for the Script Ingestion Pipeline
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'

PARSE_MODES = ("resilient", "strict")
MERGE_POLICIES = ("comprehension_primary", "deterministic_primary")


@dataclass
class PipelineConfig:
    """Configuration settings for the pipeline."""

    # OpenAI-compatible chat endpoint (comprehension pass)
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o"
    openai_base_url: Optional[str] = None
    llm_timeout: float = 120.0        # Seconds before the comprehension pass is abandoned
    llm_temperature: float = 0.1

    # Processing settings
    parse_mode: str = "resilient"
    merge_policy: str = "comprehension_primary"
    max_script_chars: int = 200000    # Max chars sent to the LLM
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> 'PipelineConfig':
        """Load configuration from environment variables (and .env if present)."""
        load_dotenv()
        return cls(
            openai_api_key=os.getenv("OPENAI_API_KEY") or None,
            openai_model=os.getenv("OPENAI_MODEL", "gpt-4o"),
            openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
            llm_timeout=float(os.getenv("LLM_TIMEOUT", "120")),
            llm_temperature=float(os.getenv("LLM_TEMPERATURE", "0.1")),
            parse_mode=os.getenv("PARSE_MODE", "resilient").lower(),
            merge_policy=os.getenv("MERGE_POLICY", "comprehension_primary").lower(),
            max_script_chars=int(os.getenv("MAX_SCRIPT_CHARS", "200000")),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    @property
    def has_credentials(self) -> bool:
        return bool(self.openai_api_key)

    def validate(self) -> bool:
        """Validate enum-like settings and numeric bounds."""
        if self.parse_mode not in PARSE_MODES:
            raise ValueError(f"PARSE_MODE must be one of {PARSE_MODES}, got {self.parse_mode!r}")
        if self.merge_policy not in MERGE_POLICIES:
            raise ValueError(f"MERGE_POLICY must be one of {MERGE_POLICIES}, got {self.merge_policy!r}")
        if self.llm_timeout <= 0:
            raise ValueError("LLM_TIMEOUT must be positive")
        if self.max_script_chars <= 0:
            raise ValueError("MAX_SCRIPT_CHARS must be positive")
        return True


def configure_logging(level: Optional[str] = None) -> None:
    """Apply the package's standard log format to the root logger."""
    logging.basicConfig(
        level=getattr(logging, (level or "INFO").upper(), logging.INFO),
        format=LOG_FORMAT,
    )
