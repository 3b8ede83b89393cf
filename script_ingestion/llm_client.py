"""
Completion Client
The one external call of the comprehension pass: complete(prompt, document) -> raw text.

Transport, auth and provider selection live behind this seam. The default
adapter talks to any OpenAI-compatible chat endpoint through LangChain
(OpenAI itself, or Ollama / vLLM via OPENAI_BASE_URL).
"""

import logging
import time
from typing import Optional, Protocol, runtime_checkable

from langchain_core.prompts import ChatPromptTemplate
from langchain_openai import ChatOpenAI

from .config import PipelineConfig
from .prompts import HUMAN_TEMPLATE

logger = logging.getLogger(__name__)


@runtime_checkable
class CompletionClient(Protocol):
    """Anything that can turn (instructions, script) into a raw model response."""

    model_name: str

    async def complete(self, prompt: str, document: str) -> str:
        ...


def _build_prompt() -> ChatPromptTemplate:
    # Instructions go in as a variable so the JSON braces in them are never parsed as placeholders
    return ChatPromptTemplate.from_messages([("system", "{instructions}"), ("human", HUMAN_TEMPLATE)])


class LangChainCompletionClient:
    """CompletionClient backed by langchain-openai's ChatOpenAI."""

    def __init__(
        self,
        model: str = "gpt-4o",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        temperature: float = 0.1,
        timeout: Optional[float] = None,
    ):
        self.model_name = model
        kwargs = {"model": model, "temperature": temperature}
        if api_key:
            kwargs["api_key"] = api_key
        if base_url:
            kwargs["base_url"] = base_url
        if timeout:
            kwargs["timeout"] = timeout
        self.llm = ChatOpenAI(**kwargs)
        self.chain = _build_prompt() | self.llm

    @classmethod
    def from_config(cls, config: PipelineConfig) -> 'LangChainCompletionClient':
        return cls(
            model=config.openai_model,
            api_key=config.openai_api_key,
            base_url=config.openai_base_url,
            temperature=config.llm_temperature,
            timeout=config.llm_timeout,
        )

    async def complete(self, prompt: str, document: str) -> str:
        logger.info(f"[AI] Sending request to {self.model_name} ({len(document)} chars)...")
        request_start = time.time()
        response = await self.chain.ainvoke({"instructions": prompt, "document": document})
        logger.info(f"[AI] Response received in {time.time() - request_start:.2f}s")

        content = response.content
        if isinstance(content, list):
            # Some providers return content parts
            content = ''.join(part.get('text', '') if isinstance(part, dict) else str(part) for part in content)
        return content
