"""Language-model provider used by both assistant transports.

The provider is treated as an opaque oracle: it either streams text
fragments for a conversation or returns one structured answer. LangChain
chat models do the actual provider calls.
"""

from typing import Any, AsyncIterator, Dict, List, Optional

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, Field

from storefront_assistant.analytics.logger import logger
from storefront_assistant.utils.config import settings


class ProviderNotConfiguredError(Exception):
    """No credential is configured for the selected provider."""


class ProviderError(Exception):
    """The provider call itself failed."""


class AssistantAnswer(BaseModel):
    """Structured result of a shopping guidance question."""

    answer: str = Field(..., description="A válasz a vásárlónak, magyarul.")
    product_ids: List[int] = Field(
        default_factory=list,
        description="A válaszban ajánlott termékek azonosítói, csak a megadott listából.",
    )
    suggestions: List[str] = Field(
        default_factory=list,
        description="Legfeljebb 3 rövid következő kérdés, amit a vásárló feltehet.",
    )


def to_chat_messages(system_instruction: str, messages: List[Dict[str, str]]) -> List[BaseMessage]:
    """Convert ``{role, content}`` dicts into LangChain messages."""
    chat_messages: List[BaseMessage] = [SystemMessage(content=system_instruction)]
    for message in messages:
        if message["role"] == "assistant":
            chat_messages.append(AIMessage(content=message["content"]))
        else:
            chat_messages.append(HumanMessage(content=message["content"]))
    return chat_messages


def chunk_text(chunk: Any) -> str:
    """Extract the text of a streamed message chunk.

    Anthropic chunks may carry a list of content blocks instead of a string.
    """
    content = getattr(chunk, "content", chunk)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type", "text") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return ""


class LLMProvider:
    """Thin wrapper over the configured LangChain chat model."""

    def __init__(
        self,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ):
        self.provider = (provider or settings.llm_provider).lower()
        self.model = model or settings.llm_model
        self.api_key = api_key if api_key is not None else settings.provider_api_key
        self.temperature = settings.llm_temperature if temperature is None else temperature
        self.max_tokens = max_tokens or settings.llm_max_tokens
        self._llm = None

    @property
    def configured(self) -> bool:
        return bool(self.api_key) and self.provider in ("anthropic", "openai")

    def ensure_configured(self):
        """Fail fast before any model call when no credential is set."""
        if not self.configured:
            raise ProviderNotConfiguredError(
                f"{self.provider.upper()}_API_KEY is required when using the {self.provider} provider"
            )

    def _get_llm(self):
        """Create the chat model on first use."""
        self.ensure_configured()
        if self._llm is not None:
            return self._llm

        if self.provider == "anthropic":
            self._llm = ChatAnthropic(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                anthropic_api_key=self.api_key,
            )
        else:
            self._llm = ChatOpenAI(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                openai_api_key=self.api_key,
            )
        logger.info(f"Initialized {self.provider} LLM: {self.model}")
        return self._llm

    async def stream(self, system_instruction: str, messages: List[Dict[str, str]]) -> AsyncIterator[str]:
        """Yield text fragments in provider emission order."""
        llm = self._get_llm()
        try:
            async for chunk in llm.astream(to_chat_messages(system_instruction, messages)):
                text = chunk_text(chunk)
                if text:
                    yield text
        except Exception as e:
            raise ProviderError(f"{self.provider} streaming call failed") from e

    async def complete_structured(self, system_instruction: str, prompt: str) -> AssistantAnswer:
        """Return one structured answer for ``prompt``."""
        llm = self._get_llm()
        try:
            structured_llm = llm.with_structured_output(AssistantAnswer)
            result = await structured_llm.ainvoke(
                [SystemMessage(content=system_instruction), HumanMessage(content=prompt)]
            )
        except Exception as e:
            raise ProviderError(f"{self.provider} structured call failed") from e

        if isinstance(result, AssistantAnswer):
            return result
        if isinstance(result, dict):
            try:
                return AssistantAnswer.model_validate(result)
            except ValueError as e:
                raise ProviderError("Provider returned a malformed structured answer") from e
        raise ProviderError(f"Unexpected structured result type: {type(result).__name__}")
