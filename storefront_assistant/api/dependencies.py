"""Dependency providers for the assistant routes.

The provider and the context builder are process-wide and built lazily;
the catalog service is bound to the request's database session. Tests swap
any of them through ``app.dependency_overrides``.
"""
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from storefront_assistant.agent.context_builder import ContextBuilder
from storefront_assistant.agent.llm_provider import LLMProvider
from storefront_assistant.agent.streaming import StreamingAssistant
from storefront_assistant.agent.structured_assistant import StructuredAssistant
from storefront_assistant.database.db import get_db
from storefront_assistant.services.catalog_service import CatalogService


@lru_cache(maxsize=1)
def get_llm_provider() -> LLMProvider:
    return LLMProvider()


@lru_cache(maxsize=1)
def get_context_builder() -> ContextBuilder:
    return ContextBuilder()


def get_catalog(db: Session = Depends(get_db)) -> CatalogService:
    return CatalogService(db)


def get_streaming_assistant(
    provider: LLMProvider = Depends(get_llm_provider),
    context_builder: ContextBuilder = Depends(get_context_builder),
) -> StreamingAssistant:
    return StreamingAssistant(provider, context_builder)


def get_structured_assistant(
    provider: LLMProvider = Depends(get_llm_provider),
    context_builder: ContextBuilder = Depends(get_context_builder),
) -> StructuredAssistant:
    return StructuredAssistant(provider, context_builder)
