"""Server half of the structured (non-streamed) assistant transport."""

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional

from storefront_assistant.agent.context_builder import ContextBuilder
from storefront_assistant.agent.llm_provider import LLMProvider, ProviderError
from storefront_assistant.analytics.logger import logger
from storefront_assistant.database.models import Product
from storefront_assistant.services.catalog_service import (
    CatalogService,
    SearchFilters,
    extract_search_filters,
)
from storefront_assistant.utils.config import settings
from storefront_assistant.utils.helpers import dedupe_strings, format_price

PRODUCT_QUICK_REPLIES = ["Részletek az elsőről", "Van olcsóbb?", "Összehasonlítás"]
NO_RESULT_QUICK_REPLIES = ["Másik kategória", "Nagyobb költségkeret"]


class CatalogUnavailableError(Exception):
    """Product references could not be checked against the catalog."""


@dataclass
class AskResult:
    answer: str
    products: List[Product] = field(default_factory=list)
    suggestions: List[str] = field(default_factory=list)


def build_ask_prompt(question: str, candidates: List[Product], filters: SearchFilters) -> str:
    """Compose the user prompt with the catalog candidates for ``question``."""
    lines = []
    if candidates:
        lines.append("Talált termékek a kínálatból (azonosító | név | ár | kategória | értékelés):")
        for product in candidates:
            price = format_price(product.effective_price)
            if product.sale_price is not None:
                price += f" (eredeti: {format_price(product.price)})"
            lines.append(
                f"{product.id} | {product.name} | {price} | {product.category} | {product.rating:.1f}/5"
            )
        lines.append("")
        lines.append("Csak ezek közül ajánlj terméket, és a product_ids mezőben ezek azonosítóit add meg.")
    elif filters.is_product_query:
        lines.append("Sajnos nem találtam megfelelő terméket a keresési feltételek alapján.")
        lines.append("Ne ajánlj konkrét terméket, hagyd üresen a product_ids mezőt.")
    else:
        lines.append("A kérdéshez nem tartozik termékkeresés; a product_ids mező maradjon üres.")

    lines.append("")
    lines.append(f"A vásárló kérdése: {question}")
    return "\n".join(lines)


class StructuredAssistant:
    """Answers one shopping question with grounded product references."""

    def __init__(
        self,
        provider: LLMProvider,
        context_builder: ContextBuilder,
        timeout: float = settings.stream_max_duration_seconds,
        max_products: int = settings.ask_max_products,
        max_suggestions: int = settings.ask_max_suggestions,
    ):
        self.provider = provider
        self.context_builder = context_builder
        self.timeout = timeout
        self.max_products = max_products
        self.max_suggestions = max_suggestions

    def _find_candidates(self, catalog: CatalogService, filters: SearchFilters) -> List[Product]:
        if not filters.is_product_query:
            return []
        try:
            return catalog.search_products(filters, limit=5)
        except Exception as e:
            logger.warning(f"Candidate search failed, answering without candidates: {e}")
            catalog.rollback()
            return []

    async def ask(self, question: str, catalog: CatalogService) -> AskResult:
        """Answer ``question``.

        Raises ProviderNotConfiguredError before any work when the provider
        has no credential, ProviderError when the model call fails or
        exceeds the timeout, and CatalogUnavailableError when the answer's
        products cannot be looked up.
        """
        self.provider.ensure_configured()

        question = question.strip()
        filters = extract_search_filters(question)
        candidates = self._find_candidates(catalog, filters)
        instruction = self.context_builder.build_instruction(catalog)
        prompt = build_ask_prompt(question, candidates, filters)

        try:
            answer = await asyncio.wait_for(
                self.provider.complete_structured(instruction, prompt), timeout=self.timeout
            )
        except asyncio.TimeoutError as e:
            raise ProviderError(f"Structured answer exceeded {self.timeout}s") from e

        product_ids = list(answer.product_ids)
        if not product_ids and filters.is_product_query:
            product_ids = [product.id for product in candidates]
        products = self._ground(catalog, product_ids)

        suggestions = dedupe_strings(answer.suggestions)[: self.max_suggestions]
        if not suggestions:
            if products:
                suggestions = list(PRODUCT_QUICK_REPLIES)
            elif filters.is_product_query:
                suggestions = list(NO_RESULT_QUICK_REPLIES)

        logger.info(
            f"Structured answer ready: {len(products)} products, {len(suggestions)} suggestions"
        )
        return AskResult(answer=answer.answer.strip(), products=products, suggestions=suggestions)

    def _ground(self, catalog: CatalogService, product_ids: List[int]) -> List[Product]:
        """Resolve ids against the live catalog, dropping anything that is gone."""
        if not product_ids:
            return []
        try:
            products = catalog.find_products_by_ids(product_ids)
        except Exception as e:
            catalog.rollback()
            raise CatalogUnavailableError("Product lookup failed") from e
        dropped = len(set(product_ids)) - len(products)
        if dropped:
            logger.warning(f"Dropped {dropped} product reference(s) not found in the catalog")
        return products[: self.max_products]
