"""Catalog-grounded system instruction for the store assistant.

The builder turns a small, bounded snapshot of the live catalog (category
names and a handful of top rated in-stock products) into the instruction
that is sent to the language model ahead of the conversation. A snapshot is
taken per request and never cached, so stock and rating changes show up on
the next message.
"""

from dataclasses import dataclass
from pathlib import Path
from string import Template
from typing import Dict, Optional, Tuple

from storefront_assistant.analytics.error_tracker import error_tracker
from storefront_assistant.analytics.logger import logger
from storefront_assistant.services.catalog_service import CatalogService
from storefront_assistant.utils.config import settings
from storefront_assistant.utils.helpers import format_price

PROMPT_FILE = Path(__file__).parent / "prompts" / "store_assistant.txt"

FALLBACK_TEMPLATE = """@@BASE
Te a $store_name webáruház AI vásárlási asszisztense vagy. Segíts a vásárlóknak termékeket találni és kérdéseikre válaszolni.

@@RULES
Fontos szabályok:
- MINDIG magyar nyelven, barátságosan és tömören válaszolj.
- NE találj ki termékeket, árakat vagy szabályzatot.
- Termékre csak így linkelj: [Terméknév]($product_path_prefix/termek-slug).
- Ha bizonytalan vagy, irányítsd a vásárlót ide: [Kapcsolat]($contact_path)."""

NO_CATALOG_NOTICE = (
    "A kínálat jelenleg nem érhető el. Ne nevezz meg konkrét termékeket vagy árakat, "
    "inkább javasold a bolt böngészését."
)


@dataclass(frozen=True)
class PopularProduct:
    name: str
    price: int
    category: str


@dataclass(frozen=True)
class CatalogContextSnapshot:
    """Bounded view of the catalog taken at the start of a request."""

    categories: Tuple[str, ...] = ()
    popular_products: Tuple[PopularProduct, ...] = ()


def parse_prompt_blocks(text: str) -> Dict[str, str]:
    """Split a prompt file into its ``@@BASE`` and ``@@RULES`` blocks."""
    blocks: Dict[str, list] = {"base": [], "rules": []}
    current = "base"
    for raw_line in (text or "").splitlines():
        marker = raw_line.strip()
        if marker == "@@BASE":
            current = "base"
            continue
        if marker == "@@RULES":
            current = "rules"
            continue
        blocks[current].append(raw_line.rstrip())
    return {name: "\n".join(lines).strip() for name, lines in blocks.items()}


def load_prompt_template(path: Path = PROMPT_FILE) -> str:
    """Read the prompt template, falling back to the built-in one."""
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.warning(f"Prompt file not found at {path}, using fallback prompt")
    except OSError as e:
        logger.error(f"Error loading prompt file: {e}, using fallback prompt")
    return FALLBACK_TEMPLATE


class ContextBuilder:
    """Builds the system instruction from a catalog snapshot."""

    def __init__(
        self,
        template: Optional[str] = None,
        store_name: str = settings.store_name,
        contact_path: str = settings.contact_path,
        product_path_prefix: str = settings.product_path_prefix,
        max_categories: int = settings.context_max_categories,
        max_products: int = settings.context_max_products,
    ):
        blocks = parse_prompt_blocks(template if template is not None else load_prompt_template())
        substitutions = {
            "store_name": store_name,
            "contact_path": contact_path,
            "product_path_prefix": product_path_prefix.rstrip("/"),
        }
        self.base = Template(blocks["base"]).safe_substitute(substitutions)
        self.rules = Template(blocks["rules"]).safe_substitute(substitutions)
        self.max_categories = max_categories
        self.max_products = max_products

    def build_snapshot(self, catalog: CatalogService) -> CatalogContextSnapshot:
        """Read the bounded catalog facts the instruction needs."""
        categories = catalog.list_categories(limit=self.max_categories)
        products = catalog.list_top_products(limit=self.max_products, in_stock=True)
        return CatalogContextSnapshot(
            categories=tuple(c.name for c in categories)[: self.max_categories],
            popular_products=tuple(
                PopularProduct(name=p.name, price=p.effective_price, category=p.category or "")
                for p in products
            )[: self.max_products],
        )

    def render(self, snapshot: Optional[CatalogContextSnapshot]) -> str:
        """Render the instruction. ``None`` renders the context-free variant."""
        sections = [self.base]

        if snapshot is None:
            sections.append(f"AKTUÁLIS KÍNÁLAT:\n{NO_CATALOG_NOTICE}")
        else:
            lines = ["AKTUÁLIS KÍNÁLAT:"]
            if snapshot.categories:
                lines.append("Kategóriák: " + ", ".join(snapshot.categories))
            if snapshot.popular_products:
                lines.append("Népszerű, készleten lévő termékek:")
                for product in snapshot.popular_products:
                    category = f" ({product.category})" if product.category else ""
                    lines.append(f"- {product.name} - {format_price(product.price)}{category}")
            if len(lines) == 1:
                lines.append("A kínálat jelenleg üres.")
            sections.append("\n".join(lines))

        if self.rules:
            sections.append(self.rules)
        return "\n\n".join(section for section in sections if section)

    def build_instruction(self, catalog: Optional[CatalogService]) -> str:
        """Snapshot the catalog and render; degrade to no context on failure."""
        if catalog is None:
            return self.render(None)
        try:
            snapshot = self.build_snapshot(catalog)
        except Exception as e:
            logger.warning(f"Catalog context unavailable, using context-free instruction: {e}")
            error_tracker.record_error("catalog_error", "Catalog snapshot failed", {"error_type": type(e).__name__})
            catalog.rollback()
            return self.render(None)
        return self.render(snapshot)
