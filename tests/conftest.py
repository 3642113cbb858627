"""Pytest configuration and fixtures for tests."""
import os
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set test environment variables BEFORE any imports
os.environ["LLM_PROVIDER"] = "anthropic"
os.environ["ANTHROPIC_API_KEY"] = "test-key-for-ci"
os.environ["DATABASE_URL"] = "sqlite:///./test_storefront_assistant.db"
os.environ["RATE_LIMIT_PER_MINUTE"] = "100000"
os.environ["LOG_FILE"] = ""

import asyncio
from typing import Dict, List, Optional

import pytest
from fastapi.testclient import TestClient

from storefront_assistant.agent.llm_provider import (
    AssistantAnswer,
    ProviderError,
    ProviderNotConfiguredError,
)
from storefront_assistant.analytics.error_tracker import error_tracker
from storefront_assistant.api.dependencies import get_llm_provider
from storefront_assistant.api.main import app
from storefront_assistant.database.db import SessionLocal, init_db
from storefront_assistant.database.models import Category, Product


class FakeProvider:
    """Stand-in for LLMProvider with scripted output."""

    def __init__(
        self,
        fragments: Optional[List[str]] = None,
        answer: Optional[AssistantAnswer] = None,
        configured: bool = True,
        fail_after: Optional[int] = None,
        fragment_delay: float = 0.0,
        structured_error: Optional[Exception] = None,
    ):
        self.fragments = fragments if fragments is not None else ["Az ", "iPhone 15", " ajánlott."]
        self.answer = answer or AssistantAnswer(answer="Szívesen segítek!")
        self.configured = configured
        self.fail_after = fail_after
        self.fragment_delay = fragment_delay
        self.structured_error = structured_error
        self.stream_calls: List[Dict] = []
        self.structured_calls: List[Dict] = []

    def ensure_configured(self):
        if not self.configured:
            raise ProviderNotConfiguredError("ANTHROPIC_API_KEY is required")

    async def stream(self, system_instruction: str, messages: List[Dict[str, str]]):
        self.ensure_configured()
        self.stream_calls.append({"system_instruction": system_instruction, "messages": messages})
        for index, fragment in enumerate(self.fragments):
            if self.fail_after is not None and index >= self.fail_after:
                raise ProviderError("scripted provider failure")
            if self.fragment_delay:
                await asyncio.sleep(self.fragment_delay)
            yield fragment
        if self.fail_after is not None and self.fail_after >= len(self.fragments):
            raise ProviderError("scripted provider failure")

    async def complete_structured(self, system_instruction: str, prompt: str) -> AssistantAnswer:
        self.ensure_configured()
        self.structured_calls.append({"system_instruction": system_instruction, "prompt": prompt})
        if self.structured_error is not None:
            raise self.structured_error
        return self.answer


CATEGORIES = [
    (1, "Okostelefonok", "okostelefonok"),
    (2, "Laptopok", "laptopok"),
    (3, "Fülhallgatók", "fulhallgatok"),
]

# id, name, slug, price, sale_price, stock, category, rating, is_archived
PRODUCTS = [
    (1, "iPhone 15", "iphone-15", 389990, None, 25, "Okostelefonok", 4.7, False),
    (2, "Samsung Galaxy S24 Ultra", "samsung-galaxy-s24-ultra", 599990, None, 15, "Okostelefonok", 4.9, False),
    (3, "Samsung Galaxy A55", "samsung-galaxy-a55", 159990, 139990, 30, "Okostelefonok", 4.4, False),
    (4, "MacBook Pro 14 M3", "macbook-pro-14-m3", 899990, None, 10, "Laptopok", 4.9, False),
    (5, "Sony WH-1000XM5", "sony-wh-1000xm5", 149990, None, 0, "Fülhallgatók", 5.0, False),
    (6, "Régi Telefon", "regi-telefon", 19990, None, 3, "Okostelefonok", 5.0, True),
    (42, "AirPods Pro", "airpods-pro", 89990, None, 40, "Fülhallgatók", 4.8, False),
]


@pytest.fixture(autouse=True)
def reset_error_tracker():
    error_tracker.reset()
    yield


@pytest.fixture
def db_session():
    """Seeded catalog in the test database; emptied again afterwards."""
    init_db()
    db = SessionLocal()
    db.query(Product).delete()
    db.query(Category).delete()
    for category_id, name, slug in CATEGORIES:
        db.add(Category(id=category_id, name=name, slug=slug))
    for product_id, name, slug, price, sale_price, stock, category, rating, archived in PRODUCTS:
        db.add(Product(
            id=product_id,
            name=name,
            slug=slug,
            price=price,
            sale_price=sale_price,
            stock=stock,
            category=category,
            rating=rating,
            is_archived=archived,
            image=None,
        ))
    db.commit()
    try:
        yield db
    finally:
        db.rollback()
        db.query(Product).delete()
        db.query(Category).delete()
        db.commit()
        db.close()


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def client(db_session, fake_provider):
    """TestClient with the language model replaced by ``fake_provider``."""
    app.dependency_overrides[get_llm_provider] = lambda: fake_provider
    try:
        with TestClient(app) as test_client:
            yield test_client
    finally:
        app.dependency_overrides.clear()
