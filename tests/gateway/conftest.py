from collections.abc import Callable, Generator, Sequence
from pathlib import Path
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from storybook_images.gateway.config import API_KEY_HEADER, GatewayConfig
from storybook_images.gateway.db import get_session_factory
from storybook_images.gateway.server import create_app
from storybook_images.gateway.storage import BlobStore, LocalBlobStore
from storybook_images.orchestrator import ProviderOrchestrator
from storybook_images.providers import ProviderName

MASTER_KEY = "test-master-key"
PUBLIC_BASE_URL = "https://cdn.example.test"


@pytest.fixture
def config(tmp_path: Path) -> GatewayConfig:
    return GatewayConfig(
        database_url=f"sqlite:///{tmp_path / 'gateway.db'}",
        auto_migrate=False,
        master_key=MASTER_KEY,
        jwt_secret="test-jwt-secret",
        storage_backend="local",
        storage_local_dir=str(tmp_path / "blobs"),
        storage_public_base_url=PUBLIC_BASE_URL,
    )


@pytest.fixture
def blob_store(config: GatewayConfig) -> LocalBlobStore:
    return LocalBlobStore(config.storage_local_dir, PUBLIC_BASE_URL)


@pytest.fixture
def providers(fake_provider, make_image) -> dict[ProviderName, Any]:
    """Scripted providers; tests replace ``outcomes`` to change behaviour."""
    return {
        ProviderName.GEMINI: fake_provider("gemini", [make_image(1024, 1365)]),
        ProviderName.OPENAI: fake_provider("openai", [make_image(1024, 1792)]),
    }


@pytest.fixture
def build_app(
    config: GatewayConfig,
    blob_store: LocalBlobStore,
    providers: dict[ProviderName, Any],
) -> Callable[..., FastAPI]:
    def orchestrator_factory(order: Sequence[ProviderName], timeout_ms: int) -> ProviderOrchestrator:
        return ProviderOrchestrator(
            [providers[name] for name in order],
            timeout_ms=timeout_ms,
            fallback_on_safety=config.fallback_on_safety,
        )

    def _build(store: BlobStore | None = None) -> FastAPI:
        return create_app(config, blob_store=store or blob_store, orchestrator_factory=orchestrator_factory)

    return _build


@pytest.fixture
def client(build_app: Callable[..., FastAPI]) -> Generator[TestClient, None, None]:
    with TestClient(build_app()) as test_client:
        yield test_client


@pytest.fixture
def master_key_header() -> dict[str, str]:
    return {API_KEY_HEADER: f"Bearer {MASTER_KEY}"}


@pytest.fixture
def db_session(client: TestClient) -> Generator[Session, None, None]:
    session = get_session_factory()()
    try:
        yield session
    finally:
        session.close()
