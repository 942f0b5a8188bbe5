"""Shared fixtures for pivot tests."""

from collections.abc import AsyncGenerator, Callable
from pathlib import Path

import httpx
import pytest

from pivot.store import ManifestStore

from . import FakeKubectl

Handler = Callable[[httpx.Request], httpx.Response]


@pytest.fixture
def fake_kubectl() -> FakeKubectl:
    return FakeKubectl()


@pytest.fixture
def store(tmp_path: Path) -> ManifestStore:
    """An empty manifest store with only the initial commit."""
    return ManifestStore.initialize(tmp_path / "infra")


@pytest.fixture
async def make_client() -> AsyncGenerator[Callable[[Handler], httpx.AsyncClient], None]:
    """Return a factory for http clients answered by a handler."""
    clients: list[httpx.AsyncClient] = []

    def _make(handler: Handler) -> httpx.AsyncClient:
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        clients.append(client)
        return client

    yield _make
    for client in clients:
        await client.aclose()
