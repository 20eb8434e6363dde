"""Pytest fixtures for backup engine tests."""

from __future__ import annotations

import pytest

from tests.client.backup.fixtures import FakeCatalogueClient


@pytest.fixture
def catalogue() -> FakeCatalogueClient:
    """Provide an empty in-memory catalogue."""
    return FakeCatalogueClient()
