from __future__ import annotations

import pytest

from storekit.config.object_store_config import ObjectStoreConfig
from tests.mock_backend import InMemoryBackend


@pytest.fixture()
def backend():
    return InMemoryBackend()


@pytest.fixture()
def config():
    return ObjectStoreConfig(
        endpoint="localhost:9000",
        access_key="minioadmin",
        secret_key="minioadmin123",
        bucket_name="my-bucket",
    )
