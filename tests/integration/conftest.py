from __future__ import annotations

import os
import uuid
from collections.abc import Iterator

import pytest

from durable_agent.storage import PostgresStorage


@pytest.fixture
def postgres_storage() -> Iterator[PostgresStorage]:
    if os.getenv("RUN_POSTGRES_INTEGRATION_TESTS") != "1":
        pytest.skip(
            "Set RUN_POSTGRES_INTEGRATION_TESTS=1 and DURABLE_AGENT_DATABASE_URL "
            "to run storage tests against PostgreSQL."
        )
    database_url = os.getenv("DURABLE_AGENT_DATABASE_URL")
    if not database_url:
        pytest.skip("DURABLE_AGENT_DATABASE_URL is required for integration tests.")

    storage = PostgresStorage(database_url)
    storage.migrate()
    yield storage


@pytest.fixture
def unique_run_id() -> str:
    return f"it-{uuid.uuid4()}"


@pytest.fixture
def github_live() -> None:
    if os.getenv("RUN_GITHUB_INTEGRATION_TESTS") != "1":
        pytest.skip("Set RUN_GITHUB_INTEGRATION_TESTS=1 to call the public GitHub API.")
