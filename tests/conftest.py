from __future__ import annotations

import logging
from typing import List

import pytest

from tests._fixtures.fakes import FakeMongoClient


@pytest.fixture
def mongo_clients() -> List[FakeMongoClient]:
    """Collect every fake MongoDB client created during a test."""
    return []


@pytest.fixture
def mongo_factory(mongo_clients: List[FakeMongoClient]):
    def _factory(uri: str) -> FakeMongoClient:
        client = FakeMongoClient(uri)
        mongo_clients.append(client)
        return client

    return _factory


@pytest.fixture
def auditlens_caplog(caplog):
    """caplog that also works after configure_logging() disabled propagation."""
    logger = logging.getLogger("auditlens")
    logger.addHandler(caplog.handler)
    caplog.set_level(logging.DEBUG, logger="auditlens")
    yield caplog
    logger.removeHandler(caplog.handler)
