#!/usr/bin/env python3
"""Shared fixtures: an in-memory trait database and factories bound to it."""

import pytest

from trait_api.clients.database_client import DatabaseClient
from tests.utils.factories import bind_session


@pytest.fixture
def database_client():
    client = DatabaseClient("sqlite://", echo=False)
    client.create_all()
    yield client
    client.close()


@pytest.fixture
def session(database_client):
    """Session whose factory-created rows are flushed but not committed."""
    db_session = database_client.session()
    bind_session(db_session)
    yield db_session
    bind_session(None)
    db_session.rollback()
    db_session.close()
