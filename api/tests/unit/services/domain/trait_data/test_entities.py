#!/usr/bin/env python3
"""Tests for entity get-or-create."""

import defusedxml.ElementTree as ET
import pytest
from sqlalchemy import func, select

from trait_api.models.tables import Entity
from trait_api.services.domain.trait_data.entities import EntityResolver
from trait_api.services.domain.trait_data.errors import ERROR_ATTR, ErrorSet, InvalidData
from tests.utils.factories import EntityFactory


def _entity_count(session):
    return session.scalar(select(func.count()).select_from(Entity))


@pytest.mark.unit
class TestEntityResolver:
    """Test suite for EntityResolver."""

    def setup_method(self):
        self.errors = ErrorSet()

    def test_creates_missing_entity(self, session):
        element = ET.fromstring('<entity name="plot 7" notes="north edge"/>')

        entity = EntityResolver(session, self.errors).get_or_create(element)

        assert entity.id is not None
        assert entity.name == "plot 7"
        assert entity.notes == "north edge"
        assert _entity_count(session) == 1

    def test_reuses_entity_by_name(self, session):
        existing = EntityFactory(name="plot 7", notes="north edge")
        element = ET.fromstring('<entity name="plot 7"/>')

        entity = EntityResolver(session, self.errors).get_or_create(element)

        assert entity.id == existing.id
        assert _entity_count(session) == 1

    def test_matching_notes_reuse(self, session):
        existing = EntityFactory(name="plot 7", notes="north edge")
        element = ET.fromstring('<entity name="plot 7" notes="north edge"/>')

        assert EntityResolver(session, self.errors).get_or_create(element).id == existing.id

    def test_unnamed_entities_are_always_new(self, session):
        EntityFactory(name=None)
        resolver = EntityResolver(session, self.errors)

        first = resolver.get_or_create(ET.fromstring("<entity/>"))
        second = resolver.get_or_create(ET.fromstring('<entity name="  "/>'))

        assert first.id != second.id
        assert _entity_count(session) == 3

    def test_conflicting_notes(self, session):
        """An existing entity with different notes is a fatal data error."""
        EntityFactory(name="plot 7", notes="north edge")
        element = ET.fromstring('<entity name="plot 7" notes="south edge"/>')

        with pytest.raises(InvalidData):
            EntityResolver(session, self.errors).get_or_create(element)

        assert self.errors.lookup == [
            'The existing entity with name "plot 7" has a conflicting value for notes.'
        ]
        assert element.get(ERROR_ATTR) == "match not found"

    def test_ambiguous_name(self, session):
        EntityFactory(name="plot 7")
        EntityFactory(name="plot 7")
        element = ET.fromstring('<entity name="plot 7"/>')

        with pytest.raises(InvalidData):
            EntityResolver(session, self.errors).get_or_create(element)

        assert element.get(ERROR_ATTR) == "multiple matches"
        assert len(self.errors.lookup) == 1
