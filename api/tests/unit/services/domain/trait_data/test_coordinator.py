#!/usr/bin/env python3
"""Tests for all-or-nothing submission processing."""

import pytest
from sqlalchemy import func, select

from trait_api.models.tables import Covariate, Entity, Trait
from trait_api.services.domain.trait_data import TransactionCoordinator
from trait_api.services.domain.trait_data.coordinator import element_to_dict
from trait_api.services.domain.trait_data.errors import DatabaseInsertionError, InvalidData, InvalidDocument
from tests.utils.factories import (
    CitationFactory,
    EntityFactory,
    SiteFactory,
    TreatmentFactory,
    UserFactory,
    VariableFactory,
)


def _count(session, model):
    return session.scalar(select(func.count()).select_from(model))


@pytest.fixture
def seeded(session):
    """Committed reference rows, so a rolled back submission leaves them in place."""
    user = UserFactory(login="carol")
    site = SiteFactory(sitename="Urbana", time_zone="America/Chicago")
    VariableFactory(name="yield", min=0, max=100)
    VariableFactory(name="temperature")
    citation = CitationFactory(author="Smith", year=2012)
    TreatmentFactory(name="control", citations=[citation])
    session.commit()
    return {"user": user, "site": site}


@pytest.mark.unit
class TestTransactionCoordinator:
    """Test suite for TransactionCoordinator."""

    def test_commits_clean_document(self, session, seeded):
        document = """
        <trait-data-set>
          <defaults utc_datetime="2020-05-01">
            <site sitename="Urbana"/>
            <citation author="Smith"/>
            <treatment name="control"/>
            <variable name="yield"/>
          </defaults>
          <trait mean="3.1">
            <covariates><covariate level="20"><variable name="temperature"/></covariate></covariates>
          </trait>
          <trait-group>
            <entity name="plot 1"/>
            <trait mean="4.2"/>
          </trait-group>
        </trait-data-set>
        """
        result = TransactionCoordinator(session, seeded["user"].id).submit(document)

        assert result.committed is True
        assert len(result.new_trait_ids) == 2
        assert not result.errors.has_errors()
        assert _count(session, Trait) == 2
        assert _count(session, Covariate) == 1

        traits = session.scalars(select(Trait).order_by(Trait.id)).all()
        assert all(t.user_id == seeded["user"].id for t in traits)
        assert all(t.site_id == seeded["site"].id for t in traits)
        assert traits[1].entity_id is not None
        assert traits[0].timeloc == 9

    def test_structural_error_opens_no_transaction(self, session, seeded):
        result = TransactionCoordinator(session, seeded["user"].id).submit(
            "<trait-data-set><trait/></trait-data-set>"
        )

        assert result.committed is False
        assert result.structural_errors
        assert result.errors.structure
        assert isinstance(result.fatal, InvalidDocument)
        assert result.document is not None
        assert _count(session, Trait) == 0

    def test_unparseable_document(self, session, seeded):
        result = TransactionCoordinator(session, seeded["user"].id).submit(b"<trait-data-set>")

        assert result.committed is False
        assert result.document is None
        assert result.document_xml() is None
        assert result.document_dict() is None

    def test_one_bad_trait_rolls_back_everything(self, session, seeded):
        """A lookup miss on the last trait undoes the earlier inserts and entities."""
        document = """
        <trait-data-set>
          <defaults><variable name="yield"/></defaults>
          <entity name="new plot"/>
          <trait mean="1"/>
          <trait mean="2"/>
          <trait mean="3"><site sitename="Nowhere"/></trait>
        </trait-data-set>
        """
        result = TransactionCoordinator(session, seeded["user"].id).submit(document)

        assert result.committed is False
        assert result.new_trait_ids == []
        assert len(result.errors.lookup) == 1
        assert _count(session, Trait) == 0
        assert _count(session, Entity) == 0
        assert 'error="match not found"' in result.document_xml()

    def test_all_errors_reported(self, session, seeded):
        """Recoverable errors across traits are all collected in one pass."""
        document = """
        <trait-data-set>
          <defaults><variable name="yield"/></defaults>
          <trait mean="500"/>
          <trait mean="1"><method name="unknown"/></trait>
          <trait mean="1" local_datetime="2020-05-01"/>
        </trait-data-set>
        """
        result = TransactionCoordinator(session, seeded["user"].id).submit(document)

        assert result.committed is False
        assert len(result.errors.model_validation) == 1
        assert len(result.errors.lookup) == 1
        assert len(result.errors.date) == 1
        assert result.fatal is None

    def test_treatment_without_citation_aborts(self, session, seeded):
        document = """
        <trait-data-set>
          <defaults><variable name="yield"/><treatment name="control"/></defaults>
          <trait mean="1"/>
        </trait-data-set>
        """
        result = TransactionCoordinator(session, seeded["user"].id).submit(document)

        assert result.committed is False
        assert isinstance(result.fatal, InvalidDocument)
        assert result.errors.structure == ["You can't specify a treatment without specifying a citation."]
        assert _count(session, Trait) == 0

    def test_ambiguous_entity_aborts(self, session, seeded):
        EntityFactory(name="plot 1")
        EntityFactory(name="plot 1")
        session.commit()
        document = """
        <trait-data-set>
          <defaults><variable name="yield"/></defaults>
          <trait mean="1"/>
          <trait-group><entity name="plot 1"/><trait mean="2"/></trait-group>
        </trait-data-set>
        """
        result = TransactionCoordinator(session, seeded["user"].id).submit(document)

        assert result.committed is False
        assert isinstance(result.fatal, InvalidData)
        assert _count(session, Trait) == 0
        assert _count(session, Entity) == 2
        assert result.document_dict()["trait-data-set"]["trait-group"]["entity"]["error"] == "multiple matches"

    def test_database_error_aborts(self, session, seeded):
        """A rejected insert stops processing and rolls back."""
        user_id = 9999  # no such user
        document = """
        <trait-data-set>
          <defaults><variable name="yield"/></defaults>
          <trait mean="1"/>
          <trait mean="2"/>
        </trait-data-set>
        """
        result = TransactionCoordinator(session, user_id).submit(document)

        assert result.committed is False
        assert isinstance(result.fatal, DatabaseInsertionError)
        assert len(result.errors.database) == 1
        assert "database_exception" in result.document_xml()
        assert _count(session, Trait) == 0


@pytest.mark.unit
class TestElementToDict:

    def test_attributes_children_and_lists(self):
        import defusedxml.ElementTree as ET

        root = ET.fromstring(
            '<trait-data-set><trait mean="1"><notes>wet</notes></trait><trait mean="2" error="x"/></trait-data-set>'
        )

        assert element_to_dict(root) == {
            "trait": [
                {"mean": "1", "notes": "wet"},
                {"mean": "2", "error": "x"},
            ]
        }

    def test_empty_element(self):
        import defusedxml.ElementTree as ET

        assert element_to_dict(ET.fromstring("<defaults/>")) is None
