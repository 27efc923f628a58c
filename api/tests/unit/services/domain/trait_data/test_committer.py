#!/usr/bin/env python3
"""Tests for trait and covariate insertion."""

import defusedxml.ElementTree as ET
import pytest

from trait_api.models.tables import Covariate, Trait
from trait_api.services.domain.trait_data.committer import RecordCommitter
from trait_api.services.domain.trait_data.errors import (
    DATABASE_EXCEPTION_ATTR,
    MODEL_VALIDATION_ATTR,
    DatabaseInsertionError,
    ErrorSet,
)
from trait_api.services.domain.trait_data.references import ForeignKeyResolver
from tests.utils.factories import UserFactory, VariableFactory


@pytest.fixture
def errors():
    return ErrorSet()


@pytest.fixture
def committer(session, errors):
    return RecordCommitter(session, ForeignKeyResolver(session, errors), errors)


def _columns(user, variable, **overrides):
    columns = {"variable_id": variable.id, "user_id": user.id, "mean": "2.5", "notes": "", "dateloc": 9, "timeloc": 9}
    columns.update(overrides)
    return columns


@pytest.mark.unit
class TestRecordCommitter:
    """Test suite for RecordCommitter."""

    def test_inserts_trait(self, session, committer, errors):
        user = UserFactory()
        variable = VariableFactory(name="yield")
        element = ET.fromstring('<trait mean="2.5"/>')

        trait_id = committer.commit_trait(element, _columns(user, variable, statname="SE", n="4", stat="0.1"), 0)

        trait = session.get(Trait, trait_id)
        assert trait.mean == 2.5
        assert trait.n == 4
        assert trait.statname == "SE"
        assert trait.user_id == user.id
        assert committer.new_trait_ids == [trait_id]
        assert not errors.has_errors()

    def test_mean_out_of_range(self, committer, errors):
        """Range violations annotate the trait and are recoverable."""
        user = UserFactory()
        variable = VariableFactory(name="yield", min=0, max=2)
        element = ET.fromstring('<trait mean="2.5"/>')

        assert committer.commit_trait(element, _columns(user, variable), 0) is None

        assert "above the maximum" in element.get(MODEL_VALIDATION_ATTR)
        assert len(errors.model_validation) == 1
        assert committer.new_trait_ids == []

    def test_missing_variable(self, committer, errors):
        user = UserFactory()
        element = ET.fromstring('<trait mean="2.5"/>')

        result = committer.commit_trait(element, {"user_id": user.id, "mean": "2.5"}, 0)

        assert result is None
        assert "variable_id" in element.get(MODEL_VALIDATION_ATTR)

    def test_incomplete_stat(self, committer, errors):
        user = UserFactory()
        variable = VariableFactory()
        element = ET.fromstring('<trait mean="2.5"/>')

        assert committer.commit_trait(element, _columns(user, variable, statname="SE"), 0) is None
        assert errors.model_validation

    def test_inserts_covariates(self, session, committer):
        user = UserFactory()
        variable = VariableFactory(name="yield")
        temperature = VariableFactory(name="temperature")
        element = ET.fromstring(
            '<trait mean="2.5"><covariates>'
            '<covariate level="21.5"><variable name="temperature"/></covariate>'
            "</covariates></trait>"
        )

        trait_id = committer.commit_trait(element, _columns(user, variable), 0)

        covariates = session.query(Covariate).filter_by(trait_id=trait_id).all()
        assert [(c.variable_id, c.level) for c in covariates] == [(temperature.id, 21.5)]

    def test_covariates_skipped_after_lookup_error(self, session, committer, errors):
        """A lookup failure while processing the trait suppresses its covariates."""
        user = UserFactory()
        variable = VariableFactory(name="yield")
        VariableFactory(name="temperature")
        errors.lookup.append("No site could be found matching {'sitename': 'Nowhere'}")
        element = ET.fromstring(
            '<trait mean="2.5"><covariates>'
            '<covariate level="21.5"><variable name="temperature"/></covariate>'
            "</covariates></trait>"
        )

        trait_id = committer.commit_trait(element, _columns(user, variable), 0)

        assert trait_id is not None
        assert session.query(Covariate).count() == 0

    def test_earlier_lookup_errors_do_not_suppress_covariates(self, session, committer, errors):
        user = UserFactory()
        variable = VariableFactory(name="yield")
        VariableFactory(name="temperature")
        errors.lookup.append("from an earlier trait")
        element = ET.fromstring(
            '<trait mean="2.5"><covariates>'
            '<covariate level="21.5"><variable name="temperature"/></covariate>'
            "</covariates></trait>"
        )

        committer.commit_trait(element, _columns(user, variable), 1)

        assert session.query(Covariate).count() == 1

    def test_covariate_level_out_of_range(self, committer, errors):
        user = UserFactory()
        variable = VariableFactory(name="yield")
        VariableFactory(name="temperature", min=-40, max=60)
        element = ET.fromstring(
            '<trait mean="2.5"><covariates>'
            '<covariate level="99"><variable name="temperature"/></covariate>'
            "</covariates></trait>"
        )

        committer.commit_trait(element, _columns(user, variable), 0)

        assert "level" in element.get(MODEL_VALIDATION_ATTR)
        assert len(errors.model_validation) == 1

    def test_database_rejection(self, committer, errors):
        """A constraint violation annotates the trait and aborts."""
        user = UserFactory()
        variable = VariableFactory()
        element = ET.fromstring('<trait mean="2.5"/>')

        with pytest.raises(DatabaseInsertionError):
            committer.commit_trait(element, _columns(user, variable, site_id=9999), 0)

        assert element.get(DATABASE_EXCEPTION_ATTR)
        assert len(errors.database) == 1
