#!/usr/bin/env python3
"""Insertion of trait rows and their covariates."""

import logging
from typing import Any
from xml.etree.ElementTree import Element

from pydantic import ValidationError
from sqlalchemy.exc import DBAPIError
from sqlalchemy.orm import Session

from ....models.models import CovariateRecord, TraitRecord
from ....models.tables import Covariate, Trait, Variable
from .errors import (
    DATABASE_EXCEPTION_ATTR,
    MODEL_VALIDATION_ATTR,
    DatabaseInsertionError,
    ErrorSet,
)
from .references import ForeignKeyResolver

logger = logging.getLogger(__name__)


class RecordCommitter:

    def __init__(self, session: Session, references: ForeignKeyResolver, errors: ErrorSet):
        self.session = session
        self.references = references
        self.errors = errors
        self.new_trait_ids: list[int] = []

    def commit_trait(self, trait_element: Element, column_values: dict[str, Any], lookup_mark: int) -> int | None:
        """Validate and insert one trait plus its covariates.

        Args:
            trait_element: The ``trait`` node, annotated on failure
            column_values: Fully resolved column set for the traits row
            lookup_mark: Size of the lookup error list when this trait's
                processing began; covariates are only attached if no lookup
                error was recorded since

        Returns:
            The new trait id, or None if the row failed validation

        Raises:
            DatabaseInsertionError: The database rejected a statement
        """
        try:
            record = TraitRecord.model_validate(
                column_values, context={"variable_range": self._variable_range(column_values.get("variable_id"))}
            )
            trait = Trait(**record.model_dump())
            self._flush(trait_element, trait)

            for covariate_element in trait_element.findall("covariates/covariate"):
                self._commit_covariate(trait_element, covariate_element, trait.id, lookup_mark)

        except ValidationError as invalid:
            messages = _validation_messages(invalid)
            trait_element.set(MODEL_VALIDATION_ATTR, str(messages))
            self.errors.model_validation.append(str(messages))
            logger.warning(f"Trait failed validation: {messages}")
            return None

        self.new_trait_ids.append(trait.id)
        logger.debug(f"Inserted trait {trait.id}")
        return trait.id

    def _commit_covariate(self, trait_element: Element, covariate_element: Element, trait_id: int,
                          lookup_mark: int) -> None:
        column_values = self.references.resolve(covariate_element, {})

        if len(self.errors.lookup) > lookup_mark:
            logger.info(f"Skipping covariate of trait {trait_id}: unresolved references")
            return

        variable_id = column_values.get("variable_id")
        record = CovariateRecord.model_validate(
            {"trait_id": trait_id, "variable_id": variable_id, "level": covariate_element.get("level")},
            context={"variable_range": self._variable_range(variable_id)}
        )
        self._flush(trait_element, Covariate(**record.model_dump()))

    def _flush(self, trait_element: Element, row) -> None:
        self.session.add(row)
        try:
            self.session.flush()
        except DBAPIError as e:
            message = _database_message(e)
            trait_element.set(DATABASE_EXCEPTION_ATTR, message)
            self.errors.database.append(message)
            logger.error(f"Database rejected {type(row).__name__} insert: {message}")
            # The transaction is no longer usable
            raise DatabaseInsertionError(message) from e

    def _variable_range(self, variable_id) -> tuple:
        if variable_id is None:
            return (None, None)
        variable = self.session.get(Variable, variable_id)
        if variable is None:
            return (None, None)
        return (variable.min, variable.max)


def _validation_messages(invalid: ValidationError) -> dict[str, list[str]]:
    messages: dict[str, list[str]] = {}
    for error in invalid.errors():
        field = ".".join(str(part) for part in error["loc"]) or "base"
        messages.setdefault(field, []).append(error["msg"])
    return messages


def _database_message(error: DBAPIError) -> str:
    original = getattr(error, "orig", None) or error
    text = str(original).strip()
    if "ERROR:" in text:
        text = text.split("ERROR:", 1)[1].strip()
    return text.splitlines()[0] if text else type(original).__name__
