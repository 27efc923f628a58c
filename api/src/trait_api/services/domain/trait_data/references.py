#!/usr/bin/env python3
"""Resolution of reference sub-elements to existing reference-row ids.

Each recognized child element (site, species, citation, treatment,
variable, method) is matched by exact equality on all of its attributes.
Lookup misses are recoverable: they are recorded in the ErrorSet, the node
is annotated, and the unresolved key is left out of the result.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any
from xml.etree.ElementTree import Element

from sqlalchemy import select
from sqlalchemy.orm import Session

from ....models.tables import Citation, Cultivar, Method, Site, Specie, Treatment, Variable
from .errors import ErrorSet, InvalidDocument, NotFoundError, NotUniqueError

logger = logging.getLogger(__name__)


class ReferenceKind(str, Enum):
    SITE = "site"
    SPECIES = "species"
    CULTIVAR = "cultivar"
    CITATION = "citation"
    TREATMENT = "treatment"
    VARIABLE = "variable"
    METHOD = "method"


@dataclass(frozen=True)
class ReferenceTarget:
    model: type
    column: str


REFERENCE_TARGETS: dict[ReferenceKind, ReferenceTarget] = {
    ReferenceKind.SITE: ReferenceTarget(Site, "site_id"),
    ReferenceKind.SPECIES: ReferenceTarget(Specie, "specie_id"),
    ReferenceKind.CULTIVAR: ReferenceTarget(Cultivar, "cultivar_id"),
    ReferenceKind.CITATION: ReferenceTarget(Citation, "citation_id"),
    ReferenceKind.TREATMENT: ReferenceTarget(Treatment, "treatment_id"),
    ReferenceKind.VARIABLE: ReferenceTarget(Variable, "variable_id"),
    ReferenceKind.METHOD: ReferenceTarget(Method, "method_id"),
}

# Kinds that may appear directly under a trait or defaults element;
# cultivar only appears nested inside species.
TOP_LEVEL_KINDS = frozenset(kind for kind in ReferenceKind if kind is not ReferenceKind.CULTIVAR)


def reference_kind(tag: str) -> ReferenceKind | None:
    try:
        kind = ReferenceKind(tag)
    except ValueError:
        return None
    return kind if kind in TOP_LEVEL_KINDS else None


def selection_criteria(model: type, element: Element, kind: str) -> dict[str, Any]:
    """Build an exact-match filter from the element's attributes, typed per column."""
    criteria = {}
    columns = model.__table__.columns
    for name, raw in element.attrib.items():
        if name not in columns:
            raise NotFoundError(element, kind, dict(element.attrib), f"A {kind} has no attribute named {name!r}")
        criteria[name] = _coerce(columns[name].type.python_type, raw)
    return criteria


def _coerce(python_type: type, raw: str):
    if python_type is bool:
        return raw.strip().lower() in ("true", "1", "yes", "t")
    if python_type in (int, float):
        try:
            return python_type(raw)
        except ValueError:
            return raw
    return raw


class ForeignKeyResolver:

    def __init__(self, session: Session, errors: ErrorSet):
        self.session = session
        self.errors = errors
        self._lookups = {
            ReferenceKind.SPECIES: self._resolve_species,
        }

    def resolve(self, parent: Element, context) -> dict[str, Any]:
        """Look up the id of every reference child of ``parent``.

        Args:
            parent: Element whose children name reference rows
            context: Inherited default context (read only)

        Returns:
            Mapping of foreign-key column to id for every resolved reference

        Raises:
            InvalidDocument: A citation is set below a treatment default, or a
                treatment has no citation to be validated against
        """
        ids: dict[str, Any] = {}
        treatment_element = None

        for child in parent:
            kind = reference_kind(child.tag)
            if kind is None:
                continue

            if kind is ReferenceKind.TREATMENT:
                # Needs the citation, which may come later in document order
                treatment_element = child
                continue

            if kind is ReferenceKind.CITATION and context.get("treatment_id") is not None:
                message = "You can't reset the citation after setting a treatment default."
                self.errors.structure.append(message)
                raise InvalidDocument(message)

            lookup = self._lookups.get(kind, self._resolve_simple)
            try:
                ids.update(lookup(kind, child))
            except (NotFoundError, NotUniqueError) as e:
                logger.warning(f"Reference lookup failed: {e}", extra={"node": child.tag})
                self.errors.lookup.append(str(e))

        if treatment_element is not None:
            try:
                ids.update(self._resolve_treatment(treatment_element, ids, context))
            except (NotFoundError, NotUniqueError) as e:
                logger.warning(f"Treatment lookup failed: {e}", extra={"node": "treatment"})
                self.errors.lookup.append(str(e))

        return ids

    def _resolve_simple(self, kind: ReferenceKind, element: Element) -> dict[str, Any]:
        target = REFERENCE_TARGETS[kind]
        criteria = selection_criteria(target.model, element, kind.value)
        row = self._single_match(element, kind, criteria, select(target.model).filter_by(**criteria))
        return {target.column: row.id}

    def _resolve_species(self, kind: ReferenceKind, element: Element) -> dict[str, Any]:
        ids = {}
        cultivar_element = element.find("cultivar")
        if cultivar_element is not None:
            # A cultivar miss is reported on the enclosing species element
            criteria = selection_criteria(Cultivar, cultivar_element, ReferenceKind.CULTIVAR.value)
            row = self._single_match(element, ReferenceKind.CULTIVAR, criteria, select(Cultivar).filter_by(**criteria))
            ids["cultivar_id"] = row.id
        else:
            # A species override invalidates any inherited cultivar
            ids["cultivar_id"] = None

        # The cultivar child is an element, not an attribute, so it never leaks into the criteria
        ids.update(self._resolve_simple(kind, element))
        return ids

    def _resolve_treatment(self, element: Element, ids: dict[str, Any], context) -> dict[str, Any]:
        citation_id = ids.get("citation_id")
        if citation_id is None:
            citation_id = context.get("citation_id")
        if citation_id is None:
            message = "You can't specify a treatment without specifying a citation."
            self.errors.structure.append(message)
            raise InvalidDocument(message)

        criteria = selection_criteria(Treatment, element, ReferenceKind.TREATMENT.value)
        statement = (
            select(Treatment)
            .filter_by(**criteria)
            .where(Treatment.citations.any(Citation.id == citation_id))
        )
        row = self._single_match(element, ReferenceKind.TREATMENT, statement=statement, criteria=criteria)
        return {"treatment_id": row.id}

    def _single_match(self, element: Element, kind: ReferenceKind, criteria: dict, statement):
        matches = self.session.scalars(statement.limit(2)).all()
        if not matches:
            raise NotFoundError(element, kind.value, criteria)
        if len(matches) > 1:
            raise NotUniqueError(element, kind.value, criteria)
        logger.debug(f"Resolved {kind.value} {criteria} to id {matches[0].id}")
        return matches[0]
