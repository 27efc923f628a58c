#!/usr/bin/env python3
"""Get-or-create resolution of entity elements."""

import logging
from xml.etree.ElementTree import Element

from sqlalchemy import select
from sqlalchemy.orm import Session

from ....models.tables import Entity
from .errors import ErrorSet, InvalidData, NotFoundError, NotUniqueError

logger = logging.getLogger(__name__)


class EntityResolver:
    """Finds the entity named by an ``entity`` element, creating it when there is none.

    Candidates are matched on name only. An existing entity whose notes
    conflict with the supplied notes is not a match, and since a second
    entity of the same name can't be told apart from it either, that case
    and multiple name matches both abort the submission.
    """

    def __init__(self, session: Session, errors: ErrorSet):
        self.session = session
        self.errors = errors

    def get_or_create(self, element: Element) -> Entity:
        """Return the entity for ``element``.

        Raises:
            InvalidData: The name matches several entities, or one entity with
                conflicting notes
        """
        attributes = dict(element.attrib)
        name = attributes.get("name")

        try:
            return self._find_or_create(element, attributes, name)
        except (NotFoundError, NotUniqueError) as e:
            logger.error(f"Entity resolution failed: {e}")
            self.errors.lookup.append(str(e))
            raise InvalidData(str(e)) from e

    def _find_or_create(self, element: Element, attributes: dict, name: str | None) -> Entity:
        matches = []
        if name and name.strip():
            matches = self.session.scalars(select(Entity).filter_by(name=name).limit(2)).all()

        if not matches:
            entity = Entity(name=name, notes=attributes.get("notes"))
            self.session.add(entity)
            self.session.flush()
            logger.info(f"Created entity {entity.id} ({name!r})")
            return entity

        if len(matches) > 1:
            raise NotUniqueError(element, "entity", {"name": name})

        entity = matches[0]
        notes = attributes.get("notes")
        if notes is not None and entity.notes != notes:
            raise NotFoundError(
                element, "entity", None,
                f'The existing entity with name "{entity.name}" has a conflicting value for notes.'
            )

        logger.debug(f"Reusing entity {entity.id} ({name!r})")
        return entity
