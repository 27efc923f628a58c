#!/usr/bin/env python3
"""Default contexts and the resolver that merges a node's overrides into them."""

import logging
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any
from xml.etree.ElementTree import Element

from .datetimes import DateTimeNormalizer
from .errors import ErrorSet, InvalidDateSpecification
from .references import ForeignKeyResolver

logger = logging.getLogger(__name__)


class DefaultContext(Mapping):
    """Immutable column-name -> value mapping inherited down the document tree.

    ``merge`` returns a new context, so a subtree can never change what its
    parent or siblings see.
    """

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, Any] = None):
        self._values = MappingProxyType(dict(values or {}))

    def __getitem__(self, key):
        return self._values[key]

    def __iter__(self):
        return iter(self._values)

    def __len__(self):
        return len(self._values)

    def __repr__(self):
        return f"DefaultContext({dict(self._values)!r})"

    def merge(self, updates: Mapping[str, Any] = None, **extra) -> "DefaultContext":
        values = dict(self._values)
        values.update(updates or {})
        values.update(extra)
        return DefaultContext(values)

    def to_dict(self) -> dict[str, Any]:
        return dict(self._values)


class DefaultsResolver:
    """Merges one element's foreign keys, date/time and access level into a context."""

    def __init__(self, references: ForeignKeyResolver, datetimes: DateTimeNormalizer, errors: ErrorSet):
        self.references = references
        self.datetimes = datetimes
        self.errors = errors

    def merge(self, element: Element, context: DefaultContext, scope: Element = None) -> DefaultContext:
        """Return a new context with ``element``'s overrides applied.

        Args:
            element: A ``defaults`` or ``trait`` element
            context: Inherited context; never modified
            scope: For a ``defaults`` element, the group that owns it

        Raises:
            InvalidDocument: Treatment/citation ordering problems (fatal)
        """
        merged = context.merge(self.references.resolve(element, context))

        try:
            merged = merged.merge(self.datetimes.normalize(element, merged, scope=scope))
        except InvalidDateSpecification as e:
            logger.warning(f"Date specification rejected on <{element.tag}>: {e}", extra={"node": element.tag})
            self.errors.date.append(str(e))

        access_level = element.get("access_level")
        if access_level:
            merged = merged.merge(access_level=int(access_level))

        return merged
