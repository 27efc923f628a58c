#!/usr/bin/env python3
"""Depth-first traversal of the trait-group tree."""

import logging
from xml.etree.ElementTree import Element

from .committer import RecordCommitter
from .defaults import DefaultContext, DefaultsResolver
from .entities import EntityResolver
from .errors import ErrorSet

logger = logging.getLogger(__name__)

GROUP_TAGS = ("trait-data-set", "trait-group")


class GroupWalker:
    """Walks groups and traits, threading default contexts downward.

    The root ``trait-data-set`` element is handled exactly like a
    ``trait-group``.
    """

    def __init__(self, entities: EntityResolver, defaults: DefaultsResolver, committer: RecordCommitter,
                 errors: ErrorSet, user_id: int):
        self.entities = entities
        self.defaults = defaults
        self.committer = committer
        self.errors = errors
        self.user_id = user_id

    def walk(self, root: Element) -> None:
        self.process_group(root, DefaultContext())

    def process_group(self, group: Element, inherited: DefaultContext) -> None:
        context = inherited

        entity_element = group.find("entity")
        if entity_element is not None:
            entity = self.entities.get_or_create(entity_element)
            context = context.merge(entity_id=entity.id)

        defaults_element = group.find("defaults")
        if defaults_element is not None:
            context = self.defaults.merge(defaults_element, context, scope=group)

        logger.debug(f"Entering <{group.tag}> with defaults {context.to_dict()}")

        for trait in group.findall("trait"):
            self.process_trait(trait, context)

        for subgroup in group.findall("trait-group"):
            self.process_group(subgroup, context)

    def process_trait(self, trait: Element, inherited: DefaultContext) -> int | None:
        lookup_mark = len(self.errors.lookup)
        context = inherited

        # An entity supplied by an ancestor group wins over the trait's own
        if "entity_id" not in context:
            entity_element = trait.find("entity")
            if entity_element is not None:
                entity = self.entities.get_or_create(entity_element)
                context = context.merge(entity_id=entity.id)

        context = self.defaults.merge(trait, context)

        column_values = context.to_dict()
        column_values.update(stat_columns(trait))
        column_values["mean"] = trait.get("mean")

        notes = trait.find("notes")
        column_values["notes"] = (notes.text or "") if notes is not None else ""

        if "date" not in column_values:
            column_values["dateloc"] = 9
            column_values["timeloc"] = 9

        column_values["user_id"] = self.user_id

        return self.committer.commit_trait(trait, column_values, lookup_mark)


def stat_columns(element: Element) -> dict:
    stat = element.find("stat")
    if stat is None:
        return {}
    return {
        "statname": stat.get("name"),
        "n": stat.get("sample_size"),
        "stat": stat.get("value"),
    }
