#!/usr/bin/env python3
"""Parsing and structural validation of trait data documents.

The grammar mirrors the TraitData schema: a ``trait-data-set`` root that is
itself a trait group, nested ``trait-group`` elements, ``defaults`` and
``entity`` declarations, and ``trait`` measurements with optional stat,
notes, covariates and reference children.
"""

import logging
import re
from dataclasses import dataclass, field
from xml.etree.ElementTree import Element, ParseError

# Use defusedxml for secure XML parsing (prevents XXE attacks)
import defusedxml.ElementTree as ET
from defusedxml import DefusedXmlException

from ....models.models import ValidationError
from ....models.tables import Citation, Cultivar, Method, Site, Specie, Treatment, Variable
from .datetimes import LOCAL_DATE_ONLY, LOCAL_DATETIME, UTC_DATE_ONLY, UTC_DATETIME

logger = logging.getLogger(__name__)

DECIMAL = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?$")
POSITIVE_INTEGER = re.compile(r"^[1-9]\d*$")
ACCESS_LEVEL = re.compile(r"^[1-4]$")

REFERENCE_TAGS = ("site", "species", "citation", "treatment", "variable", "method")
DATE_ATTRIBUTES = ("local_datetime", "utc_datetime", "access_level")


def _reference_attributes(model) -> frozenset[str]:
    return frozenset(column.name for column in model.__table__.columns if column.name != "id")


@dataclass(frozen=True)
class ElementRule:
    children: tuple[str, ...] = ()
    single: tuple[str, ...] = ()  # children allowed at most once
    required_children: tuple[str, ...] = ()
    attributes: frozenset[str] = frozenset()
    required: tuple[str, ...] = ()
    patterns: dict = field(default_factory=dict)
    text: bool = False
    min_attributes: int = 0


_GROUP = ElementRule(
    children=("entity", "defaults", "trait", "trait-group"),
    single=("entity", "defaults"),
)

_DATE_PATTERNS = {
    "access_level": (ACCESS_LEVEL, "an integer from 1 to 4"),
    "local_datetime": ((LOCAL_DATE_ONLY, LOCAL_DATETIME), "YYYY-MM-DD or YYYY-MM-DDThh:mm:ss"),
    "utc_datetime": ((UTC_DATE_ONLY, UTC_DATETIME), "YYYY-MM-DD[Z] or YYYY-MM-DDThh:mm:ssZ"),
}

GRAMMAR: dict[str, ElementRule] = {
    "trait-data-set": _GROUP,
    "trait-group": _GROUP,
    "entity": ElementRule(attributes=frozenset({"name", "notes"})),
    "defaults": ElementRule(
        children=REFERENCE_TAGS,
        single=REFERENCE_TAGS,
        attributes=frozenset(DATE_ATTRIBUTES),
        patterns=_DATE_PATTERNS,
    ),
    "trait": ElementRule(
        children=("entity", "stat", "notes", "covariates") + REFERENCE_TAGS,
        single=("entity", "stat", "notes", "covariates") + REFERENCE_TAGS,
        attributes=frozenset(("mean",) + DATE_ATTRIBUTES),
        required=("mean",),
        patterns={"mean": (DECIMAL, "a decimal number"), **_DATE_PATTERNS},
    ),
    "stat": ElementRule(
        attributes=frozenset({"name", "sample_size", "value"}),
        required=("name", "sample_size", "value"),
        patterns={
            "sample_size": (POSITIVE_INTEGER, "a positive integer"),
            "value": (DECIMAL, "a decimal number"),
        },
    ),
    "notes": ElementRule(text=True),
    "covariates": ElementRule(children=("covariate",), required_children=("covariate",)),
    "covariate": ElementRule(
        children=("variable",),
        single=("variable",),
        required_children=("variable",),
        attributes=frozenset({"level"}),
        required=("level",),
        patterns={"level": (DECIMAL, "a decimal number")},
    ),
    "site": ElementRule(attributes=_reference_attributes(Site), min_attributes=1),
    "species": ElementRule(
        children=("cultivar",), single=("cultivar",),
        attributes=_reference_attributes(Specie), min_attributes=1,
    ),
    "cultivar": ElementRule(attributes=_reference_attributes(Cultivar), min_attributes=1),
    "citation": ElementRule(attributes=_reference_attributes(Citation), min_attributes=1),
    "treatment": ElementRule(attributes=_reference_attributes(Treatment), min_attributes=1),
    "variable": ElementRule(attributes=_reference_attributes(Variable), min_attributes=1),
    "method": ElementRule(attributes=_reference_attributes(Method), min_attributes=1),
}

ROOT_TAG = "trait-data-set"


class DocumentValidator:
    """Checks a raw document against the trait data grammar."""

    def __init__(self, filename: str = "submission.xml"):
        self.filename = filename

    def parse(self, content: bytes | str) -> tuple[Element | None, list[ValidationError]]:
        """Parse and validate the document.

        Returns:
            Tuple of (root element or None if unparseable, violations)
        """
        try:
            root = ET.fromstring(content)
        except ParseError as e:
            line, column = getattr(e, "position", (None, None))
            return None, [self._violation(f"Document is not well-formed XML: {e}", "well_formed", None,
                                          line=line, column=column)]
        except DefusedXmlException as e:
            return None, [self._violation(f"Document contains forbidden XML constructs: {e}", "secure_xml", None)]

        violations = self.validate(root)
        if violations:
            logger.info(f"Document {self.filename} has {len(violations)} structural violation(s)")
        return root, violations

    def validate(self, root: Element) -> list[ValidationError]:
        violations: list[ValidationError] = []
        if root.tag != ROOT_TAG:
            violations.append(self._violation(
                f"Root element must be <{ROOT_TAG}>, found <{root.tag}>", "root_element", f"/{root.tag}"
            ))
            return violations
        self._check(root, f"/{root.tag}", violations)
        return violations

    def _check(self, element: Element, path: str, violations: list[ValidationError]) -> None:
        rule = GRAMMAR.get(element.tag)
        if rule is None:
            violations.append(self._violation(f"Unexpected element <{element.tag}>", "unknown_element", path))
            return

        for name in rule.required:
            if name not in element.attrib:
                violations.append(self._violation(
                    f"<{element.tag}> is missing required attribute '{name}'", "required_attribute", path
                ))

        for name, value in element.attrib.items():
            if name not in rule.attributes:
                violations.append(self._violation(
                    f"Attribute '{name}' is not allowed on <{element.tag}>", "unknown_attribute", path
                ))
                continue
            if name in rule.patterns:
                patterns, description = rule.patterns[name]
                if not isinstance(patterns, tuple):
                    patterns = (patterns,)
                if not any(p.match(value) for p in patterns):
                    violations.append(self._violation(
                        f"Attribute '{name}' on <{element.tag}> must be {description}, got {value!r}",
                        "attribute_format", path
                    ))

        if len(element.attrib) < rule.min_attributes:
            violations.append(self._violation(
                f"<{element.tag}> needs at least {rule.min_attributes} attribute(s) to select a row",
                "selection_attributes", path
            ))

        if not rule.text and element.text and element.text.strip():
            violations.append(self._violation(f"<{element.tag}> may not contain text", "text_content", path))

        counts: dict[str, int] = {}
        for child in element:
            counts[child.tag] = counts.get(child.tag, 0) + 1
            child_path = f"{path}/{child.tag}[{counts[child.tag]}]"
            if child.tag not in rule.children:
                violations.append(self._violation(
                    f"<{child.tag}> is not allowed inside <{element.tag}>", "unexpected_child", child_path
                ))
                continue
            self._check(child, child_path, violations)

        for tag in rule.single:
            if counts.get(tag, 0) > 1:
                violations.append(self._violation(
                    f"<{element.tag}> may contain at most one <{tag}>", "max_occurs", path
                ))
        for tag in rule.required_children:
            if counts.get(tag, 0) == 0:
                violations.append(self._violation(
                    f"<{element.tag}> must contain at least one <{tag}>", "min_occurs", path
                ))

    def _violation(self, message: str, rule: str, context: str | None, line: int = None,
                   column: int = None) -> ValidationError:
        return ValidationError(
            file=self.filename,
            line=line,
            column=column,
            message=message,
            severity="error",
            rule=rule,
            context=context,
        )
