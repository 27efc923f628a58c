#!/usr/bin/env python3
"""Error types and the per-submission error accumulator.

Each exception carries a Severity telling the transaction coordinator what
to do with it:

- RECOVERABLE: record it and keep walking; the submission still rolls back
  at the end because an error list is non-empty.
- BRANCH_FATAL: stop the walk; nothing after this point can be trusted.
- TRANSACTION_FATAL: stop immediately; the connection state is unreliable.
"""

from dataclasses import dataclass, field
from enum import Enum
from xml.etree.ElementTree import Element

ERROR_ATTR = "error"
MODEL_VALIDATION_ATTR = "model_validation_errors"
DATABASE_EXCEPTION_ATTR = "database_exception"

BAD_DATE_TAG = "bad date specification; see error output"


class Severity(str, Enum):
    RECOVERABLE = "recoverable"
    BRANCH_FATAL = "branch_fatal"
    TRANSACTION_FATAL = "transaction_fatal"


class TraitDataError(Exception):
    """Base class for every error raised while ingesting a trait document."""

    severity = Severity.RECOVERABLE


class InvalidDocument(TraitDataError):
    """Document failed the grammar, or has a structural problem the grammar can't express."""

    severity = Severity.BRANCH_FATAL

    def __init__(self, messages):
        if isinstance(messages, str):
            messages = [messages]
        self.messages = list(messages)
        super().__init__("; ".join(self.messages))


class InvalidData(TraitDataError):
    """Data problem that makes it unsafe to continue, e.g. an ambiguous entity."""

    severity = Severity.BRANCH_FATAL


class DatabaseInsertionError(TraitDataError):
    """The database rejected a statement; the transaction must be abandoned."""

    severity = Severity.TRANSACTION_FATAL


class InvalidDateSpecification(TraitDataError):
    """Malformed or contradictory date attributes on a node."""

    def __init__(self, node: Element, message: str, tag_message: str = None):
        node.set(ERROR_ATTR, tag_message or message)
        super().__init__(message)


class NotFoundError(TraitDataError):
    def __init__(self, node: Element, kind: str, criteria: dict | None, message: str = None):
        node.set(ERROR_ATTR, "match not found")
        self.kind = kind
        self.criteria = criteria
        super().__init__(message or f"No {kind} could be found matching {criteria}")


class NotUniqueError(TraitDataError):
    def __init__(self, node: Element, kind: str, criteria: dict):
        node.set(ERROR_ATTR, "multiple matches")
        self.kind = kind
        self.criteria = criteria
        super().__init__(f"Multiple {kind} objects were found matching {criteria}")


@dataclass
class ErrorSet:
    """Errors accumulated while processing one submission.

    Created fresh for every submission and handed back with the result;
    any non-empty list means the submission is rolled back.
    """

    structure: list[str] = field(default_factory=list)
    lookup: list[str] = field(default_factory=list)
    model_validation: list[str] = field(default_factory=list)
    database: list[str] = field(default_factory=list)
    date: list[str] = field(default_factory=list)

    def has_errors(self) -> bool:
        return any((self.structure, self.lookup, self.model_validation, self.database, self.date))

    def total(self) -> int:
        return sum(len(errors) for errors in self.as_dict().values())

    def as_dict(self) -> dict[str, list[str]]:
        return {
            "structure": list(self.structure),
            "lookup": list(self.lookup),
            "model_validation": list(self.model_validation),
            "database": list(self.database),
            "date": list(self.date),
        }
