#!/usr/bin/env python3
"""All-or-nothing processing of one trait data submission."""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any
from xml.etree.ElementTree import Element, tostring

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ....models.models import ValidationError
from .committer import RecordCommitter
from .datetimes import DateTimeNormalizer
from .defaults import DefaultsResolver
from .document import DocumentValidator
from .entities import EntityResolver
from .errors import DatabaseInsertionError, ErrorSet, InvalidDocument, Severity, TraitDataError
from .references import ForeignKeyResolver
from .walker import GroupWalker

logger = logging.getLogger(__name__)


@dataclass
class SubmissionResult:
    """Outcome of one submission.

    ``document`` is the original tree with error annotations attached;
    ``new_trait_ids`` is only non-empty when the submission was committed.
    """

    submission_id: str
    committed: bool
    document: Element | None
    errors: ErrorSet
    new_trait_ids: list[int] = field(default_factory=list)
    structural_errors: list[ValidationError] = field(default_factory=list)
    fatal: TraitDataError | None = None

    def document_xml(self) -> str | None:
        if self.document is None:
            return None
        return tostring(self.document, encoding="unicode")

    def document_dict(self) -> dict[str, Any] | None:
        if self.document is None:
            return None
        return {self.document.tag: element_to_dict(self.document)}


class TransactionCoordinator:
    """Validates a document, walks it inside one transaction, then commits or rolls back.

    Any error recorded anywhere during the walk rolls the whole submission
    back; the caller gets the annotated document either way.
    """

    def __init__(self, session: Session, user_id: int, filename: str = "submission.xml"):
        self.session = session
        self.user_id = user_id
        self.filename = filename

    def submit(self, content: bytes | str) -> SubmissionResult:
        submission_id = uuid.uuid4().hex[:12]
        log_extra = {"submission_id": submission_id, "user_id": self.user_id}
        errors = ErrorSet()

        root, violations = DocumentValidator(self.filename).parse(content)
        if violations:
            errors.structure.extend(v.message for v in violations)
            logger.info(f"Rejected submission {submission_id}: document failed validation", extra=log_extra)
            return SubmissionResult(
                submission_id=submission_id,
                committed=False,
                document=root,
                errors=errors,
                structural_errors=violations,
                fatal=InvalidDocument([v.message for v in violations]),
            )

        logger.info(f"Processing submission {submission_id}", extra=log_extra)

        references = ForeignKeyResolver(self.session, errors)
        committer = RecordCommitter(self.session, references, errors)
        walker = GroupWalker(
            entities=EntityResolver(self.session, errors),
            defaults=DefaultsResolver(references, DateTimeNormalizer(self.session), errors),
            committer=committer,
            errors=errors,
            user_id=self.user_id,
        )

        fatal = None
        try:
            walker.walk(root)
        except TraitDataError as e:
            if e.severity is Severity.RECOVERABLE:
                raise
            fatal = e
            logger.error(f"Submission {submission_id} aborted ({e.severity.value}): {e}", extra=log_extra)
        except SQLAlchemyError as e:
            # Failures outside trait/covariate inserts, e.g. while creating an entity
            errors.database.append(str(getattr(e, "orig", None) or e))
            fatal = DatabaseInsertionError(str(e))
            logger.error(f"Submission {submission_id} aborted by database error: {e}", extra=log_extra)

        if fatal is not None or errors.has_errors():
            self.session.rollback()
            logger.info(
                f"Rolled back submission {submission_id}: {errors.total()} error(s)",
                extra={**log_extra, "errors": errors.as_dict()},
            )
            return SubmissionResult(
                submission_id=submission_id,
                committed=False,
                document=root,
                errors=errors,
                fatal=fatal,
            )

        self.session.commit()
        logger.info(
            f"Committed submission {submission_id}: {len(committer.new_trait_ids)} trait(s)",
            extra=log_extra,
        )
        return SubmissionResult(
            submission_id=submission_id,
            committed=True,
            document=root,
            errors=errors,
            new_trait_ids=list(committer.new_trait_ids),
        )


def element_to_dict(element: Element) -> Any:
    """Convert an element to nested dicts: attributes as keys, repeated children as lists."""
    result: dict[str, Any] = dict(element.attrib)
    for child in element:
        value = element_to_dict(child)
        if child.tag in result:
            if not isinstance(result[child.tag], list):
                result[child.tag] = [result[child.tag]]
            result[child.tag].append(value)
        else:
            result[child.tag] = value
    text = (element.text or "").strip()
    if text:
        if not result:
            return text
        result["text"] = text
    return result or None
