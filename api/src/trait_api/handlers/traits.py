#!/usr/bin/env python3

import logging

from fastapi import HTTPException
from fastapi.responses import JSONResponse

from ..clients.database_client import DatabaseClient
from ..core.config import ingest_config
from ..models.models import ErrorSummary, TraitSubmissionResponse, ValidationResult
from ..models.tables import User
from ..services.domain.trait_data import SubmissionResult, TransactionCoordinator
from ..services.domain.trait_data.errors import Severity

logger = logging.getLogger(__name__)


def _build_response(result: SubmissionResult) -> TraitSubmissionResponse:
    return TraitSubmissionResponse(
        status="success" if result.committed else "failed",
        committed=result.committed,
        new_trait_ids=result.new_trait_ids,
        errors=ErrorSummary(**result.errors.as_dict()),
        document=result.document_dict(),
        document_xml=result.document_xml(),
    )


def _status_code(result: SubmissionResult) -> int:
    """Map a submission outcome to an HTTP status.

    201 committed, 400 document rejected before processing, 500 database
    failure, 422 for every other data problem.
    """
    if result.committed:
        return 201
    if result.structural_errors or result.errors.structure:
        return 400
    if result.errors.database or (result.fatal is not None and result.fatal.severity is Severity.TRANSACTION_FATAL):
        return 500
    return 422


def handle_trait_submission(content: bytes, user: User, db: DatabaseClient,
                            filename: str = "submission.xml") -> JSONResponse:
    """Process one uploaded trait data document.

    Args:
        content: Raw request body
        user: Authenticated submitter; stamped on every inserted trait
        db: Database client
        filename: Name used in validation reports

    Returns:
        JSON response carrying the annotated document and error lists

    Raises:
        HTTPException: Empty or oversized body
    """
    if not content:
        raise HTTPException(status_code=400, detail="Request body is empty")

    if len(content) > ingest_config.MAX_DOCUMENT_BYTES:
        raise HTTPException(
            status_code=413,
            detail=f"Document exceeds the {ingest_config.MAX_DOCUMENT_BYTES} byte limit"
        )

    with db.session() as session:
        result = TransactionCoordinator(session, user.id, filename=filename).submit(content)

    response = _build_response(result)
    status_code = _status_code(result)

    if result.structural_errors:
        # Same report shape as the schema validation endpoints
        report = ValidationResult(
            valid=False,
            errors=result.structural_errors,
            summary=f"Validation failed with {len(result.structural_errors)} error(s)",
        )
        body = response.model_dump()
        body["validation_details"] = report.model_dump()
        logger.info(f"Submission {result.submission_id} from {user.login} rejected: {report.summary}")
        return JSONResponse(status_code=status_code, content=body)

    logger.info(
        f"Submission {result.submission_id} from {user.login}: {response.status} "
        f"({len(result.new_trait_ids)} trait(s), {result.errors.total()} error(s))"
    )
    return JSONResponse(status_code=status_code, content=response.model_dump())
