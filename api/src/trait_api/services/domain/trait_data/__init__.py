"""
Trait Data Ingestion Domain

Handles validation of trait data documents and their transactional
insertion into the trait database.
"""

from .coordinator import SubmissionResult, TransactionCoordinator
from .document import DocumentValidator
from .errors import ErrorSet, Severity

__all__ = ["DocumentValidator", "ErrorSet", "Severity", "SubmissionResult", "TransactionCoordinator"]
