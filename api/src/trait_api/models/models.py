#!/usr/bin/env python3

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

# Pydantic Models

STAT_NAMES = ("SD", "SE", "MSE", "95%CI", "LSD", "MSD", "HSD")

# dateloc / timeloc precision codes (9 = unspecified)
DATELOC_CODES = (5, 5.5, 6, 7, 8, 9, 95, 96, 97)
TIMELOC_CODES = (1, 2, 3, 4, 9)


class ValidationError(BaseModel):
    """Structured error from the document grammar check."""
    file: str  # Document being validated
    line: int | None = None  # Line number if available
    column: int | None = None  # Column number if available
    message: str  # Error message
    severity: str = "error"  # 'error', 'warning', 'info'
    rule: str | None = None  # Grammar rule identifier
    context: str | None = None  # Element path, e.g. /trait-data-set/trait[2]


class ValidationResult(BaseModel):
    """Result of a validation operation."""
    valid: bool
    errors: list[ValidationError] = []
    warnings: list[ValidationError] = []
    summary: str  # Human-readable summary


class ErrorSummary(BaseModel):
    """The five error lists accumulated while processing one submission."""
    structure: list[str] = []
    lookup: list[str] = []
    model_validation: list[str] = []
    database: list[str] = []
    date: list[str] = []


class TraitSubmissionResponse(BaseModel):
    status: str  # 'success' or 'failed'
    committed: bool
    new_trait_ids: list[int] = []
    errors: ErrorSummary = ErrorSummary()
    document: dict[str, Any] | None = None  # Annotated document as nested dict
    document_xml: str | None = None  # Annotated document as XML


# Row validation models


class TraitRecord(BaseModel):
    """Column values for one traits row, validated before insert.

    The owning variable's plausible range is passed through the validation
    context as ``variable_range`` (min, max); either bound may be None.
    """

    model_config = ConfigDict(extra="forbid")

    variable_id: int
    mean: float
    user_id: int
    entity_id: int | None = None
    site_id: int | None = None
    specie_id: int | None = None
    cultivar_id: int | None = None
    citation_id: int | None = None
    treatment_id: int | None = None
    method_id: int | None = None
    date: datetime | None = None
    dateloc: float = 9
    timeloc: float = 9
    access_level: int | None = Field(default=None, ge=1, le=4)
    statname: str | None = None
    n: int | None = Field(default=None, ge=1)
    stat: float | None = None
    notes: str = ""

    @field_validator("statname")
    @classmethod
    def statname_known(cls, value):
        if value is not None and value not in STAT_NAMES:
            raise ValueError(f"must be one of {', '.join(STAT_NAMES)}")
        return value

    @field_validator("dateloc")
    @classmethod
    def dateloc_known(cls, value):
        if value not in DATELOC_CODES:
            raise ValueError(f"{value} is not a recognized date precision code")
        return value

    @field_validator("timeloc")
    @classmethod
    def timeloc_known(cls, value):
        if value not in TIMELOC_CODES:
            raise ValueError(f"{value} is not a recognized time precision code")
        return value

    @model_validator(mode="after")
    def stat_complete(self):
        if self.statname is not None and (self.n is None or self.stat is None):
            raise ValueError("statname requires both n and stat")
        return self

    @model_validator(mode="after")
    def mean_in_range(self, info: ValidationInfo):
        low, high = (info.context or {}).get("variable_range", (None, None))
        if low is not None and self.mean < low:
            raise ValueError(f"mean {self.mean} is below the minimum {low} for this variable")
        if high is not None and self.mean > high:
            raise ValueError(f"mean {self.mean} is above the maximum {high} for this variable")
        return self


class CovariateRecord(BaseModel):
    model_config = ConfigDict(extra="forbid")

    trait_id: int
    variable_id: int
    level: float

    @model_validator(mode="after")
    def level_in_range(self, info: ValidationInfo):
        low, high = (info.context or {}).get("variable_range", (None, None))
        if low is not None and self.level < low:
            raise ValueError(f"level {self.level} is below the minimum {low} for this variable")
        if high is not None and self.level > high:
            raise ValueError(f"level {self.level} is above the maximum {high} for this variable")
        return self
