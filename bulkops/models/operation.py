"""Bulk operation, validation and result models."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class OperationKind(str, Enum):
    """Kinds of batch mutation supported by the issues API."""
    ASSIGN = "assign"
    STATUS = "status"
    LABELS = "labels"
    PRIORITY = "priority"
    SPRINT = "sprint"
    ESTIMATE = "estimate"
    COMPONENT = "component"
    VERSION = "version"


class LabelMode(str, Enum):
    """How a labels operation combines its value with existing labels."""
    ADD = "add"
    REMOVE = "remove"
    REPLACE = "replace"


class ValidationErrorKind(str, Enum):
    """Categories of pre-execution validation failures."""
    PERMISSION = "permission"
    CONFLICT = "conflict"
    VALIDATION = "validation"


class BulkOperation(BaseModel):
    """
    One batch mutation applied to every selected issue.

    `field` qualifies labels operations (add/remove/replace).
    `previous_values` maps issue id to the pre-operation field value and
    is filled in when the operation is recorded for undo.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    kind: OperationKind = Field(alias="type")
    field: str = ""
    value: Any = None
    previous_values: Optional[Dict[int, Any]] = Field(default=None, alias="previousValues")

    @property
    def label_mode(self) -> LabelMode:
        """Label mode for labels operations; anything unrecognised replaces."""
        if self.field == LabelMode.ADD.value:
            return LabelMode.ADD
        if self.field == LabelMode.REMOVE.value:
            return LabelMode.REMOVE
        return LabelMode.REPLACE

    def to_payload(self) -> Dict[str, Any]:
        """Wire representation sent to the batch-mutation endpoint."""
        return {"type": self.kind.value, "field": self.field, "value": self.value}

    def describe(self) -> str:
        if self.kind == OperationKind.LABELS:
            return f"labels {self.label_mode.value} {self.value!r}"
        return f"{self.kind.value} -> {self.value!r}"


class ValidationError(BaseModel):
    """A reason the proposed operation must not run."""

    model_config = ConfigDict(frozen=True)

    kind: ValidationErrorKind = ValidationErrorKind.VALIDATION
    message: str
    affected_issues: List[int] = Field(default_factory=list)


class BatchItemError(BaseModel):
    """Per-issue failure reported for a batch."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    issue_id: int = Field(alias="issueId")
    error: str


class BatchResponse(BaseModel):
    """Body returned by the batch-mutation endpoint for one chunk."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    success_count: Optional[int] = Field(default=None, alias="successCount")
    failure_count: Optional[int] = Field(default=None, alias="failureCount")
    errors: List[BatchItemError] = Field(default_factory=list)


class BulkOperationResult(BaseModel):
    """Outcome of one executed bulk operation."""

    model_config = ConfigDict(frozen=True)

    success_count: int = 0
    failure_count: int = 0
    errors: List[BatchItemError] = Field(default_factory=list)
    affected_issues: List[int] = Field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def failed_ids(self) -> List[int]:
        """Issue ids that failed, in the order they were reported."""
        return [e.issue_id for e in self.errors]

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for serialization."""
        return {
            "success_count": self.success_count,
            "failure_count": self.failure_count,
            "errors": [{"issue_id": e.issue_id, "error": e.error} for e in self.errors],
            "affected_issues": list(self.affected_issues),
            "duration_seconds": self.duration_seconds,
        }


class HistoryEntry(BaseModel):
    """An executed operation together with its result."""

    model_config = ConfigDict(frozen=True)

    operation: BulkOperation
    result: BulkOperationResult
    timestamp: datetime = Field(default_factory=datetime.now)
