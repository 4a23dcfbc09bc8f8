"""
Validation of a proposed bulk operation against the selected issues.

Every rule runs independently so the caller sees all violations in one
pass. Validation is read-only over its inputs.
"""

import asyncio
import logging
import numbers
from typing import Awaitable, Callable, List, Optional, Sequence, Union

from config import get_settings
from ..models.operation import (
    BulkOperation,
    LabelMode,
    OperationKind,
    ValidationError,
    ValidationErrorKind,
)

logger = logging.getLogger(__name__)

RuleOutput = Union[None, ValidationError, List[ValidationError]]
ValidationRule = Callable[
    [BulkOperation, Sequence[int]],
    Union[RuleOutput, Awaitable[RuleOutput]],
]


def _invalid(message: str, selected_ids: Sequence[int]) -> ValidationError:
    return ValidationError(
        kind=ValidationErrorKind.VALIDATION,
        message=message,
        affected_issues=list(selected_ids),
    )


class OperationValidator:
    """Decide whether a batch operation is safe to execute."""

    def __init__(
        self,
        max_selection: Optional[int] = None,
        valid_statuses: Optional[Sequence[str]] = None,
        valid_priorities: Optional[Sequence[str]] = None,
        extra_rules: Optional[List[ValidationRule]] = None,
    ):
        settings = get_settings()
        self.max_selection = max_selection if max_selection is not None else settings.bulk_max_selection
        self.valid_statuses = list(valid_statuses if valid_statuses is not None else settings.valid_statuses)
        self.valid_priorities = list(valid_priorities if valid_priorities is not None else settings.valid_priorities)
        self.extra_rules: List[ValidationRule] = list(extra_rules or [])

    def add_rule(self, rule: ValidationRule):
        """Register an organisation-specific check (permission, conflict, ...)."""
        self.extra_rules.append(rule)

    async def validate(
        self,
        operation: BulkOperation,
        selected_ids: Sequence[int],
    ) -> List[ValidationError]:
        """
        Check an operation against the selected issue ids.

        Args:
            operation: Proposed bulk operation
            selected_ids: Ids of the issues it would touch

        Returns:
            Every validation error found (empty when the operation may run)
        """
        selected = list(selected_ids)
        errors = self.check_builtin(operation, selected)

        for rule in self.extra_rules:
            output = rule(operation, selected)
            if asyncio.iscoroutine(output):
                output = await output
            if output is None:
                continue
            if isinstance(output, ValidationError):
                errors.append(output)
            else:
                errors.extend(output)

        if errors:
            logger.info(
                f"Validation rejected {operation.describe()} on {len(selected)} issue(s): "
                f"{[e.message for e in errors]}"
            )
        return errors

    def check_builtin(
        self,
        operation: BulkOperation,
        selected: List[int],
    ) -> List[ValidationError]:
        errors: List[ValidationError] = []

        if not selected:
            errors.append(_invalid("No issues selected", []))

        if len(selected) > self.max_selection:
            errors.append(_invalid(
                f"Cannot operate on more than {self.max_selection} issues at once",
                selected,
            ))

        kind = operation.kind
        value = operation.value

        if kind == OperationKind.ASSIGN:
            if value is None or value == "":
                errors.append(_invalid("Assignee is required", selected))
            elif isinstance(value, bool) or not isinstance(value, int):
                errors.append(_invalid(f"Invalid assignee: {value!r}", selected))

        elif kind == OperationKind.STATUS:
            if value not in self.valid_statuses:
                errors.append(_invalid(f"Invalid status: {value}", selected))

        elif kind == OperationKind.PRIORITY:
            if value not in self.valid_priorities:
                errors.append(_invalid(f"Invalid priority: {value}", selected))

        elif kind == OperationKind.ESTIMATE:
            # None clears the estimate
            if value is not None and not _is_non_negative_number(value):
                errors.append(_invalid("Estimate must be a non-negative number", selected))

        elif kind == OperationKind.SPRINT:
            # None takes the issues out of their sprint
            if value is not None and (isinstance(value, bool) or not isinstance(value, int)):
                errors.append(_invalid(f"Invalid sprint: {value!r}", selected))

        elif kind == OperationKind.LABELS:
            if operation.label_mode in (LabelMode.ADD, LabelMode.REMOVE):
                if not value or not isinstance(value, str):
                    errors.append(_invalid("Label value is required", selected))

        return errors


def _is_non_negative_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        return False
    return value >= 0
