"""
Unit tests for the bulk operation validator.
"""

import pytest
from unittest.mock import AsyncMock

from bulkops.models import BulkOperation, ValidationError, ValidationErrorKind
from bulkops.operations.validator import OperationValidator


@pytest.fixture
def validator():
    return OperationValidator(max_selection=100)


@pytest.mark.asyncio
class TestOperationValidator:
    """Test OperationValidator rules."""

    async def test_valid_priority_operation(self, validator):
        errors = await validator.validate(BulkOperation(kind="priority", value="high"), [1, 3])

        assert errors == []

    async def test_more_than_max_selection(self, validator):
        ids = list(range(1, 102))

        errors = await validator.validate(BulkOperation(kind="priority", value="high"), ids)

        assert len(errors) == 1
        assert errors[0].kind == ValidationErrorKind.VALIDATION
        assert errors[0].affected_issues == ids

    async def test_exactly_max_selection_passes(self, validator):
        errors = await validator.validate(
            BulkOperation(kind="status", value="done"), list(range(100))
        )

        assert errors == []

    @pytest.mark.parametrize("value", [None, ""])
    async def test_assign_requires_value(self, validator, value):
        errors = await validator.validate(BulkOperation(kind="assign", value=value), [1, 2, 3])

        assert len(errors) == 1
        assert errors[0].message == "Assignee is required"
        assert errors[0].affected_issues == [1, 2, 3]

    @pytest.mark.parametrize("kind,value,message", [
        ("assign", "bob", "Invalid assignee: 'bob'"),
        ("assign", True, "Invalid assignee: True"),
        ("sprint", "next", "Invalid sprint: 'next'"),
    ])
    async def test_ids_must_be_integers(self, validator, kind, value, message):
        errors = await validator.validate(BulkOperation(kind=kind, value=value), [1, 2])

        assert [e.message for e in errors] == [message]

    async def test_sprint_can_be_cleared(self, validator):
        assert await validator.validate(BulkOperation(kind="sprint", value=None), [1]) == []

    async def test_rules_are_not_short_circuited(self, validator):
        ids = list(range(150))

        errors = await validator.validate(BulkOperation(kind="assign", value=None), ids)

        messages = [e.message for e in errors]
        assert len(errors) == 2
        assert "Assignee is required" in messages
        assert all(e.affected_issues == ids for e in errors)

    async def test_empty_selection(self, validator):
        errors = await validator.validate(BulkOperation(kind="priority", value="low"), [])

        assert [e.message for e in errors] == ["No issues selected"]
        assert errors[0].affected_issues == []

    async def test_invalid_status(self, validator):
        errors = await validator.validate(BulkOperation(kind="status", value="archived"), [1])

        assert errors[0].message == "Invalid status: archived"

    async def test_invalid_priority(self, validator):
        errors = await validator.validate(BulkOperation(kind="priority", value="critical"), [1])

        assert errors[0].message == "Invalid priority: critical"

    @pytest.mark.parametrize("value", [-1, "three", True, float("nan")])
    async def test_invalid_estimate(self, validator, value):
        errors = await validator.validate(BulkOperation(kind="estimate", value=value), [1])

        assert len(errors) == 1
        assert "non-negative" in errors[0].message

    @pytest.mark.parametrize("value", [0, 2.5, None])
    async def test_valid_estimate(self, validator, value):
        errors = await validator.validate(BulkOperation(kind="estimate", value=value), [1])

        assert errors == []

    async def test_label_add_requires_label(self, validator):
        errors = await validator.validate(
            BulkOperation(kind="labels", field="add", value=""), [1]
        )

        assert errors[0].message == "Label value is required"

    async def test_label_replace_accepts_list(self, validator):
        errors = await validator.validate(
            BulkOperation(kind="labels", field="replace", value=["a", "b"]), [1]
        )

        assert errors == []

    async def test_validation_does_not_mutate_inputs(self, validator):
        ids = [3, 1, 2]
        operation = BulkOperation(kind="assign", value=None)

        await validator.validate(operation, ids)

        assert ids == [3, 1, 2]
        assert operation.value is None

    async def test_extra_rules_sync_and_async(self, validator):
        def sync_rule(operation, ids):
            return None

        async_rule = AsyncMock(return_value=[
            ValidationError(
                kind=ValidationErrorKind.PERMISSION,
                message="Not allowed to move issues out of sprint",
                affected_issues=[2],
            )
        ])
        validator.add_rule(sync_rule)
        validator.add_rule(async_rule)

        errors = await validator.validate(BulkOperation(kind="sprint", value=3), [1, 2])

        assert len(errors) == 1
        assert errors[0].kind == ValidationErrorKind.PERMISSION
        async_rule.assert_awaited_once()

    async def test_failing_rule_propagates(self, validator):
        def broken_rule(operation, ids):
            raise RuntimeError("permission service unavailable")

        validator.add_rule(broken_rule)

        with pytest.raises(RuntimeError, match="permission service unavailable"):
            await validator.validate(BulkOperation(kind="priority", value="high"), [1])
