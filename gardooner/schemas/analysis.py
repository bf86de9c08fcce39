"""
Analysis Schemas
================

Strict pydantic models for instructions produced by the LLM backends.

The same models validate the scheduled zone-analysis payload and the action
tags embedded in chat replies, so there is one definition of what a legal
instruction is. Validation is fail-closed: one bad field rejects the whole
payload. Field names are camelCase on the wire and snake_case in Python.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, StringConstraints, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from gardooner.domain.exceptions import SchemaValidationError

UUID_PATTERN = r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"

EntityId = Annotated[str, StringConstraints(pattern=UUID_PATTERN)]
Label = Annotated[str, StringConstraints(max_length=60)]
Reason = Annotated[str, StringConstraints(max_length=200)]

TargetTypeName = Literal["zone", "plant"]
ActionTypeName = Literal["water", "fertilize", "harvest", "prune", "plant", "monitor", "protect", "other"]
PriorityName = Literal["urgent", "today", "upcoming", "informational"]


class _WireModel(BaseModel):
    model_config = ConfigDict(
        strict=True,
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class TaskFields(_WireModel):
    """Fields needed to materialise a pending task."""

    target_type: TargetTypeName
    target_id: EntityId
    zone_id: EntityId
    action_type: ActionTypeName
    priority: PriorityName
    label: Label
    suggested_date: str
    context: Reason | None = None
    recurrence: str | None = None
    photo_requested: bool | None = None


class CreateOperation(TaskFields):
    op: Literal["create"]


class UpdateOperation(_WireModel):
    op: Literal["update"]
    task_id: EntityId
    suggested_date: str | None = None
    priority: PriorityName | None = None
    label: Label | None = None
    context: Reason | None = None
    recurrence: str | None = None
    photo_requested: bool | None = None

    def changes(self) -> dict[str, Any]:
        """Column -> value for every field the operation actually sets."""
        return self.model_dump(exclude={"op", "task_id"}, exclude_none=True)


class CompleteOperation(_WireModel):
    op: Literal["complete"]
    task_id: EntityId
    reason: Reason | None = None


class CancelOperation(_WireModel):
    op: Literal["cancel"]
    task_id: EntityId
    reason: Reason | None = None


Operation = Annotated[
    Union[CreateOperation, UpdateOperation, CompleteOperation, CancelOperation],
    Field(discriminator="op"),
]


class AnalysisResultPayload(_WireModel):
    operations: list[Operation]
    observations: list[str] = Field(default_factory=list)
    alerts: list[str] = Field(default_factory=list)

    @field_validator("observations", "alerts", mode="before")
    @classmethod
    def _absent_as_empty(cls, value: Any) -> Any:
        return [] if value is None else value


# --- chat action payloads ---------------------------------------------------


class CreateTaskPayload(TaskFields):
    pass


class TaskTransitionPayload(_WireModel):
    task_id: EntityId
    reason: Reason | None = None


class CreateCareLogPayload(_WireModel):
    target_type: TargetTypeName
    target_id: EntityId
    action_type: ActionTypeName
    notes: str | None = None


def validate_analysis_result(raw: Any, provider: str = "") -> AnalysisResultPayload:
    """Validate a decoded LLM reply, raising SchemaValidationError on any violation."""
    try:
        return AnalysisResultPayload.model_validate(raw)
    except ValidationError as exc:
        errors = exc.errors(include_url=False, include_context=False)
        raise SchemaValidationError(
            f"{provider or 'AI'} response failed schema validation ({exc.error_count()} errors)",
            provider=provider,
            errors=errors,
        ) from exc
