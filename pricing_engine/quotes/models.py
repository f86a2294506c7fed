"""Quote pipeline models: job descriptors, source groups, commit results, notifications."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class JobType(str, Enum):
    QUOTE = "quote"


class JobStatus(str, Enum):
    COMPLETED = "completed"
    COMPLETED_WITH_ERRORS = "completed_with_errors"


class JobDescriptor(BaseModel):
    """Message payload identifying one batch of work on the jobs channel."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    job_id: str = Field(..., alias="jobId")
    job_type: str = Field(..., alias="jobType")
    source_ids: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("sourceIds", "opportunityIds", "source_ids"),
        serialization_alias="sourceIds",
    )
    callback_url: str | None = Field(default=None, alias="callbackUrl")

    def to_message(self) -> str:
        return self.model_dump_json(by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class LineItem:
    id: str | None
    pricebook_entry_id: str | None
    quantity: float | None
    unit_price: float | None
    product_id: str | None = None

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "LineItem":
        return cls(
            id=record.get("Id"),
            pricebook_entry_id=record.get("PricebookEntryId"),
            quantity=_to_float(record.get("Quantity")),
            unit_price=_to_float(record.get("UnitPrice")),
            product_id=record.get("Product2Id"),
        )


@dataclass(frozen=True)
class SourceRecordGroup:
    """One opportunity plus its line items."""

    opportunity_id: str
    name: str | None = None
    close_date: str | None = None
    line_items: tuple[LineItem, ...] = field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.line_items


@dataclass(frozen=True)
class CommitResult:
    identity: str | None = None
    errors: tuple[str, ...] = ()

    @property
    def succeeded(self) -> bool:
        return bool(self.identity)


class NotificationPayload(BaseModel):
    """Structured summary sent to the callback endpoint."""

    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(..., serialization_alias="jobId")
    source_ids: list[str] = Field(default_factory=list, serialization_alias="sourceIds")
    created_ids: list[str] = Field(default_factory=list, serialization_alias="quoteIds")
    status: JobStatus
    errors: list[str] = Field(default_factory=list)

    def to_callback_body(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def _to_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None
