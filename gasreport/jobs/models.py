"""Job record data model for async report generation."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class JobStatus(str, Enum):
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class SampleType(str, Enum):
    ARTERIAL = "Arterial"
    VENOUS = "Venous"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 string -> aware datetime (naive values taken as UTC)."""
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


class JobRecord(BaseModel):
    """Tracks the lifecycle of one report job as persisted in the job store.

    Stored shape: {status, scenario?, gasType?, report?, error?, timestamp?, completedAt?}
    """
    model_config = ConfigDict(populate_by_name=True, use_enum_values=True)

    status: JobStatus = JobStatus.PROCESSING
    scenario: Optional[str] = None
    gas_type: Optional[SampleType] = Field(default=None, alias="gasType")
    report: Optional[str] = None
    error: Optional[str] = None
    timestamp: Optional[str] = Field(default_factory=lambda: utc_now().isoformat())
    completed_at: Optional[str] = Field(default=None, alias="completedAt")

    @property
    def is_terminal(self) -> bool:
        return self.status != JobStatus.PROCESSING.value

    def to_store(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    @classmethod
    def from_store(cls, data: Dict[str, Any]) -> "JobRecord":
        return cls.model_validate(data)
