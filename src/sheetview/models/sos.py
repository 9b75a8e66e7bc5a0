from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SOSRecord(BaseModel):
    """One help-needed report projected from a check-in sheet row."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: str  # as entered in the sheet
    timestamp_instant: float = Field(alias="timestampInstant")  # POSIX seconds, 0 if unparsable
    location: str
    status: str
    details: str = ""
    source: str = ""


class SOSTabOutput(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    id: int | str
    items: list[SOSRecord]
    statuses: list[str]
    cache_age: int = Field(alias="cacheAge")
