"""Core data models for the place details cache proxy.

Place records themselves stay plain JSON dicts (whatever the upstream API
returned under ``result``). Only the opening-hours substructure is modelled,
because the open/closed engine needs validated days and times.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class PeriodEndpoint(BaseModel):
    """One side of an opening period: a weekday and a ``HHMM`` time.

    Days follow the Google Places convention: 0 is Sunday, 6 is Saturday.
    """

    model_config = ConfigDict(extra="ignore")

    day: int = Field(..., ge=0, le=6, description="Day of week, 0=Sunday")
    time: str = Field(..., description="24-hour time as HHMM")

    @field_validator("time")
    @classmethod
    def validate_time(cls, value: str) -> str:
        if len(value) != 4 or not value.isdigit():
            raise ValueError(f"time must be 4 digits HHMM, got {value!r}")
        if int(value[:2]) > 23 or int(value[2:]) > 59:
            raise ValueError(f"time out of range: {value!r}")
        return value


class Period(BaseModel):
    """A weekly-recurring open/close window.

    ``close`` is absent for places that never close (Google returns a single
    period opening Sunday at 0000 in that case).
    """

    model_config = ConfigDict(extra="ignore")

    open: PeriodEndpoint
    close: Optional[PeriodEndpoint] = None


class OpeningHours(BaseModel):
    """Opening hours attached to a place record."""

    model_config = ConfigDict(extra="allow")

    periods: Optional[list[Period]] = Field(
        None, description="Weekly opening periods"
    )
    open_now: Optional[bool] = Field(
        None, description="Derived on every read, never trusted from storage"
    )


class NormalizedError(BaseModel):
    """Error shape returned to API callers."""

    code: int = Field(..., description="HTTP-style status code")
    status: str = Field(..., description="Canonical reason token")
    message: str = Field(..., description="Human-readable detail")


class NextRelevantTime(BaseModel):
    """Prediction of the next open/close transition of a place."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    open_now: bool = False
    next_date: Optional[datetime] = None
    next_label: str = ""
    human_string: str = ""


class LookupResult(BaseModel):
    """Outcome of a place lookup."""

    record: dict
    cache_hit: bool
    forwarded: bool
