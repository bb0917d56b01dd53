from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, Field, field_serializer


def to_utc_iso(value: Optional[datetime]) -> Optional[str]:
    """Render a UTC timestamp as ISO-8601 with a trailing Z."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat() + "Z"


# --- Helper Schema for consistent UTC timestamp rendering ---
class TimeStampMixin(BaseModel):
    last_refreshed_at: Optional[datetime] = Field(
        None, example="2025-10-27T10:00:00Z"
    )

    @field_serializer("last_refreshed_at")
    def _serialize_last_refreshed_at(self, value: Optional[datetime]):
        return to_utc_iso(value)


class CountryBase(BaseModel):
    name: str = Field(..., example="Nigeria")
    population: Optional[int] = Field(None, example=206139589)
    currency_code: Optional[str] = Field(None, example="NGN")


class CountryResponse(CountryBase, TimeStampMixin):
    id: int
    capital: Optional[str] = Field(None, example="Abuja")
    region: Optional[str] = Field(None, example="Africa")
    exchange_rate: Optional[float] = Field(None, example=1600.23)
    estimated_gdp: Optional[float] = Field(None, example=25767448125.2)
    flag_url: Optional[str] = Field(None, example="https://flagcdn.com/ng.svg")

    class Config:
        from_attributes = True


class StatusResponse(TimeStampMixin):
    total_countries: int = Field(..., example=250)


class RefreshResponse(TimeStampMixin):
    message: str = Field(..., example="Countries refreshed successfully")
    total_countries: int = Field(..., example=250)


class ErrorResponse(BaseModel):
    error: str
    details: Optional[Any] = None
