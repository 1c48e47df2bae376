from pydantic import BaseModel, Field
from typing import Optional


class TimeResponse(BaseModel):
    """Current time in one IANA timezone"""
    abbreviation: str = Field(..., description="Timezone abbreviation, e.g. BST")
    client_ip: Optional[str] = Field(None, description="Address of the caller")
    datetime: str = Field(..., description="Local ISO-8601 date-time with offset and microseconds")
    day_of_week: int = Field(..., ge=0, le=6, description="Day of the week, 0 is Sunday")
    day_of_year: int = Field(..., ge=1, le=366, description="Ordinal day of the year")
    dst: bool = Field(..., description="Whether daylight saving time is in effect")
    dst_from: Optional[str] = Field(None, description="UTC start of the current DST period")
    dst_offset: int = Field(..., description="DST offset in seconds")
    dst_until: Optional[str] = Field(None, description="UTC end of the current DST period")
    raw_offset: int = Field(..., description="Standard offset from UTC in seconds, without DST")
    timezone: str = Field(..., description="IANA timezone name")
    unixtime: int = Field(..., description="Seconds since the Unix epoch")
    utc_offset: str = Field(..., pattern=r"^[+-]\d{2}:\d{2}$", description="Offset from UTC as ±HH:MM")
    week_number: int = Field(..., ge=1, le=53, description="ISO-8601 week number")

    class Config:
        json_schema_extra = {
            "example": {
                "abbreviation": "BST",
                "client_ip": "192.0.2.10",
                "datetime": "2024-07-01T13:00:00.000000+01:00",
                "day_of_week": 1,
                "day_of_year": 183,
                "dst": True,
                "dst_from": "2024-03-31T01:00:00+00:00",
                "dst_offset": 3600,
                "dst_until": "2024-10-27T01:00:00+00:00",
                "raw_offset": 0,
                "timezone": "Europe/London",
                "unixtime": 1719835200,
                "utc_offset": "+01:00",
                "week_number": 27
            }
        }


class ServiceInfo(BaseModel):
    """Root endpoint payload"""
    message: str
    version: str
    endpoints: dict
