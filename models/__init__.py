"""Models package for the Time.Now World Time API"""

from .time import (
    TimeResponse,
    ServiceInfo
)

__all__ = [
    "TimeResponse",
    "ServiceInfo"
]
