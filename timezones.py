"""Timezone engine built on the IANA database shipped with zoneinfo.

Builds the world-time payload for a zone at a given instant and lists the
available zone names.
"""

import logging
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import FrozenSet, List, Optional, Tuple
from zoneinfo import ZoneInfo, available_timezones

from models.time import TimeResponse

logger = logging.getLogger(__name__)

# How far to look for the start or end of a DST period
TRANSITION_SEARCH_DAYS = 370


class UnknownTimezoneError(LookupError):
    """Raised when a name is neither a zone nor a zone area"""


@lru_cache(maxsize=1)
def get_zone_names() -> FrozenSet[str]:
    """Return every IANA zone name known to the interpreter"""
    names = frozenset(
        name for name in available_timezones()
        if not name.startswith(("posix/", "right/")) and name != "localtime"
    )
    logger.info(f"Loaded {len(names)} IANA timezones")
    return names


def list_timezones(area: Optional[str] = None) -> List[str]:
    """List zone names, optionally restricted to those under an area

    Args:
        area: Leading path such as "Europe" or "America/Argentina"

    Returns:
        Sorted list of zone names

    Raises:
        UnknownTimezoneError: if the area contains no zones
    """
    names = get_zone_names()
    if area is None:
        return sorted(names)

    prefix = area.rstrip("/") + "/"
    matches = sorted(name for name in names if name.startswith(prefix))
    if not matches:
        raise UnknownTimezoneError(area)
    return matches


def is_timezone(name: str) -> bool:
    return name in get_zone_names()


def load_zone(name: str) -> ZoneInfo:
    if not is_timezone(name):
        raise UnknownTimezoneError(name)
    return ZoneInfo(name)


def format_utc_offset(offset: timedelta) -> str:
    """Render an offset as ±HH:MM, dropping any seconds component"""
    seconds = int(offset.total_seconds())
    sign = "-" if seconds < 0 else "+"
    hours, minutes = divmod(abs(seconds) // 60, 60)
    return f"{sign}{hours:02d}:{minutes:02d}"


def _zone_state(zone: ZoneInfo, ts: int) -> Tuple[timedelta, timedelta]:
    local = datetime.fromtimestamp(ts, tz=zone)
    return local.utcoffset(), local.dst()


def find_transition(zone: ZoneInfo, ts: int, forward: bool = True) -> Optional[int]:
    """Find the nearest offset change around a POSIX timestamp

    Walks day by day until the (utcoffset, dst) pair differs from the one at
    `ts`, then bisects to the second.

    Returns:
        Forward: the first second of the next period.
        Backward: the first second of the current period.
        None if no change happens within TRANSITION_SEARCH_DAYS.
    """
    step = 86400 if forward else -86400
    current = _zone_state(zone, ts)

    probe = ts
    for _ in range(TRANSITION_SEARCH_DAYS):
        previous = probe
        probe += step
        if _zone_state(zone, probe) != current:
            break
    else:
        return None

    # lo keeps the current state, hi has the other one
    lo, hi = previous, probe
    while abs(hi - lo) > 1:
        mid = (lo + hi) // 2
        if _zone_state(zone, mid) == current:
            lo = mid
        else:
            hi = mid

    return hi if forward else lo


def _utc_iso(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat()


def split_offset(zone: ZoneInfo, ts: int) -> Tuple[timedelta, timedelta]:
    """Split the UTC offset at a timestamp into standard and DST parts

    Zones such as Europe/Dublin mark winter as a negative DST period. Such
    periods are reported as standard time, and the neighbouring period
    carries the positive difference as DST.

    Returns:
        (raw_offset, dst_offset) with dst_offset never negative
    """
    utc_offset, dst = _zone_state(zone, ts)
    if dst < timedelta(0):
        return utc_offset, timedelta(0)
    if dst > timedelta(0):
        return utc_offset - dst, dst

    for forward in (True, False):
        edge = find_transition(zone, ts, forward=forward)
        if edge is None:
            continue
        neighbour_offset, neighbour_dst = _zone_state(zone, edge if forward else edge - 1)
        if neighbour_dst < timedelta(0):
            return neighbour_offset, utc_offset - neighbour_offset

    return utc_offset, timedelta(0)


def build_time_response(
    tz_name: str,
    now: Optional[datetime] = None,
    client_ip: Optional[str] = None,
) -> TimeResponse:
    """Build the world-time payload for a zone

    Args:
        tz_name: IANA zone name
        now: Instant to describe; defaults to the current time. Naive values
            are taken as UTC.
        client_ip: Caller address echoed back in the payload

    Returns:
        TimeResponse for the zone at that instant

    Raises:
        UnknownTimezoneError: if tz_name is not an IANA zone
    """
    zone = load_zone(tz_name)

    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    local = now.astimezone(zone)
    ts = int(local.timestamp())
    raw_offset, dst_offset = split_offset(zone, ts)
    is_dst = dst_offset != timedelta(0)

    dst_from = None
    dst_until = None
    if is_dst:
        start = find_transition(zone, ts, forward=False)
        end = find_transition(zone, ts, forward=True)
        dst_from = _utc_iso(start) if start is not None else None
        dst_until = _utc_iso(end) if end is not None else None

    return TimeResponse(
        abbreviation=local.tzname(),
        client_ip=client_ip,
        datetime=local.isoformat(timespec="microseconds"),
        day_of_week=local.isoweekday() % 7,
        day_of_year=local.timetuple().tm_yday,
        dst=is_dst,
        dst_from=dst_from,
        dst_offset=int(dst_offset.total_seconds()),
        dst_until=dst_until,
        raw_offset=int(raw_offset.total_seconds()),
        timezone=tz_name,
        unixtime=ts,
        utc_offset=format_utc_offset(local.utcoffset()),
        week_number=local.isocalendar()[1],
    )
