"""IP address to timezone resolution backed by the ip_ranges table."""

import ipaddress
import logging
from typing import Optional

logger = logging.getLogger(__name__)


class MalformedIPError(ValueError):
    """Raised when a string is not a valid IPv4 or IPv6 address"""


def parse_ip(value: str) -> ipaddress.IPv6Address:
    """Parse an address, mapping IPv4 into the IPv6 space

    Raises:
        MalformedIPError: if value is not an IP address
    """
    try:
        address = ipaddress.ip_address(value.strip())
    except ValueError:
        raise MalformedIPError(value)

    if address.version == 4:
        return ipaddress.IPv6Address(f"::ffff:{address}")
    return address


def ip_to_key(value: str) -> str:
    """Encode an address as 32 hex digits so string order matches numeric order"""
    return f"{int(parse_ip(value)):032x}"


def safe_ip_to_key(value) -> Optional[str]:
    """Like ip_to_key, but returns None for malformed or missing input"""
    if value is None:
        return None
    try:
        return ip_to_key(str(value))
    except MalformedIPError:
        return None


def get_client_ip(headers, client_host: Optional[str], trust_forwarded_for: bool = False) -> Optional[str]:
    """Pick the caller address from the request

    Args:
        headers: Request headers mapping
        client_host: Peer address reported by the server
        trust_forwarded_for: Prefer the first X-Forwarded-For entry

    Returns:
        The address string, or None if none is available
    """
    if trust_forwarded_for:
        forwarded = headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
    return client_host


class IpTimezoneResolver:
    """Resolve addresses to IANA zone names through the Database"""

    def __init__(self, db, fallback_timezone: Optional[str] = None):
        """Initialize the resolver

        Args:
            db: Connected Database instance
            fallback_timezone: Zone returned when no range matches
        """
        self.db = db
        self.fallback_timezone = fallback_timezone

    def resolve(self, ip: str) -> Optional[str]:
        """Return the zone for an address, or None when it is unknown

        Raises:
            MalformedIPError: if ip is not a valid address
        """
        key = ip_to_key(ip)
        tz_name = self.db.lookup_timezone(key)

        if tz_name is None:
            logger.debug(f"No IP range matches {ip}")
            return self.fallback_timezone
        return tz_name
