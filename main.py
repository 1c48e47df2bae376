import logging
from typing import List, Optional, Union
from fastapi import FastAPI, HTTPException, Depends, Request
from config import settings, setup_logging
from database.db import Database
from geoip import IpTimezoneResolver, MalformedIPError, get_client_ip, parse_ip
from models.time import TimeResponse, ServiceInfo
from timezones import (
    UnknownTimezoneError,
    build_time_response,
    is_timezone,
    list_timezones,
)

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = "unknown location"
MALFORMED_IP = "malformed ip"

app = FastAPI(
    title=settings.PROJECT_NAME,
    description="World time API: current time by IANA timezone or by caller IP",
    version=settings.VERSION
)


# Database dependency
def get_database():
    """Database dependency for FastAPI"""
    db = Database(settings.DB_PATH)
    if not db.connect():
        raise HTTPException(status_code=500, detail="Database connection failed")
    try:
        yield db
    finally:
        db.close()


def caller_ip(request: Request) -> Optional[str]:
    """Caller address, or None when the peer address is not an IP"""
    host = request.client.host if request.client else None
    ip = get_client_ip(request.headers, host, settings.TRUST_FORWARDED_FOR)
    if ip is None:
        return None
    try:
        parse_ip(ip)
    except MalformedIPError:
        return None
    return ip


def time_for_zone(tz_name: str, request: Request) -> TimeResponse:
    try:
        return build_time_response(tz_name, client_ip=caller_ip(request))
    except UnknownTimezoneError:
        raise HTTPException(status_code=404, detail=UNKNOWN_LOCATION)


def time_for_ip(ip: str, db: Database) -> TimeResponse:
    resolver = IpTimezoneResolver(db, fallback_timezone=settings.IP_FALLBACK_TIMEZONE)
    try:
        tz_name = resolver.resolve(ip)
    except MalformedIPError:
        raise HTTPException(status_code=400, detail=MALFORMED_IP)

    if tz_name is None:
        raise HTTPException(status_code=404, detail=UNKNOWN_LOCATION)

    logger.debug(f"Resolved {ip} to {tz_name}")
    try:
        return build_time_response(tz_name, client_ip=ip)
    except UnknownTimezoneError:
        logger.error(f"IP range for {ip} points at unknown timezone {tz_name}")
        raise HTTPException(status_code=404, detail=UNKNOWN_LOCATION)


@app.get(f"{settings.API_PREFIX}/timezone", response_model=List[str])
async def get_timezones():
    """List every IANA timezone name"""
    return list_timezones()


@app.get(
    f"{settings.API_PREFIX}/timezone/{{area}}",
    response_model=Union[TimeResponse, List[str]]
)
async def get_area(area: str, request: Request):
    """
    Current time for a single-part zone such as `UTC`, otherwise the list of
    zones under the area, e.g. `Europe`.
    """
    if is_timezone(area):
        return time_for_zone(area, request)
    try:
        return list_timezones(area)
    except UnknownTimezoneError:
        raise HTTPException(status_code=404, detail=UNKNOWN_LOCATION)


@app.get(
    f"{settings.API_PREFIX}/timezone/{{area}}/{{location}}",
    response_model=Union[TimeResponse, List[str]]
)
async def get_location(area: str, location: str, request: Request):
    """
    Current time in `area/location`, e.g. `Europe/London`.

    `America/Argentina` style prefixes return the list of zones beneath them.
    """
    name = f"{area}/{location}"
    if is_timezone(name):
        return time_for_zone(name, request)
    try:
        return list_timezones(name)
    except UnknownTimezoneError:
        raise HTTPException(status_code=404, detail=UNKNOWN_LOCATION)


@app.get(
    f"{settings.API_PREFIX}/timezone/{{area}}/{{location}}/{{region}}",
    response_model=TimeResponse
)
async def get_region(area: str, location: str, region: str, request: Request):
    """Current time in a three-part zone, e.g. `America/Argentina/Buenos_Aires`"""
    return time_for_zone(f"{area}/{location}/{region}", request)


@app.get(f"{settings.API_PREFIX}/timezone/{{name:path}}", include_in_schema=False)
async def get_other_location(name: str, request: Request):
    """Any other path under /timezone, e.g. deeper than three segments"""
    name = name.strip("/")
    if is_timezone(name):
        return time_for_zone(name, request)
    try:
        return list_timezones(name)
    except UnknownTimezoneError:
        raise HTTPException(status_code=404, detail=UNKNOWN_LOCATION)


@app.get(f"{settings.API_PREFIX}/ip", response_model=TimeResponse)
async def get_time_by_caller_ip(request: Request, db: Database = Depends(get_database)):
    """Current time in the timezone detected from the caller's IP"""
    host = request.client.host if request.client else None
    ip = get_client_ip(request.headers, host, settings.TRUST_FORWARDED_FOR)
    if ip is None:
        raise HTTPException(status_code=400, detail=MALFORMED_IP)
    return time_for_ip(ip, db)


@app.get(f"{settings.API_PREFIX}/ip/{{ip}}", response_model=TimeResponse)
async def get_time_by_ip(ip: str, db: Database = Depends(get_database)):
    """Current time in the timezone of an explicit IPv4 or IPv6 address"""
    return time_for_ip(ip, db)


@app.get("/", response_model=ServiceInfo)
async def root():
    """Root endpoint with API information"""
    return ServiceInfo(
        message=settings.PROJECT_NAME,
        version=settings.VERSION,
        endpoints={
            "timezones": f"{settings.API_PREFIX}/timezone",
            "timezone": f"{settings.API_PREFIX}/timezone/{{area}}/{{location}}",
            "ip": f"{settings.API_PREFIX}/ip",
            "docs": "/docs"
        }
    )


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
