"""Internal constants shared across the library."""

BASE_URL = "http://localhost:3000/api"
USER_AGENT = "pyfieldtrack"

DEFAULT_TRACKING_INTERVAL: float = 30.0
DEFAULT_SENSOR_TIMEOUT: float = 10.0
#: Cached positions younger than this may be reused by the geolocation provider.
DEFAULT_POSITION_MAX_AGE: float = 30.0
DEFAULT_ACTIVE_OPERATION_POLL_INTERVAL: float = 60.0
DEFAULT_RESUME_SETTLE_DELAY: float = 1.0
DEFAULT_OFFLINE_TIMEOUT_MINUTES: int = 30
ACTIVITY_LOG_SIZE: int = 50

# ------------------------------------------------------------------
# Location bounds
# ------------------------------------------------------------------

LATITUDE_RANGE: tuple[float, float] = (-90.0, 90.0)
LONGITUDE_RANGE: tuple[float, float] = (-180.0, 180.0)
BATTERY_RANGE: tuple[int, int] = (0, 100)

# ------------------------------------------------------------------
# Tracker refresh settings  (unit → seconds)
# ------------------------------------------------------------------

_REFRESH_UNIT_SECONDS: dict[str, int] = {"s": 1, "m": 60, "h": 3600}
VALID_REFRESH_UNITS: tuple[str, ...] = ("s", "m", "h")


def refresh_to_seconds(interval: float, unit: str = "s") -> float:
    """Convert a tracker refresh interval + unit into seconds.

    Raises :class:`ValueError` for unsupported units or non-positive intervals.
    """
    factor = _REFRESH_UNIT_SECONDS.get(unit)
    if factor is None:
        raise ValueError(f"refresh unit must be one of {VALID_REFRESH_UNITS}, got {unit!r}")
    if interval <= 0:
        raise ValueError(f"refresh interval must be positive, got {interval}")
    return float(interval) * factor
