"""pyfieldtrack - Async Python client for field tracker telemetry and presence."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pyfieldtrack")
except PackageNotFoundError:
    __version__ = "0+local"
from pyfieldtrack.client import FieldTrackClient
from pyfieldtrack.config import FieldTrackConfig, MqttSettings
from pyfieldtrack.exceptions import (
    FieldTrackApiError,
    FieldTrackConfigError,
    FieldTrackError,
    FieldTrackNetworkError,
    FieldTrackNotFoundError,
    FieldTrackValidationError,
    ReconciliationError,
    SensorError,
    SensorPermissionDeniedError,
    SensorTimeoutError,
    SensorUnavailableError,
)
from pyfieldtrack.identity import Identity, IdentityProvider, StaticIdentityProvider
from pyfieldtrack.ingestion.feed import PresenceFeed
from pyfieldtrack.models import (
    LocationAck,
    LocationReading,
    LocationSample,
    OfflineSweepResult,
    Operation,
    OperationStatus,
    Tracker,
    TrackerMode,
    TrackerSource,
    TrackerStatus,
)
from pyfieldtrack.sensors import (
    PositionError,
    SensorAdapter,
    StaticBatteryProvider,
    StaticGeolocationProvider,
)
from pyfieldtrack.state.events import (
    AlarmSeverity,
    PresenceEvent,
    PresenceEventKind,
    PresenceStatus,
    TrackerAlarm,
    TrackerLocation,
    TrackerStatusData,
)
from pyfieldtrack.state.policy import Widgets
from pyfieldtrack.state.store import PresenceEntry, PresenceStore
from pyfieldtrack.tracking import (
    AutoResumeReconciler,
    OfflineSweep,
    ResumeChoice,
    TrackingScheduler,
    TrackingState,
)

__all__ = [
    "__version__",
    "AlarmSeverity",
    "AutoResumeReconciler",
    "FieldTrackApiError",
    "FieldTrackClient",
    "FieldTrackConfig",
    "FieldTrackConfigError",
    "FieldTrackError",
    "FieldTrackNetworkError",
    "FieldTrackNotFoundError",
    "FieldTrackValidationError",
    "Identity",
    "IdentityProvider",
    "LocationAck",
    "LocationReading",
    "LocationSample",
    "MqttSettings",
    "OfflineSweep",
    "OfflineSweepResult",
    "Operation",
    "OperationStatus",
    "PositionError",
    "PresenceEntry",
    "PresenceEvent",
    "PresenceEventKind",
    "PresenceFeed",
    "PresenceStatus",
    "PresenceStore",
    "ReconciliationError",
    "ResumeChoice",
    "SensorAdapter",
    "SensorError",
    "SensorPermissionDeniedError",
    "SensorTimeoutError",
    "SensorUnavailableError",
    "StaticBatteryProvider",
    "StaticGeolocationProvider",
    "StaticIdentityProvider",
    "Tracker",
    "TrackerAlarm",
    "TrackerLocation",
    "TrackerMode",
    "TrackerSource",
    "TrackerStatus",
    "TrackerStatusData",
    "TrackingScheduler",
    "TrackingState",
    "Widgets",
]
