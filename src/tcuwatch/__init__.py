"""tcuwatch - liveness monitoring and alerting for MQTT-reporting field devices."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("tcuwatch")
except PackageNotFoundError:
    __version__ = "0+local"

from tcuwatch.config import BrokerConfig, GatewayConfig, MonitorConfig, NotificationTargets
from tcuwatch.engine import LivenessEngine
from tcuwatch.exceptions import (
    PayloadDecodeError,
    TcuConfigError,
    TcuDecodeError,
    TcuDispatchError,
    TcuStartupError,
    TcuTransportError,
    TcuWatchError,
    TopicDecodeError,
)
from tcuwatch.models import DeviceRegistry, GroupKey, InactivityFinding, InactivityStatus, RegistryEntry
from tcuwatch.monitor import TcuMonitor
from tcuwatch.state.policy import InactivityPolicy, QuietHours
from tcuwatch.state.store import LivenessStore

__all__ = [
    "__version__",
    "BrokerConfig",
    "DeviceRegistry",
    "GatewayConfig",
    "GroupKey",
    "InactivityFinding",
    "InactivityPolicy",
    "InactivityStatus",
    "LivenessEngine",
    "LivenessStore",
    "MonitorConfig",
    "NotificationTargets",
    "PayloadDecodeError",
    "QuietHours",
    "RegistryEntry",
    "TcuConfigError",
    "TcuDecodeError",
    "TcuDispatchError",
    "TcuMonitor",
    "TcuStartupError",
    "TcuTransportError",
    "TcuWatchError",
    "TopicDecodeError",
]
