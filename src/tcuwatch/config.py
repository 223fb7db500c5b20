"""Monitor configuration."""

from __future__ import annotations

import dataclasses
import json
import os
from collections.abc import Mapping
from datetime import time
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from tcuwatch._constants import (
    DEFAULT_CHECK_INTERVAL_MINUTES,
    DEFAULT_COUNTRY_CODE,
    DEFAULT_DAILY_SUMMARY_TIME,
    DEFAULT_MONITORING_TZ,
    DEFAULT_QUIET_END_HOUR,
    DEFAULT_QUIET_START_HOUR,
    DEFAULT_REPORTING_TZ,
    DEFAULT_STATUS_INTERVAL_MINUTES,
    DEFAULT_TIMEOUT_MINUTES,
)
from tcuwatch.exceptions import TcuConfigError
from tcuwatch.models.registry import DeviceRegistry
from tcuwatch.scheduler import parse_time_of_day
from tcuwatch.state.policy import QuietHours


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _env_list(value: str) -> tuple[str, ...]:
    return tuple(item.strip() for item in value.split(",") if item.strip())


def _zone(name: str) -> ZoneInfo:
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise TcuConfigError(f"Unknown time zone: {name!r}") from exc


@dataclasses.dataclass(frozen=True)
class BrokerConfig:
    """MQTT broker connection and subscriptions."""

    host: str = "localhost"
    port: int = 1883
    username: str | None = None
    password: str | None = None
    topics: tuple[str, ...] = ()
    client_id: str = ""
    keepalive: int = 60
    reconnect_delay: float = 5.0
    tls: bool = False


@dataclasses.dataclass(frozen=True)
class GatewayConfig:
    """HTTP messaging gateway used to reach the chat platform."""

    base_url: str = "http://127.0.0.1:3000"
    token: str | None = None
    inter_message_delay: float = 2.0
    timeout: float = 30.0
    country_code: str = DEFAULT_COUNTRY_CODE


@dataclasses.dataclass(frozen=True)
class NotificationTargets:
    """Who receives alerts.

    Parameters
    ----------
    groups : tuple of str
        Chat group names receiving every notification.
    emergency_contacts : tuple of str
        Phone identifiers receiving urgent notifications.
    use_groups : bool
        Deliver to ``groups``. When disabled every notification goes to
        the emergency contacts instead.
    send_to_emergency_contacts : bool
        Copy non-urgent notifications to the emergency contacts too.
    """

    groups: tuple[str, ...] = ()
    emergency_contacts: tuple[str, ...] = ()
    use_groups: bool = True
    send_to_emergency_contacts: bool = False


@dataclasses.dataclass(frozen=True)
class MonitorConfig:
    """Monitor configuration.

    Parameters
    ----------
    registry : DeviceRegistry
        Expected devices per ``(project, ncu)``.
    monitoring_tz : str
        IANA zone of the field sites. Quiet hours, the daily summary and
        chat timestamps use it.
    reporting_tz : str
        IANA zone used for log stream timestamps.
    timeout_minutes : int
        A device silent for strictly longer than this is inactive.
    check_interval_minutes : int
        Period of the inactivity check.
    status_interval_minutes : int
        Period of the status report.
    quiet_start_hour, quiet_end_hour : int
        Local hours bounding the window without inactivity alerts.
    daily_summary_time : str
        Local ``HH:MM`` of the daily summary.
    log_dir : str
        Directory of the log streams.
    """

    registry: DeviceRegistry = dataclasses.field(default_factory=DeviceRegistry)
    broker: BrokerConfig = dataclasses.field(default_factory=BrokerConfig)
    gateway: GatewayConfig = dataclasses.field(default_factory=GatewayConfig)
    targets: NotificationTargets = dataclasses.field(default_factory=NotificationTargets)
    monitoring_tz: str = DEFAULT_MONITORING_TZ
    reporting_tz: str = DEFAULT_REPORTING_TZ
    timeout_minutes: int = DEFAULT_TIMEOUT_MINUTES
    check_interval_minutes: int = DEFAULT_CHECK_INTERVAL_MINUTES
    status_interval_minutes: int = DEFAULT_STATUS_INTERVAL_MINUTES
    quiet_start_hour: int = DEFAULT_QUIET_START_HOUR
    quiet_end_hour: int = DEFAULT_QUIET_END_HOUR
    daily_summary_time: str = DEFAULT_DAILY_SUMMARY_TIME
    log_dir: str = "logs"

    def __post_init__(self) -> None:
        _zone(self.monitoring_tz)
        _zone(self.reporting_tz)
        if self.timeout_minutes <= 0:
            raise TcuConfigError("timeout_minutes must be positive")
        if self.check_interval_minutes <= 0 or self.status_interval_minutes <= 0:
            raise TcuConfigError("check intervals must be positive")
        try:
            QuietHours(self.quiet_start_hour, self.quiet_end_hour)
            parse_time_of_day(self.daily_summary_time)
        except ValueError as exc:
            raise TcuConfigError(str(exc)) from exc

    @property
    def monitoring_zone(self) -> ZoneInfo:
        return _zone(self.monitoring_tz)

    @property
    def reporting_zone(self) -> ZoneInfo:
        return _zone(self.reporting_tz)

    @property
    def quiet_hours(self) -> QuietHours:
        return QuietHours(self.quiet_start_hour, self.quiet_end_hour)

    @property
    def daily_summary_at(self) -> time:
        return parse_time_of_day(self.daily_summary_time)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], **overrides: Any) -> MonitorConfig:
        """Build configuration from a parsed document.

        Sections ``broker``, ``gateway`` and ``notifications`` map onto the
        nested dataclasses; ``registry`` uses the
        ``{project: {ncu: {"totalTCUs": n, "expectedTCUs": [...]}}}`` layout.
        """
        kwargs: dict[str, Any] = {}
        sections: dict[str, tuple[str, type]] = {
            "broker": ("broker", BrokerConfig),
            "gateway": ("gateway", GatewayConfig),
            "notifications": ("targets", NotificationTargets),
        }
        for key, value in data.items():
            if key == "registry":
                if not isinstance(value, Mapping):
                    raise TcuConfigError("registry must be an object")
                kwargs["registry"] = DeviceRegistry.from_mapping(value)
            elif key in sections:
                field_name, section_cls = sections[key]
                kwargs[field_name] = _build_section(section_cls, key, value)
            else:
                kwargs[key] = value
        kwargs.update(overrides)
        try:
            return cls(**kwargs)
        except TypeError as exc:
            raise TcuConfigError(f"Invalid configuration: {exc}") from exc

    @classmethod
    def from_file(cls, path: str | Path, **overrides: Any) -> MonitorConfig:
        """Load a JSON configuration file, then apply ``TCUWATCH_*`` env overrides."""
        p = Path(path)
        if not p.exists():
            raise TcuConfigError(f"Config not found: {p}")
        try:
            with p.open("r", encoding="utf-8") as fh:
                data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise TcuConfigError(f"Config {p} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise TcuConfigError(f"Config {p} must contain a JSON object")
        return cls.from_env(base=cls.from_dict(data), **overrides)

    @classmethod
    def from_env(cls, base: MonitorConfig | None = None, **overrides: Any) -> MonitorConfig:
        """Create configuration from ``TCUWATCH_*`` environment variables.

        Values from *base* are kept unless an environment variable sets
        them. Explicit keyword arguments override both.
        """
        env = os.environ
        current = base or cls()

        broker_kwargs: dict[str, Any] = {}
        _ENV_BROKER_MAP = {
            "TCUWATCH_MQTT_HOST": "host",
            "TCUWATCH_MQTT_USERNAME": "username",
            "TCUWATCH_MQTT_PASSWORD": "password",
            "TCUWATCH_MQTT_CLIENT_ID": "client_id",
        }
        for env_key, field_name in _ENV_BROKER_MAP.items():
            val = env.get(env_key)
            if val is not None:
                broker_kwargs[field_name] = val
        port_env = env.get("TCUWATCH_MQTT_PORT")
        if port_env is not None:
            try:
                broker_kwargs["port"] = int(port_env)
            except ValueError as exc:
                raise TcuConfigError(f"TCUWATCH_MQTT_PORT must be an integer, got {port_env!r}") from exc
        topics_env = env.get("TCUWATCH_MQTT_TOPICS")
        if topics_env is not None:
            broker_kwargs["topics"] = _env_list(topics_env)
        if "TCUWATCH_MQTT_TLS" in env:
            broker_kwargs["tls"] = _env_bool(env.get("TCUWATCH_MQTT_TLS"), current.broker.tls)

        gateway_kwargs: dict[str, Any] = {}
        url_env = env.get("TCUWATCH_GATEWAY_URL")
        if url_env is not None:
            gateway_kwargs["base_url"] = url_env.rstrip("/")
        token_env = env.get("TCUWATCH_GATEWAY_TOKEN")
        if token_env is not None:
            gateway_kwargs["token"] = token_env

        config_kwargs: dict[str, Any] = {}
        if broker_kwargs:
            config_kwargs["broker"] = dataclasses.replace(current.broker, **broker_kwargs)
        if gateway_kwargs:
            config_kwargs["gateway"] = dataclasses.replace(current.gateway, **gateway_kwargs)

        _ENV_CONFIG_MAP = {
            "TCUWATCH_MONITORING_TZ": "monitoring_tz",
            "TCUWATCH_REPORTING_TZ": "reporting_tz",
            "TCUWATCH_DAILY_SUMMARY_TIME": "daily_summary_time",
            "TCUWATCH_LOG_DIR": "log_dir",
        }
        for env_key, field_name in _ENV_CONFIG_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        _ENV_INT_MAP = {
            "TCUWATCH_TIMEOUT_MINUTES": "timeout_minutes",
            "TCUWATCH_CHECK_INTERVAL": "check_interval_minutes",
            "TCUWATCH_STATUS_INTERVAL": "status_interval_minutes",
        }
        for env_key, field_name in _ENV_INT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                try:
                    config_kwargs[field_name] = int(val)
                except ValueError as exc:
                    raise TcuConfigError(f"{env_key} must be an integer, got {val!r}") from exc

        config_kwargs.update(overrides)
        return dataclasses.replace(current, **config_kwargs)


def _build_section(section_cls: type, name: str, value: Any) -> Any:
    if not isinstance(value, Mapping):
        raise TcuConfigError(f"{name} must be an object")
    kwargs = {
        key: tuple(item) if isinstance(item, list) else item
        for key, item in value.items()
    }
    try:
        return section_cls(**kwargs)
    except TypeError as exc:
        raise TcuConfigError(f"Invalid {name} section: {exc}") from exc
