"""Runtime configuration for footprints."""

from __future__ import annotations

import dataclasses
import os
from enum import StrEnum
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from footprints.exceptions import FootprintsConfigError


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


class DayBoundaryPolicy(StrEnum):
    """Which time zone decides the calendar day of a stored point."""

    PERSISTED_ZONE = "persisted"
    """Zone in effect when the history was last persisted (stored with it)."""

    CURRENT_ZONE = "current"
    """Zone configured on the running store, at query time."""


@dataclasses.dataclass(frozen=True)
class MqttSettings:
    """Broker connection for an OwnTracks-style location topic.

    Parameters
    ----------
    host : str or None
        Broker host name. ``None`` disables the MQTT feed.
    port : int
        Broker port.
    topic : str
        Topic filter carrying location messages.
    username, password : str or None
        Optional broker credentials.
    keepalive : int
        MQTT keepalive in seconds.
    tls : bool
        Connect with TLS using the system trust store.
    """

    host: str | None = None
    port: int = 1883
    topic: str = "owntracks/+/+"
    username: str | None = None
    password: str | None = None
    keepalive: int = 60
    tls: bool = False


@dataclasses.dataclass(frozen=True)
class FootprintsConfig:
    """Tracker configuration.

    Parameters
    ----------
    storage_dir : Path
        Directory backing :class:`~footprints.storage.FileStorage`.
    storage_key : str
        Key under which the history is persisted.
    time_zone : str
        IANA zone used as the reference calendar for day queries.
    day_policy : DayBoundaryPolicy
        Whether a reloaded history keeps the zone it was persisted under.
    viewport_span_meters : float
        Fixed north-south and east-west span of the computed viewport.
    validate_coordinates : bool
        Reject fixes with out-of-range coordinates at the session boundary.
    mqtt : MqttSettings
        Optional MQTT feed settings.
    """

    storage_dir: Path = Path("~/.footprints")
    storage_key: str = "savedLocations"
    time_zone: str = "UTC"
    day_policy: DayBoundaryPolicy = DayBoundaryPolicy.PERSISTED_ZONE
    viewport_span_meters: float = 1000.0
    validate_coordinates: bool = False
    mqtt: MqttSettings = dataclasses.field(default_factory=MqttSettings)

    def __post_init__(self) -> None:
        if not self.storage_key.strip():
            raise FootprintsConfigError("storage_key must be non-empty")
        if self.viewport_span_meters <= 0:
            raise FootprintsConfigError("viewport_span_meters must be positive")
        # Fail early on a bad zone name rather than at the first query.
        self.zone()

    def zone(self) -> ZoneInfo:
        """Return the reference zone as a :class:`ZoneInfo`."""
        try:
            return ZoneInfo(self.time_zone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise FootprintsConfigError(f"Unknown time zone: {self.time_zone!r}") from exc

    @classmethod
    def from_env(cls, **overrides: Any) -> FootprintsConfig:
        """Create configuration from ``FOOTPRINTS_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        mqtt_kwargs: dict[str, Any] = {}
        _ENV_MQTT_MAP = {
            "FOOTPRINTS_MQTT_HOST": "host",
            "FOOTPRINTS_MQTT_TOPIC": "topic",
            "FOOTPRINTS_MQTT_USERNAME": "username",
            "FOOTPRINTS_MQTT_PASSWORD": "password",
        }
        for env_key, field_name in _ENV_MQTT_MAP.items():
            val = env.get(env_key)
            if val is not None:
                mqtt_kwargs[field_name] = val
        try:
            port_env = env.get("FOOTPRINTS_MQTT_PORT")
            if port_env is not None:
                mqtt_kwargs["port"] = int(port_env)
            keepalive_env = env.get("FOOTPRINTS_MQTT_KEEPALIVE")
            if keepalive_env is not None:
                mqtt_kwargs["keepalive"] = int(keepalive_env)
        except ValueError as exc:
            raise FootprintsConfigError(f"Invalid MQTT setting: {exc}") from exc
        tls_env = env.get("FOOTPRINTS_MQTT_TLS")
        if tls_env is not None:
            mqtt_kwargs["tls"] = _env_bool(tls_env, False)

        mqtt_overrides = overrides.pop("mqtt", None)
        if isinstance(mqtt_overrides, dict):
            mqtt_kwargs.update(mqtt_overrides)
        elif isinstance(mqtt_overrides, MqttSettings):
            mqtt_kwargs = dataclasses.asdict(mqtt_overrides)

        config_kwargs: dict[str, Any] = {"mqtt": MqttSettings(**mqtt_kwargs)}

        storage_dir = env.get("FOOTPRINTS_STORAGE_DIR")
        if storage_dir is not None:
            config_kwargs["storage_dir"] = Path(storage_dir)
        storage_key = env.get("FOOTPRINTS_STORAGE_KEY")
        if storage_key is not None:
            config_kwargs["storage_key"] = storage_key
        time_zone = env.get("FOOTPRINTS_TIME_ZONE")
        if time_zone is not None:
            config_kwargs["time_zone"] = time_zone

        policy_env = env.get("FOOTPRINTS_DAY_POLICY")
        if policy_env is not None and "day_policy" not in overrides:
            try:
                config_kwargs["day_policy"] = DayBoundaryPolicy(policy_env.strip().lower())
            except ValueError as exc:
                raise FootprintsConfigError(f"Unknown day policy: {policy_env!r}") from exc

        span_env = env.get("FOOTPRINTS_VIEWPORT_SPAN_METERS")
        if span_env is not None and "viewport_span_meters" not in overrides:
            try:
                config_kwargs["viewport_span_meters"] = float(span_env)
            except ValueError as exc:
                raise FootprintsConfigError(f"Invalid viewport span: {span_env!r}") from exc

        if "validate_coordinates" not in overrides:
            config_kwargs["validate_coordinates"] = _env_bool(env.get("FOOTPRINTS_VALIDATE_COORDINATES"), False)

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
