"""Configuration loading for tacstream."""

import os
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from pathlib import Path
from typing import Any

import yaml


@dataclass
class HostConfig:
    name: str = "tacstream"
    """Host name announced in the real-time handshake banner"""


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 42674  # Tacview real-time telemetry default
    max_buffer_bytes: int = 8 * 1024 * 1024  # Drop peers that fall this far behind


@dataclass
class StreamConfig:
    tick_rate: float = 10.0  # Synchronization passes per second
    recording_path: str = "recording.acmi"

    @property
    def tick_interval(self) -> float:
        return 1.0 / self.tick_rate


@dataclass
class MissionConfig:
    """Mission metadata sent to every client as object-0 global properties.

    Times are UTC instants. ``None`` renders as an empty value.
    """

    title: str = ""
    category: str = ""
    author: str = ""
    reference_time: datetime | None = None
    recording_time: datetime | None = None
    briefing: str = ""
    debriefing: str = ""
    comments: str = ""
    data_source: str = ""
    data_recorder: str = "tacstream"


@dataclass
class Config:
    host: HostConfig = field(default_factory=HostConfig)
    server: ServerConfig = field(default_factory=ServerConfig)
    stream: StreamConfig = field(default_factory=StreamConfig)
    mission: MissionConfig = field(default_factory=MissionConfig)


def parse_time(value: Any) -> datetime | None:
    """Parse a config timestamp into an aware UTC datetime.

    Accepts YAML timestamps (already datetimes), dates, ISO 8601 strings with
    a ``Z`` suffix, and the literal ``now``.
    """
    if value is None or value == "":
        return None
    if isinstance(value, str):
        if value.lower() == "now":
            return datetime.now(timezone.utc).replace(microsecond=0)
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    elif isinstance(value, date) and not isinstance(value, datetime):
        value = datetime.combine(value, time())
    if not isinstance(value, datetime):
        raise ValueError(f"Invalid timestamp: {value!r}")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _get_env(key: str, default: Any = None) -> Any:
    """Get environment variable with TACSTREAM_ prefix."""
    return os.environ.get(f"TACSTREAM_{key}", default)


def _apply_env_overrides(config: Config) -> Config:
    """Apply environment variable overrides to config."""
    if name := _get_env("HOST_NAME"):
        config.host.name = name

    # Server overrides
    if host := _get_env("SERVER_HOST"):
        config.server.host = host
    if port := _get_env("SERVER_PORT"):
        config.server.port = int(port)

    # Stream overrides
    if tick_rate := _get_env("TICK_RATE"):
        config.stream.tick_rate = float(tick_rate)
    if recording_path := _get_env("RECORDING_PATH"):
        config.stream.recording_path = recording_path

    # Mission overrides
    for key in (
        "title",
        "category",
        "author",
        "briefing",
        "debriefing",
        "comments",
        "data_source",
        "data_recorder",
    ):
        if value := _get_env(f"MISSION_{key.upper()}"):
            setattr(config.mission, key, value)
    if reference_time := _get_env("MISSION_REFERENCE_TIME"):
        config.mission.reference_time = parse_time(reference_time)
    if recording_time := _get_env("MISSION_RECORDING_TIME"):
        config.mission.recording_time = parse_time(recording_time)

    return config


def _parse_mission(data: dict, defaults: MissionConfig) -> MissionConfig:
    """Parse mission metadata configuration."""
    return MissionConfig(
        title=str(data.get("title", defaults.title)),
        category=str(data.get("category", defaults.category)),
        author=str(data.get("author", defaults.author)),
        reference_time=parse_time(data.get("reference_time")),
        recording_time=parse_time(data.get("recording_time")),
        briefing=str(data.get("briefing", defaults.briefing)),
        debriefing=str(data.get("debriefing", defaults.debriefing)),
        comments=str(data.get("comments", defaults.comments)),
        data_source=str(data.get("data_source", defaults.data_source)),
        data_recorder=str(data.get("data_recorder", defaults.data_recorder)),
    )


def load_config(config_path: str | Path | None = None) -> Config:
    """Load configuration from YAML file with environment variable overrides.

    Args:
        config_path: Path to YAML config file. If None, uses default config.

    Returns:
        Loaded and validated Config object.
    """
    config = Config()

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                data = yaml.safe_load(f) or {}

            if "host" in data:
                host_data = data["host"] or {}
                config.host = HostConfig(
                    name=str(host_data.get("name", config.host.name))
                )

            if "server" in data:
                server_data = data["server"] or {}
                config.server = ServerConfig(
                    host=server_data.get("host", config.server.host),
                    port=int(server_data.get("port", config.server.port)),
                    max_buffer_bytes=int(
                        server_data.get("max_buffer_bytes", config.server.max_buffer_bytes)
                    ),
                )

            if "stream" in data:
                stream_data = data["stream"] or {}
                config.stream = StreamConfig(
                    tick_rate=float(stream_data.get("tick_rate", config.stream.tick_rate)),
                    recording_path=stream_data.get(
                        "recording_path", config.stream.recording_path
                    ),
                )

            if "mission" in data:
                config.mission = _parse_mission(data["mission"] or {}, config.mission)

    config = _apply_env_overrides(config)

    if config.stream.tick_rate <= 0:
        raise ValueError(f"tick_rate must be positive, got {config.stream.tick_rate}")

    return config
