"""Application configuration and settings management."""

from datetime import time
from typing import Any, Literal

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="WASTE_ROUTER_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Waste Route Optimizer API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level applied by the API factory.")
    osrm_base_url: str = Field(
        default="https://router.project-osrm.org",
        description="Base URL for the OSRM routing service (e.g., http://localhost:5000).",
    )
    osrm_profile: Literal["driving", "driving-hgv"] = Field(
        default="driving",
        description="OSRM profile to use when computing road paths.",
    )
    osrm_timeout_seconds: float = Field(default=10.0, gt=0.0)
    osrm_max_retries: int = Field(default=3, ge=0)
    osrm_backoff_seconds: float = Field(default=1.0, ge=0.0)
    osrm_rate_limit_backoff_seconds: float = Field(
        default=4.0,
        ge=0.0,
        description="Base wait after an HTTP 429 from OSRM; doubles on every further attempt.",
    )
    osrm_alternatives: bool = Field(default=True, description="Ask OSRM for alternative paths.")
    osrm_fallback_speed_kmh: float = Field(
        default=25.0,
        gt=0.0,
        description="Average speed used to estimate straight-line durations when OSRM is unavailable.",
    )
    refinement_batch_size: int = Field(default=1, ge=1)
    refinement_delay_seconds: float = Field(default=1.0, ge=0.0)
    collection_threshold_percent: float = Field(default=30.0, ge=0.0, le=100.0)
    bin_weight_factor: float = Field(default=0.5, gt=0.0, description="Kilograms per litre of bin fill.")
    sat_max_stops_per_trip: int = Field(default=20, ge=1)
    truck_max_stations_per_trip: int = Field(default=2, ge=1)
    sat_speed_kmh: float = Field(default=25.0, gt=0.0)
    sat_peak_speed_kmh: float = Field(default=18.0, gt=0.0)
    truck_speed_kmh: float = Field(default=35.0, gt=0.0)
    truck_peak_speed_kmh: float = Field(default=25.0, gt=0.0)
    shift_start: time = Field(default=time(6, 0), description="Clock time that start offset 0 maps to.")
    peak_windows: tuple[str, ...] = Field(
        default=("08:00-11:00", "17:00-20:00"),
        description="Daily peak-traffic bands as HH:MM-HH:MM strings.",
    )
    default_dumpyard_id: str = "DUMPYARD-DEFAULT"
    default_dumpyard_name: str = "Central Dumpyard"
    default_dumpyard_lat: float = 17.4239
    default_dumpyard_lng: float = 78.4738
    default_dumpyard_capacity: float = 100000.0
    max_tracked_runs: int = Field(default=20, ge=1)
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    @field_validator("frontend_allowed_origins", "peak_windows", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            # Try JSON first
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            # Try comma-separated
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            # Single value
            if value.strip():
                return (value.strip(),)
        # Return empty tuple if value is None or empty
        return tuple()

    @field_validator("peak_windows")
    @classmethod
    def _validate_peak_windows(cls, value: tuple[str, ...]) -> tuple[str, ...]:
        for window in value:
            parse_window(window)
        return value

    def peak_bands(self) -> tuple[tuple[int, int], ...]:
        """Peak windows as (start, end) minutes after midnight."""
        return tuple(parse_window(window) for window in self.peak_windows)


def _clock_minutes(text: str) -> int:
    hours, _, minutes = text.strip().partition(":")
    value = int(hours) * 60 + int(minutes or 0)
    if not 0 <= value <= 24 * 60:
        raise ValueError(f"Clock time out of range: {text!r}")
    return value


def parse_window(window: str) -> tuple[int, int]:
    """Parse an ``HH:MM-HH:MM`` band into minutes after midnight."""
    start, sep, end = window.partition("-")
    if not sep:
        raise ValueError(f"Peak window must look like HH:MM-HH:MM, got {window!r}")
    start_min, end_min = _clock_minutes(start), _clock_minutes(end)
    if end_min <= start_min:
        raise ValueError(f"Peak window ends before it starts: {window!r}")
    return start_min, end_min


settings = Settings()
