import os
from dataclasses import dataclass
from typing import Mapping, Optional
from dotenv import load_dotenv, find_dotenv

ENV_PREFIX = "KAMERAFYR_SERVER_"
NTFY_URL_VAR = ENV_PREFIX + "NTFY_URL"


class ConfigError(Exception):
    """Raised when the environment holds an unusable setting"""


@dataclass(frozen=True)
class Settings:
    ntfy_url: Optional[str] = None
    db_path: str = "kamerafyr-server.db"
    host: str = "0.0.0.0"
    port: int = 8080
    ntfy_timeout: float = 10.0
    log_level: str = "INFO"
    log_file: Optional[str] = None
    camera_distance_meters: float = 25.0
    speed_limit_kmh: float = 30.0
    freshness_window_seconds: float = 300.0


def _number(env: Mapping[str, str], name: str, default, cast):
    raw = env.get(ENV_PREFIX + name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = cast(raw)
    except ValueError:
        raise ConfigError(f"{ENV_PREFIX + name} must be a number, got {raw!r}")
    if value <= 0:
        raise ConfigError(f"{ENV_PREFIX + name} must be positive, got {raw!r}")
    return value


def load_settings(env: Mapping[str, str] = None, dotenv_path: str = None) -> Settings:
    """Build settings from the process environment (and a .env file, if any)"""
    if env is None:
        load_dotenv(dotenv_path=dotenv_path or find_dotenv(usecwd=True))
        env = os.environ

    defaults = Settings()
    return Settings(
        ntfy_url=env.get(NTFY_URL_VAR) or None,
        db_path=env.get(ENV_PREFIX + "DB_PATH", defaults.db_path),
        host=env.get(ENV_PREFIX + "HOST", defaults.host),
        port=_number(env, "PORT", defaults.port, int),
        ntfy_timeout=_number(env, "NTFY_TIMEOUT", defaults.ntfy_timeout, float),
        log_level=env.get(ENV_PREFIX + "LOG_LEVEL", defaults.log_level).upper(),
        log_file=env.get(ENV_PREFIX + "LOG_FILE") or None,
        camera_distance_meters=_number(env, "CAMERA_DISTANCE_METERS", defaults.camera_distance_meters, float),
        speed_limit_kmh=_number(env, "SPEED_LIMIT_KMH", defaults.speed_limit_kmh, float),
        freshness_window_seconds=_number(env, "FRESHNESS_WINDOW_SECONDS", defaults.freshness_window_seconds, float),
    )
