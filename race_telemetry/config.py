"""
Project-wide configuration using Pydantic Settings.
Upstream API settings, logging and filesystem paths live here.
"""
from pathlib import Path
from pydantic_settings import BaseSettings


ROOT_DIR = Path(__file__).resolve().parent.parent

OPENF1_DEFAULT_BASE_URL = "https://api.openf1.org/v1"


class APIConfig(BaseSettings):
    base_url: str = OPENF1_DEFAULT_BASE_URL
    timeout: int = 30
    max_retries: int = 0  # callers own retry policy
    backoff_factor: float = 1.5
    rate_limit_delay: float = 0.0  # seconds between request starts
    max_workers: int = 8  # concurrent fetches per fan-out

    model_config = {"env_prefix": "OPENF1_"}


class LogConfig(BaseSettings):
    level: str = "INFO"
    to_file: bool = False
    rotation: str = "1 day"
    retention: str = "7 days"
    serialize: bool = False  # JSON lines instead of the text format

    model_config = {"env_prefix": "F1_LOG_"}


class PathConfig(BaseSettings):
    root: Path = ROOT_DIR
    logs: Path = ROOT_DIR / "logs"

    def setup(self) -> None:
        """Create all directories if they don't exist."""
        for field_name, path in self.model_dump().items():
            if field_name != "root" and isinstance(path, Path):
                path.mkdir(parents=True, exist_ok=True)

    model_config = {"env_prefix": "F1_PATH_"}


class ServerConfig(BaseSettings):
    host: str = "127.0.0.1"
    port: int = 8000

    model_config = {"env_prefix": "F1_SERVER_"}


class Config:
    """Unified project configuration."""

    api: APIConfig = APIConfig()
    log: LogConfig = LogConfig()
    paths: PathConfig = PathConfig()
    server: ServerConfig = ServerConfig()


# Singleton instance
cfg = Config()
