import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import BaseModel


class ConfigError(Exception):
    pass


class Config(BaseModel):
    repositories_root_path: Path
    database_url: str
    server_host: str = "0.0.0.0"
    server_port: int = 8000
    committer_name: str = "gittimeline"
    committer_email: str = "gittimeline@localhost"
    log_level: str = "DEBUG"

    @property
    def repository_path(self) -> Path:
        return self.repositories_root_path / "gitTimeline"

    @property
    def committer(self) -> str:
        return f"{self.committer_name} <{self.committer_email}>"


def env(key: str) -> str:
    """
    Reads the specified key from the env, throwing an exception
    if it does not exist.
    """
    val = os.getenv(key)
    if val is None:
        raise ConfigError(f"Env variable `{key}` is not set")
    return val


def env_int(key: str, default: int) -> int:
    val = os.getenv(key)
    if val is None:
        return default
    try:
        return int(val)
    except ValueError:
        raise ConfigError(f"Env variable `{key}` must be an integer, got `{val}`") from None


def load_config() -> Config:
    """
    Loads the configuration from the environment, reading a `.env` file
    first if there is one.
    """
    load_dotenv()

    root = env("REPOSITORIES_ROOT_PATH")
    return Config(
        repositories_root_path=Path(root),
        database_url=os.getenv(
            "DATABASE_URL", f"sqlite+aiosqlite:///{root}/metadata.db"
        ),
        server_host=os.getenv("SERVER_HOST", "0.0.0.0"),
        server_port=env_int("SERVER_PORT", 8000),
        committer_name=os.getenv("COMMITTER_NAME", "gittimeline"),
        committer_email=os.getenv("COMMITTER_EMAIL", "gittimeline@localhost"),
        log_level=os.getenv("LOG_LEVEL", "DEBUG"),
    )
