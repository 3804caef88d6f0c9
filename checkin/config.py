import os
from typing import List, Optional

import yaml
from pydantic_settings import BaseSettings, SettingsConfigDict


# YAML file loader; a missing file means env vars and defaults only
def load_yaml_config(file_path: str) -> dict:
    if not os.path.exists(file_path):
        return {}
    with open(file_path, "r", encoding="utf-8") as file:
        return yaml.safe_load(file) or {}


class DatabaseConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="DATABASE_")

    url: str = "sqlite:///./checkin.db"
    echo: bool = False


class AuthConfig(BaseSettings):
    # MENTOR_KEY / MANAGER_KEY
    mentor_key: Optional[str] = None
    manager_key: Optional[str] = None


class AttendanceConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="ATTENDANCE_")

    timezone: str = "America/New_York"
    auto_close_hours: float = 4
    apply_approved_corrections: bool = False


class TaskBoardConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="TASKS_")

    stale_after_days: int = 3


class ServerConfig(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="SERVER_")

    cors_origins: List[str] = ["*"]
    log_dir: str = "logs"


class AppConfig(BaseSettings):
    database: DatabaseConfig
    auth: AuthConfig
    attendance: AttendanceConfig
    tasks: TaskBoardConfig
    server: ServerConfig

    @classmethod
    def from_yaml(cls, file_path: str):
        config_data = load_yaml_config(file_path)

        # per section: YAML values > environment > defaults
        return cls(
            database=DatabaseConfig(**(config_data.get("database") or {})),
            auth=AuthConfig(**(config_data.get("auth") or {})),
            attendance=AttendanceConfig(**(config_data.get("attendance") or {})),
            tasks=TaskBoardConfig(**(config_data.get("tasks") or {})),
            server=ServerConfig(**(config_data.get("server") or {})),
        )


config = AppConfig.from_yaml(os.environ.get("CHECKIN_CONFIG", "config.yaml"))
