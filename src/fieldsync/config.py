from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="FIELDSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
    )

    database_url: str = "sqlite:///./fieldsync.db"
    # Reject resolve_conflict on records that are not currently in conflict
    strict_conflict_resolution: bool = True
    history_default_page_size: int = 50
    history_max_page_size: int = 500
    reconcile_interval_minutes: int = 15
    # "module:factory" import paths for `python -m fieldsync run`. Each factory
    # is called with no arguments and returns the collaborator.
    reconcile_client: str = ""
    reconcile_local_store: str = ""
    log_level: str = "INFO"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
