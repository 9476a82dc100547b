from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings, read from `REQDI_*` environment variables.

    `debug` is handed to Starlette and also puts the cause of resolution
    failures in the 500 response detail; `expose_errors` does only the latter.
    """

    model_config = SettingsConfigDict(env_prefix="REQDI_")

    debug: bool = False
    log_level: str = "INFO"
    expose_errors: bool = False
    default_status_code: int = 200
