from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./artifacts.db"
    sql_echo: bool = False
    log_level: str = "INFO"

    # Порог длины контента, после которого черновик показывается пользователю
    visibility_threshold: int = 400
    # append | delete_newer
    restore_policy: str = "append"
    # replace | append
    content_policy: str = "replace"

    model_config = {"env_file": ".env", "extra": "ignore"}

settings = Settings()
