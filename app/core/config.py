from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./rfp_workflow.db"
    db_echo: bool = False

    jwt_secret: str = "change-me"
    jwt_algorithm: str = "HS256"

    log_level: str = "INFO"

    # Время жизни блокировки вопроса и записи присутствия
    lock_ttl_seconds: int = 300
    presence_ttl_seconds: int = 300

    # Внешний сервис генерации ответов
    answer_service_url: Optional[str] = None
    answer_service_api_key: str = ""
    answer_service_timeout: float = 30.0

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
