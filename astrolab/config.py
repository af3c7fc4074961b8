"""
Конфигурация приложения — загрузка переменных окружения
"""

import os
from pathlib import Path
from dotenv import load_dotenv

# Загружаем .env из корня проекта
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
    """Конфигурация приложения"""

    # --- Database ---
    DATABASE_URL: str = os.getenv("DATABASE_URL", "")
    DB_POOL_MIN_SIZE: int = int(os.getenv("DB_POOL_MIN_SIZE", "2"))
    DB_POOL_MAX_SIZE: int = int(os.getenv("DB_POOL_MAX_SIZE", "10"))

    # --- Logging ---
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()
    SQL_TRACE: bool = _as_bool(os.getenv("SQL_TRACE", "false"))

    # --- Check-in ---
    TIMEZONE: str = os.getenv("TIMEZONE", "UTC")
    CHECKIN_TIMEOUT: int = int(os.getenv("CHECKIN_TIMEOUT", "1800"))  # 30 минут
    CHECKIN_PURGE_INTERVAL: int = int(os.getenv("CHECKIN_PURGE_INTERVAL", "60"))

    @classmethod
    def validate(cls) -> list[str]:
        """Проверка обязательных переменных"""
        errors = []

        if not cls.DATABASE_URL:
            errors.append("DATABASE_URL не задан")
        if cls.DB_POOL_MIN_SIZE > cls.DB_POOL_MAX_SIZE:
            errors.append("DB_POOL_MIN_SIZE больше DB_POOL_MAX_SIZE")
        if cls.CHECKIN_TIMEOUT <= 0:
            errors.append("CHECKIN_TIMEOUT должен быть положительным")
        if cls.CHECKIN_PURGE_INTERVAL <= 0:
            errors.append("CHECKIN_PURGE_INTERVAL должен быть положительным")

        return errors


# Синглтон конфигурации
config = Config()
