"""Утилиты: переменные окружения, логирование."""
import logging
import os
from pathlib import Path
from typing import Optional


def load_env(env_path: Optional[Path] = None):
    """Загружает переменные окружения из .env файла."""
    env_path = env_path or Path(__file__).parent / '.env'
    if env_path.exists():
        with open(env_path, 'r', encoding='utf-8') as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith('#') and '=' in line:
                    key, value = line.split('=', 1)
                    key = key.strip()
                    value = value.strip().strip('"').strip("'")
                    os.environ[key] = value


def env_float(name: str, default: float) -> float:
    """Число из окружения; при ошибке - значение по умолчанию"""
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    try:
        return float(value)
    except ValueError:
        logging.getLogger(__name__).warning("Invalid %s=%r, using %s", name, value, default)
        return default


def env_int(name: str, default: int) -> int:
    return int(env_float(name, default))


def setup_logging(level: Optional[str] = None):
    """Настройка корневого логгера (уровень из LOG_LEVEL)"""
    level = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
