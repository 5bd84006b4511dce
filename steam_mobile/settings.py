"""
Настройки аутентификатора.
Загружаются из JSON файла, отсутствующие ключи берутся по умолчанию.
"""

import json
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from loguru import logger


MOBILE_USER_AGENT = "Dalvik/2.1.0 (Linux; U; Android 9; Valve Steam App Version/3)"


@dataclass
class RetrySettings:
    """Экспоненциальный backoff для входа"""
    max_attempts: int = 5
    initial_delay: float = 1.0
    multiplier: float = 2.0
    max_delay: float = 30.0


@dataclass
class Settings:
    """Все настройки клиента"""
    timeout_seconds: float = 20.0
    user_agent: str = MOBILE_USER_AGENT
    retry: RetrySettings = field(default_factory=RetrySettings)
    # Steam не успевает обработать слишком быстрые запросы
    rsa_catchup_seconds: float = 0.35
    phone_catchup_seconds: float = 10.0
    session_guard: bool = True

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Settings':
        # Секция может быть null в JSON
        http = data.get('http') or {}
        retry = data.get('retry') or {}
        steam = data.get('steam') or {}
        defaults = RetrySettings()

        return cls(
            timeout_seconds=float(http.get('timeout_seconds', 20.0)),
            user_agent=http.get('user_agent', MOBILE_USER_AGENT),
            retry=RetrySettings(
                max_attempts=int(retry.get('max_attempts', defaults.max_attempts)),
                initial_delay=float(retry.get('initial_delay', defaults.initial_delay)),
                multiplier=float(retry.get('multiplier', defaults.multiplier)),
                max_delay=float(retry.get('max_delay', defaults.max_delay)),
            ),
            rsa_catchup_seconds=float(steam.get('rsa_catchup_seconds', 0.35)),
            phone_catchup_seconds=float(steam.get('phone_catchup_seconds', 10.0)),
            session_guard=bool(steam.get('session_guard', True)),
        )


def load_settings(path: Optional[str] = None) -> Settings:
    """Загрузка настроек"""
    if path is None:
        return Settings()

    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    settings = Settings.from_dict(data)
    logger.debug(f"Settings loaded from {path}")
    return settings
