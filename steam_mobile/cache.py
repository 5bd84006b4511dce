"""
Кэш сессии после успешного входа.
"""

import threading
from dataclasses import dataclass, replace
from typing import Optional

from .guard import SteamTime


@dataclass(frozen=True)
class SessionInfo:
    """Снимок данных сессии"""
    account_id: int
    account_name: str
    session_token: str
    secure_session_token: str
    oauth_token: str
    session_id: str
    time_offset: int = 0
    api_key: Optional[str] = None


class SessionCache:
    """
    Результат входа, общий для всех операций аутентификатора.

    Меняется только API key. Чтение отдает неизменяемый снимок.
    """

    def __init__(self, info: SessionInfo):
        self._lock = threading.Lock()
        self._info = info

    def snapshot(self) -> SessionInfo:
        with self._lock:
            return self._info

    @property
    def account_id(self) -> int:
        return self.snapshot().account_id

    @property
    def oauth_token(self) -> str:
        return self.snapshot().oauth_token

    @property
    def session_id(self) -> str:
        return self.snapshot().session_id

    @property
    def steam_time(self) -> SteamTime:
        return SteamTime(self.snapshot().time_offset)

    @property
    def api_key(self) -> Optional[str]:
        return self.snapshot().api_key

    def set_api_key(self, api_key: Optional[str]):
        with self._lock:
            self._info = replace(self._info, api_key=api_key)

    def __repr__(self) -> str:
        info = self.snapshot()
        return f"SessionCache(account_id={info.account_id}, account_name={info.account_name!r})"
