"""
Проверка, что сессия Steam еще жива.
Перед запросом запрашиваем страницу аккаунта без редиректов и смотрим, куда нас отправляют.
"""

from typing import Any, Dict, Optional

from bs4 import BeautifulSoup
from loguru import logger
from yarl import URL

from .client import STEAM_STORE_BASE, MobileClient
from .errors import DeserializationError, SessionExpired
from .transport import HttpResponse, Params


ACCOUNT_URL = f'{STEAM_STORE_BASE}/account'
LOST_AUTH_HOST = 'lostauth'
LOGIN_PATH_PREFIX = '/login'


def is_expired_redirect(location: Optional[str]) -> bool:
    """
    Редирект на steammobile://lostauth или на /login* означает потерю сессии.
    Любой другой редирект (или его отсутствие) считается нормальным.

    Raises:
        DeserializationError: Location не разбирается как URL
    """
    if not location:
        return False
    try:
        url = URL(location)
    except ValueError as e:
        raise DeserializationError(f"Invalid redirect location: {location}") from e
    return url.host == LOST_AUTH_HOST or url.path.startswith(LOGIN_PATH_PREFIX)


class SessionGuard:
    """Обертка над MobileClient, проверяющая сессию перед каждым запросом"""

    def __init__(self, client: MobileClient, enabled: bool = True):
        self.client = client
        self.enabled = enabled

    async def _account_redirect(self) -> Optional[str]:
        response = await self.client.request(ACCOUNT_URL, 'HEAD', allow_redirects=False)
        if is_expired_redirect(response.location):
            logger.warning(f"Session was lost, redirected to {response.location}")
            return response.location
        return None

    async def session_is_expired(self) -> bool:
        return await self._account_redirect() is not None

    async def ensure_valid(self):
        """SessionExpired, если сессия потеряна. Переподключения здесь нет."""
        if not self.enabled:
            return
        location = await self._account_redirect()
        if location is not None:
            raise SessionExpired(location)

    async def request(
        self,
        url: str,
        method: str = 'GET',
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Params] = None,
        params: Optional[Params] = None,
    ) -> HttpResponse:
        await self.ensure_valid()
        return await self.client.request(url, method, headers=headers, data=data, params=params)

    async def request_json(
        self,
        url: str,
        method: str = 'GET',
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Params] = None,
        params: Optional[Params] = None,
    ) -> Any:
        await self.ensure_valid()
        return await self.client.request_json(url, method, headers=headers, data=data, params=params)

    async def get_html(self, url: str, params: Optional[Params] = None) -> BeautifulSoup:
        await self.ensure_valid()
        return await self.client.get_html(url, params=params)
