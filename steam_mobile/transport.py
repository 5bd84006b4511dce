"""
HTTP транспорт.
Aiohttp реализация без собственного cookie jar: cookies хранит CookieDomainStore.
"""

import json
import asyncio
import aiohttp
from dataclasses import dataclass, field
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from http.cookies import Morsel
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple, Union

from loguru import logger

from .errors import DeserializationError, NetworkError


Params = Union[Dict[str, Any], Sequence[Tuple[str, Any]]]

DELETED_COOKIE_VALUE = 'deleted'


@dataclass
class HttpResponse:
    """Полностью прочитанный ответ"""
    status: int
    url: str
    host: str
    text: str = ''
    headers: Dict[str, str] = field(default_factory=dict)
    cookies: List[Tuple[str, str, str]] = field(default_factory=list)
    location: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    @property
    def is_redirect(self) -> bool:
        return self.status in (301, 302, 303, 307, 308) and self.location is not None

    def json(self) -> Any:
        try:
            return json.loads(self.text)
        except ValueError as e:
            raise DeserializationError(f"Invalid JSON from {self.url}: {e}", self.text) from e


class Transport(Protocol):
    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Params] = None,
        params: Optional[Params] = None,
        allow_redirects: bool = True,
    ) -> HttpResponse:
        ...

    async def close(self) -> None:
        ...


class AiohttpTransport:
    """Транспорт поверх aiohttp.ClientSession"""

    def __init__(self, timeout: float = 20.0, proxy: Optional[str] = None):
        self.timeout = aiohttp.ClientTimeout(total=timeout)
        self.proxy = proxy
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        """Ленивая aiohttp сессия без cookie jar"""
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(
                cookie_jar=aiohttp.DummyCookieJar(),
                timeout=self.timeout,
            )
        return self._session

    async def close(self):
        """Закрывает aiohttp сессию с DummyCookieJar, следующий send() откроет новую"""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None

    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Params] = None,
        params: Optional[Params] = None,
        allow_redirects: bool = True,
    ) -> HttpResponse:
        session = await self._get_session()
        logger.debug(f"{method} {url}")

        try:
            async with session.request(
                method,
                url,
                headers=headers,
                data=_stringify(data),
                params=_stringify(params),
                allow_redirects=allow_redirects,
                proxy=self.proxy,
            ) as resp:
                text = await resp.text(errors='replace')
                cookies = [
                    (morsel.key, '' if is_deleted_cookie(morsel) else morsel.value, morsel['path'] or '/')
                    for morsel in resp.cookies.values()
                ]
                response = HttpResponse(
                    status=resp.status,
                    url=str(resp.url),
                    host=resp.url.host or '',
                    text=text,
                    headers=dict(resp.headers),
                    cookies=cookies,
                    location=resp.headers.get('Location'),
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise NetworkError(f"{method} {url} failed: {e!r}") from e

        logger.debug(f"Response status: {response.status}")
        return response


def is_deleted_cookie(morsel: Morsel) -> bool:
    """
    Set-Cookie, удаляющий cookie: значение deleted, Max-Age <= 0 или Expires в прошлом.
    Такие cookies отдаются с пустым значением, CookieDomainStore их удаляет.
    """
    if morsel.value == DELETED_COOKIE_VALUE:
        return True

    max_age = morsel['max-age']
    if max_age:
        try:
            return int(max_age) <= 0
        except ValueError:
            pass

    expires = morsel['expires']
    if expires:
        try:
            expires_at = parsedate_to_datetime(expires)
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
            return expires_at <= datetime.now(timezone.utc)
        except (TypeError, ValueError):
            return False
    return False


def _stringify(values: Optional[Params]) -> Optional[List[Tuple[str, str]]]:
    """aiohttp принимает только строковые значения в форме и query"""
    if values is None:
        return None
    items = values.items() if isinstance(values, dict) else values
    result = []
    for key, value in items:
        if isinstance(value, bool):
            value = 'true' if value else 'false'
        result.append((key, str(value)))
    return result
