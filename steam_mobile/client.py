"""
Мобильный HTTP клиент Steam.
Притворяется мобильным приложением и сам управляет cookies по доменам.
"""

from typing import Any, Dict, Optional

from bs4 import BeautifulSoup
from loguru import logger
from yarl import URL

from .cookies import CookieDomainStore, CookieRecord
from .errors import InternalGeneralFailure
from .settings import Settings
from .transport import AiohttpTransport, HttpResponse, Params, Transport


STEAM_COMMUNITY_HOST = 'steamcommunity.com'
STEAM_STORE_HOST = 'store.steampowered.com'
STEAM_HELP_HOST = 'help.steampowered.com'
STEAM_API_HOST = 'api.steampowered.com'

STEAM_COMMUNITY_BASE = f'https://{STEAM_COMMUNITY_HOST}'
STEAM_STORE_BASE = f'https://{STEAM_STORE_HOST}'
STEAM_API_BASE = f'https://{STEAM_API_HOST}'

# Домены, на которые раскладываются cookies сессии после входа
SESSION_HOSTS = (STEAM_COMMUNITY_HOST, STEAM_HELP_HOST, STEAM_STORE_HOST)

MOBILE_REFERER = (
    f'{STEAM_COMMUNITY_BASE}/mobilelogin'
    '?oauth_client_id=DE45CD61&oauth_scope=read_profile%20write_profile%20read_client%20write_client'
)

FORM_CONTENT_TYPE = 'application/x-www-form-urlencoded; charset=UTF-8'


class MobileClient:
    """
    Клиент, который делает запросы от имени мобильного приложения.

    На каждый запрос уходят только cookies хоста из URL.
    Cookies из ответа записываются под хост ответа после полного чтения ответа.
    """

    def __init__(
        self,
        transport: Optional[Transport] = None,
        settings: Optional[Settings] = None,
        cookie_store: Optional[CookieDomainStore] = None,
    ):
        self.settings = settings or Settings()
        self.transport = transport or AiohttpTransport(timeout=self.settings.timeout_seconds)
        self.cookie_store = cookie_store or CookieDomainStore(self.standard_mobile_cookies())

    @staticmethod
    def standard_mobile_cookies():
        """Cookies, по которым Steam узнает мобильное приложение"""
        return [
            CookieRecord(STEAM_COMMUNITY_HOST, 'Steam_Language', 'english'),
            CookieRecord(STEAM_COMMUNITY_HOST, 'mobileClient', 'android'),
            CookieRecord(STEAM_COMMUNITY_HOST, 'mobileClientVersion', '0 (2.1.3)'),
        ]

    def _get_headers(self) -> Dict[str, str]:
        """Получение заголовков"""
        return {
            'User-Agent': self.settings.user_agent,
            'Accept': 'text/javascript, text/html, application/xml, text/xml, */*',
            'Referer': MOBILE_REFERER,
            'X-Requested-With': 'com.valvesoftware.android.steam.community',
        }

    async def close(self):
        await self.transport.close()

    def get_cookie_value(self, domain: str, name: str) -> Optional[str]:
        return self.cookie_store.get(domain, name)

    def session_id(self, domain: str = STEAM_COMMUNITY_HOST) -> Optional[str]:
        return self.cookie_store.get(domain, 'sessionid')

    async def request(
        self,
        url: str,
        method: str = 'GET',
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Params] = None,
        params: Optional[Params] = None,
        allow_redirects: bool = True,
    ) -> HttpResponse:
        """
        Запрос с cookies домена.

        Args:
            url: Полный URL
            method: HTTP метод
            headers: Дополнительные заголовки
            data: Форма (отправляется как x-www-form-urlencoded)
            params: Query параметры
            allow_redirects: False для проверки редиректа сессии

        Returns:
            HttpResponse
        """
        host = URL(url).host
        if not host:
            raise InternalGeneralFailure(f"Couldn't parse URL: {url}")

        request_headers = {**self._get_headers(), **(headers or {})}
        cookie_header = self.cookie_store.header_for(host)
        if cookie_header:
            request_headers['Cookie'] = cookie_header
        if data is not None:
            request_headers.setdefault('Content-Type', FORM_CONTENT_TYPE)

        response = await self.transport.send(
            method,
            url,
            headers=request_headers,
            data=data,
            params=params,
            allow_redirects=allow_redirects,
        )

        if response.cookies:
            cookie_host = response.host or host
            self.cookie_store.update_from_response(cookie_host, response.cookies)
            logger.trace(f"Stored {len(response.cookies)} cookies from {cookie_host}")

        return response

    async def request_json(
        self,
        url: str,
        method: str = 'GET',
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Params] = None,
        params: Optional[Params] = None,
    ) -> Any:
        """Запрос с разбором JSON"""
        response = await self.request(url, method, headers=headers, data=data, params=params)
        payload = response.json()
        logger.debug(f"{url} json: {str(payload)[:200]}")
        return payload

    async def get_html(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Params] = None,
    ) -> BeautifulSoup:
        response = await self.request(url, 'GET', headers=headers, params=params)
        return BeautifulSoup(response.text, 'html.parser')
