"""
Общие фикстуры: скриптованный транспорт вместо сети.
"""

import json
import time
from base64 import b64encode
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import pytest
import rsa
from yarl import URL

from steam_mobile.api_key import API_KEY_URL
from steam_mobile.client import MOBILE_REFERER
from steam_mobile.errors import NetworkError
from steam_mobile.identity import MobileAuthFile, SteamUser
from steam_mobile.login import LOGIN_DO_URL, LOGIN_GETRSA_URL, QUERY_TIME_URL
from steam_mobile.session_guard import ACCOUNT_URL
from steam_mobile.settings import RetrySettings, Settings
from steam_mobile.transport import HttpResponse


STEAM_ID = 76561198000000001
SHARED_SECRET = b64encode(b'shared-secret-0123456789').decode()
IDENTITY_SECRET = b64encode(b'identity-secret-0123456789').decode()
DEVICE_ID = 'android:6c6f0a2b-1111-2222-3333-444455556666'
API_KEY = '0123456789ABCDEF0123456789ABCDEF'


@dataclass
class RecordedRequest:
    method: str
    url: str
    headers: Dict[str, str]
    data: Any
    params: Any
    allow_redirects: bool

    def form(self) -> Dict[str, Any]:
        items = self.data.items() if isinstance(self.data, dict) else (self.data or [])
        return {k: v for k, v in items}

    def form_list(self, key: str) -> List[Any]:
        items = self.data.items() if isinstance(self.data, dict) else (self.data or [])
        return [v for k, v in items if k == key]

    def query(self) -> Dict[str, Any]:
        items = self.params.items() if isinstance(self.params, dict) else (self.params or [])
        return {k: v for k, v in items}


def make_response(
    url: str,
    status: int = 200,
    text: str = '',
    json_body: Any = None,
    cookies: Optional[List[tuple]] = None,
    location: Optional[str] = None,
) -> HttpResponse:
    if json_body is not None:
        text = json.dumps(json_body)
    return HttpResponse(
        status=status,
        url=url,
        host=URL(url).host or '',
        text=text,
        cookies=list(cookies or []),
        location=location,
    )


def strip_query(url: str) -> str:
    return url.split('?', 1)[0]


class FakeTransport:
    """
    Ответы по (метод, URL без query). Очередь из нескольких ответов
    отдается по порядку, последний ответ повторяется.
    Элемент очереди: HttpResponse, исключение или callable(request).
    """

    def __init__(self):
        self.routes: Dict[tuple, list] = {}
        self.requests: List[RecordedRequest] = []
        self.closed = False
        self.add(ACCOUNT_URL, make_response(ACCOUNT_URL), method='HEAD')

    def add(self, url: str, *responses, method: str = 'GET'):
        self.routes[(method, strip_query(url))] = list(responses)

    def add_json(self, url: str, body: Any, method: str = 'GET'):
        self.add(url, make_response(url, json_body=body), method=method)

    def calls(self, url: str, method: Optional[str] = None) -> List[RecordedRequest]:
        return [
            r for r in self.requests
            if strip_query(r.url) == strip_query(url) and (method is None or r.method == method)
        ]

    async def send(self, method, url, *, headers=None, data=None, params=None, allow_redirects=True):
        request = RecordedRequest(method, url, dict(headers or {}), data, params, allow_redirects)
        self.requests.append(request)

        queue = self.routes.get((method, strip_query(url)))
        if not queue:
            raise AssertionError(f"Unexpected request: {method} {url}")
        item = queue.pop(0) if len(queue) > 1 else queue[0]

        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        return item

    async def close(self):
        self.closed = True


async def no_sleep(_delay: float):
    return None


class RecordingSleep:
    def __init__(self):
        self.delays: List[float] = []

    async def __call__(self, delay: float):
        self.delays.append(delay)


@pytest.fixture(scope='session')
def rsa_keys():
    return rsa.newkeys(512)


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def settings():
    return Settings(retry=RetrySettings(max_attempts=4, initial_delay=1.0, multiplier=2.0, max_delay=3.0))


@pytest.fixture
def mafile():
    return MobileAuthFile(
        shared_secret=SHARED_SECRET,
        identity_secret=IDENTITY_SECRET,
        device_id=DEVICE_ID,
        account_name='testuser',
        steam_id=STEAM_ID,
    )


@pytest.fixture
def user(mafile):
    return SteamUser('testuser', 'hunter2', mafile)


@pytest.fixture
def user_without_mafile():
    return SteamUser('testuser', 'hunter2')


def oauth_login_body(steam_id: int = STEAM_ID) -> Dict[str, Any]:
    return {
        'success': True,
        'requires_twofactor': False,
        'login_complete': True,
        'redirect_uri': 'steammobile://mobileloginsucceeded',
        'oauth': json.dumps({
            'steamid': str(steam_id),
            'account_name': 'testuser',
            'oauth_token': 'oauth-token-value',
            'wgtoken': 'wg-token-value',
            'wgtoken_secure': 'wg-secure-token-value',
        }),
    }


def api_key_page(api_key: Optional[str] = API_KEY) -> str:
    if api_key is None:
        return (
            '<div id="bodyContents_ex"><h2>Register for a new Steam Web API Key</h2>'
            '<form id="editForm" action="https://steamcommunity.com/dev/registerkey" method="POST"></form></div>'
        )
    return f'<div id="bodyContents_ex"><h2>Your Steam Web API Key</h2><p>Key: {api_key}</p></div>'


def script_login(transport: FakeTransport, rsa_public_key, login_responses=None, steam_id: int = STEAM_ID):
    """Все шаги входа плюс страница API key"""
    transport.add(
        MOBILE_REFERER,
        make_response(MOBILE_REFERER, cookies=[('sessionid', 'a1b2c3d4e5f6a7b8c9d0e1f2', '/')]),
    )
    transport.add_json(QUERY_TIME_URL, {'response': {'server_time': str(int(time.time()) + 7)}}, method='POST')
    transport.add_json(LOGIN_GETRSA_URL, {
        'success': True,
        'publickey_mod': format(rsa_public_key.n, 'x'),
        'publickey_exp': format(rsa_public_key.e, 'x'),
        'timestamp': '382650000000',
        'token_gid': '2a1b',
    }, method='POST')
    if login_responses is None:
        login_responses = [make_response(LOGIN_DO_URL, json_body=oauth_login_body(steam_id))]
    transport.add(LOGIN_DO_URL, *login_responses, method='POST')
    transport.add(API_KEY_URL, make_response(API_KEY_URL, text=api_key_page()))


def network_error() -> NetworkError:
    return NetworkError('connection reset')
