"""
Вход в Steam через мобильную веб-форму.

Шаги: sessionid -> время Steam -> RSA ключ -> шифрование пароля -> 2FA код ->
dologin -> разбор ответа -> cookies сессии на все домены.
"""

import json
import asyncio
from base64 import b64encode
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

import rsa
from loguru import logger

from .cache import SessionCache, SessionInfo
from .client import (
    MOBILE_REFERER,
    SESSION_HOSTS,
    STEAM_API_BASE,
    STEAM_COMMUNITY_BASE,
    STEAM_COMMUNITY_HOST,
    MobileClient,
)
from .errors import (
    AuthError,
    CaptchaRequired,
    DeserializationError,
    IncorrectCredentials,
    InternalError,
    InternalGeneralFailure,
    LoginGeneralFailure,
)
from .guard import SteamTime, generate_auth_code
from .identity import SteamUser
from .retry import Attempt, Fatal, Ok, Retryable, RetryPolicy, Sleep


LOGIN_GETRSA_URL = f'{STEAM_COMMUNITY_BASE}/login/getrsakey'
LOGIN_DO_URL = f'{STEAM_COMMUNITY_BASE}/login/dologin'
QUERY_TIME_URL = f'{STEAM_API_BASE}/ITwoFactorService/QueryTime/v0001'

OAUTH_CLIENT_ID = 'DE45CD61'
OAUTH_SCOPE = 'read_profile write_profile read_client write_client'

INCORRECT_CREDENTIALS_PHRASE = 'The account name or password that you have entered is incorrect'


class LoginOutcomeKind(Enum):
    """Результат попытки входа"""
    SUCCESS = 'success'
    CAPTCHA_REQUIRED = 'captcha_required'
    INCORRECT_CREDENTIALS = 'incorrect_credentials'
    TRANSIENT_FAILURE = 'transient_failure'
    GENERAL_FAILURE = 'general_failure'


@dataclass(frozen=True)
class OAuthData:
    """Вложенный блок oauth из ответа dologin"""
    steamid: int
    account_name: str
    oauth_token: str
    wgtoken: str
    wgtoken_secure: str


@dataclass(frozen=True)
class LoginCaptcha:
    """Решенная капча для повторного входа"""
    guid: str
    text: str


@dataclass
class LoginOutcome:
    """
    Классифицированный ответ на попытку входа.

    SUCCESS несет oauth, а после установки cookies еще и cache.
    TRANSIENT_FAILURE несет исходную InternalError.
    """
    kind: LoginOutcomeKind
    oauth: Optional[OAuthData] = None
    cache: Optional[SessionCache] = None
    guid: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[InternalError] = None

    @classmethod
    def success(cls, oauth: OAuthData, cache: Optional[SessionCache] = None) -> 'LoginOutcome':
        return cls(LoginOutcomeKind.SUCCESS, oauth=oauth, cache=cache)

    @classmethod
    def captcha_required(cls, guid: str) -> 'LoginOutcome':
        return cls(LoginOutcomeKind.CAPTCHA_REQUIRED, guid=guid)

    @classmethod
    def incorrect_credentials(cls) -> 'LoginOutcome':
        return cls(LoginOutcomeKind.INCORRECT_CREDENTIALS)

    @classmethod
    def transient(cls, error: InternalError) -> 'LoginOutcome':
        return cls(LoginOutcomeKind.TRANSIENT_FAILURE, reason=str(error), error=error)

    @classmethod
    def general_failure(cls, reason: str) -> 'LoginOutcome':
        return cls(LoginOutcomeKind.GENERAL_FAILURE, reason=reason)

    @property
    def is_retryable(self) -> bool:
        return self.kind == LoginOutcomeKind.TRANSIENT_FAILURE

    def to_error(self) -> AuthError:
        if self.kind == LoginOutcomeKind.CAPTCHA_REQUIRED:
            return CaptchaRequired(self.guid)
        if self.kind == LoginOutcomeKind.INCORRECT_CREDENTIALS:
            return IncorrectCredentials()
        if self.kind == LoginOutcomeKind.TRANSIENT_FAILURE:
            return self.error
        if self.kind == LoginOutcomeKind.GENERAL_FAILURE:
            return LoginGeneralFailure(self.reason)
        raise ValueError("Successful login outcome has no error")

    def as_attempt(self) -> Attempt:
        """Граница между рукопожатием и политикой повторов"""
        if self.kind == LoginOutcomeKind.SUCCESS:
            return Ok(self.cache)
        if self.is_retryable:
            return Retryable(self.to_error())
        return Fatal(self.to_error())


def encrypt_password(password: str, publickey_mod: str, publickey_exp: str) -> str:
    """
    RSA PKCS#1 v1.5 шифрование пароля ключом из getrsakey.

    Args:
        password: Пароль открытым текстом
        publickey_mod: Модуль (hex)
        publickey_exp: Экспонента (hex)

    Returns:
        Шифротекст в base64
    """
    public_key = rsa.PublicKey(int(publickey_mod, 16), int(publickey_exp, 16))
    return b64encode(rsa.encrypt(password.encode('utf-8'), public_key)).decode('utf-8')


def resolve_login_response(text: str) -> LoginOutcome:
    """Разбор тела ответа dologin"""
    try:
        payload = json.loads(text)
    except ValueError:
        payload = None

    if not isinstance(payload, dict):
        if INCORRECT_CREDENTIALS_PHRASE in text:
            return LoginOutcome.incorrect_credentials()
        return LoginOutcome.transient(DeserializationError("Login response is not a JSON object", text))

    oauth = payload.get('oauth')
    if payload.get('success') and oauth:
        try:
            if isinstance(oauth, str):
                # oauth приходит строкой с JSON внутри JSON
                oauth = json.loads(oauth)
            return LoginOutcome.success(OAuthData(
                steamid=int(oauth['steamid']),
                account_name=oauth['account_name'],
                oauth_token=oauth['oauth_token'],
                wgtoken=oauth['wgtoken'],
                wgtoken_secure=oauth['wgtoken_secure'],
            ))
        except (ValueError, KeyError, TypeError) as e:
            return LoginOutcome.transient(DeserializationError(f"Malformed oauth block: {e!r}", text))

    if payload.get('captcha_needed'):
        return LoginOutcome.captcha_required(str(payload.get('captcha_gid', '-1')))

    if INCORRECT_CREDENTIALS_PHRASE in text:
        return LoginOutcome.incorrect_credentials()

    message = payload.get('message')
    if not message and payload.get('requires_twofactor'):
        message = "Steam Guard code required or rejected"
    return LoginOutcome.general_failure(message or text)


def timezone_offset_cookie() -> str:
    offset = datetime.now().astimezone().utcoffset()
    seconds = int(offset.total_seconds()) if offset else 0
    return f"{seconds},0"


class LoginHandshake:
    """Одна полная попытка входа, без повторов"""

    def __init__(
        self,
        client: MobileClient,
        user: SteamUser,
        captcha: Optional[LoginCaptcha] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.client = client
        self.user = user
        self.captcha = captcha
        self.sleep = sleep

    async def attempt(self) -> LoginOutcome:
        """
        Попытка входа. Не бросает AuthError: все исходы возвращаются как LoginOutcome.
        """
        try:
            return await self._attempt()
        except InternalError as e:
            logger.warning(f"Login attempt failed: {e}")
            return LoginOutcome.transient(e)

    async def _attempt(self) -> LoginOutcome:
        session_id = await self._request_session_id()
        steam_time = await self._query_steam_time()

        rsa_key = await self._fetch_rsa_key(steam_time)
        # Steam не успевает за слишком быстрыми запросами
        await self.sleep(self.client.settings.rsa_catchup_seconds)

        try:
            encrypted_password = encrypt_password(
                self.user.password,
                rsa_key['publickey_mod'],
                rsa_key['publickey_exp'],
            )
        except (ValueError, TypeError, OverflowError) as e:
            raise DeserializationError(f"Malformed rsa key: {e!r}", json.dumps(rsa_key)) from e

        two_factor_code = ''
        if self.user.shared_secret:
            two_factor_code = generate_auth_code(self.user.shared_secret, steam_time.now())

        response = await self.client.request(
            LOGIN_DO_URL,
            'POST',
            data=self._login_form(encrypted_password, two_factor_code, rsa_key['timestamp'], steam_time),
        )
        outcome = resolve_login_response(response.text)

        if outcome.kind != LoginOutcomeKind.SUCCESS:
            logger.debug(f"Login outcome: {outcome.kind.value} ({outcome.reason})")
            return outcome

        cache = self._install_session(outcome.oauth, session_id, steam_time)
        return LoginOutcome.success(outcome.oauth, cache)

    async def _request_session_id(self) -> str:
        """Анонимный запрос, чтобы Steam выдал cookie sessionid"""
        await self.client.request(MOBILE_REFERER, 'GET')
        session_id = self.client.session_id(STEAM_COMMUNITY_HOST)
        if not session_id:
            raise InternalGeneralFailure("Something went wrong while getting sessionid. Should retry")
        return session_id

    async def _query_steam_time(self) -> SteamTime:
        """Сдвиг локальных часов относительно Steam"""
        data = await self.client.request_json(QUERY_TIME_URL, 'POST', data={'steamid': '0'})
        try:
            server_time = int(data['response']['server_time'])
        except (KeyError, TypeError, ValueError) as e:
            raise DeserializationError(f"Could not parse server_time: {e!r}", json.dumps(data)) from e
        return SteamTime.from_server_time(server_time)

    async def _fetch_rsa_key(self, steam_time: SteamTime) -> dict:
        data = await self.client.request_json(
            LOGIN_GETRSA_URL,
            'POST',
            data={'donotcache': steam_time.now_ms(), 'username': self.user.username},
        )
        if not isinstance(data, dict) or not all(k in data for k in ('publickey_mod', 'publickey_exp', 'timestamp')):
            raise DeserializationError("Could not obtain rsa-key", json.dumps(data))
        return data

    def _login_form(self, encrypted_password: str, two_factor_code: str, rsa_timestamp: str, steam_time: SteamTime) -> dict:
        return {
            'donotcache': steam_time.now_ms(),
            'username': self.user.username,
            'password': encrypted_password,
            'twofactorcode': two_factor_code,
            'captchagid': self.captcha.guid if self.captcha else '-1',
            'captcha_text': self.captcha.text if self.captcha else '',
            'emailauth': '',
            'emailsteamid': '',
            'rsatimestamp': rsa_timestamp,
            'remember_login': 'true',
            'oauth_client_id': OAUTH_CLIENT_ID,
            'oauth_score': OAUTH_SCOPE,
        }

    def _install_session(self, oauth: OAuthData, session_id: str, steam_time: SteamTime) -> SessionCache:
        """Cookies сессии на community, help и store одной записью, затем кэш"""
        self.client.cookie_store.project(
            {
                'steamLoginSecure': f"{oauth.steamid}%7C%7C{oauth.wgtoken_secure}",
                'steamLogin': f"{oauth.steamid}%7C%7C{oauth.wgtoken}",
                'sessionid': session_id,
                'timezoneOffset': timezone_offset_cookie(),
            },
            SESSION_HOSTS,
        )

        return SessionCache(SessionInfo(
            account_id=oauth.steamid,
            account_name=oauth.account_name,
            session_token=oauth.wgtoken,
            secure_session_token=oauth.wgtoken_secure,
            oauth_token=oauth.oauth_token,
            session_id=session_id,
            time_offset=steam_time.offset,
        ))


async def login_and_store_cookies(
    client: MobileClient,
    user: SteamUser,
    policy: Optional[RetryPolicy] = None,
    captcha: Optional[LoginCaptcha] = None,
) -> SessionCache:
    """
    Вход с повторами временных ошибок.

    Raises:
        LoginError сразу при капче, неверном пароле или отказе Steam.
        InternalError, если временные ошибки не прошли за все попытки.
    """
    policy = policy or RetryPolicy(client.settings.retry)
    handshake = LoginHandshake(client, user, captcha, sleep=policy.sleep)

    async def attempt() -> Attempt:
        outcome = await handshake.attempt()
        return outcome.as_attempt()

    cache = await policy.run(attempt)
    logger.info(f"Logged in as {user.username} ({cache.account_id})")
    return cache
