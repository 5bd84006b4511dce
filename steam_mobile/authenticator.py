"""
Главный аутентификатор: притворяется мобильным приложением Steam.

Жизненный цикл в два состояния:
    SteamAuthenticator (не вошли) --login()--> AuthenticatedAuthenticator
Если у учетки есть maFile с identity_secret, login() возвращает
ConfirmationAuthenticator, у которого есть операции с подтверждениями.
"""

import asyncio
from enum import Enum
from typing import Dict, Iterable, List, Optional

from loguru import logger

from .api_key import cache_api_key
from .cache import SessionCache, SessionInfo
from .client import MobileClient
from .confirmations import (
    Confirmation,
    ConfirmationAction,
    ConfirmationDetails,
    ConfirmationFilter,
    get_confirmation_details,
    get_confirmations,
    send_confirmations,
)
from .errors import AuthenticatorConsumed, LinkerError, MissingConfirmationSecrets
from .identity import MobileAuthFile, SteamUser
from .linker import (
    AddAuthenticatorStep,
    EmailConfirmation,
    InitialStep,
    MobileAuth,
    QueryStatusResponse,
    RemoveAuthenticatorScheme,
    account_has_phone,
    add_authenticator_to_account,
    add_phone_to_account,
    check_email_confirmation,
    check_sms,
    finalize,
    remove_authenticator,
    twofactor_status,
    validate_phone_number,
)
from .login import LoginCaptcha, login_and_store_cookies
from .retry import RetryPolicy, Sleep
from .session_guard import SessionGuard
from .settings import Settings
from .transport import HttpResponse, Params, Transport


class AuthState(Enum):
    UNAUTHENTICATED = 'unauthenticated'
    AUTHENTICATED = 'authenticated'


class SteamAuthenticator:
    """
    Аутентификатор до входа. Сетевых запросов не делает до login().

    login() можно вызвать только один раз: объект "расходуется" даже при ошибке,
    для новой попытки нужен новый SteamAuthenticator с той же учеткой.
    """

    state = AuthState.UNAUTHENTICATED

    def __init__(
        self,
        user: SteamUser,
        settings: Optional[Settings] = None,
        transport: Optional[Transport] = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._user = user
        self._client = MobileClient(transport=transport, settings=settings)
        self._sleep = sleep
        self._consumed = False

    @property
    def user(self) -> SteamUser:
        return self._user

    async def login(self, captcha: Optional[LoginCaptcha] = None) -> 'AuthenticatedAuthenticator':
        """
        Вход на сайт Steam с cookies для community, store и help.

        Временные ошибки повторяются с экспоненциальной задержкой.
        Капча, неверный пароль и прочие отказы Steam поднимаются сразу.
        Также пытается закэшировать API key, ошибка при этом игнорируется.

        Raises:
            AuthenticatorConsumed: login() уже вызывался
            LoginError: постоянная ошибка входа
            InternalError: временные ошибки не прошли за все попытки
        """
        if self._consumed:
            raise AuthenticatorConsumed()
        self._consumed = True

        policy = RetryPolicy(self._client.settings.retry, sleep=self._sleep)
        cache = await login_and_store_cookies(self._client, self._user, policy, captcha)
        logger.info("Login to Steam successfully.")

        await cache_api_key(self._client, cache)

        if self._user.has_confirmation_secrets:
            return ConfirmationAuthenticator(self._user, self._client, cache, self._sleep)
        return AuthenticatedAuthenticator(self._user, self._client, cache, self._sleep)

    async def close(self):
        await self._client.close()


class AuthenticatedAuthenticator:
    """Аутентификатор после успешного входа"""

    state = AuthState.AUTHENTICATED

    def __init__(self, user: SteamUser, client: MobileClient, cache: SessionCache, sleep: Sleep = asyncio.sleep):
        self._user = user
        self._client = client
        self._cache = cache
        self._sleep = sleep
        self._guard = SessionGuard(client, enabled=client.settings.session_guard)

    @property
    def user(self) -> SteamUser:
        return self._user

    @property
    def account_id(self) -> int:
        return self._cache.account_id

    @property
    def session(self) -> SessionInfo:
        return self._cache.snapshot()

    @property
    def has_confirmation_secrets(self) -> bool:
        return self._user.has_confirmation_secrets

    def api_key(self) -> Optional[str]:
        """Закэшированный API key, без запросов"""
        return self._cache.api_key

    def dump_cookie(self, domain: str, name: str) -> Optional[str]:
        return self._client.get_cookie_value(domain, name)

    def with_mafile(self, mafile: MobileAuthFile) -> 'ConfirmationAuthenticator':
        """Та же сессия, но с maFile (например, после finalize_authenticator)"""
        return ConfirmationAuthenticator(self._user.with_mafile(mafile), self._client, self._cache, self._sleep)

    async def session_is_expired(self) -> bool:
        return await self._guard.session_is_expired()

    async def steam_guard_status(self) -> QueryStatusResponse:
        return await twofactor_status(self._guard, self._cache)

    async def add_authenticator(self, current_step: AddAuthenticatorStep, phone_number: str) -> AddAuthenticatorStep:
        """
        Добавление аутентификатора к аккаунту.

        Сначала вызывается с InitialStep. Если телефона нет, он добавляется и
        возвращается EmailConfirmation: пользователь подтверждает письмо, после
        чего метод вызывается с EmailConfirmation. Результат MobileAuth(maFile).

        Args:
            current_step: Текущий шаг
            phone_number: Телефон в формате +5511976914922

        Returns:
            Следующий шаг
        """
        has_phone = await account_has_phone(self._guard, self._cache)
        logger.debug(f"Has phone registered? {has_phone}")

        if not has_phone and isinstance(current_step, InitialStep):
            await self._add_phone_number(phone_number)
            return EmailConfirmation()

        # С уже привязанным телефоном сигнал о письме ломает финализацию
        if not has_phone:
            await check_email_confirmation(self._guard, self._cache)
            logger.debug("Email confirmation signal sent.")

        mafile = await add_authenticator_to_account(self._guard, self._cache)
        return MobileAuth(mafile)

    async def finalize_authenticator(self, mafile: MobileAuthFile, sms_code: str):
        """
        Завершение привязки. Вызывать ТОЛЬКО после сохранения maFile,
        иначе доступ к аккаунту будет потерян.
        """
        await check_sms(self._guard, self._cache, sms_code)
        # Steam нужно время, чтобы увидеть новый телефон
        await self._sleep(self._client.settings.phone_catchup_seconds)

        if not await account_has_phone(self._guard, self._cache):
            raise LinkerError("Phone number is still not registered after SMS confirmation")

        logger.info("Successfully confirmed SMS code.")
        await finalize(self._guard, self._cache, mafile, sms_code)

    async def remove_authenticator(self, revocation_code: str, scheme: RemoveAuthenticatorScheme):
        await remove_authenticator(self._guard, self._cache, revocation_code, scheme)

    async def request_custom_endpoint(
        self,
        url: str,
        method: str = 'GET',
        headers: Optional[Dict[str, str]] = None,
        data: Optional[Params] = None,
        params: Optional[Params] = None,
    ) -> HttpResponse:
        """Любой запрос, требующий входа, с cookies сессии и проверкой сессии"""
        return await self._guard.request(url, method, headers=headers, data=data, params=params)

    async def _add_phone_number(self, phone_number: str):
        if not validate_phone_number(phone_number):
            raise LinkerError(
                "Invalid phone number. Should be in format of: +(CountryCode)(AreaCode)(PhoneNumber). "
                "E.g +5511976914922"
            )
        await add_phone_to_account(self._guard, self._cache, phone_number)
        await self._sleep(self._client.settings.phone_catchup_seconds)

    async def close(self):
        await self._client.close()

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._user.username}, {self._cache.account_id})"


class ConfirmationAuthenticator(AuthenticatedAuthenticator):
    """Вошли и есть identity_secret: доступны подтверждения"""

    def __init__(self, user: SteamUser, client: MobileClient, cache: SessionCache, sleep: Sleep = asyncio.sleep):
        if not user.has_confirmation_secrets:
            raise MissingConfirmationSecrets(type(self).__name__)
        super().__init__(user, client, cache, sleep)

    async def fetch_confirmations(self) -> List[Confirmation]:
        """Все ожидающие подтверждения"""
        return await get_confirmations(
            self._guard,
            self._user.identity_secret,
            self._user.device_id,
            self._cache.account_id,
            self._cache.steam_time,
        )

    async def fetch_confirmation_details(self, confirmation: Confirmation) -> ConfirmationDetails:
        return await get_confirmation_details(
            self._guard,
            confirmation,
            self._user.identity_secret,
            self._user.device_id,
            self._cache.account_id,
            self._cache.steam_time,
        )

    async def process_confirmations(self, action: ConfirmationAction, confirmations: Iterable[Confirmation]):
        """Принять или отклонить подтверждения одним запросом"""
        await send_confirmations(
            self._guard,
            action,
            confirmations,
            self._user.identity_secret,
            self._user.device_id,
            self._cache.account_id,
            self._cache.steam_time,
        )

    async def handle_confirmations(
        self,
        action: ConfirmationAction,
        confirmation_filter: Optional[ConfirmationFilter] = None,
    ) -> List[Confirmation]:
        """
        Получить свежий список, отфильтровать и обработать.

        Returns:
            Обработанные подтверждения
        """
        confirmations = await self.fetch_confirmations()
        selected = list(confirmation_filter(confirmations)) if confirmation_filter else confirmations
        await self.process_confirmations(action, selected)
        return selected
