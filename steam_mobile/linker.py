"""
Привязка и отвязка мобильного аутентификатора Steam Guard.

Ни один шаг не повторяется автоматически: SMS и одноразовые коды
при повторах могут заблокировать аккаунт.
"""

import re
from dataclasses import dataclass, fields
from enum import IntEnum
from typing import Any, Dict

from loguru import logger

from .cache import SessionCache
from .client import STEAM_API_BASE, STEAM_COMMUNITY_BASE
from .errors import LinkerError
from .guard import generate_auth_code, generate_device_id
from .identity import MobileAuthFile
from .session_guard import SessionGuard


PHONE_AJAX_URL = f'{STEAM_COMMUNITY_BASE}/steamguard/phoneajax'
ADD_AUTHENTICATOR_URL = f'{STEAM_API_BASE}/ITwoFactorService/AddAuthenticator/v0001'
FINALIZE_AUTHENTICATOR_URL = f'{STEAM_API_BASE}/ITwoFactorService/FinalizeAddAuthenticator/v0001'
REMOVE_AUTHENTICATOR_URL = f'{STEAM_API_BASE}/ITwoFactorService/RemoveAuthenticator/v0001'
QUERY_STATUS_URL = f'{STEAM_API_BASE}/ITwoFactorService/QueryStatus/v0001'

PHONE_NUMBER_RE = re.compile(r'^\+\d{8,15}$')

STATUS_OK = 1
STATUS_ALREADY_LINKED = 29
STATUS_BAD_SMS_CODE = 89


# Шаги добавления аутентификатора -------------------------------------------


class AddAuthenticatorStep:
    """Шаг диалога добавления аутентификатора"""

    def __eq__(self, other) -> bool:
        return type(self) is type(other) and vars(self) == vars(other)

    def __repr__(self) -> str:
        return type(self).__name__


class InitialStep(AddAuthenticatorStep):
    """Начало: при необходимости добавляется телефон"""
    pass


class EmailConfirmation(AddAuthenticatorStep):
    """Пользователь должен подтвердить телефон по ссылке из письма"""
    pass


class MobileAuth(AddAuthenticatorStep):
    """Аутентификатор добавлен, maFile нужно сохранить до finalize"""

    def __init__(self, mafile: MobileAuthFile):
        self.mafile = mafile

    def __repr__(self) -> str:
        return f"MobileAuth({self.mafile.account_name})"


class RemoveAuthenticatorScheme(IntEnum):
    """Что оставить после удаления аутентификатора"""
    RETURN_TO_EMAIL = 1
    REMOVE_STEAM_GUARD = 2


@dataclass(frozen=True)
class QueryStatusResponse:
    """Состояние Steam Guard аккаунта"""
    state: int = 0
    inactivation_reason: int = 0
    authenticator_type: int = 0
    authenticator_allowed: bool = False
    steamguard_scheme: int = 0
    token_gid: str = ''
    email_validated: bool = False
    device_identifier: str = ''
    time_created: int = 0
    revocation_attempts_remaining: int = 0
    classified_agent: str = ''
    allow_external_authenticator: bool = False
    time_transferred: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'QueryStatusResponse':
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})


def validate_phone_number(phone_number: str) -> bool:
    """Формат +(код страны)(код региона)(номер), например +5511976914922"""
    return bool(PHONE_NUMBER_RE.match(phone_number or ''))


# Запросы --------------------------------------------------------------------


async def _phone_ajax(guard: SessionGuard, cache: SessionCache, op: str, arg: str = 'null', **extra) -> Dict[str, Any]:
    form = {'op': op, 'arg': arg, 'sessionid': cache.session_id, **extra}
    data = await guard.request_json(PHONE_AJAX_URL, 'POST', data=form)
    if not isinstance(data, dict):
        raise LinkerError(f"Unexpected phoneajax '{op}' response: {data!r}")
    logger.debug(f"phoneajax {op}: {data}")
    return data


async def _two_factor_service(guard: SessionGuard, cache: SessionCache, url: str, form: Dict[str, Any]) -> Dict[str, Any]:
    form = {'steamid': cache.account_id, 'access_token': cache.oauth_token, **form}
    data = await guard.request_json(url, 'POST', data=form)
    if not isinstance(data, dict) or not isinstance(data.get('response'), dict):
        raise LinkerError(f"Unexpected ITwoFactorService response: {data!r}")
    return data['response']


async def account_has_phone(guard: SessionGuard, cache: SessionCache) -> bool:
    data = await _phone_ajax(guard, cache, 'has_phone')
    return bool(data.get('has_phone'))


async def add_phone_to_account(guard: SessionGuard, cache: SessionCache, phone_number: str) -> bool:
    data = await _phone_ajax(guard, cache, 'add_phone_number', phone_number)
    if not data.get('success'):
        raise LinkerError(f"Steam was unable to add phone number: {data}")
    return True


async def check_email_confirmation(guard: SessionGuard, cache: SessionCache) -> bool:
    """Сообщаем Steam, что пользователь подтвердил письмо"""
    data = await _phone_ajax(guard, cache, 'email_confirmation', '')
    if not data.get('success'):
        raise LinkerError(f"Email confirmation was not accepted: {data}")
    return True


async def check_sms(guard: SessionGuard, cache: SessionCache, sms_code: str) -> bool:
    data = await _phone_ajax(guard, cache, 'check_sms_code', sms_code, checkfortos=0, skipvoip=1)
    if not data.get('success'):
        raise LinkerError(f"SMS code was not accepted: {data}")
    return True


async def add_authenticator_to_account(guard: SessionGuard, cache: SessionCache) -> MobileAuthFile:
    """
    Запрос нового аутентификатора.

    Returns:
        MobileAuthFile с секретами. Его нужно сохранить ДО finalize.
    """
    device_id = generate_device_id(cache.account_id)
    response = await _two_factor_service(guard, cache, ADD_AUTHENTICATOR_URL, {
        'authenticator_type': 1,
        'device_identifier': device_id,
        'sms_phone_id': '1',
    })

    status = response.get('status')
    if status == STATUS_ALREADY_LINKED:
        raise LinkerError("Account already has an authenticator linked")
    if status != STATUS_OK:
        raise LinkerError(f"Failed to add authenticator. Status code: {status}")

    try:
        mafile = MobileAuthFile(
            shared_secret=response['shared_secret'],
            identity_secret=response['identity_secret'],
            device_id=device_id,
            revocation_code=response.get('revocation_code'),
            account_name=response.get('account_name', ''),
            steam_id=cache.account_id,
            serial_number=str(response['serial_number']) if response.get('serial_number') else None,
            uri=response.get('uri'),
            token_gid=response.get('token_gid'),
            secret_1=response.get('secret_1'),
            server_time=int(response['server_time']) if response.get('server_time') else None,
        )
    except KeyError as e:
        raise LinkerError(f"Missing {e} in AddAuthenticator response") from e

    logger.info(f"Authenticator added for {mafile.account_name}. Save the revocation code!")
    return mafile


async def finalize(guard: SessionGuard, cache: SessionCache, mafile: MobileAuthFile, sms_code: str):
    """Завершение привязки кодом из SMS и первым 2FA кодом"""
    timestamp = cache.steam_time.now()
    response = await _two_factor_service(guard, cache, FINALIZE_AUTHENTICATOR_URL, {
        'activation_code': sms_code,
        'authenticator_code': generate_auth_code(mafile.shared_secret, timestamp),
        'authenticator_time': timestamp,
    })

    if response.get('success'):
        if response.get('want_more'):
            raise LinkerError("Steam asked for more authenticator codes, finalize was not completed")
        logger.info("Authenticator finalized")
        return

    status = response.get('status')
    if status == STATUS_BAD_SMS_CODE:
        raise LinkerError("Invalid SMS code")
    raise LinkerError(f"Failed to finalize authenticator. Status: {status}")


async def remove_authenticator(
    guard: SessionGuard,
    cache: SessionCache,
    revocation_code: str,
    scheme: RemoveAuthenticatorScheme,
):
    response = await _two_factor_service(guard, cache, REMOVE_AUTHENTICATOR_URL, {
        'revocation_code': revocation_code,
        'steamguard_scheme': int(scheme),
        'revocation_reason': 1,
    })
    if not response.get('success'):
        raise LinkerError(f"Failed to remove authenticator: {response}")
    logger.info(f"Authenticator removed ({scheme.name})")


async def twofactor_status(guard: SessionGuard, cache: SessionCache) -> QueryStatusResponse:
    response = await _two_factor_service(guard, cache, QUERY_STATUS_URL, {})
    return QueryStatusResponse.from_dict(response)
