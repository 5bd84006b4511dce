"""
Мобильные подтверждения Steam (трейды, маркет, API key и т.д.).
Получение списка, детали одного подтверждения и пакетное принятие/отклонение.
"""

import re
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from bs4 import BeautifulSoup
from loguru import logger

from .client import STEAM_COMMUNITY_BASE
from .errors import DeserializationError, InternalGeneralFailure, SessionExpired
from .guard import TAG_DETAILS, TAG_LIST, SteamTime, generate_confirmation_key
from .session_guard import SessionGuard


CONFIRMATIONS_LIST_URL = f'{STEAM_COMMUNITY_BASE}/mobileconf/getlist'
CONFIRMATIONS_DETAILS_URL = f'{STEAM_COMMUNITY_BASE}/mobileconf/details'
CONFIRMATIONS_MULTI_OP_URL = f'{STEAM_COMMUNITY_BASE}/mobileconf/multiajaxop'

DEVICE_KIND = 'android'


class ConfirmationType(IntEnum):
    """Типы мобильных подтверждений"""
    UNKNOWN = 0
    GENERIC = 1
    TRADE = 2
    MARKET = 3
    FEATURE_OPT_OUT = 4
    PHONE_NUMBER_CHANGE = 5
    ACCOUNT_RECOVERY = 6
    API_KEY = 9

    @classmethod
    def parse(cls, value: Any) -> 'ConfirmationType':
        try:
            return cls(int(value))
        except (TypeError, ValueError):
            return cls.UNKNOWN


class ConfirmationAction(Enum):
    """Действие над подтверждениями. Значение совпадает с op и тегом подписи."""
    ACCEPT = 'allow'
    DENY = 'cancel'

    @property
    def operation(self) -> str:
        return self.value

    @property
    def tag(self) -> str:
        return self.value


@dataclass(frozen=True)
class Confirmation:
    """Ожидающее подтверждение"""
    id: str
    key: str
    kind: ConfirmationType
    creation_time: int
    creator_id: str
    type_name: str
    headline: str = ''
    summary: Tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Confirmation':
        return cls(
            id=str(data['id']),
            key=str(data['nonce']),
            kind=ConfirmationType.parse(data.get('type')),
            creation_time=int(data.get('creation_time', 0)),
            creator_id=str(data.get('creator_id', '')),
            type_name=data.get('type_name', ''),
            headline=data.get('headline', ''),
            summary=tuple(data.get('summary') or ()),
        )

    @property
    def trade_offer_id(self) -> Optional[int]:
        """ID трейд-оффера, только для TRADE"""
        if self.kind != ConfirmationType.TRADE:
            return None
        try:
            return int(self.creator_id)
        except ValueError:
            return None

    def has_trade_offer_id(self, offer_id: int) -> bool:
        return self.trade_offer_id is not None and self.trade_offer_id == int(offer_id)

    def __str__(self) -> str:
        return f"Confirmation {self.key} of {self.kind.name}"


@dataclass(frozen=True)
class ConfirmationDetails:
    """Детали подтверждения. trade_offer_id есть только у трейдов."""
    trade_offer_id: Optional[int] = None


ConfirmationFilter = Callable[[List[Confirmation]], Iterable[Confirmation]]


def only_trades(confirmations: List[Confirmation]) -> List[Confirmation]:
    """Фильтр: только трейд-офферы"""
    return [c for c in confirmations if c.kind == ConfirmationType.TRADE]


def signed_params(
    identity_secret: str,
    device_id: str,
    steam_id: int,
    tag: str,
    steam_time: SteamTime,
) -> Dict[str, Any]:
    """Общие подписанные параметры mobileconf"""
    timestamp = steam_time.now()
    return {
        'p': device_id,
        'a': steam_id,
        'k': generate_confirmation_key(identity_secret, tag, timestamp),
        't': timestamp,
        'm': DEVICE_KIND,
        'tag': tag,
    }


def parse_confirmations(data: Any, body: str = '') -> List[Confirmation]:
    if not isinstance(data, dict):
        raise DeserializationError("Confirmations response is not a JSON object", body)

    if data.get('needauth'):
        raise SessionExpired()

    if not data.get('success'):
        message = data.get('message') or data.get('detail') or 'unknown error'
        raise InternalGeneralFailure(f"Failed to fetch confirmations: {message}", body)

    try:
        return [Confirmation.from_dict(conf) for conf in data.get('conf', [])]
    except (KeyError, TypeError, ValueError) as e:
        raise DeserializationError(f"Malformed confirmation: {e!r}", body) from e


def parse_confirmation_details(html: str) -> ConfirmationDetails:
    """Trade offer ID из HTML деталей (div id="tradeofferid_XXXX")"""
    soup = BeautifulSoup(html, 'html.parser')
    node = soup.find(id=re.compile(r'^tradeofferid_\d+$'))
    if node is None:
        return ConfirmationDetails()
    return ConfirmationDetails(trade_offer_id=int(node['id'].split('_', 1)[1]))


async def get_confirmations(
    guard: SessionGuard,
    identity_secret: str,
    device_id: str,
    steam_id: int,
    steam_time: SteamTime,
) -> List[Confirmation]:
    """Получение списка ожидающих подтверждений"""
    params = signed_params(identity_secret, device_id, steam_id, TAG_LIST, steam_time)
    response = await guard.request(CONFIRMATIONS_LIST_URL, 'GET', params=params)
    confirmations = parse_confirmations(response.json(), response.text)

    logger.info(f"Found {len(confirmations)} pending confirmations")
    return confirmations


async def get_confirmation_details(
    guard: SessionGuard,
    confirmation: Confirmation,
    identity_secret: str,
    device_id: str,
    steam_id: int,
    steam_time: SteamTime,
) -> ConfirmationDetails:
    params = signed_params(identity_secret, device_id, steam_id, TAG_DETAILS, steam_time)
    response = await guard.request(f'{CONFIRMATIONS_DETAILS_URL}/{confirmation.id}', 'GET', params=params)
    data = response.json()

    if not isinstance(data, dict) or not data.get('success'):
        raise InternalGeneralFailure(f"Failed to fetch details of {confirmation}", response.text)

    return parse_confirmation_details(data.get('html', ''))


def build_multi_op_form(
    action: ConfirmationAction,
    confirmations: List[Confirmation],
    identity_secret: str,
    device_id: str,
    steam_id: int,
    steam_time: SteamTime,
) -> List[Tuple[str, Any]]:
    """
    Форма пакетного запроса: подписанные параметры, op и пары cid[]/ck[]
    в порядке подтверждений.
    """
    params = signed_params(identity_secret, device_id, steam_id, action.tag, steam_time)
    form = [('op', action.operation)] + list(params.items())
    for confirmation in confirmations:
        form.append(('cid[]', confirmation.id))
    for confirmation in confirmations:
        form.append(('ck[]', confirmation.key))
    return form


async def send_confirmations(
    guard: SessionGuard,
    action: ConfirmationAction,
    confirmations: Iterable[Confirmation],
    identity_secret: str,
    device_id: str,
    steam_id: int,
    steam_time: SteamTime,
):
    """
    Принять или отклонить подтверждения одним запросом.
    Пустой список ничего не отправляет. Отказ Steam не повторяется.
    """
    confirmations = list(confirmations)
    if not confirmations:
        logger.debug("No confirmations to process")
        return

    form = build_multi_op_form(action, confirmations, identity_secret, device_id, steam_id, steam_time)
    response = await guard.request(CONFIRMATIONS_MULTI_OP_URL, 'POST', data=form)
    data = response.json()

    if not isinstance(data, dict) or not data.get('success'):
        logger.error(f"Failed to {action.operation} {len(confirmations)} confirmations")
        raise InternalGeneralFailure(f"Steam rejected '{action.operation}' of {len(confirmations)} confirmations", response.text)

    logger.info(f"{action.name}: {len(confirmations)} confirmations")
