"""
Steam Guard криптография.
Генерация 2FA кодов, подписей подтверждений и device id.
Все функции чистые: время передается явно, уже синхронизированное со Steam.
"""

import time
import struct
import hmac
import hashlib
from base64 import b64decode, b64encode
from typing import Optional, Union

from loguru import logger


STEAM_GUARD_CHARSET = '23456789BCDFGHJKMNPQRTVWXY'
STEAM_GUARD_PERIOD = 30
STEAM_GUARD_CODE_LENGTH = 5

# Теги подписей для mobileconf
TAG_LIST = 'conf'
TAG_DETAILS = 'details'
TAG_ALLOW = 'allow'
TAG_CANCEL = 'cancel'

Secret = Union[str, bytes]


def decode_secret(secret: Secret) -> bytes:
    """Секреты из maFile хранятся в base64"""
    if isinstance(secret, bytes):
        return secret
    return b64decode(secret)


def time_step(timestamp: int) -> bytes:
    """8-байтовый big-endian счетчик 30-секундных окон"""
    return struct.pack('>Q', int(timestamp) // STEAM_GUARD_PERIOD)


def generate_auth_code(shared_secret: Secret, timestamp: int) -> str:
    """
    Генерация 5-символьного кода Steam Guard.

    Args:
        shared_secret: shared_secret из maFile (base64 или сырые байты)
        timestamp: Синхронизированное время Steam в секундах

    Returns:
        Код из алфавита STEAM_GUARD_CHARSET
    """
    hmac_hash = hmac.new(decode_secret(shared_secret), time_step(timestamp), hashlib.sha1).digest()

    offset = hmac_hash[19] & 0x0F
    code_int = struct.unpack('>I', hmac_hash[offset:offset + 4])[0] & 0x7FFFFFFF

    code = ''
    for _ in range(STEAM_GUARD_CODE_LENGTH):
        code_int, idx = divmod(code_int, len(STEAM_GUARD_CHARSET))
        code += STEAM_GUARD_CHARSET[idx]

    return code


def generate_confirmation_key(identity_secret: Secret, tag: str, timestamp: int) -> str:
    """
    Подпись запроса к mobileconf.

    Args:
        identity_secret: identity_secret из maFile
        tag: conf / details / allow / cancel
        timestamp: Синхронизированное время Steam в секундах

    Returns:
        base64 HMAC-SHA1 от (время big-endian + тег)
    """
    data = struct.pack('>Q', int(timestamp)) + tag.encode('ascii')
    hmac_hash = hmac.new(decode_secret(identity_secret), data, hashlib.sha1).digest()
    return b64encode(hmac_hash).decode('ascii')


def generate_device_id(steam_id: Union[int, str]) -> str:
    """Device id в формате мобильного приложения, детерминированный по steamid"""
    hexed = hashlib.sha1(str(steam_id).encode('ascii')).hexdigest()
    return f"android:{hexed[:8]}-{hexed[8:12]}-{hexed[12:16]}-{hexed[16:20]}-{hexed[20:32]}"


class SteamTime:
    """Локальные часы со сдвигом относительно часов Steam"""

    def __init__(self, offset: int = 0):
        self.offset = offset

    @classmethod
    def from_server_time(cls, server_time: int, local_time: Optional[float] = None) -> 'SteamTime':
        if local_time is None:
            local_time = time.time()
        offset = int(server_time) - int(local_time)
        logger.debug(f"Steam time offset: {offset}s")
        return cls(offset)

    def now(self) -> int:
        return int(time.time()) + self.offset

    def now_ms(self) -> int:
        return int((time.time() + self.offset) * 1000)

    def __repr__(self) -> str:
        return f"SteamTime(offset={self.offset})"
