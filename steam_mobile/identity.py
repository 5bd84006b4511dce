"""
Учетные данные Steam аккаунта.
SteamUser неизменяем и принадлежит аутентификатору все время его жизни.
"""

from dataclasses import dataclass, field, replace
from typing import Any, Dict, Optional

from loguru import logger


@dataclass(frozen=True)
class MobileAuthFile:
    """
    Секреты мобильного аутентификатора (содержимое maFile).

    Чтение и запись файла делает вызывающий код, здесь только значения.
    """
    shared_secret: str
    identity_secret: str
    device_id: str
    revocation_code: Optional[str] = None
    account_name: str = ''
    steam_id: Optional[int] = None
    serial_number: Optional[str] = None
    uri: Optional[str] = None
    token_gid: Optional[str] = None
    secret_1: Optional[str] = None
    server_time: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MobileAuthFile':
        """Из словаря в формате SDA maFile"""
        session = data.get('Session') or {}
        steam_id = session.get('SteamID', data.get('steam_id'))
        server_time = data.get('server_time')
        return cls(
            shared_secret=data['shared_secret'],
            identity_secret=data['identity_secret'],
            device_id=data.get('device_id', ''),
            revocation_code=data.get('revocation_code'),
            account_name=data.get('account_name', ''),
            steam_id=int(steam_id) if steam_id else None,
            serial_number=data.get('serial_number'),
            uri=data.get('uri'),
            token_gid=data.get('token_gid'),
            secret_1=data.get('secret_1'),
            server_time=int(server_time) if server_time else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Обратно в формат SDA maFile"""
        data = {
            'shared_secret': self.shared_secret,
            'identity_secret': self.identity_secret,
            'device_id': self.device_id,
            'revocation_code': self.revocation_code,
            'account_name': self.account_name,
            'serial_number': self.serial_number,
            'uri': self.uri,
            'token_gid': self.token_gid,
            'secret_1': self.secret_1,
            'server_time': self.server_time,
        }
        if self.steam_id is not None:
            data['Session'] = {'SteamID': self.steam_id}
        return data


@dataclass(frozen=True)
class SteamUser:
    """Логин, пароль и (опционально) maFile"""
    username: str
    password: str = field(repr=False)
    mafile: Optional[MobileAuthFile] = field(default=None, repr=False)

    @property
    def has_mafile(self) -> bool:
        return self.mafile is not None

    @property
    def has_confirmation_secrets(self) -> bool:
        return self.mafile is not None and bool(self.mafile.identity_secret) and bool(self.mafile.device_id)

    @property
    def shared_secret(self) -> Optional[str]:
        return self.mafile.shared_secret if self.mafile else None

    @property
    def identity_secret(self) -> Optional[str]:
        return self.mafile.identity_secret if self.mafile else None

    @property
    def device_id(self) -> Optional[str]:
        return self.mafile.device_id if self.mafile else None

    def with_mafile(self, mafile: MobileAuthFile) -> 'SteamUser':
        """Новая учетка с тем же логином и паролем, но другим maFile"""
        logger.debug(f"Attaching mobile authenticator file to {self.username}")
        return replace(self, mafile=mafile)
