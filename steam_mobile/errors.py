"""
Иерархия ошибок аутентификатора.
Все ошибки наследуются от AuthError, чтобы вызывающий код мог ловить их одним except.
"""

from typing import Optional


class AuthError(Exception):
    """Базовая ошибка аутентификатора"""
    pass


# Login ---------------------------------------------------------------------


class LoginError(AuthError):
    """Постоянная ошибка входа. Повторять попытку бессмысленно."""
    pass


class CaptchaRequired(LoginError):
    """Steam требует капчу"""

    def __init__(self, guid: str):
        self.guid = guid
        super().__init__(f"Captcha required. GUID: {guid}")

    @property
    def captcha_url(self) -> str:
        return f"https://steamcommunity.com/login/rendercaptcha/?gid={self.guid}"


class IncorrectCredentials(LoginError):
    """Неверный логин или пароль"""

    def __init__(self):
        super().__init__("The account name or password that you have entered is incorrect.")


class LoginGeneralFailure(LoginError):
    """Steam отклонил вход с понятным сообщением"""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Login failed: {detail}")


# Internal ------------------------------------------------------------------


class InternalError(AuthError):
    """Ошибка транспорта или разбора ответа"""

    def __init__(self, detail: str, body: Optional[str] = None):
        self.detail = detail
        self.body = body
        msg = detail
        if body:
            msg += f" (response: {body[:300]})"
        super().__init__(msg)


class NetworkError(InternalError):
    """Сетевая ошибка. Считается временной."""
    pass


class DeserializationError(InternalError):
    """Ответ не удалось разобрать"""
    pass


class InternalGeneralFailure(InternalError):
    """Steam вернул корректный ответ с отказом"""
    pass


# Linker --------------------------------------------------------------------


class LinkerError(AuthError):
    """Ошибка привязки или отвязки мобильного аутентификатора"""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Authenticator linker failure: {detail}")


# Session -------------------------------------------------------------------


class SessionExpired(AuthError):
    """
    Сессия потеряна. Нужно заново выполнить login() с той же учеткой
    и заменить аутентификатор.
    """

    def __init__(self, location: Optional[str] = None):
        self.location = location
        msg = "Steam session expired, a new login is required"
        if location:
            msg += f" (redirected to {location})"
        super().__init__(msg)


class MissingConfirmationSecrets(AuthError):
    """Операция требует maFile с identity_secret, а его нет"""

    def __init__(self, operation: str):
        self.operation = operation
        super().__init__(f"'{operation}' requires a mobile authenticator file with confirmation secrets")


class AuthenticatorConsumed(AuthError):
    """login() уже вызывался на этом объекте"""

    def __init__(self):
        super().__init__("This authenticator was already used to log in. Create a new one to retry the whole flow.")
