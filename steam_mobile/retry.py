"""
Повторы входа с экспоненциальной задержкой.

Операция сама решает, можно ли ее повторить, и возвращает Ok, Retryable или Fatal.
Политика не разбирает типы ошибок, только эту метку.
"""

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Generic, Iterator, Optional, TypeVar, Union

from loguru import logger

from .errors import AuthError
from .settings import RetrySettings


T = TypeVar('T')


@dataclass
class Ok(Generic[T]):
    value: T


@dataclass
class Retryable:
    """Временная ошибка: сеть, битый ответ"""
    error: AuthError


@dataclass
class Fatal:
    """Постоянная ошибка: повтор ничего не изменит"""
    error: AuthError


Attempt = Union[Ok, Retryable, Fatal]
Sleep = Callable[[float], Awaitable[None]]


class RetryPolicy:
    """
    Ограниченное число попыток, задержка растет в multiplier раз до max_delay.
    Ожидание неблокирующее (asyncio.sleep).
    """

    def __init__(self, settings: Optional[RetrySettings] = None, sleep: Sleep = asyncio.sleep):
        self.settings = settings or RetrySettings()
        self.sleep = sleep

    def delays(self) -> Iterator[float]:
        """Задержки перед попытками 2..max_attempts"""
        delay = self.settings.initial_delay
        for _ in range(self.settings.max_attempts - 1):
            yield min(delay, self.settings.max_delay)
            delay *= self.settings.multiplier

    async def run(self, operation: Callable[[], Awaitable[Attempt]]) -> T:
        """
        Выполнение операции с повторами.

        Returns:
            Значение из Ok

        Raises:
            Ошибку из Fatal сразу, без повторов.
            Последнюю ошибку из Retryable, если попытки закончились.
        """
        delays = self.delays()
        attempt_number = 1

        while True:
            attempt = await operation()

            if isinstance(attempt, Ok):
                if attempt_number > 1:
                    logger.info(f"Succeeded after {attempt_number - 1} retries")
                return attempt.value

            if isinstance(attempt, Fatal):
                logger.warning(f"Permanent error happened: {attempt.error}")
                raise attempt.error

            delay = next(delays, None)
            if delay is None:
                logger.error(f"Giving up after {attempt_number} attempts: {attempt.error}")
                raise attempt.error

            logger.warning(
                f"Transient error (try {attempt_number}/{self.settings.max_attempts}): "
                f"{attempt.error}. Retry in {delay:.1f}s..."
            )
            await self.sleep(delay)
            attempt_number += 1
