"""
Настройка логирования loguru для приложений.
Библиотечный код только пишет в logger и sinks не трогает.
"""

import sys
from pathlib import Path
from typing import List, Optional

from loguru import logger


CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>"
)


def configure_logging(
    level: str = "INFO",
    log_dir: Optional[str] = "logs",
    rotation: str = "1 day",
    retention: str = "7 days",
) -> List[int]:
    """
    Консоль + файл с ежедневной ротацией.

    Args:
        level: Уровень для консоли
        log_dir: Папка для файлов логов, None - без файла
        rotation: Ротация файла
        retention: Сколько хранить старые файлы

    Returns:
        ID добавленных sinks
    """
    logger.remove()
    sink_ids = [logger.add(sys.stdout, format=CONSOLE_FORMAT, level=level)]

    if log_dir is not None:
        Path(log_dir).mkdir(parents=True, exist_ok=True)
        sink_ids.append(logger.add(
            str(Path(log_dir) / "steam_mobile_{time:YYYY-MM-DD}.log"),
            rotation=rotation,
            retention=retention,
            level="DEBUG",
        ))

    return sink_ids
