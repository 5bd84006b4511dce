from loguru import logger

from steam_mobile.log import configure_logging


def test_console_and_file_sinks(tmp_path):
    log_dir = tmp_path / 'logs'
    try:
        sink_ids = configure_logging('WARNING', log_dir=str(log_dir))
        logger.debug('debug line goes to file only')
    finally:
        logger.remove()

    assert len(sink_ids) == 2
    files = list(log_dir.glob('steam_mobile_*.log'))
    assert len(files) == 1
    assert 'debug line goes to file only' in files[0].read_text(encoding='utf-8')


def test_console_only(tmp_path):
    try:
        sink_ids = configure_logging(log_dir=None)
    finally:
        logger.remove()

    assert len(sink_ids) == 1
