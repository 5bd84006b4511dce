#!/usr/bin/env python3
"""
Подтверждение Steam трейдов через мобильный аутентификатор.

Запуск:
    python confirm_trades.py --mafile maFiles/76561199000000000.maFile --username login --password pass

Или с аргументами:
    python confirm_trades.py ... --deny           # Отклонить вместо принятия
    python confirm_trades.py ... --settings config/settings.json
"""

import sys
import json
import asyncio
import argparse
from typing import List, Optional

from loguru import logger

from steam_mobile.authenticator import ConfirmationAuthenticator, SteamAuthenticator
from steam_mobile.confirmations import ConfirmationAction, only_trades
from steam_mobile.errors import AuthError, CaptchaRequired
from steam_mobile.identity import MobileAuthFile, SteamUser
from steam_mobile.log import configure_logging
from steam_mobile.settings import load_settings


def load_mafile(path: str) -> MobileAuthFile:
    """Загрузка данных из SDA maFile"""
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)

    mafile = MobileAuthFile.from_dict(data)
    logger.info(f"Loaded SDA maFile for: {mafile.account_name}")
    return mafile


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description='Steam trade confirmations')
    parser.add_argument('--mafile', required=True, help='Path to SDA maFile')
    parser.add_argument('--username', required=True)
    parser.add_argument('--password', required=True)
    parser.add_argument('--settings', default=None, help='Path to settings JSON')
    parser.add_argument('--deny', action='store_true', help='Deny instead of accept')
    parser.add_argument('--log-level', default='INFO')
    return parser.parse_args(argv)


async def confirm_trades(args: argparse.Namespace) -> int:
    user = SteamUser(args.username, args.password, load_mafile(args.mafile))
    authenticator = SteamAuthenticator(user, settings=load_settings(args.settings))
    action = ConfirmationAction.DENY if args.deny else ConfirmationAction.ACCEPT

    try:
        session = await authenticator.login()
        if not isinstance(session, ConfirmationAuthenticator):
            logger.error("maFile has no identity_secret, confirmations are not available")
            return 1

        processed = await session.handle_confirmations(action, only_trades)
        for conf in processed:
            logger.info(f"  - {conf.headline or conf.type_name} (offer {conf.trade_offer_id})")
        logger.info(f"{action.name}: {len(processed)} trade confirmations")
        return 0

    except CaptchaRequired as e:
        logger.error(f"Captcha required: {e.captcha_url}")
        return 2
    except AuthError as e:
        logger.error(f"Steam error: {e}")
        return 1
    finally:
        await authenticator.close()


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    configure_logging(args.log_level)
    return asyncio.run(confirm_trades(args))


if __name__ == '__main__':
    sys.exit(main())
