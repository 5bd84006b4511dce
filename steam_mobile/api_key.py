"""
Web API key аккаунта.
Получение (и при необходимости регистрация) ключа со страницы dev/apikey.
"""

import re
from typing import Optional

from bs4 import BeautifulSoup
from loguru import logger

from .cache import SessionCache
from .client import STEAM_COMMUNITY_BASE, MobileClient
from .errors import AuthError


API_KEY_URL = f'{STEAM_COMMUNITY_BASE}/dev/apikey'
API_KEY_REGISTER_URL = f'{STEAM_COMMUNITY_BASE}/dev/registerkey'

API_KEY_RE = re.compile(r'Key:\s*([0-9A-F]{32})')


def parse_api_key(soup: BeautifulSoup) -> Optional[str]:
    """Ключ из блока bodyContents_ex"""
    node = soup.find(id='bodyContents_ex') or soup
    match = API_KEY_RE.search(node.get_text(' '))
    return match.group(1) if match else None


def has_register_form(soup: BeautifulSoup) -> bool:
    return soup.find('form', action=re.compile(r'registerkey')) is not None


async def fetch_api_key(client: MobileClient, cache: SessionCache) -> Optional[str]:
    """
    Ключ со страницы, с регистрацией на localhost если ключа еще нет.

    Returns:
        Ключ или None, если Steam его не показывает (например, ограниченный аккаунт)
    """
    soup = await client.get_html(API_KEY_URL)
    api_key = parse_api_key(soup)
    if api_key or not has_register_form(soup):
        return api_key

    logger.info("No API key registered, registering one for localhost")
    await client.request(API_KEY_REGISTER_URL, 'POST', data={
        'domain': 'localhost',
        'agreeToTerms': 'agreed',
        'sessionid': cache.session_id,
        'Submit': 'Register',
    })
    return parse_api_key(await client.get_html(API_KEY_URL))


async def cache_api_key(client: MobileClient, cache: SessionCache) -> Optional[str]:
    """Best effort: ошибка только отключает вызовы, которым нужен ключ"""
    try:
        api_key = await fetch_api_key(client, cache)
    except AuthError as e:
        logger.warning(f"Could not cache API key: {e}")
        return None

    if api_key:
        cache.set_api_key(api_key)
        logger.info("Cached API Key successfully.")
    else:
        logger.debug("API key is not available for this account")
    return api_key
