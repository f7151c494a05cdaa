"""
Per-host cookie persistence.

Cookies are kept in Playwright's JSON format, one file per host
(`cookies/tiktok.com.json`). Saving overwrites the host's file.
"""

import json
import logging
import time
from pathlib import Path
from typing import Dict, List, Any
from urllib.parse import urlparse

import TT_Video_Crawler.src.logger

logger = logging.getLogger('TTVC.Cookies')

VALID_SAME_SITE = ('Strict', 'Lax', 'None')
REQUIRED_FIELDS = ('name', 'value', 'domain')
SESSION_COOKIES = ('sessionid', 'sid_tt', 'sid_guard', 'msToken')


def host_key(url_or_host: str) -> str:
    """'https://www.tiktok.com/@x' -> 'tiktok.com'"""
    host = urlparse(url_or_host).hostname if '://' in url_or_host else url_or_host
    host = (host or '').lower().strip('.')
    if host.startswith('www.'):
        host = host[4:]
    return host


def sanitize_cookies(cookies: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Drop malformed cookies and invalid sameSite values Playwright would reject."""
    sanitized = []
    for cookie in cookies:
        if not isinstance(cookie, dict):
            continue
        missing = [f for f in REQUIRED_FIELDS if f not in cookie]
        if missing:
            logger.debug(f"Skipping cookie missing fields {missing}")
            continue
        cookie = dict(cookie)
        if 'sameSite' in cookie and cookie['sameSite'] not in VALID_SAME_SITE:
            del cookie['sameSite']
        sanitized.append(cookie)
    return sanitized


def expired_cookies(cookies: List[Dict[str, Any]], now: float = None) -> List[str]:
    now = time.time() if now is None else now
    return [
        c['name'] for c in cookies
        if isinstance(c.get('expires'), (int, float)) and 0 < c['expires'] < now
    ]


class CookieStore:
    def __init__(self, cookies_dir: str = 'cookies'):
        self.cookies_dir = Path(cookies_dir)

    def path_for(self, url_or_host: str) -> Path:
        return self.cookies_dir / f"{host_key(url_or_host)}.json"

    def load(self, url_or_host: str) -> List[Dict[str, Any]]:
        """Load sanitized cookies for a host. Missing or corrupt files yield []."""
        cookie_file = self.path_for(url_or_host)
        if not cookie_file.exists():
            logger.info(f"No saved cookies for {host_key(url_or_host)}")
            return []
        try:
            with open(cookie_file, 'r', encoding='utf-8') as f:
                cookies = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Failed to read cookies from {cookie_file}: {e}")
            return []

        if not isinstance(cookies, list):
            logger.error(f"Invalid cookie file {cookie_file}: expected a list, got {type(cookies).__name__}")
            return []

        cookies = sanitize_cookies(cookies)
        expired = expired_cookies(cookies)
        if expired:
            logger.warning(f"⚠️ {len(expired)} expired cookies for {host_key(url_or_host)}: {expired[:5]}")
        logger.info(f"✓ Loaded {len(cookies)} cookies from {cookie_file}")
        return cookies

    def save(self, url_or_host: str, cookies: List[Dict[str, Any]]) -> Path:
        cookie_file = self.path_for(url_or_host)
        cookie_file.parent.mkdir(parents=True, exist_ok=True)
        with open(cookie_file, 'w', encoding='utf-8') as f:
            json.dump(cookies, f, indent=2)

        names = {c.get('name') for c in cookies}
        has_session = any(name in names for name in SESSION_COOKIES)
        logger.info(f"✓ Saved {len(cookies)} cookies to {cookie_file} (session cookies: {has_session})")
        return cookie_file
