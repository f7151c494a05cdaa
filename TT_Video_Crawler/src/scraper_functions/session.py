"""
Browser session and navigation.

Features:
- Chromium with automation flags stripped, optional custom executable
- Fingerprint-driven context (user agent, viewport, timezone)
- Per-host cookie persistence
- Login-wall detection with cached-cookie reload and bounded manual-login wait
- CAPTCHA wait
- Navigation retries with linear backoff and a screenshot on every failure
- Proxy support with authentication
"""

import asyncio
import json
import logging
from pathlib import Path
from typing import Dict, Optional
from urllib.parse import urlparse

from playwright.async_api import async_playwright, Page, BrowserContext, Browser

import TT_Video_Crawler.src.logger
from TT_Video_Crawler.src.config import CrawlerConfig
from TT_Video_Crawler.src.cookie_store import CookieStore, host_key
from TT_Video_Crawler.src.diagnostics import DiagnosticSink

logger = logging.getLogger('TTVC.Session')


# ============================================================================
# FINGERPRINT LOADER
# ============================================================================

class BrowserFingerprint:
    """Load and manage browser fingerprints"""

    @staticmethod
    def load_from_file(filepath: str) -> Optional[Dict]:
        try:
            with open(filepath, 'r') as f:
                fp = json.load(f)
                logger.info(f"✓ Loaded fingerprint from {filepath} ({fp.get('platform', 'Unknown')})")
                return fp
        except FileNotFoundError:
            logger.warning(f"Fingerprint file not found: {filepath}")
            return None
        except json.JSONDecodeError as e:
            logger.error(f"Invalid fingerprint JSON: {e}")
            return None

    @staticmethod
    def get_default_fingerprint() -> Dict:
        return {
            "userAgent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36",
            "platform": "Win32",
            "languages": ["en-US", "en"],
            "screen": {"width": 1920, "height": 1080},
            "timezone": "America/New_York",
        }


# ============================================================================
# SESSION
# ============================================================================

class BrowserSession:
    """
    One browser for a whole run. Per-target failures come back as False;
    only a browser that cannot be launched at all raises.
    """

    CAPTCHA_LOCATORS = [
        'Rotate the shapes',
        'Verify to continue:',
        'Click on the shapes',
        'Drag the slider',
        'Select 2 objects that are the same',
    ]

    LOGIN_WALL_MARKERS = ['login-modal', 'login-title', 'login-container']
    LOGIN_WALL_SELECTOR = '[data-e2e="login-modal"]'
    LOGGED_IN_SELECTORS = ['[data-e2e="upload-icon"]', '[data-e2e="user-avatar"]']

    def __init__(
        self,
        config: Optional[CrawlerConfig] = None,
        cookie_store: Optional[CookieStore] = None,
        diagnostics: Optional[DiagnosticSink] = None,
        page: Optional[Page] = None,
        context: Optional[BrowserContext] = None,
    ):
        self.config = config or CrawlerConfig()
        self.cookie_store = cookie_store or CookieStore(self.config.cookies_dir)
        self.diagnostics = diagnostics or DiagnosticSink(self.config.debug_dir)

        fingerprint = None
        if self.config.fingerprint_file and Path(self.config.fingerprint_file).exists():
            fingerprint = BrowserFingerprint.load_from_file(self.config.fingerprint_file)
        self.fingerprint = fingerprint or BrowserFingerprint.get_default_fingerprint()

        self.proxy_server = None
        self.proxy_username = None
        self.proxy_password = None
        if self.config.proxy:
            self._parse_proxy_url(self.config.proxy)

        self.playwright = None
        self.browser: Browser = None
        self.context: BrowserContext = context
        self.page: Page = page

        self._cookie_hosts = set()
        self.stats = {
            "navigations": 0,
            "navigation_failures": 0,
            "login_walls": 0,
            "captchas": 0,
        }

    def _parse_proxy_url(self, proxy_url: str):
        """Accept `ip:port:user:pass` or URL form."""
        if proxy_url.count(":") == 3 and '@' not in proxy_url:
            ip, port, username, password = proxy_url.strip().split(":")
            self.proxy_username = username
            self.proxy_password = password
            self.proxy_server = f"http://{ip}:{port}"
        else:
            parsed = urlparse(proxy_url if '://' in proxy_url else f'http://{proxy_url}')
            if parsed.username and parsed.password:
                self.proxy_username = parsed.username
                self.proxy_password = parsed.password
            port = parsed.port or 8080
            self.proxy_server = f"{parsed.scheme or 'http'}://{parsed.hostname}:{port}"
        logger.info(f"Proxy server: {self.proxy_server}")

    # ========================================================================
    # BROWSER LIFECYCLE
    # ========================================================================

    async def start(self):
        logger.info("=" * 70)
        logger.info("STARTING BROWSER")
        logger.info("=" * 70)

        self.playwright = await async_playwright().start()

        launch_args = {
            'headless': self.config.headless,
            'slow_mo': self.config.slow_mo,
            'args': [
                '--disable-blink-features=AutomationControlled',
                '--no-sandbox',
                '--disable-dev-shm-usage',
                '--disable-infobars',
                '--window-size=1920,1080',
                '--no-first-run',
                '--no-default-browser-check',
            ],
            'ignore_default_args': ['--enable-automation'],
            'timeout': 60000,
        }
        if self.config.executable_path:
            launch_args['executable_path'] = self.config.executable_path
            logger.info(f"Using browser executable: {self.config.executable_path}")
        if self.proxy_server:
            launch_args['proxy'] = {'server': self.proxy_server}

        try:
            self.browser = await self.playwright.chromium.launch(**launch_args)
            logger.info("✓ Browser launched successfully")
        except Exception as e:
            logger.error(f"❌ Browser launch failed: {e}")
            if 'executable_path' not in launch_args:
                await self.stop()
                raise
            logger.info("Trying fallback: bundled Chromium...")
            del launch_args['executable_path']
            try:
                self.browser = await self.playwright.chromium.launch(**launch_args)
                logger.info("✓ Fallback successful: Using Chromium")
            except Exception as e2:
                logger.error(f"❌ Chromium also failed: {e2}")
                await self.stop()
                raise

        screen = self.fingerprint.get('screen', {'width': 1920, 'height': 1080})
        context_args = {
            'viewport': {'width': screen['width'], 'height': screen['height']},
            'user_agent': self.fingerprint.get('userAgent'),
            'locale': 'en-US',
            'timezone_id': self.fingerprint.get('timezone', 'America/New_York'),
            'ignore_https_errors': True,
        }
        if self.proxy_server and self.proxy_username and self.proxy_password:
            context_args['http_credentials'] = {
                'username': self.proxy_username,
                'password': self.proxy_password,
            }

        self.context = await self.browser.new_context(**context_args)
        await self.context.set_extra_http_headers({'Accept-Language': 'en-US,en;q=0.9'})
        await self.context.add_init_script(
            "Object.defineProperty(navigator, 'webdriver', {get: () => undefined});"
        )
        self.page = await self.context.new_page()
        logger.info("✓ Browser ready")

    async def stop(self):
        if self.context:
            try:
                await self.context.close()
            except Exception as e:
                logger.debug(f"Context close failed: {e}")
        if self.browser:
            await self.browser.close()
        if self.playwright:
            await self.playwright.stop()
        self.browser = None
        self.playwright = None
        logger.info("Browser stopped")

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.stop()

    # ========================================================================
    # COOKIES
    # ========================================================================

    async def load_cookies(self, url: str, force: bool = False) -> int:
        host = host_key(url)
        if host in self._cookie_hosts and not force:
            return 0
        cookies = self.cookie_store.load(host)
        if cookies:
            await self.context.add_cookies(cookies)
        self._cookie_hosts.add(host)
        return len(cookies)

    async def save_cookies(self, url: str):
        try:
            cookies = await self.context.cookies()
            self.cookie_store.save(host_key(url), cookies)
        except Exception as e:
            logger.warning(f"⚠️ Could not persist cookies for {host_key(url)}: {e}")

    # ========================================================================
    # PAGE CHECKS
    # ========================================================================

    async def is_login_wall(self, content: str) -> bool:
        if any(marker in content for marker in self.LOGIN_WALL_MARKERS):
            return True
        return await self.page.query_selector(self.LOGIN_WALL_SELECTOR) is not None

    async def is_logged_in(self) -> bool:
        for selector in self.LOGGED_IN_SELECTORS:
            if await self.page.query_selector(selector) is not None:
                return True
        return False

    def find_captcha(self, content: str) -> Optional[str]:
        lowered = content.lower()
        for captcha_text in self.CAPTCHA_LOCATORS:
            if captcha_text.lower() in lowered:
                return captcha_text
        return None

    def is_real_site(self, content: str) -> bool:
        return self.config.site_marker in content and self.config.denied_marker not in content

    async def wait_for_captcha(self) -> bool:
        """Poll until the CAPTCHA markers disappear or `max_captcha_wait` passes."""
        self.stats["captchas"] += 1
        logger.warning("⚠️ CAPTCHA detected, waiting for it to be solved...")
        waited = 0.0
        while waited < self.config.max_captcha_wait:
            await asyncio.sleep(self.config.captcha_poll_interval)
            waited += self.config.captcha_poll_interval
            if not self.find_captcha(await self.page.content()):
                logger.info(f"✓ CAPTCHA cleared after {waited:.0f}s")
                return True
        logger.error(f"CAPTCHA not solved within {self.config.max_captcha_wait:.0f}s")
        return False

    async def handle_login(self, url: str) -> bool:
        """Try cached cookies, then wait (bounded) for a manual login."""
        self.stats["login_walls"] += 1
        logger.warning("⚠️ Login wall detected")

        await self.load_cookies(url, force=True)
        await self.page.reload(wait_until='domcontentloaded', timeout=self.config.nav_timeout_ms)
        await asyncio.sleep(self.config.nav_settle_seconds)
        if await self.is_logged_in():
            logger.info("✓ Logged in with saved cookies")
            await self.save_cookies(url)
            return True

        if self.config.headless:
            logger.warning("Running headless: a manual login cannot be completed in this window")
        logger.info(f"Please log in manually, waiting up to {self.config.login_max_wait:.0f}s...")

        waited = 0.0
        while waited < self.config.login_max_wait:
            await asyncio.sleep(self.config.login_poll_interval)
            waited += self.config.login_poll_interval
            if await self.is_logged_in():
                logger.info(f"✓ Login detected after {waited:.0f}s")
                await self.save_cookies(url)
                return True
            logger.debug(f"Still waiting for login ({waited:.0f}s)")

        logger.error(f"Login not completed within {self.config.login_max_wait:.0f}s")
        return False

    # ========================================================================
    # NAVIGATION
    # ========================================================================

    async def navigate(self, url: str) -> bool:
        """Open `url`, handling cookies, login walls and CAPTCHAs. Never raises for per-URL failures."""
        self.stats["navigations"] += 1
        await self.load_cookies(url)

        attempt = 1
        logins = 0
        while attempt <= self.config.max_retries:
            try:
                logger.info(f"Navigating to {url} (attempt {attempt}/{self.config.max_retries})")
                await self.page.goto(url, wait_until='domcontentloaded', timeout=self.config.nav_timeout_ms)
                await asyncio.sleep(self.config.nav_settle_seconds)
                content = await self.page.content()

                if await self.is_login_wall(content):
                    if not await self.handle_login(url):
                        self.stats["navigation_failures"] += 1
                        return False
                    logins += 1
                    if logins <= self.config.max_retries:
                        # a completed login does not use up an attempt
                        continue
                    raise RuntimeError("Login wall still shown after logging in")

                if self.find_captcha(content):
                    if not await self.wait_for_captcha():
                        raise RuntimeError("CAPTCHA not solved")
                    content = await self.page.content()

                if self.is_real_site(content):
                    logger.info(f"✓ Loaded {url}")
                    await self.save_cookies(url)
                    return True

                logger.warning(f"⚠️ Page content check failed for {url}")
            except Exception as e:
                logger.warning(f"⚠️ Navigation attempt {attempt} failed: {e}")

            await self.diagnostics.save_screenshot(self.page, 'error-screenshot')
            if attempt < self.config.max_retries:
                delay = self.config.retry_base_delay + attempt * self.config.retry_delay_increment
                logger.info(f"Retrying in {delay:.0f}s...")
                await asyncio.sleep(delay)
            attempt += 1

        logger.error(f"❌ Giving up on {url} after {self.config.max_retries} attempts")
        self.stats["navigation_failures"] += 1
        return False
