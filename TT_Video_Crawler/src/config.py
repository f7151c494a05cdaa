"""
Crawler configuration.

Defaults mirror the values the crawler has always run with; environment
variables override them and CLI flags override the environment.
"""

import os
from dataclasses import dataclass, field
from typing import Optional


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


@dataclass
class ScrollConfig:
    """Knobs for the convergence-driven scroll loop and the reply expander."""
    max_iterations: int = 30
    stall_threshold: int = 5
    load_more_at_stall: int = 3
    settle_seconds: float = 3.0
    action_pause: float = 0.5
    load_more_wait: float = 5.0
    window_scroll_step: int = 1000
    max_reply_clicks: int = 100
    reply_click_wait: float = 1.5


@dataclass
class CrawlerConfig:
    max_videos_per_profile: int = 4
    headless: bool = False
    slow_mo: int = 50

    # Delays (seconds)
    delay_between_videos: float = 5.0
    delay_between_profiles: float = 10.0
    delay_between_comments: float = 2.0

    # Navigation
    max_retries: int = 3
    nav_timeout_ms: int = 120000
    nav_settle_seconds: float = 5.0
    retry_base_delay: float = 5.0
    retry_delay_increment: float = 2.0
    retry_action_delay: float = 1.0
    login_max_wait: float = 300.0
    login_poll_interval: float = 10.0
    max_captcha_wait: float = 120.0
    captcha_poll_interval: float = 5.0
    comment_wait_ms: int = 10000

    # Site
    origin: str = 'https://www.tiktok.com'
    site_marker: str = 'TikTok'
    denied_marker: str = 'Access Denied'

    # Files
    cookies_dir: str = 'cookies'
    debug_dir: str = 'debug'
    db_file: str = 'data/tiktok_crawl.db'
    log_dir: str = 'logs'

    # Browser
    executable_path: Optional[str] = None
    proxy: Optional[str] = None
    fingerprint_file: Optional[str] = None

    scroll: ScrollConfig = field(default_factory=ScrollConfig)

    @classmethod
    def from_env(cls, **overrides) -> 'CrawlerConfig':
        """Build a config from HEADLESS / CHROME_PATH / CRAWLER_PROXY / CRAWLER_DB, then apply overrides."""
        config = cls(
            headless=_env_bool('HEADLESS', False),
            executable_path=os.environ.get('CHROME_PATH') or None,
            proxy=os.environ.get('CRAWLER_PROXY') or None,
        )
        if os.environ.get('CRAWLER_DB'):
            config.db_file = os.environ['CRAWLER_DB']
        for key, value in overrides.items():
            if value is None:
                continue
            if not hasattr(config, key):
                raise AttributeError(f"Unknown config option: {key}")
            setattr(config, key, value)
        return config
