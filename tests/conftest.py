import pytest

from TT_Video_Crawler.src.config import CrawlerConfig, ScrollConfig


@pytest.fixture
def scroll_config():
    return ScrollConfig(settle_seconds=0, action_pause=0, load_more_wait=0, reply_click_wait=0)


@pytest.fixture
def crawler_config(tmp_path, scroll_config):
    return CrawlerConfig(
        headless=True,
        delay_between_videos=0,
        delay_between_profiles=0,
        delay_between_comments=0,
        nav_settle_seconds=0,
        retry_base_delay=0,
        retry_delay_increment=0,
        retry_action_delay=0,
        login_max_wait=0.02,
        login_poll_interval=0.01,
        max_captcha_wait=0.02,
        captcha_poll_interval=0.01,
        comment_wait_ms=10,
        cookies_dir=str(tmp_path / 'cookies'),
        debug_dir=str(tmp_path / 'debug'),
        db_file=str(tmp_path / 'crawl.db'),
        log_dir=str(tmp_path / 'logs'),
        scroll=scroll_config,
    )
