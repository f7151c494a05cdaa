import pytest

from TT_Video_Crawler.src.config import CrawlerConfig


def test_defaults():
    config = CrawlerConfig()
    assert config.max_videos_per_profile == 4
    assert config.max_retries == 3
    assert config.scroll.stall_threshold == 5
    assert config.scroll.load_more_at_stall == 3


def test_env_then_overrides(monkeypatch):
    monkeypatch.setenv('HEADLESS', 'true')
    monkeypatch.setenv('CRAWLER_DB', '/tmp/other.db')
    monkeypatch.delenv('CHROME_PATH', raising=False)

    config = CrawlerConfig.from_env(max_retries=5, proxy=None)

    assert config.headless is True
    assert config.db_file == '/tmp/other.db'
    assert config.max_retries == 5
    assert config.executable_path is None


def test_unknown_override_rejected():
    with pytest.raises(AttributeError):
        CrawlerConfig.from_env(no_such_option=1)
