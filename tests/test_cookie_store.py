import json

from TT_Video_Crawler.src.cookie_store import CookieStore, host_key, sanitize_cookies


def test_host_key():
    assert host_key('https://www.tiktok.com/@someone/video/1') == 'tiktok.com'
    assert host_key('www.TikTok.com') == 'tiktok.com'
    assert host_key('m.tiktok.com') == 'm.tiktok.com'


def test_save_then_load_per_host(tmp_path):
    store = CookieStore(str(tmp_path))
    cookies = [{'name': 'sessionid', 'value': 'abc', 'domain': '.tiktok.com', 'sameSite': 'Lax'}]

    path = store.save('https://www.tiktok.com/foo', cookies)

    assert path == tmp_path / 'tiktok.com.json'
    assert store.load('tiktok.com') == cookies
    assert store.load('example.com') == []


def test_sanitize_drops_bad_same_site_and_incomplete_cookies():
    cookies = sanitize_cookies([
        {'name': 'a', 'value': '1', 'domain': 'x', 'sameSite': 'unspecified'},
        {'name': 'b', 'value': '2'},
        'junk',
    ])
    assert cookies == [{'name': 'a', 'value': '1', 'domain': 'x'}]


def test_corrupt_file_loads_nothing(tmp_path):
    (tmp_path / 'tiktok.com.json').write_text('{not json')
    assert CookieStore(str(tmp_path)).load('tiktok.com') == []

    (tmp_path / 'tiktok.com.json').write_text(json.dumps({'name': 'x'}))
    assert CookieStore(str(tmp_path)).load('tiktok.com') == []
