import pytest

from TT_Video_Crawler.src.models import CommentRecord, VideoRecord
from TT_Video_Crawler.src.video_store_db import VideoStore

URL = 'https://www.tiktok.com/@a/video/1'


@pytest.fixture
def store(tmp_path):
    with VideoStore(db_file=str(tmp_path / 'db' / 'crawl.db')) as s:
        yield s


def test_save_and_find_video(store):
    record = VideoRecord(url=URL, title='Hi', hashtags=['x', 'y'], like_count=10)
    video_id = store.save_video(record)

    found = store.find_by_url(URL)
    assert found.id == video_id
    assert found.title == 'Hi'
    assert found.hashtags == ['x', 'y']
    assert found.like_count == 10
    assert found.created_at
    assert store.find_by_url('https://nope') is None


def test_saving_same_url_twice_keeps_first(store):
    first = store.save_video(VideoRecord(url=URL, title='first'))
    second = store.save_video(VideoRecord(url=URL, title='second'))

    assert first == second
    assert store.find_by_url(URL).title == 'first'
    assert len(store.list_videos()) == 1


def test_comment_dedup_and_filters(store):
    video_id = store.save_video(VideoRecord(url=URL))
    top = CommentRecord(id='comment_1', content='Nice', author='amy', date_text='1d ago', has_replies=True)
    reply = CommentRecord(id='comment_2', content='Agreed', is_reply=True, parent_comment_id='comment_1')
    other = CommentRecord(id='comment_3', content='Meh')

    assert store.save_comment(video_id, URL, top) is not None
    assert store.save_comment(video_id, URL, reply) is not None
    assert store.save_comment(video_id, URL, other) is not None
    # same author/content/date on a later crawl is not stored again
    assert store.save_comment(video_id, URL, CommentRecord(id='comment_9', content='Nice', author='amy', date_text='1d ago')) is None

    assert store.count_comments(video_id) == 3
    assert [c['content'] for c in store.find_comments(video_id, is_reply=False)] == ['Nice', 'Meh']
    assert [c['content'] for c in store.find_comments(video_id, is_reply=False, has_replies=True)] == ['Nice']
    assert [c['content'] for c in store.find_comments(video_id, parent_comment_id='comment_1')] == ['Agreed']
    assert len(store.find_comments(video_id, parent_comment_id=None)) == 2

    row = store.find_comments(video_id, is_reply=True)[0]
    assert row['is_reply'] is True
    assert row['comment_key'] == 'comment_2'
    assert store.get_stats() == {'videos': 1, 'comments': 2, 'replies': 1}


def test_list_videos_by_url(store):
    for i in range(3):
        store.save_video(VideoRecord(url=f'{URL}{i}'))
    assert [v.url for v in store.list_videos([f'{URL}2', f'{URL}0'])] == [f'{URL}0', f'{URL}2']
