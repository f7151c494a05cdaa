import pandas as pd

from TT_Video_Crawler.src.models import CommentRecord, VideoRecord
from TT_Video_Crawler.src.video_store_db import VideoStore
from export_to_sheet import export_videos, thread_order


def test_export_renders_threads(tmp_path):
    with VideoStore(db_file=str(tmp_path / 'crawl.db')) as store:
        video = VideoRecord(url='https://www.tiktok.com/@a/video/1', title='Hi', hashtags=['a', 'b'], like_count=5)
        store.save_video(video)
        store.save_comment(video.id, video.url, CommentRecord(id='comment_1', content='First', author='amy', like_count=3))
        store.save_comment(video.id, video.url, CommentRecord(id='comment_2', content='Second', author='ben'))
        store.save_comment(video.id, video.url, CommentRecord(
            id='comment_3', content='Reply to first', author='cat', is_reply=True, parent_comment_id='comment_1'))

        rows = export_videos(store, str(tmp_path / 'out' / 'videos.csv'))

    assert rows == 1
    df = pd.read_csv(tmp_path / 'out' / 'videos.csv', encoding='utf-8-sig')
    assert df.loc[0, 'Hashtags'] == 'a, b'
    assert df.loc[0, 'Likes'] == 5
    assert df.loc[0, 'Comments Crawled'] == 3
    assert df.loc[0, 'Comment Details'].split('\n') == [
        'amy: First (👍 3)',
        '    ↳ cat: Reply to first (👍 0)',
        'ben: Second (👍 0)',
    ]


def test_thread_order_puts_orphans_last():
    comments = [
        {'comment_key': 'r', 'is_reply': True, 'parent_comment_key': None},
        {'comment_key': 'c1', 'is_reply': False, 'parent_comment_key': None},
    ]
    assert [c['comment_key'] for c in thread_order(comments)] == ['c1', 'r']
