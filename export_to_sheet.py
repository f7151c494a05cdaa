"""
Spreadsheet export

One row per video with its counters and the rendered comment thread
(replies indented under their parent). Written as CSV with pandas.

Usage:
    python export_to_sheet.py --db data/tiktok_crawl.db --output exports/videos.csv
"""

import argparse
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

import TT_Video_Crawler.src.logger
from TT_Video_Crawler.src.video_store_db import VideoStore

logger = logging.getLogger('TTVC.Export')

COLUMNS = [
    'Channel', 'Title', 'Hashtags', 'URL', 'Likes', 'Shares', 'Saved', 'Comments',
    'Comments Crawled', 'Comment Details',
]


def format_comment(comment: Dict[str, Any]) -> str:
    prefix = '    ↳ ' if comment['is_reply'] else ''
    return f"{prefix}{comment['author']}: {comment['content']} (👍 {comment['like_count']})"


def thread_order(comments: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Top-level comments in stored order, each followed by its replies; orphans last."""
    replies_by_parent: Dict[str, List[Dict[str, Any]]] = {}
    orphans = []
    keys = {c['comment_key'] for c in comments if not c['is_reply']}
    for c in comments:
        if not c['is_reply']:
            continue
        if c['parent_comment_key'] in keys:
            replies_by_parent.setdefault(c['parent_comment_key'], []).append(c)
        else:
            orphans.append(c)

    ordered = []
    for c in comments:
        if c['is_reply']:
            continue
        ordered.append(c)
        ordered.extend(replies_by_parent.pop(c['comment_key'], []))
    return ordered + orphans


def build_frame(store: VideoStore, urls: Optional[List[str]] = None) -> pd.DataFrame:
    rows = []
    for video in store.list_videos(urls):
        comments = thread_order(store.find_comments(video.id))
        rows.append({
            'Channel': video.channel_url,
            'Title': video.title,
            'Hashtags': ', '.join(video.hashtags),
            'URL': video.url,
            'Likes': video.like_count,
            'Shares': video.share_count,
            'Saved': video.saved_count,
            'Comments': video.comment_count,
            'Comments Crawled': len(comments),
            'Comment Details': '\n'.join(format_comment(c) for c in comments),
        })
    return pd.DataFrame(rows, columns=COLUMNS)


def export_videos(store: VideoStore, output_path: str, urls: Optional[List[str]] = None) -> int:
    """Write the export and return the number of rows."""
    df = build_frame(store, urls)
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(output, index=False, encoding='utf-8-sig')
    logger.info(f"✓ Exported {len(df)} videos to {output}")
    return len(df)


def main():
    parser = argparse.ArgumentParser(description="Export crawled videos to a spreadsheet (CSV)")
    parser.add_argument("--db", type=str, default="data/tiktok_crawl.db")
    parser.add_argument("--output", type=str, default=None)
    parser.add_argument("--url", action="append", default=None, help="Only export these video URLs")
    args = parser.parse_args()

    output = args.output or f"exports/videos_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
    with VideoStore(db_file=args.db) as store:
        export_videos(store, output, urls=args.url)


if __name__ == "__main__":
    main()
