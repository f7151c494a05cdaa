import sqlite3
import json
from datetime import datetime
from pathlib import Path
import logging
from typing import List, Dict, Any, Optional

import TT_Video_Crawler.src.logger
from TT_Video_Crawler.src.models import VideoRecord, CommentRecord

logger = logging.getLogger('TTVC.Store')

_UNSET = object()


class VideoStore:
    """SQLite store for crawled videos and their comment threads.

    Videos are unique by URL. Comments are unique by (video_id, author, content, date_text),
    so re-crawling a video only adds comments that were not seen before.
    """

    def __init__(self, db_file="data/tiktok_crawl.db"):
        if db_file != ':memory:':
            Path(db_file).parent.mkdir(parents=True, exist_ok=True)
        self.db_file = db_file
        self.conn = None
        self._connect()
        self._create_tables()
        self._create_indexes()

    def _connect(self):
        """Establish connection to SQLite database."""
        try:
            self.conn = sqlite3.connect(self.db_file, check_same_thread=False)
            self.conn.row_factory = sqlite3.Row
            self.conn.execute("PRAGMA foreign_keys = ON")
            self.conn.execute("PRAGMA journal_mode = WAL")
            self.conn.execute("PRAGMA synchronous = NORMAL")
            logger.info(f"Connected to SQLite database: {self.db_file}")
        except sqlite3.Error as e:
            logger.error(f"Error connecting to database: {e}")
            raise

    def _create_tables(self):
        create_videos_sql = """
        CREATE TABLE IF NOT EXISTS videos (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            url TEXT NOT NULL UNIQUE,
            title TEXT,
            source_media_url TEXT,
            channel_url TEXT,
            hashtags TEXT,
            like_count INTEGER DEFAULT 0,
            comment_count INTEGER DEFAULT 0,
            saved_count INTEGER DEFAULT 0,
            share_count INTEGER DEFAULT 0,
            created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );
        """

        create_comments_sql = """
        CREATE TABLE IF NOT EXISTS comments (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            video_id INTEGER NOT NULL REFERENCES videos(id) ON DELETE CASCADE,
            video_url TEXT NOT NULL,
            comment_key TEXT NOT NULL,
            content TEXT NOT NULL,
            author TEXT NOT NULL DEFAULT 'Unknown',
            author_profile_url TEXT,
            like_count INTEGER DEFAULT 0,
            date_text TEXT NOT NULL DEFAULT 'Unknown',
            is_reply INTEGER DEFAULT 0,
            parent_comment_key TEXT,
            has_replies INTEGER DEFAULT 0,
            crawled_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            UNIQUE (video_id, author, content, date_text)
        );
        """

        try:
            self.conn.execute(create_videos_sql)
            self.conn.execute(create_comments_sql)
            self.conn.commit()
            logger.debug("Database tables created successfully")
        except sqlite3.Error as e:
            logger.error(f"Error creating tables: {e}")
            raise

    def _create_indexes(self):
        indexes = [
            "CREATE INDEX IF NOT EXISTS idx_comments_video ON comments(video_id)",
            "CREATE INDEX IF NOT EXISTS idx_comments_parent ON comments(video_id, parent_comment_key)",
            "CREATE INDEX IF NOT EXISTS idx_videos_channel ON videos(channel_url)",
        ]

        try:
            for index_sql in indexes:
                self.conn.execute(index_sql)
            self.conn.commit()
        except sqlite3.Error as e:
            logger.error(f"Error creating indexes: {e}")
            raise

    # ------------------------------------------------------------------
    # Videos
    # ------------------------------------------------------------------

    @staticmethod
    def _row_to_video(row) -> VideoRecord:
        return VideoRecord(
            id=row['id'],
            url=row['url'],
            title=row['title'] or '',
            source_media_url=row['source_media_url'],
            channel_url=row['channel_url'],
            hashtags=json.loads(row['hashtags'] or '[]'),
            like_count=row['like_count'],
            comment_count=row['comment_count'],
            saved_count=row['saved_count'],
            share_count=row['share_count'],
            created_at=row['created_at'],
        )

    def find_by_url(self, url: str) -> Optional[VideoRecord]:
        try:
            row = self.conn.execute("SELECT * FROM videos WHERE url = ?", (url,)).fetchone()
            return self._row_to_video(row) if row else None
        except sqlite3.Error as e:
            logger.error(f"Error looking up video {url}: {e}")
            raise

    def save_video(self, record: VideoRecord) -> int:
        """Insert a video (no-op if the URL exists) and return its id."""
        try:
            self.conn.execute("""
                INSERT OR IGNORE INTO videos
                (url, title, source_media_url, channel_url, hashtags,
                 like_count, comment_count, saved_count, share_count, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                record.url, record.title, record.source_media_url, record.channel_url,
                json.dumps(record.hashtags, ensure_ascii=False),
                record.like_count, record.comment_count, record.saved_count, record.share_count,
                datetime.now().isoformat(),
            ))
            self.conn.commit()
            row = self.conn.execute("SELECT id, created_at FROM videos WHERE url = ?", (record.url,)).fetchone()
            record.id = row['id']
            record.created_at = row['created_at']
            return record.id
        except sqlite3.Error as e:
            logger.error(f"Error saving video {record.url}: {e}")
            raise

    def list_videos(self, urls: Optional[List[str]] = None) -> List[VideoRecord]:
        try:
            if urls:
                placeholders = ','.join('?' for _ in urls)
                cursor = self.conn.execute(
                    f"SELECT * FROM videos WHERE url IN ({placeholders}) ORDER BY id", list(urls)
                )
            else:
                cursor = self.conn.execute("SELECT * FROM videos ORDER BY id")
            return [self._row_to_video(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            logger.error(f"Error listing videos: {e}")
            raise

    # ------------------------------------------------------------------
    # Comments
    # ------------------------------------------------------------------

    def save_comment(self, video_id: int, video_url: str, record: CommentRecord) -> Optional[int]:
        """Insert a comment. Returns the new row id, or None if it was already stored."""
        try:
            cursor = self.conn.execute("""
                INSERT OR IGNORE INTO comments
                (video_id, video_url, comment_key, content, author, author_profile_url,
                 like_count, date_text, is_reply, parent_comment_key, has_replies, crawled_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (
                video_id, video_url, record.id, record.content, record.author,
                record.author_profile_url, record.like_count, record.date_text,
                int(record.is_reply), record.parent_comment_id, int(record.has_replies),
                datetime.now().isoformat(),
            ))
            self.conn.commit()
            return cursor.lastrowid if cursor.rowcount else None
        except sqlite3.Error as e:
            logger.error(f"Error saving comment {record.id} for video {video_id}: {e}")
            raise

    def find_comments(
        self,
        video_id: int,
        is_reply: Optional[bool] = None,
        has_replies: Optional[bool] = None,
        parent_comment_id=_UNSET,
    ) -> List[Dict[str, Any]]:
        """Comments of a video in insertion order, optionally filtered."""
        clauses = ["video_id = ?"]
        params: List[Any] = [video_id]
        if is_reply is not None:
            clauses.append("is_reply = ?")
            params.append(int(is_reply))
        if has_replies is not None:
            clauses.append("has_replies = ?")
            params.append(int(has_replies))
        if parent_comment_id is not _UNSET:
            if parent_comment_id is None:
                clauses.append("parent_comment_key IS NULL")
            else:
                clauses.append("parent_comment_key = ?")
                params.append(parent_comment_id)

        try:
            cursor = self.conn.execute(
                f"SELECT * FROM comments WHERE {' AND '.join(clauses)} ORDER BY id", params
            )
            result = []
            for row in cursor.fetchall():
                item = dict(row)
                item['is_reply'] = bool(item['is_reply'])
                item['has_replies'] = bool(item['has_replies'])
                result.append(item)
            return result
        except sqlite3.Error as e:
            logger.error(f"Error getting comments for video {video_id}: {e}")
            raise

    def count_comments(self, video_id: int) -> int:
        try:
            return self.conn.execute(
                "SELECT COUNT(*) FROM comments WHERE video_id = ?", (video_id,)
            ).fetchone()[0]
        except sqlite3.Error as e:
            logger.error(f"Error counting comments for video {video_id}: {e}")
            raise

    def get_stats(self) -> Dict[str, int]:
        try:
            videos = self.conn.execute("SELECT COUNT(*) FROM videos").fetchone()[0]
            comments = self.conn.execute("SELECT COUNT(*) FROM comments WHERE is_reply = 0").fetchone()[0]
            replies = self.conn.execute("SELECT COUNT(*) FROM comments WHERE is_reply = 1").fetchone()[0]
            return {"videos": videos, "comments": comments, "replies": replies}
        except sqlite3.Error as e:
            logger.error(f"Error getting statistics: {e}")
            raise

    def close(self):
        """Close database connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.debug("Database connection closed")

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
