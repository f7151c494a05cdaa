"""
Record normalization: abbreviated counters ("1.2K", "15M"), date text and
assembly of VideoRecord objects from raw extractor output.
"""

import re
import logging
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

import TT_Video_Crawler.src.logger
from TT_Video_Crawler.src.models import VideoRecord

logger = logging.getLogger('TTVC.Normalize')

MULTIPLIERS = {
    'K': 1_000,
    'M': 1_000_000,
    'B': 1_000_000_000,
}

_SUFFIX_AFTER_DIGIT = re.compile(r'(?<=[0-9.])([kmb])')
_NOT_COUNT_CHAR = re.compile(r'[^0-9.KMB]')
_COUNT = re.compile(r'(\d+(?:\.\d+)?|\.\d+)([KMB])?')
_EPOCH_TEXT = re.compile(r'\d{9,10}')


def parse_abbreviated_count(text: Any) -> int:
    """
    Parse a displayed counter like '1.2K', '15M', '3' or '1,234' into an int.

    Never raises: empty, missing or unparseable input yields 0.
    """
    if text is None or isinstance(text, bool):
        return 0
    if isinstance(text, int):
        return max(text, 0)
    if isinstance(text, float):
        return max(int(text), 0)

    cleaned = _SUFFIX_AFTER_DIGIT.sub(lambda m: m.group(1).upper(), str(text).strip())
    cleaned = _NOT_COUNT_CHAR.sub('', cleaned)
    match = _COUNT.fullmatch(cleaned)
    if not match:
        if cleaned:
            logger.debug(f"Unparseable count text: {text!r}")
        return 0

    number, suffix = match.groups()
    try:
        value = Decimal(number)
    except InvalidOperation:
        return 0
    if suffix:
        value *= MULTIPLIERS[suffix]
    return int(value)


def normalize_date_text(value: Any, default: str = 'Unknown') -> str:
    """Epoch seconds become ISO-8601 (UTC); anything else is trimmed text."""
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        if value <= 0:
            return default
        return datetime.fromtimestamp(value, tz=timezone.utc).isoformat()

    text = str(value).strip()
    if _EPOCH_TEXT.fullmatch(text):
        return datetime.fromtimestamp(int(text), tz=timezone.utc).isoformat()
    return text or default


def clean_text(value: Optional[str]) -> str:
    """Collapse whitespace runs and trim."""
    if not value:
        return ''
    return ' '.join(value.split())


def to_video_record(url: str, raw: Dict[str, Any]) -> VideoRecord:
    """Build a VideoRecord from raw extractor strings."""
    return VideoRecord(
        url=url,
        title=clean_text(raw.get('title')),
        source_media_url=raw.get('source_media_url') or None,
        channel_url=raw.get('channel_url') or 'Unknown Channel',
        hashtags=list(raw.get('hashtags') or []),
        like_count=parse_abbreviated_count(raw.get('likes')),
        comment_count=parse_abbreviated_count(raw.get('comments')),
        saved_count=parse_abbreviated_count(raw.get('saved')),
        share_count=parse_abbreviated_count(raw.get('shares')),
    )
