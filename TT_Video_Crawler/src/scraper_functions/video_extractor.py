"""
Video page metadata extraction.

Every field is read through an ordered cascade of independent strategies over
a static snapshot of the page (BeautifulSoup). Class names on the site are
hashed per build, so each cascade starts with the most specific selector and
falls back to data-e2e attributes, meta tags, inline scripts and the URL.

Counters are returned as raw text ('1.2K'); parsing belongs to the normalizer.
"""

import re
import logging
from typing import Dict, List, Optional, Any
from urllib.parse import urljoin, urlparse, unquote

from bs4 import BeautifulSoup, NavigableString

import TT_Video_Crawler.src.logger
from TT_Video_Crawler.src.cascade import run_cascade
from TT_Video_Crawler.src.models import VideoRecord
from TT_Video_Crawler.src.normalizer import to_video_record

logger = logging.getLogger('TTVC.Extract')

DEFAULT_ORIGIN = 'https://www.tiktok.com'
UNKNOWN_CHANNEL = 'Unknown Channel'

COUNTER_FIELDS = ('likes', 'comments', 'saved', 'shares')

HASHTAG_IN_TEXT = re.compile(r'#(\w+)')
PLAY_ADDR = re.compile(r'"playAddr"\s*:\s*"([^"]+)"')
AUTHOR_IN_URL = re.compile(r'/(@[^/?#]+)/video/')


def as_soup(html_or_soup) -> BeautifulSoup:
    if isinstance(html_or_soup, BeautifulSoup):
        return html_or_soup
    return BeautifulSoup(html_or_soup or '', 'html.parser')


def _meta(soup: BeautifulSoup, prop: str) -> Optional[str]:
    tag = soup.find('meta', attrs={'property': prop}) or soup.find('meta', attrs={'name': prop})
    return tag.get('content') if tag else None


def _tag_from_href(href: str) -> Optional[str]:
    path = urlparse(href).path
    if '/tag/' not in path:
        return None
    tag = unquote(path.split('/tag/', 1)[1]).strip('/')
    return tag or None


def _unique(items) -> List[str]:
    seen = []
    for item in items:
        if item and item not in seen:
            seen.append(item)
    return seen


# ============================================================================
# TITLE
# ============================================================================

def title_from_desc_spans(soup, ctx):
    spans = soup.select('div[data-e2e="browse-video-desc"] span[data-e2e="new-desc-span"]')
    return ' '.join(s.get_text(strip=True) for s in spans if s.get_text(strip=True))


def title_from_description_container(soup, ctx):
    container = soup.select_one('div[class*="DivDescriptionContainer"]')
    if container is None:
        return None
    # Only the container's own text nodes; links inside are hashtags/mentions
    return ''.join(str(node) for node in container.children if isinstance(node, NavigableString))


def title_from_video_desc(soup, ctx):
    node = soup.select_one('[data-e2e="video-desc"]')
    return node.get_text(' ', strip=True) if node else None


def title_from_og_meta(soup, ctx):
    return _meta(soup, 'og:title')


TITLE_STRATEGIES = [
    title_from_desc_spans,
    title_from_description_container,
    title_from_video_desc,
    title_from_og_meta,
]


# ============================================================================
# HASHTAGS
# ============================================================================

def hashtags_from_search_links(soup, ctx):
    links = soup.select('a[data-e2e="search-common-link"]')
    return _unique(_tag_from_href(a.get('href', '')) for a in links)


def hashtags_from_tag_links(soup, ctx):
    return _unique(_tag_from_href(a.get('href', '')) for a in soup.select('a[href*="/tag/"]'))


def hashtags_from_title(soup, ctx):
    return _unique(HASHTAG_IN_TEXT.findall(ctx.get('title') or ''))


HASHTAG_STRATEGIES = [
    hashtags_from_search_links,
    hashtags_from_tag_links,
    hashtags_from_title,
]


# ============================================================================
# SOURCE MEDIA URL
# ============================================================================

def source_from_video_source(soup, ctx):
    node = soup.select_one('video source[src]')
    return node.get('src') if node else None


def source_from_video_src(soup, ctx):
    node = soup.select_one('video[src]')
    return node.get('src') if node else None


def source_from_og_video(soup, ctx):
    return _meta(soup, 'og:video')


def source_from_play_addr(soup, ctx):
    for script in soup.find_all('script'):
        text = script.string or script.get_text() or ''
        match = PLAY_ADDR.search(text)
        if match:
            return match.group(1).replace('\\u002F', '/').replace('\\/', '/')
    return None


def source_from_mp4_link(soup, ctx):
    node = soup.select_one('a[href*=".mp4"]')
    return node.get('href') if node else None


SOURCE_STRATEGIES = [
    source_from_video_source,
    source_from_video_src,
    source_from_og_video,
    source_from_play_addr,
    source_from_mp4_link,
]


# ============================================================================
# CHANNEL
# ============================================================================

def _profile_url(handle: str, origin: str) -> str:
    handle = handle.strip()
    if not handle.startswith('@'):
        handle = f"@{handle}"
    return f"{origin.rstrip('/')}/{handle}"


def channel_from_avatar_link(soup, ctx):
    node = soup.select_one('div[class*="DivAvatarContainer"] a, a[data-e2e="video-author-avatar"]')
    href = node.get('href') if node else None
    return urljoin(ctx['origin'], href) if href else None


def channel_from_unique_id(soup, ctx):
    node = soup.select_one('[data-e2e="video-author-uniqueid"]')
    text = node.get_text(strip=True) if node else ''
    if not text:
        return None
    return _profile_url(text, ctx['origin'])


def channel_from_og_creator(soup, ctx):
    creator = _meta(soup, 'og:creator')
    return _profile_url(creator, ctx['origin']) if creator and creator.strip() else None


def channel_from_url(soup, ctx):
    match = AUTHOR_IN_URL.search(ctx.get('url') or '')
    return _profile_url(match.group(1), ctx['origin']) if match else None


CHANNEL_STRATEGIES = [
    channel_from_avatar_link,
    channel_from_unique_id,
    channel_from_og_creator,
    channel_from_url,
]


# ============================================================================
# COUNTERS
# ============================================================================

def counters_from_strong_text(soup, ctx):
    values = [s.get_text(strip=True) for s in soup.select('strong[class*="StrongText"]')]
    if len(values) < 4:
        return None
    return dict(zip(COUNTER_FIELDS, values[:4]))


def counters_from_data_e2e(soup, ctx):
    selectors = {
        'likes': '[data-e2e="like-count"]',
        'comments': '[data-e2e="comment-count"]',
        'saved': '[data-e2e="undefined-count"]',
        'shares': '[data-e2e="share-count"]',
    }
    counters = {}
    for field, selector in selectors.items():
        node = soup.select_one(selector)
        if node and node.get_text(strip=True):
            counters[field] = node.get_text(strip=True)
    return counters or None


COUNTER_STRATEGIES = [
    counters_from_strong_text,
    counters_from_data_e2e,
]


# ============================================================================
# ENTRY POINTS
# ============================================================================

def extract_video_details(html_or_soup, url: str, origin: str = DEFAULT_ORIGIN) -> Dict[str, Any]:
    """Raw (trimmed, un-normalized) metadata for one video page snapshot."""
    soup = as_soup(html_or_soup)
    ctx = {'url': url, 'origin': origin}

    title = run_cascade(TITLE_STRATEGIES, soup, ctx, default='')
    ctx['title'] = title.value
    hashtags = run_cascade(HASHTAG_STRATEGIES, soup, ctx, default=[])
    source = run_cascade(SOURCE_STRATEGIES, soup, ctx, default=None)
    channel = run_cascade(CHANNEL_STRATEGIES, soup, ctx, default=UNKNOWN_CHANNEL)
    counters = run_cascade(COUNTER_STRATEGIES, soup, ctx, default={})

    raw = {
        'title': ' '.join(title.value.split()),
        'hashtags': hashtags.value,
        'source_media_url': source.value,
        'channel_url': channel.value,
    }
    for field in COUNTER_FIELDS:
        raw[field] = counters.value.get(field, '0')

    logger.debug(
        f"Video fields via title={title.strategy} channel={channel.strategy} "
        f"source={source.strategy} counters={counters.strategy}"
    )
    if not source.found:
        logger.warning(f"⚠️ No source media URL found for {url}")
    return raw


def extract_video_record(html_or_soup, url: str, origin: str = DEFAULT_ORIGIN) -> VideoRecord:
    raw = extract_video_details(html_or_soup, url, origin)
    record = to_video_record(url, raw)
    logger.info(
        f"Title=\"{record.title[:60]}\", Channel={record.channel_url}, Likes={record.like_count}, "
        f"Comments={record.comment_count}, Saved={record.saved_count}, Shared={record.share_count}, "
        f"Hashtags={', '.join(record.hashtags)}"
    )
    return record
