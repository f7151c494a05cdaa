"""
Profile video-link collection.

Links are gathered twice, once by evaluating JS in the live page and once
from a static markup snapshot, and merged into one ordered, deduplicated set
of absolute URLs.
"""

import logging
import re
from typing import Iterable, List
from urllib.parse import urljoin

from bs4 import BeautifulSoup

import TT_Video_Crawler.src.logger
from TT_Video_Crawler.src.cascade import run_cascade

logger = logging.getLogger('TTVC.Profile')

PROFILE_LINKS_JS = '''
    () => Array.from(document.querySelectorAll('a[href*="/video/"]'))
        .map(a => a.getAttribute('href'))
        .filter(Boolean)
'''

PROFILE_VIDEO_COUNT_JS = '''
    () => new Set(
        Array.from(document.querySelectorAll('a[href*="/video/"]')).map(a => a.href)
    ).size
'''

EMBEDDED_VIDEO_URL_RE = re.compile(r'(?:https?://(?:www\.)?tiktok\.com)?/@[\w.-]+/video/\d+')

ITEM_CONTAINER_SELECTORS = [
    'div[class*="DivThreeColumnContainer"]',
    'div[data-e2e="user-post-item-list"]',
    'div[class*="DivItemContainer"]',
    'div[class*="video-feed"]',
]


def links_from_video_anchors(soup, origin):
    return [a.get('href') for a in soup.select('a[href*="/video/"]') if a.get('href')]


def links_from_embedded_data(soup, origin):
    """Video URLs written into script data (hydration JSON) before any anchor renders."""
    links = []
    for script in soup.find_all('script'):
        text = (script.string or '').replace('\\u002F', '/').replace('\\/', '/')
        links.extend(match.group(0) for match in EMBEDDED_VIDEO_URL_RE.finditer(text))
    return links


MARKUP_LINK_STRATEGIES = [
    links_from_video_anchors,
    links_from_embedded_data,
]


def extract_profile_links(html_or_soup, origin: str = 'https://www.tiktok.com') -> List[str]:
    """Static-markup pass over a profile page snapshot."""
    soup = html_or_soup if isinstance(html_or_soup, BeautifulSoup) else BeautifulSoup(html_or_soup or '', 'html.parser')
    result = run_cascade(MARKUP_LINK_STRATEGIES, soup, origin, default=[])
    logger.debug(f"Markup pass: {len(result.value)} links via {result.strategy}")
    return merge_profile_links(result.value, origin=origin)


def merge_profile_links(*passes: Iterable[str], origin: str = 'https://www.tiktok.com') -> List[str]:
    """Union of link passes: absolute, first-seen order, no duplicates."""
    merged = []
    seen = set()
    for links in passes:
        for href in links or []:
            if not href or not isinstance(href, str):
                continue
            url = urljoin(origin, href.strip())
            if url not in seen:
                seen.add(url)
                merged.append(url)
    return merged
