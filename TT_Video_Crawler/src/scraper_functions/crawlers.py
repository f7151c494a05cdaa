"""
Crawl drivers: profile -> video links, video -> metadata + comment thread,
and the targeted reply crawl for comments whose replies were not captured.
"""

import asyncio
import logging
from typing import Awaitable, Callable, List, Optional, TypeVar

from playwright.async_api import Page

import TT_Video_Crawler.src.logger
from TT_Video_Crawler.src.config import CrawlerConfig
from TT_Video_Crawler.src.models import VideoRecord
from TT_Video_Crawler.src.video_store_db import VideoStore
from TT_Video_Crawler.src.scraper_functions.session import BrowserSession
from TT_Video_Crawler.src.scraper_functions.scroll_controller import (
    COMMENT_ITEM_SELECTOR,
    COMMENT_LIST_CONTAINERS,
    expand_all_replies,
    load_all,
    selector_counter,
)
from TT_Video_Crawler.src.scraper_functions.profile_extractor import (
    ITEM_CONTAINER_SELECTORS,
    PROFILE_LINKS_JS,
    PROFILE_VIDEO_COUNT_JS,
    extract_profile_links,
    merge_profile_links,
)
from TT_Video_Crawler.src.scraper_functions.video_extractor import extract_video_record
from TT_Video_Crawler.src.scraper_functions.comment_extractor import extract_comments

logger = logging.getLogger('TTVC.Crawler')

T = TypeVar('T')

MORE_BUTTON_SELECTORS = [
    '.css-1fhxeoe-DivBtnWrapper button',
    '.css-vann6c-ButtonExpand-StyledButtonBottom',
    'button[class*="ButtonExpand"]',
]

COMMENT_BUTTON_SELECTORS = [
    '[data-e2e="comment-icon"]',
    'button[aria-label*="comment" i]',
    'button:has([data-e2e="comment-icon"])',
]

CLICK_REPLIES_FOR_COMMENT_JS = '''
    (content) => {
        const wrappers = document.querySelectorAll(
            'div[class*="DivCommentObjectWrapper"], div[class*="DivCommentItemContainer"], [data-e2e="comment-item"]'
        );
        for (const wrapper of wrappers) {
            if (!(wrapper.innerText || '').includes(content)) continue;
            for (const scope of [wrapper, wrapper.nextElementSibling]) {
                if (!scope) continue;
                const button = scope.querySelector(
                    'div[class*="ViewRepliesContainer"], [data-e2e="view-more-replies"]'
                );
                if (button) {
                    button.click();
                    return true;
                }
            }
        }
        return false;
    }
'''


class CrawlError(Exception):
    """A crawl step failed on every attempt."""


async def with_retry(action: Callable[[], Awaitable[T]], name: str, max_retries: int = 3, delay: float = 1.0) -> T:
    """Run `action`, retrying with linear backoff. Raises CrawlError once attempts run out."""
    last_error = None
    for attempt in range(1, max_retries + 1):
        try:
            return await action()
        except Exception as e:
            last_error = e
            logger.warning(f"⚠️ {name} failed (attempt {attempt}/{max_retries}): {e}")
            if attempt < max_retries:
                await asyncio.sleep(delay * attempt)
    raise CrawlError(f"{name} failed after {max_retries} attempts: {last_error}") from last_error


async def _click_first(page: Page, selectors: List[str], timeout: int = 2000) -> Optional[str]:
    for selector in selectors:
        try:
            button = await page.wait_for_selector(selector, timeout=timeout)
            if button:
                await button.click()
                return selector
        except Exception as e:
            logger.debug(f"{selector} not clickable: {e}")
    return None


async def _wait_for_any(page: Page, selectors: List[str], timeout: int) -> Optional[str]:
    for selector in selectors:
        try:
            if await page.wait_for_selector(selector, timeout=timeout):
                return selector
        except Exception:
            logger.debug(f"No match for {selector}")
    return None


# ============================================================================
# PROFILE
# ============================================================================

async def crawl_profile(session: BrowserSession, profile_url: str, config: CrawlerConfig) -> List[str]:
    """All video URLs visible on a profile after scrolling. [] if the profile can't be opened."""
    logger.info("=" * 70)
    logger.info(f"PROFILE: {profile_url}")
    logger.info("=" * 70)

    if not await session.navigate(profile_url):
        return []
    page = session.page

    found = await _wait_for_any(page, ITEM_CONTAINER_SELECTORS, timeout=config.comment_wait_ms)
    if not found:
        logger.warning("⚠️ Video grid not found, scrolling anyway")

    async def count_videos(p: Page) -> int:
        return int(await p.evaluate(PROFILE_VIDEO_COUNT_JS) or 0)

    await load_all(
        page, count_videos, config.scroll,
        container_selectors=ITEM_CONTAINER_SELECTORS,
        item_selector='a[href*="/video/"]',
    )

    in_page = await page.evaluate(PROFILE_LINKS_JS) or []
    html = await page.content()
    session.diagnostics.save_html(html, f"profile-{profile_url.rstrip('/').rsplit('/', 1)[-1].lstrip('@')}")
    from_markup = extract_profile_links(html, origin=config.origin)
    links = merge_profile_links(in_page, from_markup, origin=config.origin)
    logger.info(f"✓ {len(links)} videos on {profile_url} ({len(in_page)} in-page, {len(from_markup)} from markup)")
    return links


# ============================================================================
# VIDEO
# ============================================================================

async def open_comment_panel(page: Page, config: CrawlerConfig) -> bool:
    selector = await _wait_for_any(page, COMMENT_LIST_CONTAINERS[:3], timeout=config.comment_wait_ms)
    if selector:
        return True
    clicked = await _click_first(page, COMMENT_BUTTON_SELECTORS, timeout=5000)
    if clicked:
        logger.info(f"✓ Opened comments via {clicked}")
        await asyncio.sleep(config.scroll.settle_seconds)
        return await _wait_for_any(page, COMMENT_LIST_CONTAINERS, timeout=config.comment_wait_ms) is not None
    logger.warning("⚠️ Comment section not found")
    return False


async def crawl_video(
    session: BrowserSession,
    store: VideoStore,
    video_url: str,
    config: CrawlerConfig,
) -> Optional[VideoRecord]:
    """Crawl one video and its comments. Already-stored videos are returned untouched."""
    existing = store.find_by_url(video_url)
    if existing:
        logger.info(f"Video already stored, skipping: {video_url}")
        return existing

    if not await session.navigate(video_url):
        return None
    page = session.page

    if await _click_first(page, MORE_BUTTON_SELECTORS):
        await asyncio.sleep(1)

    html = await page.content()
    record = extract_video_record(html, video_url, config.origin)
    if not record.title or not record.source_media_url:
        session.diagnostics.save_html(html, f"video-{video_url.rstrip('/').rsplit('/', 1)[-1]}")

    await open_comment_panel(page, config)
    result = await load_all(page, selector_counter(COMMENT_ITEM_SELECTOR), config.scroll)
    if result.peak_count < 30 and record.comment_count > 100:
        logger.warning(
            f"⚠️ Only {result.peak_count} comments loaded but the video reports {record.comment_count}"
        )

    await expand_all_replies(page, config.scroll)

    comments = extract_comments(await page.content(), config.origin)

    # saved only after the comment thread is read
    video_id = store.save_video(record)
    saved = 0
    for comment in comments:
        if store.save_comment(video_id, video_url, comment) is not None:
            saved += 1
    logger.info(f"✓ Saved {saved}/{len(comments)} comments for {video_url}")
    return record


async def crawl_comment_replies(
    session: BrowserSession,
    store: VideoStore,
    video: VideoRecord,
    config: CrawlerConfig,
) -> int:
    """Open replies of top-level comments that have replies but none stored yet."""
    pending = [
        c for c in store.find_comments(video.id, is_reply=False, has_replies=True)
        if not store.find_comments(video.id, parent_comment_id=c['comment_key'])
    ]
    if not pending:
        return 0

    logger.info(f"Crawling replies for {len(pending)} comments on {video.url}")
    if session.page.url.split('?')[0] != video.url.split('?')[0]:
        if not await session.navigate(video.url):
            return 0
        await open_comment_panel(session.page, config)
    page = session.page
    saved = 0
    for i, parent in enumerate(pending):
        if i > 0:
            await asyncio.sleep(config.delay_between_comments)
        try:
            clicked = await page.evaluate(CLICK_REPLIES_FOR_COMMENT_JS, parent['content'])
            if not clicked:
                logger.debug(f"No reply expander for comment {parent['comment_key']}")
                continue
            await asyncio.sleep(config.scroll.reply_click_wait)

            records = extract_comments(await page.content(), config.origin)
            anchor = next((r for r in records if not r.is_reply and r.content == parent['content']), None)
            if anchor is None:
                continue
            for reply in records:
                if reply.is_reply and reply.parent_comment_id == anchor.id:
                    reply.parent_comment_id = parent['comment_key']
                    if store.save_comment(video.id, video.url, reply) is not None:
                        saved += 1
        except Exception as e:
            logger.warning(f"⚠️ Reply crawl failed for comment {parent['comment_key']}: {e}")

    logger.info(f"✓ Saved {saved} replies for {video.url}")
    return saved
