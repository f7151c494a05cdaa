"""
Convergence-driven scrolling.

Lazy-loading lists (profile grids, comment panels) are driven with three
independent actions per iteration: scroll the list container, press End, and
scroll the last item into view. The loop stops once the item count has not
grown for `stall_threshold` consecutive iterations or after `max_iterations`.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from playwright.async_api import Page

import TT_Video_Crawler.src.logger
from TT_Video_Crawler.src.config import ScrollConfig
from TT_Video_Crawler.src.models import LoadResult

logger = logging.getLogger('TTVC.Scroll')

ItemCounter = Callable[[Page], Awaitable[int]]

COMMENT_LIST_CONTAINERS = [
    '.css-7whb78-DivCommentListContainer',
    'div[class*="DivCommentListContainer"]',
    'div[class*="CommentListContainer"]',
    '[data-e2e="comment-list"]',
    'div[class*="comment-list"]',
    '.comment-list',
]

COMMENT_ITEM_SELECTOR = (
    '.css-13wx63w-DivCommentObjectWrapper, div[class*="DivCommentObjectWrapper"], '
    'div[class*="DivCommentItemContainer"], [data-e2e="comment-item"]'
)

LOAD_MORE_SELECTORS = [
    '.css-1i8wr2j-DivLoadMoreContainer',
    'button[data-e2e="view-more-comments"]',
    'button[class*="ButtonMore"]',
    'button[class*="load-more"]',
    'div[class*="LoadMore"]',
    'span[class*="load-more"]',
]

REPLY_EXPANDER_SELECTORS = [
    '.css-1idgi02-DivViewRepliesContainer',
    'div[class*="DivViewRepliesContainer"]',
    '[data-e2e="view-more-replies"]',
]

# Returns true if a container was scrolled, false if it fell back to the window
SCROLL_CONTAINER_JS = '''
    ([selectors, step]) => {
        for (const selector of selectors) {
            const el = document.querySelector(selector);
            if (el) {
                el.scrollTop = el.scrollHeight;
                return true;
            }
        }
        window.scrollBy(0, step);
        return false;
    }
'''

SCROLL_LAST_ITEM_JS = '''
    (selector) => {
        const items = document.querySelectorAll(selector);
        if (!items.length) return false;
        items[items.length - 1].scrollIntoView({block: 'end'});
        return true;
    }
'''

COUNT_ITEMS_JS = '''
    (selector) => document.querySelectorAll(selector).length
'''

CLICK_FIRST_EXPANDER_JS = '''
    (selectors) => {
        const pattern = /view\\s+(\\d+\\s+|more\\s+)?repl/i;
        for (const selector of selectors) {
            for (const el of document.querySelectorAll(selector)) {
                if (el.offsetParent !== null && pattern.test(el.innerText || '')) {
                    el.click();
                    return true;
                }
            }
        }
        return false;
    }
'''

CLICK_ALL_EXPANDERS_JS = '''
    (selectors) => {
        let clicked = 0;
        for (const selector of selectors) {
            for (const el of document.querySelectorAll(selector)) {
                if (/view.*repl/i.test(el.innerText || '')) {
                    el.click();
                    clicked++;
                }
            }
        }
        return clicked;
    }
'''

CLICK_EXPANDERS_BY_TEXT_JS = '''
    () => {
        let clicked = 0;
        for (const el of document.querySelectorAll('div, span, p, button')) {
            if (el.children.length === 0 && /view\\s+\\d+\\s+repl/i.test(el.innerText || '')) {
                el.click();
                clicked++;
            }
        }
        return clicked;
    }
'''


def selector_counter(selector: str) -> ItemCounter:
    """Item counter that counts DOM nodes matching `selector`."""
    async def count(page: Page) -> int:
        return int(await page.evaluate(COUNT_ITEMS_JS, selector) or 0)
    return count


async def click_load_more(page: Page, selectors=None) -> bool:
    """Click the first visible 'load more' affordance. Best effort."""
    for selector in selectors or LOAD_MORE_SELECTORS:
        try:
            button = await page.query_selector(selector)
            if button and await button.is_visible():
                await button.click()
                logger.info(f"Clicked load-more: {selector}")
                return True
        except Exception as e:
            logger.debug(f"Load-more {selector} failed: {e}")
    return False


async def load_all(
    page: Page,
    item_counter: ItemCounter,
    config: Optional[ScrollConfig] = None,
    container_selectors=None,
    item_selector: str = COMMENT_ITEM_SELECTOR,
) -> LoadResult:
    """Scroll until the item count stops growing. Returns counts, never raises."""
    config = config or ScrollConfig()
    containers = container_selectors or COMMENT_LIST_CONTAINERS
    result = LoadResult()

    try:
        result.final_count = result.peak_count = await item_counter(page)
    except Exception as e:
        logger.warning(f"⚠️ Initial item count failed: {e}")
        result.aborted = True
        return result

    logger.info(f"Initial items: {result.final_count}")

    while result.iterations < config.max_iterations and result.stall_count < config.stall_threshold:
        result.iterations += 1
        try:
            await page.evaluate(SCROLL_CONTAINER_JS, [containers, config.window_scroll_step])
            await asyncio.sleep(config.action_pause)
            await page.keyboard.press('End')
            await asyncio.sleep(config.action_pause)
            await page.evaluate(SCROLL_LAST_ITEM_JS, item_selector)
            await asyncio.sleep(config.settle_seconds)
            count = await item_counter(page)
        except Exception as e:
            logger.warning(f"⚠️ Scroll iteration {result.iterations} failed, keeping partial results: {e}")
            result.aborted = True
            break

        previous = result.final_count
        result.final_count = count
        result.peak_count = max(result.peak_count, count)
        if count > previous:
            logger.info(f"Scroll {result.iterations}: {count} items (+{count - previous})")
            result.stall_count = 0
            continue

        result.stall_count += 1
        logger.debug(f"Scroll {result.iterations}: no growth ({count}), stall {result.stall_count}")

        if result.stall_count == config.load_more_at_stall:
            if await click_load_more(page):
                await asyncio.sleep(config.load_more_wait)

    logger.info(
        f"✓ Scrolling done: {result.peak_count} items after {result.iterations} iterations "
        f"(stalls={result.stall_count}, aborted={result.aborted})"
    )
    return result


async def expand_all_replies(page: Page, config: Optional[ScrollConfig] = None) -> int:
    """Click 'View N replies' expanders until none remain. Returns the number of clicks."""
    config = config or ScrollConfig()
    clicks = 0

    try:
        while clicks < config.max_reply_clicks:
            clicked = await page.evaluate(CLICK_FIRST_EXPANDER_JS, REPLY_EXPANDER_SELECTORS)
            if not clicked:
                break
            clicks += 1
            await asyncio.sleep(config.reply_click_wait)

        if clicks >= config.max_reply_clicks:
            logger.warning(f"⚠️ Reached max reply clicks ({config.max_reply_clicks})")

        bulk = await page.evaluate(CLICK_ALL_EXPANDERS_JS, REPLY_EXPANDER_SELECTORS) or 0
        if bulk:
            clicks += bulk
            await asyncio.sleep(config.reply_click_wait)

        by_text = await page.evaluate(CLICK_EXPANDERS_BY_TEXT_JS) or 0
        if by_text:
            clicks += by_text
            await asyncio.sleep(config.reply_click_wait)
    except Exception as e:
        logger.warning(f"⚠️ Reply expansion stopped after {clicks} clicks: {e}")

    logger.info(f"Expanded replies with {clicks} clicks")
    return clicks


