"""
Comment-thread reconciliation.

Turns one snapshot of a video page into a flat, ordered list of CommentRecord
objects with reply -> parent links. Stateless: every call re-derives the full
list from the snapshot it is given.

Sources, in order of authority:
    1. An embedded JSON data island (`commentList` / `window.__INIT_PROPS__`):
       native ids and reply arrays are used verbatim, DOM is ignored.
    2. DOM scan: top-level candidates in document order, per-field cascades,
       the reply container directly after a comment linked structurally.
    3. Secondary pass: anything else inside a reply container is a reply whose
       parent is looked up by content. Ambiguous or missing -> parent None.
"""

import json
import re
import logging
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup, Tag

import TT_Video_Crawler.src.logger
from TT_Video_Crawler.src.cascade import run_cascade
from TT_Video_Crawler.src.models import CommentRecord
from TT_Video_Crawler.src.normalizer import parse_abbreviated_count, normalize_date_text, clean_text

logger = logging.getLogger('TTVC.Comments')

DEFAULT_ORIGIN = 'https://www.tiktok.com'

REPLY_CONTAINER_SELECTOR = (
    '.css-9kgp5o-DivReplyContainer, div[class*="DivReplyContainer"], div[class*="ReplyContainer"]'
)
REPLY_ITEM_SELECTORS = [
    '.css-1gstnae-DivCommentItemWrapper, div[class*="DivCommentItemWrapper"]',
    '[data-e2e="comment-item"], div[class*="CommentItemContainer"]',
]

USERNAME_RE = re.compile(r'@([\w.]+)')
LIKES_RE = re.compile(r'(\d+(?:\.\d+)?[KMB]?)\s*likes?', re.IGNORECASE)
DATE_RE = re.compile(
    r'(\d+[dhm]\b|\d+\s*(?:days?|hours?|minutes?|seconds?)\s*ago|\d{4}-\d{1,2}-\d{1,2})',
    re.IGNORECASE,
)
VIEW_REPLIES_RE = re.compile(r'View\s+(?:\d+\s+|more\s+)?repl(?:y|ies)', re.IGNORECASE)

_NOISE_PATTERNS = [
    re.compile(r'@[\w.]+'),
    re.compile(r'\d+(?:\.\d+)?[KMB]?\s*likes?', re.IGNORECASE),
    re.compile(r'\d+[dhm]\b|\d+\s*(?:days?|hours?|minutes?|seconds?)\s*ago', re.IGNORECASE),
    re.compile(r'View\s+\d+\s+repl(?:y|ies)', re.IGNORECASE),
    re.compile(r'\bReply\b', re.IGNORECASE),
]


# ============================================================================
# DOM HELPERS
# ============================================================================

def _classes(el: Tag) -> str:
    return ' '.join(el.get('class') or [])


def is_reply_container(el: Tag) -> bool:
    return isinstance(el, Tag) and el.name == 'div' and 'ReplyContainer' in _classes(el)


def in_reply_container(el: Tag) -> bool:
    return any(is_reply_container(parent) for parent in el.parents)


def _text(el: Optional[Tag]) -> str:
    return el.get_text(' ', strip=True) if el is not None else ''


def _first_text(el: Tag, selector: str) -> Optional[str]:
    node = el.select_one(selector)
    return _text(node) or None


def _outermost(elements: List[Tag]) -> List[Tag]:
    ids = {id(e) for e in elements}
    return [e for e in elements if not any(id(p) in ids for p in e.parents)]


def _innermost(elements: List[Tag]) -> List[Tag]:
    keep = []
    ids = {id(e) for e in elements}
    for el in elements:
        if not any(id(d) in ids for d in el.find_all('div')):
            keep.append(el)
    return keep


# ============================================================================
# CANDIDATE CONTAINERS
# ============================================================================

def containers_by_hashed_class(soup):
    return soup.select('.css-13wx63w-DivCommentObjectWrapper')


def containers_by_object_wrapper(soup):
    return soup.select('div[class*="DivCommentObjectWrapper"]')


def containers_by_item_container(soup):
    return soup.select('div[class*="DivCommentItemContainer"], div[class*="CommentItemContainer"]')


def containers_by_data_e2e(soup):
    return soup.select('[data-e2e="comment-item"]')


def containers_by_generic_class(soup):
    return soup.select('div[class*="comment-item"], div[class*="comment-container"]')


def containers_by_structure(soup):
    """Divs holding an avatar image, some text and an @handle; innermost only."""
    matches = []
    for div in soup.find_all('div'):
        has_avatar = div.select_one('img[class*="avatar"], img[class*="Avatar"], img[alt*="avatar"]') is not None
        if has_avatar and div.find(['p', 'span']) is not None and '@' in div.get_text():
            matches.append(div)
    return _innermost(matches)


CONTAINER_STRATEGIES = [
    containers_by_hashed_class,
    containers_by_object_wrapper,
    containers_by_item_container,
    containers_by_data_e2e,
    containers_by_generic_class,
    containers_by_structure,
]


# ============================================================================
# PER-FIELD CASCADES
# ============================================================================

def content_from_level_span(el):
    return _first_text(el, 'span[data-e2e="comment-level-1"] p, span[data-e2e="comment-level-2"] p')


def content_from_data_e2e(el):
    return _first_text(el, '[data-e2e="comment-level-1"] p, [data-e2e="comment-level-2"] p, [data-e2e="comment-text"] p')


def content_from_text_div(el):
    return _first_text(el, 'div[class*="DivCommentText"], div[class*="CommentText"]')


def content_from_longest_paragraph(el):
    texts = [_text(p) for p in el.find_all('p')]
    return max(texts, key=len) if texts else None


def content_from_cleaned_text(el):
    text = el.get_text(' ', strip=True)
    for pattern in _NOISE_PATTERNS:
        text = pattern.sub('', text)
    return clean_text(text)


CONTENT_STRATEGIES = [
    content_from_level_span,
    content_from_data_e2e,
    content_from_text_div,
    content_from_longest_paragraph,
    content_from_cleaned_text,
]


def _closest_href(node: Tag) -> Optional[str]:
    if node.name == 'a' and node.get('href'):
        return node['href']
    link = node.find_parent('a', href=True)
    return link['href'] if link else None


def author_from_hashed_wrapper(el):
    node = el.select_one('.css-13x3qpp-DivUsernameContentWrapper a p')
    return (_text(node), _closest_href(node)) if node else None


def author_from_data_e2e(el):
    node = el.select_one('[data-e2e="comment-username-1"], [data-e2e="comment-username-2"]')
    return (_text(node), _closest_href(node)) if node else None


def author_from_username_wrapper(el):
    link = el.select_one(
        'div[class*="DivUsernameWrapper"] a, div[class*="UsernameWrapper"] a, div[class*="DivUsernameContentWrapper"] a'
    )
    if link is None:
        return None
    name = _text(link.find(['p', 'span'])) or _text(link)
    return (name, link.get('href'))


def author_from_handle_text(el):
    match = USERNAME_RE.search(el.get_text(' '))
    return (f"@{match.group(1)}", f"/@{match.group(1)}") if match else None


def author_from_avatar_link(el):
    for link in el.find_all('a', href=True):
        if link.select_one('img[class*="avatar"], img[class*="Avatar"]') is None:
            continue
        match = USERNAME_RE.search(link['href'])
        if match:
            return (f"@{match.group(1)}", link['href'])
    return None


AUTHOR_STRATEGIES = [
    author_from_hashed_wrapper,
    author_from_data_e2e,
    author_from_username_wrapper,
    author_from_handle_text,
    author_from_avatar_link,
]


def _usable_author(result):
    if not result or not (result[0] or '').strip():
        return None
    return result


def likes_from_hashed_container(el):
    return _first_text(el, '.css-1nd5cw-DivLikeContainer span')


def likes_from_like_container(el):
    return _first_text(
        el, 'div[class*="DivLikeContainer"] span, div[class*="LikeContainer"] span, div[class*="LikeWrapper"] span'
    )


def likes_from_data_e2e(el):
    return _first_text(el, '[data-e2e="comment-like-count"]')


def likes_from_text(el):
    match = LIKES_RE.search(el.get_text(' '))
    return match.group(1) if match else None


def likes_from_aria_label(el):
    node = el.select_one('[aria-label*="Like"]')
    if node is None:
        return None
    match = LIKES_RE.search(node.get('aria-label', ''))
    return match.group(1) if match else None


LIKES_STRATEGIES = [
    likes_from_hashed_container,
    likes_from_like_container,
    likes_from_data_e2e,
    likes_from_text,
    likes_from_aria_label,
]


def date_from_hashed_wrapper(el):
    return _first_text(el, '.css-njhskk-DivCommentSubContentWrapper span')


def date_from_sub_content(el):
    return _first_text(el, 'div[class*="DivCommentSubContent"] span, div[class*="CommentSubContent"] span')


def date_from_text(el):
    match = DATE_RE.search(el.get_text(' '))
    return match.group(1) if match else None


DATE_STRATEGIES = [
    date_from_hashed_wrapper,
    date_from_sub_content,
    date_from_text,
]


def has_replies_from_hashed_class(el):
    return True if el.select_one('.css-9kgp5o-DivReplyContainer, .css-1idgi02-DivViewRepliesContainer') else None


def has_replies_from_reply_affordance(el):
    found = el.select_one(
        'div[class*="DivReplyContainer"], div[class*="ReplyContainer"], '
        'div[class*="ViewRepliesContainer"], [data-e2e="view-more-replies"]'
    )
    return True if found else None


def has_replies_from_text(el):
    return True if VIEW_REPLIES_RE.search(el.get_text(' ')) else None


HAS_REPLIES_STRATEGIES = [
    has_replies_from_hashed_class,
    has_replies_from_reply_affordance,
    has_replies_from_text,
]


# ============================================================================
# RECONCILER
# ============================================================================

_AMBIGUOUS = object()


def _absolute_profile(href: Optional[str], origin: str) -> Optional[str]:
    if not href:
        return None
    return href if href.startswith('http') else f"{origin.rstrip('/')}{href if href.startswith('/') else '/' + href}"


def extract_comment_fields(el: Tag, origin: str = DEFAULT_ORIGIN) -> Dict[str, Any]:
    """Run every per-field cascade against one comment element."""
    content = run_cascade(CONTENT_STRATEGIES, el, default='').value
    author = run_cascade([lambda e, s=s: _usable_author(s(e)) for s in AUTHOR_STRATEGIES], el, default=None).value
    likes = run_cascade(LIKES_STRATEGIES, el, default='0').value
    date = run_cascade(DATE_STRATEGIES, el, default='').value
    has_replies = run_cascade(HAS_REPLIES_STRATEGIES, el, default=False).value

    name, href = author if author else ('Unknown', None)
    return {
        'content': clean_text(content),
        'author': clean_text(name) or 'Unknown',
        'author_profile_url': _absolute_profile(href, origin),
        'like_count': parse_abbreviated_count(likes),
        'date_text': normalize_date_text(date),
        'has_replies': bool(has_replies),
    }


class _Reconciler:
    def __init__(self, origin: str):
        self.origin = origin
        self.records: List[CommentRecord] = []
        self.counter = 0
        self.by_content: Dict[str, Any] = {}
        self.visited = set()

    def _next_id(self) -> str:
        self.counter += 1
        return f"comment_{self.counter}"

    def _remember(self, content: str, comment_id: str):
        if content in self.by_content and self.by_content[content] != comment_id:
            self.by_content[content] = _AMBIGUOUS
        else:
            self.by_content[content] = comment_id

    def lookup_parent(self, content: Optional[str]) -> Optional[str]:
        if not content:
            return None
        found = self.by_content.get(content)
        return None if found is _AMBIGUOUS else found

    def emit(self, el: Tag, is_reply: bool, parent_id: Optional[str]) -> Optional[CommentRecord]:
        fields = extract_comment_fields(el, self.origin)
        if len(fields['content']) <= 1:
            return None
        record = CommentRecord(
            id=self._next_id(),
            is_reply=is_reply,
            parent_comment_id=parent_id if is_reply else None,
            **fields,
        )
        self.records.append(record)
        if not is_reply:
            self._remember(record.content, record.id)
        return record

    def mark_visited(self, el: Tag):
        self.visited.add(id(el))
        for child in el.find_all(True):
            self.visited.add(id(child))

    def is_visited(self, el: Tag) -> bool:
        return id(el) in self.visited or any(id(p) in self.visited for p in el.parents)


def _reply_container_for(top: Tag) -> Optional[Tag]:
    sibling = top.find_next_sibling()
    if sibling is not None and is_reply_container(sibling):
        return sibling
    for child in top.find_all('div'):
        if is_reply_container(child):
            return child
    return None


def _reply_items(container: Tag) -> List[Tag]:
    for selector in REPLY_ITEM_SELECTORS:
        items = _outermost(container.select(selector))
        if items:
            return items
    return []


def _parent_content_for_reply(el: Tag, origin: str) -> Optional[str]:
    """Content of the comment right before the reply container holding `el`."""
    container = next((p for p in el.parents if is_reply_container(p)), None)
    if container is None:
        return None
    previous = container.find_previous_sibling()
    if previous is None:
        return None
    return clean_text(run_cascade(CONTENT_STRATEGIES, previous, default='').value) or None


def _comments_from_dom(soup: BeautifulSoup, origin: str) -> List[CommentRecord]:
    found = run_cascade(CONTAINER_STRATEGIES, soup, default=[])
    candidates = found.value
    if not candidates:
        logger.info("No comment containers found in snapshot")
        return []
    logger.debug(f"{len(candidates)} comment containers via {found.strategy}")

    tops = [c for c in _outermost(candidates) if not in_reply_container(c)]
    state = _Reconciler(origin)

    for top in tops:
        if state.is_visited(top):
            continue
        record = state.emit(top, is_reply=False, parent_id=None)

        container = _reply_container_for(top)
        if container is not None and record is not None:
            replies = 0
            for item in _reply_items(container):
                if state.is_visited(item):
                    continue
                if state.emit(item, is_reply=True, parent_id=record.id):
                    replies += 1
                state.mark_visited(item)
            if replies:
                record.has_replies = True
        if record is not None:
            state.mark_visited(top)

    for candidate in candidates:
        if state.is_visited(candidate) or not in_reply_container(candidate):
            continue
        parent_id = state.lookup_parent(_parent_content_for_reply(candidate, origin))
        state.emit(candidate, is_reply=True, parent_id=parent_id)
        state.mark_visited(candidate)

    return state.records


# ============================================================================
# DATA ISLANDS
# ============================================================================

_decoder = json.JSONDecoder()


def _decode_after(text: str, marker: re.Pattern) -> Any:
    match = marker.search(text)
    if not match:
        return None
    try:
        value, _ = _decoder.raw_decode(text, match.end())
        return value
    except ValueError as e:
        logger.debug(f"Data island at '{marker.pattern}' is not valid JSON: {e}")
        return None


COMMENT_LIST_MARKER = re.compile(r'commentList"\s*:\s*(?=\[)')
INIT_PROPS_MARKER = re.compile(r'window\.__INIT_PROPS__\s*=\s*(?=\{)')


def find_comment_island(soup: BeautifulSoup) -> Optional[List[Dict[str, Any]]]:
    """Structured comment list from an inline script, if the page carries one."""
    for script in soup.find_all('script'):
        text = script.string or script.get_text() or ''
        if 'commentList"' in text:
            data = _decode_after(text, COMMENT_LIST_MARKER)
            if isinstance(data, list) and data:
                return data
        if 'window.__INIT_PROPS__' in text:
            data = _decode_after(text, INIT_PROPS_MARKER)
            if isinstance(data, dict) and isinstance(data.get('comments'), list) and data['comments']:
                return data['comments']
    return None


def _island_fields(item: Dict[str, Any], origin: str) -> Dict[str, Any]:
    user = item.get('user') or {}
    unique_id = user.get('uniqueId')
    if unique_id:
        profile = f"{origin.rstrip('/')}/@{unique_id}"
    else:
        profile = item.get('author_profile') or None
    return {
        'content': clean_text(item.get('text') or item.get('content') or ''),
        'author': unique_id or user.get('nickname') or item.get('author') or 'Unknown',
        'author_profile_url': profile,
        'like_count': parse_abbreviated_count(item.get('diggCount', item.get('likes', 0))),
        'date_text': normalize_date_text(item.get('createTime') or item.get('date')),
    }


def _island_has_replies(item: Dict[str, Any]) -> bool:
    flag = item.get('has_replies')
    if isinstance(flag, bool) and flag:
        return True
    return parse_abbreviated_count(item.get('replyCommentTotal') or flag or 0) > 0


def comments_from_island(items: List[Dict[str, Any]], origin: str = DEFAULT_ORIGIN) -> List[CommentRecord]:
    records = []
    counter = 0

    def native_id(item) -> str:
        nonlocal counter
        value = item.get('id') or item.get('cid')
        if value:
            return str(value)
        counter += 1
        return f"comment_{counter}"

    for item in items:
        if not isinstance(item, dict):
            continue
        fields = _island_fields(item, origin)
        replies = [r for r in (item.get('replies') or []) if isinstance(r, dict)]
        parent_id = None
        if len(fields['content']) > 1:
            parent_id = native_id(item)
            records.append(CommentRecord(
                id=parent_id,
                has_replies=bool(replies) or _island_has_replies(item),
                **fields,
            ))

        for reply in replies:
            reply_fields = _island_fields(reply, origin)
            if len(reply_fields['content']) <= 1:
                continue
            records.append(CommentRecord(
                id=native_id(reply),
                is_reply=True,
                parent_comment_id=parent_id,
                **reply_fields,
            ))
    return records


# ============================================================================
# ENTRY POINT
# ============================================================================

def extract_comments(html_or_soup, origin: str = DEFAULT_ORIGIN) -> List[CommentRecord]:
    """Reconcile every comment and reply visible in one page snapshot."""
    if isinstance(html_or_soup, BeautifulSoup):
        soup = html_or_soup
    else:
        soup = BeautifulSoup(html_or_soup or '', 'html.parser')

    island = find_comment_island(soup)
    if island is not None:
        records = comments_from_island(island, origin)
        if records:
            logger.info(f"✓ {len(records)} comments from embedded data")
            return records
        logger.debug("Embedded comment data held no usable comments, reading the DOM")

    records = _comments_from_dom(soup, origin)
    replies = sum(1 for r in records if r.is_reply)
    logger.info(f"✓ {len(records) - replies} comments, {replies} replies from DOM")
    return records
