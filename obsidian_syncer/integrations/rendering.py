"""Helpers shared by integrations that drive an external renderer."""

import asyncio
import logging
import re
from typing import Callable, Iterable, List, Optional, Tuple
from urllib.parse import unquote

from lxml import etree
from lxml import html as lxml_html

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.005
POLL_ATTEMPTS = 100

UNWANTED_TAGS = ('script', 'style', 'link', 'meta', 'title')

_TAG_LINK = re.compile(r'\[#([^\]]+)\]\(#([^)]+)\)')
_MD_EXTENSION_LINK = re.compile(r'(\[.*?\]\()(.+?)\.md(\))')
_MARKDOWN_LINK = re.compile(r'\[([^\]]+)\]\(([^)]+)\)')


class RenderTarget:
    """Buffer an external renderer writes its HTML output into."""

    def __init__(self) -> None:
        self.html = ""

    def write(self, html: str) -> None:
        self.html += html

    def clear(self) -> None:
        self.html = ""

    def contains(self, marker: str) -> bool:
        return marker in self.html

    def __bool__(self) -> bool:
        return bool(self.html.strip())


async def wait_until(
    predicate: Callable[[], bool],
    interval: float = POLL_INTERVAL,
    attempts: int = POLL_ATTEMPTS,
) -> bool:
    """Poll predicate until it holds or the attempts run out.

    A renderer that is slower than the cap leaves partial output behind;
    callers use whatever was rendered.

    Returns:
        True if the predicate held before giving up
    """
    for _ in range(attempts):
        if predicate():
            return True
        await asyncio.sleep(interval)
    return predicate()


def sanitize_query(query: str) -> Tuple[int, str]:
    """Strip callout `>` prefixes from a query found inside a callout.

    Returns:
        Tuple of (deepest callout depth, query without prefixes)
    """
    depth = 0
    sanitized = []
    for part in query.split('\n'):
        line_depth = 0
        if part.startswith('>'):
            line_depth += 1
            intermediate = part[1:].strip()
            while intermediate.startswith('>'):
                intermediate = intermediate[1:].strip()
                line_depth += 1
            sanitized.append(intermediate)
        else:
            sanitized.append(part)
        depth = max(depth, line_depth)
    return depth, '\n'.join(sanitized)


def surround_with_callout_block(text: str, depth: int = 1) -> str:
    """Prefix every continuation line with `> ` repeated depth times."""
    return ' ' + ('\n' + '> ' * depth).join(text.split('\n'))


def clean_query_result(markdown: str) -> str:
    """Make a rendered query result publishable.

    Tag links become tag anchors, `.md` is dropped from link targets and
    markdown links become wikilinks.
    """
    markdown = unquote(markdown)
    markdown = _TAG_LINK.sub(r'<a href="tags/\2" class="tag-link">\1</a>', markdown)
    markdown = _MD_EXTENSION_LINK.sub(r'\1\2\3', markdown)
    markdown = _MARKDOWN_LINK.sub(r'[[\2|\1]]', markdown)
    return markdown.strip()


def has_class(class_name: str) -> str:
    """XPath predicate matching elements that carry class_name."""
    return f"contains(concat(' ', normalize-space(@class), ' '), ' {class_name} ')"


def _classes(element: etree._Element) -> List[str]:
    return (element.get('class') or '').split()


def _remove_keep_tail(element: etree._Element) -> None:
    parent = element.getparent()
    if parent is None:
        return
    if element.tail:
        previous = element.getprevious()
        if previous is not None:
            previous.tail = (previous.tail or '') + element.tail
        else:
            parent.text = (parent.text or '') + element.tail
    parent.remove(element)


def remove_elements(root: etree._Element, xpath: str) -> None:
    for element in root.xpath(xpath):
        _remove_keep_tail(element)


def _convert_callouts(root: etree._Element) -> None:
    for callout in root.xpath(f".//div[{has_class('callout')}]"):
        callout.tag = 'blockquote'
        fold = callout.get('data-callout-fold')
        if fold is not None:
            if fold == '-':
                callout.set('class', ' '.join(_classes(callout) + ['is-collapsed']))
            callout.set('data-callout-fold', '')
        if callout.get('data-callout') is None:
            callout.set('data-callout', 'note')
        classes = [c for c in _classes(callout) if c != 'datacore']
        callout.set('class', ' '.join(classes))


def _unwrap(root: etree._Element) -> etree._Element:
    while (
        not root.attrib
        and len(root) == 1
        and not (root.text or '').strip()
        and not (root[0].tail or '').strip()
    ):
        root = root[0]
    return root


def _serialize(root: etree._Element) -> str:
    return lxml_html.tostring(root, encoding='unicode', with_tail=False)


def sanitize_html(html: str) -> str:
    """Clean renderer output before it is spliced into a note.

    Drops script-like elements, strips navigation attributes from internal
    links, rewrites callouts as Quartz blockquotes and unwraps
    attribute-less single-child wrappers.
    """
    if not html.strip():
        return ""

    root = lxml_html.fragment_fromstring(html, create_parent='div')
    remove_elements(root, ' | '.join(f'.//{tag}' for tag in UNWANTED_TAGS))

    for link in root.xpath(f".//a[{has_class('internal-link')} or {has_class('tag')}]"):
        for attribute in ('target', 'rel', 'data-href'):
            link.attrib.pop(attribute, None)

    _convert_callouts(root)
    return _serialize(_unwrap(root))


def html_text_content(html: str) -> str:
    """Plain text of an HTML fragment."""
    if not html.strip():
        return ""
    root = lxml_html.fragment_fromstring(html, create_parent='div')
    return root.text_content()


_DYNAMIC_BLOCKS = re.compile(r'```(dataview|datacorejs|datacorejsx|datacorets|datacoretsx)\s', re.DOTALL)


def has_dynamic_content(
    text: str,
    js_keyword: Optional[str] = None,
    inline_prefixes: Iterable[str] = (),
) -> bool:
    """True if text contains queries whose output depends on other notes.

    Args:
        text: Raw note text
        js_keyword: Fence keyword of script queries, when known
        inline_prefixes: Inline query prefixes, when known
    """
    if _DYNAMIC_BLOCKS.search(text):
        return True
    if js_keyword and re.search('```' + re.escape(js_keyword) + r'\s', text):
        return True
    for prefix in inline_prefixes:
        if prefix and re.search('`' + re.escape(prefix) + '.+?`', text, re.DOTALL):
            return True
    return False
