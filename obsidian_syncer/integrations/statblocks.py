"""Creature stat blocks from ```statblock fenced blocks."""

import logging
import re
from typing import List, Optional, Protocol

from lxml import html as lxml_html

from obsidian_syncer.integrations.base import (
    CompileContext,
    IntegrationAssets,
    PatternDescriptor,
    PatternMatch,
)
from obsidian_syncer.integrations.rendering import RenderTarget, has_class, remove_elements, wait_until

logger = logging.getLogger(__name__)

STATBLOCK_STYLESHEET = """
.statblock {
  margin: 1em 0;
  padding: 0.5em;
  border-top: 4px solid var(--secondary);
  border-bottom: 4px solid var(--secondary);
  background: var(--light);
}

.statblock .property-name {
  font-weight: bold;
}

.statblock .calculated-modifier {
  color: var(--gray);
}
"""

# The renderer is slow; wait up to five seconds
STATBLOCK_POLL_ATTEMPTS = 1000
RENDERED_MARKER = "statblock"

_INTERACTIVE_ELEMENTS = (
    f".//*[{has_class('clickable-icon')} and {has_class('extra-setting-button')}]"
    f" | .//*[{has_class('statblock-inline-item')} and {has_class('action-container')}]"
)


class StatblockRenderer(Protocol):
    """The stat block renderer, as seen by the compiler."""

    def is_available(self) -> bool: ...

    def render_markdown(self, source: str, target: RenderTarget, path: str) -> None: ...


def clean_statblock(html: str) -> str:
    """Remove interactive controls and parenthesize computed modifiers."""
    root = lxml_html.fragment_fromstring(html, create_parent='div')
    remove_elements(root, _INTERACTIVE_ELEMENTS)
    for modifier in root.xpath(f".//span[{has_class('calculated-modifier')}]"):
        text = modifier.text_content()
        if text:
            for child in list(modifier):
                modifier.remove(child)
            modifier.text = f"({text})"
    return lxml_html.tostring(root, encoding='unicode')


class StatblockIntegration:
    """Replaces stat block definitions with their rendered HTML."""

    id = "fantasy-statblocks"
    name = "Fantasy Statblocks"
    setting_key = "use_fantasy_statblocks"
    priority = 100

    def __init__(self, renderer: Optional[StatblockRenderer] = None):
        self.renderer = renderer
        self.assets = IntegrationAssets(stylesheet=STATBLOCK_STYLESHEET)

    def is_available(self) -> bool:
        return self.renderer is not None and self.renderer.is_available()

    def get_patterns(self) -> List[PatternDescriptor]:
        return [
            PatternDescriptor(
                "statblock",
                re.compile(r'(```statblock\s.+?```)', re.DOTALL | re.MULTILINE),
                "block",
            ),
        ]

    async def compile(self, match: PatternMatch, context: CompileContext) -> str:
        if self.renderer is None:
            return match.full_match

        source = match.full_match.strip()
        if not source:
            return match.full_match

        target = RenderTarget()
        try:
            self.renderer.render_markdown(source, target, context.document.path)
        except Exception as e:
            logger.error("Stat block rendering failed in %s: %s", context.document.path, e)
            return match.full_match

        await wait_until(lambda: target.contains(RENDERED_MARKER), attempts=STATBLOCK_POLL_ATTEMPTS)
        if not target:
            return match.full_match
        return clean_statblock(target.html)
