"""Tabular query blocks (```dataview, ```dataviewjs and inline queries)."""

import logging
import re
from typing import List, Optional, Protocol

from obsidian_syncer.integrations.base import (
    CompileContext,
    IntegrationAssets,
    PatternDescriptor,
    PatternMatch,
)
from obsidian_syncer.integrations.rendering import (
    RenderTarget,
    clean_query_result,
    sanitize_html,
    sanitize_query,
    surround_with_callout_block,
    wait_until,
)

logger = logging.getLogger(__name__)

DEFAULT_JS_KEYWORD = "dataviewjs"
DEFAULT_INLINE_PREFIX = "="
DEFAULT_INLINE_JS_PREFIX = "$="
UNRENDERED_QUERY = "Unable to render query"


class TabularQueryEngine(Protocol):
    """The tabular query renderer, as seen by the compiler."""

    js_keyword: str
    inline_prefix: str
    inline_js_prefix: str

    def is_available(self) -> bool: ...

    async def query_markdown(self, query: str, path: str) -> str: ...

    def evaluate(self, expression: str, path: str) -> Optional[str]: ...

    async def execute_js(self, script: str, target: RenderTarget, path: str) -> None: ...


class DataviewIntegration:
    """Replaces tabular queries with their rendered results."""

    id = "dataview"
    name = "Dataview"
    setting_key = "use_dataview"
    priority = 100

    def __init__(self, engine: Optional[TabularQueryEngine] = None):
        self.engine = engine
        self.assets = IntegrationAssets()

    def is_available(self) -> bool:
        return self.engine is not None and self.engine.is_available()

    @property
    def js_keyword(self) -> str:
        return getattr(self.engine, 'js_keyword', None) or DEFAULT_JS_KEYWORD

    @property
    def inline_prefixes(self) -> List[str]:
        return [
            getattr(self.engine, 'inline_prefix', None) or DEFAULT_INLINE_PREFIX,
            getattr(self.engine, 'inline_js_prefix', None) or DEFAULT_INLINE_JS_PREFIX,
        ]

    def get_patterns(self) -> List[PatternDescriptor]:
        flags = re.DOTALL | re.MULTILINE
        patterns = [
            PatternDescriptor("dv-block", re.compile(r'```dataview\s(.+?)```', flags), "block"),
        ]
        if self.engine is None:
            return patterns

        # prefixes are configurable in the engine and can change between calls
        inline_prefix, inline_js_prefix = self.inline_prefixes
        patterns.extend([
            PatternDescriptor(
                "dv-js-block", re.compile('```' + re.escape(self.js_keyword) + r'\s(.+?)```', flags), "block"
            ),
            PatternDescriptor(
                "dv-inline", re.compile('`' + re.escape(inline_prefix) + '(.+?)`', flags), "inline"
            ),
            PatternDescriptor(
                "dv-inline-js", re.compile('`' + re.escape(inline_js_prefix) + '(.+?)`', flags), "inline"
            ),
        ])
        return patterns

    def _evaluate(self, expression: str, path: str) -> str:
        try:
            result = self.engine.evaluate(expression.strip(), path)
        except Exception as e:
            logger.warning("Inline query did not yield a result in %s: %s", path, e)
            return ""
        return "" if result is None else str(result)

    async def _execute_js(self, script: str, path: str) -> str:
        target = RenderTarget()
        await self.engine.execute_js(script, target, path)
        await wait_until(lambda: bool(target))
        return clean_query_result(sanitize_html(target.html))

    async def compile(self, match: PatternMatch, context: CompileContext) -> str:
        if self.engine is None:
            return match.full_match

        path = context.document.path
        depth, query = sanitize_query(match.captures[0] if match.captures else "")
        descriptor_id = match.descriptor.id

        if descriptor_id == "dv-block":
            result = await self.engine.query_markdown(query, path)
        elif descriptor_id == "dv-js-block":
            result = await self._execute_js(query, path)
        elif descriptor_id == "dv-inline":
            result = self._evaluate(query, path)
        elif descriptor_id == "dv-inline-js":
            result = self._evaluate(query, path) or await self._execute_js(query, path)
            result = result or UNRENDERED_QUERY
        else:
            return match.full_match

        if not result:
            return match.full_match
        if depth > 0:
            result = surround_with_callout_block(result, depth)
        return result
