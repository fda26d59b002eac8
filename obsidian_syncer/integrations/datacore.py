"""Reactive query blocks (```datacorejs and its jsx/ts/tsx variants)."""

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
    sanitize_html,
    sanitize_query,
    surround_with_callout_block,
    wait_until,
)

logger = logging.getLogger(__name__)

DATACORE_STYLESHEET = """
.datacore-card {
  border: 1px solid var(--lightgray);
  border-radius: 8px;
  padding: 0.5em 1em;
  margin: 0.5em 0;
}

.datacore-card-title {
  font-weight: bold;
}

.datacore-table,
.datacore-list {
  width: 100%;
}
"""

LANGUAGES = ('js', 'jsx', 'ts', 'tsx')

# Plain script that fails to run is retried as its JSX flavour
FALLBACK_LANGUAGE = {'js': 'jsx', 'ts': 'tsx'}

RENDERED_MARKER = "datacore"


class ReactiveQueryEngine(Protocol):
    """The reactive query renderer, as seen by the compiler."""

    def is_available(self) -> bool: ...

    def execute(self, language: str, source: str, target: RenderTarget, path: str) -> None: ...


class DatacoreIntegration:
    """Replaces reactive query blocks with their rendered HTML."""

    id = "datacore"
    name = "Datacore"
    setting_key = "use_datacore"
    priority = 100

    def __init__(self, engine: Optional[ReactiveQueryEngine] = None):
        self.engine = engine
        self.assets = IntegrationAssets(stylesheet=DATACORE_STYLESHEET)

    def is_available(self) -> bool:
        return self.engine is not None and self.engine.is_available()

    def get_patterns(self) -> List[PatternDescriptor]:
        flags = re.DOTALL | re.MULTILINE
        return [
            PatternDescriptor(f"dc-{language}", re.compile(rf'```datacore{language}\s(.+?)```', flags), "block")
            for language in LANGUAGES
        ]

    async def render(self, language: str, source: str, path: str) -> RenderTarget:
        """Run source in the engine and wait for its output to appear."""
        target = RenderTarget()
        try:
            self.engine.execute(language, source, target, path)
        except Exception as e:
            fallback = FALLBACK_LANGUAGE.get(language)
            logger.error("Datacore %s execution failed in %s: %s", language, path, e)
            if fallback is None:
                return target
            return await self.render(fallback, source, path)

        await wait_until(lambda: target.contains(RENDERED_MARKER))
        return target

    async def compile(self, match: PatternMatch, context: CompileContext) -> str:
        if self.engine is None:
            return match.full_match

        language = match.descriptor.id.split('-', 1)[-1]
        if language not in LANGUAGES:
            return match.full_match

        depth, query = sanitize_query(match.captures[0] if match.captures else "")
        target = await self.render(language, query, context.document.path)
        result = sanitize_html(target.html)
        if not result:
            return match.full_match

        if depth > 0:
            return surround_with_callout_block(result, depth)
        return result
