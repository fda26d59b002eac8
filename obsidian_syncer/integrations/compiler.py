"""Applies enabled integrations to a note's text."""

import logging
import re
from typing import Any, List

from obsidian_syncer.core.models import SourceDocument
from obsidian_syncer.integrations.base import CompileContext, Integration, PatternMatch
from obsidian_syncer.integrations.registry import IntegrationRegistry, patterns_of

logger = logging.getLogger(__name__)


def _wants_whole_file(integration: Integration, document: SourceDocument) -> bool:
    predicate = getattr(integration, 'should_transform_file', None)
    if predicate is None or not hasattr(integration, 'transform_file'):
        return False
    try:
        return bool(predicate(document))
    except Exception as e:
        logger.warning("%s: whole-file check failed for %s: %s", integration.id, document.path, e)
        return False


def collect_matches(integration: Integration, text: str) -> List[PatternMatch]:
    """Find every match of every pattern the integration declares.

    Each pattern is recompiled so no matcher state leaks between notes.
    """
    matches = []
    for descriptor in patterns_of(integration):
        pattern = re.compile(descriptor.pattern.pattern, descriptor.pattern.flags)
        for m in pattern.finditer(text):
            captures = [group or "" for group in m.groups()]
            matches.append(PatternMatch(descriptor=descriptor, full_match=m.group(0), captures=captures))
    return matches


class PatternCompiler:
    """Runs whole-file transforms, then pattern replacements, per integration.

    For each integration, matches are collected from the text as it stood
    when that integration's pass began. Each rendered match then replaces
    the first literal occurrence of its matched text in the current text.
    A failing match is left as-is.
    """

    def __init__(self, registry: IntegrationRegistry, settings: Any):
        self.registry = registry
        self.settings = settings

    async def compile(self, document: SourceDocument, text: str, context: CompileContext) -> str:
        enabled = self.registry.get_enabled(self.settings)

        for integration in enabled:
            if not _wants_whole_file(integration, document):
                continue
            try:
                text = await integration.transform_file(document, text, context)
            except Exception as e:
                logger.error("%s: failed to transform %s: %s", integration.id, document.path, e)

        for integration in enabled:
            snapshot = text
            for match in collect_matches(integration, snapshot):
                try:
                    replacement = await integration.compile(match, context)
                except Exception as e:
                    logger.error(
                        "%s: failed to render %s in %s: %s",
                        integration.id, match.descriptor.id, document.path, e,
                    )
                    continue
                text = text.replace(match.full_match, replacement, 1)

        return text
