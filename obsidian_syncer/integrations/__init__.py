"""Content integrations: pluggable renderers for embedded query dialects."""

from typing import Optional

from obsidian_syncer.integrations.base import (
    CompileContext,
    Integration,
    IntegrationAssets,
    PatternDescriptor,
    PatternMatch,
)
from obsidian_syncer.integrations.card_link import CardLinkIntegration
from obsidian_syncer.integrations.compiler import PatternCompiler
from obsidian_syncer.integrations.datacore import DatacoreIntegration, ReactiveQueryEngine
from obsidian_syncer.integrations.dataview import DataviewIntegration, TabularQueryEngine
from obsidian_syncer.integrations.excalidraw import DrawingRenderer, ExcalidrawIntegration
from obsidian_syncer.integrations.registry import IntegrationRegistry
from obsidian_syncer.integrations.statblocks import StatblockIntegration, StatblockRenderer
from obsidian_syncer.integrations.styles import StylesheetSyncer, StyleSyncResult


def create_default_registry(
    tabular_engine: Optional[TabularQueryEngine] = None,
    reactive_engine: Optional[ReactiveQueryEngine] = None,
    drawing_renderer: Optional[DrawingRenderer] = None,
    statblock_renderer: Optional[StatblockRenderer] = None,
) -> IntegrationRegistry:
    """Registry with every built-in integration.

    Integrations whose renderer is not supplied stay registered but
    report themselves unavailable.
    """
    registry = IntegrationRegistry()
    registry.register(CardLinkIntegration())
    registry.register(DataviewIntegration(tabular_engine))
    registry.register(DatacoreIntegration(reactive_engine))
    registry.register(ExcalidrawIntegration(drawing_renderer))
    registry.register(StatblockIntegration(statblock_renderer))
    return registry


__all__ = [
    "CompileContext",
    "Integration",
    "IntegrationAssets",
    "PatternDescriptor",
    "PatternMatch",
    "CardLinkIntegration",
    "DataviewIntegration",
    "DatacoreIntegration",
    "ExcalidrawIntegration",
    "StatblockIntegration",
    "IntegrationRegistry",
    "PatternCompiler",
    "StylesheetSyncer",
    "StyleSyncResult",
    "create_default_registry",
]
