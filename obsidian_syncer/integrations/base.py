"""Contract between the compile pipeline and third-party renderers.

An integration recognizes a text pattern (usually a fenced code block
dialect) and replaces each match with rendered output. Some integrations
can also replace a whole note.
"""

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional, Protocol

if TYPE_CHECKING:
    from obsidian_syncer.config import SyncerSettings
    from obsidian_syncer.core.models import SourceDocument
    from obsidian_syncer.core.vault import VaultStore


@dataclass(frozen=True)
class PatternDescriptor:
    """A pattern an integration wants replaced.

    kind is "block" for fenced blocks and "inline" for inline code spans.
    """
    id: str
    pattern: re.Pattern
    kind: str = "block"


@dataclass
class PatternMatch:
    """One match of a pattern in a note."""
    descriptor: PatternDescriptor
    full_match: str
    captures: List[str] = field(default_factory=list)


@dataclass
class CompileContext:
    """What an integration may look at while rendering a match."""
    vault: "VaultStore"
    document: "SourceDocument"
    settings: "SyncerSettings"


@dataclass
class IntegrationAssets:
    """Static files an integration needs on the published site."""
    stylesheet: Optional[str] = None


class Integration(Protocol):
    """Interface every integration implements.

    Integrations may additionally define ``should_transform_file(document)``
    and ``async transform_file(document, text, context)`` to rewrite a
    whole note before pattern matching.
    """

    id: str
    name: str
    setting_key: str
    priority: int
    assets: IntegrationAssets

    def is_available(self) -> bool: ...

    def get_patterns(self) -> List[PatternDescriptor]: ...

    async def compile(self, match: PatternMatch, context: CompileContext) -> str: ...


class WholeFileIntegration(Integration, Protocol):
    """An integration that can also replace a note entirely."""

    def should_transform_file(self, document: "SourceDocument") -> bool: ...

    async def transform_file(
        self, document: "SourceDocument", text: str, context: CompileContext
    ) -> str: ...
