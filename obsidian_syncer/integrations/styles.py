"""Publishes the stylesheets of enabled integrations into the Quartz theme."""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from obsidian_syncer.integrations.registry import IntegrationRegistry
from obsidian_syncer.utils import blob_hash

logger = logging.getLogger(__name__)

SYNCER_STYLES_DIR = "quartz/styles/syncer"
INDEX_FILE = "_index.scss"
CUSTOM_SCSS_PATH = "quartz/styles/custom.scss"
SYNCER_IMPORT = '@use "./syncer";'

INDEX_HEADER = (
    "// Obsidian Syncer Integration Styles\n"
    "// This file is auto-generated. Do not edit manually.\n"
)

_BASE_IMPORT = re.compile(r'''@use\s+["']\./base(?:\.scss)?["'];?''')
_SYNCER_IMPORT_LINE = re.compile(r'\n?' + re.escape(SYNCER_IMPORT) + r'\n?')


class StyleRepository(Protocol):
    """The slice of the remote repository stylesheet syncing needs."""

    async def get_tree(self) -> Any: ...

    async def get_text(self, path: str) -> Optional[str]: ...


@dataclass
class StyleSyncResult:
    """Files to add or rewrite, and files to remove, keyed by repository path."""
    files_to_stage: Dict[str, str] = field(default_factory=dict)
    files_to_delete: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.files_to_stage and not self.files_to_delete


def insert_syncer_import(content: str) -> str:
    """Add the syncer import after the base import, or at the top."""
    if not content.strip():
        return SYNCER_IMPORT + "\n"

    match = _BASE_IMPORT.search(content)
    if match:
        return content[:match.end()] + "\n" + SYNCER_IMPORT + content[match.end():]

    return f"{SYNCER_IMPORT}\n\n{content}"


def remove_syncer_import(content: str) -> str:
    return _SYNCER_IMPORT_LINE.sub("\n", content).lstrip("\n")


class StylesheetSyncer:
    """Stages `_<id>.scss` files for enabled integrations.

    Also stages an index that pulls them in and an import of that index
    in custom.scss. With style management off, previously staged files
    are scheduled for deletion and the import is removed.
    """

    def __init__(self, registry: IntegrationRegistry, settings: Any):
        self.registry = registry
        self.settings = settings

    def get_stylesheet_files(self) -> Dict[str, str]:
        files: Dict[str, str] = {}
        imports = []
        for integration_id, assets in self.registry.get_collected_assets(self.settings).items():
            files[f"{SYNCER_STYLES_DIR}/_{integration_id}.scss"] = assets.stylesheet
            imports.append(f'@use "./{integration_id}";')

        if imports:
            files[f"{SYNCER_STYLES_DIR}/{INDEX_FILE}"] = INDEX_HEADER + "\n" + "\n".join(imports) + "\n"
        return files

    async def collect(self, repository: StyleRepository) -> StyleSyncResult:
        """Work out which style files the next commit should touch.

        Files whose remote blob already matches are left out, so an
        unchanged theme adds nothing to the commit.
        """
        result = StyleSyncResult()
        tree = await repository.get_tree()
        remote_hashes = {entry.path: entry.sha for entry in tree.blobs()}

        if not self.settings.get("manage_syncer_styles"):
            result.files_to_delete = sorted(
                p for p in remote_hashes if p.startswith(SYNCER_STYLES_DIR + "/")
            )
            custom = await repository.get_text(CUSTOM_SCSS_PATH)
            if custom and SYNCER_IMPORT in custom:
                result.files_to_stage[CUSTOM_SCSS_PATH] = remove_syncer_import(custom)
            if not result.is_empty:
                logger.info("Will remove %d syncer style files", len(result.files_to_delete))
            return result

        files = self.get_stylesheet_files()
        if not files:
            return result

        for path, content in files.items():
            if remote_hashes.get(path) != blob_hash(content):
                result.files_to_stage[path] = content

        custom = await repository.get_text(CUSTOM_SCSS_PATH) or ""
        if SYNCER_IMPORT not in custom:
            result.files_to_stage[CUSTOM_SCSS_PATH] = insert_syncer_import(custom)
            logger.info("Will add syncer import to custom.scss")

        if result.files_to_stage:
            logger.info("Collected %d integration style files", len(result.files_to_stage))
        return result
