"""Compiles a vault note into the text and assets published to the site."""

import base64
import logging
import re
from typing import Awaitable, Callable, List, Optional, Tuple
from urllib.parse import unquote

from lxml import etree

from obsidian_syncer.config import SyncerSettings
from obsidian_syncer.core.models import Asset, CompiledDocument, SourceDocument
from obsidian_syncer.core.regexes import (
    BLOCKREF_REGEX,
    CODE_FENCE_REGEX,
    CODEBLOCK_REGEX,
    EXCALIDRAW_REGEX,
    FILE_REGEX,
    FRONTMATTER_REGEX,
    LINKED_SVG_REGEX,
    TRANSCLUDED_FILE_REGEX,
    TRANSCLUDED_REGEX,
    TRANSCLUDED_SVG_REGEX,
    WIKILINK_REGEX,
)
from obsidian_syncer.core.vault import VaultStore
from obsidian_syncer.integrations.base import CompileContext
from obsidian_syncer.integrations.compiler import PatternCompiler
from obsidian_syncer.transforms.frontmatter import (
    FrontmatterTransform,
    publish_frontmatter,
    render_frontmatter_block,
)
from obsidian_syncer.transforms.links import apply_vault_path, strip_comments, strip_link_target_blank
from obsidian_syncer.utils import asset_output_path, slugify, strip_extension

logger = logging.getLogger(__name__)

MAX_TRANSCLUSION_DEPTH = 4

CompileStep = Callable[[SourceDocument, str], Awaitable[str]]

# `$$` closing a line is escaped so a cut-off math block cannot swallow the rest of the note
_DANGLING_MATH = re.compile(r'(^|[^$])\$\$$', re.MULTILINE)
_LEADING_INT = re.compile(r'^\s*[+-]?\d')
_SVG_WHITESPACE = re.compile(r'[\t\n\r]')

_SVG_PARSER = etree.XMLParser(resolve_entities=False, no_network=True)


def _inner_link(marker: str) -> str:
    """Text between the first `[[` and the first `]` of an embed."""
    return marker[marker.index('[') + 2:marker.index(']')]


def _parses_as_int(value: str) -> bool:
    return bool(_LEADING_INT.match(value))


def set_svg_width(svg_text: str, width: str) -> str:
    """Reparse SVG markup and set an explicit width on the root element."""
    root = etree.fromstring(svg_text.encode('utf-8'), parser=_SVG_PARSER)
    root.set('width', width)
    # empty <style> would serialize self-closed, which browsers mishandle
    for style in root.iter('{http://www.w3.org/2000/svg}style', 'style'):
        if not (style.text or '').strip():
            style.text = '/**/'
    return etree.tostring(root, encoding='unicode')


class PageCompiler:
    """Turns a vault note into publishable markdown.

    Steps run in a fixed order and each one sees the previous one's
    output:

    1. front matter is replaced by the published front matter block
    2. embedded notes are inlined, recursively up to MAX_TRANSCLUSION_DEPTH
    3. integrations render their blocks
    4. wikilinks are rewritten to full vault paths
    5. `%%` comments are removed
    6. SVG embeds are inlined as markup
    7. `target="_blank"` is stripped from rendered links
    8. the vault path prefix is stripped from links

    Binary embeds are then extracted as assets in a final pass.
    Unresolvable links and embeds are left as they are.
    """

    def __init__(
        self,
        vault: VaultStore,
        settings: SyncerSettings,
        pattern_compiler: Optional[PatternCompiler] = None,
        frontmatter_transform: Optional[FrontmatterTransform] = None,
    ):
        """Initialize PageCompiler.

        Args:
            vault: Where notes and binaries are read from
            settings: Syncer settings
            pattern_compiler: Renders integration blocks, skipped if None
            frontmatter_transform: Builds the published front matter
                (default: publish_frontmatter(settings))
        """
        self.vault = vault
        self.settings = settings
        self.pattern_compiler = pattern_compiler
        self.frontmatter_transform = frontmatter_transform or publish_frontmatter(settings)

    @property
    def steps(self) -> List[CompileStep]:
        return [
            self.convert_frontmatter,
            self.transclude,
            self.convert_integrations,
            self.convert_links_to_full_path,
            self.remove_comments,
            self.create_svg_embeds,
            self.link_targeting,
            self.apply_vault_path,
        ]

    async def generate_markdown(self, document: SourceDocument) -> CompiledDocument:
        """Run every compile step over a note.

        Args:
            document: Note to compile

        Returns:
            CompiledDocument with the final text and extracted assets
        """
        text = document.text
        for step in self.steps:
            text = await step(document, text)

        text, assets = await self.convert_file_links(document, text)
        return CompiledDocument(text=text, assets=assets)

    async def convert_frontmatter(self, document: SourceDocument, text: str) -> str:
        frontmatter = self.frontmatter_transform({'publish': True}, document)
        block = render_frontmatter_block(frontmatter)
        return FRONTMATTER_REGEX.sub(lambda _: block, text, count=1)

    async def transclude(self, document: SourceDocument, text: str) -> str:
        return await self.transclude_text(document.path, text, 0)

    async def transclude_text(self, source_path: str, text: str, depth: int) -> str:
        """Inline every `![[note]]` embed in text.

        Embeds may target a heading (`#heading`) or a block (`#^id`).
        Nested embeds are expanded with depth + 1; at MAX_TRANSCLUSION_DEPTH
        the text is returned untouched.

        Args:
            source_path: Vault path the embeds are resolved from
            text: Text containing embeds
            depth: Current nesting depth, 0 for the note being compiled

        Returns:
            Text with resolvable note embeds replaced by their content
        """
        if depth >= MAX_TRANSCLUSION_DEPTH or not self.settings.apply_embeds:
            return text

        result = text
        for match in TRANSCLUDED_REGEX.finditer(text):
            marker = match.group(0)
            try:
                fragment = await self._embed_fragment(source_path, marker, depth)
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Failed to transclude %s in %s: %s", marker, source_path, e)
                continue
            if fragment is not None:
                result = result.replace(marker, fragment, 1)
        return result

    async def _embed_fragment(self, source_path: str, marker: str, depth: int) -> Optional[str]:
        name = _inner_link(marker).split('|')[0]
        if name.endswith('\\'):
            name = name[:-1]

        link_path = name.split('#')[0]
        linked_path = self.vault.resolve_link(link_path, source_path) if link_path else source_path
        if linked_path is None:
            logger.debug("Can't find transcluded file %s from %s", link_path, source_path)
            return None
        if linked_path.lower().endswith('.excalidraw.md') or not linked_path.lower().endswith('.md'):
            return None

        file_text = self.vault.read_text(linked_path)
        metadata = self.vault.get_metadata(linked_path)
        lines = file_text.split('\n')

        if '#^' in name:
            block_id = name.split('#^')[1]
            block = metadata.blocks.get(block_id)
            if block:
                file_text = '\n'.join(lines[block.start_line:block.end_line + 1])
                file_text = file_text.replace(f'^{block_id}', '', 1)
        elif '#' in name:
            header_slug = slugify(name.split('#')[1])
            headings = metadata.headings
            for position, heading in enumerate(headings):
                if slugify(heading.heading) != header_slug:
                    continue
                cut_to = next((h for h in headings[position + 1:] if h.level <= heading.level), None)
                end = cut_to.line if cut_to else len(lines)
                file_text = '\n'.join(lines[heading.line:end])
                break

        file_text = FRONTMATTER_REGEX.sub('', file_text, count=1)
        file_text = apply_vault_path(file_text, self.settings.vault_path)
        file_text = BLOCKREF_REGEX.sub('', file_text)

        if TRANSCLUDED_REGEX.search(file_text):
            file_text = await self.transclude_text(linked_path, file_text, depth + 1)

        return _DANGLING_MATH.sub(lambda m: m.group(1) + '$$$$', file_text)

    async def convert_integrations(self, document: SourceDocument, text: str) -> str:
        if self.pattern_compiler is None:
            return text
        context = CompileContext(vault=self.vault, document=document, settings=self.settings)
        return await self.pattern_compiler.compile(document, text, context)

    @staticmethod
    def _strip_code_and_frontmatter(text: str) -> str:
        text = EXCALIDRAW_REGEX.sub('', text)
        text = CODEBLOCK_REGEX.sub('', text)
        text = CODE_FENCE_REGEX.sub('', text)
        return FRONTMATTER_REGEX.sub('', text, count=1)

    async def convert_links_to_full_path(self, document: SourceDocument, text: str) -> str:
        """Rewrite `[[link]]` to `[[full/vault/path]]` outside code.

        Heading and block suffixes are kept, and a display name is kept as
        an escaped `\\|display` so links survive inside tables.
        """
        converted = text
        for match in WIKILINK_REGEX.finditer(self._strip_code_and_frontmatter(text)):
            link_match = match.group(0)
            parts = match.group(1).split('|')
            name = parts[0]
            if name.endswith('\\'):
                name = name[:-1]
            display = f"\\|{parts[1]}" if len(parts) > 1 and parts[1] else ""

            header = ""
            if '#' in name:
                name, header = name.split('#')[:2]
                header = f"#{header}"

            linked_path = self.vault.resolve_link(name, document.path) if name else None
            if linked_path is None:
                converted = converted.replace(link_match, f"[[{name}{header}{display}]]", 1)
            elif linked_path.lower().endswith('.md'):
                converted = converted.replace(
                    link_match, f"[[{strip_extension(linked_path)}{header}{display}]]", 1
                )
        return converted

    async def remove_comments(self, document: SourceDocument, text: str) -> str:
        return strip_comments(text)

    def _read_svg(self, link: str, source_path: str, size: Optional[str]) -> Optional[str]:
        linked_path = self.vault.resolve_link(link, source_path)
        if linked_path is None:
            return None
        svg_text = self.vault.read_text(linked_path)
        if svg_text and size:
            svg_text = set_svg_width(svg_text, size)
        # newlines would make markdown renderers wrap the markup in <p>
        return _SVG_WHITESPACE.sub('', svg_text)

    async def create_svg_embeds(self, document: SourceDocument, text: str) -> str:
        """Inline `![[file.svg|width]]` and `![alt](file.svg)` as raw markup."""
        for match in TRANSCLUDED_SVG_REGEX.finditer(text):
            svg = match.group(0)
            parts = _inner_link(svg).split('|')
            size = parts[1] if len(parts) > 1 else None
            try:
                svg_text = self._read_svg(parts[0], document.path, size)
            except (OSError, UnicodeDecodeError, etree.XMLSyntaxError) as e:
                logger.warning("Failed to inline %s in %s: %s", svg, document.path, e)
                continue
            if svg_text is not None:
                text = text.replace(svg, svg_text, 1)

        for match in LINKED_SVG_REGEX.finditer(text):
            svg = match.group(0)
            parts = match.group(1).split('|')
            size = parts[1] if len(parts) > 1 else None
            blob_path = svg[svg.rindex('(') + 1:svg.rindex(')')]
            if blob_path.startswith('http'):
                continue
            try:
                svg_text = self._read_svg(unquote(blob_path), document.path, size)
            except (OSError, UnicodeDecodeError, etree.XMLSyntaxError) as e:
                logger.warning("Failed to inline %s in %s: %s", svg, document.path, e)
                continue
            if svg_text is not None:
                text = text.replace(svg, svg_text, 1)

        return text

    async def link_targeting(self, document: SourceDocument, text: str) -> str:
        return strip_link_target_blank(text)

    async def apply_vault_path(self, document: SourceDocument, text: str) -> str:
        return apply_vault_path(text, self.settings.vault_path)

    def _read_asset(self, vault_path: str) -> Asset:
        content = base64.b64encode(self.vault.read_bytes(vault_path)).decode('ascii')
        return Asset(path=asset_output_path(vault_path), content=content, vault_path=vault_path)

    async def convert_file_links(self, document: SourceDocument, text: str) -> Tuple[str, List[Asset]]:
        """Extract embedded binaries as assets and point embeds at them.

        `![[file.png|meta|100]]` keeps its metadata and size suffix, the
        last segment counts as a size when it starts with an integer.

        Returns:
            Tuple of (rewritten text, assets deduplicated by path)
        """
        assets: List[Asset] = []
        blob_text = text

        for match in TRANSCLUDED_FILE_REGEX.finditer(text):
            blob_match = match.group(0)
            blob_name, *meta_and_size = _inner_link(blob_match).split('|')
            blob_name = blob_name.rstrip('\\')

            last = meta_and_size[-1] if meta_and_size else None
            size = last if last is not None and _parses_as_int(last) else None
            metadata = ""
            if len(meta_and_size) > 1:
                metadata = " ".join(meta_and_size[:-1])
            if last is not None and size is None:
                metadata = last

            linked_path = self.vault.resolve_link(blob_name.split('#')[0], document.path)
            if linked_path is None:
                continue
            try:
                asset = self._read_asset(linked_path)
            except OSError as e:
                logger.warning("Failed to read %s embedded in %s: %s", linked_path, document.path, e)
                continue

            suffix = ""
            if metadata and size:
                suffix = f"|{metadata}|{size}"
            elif size:
                suffix = f"|{size}"
            elif metadata:
                suffix = f"|{metadata}"

            assets.append(asset)
            blob_text = blob_text.replace(blob_match, f"![{blob_name}{suffix}]({asset.path})", 1)

        for match in FILE_REGEX.finditer(text):
            blob_match = match.group(0)
            blob_name = match.group(1)
            blob_path = blob_match[blob_match.rindex('(') + 1:blob_match.rindex(')')]
            if blob_path.startswith('http'):
                continue

            linked_path = self.vault.resolve_link(unquote(blob_path), document.path)
            if linked_path is None:
                continue
            try:
                asset = self._read_asset(linked_path)
            except OSError as e:
                logger.warning("Failed to read %s embedded in %s: %s", linked_path, document.path, e)
                continue

            assets.append(asset)
            blob_text = blob_text.replace(blob_match, f"![{blob_name}]({asset.path})", 1)

        unique_assets = list({asset.path: asset for asset in reversed(assets)}.values())
        unique_assets.reverse()
        return blob_text, unique_assets

    def extract_blob_links(self, document: SourceDocument) -> List[str]:
        """Vault paths of every binary file a note embeds."""
        paths = []
        for match in TRANSCLUDED_FILE_REGEX.finditer(document.text):
            blob_name = _inner_link(match.group(0)).split('|')[0].rstrip('\\')
            linked_path = self.vault.resolve_link(blob_name.split('#')[0], document.path)
            if linked_path:
                paths.append(linked_path)

        for match in FILE_REGEX.finditer(document.text):
            blob_match = match.group(0)
            blob_path = blob_match[blob_match.rindex('(') + 1:blob_match.rindex(')')]
            if blob_path.startswith('http'):
                continue
            linked_path = self.vault.resolve_link(unquote(blob_path), document.path)
            if linked_path:
                paths.append(linked_path)

        return list(dict.fromkeys(paths))
