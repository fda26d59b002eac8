"""Drawing embeds and links, rendered to inline SVG backgrounds."""

import base64
import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Protocol

from lxml import etree
from lxml import html as lxml_html
from lxml.html import builder as E

from obsidian_syncer.core.models import SourceDocument
from obsidian_syncer.integrations.base import (
    CompileContext,
    IntegrationAssets,
    PatternDescriptor,
    PatternMatch,
)
from obsidian_syncer.utils import strip_extension

logger = logging.getLogger(__name__)

EXCALIDRAW_STYLESHEET = """
.excalidraw-svg {
  max-width: 100%;
  background-position: center;
}

:root[saved-theme="light"] .excalidraw-dark,
:root[saved-theme="dark"] .excalidraw-light {
  display: none;
}
"""

PARSED_MARKER_KEY = "excalidraw-plugin"
PARSED_MARKER_VALUE = "parsed"

_STRIPPED_ELEMENTS = (
    "//*[local-name()='style' and contains(concat(' ', normalize-space(@class), ' '), ' style-fonts ')]"
    " | //*[local-name()='metadata']"
    " | //*[local-name()='mask']"
    " | //*[local-name()='defs']"
)

_SVG_PARSER = etree.XMLParser(remove_blank_text=True, resolve_entities=False, no_network=True)


class DrawingRenderer(Protocol):
    """The drawing renderer, as seen by the compiler."""

    def is_available(self) -> bool: ...

    async def create_svg(self, path: str, theme: str) -> str: ...


@dataclass
class ThemedSvg:
    dark: etree._Element
    light: etree._Element


def svg_to_data_uri(svg: etree._Element) -> str:
    markup = etree.tostring(svg, encoding='unicode')
    return "data:image/svg+xml;base64," + base64.b64encode(markup.encode('utf-8')).decode('ascii')


def _prepare_svg(markup: str, display: str) -> etree._Element:
    svg = etree.fromstring(markup.encode('utf-8'), parser=_SVG_PARSER)
    for element in svg.xpath(_STRIPPED_ELEMENTS):
        element.getparent().remove(element)
    svg.set('style', f"max-width:100%;height:auto;display:{display};")
    return svg


def _view_box(svg: etree._Element) -> Optional[tuple]:
    parts = re.split(r'[\s,]+', (svg.get('viewBox') or '').strip())
    if len(parts) != 4:
        return None
    try:
        return float(parts[2]), float(parts[3])
    except ValueError:
        return None


def _number(value: float) -> str:
    return str(int(value)) if value == int(value) else str(value)


class ExcalidrawIntegration:
    """Renders drawings through an injected renderer."""

    id = "excalidraw"
    name = "Excalidraw"
    setting_key = "use_excalidraw"
    priority = 50

    def __init__(self, renderer: Optional[DrawingRenderer] = None):
        self.renderer = renderer
        self.assets = IntegrationAssets(stylesheet=EXCALIDRAW_STYLESHEET)

    def is_available(self) -> bool:
        return self.renderer is not None and self.renderer.is_available()

    def get_patterns(self) -> List[PatternDescriptor]:
        return [
            PatternDescriptor(
                "excalidraw-embed",
                re.compile(r'!\[\[(.+?\.excalidraw(?:\.md)?.*?)(?:\|(.+))?\]\]'),
                "inline",
            ),
            PatternDescriptor(
                "excalidraw-link",
                re.compile(r'\[\[(.+?\.excalidraw(?:\.md)?.*?)(?:\|(.+))?\]\]'),
                "inline",
            ),
        ]

    async def render(self, path: str) -> Optional[ThemedSvg]:
        """Render a drawing in both themes.

        Returns:
            ThemedSvg, or None if the renderer failed
        """
        try:
            dark = await self.renderer.create_svg(path, "dark")
            light = await self.renderer.create_svg(path, "light")
            return ThemedSvg(
                dark=_prepare_svg(dark, "var(--lightningcss-light, none)"),
                light=_prepare_svg(light, "var(--lightningcss-dark, none)"),
            )
        except (etree.XMLSyntaxError, ValueError) as e:
            logger.error("Drawing %s produced invalid SVG: %s", path, e)
        except Exception as e:
            logger.error("Unable to render drawing %s: %s", path, e)
        return None

    def should_transform_file(self, document: SourceDocument) -> bool:
        return document.frontmatter.get(PARSED_MARKER_KEY) == PARSED_MARKER_VALUE

    async def transform_file(self, document: SourceDocument, text: str, context: CompileContext) -> str:
        """Replace a drawing note with its rendered SVGs."""
        if self.renderer is None:
            return text

        svgs = await self.render(document.path)
        if svgs is None:
            return text

        return (
            "<div>\n"
            f'<div style="background-image:url({svg_to_data_uri(svgs.dark)});"></div>\n'
            f'<div style="background-image:url({svg_to_data_uri(svgs.light)});"></div>\n'
            "</div>"
        )

    async def compile(self, match: PatternMatch, context: CompileContext) -> str:
        if self.renderer is None:
            return match.full_match

        link_path = match.captures[0].split('#')[0]
        display_name = match.captures[1] if len(match.captures) > 1 else ""
        is_embedded = match.descriptor.id == "excalidraw-embed"

        linked_path = context.vault.resolve_link(link_path, context.document.path)
        if linked_path is None:
            return match.full_match

        if not is_embedded:
            link = E.A(display_name or "", href=strip_extension(linked_path))
            return lxml_html.tostring(link, encoding='unicode')

        svgs = await self.render(linked_path)
        if svgs is None:
            return match.full_match

        size = _view_box(svgs.dark)
        width, aspect_ratio = "auto", "auto"
        if size and size[1]:
            width = f"{_number(size[0])}px"
            aspect_ratio = _number(size[0] / size[1])

        for svg in (svgs.dark, svgs.light):
            for attribute in ('width', 'height', 'viewBox'):
                svg.attrib.pop(attribute, None)

        style = (
            "background-size:cover;background-repeat:no-repeat;"
            f"width:{width};height:auto;aspect-ratio:{aspect_ratio};"
        )
        return (
            "<div>\n"
            f'<div class="excalidraw-svg excalidraw-dark" '
            f'style="background-image:url({svg_to_data_uri(svgs.dark)});{style}"></div>\n'
            f'<div class="excalidraw-svg excalidraw-light" '
            f'style="background-image:url({svg_to_data_uri(svgs.light)});{style}"></div>\n'
            "</div>"
        )
