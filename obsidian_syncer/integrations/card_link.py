"""Link cards from ```cardlink fenced blocks."""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import yaml
from lxml import html as lxml_html
from lxml.html import builder as E

from obsidian_syncer.integrations.base import (
    CompileContext,
    IntegrationAssets,
    PatternDescriptor,
    PatternMatch,
)
from obsidian_syncer.utils import asset_output_path

logger = logging.getLogger(__name__)

CARD_LINK_STYLESHEET = """
.auto-card-link-container {
  position: relative;
  overflow: hidden;
  --auto-card-link-indent-size: 2.5em;

  @for $i from 1 through 7 {
    &[data-auto-card-link-depth="#{$i}"] {
      margin-left: calc(var(--auto-card-link-indent-size) * #{$i});
    }
  }
}

.auto-card-link-card {
  display: flex;
  flex-direction: row-reverse;
  height: 8em;
  text-decoration: none;
  color: var(--highlight);
  background: var(--darkgray);
  border: solid 1px var(--lightgray);
  border-radius: 4px;
}

.auto-card-link-main {
  display: flex;
  flex-grow: 1;
  flex-direction: column;
  justify-content: space-between;
  padding: 0.5em 0.6em;
  overflow: hidden;
}

.auto-card-link-title,
.auto-card-link-description {
  overflow: hidden;
  text-overflow: ellipsis;
}

.auto-card-link-host {
  font-size: 0.9em;
  white-space: nowrap;
}

.auto-card-link-thumbnail {
  margin: 0;
  max-height: 100%;
  object-fit: cover;
}

.auto-card-link-error-container {
  padding: 0.5em;
  border: 1px solid var(--text-error, red);
  border-radius: 4px;
}
"""

_URL_REGEX = re.compile(
    r'^(https?://(?:www\.|(?!www))[a-zA-Z0-9][a-zA-Z0-9-]+[a-zA-Z0-9]\.[^\s]{2,}'
    r'|www\.[a-zA-Z0-9][a-zA-Z0-9-]+[a-zA-Z0-9]\.[^\s]{2,}'
    r'|https?://(?:www\.|(?!www))[a-zA-Z0-9]+\.[^\s]{2,}'
    r'|www\.[a-zA-Z0-9]+\.[^\s]{2,})$',
    re.IGNORECASE,
)
_LEADING_TABS = re.compile(r'^\t+')


class CardLinkError(Exception):
    """A card block that cannot be rendered; shown inline instead."""


class YamlParseError(CardLinkError):
    pass


class NoRequiredParamsError(CardLinkError):
    pass


class UnquotedLinkError(CardLinkError):
    pass


@dataclass
class LinkMetadata:
    url: str
    title: str
    description: Optional[str] = None
    host: Optional[str] = None
    favicon: Optional[str] = None
    image: Optional[str] = None
    indent: int = -1


def is_url(text: str) -> bool:
    return bool(_URL_REGEX.match(text))


def parse_link_metadata(source: str) -> LinkMetadata:
    """Parse the YAML body of a card block.

    Leading tabs become spaces, and the tab count of the first indented
    line is kept as the card's nesting depth.

    Raises:
        YamlParseError: If the body is not valid YAML
        NoRequiredParamsError: If url or title is missing
        UnquotedLinkError: If a wikilink value was not quoted
    """
    indent = -1
    lines = []
    for line in re.split(r'\r?\n|\r', source):
        tabs = _LEADING_TABS.match(line)
        if tabs:
            count = len(tabs.group(0))
            if indent < 0:
                indent = count
            line = ' ' * count + line[count:]
        lines.append(line)

    try:
        data = yaml.safe_load('\n'.join(lines))
    except yaml.YAMLError as e:
        logger.error("Failed to parse cardlink YAML: %s", e)
        raise YamlParseError("failed to parse yaml. Check debug console for more detail.") from e

    if not isinstance(data, dict) or not data.get('url') or not data.get('title'):
        raise NoRequiredParamsError("required params[url, title] are not found.")

    # an unquoted [[link]] parses as a nested list
    for key in ('url', 'title', 'description', 'host', 'favicon', 'image'):
        if isinstance(data.get(key), list):
            raise UnquotedLinkError("internal links must be surrounded by quotes.")

    return LinkMetadata(
        url=str(data['url']),
        title=str(data['title']),
        description=_optional_str(data.get('description')),
        host=_optional_str(data.get('host')),
        favicon=_optional_str(data.get('favicon')),
        image=_optional_str(data.get('image')),
        indent=indent,
    )


def _optional_str(value: Any) -> Optional[str]:
    return None if value is None else str(value)


def _to_html(element) -> str:
    return lxml_html.tostring(element, encoding='unicode')


def render_error(message: str) -> str:
    return _to_html(E.DIV(E.CLASS("auto-card-link-error-container"), E.SPAN(f"cardlink error: {message}")))


def render_card(data: LinkMetadata, image_src: Optional[str] = None) -> str:
    """Render link metadata as the card markup Quartz styles."""
    main = E.DIV(E.CLASS("auto-card-link-main"), E.DIV(E.CLASS("auto-card-link-title"), data.title))
    if data.description:
        main.append(E.DIV(E.CLASS("auto-card-link-description"), data.description))

    host = E.DIV(E.CLASS("auto-card-link-host"))
    if data.host:
        host.append(E.SPAN(data.host))
    main.append(host)

    card = E.A(E.CLASS("auto-card-link-card"), main, href=data.url)
    if image_src:
        card.append(E.IMG(E.CLASS("auto-card-link-thumbnail"), src=image_src, draggable="false"))

    container = E.DIV(E.CLASS("auto-card-link-container"), card)
    container.set("data-auto-card-link-depth", str(data.indent))
    return _to_html(container)


class CardLinkIntegration:
    """Renders link cards. Needs no external renderer."""

    id = "auto-card-link"
    name = "Auto Card Link"
    setting_key = "use_auto_card_link"
    priority = 100

    def __init__(self) -> None:
        self.assets = IntegrationAssets(stylesheet=CARD_LINK_STYLESHEET)

    def is_available(self) -> bool:
        return True

    def get_patterns(self) -> List[PatternDescriptor]:
        return [
            PatternDescriptor(
                id="cardlink",
                pattern=re.compile(r'```cardlink\s(.+?)```', re.DOTALL | re.MULTILINE),
                kind="block",
            ),
        ]

    def _image_src(self, image: Optional[str], context: CompileContext) -> Optional[str]:
        if not image or is_url(image):
            return image
        link = image[2:-2] if image.startswith('[[') and image.endswith(']]') else image
        resolved = context.vault.resolve_link(link.split('|')[0], context.document.path)
        if resolved is None:
            return image
        return asset_output_path(resolved)

    async def compile(self, match: PatternMatch, context: CompileContext) -> str:
        query = match.captures[0] if match.captures else ""
        if not query:
            return match.full_match

        try:
            data = parse_link_metadata(query)
        except CardLinkError as e:
            return render_error(str(e))

        return render_card(data, self._image_src(data.image, context))
