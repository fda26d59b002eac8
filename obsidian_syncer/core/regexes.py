"""Regular expressions shared by the compile pipeline."""

import re

FRONTMATTER_REGEX = re.compile(r'^\s*?---\n([\s\S]*?)\n---')
BLOCKREF_REGEX = re.compile(r'(^|[ \t]+)\^[\w-]+[ \t]*$', re.MULTILINE)

CODE_FENCE_REGEX = re.compile(r'`(.*?)`')
CODEBLOCK_REGEX = re.compile(r'```.*?\n[\s\S]+?```')
EXCALIDRAW_REGEX = re.compile(r':\[\[(\d*?,\d*?)\],.*?\]\]')
COMMENT_REGEX = re.compile(r'%%.+?%%', re.DOTALL)

WIKILINK_REGEX = re.compile(r'\[\[(.+?)\]\]')
TRANSCLUDED_REGEX = re.compile(r'!\[\[(.+?)\]\]')

TRANSCLUDED_SVG_REGEX = re.compile(
    r'!\[\[([^\[\]]*?)(\.(svg))\|([^\[\]]*?)\]\]|!\[\[([^\[\]]*?)(\.(svg))\]\]', re.IGNORECASE
)
LINKED_SVG_REGEX = re.compile(r'!\[([^\]]*?)\]\(([^)]*?)(\.(svg))\)', re.IGNORECASE)

BLOB_EXTENSIONS = (
    'png', 'jpg', 'jpeg', 'gif', 'webp', 'bmp', 'avif',
    'pdf', 'mp3', 'wav', 'ogg', 'm4a', 'mp4', 'webm', 'mov',
)
_EXT = '|'.join(BLOB_EXTENSIONS)
TRANSCLUDED_FILE_REGEX = re.compile(
    rf'!\[\[([^\[\]]*?)(\.({_EXT}))\\?\|([^\[\]]*?)\]\]|!\[\[([^\[\]]*?)(\.({_EXT}))\]\]',
    re.IGNORECASE,
)
FILE_REGEX = re.compile(rf'!\[([^\]]*?)\]\(([^)]*?)(\.({_EXT}))\)', re.IGNORECASE)

DATAVIEW_LINK_TARGET_BLANK_REGEX = re.compile(r'''target=["']_blank["'] rel=["']noopener["']''')

HEADING_REGEX = re.compile(r'^(#{1,6})[ \t]+(.+?)[ \t#]*$')
FENCE_LINE_REGEX = re.compile(r'^\s*(```|~~~)')
BLOCK_ID_REGEX = re.compile(r'(?:^|\s)\^([\w-]+)\s*$')
