from typing import Any, Callable, Dict, Tuple
import logging

import markdown
import pymdownx.emoji
import pymdownx.superfences

logger = logging.getLogger(__name__)

# (source_text, metadata) -> (html_fragment, title)
Converter = Callable[[str, Dict[str, Any]], Tuple[str, str]]

MARKDOWN_EXTENSIONS = [
    'markdown.extensions.meta',       # Title: ... header block
    'tables',
    'sane_lists',
    'toc',
    'extra',
    'attr_list',
    'def_list',
    'footnotes',
    'admonition',
    'pymdownx.betterem',
    'pymdownx.tilde',
    'pymdownx.mark',
    'pymdownx.details',
    'pymdownx.highlight',
    'pymdownx.inlinehilite',
    'pymdownx.superfences',
    'pymdownx.tasklist',
    'pymdownx.magiclink',
    'pymdownx.emoji',
]

MARKDOWN_EXTENSION_CONFIGS = {
    "pymdownx.superfences": {
        "custom_fences": [
            {
                'name': 'mermaid',
                'class': 'mermaid',
                'format': pymdownx.superfences.fence_div_format
            }
        ]
    },
    "pymdownx.emoji": {
        "emoji_index": pymdownx.emoji.gemoji,
        "emoji_generator": pymdownx.emoji.to_alt,
    },
    "pymdownx.highlight": {
        "use_pygments": False,
    },
}


def fallback_title(metadata: Dict[str, Any]) -> str:
    return metadata.get('stem') or metadata.get('name') or 'Untitled'


def convert_markdown(source_text: str, metadata: Dict[str, Any]) -> Tuple[str, str]:
    """
    Default converter: Markdown text to an HTML body fragment and a title.

    The title comes from a ``Title:`` metadata line (optionally fenced by ``---``)
    and falls back to the document's file name.
    """
    md_instance = markdown.Markdown(
        extensions=MARKDOWN_EXTENSIONS,
        extension_configs=MARKDOWN_EXTENSION_CONFIGS,
    )
    logger.debug(f"Converting {metadata.get('name', '<unnamed>')}: {len(source_text)} chars input")
    html_output = md_instance.convert(source_text)

    meta = getattr(md_instance, 'Meta', {}) or {}
    title_lines = meta.get('title') or []
    title = ' '.join(line.strip() for line in title_lines).strip()

    return html_output, title or fallback_title(metadata)
