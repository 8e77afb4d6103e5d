"""
Export pipeline: document source -> standalone HTML page in the output directory.

Pages are written through a temporary file and renamed into place, so a
failed export leaves the previous page (and the browser showing it) intact.
"""

import logging
import os
import re
import shutil
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

from livedoc.config import DEFAULT_IMAGE_EXTENSIONS

from .assets import RELOAD_SCRIPT_NAME, STYLESHEET_NAME, TEMPLATE_DIR, publish_assets
from .errors import ExportFailed
from .renderer import Converter, convert_markdown, fallback_title

logger = logging.getLogger(__name__)

PAGE_TEMPLATE = 'preview.html'
URL_SCHEME = re.compile(r'^[A-Za-z][A-Za-z0-9+.-]*://')


@dataclass
class ExportResult:
    source_path: Path
    output_path: Path
    title: str
    images: Dict[str, str] = field(default_factory=dict)


def output_path_for(source_path: Path, output_dir: Path) -> Path:
    """Page location for a document: ``<output_dir>/<stem>.html``."""
    return Path(output_dir) / (Path(source_path).stem + '.html')


def image_reference_pattern(extensions: Iterable[str]):
    alternatives = '|'.join(sorted((re.escape(ext.lstrip('.')) for ext in extensions), key=len, reverse=True))
    # Path-like token ending in an image extension, with an optional
    # "file:" link prefix that is not part of the reference.
    return re.compile(
        r'(?:file:)?(?P<ref>[^\s\[\]()<>"\'|]+?\.(?:' + alternatives + r'))(?![A-Za-z0-9])',
        re.IGNORECASE,
    )


def find_image_references(source_text: str, extensions: Iterable[str]) -> List[str]:
    """Local image references in ``source_text``, in order of first appearance."""
    refs = []
    for match in image_reference_pattern(extensions).finditer(source_text):
        ref = match.group('ref')
        if URL_SCHEME.match(ref) or ref.startswith(('data:', '//')):
            continue
        if ref not in refs:
            refs.append(ref)
    return refs


def collect_images(source_text: str, source_dir: Path, output_dir: Path,
                   extensions: Iterable[str]) -> Dict[str, str]:
    """
    Copy referenced images that exist on disk into ``output_dir``.
    Returns a mapping of original reference -> copied base name.
    """
    mapping = {}
    for ref in find_image_references(source_text, extensions):
        candidate = Path(ref).expanduser()
        if not candidate.is_absolute():
            candidate = source_dir / candidate
        if not candidate.is_file():
            logger.debug(f"Image reference not found on disk, leaving as is: {ref}")
            continue
        target = output_dir / candidate.name
        if candidate.resolve() != target.resolve():
            shutil.copyfile(candidate, target)
        mapping[ref] = candidate.name
        logger.debug(f"Copied image {candidate} -> {target}")
    return mapping


def rewrite_references(html: str, mapping: Dict[str, str]) -> str:
    """
    Replace every occurrence of each mapped reference with its new name.

    Plain substring replacement in a single pass: longer references win
    where two overlap, and replaced text is never rewritten again.
    """
    if not mapping:
        return html
    pattern = re.compile('|'.join(re.escape(ref) for ref in sorted(mapping, key=len, reverse=True)))
    return pattern.sub(lambda m: mapping[m.group(0)], html)


def write_atomic(path: Path, content: str) -> None:
    """Write ``content`` to a temp file next to ``path`` and rename it over ``path``."""
    fd, tmp_name = tempfile.mkstemp(prefix='.' + path.name + '.', suffix='.tmp', dir=str(path.parent))
    try:
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class DocumentExporter:
    """
    Converts documents and writes their preview pages.

    ``output_dir`` may be a callable so the directory can be created lazily by
    its owner on first use.
    """

    def __init__(self, output_dir: Union[Path, Callable[[], Path]],
                 converter: Optional[Converter] = None,
                 image_extensions: Optional[Iterable[str]] = None,
                 stylesheet: Optional[str] = None,
                 template_dir: Optional[Path] = None):
        self._output_dir = output_dir
        self.converter = converter or convert_markdown
        self.image_extensions = list(image_extensions or DEFAULT_IMAGE_EXTENSIONS)
        self.stylesheet = stylesheet
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir or TEMPLATE_DIR)),
            autoescape=select_autoescape(['html']),
        )

    @property
    def output_dir(self) -> Path:
        return Path(self._output_dir() if callable(self._output_dir) else self._output_dir)

    def render_page(self, title: str, body: str, ws_port: int) -> str:
        template = self.env.get_template(PAGE_TEMPLATE)
        return template.render(
            title=title,
            body=body,
            ws_port=ws_port,
            stylesheet=STYLESHEET_NAME,
            reload_script=RELOAD_SCRIPT_NAME,
        )

    def export(self, source_path: Optional[Union[str, Path]], ws_port: int) -> ExportResult:
        """Convert ``source_path`` and (re)write its page. Raises ExportFailed."""
        if not source_path:
            raise ExportFailed("Document has no associated file")
        source_path = Path(source_path).expanduser().resolve()

        try:
            source_text = source_path.read_text(encoding='utf-8')
        except (OSError, UnicodeDecodeError) as e:
            raise ExportFailed(f"Cannot read {source_path}: {e}") from e

        output_dir = self.output_dir
        try:
            publish_assets(output_dir, self.stylesheet)
        except OSError as e:
            raise ExportFailed(f"Cannot publish assets to {output_dir}: {e}") from e

        output_path = output_path_for(source_path, output_dir)
        metadata = {
            'path': str(source_path),
            'name': source_path.name,
            'stem': source_path.stem,
        }

        try:
            body, title = self.converter(source_text, metadata)
        except Exception as e:
            logger.error(f"Converter failed for {source_path}: {e}", exc_info=True)
            raise ExportFailed(f"Conversion failed for {source_path.name}: {e}") from e
        title = title or fallback_title(metadata)

        try:
            images = collect_images(source_text, source_path.parent, output_dir, self.image_extensions)
            page = self.render_page(title, rewrite_references(body, images), ws_port)
            write_atomic(output_path, page)
        except OSError as e:
            raise ExportFailed(f"Cannot write preview for {source_path.name}: {e}") from e

        logger.info(f"Exported {source_path} -> {output_path} ({len(images)} images)")
        return ExportResult(source_path, output_path, title, images)
