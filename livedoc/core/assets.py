import logging
import shutil
from pathlib import Path
from typing import List, Optional, Union

logger = logging.getLogger(__name__)

PACKAGE_DIR = Path(__file__).resolve().parent.parent
STATIC_DIR = PACKAGE_DIR / 'static'
TEMPLATE_DIR = PACKAGE_DIR / 'templates'

STYLESHEET_NAME = 'style.css'
RELOAD_SCRIPT_NAME = 'live-reload.js'


def publish_assets(output_dir: Union[str, Path], stylesheet: Optional[Union[str, Path]] = None) -> List[Path]:
    """
    Copy the page support files into ``output_dir``.

    Files are overwritten on every call so edits to the assets show up on the
    next export. A user ``stylesheet`` replaces the bundled ``style.css``; if
    it cannot be found the bundled one is used.
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    css_source = STATIC_DIR / STYLESHEET_NAME
    if stylesheet:
        custom = Path(stylesheet).expanduser()
        if custom.is_file():
            css_source = custom
        else:
            logger.warning(f"Custom stylesheet not found, using bundled one: {custom}")

    published = []
    for source, name in ((css_source, STYLESHEET_NAME), (STATIC_DIR / RELOAD_SCRIPT_NAME, RELOAD_SCRIPT_NAME)):
        target = output_dir / name
        shutil.copyfile(source, target)
        published.append(target)

    logger.debug(f"Published assets to {output_dir}")
    return published
