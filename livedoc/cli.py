#!/usr/bin/env python
"""
Command-line interface for livedoc.

Stands in for an editor's save hook: the given documents are watched on disk
and every save re-exports the page and reloads the browser.
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import Iterable, List, Optional

from watchfiles import awatch

from livedoc.config import debug_from_env, load_config
from livedoc.core.errors import PreviewError
from livedoc.core.logging_config import setup_logging
from livedoc.core.registry import normalize_source
from livedoc.core.service import PreviewService
from livedoc.version_info import __build_timestamp__, __build_type__, __version__

logger = logging.getLogger(__name__)


def print_version():
    """Print version information."""
    print(f"livedoc v{__version__}")
    print(f"Build: {__build_timestamp__}")
    print(f"Build Type: {__build_type__}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='livedoc',
        description=f'livedoc v{__version__} - live browser preview for documents',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  livedoc notes.md                Preview notes.md, reload on every save
  livedoc a.md b.md --no-browser  Preview two documents without opening a browser
  livedoc --config ./livedoc.json notes.md
        """
    )
    parser.add_argument('documents', nargs='*', help='Documents to preview')
    parser.add_argument('--version', '-v', action='store_true', help='Show version information')
    parser.add_argument('--config', '-c', help='Path to a JSON config file')
    parser.add_argument('--debug', '-d', action='store_true', help='Enable debug logging')
    parser.add_argument('--no-browser', action='store_true', help='Do not open a browser')
    return parser


async def watch_documents(service: PreviewService, stop_event: Optional[asyncio.Event] = None) -> None:
    """
    Feed file-system changes of tracked documents into the service until
    no document is left. Editors that save by rename show up as a delete
    plus an add, so the file's final state decides what happened.
    """
    directories = sorted({str(s.source_path.parent) for s in service.registry.all()})
    async for changes in awatch(*directories, stop_event=stop_event):
        touched = {normalize_source(path) for _, path in changes}
        for path in sorted(touched):
            if path not in service.registry:
                continue
            if path.exists():
                await service.on_document_saved(path)
            else:
                logger.info(f"Document removed, closing preview: {path}")
                await service.unregister_session(path)
        if len(service.registry) == 0:
            logger.info("No documents left to preview")
            return


async def run_preview(documents: Iterable[str], service: PreviewService,
                      open_browser: Optional[bool] = None) -> int:
    try:
        for document in documents:
            await service.enable_preview(document, open_browser=open_browser)
            url = service.preview_url(document)
            print(f"Previewing {document} at {url}")

        print("Watching for changes. Press Ctrl+C to stop")
        await watch_documents(service)
        return 0
    finally:
        await service.shutdown()


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print_version()
        return 0

    if not args.documents:
        parser.print_usage(sys.stderr)
        print("error: at least one document is required", file=sys.stderr)
        return 2

    config = load_config(args.config)
    setup_logging(Path(config.log_dir), args.debug or debug_from_env())

    missing = [d for d in args.documents if not Path(d).is_file()]
    if missing:
        print(f"Document not found: {', '.join(missing)}", file=sys.stderr)
        return 1

    try:
        service = PreviewService(config, report_status=lambda message: print(message, file=sys.stderr))
        return asyncio.run(run_preview(args.documents, service, False if args.no_browser else None))
    except KeyboardInterrupt:
        print("\nPreview stopped.")
        return 0
    except (PreviewError, ValueError) as e:
        logger.error(f"Preview failed: {e}", exc_info=args.debug)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
