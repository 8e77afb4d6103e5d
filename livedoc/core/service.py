"""
Preview service: document sessions and the lifecycle of the shared servers.

One ``PreviewService`` owns one HTTP server and one WebSocket server, shared by
every open document. The first registered document brings both up, the last
one to leave tears both down. All methods are meant to be called from a
single asyncio event loop.
"""

import asyncio
import logging
import shutil
import tempfile
import webbrowser
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional, Set, Union

from livedoc.config import PreviewConfig

from .assets import publish_assets
from .broadcast import BroadcastServer
from .errors import ExportFailed, NotPreviewable, PreviewError, ServerStartFailed
from .exporter import DocumentExporter, ExportResult
from .http_server import StaticServer
from .ports import LOOPBACK_HOST, find_free_port
from .registry import Session, SessionRegistry
from .renderer import Converter

logger = logging.getLogger(__name__)

OUTPUT_DIR_PREFIX = 'livedoc-'


@dataclass
class ServerState:
    """Ports of the shared server pair; ``running`` only once both listen."""
    http_port: Optional[int] = None
    ws_port: Optional[int] = None
    running: bool = False

    def is_consistent(self) -> bool:
        if self.running:
            return self.http_port is not None and self.ws_port is not None
        return self.http_port is None and self.ws_port is None

    def clear(self) -> None:
        self.running = False
        self.http_port = None
        self.ws_port = None


class PreviewService:

    def __init__(self, config: Optional[PreviewConfig] = None,
                 converter: Optional[Converter] = None,
                 open_browser: Optional[Callable[[str], object]] = None,
                 report_status: Optional[Callable[[str], None]] = None):
        self.config = config or PreviewConfig()
        self.config.validate()
        self.state = ServerState()
        self.registry = SessionRegistry()
        self.exporter = DocumentExporter(
            lambda: self.output_dir,
            converter=converter,
            image_extensions=self.config.image_extensions,
            stylesheet=self.config.stylesheet,
        )
        self.open_browser = open_browser or webbrowser.open
        self.report_status = report_status or self._log_status

        self._output_dir: Optional[Path] = None
        self._owns_output_dir = False
        self._http: Optional[StaticServer] = None
        self._ws: Optional[BroadcastServer] = None
        self._lock: Optional[asyncio.Lock] = None

    @staticmethod
    def _log_status(message: str) -> None:
        logger.warning(message)

    @property
    def lifecycle_lock(self) -> asyncio.Lock:
        # Created lazily so the lock belongs to the loop that uses it
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    @property
    def output_dir(self) -> Path:
        """Directory holding pages and assets, created on first use."""
        if self._output_dir is None:
            if self.config.output_dir:
                path = Path(self.config.output_dir).expanduser()
                path.mkdir(parents=True, exist_ok=True)
            else:
                path = Path(tempfile.mkdtemp(prefix=OUTPUT_DIR_PREFIX))
                self._owns_output_dir = True
            self._output_dir = path
            logger.info(f"Preview output directory: {path}")
        return self._output_dir

    @property
    def clients(self) -> Set:
        return self._ws.clients if self._ws is not None else set()

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def register_session(self, source_path: Optional[Union[str, Path]]) -> Session:
        """
        Start tracking a document, bringing the servers up if needed.
        Raises NotPreviewable for documents without a backing file.
        """
        if not source_path:
            raise NotPreviewable("Document has no associated file")
        if Path(source_path).expanduser().is_dir():
            raise NotPreviewable(f"Not a document: {source_path}")

        session, created = self.registry.register(source_path)
        try:
            # Repeat registrations wait for the servers as well
            await self.ensure_servers_running()
        except BaseException:
            if created:
                self.registry.unregister(session.source_path)
            raise

        if session.source_path not in self.registry:
            # A concurrent registration of this document failed and rolled back
            session, _ = self.registry.register(session.source_path)
        return session

    async def unregister_session(self, source_path: Optional[Union[str, Path]]) -> None:
        """Stop tracking a document; the last one out stops the servers."""
        if not source_path:
            return
        session = self.registry.unregister(source_path)
        if session is None:
            return

        self._remove_output(session)
        async with self.lifecycle_lock:
            # Re-checked under the lock: a register may have slipped in
            if len(self.registry) == 0:
                await self._stop_locked()

    def _remove_output(self, session: Session) -> None:
        output_path = session.output_path
        if output_path is None or not output_path.exists():
            return
        if self.registry.is_output_shared(output_path, exclude=session):
            # Same file name as another open document; it still needs the page
            logger.info(f"Keeping {output_path}, still used by another session")
            return
        try:
            output_path.unlink()
            logger.debug(f"Removed {output_path}")
        except OSError as e:
            logger.warning(f"Could not remove {output_path}: {e}")

    # ------------------------------------------------------------------
    # Server lifecycle
    # ------------------------------------------------------------------

    async def ensure_servers_running(self) -> None:
        """
        Bring up the HTTP and WebSocket servers unless they already run.

        If the WebSocket side fails after the HTTP server is bound, the HTTP
        server is stopped again before ServerStartFailed is raised.
        """
        async with self.lifecycle_lock:
            if self.state.running:
                return

            output_dir = self.output_dir
            try:
                publish_assets(output_dir, self.config.stylesheet)
            except OSError as e:
                raise ServerStartFailed(f"Cannot publish assets to {output_dir}: {e}") from e

            http = StaticServer(output_dir)
            try:
                http_port = find_free_port(*self.config.http_port_range)
                http.start(LOOPBACK_HOST, http_port)
            except (PreviewError, OSError) as e:
                raise ServerStartFailed(f"HTTP server failed to start: {e}") from e

            ws = BroadcastServer()
            try:
                ws_port = find_free_port(*self.config.ws_port_range)
                await ws.start(LOOPBACK_HOST, ws_port)
            except Exception as e:
                logger.error(f"WebSocket server failed, rolling back HTTP server: {e}")
                http.stop()
                raise ServerStartFailed(f"WebSocket server failed to start: {e}") from e
            except BaseException:
                # Cancelled mid-start: release the HTTP port, keep the cancellation
                logger.warning("Server start cancelled, rolling back HTTP server")
                http.stop()
                raise

            self._http, self._ws = http, ws
            self.state.http_port = http_port
            self.state.ws_port = ws_port
            self.state.running = True
            logger.info(f"Preview servers running (http={http_port}, ws={ws_port})")

    async def stop_servers(self) -> None:
        """Stop both servers and clear their ports. Safe to call repeatedly."""
        async with self.lifecycle_lock:
            await self._stop_locked()

    async def _stop_locked(self) -> None:
        http, ws = self._http, self._ws
        self._http = None
        self._ws = None
        was_running = self.state.running
        self.state.clear()

        try:
            if ws is not None:
                await ws.stop()
        finally:
            if http is not None:
                http.stop()
        if was_running:
            logger.info("Preview servers stopped")

    # ------------------------------------------------------------------
    # Export and save events
    # ------------------------------------------------------------------

    def export(self, source_path: Optional[Union[str, Path]]) -> ExportResult:
        """
        Write the page for a registered document and record it on its session.
        Raises ExportFailed for documents that are not open for preview.
        """
        if source_path and source_path not in self.registry:
            raise ExportFailed(f"Document is not open for preview: {source_path}")
        ws_port = self.state.ws_port if self.state.running else self.config.fallback_ws_port
        result = self.exporter.export(source_path, ws_port)
        self.registry.record_output(result.source_path, result.output_path, result.title)
        return result

    async def on_document_saved(self, source_path: Optional[Union[str, Path]]) -> Optional[ExportResult]:
        """
        Save hook entry point: re-export a tracked document and tell every
        connected browser to reload. Failures become status messages and the
        previous page stays in place.
        """
        if not source_path or source_path not in self.registry:
            logger.debug(f"Ignoring save of untracked document: {source_path}")
            return None

        try:
            result = self.export(source_path)
            await self.ensure_servers_running()
        except PreviewError as e:
            self.report_status(f"Preview not updated: {e}")
            return None

        delivered = await self._ws.send_reload()
        logger.info(f"Reload sent for {result.output_path.name} to {delivered} client(s)")
        return result

    # ------------------------------------------------------------------
    # Conveniences for editor front-ends
    # ------------------------------------------------------------------

    async def enable_preview(self, source_path: Optional[Union[str, Path]],
                             open_browser: Optional[bool] = None) -> Session:
        """Register, export and (on first export) open the page in a browser."""
        session = await self.register_session(source_path)
        first_export = session.output_path is None
        self.export(source_path)

        should_open = self.config.auto_open_browser if open_browser is None else open_browser
        if should_open and first_export:
            self.open_preview(source_path)
        return session

    async def disable_preview(self, source_path: Optional[Union[str, Path]]) -> None:
        await self.unregister_session(source_path)

    def preview_url(self, source_path: Union[str, Path]) -> Optional[str]:
        session = self.registry.get(source_path)
        if session is None or session.output_path is None or not self.state.running:
            return None
        return f"http://{LOOPBACK_HOST}:{self.state.http_port}/{session.output_path.name}"

    def open_preview(self, source_path: Union[str, Path]) -> bool:
        """Open the document's page in a browser. Returns False if there is none."""
        url = self.preview_url(source_path)
        if url is None:
            self.report_status(f"No preview available for {source_path}")
            return False
        try:
            self.open_browser(url)
        except Exception as e:
            self.report_status(f"Could not open browser for {url}: {e}")
            return False
        logger.info(f"Opened {url}")
        return True

    async def shutdown(self) -> None:
        """Close every session, stop the servers and drop our temp directory."""
        for session in self.registry.all():
            await self.unregister_session(session.source_path)
        await self.stop_servers()

        if self._owns_output_dir and self._output_dir is not None:
            try:
                shutil.rmtree(self._output_dir)
                logger.debug(f"Removed output directory {self._output_dir}")
            except OSError as e:
                logger.warning(f"Could not remove {self._output_dir}: {e}")
        self._output_dir = None
        self._owns_output_dir = False
