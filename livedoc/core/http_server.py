import logging
import socket
import threading
from pathlib import Path
from typing import Optional, Union

from flask import Flask, abort, send_from_directory
from werkzeug.serving import make_server

logger = logging.getLogger(__name__)


def create_app(output_dir: Union[str, Path]) -> Flask:
    """
    Flask app serving the files of ``output_dir`` and nothing else.
    Pages change on every save, so responses are never cached.
    """
    root = Path(output_dir).resolve()
    app = Flask(__name__, static_folder=None)
    app.config['SEND_FILE_MAX_AGE_DEFAULT'] = 0

    @app.route('/<path:filename>')
    def serve_output(filename):
        # send_from_directory rejects paths escaping ``root``
        if not (root / filename).is_file():
            abort(404)
        response = send_from_directory(str(root), filename, max_age=0)
        response.headers['Cache-Control'] = 'no-cache'
        return response

    return app


def bind_listener(host: str, port: int) -> socket.socket:
    """Bind and listen on ``host:port``; OSError if the port is taken."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        sock.listen(128)
    except OSError:
        sock.close()
        raise
    return sock


class StaticServer:
    """
    HTTP server for the output directory.

    ``start`` binds the listening socket itself, in the caller's thread, so a
    taken port raises OSError right away (werkzeug exits the process when its
    own bind fails). Requests are then handled on a daemon thread.
    """

    def __init__(self, output_dir: Union[str, Path]):
        self.output_dir = Path(output_dir)
        self._server = None
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._server is not None

    @property
    def port(self) -> Optional[int]:
        return self._server.port if self._server else None

    def start(self, host: str, port: int) -> None:
        """Bind ``host:port`` and start serving. Raises OSError if the bind fails."""
        if self._server is not None:
            return
        sock = bind_listener(host, port)
        try:
            self._server = make_server(host, port, create_app(self.output_dir), threaded=True, fd=sock.fileno())
        finally:
            # werkzeug works on a duplicate of the descriptor
            sock.close()
        self._thread = threading.Thread(
            target=self._server.serve_forever,
            name=f"livedoc-http-{port}",
            daemon=True,
        )
        self._thread.start()
        logger.info(f"HTTP server listening on http://{host}:{port}/ (root: {self.output_dir})")

    def stop(self) -> None:
        """Stop serving and release the port. Safe to call when not running."""
        if self._server is None:
            return
        port = self._server.port
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._server = None
        self._thread = None
        logger.info(f"HTTP server on port {port} stopped")
