class PreviewError(Exception):
    """Base class for all errors raised by the preview subsystem."""


class NoPortAvailable(PreviewError):
    """No port in the configured range could be bound."""

    def __init__(self, min_port: int, max_port: int):
        self.min_port = min_port
        self.max_port = max_port
        super().__init__(f"No free port available in range {min_port}-{max_port}")


class ServerStartFailed(PreviewError):
    """The HTTP/WebSocket server pair could not be brought up."""


class ExportFailed(PreviewError):
    """Converting or writing a document's HTML page failed."""


class NotPreviewable(PreviewError):
    """The document has no backing file and cannot be previewed."""
