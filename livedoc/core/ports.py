import logging
import socket

from .errors import NoPortAvailable

logger = logging.getLogger(__name__)

LOOPBACK_HOST = "127.0.0.1"


def is_port_free(port: int, host: str = LOOPBACK_HOST) -> bool:
    """Return True if a listening socket can be bound on ``host:port`` right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        try:
            s.bind((host, port))
            s.listen(1)
        except OSError:
            return False
    return True


def find_free_port(min_port: int, max_port: int, host: str = LOOPBACK_HOST) -> int:
    """
    Return the first port in ``[min_port, max_port]`` that can be bound.

    The probe socket is closed before returning, so another process could
    grab the port before the caller binds it; callers treat a failed bind
    as a start failure.
    """
    if not (0 < min_port <= max_port <= 65535):
        raise ValueError(f"Invalid port range: {min_port}-{max_port}")

    for port in range(min_port, max_port + 1):
        if is_port_free(port, host):
            logger.debug(f"Allocated port {port} from range {min_port}-{max_port}")
            return port

    logger.warning(f"No free port in range {min_port}-{max_port}")
    raise NoPortAvailable(min_port, max_port)
