import asyncio
import socket
from contextlib import contextmanager

from livedoc.config import PreviewConfig

LOOPBACK = "127.0.0.1"


def free_port() -> int:
    """A port the OS considers free right now."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind((LOOPBACK, 0))
        return s.getsockname()[1]


@contextmanager
def occupied_port():
    """Hold a listening socket on an OS-assigned port for the block."""
    s = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        s.bind((LOOPBACK, 0))
        s.listen(1)
        yield s.getsockname()[1]
    finally:
        s.close()


def make_config(**overrides) -> PreviewConfig:
    """Config with small, separate ranges well away from the defaults."""
    values = dict(
        http_port_min=47600,
        http_port_max=47649,
        ws_port_min=47650,
        ws_port_max=47699,
        fallback_ws_port=47650,
        auto_open_browser=False,
    )
    values.update(overrides)
    return PreviewConfig(**values)


def fake_converter(source_text, metadata):
    """Stand-in converter: org-style ``#+TITLE:`` line, one paragraph per line."""
    title = ''
    paragraphs = []
    for line in source_text.splitlines():
        if line.upper().startswith('#+TITLE:'):
            title = line.split(':', 1)[1].strip()
        elif line.strip():
            paragraphs.append(f"<p>{line.strip()}</p>")
    return '\n'.join(paragraphs), title


def failing_converter(source_text, metadata):
    raise RuntimeError("converter exploded")


async def wait_for(predicate, timeout: float = 5.0, interval: float = 0.02) -> bool:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            return False
        await asyncio.sleep(interval)
    return True
