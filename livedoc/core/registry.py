import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]


def normalize_source(source_path: PathLike) -> Path:
    """Absolute, resolved form of a document path; the registry key."""
    return Path(source_path).expanduser().resolve()


@dataclass
class Session:
    """One preview-enabled document and the HTML page derived from it."""
    source_path: Path
    output_path: Optional[Path] = None
    title: Optional[str] = None


class SessionRegistry:
    """
    Tracks preview-enabled documents by absolute source path.

    Each preview service owns exactly one.
    """

    def __init__(self):
        self._sessions: Dict[Path, Session] = {}

    def register(self, source_path: PathLike) -> Tuple[Session, bool]:
        """
        Register a document. Returns the session and whether it was created.
        Registering an already-known document returns the existing session.
        """
        key = normalize_source(source_path)
        session = self._sessions.get(key)
        if session is not None:
            logger.debug(f"Session already registered: {key}")
            return session, False

        session = Session(source_path=key)
        self._sessions[key] = session
        logger.info(f"Registered session: {key} ({len(self._sessions)} open)")
        return session, True

    def unregister(self, source_path: PathLike) -> Optional[Session]:
        """Remove a document. Unknown documents are ignored."""
        key = normalize_source(source_path)
        session = self._sessions.pop(key, None)
        if session is not None:
            logger.info(f"Unregistered session: {key} ({len(self._sessions)} open)")
        return session

    def get(self, source_path: PathLike) -> Optional[Session]:
        return self._sessions.get(normalize_source(source_path))

    def record_output(self, source_path: PathLike, output_path: Path, title: str) -> Optional[Session]:
        """Store the exported page for a registered document."""
        session = self.get(source_path)
        if session is None:
            return None
        session.output_path = Path(output_path)
        session.title = title
        logger.debug(f"Recorded output for {session.source_path}: {output_path}")
        return session

    def is_output_shared(self, output_path: Path, exclude: Optional[Session] = None) -> bool:
        """True if a session other than ``exclude`` records ``output_path``."""
        return any(
            s.output_path == output_path
            for s in self._sessions.values()
            if s is not exclude
        )

    def all(self) -> List[Session]:
        return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, source_path) -> bool:
        return self.get(source_path) is not None
