"""
Configuration for the preview service.

Settings live in a small JSON file. A missing file yields the defaults and a
malformed one is logged and ignored, so a broken config never stops a preview.
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = 'LIVEDOC_CONFIG'
DEBUG_ENV_VAR = 'LIVEDOC_DEBUG'
DEFAULT_HOME = Path.home() / '.livedoc'
DEFAULT_CONFIG_FILE = DEFAULT_HOME / 'config.json'

DEFAULT_IMAGE_EXTENSIONS = ['png', 'jpg', 'jpeg', 'gif', 'svg', 'webp', 'bmp']


@dataclass
class PreviewConfig:
    """
    Tunables for one preview service.

    The HTTP and WebSocket port ranges are probed independently and must not
    overlap. ``fallback_ws_port`` is written into pages exported while the
    WebSocket server is not running yet.
    """
    http_port_min: int = 8765
    http_port_max: int = 8784
    ws_port_min: int = 8785
    ws_port_max: int = 8804
    fallback_ws_port: int = 8785
    output_dir: Optional[str] = None
    auto_open_browser: bool = True
    image_extensions: List[str] = field(default_factory=lambda: list(DEFAULT_IMAGE_EXTENSIONS))
    stylesheet: Optional[str] = None
    log_dir: str = str(DEFAULT_HOME / 'logs')

    @property
    def http_port_range(self):
        return self.http_port_min, self.http_port_max

    @property
    def ws_port_range(self):
        return self.ws_port_min, self.ws_port_max

    def validate(self) -> None:
        """Raise ValueError for unusable port ranges; warn on overlapping ones."""
        for label, (low, high) in (('http', self.http_port_range), ('ws', self.ws_port_range)):
            if not (0 < low <= high <= 65535):
                raise ValueError(f"Invalid {label} port range: {low}-{high}")
        if not (0 < self.fallback_ws_port <= 65535):
            raise ValueError(f"Invalid fallback WebSocket port: {self.fallback_ws_port}")
        if self.http_port_min <= self.ws_port_max and self.ws_port_min <= self.http_port_max:
            logger.warning(
                f"HTTP port range {self.http_port_min}-{self.http_port_max} overlaps "
                f"WebSocket range {self.ws_port_min}-{self.ws_port_max}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PreviewConfig':
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning(f"Ignoring unknown config keys: {', '.join(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def default_config_path() -> Path:
    env_path = os.environ.get(CONFIG_ENV_VAR)
    return Path(env_path).expanduser() if env_path else DEFAULT_CONFIG_FILE


def debug_from_env() -> bool:
    return os.environ.get(DEBUG_ENV_VAR, '').lower() in ('1', 'true', 'yes')


def load_config(path: Optional[Union[str, Path]] = None) -> PreviewConfig:
    """Load configuration from ``path`` (or the default location)."""
    config_file = Path(path).expanduser() if path else default_config_path()
    if config_file.exists():
        try:
            with open(config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)
            if not isinstance(data, dict):
                raise ValueError("top-level JSON value must be an object")
            config = PreviewConfig.from_dict(data)
            logger.debug(f"Loaded config from {config_file}")
            return config
        except (OSError, ValueError, TypeError) as e:
            logger.error(f"Failed to load config {config_file}: {e}")
    return PreviewConfig()


def save_config(config: PreviewConfig, path: Optional[Union[str, Path]] = None) -> Path:
    """Save configuration as JSON, creating the parent directory if needed."""
    config_file = Path(path).expanduser() if path else default_config_path()
    config_file.parent.mkdir(parents=True, exist_ok=True)
    with open(config_file, 'w', encoding='utf-8') as f:
        json.dump(config.to_dict(), f, indent=2)
    logger.info(f"Configuration saved to {config_file}")
    return config_file
