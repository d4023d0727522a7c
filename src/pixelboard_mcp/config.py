"""
Configuration - how the board is set up at start.

Settings come from a YAML (or JSON) file. Anything missing falls back to
defaults; an invalid file is reported and ignored rather than crashing.

Environment overrides (applied by the server):
- PIXELBOARD_CONFIG: settings file path
- PIXELBOARD_ADMIN: administrator identity
- PIXELBOARD_TOOL_MODE: "minimal" | "lite" (wins over `tool_mode`)
"""

import json
import os
import sys
import tempfile
import yaml
from dataclasses import dataclass, field, asdict
from datetime import datetime
from pathlib import Path
from typing import Tuple, Optional, Dict, Any

from .admin import DEFAULT_COOLDOWN_SECONDS
from .canvas import FIXED_FEE, EVENT_LOG_SIZE
from .ledger import DEFAULT_CUSTODY_ACCOUNT


TOOL_MODES = ("minimal", "lite")
DEFAULT_TOOL_MODE = "lite"


@dataclass
class CanvasSettings:
    """Board policy: who administers, how long the cooldown is, what a bypass costs."""

    administrator: Optional[str] = None
    cooldown_seconds: int = DEFAULT_COOLDOWN_SECONDS
    fixed_fee: int = FIXED_FEE
    # Let anyone call set_cooldown (test mode)
    open_cooldown: bool = False
    custody_account: str = DEFAULT_CUSTODY_ACCOUNT
    event_log_size: int = EVENT_LOG_SIZE
    # Save a snapshot after this many writes (0 = only on shutdown)
    snapshot_every: int = 100

    def validate(self) -> Tuple[bool, Optional[str]]:
        """Validate settings are sensible."""
        if not isinstance(self.cooldown_seconds, int) or self.cooldown_seconds < 0:
            return False, "cooldown_seconds must be a non-negative integer"

        if not isinstance(self.fixed_fee, int) or self.fixed_fee <= 0:
            return False, "fixed_fee must be a positive integer"

        if self.event_log_size <= 0:
            return False, "event_log_size must be positive"

        if self.snapshot_every < 0:
            return False, "snapshot_every must be >= 0"

        if not self.custody_account:
            return False, "custody_account must be set"

        if self.administrator is not None and self.administrator == self.custody_account:
            return False, "administrator cannot be the custody account"

        return True, None


@dataclass
class PixelboardConfig:
    """Complete configuration for pixelboard-mcp."""
    canvas: CanvasSettings = field(default_factory=CanvasSettings)
    tool_mode: str = DEFAULT_TOOL_MODE

    metadata: Dict[str, Any] = field(default_factory=lambda: {
        "last_updated": None,
        "update_count": 0,
    })

    def to_dict(self) -> Dict[str, Any]:
        return {
            "canvas": asdict(self.canvas),
            "tool_mode": self.tool_mode,
            "metadata": self.metadata.copy(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PixelboardConfig":
        data = data or {}
        return cls(
            canvas=CanvasSettings(**data.get("canvas", {})),
            tool_mode=data.get("tool_mode", DEFAULT_TOOL_MODE),
            metadata=data.get("metadata", {
                "last_updated": None,
                "update_count": 0,
            }),
        )

    def validate(self) -> Tuple[bool, Optional[str]]:
        valid, error = self.canvas.validate()
        if not valid:
            return False, f"Canvas settings: {error}"

        if self.tool_mode not in TOOL_MODES:
            return False, f"tool_mode must be one of {', '.join(TOOL_MODES)}"

        return True, None


class ConfigManager:
    """Manages configuration loading and saving."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize config manager.

        Args:
            config_path: Path to config file (default: pixelboard.yaml in current dir)
        """
        if config_path is None:
            config_path = Path("pixelboard.yaml")
        self.config_path = Path(config_path)
        self._config: Optional[PixelboardConfig] = None

    def _is_yaml(self) -> bool:
        return self.config_path.suffix in (".yaml", ".yml")

    def load(self, force_reload: bool = False) -> PixelboardConfig:
        """Load configuration from file or return defaults."""
        if self._config is not None and not force_reload:
            return self._config

        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    data = yaml.safe_load(f) if self._is_yaml() else json.load(f)

                self._config = PixelboardConfig.from_dict(data)

                valid, error = self._config.validate()
                if not valid:
                    print(f"[Config] Warning: Invalid config, using defaults: {error}", file=sys.stderr, flush=True)
                    self._config = PixelboardConfig()
            except Exception as e:
                print(f"[Config] Error loading config, using defaults: {e}", file=sys.stderr, flush=True)
                self._config = PixelboardConfig()
        else:
            self._config = PixelboardConfig()

        return self._config

    def save(self, config: Optional[PixelboardConfig] = None) -> bool:
        """Save configuration to file. Returns False (and keeps the old file) on error."""
        if config is None:
            config = self.load()

        valid, error = config.validate()
        if not valid:
            print(f"[Config] Refusing to save invalid config: {error}", file=sys.stderr, flush=True)
            return False

        config.metadata["last_updated"] = datetime.now().isoformat()
        config.metadata["update_count"] = config.metadata.get("update_count", 0) + 1

        data = config.to_dict()
        try:
            if self._is_yaml():
                text = yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
            else:
                text = json.dumps(data, indent=2)
            self._replace_file(text)
        except Exception as e:
            print(f"[Config] Error saving config: {e}", file=sys.stderr, flush=True)
            return False

        self._config = config
        return True

    def _replace_file(self, text: str) -> None:
        """Swap the settings file for `text` in one rename. A failed write leaves the old file."""
        directory = self.config_path.parent
        directory.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.config_path.name}.", dir=directory)
        try:
            with os.fdopen(fd, "w") as f:
                f.write(text)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, self.config_path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def reload(self) -> PixelboardConfig:
        """Force reload configuration from file."""
        self._config = None
        return self.load()

    def get_canvas_settings(self) -> CanvasSettings:
        return self.load().canvas


# Global config manager instance
_config_manager: Optional[ConfigManager] = None


def get_config_manager(config_path: Optional[Path] = None) -> ConfigManager:
    """Get global config manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager(config_path)
    return _config_manager


def get_canvas_settings() -> CanvasSettings:
    """Get current canvas settings."""
    return get_config_manager().get_canvas_settings()
