"""Persistent application settings (``_settings.json``)."""

import json
import logging
import os
from dataclasses import asdict, dataclass, fields

log = logging.getLogger(__name__)

SETTINGS_FILE = os.path.join(os.path.dirname(os.path.dirname(__file__)), "_settings.json")


@dataclass
class AppSettings:
    ollama_url: str = "http://localhost:11434"
    model: str = "qwen3:14b"
    target_language: str = "English"
    source_language: str = "Japanese"
    batch_size: int = 10
    extract_macro_text: bool = True     # KAG: translate text inside [macro] blocks
    store_ttl_seconds: int = 0          # 0 = opened documents never expire
    last_open_dir: str = ""
    dark_mode: bool = True

    @classmethod
    def load(cls, path: str = SETTINGS_FILE) -> "AppSettings":
        """Load saved settings; defaults for a missing or corrupt file."""
        try:
            with open(path, "r", encoding="utf-8") as f:
                cfg = json.load(f)
        except (FileNotFoundError, json.JSONDecodeError, OSError):
            return cls()  # No saved settings — use defaults
        if not isinstance(cfg, dict):
            return cls()

        settings = cls()
        for f in fields(cls):
            if f.name not in cfg:
                continue
            value = cfg[f.name]
            default = getattr(settings, f.name)
            # Keep the default when the stored value has the wrong type
            if isinstance(default, bool) != isinstance(value, bool):
                continue
            if not isinstance(value, type(default)):
                continue
            setattr(settings, f.name, value)
        return settings

    def save(self, path: str = SETTINGS_FILE) -> bool:
        """Persist settings.  Returns False when the file can't be written."""
        try:
            with open(path, "w", encoding="utf-8") as f:
                json.dump(asdict(self), f, ensure_ascii=False, indent=2)
        except OSError as e:
            log.warning("Could not save settings to %s: %s", path, e)
            return False  # Non-critical — settings just won't persist
        return True
