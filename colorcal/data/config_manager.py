import copy
from pathlib import Path
from typing import Any, Dict, Optional

from colorcal.utils.file_io import read_json, write_json


class ConfigManager:
    """Dotted-key access to a JSON configuration document (e.g. ``CameraIsp.ccm``)."""

    def __init__(self, path: Optional[Path] = None, data: Optional[Dict] = None):
        self.config_path = Path(path) if path is not None else None
        self._config: Dict[str, Any] = {}
        if data:
            self._config = copy.deepcopy(data)
        elif self.config_path is not None:
            self._config = read_json(self.config_path)

    def get(self, key: str, default: Any = None) -> Any:
        keys = key.split(".")
        val = self._config
        try:
            for k in keys:
                val = val[k]
            return val
        except (KeyError, TypeError, IndexError):
            return default

    def set(self, key: str, value: Any):
        keys = key.split(".")
        val = self._config
        for k in keys[:-1]:
            val = val.setdefault(k, {})
        val[keys[-1]] = value

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._config)

    def save(self, path: Optional[Path] = None):
        target = path or self.config_path
        if target:
            write_json(self._config, target)
