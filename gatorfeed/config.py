"""Reading and writing the per-user JSON configuration file."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

CONFIG_FILE_NAME = ".gatorconfig.json"

_FIELDS = ("db_url", "current_user_name")

# Characters the writer escapes so the file stays safe to embed in HTML.
_HTML_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


@dataclass
class Config:
    """Database location and the name of the user currently logged in."""

    db_url: str = ""
    current_user_name: str = ""
    path: Path | None = field(default=None, compare=False, repr=False)

    def set_user(self, user_name: str) -> None:
        """Make ``user_name`` the current user and save the file."""
        self.current_user_name = user_name
        write(self)

    def to_dict(self) -> dict[str, str]:
        """Return the fields stored in the file."""
        return {"db_url": self.db_url, "current_user_name": self.current_user_name}


def config_path() -> Path:
    """Return the location of the configuration file in the home directory."""
    return Path.home() / CONFIG_FILE_NAME


def _decode_fields(data: Any) -> dict[str, str]:
    values = {name: "" for name in _FIELDS}
    if data is None:
        return values
    if not isinstance(data, dict):
        raise ValueError("configuration must be a JSON object")
    for key, value in data.items():
        name = next(
            (f for f in _FIELDS if key == f or key.lower() == f.lower()), None
        )
        if name is None or value is None:
            continue
        if not isinstance(value, str):
            raise ValueError(f"configuration field {key!r} must be a string")
        values[name] = value
    return values


def read(path: str | Path | None = None) -> Config:
    """Load the configuration from ``path`` or from the home directory."""
    target = Path(path) if path is not None else config_path()
    text = target.read_text(encoding="utf-8")
    data, _ = json.JSONDecoder().raw_decode(text.lstrip())
    return Config(**_decode_fields(data), path=target)


def write(cfg: Config, path: str | Path | None = None) -> None:
    """Save ``cfg`` as indented JSON, replacing any existing file."""
    if path is not None:
        target = Path(path)
    elif cfg.path is not None:
        target = cfg.path
    else:
        target = config_path()
    text = json.dumps(cfg.to_dict(), indent=2, ensure_ascii=False)
    for char, escaped in _HTML_ESCAPES.items():
        text = text.replace(char, escaped)
    target.write_text(text + "\n", encoding="utf-8")