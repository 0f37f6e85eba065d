from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Union

import yaml


def load_profiles(path: Union[str, Path]) -> Dict[str, Dict[str, Any]]:
    """
    Читает YAML с именованными пресетами опций запроса:

        profiles:
          github:
            headers: {Accept: application/vnd.github+json}
            retries: 5
    """
    p = Path(path)
    if not p.exists():
        raise FileNotFoundError(f"Profiles file not found: {p.resolve()}")

    data = yaml.safe_load(p.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Profiles file must be a YAML mapping (top-level dict).")

    profiles = data.get("profiles") or {}
    if not isinstance(profiles, dict):
        raise ValueError("'profiles' must be a mapping of name -> options.")

    for name, options in profiles.items():
        if not isinstance(options, dict):
            raise ValueError(f"Profile '{name}' must be a mapping, got {type(options).__name__}")

    return profiles


def load_profile(path: Union[str, Path], name: str) -> Dict[str, Any]:
    profiles = load_profiles(path)
    if name not in profiles:
        raise KeyError(f"Profile '{name}' not found in {path}. Available: {sorted(profiles)}")
    return dict(profiles[name])
