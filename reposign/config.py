from __future__ import annotations

"""Central configuration loader for reposign (YAML-based).

Search order:
1) $REPOSIGN_CONFIG
2) config/reposign.override.yml
3) config/reposign.yml
4) Fallback defaults embedded below

Access helpers:
- load() -> dict
- get("compression", default)

CLI:
  python -m reposign.config                # print full JSON config
  python -m reposign.config compression    # print a single value
"""

import json
import os
import platform
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .errors import ConfigError


_DEFAULTS: Dict[str, Any] = {
    # Architecture prefix of the repodata file: <arch>-repodata
    "arch": platform.machine() or "noarch",
    # Compression used when rewriting repodata (none, gzip, bzip2, xz)
    "compression": "gzip",
    # Environment variable holding the private key passphrase
    "passphrase_env": "REPOSIGN_PASSPHRASE",
    # Private key used when none is given, relative to the home directory
    "default_key": ".ssh/id_rsa",
    "log_level": "INFO",
    # Read size used while hashing package files
    "chunk_size": 64 * 1024,
}


def config_path() -> Optional[Path]:
    env = os.getenv("REPOSIGN_CONFIG")
    if env:
        return Path(env).expanduser()
    for candidate in (
        Path("config/reposign.override.yml"),
        Path("config/reposign.yml"),
    ):
        if candidate.exists():
            return candidate
    return None


@lru_cache(maxsize=1)
def load() -> Dict[str, Any]:
    path = config_path()
    if path is None:
        return dict(_DEFAULTS)
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"cannot read config {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigError(f"config {path} must contain a mapping")
    # shallow merge defaults -> data (data wins), nested for mapping values
    out = dict(_DEFAULTS)
    for k, v in data.items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            nv = dict(out[k])
            nv.update(v)
            out[k] = nv
        else:
            out[k] = v
    return out


def get(path: str, default: Any | None = None) -> Any:
    """Get a config value by dot-path.

    Examples:
        get("compression")   -> "gzip"
        get("arch")          -> "x86_64"
    """
    cur: Any = load()
    for p in path.split("."):
        if not isinstance(cur, dict) or p not in cur:
            return default
        cur = cur[p]
    return cur


def _main() -> None:
    import sys

    if len(sys.argv) == 1:
        print(json.dumps(load(), indent=2))
        return
    val = get(sys.argv[1])
    if isinstance(val, (dict, list)):
        print(json.dumps(val))
    elif val is None:
        print("")
    else:
        print(val)


if __name__ == "__main__":
    _main()
