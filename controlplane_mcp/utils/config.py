"""Environment configuration helpers.

Every knob has a safe default. Invalid values (non-numeric, zero or negative
where that makes no sense) are replaced by the default and logged, never
raised, so a bad environment cannot stop the server from starting.
"""

import logging
import os
from typing import Iterable, Optional

ENV_PREFIX = "CONTROLPLANE_"


def env_name(key: str) -> str:
    return f"{ENV_PREFIX}{key}"


def env_int(key: str, default: Optional[int], minimum: int = 1) -> Optional[int]:
    """Read an integer knob, falling back to ``default`` when missing or invalid"""
    name = env_name(key)
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw.strip())
    except ValueError:
        logging.warning(f"[Config] Ignoring non-numeric {name}={raw!r}, using default {default}")
        return default
    if value < minimum:
        logging.warning(f"[Config] Ignoring out-of-range {name}={value} (minimum {minimum}), using default {default}")
        return default
    return value


def env_float(key: str, default: float, minimum: float = 0.0) -> float:
    name = env_name(key)
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = float(raw.strip())
    except ValueError:
        logging.warning(f"[Config] Ignoring non-numeric {name}={raw!r}, using default {default}")
        return default
    if value <= minimum:
        logging.warning(f"[Config] Ignoring out-of-range {name}={value}, using default {default}")
        return default
    return value


def env_choice(key: str, default: str, choices: Iterable[str]) -> str:
    name = env_name(key)
    raw = os.getenv(name)
    if not raw:
        return default
    value = raw.strip().lower()
    if value not in choices:
        logging.warning(f"[Config] Ignoring unsupported {name}={raw!r}, using default {default}")
        return default
    return value


def env_flag(key: str, default: bool = True) -> bool:
    """Boolean knob; only an explicit "false"/"0"/"no"/"off" disables a default-on flag"""
    raw = os.getenv(env_name(key))
    if raw is None or raw.strip() == "":
        return default
    value = raw.strip().lower()
    if value in ("false", "0", "no", "off"):
        return False
    if value in ("true", "1", "yes", "on"):
        return True
    logging.warning(f"[Config] Ignoring unrecognised {env_name(key)}={raw!r}, using default {default}")
    return default


def env_str(key: str, default: Optional[str] = None) -> Optional[str]:
    raw = os.getenv(env_name(key))
    if raw is None or raw.strip() == "":
        return default
    return raw.strip()


__all__ = [
    "ENV_PREFIX",
    "env_name",
    "env_int",
    "env_float",
    "env_choice",
    "env_flag",
    "env_str",
]
