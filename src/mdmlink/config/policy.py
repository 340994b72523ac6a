"""Permission policy file location."""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigurationError
from .storage import get_storage_config


@dataclass(frozen=True, slots=True)
class PolicyConfig:
    path: Path | None


def get_policy_config() -> PolicyConfig:
    """``MDM_POLICY_FILE`` when set, else ``policy.toml`` in the data directory if present."""

    raw = os.getenv("MDM_POLICY_FILE")
    if raw is None or not raw.strip():
        fallback = get_storage_config().policy_path()
        return PolicyConfig(path=fallback if fallback.is_file() else None)
    path = Path(raw).expanduser()
    if not path.is_file():
        raise ConfigurationError(f"MDM_POLICY_FILE does not point to a file: {path}")
    return PolicyConfig(path=path)
