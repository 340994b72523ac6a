"""Linkage behaviour configured through the environment."""

from __future__ import annotations

from dataclasses import dataclass

from mdmlink.domain.model import RecordKind

from .env import split_env_list
from .errors import ConfigurationError

DEFAULT_GOVERNED_KINDS = "patient"
DEFAULT_MATCH_CONFIGURATIONS = "default:auto"
DEFAULT_BLOCKING_FIELDS = "date_of_birth"
DEFAULT_DISCRIMINATING_FIELDS = "multiple_birth_order"


@dataclass(frozen=True, slots=True)
class MatchConfigurationSetting:
    name: str
    auto_link: bool = False


@dataclass(frozen=True, slots=True)
class MdmConfig:
    governed_kinds: frozenset[RecordKind]
    match_configurations: tuple[MatchConfigurationSetting, ...]
    blocking_fields: tuple[str, ...]
    discriminating_fields: tuple[str, ...]


def parse_match_configuration(raw: str) -> MatchConfigurationSetting:
    """Parse ``name`` or ``name:auto``."""

    name, _, flag = raw.partition(":")
    name = name.strip()
    flag = flag.strip().lower()
    if not name:
        raise ConfigurationError(f"Empty match configuration name in {raw!r}")
    if flag not in {"", "auto"}:
        raise ConfigurationError(f"Unknown match configuration flag {flag!r} in {raw!r}")
    return MatchConfigurationSetting(name=name, auto_link=flag == "auto")


def _parse_kinds(names: tuple[str, ...]) -> frozenset[RecordKind]:
    kinds: set[RecordKind] = set()
    for name in names:
        try:
            kinds.add(RecordKind(name.lower()))
        except ValueError as exc:
            raise ConfigurationError(f"Unknown record kind in MDM_GOVERNED_KINDS: {name}") from exc
    return frozenset(kinds)


def get_mdm_config() -> MdmConfig:
    return MdmConfig(
        governed_kinds=_parse_kinds(split_env_list("MDM_GOVERNED_KINDS", DEFAULT_GOVERNED_KINDS)),
        match_configurations=tuple(
            parse_match_configuration(item)
            for item in split_env_list("MDM_MATCH_CONFIGURATIONS", DEFAULT_MATCH_CONFIGURATIONS)
        ),
        blocking_fields=split_env_list("MDM_BLOCKING_FIELDS", DEFAULT_BLOCKING_FIELDS),
        discriminating_fields=split_env_list(
            "MDM_DISCRIMINATING_FIELDS", DEFAULT_DISCRIMINATING_FIELDS
        ),
    )
