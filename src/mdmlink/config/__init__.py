"""Application configuration helpers."""

from __future__ import annotations

from .env import require_env_vars, split_env_list
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy
from .logging import configure_logging
from .mdm import MatchConfigurationSetting, MdmConfig, get_mdm_config, parse_match_configuration
from .policy import PolicyConfig, get_policy_config
from .remote_matcher import RemoteMatcherConfig, get_remote_matcher_config, remote_matcher_enabled
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "CacheConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "MatchConfigurationSetting",
    "MdmConfig",
    "MissingConfigurationError",
    "PolicyConfig",
    "RateLimit",
    "RemoteMatcherConfig",
    "ResilienceConfig",
    "RetryPolicy",
    "StorageConfig",
    "configure_logging",
    "get_database_config",
    "get_mdm_config",
    "get_policy_config",
    "get_remote_matcher_config",
    "get_storage_config",
    "parse_match_configuration",
    "remote_matcher_enabled",
    "require_env_vars",
    "split_env_list",
]
