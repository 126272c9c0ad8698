"""
Configuration management and loading.

Handles the YAML settings file and the environment variables that
override stored credentials.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from ai_credit_watch.storage.models import CredentialKey

ENV_BASE_URL = "NINJA_API_BASE_URL"
ENV_API_KEY = "NINJA_API_KEY"

_PROD_HOST_PATTERN = re.compile(r"api\.prod\.myninja\.ai")
_PUBLIC_HOST = "api.myninja.ai"


@dataclass(frozen=True)
class CacheConfig:
    """Freshness policy for the balance cache."""
    freshness_window_ms: int = 30_000
    share_across_credentials: bool = False

    def __post_init__(self):
        """Validate the freshness window is not negative."""
        if self.freshness_window_ms < 0:
            raise ValueError("freshness_window_ms must be >= 0")


@dataclass(frozen=True)
class RequestConfig:
    """Transport settings for the balance request."""
    timeout_seconds: float = 10.0

    def __post_init__(self):
        """Validate the timeout is positive."""
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be > 0")


@dataclass(frozen=True)
class WatchConfig:
    """Complete AI Credit Watch configuration."""
    endpoint: Optional[str] = None
    api_key: Optional[str] = field(default=None, repr=False)
    cache: CacheConfig = field(default_factory=CacheConfig)
    request: RequestConfig = field(default_factory=RequestConfig)
    feature_flags: Dict[str, Any] = field(default_factory=dict)


def transform_base_url(url: Optional[str]) -> Optional[str]:
    """Rewrite the production API host to its public name.

    Converts api.prod.myninja.ai to api.myninja.ai; other URLs (and empty
    values) are returned unchanged.
    """
    if not url:
        return url
    return _PROD_HOST_PATTERN.sub(_PUBLIC_HOST, url)


def resolve_credentials(
    config: WatchConfig,
    environ: Optional[Mapping[str, str]] = None
) -> CredentialKey:
    """Build the credential key, letting environment variables take precedence.

    Args:
        config: Loaded configuration
        environ: Environment mapping (defaults to os.environ)

    Returns:
        CredentialKey with the transformed endpoint
    """
    env = os.environ if environ is None else environ
    endpoint = env.get(ENV_BASE_URL) or config.endpoint
    secret = env.get(ENV_API_KEY) or config.api_key
    return CredentialKey(endpoint=transform_base_url(endpoint), secret=secret)


def load_watch_config(path: str) -> WatchConfig:
    """Load and validate configuration from a YAML file.

    Strict validation so a typo never silently falls back to a default.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated WatchConfig object

    Raises:
        FileNotFoundError: If config file doesn't exist
        yaml.YAMLError: If YAML is invalid
        ValueError: If configuration is invalid
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            raw_config = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise yaml.YAMLError(f"Invalid YAML in config file {path}: {e}")

    if raw_config is None:
        return WatchConfig()
    if not isinstance(raw_config, dict):
        raise ValueError("Configuration must be a mapping")

    allowed_top_keys = {'endpoint', 'api_key', 'cache', 'request', 'feature_flags'}
    unknown_keys = set(raw_config.keys()) - allowed_top_keys
    if unknown_keys:
        raise ValueError(f"Unknown configuration keys: {unknown_keys}")

    endpoint = _optional_string(raw_config, 'endpoint')
    api_key = _optional_string(raw_config, 'api_key')

    cache = _parse_cache_config(_section(raw_config, 'cache'))
    request = _parse_request_config(_section(raw_config, 'request'))
    feature_flags = _parse_feature_flags(_section(raw_config, 'feature_flags'))

    return WatchConfig(
        endpoint=endpoint,
        api_key=api_key,
        cache=cache,
        request=request,
        feature_flags=feature_flags
    )


def _optional_string(data: Dict, key: str) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value


def _section(data: Dict, key: str) -> Dict:
    section = data.get(key)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ValueError(f"'{key}' must be a dictionary")
    return section


def _parse_cache_config(data: Dict) -> CacheConfig:
    """Parse and validate the cache section.

    Raises:
        ValueError: If the section is invalid
    """
    allowed_keys = {'freshness_window_ms', 'share_across_credentials'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown cache keys: {unknown_keys}")

    window = data.get('freshness_window_ms', CacheConfig.freshness_window_ms)
    if isinstance(window, bool) or not isinstance(window, int) or window < 0:
        raise ValueError("'freshness_window_ms' must be an integer >= 0")

    share = data.get('share_across_credentials', CacheConfig.share_across_credentials)
    if not isinstance(share, bool):
        raise ValueError("'share_across_credentials' must be true or false")

    return CacheConfig(freshness_window_ms=window, share_across_credentials=share)


def _parse_request_config(data: Dict) -> RequestConfig:
    """Parse and validate the request section.

    Raises:
        ValueError: If the section is invalid
    """
    allowed_keys = {'timeout_seconds'}
    unknown_keys = set(data.keys()) - allowed_keys
    if unknown_keys:
        raise ValueError(f"Unknown request keys: {unknown_keys}")

    timeout = data.get('timeout_seconds', RequestConfig.timeout_seconds)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        raise ValueError("'timeout_seconds' must be > 0")

    return RequestConfig(timeout_seconds=float(timeout))


def _parse_feature_flags(data: Dict) -> Dict[str, Any]:
    """Flag payloads are free-form; only the flag names are checked."""
    for name in data:
        if not isinstance(name, str):
            raise ValueError(f"Feature flag names must be strings, got {name!r}")
    return dict(data)
