"""
Feature-flag payload helpers.

Payloads come from an external provider keyed by flag name. The default
model for OpenAI-compatible endpoints is sourced from the "model-settings"
payload and cached after the first lookup.
"""

import json
import logging
from typing import Any, List, Mapping, Optional, Protocol

LOGGER = logging.getLogger(__name__)

MODEL_SETTINGS_FLAG = "model-settings"
FALLBACK_DEFAULT_MODEL_ID = "zai:glm-4-6-cerebras"

_MODEL_OPTION_FIELDS = ("value", "label", "description")


class FeatureFlagProvider(Protocol):
    """Source of feature-flag payloads (arbitrary JSON values)."""

    async def get_payload(self, flag_name: str) -> Any:
        ...


class StaticFlagProvider:
    """Serves payloads from a fixed mapping, e.g. the config file's feature_flags."""

    def __init__(self, payloads: Optional[Mapping[str, Any]] = None):
        self._payloads = dict(payloads or {})

    async def get_payload(self, flag_name: str) -> Any:
        return self._payloads.get(flag_name)


async def get_flag_payload_json(provider: FeatureFlagProvider, flag_name: str) -> Optional[str]:
    """Fetch a flag payload and encode it as JSON.

    Provider failures are logged and reported as a missing payload.

    Args:
        provider: Feature-flag payload source
        flag_name: Flag to look up

    Returns:
        JSON text, or None when the flag has no payload or the lookup failed
    """
    try:
        payload = await provider.get_payload(flag_name)
    except Exception:
        LOGGER.exception("Error getting feature flag payload for %s", flag_name)
        return None

    if payload is None:
        return None
    return json.dumps(payload)


def _is_model_option(option: Any) -> bool:
    return isinstance(option, dict) and all(
        isinstance(option.get(name), str) for name in _MODEL_OPTION_FIELDS
    )


def pick_default_model(options: List[dict]) -> str:
    """Pick the option flagged default, else the first one, else the fallback."""
    for option in options:
        if option.get("default"):
            return option["value"] or FALLBACK_DEFAULT_MODEL_ID
    if options and options[0]["value"]:
        return options[0]["value"]
    return FALLBACK_DEFAULT_MODEL_ID


class DefaultModelResolver:
    """Resolves and caches the default model id from a flag payload."""

    def __init__(self, provider: FeatureFlagProvider, flag_name: str = MODEL_SETTINGS_FLAG):
        self._provider = provider
        self.flag_name = flag_name
        self._cached: Optional[str] = None

    async def resolve(self) -> str:
        """Return the default model id, consulting the provider once.

        A payload that is not a list of {value, label, description}
        string options resolves to the fallback.
        """
        if self._cached:
            return self._cached

        try:
            payload = await self._provider.get_payload(self.flag_name)
        except Exception:
            LOGGER.exception("Error fetching default model from feature flag")
            payload = None

        if isinstance(payload, list) and all(_is_model_option(option) for option in payload):
            self._cached = pick_default_model(payload)
        else:
            self._cached = FALLBACK_DEFAULT_MODEL_ID
        return self._cached

    def resolve_cached(self) -> str:
        """Cached model id without a lookup; fallback before the first resolve."""
        return self._cached or FALLBACK_DEFAULT_MODEL_ID

    def reset(self) -> None:
        """Forget the cached value, e.g. after flags were updated."""
        self._cached = None
