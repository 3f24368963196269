"""
Config Sync Engine

Optimistic-concurrency publish loop against the remote configuration
service: fetch the template with its ETag, merge settings in memory,
validate, then publish guarded by the fetched ETag.

Conflicts retry from a fresh fetch; transient server errors retry with a
longer pause; validation and auth errors fail immediately.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from .models import ConfigParameter, ConfigTemplate
from .protocols import (
    AuthError,
    ConflictError,
    RemoteConfigClientProtocol,
    TransientServiceError,
    ValidationError,
)

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


# ====================
# Retry policy
# ====================

@dataclass(frozen=True)
class RetryPolicy:
    """Bounded retry with a delay that grows linearly with the attempt number"""
    max_attempts: int
    base_delay: float

    def should_retry(self, attempt: int) -> bool:
        """`attempt` is the 1-based number of the attempt that just failed"""
        return attempt < self.max_attempts

    def delay_for_attempt(self, attempt: int) -> float:
        return attempt * self.base_delay


CONFLICT_RETRY_POLICY = RetryPolicy(max_attempts=3, base_delay=1.0)
TRANSIENT_RETRY_POLICY = RetryPolicy(max_attempts=3, base_delay=2.0)


# ====================
# Feature flag aliases
# ====================

@dataclass(frozen=True)
class FlagAlias:
    """Legacy key names for one logical flag, in coalesce order"""
    bundle_key: str
    bundle_aliases: Tuple[str, ...]
    bundle_default: bool
    parameter_name: str
    parameter_aliases: Tuple[str, ...]
    parameter_default: bool
    description: str

    @property
    def all_aliases(self) -> Tuple[str, ...]:
        return tuple(dict.fromkeys(self.bundle_aliases + self.parameter_aliases))


FLAG_ALIASES: Tuple[FlagAlias, ...] = (
    FlagAlias(
        bundle_key="storiesEnabled",
        bundle_aliases=("storiesEnabled", "enableStories"),
        bundle_default=False,
        parameter_name="storiesEnabled",
        parameter_aliases=("storiesEnabled", "enableStories"),
        parameter_default=False,
        description="Enable/disable stories feature",
    ),
    FlagAlias(
        bundle_key="adsEnabled",
        bundle_aliases=("adsEnabled", "showAds", "enableAds"),
        bundle_default=True,
        parameter_name="showAds",
        parameter_aliases=("showAds", "adsEnabled", "enableAds"),
        parameter_default=True,
        description="Enable/disable ads display",
    ),
    FlagAlias(
        bundle_key="waitlistEnabled",
        bundle_aliases=("waitlistEnabled", "enableWaitlist"),
        bundle_default=False,
        parameter_name="waitlistEnabled",
        parameter_aliases=("waitlistEnabled", "enableWaitlist"),
        parameter_default=False,
        description="Enable/disable waitlist feature",
    ),
)

ALIASED_FLAG_KEYS = frozenset(key for alias in FLAG_ALIASES for key in alias.all_aliases)

FEATURE_FLAGS_PARAMETER = "featureFlags"
FEATURE_FLAGS_DESCRIPTION = "Feature flags managed from admin dashboard. JSON format with boolean values."
REMOTE_CONFIG_DESCRIPTION = "Remote config value managed from admin dashboard"
MAINTENANCE_MODE_PARAMETER = "maintenanceMode"
MAINTENANCE_MODE_DESCRIPTION = "Maintenance mode flag - when true, app shows maintenance screen"


def coalesce(flags: Dict[str, Any], keys: Tuple[str, ...], default: Any) -> Any:
    """First key with a non-null value wins"""
    for key in keys:
        if flags.get(key) is not None:
            return flags[key]
    return default


def bool_parameter_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value).lower()


def parameter_value(value: Any) -> str:
    """Remote Config stores every value as a string"""
    if isinstance(value, bool):
        return "true" if value else "false"
    if value is None:
        return "null"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (dict, list)):
        return json.dumps(value, separators=(",", ":"))
    return str(value)


def build_flag_bundle(feature_flags: Dict[str, Any]) -> Dict[str, Any]:
    """Canonical flags first, then every non-alias flag as-is"""
    bundle = {
        alias.bundle_key: coalesce(feature_flags, alias.bundle_aliases, alias.bundle_default)
        for alias in FLAG_ALIASES
    }
    for key, value in feature_flags.items():
        if key not in ALIASED_FLAG_KEYS:
            bundle[key] = value
    return bundle


def merge_settings_into_template(
    template: ConfigTemplate,
    feature_flags: Optional[Dict[str, Any]] = None,
    remote_config: Optional[Dict[str, Any]] = None,
    maintenance_mode: Optional[bool] = None,
) -> ConfigTemplate:
    """Return a copy of `template` with the settings written into its parameters"""
    merged = template.model_copy(deep=True)
    parameters = merged.parameters

    if feature_flags is not None:
        bundle = build_flag_bundle(feature_flags)
        parameters[FEATURE_FLAGS_PARAMETER] = ConfigParameter.string(
            json.dumps(bundle, separators=(",", ":")), FEATURE_FLAGS_DESCRIPTION
        )
        for alias in FLAG_ALIASES:
            # Individual parameter only when the update mentions the flag
            if any(key in feature_flags for key in alias.parameter_aliases):
                value = coalesce(feature_flags, alias.parameter_aliases, alias.parameter_default)
                parameters[alias.parameter_name] = ConfigParameter.string(
                    bool_parameter_value(value), alias.description
                )

    if remote_config is not None:
        for key, value in remote_config.items():
            parameters[key] = ConfigParameter.string(parameter_value(value), REMOTE_CONFIG_DESCRIPTION)

    if maintenance_mode is not None:
        parameters[MAINTENANCE_MODE_PARAMETER] = ConfigParameter.string(
            "true" if maintenance_mode else "false", MAINTENANCE_MODE_DESCRIPTION
        )

    return merged


# ====================
# Engine
# ====================

class ConfigSyncEngine:
    """Publishes settings to the remote configuration service"""

    def __init__(
        self,
        client: RemoteConfigClientProtocol,
        conflict_policy: RetryPolicy = CONFLICT_RETRY_POLICY,
        transient_policy: RetryPolicy = TRANSIENT_RETRY_POLICY,
        sleep: Optional[SleepFunc] = None,
    ):
        self.client = client
        self.conflict_policy = conflict_policy
        self.transient_policy = transient_policy
        self._sleep = sleep or asyncio.sleep

    async def sync(
        self,
        feature_flags: Optional[Dict[str, Any]] = None,
        remote_config: Optional[Dict[str, Any]] = None,
        maintenance_mode: Optional[bool] = None,
    ) -> ConfigTemplate:
        """
        Fetch, merge, validate and publish.

        Raises:
            ValidationError: template rejected (never retried)
            AuthError: credentials rejected (never retried)
            ConflictError: ETag still stale after the conflict retries
            TransientServiceError: server errors outlasted the transient retries
        """
        attempt = 0
        while True:
            attempt += 1
            try:
                template = await self.client.get_template()
                merged = merge_settings_into_template(
                    template,
                    feature_flags=feature_flags,
                    remote_config=remote_config,
                    maintenance_mode=maintenance_mode,
                )
                validated = await self.client.validate_template(merged)
                published = await self.client.publish_template(
                    validated.model_copy(update={"etag": template.etag})
                )
                logger.info(
                    f"Remote Config template published on attempt {attempt} "
                    f"(version={(published.version or {}).get('versionNumber')})"
                )
                return published

            except (ValidationError, AuthError) as e:
                logger.error(f"Remote Config sync failed permanently: {e}")
                raise

            except ConflictError as e:
                if not self.conflict_policy.should_retry(attempt):
                    logger.error(f"Remote Config version conflict after {attempt} attempts: {e}")
                    raise ConflictError(
                        "Remote Config update conflict. Template was modified by another process. "
                        "Please try again.",
                        code=e.code,
                        status=e.status,
                    ) from e
                delay = self.conflict_policy.delay_for_attempt(attempt)
                logger.warning(
                    f"Remote Config version conflict on attempt {attempt}, "
                    f"refetching in {delay:.1f}s"
                )
                await self._sleep(delay)

            except TransientServiceError as e:
                if not self.transient_policy.should_retry(attempt):
                    logger.error(f"Remote Config server error after {attempt} attempts: {e}")
                    raise TransientServiceError(
                        "Remote Config server error. Please try again later.",
                        code=e.code,
                        status=e.status,
                    ) from e
                delay = self.transient_policy.delay_for_attempt(attempt)
                logger.warning(f"Remote Config server error on attempt {attempt}, retrying in {delay:.1f}s")
                await self._sleep(delay)


__all__ = [
    "RetryPolicy",
    "CONFLICT_RETRY_POLICY",
    "TRANSIENT_RETRY_POLICY",
    "FlagAlias",
    "FLAG_ALIASES",
    "ConfigSyncEngine",
    "build_flag_bundle",
    "merge_settings_into_template",
    "parameter_value",
    "bool_parameter_value",
    "coalesce",
]
