import hashlib
import json
import re
from typing import Any, Mapping, Union

import structlog

from app.models.schemas import GenerationSettings

logger = structlog.get_logger()

SETTINGS_HASH_LENGTH = 16

_WHITESPACE = re.compile(r"\s+")


def _normalize_value(value: Any) -> Any:
    if isinstance(value, str):
        return _WHITESPACE.sub(" ", value).strip()
    if isinstance(value, float):
        # 0.2 and 0.20000000000000001 are the same request
        return round(value, 6)
    if isinstance(value, Mapping):
        return {str(k): _normalize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_value(v) for v in value]
    return value


def canonical_settings(settings: Union[GenerationSettings, Mapping[str, Any]]) -> str:
    """Return the canonical JSON string a fingerprint is computed from."""
    if not isinstance(settings, GenerationSettings):
        settings = GenerationSettings.model_validate(dict(settings))
    payload = _normalize_value(settings.model_dump(mode="json"))
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def build_settings_hash(settings: Union[GenerationSettings, Mapping[str, Any]]) -> str:
    """Fingerprint a generation configuration.

    Logically identical settings (any key order, camelCase or snake_case keys,
    insignificant whitespace) always produce the same value, across process
    restarts. Any change to a field that affects generation changes it.
    """
    canonical = canonical_settings(settings)
    settings_hash = hashlib.sha256(canonical.encode("utf-8")).hexdigest()[:SETTINGS_HASH_LENGTH]
    logger.debug("Settings hash built", settings_hash=settings_hash)
    return settings_hash


def are_settings_equal(
    a: Union[GenerationSettings, Mapping[str, Any]],
    b: Union[GenerationSettings, Mapping[str, Any]],
) -> bool:
    return build_settings_hash(a) == build_settings_hash(b)
