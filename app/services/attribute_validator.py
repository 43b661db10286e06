import json
from typing import Any
from app.core.logging_config import logger


def normalize_attributes(raw: Any) -> list[dict]:
    """
    Turns a caller-supplied attribute payload into a list of {"key", "value"} pairs.

    Multipart forms send the payload as a JSON string, so strings are decoded
    first. Anything that is not a list yields []. Entries whose key or value
    is missing, not a string, or blank are dropped, as are repeated keys
    (the first occurrence wins). Never raises.
    """
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.debug(f"Ignoring undecodable attributes payload: {str(e)}")
            return []

    if not isinstance(raw, list):
        logger.debug(f"Ignoring attributes payload of type {type(raw).__name__}")
        return []

    attributes = []
    seen_keys = set()
    for entry in raw:
        if not isinstance(entry, dict):
            logger.debug(f"Dropping attribute entry that is not an object: {entry!r}")
            continue
        key, value = entry.get("key"), entry.get("value")
        if not isinstance(key, str) or not isinstance(value, str) or not key.strip() or not value.strip():
            logger.debug(f"Dropping malformed attribute entry: {entry!r}")
            continue
        key, value = key.strip(), value.strip()
        if key in seen_keys:
            logger.debug(f"Dropping duplicate attribute key: {key}")
            continue
        seen_keys.add(key)
        attributes.append({"key": key, "value": value})

    return attributes
