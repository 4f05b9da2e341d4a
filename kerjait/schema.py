from typing import Any, Dict, List

from .normalize import identity_key, parse_timestamp

OPTIONAL_STR_FIELDS = [
    "identityKey",
    "link",
    "slug",
    "title",
    "company",
    "source",
    "featuredUntil",
]


def _is_non_empty_str(v: Any) -> bool:
    return isinstance(v, str) and v.strip() != ""


def validate_raw_posting(data: Any) -> List[str]:
    """
    Returns a list of validation error messages. Empty list means valid.

    Only what ingestion relies on is checked: an identity key can be derived,
    and the fields used for dedup, slugs, tags and dates have usable shapes.
    Everything else in the payload is opaque.
    """
    if not isinstance(data, dict):
        return ["Posting must be a JSON object"]

    errors: List[str] = []

    if identity_key(data) is None:
        errors.append("Missing identity: provide a non-empty 'identityKey' or 'link'")

    for f in OPTIONAL_STR_FIELDS:
        if f in data and data[f] is not None and not isinstance(data[f], str):
            errors.append(f"Field '{f}' must be a string if provided")

    if "slug" in data and isinstance(data["slug"], str) and not _is_non_empty_str(data["slug"]):
        errors.append("Field 'slug' must not be blank")

    keywords = data.get("keywords")
    if keywords is not None and not isinstance(keywords, str):
        if not isinstance(keywords, list) or not all(isinstance(k, str) for k in keywords):
            errors.append("Field 'keywords' must be a list of strings")

    if "schema" in data and data["schema"] is not None and not isinstance(data["schema"], dict):
        errors.append("Field 'schema' must be an object if provided")

    if _is_non_empty_str(data.get("featuredUntil")) and parse_timestamp(data["featuredUntil"]) is None:
        errors.append("Field 'featuredUntil' must be an ISO-8601 timestamp")

    return errors
