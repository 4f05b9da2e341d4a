import hashlib
import re
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urlparse


def normalize_text(s: str) -> str:
    return " ".join(s.strip().lower().split())


REMOTE_SYNS = {
    "remote",
    "remote - malaysia",
    "remote - my",
    "fully remote",
    "work from home",
    "wfh",
}


def normalize_keyword(keyword: str) -> str:
    return normalize_text(keyword.replace("-", " "))


def normalize_keywords(keywords: Any) -> List[str]:
    """Lower-case, de-hyphenate and de-duplicate tags, keeping first-seen order.

    Remote synonyms also contribute the canonical "remote" tag.
    """
    if isinstance(keywords, str):
        keywords = [keywords]
    if not isinstance(keywords, (list, tuple, set)):
        return []

    result: List[str] = []
    seen = set()
    for raw in keywords:
        if not isinstance(raw, str) or not raw.strip():
            continue
        tags = [normalize_keyword(raw)]
        if normalize_text(raw) in REMOTE_SYNS:
            tags.append("remote")
        for tag in tags:
            if tag not in seen:
                seen.add(tag)
                result.append(tag)
    return result


def canonical_url(url: str) -> str:
    parsed = urlparse(url.strip())
    path = parsed.path.rstrip("/")
    # Fragments never identify a posting; the query sometimes does (e.g. ?jk=<id>)
    query = f"?{parsed.query}" if parsed.query else ""
    if parsed.scheme and parsed.netloc:
        return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}{path}{query}"
    return f"{path}{query}"


def identity_key(raw: Dict[str, Any]) -> Optional[str]:
    key = raw.get("identityKey")
    if isinstance(key, str) and key.strip():
        return key.strip()
    link = raw.get("link")
    if isinstance(link, str) and link.strip():
        return canonical_url(link)
    return None


def _schema(doc: Dict[str, Any]) -> Dict[str, Any]:
    schema = doc.get("schema")
    return schema if isinstance(schema, dict) else {}


def make_slug(title: str, company: str, key: str) -> str:
    base = re.sub(r"[^a-z0-9]+", "-", normalize_text(f"{title} {company}")).strip("-")[:80].rstrip("-")
    digest = hashlib.sha1(key.encode("utf-8")).hexdigest()[:8]
    return f"{base}-{digest}" if base else digest


def slug_for(raw: Dict[str, Any], key: str) -> str:
    schema = _schema(raw)
    organization = schema.get("hiringOrganization")
    title = raw.get("title") or schema.get("title") or ""
    company = raw.get("company") or (organization.get("name") if isinstance(organization, dict) else "") or ""
    return make_slug(str(title), str(company), key)


def employment_types(doc: Dict[str, Any]) -> List[str]:
    """Raw employment-type strings of a posting, as stored by the source."""
    value = doc.get("employmentType")
    if value is None:
        value = _schema(doc).get("employmentType")
    if isinstance(value, str):
        return [value]
    if isinstance(value, (list, tuple)):
        return [v for v in value if isinstance(v, str)]
    return []


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def isoformat(moment: datetime) -> str:
    """ISO-8601 UTC timestamp with millisecond precision and a Z suffix."""
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment.isoformat(timespec="milliseconds") + "Z"


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 date or timestamp into a naive UTC datetime.

    Naive inputs are taken to be UTC already. Returns None when the value
    is missing or unparseable.
    """
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            return None
    else:
        return None
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc).replace(tzinfo=None)
    return moment


def posted_at_for(doc: Dict[str, Any], fallback: Any) -> Any:
    """Source-declared publish date when present and truthy, else the fallback."""
    date_posted = _schema(doc).get("datePosted")
    return date_posted if date_posted else fallback


def normalize_posting(raw: Dict[str, Any], created_at: str) -> Dict[str, Any]:
    """
    Turn one raw scraped posting into a storable document.

    Every posting in an ingestion batch receives the same created_at.
    The raw dict is not modified; unknown fields pass through as-is.
    """
    key = identity_key(raw)
    if key is None:
        raise ValueError("Posting has neither identityKey nor link")

    doc = dict(raw)
    doc["identityKey"] = key
    doc["createdAt"] = created_at
    doc["postedAt"] = posted_at_for(raw, created_at)
    doc["keywords"] = normalize_keywords(raw.get("keywords", []))
    if not (isinstance(raw.get("slug"), str) and raw["slug"].strip()):
        doc["slug"] = slug_for(raw, key)
    return doc


def normalize_batch(raws: Iterable[Dict[str, Any]], created_at: str) -> List[Dict[str, Any]]:
    return [normalize_posting(raw, created_at) for raw in raws]
