"""Loading batches of scraped postings from a JSON file or an HTTP endpoint."""

import json
from pathlib import Path
from typing import Any, Dict, List

import requests

from .errors import FeedError
from .logger import get_logger
from .retry import (
    RetryableHTTPError,
    RetryError,
    RetryPolicy,
    exponential_backoff,
    should_retry_http_status,
)

FEED_RETRY = RetryPolicy(max_retries=3, base_delay=1.0)


def _log_retry(attempt: int, error: Exception, delay: float):
    get_logger().warning("Feed request failed, retrying", attempt=attempt, error=str(error), delay=delay)


@exponential_backoff(
    FEED_RETRY,
    retry_on=(requests.exceptions.Timeout, requests.exceptions.ConnectionError, RetryableHTTPError),
    on_retry=_log_retry,
)
def _fetch_with_retry(url: str, timeout: float):
    """Fetch URL, retrying timeouts, connection errors and retryable statuses."""
    resp = requests.get(url, timeout=timeout, headers={"Accept": "application/json"})
    if should_retry_http_status(resp.status_code):
        raise RetryableHTTPError(resp.status_code, url)
    return resp


def _as_batch(payload: Any, origin: str) -> List[Dict[str, Any]]:
    """Accept either a bare list of postings or an object with a "jobs" list."""
    if isinstance(payload, dict):
        payload = payload.get("jobs")
    if not isinstance(payload, list):
        raise FeedError(f"{origin}: expected a list of postings or an object with a 'jobs' list")
    return payload


def load_batch_file(path: Path) -> List[Dict[str, Any]]:
    """
    Read a batch of raw postings from a JSON file.

    Raises:
        FeedError: File missing or not a JSON batch
    """
    if not path.exists():
        raise FeedError(f"Input file not found: {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            payload = json.load(f)
    except json.JSONDecodeError as e:
        raise FeedError(f"{path}: invalid JSON ({e})") from e
    return _as_batch(payload, str(path))


def fetch_batch(url: str, timeout: float = 20.0) -> List[Dict[str, Any]]:
    """
    Download a batch of raw postings from a scraper endpoint.

    Args:
        url: Endpoint returning JSON
        timeout: Per-request timeout in seconds

    Raises:
        FeedError: On any HTTP error, exhausted retries, or a malformed body
    """
    logger = get_logger()
    try:
        resp = _fetch_with_retry(url, timeout)
        resp.raise_for_status()
        payload = resp.json()
    except RetryError as e:
        logger.error("Feed request failed after retries", url=url, error=str(e))
        raise FeedError(f"Feed unavailable: {url} ({e})") from e
    except requests.exceptions.HTTPError as e:
        status = e.response.status_code if e.response is not None else "HTTPError"
        logger.error("Feed request failed", url=url, status=status)
        raise FeedError(f"Feed request failed ({status}): {url}") from e
    except requests.exceptions.RequestException as e:
        logger.error("Feed request error", url=url, error=str(e))
        raise FeedError(f"Feed request error: {e}") from e
    except ValueError as e:
        raise FeedError(f"{url}: response is not JSON ({e})") from e

    batch = _as_batch(payload, url)
    logger.info("Fetched feed batch", url=url, postings=len(batch))
    return batch
