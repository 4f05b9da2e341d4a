"""
Tests for feed loading from files and HTTP.
"""

import json
from unittest.mock import MagicMock, patch

import pytest
import requests

from kerjait.errors import FeedError
from kerjait.feed import fetch_batch, load_batch_file

URL = "https://scraper.example.com/jobs.json"


def _response(status_code=200, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    if status_code >= 400:
        resp.raise_for_status.side_effect = requests.exceptions.HTTPError(response=resp)
    return resp


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("kerjait.retry.time.sleep") as sleep:
        yield sleep


class TestLoadBatchFile:
    def test_list(self, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text(json.dumps([{"link": "https://a.com/1"}]))
        assert load_batch_file(path) == [{"link": "https://a.com/1"}]

    def test_jobs_object(self, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text(json.dumps({"jobs": [{"link": "https://a.com/1"}]}))
        assert load_batch_file(path) == [{"link": "https://a.com/1"}]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FeedError, match="not found"):
            load_batch_file(tmp_path / "nope.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text("{not json")
        with pytest.raises(FeedError):
            load_batch_file(path)

    def test_wrong_shape(self, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text(json.dumps({"postings": []}))
        with pytest.raises(FeedError):
            load_batch_file(path)


class TestFetchBatch:
    @patch("kerjait.feed.requests.get")
    def test_success(self, mock_get):
        mock_get.return_value = _response(payload=[{"link": "https://a.com/1"}])
        assert fetch_batch(URL) == [{"link": "https://a.com/1"}]
        mock_get.assert_called_once()

    @patch("kerjait.feed.requests.get")
    def test_retries_retryable_status(self, mock_get, no_sleep):
        mock_get.side_effect = [_response(503), _response(payload={"jobs": []})]
        assert fetch_batch(URL) == []
        assert mock_get.call_count == 2
        assert no_sleep.call_count == 1

    @patch("kerjait.feed.requests.get")
    def test_not_found_is_not_retried(self, mock_get):
        mock_get.return_value = _response(404)
        with pytest.raises(FeedError, match="404"):
            fetch_batch(URL)
        assert mock_get.call_count == 1

    @patch("kerjait.feed.requests.get")
    def test_connection_errors_exhaust_retries(self, mock_get):
        mock_get.side_effect = requests.exceptions.ConnectionError("refused")
        with pytest.raises(FeedError, match="unavailable"):
            fetch_batch(URL)
        assert mock_get.call_count == 4

    @patch("kerjait.feed.requests.get")
    def test_unexpected_body(self, mock_get):
        mock_get.return_value = _response(payload="hello")
        with pytest.raises(FeedError):
            fetch_batch(URL)
