"""
Tests for normalize.py - record normalization.
"""

from datetime import datetime, timedelta, timezone

import pytest

from kerjait.normalize import (
    canonical_url,
    employment_types,
    identity_key,
    isoformat,
    make_slug,
    normalize_batch,
    normalize_keywords,
    normalize_posting,
    parse_timestamp,
    posted_at_for,
)

CREATED = "2024-03-10T12:00:00.000Z"


class TestPostedAt:
    """postedAt derivation."""

    def test_source_date_wins(self):
        """Scenario: schema.datePosted becomes postedAt."""
        raw = {"identityKey": "A", "link": "a.com", "schema": {"datePosted": "2024-01-01"}}
        doc = normalize_posting(raw, CREATED)
        assert doc["postedAt"] == "2024-01-01"
        assert doc["createdAt"] == CREATED

    def test_missing_source_date_uses_created_at(self):
        doc = normalize_posting({"link": "https://a.com/1"}, CREATED)
        assert doc["postedAt"] == CREATED

    @pytest.mark.parametrize("value", ["", None, 0])
    def test_falsy_source_date_uses_created_at(self, value):
        doc = normalize_posting({"link": "https://a.com/1", "schema": {"datePosted": value}}, CREATED)
        assert doc["postedAt"] == CREATED

    def test_schema_not_an_object(self):
        assert posted_at_for({"schema": "oops"}, CREATED) == CREATED

    def test_source_date_older_than_ingestion_is_kept(self):
        """createdAt <= postedAt is not required."""
        doc = normalize_posting({"link": "https://a.com/1", "schema": {"datePosted": "2020-05-01"}}, CREATED)
        assert doc["postedAt"] == "2020-05-01"


class TestNormalizePosting:
    """Document shape produced by normalize_posting."""

    def test_does_not_modify_input(self, raw_posting):
        before = dict(raw_posting)
        normalize_posting(raw_posting, CREATED)
        assert raw_posting == before

    def test_passes_through_unknown_fields(self, raw_posting):
        raw_posting["salary"] = {"min": 5000, "max": 8000}
        doc = normalize_posting(raw_posting, CREATED)
        assert doc["salary"] == {"min": 5000, "max": 8000}
        assert doc["schema"] == raw_posting["schema"]

    def test_identity_key_from_link(self, raw_posting):
        doc = normalize_posting(raw_posting, CREATED)
        assert doc["identityKey"] == "https://www.jobstreet.com.my/job/12345"

    def test_keywords_normalized(self, raw_posting):
        doc = normalize_posting(raw_posting, CREATED)
        assert doc["keywords"] == ["react", "typescript", "kuala lumpur"]

    def test_slug_derived_when_missing(self, raw_posting):
        doc = normalize_posting(raw_posting, CREATED)
        assert doc["slug"].startswith("frontend-developer-acme-sdn-bhd-")

    def test_slug_kept_when_provided(self, raw_posting):
        raw_posting["slug"] = "frontend-developer-at-acme"
        doc = normalize_posting(raw_posting, CREATED)
        assert doc["slug"] == "frontend-developer-at-acme"

    def test_no_identity_raises(self):
        with pytest.raises(ValueError):
            normalize_posting({"title": "no link"}, CREATED)

    def test_batch_shares_created_at(self):
        docs = normalize_batch([{"link": "https://a.com/1"}, {"link": "https://a.com/2"}], CREATED)
        assert {d["createdAt"] for d in docs} == {CREATED}


class TestKeywords:
    """Keyword normalization."""

    def test_lowercase_dehyphenate_dedupe(self):
        assert normalize_keywords(["React", "Kuala-Lumpur", "react", " Node  JS "]) == [
            "react",
            "kuala lumpur",
            "node js",
        ]

    def test_remote_synonym_adds_remote(self):
        assert normalize_keywords(["Fully Remote"]) == ["fully remote", "remote"]

    def test_single_string(self):
        assert normalize_keywords("Python") == ["python"]

    def test_skips_non_strings(self):
        assert normalize_keywords(["go", 3, None, ""]) == ["go"]

    def test_not_a_list(self):
        assert normalize_keywords({"a": 1}) == []


class TestIdentity:
    """Identity key and canonical URLs."""

    def test_explicit_identity_key(self):
        assert identity_key({"identityKey": " A ", "link": "https://a.com/x"}) == "A"

    def test_canonical_link(self):
        assert identity_key({"link": "HTTPS://Jobs.Example.com/j/1/#apply"}) == "https://jobs.example.com/j/1"

    def test_query_string_kept(self):
        assert canonical_url("https://my.indeed.com/viewjob?jk=abc123") == "https://my.indeed.com/viewjob?jk=abc123"

    def test_no_scheme(self):
        assert canonical_url("a.com") == "a.com"

    def test_missing(self):
        assert identity_key({"link": "   "}) is None


class TestSlug:
    def test_slug_shape(self):
        slug = make_slug("Senior React Developer", "Acme Sdn. Bhd.", "key-1")
        base, digest = slug.rsplit("-", 1)
        assert base == "senior-react-developer-acme-sdn-bhd"
        assert len(digest) == 8

    def test_slug_is_deterministic_and_key_specific(self):
        assert make_slug("Dev", "Acme", "k1") == make_slug("Dev", "Acme", "k1")
        assert make_slug("Dev", "Acme", "k1") != make_slug("Dev", "Acme", "k2")

    def test_empty_title_and_company(self):
        assert len(make_slug("", "", "k1")) == 8


class TestEmploymentTypes:
    def test_top_level_string(self):
        assert employment_types({"employmentType": "INTERN"}) == ["INTERN"]

    def test_schema_list(self):
        doc = {"schema": {"employmentType": ["FULL_TIME", "CONTRACTOR", 7]}}
        assert employment_types(doc) == ["FULL_TIME", "CONTRACTOR"]

    def test_missing(self):
        assert employment_types({}) == []


class TestTimestamps:
    def test_isoformat_utc_millis(self):
        moment = datetime(2024, 3, 10, 20, 0, tzinfo=timezone(timedelta(hours=8)))
        assert isoformat(moment) == "2024-03-10T12:00:00.000Z"

    def test_parse_date_only(self):
        assert parse_timestamp("2024-01-01") == datetime(2024, 1, 1)

    def test_parse_zulu(self):
        assert parse_timestamp("2024-03-10T12:00:00.000Z") == datetime(2024, 3, 10, 12, 0)

    def test_parse_offset_converted_to_utc(self):
        assert parse_timestamp("2024-01-01T08:00:00+08:00") == datetime(2024, 1, 1, 0, 0)

    @pytest.mark.parametrize("value", ["yesterday", "", None, 12])
    def test_unparseable(self, value):
        assert parse_timestamp(value) is None
