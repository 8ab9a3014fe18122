"""
Tests for ResponseRepository against a scripted connection.

Tests cover:
- Listing SQL: survey/parcel filters, strict bbox, ordering and paging params
- Row to record conversion (created as ISO-8601 UTC)
- Duplicate ids reported as integrity warnings
- Single insert with and without a centroid
- Deletes returning counts
"""

from datetime import datetime, timezone

import pytest
from psycopg import sql
from psycopg.types.json import Jsonb

from geoquery.models import BoundingBox, SortOrder
from responses_api.repository import ResponseRepository, isoformat_utc


CREATED = datetime(2026, 10, 18, 12, 0, 0, 250, tzinfo=timezone.utc)


def response_row(response_id, seq=1, doc=None):
    return {
        "seq": seq,
        "id": response_id,
        "survey": "s1",
        "created": CREATED,
        "doc": doc if doc is not None else {"id": response_id, "survey": "s1", "responses": {"q1": "yes"}}
    }


@pytest.fixture
def repository(fake_db, responses_config):
    return ResponseRepository(config=responses_config, connection_string="postgresql://test")


def test_isoformat_utc():
    assert isoformat_utc(CREATED) == "2026-10-18T12:00:00.000250Z"
    assert isoformat_utc(datetime(2026, 1, 2, 3, 4, 5)) == "2026-01-02T03:04:05.000000Z"


class TestList:
    def test_defaults(self, repository, fake_db):
        fake_db.results = [[response_row("r1")]]

        records = repository.list("s1")

        assert records == [{
            "id": "r1",
            "survey": "s1",
            "responses": {"q1": "yes"},
            "created": "2026-10-18T12:00:00.000250Z"
        }]
        assert "ORDER BY created DESC, seq DESC" in fake_db.last_sql
        assert "LIMIT %s OFFSET %s" in fake_db.last_sql
        assert fake_db.last_params == ("s1", None, 0)

    def test_paging_and_sort(self, repository, fake_db):
        fake_db.results = [[]]
        repository.list("s1", start_index=20, count=10, sort=SortOrder.ASC)
        assert "ORDER BY created ASC, seq ASC" in fake_db.last_sql
        assert fake_db.last_params == ("s1", 10, 20)

    def test_parcel_filter(self, repository, fake_db):
        fake_db.results = [[]]
        repository.list_by_parcel("s1", "P-7", count=5)
        assert "parcel_id = %s" in fake_db.last_sql
        assert fake_db.last_params == ("s1", "P-7", 5, 0)

    def test_bbox_is_strict(self, repository, fake_db):
        fake_db.results = [[]]
        repository.list("s1", bbox=BoundingBox(min_lon=-10, min_lat=-5, max_lon=10, max_lat=5))

        assert "centroid IS NOT NULL" in fake_db.last_sql
        assert "ST_X(centroid) > %s AND ST_X(centroid) < %s" in fake_db.last_sql
        assert "ST_Y(centroid) > %s AND ST_Y(centroid) < %s" in fake_db.last_sql
        assert fake_db.last_params == ("s1", -10.0, 10.0, -5.0, 5.0, None, 0)

    def test_table_location(self, repository, fake_db):
        fake_db.results = [[]]
        repository.list("s1")
        assert '"public"."responses"' in fake_db.last_sql


class TestGetOne:
    def test_missing(self, repository, fake_db):
        fake_db.results = [[]]
        assert repository.get_one("s1", "nope") is None
        assert fake_db.last_params == ("s1", "nope")

    def test_duplicates_return_first_and_warn(self, fake_db, responses_config):
        seen = []
        repository = ResponseRepository(
            config=responses_config,
            connection_string="postgresql://test",
            on_integrity_warning=seen.append
        )
        fake_db.results = [[
            response_row("dup", seq=3, doc={"responses": {"copy": 1}}),
            response_row("dup", seq=9, doc={"responses": {"copy": 2}})
        ]]

        record = repository.get_one("s1", "dup")

        assert record["responses"] == {"copy": 1}
        assert "ORDER BY seq" in fake_db.last_sql
        assert repository.integrity_warnings == 1
        assert seen[0].details == {"survey_id": "s1", "response_id": "dup", "occurrences": 2}


class TestInsert:
    def test_with_centroid(self, repository, fake_db):
        record = {
            "id": "r1",
            "survey": "s1",
            "created": "2026-10-18T12:00:00.000000Z",
            "geo_info": {"centroid": [-122.5, 37.75], "parcel_id": 1042},
            "responses": {"q1": "yes"}
        }
        fake_db.results = [1]

        stored = repository.insert(record)

        assert stored is record
        assert "ST_SetSRID(ST_MakePoint(%s, %s), 4326)" in fake_db.last_sql
        params = fake_db.last_params
        assert params[:6] == ("r1", "s1", "1042", "2026-10-18T12:00:00.000000Z", -122.5, 37.75)
        assert isinstance(params[6], Jsonb)
        assert params[6].obj == record
        assert fake_db.commits == 1

    def test_without_centroid(self, repository, fake_db):
        record = {"id": "r2", "survey": "s1", "created": "2026-10-18T12:00:00.000000Z", "parcel_id": "P-1"}
        fake_db.results = [1]

        repository.insert(record)

        assert "NULL, %s)" in fake_db.last_sql
        assert fake_db.last_params[:4] == ("r2", "s1", "P-1", "2026-10-18T12:00:00.000000Z")
        assert len(fake_db.last_params) == 5


class TestRemove:
    def test_remove_survey(self, repository, fake_db):
        fake_db.results = [3]
        assert repository.remove("s1") == 3
        assert fake_db.last_sql.startswith('DELETE FROM "public"."responses"')
        assert fake_db.last_params == ("s1",)

    def test_remove_one(self, repository, fake_db):
        fake_db.results = [0]
        assert repository.remove_one("s1", "r9") == 0
        assert fake_db.last_params == ("s1", "r9")

    def test_execute_query_requires_composed(self, repository):
        with pytest.raises(TypeError):
            repository._execute_query("DELETE FROM responses")

    def test_execute_query_returns_zero_for_unknown_rowcount(self, repository, fake_db):
        fake_db.results = [-1]
        assert repository._execute_query(sql.SQL("SELECT 1").format()) == 0


class TestConnectionString:
    def test_built_for_every_connection(self, fake_db, responses_config, monkeypatch):
        import infrastructure.postgresql as postgresql

        builds = []

        def build():
            builds.append(1)
            return f"postgresql://token-{len(builds)}@db/surveys"

        monkeypatch.setattr(postgresql, "get_postgres_connection_string", build)
        repository = ResponseRepository(config=responses_config)
        assert builds == []

        fake_db.results = [1, 1]
        repository.remove("s1")
        repository.remove("s2")

        assert len(builds) == 2
        assert fake_db.conninfos == ["postgresql://token-1@db/surveys", "postgresql://token-2@db/surveys"]

    def test_explicit_string_is_used_as_given(self, repository, fake_db):
        fake_db.results = [1]
        repository.remove("s1")
        assert fake_db.conninfos == ["postgresql://test"]
