"""
Tests for FeatureRepository against a scripted connection.

Tests cover:
- Bounding-box and point SQL and parameter order
- Property filters
- Row conversion to GeoJSON features
- Integrity warnings for features missing standard properties
- StoreError translation
"""

import psycopg
import pytest

from geoquery.errors import StoreError
from geoquery.models import BoundingBox, Point
from features_api.repository import FeatureRepository


def feature_row(feature_id, properties=None, geometry='{"type":"Point","coordinates":[0.5,0.5]}'):
    if properties is None:
        properties = {"source": "city", "type": "streetlights", "shortName": feature_id,
                      "longName": feature_id, "info": {}}
    return {"id": feature_id, "properties": properties, "geometry": geometry}


@pytest.fixture
def repository(fake_db, features_config):
    return FeatureRepository(config=features_config, connection_string="postgresql://test")


class TestBoundingBox:
    def test_sql_and_params(self, repository, fake_db):
        fake_db.results = [[feature_row("a"), feature_row("b")]]

        features = repository.query_by_bounding_box(
            BoundingBox(min_lon=-1, min_lat=-2, max_lon=1, max_lat=2)
        )

        assert [f["id"] for f in features] == ["a", "b"]
        assert "ST_Intersects" in fake_db.last_sql
        assert "ST_MakeEnvelope(%s, %s, %s, %s, 4326)" in fake_db.last_sql
        assert '"geo"."features"' in fake_db.last_sql
        assert "ORDER BY id" in fake_db.last_sql
        assert fake_db.last_params == (6, -1.0, -2.0, 1.0, 2.0)

    def test_filters(self, repository, fake_db):
        fake_db.results = [[]]

        repository.query_by_bounding_box(
            BoundingBox(min_lon=0, min_lat=0, max_lon=1, max_lat=1),
            type_filter="parcels",
            source_filter="county"
        )

        assert "properties->>'type' = %s" in fake_db.last_sql
        assert "properties->>'source' = %s" in fake_db.last_sql
        assert fake_db.last_params[-2:] == ("parcels", "county")

    def test_statement_timeout_applied(self, repository, fake_db):
        fake_db.results = [[]]
        repository.query_by_bounding_box(BoundingBox(min_lon=0, min_lat=0, max_lon=1, max_lat=1))
        assert fake_db.timeouts == [("30000",)]
        assert fake_db.commits == 1
        assert fake_db.closed == 1


class TestPoint:
    def test_polygons_only(self, repository, fake_db):
        fake_db.results = [[feature_row("lot-1", geometry='{"type":"Polygon","coordinates":[]}')]]

        features = repository.query_by_point(Point(lon=3.5, lat=-7.25), type_filter="parcels")

        assert features[0]["geometry"]["type"] == "Polygon"
        assert "ST_Contains" in fake_db.last_sql
        assert "'ST_Polygon', 'ST_MultiPolygon'" in fake_db.last_sql
        assert fake_db.last_params == (6, 3.5, -7.25, "parcels")


class TestConversion:
    def test_feature_shape(self, repository, fake_db):
        fake_db.results = [[feature_row("a")]]
        feature = repository.query_by_point(Point(lon=0, lat=0))[0]
        assert feature == {
            "type": "Feature",
            "id": "a",
            "geometry": {"type": "Point", "coordinates": [0.5, 0.5]},
            "properties": {"source": "city", "type": "streetlights", "shortName": "a",
                           "longName": "a", "info": {}}
        }

    def test_properties_as_text(self, repository, fake_db):
        row = feature_row("a")
        row["properties"] = '{"source":"city","type":"t","shortName":"a","longName":"a","info":{}}'
        fake_db.results = [[row]]
        feature = repository.query_by_point(Point(lon=0, lat=0))[0]
        assert feature["properties"]["source"] == "city"

    def test_null_geometry(self, repository, fake_db):
        fake_db.results = [[feature_row("a", geometry=None)]]
        assert repository.query_by_point(Point(lon=0, lat=0))[0]["geometry"] is None


class TestIntegrity:
    def test_missing_standard_properties(self, fake_db, features_config):
        seen = []
        repository = FeatureRepository(
            config=features_config,
            connection_string="postgresql://test",
            on_integrity_warning=seen.append
        )
        fake_db.results = [[feature_row("ok"), feature_row("bare", properties={"type": "parcels"})]]

        features = repository.query_by_bounding_box(BoundingBox(min_lon=0, min_lat=0, max_lon=1, max_lat=1))

        assert len(features) == 2
        assert repository.integrity_warnings == 1
        assert seen[0].details["feature_id"] == "bare"
        assert seen[0].details["missing"] == ["source", "shortName", "longName", "info"]


class TestErrors:
    def test_store_error(self, repository, fake_db):
        fake_db.error = psycopg.OperationalError("canceling statement due to statement timeout")

        with pytest.raises(StoreError) as exc_info:
            repository.query_by_point(Point(lon=0, lat=0))

        assert exc_info.value.status_code == 500
        assert fake_db.rollbacks == 1
        assert fake_db.closed == 1

    def test_connect_failure(self, repository, fake_db):
        fake_db.connect_error = psycopg.OperationalError("connection refused")
        with pytest.raises(StoreError):
            repository.query_by_point(Point(lon=0, lat=0))
