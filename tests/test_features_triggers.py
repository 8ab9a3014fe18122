"""
Tests for the Features API triggers and FeatureQueryService.

Tests cover:
- Status codes for unbounded (413) and ambiguous (400) queries
- GeoJSON default, format switching and the .geojson route
- ETag / If-None-Match handling
- Store and unexpected errors
- Paging as a slice of the ordered results
"""

import json

import pytest

from conftest import make_request
from geoquery.errors import StoreError
from geoquery.models import BoundingBox, QuerySpec
from features_api.service import FeatureQueryService
from features_api.triggers import get_features_triggers


def make_feature(feature_id):
    return {
        "type": "Feature",
        "id": feature_id,
        "geometry": {"type": "Point", "coordinates": [0.5, 0.5]},
        "properties": {"source": "city", "type": "streetlights", "shortName": feature_id,
                       "longName": feature_id, "info": {}}
    }


class FakeFeatureRepository:
    def __init__(self, features=None, error=None):
        self.features = features if features is not None else [make_feature(f"f{i}") for i in range(5)]
        self.error = error
        self.calls = []

    def query_by_bounding_box(self, bbox, type_filter=None, source_filter=None):
        self.calls.append(("bbox", bbox.as_list(), type_filter, source_filter))
        if self.error:
            raise self.error
        return list(self.features)

    def query_by_point(self, point, type_filter=None, source_filter=None):
        self.calls.append(("point", (point.lon, point.lat), type_filter, source_filter))
        if self.error:
            raise self.error
        return list(self.features)


@pytest.fixture
def repository():
    return FakeFeatureRepository()


@pytest.fixture
def handlers(repository):
    service = FeatureQueryService(repository)
    return {trigger["route"]: trigger["handler"] for trigger in get_features_triggers(service)}


def body_of(response):
    return json.loads(response.get_body())


class TestService:
    def test_paging_slice(self, repository):
        service = FeatureQueryService(repository)
        spec = QuerySpec(bbox=BoundingBox(min_lon=0, min_lat=0, max_lon=1, max_lat=1),
                         start_index=1, count=2)
        result = service.query(spec)
        assert [f["id"] for f in result.records] == ["f1", "f2"]
        assert result.kind == "features"

    def test_unbounded(self, repository):
        from geoquery.errors import UnboundedQueryError
        with pytest.raises(UnboundedQueryError):
            FeatureQueryService(repository).query(QuerySpec())
        assert repository.calls == []


class TestStatusCodes:
    def test_unbounded_is_413(self, handlers, repository):
        response = handlers["features"](make_request(params={"type": "parcels"}))
        assert response.status_code == 413
        assert body_of(response)["code"] == "UnboundedQuery"
        assert repository.calls == []

    def test_ambiguous_is_400(self, handlers, repository):
        response = handlers["features"](make_request(params={"bbox": "0,0,1,1", "lon": "0", "lat": "0"}))
        assert response.status_code == 400
        assert body_of(response)["code"] == "AmbiguousQuery"
        assert repository.calls == []

    def test_malformed_bbox_is_400(self, handlers):
        response = handlers["features"](make_request(params={"bbox": "0,0,1"}))
        assert response.status_code == 400
        assert body_of(response)["code"] == "MalformedBoundingBox"

    @pytest.mark.parametrize("bbox", ["nan,0,1,1", "-inf,-1,inf,1"])
    def test_non_finite_bbox_is_400(self, handlers, repository, bbox):
        response = handlers["features"](make_request(params={"bbox": bbox}))
        assert response.status_code == 400
        assert body_of(response)["code"] == "MalformedBoundingBox"
        assert repository.calls == []

    def test_non_finite_point_is_400(self, handlers, repository):
        response = handlers["features"](make_request(params={"lon": "inf", "lat": "0"}))
        assert response.status_code == 400
        assert body_of(response)["code"] == "MalformedPoint"
        assert repository.calls == []

    def test_paging_beyond_bigint_is_400(self, handlers, repository):
        response = handlers["features"](make_request(params={"bbox": "0,0,1,1", "startIndex": str(2 ** 63)}))
        assert response.status_code == 400
        assert body_of(response)["code"] == "InvalidPaging"
        assert repository.calls == []

    def test_store_error_is_500(self, repository):
        repository.error = StoreError("Database operation failed: timeout")
        handler = get_features_triggers(FeatureQueryService(repository))[0]["handler"]
        response = handler(make_request(params={"bbox": "0,0,1,1"}))
        assert response.status_code == 500
        assert body_of(response) == {"code": "StoreError", "description": "Database operation failed: timeout"}

    def test_unexpected_error_is_500(self, repository):
        repository.error = RuntimeError("boom")
        handler = get_features_triggers(FeatureQueryService(repository))[0]["handler"]
        response = handler(make_request(params={"bbox": "0,0,1,1"}))
        assert response.status_code == 500
        assert body_of(response)["code"] == "InternalServerError"


class TestRendering:
    def test_geojson_default(self, handlers, repository):
        response = handlers["features"](make_request(params={"bbox": "-1,-1,1,1", "type": "streetlights"}))

        assert response.status_code == 200
        assert response.mimetype == "application/geo+json"
        body = body_of(response)
        assert body["type"] == "FeatureCollection"
        assert len(body["features"]) == 5
        assert repository.calls == [("bbox", [-1.0, -1.0, 1.0, 1.0], "streetlights", None)]

    def test_point_lookup(self, handlers, repository):
        handlers["features"](make_request(params={"lon": "2", "lat": "3", "source": "county"}))
        assert repository.calls == [("point", (2.0, 3.0), None, "county")]

    def test_json_format(self, handlers):
        response = handlers["features"](make_request(params={"bbox": "0,0,1,1", "format": "json"}))
        assert response.mimetype == "application/json"
        assert list(body_of(response)) == ["features"]

    def test_geojson_route(self, handlers):
        request = make_request(url="http://localhost/api/features.geojson", params={"bbox": "0,0,1,1"})
        response = handlers["features.geojson"](request)
        assert response.status_code == 200
        assert response.mimetype == "application/geo+json"

    def test_geojson_route_matches_format_parameter(self, handlers):
        by_suffix = handlers["features.geojson"](
            make_request(url="http://localhost/api/features.geojson", params={"bbox": "0,0,1,1"})
        )
        by_parameter = handlers["features"](
            make_request(url="http://localhost/api/features", params={"bbox": "0,0,1,1", "format": "geojson"})
        )

        assert by_suffix.status_code == by_parameter.status_code == 200
        assert by_suffix.get_body() == by_parameter.get_body()
        assert by_suffix.headers["ETag"] == by_parameter.headers["ETag"]
        assert by_suffix.mimetype == by_parameter.mimetype

    def test_geojson_route_conflicting_format(self, handlers):
        request = make_request(url="http://localhost/api/features.geojson",
                               params={"bbox": "0,0,1,1", "format": "csv"})
        response = handlers["features.geojson"](request)
        assert response.status_code == 400
        assert body_of(response)["code"] == "InvalidFormat"

    def test_csv_format(self, handlers):
        response = handlers["features"](make_request(params={"bbox": "0,0,1,1", "format": "csv"}))
        assert response.mimetype == "text/csv"
        assert response.headers["Content-Disposition"] == 'attachment; filename="Survey Export.csv"'


class TestConditionalRequests:
    def test_etag_and_304(self, handlers):
        params = {"bbox": "0,0,1,1"}
        first = handlers["features"](make_request(params=params))
        etag = first.headers["ETag"]

        second = handlers["features"](make_request(params=params, headers={"If-None-Match": etag}))

        assert second.status_code == 304
        assert second.get_body() == b""
        assert second.headers["ETag"] == etag

    def test_stale_tag_gets_full_body(self, handlers):
        response = handlers["features"](make_request(params={"bbox": "0,0,1,1"},
                                                     headers={"If-None-Match": '"stale"'}))
        assert response.status_code == 200
        assert response.get_body()

    def test_same_query_same_etag(self, handlers):
        first = handlers["features"](make_request(params={"bbox": "0,0,1,1"}))
        second = handlers["features"](make_request(params={"bbox": "0,0,1,1"}))
        assert first.headers["ETag"] == second.headers["ETag"]
