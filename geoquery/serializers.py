# ============================================================================
# MODULE CONTEXT - FORMAT SERIALIZER
# ============================================================================
# STATUS: Shared Service - Output encoding
# PURPOSE: Render feature and response result sets as JSON, GeoJSON, CSV and KML
# LAST_REVIEWED: 18 OCT 2026
# EXPORTS: FormatSerializer, flatten_record, unflatten_record, json_bytes,
#          CONTENT_TYPES, EXPORT_FILENAME
# DEPENDENCIES: simplekml, csv, json, re
# PATTERNS: Strategy per output format
# ============================================================================

"""
FormatSerializer - output encodings for the query engine.

    json     {"features": [...]} or {"responses": [...]}
    geojson  FeatureCollection; responses become Point features built from
             geo_info.centroid ([lon, lat]), null geometry when absent
    csv      one row per record, nested keys flattened to paths
             (geo_info.centroid[0]), columns in first-seen order
    kml      one Placemark per geo-located record, every field as ExtendedData

Every encoding is deterministic: the same records always produce the same
bytes, which is what makes the ETag stable.

Date: 18 OCT 2026
"""

import csv
import io
import json
import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

import simplekml

from .errors import InvalidFormatError
from .models import OutputFormat, RenderedResult, ResultSet

CONTENT_TYPES = {
    OutputFormat.JSON: "application/json",
    OutputFormat.GEOJSON: "application/geo+json",
    OutputFormat.CSV: "text/csv",
    OutputFormat.KML: "application/vnd.google-earth.kml+xml"
}

EXPORT_FILENAME = "Survey Export"

# simplekml numbers elements from process-wide counters
_KML_ID_PATTERN = re.compile(
    r'(<[A-Za-z][\w:]*\s+id="|<styleUrl>#)(feat|geom|link|substyle|stylesel|region)_(\d+)(?=["<])'
)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def json_bytes(data: Any) -> bytes:
    """Compact, deterministic UTF-8 JSON."""
    return json.dumps(
        data,
        separators=(",", ":"),
        ensure_ascii=False,
        default=_json_default
    ).encode("utf-8")


def flatten_record(record: Dict[str, Any]) -> Dict[str, Any]:
    """
    Flatten nested dicts and lists into path keys.

    Dict keys are joined with "." and list positions are written as [i]:
    {"geo_info": {"centroid": [1.5, 2.5]}} -> {"geo_info.centroid[0]": 1.5,
    "geo_info.centroid[1]": 2.5}. A ".", "[" or "\\" inside a key is
    backslash-escaped, so every distinct scalar gets its own column.
    Empty containers become empty cells.
    """
    flat: Dict[str, Any] = {}
    for key, value in record.items():
        _flatten_value(flat, _escape_key(key), value)
    return flat


def _flatten_value(flat: Dict[str, Any], path: str, value: Any) -> None:
    if isinstance(value, dict) and value:
        for key, item in value.items():
            _flatten_value(flat, f"{path}.{_escape_key(key)}", item)
    elif isinstance(value, (list, tuple)) and value:
        for index, item in enumerate(value):
            _flatten_value(flat, f"{path}[{index}]", item)
    elif isinstance(value, (dict, list, tuple)):
        flat[path] = None
    else:
        flat[path] = value


def _escape_key(key: Any) -> str:
    return str(key).replace("\\", "\\\\").replace(".", "\\.").replace("[", "\\[")


def _split_path(path: str) -> List[Any]:
    """Inverse of the path building in flatten_record: str keys, int list positions."""
    segments: List[Any] = []
    buffer: List[str] = []
    key_open = True
    i = 0
    while i < len(path):
        char = path[i]
        if char == "\\" and i + 1 < len(path):
            buffer.append(path[i + 1])
            key_open = True
            i += 2
            continue
        if char == ".":
            if key_open:
                segments.append("".join(buffer))
            buffer = []
            key_open = True
            i += 1
            continue
        if char == "[":
            close = path.find("]", i)
            token = path[i + 1:close] if close != -1 else ""
            if token.isdigit():
                if key_open:
                    segments.append("".join(buffer))
                buffer = []
                key_open = False
                segments.append(int(token))
                i = close + 1
                continue
        buffer.append(char)
        key_open = True
        i += 1
    if key_open:
        segments.append("".join(buffer))
    return segments


def unflatten_record(flat: Dict[str, Any]) -> Dict[str, Any]:
    """
    Rebuild nesting from path keys produced by flatten_record.

    Only [i] segments become list positions; dict keys made of digits stay
    dict keys. Values are left as given, so CSV cells come back as strings.
    """
    root: Dict[Any, Any] = {}
    for path, value in flat.items():
        segments = _split_path(path)
        node = root
        for segment in segments[:-1]:
            child = node.get(segment)
            if not isinstance(child, dict):
                child = node[segment] = {}
            node = child
        node[segments[-1]] = value
    return _lists_from_positions(root)


def _lists_from_positions(node: Any) -> Any:
    if not isinstance(node, dict):
        return node
    converted = {key: _lists_from_positions(value) for key, value in node.items()}
    if converted and all(isinstance(key, int) for key in converted):
        return [converted[key] for key in sorted(converted)]
    return converted


def _csv_cell(value: Any) -> Any:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


class FormatSerializer:
    """
    Render a ResultSet into bytes plus headers.

    Records are treated generically: response records can carry any extra
    keys and opaque `responses` values, and all of them are written out.
    """

    def render(self, result_set: ResultSet, fmt: Optional[OutputFormat] = None) -> RenderedResult:
        fmt = fmt or result_set.format
        if fmt == OutputFormat.JSON:
            body = json_bytes({result_set.kind: result_set.records})
            return RenderedResult(body=body, content_type=CONTENT_TYPES[fmt])
        if fmt == OutputFormat.GEOJSON:
            body = json_bytes(self._feature_collection(result_set))
            return RenderedResult(body=body, content_type=CONTENT_TYPES[fmt])
        if fmt == OutputFormat.CSV:
            return RenderedResult(
                body=self._csv(result_set.records),
                content_type=CONTENT_TYPES[fmt],
                content_disposition=self._attachment("csv")
            )
        if fmt == OutputFormat.KML:
            return RenderedResult(
                body=self._kml(result_set),
                content_type=CONTENT_TYPES[fmt],
                content_disposition=self._attachment("kml")
            )
        raise InvalidFormatError(f"Unsupported format '{fmt}'")

    @staticmethod
    def _attachment(extension: str) -> str:
        return f'attachment; filename="{EXPORT_FILENAME}.{extension}"'

    # ------------------------------------------------------------------
    # GeoJSON
    # ------------------------------------------------------------------

    def _feature_collection(self, result_set: ResultSet) -> Dict[str, Any]:
        if result_set.kind == "features":
            features = result_set.records
        else:
            features = [self._response_as_feature(record) for record in result_set.records]
        return {"type": "FeatureCollection", "features": features}

    @staticmethod
    def _response_as_feature(record: Dict[str, Any]) -> Dict[str, Any]:
        centroid = _centroid(record)
        geometry = None
        if centroid is not None:
            geometry = {"type": "Point", "coordinates": [centroid[0], centroid[1]]}
        return {
            "type": "Feature",
            "id": record.get("id"),
            "geometry": geometry,
            "properties": record
        }

    # ------------------------------------------------------------------
    # CSV
    # ------------------------------------------------------------------

    def _csv(self, records: List[Dict[str, Any]]) -> bytes:
        rows = [flatten_record(record) for record in records]

        columns: Dict[str, None] = {}
        for row in rows:
            for key in row:
                columns.setdefault(key, None)

        buffer = io.StringIO()
        writer = csv.DictWriter(buffer, fieldnames=list(columns), restval="", lineterminator="\r\n")
        writer.writeheader()
        for row in rows:
            writer.writerow({key: _csv_cell(value) for key, value in row.items()})
        return buffer.getvalue().encode("utf-8")

    # ------------------------------------------------------------------
    # KML
    # ------------------------------------------------------------------

    def _kml(self, result_set: ResultSet) -> bytes:
        kml = simplekml.Kml(name=EXPORT_FILENAME)

        for record in result_set.records:
            if result_set.kind == "features":
                geometry = record.get("geometry")
                name = (record.get("properties") or {}).get("shortName") or record.get("id")
                data = flatten_record(record.get("properties") or {})
            else:
                centroid = _centroid(record)
                geometry = None
                if centroid is not None:
                    geometry = {"type": "Point", "coordinates": centroid}
                name = record.get("id")
                data = flatten_record(record)

            placemark = self._placemark(kml, geometry, name)
            if placemark is None:
                continue
            for key, value in data.items():
                placemark.extendeddata.newdata(name=key, value=_csv_cell(value))

        return _renumber_kml_ids(kml.kml()).encode("utf-8")

    def _placemark(self, kml: simplekml.Kml, geometry: Optional[Dict[str, Any]], name: Any):
        if not geometry:
            return None
        name = "" if name is None else str(name)
        geom_type = geometry.get("type")
        coordinates = geometry.get("coordinates")

        if geom_type == "Point":
            return kml.newpoint(name=name, coords=[(coordinates[0], coordinates[1])])
        if geom_type == "Polygon":
            polygon = kml.newpolygon(name=name)
            _set_rings(polygon, coordinates)
            return polygon
        if geom_type == "MultiPolygon":
            multi = kml.newmultigeometry(name=name)
            for rings in coordinates:
                _set_rings(multi.newpolygon(), rings)
            return multi
        return None


def _centroid(record: Dict[str, Any]) -> Optional[Tuple[float, float]]:
    geo_info = record.get("geo_info")
    if not isinstance(geo_info, dict):
        return None
    centroid = geo_info.get("centroid")
    if not centroid:
        return None
    return centroid[0], centroid[1]


def _ring(coordinates: Iterable[Iterable[float]]) -> List[Tuple[float, float]]:
    return [(position[0], position[1]) for position in coordinates]


def _set_rings(polygon, rings: List[Any]) -> None:
    polygon.outerboundaryis = _ring(rings[0])
    if len(rings) > 1:
        polygon.innerboundaryis = [_ring(inner) for inner in rings[1:]]


def _renumber_kml_ids(document: str) -> str:
    """
    Replace simplekml's global element counters with per-document ones.

    Only id attributes and styleUrl references are rewritten; text nodes
    cannot open a tag because simplekml escapes "<".
    """
    mapping: Dict[str, str] = {}
    counters: Dict[str, int] = {}

    def replace(match: "re.Match[str]") -> str:
        context, prefix, number = match.groups()
        original = f"{prefix}_{number}"
        if original not in mapping:
            mapping[original] = f"{prefix}_{counters.get(prefix, 0)}"
            counters[prefix] = counters.get(prefix, 0) + 1
        return context + mapping[original]

    return _KML_ID_PATTERN.sub(replace, document)
