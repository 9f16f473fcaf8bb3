"""
Tests for airspace zones and their loaders.
"""

import json
import pytest
import sys
from pathlib import Path

from shapely.geometry import Point, Polygon

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from flightdeck.airspace.zones import (
    AirspaceZone,
    ZoneIndex,
    altitude_to_meters,
    load_zones,
    load_zones_file,
    parse_altitude_reference,
    parse_geojson_feature,
    parse_legacy_zone,
)
from flightdeck.exceptions import ReferenceDataError


def geojson_square(name, lat0, lon0, size, lower=None, upper=None, **properties):
    """GeoJSON feature for a square (lon, lat order, closed ring)."""
    ring = [
        [lon0, lat0], [lon0 + size, lat0], [lon0 + size, lat0 + size],
        [lon0, lat0 + size], [lon0, lat0],
    ]
    props = {"Name": name, "ID": name.lower(), "ASType": "CTR", "ASClass": "D"}
    if lower is not None:
        props["Lower"] = lower
    if upper is not None:
        props["Upper"] = upper
    props.update(properties)
    return {
        "type": "Feature",
        "properties": props,
        "geometry": {"type": "Polygon", "coordinates": [ring]},
    }


def limit(value, kind):
    """Altitude limit block as published."""
    return {"Metric": {"Alt": {"Altitude": value, "Type": kind}}}


class TestAltitudes:
    """Tests for altitude conversion."""

    def test_flight_level(self):
        """FL95 is 9500 ft."""
        assert altitude_to_meters(95, "FL") == pytest.approx(2895.6)

    def test_feet(self):
        """Feet limits are converted."""
        assert altitude_to_meters(5000, "QNH", "ft") == pytest.approx(1524.0)

    def test_meters(self):
        """Metric limits pass through."""
        assert altitude_to_meters(1500, "QNH") == 1500.0

    def test_reference_parsing(self):
        """Reference strings are normalized."""
        assert parse_altitude_reference("FL") == "FL"
        assert parse_altitude_reference("ft AGL") == "AGL"
        assert parse_altitude_reference("GND") == "AGL"
        assert parse_altitude_reference("STD") == "STD"
        assert parse_altitude_reference(None) == "QNH"
        assert parse_altitude_reference("MSL") == "QNH"


class TestAirspaceZone:
    """Tests for AirspaceZone class."""

    def make_zone(self, **kwargs):
        polygon = ((46.0, 7.0), (46.0, 8.0), (47.0, 8.0), (47.0, 7.0))
        return AirspaceZone("z", "Zone", "R", None, polygon, 500.0, 3000.0, **kwargs)

    def test_contains(self):
        """Inside both the polygon and the altitude band."""
        zone = self.make_zone()
        assert zone.contains(46.5, 7.5, 1000.0)
        assert zone.contains(46.5, 7.5, 500.0)
        assert zone.contains(46.5, 7.5, 3000.0)

    def test_outside_altitude_band(self):
        """Below or above the band is outside."""
        zone = self.make_zone()
        assert not zone.contains(46.5, 7.5, 499.0)
        assert not zone.contains(46.5, 7.5, 3001.0)

    def test_unknown_altitude(self):
        """NaN, infinite or missing altitudes are never inside a band."""
        zone = self.make_zone()
        assert not zone.contains(46.5, 7.5, float("nan"))
        assert not zone.contains(46.5, 7.5, float("inf"))
        assert not zone.contains(46.5, 7.5, None)
        high = AirspaceZone(
            "h", "High", "R", None, zone.polygon, 3000.0, 5000.0
        )
        assert not high.contains(46.5, 7.5, float("nan"))
        assert high.contains(46.5, 7.5, 4000.0)

    def test_outside_polygon(self):
        """Outside the bounding box is outside."""
        assert not self.make_zone().contains(45.5, 7.5, 1000.0)

    def test_informational(self):
        """Informational zones never contain anything."""
        assert not self.make_zone(informational=True).contains(46.5, 7.5, 1000.0)

    def test_bbox(self):
        """Bounding box is derived from the polygon."""
        assert self.make_zone().bbox == (46.0, 7.0, 47.0, 8.0)

    def test_geometry(self):
        """The outline is kept as a lon/lat shapely polygon."""
        zone = self.make_zone()
        assert isinstance(zone.geometry, Polygon)
        assert zone.geometry.bounds == (7.0, 46.0, 8.0, 47.0)
        assert zone.geometry.contains(Point(7.5, 46.5))

    def test_too_few_vertices(self):
        """A zone with fewer than three vertices has no outline."""
        zone = AirspaceZone("z", "Line", "R", None, ((46.0, 7.0), (47.0, 8.0)), 0.0, 3000.0)
        assert zone.geometry is None
        assert not zone.contains(46.5, 7.5, 1000.0)


class TestGeoJsonLoading:
    """Tests for GeoJSON parsing."""

    def test_feature(self):
        """Properties and geometry are read, lon/lat swapped and ring opened."""
        feature = geojson_square(
            "Bern CTR", 46.9, 7.4, 0.1,
            lower=limit(0, "GND"), upper=limit(1500, "QNH"),
            Frequency="121.025", Callsign="Bern Tower",
        )
        zone = parse_geojson_feature(feature)
        assert zone.id == "bern ctr"
        assert zone.kind == "CTR"
        assert zone.zone_class == "D"
        assert len(zone.polygon) == 4
        assert zone.polygon[0] == (46.9, 7.4)
        assert zone.lower_altitude_m == 0.0
        assert zone.lower_reference == "AGL"
        assert zone.upper_altitude_m == 1500.0
        assert zone.frequency == "121.025"
        assert zone.callsign == "Bern Tower"
        assert zone.contains(46.95, 7.45, 1000.0)

    def test_flight_level_limit(self):
        """Upper limits in flight levels are stored in meters."""
        zone = parse_geojson_feature(
            geojson_square("TMA", 46.0, 7.0, 1.0, upper=limit(100, "FL"))
        )
        assert zone.upper_altitude_m == pytest.approx(3048.0)
        assert zone.upper_reference == "FL"

    def test_missing_limits_use_defaults(self):
        """Without limits a zone spans all altitudes."""
        zone = parse_geojson_feature(geojson_square("R1", 46.0, 7.0, 1.0))
        assert zone.lower_altitude_m == 0.0
        assert zone.upper_altitude_m == 99999.0

    def test_multipolygon_uses_first(self):
        """MultiPolygons use their first polygon."""
        feature = geojson_square("Multi", 46.0, 7.0, 1.0)
        ring = feature["geometry"]["coordinates"]
        feature["geometry"] = {"type": "MultiPolygon", "coordinates": [ring, ring]}
        zone = parse_geojson_feature(feature)
        assert len(zone.polygon) == 4

    def test_degenerate_polygon_skipped(self):
        """Fewer than 3 distinct vertices are dropped."""
        feature = geojson_square("Line", 46.0, 7.0, 1.0)
        feature["geometry"]["coordinates"] = [[[7.0, 46.0], [8.0, 46.0], [7.0, 46.0]]]
        assert parse_geojson_feature(feature) is None

    def test_bad_geometry_skipped(self):
        """Unreadable coordinates are dropped."""
        feature = geojson_square("Bad", 46.0, 7.0, 1.0)
        feature["geometry"]["coordinates"] = [[["x", "y"], [8.0, 46.0], [8.0, 47.0]]]
        assert parse_geojson_feature(feature) is None
        assert parse_geojson_feature({"properties": {"Name": "Empty"}}) is None
        assert parse_geojson_feature("nope") is None

    def test_feature_collection(self):
        """A collection loads its valid features in order."""
        data = {
            "type": "FeatureCollection",
            "features": [
                geojson_square("A", 46.0, 7.0, 1.0),
                {"type": "Feature", "properties": {"Name": "Broken"}, "geometry": None},
                geojson_square("B", 47.0, 8.0, 1.0),
            ],
        }
        zones = load_zones(data)
        assert [z.name for z in zones] == ["A", "B"]

    def test_no_feature_list(self):
        """Unrecognized documents load nothing."""
        assert load_zones({"type": "FeatureCollection"}) == []
        assert load_zones(None) == []


class TestLegacyLoading:
    """Tests for the flat legacy zone format."""

    def test_legacy_zone(self):
        """Legacy records use lat/lng points and min/max altitude."""
        record = {
            "id": "lsr-1",
            "name": "Thun Restricted",
            "type": "Restricted",
            "class": "R",
            "minAltitude": 0,
            "maxAltitude": 95,
            "maxAltitudeType": "FL",
            "polygon": [
                {"lat": 46.7, "lng": 7.6}, {"lat": 46.7, "lng": 7.7},
                {"lat": 46.8, "lng": 7.7}, {"lat": 46.8, "lng": 7.6},
            ],
        }
        zone = parse_legacy_zone(record)
        assert zone.id == "lsr-1"
        assert zone.zone_class == "R"
        assert zone.polygon[1] == (46.7, 7.7)
        assert zone.lower_altitude_m == 0.0
        assert zone.upper_altitude_m == pytest.approx(2895.6)

    def test_legacy_document(self):
        """The restrictedZones wrapper is recognized."""
        zones = load_zones({"restrictedZones": [
            {"name": "Tiny", "polygon": [{"lat": 46.0, "lng": 7.0}]},
            {"name": "Ok", "polygon": [
                {"lat": 46.0, "lng": 7.0}, {"lat": 46.0, "lng": 7.1}, {"lat": 46.1, "lng": 7.1},
            ]},
        ]})
        assert [z.name for z in zones] == ["Ok"]
        assert zones[0].kind == "Restricted"


class TestZoneIndex:
    """Tests for ZoneIndex class."""

    def test_zones_at(self):
        """All containing zones are returned."""
        outer = parse_geojson_feature(geojson_square("Outer", 46.0, 7.0, 1.0))
        inner = parse_geojson_feature(geojson_square("Inner", 46.4, 7.4, 0.2))
        index = ZoneIndex([outer, inner])
        assert len(index) == 2
        assert [z.name for z in index.zones_at(46.5, 7.5, 1000)] == ["Outer", "Inner"]
        assert [z.name for z in index.zones_at(46.1, 7.1, 1000)] == ["Outer"]
        assert index.zones_at(45.0, 7.0, 1000) == []

    def test_nearby_zones(self):
        """Zones with a vertex within the radius are nearby."""
        zone = parse_geojson_feature(geojson_square("Near", 46.0, 7.0, 0.01))
        info = parse_geojson_feature(
            geojson_square("Info", 46.0, 7.0, 0.01, Informational=True)
        )
        index = ZoneIndex([zone, info])
        assert index.nearby_zones(46.03, 7.0, radius_m=5000) == [zone]
        assert index.nearby_zones(46.2, 7.0, radius_m=5000) == []

    def test_informational_zones_not_indexed(self):
        """Only zones that can match go into the spatial index."""
        zone = parse_geojson_feature(geojson_square("Zone", 46.0, 7.0, 1.0))
        info = parse_geojson_feature(
            geojson_square("Info", 46.0, 7.0, 1.0, Informational=True)
        )
        index = ZoneIndex([info, zone])
        assert len(index) == 2
        assert index.zones_at(46.5, 7.5, 1000) == [zone]

    def test_nan_altitude_matches_nothing(self):
        """A NaN altitude is outside every zone."""
        index = ZoneIndex([parse_geojson_feature(geojson_square("Zone", 46.0, 7.0, 1.0))])
        assert index.zones_at(46.5, 7.5, float("nan")) == []

    def test_empty_index(self):
        """Without zones every query is empty."""
        index = ZoneIndex()
        assert len(index) == 0
        assert index.zones_at(46.5, 7.5, 1000) == []
        assert index.nearby_zones(46.5, 7.5) == []


class TestZoneFile:
    """Tests for load_zones_file function."""

    def test_load_file(self, tmp_path):
        """A GeoJSON file loads."""
        path = tmp_path / "airspace.geojson"
        path.write_text(json.dumps({
            "type": "FeatureCollection",
            "features": [geojson_square("A", 46.0, 7.0, 1.0)],
        }))
        assert len(load_zones_file(str(path))) == 1

    def test_unreadable_file(self, tmp_path):
        """Missing or broken files raise ReferenceDataError."""
        with pytest.raises(ReferenceDataError):
            load_zones_file(str(tmp_path / "missing.geojson"))
        broken = tmp_path / "broken.geojson"
        broken.write_text("{")
        with pytest.raises(ReferenceDataError):
            load_zones_file(str(broken))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
