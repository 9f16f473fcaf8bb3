"""
Tests for site resolution and site reference loading.
"""

import json
import pytest
import sys
from pathlib import Path

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from flightdeck.exceptions import ReferenceDataError
from flightdeck.tracking.models import NamedSite, ResolutionSource, SiteType
from flightdeck.tracking.sites import (
    SiteResolver,
    load_sites,
    load_sites_file,
    nearest_site_of_type,
    parse_site,
    sites_within_proximity,
)

# One degree of latitude is ~111.2 km, so 0.001 deg is ~111 m
TAKEOFF = NamedSite("amisbuehl", "Amisbühl", SiteType.TAKEOFF, 46.7000, 7.8900, 1350.0)
LANDING = NamedSite("hoehematte", "Höhematte", SiteType.LANDING, 46.6860, 7.8630, 568.0)
FAR_LANDING = NamedSite("lehn", "Lehn", SiteType.LANDING, 46.7500, 7.9500, 600.0)


@pytest.fixture
def resolver():
    """Resolver with one takeoff and two landing sites."""
    return SiteResolver([TAKEOFF, LANDING, FAR_LANDING])


class TestNearestSiteOfType:
    """Tests for nearest_site_of_type function."""

    def test_picks_closest_of_type(self):
        """The closest landing wins, takeoff sites are ignored."""
        site = nearest_site_of_type(
            46.6999, 7.8899, 1350, [TAKEOFF, LANDING, FAR_LANDING], SiteType.LANDING
        )
        assert site == LANDING

    def test_no_site_of_type(self):
        """Without a site of the type there is no answer."""
        assert nearest_site_of_type(46.7, 7.89, 0, [TAKEOFF], SiteType.LANDING) is None
        assert nearest_site_of_type(46.7, 7.89, 0, [], SiteType.TAKEOFF) is None


class TestSitesWithinProximity:
    """Tests for sites_within_proximity function."""

    def test_horizontal_and_vertical(self):
        """Both thresholds must hold."""
        near = sites_within_proximity(46.7005, 7.8900, 1400, [TAKEOFF, LANDING])
        assert near == [TAKEOFF]  # ~56 m away, 50 m higher

        too_high = sites_within_proximity(46.7005, 7.8900, 1500, [TAKEOFF])
        assert too_high == []

        too_far = sites_within_proximity(46.7010, 7.8900, 1350, [TAKEOFF])
        assert too_far == []  # ~111 m away

    def test_sorted_by_distance(self):
        """Closer sites come first."""
        a = NamedSite("a", "A", SiteType.TAKEOFF, 46.0005, 7.0, 0.0)
        b = NamedSite("b", "B", SiteType.LANDING, 46.0002, 7.0, 0.0)
        assert sites_within_proximity(46.0, 7.0, 0.0, [a, b]) == [b, a]


class TestSiteResolver:
    """Tests for SiteResolver class."""

    def test_typed_match_has_no_distance_cutoff(self, resolver):
        """A takeoff site ~450 m away still names the takeoff."""
        site = resolver.resolve(46.7040, 7.8900, 1200, SiteType.TAKEOFF)
        assert site.name == "Amisbühl"
        assert site.site_id == "amisbuehl"
        assert site.source == ResolutionSource.TYPED
        assert site.altitude == 1350.0

    def test_landing_uses_landing_sites(self, resolver):
        """A landing next to the takeoff still resolves to a landing site."""
        site = resolver.resolve(46.7000, 7.8900, 1350, SiteType.LANDING)
        assert site.name == "Höhematte"

    def test_proximity_match_of_other_type(self):
        """With no landing sites, a nearby takeoff site labels the landing."""
        resolver = SiteResolver([TAKEOFF])
        site = resolver.resolve(46.7003, 7.8900, 1340, SiteType.LANDING)
        assert site.name == "Amisbühl"
        assert site.source == ResolutionSource.PROXIMITY

    def test_fallback_label(self):
        """Without any match the label carries rounded coordinates."""
        resolver = SiteResolver([])
        takeoff = resolver.resolve(46.686312, 7.863249, 568, SiteType.TAKEOFF)
        assert takeoff.name == "Unknown Takeoff (46.6863, 7.8632)"
        assert takeoff.source == ResolutionSource.FALLBACK
        assert takeoff.site_id is None
        assert takeoff.latitude == 46.686312

        landing = SiteResolver([TAKEOFF]).resolve(46.0, 7.0, 400, SiteType.LANDING)
        assert landing.name == "Unknown Landing (46.0000, 7.0000)"

    def test_nearest_site(self, resolver):
        """Nearest site of any type with its distance."""
        site, distance = resolver.nearest_site(46.6861, 7.8630)
        assert site == LANDING
        assert distance == pytest.approx(11, abs=1)
        assert SiteResolver().nearest_site(46.0, 7.0) is None


class TestSiteLoading:
    """Tests for site reference loading."""

    def test_parse_site_aliases(self):
        """Coordinate, name and type aliases are understood."""
        site = parse_site(
            {"title": "Niesen", "type": "Launch", "coords": {"lat": 46.645, "lng": 7.651},
             "elevation": "2336"},
            index=3,
        )
        assert site.name == "Niesen"
        assert site.id == "site_3"
        assert site.site_type == SiteType.TAKEOFF
        assert site.latitude == 46.645
        assert site.longitude == 7.651
        assert site.altitude == 2336.0

    def test_localized_name(self):
        """A name in the preferred language wins."""
        record = {"name": "Lake", "name_de": "See", "type": "lz", "lat": 46.0, "lon": 7.0}
        assert parse_site(record, language="de").name == "See"
        assert parse_site(record, language="fr").name == "Lake"
        assert parse_site(record).site_type == SiteType.LANDING

    def test_malformed_records_skipped(self):
        """Bad records are dropped, good ones kept."""
        sites = load_sites([
            {"name": "Good", "type": "takeoff", "latitude": 46.7, "longitude": 7.89},
            {"name": "No coords", "type": "takeoff"},
            {"name": "Off planet", "type": "landing", "latitude": 123, "longitude": 7.0},
            {"name": "No type", "latitude": 46.7, "longitude": 7.89},
            "garbage",
        ])
        assert [s.name for s in sites] == ["Good"]
        assert sites[0].altitude == 0.0

    def test_load_json_file(self, tmp_path):
        """A JSON document with a sites list loads."""
        path = tmp_path / "sites.json"
        path.write_text(json.dumps({"sites": [
            {"id": "a", "name": "A", "type": "takeoff", "latitude": 46.7, "longitude": 7.89},
        ]}))
        sites = load_sites_file(str(path))
        assert len(sites) == 1
        assert sites[0].id == "a"

    def test_load_yaml_file(self, tmp_path):
        """A YAML list of sites loads."""
        path = tmp_path / "sites.yaml"
        path.write_text(
            "- {name: B, type: landing, latitude: 46.68, longitude: 7.86, altitude: 568}\n"
        )
        sites = load_sites_file(str(path))
        assert sites[0].site_type == SiteType.LANDING
        assert sites[0].altitude == 568.0

    def test_unreadable_file(self, tmp_path):
        """Missing or broken files raise ReferenceDataError."""
        with pytest.raises(ReferenceDataError):
            load_sites_file(str(tmp_path / "missing.json"))

        broken = tmp_path / "broken.json"
        broken.write_text("{not json")
        with pytest.raises(ReferenceDataError):
            load_sites_file(str(broken))

        scalar = tmp_path / "scalar.json"
        scalar.write_text("42")
        with pytest.raises(ReferenceDataError):
            load_sites_file(str(scalar))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
