"""Tests for query parameter validation."""

import pytest

from notamproxy.api.validators import parse_query
from notamproxy.services.errors import ValidationError

FRANKFURT = {
    "locationLatitude": "50.0379",
    "locationLongitude": "8.5622",
    "locationRadius": "5",
}


def with_params(**overrides):
    params = dict(FRANKFURT)
    for key, value in overrides.items():
        if value is None:
            params.pop(key, None)
        else:
            params[key] = value
    return params


class TestParseQuery:
    def test_valid_legacy_query(self):
        query = parse_query(FRANKFURT)

        assert query.latitude == 50.0379
        assert query.longitude == 8.5622
        assert query.radius == 5
        assert query.page_size == 1000

    def test_nms_has_no_default_page_size(self):
        assert parse_query(FRANKFURT, "nms").page_size is None

    def test_short_aliases(self):
        query = parse_query({"lat": "-33.9", "lon": "151.17", "radius": "10"})

        assert (query.latitude, query.longitude, query.radius) == (-33.9, 151.17, 10)

    def test_long_name_wins_over_alias(self):
        query = parse_query(with_params(lat="1.0"))
        assert query.latitude == 50.0379

    def test_explicit_page_size(self):
        assert parse_query(with_params(pageSize="250")).page_size == 250

    @pytest.mark.parametrize(
        "overrides",
        [
            {"locationLatitude": None},
            {"locationLongitude": None},
            {"locationRadius": None},
            {"locationLatitude": ""},
            {"locationLatitude": "abc"},
            {"locationLatitude": "1e3"},
            {"locationLatitude": "50."},
            {"locationLatitude": "+45.5"},
            {"locationLongitude": "+8.5622"},
            {"locationLatitude": "90.0001"},
            {"locationLatitude": "-91"},
            {"locationLongitude": "180.5"},
            {"locationLongitude": "-181"},
            {"locationRadius": "0"},
            {"locationRadius": "500"},
            {"locationRadius": "2.5"},
            {"locationRadius": "five"},
            {"pageSize": "0"},
            {"pageSize": "1001"},
            {"pageSize": "10.5"},
            {"pageSize": "many"},
        ],
    )
    def test_rejects_invalid_legacy_input(self, overrides):
        with pytest.raises(ValidationError):
            parse_query(with_params(**overrides))

    @pytest.mark.parametrize("radius", ["0", "2.5", "100"])
    def test_nms_radius_range(self, radius):
        assert parse_query(with_params(locationRadius=radius), "nms").radius == float(radius)

    @pytest.mark.parametrize("radius", ["-1", "100.1", "499"])
    def test_nms_rejects_out_of_range_radius(self, radius):
        with pytest.raises(ValidationError):
            parse_query(with_params(locationRadius=radius), "nms")

    @pytest.mark.parametrize("latitude", ["90", "-90", "45.5"])
    def test_boundary_degrees(self, latitude):
        assert parse_query(with_params(locationLatitude=latitude)).latitude == float(latitude)

    def test_error_message_names_parameter(self):
        with pytest.raises(ValidationError, match="locationRadius"):
            parse_query(with_params(locationRadius=None))
