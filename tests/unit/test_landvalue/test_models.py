import pytest
from landvalue.models import (
    Attractor,
    CameraPose,
    ConfigError,
    ExclusionRegion,
    Facility,
    FacilityKind,
    FieldCollection,
    GeoPoint,
    InfluenceZone,
    Landmark,
    ValueSample,
    format_price,
)


def test_geo_point_range_validation():
    """Verify coordinates outside WGS84 ranges are rejected."""
    assert GeoPoint(120.2, 30.2).to_list() == [120.2, 30.2]
    with pytest.raises(ConfigError):
        GeoPoint(181.0, 30.0)
    with pytest.raises(ConfigError):
        GeoPoint(120.0, -91.0)


def test_attractor_rejects_non_positive_values():
    """Verify zero decay (infinite reach) and zero base price are config errors."""
    with pytest.raises(ConfigError):
        Attractor(GeoPoint(120.0, 30.0), base_price=90000, decay_rate=0)
    with pytest.raises(ConfigError):
        Attractor(GeoPoint(120.0, 30.0), base_price=0, decay_rate=0.4)


def test_facility_rejects_non_positive_values():
    """Verify boost and radius must be positive."""
    with pytest.raises(ConfigError):
        Facility("A", GeoPoint(120.0, 30.0), FacilityKind.SCHOOL, boost=0, radius_km=1.0)
    with pytest.raises(ConfigError):
        Facility("A", GeoPoint(120.0, 30.0), FacilityKind.SCHOOL, boost=1000, radius_km=0)


def test_facility_kind_parse():
    """Verify kind parsing is case-insensitive and accepts the Gov alias."""
    assert FacilityKind.parse("hospital") == FacilityKind.HOSPITAL
    assert FacilityKind.parse("School") == FacilityKind.SCHOOL
    assert FacilityKind.parse("Gov") == FacilityKind.GOVERNMENT
    with pytest.raises(ConfigError):
        FacilityKind.parse("Stadium")


def test_facility_feature():
    """Verify facility GeoJSON carries display properties."""
    fac = Facility("ZJU", GeoPoint(120.125, 30.263), FacilityKind.SCHOOL, 25000, 1.5, "#10b981", "🎓")
    feature = fac.to_feature(3)

    assert feature["id"] == "fac-3"
    assert feature["geometry"] == {"type": "Point", "coordinates": [120.125, 30.263]}
    props = feature["properties"]
    assert props["type"] == "School"
    assert props["color"] == "#10b981"
    assert props["radius"] == 1.5
    assert props["description"] == "Impact: +¥25000 within 1.5km"


def test_facility_from_dict():
    fac = Facility.from_dict({
        "name": "Gov Center", "type": "Gov", "boost": 12000,
        "radius": 3, "lng": 120.212, "lat": 30.245,
    })
    assert fac.kind == FacilityKind.GOVERNMENT
    assert fac.radius_km == 3.0
    assert fac.location == GeoPoint(120.212, 30.245)


def test_exclusion_region_from_dict():
    region = ExclusionRegion.from_dict({"name": "Lake", "lng": 120.14, "lat": 30.24, "radius": 1.4, "min_price": 110000})
    assert region.radius_km == 1.4
    assert region.min_price == 110000


def test_landmark_from_dict():
    lm = Landmark.from_dict({
        "id": "cbd", "name": "CBD",
        "pose": {"lng": 120.21, "lat": 30.24, "zoom": 15.5, "pitch": 65, "bearing": -20},
    })
    assert lm.description == ""
    assert lm.pose == CameraPose(120.21, 30.24, 15.5, 65, -20)
    assert lm.pose.center == GeoPoint(120.21, 30.24)


def test_format_price():
    """Verify labels are in units of 10k yuan with one decimal."""
    assert format_price(91234) == "¥9.1万"
    assert format_price(28000) == "¥2.8万"
    assert format_price(160000) == "¥16.0万"


def _sample(i, price):
    return ValueSample(i, GeoPoint(120.0, 30.0), price, price / 160000, format_price(price))


def test_value_sample_feature():
    feature = _sample(7, 80000).to_feature()
    assert feature["id"] == 7
    assert feature["properties"] == {"price": 80000, "formattedPrice": "¥8.0万", "heatmapWeight": 0.5}


def test_influence_zone_feature():
    ring = ((0.0, 0.0), (1.0, 0.0), (1.0, 1.0), (0.0, 0.0))
    zone = InfluenceZone("H", FacilityKind.HOSPITAL, "#3b82f6", 15000, ring)
    feature = zone.to_feature(0)

    assert zone.is_closed
    assert feature["id"] == "zone-0"
    assert feature["geometry"]["type"] == "Polygon"
    assert feature["geometry"]["coordinates"][0][0] == feature["geometry"]["coordinates"][0][-1]


def test_field_collection_summary_and_dataframe():
    """Verify summary numbers and tabular export."""
    collection = FieldCollection(
        samples=(_sample(0, 30000), _sample(1, 90000)),
        zones=(),
        facilities=(),
        nodes_visited=5,
    )
    summary = collection.summary()
    assert len(collection) == 2
    assert collection.discarded == 3
    assert summary["min"] == 30000
    assert summary["max"] == 90000
    assert summary["mean"] == 60000

    df = collection.to_dataframe()
    assert list(df.columns) == ["id", "lng", "lat", "price", "weight", "label"]
    assert df["price"].tolist() == [30000, 90000]


def test_empty_collection():
    """Verify an empty field is valid."""
    collection = FieldCollection(samples=(), zones=(), facilities=(), nodes_visited=4)
    assert collection.summary()["count"] == 0
    assert collection.samples_geojson() == {"type": "FeatureCollection", "features": []}
    assert collection.to_dataframe().empty
