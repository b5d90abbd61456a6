from datetime import date

import pytest

from location import LocationService, region_from_coordinates, season_for


@pytest.mark.parametrize("month,season", [(1, "spring"), (3, "summer"), (7, "monsoon"), (9, "monsoon"), (11, "winter")])
def test_season_for(month, season):
    assert season_for(month) == season


def test_region_from_coordinates():
    assert region_from_coordinates(30.0, 78.0) == "north"
    assert region_from_coordinates(10.0, 77.0) == "south"
    assert region_from_coordinates(0.0, 0.0) == "south"


def test_search_is_case_insensitive_substring():
    results = LocationService().search("MAD")
    assert [r["city"] for r in results] == ["Madurai"]
    assert LocationService().search("  ") == []


def test_resolve_snaps_to_nearby_city():
    place = LocationService().resolve(9.9, 78.2)
    assert place.city == "Madurai"
    assert place.latitude == 9.9

    far = LocationService().resolve(30.0, 78.0)
    assert far.city == "Unknown"
    assert far.region == "north"


def test_monsoon_suggestions_for_chennai():
    data = LocationService().suggestions(13.08, 80.27, today=date(2024, 7, 15))
    assert data["location"]["city"] == "Chennai"
    assert data["weather"] == {"temperature": 30, "humidity": 60, "rainfall": 300, "season": "monsoon"}
    crops = data["recommendedCrops"]
    assert [c["crop"] for c in crops] == ["Rice", "Turmeric", "Ginger", "Black Pepper"]
    assert crops[0]["season"] == "Monsoon"
    assert "Anthracnose" in data["commonDiseases"]
    assert len(data["farmingTips"]) == 6
    assert "flood-resistant" in data["farmingTips"][0]


def test_spring_uses_summer_tables():
    data = LocationService().suggestions(28.6, 77.2, today=date(2024, 1, 10))
    assert data["weather"]["season"] == "spring"
    assert data["weather"]["temperature"] == 25
    assert data["recommendedCrops"][0]["crop"] == "Rice"
    assert data["recommendedCrops"][0]["season"] == "Spring"


def test_location_endpoints(client):
    assert client.get("/api/location/search", params={"q": "pune"}).json()["results"][0]["state"] == "Maharashtra"
    resp = client.get("/api/location/suggestions", params={"lat": 13.08, "lon": 80.27})
    assert resp.status_code == 200
    assert len(resp.json()["recommendedCrops"]) <= 4
    assert client.get("/api/location/suggestions", params={"lat": 123, "lon": 80}).status_code == 400
