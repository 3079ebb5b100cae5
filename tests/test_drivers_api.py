"""
Tests for driver search, the driver directory and driver creation.
"""

import locations
from drivers import format_avg, get_stats


class TestSearch:

    def test_empty_query(self, client, engine):
        data = client.get("/search").get_json()
        assert data["kind"] == "empty"
        assert data["driver"] is None

    def test_exact_match_with_reviews_and_stats(self, client, make_driver, make_review, tags):
        d = make_driver("8841-mike", display_name="Mike", city="Chicago", state="IL")
        make_review(d, 5, tag_ids=["t-safe"])
        make_review(d, 4, minutes=5, comment="Nice")

        data = client.get("/search", query_string={"q": "8841 Mike", "sort": "highest"}).get_json()
        assert data["kind"] == "exact"
        assert data["driver"]["driver_handle"] == "8841-mike"
        assert data["driver"]["avg_stars"] == 4.5
        assert data["driver"]["avg_display"] == "4.5"
        assert data["driver"]["review_count"] == 2
        assert [r["stars"] for r in data["reviews"]] == [5, 4]
        assert data["traits"]["counts"]["positive"] == 1

    def test_exact_miss_falls_back_to_prefix(self, client, make_driver):
        make_driver("8841-mike")
        make_driver("8841-mikey")
        make_driver("8841-anna")

        data = client.get("/search?q=8841-mik").get_json()
        assert data["driver"] is None
        assert sorted(m["driver_handle"] for m in data["matches"]) == ["8841-mike", "8841-mikey"]

    def test_plate_only_is_gated(self, client, make_driver):
        make_driver("8841-mike")
        data = client.get("/search?q=8841").get_json()
        assert data["kind"] == "needs_disambiguator"
        assert data["matches"] == []
        assert data["message"]

    def test_plate_only_with_state(self, client, make_driver):
        make_driver("8841-mike", state="IL")
        make_driver("8841-anna", state="WI")
        data = client.get("/search?q=8841&state=il").get_json()
        assert data["kind"] == "prefix"
        assert [m["driver_handle"] for m in data["matches"]] == ["8841-mike"]

    def test_partial_name_with_car_filter(self, client, make_driver):
        make_driver("8841-mike", car_make="Toyota")
        make_driver("8841-mo", car_make="Honda")
        data = client.get("/search", query_string={"q": "8841 m", "make": "toy"}).get_json()
        assert [m["driver_handle"] for m in data["matches"]] == ["8841-mike"]

    def test_prefix_search_capped(self, client, make_driver):
        for i in range(25):
            make_driver(f"8841-{'ab' + chr(ord('a') + i)}", state="IL")
        data = client.get("/search?q=8841&state=IL").get_json()
        assert len(data["matches"]) == 20

    def test_unrecognized(self, client, engine):
        data = client.get("/search?q=mike").get_json()
        assert data["kind"] == "unrecognized"
        assert data["matches"] == []


class TestDirectory:

    def test_newest_first_with_stats(self, client, sess, make_driver, make_review):
        from datetime import datetime, timezone
        old = make_driver("1111-old", created_at=datetime(2024, 1, 1, tzinfo=timezone.utc))
        new = make_driver("2222-new", created_at=datetime(2025, 1, 1, tzinfo=timezone.utc))
        make_review(new, 4)

        rows = client.get("/drivers").get_json()["drivers"]
        assert [r["driver_handle"] for r in rows] == ["2222-new", "1111-old"]
        assert rows[0]["review_count"] == 1
        assert rows[0]["avg_display"] == "4.0"
        assert rows[1]["review_count"] == 0
        assert rows[1]["avg_display"] == "—"
        assert get_stats(sess, []) == {}
        assert old.id not in get_stats(sess, [old.id])

    def test_format_avg(self):
        assert format_avg(None) == "—"
        assert format_avg(3.456) == "3.5"


class TestCreateDriver:

    def test_create(self, client, engine):
        resp = client.post("/drivers", json={
            "handle": "8841 Mike", "displayName": "Mike  (8841)", "state": "il",
            "city": "Chicago city", "carMake": " Toyota ",
        })
        assert resp.status_code == 201
        d = resp.get_json()["driver"]
        assert d["driver_handle"] == "8841-mike"
        assert d["display_name"] == "Mike (8841)"
        assert d["state"] == "IL"
        assert d["city"] == "Chicago"
        assert d["car_make"] == "Toyota"

    def test_display_name_defaults_to_handle(self, client, engine):
        d = client.post("/drivers", json={"handle": "8841-mike", "state": "IL"}).get_json()["driver"]
        assert d["display_name"] == "8841-mike"

    def test_city_not_listed(self, client, engine):
        d = client.post("/drivers", json={"handle": "8841-mike", "state": "IL", "city": "X",
                                          "cityNotListed": True}).get_json()["driver"]
        assert d["city"] is None

    def test_invalid_handle(self, client, engine):
        resp = client.post("/drivers", json={"handle": "8841", "state": "IL"})
        assert resp.status_code == 400
        assert "invalid" in resp.get_json()["error"]

    def test_state_required(self, client, engine):
        resp = client.post("/drivers", json={"handle": "8841-mike", "state": "ZZ"})
        assert resp.status_code == 400
        assert resp.get_json()["error"] == "Please select a state."

    def test_duplicate_handle(self, client, make_driver):
        make_driver("8841-mike")
        resp = client.post("/drivers", json={"handle": "8841-mike", "state": "IL"})
        assert resp.status_code == 409

    def test_offensive_display_name_masked(self, client, engine):
        d = client.post("/drivers", json={"handle": "8841-mike", "state": "IL",
                                          "displayName": "Mike grimble"}).get_json()["driver"]
        assert d["display_name"] == "Mike *******"


class TestLocationRoutes:

    def test_states(self, client):
        data = client.get("/api/states?q=wis").get_json()
        assert data["states"] == [{"code": "WI", "name": "Wisconsin"}]

    def test_cities(self, client, engine, monkeypatch):
        monkeypatch.setattr(locations, "fetch_city_rows",
                            lambda sess, state, q, limit: [{"name": "Evanston city", "display_name": "Evanston, IL"}])
        assert client.get("/api/cities?state=IL&q=ev").get_json() == {"cities": ["Evanston"]}

    def test_cities_failure_is_empty(self, client, engine, monkeypatch):
        def boom(*a):
            raise RuntimeError("rpc down")

        monkeypatch.setattr(locations, "fetch_city_rows", boom)
        assert client.get("/api/cities?state=IL&q=ev").get_json() == {"cities": []}
