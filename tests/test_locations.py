"""
Unit tests for state matching and city suggestions.
"""

import locations
from locations import STATES, best_state_matches, city_suggestions, is_state_code, normalize_city_label


class TestStates:

    def test_fifty_states_plus_dc(self):
        assert len(STATES) == 51
        assert is_state_code("dc")
        assert not is_state_code("XX")

    def test_empty_query_returns_first(self):
        assert best_state_matches("") == STATES[:8]

    def test_prefix_before_substring(self):
        codes = [c for c, _ in best_state_matches("ne")]
        assert codes[:6] == ["NE", "NV", "NH", "NJ", "NM", "NY"]
        assert codes[6:] == ["CT", "ME"]

    def test_substring_match(self):
        codes = [c for c, _ in best_state_matches("ssee")]
        assert codes == ["TN"]

    def test_limit(self):
        assert len(best_state_matches("a", limit=3)) == 3


class TestCityLabel:

    def test_strips_suffix(self):
        assert normalize_city_label("Springfield city") == "Springfield"
        assert normalize_city_label(" Oak Park village ") == "Oak Park"
        assert normalize_city_label("Cary CDP") == "Cary"

    def test_suffix_is_case_insensitive(self):
        assert normalize_city_label("Carson City") == "Carson"

    def test_keeps_plain_name(self):
        assert normalize_city_label("Chicago") == "Chicago"


class TestCitySuggestions:

    def test_skips_call_without_state_or_query(self, monkeypatch):
        calls = []
        monkeypatch.setattr(locations, "fetch_city_rows", lambda *a: calls.append(a) or [])
        assert city_suggestions(None, "ZZ", "chi") == []
        assert city_suggestions(None, "IL", "  ") == []
        assert calls == []

    def test_cleans_and_dedupes(self, monkeypatch):
        rows = [
            {"name": "Chicago city", "display_name": "Chicago, IL"},
            {"name": "Chicago", "display_name": "Chicago, IL"},
            {"name": "Chicago Heights city", "display_name": "Chicago Heights, IL"},
            {"name": "", "display_name": ""},
        ]
        seen = {}

        def fake(sess, state, query, limit):
            seen.update(state=state, query=query, limit=limit)
            return rows

        monkeypatch.setattr(locations, "fetch_city_rows", fake)
        assert city_suggestions(None, "il", " chi ") == ["Chicago", "Chicago Heights"]
        assert seen == {"state": "IL", "query": "chi", "limit": 10}
