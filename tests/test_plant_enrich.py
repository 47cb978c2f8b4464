"""
tests/test_plant_enrich.py: staged enrichment with fill-only merging.
"""

import httpx

from conftest import Recorder, perplexity_reply, run_http
from plant_enrich import enrich_plant, enrich_with_gbif, enrich_with_inaturalist, enrich_with_perenual_dimensions
from plant_names import normalize_record, rules_for

RULES = rules_for("2024.2")

GBIF_MATCH = {"usageKey": 123, "kingdom": "Plantae", "family": "Asteraceae", "genus": "Helianthus",
              "species": "Helianthus pauciflorus", "matchType": "EXACT"}
PERENUAL_DETAILS = {"id": 7, "scientific_name": ["Helianthus pauciflorus"],
                    "dimensions": {"type": "Height", "min_value": 4, "max_value": 6, "unit": "feet"}}
LLM_ANSWER = ('{"common_name": "Lemon Queen sunflower", "family": "Other", "height_min_cm": 999, '
              '"cycle": "perennial"}')


def router(inat_status=500):
    def handle(request):
        host, path = request.url.host, request.url.path
        if host == "api.gbif.org":
            if path == "/v1/species/match":
                return httpx.Response(200, json=GBIF_MATCH)
            if path == "/v1/species/123/iucnRedListCategory":
                return httpx.Response(200, json={"category": "LEAST_CONCERN", "code": "LC"})
        if host == "api.inaturalist.org":
            if inat_status != 200:
                return httpx.Response(inat_status)
            return httpx.Response(200, json={"results": [{
                "id": 77, "preferred_common_name": "pale-leaved sunflower",
                "conservation_status": {"status": "secure"},
                "establishment_means": {"establishment_means": "native",
                                        "place": {"display_name": "North America"}},
            }]})
        if host == "perenual.com" and path == "/api/species/details/7":
            return httpx.Response(200, json=PERENUAL_DETAILS)
        if host == "api.perplexity.ai":
            return perplexity_reply(LLM_ANSWER)
        return httpx.Response(404)
    return handle


def lemon_queen():
    return normalize_record({"scientific_name": "Helianthus 'Lemon Queen'", "family": "Compositae",
                             "external_id": "perenual-7"}, RULES)


# ==================== Single sources ====================

class TestSources:
    def test_gbif(self):
        out = run_http(router(), lambda c: enrich_with_gbif(c, "Helianthus pauciflorus"))
        assert out == {"gbif_id": "123", "family": "Asteraceae", "genus": "Helianthus",
                       "species": "pauciflorus", "conservation_status": "LC"}

    def test_gbif_no_match(self):
        out = run_http(lambda r: httpx.Response(200, json={"matchType": "NONE"}),
                       lambda c: enrich_with_gbif(c, "Nonexistia"))
        assert out == {}

    def test_gbif_without_red_list_entry(self):
        def handle(request):
            if request.url.path.endswith("/match"):
                return httpx.Response(200, json=GBIF_MATCH)
            return httpx.Response(404)
        out = run_http(handle, lambda c: enrich_with_gbif(c, "Helianthus pauciflorus"))
        assert out["gbif_id"] == "123"
        assert out["conservation_status"] is None

    def test_inaturalist(self):
        rec = Recorder(router(inat_status=200))
        out = run_http(rec, lambda c: enrich_with_inaturalist(c, "Helianthus pauciflorus"))
        assert out == {"inaturalist_id": "77", "common_name": "pale-leaved sunflower",
                       "conservation_status": "secure", "native_region": "North America"}
        assert rec.requests[0].url.params["per_page"] == "1"

    def test_inaturalist_nothing_found(self):
        out = run_http(lambda r: httpx.Response(200, json={"results": []}),
                       lambda c: enrich_with_inaturalist(c, "Nonexistia"))
        assert out == {}

    def test_perenual_dimensions_by_external_id(self):
        out = run_http(router(), lambda c: enrich_with_perenual_dimensions(c, {"external_id": "perenual-7"}, "k"))
        assert out == {"height_min_cm": 122, "height_max_cm": 183,
                       "height_min_inches": 48, "height_max_inches": 72}

    def test_perenual_dimensions_by_search(self):
        def handle(request):
            if request.url.path == "/api/species-list":
                return httpx.Response(200, json={"data": [PERENUAL_DETAILS], "last_page": 5})
            if request.url.path == "/api/species/details/7":
                return httpx.Response(200, json=PERENUAL_DETAILS)
            return httpx.Response(404)
        rec = Recorder(handle)
        out = run_http(rec, lambda c: enrich_with_perenual_dimensions(
            c, {"scientific_name": "Helianthus pauciflorus"}, "k"))
        assert out["height_max_cm"] == 183
        assert rec.paths() == ["/api/species-list", "/api/species/details/7"]


# ==================== Orchestrator ====================

class TestEnrichPlant:
    def test_stages_fill_only_and_survive_a_failing_source(self, capsys):
        record = lemon_queen()
        out = run_http(router(inat_status=500),
                       lambda c: enrich_plant(c, record, perenual_key="k", perplexity_key="pk", rules=RULES))

        assert out["family"] == "Compositae"
        assert out["species"] == "pauciflorus"
        assert out["gbif_id"] == "123"
        assert out["conservation_status"] == "LC"
        assert out.get("inaturalist_id") is None
        assert (out["height_min_cm"], out["height_max_cm"]) == (122, 183)
        assert out["height_min_inches"] == 48
        assert out["common_name"] == "Lemon Queen sunflower"
        assert out["cycle"] == "perennial"
        assert out["scientific_name"] == "Helianthus pauciflorus 'Lemon Queen'"
        assert "WARN: iNaturalist enrichment failed" in capsys.readouterr().out

    def test_first_source_wins(self):
        record = lemon_queen()
        out = run_http(router(inat_status=200),
                       lambda c: enrich_plant(c, record, perenual_key="k", perplexity_key="pk", rules=RULES))
        # GBIF answered first; iNaturalist only adds what is still empty
        assert out["conservation_status"] == "LC"
        assert out["common_name"] == "pale-leaved sunflower"
        assert out["native_region"] == "North America"

    def test_every_source_down(self, capsys):
        record = lemon_queen()
        before = dict(record)
        out = run_http(lambda r: httpx.Response(500),
                       lambda c: enrich_plant(c, record, perenual_key="k", perplexity_key="pk", rules=RULES))
        assert out == before
        printed = capsys.readouterr().out
        for label in ("GBIF", "iNaturalist", "Perenual", "Perplexity"):
            assert f"WARN: {label} enrichment failed" in printed

    def test_missing_keys_skip_those_stages(self, capsys):
        record = lemon_queen()
        rec = Recorder(router(inat_status=200))
        out = run_http(rec, lambda c: enrich_plant(c, record, rules=RULES))
        assert out["gbif_id"] == "123"
        assert out["inaturalist_id"] == "77"
        assert out.get("height_min_cm") is None
        assert all(r.url.host != "api.perplexity.ai" for r in rec.requests)
        assert "MissingAPIKey" in capsys.readouterr().out

    def test_filled_genus_triggers_renormalize(self):
        record = {"scientific_name": "Helianthus pauciflorus 'Lemon Queen'", "family": "Asteraceae",
                  "species": "pauciflorus", "cultivar": "Lemon Queen"}
        def handle(request):
            if request.url.path == "/v1/species/match":
                return httpx.Response(200, json=dict(GBIF_MATCH, genus="HELIANTHUS"))
            return httpx.Response(500)
        out = run_http(handle, lambda c: enrich_plant(c, record, rules=RULES))
        assert out["genus"] == "Helianthus"

    def test_record_without_name_is_returned(self, capsys):
        rec = Recorder(lambda r: httpx.Response(500))
        out = run_http(rec, lambda c: enrich_plant(c, {"common_name": "mystery"}))
        assert out == {"common_name": "mystery"}
        assert rec.requests == []
