"""
tests/test_import_service.py: search, import and run through PlantImportService.
"""

import httpx
import pytest

from conftest import FakeSupabase, Recorder, perplexity_reply, run_http
from import_settings import MissingAPIKey
from plant_import_service import PlantImportService
from plant_names import rules_for
from plant_store import PlantStore
import plants_import

RULES = rules_for("2024.2")

GBIF_RESULTS = {"results": [
    {"key": 10, "canonicalName": "Rosa x alba", "kingdom": "Plantae", "genus": "Rosa", "rank": "SPECIES"},
    {"key": 11, "canonicalName": "Rosa rugosa", "kingdom": "Plantae", "genus": "Rosa",
     "species": "Rosa rugosa", "rank": "SPECIES"},
]}


def gbif_only(request):
    if request.url.host == "api.gbif.org" and request.url.path == "/v1/species/search":
        return httpx.Response(200, json=GBIF_RESULTS)
    return httpx.Response(500)


def service(client, sb=None, **kw):
    store = PlantStore(sb) if sb is not None else None
    return PlantImportService(client, store=store, rules=RULES, **kw)


# ==================== Search ====================

class TestSearch:
    def test_results_are_normalized(self):
        out = run_http(gbif_only, lambda c: service(c).search("gbif", "rosa"))
        assert [r["scientific_name"] for r in out] == ["Rosa × alba", "Rosa rugosa"]
        assert out[0]["species"] == "× alba"

    def test_http_error_gives_empty_list(self, capsys):
        out = run_http(lambda r: httpx.Response(502), lambda c: service(c).search("inaturalist", "rosa"))
        assert out == []
        assert "WARN: inaturalist search for 'rosa' failed" in capsys.readouterr().out

    def test_network_error_gives_empty_list(self):
        def handle(request):
            raise httpx.ConnectError("down", request=request)
        assert run_http(handle, lambda c: service(c).search("gbif", "rosa")) == []

    def test_missing_key_propagates(self):
        with pytest.raises(MissingAPIKey):
            run_http(gbif_only, lambda c: service(c).search("perenual", "rosa"))

    def test_unknown_source(self):
        with pytest.raises(ValueError):
            run_http(gbif_only, lambda c: service(c).search("wikipedia", "rosa"))


# ==================== Import ====================

class TestImport:
    def test_sequential_import_without_enrichment(self):
        sb = FakeSupabase(rows=[{"id": "p1", "scientific_name": "Rosa rugosa"}])
        cands = [{"scientific_name": "ROSA RUGOSA"}, {"scientific_name": "Salvia 'Caradonna'"},
                 {"scientific_name": "Rosa x alba"}]
        rec = Recorder(gbif_only)
        counts = run_http(rec, lambda c: service(c, sb).import_candidates(cands, enrich=False))
        assert counts == {"imported": 2, "failed": 0, "skipped": 1}
        assert [r["scientific_name"] for r in sb.plants] == \
            ["Rosa rugosa", "Salvia nemorosa 'Caradonna'", "Rosa × alba"]
        assert rec.requests == []

    def test_enrichment_failures_do_not_block_import(self):
        sb = FakeSupabase()
        counts = run_http(lambda r: httpx.Response(500),
                          lambda c: service(c, sb).import_candidates([{"scientific_name": "Rosa rugosa"}]))
        assert counts["imported"] == 1
        assert sb.plants[0]["genus"] == "Rosa"

    def test_llm_string_sizes_still_import(self):
        def handler(request):
            if request.url.host == "api.perplexity.ai":
                return perplexity_reply('{"height_min_cm": "45.5", "height_max_cm": "60"}')
            return httpx.Response(500)

        sb = FakeSupabase()
        counts = run_http(handler, lambda c: service(c, sb, perplexity_key="pk").import_candidates(
            [{"scientific_name": "Rosa rugosa"}]))
        assert counts == {"imported": 1, "failed": 0, "skipped": 0}
        assert (sb.plants[0]["height_min_cm"], sb.plants[0]["height_max_cm"]) == (46, 60)

    def test_failed_insert_is_counted(self):
        sb = FakeSupabase(fail_on={"Rosa rugosa"})
        counts = run_http(gbif_only, lambda c: service(c, sb).import_candidates(
            [{"scientific_name": "Rosa rugosa"}, {"scientific_name": "Rosa canina"}], enrich=False))
        assert counts == {"imported": 1, "failed": 1, "skipped": 0}

    def test_needs_a_store(self):
        with pytest.raises(RuntimeError):
            run_http(gbif_only, lambda c: service(c).import_candidates([{"scientific_name": "Rosa"}]))

    def test_run(self, capsys):
        sb = FakeSupabase()
        counts = run_http(gbif_only, lambda c: service(c, sb).run("rosa", sources=["gbif"], limit=1, enrich=False))
        assert counts == {"imported": 1, "failed": 0, "skipped": 0}
        assert sb.plants[0]["scientific_name"] == "Rosa × alba"
        assert sb.plants[0]["data_source"] == "gbif"
        assert "Found 1 candidates for 'rosa'" in capsys.readouterr().out


# ==================== CLI ====================

class TestCli:
    def test_normalize_command(self, capsys):
        plants_import.main(["normalize", "Rosa x alba", "HELIANTHUS CAPENOCH STAR"])
        out = capsys.readouterr().out
        assert "'Rosa × alba'" in out
        assert "Helianthus decapetalus 'Capenoch Star'" in out

    def test_import_arguments(self):
        args = plants_import.build_parser().parse_args(["import", "rosa", "--sources", "gbif", "--no-enrich"])
        assert args.sources == ["gbif"]
        assert args.no_enrich is True
        assert args.func is plants_import.cmd_import
