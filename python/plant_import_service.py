#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
PlantImportService ties the adapters, normalizer, enrichment and store together.

Callers build it with their own httpx client and PlantStore:

    async with make_client() as client:
        svc = PlantImportService(client, store=PlantStore(get_sb()))
        counts = await svc.run("helianthus", sources=["gbif"])

Plants are processed one at a time: normalize, enrich, persist.
"""

from typing import Any, Dict, Iterable, List, Optional, Sequence

import httpx
from tqdm import tqdm

from import_settings import dbg
from plant_enrich import enrich_plant
from plant_names import normalize_record, NomenclatureRules, DEFAULT_RULES
from plant_sources import search_perenual, search_gbif, search_inaturalist, perenual_details
from plant_store import PlantStore

SOURCES = ("perenual", "gbif", "inaturalist")


class PlantImportService:
    def __init__(self, client: httpx.AsyncClient, store: Optional[PlantStore] = None,
                 perenual_key: Optional[str] = None, perplexity_key: Optional[str] = None,
                 rules: NomenclatureRules = DEFAULT_RULES):
        self.client = client
        self.store = store
        self.perenual_key = perenual_key
        self.perplexity_key = perplexity_key
        self.rules = rules

    async def _fetch(self, source: str, query: str, rank: Optional[str]) -> List[Dict[str, Any]]:
        if source == "perenual":
            return await search_perenual(self.client, query, api_key=self.perenual_key)
        if source == "gbif":
            return await search_gbif(self.client, query, rank=rank)
        return await search_inaturalist(self.client, query, rank=rank)

    async def search(self, source: str, query: str, rank: Optional[str] = None) -> List[Dict[str, Any]]:
        """Normalized candidates from one source. HTTP failures give []; a missing key raises."""
        if source not in SOURCES:
            raise ValueError(f"unknown source {source!r} (have {', '.join(SOURCES)})")
        try:
            rows = await self._fetch(source, query, rank)
        except (httpx.HTTPError, ValueError) as e:
            print(f"WARN: {source} search for '{query}' failed ->", repr(e))
            return []
        return [normalize_record(c, self.rules) for c in rows]

    async def details(self, perenual_id) -> Dict[str, Any]:
        rec = await perenual_details(self.client, perenual_id, api_key=self.perenual_key)
        return normalize_record(rec, self.rules)

    async def enrich(self, candidate: Dict[str, Any]) -> Dict[str, Any]:
        return await enrich_plant(self.client, candidate, perenual_key=self.perenual_key,
                                  perplexity_key=self.perplexity_key, rules=self.rules)

    async def import_candidates(self, candidates: Iterable[Dict[str, Any]], enrich: bool = True,
                                progress: bool = False) -> Dict[str, int]:
        if self.store is None:
            raise RuntimeError("PlantImportService needs a PlantStore to import")
        counts = {"imported": 0, "failed": 0, "skipped": 0}
        for c in tqdm(list(candidates), desc="Importing plants", unit="plant", disable=not progress):
            try:
                rec = normalize_record(dict(c), self.rules)
                if enrich:
                    rec = await self.enrich(rec)
                counts[self.store.import_one(rec)] += 1
            except Exception as e:
                print("ERROR: failed to import", c.get("scientific_name"), "->", repr(e))
                counts["failed"] += 1
        dbg("import counts:", counts)
        return counts

    async def run(self, query: str, sources: Sequence[str] = SOURCES, limit: Optional[int] = None,
                  enrich: bool = True, progress: bool = False) -> Dict[str, int]:
        found: List[Dict[str, Any]] = []
        for source in sources:
            found.extend(await self.search(source, query))
        if limit:
            found = found[:limit]
        print(f"Found {len(found)} candidates for '{query}' in {', '.join(sources)}")
        return await self.import_candidates(found, enrich=enrich, progress=progress)
