#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Fill empty candidate fields from GBIF, iNaturalist, Perenual and Perplexity.

Stages run in that order. Every stage only writes fields that are still
empty, so the first source to answer a field wins. A stage that fails is
logged and skipped; it never aborts the plant.
"""

from typing import Any, Dict, List, Optional

import httpx

from import_settings import dbg, require_key, MissingAPIKey, GBIF_BASE, INAT_BASE
from perplexity_validator import validate_plant, VALIDATABLE_FIELDS
from plant_dimensions import DIMENSION_FIELDS, fill_inches
from plant_names import normalize_record, NomenclatureRules
from plant_sources import (
    is_empty, merge_missing, species_epithet, gbif_match, perenual_details, search_perenual,
)

GBIF_FIELDS = ("gbif_id", "family", "genus", "species", "conservation_status")
INAT_FIELDS = ("inaturalist_id", "common_name", "conservation_status", "native_region")
NAME_PARTS = ("genus", "species", "cultivar")

# ---------- GBIF ----------
async def _gbif_iucn(client: httpx.AsyncClient, usage_key: int) -> Optional[str]:
    try:
        r = await client.get(f"{GBIF_BASE}/species/{usage_key}/iucnRedListCategory")
        if r.status_code in (204, 404):
            return None
        r.raise_for_status()
        js = r.json() or {}
    except (httpx.HTTPError, ValueError) as e:
        print(f"WARN: GBIF IUCN lookup failed for {usage_key} ->", repr(e))
        return None
    return js.get("code") or js.get("category")

async def enrich_with_gbif(client: httpx.AsyncClient, name: str) -> Dict[str, Any]:
    m = await gbif_match(client, name)
    if not m:
        dbg("GBIF: no match for", name)
        return {}
    key = m["usageKey"]
    return {
        "gbif_id": str(key),
        "family": m.get("family"),
        "genus": m.get("genus"),
        "species": species_epithet(m.get("species"), m.get("genus")),
        "conservation_status": await _gbif_iucn(client, key),
    }

# ---------- iNaturalist ----------
async def enrich_with_inaturalist(client: httpx.AsyncClient, name: str) -> Dict[str, Any]:
    r = await client.get(f"{INAT_BASE}/taxa", params={"q": name, "per_page": 1})
    r.raise_for_status()
    results = (r.json() or {}).get("results") or []
    if not results:
        dbg("iNat: no taxon for", name)
        return {}
    taxon = results[0]
    place = ((taxon.get("establishment_means") or {}).get("place") or {})
    return {
        "inaturalist_id": str(taxon["id"]) if taxon.get("id") is not None else None,
        "common_name": (taxon.get("preferred_common_name") or "").strip() or None,
        "conservation_status": (taxon.get("conservation_status") or {}).get("status"),
        "native_region": place.get("display_name"),
    }

# ---------- Perenual ----------
def _perenual_id(record: Dict[str, Any]) -> Optional[str]:
    ext = record.get("external_id") or ""
    if ext.startswith("perenual-"):
        return ext[len("perenual-"):]
    return None

async def enrich_with_perenual_dimensions(client: httpx.AsyncClient, record: Dict[str, Any],
                                          api_key: Optional[str] = None) -> Dict[str, Any]:
    """Height/spread from Perenual details, via the record's own id or the first search hit."""
    key = require_key("PERENUAL_API_KEY", api_key)
    pid = _perenual_id(record)
    if not pid:
        hits = await search_perenual(client, record.get("scientific_name") or "", api_key=key, max_pages=1)
        if not hits:
            dbg("Perenual: no hit for", record.get("scientific_name"))
            return {}
        pid = _perenual_id(hits[0])
    details = await perenual_details(client, pid, api_key=key)
    return {k: details[k] for k in DIMENSION_FIELDS if details.get(k) is not None}

# ---------- Orchestrator ----------
async def _stage(label: str, record: Dict[str, Any], fields, lookup) -> List[str]:
    if not any(is_empty(record.get(f)) for f in fields):
        dbg(f"{label}: nothing to fill")
        return []
    try:
        found = await lookup()
    except (httpx.HTTPError, MissingAPIKey, ValueError) as e:
        print(f"WARN: {label} enrichment failed for {record.get('scientific_name')} ->", repr(e))
        return []
    filled = merge_missing(record, found)
    dbg(f"{label}: filled {filled}")
    return filled

async def enrich_plant(client: httpx.AsyncClient, record: Dict[str, Any],
                       perenual_key: Optional[str] = None, perplexity_key: Optional[str] = None,
                       rules: Optional[NomenclatureRules] = None) -> Dict[str, Any]:
    name = record.get("scientific_name")
    if not name:
        print("WARN: cannot enrich a record without scientific_name")
        return record

    filled: List[str] = []
    filled += await _stage("GBIF", record, GBIF_FIELDS, lambda: enrich_with_gbif(client, name))
    filled += await _stage("iNaturalist", record, INAT_FIELDS, lambda: enrich_with_inaturalist(client, name))
    filled += await _stage("Perenual", record, DIMENSION_FIELDS,
                           lambda: enrich_with_perenual_dimensions(client, record, perenual_key))

    async def llm():
        return await validate_plant(client, dict(record), api_key=perplexity_key)
    filled += await _stage("Perplexity", record, VALIDATABLE_FIELDS, llm)

    fill_inches(record)
    if any(k in NAME_PARTS for k in filled):
        normalize_record(record, rules)
    return record
