#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Search adapters for Perenual, GBIF and iNaturalist.

Each source payload is parsed into its own raw type (PerenualRaw, GbifRaw,
INaturalistRaw) at the boundary; anything without an id and a name is
rejected there. Raw records are then flattened into candidate dicts keyed
by CANDIDATE_FIELDS.
"""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

import httpx

import import_settings
from import_settings import dbg, require_key, GBIF_BASE, INAT_BASE, PERENUAL_BASE
from plant_dimensions import dimensions_from_perenual
from plant_names import is_vague_name

CANDIDATE_FIELDS = (
    "scientific_name", "common_name", "family", "genus", "species", "cultivar", "series", "rank",
    "cycle", "watering", "sunlight", "soil", "hardiness", "growth_rate", "care_level", "maintenance",
    "flowers", "flowering_season", "flower_color", "leaf_color", "fruit_color", "harvest_season",
    "drought_tolerant", "salt_tolerant", "thorny", "invasive", "tropical", "indoor",
    "edible_fruit", "edible_leaf", "cuisine", "medicinal", "poisonous_to_humans", "poisonous_to_pets",
    "propagation", "pruning_month", "description",
    "height_min_cm", "height_max_cm", "spread_min_cm", "spread_max_cm",
    "height_min_inches", "height_max_inches", "spread_min_inches", "spread_max_inches",
    "native_region", "conservation_status", "gbif_id", "inaturalist_id",
    "source", "external_id",
)

class MalformedPayload(ValueError):
    """A source payload is missing the fields needed to identify a plant."""

def _upsell(v) -> bool:
    # Perenual's free tier replaces premium fields with an upgrade notice
    return isinstance(v, str) and v.startswith("Upgrade Plans")

def new_candidate(**fields) -> Dict[str, Any]:
    rec = {k: None for k in CANDIDATE_FIELDS}
    for k, v in fields.items():
        if k in rec and v not in ("", [], {}) and not _upsell(v):
            rec[k] = v
    return rec

def is_empty(v) -> bool:
    # False and 0 are real answers
    return v is None or v == "" or v == [] or v == {}

def merge_missing(record: Dict[str, Any], enrichment: Optional[Dict[str, Any]]) -> List[str]:
    """Fill-only merge: copy enrichment values into empty record fields. Returns filled keys."""
    filled = []
    for k, v in (enrichment or {}).items():
        if is_empty(v) or not is_empty(record.get(k)):
            continue
        record[k] = v
        filled.append(k)
    return filled

def _first(v) -> Optional[str]:
    if isinstance(v, list):
        v = next((x for x in v if x), None)
    if v is None:
        return None
    s = str(v).strip()
    return s or None

def species_epithet(species: Optional[str], genus: Optional[str]) -> Optional[str]:
    # GBIF "species" is the full binomial ("Helianthus annuus")
    if not species:
        return None
    parts = species.split()
    if genus and len(parts) >= 2 and parts[0].lower() == genus.lower():
        return " ".join(parts[1:])
    return species

# ---------- Raw payloads ----------
@dataclass
class PerenualRaw:
    id: int
    scientific_name: str
    common_name: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_json(cls, payload: Any) -> "PerenualRaw":
        if not isinstance(payload, dict):
            raise MalformedPayload(f"perenual: expected object, got {type(payload).__name__}")
        pid = payload.get("id")
        name = _first(payload.get("scientific_name"))
        if not isinstance(pid, int) or not name:
            raise MalformedPayload(f"perenual: missing id/scientific_name in {str(payload)[:120]}")
        return cls(id=pid, scientific_name=name, common_name=_first(payload.get("common_name")), data=payload)

    def to_candidate(self, detailed: bool = False) -> Dict[str, Any]:
        d = self.data
        rec = new_candidate(
            scientific_name=self.scientific_name,
            common_name=self.common_name,
            family=d.get("family"),
            genus=d.get("genus"),
            species=d.get("species"),
            cultivar=d.get("cultivar"),
            cycle=d.get("cycle"),
            watering=d.get("watering"),
            sunlight=d.get("sunlight"),
            external_id=f"perenual-{self.id}",
            source="perenual",
        )
        if not detailed:
            return rec
        for k in ("hardiness", "soil", "growth_rate", "care_level", "maintenance", "flowers",
                  "flowering_season", "flower_color", "leaf_color", "fruit_color", "harvest_season",
                  "drought_tolerant", "salt_tolerant", "thorny", "invasive", "tropical", "indoor",
                  "edible_fruit", "edible_leaf", "cuisine", "medicinal",
                  "poisonous_to_humans", "poisonous_to_pets", "propagation", "pruning_month", "description"):
            v = d.get(k)
            if v not in (None, "", [], {}) and not _upsell(v):
                rec[k] = v
        for k, v in dimensions_from_perenual(d).items():
            rec[k] = v
        return rec


@dataclass
class GbifRaw:
    key: int
    scientific_name: str
    kingdom: Optional[str] = None
    family: Optional[str] = None
    genus: Optional[str] = None
    species: Optional[str] = None
    rank: Optional[str] = None
    vernacular: Optional[str] = None

    @classmethod
    def from_json(cls, payload: Any) -> "GbifRaw":
        if not isinstance(payload, dict):
            raise MalformedPayload(f"gbif: expected object, got {type(payload).__name__}")
        key = payload.get("key", payload.get("usageKey"))
        name = _first(payload.get("canonicalName")) or _first(payload.get("scientificName"))
        if key is None or not name:
            raise MalformedPayload(f"gbif: missing key/name in {str(payload)[:120]}")
        try:
            key = int(key)
        except (TypeError, ValueError):
            raise MalformedPayload(f"gbif: bad key {key!r}")
        vern = None
        for v in payload.get("vernacularNames") or []:
            if not isinstance(v, dict):
                continue
            if (v.get("language") or "").lower() in ("eng", "en") and isinstance(v.get("vernacularName"), str):
                vern = v["vernacularName"].strip() or None
                if vern:
                    break
        return cls(key=key, scientific_name=name, kingdom=payload.get("kingdom"),
                   family=payload.get("family"), genus=payload.get("genus"),
                   species=payload.get("species"), rank=payload.get("rank"), vernacular=vern)

    def to_candidate(self) -> Dict[str, Any]:
        return new_candidate(
            scientific_name=self.scientific_name,
            common_name=self.vernacular,
            family=self.family,
            genus=self.genus,
            species=species_epithet(self.species, self.genus),
            rank=(self.rank or "").lower() or None,
            gbif_id=str(self.key),
            external_id=f"gbif-{self.key}",
            source="gbif",
        )


@dataclass
class INaturalistRaw:
    id: int
    name: str
    rank: Optional[str] = None
    iconic_taxon: Optional[str] = None
    common_name: Optional[str] = None
    conservation_status: Optional[str] = None

    @classmethod
    def from_json(cls, payload: Any) -> "INaturalistRaw":
        if not isinstance(payload, dict):
            raise MalformedPayload(f"inaturalist: expected object, got {type(payload).__name__}")
        tid = payload.get("id")
        name = _first(payload.get("name"))
        if not isinstance(tid, int) or not name:
            raise MalformedPayload(f"inaturalist: missing id/name in {str(payload)[:120]}")
        status = (payload.get("conservation_status") or {}).get("status")
        return cls(id=tid, name=name, rank=payload.get("rank"),
                   iconic_taxon=payload.get("iconic_taxon_name"),
                   common_name=_first(payload.get("preferred_common_name")),
                   conservation_status=status)

    def to_candidate(self) -> Dict[str, Any]:
        return new_candidate(
            scientific_name=self.name,
            common_name=self.common_name,
            rank=self.rank,
            conservation_status=self.conservation_status,
            inaturalist_id=str(self.id),
            external_id=f"inaturalist-{self.id}",
            source="inaturalist",
        )


RawExternalRecord = Union[PerenualRaw, GbifRaw, INaturalistRaw]

def _parse_all(rows: List[Any], raw_type) -> List[RawExternalRecord]:
    out = []
    for row in rows or []:
        try:
            out.append(raw_type.from_json(row))
        except MalformedPayload as e:
            dbg("skip:", e)
    return out

def _keep(rec: Dict[str, Any]) -> bool:
    return not (is_vague_name(rec.get("scientific_name")) or is_vague_name(rec.get("common_name")))

# ---------- Perenual ----------
async def _perenual_page(client: httpx.AsyncClient, params: dict, page: int) -> list:
    try:
        r = await client.get(f"{PERENUAL_BASE}/species-list", params={**params, "page": page})
        r.raise_for_status()
        return (r.json() or {}).get("data") or []
    except (httpx.HTTPError, ValueError) as e:
        print(f"WARN: Perenual page {page} failed ->", repr(e))
        return []

async def search_perenual(client: httpx.AsyncClient, query: str, api_key: Optional[str] = None,
                          max_pages: Optional[int] = None) -> List[Dict[str, Any]]:
    """
    Page 1 tells us last_page; pages 2..min(last_page, max_pages) are fetched
    concurrently. A failed extra page counts as empty; a failed first page raises.
    """
    key = require_key("PERENUAL_API_KEY", api_key)
    max_pages = max_pages or import_settings.PERENUAL_MAX_PAGES
    params = {"key": key, "q": query, "per_page": import_settings.PERENUAL_PER_PAGE}

    r = await client.get(f"{PERENUAL_BASE}/species-list", params=params)
    r.raise_for_status()
    first = r.json() or {}
    rows = list(first.get("data") or [])
    last_page = int(first.get("last_page") or 1)
    dbg(f"Perenual: '{query}' total={first.get('total')} last_page={last_page}")

    if last_page > 1:
        pages = range(2, min(last_page, max_pages) + 1)
        for extra in await asyncio.gather(*[_perenual_page(client, params, p) for p in pages]):
            rows.extend(extra)

    out = [raw.to_candidate() for raw in _parse_all(rows, PerenualRaw)]
    out = [c for c in out if _keep(c)]
    dbg(f"Perenual: '{query}' rows={len(rows)} kept={len(out)}")
    return out

async def perenual_details(client: httpx.AsyncClient, plant_id: Union[int, str],
                           api_key: Optional[str] = None) -> Dict[str, Any]:
    key = require_key("PERENUAL_API_KEY", api_key)
    r = await client.get(f"{PERENUAL_BASE}/species/details/{plant_id}", params={"key": key})
    r.raise_for_status()
    return PerenualRaw.from_json(r.json()).to_candidate(detailed=True)

# ---------- GBIF ----------
async def search_gbif(client: httpx.AsyncClient, query: str, rank: Optional[str] = None) -> List[Dict[str, Any]]:
    params = {"q": query, "kingdom": "Plantae", "status": "ACCEPTED", "limit": import_settings.SEARCH_LIMIT}
    if rank:
        params["rank"] = rank.upper()
    r = await client.get(f"{GBIF_BASE}/species/search", params=params)
    r.raise_for_status()
    rows = (r.json() or {}).get("results") or []
    raws = [g for g in _parse_all(rows, GbifRaw) if g.kingdom == "Plantae"]
    out = [c for c in (g.to_candidate() for g in raws) if _keep(c)]
    dbg(f"GBIF: '{query}' rows={len(rows)} kept={len(out)}")
    return out

async def gbif_match(client: httpx.AsyncClient, name: str) -> Optional[Dict[str, Any]]:
    r = await client.get(f"{GBIF_BASE}/species/match", params={"name": name, "kingdom": "Plantae"})
    r.raise_for_status()
    js = r.json()
    if not isinstance(js, dict) or not js.get("usageKey"):
        return None
    return js

# ---------- iNaturalist ----------
async def search_inaturalist(client: httpx.AsyncClient, query: str, rank: Optional[str] = None) -> List[Dict[str, Any]]:
    params = {"q": query, "per_page": import_settings.SEARCH_LIMIT}
    if rank:
        params["rank"] = rank.lower()
    r = await client.get(f"{INAT_BASE}/taxa/autocomplete", params=params)
    r.raise_for_status()
    rows = (r.json() or {}).get("results") or []
    raws = [t for t in _parse_all(rows, INaturalistRaw) if t.iconic_taxon == "Plantae"]
    out = [c for c in (t.to_candidate() for t in raws) if _keep(c)]
    dbg(f"iNat: '{query}' rows={len(rows)} kept={len(out)}")
    return out
