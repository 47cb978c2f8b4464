#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Write import candidates into the Supabase `plants` table.

A candidate is inserted only when no row has exactly the same
scientific_name; existing rows are never updated by an import. Each row is
its own insert, so one bad row does not stop the batch.
"""

import random
import string
import time
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional

from supabase import Client
from tqdm import tqdm

import import_settings
from import_settings import dbg, get_sb
from plant_dimensions import coerce_cm

IMAGE_COLUMNS = {"thumbnail": "thumbnail_image", "full": "full_image", "detail": "detail_image"}

BOOL_COLUMNS = ("drought_tolerant", "salt_tolerant", "thorny", "tropical", "invasive", "indoor",
                "edible_fruit", "edible_leaf", "cuisine", "medicinal")
DIMENSION_COLUMNS = ("height_min_cm", "height_max_cm", "spread_min_cm", "spread_max_cm",
                     "height_min_inches", "height_max_inches", "spread_min_inches", "spread_max_inches")

def _data(res):
    return getattr(res, "data", None) or (res.get("data") if isinstance(res, dict) else None)

def _now() -> str:
    return datetime.now(timezone.utc).isoformat()

def new_plant_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"import-{int(time.time() * 1000)}-{suffix}"

def _as_list(v, default=None):
    if v in (None, "", [], {}):
        return default
    if isinstance(v, (list, tuple)):
        return list(v)
    return [v]

def _hardiness(v) -> str:
    # Perenual sends {"min": "5", "max": "9"}
    if isinstance(v, dict):
        lo, hi = v.get("min"), v.get("max")
        if lo or hi:
            return f"{lo or hi}-{hi or lo}"
        return "5-9"
    return str(v) if v not in (None, "") else "5-9"

def _score(v) -> int:
    try:
        return int(v or 0)
    except (TypeError, ValueError):
        return 1 if v else 0

def _perenual_id(external_id: Optional[str]) -> Optional[int]:
    if external_id and external_id.startswith("perenual-"):
        tail = external_id[len("perenual-"):]
        return int(tail) if tail.isdigit() else None
    return None

def to_plant_row(c: Dict[str, Any]) -> Dict[str, Any]:
    """Map a candidate onto the plants columns, substituting defaults for missing values."""
    name = (c.get("scientific_name") or "").strip()
    tokens = name.split()
    species = c.get("species")
    if not species and len(tokens) > 1 and tokens[1].isalpha() and tokens[1].islower():
        species = tokens[1]

    humans, pets = _score(c.get("poisonous_to_humans")), _score(c.get("poisonous_to_pets"))
    resistance = [r for r, flag in (("drought", c.get("drought_tolerant")), ("salt", c.get("salt_tolerant"))) if flag]

    row = {
        "id": new_plant_id(),
        "external_id": c.get("external_id"),
        "perenual_id": _perenual_id(c.get("external_id")),
        "scientific_name": name,
        "genus": c.get("genus") or (tokens[0] if tokens else None) or "Unknown",
        "species": species,
        "cultivar": c.get("cultivar"),
        "common_name": c.get("common_name") or "Unknown",
        "family": c.get("family"),
        "cycle": c.get("cycle") or "perennial",
        "hardiness": _hardiness(c.get("hardiness")),
        "sunlight": _as_list(c.get("sunlight"), ["full sun", "part shade"]),
        "soil": _as_list(c.get("soil"), ["well-drained"]),
        "watering": c.get("watering") or "moderate",
        "growth_rate": c.get("growth_rate") or "moderate",
        "care_level": c.get("care_level"),
        "maintenance": c.get("care_level") or c.get("maintenance") or "low",
        "leaf_color": _as_list(c.get("leaf_color"), ["green"]),
        "flower_color": _as_list(c.get("flower_color")),
        "flowering_season": c.get("flowering_season") or "summer",
        "fruit_color": _as_list(c.get("fruit_color")),
        "harvest_season": c.get("harvest_season"),
        "poisonous_to_humans": humans,
        "poisonous_to_pets": pets,
        "toxicity_notes": "toxic to humans/pets" if (humans or pets) else "non-toxic",
        "resistance": resistance,
        "propagation": _as_list(c.get("propagation")),
        "pruning_month": _as_list(c.get("pruning_month")),
        "description": c.get("description") or "",
        "data_source": c.get("source") or "import",
        "verification_status": "approved",
        "imported_at": _now(),
    }
    for k in BOOL_COLUMNS:
        row[k] = bool(c.get(k))
    for k in DIMENSION_COLUMNS:
        v = coerce_cm(c.get(k), "max" if "_max_" in k else "min")
        if v is not None:
            row[k] = v
        elif c.get(k) is not None:
            print(f"WARN: dropping unreadable {k} for {name} ->", repr(c[k]))
    return row


class PlantStore:
    def __init__(self, sb: Optional[Client] = None, table: Optional[str] = None):
        self.sb = sb if sb is not None else get_sb()
        self.table = table or import_settings.PLANTS_TABLE

    def find_by_scientific_name(self, name: str) -> Optional[Dict[str, Any]]:
        # exact, case-sensitive
        res = self.sb.table(self.table).select("id, scientific_name").eq("scientific_name", name).limit(1).execute()
        rows = _data(res)
        return rows[0] if rows else None

    def insert(self, row: Dict[str, Any]) -> Dict[str, Any]:
        res = self.sb.table(self.table).insert(row).execute()
        dbg("INSERT result:", _data(res))
        return row

    def import_one(self, candidate: Dict[str, Any]) -> str:
        name = (candidate.get("scientific_name") or "").strip()
        if not name:
            raise ValueError("candidate has no scientific_name")
        if self.find_by_scientific_name(name):
            print("Plant already exists:", name)
            return "skipped"
        self.insert(to_plant_row(candidate))
        return "imported"

    def import_plants(self, candidates: Iterable[Dict[str, Any]], progress: bool = False) -> Dict[str, int]:
        counts = {"imported": 0, "failed": 0, "skipped": 0}
        for c in tqdm(list(candidates), desc="Importing plants", unit="plant", disable=not progress):
            try:
                counts[self.import_one(c)] += 1
            except Exception as e:
                print("ERROR: failed to import", c.get("scientific_name"), "->", repr(e))
                counts["failed"] += 1
        return counts

    def set_image(self, plant_id: str, image_type: str, url: str):
        col = IMAGE_COLUMNS.get(image_type)
        if not col:
            raise ValueError(f"unknown image type {image_type!r} (have {', '.join(IMAGE_COLUMNS)})")
        now = _now()
        self.sb.table(self.table).update({
            col: url,
            "image_generation_status": "completed",
            "last_image_generation_at": now,
            "updated_at": now,
        }).eq("id", plant_id).execute()
