#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Plant import admin tool.

  plants_import.py search helianthus --source gbif
  plants_import.py details 1234
  plants_import.py normalize "HELIANTHUS CAPENOCH STAR" "Rosa x alba"
  plants_import.py enrich "Echinacea purpurea 'White Swan'"
  plants_import.py import helianthus --sources perenual gbif --limit 50
  plants_import.py generate-image "Lavandula angustifolia" --type full --plant-id import-...
"""

import argparse
import asyncio
import json

import import_settings
from import_settings import dbg, get_sb, make_client, set_debug
from plant_import_service import PlantImportService, SOURCES
from plant_names import normalize_name, normalize_record, rules_for
from plant_store import PlantStore
from runware_images import RunwareImageGenerator, IMAGE_TYPES

def _dump(obj):
    print(json.dumps(obj, indent=2, ensure_ascii=False, default=str))

def _compact(rec: dict) -> dict:
    return {k: v for k, v in rec.items() if v not in (None, "", [], {})}

async def _with_service(args, fn, store=None):
    async with make_client() as client:
        svc = PlantImportService(client, store=store, rules=rules_for(args.rules))
        return await fn(svc)

def cmd_search(args):
    async def go(svc):
        return await svc.search(args.source, args.query, rank=args.rank)
    rows = asyncio.run(_with_service(args, go))
    for r in rows[: args.limit] if args.limit else rows:
        _dump(_compact(r))
    print(f"{len(rows)} candidates")

def cmd_details(args):
    async def go(svc):
        return await svc.details(args.perenual_id)
    _dump(_compact(asyncio.run(_with_service(args, go))))

def cmd_normalize(args):
    rules = rules_for(args.rules)
    for name in args.names:
        print(f"{name!r} -> {normalize_name(name, rules)!r}")

def cmd_enrich(args):
    async def go(svc):
        rec = normalize_record({"scientific_name": args.name}, svc.rules)
        return await svc.enrich(rec)
    _dump(_compact(asyncio.run(_with_service(args, go))))

def cmd_import(args):
    store = PlantStore(get_sb())
    async def go(svc):
        return await svc.run(args.query, sources=args.sources, limit=args.limit,
                             enrich=not args.no_enrich, progress=True)
    counts = asyncio.run(_with_service(args, go, store=store))
    print(f"Imported {counts['imported']}, skipped {counts['skipped']}, failed {counts['failed']}")

def cmd_generate_image(args):
    gen = RunwareImageGenerator()
    path = gen.generate(args.name, args.type)
    print(path)
    if args.plant_id:
        PlantStore(get_sb()).set_image(args.plant_id, args.type, path)
        dbg("image saved on", args.plant_id)

def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="GardenScape plant import")
    ap.add_argument("--debug", action="store_true", help="Verbose debug logging")
    ap.add_argument("--rules", default=import_settings.RULES_VERSION or None,
                    help="Nomenclature rules version (default: latest)")

    sub = ap.add_subparsers(dest="cmd", required=True)

    s = sub.add_parser("search", help="Search one source and print normalized candidates")
    s.add_argument("query")
    s.add_argument("--source", choices=SOURCES, default="gbif")
    s.add_argument("--rank", help="Taxon rank filter (GBIF / iNaturalist)")
    s.add_argument("--limit", type=int)
    s.set_defaults(func=cmd_search)

    d = sub.add_parser("details", help="Perenual species details")
    d.add_argument("perenual_id", type=int)
    d.set_defaults(func=cmd_details)

    n = sub.add_parser("normalize", help="Normalize botanical names (no network)")
    n.add_argument("names", nargs="+")
    n.set_defaults(func=cmd_normalize)

    e = sub.add_parser("enrich", help="Enrich one plant name and print the record")
    e.add_argument("name")
    e.set_defaults(func=cmd_enrich)

    i = sub.add_parser("import", help="Search, enrich and insert into the plants table")
    i.add_argument("query")
    i.add_argument("--sources", nargs="+", choices=SOURCES, default=list(SOURCES))
    i.add_argument("--limit", type=int)
    i.add_argument("--no-enrich", action="store_true")
    i.set_defaults(func=cmd_import)

    g = sub.add_parser("generate-image", help="Generate a Runware image for a plant")
    g.add_argument("name")
    g.add_argument("--type", choices=IMAGE_TYPES, default="thumbnail")
    g.add_argument("--plant-id", help="Store the image path on this plants row")
    g.set_defaults(func=cmd_generate_image)
    return ap

def main(argv=None):
    args = build_parser().parse_args(argv)
    set_debug(args.debug)
    args.func(args)

if __name__ == "__main__":
    main()
