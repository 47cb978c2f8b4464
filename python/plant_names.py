#!/usr/bin/env python
# -*- coding: utf-8 -*-

"""
Botanical name cleanup for vendor-supplied plant records.

Vendors send names like "HELIANTHUS CAPENOCH STAR", "Rosa x alba" or
"Helianthus Sunfiniti Yellow Dark Center". normalize_record() rewrites them
into "Genus species 'Cultivar'" / "Genus Brand Series 'Cultivar'" form and
fills genus/species/cultivar/series on the record when they are missing.

Pure string work, no I/O. Running it twice gives the same result as once.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import import_settings

# ---------- Rules tables ----------
@dataclass(frozen=True)
class NomenclatureRules:
    version: str
    series_names: Tuple[str, ...] = ()
    # "genus cultivar" (lowercase) -> species epithet
    known_species: Dict[str, str] = field(default_factory=dict)
    # lowercase misspelling -> canonical cultivar
    cultivar_typos: Dict[str, str] = field(default_factory=dict)

    def extend(self, version: str, series_names: Tuple[str, ...] = (),
               known_species: Optional[Dict[str, str]] = None,
               cultivar_typos: Optional[Dict[str, str]] = None) -> "NomenclatureRules":
        return NomenclatureRules(
            version=version,
            series_names=self.series_names + tuple(s for s in series_names if s not in self.series_names),
            known_species={**self.known_species, **(known_species or {})},
            cultivar_typos={**self.cultivar_typos, **(cultivar_typos or {})},
        )

    def series(self, token: str) -> Optional[str]:
        t = (token or "").strip("'\"").lower()
        for s in self.series_names:
            if s.lower() == t:
                return s
        return None

    def fix_cultivar(self, cultivar: str) -> str:
        return self.cultivar_typos.get(" ".join(cultivar.split()).lower(), cultivar)

    def species_for(self, genus: Optional[str], words: Optional[str]) -> Optional[str]:
        if not genus or not words:
            return None
        words = self.fix_cultivar(words)
        return self.known_species.get(" ".join(f"{genus} {words}".split()).lower())


RULES_2024_1 = NomenclatureRules(
    version="2024.1",
    known_species={
        "helianthus lemon queen": "pauciflorus",
        "helianthus capenoch star": "decapetalus",
        "helianthus henry eilers": "salicifolius",
        "echinacea white swan": "purpurea",
        "echinacea magnus": "purpurea",
        "rudbeckia goldsturm": "fulgida",
        "lavandula hidcote": "angustifolia",
        "lavandula munstead": "angustifolia",
        "salvia caradonna": "nemorosa",
        "salvia may night": "nemorosa",
        "hydrangea annabelle": "arborescens",
        "hydrangea limelight": "paniculata",
    },
    cultivar_typos={
        "capenor star": "Capenoch Star",
    },
)

RULES_2024_2 = RULES_2024_1.extend(
    "2024.2",
    series_names=("Sunfinity", "Sunfiniti", "SunBelievable", "Suncredible", "Sunrich", "ProCut",
                  "Sombrero", "Kismet", "PowWow"),
    known_species={
        # common-name keys, used when the cultivar itself is not listed
        "helianthus swamp sunflower": "angustifolius",
        "helianthus willowleaf sunflower": "salicifolius",
        "helianthus thinleaf sunflower": "decapetalus",
        "helianthus maximilian sunflower": "maximiliani",
    },
    cultivar_typos={
        "lemon quen": "Lemon Queen",
        "goldstrum": "Goldsturm",
        "caradona": "Caradonna",
        "anabelle": "Annabelle",
    },
)

RULESETS: Dict[str, NomenclatureRules] = {r.version: r for r in (RULES_2024_1, RULES_2024_2)}
LATEST_RULES = "2024.2"

def rules_for(version: Optional[str] = None) -> NomenclatureRules:
    if not version:
        return RULESETS[LATEST_RULES]
    try:
        return RULESETS[version]
    except KeyError:
        raise ValueError(f"unknown nomenclature rules version {version!r} (have {', '.join(RULESETS)})")

try:
    DEFAULT_RULES = rules_for(import_settings.RULES_VERSION)
except ValueError as e:
    print("WARN:", e, "-> using", LATEST_RULES)
    DEFAULT_RULES = rules_for(None)

# ---------- Patterns ----------
QUOTED_RE = re.compile(r"'([^']+)'|\"([^\"]+)\"")
HYBRID_RE = re.compile(r"\s+[xX]\s+")
SERIES_RE = re.compile(r"(\S+)\s+Series\b")
CULTIVAR_WORD_RE = re.compile(r"[A-Z][\w\-]*")
VAGUE_SUFFIX_RE = re.compile(r"(?:^|\s)(?:(?:sp|spp|cvs|agg)\.?|complex)\s*$", re.IGNORECASE)
CULTIVARS_RE = re.compile(r"\bcultivars\b", re.IGNORECASE)

def is_vague_name(name: Optional[str]) -> bool:
    """True for catch-all entries like 'Rosa spp.', 'Quercus cvs.' or 'Rose cultivars'."""
    if not name:
        return False
    s = str(name).strip()
    return bool(VAGUE_SUFFIX_RE.search(s) or CULTIVARS_RE.search(s))

# ---------- Helpers ----------
def _clean(s) -> str:
    if not s or not isinstance(s, str):
        return ""
    s = s.replace("‘", "'").replace("’", "'").replace("“", '"').replace("”", '"')
    return " ".join(s.split())

def _title(words: str) -> str:
    return " ".join(w[:1].upper() + w[1:] for w in words.split())

def _is_epithet(tok: str) -> bool:
    return bool(tok) and tok[0].isalpha() and tok == tok.lower()

def _is_cultivar_word(tok: str) -> bool:
    return bool(CULTIVAR_WORD_RE.fullmatch(tok))

def _is_shouting(name: str) -> bool:
    if name.isupper():
        return True
    for tok in name.split():
        t = tok.strip("'\"().,")
        if len(t) > 3 and t.isupper():
            return True
    return False

def format_scientific_name(genus: Optional[str], species: Optional[str] = None,
                           cultivar: Optional[str] = None, series: Optional[str] = None) -> str:
    parts = [genus or "Unknown"]
    if species:
        parts.append(species)
    if series:
        parts.append(f"{series} Series")
    if cultivar:
        parts.append(f"'{cultivar}'")
    return " ".join(parts)

def _unshout(name: str, rules: NomenclatureRules) -> Tuple[str, Optional[str]]:
    """Rule 1: rewrite an all-caps name. Returns (name, series brand or None)."""
    tokens = name.split()
    genus = tokens[0].capitalize()
    rest = tokens[1:]
    if not rest:
        return genus, None

    series = rules.series(rest[0])
    if series:
        words = [t.strip("'\"") for t in rest[1:] if t.strip("'\"").lower() != "series"]
        cultivar = _title(" ".join(words).lower())
        if cultivar:
            return f"{genus} {series} Series '{cultivar}'", series
        return f"{genus} {series} Series", series

    tail = " ".join(t.strip("'\"") for t in rest)
    if rules.species_for(genus, tail) or tail.lower() in rules.cultivar_typos:
        return f"{genus} '{_title(tail.lower())}'", None

    lowered = " ".join(rest).lower()
    lowered = QUOTED_RE.sub(lambda m: "'" + _title(m.group(1) or m.group(2)) + "'", lowered)
    return f"{genus} {lowered}", None

def _implicit_cultivar(tokens, genus: str, rules: NomenclatureRules):
    """
    Rule 4 fallback: an unquoted trailing run of >= 2 capitalized words after the
    genus (and an optional lowercase epithet) is a cultivar, or a series cultivar
    when the run starts with a known brand.
    Returns (species_token, series, cultivar) or None.
    """
    low = [t.lower() for t in tokens]
    if genus.lower() not in low:
        return None
    after = tokens[low.index(genus.lower()) + 1:]
    species_tok = None
    if after and _is_epithet(after[0]):
        species_tok, after = after[0], after[1:]
    if len(after) < 2 or not all(_is_cultivar_word(t) for t in after):
        return None
    series = rules.series(after[0])
    if series:
        words = [t for t in after[1:] if t.lower() != "series"]
        if not words:
            return None
        return species_tok, series, " ".join(words)
    return species_tok, None, " ".join(after)

# ---------- Normalizer ----------
def normalize_record(record: dict, rules: Optional[NomenclatureRules] = None) -> dict:
    """Normalize record["scientific_name"] and its name parts in place; returns the record."""
    rules = rules or DEFAULT_RULES
    name = _clean(record.get("scientific_name"))
    genus = _clean(record.get("genus"))
    species = _clean(record.get("species"))
    cultivar = _clean(record.get("cultivar"))
    series = _clean(record.get("series"))

    # 1) shouting names
    if name and _is_shouting(name):
        name, brand = _unshout(name, rules)
        series = series or (brand or "")

    # 2) informal hybrid marker
    name = HYBRID_RE.sub(" × ", name)
    tokens = name.split()

    # 3) genus from the first capitalized token
    if not genus:
        genus = next((t for t in tokens if t[:1].isupper()), "")

    # 4) quoted cultivar, else an implicit one
    m = QUOTED_RE.search(name)
    if m:
        quoted = m.group(1) or m.group(2)
        name = f"{name[:m.start()]}'{quoted}'{name[m.end():]}"
        cultivar = cultivar or quoted
        head = name[:m.start()].split()
        if not species and len(head) >= 2 and head[0].lower() == genus.lower() and _is_epithet(head[1]):
            species = head[1]
        sm = SERIES_RE.search(name[:m.start()])
        if sm and not series:
            series = rules.series(sm.group(1)) or sm.group(1)
    elif not cultivar and genus:
        implicit = _implicit_cultivar(tokens, genus, rules)
        if implicit:
            species_tok, brand, cultivar = implicit
            species = species or (species_tok or "")
            series = series or (brand or "")
            name = format_scientific_name(genus, species_tok, cultivar, brand)

    # 5) known species for the cultivar (or common name)
    if cultivar and not species:
        hit = rules.species_for(genus, cultivar) or rules.species_for(genus, _clean(record.get("common_name")))
        if hit:
            species = hit
            name = format_scientific_name(genus, species, rules.fix_cultivar(cultivar), series or None)

    # 6) positional epithet
    if not species:
        tokens = name.split()
        if len(tokens) >= 2 and _is_epithet(tokens[1]):
            species = tokens[1]
        elif len(tokens) >= 3 and tokens[1] == "×" and _is_epithet(tokens[2]):
            species = f"× {tokens[2]}"

    # 7) cultivar typos
    if cultivar:
        fixed = rules.fix_cultivar(cultivar)
        if fixed != cultivar:
            name = name.replace(f"'{cultivar}'", f"'{fixed}'")
            cultivar = fixed

    # 8) casing
    if genus:
        genus = genus[:1].upper() + genus[1:].lower()
        tokens = name.split()
        if tokens and tokens[0].lower() == genus.lower() and tokens[0] != genus:
            name = " ".join([genus] + tokens[1:])
    if species:
        species = species.lower()
    if not name and genus:
        name = format_scientific_name(genus, species or None, cultivar or None, series or None)

    if name:
        record["scientific_name"] = name
    if genus:
        record["genus"] = genus
    if species:
        record["species"] = species
    if cultivar:
        record["cultivar"] = cultivar
    if series:
        record["series"] = series
    return record

def normalize_name(name: str, rules: Optional[NomenclatureRules] = None) -> str:
    rec = normalize_record({"scientific_name": name}, rules)
    return rec.get("scientific_name") or ""
