"""
Equipment registry snapshot and code resolution.

Capsules and cylinders are numbered independently, so the same short code
("1", "12") can name one instrument of each kind, and cylinders of different
subtypes (driven "biselado" molds, "vazios_minimos" molds) share a numbering
scheme too. Callers state the context they are in and the resolver only
matches instruments that fit it.

The registry is an immutable snapshot; refreshing equipment means building a
new registry and handing that one to the resolver.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Optional, Tuple

from densilab.services.validators import is_blank_code, normalize_code, to_number


class Category(str, Enum):
    CAPSULE = "capsule"
    CYLINDER = "cylinder"

    @classmethod
    def parse(cls, value):
        if isinstance(value, cls):
            return value
        text = str(value or "").strip().lower()
        aliases = {"capsula": cls.CAPSULE, "cilindro": cls.CYLINDER}
        if text in aliases:
            return aliases[text]
        return cls(text)


# Subtypes per calling context.
IN_SITU_CYLINDER = "biselado"
MAX_MIN_CYLINDER = "vazios_minimos"
REAL_DENSITY_CAPSULE = "pequena"

OVEN_DRYING = "estufa"
PAN_DRYING = "frigideira"
MOISTURE_CAPSULES = {OVEN_DRYING: "media", PAN_DRYING: "grande"}


def moisture_capsule_subtype(drying_method):
    """Capsule size used for moisture determinations dried by `drying_method`."""
    method = (drying_method or OVEN_DRYING).strip().lower()
    if method not in MOISTURE_CAPSULES:
        raise ValueError(
            f"Unknown drying method: {drying_method!r} (expected one of {', '.join(MOISTURE_CAPSULES)})"
        )
    return MOISTURE_CAPSULES[method]


@dataclass(frozen=True)
class EquipmentRecord:
    code: str
    category: Category
    tare_weight: float = 0.0
    weight: float = 0.0
    volume: float = 0.0
    subtype: str = ""
    description: str = ""
    height: Optional[float] = None
    diameter: Optional[float] = None
    status: str = "ativo"

    @property
    def key(self):
        return normalize_code(self.code)

    @property
    def is_active(self):
        return (self.status or "ativo").strip().lower() == "ativo"

    def matches_subtype(self, subtype):
        if not subtype:
            return True
        return (self.subtype or "").strip().lower() == subtype.strip().lower()


@dataclass(frozen=True)
class EquipmentMatch:
    found: bool
    category: Optional[Category] = None
    record: Optional[EquipmentRecord] = None


NOT_FOUND = EquipmentMatch(found=False)


@dataclass(frozen=True)
class EquipmentRegistry:
    capsules: Tuple[EquipmentRecord, ...] = ()
    cylinders: Tuple[EquipmentRecord, ...] = ()
    _index: Dict[Category, Dict[str, Tuple[EquipmentRecord, ...]]] = field(
        default_factory=dict, init=False, repr=False, compare=False
    )

    def __post_init__(self):
        index = {}
        for category, records in ((Category.CAPSULE, self.capsules), (Category.CYLINDER, self.cylinders)):
            by_code = {}
            for rec in records:
                if not rec.is_active or not rec.key:
                    continue
                by_code.setdefault(rec.key, []).append(rec)
            index[category] = {k: tuple(v) for k, v in by_code.items()}
        object.__setattr__(self, "_index", index)

    @classmethod
    def from_snapshot(cls, capsules=(), cylinders=()):
        return cls(
            capsules=tuple(_as_record(r, Category.CAPSULE) for r in capsules),
            cylinders=tuple(_as_record(r, Category.CYLINDER) for r in cylinders),
        )

    def candidates(self, category, code):
        return self._index.get(category, {}).get(normalize_code(code), ())

    def __len__(self):
        return sum(len(v) for by_code in self._index.values() for v in by_code.values())


def _as_record(raw, category):
    if isinstance(raw, EquipmentRecord):
        return raw if raw.category == category else replace(raw, category=category)
    raw = dict(raw)
    height = raw.get("height")
    diameter = raw.get("diameter")
    return EquipmentRecord(
        code=str(raw.get("code") or ""),
        category=category,
        tare_weight=to_number(raw.get("tare_weight")),
        weight=to_number(raw.get("weight")),
        volume=to_number(raw.get("volume")),
        subtype=str(raw.get("subtype") or ""),
        description=str(raw.get("description") or ""),
        height=None if height is None else to_number(height),
        diameter=None if diameter is None else to_number(diameter),
        status=str(raw.get("status") or "ativo"),
    )


def resolve(registry, code, preferred_category=None, preferred_subtype=None):
    """
    Look a typed code up in the registry.

    With preferred_category only that category is searched; without it,
    capsules are tried before cylinders. preferred_subtype excludes records
    of another subtype even when the code matches.
    """
    if is_blank_code(code):
        return NOT_FOUND
    if preferred_category is not None:
        order = (Category.parse(preferred_category),)
    else:
        order = (Category.CAPSULE, Category.CYLINDER)
    for category in order:
        for rec in registry.candidates(category, code):
            if rec.matches_subtype(preferred_subtype):
                return EquipmentMatch(found=True, category=category, record=rec)
    return NOT_FOUND


def autofill_capsule(det, code, registry, subtype=None):
    """
    Set a moisture determination's capsule code and keep its tare in step:
    found -> capsule tare, blank -> 0, unknown non-blank -> unchanged.
    """
    if is_blank_code(code):
        return replace(det, capsule_code="", tare=0.0)
    match = resolve(registry, code, preferred_category=Category.CAPSULE, preferred_subtype=subtype)
    if match.found:
        return replace(det, capsule_code=code, tare=match.record.tare_weight)
    return replace(det, capsule_code=code)


def autofill_cylinder(det, code, registry, subtype=None):
    """Same contract as autofill_capsule, for the mold weight and volume."""
    if is_blank_code(code):
        return replace(det, cylinder_code="", mold=0.0, volume=0.0)
    match = resolve(registry, code, preferred_category=Category.CYLINDER, preferred_subtype=subtype)
    if match.found:
        return replace(det, cylinder_code=code, mold=match.record.weight, volume=match.record.volume)
    return replace(det, cylinder_code=code)


def match_payload(match):
    if not match.found:
        return {"found": False}
    rec = match.record
    out = {"found": True, "category": match.category.value, "code": rec.code, "subtype": rec.subtype}
    if match.category == Category.CAPSULE:
        out["tare_weight"] = rec.tare_weight
    else:
        out["weight"] = rec.weight
        out["volume"] = rec.volume
    return out
