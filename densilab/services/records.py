"""
Test records as edited on the forms, and the glue between them and the
calculators: payload parsing, recalculation, equipment auto-fill and the
save payload handed to persistence.
"""
from dataclasses import asdict, dataclass, field, is_dataclass, replace
from enum import Enum
from typing import Optional, Tuple

from densilab.services.density_in_situ import compute_in_situ
from densilab.services.density_max_min import compute_max_min
from densilab.services.determinations import (
    CylinderDetermination,
    MoistureDetermination,
    PicnometerDetermination,
)
from densilab.services.equipment import (
    IN_SITU_CYLINDER,
    MAX_MIN_CYLINDER,
    OVEN_DRYING,
    REAL_DENSITY_CAPSULE,
    autofill_capsule,
    autofill_cylinder,
    moisture_capsule_subtype,
)
from densilab.services.real_density import compute_real_density
from densilab.services.status import Status
from densilab.services.validators import is_blank_code, optional_number

REAL_DENSITY = "real-density"
DENSITY_IN_SITU = "density-in-situ"
MAX_MIN_DENSITY = "max-min-density"
TEST_KINDS = (REAL_DENSITY, DENSITY_IN_SITU, MAX_MIN_DENSITY)


@dataclass(frozen=True)
class RecordInfo:
    registration_number: str = ""
    date: str = ""
    operator: str = ""
    material: str = ""
    origin: str = ""
    location: str = ""

    @classmethod
    def from_payload(cls, raw):
        raw = raw or {}
        return cls(
            registration_number=str(raw.get("registration_number") or raw.get("registrationNumber") or ""),
            date=str(raw.get("date") or ""),
            operator=str(raw.get("operator") or ""),
            material=str(raw.get("material") or ""),
            origin=str(raw.get("origin") or ""),
            location=str(raw.get("location") or raw.get("coordinates") or ""),
        )


def _three(cls):
    return field(default_factory=lambda: (cls(), cls(), cls()))


def _two(cls):
    return field(default_factory=lambda: (cls(), cls()))


@dataclass(frozen=True)
class RealDensityTest:
    info: RecordInfo = field(default_factory=RecordInfo)
    moisture: Tuple[MoistureDetermination, ...] = _three(MoistureDetermination)
    picnometer: Tuple[PicnometerDetermination, ...] = _two(PicnometerDetermination)
    status: Status = Status.AGUARDANDO


@dataclass(frozen=True)
class InSituDensityTest:
    info: RecordInfo = field(default_factory=RecordInfo)
    top_cylinder: CylinderDetermination = field(default_factory=CylinderDetermination)
    base_cylinder: CylinderDetermination = field(default_factory=CylinderDetermination)
    moisture_top: Tuple[MoistureDetermination, ...] = _three(MoistureDetermination)
    moisture_base: Tuple[MoistureDetermination, ...] = _three(MoistureDetermination)
    real_density_ref: Optional[float] = None
    drying_method: str = OVEN_DRYING
    status: Status = Status.AGUARDANDO


@dataclass(frozen=True)
class MaxMinDensityTest:
    info: RecordInfo = field(default_factory=RecordInfo)
    max_density: Tuple[CylinderDetermination, ...] = _three(CylinderDetermination)
    min_density: Tuple[CylinderDetermination, ...] = _three(CylinderDetermination)
    moisture: Tuple[MoistureDetermination, ...] = _three(MoistureDetermination)
    grain_density: Optional[float] = None
    drying_method: str = OVEN_DRYING
    status: Status = Status.AGUARDANDO


def recalculate(record, real_density_ref=None, grain_density=None):
    """
    Derived results for a record. real_density_ref / grain_density are
    fallbacks used only when the record carries no reference of its own.
    """
    if isinstance(record, RealDensityTest):
        return compute_real_density(record.moisture, record.picnometer)
    if isinstance(record, InSituDensityTest):
        return compute_in_situ(
            record.top_cylinder,
            record.base_cylinder,
            record.moisture_top,
            record.moisture_base,
            real_density_ref=record.real_density_ref or real_density_ref,
        )
    if isinstance(record, MaxMinDensityTest):
        return compute_max_min(
            record.max_density,
            record.min_density,
            record.moisture,
            grain_density=record.grain_density or grain_density,
        )
    raise TypeError(f"Not a test record: {type(record).__name__}")


def with_status(record, **kwargs):
    result = recalculate(record, **kwargs)
    return replace(record, status=result.status)


def autofill_record(record, registry):
    """
    Fill tares, molds and volumes from the registry for every determination
    that carries an equipment code. Determinations without a code keep the
    values typed on the form; clearing a code is handled per keystroke by
    autofill_capsule / autofill_cylinder.
    """
    if isinstance(record, RealDensityTest):
        return replace(record, moisture=_fill_capsules(record.moisture, registry, REAL_DENSITY_CAPSULE))
    if isinstance(record, InSituDensityTest):
        capsule = moisture_capsule_subtype(record.drying_method)
        return replace(
            record,
            top_cylinder=_fill_cylinder(record.top_cylinder, registry, IN_SITU_CYLINDER),
            base_cylinder=_fill_cylinder(record.base_cylinder, registry, IN_SITU_CYLINDER),
            moisture_top=_fill_capsules(record.moisture_top, registry, capsule),
            moisture_base=_fill_capsules(record.moisture_base, registry, capsule),
        )
    if isinstance(record, MaxMinDensityTest):
        return replace(
            record,
            max_density=tuple(_fill_cylinder(d, registry, MAX_MIN_CYLINDER) for d in record.max_density),
            min_density=tuple(_fill_cylinder(d, registry, MAX_MIN_CYLINDER) for d in record.min_density),
            moisture=_fill_capsules(record.moisture, registry, moisture_capsule_subtype(record.drying_method)),
        )
    raise TypeError(f"Not a test record: {type(record).__name__}")


def _fill_capsules(dets, registry, subtype):
    return tuple(
        d if is_blank_code(d.capsule_code) else autofill_capsule(d, d.capsule_code, registry, subtype)
        for d in dets
    )


def _fill_cylinder(det, registry, subtype):
    if is_blank_code(det.cylinder_code):
        return det
    return autofill_cylinder(det, det.cylinder_code, registry, subtype)


def record_from_payload(kind, payload):
    p = payload or {}
    info = RecordInfo.from_payload(p.get("info") if isinstance(p.get("info"), dict) else p)
    status = _status(p.get("status"))
    if kind == REAL_DENSITY:
        return RealDensityTest(
            info=info,
            moisture=_dets(MoistureDetermination, p.get("moisture"), 3),
            picnometer=_dets(PicnometerDetermination, p.get("picnometer"), 2),
            status=status,
        )
    if kind == DENSITY_IN_SITU:
        raw_cylinders = p.get("determinations")
        if raw_cylinders is None:
            raw_cylinders = [p.get("top_cylinder"), p.get("base_cylinder")]
        cylinders = _dets(CylinderDetermination, raw_cylinders, 2)
        return InSituDensityTest(
            info=info,
            top_cylinder=cylinders[0],
            base_cylinder=cylinders[1],
            moisture_top=_dets(MoistureDetermination, p.get("moisture_top", p.get("moistureTop")), 3),
            moisture_base=_dets(MoistureDetermination, p.get("moisture_base", p.get("moistureBase")), 3),
            real_density_ref=optional_number(p.get("real_density_ref", p.get("realDensityRef"))),
            drying_method=_drying_method(p),
            status=status,
        )
    if kind == MAX_MIN_DENSITY:
        return MaxMinDensityTest(
            info=info,
            max_density=_dets(CylinderDetermination, p.get("max_density", p.get("maxDensity")), 3),
            min_density=_dets(CylinderDetermination, p.get("min_density", p.get("minDensity")), 3),
            moisture=_dets(MoistureDetermination, p.get("moisture"), 3),
            grain_density=optional_number(p.get("grain_density")),
            drying_method=_drying_method(p),
            status=status,
        )
    raise ValueError(f"Unknown test kind: {kind!r} (expected one of {', '.join(TEST_KINDS)})")


def _status(raw):
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return Status.AGUARDANDO
    return Status.parse(raw)


def _drying_method(p):
    method = str(p.get("drying_method") or p.get("dryingMethod") or OVEN_DRYING).strip().lower()
    moisture_capsule_subtype(method)  # unknown methods raise ValueError
    return method


def _dets(cls, raw, count):
    """
    Determinations come either as a list or as {"det1": ..., "det2": ...};
    missing slots are blank determinations.
    """
    if isinstance(raw, dict):
        items = [raw.get(f"det{i}") for i in range(1, count + 1)]
    elif isinstance(raw, (list, tuple)):
        items = list(raw[:count])
    else:
        items = []
    items += [None] * (count - len(items))
    return tuple(cls.from_payload(item) for item in items)


def kind_of(record):
    if isinstance(record, RealDensityTest):
        return REAL_DENSITY
    if isinstance(record, InSituDensityTest):
        return DENSITY_IN_SITU
    if isinstance(record, MaxMinDensityTest):
        return MAX_MIN_DENSITY
    raise TypeError(f"Not a test record: {type(record).__name__}")


def build_save_payload(record, **kwargs):
    """Inputs, results and verdict of a record as plain JSON-ready data."""
    result = recalculate(record, **kwargs)
    saved = replace(record, status=result.status)
    out = _plain(asdict(saved))
    out["kind"] = kind_of(record)
    out["results"] = _plain(asdict(result))
    return out


def _plain(value):
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    if is_dataclass(value):
        return _plain(asdict(value))
    return value
