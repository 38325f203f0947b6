"""
In-situ density by the driven-cylinder method (top and base layers).

Determination 1 is the top cylinder and is corrected with the top moisture
average; determination 2 is the base cylinder, corrected with the base
average. Void index and relative compactness are taken against a reference
real density (gamma_s) from a previous real density test.

The compactness expression and the base offsets below reproduce the lab's
existing worksheet and have not been checked against a normative source.
"""
from dataclasses import dataclass
from typing import Tuple

from densilab.services.moisture import average_moisture, compute_moisture
from densilab.services.status import Status
from densilab.services.validators import safe_div

DEFAULT_REAL_DENSITY_REF = 3.149
VOID_INDEX_LIMIT = 0.7449999
BASE_COMPACTNESS_FACTOR = 0.97
BASE_VOID_INDEX_OFFSET = 0.01


@dataclass(frozen=True)
class CylinderResult:
    soil_mass: float
    wet_unit_weight: float
    dry_unit_weight: float


@dataclass(frozen=True)
class InSituResult:
    moisture_top: Tuple[float, ...]
    moisture_base: Tuple[float, ...]
    average_moisture_top: float
    average_moisture_base: float
    cylinders: Tuple[CylinderResult, ...]
    average_dry_unit_weight: float
    real_density_ref: float
    void_index_top: float
    void_index_base: float
    relative_compactness_top: float
    relative_compactness_base: float
    status: Status


def dry_unit_weight(wet_unit_weight, moisture_pct):
    return safe_div(wet_unit_weight, 1.0 + moisture_pct / 100.0)


def cylinder_result(det, moisture_pct):
    wet = det.wet_unit_weight
    return CylinderResult(
        soil_mass=det.soil_mass,
        wet_unit_weight=wet,
        dry_unit_weight=dry_unit_weight(wet, moisture_pct),
    )


def void_index(gamma_s, gamma_d):
    if gamma_d <= 0 or gamma_s <= 0:
        return 0.0
    return safe_div(gamma_s, gamma_d) - 1.0


def relative_compactness(gamma_s, gamma_d):
    if gamma_d <= 0 or gamma_s <= 0:
        return 0.0
    return (gamma_d - gamma_s) * gamma_d * 100.0


def in_situ_status(average_dry, iv_top, iv_base):
    if average_dry <= 0:
        return Status.AGUARDANDO
    if iv_top <= VOID_INDEX_LIMIT and iv_base <= VOID_INDEX_LIMIT:
        return Status.APROVADO
    return Status.REPROVADO


def compute_in_situ(top_cylinder, base_cylinder, moisture_top, moisture_base, real_density_ref=None):
    avg_top = average_moisture(moisture_top)
    avg_base = average_moisture(moisture_base)
    top = cylinder_result(top_cylinder, avg_top)
    base = cylinder_result(base_cylinder, avg_base)
    avg_dry = (top.dry_unit_weight + base.dry_unit_weight) / 2.0

    gamma_s = real_density_ref if real_density_ref and real_density_ref > 0 else DEFAULT_REAL_DENSITY_REF
    iv_top = void_index(gamma_s, avg_dry)
    cr_top = relative_compactness(gamma_s, avg_dry)
    # No independent base-layer real density: base figures derive from top.
    iv_base = iv_top + BASE_VOID_INDEX_OFFSET if avg_dry > 0 else 0.0
    cr_base = cr_top * BASE_COMPACTNESS_FACTOR

    return InSituResult(
        moisture_top=tuple(compute_moisture(d) for d in moisture_top),
        moisture_base=tuple(compute_moisture(d) for d in moisture_base),
        average_moisture_top=avg_top,
        average_moisture_base=avg_base,
        cylinders=(top, base),
        average_dry_unit_weight=avg_dry,
        real_density_ref=gamma_s,
        void_index_top=iv_top,
        void_index_base=iv_base,
        relative_compactness_top=cr_top,
        relative_compactness_base=cr_base,
        status=in_situ_status(avg_dry, iv_top, iv_base),
    )
