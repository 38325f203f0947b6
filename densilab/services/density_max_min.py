"""
Maximum and minimum dry density (void ratio limits).

Three determinations per state; each dry unit weight is corrected with the
average moisture of the test and the state value is the mean of the positive
determinations.
"""
from dataclasses import dataclass
from typing import Tuple

from densilab.services.moisture import average_moisture, compute_moisture
from densilab.services.status import Status
from densilab.services.validators import mean_of_positive, safe_div

DEFAULT_GRAIN_DENSITY = 2.67
MIN_DENSITY_SPREAD = 0.1


@dataclass(frozen=True)
class StateDetermination:
    soil_mass: float
    wet_unit_weight: float
    dry_unit_weight: float


@dataclass(frozen=True)
class MaxMinResult:
    moisture: Tuple[float, ...]
    average_moisture: float
    max_determinations: Tuple[StateDetermination, ...]
    min_determinations: Tuple[StateDetermination, ...]
    gamma_d_max: float
    gamma_d_min: float
    grain_density: float
    e_max: float
    e_min: float
    status: Status


def corrected_dry_unit_weight(wet_unit_weight, avg_moisture):
    if avg_moisture > 0:
        return wet_unit_weight / (avg_moisture + 100.0) * 100.0
    return wet_unit_weight


def _state(dets, avg_moisture):
    out = []
    for det in dets:
        wet = det.wet_unit_weight
        out.append(
            StateDetermination(
                soil_mass=det.soil_mass,
                wet_unit_weight=wet,
                dry_unit_weight=corrected_dry_unit_weight(wet, avg_moisture),
            )
        )
    return tuple(out)


def max_min_status(gamma_d_max, gamma_d_min):
    if gamma_d_max - gamma_d_min > MIN_DENSITY_SPREAD and gamma_d_max > 0 and gamma_d_min > 0:
        return Status.APROVADO
    if gamma_d_max == 0 and gamma_d_min == 0:
        return Status.AGUARDANDO
    return Status.REPROVADO


def compute_max_min(max_dets, min_dets, moisture_dets, grain_density=None):
    avg = average_moisture(moisture_dets)
    max_state = _state(max_dets, avg)
    min_state = _state(min_dets, avg)
    gd_max = mean_of_positive([d.dry_unit_weight for d in max_state])
    gd_min = mean_of_positive([d.dry_unit_weight for d in min_state])

    gamma_s = grain_density if grain_density and grain_density > 0 else DEFAULT_GRAIN_DENSITY
    e_min = safe_div(gamma_s, gd_max) - 1.0 if gd_max > 0 else 0.0
    e_max = safe_div(gamma_s, gd_min) - 1.0 if gd_min > 0 else 0.0

    return MaxMinResult(
        moisture=tuple(compute_moisture(d) for d in moisture_dets),
        average_moisture=avg,
        max_determinations=max_state,
        min_determinations=min_state,
        gamma_d_max=gd_max,
        gamma_d_min=gd_min,
        grain_density=gamma_s,
        e_max=e_max,
        e_min=e_min,
        status=max_min_status(gd_max, gd_min),
    )
