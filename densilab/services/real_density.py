"""
Real (grain) density by the picnometer method.

Two picnometer determinations are corrected to dry mass with the average
moisture of the test and reduced with the density of water at the reading
temperature. The test is approved when both determinations agree within
REAL_DENSITY_TOLERANCE g/cm^3.
"""
from bisect import bisect_right
from dataclasses import dataclass
from typing import Tuple

from densilab.services.moisture import average_moisture, compute_moisture
from densilab.services.status import Status
from densilab.services.validators import safe_div

REAL_DENSITY_TOLERANCE = 0.02

# Density of pure water (g/cm^3) at 1 degC steps.
WATER_DENSITY_TABLE = (
    (10.0, 0.99970),
    (11.0, 0.99961),
    (12.0, 0.99950),
    (13.0, 0.99938),
    (14.0, 0.99924),
    (15.0, 0.99910),
    (16.0, 0.99894),
    (17.0, 0.99877),
    (18.0, 0.99860),
    (19.0, 0.99841),
    (20.0, 0.99823),
    (21.0, 0.99799),
    (22.0, 0.99777),
    (23.0, 0.99754),
    (24.0, 0.99730),
    (25.0, 0.99705),
    (26.0, 0.99678),
    (27.0, 0.99651),
    (28.0, 0.99623),
    (29.0, 0.99594),
    (30.0, 0.99565),
    (31.0, 0.99534),
    (32.0, 0.99503),
    (33.0, 0.99470),
    (34.0, 0.99437),
    (35.0, 0.99403),
    (36.0, 0.99368),
    (37.0, 0.99333),
    (38.0, 0.99297),
    (39.0, 0.99259),
    (40.0, 0.99222),
)
_TEMPS = [t for t, _ in WATER_DENSITY_TABLE]


def water_density(temperature):
    """Linear interpolation over WATER_DENSITY_TABLE, clamped to its bounds."""
    if temperature <= _TEMPS[0]:
        return WATER_DENSITY_TABLE[0][1]
    if temperature >= _TEMPS[-1]:
        return WATER_DENSITY_TABLE[-1][1]
    idx = bisect_right(_TEMPS, temperature)
    t0, d0 = WATER_DENSITY_TABLE[idx - 1]
    t1, d1 = WATER_DENSITY_TABLE[idx]
    return d0 + (d1 - d0) * (temperature - t0) / (t1 - t0)


@dataclass(frozen=True)
class PicnometerResult:
    water_density: float
    dry_weight: float
    real_density: float


@dataclass(frozen=True)
class RealDensityResult:
    moisture: Tuple[float, ...]
    average_moisture: float
    picnometer: Tuple[PicnometerResult, ...]
    difference: float
    average: float
    status: Status


def dry_weight(wet_soil_mass, avg_moisture):
    if avg_moisture > 0:
        return wet_soil_mass / (1.0 + avg_moisture / 100.0)
    return wet_soil_mass


def picnometer_density(det, avg_moisture):
    rho_w = water_density(det.temperature)
    dry = dry_weight(det.wet_soil_mass, avg_moisture)
    density = 0.0
    if dry > 0:
        displaced = (det.flask_sample_water_mass - det.flask_water_mass) / rho_w
        soil_volume = displaced - dry / rho_w
        if soil_volume > 0:
            density = safe_div(dry, soil_volume)
    return PicnometerResult(water_density=rho_w, dry_weight=dry, real_density=density)


def real_density_status(difference, average):
    # Float noise below 1e-9 is ignored.
    if round(difference, 9) <= REAL_DENSITY_TOLERANCE and average > 0:
        return Status.APROVADO
    if difference == 0:
        return Status.AGUARDANDO
    return Status.REPROVADO


def compute_real_density(moisture_dets, picnometer_dets):
    avg = average_moisture(moisture_dets)
    pics = tuple(picnometer_density(det, avg) for det in picnometer_dets)
    first = pics[0].real_density if len(pics) > 0 else 0.0
    second = pics[1].real_density if len(pics) > 1 else 0.0
    difference = abs(first - second)
    average = (first + second) / 2.0
    return RealDensityResult(
        moisture=tuple(compute_moisture(d) for d in moisture_dets),
        average_moisture=avg,
        picnometer=pics,
        difference=difference,
        average=average,
        status=real_density_status(difference, average),
    )
