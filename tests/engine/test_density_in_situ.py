from __future__ import annotations

import pytest

from densilab.services.density_in_situ import (
    DEFAULT_REAL_DENSITY_REF,
    compute_in_situ,
    in_situ_status,
    relative_compactness,
    void_index,
)
from densilab.services.determinations import CylinderDetermination, MoistureDetermination
from densilab.services.status import Status

pytestmark = pytest.mark.engine

NO_MOISTURE = (MoistureDetermination(),) * 3


def test_cylinder_scenario() -> None:
    det = CylinderDetermination(cylinder_code="1", mold_plus_soil=185.5, mold=98.5, volume=87.0)
    assert det.soil_mass == pytest.approx(87.0)
    assert det.wet_unit_weight == pytest.approx(1.0)


@pytest.mark.parametrize("volume", [0.0, -10.0])
def test_non_positive_volume_gives_zero_unit_weight(volume: float) -> None:
    det = CylinderDetermination(mold_plus_soil=185.5, mold=98.5, volume=volume)
    assert det.wet_unit_weight == 0.0


def test_mold_heavier_than_sample_clamps_soil_mass() -> None:
    det = CylinderDetermination(mold_plus_soil=90.0, mold=98.5, volume=87.0)
    assert det.soil_mass == 0.0
    assert det.wet_unit_weight == 0.0


def test_dense_layer_is_approved() -> None:
    top = CylinderDetermination(mold_plus_soil=285.0, mold=100.0, volume=100.0)
    result = compute_in_situ(top, top, NO_MOISTURE, NO_MOISTURE, real_density_ref=3.149)
    assert result.average_dry_unit_weight == pytest.approx(1.85)
    assert result.void_index_top == pytest.approx(3.149 / 1.85 - 1)
    assert result.void_index_base == pytest.approx(result.void_index_top + 0.01)
    assert result.relative_compactness_top == pytest.approx((1.85 - 3.149) * 1.85 * 100)
    assert result.relative_compactness_base == pytest.approx(result.relative_compactness_top * 0.97)
    assert result.status is Status.APROVADO


def test_loose_layer_is_rejected() -> None:
    loose = CylinderDetermination(mold_plus_soil=250.0, mold=100.0, volume=100.0)
    result = compute_in_situ(loose, loose, NO_MOISTURE, NO_MOISTURE, real_density_ref=3.149)
    assert result.void_index_top > 0.7449999
    assert result.status is Status.REPROVADO


def test_top_and_base_use_their_own_moisture() -> None:
    top = CylinderDetermination(mold_plus_soil=215.0, mold=100.0, volume=100.0)
    base = CylinderDetermination(mold_plus_soil=220.0, mold=100.0, volume=100.0)
    wet_top = (MoistureDetermination(wet_plus_tare=115.0, dry_plus_tare=100.0, tare=0.0),)
    wet_base = (MoistureDetermination(wet_plus_tare=120.0, dry_plus_tare=100.0, tare=0.0),)
    result = compute_in_situ(top, base, wet_top, wet_base)
    assert result.average_moisture_top == 15.0
    assert result.average_moisture_base == 20.0
    assert result.cylinders[0].dry_unit_weight == pytest.approx(1.0)
    assert result.cylinders[1].dry_unit_weight == pytest.approx(1.0)


def test_missing_reference_uses_default() -> None:
    top = CylinderDetermination(mold_plus_soil=285.0, mold=100.0, volume=100.0)
    result = compute_in_situ(top, top, NO_MOISTURE, NO_MOISTURE)
    assert result.real_density_ref == DEFAULT_REAL_DENSITY_REF


def test_empty_test_is_pending() -> None:
    empty = CylinderDetermination()
    result = compute_in_situ(empty, empty, NO_MOISTURE, NO_MOISTURE)
    assert result.void_index_top == 0.0
    assert result.void_index_base == 0.0
    assert result.relative_compactness_top == 0.0
    assert result.status is Status.AGUARDANDO


def test_guards_on_zero_inputs() -> None:
    assert void_index(3.149, 0.0) == 0.0
    assert void_index(0.0, 1.8) == 0.0
    assert relative_compactness(3.149, 0.0) == 0.0
    assert in_situ_status(1.8, 0.7449999, 0.7449999) is Status.APROVADO
    assert in_situ_status(1.8, 0.7, 0.745) is Status.REPROVADO
