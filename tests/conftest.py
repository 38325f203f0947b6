from __future__ import annotations

import pathlib

import pytest

from densilab.db import init_db
from densilab.services.equipment import Category, EquipmentRecord, EquipmentRegistry


@pytest.fixture()
def test_db_path(tmp_path: pathlib.Path) -> pathlib.Path:
    return tmp_path / "test.sqlite"


@pytest.fixture()
def initialized_db(test_db_path: pathlib.Path) -> pathlib.Path:
    init_db(test_db_path)
    return test_db_path


@pytest.fixture()
def registry() -> EquipmentRegistry:
    return EquipmentRegistry(
        capsules=(
            EquipmentRecord(code="1", category=Category.CAPSULE, tare_weight=12.35, subtype="pequena"),
            EquipmentRecord(code="1", category=Category.CAPSULE, tare_weight=13.4, subtype="media"),
            EquipmentRecord(code="C-07", category=Category.CAPSULE, tare_weight=14.1, subtype="media"),
            EquipmentRecord(code="9", category=Category.CAPSULE, tare_weight=11.0, status="inativo"),
        ),
        cylinders=(
            EquipmentRecord(code="1", category=Category.CYLINDER, weight=98.5, volume=87.0, subtype="biselado"),
            EquipmentRecord(code="2", category=Category.CYLINDER, weight=102.0, volume=90.0, subtype="biselado"),
            EquipmentRecord(
                code="2", category=Category.CYLINDER, weight=4100.0, volume=2000.0, subtype="vazios_minimos"
            ),
        ),
    )
