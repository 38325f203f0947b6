from __future__ import annotations

import pathlib

import pytest

from densilab import db
from densilab.services.equipment import Category, resolve

pytestmark = pytest.mark.store


def test_init_db_is_idempotent(initialized_db: pathlib.Path) -> None:
    db.init_db(initialized_db)

    conn = db.get_connection(initialized_db)
    tables = {r["name"] for r in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()}
    cols = {r["name"] for r in conn.execute("PRAGMA table_info(cylinders)").fetchall()}
    conn.close()

    assert {"capsules", "cylinders", "app_settings"} <= tables
    assert {"height", "diameter"} <= cols


def test_upsert_updates_in_place(initialized_db: pathlib.Path) -> None:
    db.upsert_capsule("c-1", 12.0, subtype="Pequena", db_path=initialized_db)
    db.upsert_capsule(" C-1 ", 12.5, subtype="pequena", db_path=initialized_db)

    rows = db.list_capsules(db_path=initialized_db)
    assert len(rows) == 1
    assert rows[0]["code"] == "C-1"
    assert rows[0]["tare_weight"] == 12.5
    assert rows[0]["subtype"] == "pequena"


def test_same_code_different_subtype_are_distinct(initialized_db: pathlib.Path) -> None:
    db.upsert_cylinder("2", 102.0, 90.0, subtype="biselado", db_path=initialized_db)
    db.upsert_cylinder("2", 4100.0, 2000.0, subtype="vazios_minimos", height=15.5, db_path=initialized_db)

    rows = db.list_cylinders(db_path=initialized_db)
    assert [(r["subtype"], r["volume"]) for r in rows] == [("biselado", 90.0), ("vazios_minimos", 2000.0)]
    assert rows[1]["height"] == 15.5


@pytest.mark.parametrize(
    "call, message",
    [
        (lambda p: db.upsert_capsule(" ", 10.0, db_path=p), "code is required"),
        (lambda p: db.upsert_capsule("1", -1.0, db_path=p), "tare weight"),
        (lambda p: db.upsert_cylinder("1", 100.0, 0.0, db_path=p), "volume must be > 0"),
        (lambda p: db.upsert_cylinder("1", None, 10.0, db_path=p), "weight must be >= 0"),
    ],
)
def test_invalid_equipment_is_rejected(initialized_db: pathlib.Path, call, message: str) -> None:
    with pytest.raises(db.StoreError, match=message):
        call(initialized_db)


def test_registry_snapshot_skips_inactive(initialized_db: pathlib.Path) -> None:
    db.upsert_capsule("1", 12.35, db_path=initialized_db)
    db.upsert_cylinder("1", 98.5, 87.0, subtype="biselado", db_path=initialized_db)
    db.upsert_capsule("9", 11.0, db_path=initialized_db)

    changed = db.set_equipment_status("capsula", "9", "inativo", db_path=initialized_db)
    assert changed == 1

    registry = db.load_registry(initialized_db)
    assert len(registry) == 2
    assert resolve(registry, "1", Category.CAPSULE).record.tare_weight == 12.35
    assert resolve(registry, "1", Category.CYLINDER, "biselado").record.volume == 87.0
    assert not resolve(registry, "9").found
    assert len(db.list_capsules(active_only=True, db_path=initialized_db)) == 1


def test_app_settings(initialized_db: pathlib.Path) -> None:
    assert db.get_app_settings(initialized_db) == {}
    db.set_app_setting("grain_density", "2.7", db_path=initialized_db)
    db.set_app_setting("grain_density", "2.71", db_path=initialized_db)
    assert db.get_app_settings(initialized_db) == {"grain_density": "2.71"}
