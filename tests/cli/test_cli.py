from __future__ import annotations

import json
import pathlib

import pytest

from densilab import db
from densilab.main import main

pytestmark = pytest.mark.cli


def _run(capsys, *argv) -> tuple[int, object]:
    code = main(list(argv))
    out = capsys.readouterr().out
    return code, json.loads(out) if out.strip() else None


def _seed(test_db_path: pathlib.Path) -> None:
    db.init_db(test_db_path)
    db.upsert_capsule("1", 12.35, db_path=test_db_path)
    db.upsert_cylinder("1", 100.0, 100.0, subtype="biselado", db_path=test_db_path)


def test_db_init_creates_store(test_db_path: pathlib.Path, capsys) -> None:
    code, out = _run(capsys, "--db", str(test_db_path), "db-init")
    assert code == 0
    assert out is None
    assert test_db_path.exists()


def test_equipment_import_list_and_resolve(test_db_path: pathlib.Path, tmp_path: pathlib.Path, capsys) -> None:
    csv_path = tmp_path / "equipment.csv"
    csv_path.write_text(
        "code,category,subtype,tare,weight,volume\n1,capsule,pequena,12.35,,\n1,cylinder,biselado,,98.5,87.0\n",
        encoding="utf-8",
    )
    db_args = ("--db", str(test_db_path))

    code, counts = _run(capsys, *db_args, "equipment", "import", "--file", str(csv_path))
    assert code == 0
    assert counts == {"capsules": 1, "cylinders": 1, "skipped": 0}

    code, listing = _run(capsys, *db_args, "equipment", "list", "--category", "cylinder")
    assert list(listing) == ["cylinders"]
    assert listing["cylinders"][0]["volume"] == 87.0

    code, match = _run(capsys, *db_args, "equipment", "resolve", "1", "--category", "capsule")
    assert code == 0
    assert match["category"] == "capsule"
    assert match["tare_weight"] == 12.35

    code, match = _run(capsys, *db_args, "equipment", "resolve", "1", "--subtype", "vazios_minimos")
    assert code == 1
    assert match == {"found": False}


def test_compute_autofills_and_writes_output(test_db_path: pathlib.Path, tmp_path: pathlib.Path, capsys) -> None:
    _seed(test_db_path)
    payload = {
        "operator": "Lab",
        "determinations": [
            {"cylinder_code": "1", "mold_plus_soil": 285.0},
            {"cylinder_code": "1", "mold_plus_soil": 285.0},
        ],
    }
    input_path = tmp_path / "in_situ.json"
    input_path.write_text(json.dumps(payload), encoding="utf-8")
    output_path = tmp_path / "out" / "saved.json"

    code = main(
        ["--db", str(test_db_path), "compute", "density-in-situ", "--input", str(input_path), "--output", str(output_path)]
    )
    assert code == 0
    assert capsys.readouterr().out == ""

    saved = json.loads(output_path.read_text(encoding="utf-8"))
    assert saved["kind"] == "density-in-situ"
    assert saved["top_cylinder"]["volume"] == 100.0
    assert saved["results"]["average_dry_unit_weight"] == pytest.approx(1.85)
    assert saved["results"]["real_density_ref"] == 3.149
    assert saved["status"] == "APROVADO"


def test_compute_keeps_typed_values_without_codes(test_db_path: pathlib.Path, tmp_path: pathlib.Path, capsys) -> None:
    _seed(test_db_path)
    db_args = ("--db", str(test_db_path))

    real = tmp_path / "real.json"
    real.write_text(
        json.dumps(
            {
                "moisture": [
                    {"wet_plus_tare": 50.5, "dry_plus_tare": 45.2, "tare": 12.35},
                    {"wet_plus_tare": 48.7, "dry_plus_tare": 43.8, "tare": 12.42},
                    {"wet_plus_tare": 52.1, "dry_plus_tare": 46.9, "tare": 12.52},
                ]
            }
        ),
        encoding="utf-8",
    )
    code, saved = _run(capsys, *db_args, "compute", "real-density", "--input", str(real))
    assert code == 0
    assert saved["results"]["moisture"] == [16.13, 15.62, 15.13]

    in_situ = tmp_path / "in_situ.json"
    in_situ.write_text(
        json.dumps({"top_cylinder": {"mold_plus_soil": 185.5, "mold": 98.5, "volume": 87.0}}), encoding="utf-8"
    )
    code, saved = _run(capsys, *db_args, "compute", "density-in-situ", "--input", str(in_situ))
    assert code == 0
    assert saved["top_cylinder"]["volume"] == 87.0
    assert saved["results"]["cylinders"][0]["wet_unit_weight"] == pytest.approx(1.0)


def test_compute_uses_stored_settings(test_db_path: pathlib.Path, tmp_path: pathlib.Path, capsys) -> None:
    db_args = ("--db", str(test_db_path))
    assert main([*db_args, "config", "set", "grain_density", "2.70"]) == 0

    input_path = tmp_path / "max_min.json"
    input_path.write_text("{}", encoding="utf-8")
    code, saved = _run(capsys, *db_args, "compute", "max-min-density", "--input", str(input_path), "--no-autofill")
    assert code == 0
    assert saved["results"]["grain_density"] == 2.70
    assert saved["status"] == "AGUARDANDO"

    code, settings = _run(capsys, *db_args, "config", "show")
    assert settings == {"grain_density": 2.7, "real_density_ref": 3.149}


def test_bad_input_exits_with_usage_error(test_db_path: pathlib.Path, tmp_path: pathlib.Path) -> None:
    input_path = tmp_path / "bad.json"
    input_path.write_text('{"status": "OK"}', encoding="utf-8")

    with pytest.raises(SystemExit) as excinfo:
        main(["--db", str(test_db_path), "compute", "real-density", "--input", str(input_path)])
    assert excinfo.value.code == 2

    with pytest.raises(SystemExit):
        main(["--db", str(test_db_path), "config", "set", "grain_density", "-1"])
