"""Tests for the command-line entry point."""

import json

import pytest

from baseplanner.cli import main
from baseplanner.engine.types import DesignState, PlannerSettings, Shape
from baseplanner.frontend import codec


def _design_file(tmp_path):
    state = DesignState(
        floors={
            0: [
                Shape.from_pose(1, "square", 0.0, 0.0),
                Shape.from_pose(2, "square", 50.0, 0.0, building="choamShelter"),
            ]
        },
        settings=PlannerSettings(fief_mode=True),
    )
    path = tmp_path / "design.json"
    path.write_text(json.dumps(state.to_dict()))
    return path, state


def test_encode_then_decode(tmp_path, capsys):
    path, _ = _design_file(tmp_path)
    assert main(["encode", str(path)]) == 0
    share = capsys.readouterr().out.strip()
    assert len(codec.decode(share).all_shapes()) == 2

    assert main(["decode", share]) == 0
    decoded = json.loads(capsys.readouterr().out)
    assert len(decoded["shapes"]) == 2
    assert decoded["settings"]["fief_mode"] is True


def test_encode_with_base_url(tmp_path, capsys):
    path, _ = _design_file(tmp_path)
    assert main(["encode", str(path), "--base-url", "https://example.org/"]) == 0
    assert capsys.readouterr().out.startswith("https://example.org/?d=")


def test_stats(tmp_path, capsys):
    _, state = _design_file(tmp_path)
    assert main(["stats", codec.encode(state)]) == 0
    out = capsys.readouterr().out
    assert "Pieces: 2" in out
    assert "plastone: 18" in out
    assert "granite: 12" in out
    assert "Fief: basic, 0 claimed, 5 stakes left" in out


def test_bad_share_string(capsys):
    assert main(["decode", "!!!"]) == 1
    assert "error:" in capsys.readouterr().err


def test_missing_file(tmp_path, capsys):
    assert main(["encode", str(tmp_path / "nope.json")]) == 1
    assert "cannot read design" in capsys.readouterr().err


@pytest.mark.parametrize(
    "design",
    [
        {"shapes": [{"type": "square"}]},
        {"shapes": [{"id": 1, "type": "square", "vertices": [[1]]}]},
        {"shapes": "square"},
        [1, 2, 3],
    ],
)
def test_malformed_design(tmp_path, capsys, design):
    path = tmp_path / "bad.json"
    path.write_text(json.dumps(design))
    assert main(["encode", str(path)]) == 1
    assert "invalid design" in capsys.readouterr().err
