from __future__ import annotations

from pathlib import Path

import pytest

from prickly.cli import prickly_main
from prickly.cli.prickly_main import EditorSettings, load_editor, main, resolve_settings


def test_settings_from_arguments(tmp_path: Path) -> None:
    settings = resolve_settings(
        [str(tmp_path / "a.prc"), "--labels", str(tmp_path / "l.csv"), "--verbose"], environ={}
    )

    assert settings.file == tmp_path / "a.prc"
    assert settings.label_path == tmp_path / "l.csv"
    assert settings.verbose
    assert settings.log_file is None


def test_settings_from_environment(tmp_path: Path) -> None:
    settings = resolve_settings(
        [], environ={"PRICKLY_LABELS": str(tmp_path / "env.csv"), "PRICKLY_VERBOSE": "1"}
    )

    assert settings.file is None
    assert settings.label_path == tmp_path / "env.csv"
    assert settings.verbose


def test_argument_beats_environment(tmp_path: Path) -> None:
    settings = resolve_settings(
        ["--labels", str(tmp_path / "arg.csv")],
        environ={"PRICKLY_LABELS": str(tmp_path / "env.csv"), "PRICKLY_VERBOSE": "off"},
    )

    assert settings.label_path == tmp_path / "arg.csv"
    assert not settings.verbose


def test_load_editor_uses_labels_beside_the_file(sample_file: Path, labels_csv: Path) -> None:
    editor = load_editor(EditorSettings(file=sample_file, program_dir=sample_file.parent / "bin"))

    assert editor is not None
    assert editor.labels.hash_of("enabled") is not None
    assert load_editor(EditorSettings()) is None


def test_main_reports_unreadable_files(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    broken = tmp_path / "broken.prc"
    broken.write_bytes(b"paracobz" + bytes(8))

    assert main([str(broken)]) == 1
    assert capsys.readouterr().err.startswith("prickly: ")

    assert main([str(tmp_path / "missing.prc")]) == 1


def test_main_runs_the_editor(monkeypatch: pytest.MonkeyPatch, sample_file: Path) -> None:
    launched = []

    class FakeTUI:
        def __init__(self, editor, **kwargs) -> None:
            launched.append((editor, kwargs))

        def run(self) -> None:
            launched.append("run")

    import prickly.cli.prickly_tui as tui_module

    monkeypatch.setattr(tui_module, "ParamTUI", FakeTUI)

    assert prickly_main.main([str(sample_file)]) == 0
    editor, kwargs = launched[0]
    assert editor.source_path == sample_file
    assert launched[1] == "run"
