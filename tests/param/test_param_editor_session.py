from __future__ import annotations

import copy
from pathlib import Path

import pytest

from prickly.param import (
    EncodeError,
    InvalidValue,
    ParamEditor,
    ParamKind,
    ParamList,
    ParamStruct,
    ParamValue,
    decode,
    hash40,
    open_param,
)

ENABLED = (hash40("enabled"),)
STATS = (hash40("stats"),)
WEIGHTS = (hash40("weights"),)


@pytest.fixture()
def editor(sample_root: ParamStruct, labels) -> ParamEditor:
    return ParamEditor(sample_root, labels=labels)


def test_fresh_editor_is_clean(editor: ParamEditor) -> None:
    assert not editor.edited
    assert not editor.can_undo
    assert editor.undo() is None
    assert editor.redo() is None


def test_every_edit_undoes_to_the_original(editor: ParamEditor) -> None:
    original = copy.deepcopy(editor.root)

    editor.set_text(ENABLED, "false")
    editor.increment(STATS + (hash40("limits"),))
    editor.insert_field(STATS, "extra", ParamValue(ParamKind.STRING, "x"))
    editor.remove_field((), "speed")
    editor.insert_list_element(WEIGHTS, 1, ParamValue(ParamKind.I16, 4))
    editor.remove_list_element(WEIGHTS, 0)
    editor.move_list_element(WEIGHTS, 0, 2)
    editor.convert_scalar(STATS + (hash40("limits"),), ParamKind.I32)
    editor.replace((hash40("name"),), ParamStruct())
    edited = copy.deepcopy(editor.root)
    assert editor.edited

    while editor.can_undo:
        editor.undo()
    assert editor.root == original
    assert editor.node(STATS + (hash40("limits"),)).kind is ParamKind.U8
    assert not editor.edited

    while editor.can_redo:
        editor.redo()
    assert editor.root == edited


def test_new_edit_clears_redo(editor: ParamEditor) -> None:
    editor.increment(STATS + (hash40("limits"),))
    editor.undo()
    assert editor.can_redo

    editor.decrement(STATS + (hash40("limits"),))

    assert not editor.can_redo


def test_trimmed_history_still_reports_unsaved_changes(sample_root: ParamStruct) -> None:
    editor = ParamEditor(sample_root, history_limit=1)
    limits = STATS + (hash40("limits"),)

    editor.increment(limits)
    editor.increment(limits)
    editor.undo()

    assert not editor.can_undo
    assert editor.node(limits).value == 201
    assert editor.edited


def test_trimming_the_saved_entry_keeps_the_saved_state(
    editor: ParamEditor, tmp_path: Path
) -> None:
    editor.history_limit = 2
    limits = STATS + (hash40("limits"),)
    editor.decrement(limits)
    editor.save(tmp_path / "out.prc")

    editor.decrement(limits)
    editor.decrement(limits)
    while editor.can_undo:
        editor.undo()

    assert editor.node(limits).value == 199
    assert not editor.edited
    editor.redo()
    assert editor.edited


def test_rejected_edit_is_not_recorded(editor: ParamEditor) -> None:
    with pytest.raises(InvalidValue):
        editor.set_text(STATS + (hash40("limits"),), "256")

    assert not editor.can_undo
    assert editor.node(STATS + (hash40("limits"),)).value == 200


def test_inserted_value_is_copied(editor: ParamEditor) -> None:
    value = ParamValue(ParamKind.I8, 1)

    editor.insert_field((), "fresh", value)
    value.value = 99

    assert editor.node((hash40("fresh"),)).value == 1


def test_set_text_resolves_hash_labels(editor: ParamEditor) -> None:
    editor.set_text((hash40("kind"),), "stats")

    assert editor.node((hash40("kind"),)).value == hash40("stats")


def test_undo_restores_list_declaration(editor: ParamEditor) -> None:
    editor.insert_field((), "empty", ParamList())
    path = (hash40("empty"),)

    editor.insert_list_element(path, 0, ParamValue(ParamKind.BOOL, True))
    assert editor.node(path).element_kind is ParamKind.BOOL
    editor.undo()

    assert editor.node(path).element_kind is None
    editor.insert_list_element(path, 0, ParamValue(ParamKind.U8, 1))
    assert editor.node(path).element_kind is ParamKind.U8


def test_save_marks_clean_and_round_trips(editor: ParamEditor, tmp_path: Path) -> None:
    editor.set_text(ENABLED, "false")
    target = tmp_path / "out.prc"

    assert editor.save(target) == target
    assert not editor.edited
    assert editor.source_path == target
    assert decode(target.read_bytes()) == editor.root

    editor.undo()
    assert editor.edited
    editor.redo()
    assert not editor.edited


def test_save_without_target_is_an_error(editor: ParamEditor) -> None:
    with pytest.raises(ValueError):
        editor.save()


def test_failed_encode_keeps_existing_file(editor: ParamEditor, sample_file: Path) -> None:
    before = sample_file.read_bytes()
    editor.root.fields.append((hash40("a"), ParamValue(ParamKind.BOOL, True)))  # breaks ordering

    with pytest.raises(EncodeError):
        editor.save(sample_file)

    assert sample_file.read_bytes() == before


def test_open_loads_the_file(sample_file: Path, sample_root: ParamStruct, labels) -> None:
    editor = ParamEditor.open(sample_file, labels=labels)

    assert editor.root == sample_root
    assert editor.source_path == sample_file
    assert open_param(sample_file) == sample_root
    assert not editor.edited
