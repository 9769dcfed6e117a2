"""Full-screen param editor built on prompt_toolkit."""

from __future__ import annotations

import functools
import logging
import re
from pathlib import Path
from typing import List, Optional, Tuple

from prompt_toolkit.application import Application
from prompt_toolkit.buffer import Buffer
from prompt_toolkit.filters import Condition
from prompt_toolkit.key_binding import KeyBindings
from prompt_toolkit.layout import HSplit, Layout
from prompt_toolkit.layout.dimension import Dimension
from prompt_toolkit.widgets import Frame, TextArea

from ..param.display import format_key, format_value, parse_scalar
from ..param.editor import ParamEditor
from ..param.errors import ParamError
from ..param.labels import LabelMap, load_labels, parse_hash
from ..param.nodes import (
    NodePath,
    Param,
    ParamKind,
    ParamList,
    ParamStruct,
    ParamValue,
    PathKey,
    children,
    is_parent,
)

logger = logging.getLogger(__name__)

Row = Tuple[PathKey, Param]

MODE_VIEW = "view"
MODE_EDIT = "edit"
MODE_FILTER = "filter"
MODE_OPEN = "open"
MODE_SAVE = "save"
MODE_INSERT = "insert"
MODE_CONFIRM = "confirm"
MODE_CONFIRM_OPEN = "confirm-open"

_PROMPTS = {
    MODE_EDIT: "Value: ",
    MODE_FILTER: "Filter: ",
    MODE_OPEN: "Open: ",
    MODE_SAVE: "Save as: ",
    MODE_INSERT: "Insert: ",
    MODE_CONFIRM: "Unsaved changes. Quit anyway? [y/N] ",
    MODE_CONFIRM_OPEN: "Unsaved changes. Open another file anyway? [y/N] ",
}

# errors surfaced in the status bar instead of tearing down the screen
_RECOVERABLE = (ParamError, ValueError, OSError, re.error)


def _reports_errors(method):
    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except _RECOVERABLE as exc:
            logger.info("%s failed: %s", method.__name__, exc)
            self.status = f"Error: {exc}"
            self._refresh()
            return None

    return wrapper


def _default_value(kind: ParamKind) -> Param:
    if kind is ParamKind.STRUCT:
        return ParamStruct()
    if kind is ParamKind.LIST:
        return ParamList()
    defaults = {ParamKind.BOOL: False, ParamKind.FLOAT: 0.0, ParamKind.STRING: ""}
    return ParamValue.of(kind, defaults.get(kind, 0))


class ParamTUI:
    """Interactive browser/editor for one param file at a time.

    The widget tree is only built by :meth:`run`; every action is a plain
    method so the editor can be driven without a terminal.
    """

    _NAME_COLUMN_LIMIT = 40

    def __init__(
        self,
        editor: Optional[ParamEditor] = None,
        *,
        label_path: Optional[Path] = None,
        program_dir: Optional[Path] = None,
    ) -> None:
        self.editor = editor
        self.label_path = label_path
        self.program_dir = program_dir
        self.labels: LabelMap = editor.labels if editor and editor.labels is not None else LabelMap()
        self.path: NodePath = ()
        self.selection = 0
        self.filter_text = ""
        self._filter: Optional[re.Pattern] = None
        self.mode = MODE_VIEW
        self.status = "ctrl+o to open a file" if editor is None else self._describe_source()
        self.exit_requested = False
        self._app: Optional[Application] = None
        self._route_area: Optional[TextArea] = None
        self._table_area: Optional[TextArea] = None
        self._status_area: Optional[TextArea] = None
        self._input_area: Optional[TextArea] = None

    # ------------------------------------------------------------------ UI glue
    def _ensure_application(self) -> Application:
        if self._app is not None:
            return self._app

        route_area = TextArea(height=1, read_only=True, focusable=False)
        table_area = TextArea(read_only=True, scrollbar=True, wrap_lines=False)
        status_area = TextArea(height=1, read_only=True, focusable=False)
        input_area = TextArea(
            height=1,
            prompt=lambda: _PROMPTS.get(self.mode, ""),
            multiline=False,
            wrap_lines=False,
            accept_handler=self._handle_submit,
        )

        body = HSplit(
            [
                route_area,
                Frame(table_area, title=lambda: self._table_title(), height=Dimension(min=3)),
                status_area,
                input_area,
            ]
        )

        viewing = Condition(lambda: self.mode == MODE_VIEW)
        typing = Condition(lambda: self.mode != MODE_VIEW)
        kb = KeyBindings()

        @kb.add("c-c")
        def _(event) -> None:  # pragma: no cover - interactive exit
            self.request_exit()

        @kb.add("up", filter=viewing)
        def _(event) -> None:
            self.move_selection(-1)

        @kb.add("down", filter=viewing)
        def _(event) -> None:
            self.move_selection(1)

        @kb.add("s-up", filter=viewing)
        def _(event) -> None:
            self.increment(1)

        @kb.add("s-down", filter=viewing)
        def _(event) -> None:
            self.increment(-1)

        @kb.add("enter", filter=viewing)
        def _(event) -> None:
            self.enter()

        @kb.add("backspace", filter=viewing)
        def _(event) -> None:
            self.leave()

        @kb.add("/", filter=viewing)
        def _(event) -> None:
            self.begin_input(MODE_FILTER, self.filter_text)

        @kb.add("c-o", filter=viewing)
        def _(event) -> None:
            self.request_open()

        @kb.add("c-s", filter=viewing)
        def _(event) -> None:
            self.save()

        @kb.add("c-z", filter=viewing)
        def _(event) -> None:
            self.undo()

        @kb.add("c-y", filter=viewing)
        def _(event) -> None:
            self.redo()

        @kb.add("c-a", filter=viewing)
        def _(event) -> None:
            self.insert()

        @kb.add("delete", filter=viewing)
        def _(event) -> None:
            self.remove_selected()

        @kb.add("escape", filter=typing)
        def _(event) -> None:
            self.cancel_input()

        @kb.add("escape", filter=viewing)
        def _(event) -> None:  # pragma: no cover - interactive exit
            self.request_exit()

        self._route_area = route_area
        self._table_area = table_area
        self._status_area = status_area
        self._input_area = input_area
        self._app = Application(
            layout=Layout(body, focused_element=table_area),
            full_screen=True,
            key_bindings=kb,
        )
        self._refresh()
        return self._app

    def run(self) -> None:
        app = self._ensure_application()
        app.run()

    # ----------------------------------------------------------------- Handlers
    def _handle_submit(self, buff: Buffer) -> bool:
        self.submit_input(buff.text)
        return False

    def begin_input(self, mode: str, text: str = "") -> None:
        self.mode = mode
        if self._input_area is not None:
            self._input_area.text = text
            self._input_area.buffer.cursor_position = len(text)
            if self._app is not None:
                self._app.layout.focus(self._input_area)
        self._refresh()

    def cancel_input(self) -> None:
        self._end_input()
        self.status = "Cancelled"
        self._refresh()

    def _end_input(self) -> None:
        self.mode = MODE_VIEW
        if self._input_area is not None:
            self._input_area.text = ""
            if self._app is not None:
                self._app.layout.focus(self._table_area)

    @_reports_errors
    def submit_input(self, text: str) -> None:
        mode = self.mode
        self._end_input()
        if mode == MODE_EDIT:
            self._commit_edit(text)
        elif mode == MODE_FILTER:
            self.set_filter(text)
        elif mode == MODE_OPEN:
            self.open_file(Path(text.strip()).expanduser())
        elif mode == MODE_SAVE:
            self.save(Path(text.strip()).expanduser() if text.strip() else None)
        elif mode == MODE_INSERT:
            self._commit_insert(text)
        elif mode == MODE_CONFIRM:
            if text.strip().lower() in {"y", "yes"}:
                self._exit()
            else:
                self.status = "Quit cancelled"
        elif mode == MODE_CONFIRM_OPEN:
            if text.strip().lower() in {"y", "yes"}:
                self._prompt_open()
            else:
                self.status = "Open cancelled"
        self._refresh()

    # ----------------------------------------------------------------- Actions
    def visible_rows(self) -> List[Row]:
        if self.editor is None:
            return []
        rows = children(self.editor.node(self.path))
        if self._filter is None:
            return rows
        return [row for row in rows if self._filter.search(format_key(row[0], self.labels))]

    def selected(self) -> Optional[Row]:
        rows = self.visible_rows()
        if not rows:
            return None
        return rows[min(self.selection, len(rows) - 1)]

    def move_selection(self, delta: int) -> None:
        rows = self.visible_rows()
        if rows:
            self.selection = max(0, min(len(rows) - 1, self.selection + delta))
        else:
            self.selection = 0
        self._refresh()

    def _select_key(self, key: PathKey) -> None:
        for index, (row_key, _) in enumerate(self.visible_rows()):
            if row_key == key:
                self.selection = index
                return

    def enter(self) -> None:
        row = self.selected()
        if row is None:
            return
        key, node = row
        if is_parent(node):
            self.path = self.path + (key,)
            self.selection = 0
            self.set_filter("")
            return
        self.begin_input(MODE_EDIT, format_value(node, self.labels))

    def leave(self) -> None:
        if not self.path:
            return
        came_from = self.path[-1]
        self.path = self.path[:-1]
        self.set_filter("")
        self._select_key(came_from)
        self._refresh()

    def set_filter(self, text: str) -> None:
        self._filter = re.compile(text) if text else None
        self.filter_text = text
        self.selection = 0
        self._refresh()

    def _commit_edit(self, text: str) -> None:
        row = self.selected()
        if row is None or self.editor is None:
            return
        key, _ = row
        self.editor.set_text(self.path + (key,), text)
        self.status = f"Set {self._row_name(key)}"

    @_reports_errors
    def increment(self, step: int) -> None:
        row = self.selected()
        if row is None or self.editor is None:
            return
        key, _ = row
        if step > 0:
            self.editor.increment(self.path + (key,))
        else:
            self.editor.decrement(self.path + (key,))
        self._refresh()

    @_reports_errors
    def insert(self) -> None:
        """Insert a struct field, or duplicate the selected list element."""

        if self.editor is None:
            return
        parent = self.editor.node(self.path)
        row = self.selected()
        if isinstance(parent, ParamList) and row is not None:
            key, node = row
            self.editor.insert_list_element(self.path, key + 1, node)
            self.set_filter("")
            self.selection = key + 1
            self.status = f"Duplicated element {key}"
            self._refresh()
            return
        self.begin_input(MODE_INSERT)

    def _commit_insert(self, text: str) -> None:
        if self.editor is None:
            return
        parent = self.editor.node(self.path)
        if isinstance(parent, ParamList):
            # only reached for an empty list: "<kind> [value]"
            kind_text, _, value_text = text.strip().partition(" ")
            node = self._new_node(kind_text, value_text)
            self.editor.insert_list_element(self.path, len(parent), node)
            self.status = f"Inserted {node.kind.type_name} element"
            return
        parts = text.split(maxsplit=2)
        if len(parts) < 2:
            raise ValueError("Expected: <name> <type> [value]")
        key, _ = parse_hash(parts[0], self.labels)
        node = self._new_node(parts[1], parts[2] if len(parts) > 2 else "")
        self.editor.insert_field(self.path, key, node)
        self.set_filter("")
        self._select_key(key)
        self.status = f"Inserted {self._row_name(key)}"

    def _new_node(self, kind_text: str, value_text: str) -> Param:
        kind = ParamKind.from_name(kind_text)
        if not kind.is_scalar or not value_text.strip():
            return _default_value(kind)
        return parse_scalar(kind, value_text, self.labels)

    @_reports_errors
    def remove_selected(self) -> None:
        row = self.selected()
        if row is None or self.editor is None:
            return
        key, _ = row
        name = self._row_name(key)
        if isinstance(self.editor.node(self.path), ParamList):
            self.editor.remove_list_element(self.path, key)
        else:
            self.editor.remove_field(self.path, key)
        self.move_selection(0)
        self.status = f"Removed {name}"
        self._refresh()

    @_reports_errors
    def undo(self) -> None:
        if self.editor is None:
            return
        self._replay(self.editor.undo(), "Undid", "Nothing to undo")

    @_reports_errors
    def redo(self) -> None:
        if self.editor is None:
            return
        self._replay(self.editor.redo(), "Redid", "Nothing to redo")

    def _replay(self, description: Optional[str], verb: str, empty: str) -> None:
        self.status = f"{verb} {description}" if description else empty
        self._revalidate_path()
        self.move_selection(0)

    def _revalidate_path(self) -> None:
        # an undone insert can remove the node the view is sitting in
        while self.path:
            try:
                node = self.editor.node(self.path)
            except ParamError:
                node = None
            if node is not None and is_parent(node):
                return
            self.path = self.path[:-1]

    def request_open(self) -> None:
        if self.editor is not None and self.editor.edited:
            self.begin_input(MODE_CONFIRM_OPEN)
            return
        self._prompt_open()

    def _prompt_open(self) -> None:
        current = self.editor.source_path if self.editor is not None else None
        self.begin_input(MODE_OPEN, str(current or ""))

    def open_file(self, path: Path) -> None:
        labels = load_labels(open_file=path, program_dir=self.program_dir, explicit=self.label_path)
        editor = ParamEditor.open(path, labels=labels)
        self.editor = editor
        self.labels = labels
        self.path = ()
        self.set_filter("")
        self.status = self._describe_source()

    @_reports_errors
    def save(self, path: Optional[Path] = None) -> None:
        if self.editor is None:
            self.status = "Nothing to save"
            self._refresh()
            return
        if path is None and self.editor.source_path is None:
            self.begin_input(MODE_SAVE)
            return
        target = self.editor.save(path)
        self.status = f"Saved {target}"
        self._refresh()

    def request_exit(self) -> None:
        if self.editor is not None and self.editor.edited:
            self.begin_input(MODE_CONFIRM)
            return
        self._exit()

    def _exit(self) -> None:
        self.exit_requested = True
        if self._app is not None and self._app.is_running:  # pragma: no cover - interactive exit
            self._app.exit()

    # ---------------------------------------------------------------- Utilities
    def _describe_source(self) -> str:
        source = self.editor.source_path if self.editor is not None else None
        name = source.name if source is not None else "<new>"
        return f"{name}: {len(self.labels)} labels loaded"

    def _row_name(self, key: PathKey) -> str:
        return format_key(key, self.labels)

    def _table_title(self) -> str:
        if self.editor is None:
            return "No file"
        marker = " *" if self.editor.edited else ""
        name = self.editor.source_path.name if self.editor.source_path else "<new>"
        return f"{name}{marker}"

    def route_text(self) -> str:
        return " > ".join(["root", *(format_key(key, self.labels) for key in self.path)])

    def render_rows(self) -> List[str]:
        rows = self.visible_rows()
        names = [self._row_name(key) for key, _ in rows]
        width = min(max((len(name) for name in names), default=0), self._NAME_COLUMN_LIMIT)
        lines = []
        for index, ((_, node), name) in enumerate(zip(rows, names)):
            marker = ">" if index == self.selection else " "
            lines.append(
                f"{marker} {name:<{width}}  {node.kind.type_name:<6}  {format_value(node, self.labels)}"
            )
        return lines

    def _refresh(self) -> None:
        if self._table_area is None:
            return
        lines = self.render_rows()
        table_text = "\n".join(lines) if lines else "(empty)"
        self._table_area.text = table_text
        if lines:
            self._table_area.buffer.cursor_position = (
                self._table_area.document.translate_row_col_to_index(self.selection, 0)
            )
        route = self.route_text()
        if self.filter_text:
            route += f"    filter: /{self.filter_text}/"
        self._route_area.text = route
        self._status_area.text = self.status
        self._invalidate()

    def _invalidate(self) -> None:
        if self._app is not None:
            self._app.invalidate()


__all__ = ["ParamTUI"]
