"""Modal controller behind the terminal UI.

The machine owns the browse list of the music directory, the field list of
the loaded track, the text input buffer and the focused widget. Keys are
resolved through the registry of the focused widget, except while text is
being captured, in which case they edit the buffer.

Errors raised by loading, renaming or saving propagate out of `dispatch`;
the focus only changes once the operation behind it succeeded.
"""
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from loguru import logger

from music_manager.actions import (
    DIR_LIST_ACTIONS,
    LOG_VIEWER_ACTIONS,
    METADATA_EDITOR_ACTIONS,
    Action,
    ActionRegistry,
)
from music_manager.keys import BACKSPACE, ENTER, ESC, InputBuffer, Key
from music_manager.logging import log_event
from music_manager.paths import LocalFilesystem
from music_manager.selectable import SelectableList
from music_manager.tags import FlacTagStore
from music_manager.track import FIELDS, FieldSelector, TrackRecord


class Widget(Enum):
    BROWSING = "Browsing"
    EDITING = "Editing"
    LOG_VIEW = "LogView"
    TEXT_INPUT = "TextInput"


class StepResult(Enum):
    CONTINUE = "continue"
    EXIT = "exit"


_WIDGET_ACTIONS = {
    Widget.BROWSING: DIR_LIST_ACTIONS,
    Widget.EDITING: METADATA_EDITOR_ACTIONS,
    Widget.LOG_VIEW: LOG_VIEWER_ACTIONS,
    Widget.TEXT_INPUT: (),
}


class EditorStateMachine:
    def __init__(self, music_dir: Path, *, tag_store=None, filesystem=None, database=None, log_view=None):
        self.music_dir = Path(music_dir)
        self._store = tag_store or FlacTagStore()
        self._fs = filesystem or LocalFilesystem()
        self._db = database
        self.log_view = log_view

        self._registries: Dict[Widget, ActionRegistry] = {}
        self._focused = Widget.BROWSING
        self._previous = Widget.BROWSING
        self.registry = self._registry_for(Widget.BROWSING)

        self.input = InputBuffer()
        self._input_field: Optional[FieldSelector] = None
        self._restore: Optional[Widget] = None

        self._record: Optional[TrackRecord] = None
        self._entries: List[Tuple[str, Path]] = []
        self._browse = SelectableList()
        self._fields = SelectableList(f.label for f in FIELDS)

        self.reload_listing()

    # -- read-only accessors for rendering ---------------------------------

    @property
    def focused(self) -> Widget:
        return self._focused

    @property
    def previous(self) -> Widget:
        return self._previous

    @property
    def browse(self) -> SelectableList:
        return self._browse

    @property
    def fields(self) -> SelectableList:
        return self._fields

    @property
    def record(self) -> Optional[TrackRecord]:
        return self._record

    @property
    def capturing(self) -> bool:
        return self._focused is Widget.TEXT_INPUT

    @property
    def input_field(self) -> Optional[FieldSelector]:
        return self._input_field

    @property
    def entries(self) -> List[Tuple[str, Path]]:
        return list(self._entries)

    # -- focus -------------------------------------------------------------

    def _registry_for(self, widget: Widget) -> ActionRegistry:
        if widget not in self._registries:
            self._registries[widget] = ActionRegistry.build(_WIDGET_ACTIONS[widget])
        return self._registries[widget]

    def _focus(self, widget: Widget) -> None:
        if widget is not self._focused:
            logger.trace(f"Focus {self._focused.value} -> {widget.value}")
        self._focused = widget
        self.registry = self._registry_for(widget)

    def _switch(self, widget: Widget) -> None:
        """Focus `widget`, remembering the current one as previous."""
        if widget is self._focused:
            return
        self._previous = self._focused
        self._focus(widget)

    # -- events ------------------------------------------------------------

    def dispatch(self, key: Key) -> StepResult:
        if self._focused is Widget.TEXT_INPUT:
            self._handle_input(key)
            return StepResult.CONTINUE

        action = self.registry.resolve(key)
        if action is None:
            logger.trace(f"No action for {key} in {self._focused.value}")
            return StepResult.CONTINUE
        return self.perform(action)

    def on_tick(self) -> StepResult:
        """Refresh the directory listing (and the log targets)."""
        self.reload_listing()
        if self.log_view is not None:
            self.log_view.sync_targets()
        return StepResult.CONTINUE

    def perform(self, action: Action) -> StepResult:
        if action is Action.QUIT:
            logger.info("Quit requested")
            return StepResult.EXIT

        if action is Action.SWITCH_TO_LOG_WIDGET:
            self._switch(Widget.LOG_VIEW)
        elif action is Action.SWITCH_TO_PREVIOUS_WIDGET:
            self._go_back()
        elif action is Action.SWITCH_TO_DIR_LIST_WIDGET:
            self._switch(Widget.BROWSING)
            self.reload_listing()
        elif action is Action.SELECT_UP:
            self._focused_list_move(forward=False)
        elif action is Action.SELECT_DOWN:
            self._focused_list_move(forward=True)
        elif action is Action.ENTER:
            if self._focused is Widget.BROWSING:
                self._open_selected()
            elif self._focused is Widget.EDITING:
                self._begin_input()
        elif action is Action.SAVE_TAGS_TO_FILE:
            if self._focused is Widget.EDITING:
                self._save()
        elif self._focused is Widget.LOG_VIEW and self.log_view is not None:
            self.log_view.transition(action)
        return StepResult.CONTINUE

    def _go_back(self) -> None:
        if self._focused is Widget.LOG_VIEW:
            target = self._previous if self._previous is not Widget.LOG_VIEW else Widget.BROWSING
            self._previous = Widget.LOG_VIEW
            self._focus(target)
        elif self._focused is Widget.EDITING:
            self._switch(Widget.BROWSING)
        elif self._focused is Widget.BROWSING and self._record is not None:
            self._switch(Widget.EDITING)

    def _focused_list_move(self, forward: bool) -> None:
        if self._focused is Widget.BROWSING:
            target = self._browse
        elif self._focused is Widget.EDITING:
            target = self._fields
        else:
            return
        if forward:
            target.advance()
        else:
            target.retreat()

    # -- browsing ----------------------------------------------------------

    def reload_listing(self) -> bool:
        """List the music directory; True when the visible names changed."""
        entries = self._fs.list_directory(self.music_dir)
        self._entries = entries
        changed = self._browse.replace_items(name for name, _ in entries)
        if changed:
            logger.debug(f"Listing of {self.music_dir} changed ({len(entries)} entries)")
        return changed

    def _open_selected(self) -> None:
        idx = self._browse.selected
        if idx is None:
            logger.debug("Enter with no track selected")
            return
        name, path = self._entries[idx]
        record = self._record
        if record is None or record.path != path or not record.initialized:
            record = TrackRecord.load_from_file(path, tag_store=self._store, filesystem=self._fs)
            if self._db is not None:
                record.id = self._db.lookup_id_by_path(path)
            self._record = record
            logger.bind(action="open", file=str(path)).info(f"Loaded {name}")
        self._switch(Widget.EDITING)

    # -- editing -----------------------------------------------------------

    def _begin_input(self) -> None:
        idx = self._fields.selected
        if idx is None or self._record is None:
            logger.warning("Select a field before editing")
            return
        self._input_field = FIELDS[idx]
        self._restore = self._focused
        self.input.clear()
        self._focus(Widget.TEXT_INPUT)

    def _handle_input(self, key: Key) -> None:
        if key.kind == ENTER:
            self._commit_input()
        elif key.kind == ESC:
            self._end_input()
        elif key.kind == BACKSPACE:
            self.input.pop()
        elif key.is_char:
            self.input.push_char(key.char)

    def _end_input(self) -> None:
        self.input.clear()
        self._input_field = None
        self._focus(self._restore or Widget.EDITING)
        self._restore = None

    def _commit_input(self) -> None:
        text = self.input.text
        field = self._input_field
        try:
            if field is not None and self._record is not None:
                self._record.set_field(field, text)
        finally:
            self._end_input()

    def _save(self) -> None:
        record = self._record
        if record is None:
            return
        record.persist_tag_block()
        if self._db is not None and record.id is not None:
            self._db.update_track(record)
        log_event("save", msg=f"Saved tags of {record.display_name}", file=str(record.path), status="ok")
