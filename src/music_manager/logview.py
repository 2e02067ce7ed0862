"""State of the live log viewer widget.

The viewer shows the records held by a `LogBuffer`, with a selector listing
every target (module) next to its shown and captured levels.
"""
from __future__ import annotations

from typing import Dict, List, Optional

from music_manager.actions import Action
from music_manager.logging import LEVELS, LogBuffer, LogLine, level_rank, step_level
from music_manager.selectable import SelectableList

DEFAULT_PAGE_SIZE = 20


class LogViewState:
    def __init__(self, buffer: LogBuffer, *, default_shown: str = "DEBUG", page_size: int = DEFAULT_PAGE_SIZE):
        self.buffer = buffer
        self.targets = SelectableList()
        self.default_shown = default_shown
        self.page_size = page_size
        self._shown: Dict[str, str] = {}
        self.hide_selector = False
        self.focus_selected = False
        self.hide_off = False
        # Lines scrolled back from the tail; None follows new records.
        self.page_offset: Optional[int] = None
        self.sync_targets()

    def sync_targets(self) -> None:
        """Pick up targets that started logging since the last call."""
        self.targets.replace_items(self.buffer.targets)

    def selected_target(self) -> Optional[str]:
        return self.targets.selected_item()

    def shown_level(self, target: str) -> str:
        return self._shown.get(target, self.default_shown)

    @property
    def in_page_mode(self) -> bool:
        return self.page_offset is not None

    def transition(self, action: Action) -> bool:
        """Apply a Log* action. Returns False for actions it does not handle."""
        self.sync_targets()
        target = self.selected_target()

        if action is Action.LOG_TOGGLE_HIDE_SELECTOR:
            self.hide_selector = not self.hide_selector
        elif action is Action.LOG_TOGGLE_FOCUS:
            self.focus_selected = not self.focus_selected
        elif action is Action.LOG_SELECT_PREVIOUS_TARGET:
            self.targets.retreat()
        elif action is Action.LOG_SELECT_NEXT_TARGET:
            self.targets.advance()
        elif action is Action.LOG_REDUCE_SHOWN:
            if target is not None:
                self._shown[target] = step_level(self.shown_level(target), -1)
        elif action is Action.LOG_INCREASE_SHOWN:
            if target is not None:
                self._shown[target] = step_level(self.shown_level(target), 1)
        elif action is Action.LOG_DECREASE_CAPTURE:
            if target is not None:
                self.buffer.set_capture_level(target, step_level(self.buffer.capture_level(target), -1))
        elif action is Action.LOG_INCREASE_CAPTURE:
            if target is not None:
                self.buffer.set_capture_level(target, step_level(self.buffer.capture_level(target), 1))
        elif action is Action.LOG_PAGE_UP:
            total = len(self._filtered())
            offset = (self.page_offset or 0) + self.page_size
            self.page_offset = max(min(offset, total - 1), 0)
        elif action is Action.LOG_PAGE_DOWN:
            if self.page_offset is not None:
                self.page_offset = max(self.page_offset - self.page_size, 0)
        elif action is Action.LOG_EXIT_PAGE_MODE:
            self.page_offset = None
        elif action is Action.LOG_TOGGLE_HIDE_TARGETS:
            self.hide_off = not self.hide_off
        else:
            return False
        return True

    def _filtered(self) -> List[LogLine]:
        focused = self.selected_target() if self.focus_selected else None
        out = []
        for line in self.buffer.lines():
            if focused is not None and line.target != focused:
                continue
            if level_rank(line.level) > LEVELS.index(self.shown_level(line.target)):
                continue
            out.append(line)
        return out

    def visible_lines(self, height: int) -> List[str]:
        """The last `height` matching records, ending `page_offset` lines above the tail."""
        lines = self._filtered()
        end = len(lines) - (self.page_offset or 0)
        start = max(end - height, 0)
        return [line.render() for line in lines[start:end]]

    def selector_lines(self) -> List[str]:
        """One row per target: shown level, capture level, name."""
        if self.hide_selector:
            return []
        rows = []
        selected = self.selected_target()
        for target in self.targets.items:
            shown = self.shown_level(target)
            if self.hide_off and shown == "OFF" and target != selected:
                continue
            marker = ">" if target == selected else " "
            rows.append(f"{marker} {shown:<7} {self.buffer.capture_level(target):<7} {target}")
        return rows
