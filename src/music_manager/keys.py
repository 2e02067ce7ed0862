"""Key events and the text input buffer used by the editor."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


# Named (non-character) keys
ENTER = "enter"
ESC = "esc"
BACKSPACE = "backspace"
TAB = "tab"
UP = "up"
DOWN = "down"
LEFT = "left"
RIGHT = "right"
HOME = "home"
END = "end"
PAGE_UP = "pageup"
PAGE_DOWN = "pagedown"
DELETE = "delete"

NAMED_KEYS = frozenset(
    {ENTER, ESC, BACKSPACE, TAB, UP, DOWN, LEFT, RIGHT, HOME, END, PAGE_UP, PAGE_DOWN, DELETE}
)

_DISPLAY_NAMES = {
    ENTER: "Enter",
    ESC: "Esc",
    BACKSPACE: "Backspace",
    TAB: "Tab",
    UP: "Up",
    DOWN: "Down",
    LEFT: "Left",
    RIGHT: "Right",
    HOME: "Home",
    END: "End",
    PAGE_UP: "PageUp",
    PAGE_DOWN: "PageDown",
    DELETE: "Del",
}


@dataclass(frozen=True)
class Key:
    """A single key press.

    `kind` is "char", "ctrl", "alt" or one of the named keys above; `char`
    is set for the three character-carrying kinds.
    """

    kind: str
    char: Optional[str] = None

    @classmethod
    def of(cls, char: str) -> "Key":
        return cls("char", char)

    @classmethod
    def ctrl(cls, char: str) -> "Key":
        return cls("ctrl", char.lower())

    @classmethod
    def alt(cls, char: str) -> "Key":
        return cls("alt", char)

    @classmethod
    def named(cls, name: str) -> "Key":
        if name not in NAMED_KEYS:
            raise ValueError(f"Unknown key name: {name}")
        return cls(name)

    @property
    def is_char(self) -> bool:
        return self.kind == "char"

    def __str__(self) -> str:
        if self.kind == "char":
            return "<Space>" if self.char == " " else f"<{self.char}>"
        if self.kind == "ctrl":
            return f"<Ctrl+{self.char}>"
        if self.kind == "alt":
            return f"<Alt+{self.char}>"
        return f"<{_DISPLAY_NAMES.get(self.kind, self.kind)}>"


class InputBuffer:
    """Free text typed while the input bar is focused."""

    def __init__(self) -> None:
        self._buffer = ""

    @property
    def text(self) -> str:
        return self._buffer

    @property
    def cursor(self) -> int:
        return len(self._buffer)

    def __bool__(self) -> bool:
        return bool(self._buffer)

    def push_char(self, c: str) -> None:
        self._buffer += c

    def pop(self) -> None:
        self._buffer = self._buffer[:-1]

    def clear(self) -> None:
        self._buffer = ""

    def drain(self) -> str:
        text = self._buffer
        self._buffer = ""
        return text
