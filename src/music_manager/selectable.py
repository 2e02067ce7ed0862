"""Wrapping selection cursor over a list of display strings."""
from __future__ import annotations

from typing import Iterable, List, Optional


class SelectableList:
    """An ordered list of labels with an optional selected index.

    The selection is either None or a valid index; an empty list never has
    a selection.
    """

    def __init__(self, items: Optional[Iterable[str]] = None):
        self._items: List[str] = list(items or [])
        self._selected: Optional[int] = None

    @property
    def items(self) -> List[str]:
        return list(self._items)

    @property
    def selected(self) -> Optional[int]:
        return self._selected

    def __len__(self) -> int:
        return len(self._items)

    def selected_item(self) -> Optional[str]:
        if self._selected is None:
            return None
        return self._items[self._selected]

    def advance(self) -> None:
        """Select the next item, returning to the top after the last one."""
        if not self._items:
            return
        if self._selected is None:
            self._selected = 0
        else:
            self._selected = (self._selected + 1) % len(self._items)

    def retreat(self) -> None:
        """Select the previous item, jumping to the bottom from the top."""
        if not self._items:
            return
        if self._selected is None:
            self._selected = 0
        elif self._selected == 0:
            self._selected = len(self._items) - 1
        else:
            self._selected -= 1

    def clear_selection(self) -> None:
        self._selected = None

    def replace_items(self, new_items: Iterable[str]) -> bool:
        """Swap in a new item sequence.

        Returns True when the items changed. A changed sequence always drops
        the selection, even if the previously selected label is still present.
        """
        new_list = list(new_items)
        if new_list == self._items:
            return False
        self._items = new_list
        self._selected = None
        return True

    def __repr__(self) -> str:
        return f"SelectableList(items={self._items!r}, selected={self._selected!r})"
