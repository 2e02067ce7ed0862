"""Contextual actions and the key -> action registry."""
from __future__ import annotations

from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from loguru import logger

from music_manager.errors import KeyConflictWarning
from music_manager.keys import DOWN, ENTER, ESC, LEFT, PAGE_DOWN, PAGE_UP, RIGHT, UP, Key


class Action(Enum):
    # Available everywhere
    QUIT = "Quit"
    SWITCH_TO_LOG_WIDGET = "SwitchToLogWidget"
    SWITCH_TO_PREVIOUS_WIDGET = "SwitchToPreviousWidget"
    SELECT_DOWN = "SelectDown"
    SELECT_UP = "SelectUp"
    ENTER = "Enter"
    SWITCH_TO_DIR_LIST_WIDGET = "SwitchToDirListWidget"

    # Log viewer
    LOG_TOGGLE_HIDE_SELECTOR = "LogToggleHideSelector"
    LOG_TOGGLE_FOCUS = "LogToggleFocus"
    LOG_SELECT_PREVIOUS_TARGET = "LogSelectPreviousTarget"
    LOG_SELECT_NEXT_TARGET = "LogSelectNextTarget"
    LOG_REDUCE_SHOWN = "LogReduceShown"
    LOG_INCREASE_SHOWN = "LogIncreaseShown"
    LOG_DECREASE_CAPTURE = "LogDecreaseCapture"
    LOG_INCREASE_CAPTURE = "LogIncreaseCapture"
    LOG_PAGE_UP = "LogPageUp"
    LOG_PAGE_DOWN = "LogPageDown"
    LOG_EXIT_PAGE_MODE = "LogExitPageMode"
    LOG_TOGGLE_HIDE_TARGETS = "LogToggleHideTargets"

    # Metadata editor
    SAVE_TAGS_TO_FILE = "SaveTagsToFile"

    @property
    def keys(self) -> Tuple[Key, ...]:
        return _KEYS[self]

    def __str__(self) -> str:
        return self.value


_KEYS: Dict[Action, Tuple[Key, ...]] = {
    Action.QUIT: (Key.ctrl("c"), Key.of("q")),
    Action.SWITCH_TO_LOG_WIDGET: (Key.ctrl("l"),),
    Action.SWITCH_TO_PREVIOUS_WIDGET: (Key(ESC),),
    Action.SELECT_DOWN: (Key.of("j"), Key(DOWN)),
    Action.SELECT_UP: (Key.of("k"), Key(UP)),
    Action.ENTER: (Key(ENTER),),
    Action.SWITCH_TO_DIR_LIST_WIDGET: (Key.of("d"),),
    Action.LOG_TOGGLE_HIDE_SELECTOR: (Key.of("h"),),
    Action.LOG_TOGGLE_FOCUS: (Key.of("f"),),
    Action.LOG_SELECT_PREVIOUS_TARGET: (Key(UP),),
    Action.LOG_SELECT_NEXT_TARGET: (Key(DOWN),),
    Action.LOG_REDUCE_SHOWN: (Key(LEFT),),
    Action.LOG_INCREASE_SHOWN: (Key(RIGHT),),
    Action.LOG_DECREASE_CAPTURE: (Key.of("-"),),
    Action.LOG_INCREASE_CAPTURE: (Key.of("+"),),
    Action.LOG_PAGE_UP: (Key(PAGE_UP),),
    Action.LOG_PAGE_DOWN: (Key(PAGE_DOWN),),
    Action.LOG_EXIT_PAGE_MODE: (Key.of("e"),),
    Action.LOG_TOGGLE_HIDE_TARGETS: (Key.of(" "),),
    Action.SAVE_TAGS_TO_FILE: (Key.of("s"),),
}


# Enabled action sets per widget. Order matters: on a shared key the
# earlier action wins.
DIR_LIST_ACTIONS: Tuple[Action, ...] = (
    Action.QUIT,
    Action.SELECT_UP,
    Action.SELECT_DOWN,
    Action.ENTER,
    Action.SWITCH_TO_LOG_WIDGET,
    Action.SWITCH_TO_PREVIOUS_WIDGET,
    Action.SWITCH_TO_DIR_LIST_WIDGET,
)

METADATA_EDITOR_ACTIONS: Tuple[Action, ...] = (
    Action.QUIT,
    Action.SELECT_UP,
    Action.SELECT_DOWN,
    Action.ENTER,
    Action.SWITCH_TO_LOG_WIDGET,
    Action.SWITCH_TO_PREVIOUS_WIDGET,
    Action.SAVE_TAGS_TO_FILE,
    Action.SWITCH_TO_DIR_LIST_WIDGET,
)

LOG_VIEWER_ACTIONS: Tuple[Action, ...] = (
    Action.QUIT,
    Action.SWITCH_TO_PREVIOUS_WIDGET,
    Action.SWITCH_TO_DIR_LIST_WIDGET,
    Action.LOG_DECREASE_CAPTURE,
    Action.LOG_EXIT_PAGE_MODE,
    Action.LOG_INCREASE_CAPTURE,
    Action.LOG_INCREASE_SHOWN,
    Action.LOG_PAGE_DOWN,
    Action.LOG_PAGE_UP,
    Action.LOG_REDUCE_SHOWN,
    Action.LOG_SELECT_NEXT_TARGET,
    Action.LOG_SELECT_PREVIOUS_TARGET,
    Action.LOG_TOGGLE_FOCUS,
    Action.LOG_TOGGLE_HIDE_SELECTOR,
    Action.LOG_TOGGLE_HIDE_TARGETS,
)


class ActionRegistry:
    """The actions enabled for the focused widget."""

    def __init__(self, actions: Iterable[Action], conflicts: Iterable[KeyConflictWarning] = ()):
        self._actions: List[Action] = list(actions)
        self.conflicts: List[KeyConflictWarning] = list(conflicts)

    @classmethod
    def build(cls, actions: Iterable[Action]) -> "ActionRegistry":
        """Create a registry, logging every key bound to more than one action.

        Conflicts never prevent construction.
        """
        enabled = list(actions)
        by_key: Dict[Key, List[Action]] = {}
        for action in enabled:
            for key in action.keys:
                bound = by_key.setdefault(key, [])
                if action not in bound:
                    bound.append(action)

        conflicts = [
            KeyConflictWarning(key, bound) for key, bound in by_key.items() if len(bound) > 1
        ]
        if conflicts:
            logger.warning("; ".join(str(c) for c in conflicts))
        return cls(enabled, conflicts)

    def resolve(self, key: Key) -> Optional[Action]:
        """Return the first enabled action bound to `key`, if any."""
        for action in self._actions:
            if key in action.keys:
                return action
        return None

    @property
    def actions(self) -> List[Action]:
        return list(self._actions)

    def hints(self) -> List[Tuple[str, str]]:
        """(keys, action name) pairs for the help bar."""
        return [(" ".join(str(k) for k in a.keys), str(a)) for a in self._actions]

    def __contains__(self, action: Action) -> bool:
        return action in self._actions

    def __repr__(self) -> str:
        return f"ActionRegistry({[str(a) for a in self._actions]})"
