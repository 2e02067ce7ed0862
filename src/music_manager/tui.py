"""Terminal UI on top of `EditorStateMachine`, built with textual.

The app only paints the machine's state and feeds it key events and ticks;
all behaviour lives in `music_manager.editor`.
"""
from __future__ import annotations

from typing import Iterable, List, Optional

from loguru import logger
from rich.text import Text
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import Horizontal
from textual.widgets import Static

from music_manager.editor import EditorStateMachine, StepResult, Widget
from music_manager.errors import MusicManagerError
from music_manager.keys import (
    BACKSPACE,
    DELETE,
    DOWN,
    END,
    ENTER,
    ESC,
    HOME,
    LEFT,
    PAGE_DOWN,
    PAGE_UP,
    RIGHT,
    TAB,
    UP,
    Key,
)

# textual key name -> named key
_TEXTUAL_KEYS = {
    "enter": ENTER,
    "escape": ESC,
    "backspace": BACKSPACE,
    "tab": TAB,
    "up": UP,
    "down": DOWN,
    "left": LEFT,
    "right": RIGHT,
    "home": HOME,
    "end": END,
    "pageup": PAGE_UP,
    "pagedown": PAGE_DOWN,
    "delete": DELETE,
}


def key_from_event(key: str, character: Optional[str]) -> Optional[Key]:
    """Translate a textual key event into a `Key`; None for keys we ignore."""
    if key in _TEXTUAL_KEYS:
        return Key(_TEXTUAL_KEYS[key])
    if key.startswith("ctrl+") and len(key) == len("ctrl+") + 1:
        return Key.ctrl(key[-1])
    if key.startswith("alt+") and len(key) == len("alt+") + 1:
        return Key.alt(key[-1])
    if character and len(character) == 1 and character.isprintable():
        return Key.of(character)
    return None


def render_list(title: str, items: Iterable[str], selected: Optional[int], focused: bool) -> Text:
    text = Text()
    text.append(f"{title}\n", style="bold reverse" if focused else "bold")
    for idx, item in enumerate(items):
        if idx == selected:
            text.append(f">> {item}\n", style="bold yellow" if focused else "yellow")
        else:
            text.append(f"   {item}\n")
    return text


def render_hints(machine: EditorStateMachine) -> Text:
    if machine.capturing:
        return Text("<Enter> commit  <Esc> cancel  <Backspace> delete")
    text = Text()
    for keys, name in machine.registry.hints():
        text.append(keys, style="bold cyan")
        text.append(f" {name}  ")
    return text


class MusicManagerApp(App, inherit_bindings=False):
    TITLE = "music-manager"
    CSS = """
    #input { height: 3; border: round $accent; }
    #lists { height: 1fr; }
    #browse, #metadata { width: 1fr; border: round $primary; }
    #log { height: 1fr; border: round $secondary; }
    #hints { height: auto; }
    """

    # ctrl+c would otherwise be consumed by textual itself
    BINDINGS = [Binding("ctrl+c", "interrupt", show=False, priority=True)]

    def __init__(self, machine: EditorStateMachine, *, tick_interval_ms: int = 200):
        super().__init__()
        self.machine = machine
        self.tick_interval_ms = tick_interval_ms

    def compose(self) -> ComposeResult:
        yield Static("", id="input")
        with Horizontal(id="lists"):
            yield Static("", id="browse")
            yield Static("", id="metadata")
        yield Static("", id="log")
        yield Static("", id="hints")

    def on_mount(self) -> None:
        self.set_interval(self.tick_interval_ms / 1000, self._tick)
        self.refresh_view()

    def on_key(self, event) -> None:
        key = key_from_event(event.key, event.character)
        if key is None:
            return
        event.stop()
        self._step(lambda: self.machine.dispatch(key))

    def action_interrupt(self) -> None:
        self._step(lambda: self.machine.dispatch(Key.ctrl("c")))

    def _tick(self) -> None:
        self._step(self.machine.on_tick)

    def _step(self, fn) -> None:
        try:
            result = fn()
        except MusicManagerError as e:
            logger.error(str(e))
            result = StepResult.CONTINUE
        if result is StepResult.EXIT:
            self.exit()
            return
        self.refresh_view()

    def refresh_view(self) -> None:
        m = self.machine
        if m.capturing:
            label = m.input_field.label if m.input_field else ""
            self.query_one("#input", Static).update(Text(f"{label}: {m.input.text}█"))
        else:
            self.query_one("#input", Static).update(Text(f"{m.music_dir}  [{m.focused.value}]"))

        self.query_one("#browse", Static).update(
            render_list("Files", m.browse.items, m.browse.selected, m.focused is Widget.BROWSING)
        )
        record_lines: List[str] = m.record.display_lines if m.record else []
        self.query_one("#metadata", Static).update(
            render_list(
                "Metadata",
                record_lines,
                m.fields.selected,
                m.focused in (Widget.EDITING, Widget.TEXT_INPUT),
            )
        )
        self._refresh_log()
        self.query_one("#hints", Static).update(render_hints(m))

    def _refresh_log(self) -> None:
        log_view = self.machine.log_view
        panel = self.query_one("#log", Static)
        if log_view is None:
            return
        height = max(panel.size.height - 2, 1)
        text = Text()
        text.append("Log" + (" (paged)" if log_view.in_page_mode else "") + "\n",
                    style="bold reverse" if self.machine.focused is Widget.LOG_VIEW else "bold")
        selector = log_view.selector_lines()
        if selector:
            text.append("\n".join(selector) + "\n", style="dim")
        text.append("\n".join(log_view.visible_lines(height)))
        panel.update(text)


def run_editor(cfg) -> None:
    """Run the editor over `cfg.music_path` until the user quits."""
    from music_manager.db import TrackDB
    from music_manager.logging import LogBuffer, setup_tui
    from music_manager.logview import LogViewState
    from music_manager.paths import LocalFilesystem

    buffer = LogBuffer()
    setup_tui(buffer, level=cfg.log_level, log_file=cfg.log_file, json_path=cfg.log_json)
    db = TrackDB(cfg.database_path)
    db.ensure_schema()
    try:
        machine = EditorStateMachine(
            cfg.music_path,
            filesystem=LocalFilesystem(cfg.browse_suffixes),
            database=db,
            log_view=LogViewState(buffer),
        )
        logger.info(f"Browsing {cfg.music_path}")
        MusicManagerApp(machine, tick_interval_ms=cfg.tick_interval_ms).run()
    finally:
        db.close()
