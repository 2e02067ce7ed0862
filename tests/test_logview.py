from loguru import logger

from music_manager.actions import Action
from music_manager.logging import LogBuffer
from music_manager.logview import LogViewState


def _fill(buffer):
    logger.add(buffer, level="TRACE", format="{message}")
    logger.patch(lambda r: r.update(name="alpha")).info("alpha info")
    logger.patch(lambda r: r.update(name="alpha")).debug("alpha debug")
    logger.patch(lambda r: r.update(name="beta")).warning("beta warning")
    logger.patch(lambda r: r.update(name="beta")).trace("beta trace")


def test_buffer_collects_targets_and_drops_above_capture():
    buffer = LogBuffer()
    _fill(buffer)
    assert buffer.targets == ["alpha", "beta"]
    # default capture is DEBUG, so the trace record is dropped
    assert [line.message for line in buffer.lines()] == ["alpha info", "alpha debug", "beta warning"]


def test_buffer_is_bounded():
    buffer = LogBuffer(maxlen=3)
    logger.add(buffer, level="TRACE", format="{message}")
    for i in range(10):
        logger.info(f"line {i}")
    assert [line.message for line in buffer.lines()] == ["line 7", "line 8", "line 9"]


def test_shown_level_filters_selected_target():
    buffer = LogBuffer()
    _fill(buffer)
    view = LogViewState(buffer)
    view.transition(Action.LOG_SELECT_NEXT_TARGET)
    assert view.selected_target() == "alpha"
    view.transition(Action.LOG_REDUCE_SHOWN)
    assert view.shown_level("alpha") == "INFO"
    lines = view.visible_lines(10)
    assert not any("alpha debug" in line for line in lines)
    assert any("alpha info" in line for line in lines)


def test_capture_level_changes_buffer():
    buffer = LogBuffer()
    _fill(buffer)
    view = LogViewState(buffer)
    view.transition(Action.LOG_SELECT_NEXT_TARGET)
    view.transition(Action.LOG_SELECT_NEXT_TARGET)
    assert view.selected_target() == "beta"
    view.transition(Action.LOG_INCREASE_CAPTURE)
    assert buffer.capture_level("beta") == "TRACE"
    for _ in range(10):
        view.transition(Action.LOG_DECREASE_CAPTURE)
    assert buffer.capture_level("beta") == "OFF"
    logger.patch(lambda r: r.update(name="beta")).error("dropped")
    assert "dropped" not in [line.message for line in buffer.lines()]


def test_focus_shows_only_selected_target():
    buffer = LogBuffer()
    _fill(buffer)
    view = LogViewState(buffer)
    view.transition(Action.LOG_SELECT_PREVIOUS_TARGET)
    view.transition(Action.LOG_TOGGLE_FOCUS)
    lines = view.visible_lines(10)
    assert lines and all("alpha" in line for line in lines)


def test_paging():
    buffer = LogBuffer()
    logger.add(buffer, level="TRACE", format="{message}")
    for i in range(50):
        logger.info(f"line {i}")
    view = LogViewState(buffer, page_size=10)
    assert view.visible_lines(5)[-1].endswith("line 49")
    view.transition(Action.LOG_PAGE_UP)
    assert view.in_page_mode
    assert view.visible_lines(5)[-1].endswith("line 39")
    view.transition(Action.LOG_PAGE_DOWN)
    assert view.visible_lines(5)[-1].endswith("line 49")
    view.transition(Action.LOG_EXIT_PAGE_MODE)
    assert not view.in_page_mode


def test_selector_hides_off_targets():
    buffer = LogBuffer()
    _fill(buffer)
    view = LogViewState(buffer)
    view.transition(Action.LOG_SELECT_NEXT_TARGET)
    for _ in range(10):
        view.transition(Action.LOG_REDUCE_SHOWN)
    view.transition(Action.LOG_SELECT_NEXT_TARGET)
    view.transition(Action.LOG_TOGGLE_HIDE_TARGETS)
    rows = view.selector_lines()
    assert len(rows) == 1 and rows[0].endswith("beta")
    view.transition(Action.LOG_TOGGLE_HIDE_SELECTOR)
    assert view.selector_lines() == []


def test_non_log_action_is_not_handled():
    view = LogViewState(LogBuffer())
    assert view.transition(Action.SAVE_TAGS_TO_FILE) is False
