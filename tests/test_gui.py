import logging
import os

import pytest

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
QtWidgets = pytest.importorskip("PyQt6.QtWidgets")
gui = pytest.importorskip("gui")


@pytest.fixture(scope="module")
def qapp():
    return QtWidgets.QApplication.instance() or QtWidgets.QApplication([])


def test_console_handler_mirrors_log_records(qapp):
    console = QtWidgets.QPlainTextEdit()
    handler = gui.ConsoleLogHandler(console)
    logger = logging.getLogger("ComplaintMap.console-test")
    logger.setLevel(logging.DEBUG)
    logger.propagate = False
    logger.addHandler(handler)
    try:
        logger.info("Loaded 3 complaint(s)")
        logger.debug("not shown")
    finally:
        logger.removeHandler(handler)

    text = console.toPlainText()
    assert "Loaded 3 complaint(s)" in text
    assert "not shown" not in text


def test_busy_resets_task_even_on_error(qapp):
    activity = gui.ActivityConsole()
    with activity.busy("Loading complaints: a.csv"):
        assert activity.task.text() == "Loading complaints: a.csv"
    assert activity.task.text() == "Idle"

    with pytest.raises(RuntimeError):
        with activity.busy("Loading complaints: b.csv"):
            raise RuntimeError("bad file")
    assert activity.task.text() == "Idle"
    assert QtWidgets.QApplication.overrideCursor() is None


def test_console_line_count_is_bounded(qapp):
    activity = gui.ActivityConsole()
    assert activity.console.maximumBlockCount() == gui.ActivityConsole.MAX_LINES
