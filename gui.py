import sys, os, sqlite3, tempfile
from contextlib import contextmanager
from typing import Optional
import logging, traceback
from logging.handlers import TimedRotatingFileHandler
from datetime import datetime

from PyQt6.QtWidgets import (
    QApplication, QMainWindow, QWidget, QVBoxLayout, QHBoxLayout,
    QFileDialog, QLabel, QMessageBox, QMenuBar, QToolBar, QStatusBar,
    QPlainTextEdit, QDockWidget, QSizePolicy, QInputDialog
)
from PyQt6.QtGui import QAction
from PyQt6.QtCore import Qt, QTimer, QCoreApplication

from density_overlay.config import get_config, set_config
from density_overlay.complaints import is_sqlite_path, list_tables, load_complaints
from density_overlay.map_viewer import ComplaintMapViewer
from density_overlay.settings_dialog import OverlaySettings, OverlaySettingsDialog

LOGGER_NAME = "ComplaintMap"
LOG_FILE = "complaintmap.log"
LOG_FORMAT = "%(asctime)s %(levelname)s: %(message)s"


def _log_file_handler(boot: bool = False) -> TimedRotatingFileHandler:
    path = os.path.join(tempfile.gettempdir(), LOG_FILE)
    h = TimedRotatingFileHandler(path, when="midnight", backupCount=14, encoding="utf-8")
    h.setFormatter(logging.Formatter(LOG_FORMAT))
    h._boot = boot
    return h


# ---------- Activity console ----------
class ConsoleLogHandler(logging.Handler):
    """Mirrors records of the app logger into the activity console."""

    def __init__(self, console: QPlainTextEdit):
        super().__init__(level=logging.INFO)
        self.console = console
        self.setFormatter(logging.Formatter("[%(asctime)s] %(levelname)-7s %(message)s", "%H:%M:%S"))

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.console.appendPlainText(self.format(record))
        except RuntimeError:
            # console widget already destroyed
            self.handleError(record)


class ActivityConsole(QWidget):
    """Logging LED, current task and a bounded console fed by ConsoleLogHandler."""

    MAX_LINES = 5000

    def __init__(self, parent=None):
        super().__init__(parent)
        outer = QVBoxLayout(self)
        outer.setContentsMargins(6, 6, 6, 6)
        outer.setSpacing(6)

        row = QHBoxLayout()
        row.setContentsMargins(0, 0, 0, 0)
        row.setSpacing(8)
        self.led = QLabel()
        self.led.setFixedSize(12, 12)
        self.led_label = QLabel()
        self.led_label.setStyleSheet("color:#666;")
        self.task = QLabel("Idle")
        self.task.setStyleSheet("color:#666;")
        row.addWidget(self.led)
        row.addWidget(self.led_label)
        row.addSpacing(10)
        row.addWidget(self.task, 1)
        outer.addLayout(row)

        self.console = QPlainTextEdit()
        self.console.setReadOnly(True)
        self.console.setMaximumBlockCount(self.MAX_LINES)
        self.console.setStyleSheet("font-family: Consolas, monospace; font-size: 12px;")
        outer.addWidget(self.console, 1)

        self.set_enabled(True)

    def set_enabled(self, on: bool):
        color = "#2ecc71" if on else "#e74c3c"
        self.led.setStyleSheet(f"border-radius:6px; background:{color}; border:1px solid #333;")
        self.led_label.setText("Logging: ON" if on else "Logging: OFF")

    def log(self, text: str, level: int = logging.INFO):
        logging.getLogger(LOGGER_NAME).log(level, text)

    @contextmanager
    def busy(self, message: str):
        self.task.setText(message)
        self.log(message)
        QApplication.setOverrideCursor(Qt.CursorShape.WaitCursor)
        try:
            yield
        finally:
            QApplication.restoreOverrideCursor()
            self.task.setText("Idle")


# ---------- Main window ----------
class MainWindow(QMainWindow):
    def __init__(self):
        super().__init__()
        self.setWindowTitle("Complaint Density Map")
        self.resize(1300, 850)

        self.complaints_path: Optional[str] = None
        self.complaints_table = "complaints"

        # Logging state + handler refs
        self._logging_enabled = True
        self._temp_handler: Optional[TimedRotatingFileHandler] = None

        # saved overlay settings -> shared config
        self.settings = OverlaySettings.load()
        set_config(**_config_changes(self.settings))

        self.viewer = ComplaintMapViewer(get_config(), self)
        self.setCentralWidget(self.viewer)

        self._build_docks()
        self._build_menus_and_toolbars()
        self._build_statusbar()

        self._had_uncaught_exception = False
        self._last_uncaught_summary = ""
        qt_app = QApplication.instance()
        if qt_app is not None:
            qt_app.aboutToQuit.connect(self._on_about_to_quit)

        self._setup_temp_logging()
        self._install_exception_hook()
        self.activity.log("Application started.")

    # ---------- Logging helpers ----------
    def _setup_temp_logging(self):
        logger = logging.getLogger(LOGGER_NAME)
        logger.setLevel(logging.INFO)
        logger.propagate = False
        self._drop_file_handler()

        # replace the bootstrap handler
        for h in list(logger.handlers):
            if getattr(h, "_boot", False):
                logger.removeHandler(h)
                h.close()

        self._temp_handler = _log_file_handler()
        logger.addHandler(self._temp_handler)

    def _drop_file_handler(self):
        if self._temp_handler is not None:
            logging.getLogger(LOGGER_NAME).removeHandler(self._temp_handler)
            self._temp_handler.close()
            self._temp_handler = None

    def _set_logging_enabled(self, enabled: bool):
        self._logging_enabled = enabled
        self.activity.set_enabled(enabled)
        logging.getLogger(LOGGER_NAME).disabled = not enabled
        if enabled:
            self._setup_temp_logging()
        else:
            self._drop_file_handler()
        self._update_logging_action_ui()

    def _update_logging_action_ui(self):
        on = self._logging_enabled
        self.act_logging.setText("Logging: ON" if on else "Logging: OFF")
        self.act_logging.setChecked(on)

    # ---------- Crash hooks ----------
    def _install_exception_hook(self):
        def _hook(exc_type, exc, tb):
            msg = "".join(traceback.format_exception(exc_type, exc, tb))
            self._had_uncaught_exception = True
            self._last_uncaught_summary = f"{exc_type.__name__}: {exc}"
            logging.getLogger(LOGGER_NAME).error("UNCAUGHT EXCEPTION:\n%s", msg)
            sys.__excepthook__(exc_type, exc, tb)

        sys.excepthook = _hook

        def _unraisable(hook_args):
            logging.getLogger(LOGGER_NAME).error("UNRAISABLE EXCEPTION: %s", getattr(hook_args, "err_msg", ""))

        sys.unraisablehook = _unraisable

    # ---------- Docks / menus / status ----------
    def _build_docks(self):
        self.activity = ActivityConsole(self)
        self._console_handler = ConsoleLogHandler(self.activity.console)
        logging.getLogger(LOGGER_NAME).addHandler(self._console_handler)

        self.log_dock = QDockWidget("Log", self)
        self.log_dock.setObjectName("LogDock")
        self.log_dock.setAllowedAreas(Qt.DockWidgetArea.BottomDockWidgetArea | Qt.DockWidgetArea.TopDockWidgetArea)
        self.log_dock.setWidget(self.activity)
        self.log_dock.setFeatures(
            QDockWidget.DockWidgetFeature.DockWidgetMovable |
            QDockWidget.DockWidgetFeature.DockWidgetFloatable |
            QDockWidget.DockWidgetFeature.DockWidgetClosable
        )
        self.log_dock.setMinimumSize(80, 60)
        self.activity.setSizePolicy(QSizePolicy.Policy.Preferred, QSizePolicy.Policy.Preferred)
        self.addDockWidget(Qt.DockWidgetArea.BottomDockWidgetArea, self.log_dock)

    def _build_menus_and_toolbars(self):
        mb: QMenuBar = self.menuBar()
        self.tb_main = QToolBar("Main", self)
        self.addToolBar(self.tb_main)

        # ----- File menu -----
        m_file = mb.addMenu("&File")
        act_open = QAction("&Open Complaints…", self)
        act_open.triggered.connect(self.open_complaints)
        act_reload = QAction("&Reload", self)
        act_reload.triggered.connect(self.reload_complaints)
        act_clear = QAction("&Clear Points", self)
        act_clear.triggered.connect(lambda: self._set_points_logged([], "Points cleared."))
        act_exit = QAction("E&xit", self)
        act_exit.triggered.connect(self.close)
        m_file.addActions([act_open, act_reload, act_clear])
        m_file.addSeparator()
        m_file.addAction(act_exit)

        # ----- View menu -----
        m_view = mb.addMenu("&View")
        act_reset = QAction("Reset &View", self)
        act_reset.triggered.connect(self.viewer.reset_view)
        act_settings = QAction("Overlay &Settings…", self)
        act_settings.triggered.connect(self._open_overlay_settings)
        self.act_logging = QAction("Logging: ON", self, checkable=True)
        self.act_logging.setChecked(True)
        self.act_logging.toggled.connect(self._set_logging_enabled)
        act_full = QAction("&Full Screen", self, checkable=True)
        act_full.toggled.connect(self._toggle_fullscreen)
        m_view.addActions([act_reset, act_settings])
        m_view.addSeparator()
        m_view.addActions([self.act_logging, act_full, self.log_dock.toggleViewAction()])

        self.tb_main.addActions([act_open, act_reload, act_reset, act_settings])

    def _build_statusbar(self):
        sb = QStatusBar(self)
        self.setStatusBar(sb)
        self.status_file = QLabel("Complaints: (none)")
        self.status_last = QLabel("Last refreshed: —")
        self.status_file.setStyleSheet("color:#666;")
        self.status_last.setStyleSheet("color:#666;")
        sb.addPermanentWidget(self.status_file)
        sb.addPermanentWidget(self.status_last)

    # ---------- Data ----------
    def open_complaints(self):
        path, _ = QFileDialog.getOpenFileName(
            self, "Open complaints export", "",
            "Complaint exports (*.csv *.db *.sqlite *.sqlite3);;All files (*)"
        )
        if path:
            self.load_complaints_file(path)

    def reload_complaints(self):
        if self.complaints_path:
            self.load_complaints_file(self.complaints_path, self.complaints_table)

    def load_complaints_file(self, path: str, table: str = "complaints"):
        name = os.path.basename(path)
        with self.activity.busy(f"Loading complaints: {name}"):
            try:
                if is_sqlite_path(path):
                    table = self._choose_table(path, table)
                    if table is None:
                        return
                df = load_complaints(path, table=table)
            except (OSError, ValueError, sqlite3.Error) as e:
                self.activity.log(f"Cannot load complaints from {name}: {e}", logging.ERROR)
                QMessageBox.warning(self, "Complaints", f"Failed to load complaints:\n{e}")
                return

            kept = self.viewer.set_complaints(df)
            self.complaints_path, self.complaints_table = path, table
            self.status_file.setText(f"Complaints: {name}")
            self.status_last.setText(f"Last refreshed: {datetime.now().strftime('%H:%M:%S')}")
            self.activity.log(f"Loaded {len(df):,} complaint(s); {kept:,} located point(s) on map.")

    def _choose_table(self, path: str, preferred: str) -> Optional[str]:
        tables = list_tables(path)
        if preferred in tables:
            return preferred
        if not tables:
            raise ValueError(f"{os.path.basename(path)} has no tables")
        name, ok = QInputDialog.getItem(
            self, "Complaints table",
            f"No '{preferred}' table in {os.path.basename(path)}.\nRead complaints from:",
            tables, 0, False,
        )
        return name if ok else None

    def _set_points_logged(self, points, message: str):
        self.viewer.set_points(points)
        self.activity.log(message)

    # ---------- Settings ----------
    def _open_overlay_settings(self):
        dlg = OverlaySettingsDialog(self.settings, self)
        if dlg.exec() == dlg.DialogCode.Accepted:
            self.settings = dlg.settings()
            self.settings.save()
            cfg = set_config(**_config_changes(self.settings))
            self.viewer.apply_config(cfg)
            self.activity.log(
                "Overlay settings saved: "
                f"radius={self.settings.radius_scale:g}px, "
                f"core={self.settings.core_alpha:.2f}, mid={self.settings.mid_alpha:.2f}, "
                f"margin={self.settings.visibility_margin_px:g}px, basemap={self.settings.basemap_theme}"
            )

    # ---------- Window events ----------
    def _toggle_fullscreen(self, checked: bool):
        if checked:
            self.showFullScreen()
        else:
            self.showNormal()

    def _on_about_to_quit(self):
        if self._had_uncaught_exception:
            self.activity.log(f"About to quit (previous error): {self._last_uncaught_summary}")
        else:
            self.activity.log("About to quit (orderly).")

    def closeEvent(self, event):
        reason = "user" if event.spontaneous() else "programmatic"
        if self._had_uncaught_exception and self._last_uncaught_summary:
            self.activity.log(f"Application closing after error ({reason}): {self._last_uncaught_summary}")
        else:
            self.activity.log(f"Application closing ({reason}).")
        self.viewer.shutdown()

        logger = logging.getLogger(LOGGER_NAME)
        logger.removeHandler(self._console_handler)
        for h in list(logger.handlers):
            h.flush()
        super().closeEvent(event)


def _config_changes(settings: OverlaySettings) -> dict:
    cfg = settings.to_config(get_config())
    return {
        "radius_scale": cfg.radius_scale,
        "core_color": cfg.core_color,
        "mid_color": cfg.mid_color,
        "visibility_margin_px": cfg.visibility_margin_px,
        "basemap_theme": cfg.basemap_theme,
        "show_coastlines": cfg.show_coastlines,
    }


def _bootstrap_temp_logging():
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    if any(getattr(h, "_boot", False) for h in logger.handlers):
        return
    try:
        h = _log_file_handler(boot=True)
    except OSError as e:
        print("Log file unavailable:", e, file=sys.stderr)
        return
    logger.addHandler(h)
    logger.info("Bootstrap temp logging attached at %s", h.baseFilename)


# ========================= App bootstrap =========================
def main():
    QCoreApplication.setOrganizationName("CivicTools")
    QCoreApplication.setApplicationName("ComplaintMap")

    _bootstrap_temp_logging()

    app = QApplication(sys.argv)

    window = MainWindow()
    window.show()

    complaints = None
    argv = sys.argv[1:]
    if "--complaints" in argv:
        idx = argv.index("--complaints")
        if idx + 1 < len(argv):
            complaints = argv[idx + 1]
    if complaints:
        QTimer.singleShot(0, lambda: window.load_complaints_file(complaints))

    sys.exit(app.exec())


if __name__ == "__main__":
    main()
