"""Main application window — ties together all widgets."""

import logging
import os
import time

from PyQt6.QtWidgets import (
    QMainWindow, QSplitter, QToolBar, QStatusBar, QProgressBar, QFileDialog,
    QMessageBox, QLabel, QListWidget, QApplication,
)
from PyQt6.QtCore import Qt, QSize, QTimer
from PyQt6.QtGui import QAction

from ..errors import TextBridgeError
from ..extraction_engine import process_uploads, reinsert_document
from ..ollama_client import OllamaClient
from ..project_model import DocumentStore, SessionDocument, TranslationSession
from ..settings import AppSettings
from ..translation_engine import TranslationEngine, TranslationJob, collect_jobs
from .settings_dialog import SettingsDialog
from .translation_table import TranslationTable

log = logging.getLogger(__name__)

DARK_STYLESHEET = """
QMainWindow, QDialog, QWidget {
    background-color: #1e1e2e;
    color: #cdd6f4;
}
QMenuBar, QToolBar {
    background-color: #181825;
    color: #cdd6f4;
    border-bottom: 1px solid #313244;
}
QMenuBar::item:selected, QToolBar QToolButton:hover {
    background-color: #313244;
}
QMenu {
    background-color: #1e1e2e;
    color: #cdd6f4;
    border: 1px solid #313244;
}
QMenu::item:selected {
    background-color: #45475a;
}
QListWidget, QTableView, QTextEdit, QLineEdit, QComboBox, QSpinBox {
    background-color: #181825;
    color: #cdd6f4;
    border: 1px solid #313244;
    selection-background-color: #45475a;
}
QHeaderView::section {
    background-color: #1e1e2e;
    color: #cdd6f4;
    border: 1px solid #313244;
    padding: 4px;
}
QPushButton {
    background-color: #313244;
    color: #cdd6f4;
    border: 1px solid #45475a;
    padding: 5px 15px;
    border-radius: 3px;
}
QPushButton:hover {
    background-color: #45475a;
}
QProgressBar {
    border: 1px solid #313244;
    background-color: #181825;
    text-align: center;
    color: #cdd6f4;
}
QProgressBar::chunk {
    background-color: #89b4fa;
}
QStatusBar {
    background-color: #181825;
    color: #a6adc8;
}
QGroupBox {
    border: 1px solid #313244;
    border-radius: 4px;
    margin-top: 8px;
    padding-top: 16px;
    color: #cdd6f4;
}
QGroupBox::title {
    subcontrol-origin: margin;
    left: 10px;
}
QSplitter::handle {
    background-color: #313244;
}
QCheckBox {
    color: #cdd6f4;
    spacing: 6px;
}
"""

_WINDOW_TITLE = "Game Script Text Bridge"


class MainWindow(QMainWindow):
    """Main application window."""

    def __init__(self):
        super().__init__()
        self.setWindowTitle(_WINDOW_TITLE)
        self.setMinimumSize(1100, 650)

        # Restore persistent settings before building core objects
        self.settings = AppSettings.load()

        self.client = OllamaClient(self.settings.ollama_url, self.settings.model)
        self.store = DocumentStore(ttl=self.settings.store_ttl_seconds)
        self.session = TranslationSession()
        self.engine = TranslationEngine(self.client)
        self._doc_ids: list = []    # store id per session document (None when restored)
        self._last_session_path = ""
        self._batch_start_time = 0.0
        self._apply_settings()

        self._build_ui()
        self._build_menubar()
        self._build_toolbar()
        self._build_statusbar()
        self._connect_signals()
        self._apply_dark_mode()

        # Expire idle documents from the store
        self._purge_timer = QTimer(self)
        self._purge_timer.timeout.connect(self.store.purge_expired)
        self._purge_timer.start(60_000)

    # ── UI Setup ───────────────────────────────────────────────────

    def _build_ui(self):
        splitter = QSplitter(Qt.Orientation.Horizontal)
        self.doc_list = QListWidget()
        splitter.addWidget(self.doc_list)
        self.trans_table = TranslationTable()
        splitter.addWidget(self.trans_table)
        splitter.setSizes([250, 850])
        self.setCentralWidget(splitter)

    def _build_menubar(self):
        menubar = self.menuBar()

        file_menu = menubar.addMenu("&File")
        self.open_action = QAction("&Open Files...", self)
        self.open_action.setShortcut("Ctrl+O")
        self.open_action.triggered.connect(self._open_files)
        file_menu.addAction(self.open_action)

        self.save_doc_action = QAction("&Save Document As...", self)
        self.save_doc_action.setShortcut("Ctrl+S")
        self.save_doc_action.triggered.connect(self._save_current_document)
        file_menu.addAction(self.save_doc_action)

        self.export_action = QAction("&Export All to Folder...", self)
        self.export_action.triggered.connect(self._export_all)
        file_menu.addAction(self.export_action)

        self.close_doc_action = QAction("&Close Document", self)
        self.close_doc_action.triggered.connect(self._close_current_document)
        file_menu.addAction(self.close_doc_action)

        file_menu.addSeparator()
        self.save_session_action = QAction("Save Session", self)
        self.save_session_action.triggered.connect(self._save_session)
        file_menu.addAction(self.save_session_action)

        self.save_session_as_action = QAction("Save Session As...", self)
        self.save_session_as_action.triggered.connect(self._save_session_as)
        file_menu.addAction(self.save_session_as_action)

        self.load_session_action = QAction("Load Session...", self)
        self.load_session_action.triggered.connect(self._load_session)
        file_menu.addAction(self.load_session_action)

        file_menu.addSeparator()
        quit_action = QAction("&Quit", self)
        quit_action.triggered.connect(self.close)
        file_menu.addAction(quit_action)

        translate_menu = menubar.addMenu("&Translate")
        self.batch_action = QAction("Translate All Documents", self)
        self.batch_action.triggered.connect(self._translate_all)
        translate_menu.addAction(self.batch_action)

        self.batch_doc_action = QAction("Translate Current Document", self)
        self.batch_doc_action.triggered.connect(self._translate_current)
        translate_menu.addAction(self.batch_doc_action)

        self.stop_action = QAction("Stop", self)
        self.stop_action.setEnabled(False)
        self.stop_action.triggered.connect(self._stop_translation)
        translate_menu.addAction(self.stop_action)

        self.settings_action = QAction("&Settings", self)
        self.settings_action.triggered.connect(self._open_settings)
        menubar.addAction(self.settings_action)

        self._enable_document_actions()

    def _build_toolbar(self):
        toolbar = QToolBar("Quick Actions")
        toolbar.setIconSize(QSize(20, 20))
        toolbar.setMovable(False)
        self.addToolBar(toolbar)
        toolbar.addAction(self.open_action)
        toolbar.addSeparator()
        toolbar.addAction(self.batch_action)
        toolbar.addAction(self.stop_action)
        toolbar.addSeparator()
        toolbar.addAction(self.export_action)

    def _build_statusbar(self):
        self.statusbar = QStatusBar()
        self.setStatusBar(self.statusbar)
        self.progress_bar = QProgressBar()
        self.progress_bar.setFixedWidth(300)
        self.progress_bar.setVisible(False)
        self.statusbar.addPermanentWidget(self.progress_bar)
        self.progress_label = QLabel("")
        self.statusbar.addWidget(self.progress_label)

    def _connect_signals(self):
        self.doc_list.currentRowChanged.connect(self._on_document_selected)
        self.trans_table.translate_requested.connect(self._translate_selected)
        self.trans_table.status_changed.connect(self._refresh_doc_list)
        self.engine.progress.connect(self._on_progress)
        self.engine.entry_done.connect(self._on_entry_done)
        self.engine.error.connect(self._on_error)
        self.engine.finished.connect(self._on_batch_finished)

    def _enable_document_actions(self):
        has_docs = bool(self.session.documents)
        for action in (self.save_doc_action, self.export_action, self.close_doc_action,
                       self.save_session_action, self.save_session_as_action,
                       self.batch_action, self.batch_doc_action):
            action.setEnabled(has_docs)

    # ── Documents ──────────────────────────────────────────────────

    def _current_index(self) -> int:
        row = self.doc_list.currentRow()
        return row if 0 <= row < len(self.session.documents) else -1

    def _doc_label(self, doc: SessionDocument) -> str:
        return (f"{doc.document.filename}  [{doc.document.format}]  "
                f"{doc.translated_count}/{doc.extraction.total}")

    def _refresh_doc_list(self):
        for i, doc in enumerate(self.session.documents):
            item = self.doc_list.item(i)
            if item is not None:
                item.setText(self._doc_label(doc))

    def _rebuild_doc_list(self, select: int = 0):
        self.doc_list.blockSignals(True)
        self.doc_list.clear()
        for doc in self.session.documents:
            self.doc_list.addItem(self._doc_label(doc))
        self.doc_list.blockSignals(False)
        if self.session.documents:
            self.doc_list.setCurrentRow(min(select, len(self.session.documents) - 1))
        else:
            self.trans_table.set_document(None)
        self._enable_document_actions()

    def _on_document_selected(self, row: int):
        doc = self.session.documents[row] if 0 <= row < len(self.session.documents) else None
        self.trans_table.set_document(doc)

    def _open_files(self):
        """Open one or more script files and extract their text units."""
        paths, _ = QFileDialog.getOpenFileNames(
            self, "Open Game Script Files", self.settings.last_open_dir,
            "Game scripts (*.json *.rpy *.ks);;All Files (*)",
        )
        if not paths:
            return
        self.settings.last_open_dir = os.path.dirname(paths[0])
        self.settings.save()

        files = []
        problems = []
        for path in paths:
            try:
                with open(path, "rb") as f:
                    files.append((os.path.basename(path), f.read()))
            except OSError as e:
                problems.append(f"{os.path.basename(path)}: {e}")

        first_new = len(self.session.documents)
        for result in process_uploads(files, self.store, self.settings.extract_macro_text):
            if "error" in result:
                problems.append(f"{result['name']}: {result['error']}")
            elif "message" in result:
                problems.append(f"{result['name']}: {result['message']}")
            else:
                stored = self.store.get(result["id"])
                self.session.documents.append(
                    SessionDocument(stored.document, stored.extraction))
                self._doc_ids.append(result["id"])

        self._rebuild_doc_list(select=first_new)
        added = len(self.session.documents) - first_new
        self.statusbar.showMessage(
            f"Opened {added} document(s), {self.session.total} text units in session", 5000)
        if problems:
            QMessageBox.warning(self, "Some Files Were Not Opened", "\n".join(problems))

    def _close_current_document(self):
        i = self._current_index()
        if i < 0 or self.engine.is_running:
            return
        del self.session.documents[i]
        doc_id = self._doc_ids.pop(i)
        if doc_id:
            self.store.discard(doc_id)
        self._rebuild_doc_list(select=i)

    def _save_current_document(self):
        """Write the current document, with edits, to a chosen path."""
        i = self._current_index()
        if i < 0:
            return
        doc = self.session.documents[i]
        default = os.path.join(self.settings.last_open_dir, doc.document.filename)
        path, _ = QFileDialog.getSaveFileName(self, "Save Document", default)
        if not path:
            return
        try:
            artifact = reinsert_document(doc.document, doc.extraction, doc.edited_texts())
            with open(path, "wb") as f:
                f.write(artifact.data)
        except (TextBridgeError, OSError) as e:
            QMessageBox.critical(self, "Save Failed", str(e))
            return
        self.statusbar.showMessage(f"Saved {path}", 5000)

    def _export_all(self):
        """Write every document under its original filename into a folder."""
        folder = QFileDialog.getExistingDirectory(
            self, "Export Translated Files To", self.settings.last_open_dir)
        if not folder:
            return
        written, failed = 0, []
        for doc in self.session.documents:
            try:
                artifact = reinsert_document(doc.document, doc.extraction, doc.edited_texts())
                with open(os.path.join(folder, artifact.filename), "wb") as f:
                    f.write(artifact.data)
                written += 1
            except (TextBridgeError, OSError) as e:
                log.warning("Export of %s failed: %s", doc.document.filename, e)
                failed.append(f"{doc.document.filename}: {e}")
        self.statusbar.showMessage(f"Exported {written} file(s) to {folder}", 5000)
        if failed:
            QMessageBox.warning(self, "Export Incomplete", "\n".join(failed))

    # ── Session ────────────────────────────────────────────────────

    def _save_session(self):
        if not self._last_session_path:
            self._save_session_as()
            return
        self.session.save_state(self._last_session_path)
        self.statusbar.showMessage(
            f"Saved to {os.path.basename(self._last_session_path)}", 3000)

    def _save_session_as(self):
        path, _ = QFileDialog.getSaveFileName(
            self, "Save Session", self.settings.last_open_dir, "JSON Files (*.json)")
        if path:
            self._last_session_path = path
            self._save_session()

    def _load_session(self):
        path, _ = QFileDialog.getOpenFileName(
            self, "Load Session", self.settings.last_open_dir, "JSON Files (*.json)")
        if not path or self.engine.is_running:
            return
        try:
            session = TranslationSession.load_state(path)
        except (OSError, ValueError, KeyError) as e:
            QMessageBox.warning(self, "Load Failed", f"Could not load session:\n{e}")
            return
        self.session = session
        self._doc_ids = [None] * len(session.documents)
        self._last_session_path = path
        self._rebuild_doc_list()
        self.statusbar.showMessage(
            f"Loaded session: {session.total} units "
            f"({session.translated_count} translated)", 5000)
        self.setWindowTitle(f"{_WINDOW_TITLE} — {os.path.basename(path)}")

    # ── Translation ────────────────────────────────────────────────

    def _start(self, jobs: list):
        if self.engine.is_running:
            return
        if not jobs:
            self.statusbar.showMessage("Nothing left to translate", 3000)
            return
        if not self.client.is_available():
            QMessageBox.warning(self, "Ollama Not Reachable",
                                f"Cannot reach Ollama at {self.client.base_url}.")
            return
        self.progress_bar.setRange(0, len(jobs))
        self.progress_bar.setValue(0)
        self.progress_bar.setVisible(True)
        self.batch_action.setEnabled(False)
        self.batch_doc_action.setEnabled(False)
        self.stop_action.setEnabled(True)
        self._batch_start_time = time.time()
        self.engine.translate_jobs(jobs)

    def _translate_all(self):
        self._start(collect_jobs(self.session))

    def _translate_current(self):
        i = self._current_index()
        if i < 0:
            return
        self._translate_selected(list(range(self.session.documents[i].extraction.total)))

    def _translate_selected(self, units: list):
        i = self._current_index()
        if i < 0:
            return
        texts = self.session.documents[i].extraction.texts
        jobs = [
            TranslationJob(i, u, texts[u], "\n".join(texts[max(0, u - 3):u]))
            for u in units if texts[u].strip()
        ]
        self._start(jobs)

    def _stop_translation(self):
        self.engine.cancel()
        self.stop_action.setEnabled(False)
        self.statusbar.showMessage("Stopping after current requests...", 3000)

    def _on_progress(self, current: int, total: int, text: str):
        """Update progress bar with ETA during batch translation."""
        self.progress_bar.setValue(current)
        eta_str = ""
        elapsed = time.time() - self._batch_start_time
        if current > 0 and elapsed > 0:
            remaining = max(0, total - current) * elapsed / current
            if remaining > 3600:
                eta_str = f" | ETA: {remaining/3600:.1f}h"
            elif remaining > 60:
                eta_str = f" | ETA: {remaining/60:.0f}m"
            else:
                eta_str = f" | ETA: {remaining:.0f}s"
        self.progress_label.setText(f"Translating {current}/{total}{eta_str}: {text}")

    def _on_entry_done(self, doc_index: int, unit_index: int, translation: str):
        if 0 <= doc_index < len(self.session.documents):
            doc = self.session.documents[doc_index]
            self.trans_table.update_unit(doc, unit_index, translation)
            item = self.doc_list.item(doc_index)
            if item is not None:
                item.setText(self._doc_label(doc))

    def _on_error(self, doc_index: int, unit_index: int, error_msg: str):
        log.warning("Translation of unit %d in document %d failed: %s",
                    unit_index, doc_index, error_msg)
        self.statusbar.showMessage(f"Error: {error_msg}", 5000)

    def _on_batch_finished(self):
        self._enable_document_actions()
        self.stop_action.setEnabled(False)
        self.progress_bar.setVisible(False)
        self.progress_label.setText("")
        self._refresh_doc_list()
        self.statusbar.showMessage(
            f"Batch complete — {self.session.translated_count}/{self.session.total} translated",
            15000)

    # ── Settings ───────────────────────────────────────────────────

    def _apply_settings(self):
        s = self.settings
        self.client.base_url = s.ollama_url.rstrip("/")
        self.client.model = s.model
        self.client.source_language = s.source_language
        self.client.target_language = s.target_language
        self.engine.batch_size = s.batch_size
        self.store.ttl = s.store_ttl_seconds

    def _open_settings(self):
        dlg = SettingsDialog(self.settings, self)
        if dlg.exec():
            self._apply_settings()
            self.settings.save()
            self._apply_dark_mode()

    def _apply_dark_mode(self):
        """Apply or remove dark stylesheet."""
        app = QApplication.instance()
        app.setStyleSheet(DARK_STYLESHEET if self.settings.dark_mode else "")
        self.trans_table.set_dark_mode(self.settings.dark_mode)

    def closeEvent(self, event):
        """Stop background threads and persist settings on window close."""
        self.engine.cancel()
        for thread in self.engine._threads:
            if thread.isRunning():
                thread.quit()
                thread.wait(3000)
        self.settings.save()
        super().closeEvent(event)
