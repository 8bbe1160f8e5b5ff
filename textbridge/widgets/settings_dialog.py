"""Settings dialog for configuring Ollama connection and extraction options."""

from PyQt6.QtWidgets import (
    QDialog, QVBoxLayout, QHBoxLayout, QFormLayout, QLineEdit, QComboBox,
    QPushButton, QLabel, QGroupBox, QMessageBox, QSpinBox, QCheckBox,
)
from PyQt6.QtCore import QThread, pyqtSignal

from ..ollama_client import OllamaClient
from ..settings import AppSettings

LANGUAGES = (
    "English", "Japanese", "Chinese", "Korean", "Spanish", "French", "German",
    "Portuguese", "Russian", "Vietnamese", "Indonesian", "Thai",
)


class _ModelFetcher(QThread):
    """Background thread to fetch model list from Ollama without blocking UI."""
    done = pyqtSignal(list)

    def __init__(self, url):
        super().__init__()
        self._url = url

    def run(self):
        self.done.emit(OllamaClient(self._url).list_models())


class SettingsDialog(QDialog):
    """Dialog editing a copy of the application settings.

    On Save the edited values are written back into ``settings``; Cancel
    leaves it untouched.
    """

    def __init__(self, settings: AppSettings, parent=None):
        super().__init__(parent)
        self.settings = settings
        self.setWindowTitle("Settings")
        self.setMinimumSize(520, 420)
        self._build_ui()
        self._load_current()

    def _build_ui(self):
        layout = QVBoxLayout(self)

        # ── Connection ───────────────────────────────────────────────
        conn_group = QGroupBox("Ollama Connection")
        conn_form = QFormLayout(conn_group)

        self.url_edit = QLineEdit()
        self.url_edit.setPlaceholderText("http://localhost:11434")
        conn_form.addRow("Ollama URL:", self.url_edit)

        model_row = QHBoxLayout()
        self.model_combo = QComboBox()
        self.model_combo.setEditable(True)
        self.model_combo.setMinimumWidth(250)
        model_row.addWidget(self.model_combo)

        self.refresh_btn = QPushButton("Refresh")
        self.refresh_btn.clicked.connect(self._refresh_models)
        model_row.addWidget(self.refresh_btn)

        self.test_btn = QPushButton("Test Connection")
        self.test_btn.clicked.connect(self._test_connection)
        model_row.addWidget(self.test_btn)
        conn_form.addRow("Model:", model_row)

        self.status_label = QLabel("")
        conn_form.addRow("", self.status_label)
        layout.addWidget(conn_group)

        # ── Translation ──────────────────────────────────────────────
        trans_group = QGroupBox("Translation")
        trans_form = QFormLayout(trans_group)
        self.source_combo = QComboBox()
        self.source_combo.setEditable(True)
        self.source_combo.addItems(LANGUAGES)
        trans_form.addRow("Source Language:", self.source_combo)
        self.target_combo = QComboBox()
        self.target_combo.setEditable(True)
        self.target_combo.addItems(LANGUAGES)
        trans_form.addRow("Target Language:", self.target_combo)
        self.batch_spin = QSpinBox()
        self.batch_spin.setRange(1, 30)
        self.batch_spin.setToolTip("Text units per request (1 = one request per unit)")
        trans_form.addRow("Batch Size:", self.batch_spin)
        layout.addWidget(trans_group)

        # ── Extraction ───────────────────────────────────────────────
        extract_group = QGroupBox("Extraction")
        extract_form = QFormLayout(extract_group)
        self.macro_check = QCheckBox("Extract text inside KAG [macro] blocks")
        extract_form.addRow(self.macro_check)
        self.ttl_spin = QSpinBox()
        self.ttl_spin.setRange(0, 7 * 24 * 3600)
        self.ttl_spin.setSuffix(" s")
        self.ttl_spin.setToolTip("Drop opened documents idle this long (0 = never)")
        extract_form.addRow("Document Lifetime:", self.ttl_spin)
        layout.addWidget(extract_group)

        self.dark_mode_check = QCheckBox("Dark mode")
        layout.addWidget(self.dark_mode_check)

        btn_row = QHBoxLayout()
        btn_row.addStretch()
        save_btn = QPushButton("Save")
        save_btn.clicked.connect(self._save)
        btn_row.addWidget(save_btn)
        cancel_btn = QPushButton("Cancel")
        cancel_btn.clicked.connect(self.reject)
        btn_row.addWidget(cancel_btn)
        layout.addLayout(btn_row)

    def _load_current(self):
        """Populate fields from the current settings."""
        s = self.settings
        self.url_edit.setText(s.ollama_url)
        self.model_combo.setCurrentText(s.model)
        self.source_combo.setCurrentText(s.source_language)
        self.target_combo.setCurrentText(s.target_language)
        self.batch_spin.setValue(s.batch_size)
        self.macro_check.setChecked(s.extract_macro_text)
        self.ttl_spin.setValue(s.store_ttl_seconds)
        self.dark_mode_check.setChecked(s.dark_mode)
        self._refresh_models()

    def _url(self) -> str:
        return self.url_edit.text().strip() or "http://localhost:11434"

    def _refresh_models(self):
        """Fetch available models in a background thread."""
        self._model_fetcher = _ModelFetcher(self._url())
        self._model_fetcher.done.connect(self._populate_model_combo)
        self.status_label.setText("Fetching models...")
        self._model_fetcher.start()

    def _populate_model_combo(self, models: list):
        current = self.model_combo.currentText()
        self.model_combo.blockSignals(True)
        self.model_combo.clear()
        if models:
            self.model_combo.addItems(sorted(models))
            self.status_label.setText(f"Found {len(models)} model(s)")
            self.status_label.setStyleSheet("color: green;")
        else:
            self.status_label.setText("Could not fetch models -- is Ollama running?")
            self.status_label.setStyleSheet("color: red;")
        self.model_combo.setCurrentText(current)
        self.model_combo.blockSignals(False)

    def _test_connection(self):
        """Test if Ollama is reachable."""
        if OllamaClient(self._url()).is_available():
            QMessageBox.information(self, "Connection OK", "Successfully connected to Ollama!")
        else:
            QMessageBox.warning(self, "Connection Failed",
                                "Cannot reach Ollama. Make sure it's running:\n  ollama serve")

    def _save(self):
        """Apply settings and close."""
        s = self.settings
        s.ollama_url = self._url()
        s.model = self.model_combo.currentText().strip() or s.model
        s.source_language = self.source_combo.currentText().strip() or "Japanese"
        s.target_language = self.target_combo.currentText().strip() or "English"
        s.batch_size = self.batch_spin.value()
        s.extract_macro_text = self.macro_check.isChecked()
        s.store_ttl_seconds = self.ttl_spin.value()
        s.dark_mode = self.dark_mode_check.isChecked()
        self.accept()
