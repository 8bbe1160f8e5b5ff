"""Translation table widget: main workspace for reviewing and editing text units.

Uses QTableView + QAbstractTableModel for virtual scrolling; only visible
rows are rendered, so large scripts load instantly.
"""

from PyQt6.QtWidgets import (
    QWidget, QVBoxLayout, QHBoxLayout, QTableView, QLineEdit, QComboBox,
    QLabel, QMenu, QAbstractItemView, QHeaderView, QTextEdit, QSplitter,
    QGroupBox,
)
from PyQt6.QtCore import pyqtSignal, Qt, QTimer, QAbstractTableModel, QModelIndex
from PyQt6.QtGui import QColor

from ..ollama_client import PROTECTED_RE
from ..project_model import SessionDocument

# Status colors — light mode
STATUS_COLORS_LIGHT = {
    "untranslated": QColor(255, 230, 230),   # light red
    "translated":   QColor(255, 255, 210),   # light yellow
}

# Status colors — dark mode (muted, readable with light text)
STATUS_COLORS_DARK = {
    "untranslated": QColor(80, 40, 40),      # dark red
    "translated":   QColor(70, 65, 30),      # dark yellow
}

STATUS_ICONS = {
    "untranslated": "\u25cb",  # ○
    "translated":   "\u25d0",  # ◐
}

# Column indices
COL_STATUS = 0
COL_INDEX = 1
COL_ORIGINAL = 2
COL_TRANSLATION = 3

_COLUMN_HEADERS = ["", "#", "Original", "Translation"]


class TranslationTableModel(QAbstractTableModel):
    """Model over one document's text units; rows map to unit indices."""

    def __init__(self, parent=None):
        super().__init__(parent)
        self._doc: SessionDocument | None = None
        self._rows: list[int] = []   # unit index per visible row
        self._dark_mode = True

    @property
    def _status_colors(self):
        return STATUS_COLORS_DARK if self._dark_mode else STATUS_COLORS_LIGHT

    def set_rows(self, doc, rows: list):
        self.beginResetModel()
        self._doc = doc
        self._rows = rows
        self.endResetModel()

    def _status(self, unit: int) -> str:
        return "translated" if self._doc.translations[unit] else "untranslated"

    def rowCount(self, parent=QModelIndex()):
        return len(self._rows)

    def columnCount(self, parent=QModelIndex()):
        return len(_COLUMN_HEADERS)

    def data(self, index: QModelIndex, role=Qt.ItemDataRole.DisplayRole):
        if not index.isValid() or self._doc is None:
            return None
        row, col = index.row(), index.column()
        if row < 0 or row >= len(self._rows):
            return None
        unit = self._rows[row]

        if role == Qt.ItemDataRole.DisplayRole or role == Qt.ItemDataRole.EditRole:
            if col == COL_STATUS:
                return STATUS_ICONS[self._status(unit)]
            elif col == COL_INDEX:
                return str(unit + 1)
            elif col == COL_ORIGINAL:
                return self._doc.extraction.texts[unit]
            elif col == COL_TRANSLATION:
                return self._doc.translations[unit]

        elif role == Qt.ItemDataRole.BackgroundRole:
            return self._status_colors[self._status(unit)]

        elif role == Qt.ItemDataRole.TextAlignmentRole:
            if col in (COL_STATUS, COL_INDEX):
                return Qt.AlignmentFlag.AlignCenter

        return None

    def setData(self, index: QModelIndex, value, role=Qt.ItemDataRole.EditRole):
        if not index.isValid() or role != Qt.ItemDataRole.EditRole or self._doc is None:
            return False
        row, col = index.row(), index.column()
        if col != COL_TRANSLATION or row < 0 or row >= len(self._rows):
            return False
        self._doc.translations[self._rows[row]] = str(value)
        self.refresh_row(row)
        return True

    def flags(self, index: QModelIndex):
        base = Qt.ItemFlag.ItemIsSelectable | Qt.ItemFlag.ItemIsEnabled
        if index.column() == COL_TRANSLATION:
            return base | Qt.ItemFlag.ItemIsEditable
        return base

    def headerData(self, section, orientation, role=Qt.ItemDataRole.DisplayRole):
        if orientation == Qt.Orientation.Horizontal and role == Qt.ItemDataRole.DisplayRole:
            return _COLUMN_HEADERS[section] if section < len(_COLUMN_HEADERS) else ""
        return None

    def unit_at(self, row: int) -> int:
        return self._rows[row] if 0 <= row < len(self._rows) else -1

    def row_of(self, unit: int) -> int:
        try:
            return self._rows.index(unit)
        except ValueError:
            return -1

    def refresh_row(self, row: int):
        """Notify the view that a row's data changed."""
        if 0 <= row < len(self._rows):
            self.dataChanged.emit(
                self.index(row, 0), self.index(row, self.columnCount() - 1)
            )

    def refresh_all(self):
        if self._rows:
            self.dataChanged.emit(
                self.index(0, 0),
                self.index(len(self._rows) - 1, self.columnCount() - 1),
            )


class TranslationTable(QWidget):
    """Table view for browsing and editing the units of one document."""

    translate_requested = pyqtSignal(list)    # unit indices to machine-translate
    status_changed = pyqtSignal()             # Emitted when any translation changes

    def __init__(self, parent=None):
        super().__init__(parent)
        self._doc: SessionDocument | None = None
        self._dark_mode = True
        self._filter_timer = QTimer(self)
        self._filter_timer.setSingleShot(True)
        self._filter_timer.setInterval(250)  # 250ms debounce
        self._filter_timer.timeout.connect(self._apply_filter)
        self._build_ui()

    def _build_ui(self):
        layout = QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addLayout(self._build_filter_bar())

        split = QSplitter(Qt.Orientation.Vertical)
        split.addWidget(self._build_table())
        split.addWidget(self._build_editors())
        split.setStretchFactor(0, 7)
        split.setStretchFactor(1, 3)
        layout.addWidget(split)

        self.stats_label = QLabel("No document loaded")
        layout.addWidget(self.stats_label)

    def _build_filter_bar(self) -> QHBoxLayout:
        self.search_edit = QLineEdit()
        self.search_edit.setPlaceholderText("Search units (ignores codes)...")
        self.search_edit.textChanged.connect(self._schedule_filter)

        self.status_filter = QComboBox()
        self.status_filter.addItems(["All", "Untranslated", "Translated"])
        self.status_filter.currentTextChanged.connect(self._apply_filter)

        bar = QHBoxLayout()
        for caption, widget in (("Search:", self.search_edit),
                                ("Status:", self.status_filter)):
            bar.addWidget(QLabel(caption))
            bar.addWidget(widget)
        return bar

    def _build_table(self) -> QTableView:
        self._model = TranslationTableModel(self)
        self._model.dataChanged.connect(self._on_model_data_changed)

        view = QTableView()
        view.setModel(self._model)
        view.setWordWrap(True)
        view.setSelectionBehavior(QAbstractItemView.SelectionBehavior.SelectRows)
        view.setSelectionMode(QAbstractItemView.SelectionMode.ExtendedSelection)
        view.setContextMenuPolicy(Qt.ContextMenuPolicy.CustomContextMenu)
        view.customContextMenuRequested.connect(self._show_context_menu)
        view.selectionModel().currentRowChanged.connect(self._on_row_selected)

        resize = {
            COL_STATUS: QHeaderView.ResizeMode.Fixed,
            COL_INDEX: QHeaderView.ResizeMode.ResizeToContents,
            COL_ORIGINAL: QHeaderView.ResizeMode.Stretch,
            COL_TRANSLATION: QHeaderView.ResizeMode.Stretch,
        }
        for col, mode in resize.items():
            view.horizontalHeader().setSectionResizeMode(col, mode)
        view.setColumnWidth(COL_STATUS, 30)

        self.table = view
        self._selected_row = -1
        return view

    @staticmethod
    def _text_pane(title: str, hint: str, read_only: bool) -> tuple:
        group = QGroupBox(title)
        editor = QTextEdit()
        editor.setAcceptRichText(False)
        editor.setReadOnly(read_only)
        editor.setPlaceholderText(hint)
        QVBoxLayout(group).addWidget(editor)
        return group, editor

    def _build_editors(self) -> QWidget:
        panel = QWidget()
        row = QHBoxLayout(panel)
        row.setContentsMargins(0, 0, 0, 0)

        orig_group, self.orig_editor = self._text_pane(
            "Original", "Select a row to view the source text...", True)
        trans_group, self.trans_editor = self._text_pane(
            "Translation (editable)", "Select a row to edit its translation...", False)
        self.trans_editor.textChanged.connect(self._on_editor_changed)

        row.addWidget(orig_group)
        row.addWidget(trans_group)
        return panel

    def _show_in_editor(self, text: str):
        """Put *text* in the translation editor without writing it back."""
        self.trans_editor.blockSignals(True)
        self.trans_editor.setPlainText(text)
        self.trans_editor.blockSignals(False)

    def set_dark_mode(self, dark: bool):
        """Switch row colors between dark and light palettes."""
        self._dark_mode = dark
        self._model._dark_mode = dark
        self._model.refresh_all()

    def set_document(self, doc):
        """Show the units of *doc* (a SessionDocument, or None to clear)."""
        self._doc = doc
        self._selected_row = -1
        self.orig_editor.clear()
        self._show_in_editor("")
        self._apply_filter()

    def _schedule_filter(self):
        self._filter_timer.start()

    def _apply_filter(self):
        """Filter visible units by search text and status.

        Control codes and markup are stripped before matching.
        """
        if self._doc is None:
            self._model.set_rows(None, [])
            self._update_stats()
            return
        query = self.search_edit.text().lower()
        status = self.status_filter.currentText().lower()

        rows = []
        for unit, original in enumerate(self._doc.extraction.texts):
            translation = self._doc.translations[unit]
            unit_status = "translated" if translation else "untranslated"
            if status != "all" and unit_status != status:
                continue
            if query:
                if (query not in PROTECTED_RE.sub("", original).lower()
                        and query not in PROTECTED_RE.sub("", translation).lower()):
                    continue
            rows.append(unit)

        self._model.set_rows(self._doc, rows)
        self._update_stats()

    def _on_model_data_changed(self, top_left, bottom_right, roles=None):
        self._update_stats()
        self.status_changed.emit()

    def update_unit(self, doc, unit: int, translation: str):
        """Store a machine translation and refresh the row if it is shown."""
        doc.translations[unit] = translation
        if doc is not self._doc:
            return
        row = self._model.row_of(unit)
        self._model.refresh_row(row)
        if row >= 0 and row == self._selected_row:
            self._show_in_editor(translation)

    def selected_units(self) -> list:
        rows = set(idx.row() for idx in self.table.selectionModel().selectedRows())
        return [self._model.unit_at(r) for r in sorted(rows) if self._model.unit_at(r) >= 0]

    def _show_context_menu(self, pos):
        units = self.selected_units()
        if not units:
            return
        menu = QMenu(self)
        translate_action = menu.addAction(f"Machine-translate {len(units)} selected")
        clear_action = menu.addAction("Clear translation")
        chosen = menu.exec(self.table.viewport().mapToGlobal(pos))
        if chosen == translate_action:
            self.translate_requested.emit(units)
        elif chosen == clear_action:
            for unit in units:
                self._doc.translations[unit] = ""
                self._model.refresh_row(self._model.row_of(unit))

    def _on_row_selected(self, current: QModelIndex, previous: QModelIndex):
        """When a row is clicked, load its text into the editor panel."""
        unit = self._model.unit_at(current.row())
        if unit < 0:
            self._selected_row = -1
            self.orig_editor.clear()
            self._show_in_editor("")
            return

        self._selected_row = current.row()
        self.orig_editor.setPlainText(self._doc.extraction.texts[unit])
        self._show_in_editor(self._doc.translations[unit])

    def _on_editor_changed(self):
        """Save edits from the translation editor back to the document."""
        unit = self._model.unit_at(self._selected_row)
        if unit < 0:
            return
        self._doc.translations[unit] = self.trans_editor.toPlainText()
        self._model.refresh_row(self._selected_row)

    def _update_stats(self):
        if self._doc is None:
            self.stats_label.setText("No document loaded")
            return
        self.stats_label.setText(
            f"Showing {self._model.rowCount()} of {self._doc.extraction.total} units  |  "
            f"Translated: {self._doc.translated_count}"
        )
