"""Data model for extracted text, mapping records and session state."""

import base64
import json
import os
import threading
import time
import uuid
from dataclasses import dataclass, field, asdict, fields
from typing import Optional

from . import (
    FORMAT_KAG, FORMAT_RENPY, FORMAT_RPGMV_JSON, FORMAT_TYRANO,
)

NOT_SUPPORTED_MESSAGE = "This file type is not supported yet."


@dataclass
class SourceDocument:
    """An uploaded artifact, immutable once its format is detected."""
    filename: str          # Original filename e.g. "CommonEvents.json"
    data: bytes            # Raw bytes as uploaded
    format: str            # Format tag from the detector


# ── Mapping records (one per extracted text unit) ─────────────────────

@dataclass
class EventTextMapping:
    """Address of a text unit inside an RPG Maker event command tree."""
    container: list        # [event] for CommonEvents, [event, page] for maps/troops
    command_index: int     # Index in the container's command list
    param_index: object    # 0 / 1, or [0, choice_index] for choice lists
    extract_kind: str = "plain"   # "plain" | "script-embedded"
    original_text: str = ""       # Extracted value (script-embedded only)
    original_match: str = ""      # Exact substring replaced (script-embedded only)
    expression_kind: str = ""     # quoted-string | template-literal | ... (script-embedded only)
    quote: str = ""               # Quote char of the literal (script-embedded only)
    spans: list = field(default_factory=list)  # [[start, end], ...] (script-embedded only)
    speaker_prefix: str = ""      # Stripped "Name." prefix, re-prepended on save


@dataclass
class LineScriptMapping:
    """Address of a quoted literal in a Ren'Py script line."""
    line_index: int        # Zero-based line number
    string_index: int      # Ordinal of the literal within the line
    quote: str = '"'       # Original quote character


@dataclass
class BracketTagMapping:
    """Address of the center text of a TyranoScript line."""
    line_index: int
    prefix: str = ""       # Leading tag run, verbatim
    suffix: str = ""       # Trailing tag run, verbatim


@dataclass
class MixedTagMapping:
    """Address of a text unit in a KAG script line."""
    line_index: int
    extract_kind: str      # eval-variable | tag-attribute | emb-text | cname-dialogue |
                           # quotation | bare-line
    string_index: int = 0  # Ordinal among 「」 spans on the line (quotation only)
    quote: str = '"'       # Attribute / @eval quote character
    attribute: str = ""    # "text" or "name" (tag-attribute only)
    variable_path: str = ""  # e.g. "sf.name" (eval-variable only)


MAPPING_TYPES = {
    FORMAT_RPGMV_JSON: EventTextMapping,
    FORMAT_RENPY: LineScriptMapping,
    FORMAT_TYRANO: BracketTagMapping,
    FORMAT_KAG: MixedTagMapping,
}


@dataclass
class ExtractionResult:
    """Ordered text units and their mapping records for one document."""
    format: str
    texts: list = field(default_factory=list)     # TextUnit[]
    mapping: list = field(default_factory=list)   # MappingRecord[], same length
    supported: bool = True
    message: str = ""

    def __post_init__(self):
        if len(self.texts) != len(self.mapping):
            raise ValueError(
                f"{len(self.texts)} text units but {len(self.mapping)} mapping records")

    @property
    def total(self) -> int:
        return len(self.texts)

    def to_dict(self) -> dict:
        return {
            "format": self.format,
            "texts": list(self.texts),
            "mapping": [asdict(m) for m in self.mapping],
            "supported": self.supported,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ExtractionResult":
        fmt = data.get("format", "")
        mapping_cls = MAPPING_TYPES.get(fmt)
        mapping = []
        if mapping_cls is not None:
            known = {f.name for f in fields(mapping_cls)}
            for raw in data.get("mapping", []):
                mapping.append(mapping_cls(**{k: v for k, v in raw.items() if k in known}))
        return cls(
            format=fmt,
            texts=list(data.get("texts", [])),
            mapping=mapping,
            supported=data.get("supported", True),
            message=data.get("message", ""),
        )


@dataclass
class OutputArtifact:
    """Regenerated bytes handed back under the original filename."""
    filename: str
    data: bytes


# ── Keyed document store ──────────────────────────────────────────────

@dataclass
class StoredDocument:
    document: SourceDocument
    extraction: Optional[ExtractionResult]
    touched: float = 0.0   # time.monotonic() of last access


class DocumentStore:
    """Holds uploaded documents and their extraction, keyed by opaque id.

    Entries live until discarded or until ``ttl`` seconds pass without
    access (``ttl=0`` disables expiry).  Safe to share between threads.
    """

    def __init__(self, ttl: float = 0, clock=time.monotonic):
        self.ttl = ttl
        self._clock = clock
        self._items: dict[str, StoredDocument] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def __contains__(self, doc_id: str) -> bool:
        return self.get(doc_id) is not None

    def put(self, document: SourceDocument,
            extraction: Optional[ExtractionResult]) -> str:
        """Insert a document and return its new id."""
        doc_id = str(uuid.uuid4())
        with self._lock:
            self._items[doc_id] = StoredDocument(document, extraction, self._clock())
        return doc_id

    def get(self, doc_id: str) -> Optional[StoredDocument]:
        with self._lock:
            item = self._items.get(doc_id)
            if item is None:
                return None
            now = self._clock()
            if self.ttl and now - item.touched > self.ttl:
                del self._items[doc_id]
                return None
            item.touched = now
            return item

    def discard(self, doc_id: str) -> bool:
        with self._lock:
            return self._items.pop(doc_id, None) is not None

    def purge_expired(self) -> int:
        """Drop every entry idle for longer than ``ttl``.  Returns the count."""
        if not self.ttl:
            return 0
        with self._lock:
            now = self._clock()
            stale = [k for k, v in self._items.items() if now - v.touched > self.ttl]
            for k in stale:
                del self._items[k]
        return len(stale)

    def ids(self) -> list:
        with self._lock:
            return list(self._items.keys())


# ── Editor session (resume support) ───────────────────────────────────

@dataclass
class SessionDocument:
    """One opened document with its extraction and current edits."""
    document: SourceDocument
    extraction: ExtractionResult
    translations: list = field(default_factory=list)  # Edited text per unit ("" = untouched)

    def __post_init__(self):
        if len(self.translations) < self.extraction.total:
            self.translations.extend([""] * (self.extraction.total - len(self.translations)))

    @property
    def translated_count(self) -> int:
        return sum(1 for t in self.translations if t)

    def edited_texts(self) -> list:
        """Texts to reinsert: the edit where present, else the original."""
        return [t or o for t, o in zip(self.translations, self.extraction.texts)]


@dataclass
class TranslationSession:
    """Holds all opened documents for the editor."""
    documents: list = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(d.extraction.total for d in self.documents)

    @property
    def translated_count(self) -> int:
        return sum(d.translated_count for d in self.documents)

    def save_state(self, path: str):
        """Save session state to a JSON file for resume support."""
        data = {
            "documents": [
                {
                    "filename": d.document.filename,
                    "format": d.document.format,
                    "data": base64.b64encode(d.document.data).decode("ascii"),
                    "extraction": d.extraction.to_dict(),
                    "translations": d.translations,
                }
                for d in self.documents
            ],
        }
        os.makedirs(os.path.dirname(path) if os.path.dirname(path) else ".", exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

    @classmethod
    def load_state(cls, path: str) -> "TranslationSession":
        """Load session state from a saved JSON file."""
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        session = cls()
        for raw in data.get("documents", []):
            document = SourceDocument(
                filename=raw.get("filename", ""),
                data=base64.b64decode(raw.get("data", "")),
                format=raw.get("format", ""),
            )
            session.documents.append(SessionDocument(
                document=document,
                extraction=ExtractionResult.from_dict(raw.get("extraction", {})),
                translations=list(raw.get("translations", [])),
            ))
        return session
