"""Extraction and reinsertion entry points.

Dispatches a document to the parser for its detected format, handles the
byte level (UTF-8, byte-order mark) and turns a multi-file batch into
per-file results without letting one bad file abort the others.
"""

import logging
from typing import Iterable, Optional

from . import FORMAT_KAG, FORMAT_RENPY, FORMAT_RPGMV_JSON, FORMAT_TYRANO, SUPPORTED_FORMATS
from .detector import detect_format
from .errors import DocumentNotFoundError, InvalidSourceError, UnsupportedFormatError
from .kag_script import KAGScriptParser
from .project_model import (
    NOT_SUPPORTED_MESSAGE, DocumentStore, ExtractionResult, OutputArtifact, SourceDocument,
)
from .renpy_script import RenPyScriptParser
from .rpgmaker_mv import RPGMakerMVParser
from .tyrano_script import TyranoScriptParser

log = logging.getLogger(__name__)

BOM = "\ufeff"


def get_parser(fmt: str, extract_macro_text: bool = True):
    """Return a parser instance for a supported format tag, else None."""
    if fmt == FORMAT_RPGMV_JSON:
        return RPGMakerMVParser()
    if fmt == FORMAT_RENPY:
        return RenPyScriptParser()
    if fmt == FORMAT_TYRANO:
        return TyranoScriptParser()
    if fmt == FORMAT_KAG:
        parser = KAGScriptParser()
        parser.extract_macro_text = extract_macro_text
        return parser
    return None


def decode_source(data: bytes) -> tuple[str, bool]:
    """Decode UTF-8 *data*; return the text without BOM and whether one was present.

    Raises:
        InvalidSourceError: *data* is not valid UTF-8.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidSourceError(f"Not UTF-8 text: {e}") from e
    if text.startswith(BOM):
        return text[1:], True
    return text, False


def extract_document(filename: str, data: bytes,
                     extract_macro_text: bool = True) -> tuple[SourceDocument, ExtractionResult]:
    """Detect, decode and extract one uploaded artifact.

    Unsupported formats yield a result with ``supported=False``.

    Raises:
        InvalidSourceError: undecodable bytes, invalid JSON or JSON shape.
    """
    fmt = detect_format(filename, data)
    document = SourceDocument(filename=filename, data=data, format=fmt)

    if fmt not in SUPPORTED_FORMATS:
        log.info("%s: format %s is not supported", filename, fmt)
        return document, ExtractionResult(fmt, supported=False, message=NOT_SUPPORTED_MESSAGE)

    text, _ = decode_source(data)
    texts, mapping = get_parser(fmt, extract_macro_text).extract(text)
    log.info("%s: %s, %d text units", filename, fmt, len(texts))
    return document, ExtractionResult(fmt, texts, mapping)


def reinsert_document(document: SourceDocument, extraction: ExtractionResult,
                      texts: Optional[list] = None) -> OutputArtifact:
    """Write *texts* (default: the extracted texts) back into *document*.

    Raises:
        UnsupportedFormatError: the document's format has no extractor.
    """
    if not extraction.supported or document.format not in SUPPORTED_FORMATS:
        raise UnsupportedFormatError(f"Saving not supported for {document.format}")
    if texts is None:
        texts = extraction.texts

    source, had_bom = decode_source(document.data)
    # extract_macro_text only affects extraction; any KAG parser reinserts.
    out = get_parser(document.format).reinsert(source, extraction.mapping, texts)
    if had_bom:
        out = BOM + out
    log.info("%s: reinserted %d text units", document.filename, len(extraction.mapping))
    return OutputArtifact(filename=document.filename, data=out.encode("utf-8"))


def process_uploads(files: Iterable, store: DocumentStore,
                    extract_macro_text: bool = True) -> list:
    """Extract a batch of ``(filename, bytes)`` pairs into *store*.

    Returns one entry per file, in order:
    ``{"id", "type", "name", "lines"}`` for extracted documents,
    ``{"id", "type", "name", "message"}`` for unsupported formats and
    ``{"name", "error"}`` for invalid sources (not stored).
    """
    results = []
    for filename, data in files:
        try:
            document, extraction = extract_document(filename, data, extract_macro_text)
        except InvalidSourceError as e:
            log.warning("%s: %s", filename, e)
            results.append({"name": filename, "error": str(e)})
            continue

        doc_id = store.put(document, extraction)
        entry = {"id": doc_id, "type": document.format, "name": filename}
        if extraction.supported:
            entry["lines"] = list(extraction.texts)
        else:
            entry["message"] = extraction.message
        results.append(entry)
    return results


def save_stored(store: DocumentStore, doc_id: str, texts: list) -> OutputArtifact:
    """Reinsert *texts* into the stored document *doc_id*.

    Raises:
        DocumentNotFoundError: unknown or expired id.
        UnsupportedFormatError: the stored document was never extracted.
    """
    item = store.get(doc_id)
    if item is None:
        raise DocumentNotFoundError(doc_id)
    if item.extraction is None:
        raise UnsupportedFormatError(f"Saving not supported for {item.document.format}")
    return reinsert_document(item.document, item.extraction, texts)
