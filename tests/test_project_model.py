import os
import tempfile
import unittest

from textbridge import FORMAT_KAG, FORMAT_RENPY
from textbridge.project_model import (
    DocumentStore,
    ExtractionResult,
    LineScriptMapping,
    MixedTagMapping,
    SessionDocument,
    SourceDocument,
    TranslationSession,
)


class _FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestExtractionResult(unittest.TestCase):
    def test_length_mismatch_raises(self):
        with self.assertRaises(ValueError):
            ExtractionResult(FORMAT_RENPY, ["a"], [])

    def test_dict_round_trip_restores_mapping_type(self):
        result = ExtractionResult(
            FORMAT_KAG, ["こんにちは"], [MixedTagMapping(2, "quotation", string_index=1, quote="「")])

        restored = ExtractionResult.from_dict(result.to_dict())

        self.assertEqual(restored, result)
        self.assertIsInstance(restored.mapping[0], MixedTagMapping)

    def test_from_dict_ignores_unknown_mapping_fields(self):
        restored = ExtractionResult.from_dict({
            "format": FORMAT_RENPY,
            "texts": ["Hi."],
            "mapping": [{"line_index": 0, "string_index": 0, "quote": '"', "extra": 1}],
        })

        self.assertEqual(restored.mapping, [LineScriptMapping(0, 0, '"')])


class TestDocumentStore(unittest.TestCase):
    def setUp(self):
        self.clock = _FakeClock()
        self.document = SourceDocument("a.rpy", b'e "Hi."\n', FORMAT_RENPY)

    def test_ids_are_unique(self):
        store = DocumentStore()

        first = store.put(self.document, None)
        second = store.put(self.document, None)

        self.assertNotEqual(first, second)
        self.assertEqual(sorted(store.ids()), sorted([first, second]))

    def test_entries_expire_after_idle_ttl(self):
        store = DocumentStore(ttl=10, clock=self.clock)
        doc_id = store.put(self.document, None)

        self.clock.now = 8
        self.assertIsNotNone(store.get(doc_id))
        self.clock.now = 16
        self.assertIsNotNone(store.get(doc_id))
        self.clock.now = 30
        self.assertIsNone(store.get(doc_id))
        self.assertNotIn(doc_id, store)

    def test_purge_expired(self):
        store = DocumentStore(ttl=10, clock=self.clock)
        old = store.put(self.document, None)
        self.clock.now = 8
        fresh = store.put(self.document, None)

        self.clock.now = 15
        self.assertEqual(store.purge_expired(), 1)
        self.assertEqual(store.ids(), [fresh])
        self.assertIsNone(store.get(old))

    def test_zero_ttl_never_expires(self):
        store = DocumentStore(ttl=0, clock=self.clock)
        doc_id = store.put(self.document, None)

        self.clock.now = 10 ** 9

        self.assertEqual(store.purge_expired(), 0)
        self.assertIsNotNone(store.get(doc_id))

    def test_discard(self):
        store = DocumentStore()
        doc_id = store.put(self.document, None)

        self.assertTrue(store.discard(doc_id))
        self.assertFalse(store.discard(doc_id))
        self.assertEqual(len(store), 0)


class TestTranslationSession(unittest.TestCase):
    def _session_document(self):
        extraction = ExtractionResult(
            FORMAT_RENPY, ["Hello.", "Bye."], [LineScriptMapping(0, 0), LineScriptMapping(1, 0)])
        document = SourceDocument("a.rpy", b'e "Hello."\ne "Bye."\n', FORMAT_RENPY)
        return SessionDocument(document, extraction, ["", "Au revoir."])

    def test_edited_texts_fall_back_to_original(self):
        doc = self._session_document()

        self.assertEqual(doc.edited_texts(), ["Hello.", "Au revoir."])
        self.assertEqual(doc.translated_count, 1)

    def test_translations_are_padded(self):
        doc = self._session_document()
        padded = SessionDocument(doc.document, doc.extraction)

        self.assertEqual(padded.translations, ["", ""])

    def test_save_and_load_state(self):
        session = TranslationSession([self._session_document()])

        with tempfile.TemporaryDirectory() as tmp:
            path = os.path.join(tmp, "nested", "session.json")
            session.save_state(path)
            loaded = TranslationSession.load_state(path)

        self.assertEqual(len(loaded.documents), 1)
        doc = loaded.documents[0]
        self.assertEqual(doc.document, session.documents[0].document)
        self.assertEqual(doc.extraction, session.documents[0].extraction)
        self.assertEqual(doc.translations, ["", "Au revoir."])
        self.assertEqual(loaded.total, 2)
        self.assertEqual(loaded.translated_count, 1)
