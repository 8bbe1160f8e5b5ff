import unittest
from unittest.mock import MagicMock

from textbridge import FORMAT_TYRANO
from textbridge.project_model import (
    BracketTagMapping,
    ExtractionResult,
    SessionDocument,
    SourceDocument,
    TranslationSession,
)
from textbridge.translation_engine import (
    BatchTranslationWorker,
    TranslationEngine,
    TranslationJob,
    TranslationWorker,
    collect_jobs,
)


def _document(texts, translations=None):
    extraction = ExtractionResult(
        FORMAT_TYRANO, list(texts), [BracketTagMapping(i) for i in range(len(texts))])
    source = SourceDocument("scene.ks", "\n".join(texts).encode("utf-8"), FORMAT_TYRANO)
    return SessionDocument(source, extraction, list(translations or []))


class TestCollectJobs(unittest.TestCase):
    def test_skips_translated_and_blank_units(self):
        session = TranslationSession([_document(["One.", "Two.", "   "], ["", "Deux.", ""])])

        jobs = collect_jobs(session)

        self.assertEqual(jobs, [TranslationJob(0, 0, "One.", "")])

    def test_context_is_preceding_units(self):
        session = TranslationSession([
            _document(["x"], ["done"]),
            _document(["a", "b", "c", "d", "e"]),
        ])

        jobs = collect_jobs(session, context_lines=2)

        self.assertEqual([(j.doc_index, j.unit_index) for j in jobs],
                         [(1, 0), (1, 1), (1, 2), (1, 3), (1, 4)])
        self.assertEqual(jobs[4].context, "c\nd")
        self.assertEqual(jobs[0].context, "")


class TestWorkers(unittest.TestCase):
    def setUp(self):
        self.jobs = [TranslationJob(0, 0, "一", ""), TranslationJob(0, 1, "二", "一")]
        self.done = []
        self.errors = []

    def _connect(self, worker):
        worker.entry_done.connect(lambda d, u, t: self.done.append((d, u, t)))
        worker.error.connect(lambda d, u, msg: self.errors.append((d, u, msg)))

    def test_single_worker_reports_failures_per_unit(self):
        client = MagicMock()
        client.translate.side_effect = ["One", ConnectionError("down")]
        worker = TranslationWorker(client, self.jobs)
        self._connect(worker)

        worker.run()

        self.assertEqual(self.done, [(0, 0, "One")])
        self.assertEqual(self.errors, [(0, 1, "down")])

    def test_cancelled_worker_stops(self):
        client = MagicMock()
        worker = TranslationWorker(client, self.jobs)
        worker.cancel()

        worker.run()

        client.translate.assert_not_called()

    def test_batch_worker_falls_back_for_missing_keys(self):
        client = MagicMock()
        client.translate_batch.return_value = {"Line1": "One"}
        client.translate.return_value = "Two"
        worker = BatchTranslationWorker(client, self.jobs, batch_size=5)
        self._connect(worker)

        worker.run()

        self.assertEqual(self.done, [(0, 0, "One"), (0, 1, "Two")])
        client.translate.assert_called_once_with(text="二", context="一")

    def test_batch_worker_retries_then_goes_single(self):
        client = MagicMock()
        client.translate_batch.side_effect = ValueError("bad json")
        client.translate.side_effect = ["One", "Two"]
        worker = BatchTranslationWorker(client, self.jobs, batch_size=5)
        self._connect(worker)

        worker.run()

        self.assertEqual(client.translate_batch.call_count, BatchTranslationWorker.MAX_RETRIES)
        self.assertEqual(self.done, [(0, 0, "One"), (0, 1, "Two")])


class TestSplitChunks(unittest.TestCase):
    def test_sequential_chunks(self):
        self.assertEqual(TranslationEngine._split_chunks([1, 2, 3, 4, 5], 2),
                         [[1, 2, 3], [4, 5]])
        self.assertEqual(TranslationEngine._split_chunks([1, 2], 1), [[1, 2]])
