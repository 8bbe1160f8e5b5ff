"""Translation engine — runs the LLM over extracted text units with Qt threading."""

import logging
from typing import NamedTuple

import requests

from PyQt6.QtCore import QObject, QThread, pyqtSignal

from .ollama_client import OllamaClient
from .project_model import TranslationSession

log = logging.getLogger(__name__)


class TranslationJob(NamedTuple):
    """One text unit queued for machine translation."""
    doc_index: int    # Position of the document in the session
    unit_index: int   # Position of the unit in the document's extraction
    text: str
    context: str      # Preceding units, for coherence


def collect_jobs(session: TranslationSession, context_lines: int = 3) -> list:
    """Queue every untranslated, non-blank unit of *session* in document order."""
    jobs = []
    for d, doc in enumerate(session.documents):
        texts = doc.extraction.texts
        for u, text in enumerate(texts):
            if doc.translations[u] or not text.strip():
                continue
            context = "\n".join(texts[max(0, u - context_lines):u])
            jobs.append(TranslationJob(d, u, text, context))
    return jobs


class TranslationWorker(QObject):
    """Worker that translates jobs one at a time in a background thread."""

    entry_done = pyqtSignal(int, int, str)  # doc_index, unit_index, translation
    item_processed = pyqtSignal(str)        # text preview (for progress tracking)
    finished = pyqtSignal()
    error = pyqtSignal(int, int, str)       # doc_index, unit_index, error_message

    def __init__(self, client: OllamaClient, jobs: list):
        super().__init__()
        self.client = client
        self.jobs = jobs
        self._cancelled = False

    def cancel(self):
        self._cancelled = True

    def run(self):
        """Process all jobs in this worker's chunk."""
        self._translate_each(self.jobs)
        self.finished.emit()

    def _translate_each(self, jobs: list):
        for job in jobs:
            if self._cancelled:
                return
            self.item_processed.emit(job.text[:50].replace("\n", " "))
            try:
                result = self.client.translate(text=job.text, context=job.context)
                self.entry_done.emit(job.doc_index, job.unit_index, result)
            except (ConnectionError, requests.RequestException, ValueError, OSError) as e:
                self.error.emit(job.doc_index, job.unit_index, str(e))


class BatchTranslationWorker(TranslationWorker):
    """Worker that translates jobs in JSON batches with single-job fallback."""

    MAX_RETRIES = 2

    def __init__(self, client: OllamaClient, jobs: list, batch_size: int = 5):
        super().__init__(client, jobs)
        self.batch_size = batch_size

    def run(self):
        """Process jobs in JSON batches, falling back to single jobs on failure."""
        for i in range(0, len(self.jobs), self.batch_size):
            if self._cancelled:
                break
            self._process_batch(self.jobs[i:i + self.batch_size])
        self.finished.emit()

    def _process_batch(self, batch: list):
        key_to_job = {f"Line{j+1}": job for j, job in enumerate(batch)}
        payload = [(key, job.text, job.context) for key, job in key_to_job.items()]

        for attempt in range(self.MAX_RETRIES):
            if self._cancelled:
                return
            try:
                results = self.client.translate_batch(payload)
            except (ConnectionError, ValueError, OSError) as e:
                log.warning("Batch attempt %d failed: %s", attempt + 1, e)
                continue

            got_keys = set()
            for key, translation in results.items():
                job = key_to_job.get(key)
                if job and translation:
                    self.item_processed.emit(translation[:50].replace("\n", " "))
                    self.entry_done.emit(job.doc_index, job.unit_index, translation)
                    got_keys.add(key)

            missing = [job for key, job in key_to_job.items() if key not in got_keys]
            if missing:
                log.warning("Batch returned %d/%d entries, falling back for %d missing",
                            len(got_keys), len(batch), len(missing))
                self._translate_each(missing)
            return

        log.warning("Batch failed after %d attempts, falling back to single-entry",
                    self.MAX_RETRIES)
        self._translate_each(batch)


class TranslationEngine(QObject):
    """Manages parallel translation workers and threads."""

    progress = pyqtSignal(int, int, str)    # current, total, current_text
    entry_done = pyqtSignal(int, int, str)
    finished = pyqtSignal()
    error = pyqtSignal(int, int, str)

    def __init__(self, client: OllamaClient, parent=None):
        super().__init__(parent)
        self.client = client
        self.num_workers = 2
        self.batch_size = 1  # jobs per JSON batch (1 = single-entry requests)
        self._threads = []
        self._workers = []
        self._total = 0
        self._progress_count = 0
        self._finished_workers = 0

    @property
    def is_running(self) -> bool:
        return any(t.isRunning() for t in self._threads)

    def translate_session(self, session: TranslationSession):
        """Start translating every untranslated unit of *session*."""
        self.translate_jobs(collect_jobs(session))

    def translate_jobs(self, jobs: list):
        """Start translating *jobs* with parallel workers."""
        if self.is_running:
            return
        if not jobs:
            self.finished.emit()
            return

        self._total = len(jobs)
        self._progress_count = 0
        self._finished_workers = 0
        self._threads = []
        self._workers = []

        # Sequential chunks keep each worker's context local
        for chunk in self._split_chunks(jobs, min(self.num_workers, len(jobs))):
            thread = QThread()
            if self.batch_size > 1:
                worker = BatchTranslationWorker(self.client, chunk, batch_size=self.batch_size)
            else:
                worker = TranslationWorker(self.client, chunk)
            worker.moveToThread(thread)

            thread.started.connect(worker.run)
            worker.item_processed.connect(self._on_item_processed)
            worker.entry_done.connect(self.entry_done.emit)
            worker.error.connect(self.error.emit)
            worker.finished.connect(self._on_worker_finished)

            self._threads.append(thread)
            self._workers.append(worker)

        for thread in self._threads:
            thread.start()

    def cancel(self):
        """Cancel all running workers."""
        for worker in self._workers:
            worker.cancel()

    def _on_item_processed(self, text: str):
        self._progress_count += 1
        self.progress.emit(self._progress_count, self._total, text)

    def _on_worker_finished(self):
        """Track worker completion; emit finished when all done."""
        self._finished_workers += 1
        if self._finished_workers >= len(self._workers):
            for thread in self._threads:
                thread.quit()
                thread.wait()
            self._threads = []
            self._workers = []
            self.finished.emit()

    @staticmethod
    def _split_chunks(items: list, n: int) -> list:
        """Split a list into n roughly equal sequential chunks."""
        if n <= 1:
            return [items]
        k, remainder = divmod(len(items), n)
        chunks = []
        start = 0
        for i in range(n):
            size = k + (1 if i < remainder else 0)
            chunks.append(items[start:start + size])
            start += size
        return chunks
