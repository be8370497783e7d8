"""Batch orchestration: scan, dedup, transform, record.

A run goes through four stages:

1. Scan the input root for eligible images.
2. Drop files whose mirrored output already exists (cheap stat check).
3. Hash the rest with bounded parallelism and drop digests found in the
   per-root history or in the hash cache snapshot.
4. Transform the survivors one at a time, rate limited, recording each
   success in the history (flushed every few files) and in the hash cache
   (through a background writer).

Per-file failures are logged and reported; only scan/setup problems abort
the run.
"""

import logging
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Set, Tuple

from .cache_store import HashCacheStore
from .cache_writer import CacheWriter
from .compression import reduce_image_size
from .config import PipelineConfig
from .constants import HISTORY_FLUSH_EVERY, LARGE_FILE_BYTES, RATE_LIMIT_DELAY, TARGET_SIZE_MB
from .errors import NoImagesError, OutputDirectoryError, TransformFailedError
from .history import LocalHistorySet
from .models import CacheEntry, RunReport
from .scanner import FileCandidate, scan_directory
from .transform_client import TransformClient
from .utils import atomic_write_bytes, humanize_size
from .worker_pool import HashResult, HashWorkerPool

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, str], None]


@dataclass(frozen=True)
class TransformJob:
    """A file that passed dedup and will be sent for transformation."""

    candidate: FileCandidate
    output_path: Path
    digest: str


def temp_upload_path(src: Path) -> Path:
    """Location of the reduced copy of a large file: <stem>.tmp.jpg beside it."""
    return src.with_name(f"{src.stem}.tmp.jpg")


def folder_label(path: Path) -> str:
    """Immediate parent directory name, used to group cache entries."""
    return path.parent.name or "Root"


class Pipeline:
    """Run one batch over a directory.

    Example:
        >>> config = build_pipeline_config(load_profile(), "~/scans")
        >>> client = TransformClient(api_key="...")
        >>> report = Pipeline(config, client).run()
    """

    def __init__(
        self,
        config: PipelineConfig,
        client: TransformClient,
        cache_store: Optional[HashCacheStore] = None,
        hash_pool: Optional[HashWorkerPool] = None,
        sleep: Optional[Callable[[float], None]] = None,
        on_progress: Optional[ProgressCallback] = None,
        compressor: Callable[..., Tuple[int, int]] = reduce_image_size,
    ):
        """
        Args:
            config: Immutable run configuration
            client: Transformation service client
            cache_store: Hash cache; opened from config.cache_path if omitted
            hash_pool: Hash worker pool (default: 3 in flight)
            sleep: Rate-limit sleep (default time.sleep)
            on_progress: Called as (current, total, message) per transformed file
            compressor: Size reducer for large files
        """
        self.config = config
        self.client = client
        if cache_store is None and config.cache_path is not None:
            cache_store = self._open_cache(config.cache_path)
        self.cache_store = cache_store
        self.hash_pool = hash_pool or HashWorkerPool()
        self._sleep = sleep or time.sleep
        self._on_progress = on_progress
        self._compressor = compressor

    def run(self) -> RunReport:
        """Process the input directory once.

        Returns:
            RunReport with per-stage counts

        Raises:
            NoImagesError: Nothing eligible under the input root
            OutputDirectoryError: Output directory cannot be created
            HistoryLockedError: Another run owns this input root
        """
        cfg = self.config
        report = RunReport()

        candidates = scan_directory(cfg.input_dir, include=cfg.include, extra_ignores=cfg.extra_ignores)
        if not candidates:
            raise NoImagesError(str(cfg.input_dir))
        report.discovered = len(candidates)
        logger.info("Scanning %d files...", len(candidates))

        try:
            cfg.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise OutputDirectoryError(str(cfg.output_dir), str(e)) from e

        history = LocalHistorySet.for_root(cfg.input_dir)
        report.history_path = str(history.path)

        with history:
            pending = self._filter_existing(candidates, report)
            known = self._cache_snapshot()
            jobs = self._filter_known(self.hash_pool.run(pending), history, known, report)
            report.hash_failures = len(self.hash_pool.failures)

            if not jobs:
                if report.hash_failures:
                    logger.warning("No files to process; %d could not be hashed", report.hash_failures)
                else:
                    logger.info("All files have already been processed")
                return report

            logger.info("Files to process: %d", len(jobs))
            self._transform_all(jobs, history, report)

        logger.info(
            "Run finished: %d succeeded, %d failed, %d skipped",
            report.succeeded, len(report.failed), report.skipped,
        )
        return report

    # ---- Dedup --------------------------------------------------------------

    def _filter_existing(self, candidates: List[FileCandidate], report: RunReport) -> List[FileCandidate]:
        pending = []
        for candidate in candidates:
            if candidate.output_path(self.config.output_dir).exists():
                report.skipped_existing += 1
            else:
                pending.append(candidate)
        if report.skipped_existing:
            logger.info("%d files already exist in the output, skipped", report.skipped_existing)
        return pending

    @staticmethod
    def _open_cache(path: Path) -> Optional[HashCacheStore]:
        try:
            return HashCacheStore(path)
        except (sqlite3.Error, OSError) as e:
            logger.warning("Hash cache %s unavailable, continuing without it: %s", path, e)
            return None

    def _cache_snapshot(self) -> Set[str]:
        if self.cache_store is None:
            return set()
        try:
            known = self.cache_store.hashes()
        except sqlite3.Error as e:
            logger.warning("Hash cache unavailable, continuing without it: %s", e)
            return set()
        logger.debug("Hash cache snapshot: %d digests", len(known))
        return known

    def _filter_known(
        self,
        results: List[HashResult],
        history: LocalHistorySet,
        known: Set[str],
        report: RunReport,
    ) -> List[TransformJob]:
        jobs = []
        for result in results:
            if result.digest in history or result.digest in known:
                report.skipped_history += 1
                continue
            jobs.append(TransformJob(
                candidate=result.candidate,
                output_path=result.candidate.output_path(self.config.output_dir),
                digest=result.digest,
            ))
        if report.skipped_history:
            logger.info("%d files skipped based on history", report.skipped_history)
        # Hashing completes out of order; transform in a stable order
        jobs.sort(key=lambda job: job.candidate.relative_path)
        return jobs

    # ---- Transformation -----------------------------------------------------

    def _transform_all(self, jobs: List[TransformJob], history: LocalHistorySet, report: RunReport) -> None:
        writer = CacheWriter(self.cache_store) if self.cache_store is not None else None
        total = len(jobs)
        try:
            for index, job in enumerate(jobs, start=1):
                self._progress(index, total, f"Processing {index}/{total} - {job.candidate.path.name}")
                if self._process_one(job, history, writer, report) and history.pending >= HISTORY_FLUSH_EVERY:
                    history.flush()
                if index < total:
                    logger.debug("Waiting %.0f seconds...", RATE_LIMIT_DELAY)
                    self._sleep(RATE_LIMIT_DELAY)
        finally:
            if history.pending:
                history.flush()
            if writer is not None:
                writer.close(wait=self.config.wait_for_cache)
                report.cache_writes_failed = writer.failed
                report.cache_writes_dropped = writer.dropped

    def _process_one(
        self,
        job: TransformJob,
        history: LocalHistorySet,
        writer: Optional[CacheWriter],
        report: RunReport,
    ) -> bool:
        src = job.candidate.path
        upload, temp = self._prepare_upload(src)
        report.attempted += 1
        try:
            try:
                data = self.client.transform(upload, self.config.options)
            except (TransformFailedError, OSError) as e:
                logger.error("Failed to transform %s: %s", src.name, e)
                report.failed.append(job.candidate.relative_path)
                return False

            try:
                atomic_write_bytes(job.output_path, data)
            except OSError as e:
                logger.error("Could not save %s: %s", job.output_path, e)
                report.failed.append(job.candidate.relative_path)
                return False
        finally:
            if temp is not None:
                self._remove_temp(temp)

        logger.info("Saved %s", job.output_path)
        history.add(job.digest)
        report.succeeded += 1
        report.credits_used += self.config.cost_per_file
        if writer is not None:
            writer.submit(CacheEntry(hash=job.digest, name=src.name, folder=folder_label(src)))
        return True

    def _prepare_upload(self, src: Path) -> Tuple[Path, Optional[Path]]:
        """Pick the file to upload; large files are reduced to a temp JPEG first.

        Returns:
            (path to upload, temp file to remove afterwards or None)
        """
        try:
            size = src.stat().st_size
        except OSError:
            # The upload will surface the real error
            return src, None
        if size <= LARGE_FILE_BYTES:
            return src, None

        temp = temp_upload_path(src)
        logger.info("Compressing large file: %s (%s)", src.name, humanize_size(size))
        try:
            written, passes = self._compressor(src, temp, TARGET_SIZE_MB)
        except Exception as e:
            logger.warning("Compression failed for %s, sending original: %s", src.name, e)
            self._remove_temp(temp)
            return src, None
        logger.debug("Reduced %s to %d bytes in %d passes", src.name, written, passes)
        return temp, temp

    @staticmethod
    def _remove_temp(path: Path) -> None:
        try:
            path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Could not remove temporary file %s: %s", path, e)

    def _progress(self, current: int, total: int, message: str) -> None:
        logger.info(message)
        if self._on_progress:
            self._on_progress(current, total, message)
