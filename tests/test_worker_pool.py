"""Tests for bounded-parallel hashing."""

import threading
import time

import pytest

from transbatch.hashing import compute_file_digest
from transbatch.scanner import scan_directory
from transbatch.worker_pool import HashWorkerPool


def _candidates(input_dir, write_file, count):
    for i in range(count):
        write_file(f"{i:03d}.png", f"image-{i}".encode())
    return scan_directory(input_dir)


class TestHashWorkerPool:

    def test_hashes_every_candidate(self, input_dir, write_file):
        candidates = _candidates(input_dir, write_file, 7)

        results = HashWorkerPool().run(candidates)

        assert len(results) == 7
        by_path = {r.candidate.relative_path: r.digest for r in results}
        for c in candidates:
            assert by_path[c.relative_path] == compute_file_digest(c.path)

    def test_concurrency_never_exceeds_limit(self, input_dir, write_file):
        """At most N hash tasks run at once, and the limit is actually reached."""
        candidates = _candidates(input_dir, write_file, 12)
        lock = threading.Lock()
        running = {"now": 0, "max": 0}

        def slow_hash(path):
            with lock:
                running["now"] += 1
                running["max"] = max(running["max"], running["now"])
            time.sleep(0.02)
            with lock:
                running["now"] -= 1
            return compute_file_digest(path)

        pool = HashWorkerPool(max_in_flight=3, hash_fn=slow_hash)
        results = pool.run(candidates)

        assert len(results) == 12
        assert running["max"] <= 3
        assert pool.peak_in_flight <= 3
        assert pool.peak_in_flight >= 2

    def test_limit_of_one_is_sequential(self, input_dir, write_file):
        candidates = _candidates(input_dir, write_file, 5)
        pool = HashWorkerPool(max_in_flight=1)

        pool.run(candidates)

        assert pool.peak_in_flight == 1

    def test_failed_tasks_are_dropped(self, input_dir, write_file):
        candidates = _candidates(input_dir, write_file, 5)

        def flaky(path):
            if path.name == "002.png":
                raise OSError("read error")
            return compute_file_digest(path)

        pool = HashWorkerPool(hash_fn=flaky)
        results = pool.run(candidates)

        assert sorted(r.candidate.relative_path for r in results) == [
            "000.png", "001.png", "003.png", "004.png"
        ]
        assert [c.relative_path for c in pool.failures] == ["002.png"]

    def test_on_result_callback(self, input_dir, write_file):
        candidates = _candidates(input_dir, write_file, 4)
        seen = []

        results = HashWorkerPool().run(candidates, on_result=seen.append)

        assert seen == results

    def test_state_resets_between_runs(self, input_dir, write_file):
        candidates = _candidates(input_dir, write_file, 3)

        def always_fail(path):
            raise OSError("nope")

        pool = HashWorkerPool(hash_fn=always_fail)
        pool.run(candidates)
        assert len(pool.failures) == 3

        pool._hash_fn = compute_file_digest
        assert len(pool.run(candidates)) == 3
        assert pool.failures == []

    def test_empty_input(self):
        assert HashWorkerPool().run([]) == []

    def test_invalid_limit(self):
        with pytest.raises(ValueError):
            HashWorkerPool(max_in_flight=0)
