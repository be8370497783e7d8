"""Tests for hashing module."""

import hashlib

from transbatch.hashing import CHUNK_SIZE, compute_file_digest, is_valid_digest


class TestFileHashing:
    """Test file-based hashing."""

    def test_digest_is_bare_sha256_hex(self, tmp_path):
        """Digest should be the plain hex SHA-256 of the content."""
        f = tmp_path / "page.png"
        f.write_bytes(b"\x89PNG fake")

        digest = compute_file_digest(f)

        assert digest == hashlib.sha256(b"\x89PNG fake").hexdigest()
        assert is_valid_digest(digest)

    def test_same_bytes_same_digest(self, tmp_path):
        """Name and location must not affect the digest."""
        a = tmp_path / "a.jpg"
        b = tmp_path / "nested" / "renamed.webp"
        b.parent.mkdir()
        a.write_bytes(b"identical")
        b.write_bytes(b"identical")

        assert compute_file_digest(a) == compute_file_digest(b)

    def test_detects_single_byte_change(self, tmp_path):
        f = tmp_path / "x.jpg"
        f.write_bytes(b"content-1")
        first = compute_file_digest(f)
        f.write_bytes(b"content-2")

        assert compute_file_digest(f) != first

    def test_multi_chunk_file(self, tmp_path):
        """Files larger than one read chunk hash the same as a one-shot digest."""
        data = bytes(range(256)) * (CHUNK_SIZE // 64)
        f = tmp_path / "big.png"
        f.write_bytes(data)

        assert compute_file_digest(f) == hashlib.sha256(data).hexdigest()

    def test_empty_file(self, tmp_path):
        f = tmp_path / "empty.jpg"
        f.write_bytes(b"")

        assert compute_file_digest(f) == hashlib.sha256(b"").hexdigest()


class TestDigestValidation:

    def test_rejects_prefixed_and_short_values(self):
        good = "a" * 64
        assert is_valid_digest(good)
        assert not is_valid_digest("sha256:" + good)
        assert not is_valid_digest("abc")
        assert not is_valid_digest("A" * 64)
        assert not is_valid_digest("")
