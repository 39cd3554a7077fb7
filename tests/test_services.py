"""Tests for credential, key and hashing services."""
import hashlib
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from fakes import ENDPOINT, NOW, issuer_payload, make_credential, stem_hasher
from oss_uploader.errors import CredentialRefreshFailure, HashFailure
from oss_uploader.services.credentials import CredentialRefresher, CredentialStore
from oss_uploader.services.hashing import blake3_file, get_hasher, md5_file
from oss_uploader.services.keygen import ContentKeyGenerator, file_extension
from oss_uploader.utils.paths import join_url


def fixed_clock(value=NOW):
    return lambda: value


class TestCredentialStore:
    def test_empty_store_is_expired(self):
        assert CredentialStore(clock=fixed_clock()).is_expired() is True

    def test_expiry_inside_margin(self):
        store = CredentialStore(make_credential(expires_in=5), clock=fixed_clock())
        assert store.is_expired(10) is True

    def test_expiry_outside_margin(self):
        store = CredentialStore(make_credential(expires_in=3600), clock=fixed_clock())
        assert store.is_expired(10) is False

    def test_exact_margin_counts_as_expired(self):
        store = CredentialStore(make_credential(expires_in=10), clock=fixed_clock())
        assert store.is_expired(10) is True
        assert store.is_expired(9) is False

    def test_access_bundle(self):
        store = CredentialStore(make_credential(), clock=fixed_clock())
        store.assign_key("uploads/abc.jpg")

        assert store.action == ENDPOINT
        assert store.access == {
            "key": "uploads/abc.jpg",
            "policy": "cG9saWN5",
            "signature": "c2lnbmF0dXJl",
            "OSSAccessKeyId": "LTAI5tExample",
            "success_action_status": 200,
        }

    def test_remote_path(self):
        store = CredentialStore(make_credential(), clock=fixed_clock())
        store.assign_key("uploads/abc.jpg")
        assert store.remote_path() == f"{ENDPOINT}/uploads/abc.jpg"

    def test_replace(self):
        store = CredentialStore(clock=fixed_clock())
        store.replace(make_credential(directory="other"))
        assert store.credential.storage_directory == "other"
        assert store.is_expired() is False


class TestCredentialRefresher:
    @pytest.mark.asyncio
    async def test_valid_credential_skips_issuer(self):
        store = CredentialStore(make_credential(), clock=fixed_clock())
        issuer = AsyncMock()
        refresher = CredentialRefresher(store, issuer)

        await refresher.ensure_valid()

        issuer.issue.assert_not_awaited()
        assert refresher.refresh_count == 0

    @pytest.mark.asyncio
    async def test_refreshes_when_about_to_expire(self):
        store = CredentialStore(make_credential(expires_in=5), clock=fixed_clock())
        issuer = AsyncMock()
        issuer.issue.return_value = {**issuer_payload(), "dir": "fresh", "expire": int(NOW) + 3600}
        refresher = CredentialRefresher(store, issuer, safety_margin_seconds=10)

        await refresher.ensure_valid()

        issuer.issue.assert_awaited_once()
        assert store.credential.storage_directory == "fresh"
        assert store.credential.expires_at == (int(NOW) + 3600) * 1000
        assert refresher.refresh_count == 1

    @pytest.mark.asyncio
    async def test_issuer_failure_keeps_old_credential(self):
        old = make_credential(expires_in=5)
        store = CredentialStore(old, clock=fixed_clock())
        issuer = AsyncMock()
        issuer.issue.side_effect = ConnectionError("connection refused")
        refresher = CredentialRefresher(store, issuer)

        with pytest.raises(CredentialRefreshFailure, match="connection refused"):
            await refresher.ensure_valid()

        assert store.credential is old

    @pytest.mark.asyncio
    async def test_malformed_response(self):
        store = CredentialStore(clock=fixed_clock())
        issuer = AsyncMock()
        issuer.issue.return_value = {"url": ENDPOINT}
        refresher = CredentialRefresher(store, issuer)

        with pytest.raises(CredentialRefreshFailure, match="Invalid credential response"):
            await refresher.ensure_valid()
        assert refresher.refresh_count == 0


class TestContentKeyGenerator:
    @pytest.mark.asyncio
    async def test_key_layout(self):
        store = CredentialStore(make_credential(directory="uploads/"), clock=fixed_clock())
        keygen = ContentKeyGenerator(store, stem_hasher)

        assert await keygen.derive_key(Path("/tmp/photo.jpg")) == "uploads/photo-hash.jpg"

    @pytest.mark.asyncio
    async def test_same_content_same_key(self, tmp_path):
        first = tmp_path / "one.png"
        second = tmp_path / "two.png"
        first.write_bytes(b"same bytes")
        second.write_bytes(b"same bytes")
        keygen = ContentKeyGenerator(CredentialStore(make_credential(), clock=fixed_clock()), md5_file)

        key = await keygen.derive_key(first)

        assert key == await keygen.derive_key(second)
        assert key == f"uploads/{hashlib.md5(b'same bytes').hexdigest()}.png"

    @pytest.mark.asyncio
    async def test_follows_current_directory(self):
        store = CredentialStore(make_credential(directory="old"), clock=fixed_clock())
        keygen = ContentKeyGenerator(store, stem_hasher)
        store.replace(make_credential(directory="new"))

        assert await keygen.derive_key(Path("a.gif")) == "new/a-hash.gif"

    @pytest.mark.asyncio
    async def test_unreadable_file(self, tmp_path):
        keygen = ContentKeyGenerator(CredentialStore(make_credential(), clock=fixed_clock()), md5_file)
        missing = tmp_path / "missing.jpg"

        with pytest.raises(HashFailure) as exc_info:
            await keygen.derive_key(missing)

        assert exc_info.value.file == missing
        assert "missing.jpg" in str(exc_info.value)

    def test_file_extension(self):
        assert file_extension(Path("archive.tar.gz")) == "gz"
        assert file_extension(Path("photo.JPG")) == "JPG"
        assert file_extension(Path("README")) == "README"


class TestHashing:
    @pytest.mark.asyncio
    async def test_blake3_file(self, tmp_path):
        path = tmp_path / "hello.txt"
        path.write_bytes(b"hello world")

        assert await blake3_file(path) == "d74981efa70a0c880b8d8c1985d075dbcbf679b99a5f9914e5aaf96b831a9e24"

    @pytest.mark.asyncio
    async def test_md5_file(self, tmp_path):
        path = tmp_path / "hello.txt"
        path.write_bytes(b"hello world")

        assert await md5_file(path) == "5eb63bbbe01eeed093cb22bb8f5acdc3"

    @pytest.mark.asyncio
    async def test_large_file_spans_chunks(self, tmp_path):
        data = b"x" * (65536 * 3 + 17)
        path = tmp_path / "big.bin"
        path.write_bytes(data)

        assert await md5_file(path) == hashlib.md5(data).hexdigest()

    def test_get_hasher(self):
        assert get_hasher("MD5") is md5_file
        with pytest.raises(ValueError, match="Unsupported hash algorithm"):
            get_hasher("sha1")


class TestJoinUrl:
    def test_single_slashes(self):
        assert join_url("https://bucket.example.com/", "/uploads/", "a.jpg") == "https://bucket.example.com/uploads/a.jpg"

    def test_empty_parts_skipped(self):
        assert join_url("", "abc.jpg") == "abc.jpg"
        assert join_url("https://e", "") == "https://e"
        assert join_url() == ""
