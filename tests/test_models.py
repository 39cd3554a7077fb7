"""Tests for oss_uploader models."""
import asyncio
from pathlib import Path

import pytest

from oss_uploader.models import (
    Credential,
    FileEntry,
    UploadConfig,
    UploadTask,
    normalize_files,
)


class TestCredential:
    def test_empty_is_blank(self):
        credential = Credential.empty()
        assert credential.endpoint_url == ""
        assert credential.expires_at == 0

    def test_from_short_oss_names_converts_seconds(self):
        credential = Credential.from_response({
            "dir": "user-dir/",
            "host": "https://bucket.oss-cn-hangzhou.aliyuncs.com",
            "expire": "1700000000",
            "policy": "eyJleHBpcmF0aW9uIjoi",
            "signature": "VsxOcOudx+2dq3l+WMvxQK8d0Q0=",
            "accessKeyId": "LTAI5tExample",
        })

        assert credential.storage_directory == "user-dir/"
        assert credential.endpoint_url == "https://bucket.oss-cn-hangzhou.aliyuncs.com"
        assert credential.expires_at == 1_700_000_000_000
        assert credential.access_key_id == "LTAI5tExample"

    def test_from_camel_case_keeps_milliseconds(self):
        credential = Credential.from_response({
            "storageDirectory": "d",
            "endpointURL": "https://e",
            "expiresAt": 1_700_000_000_123,
            "policy": "p",
            "signature": "s",
            "accessKeyId": "a",
        })
        assert credential.expires_at == 1_700_000_000_123

    def test_url_is_accepted_for_endpoint(self):
        credential = Credential.from_response({
            "url": "https://bucket.example.com",
            "expire": 1_700_000_000_000,
            "policy": "p",
            "signature": "s",
            "accessKeyId": "a",
        })
        assert credential.endpoint_url == "https://bucket.example.com"
        assert credential.storage_directory == ""

    def test_missing_fields_raise(self):
        with pytest.raises(ValueError, match="policy, signature"):
            Credential.from_response({"url": "https://e", "expire": 1, "accessKeyId": "a"})

    def test_invalid_expiry_raises(self):
        with pytest.raises(ValueError, match="Invalid credential expiry"):
            Credential.from_response({
                "url": "https://e", "expire": "soon", "policy": "p", "signature": "s", "accessKeyId": "a",
            })

    def test_is_immutable(self):
        credential = Credential.empty()
        with pytest.raises(Exception):
            credential.policy = "changed"


class TestNormalizeFiles:
    def test_single_string(self):
        entries = normalize_files("https://cdn/a.jpg")
        assert entries == [FileEntry(identifier="0", url="https://cdn/a.jpg")]

    def test_sequence_uses_index_identifiers(self):
        entries = normalize_files(["https://cdn/a.jpg", "https://cdn/b.jpg"])
        assert [e.identifier for e in entries] == ["0", "1"]
        assert [e.url for e in entries] == ["https://cdn/a.jpg", "https://cdn/b.jpg"]

    def test_identifiers_keep_original_positions(self):
        entries = normalize_files(["https://cdn/0.jpg", "", "https://cdn/2.jpg"])
        assert [e.identifier for e in entries] == ["0", "2"]
        assert [e.url for e in entries] == ["https://cdn/0.jpg", "https://cdn/2.jpg"]

    def test_empty_single_value_means_no_file(self):
        assert normalize_files("") == []
        assert normalize_files(None) == []


class TestUploadConfig:
    def test_is_remote(self):
        config = UploadConfig()
        assert config.is_remote("https://cdn/a.jpg") is True
        assert config.is_remote("http://cdn/a.jpg") is True
        assert config.is_remote("blob:file:///tmp/a.jpg") is False
        assert config.is_remote("") is False
        assert config.is_remote(None) is False

    def test_defaults(self):
        config = UploadConfig()
        assert config.safety_margin_seconds == 10
        assert config.success_action_status == 200


class TestUploadTask:
    @pytest.mark.asyncio
    async def test_release_once(self):
        task = UploadTask(file=Path("a.jpg"), started=asyncio.get_running_loop().create_future())
        assert task.is_settled is False
        assert task.release() is True
        assert task.release() is False
        await task.started

    @pytest.mark.asyncio
    async def test_discard_fails_waiter(self):
        task = UploadTask(file=Path("a.jpg"), started=asyncio.get_running_loop().create_future())
        task.discard(RuntimeError("gone"))
        with pytest.raises(RuntimeError, match="gone"):
            await task.started
        assert task.release() is False

    def test_entry_name(self):
        assert FileEntry(identifier="0", url="https://cdn/x/y.jpg").name == "y.jpg"
        assert FileEntry(identifier="1", url="blob:", path=Path("/tmp/z.png")).name == "z.png"
