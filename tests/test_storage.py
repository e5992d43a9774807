"""Tests for artifact keys and the MinIO-backed store."""

from unittest.mock import Mock

import pytest

from config.settings import StorageConfig
from services.shared.storage import (
    ArtifactStore,
    ArtifactStoreError,
    chunk_key,
    html_key,
    parsed_doc_key,
    sha256_hash,
)


def test_keys_are_content_addressed():
    url = "https://a.com/post"
    digest = sha256_hash(url)

    assert html_key(url) == f"html/{digest}.html"
    assert parsed_doc_key(url) == f"docs/{digest}.md"
    assert chunk_key(url, "v2") == f"chunks/{digest}-v2.json.gz"
    assert chunk_key(url, "v1") != chunk_key(url, "v2")


@pytest.mark.asyncio
async def test_upload_encodes_text():
    client = Mock()
    client.put_object.return_value = Mock(etag="etag-1")
    store = ArtifactStore(StorageConfig(bucket="test"), client=client)

    etag = await store.upload("docs/x.md", "héllo", content_type="text/markdown")

    assert etag == "etag-1"
    bucket, key, stream, length = client.put_object.call_args.args
    assert (bucket, key) == ("test", "docs/x.md")
    assert stream.read() == "héllo".encode('utf-8')
    assert length == len("héllo".encode('utf-8'))
    assert client.put_object.call_args.kwargs["content_type"] == "text/markdown"


@pytest.mark.asyncio
async def test_download_releases_connection():
    response = Mock()
    response.read.return_value = b"payload"
    client = Mock()
    client.get_object.return_value = response
    store = ArtifactStore(StorageConfig(), client=client)

    assert await store.download("docs/x.md") == b"payload"
    response.close.assert_called_once()
    response.release_conn.assert_called_once()


@pytest.mark.asyncio
async def test_storage_errors_are_wrapped():
    client = Mock()
    client.put_object.side_effect = OSError("connection reset")
    client.get_object.side_effect = OSError("timed out")
    store = ArtifactStore(StorageConfig(), client=client)

    with pytest.raises(ArtifactStoreError):
        await store.upload("docs/x.md", b"data")
    with pytest.raises(ArtifactStoreError):
        await store.download("docs/x.md")


def test_ensure_bucket_creates_missing_bucket():
    client = Mock()
    client.bucket_exists.return_value = False
    ArtifactStore(StorageConfig(bucket="weblinks"), client=client).ensure_bucket()
    client.make_bucket.assert_called_once_with("weblinks")
