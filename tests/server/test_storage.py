"""Tests for the local attachment blob store, download headers and the notifier."""

from __future__ import annotations

from pathlib import Path

import pytest

from workhive.server.notify import LogNotifier, Notification, SmtpNotifier, build_notifier, deliver
from workhive.server.routers.attachments import content_disposition
from workhive.server.settings import HiveSettings
from workhive.server.storage import BlobStore, LocalBlobStore, storage_key


@pytest.mark.parametrize(
    ("filename", "header"),
    [
        ("notes.txt", 'attachment; filename="notes.txt"'),
        ("报告.pdf", "attachment; filename*=utf-8''%E6%8A%A5%E5%91%8A.pdf"),
        ('say "hi".txt', "attachment; filename*=utf-8''say%20%22hi%22.txt"),
    ],
)
def test_content_disposition_encodes_unsafe_names(filename: str, header: str) -> None:
    assert content_disposition(filename) == header


async def test_write_then_read(tmp_path: Path) -> None:
    store = LocalBlobStore(tmp_path)
    key = storage_key("ws1", "att1")

    assert not await store.exists(key)
    await store.write(key, b"hello")

    assert await store.exists(key)
    assert await store.read(key) == b"hello"
    assert (tmp_path / "attachments" / "ws1" / "att1").read_bytes() == b"hello"


async def test_overwrite_leaves_no_temp_files(tmp_path: Path) -> None:
    store = LocalBlobStore(tmp_path)
    await store.write("ws1/att1", b"first")
    await store.write("ws1/att1", b"second")

    assert await store.read("ws1/att1") == b"second"
    assert [p.name for p in (tmp_path / "attachments" / "ws1").iterdir()] == ["att1"]


async def test_missing_blob_raises(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        await LocalBlobStore(tmp_path).read("ws1/missing")


async def test_key_cannot_escape_root(tmp_path: Path) -> None:
    with pytest.raises(ValueError, match="Invalid storage key"):
        await LocalBlobStore(tmp_path).write("../outside", b"x")


def test_protocol_conformance(tmp_path: Path) -> None:
    assert isinstance(LocalBlobStore(tmp_path), BlobStore)


# ---------------------------------------------------------------------------
# Notifier
# ---------------------------------------------------------------------------


def test_build_notifier_without_smtp_logs_only() -> None:
    assert isinstance(build_notifier(HiveSettings(smtp_host=None)), LogNotifier)


def test_build_notifier_with_smtp() -> None:
    notifier = build_notifier(HiveSettings(smtp_host="mail.example.com", smtp_port=2525))
    assert isinstance(notifier, SmtpNotifier)
    assert (notifier.host, notifier.port) == ("mail.example.com", 2525)


async def test_deliver_swallows_send_failures() -> None:
    class FailingNotifier:
        async def send(self, notification: Notification) -> None:
            raise ConnectionRefusedError("smtp down")

    # Must not raise.
    await deliver(FailingNotifier(), Notification(recipient="a@example.com", subject="s", body="b"))
