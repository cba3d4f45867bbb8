"""
Unit tests for clipboard_state.py and the in-memory clipboard
"""
import threading

import pytest

from nearclip.common.clipboard_state import ClipboardKind, ClipboardSnapshot, ClipboardState
from nearclip.platform.memory import LogNotifier, MemoryClipboard


class TestClipboardState:
    """Tests for ClipboardState"""

    def test_starts_empty(self, clipboard_state):
        assert clipboard_state.snapshot() == ClipboardSnapshot(ClipboardKind.EMPTY, b"", ())

    def test_snapshot_is_immutable(self, clipboard_state):
        snap = clipboard_state.snapshot()
        with pytest.raises(AttributeError):
            snap.kind = ClipboardKind.TEXT

    def test_snapshot_unaffected_by_later_changes(self, clipboard_state):
        clipboard_state.set_content(ClipboardKind.TEXT, b"one")
        snap = clipboard_state.snapshot()
        clipboard_state.set_content(ClipboardKind.TEXT, b"two")
        assert snap.data == b"one"

    def test_select_files_dedupes(self, clipboard_state):
        clipboard_state.select_files(["/a", "/b", "/a"])
        assert clipboard_state.snapshot().selected_files == ("/a", "/b")

    def test_clear_unconditionally(self, clipboard_state):
        clipboard_state.select_files(["/a"])
        assert clipboard_state.clear_selected_files() is True
        assert clipboard_state.snapshot().selected_files == ()

    def test_clear_only_if_unchanged(self, clipboard_state):
        clipboard_state.select_files(["/a"])
        observed = clipboard_state.snapshot().selected_files
        clipboard_state.select_files(["/b"])

        assert clipboard_state.clear_selected_files(observed) is False
        assert clipboard_state.snapshot().selected_files == ("/b",)

    def test_publish_replaces_previous(self, clipboard_state):
        clipboard_state.publish(["/a", "/b"])
        assert clipboard_state.is_published("/a")
        clipboard_state.publish(["/c"])
        assert not clipboard_state.is_published("/a")
        assert clipboard_state.is_published("/c")

    def test_concurrent_updates(self, clipboard_state):
        def worker(n):
            for i in range(200):
                clipboard_state.set_content(ClipboardKind.TEXT, f"{n}-{i}".encode())
                clipboard_state.snapshot()

        threads = [threading.Thread(target=worker, args=(n,)) for n in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert clipboard_state.snapshot().kind == ClipboardKind.TEXT


class TestMemoryClipboard:
    """Tests for MemoryClipboard"""

    def test_write_mirrors_state(self, clipboard_state):
        clip = MemoryClipboard(clipboard_state)
        clip.write(ClipboardKind.TEXT, b"hi")
        assert clip.read() == (ClipboardKind.TEXT, b"hi")
        assert clipboard_state.snapshot().data == b"hi"

    def test_write_rejects_files_kind(self, clipboard_state):
        with pytest.raises(ValueError):
            MemoryClipboard(clipboard_state).write(ClipboardKind.FILES, b"")

    def test_files_then_clear(self, clipboard_state):
        clip = MemoryClipboard(clipboard_state)
        clip.set_files(["/a", "/b"])
        assert clip.read_files() == ["/a", "/b"]
        assert clipboard_state.snapshot().kind == ClipboardKind.FILES

        clip.clear()
        assert clip.read_files() == []
        assert clipboard_state.snapshot().kind == ClipboardKind.EMPTY

    def test_log_notifier(self, caplog):
        with caplog.at_level("INFO"):
            LogNotifier().show("hello", "phone")
        assert "[phone] hello" in caplog.text
