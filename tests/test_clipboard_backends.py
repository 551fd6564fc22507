"""Clipboard backend tests using a fake xclip."""

from __future__ import annotations

import subprocess
from typing import Any

import pytest

from clipstash.capture import Representation
from clipstash.clipboard import (
    ClipboardError,
    CommandClipboard,
    InMemoryClipboard,
    get_clipboard_backend,
    preferred_representation,
)


class FakeXclip:
    """Stand-in for ``subprocess.run`` that emulates ``xclip``."""

    def __init__(self) -> None:
        self.targets = ["TARGETS", "TIMESTAMP", "UTF8_STRING", "text/html"]
        self.payloads = {"UTF8_STRING": b"hello", "text/html": b"<b>hello</b>"}
        self.written: list[tuple[str, bytes]] = []
        self.fail_writes = False

    def __call__(self, command: list[str], **kwargs: Any) -> subprocess.CompletedProcess:
        assert command[0] == "xclip"
        if command[-1] == "-o":
            target = command[4]
            if target == "TARGETS":
                return subprocess.CompletedProcess(command, 0, stdout="\n".join(self.targets).encode())
            if target not in self.payloads:
                raise subprocess.CalledProcessError(1, command)
            return subprocess.CompletedProcess(command, 0, stdout=self.payloads[target])
        if self.fail_writes:
            raise subprocess.CalledProcessError(1, command)
        if command[-1] == "/dev/null":
            self.targets, self.payloads = [], {}
        else:
            self.written.append((command[4], kwargs["input"]))
            self.targets = ["TARGETS", command[4]]
            self.payloads = {command[4]: kwargs["input"]}
        return subprocess.CompletedProcess(command, 0)


@pytest.fixture
def xclip(monkeypatch: pytest.MonkeyPatch) -> FakeXclip:
    fake = FakeXclip()
    monkeypatch.setattr("clipstash.clipboard.command.subprocess.run", fake)
    return fake


def test_available_types_skip_meta_targets(xclip: FakeXclip) -> None:
    clipboard = CommandClipboard("x11")

    assert clipboard.available_types() == ["UTF8_STRING", "text/html"]
    assert clipboard.read("text/html") == b"<b>hello</b>"
    assert clipboard.read("image/png") is None


def test_change_counter_follows_content(xclip: FakeXclip) -> None:
    clipboard = CommandClipboard("x11")

    baseline = clipboard.current_change_counter()
    assert clipboard.current_change_counter() == baseline

    xclip.payloads["UTF8_STRING"] = b"changed"
    assert clipboard.current_change_counter() == baseline + 1
    assert clipboard.current_change_counter() == baseline + 1


def test_own_writes_bump_counter_once(xclip: FakeXclip) -> None:
    clipboard = CommandClipboard("x11")
    baseline = clipboard.current_change_counter()

    clipboard.write(
        [Representation(type="text/html", data=b"<i>x</i>"), Representation(type="UTF8_STRING", data=b"x")]
    )

    assert xclip.written == [("UTF8_STRING", b"x")]
    assert clipboard.current_change_counter() == baseline + 1
    assert clipboard.current_change_counter() == baseline + 1


def test_write_failure_raises(xclip: FakeXclip) -> None:
    clipboard = CommandClipboard("x11")
    xclip.fail_writes = True

    with pytest.raises(ClipboardError):
        clipboard.write([Representation(type="UTF8_STRING", data=b"x")])


def test_clear_empties_clipboard(xclip: FakeXclip) -> None:
    clipboard = CommandClipboard("x11")

    clipboard.clear()

    assert clipboard.available_types() == []


def test_preferred_representation_order() -> None:
    text = Representation(type="text/plain", data=b"a")
    image = Representation(type="image/png", data=b"b")
    files = Representation(type="text/uri-list", data=b"file:///tmp/a")
    other = Representation(type="application/x-custom", data=b"c")

    assert preferred_representation([text, image, files]) is files
    assert preferred_representation([text, image]) is image
    assert preferred_representation([other, text]) is text
    assert preferred_representation([other]) is other


def test_backend_factory(monkeypatch: pytest.MonkeyPatch) -> None:
    assert isinstance(get_clipboard_backend("memory"), InMemoryClipboard)
    assert get_clipboard_backend("x11").name == "x11"
    with pytest.raises(ClipboardError):
        get_clipboard_backend("carrier-pigeon")

    monkeypatch.delenv("WAYLAND_DISPLAY", raising=False)
    monkeypatch.setattr("clipstash.clipboard.command.shutil.which", lambda _name: None)
    with pytest.raises(ClipboardError):
        get_clipboard_backend("auto")


def test_memory_clipboard_counter() -> None:
    clipboard = InMemoryClipboard()

    clipboard.copy_text("a")
    clipboard.write([Representation(type="text/plain", data=b"b")])
    clipboard.clear()

    assert clipboard.current_change_counter() == 3
    assert clipboard.write_count == 1
    assert clipboard.available_types() == []
