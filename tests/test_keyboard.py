"""
==============================================================================
Keyboard Capture Tests
==============================================================================

Tests for the Enter-terminated keystroke sink and paste handling.

==============================================================================
"""

import asyncio

from stock_intake.scanner.keyboard import KeyboardCapture
from stock_intake.schemas.scan import ScanSource


def open_capture():
    lines = []

    async def on_line(line):
        lines.append(line)

    capture = KeyboardCapture(on_line)
    capture.open()
    return capture, lines


async def type_text(capture, text):
    for ch in text:
        await capture.key(ch)


class TestKeystrokes:
    """Tests for key events."""

    def test_burst_then_enter(self):
        async def scenario():
            capture, lines = open_capture()
            await type_text(capture, "Paracetamol|5|analgesic")
            forwarded = await capture.key("Enter")
            return capture, lines, forwarded

        capture, lines, forwarded = asyncio.run(scenario())
        assert [line.text for line in lines] == ["Paracetamol|5|analgesic"]
        assert forwarded.source is ScanSource.KEYBOARD
        assert capture.text == ""

    def test_text_is_trimmed(self):
        async def scenario():
            capture, lines = open_capture()
            await type_text(capture, "  Gauze 2  ")
            await capture.key("\r")
            return lines

        assert asyncio.run(scenario())[0].text == "Gauze 2"

    def test_backspace(self):
        async def scenario():
            capture, lines = open_capture()
            await type_text(capture, "Gauzx")
            await capture.key("Backspace")
            await capture.key("e")
            return capture

        assert asyncio.run(scenario()).text == "Gauze"

    def test_non_printable_keys_are_ignored(self):
        async def scenario():
            capture, lines = open_capture()
            for key in ("Shift", "G", "Tab", "\x1b", "o"):
                await capture.key(key)
            return capture

        assert asyncio.run(scenario()).text == "Go"

    def test_consecutive_scans(self):
        async def scenario():
            capture, lines = open_capture()
            await type_text(capture, "A|1")
            await capture.key("Enter")
            await type_text(capture, "B|2")
            await capture.key("NumpadEnter")
            return lines

        assert [line.text for line in asyncio.run(scenario())] == ["A|1", "B|2"]

    def test_closed_capture_ignores_keys(self):
        async def scenario():
            capture, lines = open_capture()
            capture.close()
            await type_text(capture, "Gauze")
            result = await capture.key("Enter")
            return capture, lines, result

        capture, lines, result = asyncio.run(scenario())
        assert result is None
        assert lines == []
        assert capture.text == ""

    def test_close_discards_partial_input(self):
        async def scenario():
            capture, lines = open_capture()
            await type_text(capture, "Half")
            capture.close()
            capture.open()
            return capture

        assert asyncio.run(scenario()).text == ""


class TestPaste:
    """Tests for pasted input."""

    def test_paste_is_forwarded_directly(self):
        async def scenario():
            capture, lines = open_capture()
            await type_text(capture, "typed")
            await capture.paste("  Ibuprofen,3,nsaid \n")
            return capture, lines

        capture, lines = asyncio.run(scenario())
        assert lines[0].text == "Ibuprofen,3,nsaid"
        assert lines[0].source is ScanSource.PASTE
        assert capture.text == "typed"

    def test_paste_when_closed(self):
        async def scenario():
            capture, lines = open_capture()
            capture.close()
            return await capture.paste("Gauze"), lines

        result, lines = asyncio.run(scenario())
        assert result is None
        assert lines == []

    def test_submit_clears_sink(self):
        async def scenario():
            capture, lines = open_capture()
            await type_text(capture, "stale")
            await capture.submit("Mask|10", ScanSource.KEYBOARD)
            return capture, lines

        capture, lines = asyncio.run(scenario())
        assert lines[0].text == "Mask|10"
        assert capture.text == ""
