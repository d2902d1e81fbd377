"""Tests for splitting the event stream into records."""

import pytest

from securityspy.events.framer import iter_records


async def _chunks(*chunks):
    for chunk in chunks:
        yield chunk


async def _collect(chunks):
    return [record async for record in iter_records(chunks)]


class TestIterRecords:
    """Test record framing on carriage returns."""

    @pytest.mark.asyncio
    async def test_splits_on_carriage_return(self):
        records = await _collect(_chunks(b"one 1 CAM0 MOTION\rtwo 2 CAM1 ONLINE\r"))
        assert records == ["one 1 CAM0 MOTION", "two 2 CAM1 ONLINE"]

    @pytest.mark.asyncio
    async def test_newline_is_not_a_terminator(self):
        records = await _collect(_chunks(b"a\nb\r"))
        assert records == ["a\nb"]

    @pytest.mark.asyncio
    async def test_byte_at_a_time(self):
        data = b"20190113141131 1 CAM0 MOTION\r20190113141132 2 CAM1 OFFLINE\r"
        records = await _collect(_chunks(*[data[i:i + 1] for i in range(len(data))]))
        assert records == [
            "20190113141131 1 CAM0 MOTION",
            "20190113141132 2 CAM1 OFFLINE",
        ]

    @pytest.mark.asyncio
    async def test_trailing_fragment_yielded_once(self):
        records = await _collect(_chunks(b"first\rsec", b"ond"))
        assert records == ["first", "second"]

    @pytest.mark.asyncio
    async def test_empty_records_and_crlf(self):
        records = await _collect(_chunks(b"\r\r", b"a\r\n", b"b\r\n"))
        assert records == ["a", "b"]

    @pytest.mark.asyncio
    async def test_multibyte_character_split_across_chunks(self):
        data = "CAM0 Cámara\r".encode("utf-8")
        split = data.index(b"\xc3") + 1
        records = await _collect(_chunks(data[:split], data[split:]))
        assert records == ["CAM0 Cámara"]

    @pytest.mark.asyncio
    async def test_empty_stream(self):
        assert await _collect(_chunks()) == []
        assert await _collect(_chunks(b"", b"")) == []
