import pytest

from streaming.framer import LineFramer, frame_lines

PING_OUTPUT = (
    "PING 10.0.0.1 (10.0.0.1) 56(84) bytes of data.\n"
    "64 bytes from 10.0.0.1: icmp_seq=1 ttl=64 time=0.412 ms\r\n"
    "\n"
    "   \n"
    "64 bytes from 10.0.0.1: icmp_seq=2 ttl=64 time=1.03 ms\n"
    "Réponse de 10.0.0.1 : octets=32 temps<1ms TTL=64\n"
).encode("utf-8")

EXPECTED = [
    "PING 10.0.0.1 (10.0.0.1) 56(84) bytes of data.",
    "64 bytes from 10.0.0.1: icmp_seq=1 ttl=64 time=0.412 ms",
    "64 bytes from 10.0.0.1: icmp_seq=2 ttl=64 time=1.03 ms",
    "Réponse de 10.0.0.1 : octets=32 temps<1ms TTL=64",
]


def chunked(data: bytes, size: int):
    return [data[i:i + size] for i in range(0, len(data), size)]


@pytest.mark.parametrize("size", [1, 2, 3, 7, 16, 64, 4096])
def test_lines_are_independent_of_chunk_boundaries(size):
    assert list(frame_lines(chunked(PING_OUTPUT, size))) == EXPECTED


def test_split_multibyte_character_is_decoded_once_complete():
    framer = LineFramer()
    encoded = "café\n".encode("utf-8")
    assert framer.feed(encoded[:4]) == []
    assert framer.feed(encoded[4:]) == ["café"]


def test_partial_line_is_held_until_newline():
    framer = LineFramer()
    assert framer.feed(b"Reply from 8.8.8.8: by") == []
    assert framer.feed(b"tes=32 time=42ms TTL=117\nPinging") == ["Reply from 8.8.8.8: bytes=32 time=42ms TTL=117"]
    assert framer.feed(b" again\n") == ["Pinging again"]


def test_unterminated_tail_is_discarded_on_close():
    framer = LineFramer()
    assert framer.feed(b"hop 1\nhop 2 partial") == ["hop 1"]
    assert framer.close() == "hop 2 partial"
    # Restartable: nothing of the previous stream survives close().
    assert framer.feed(b"fresh\n") == ["fresh"]


def test_frame_lines_is_lazy():
    consumed = []

    def chunks():
        for chunk in (b"one\n", b"two\n", b"three\n"):
            consumed.append(chunk)
            yield chunk

    lines = frame_lines(chunks())
    assert next(lines) == "one"
    assert consumed == [b"one\n"]
