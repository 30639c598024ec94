"""Chunked copying and ASCII line-ending translation."""
from __future__ import annotations

import io
from typing import List

import pytest

from ftp_engine.errors import TransferAbortedError
from ftp_engine.transfer import CHUNK_SIZE, AsciiEncoder, receive_stream, send_stream


class FakeSocket:
    def __init__(self, incoming: bytes = b"", fail_after: int = -1) -> None:
        self.sent: List[bytes] = []
        self.incoming = io.BytesIO(incoming)
        self.fail_after = fail_after

    def sendall(self, data: bytes) -> None:
        if len(self.sent) == self.fail_after:
            raise ConnectionResetError(104, "Connection reset by peer")
        self.sent.append(data)

    def recv(self, size: int) -> bytes:
        if self.fail_after == 0:
            raise ConnectionResetError(104, "Connection reset by peer")
        return self.incoming.read(size)


@pytest.mark.parametrize(
    "chunks, expected",
    [
        ([b"a\nb\n"], b"a\r\nb\r\n"),
        ([b"a\r\nb"], b"a\r\nb"),
        ([b"a\r", b"\nb"], b"a\r\nb"),
        ([b"a\r", b"x\n"], b"a\rx\r\n"),
        ([b"\n", b"\n"], b"\r\n\r\n"),
        ([b"lone\rcr"], b"lone\rcr"),
        ([b"", b"x"], b"x"),
    ],
)
def test_ascii_encoder(chunks, expected) -> None:
    encoder = AsciiEncoder()
    assert b"".join(encoder.encode(chunk) for chunk in chunks) == expected


def test_send_stream_binary_is_byte_exact_and_chunked() -> None:
    payload = bytes(range(256)) * 10
    sock = FakeSocket()
    counted: List[int] = []

    total = send_stream(io.BytesIO(payload), sock, on_chunk=counted.append)

    assert total == len(payload)
    assert b"".join(sock.sent) == payload
    assert counted == [CHUNK_SIZE, CHUNK_SIZE, len(payload) - 2 * CHUNK_SIZE]


def test_send_stream_ascii_counts_source_bytes() -> None:
    payload = b"x\n" * 1000
    sock = FakeSocket()

    total = send_stream(io.BytesIO(payload), sock, ascii_mode=True)

    assert total == len(payload)
    assert b"".join(sock.sent) == b"x\r\n" * 1000


def test_send_stream_reports_partial_progress_before_failing() -> None:
    sock = FakeSocket(fail_after=1)
    counted: List[int] = []

    with pytest.raises(TransferAbortedError) as excinfo:
        send_stream(io.BytesIO(b"z" * 3000), sock, on_chunk=counted.append)

    assert excinfo.value.code == 426
    assert counted == [CHUNK_SIZE]


def test_receive_stream() -> None:
    payload = b"line\r\n" * 500
    destination = io.BytesIO()
    counted: List[int] = []

    total = receive_stream(FakeSocket(incoming=payload), destination, on_chunk=counted.append)

    assert total == len(payload)
    assert destination.getvalue() == payload
    assert sum(counted) == len(payload)
    assert max(counted) == CHUNK_SIZE


def test_receive_stream_failure() -> None:
    with pytest.raises(TransferAbortedError):
        receive_stream(FakeSocket(fail_after=0), io.BytesIO())
