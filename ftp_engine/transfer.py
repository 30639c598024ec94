# -*- coding: utf-8 -*-
"""Byte copying between a stream and a data connection.

Data is moved in fixed 1024-byte chunks and every chunk is reported through
``on_chunk`` as soon as it has been written, so a transfer that dies half way
still accounts for what actually went through.

In ASCII mode outbound data has bare ``\\n`` expanded to ``\\r\\n``. Inbound
data is stored exactly as received: uploads are never reverse-translated.
Command handlers that need local line endings on upload have to convert them
themselves.
"""

from __future__ import annotations

import logging
import re
import socket
from typing import BinaryIO, Callable, Optional

from .errors import TransferAbortedError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024

_BARE_LF = re.compile(rb"(?<!\r)\n")

ChunkCallback = Callable[[int], None]


class AsciiEncoder:
    """Expands bare line feeds to CRLF, carrying state across chunk boundaries."""

    def __init__(self) -> None:
        self._pending_cr = False

    def encode(self, chunk: bytes) -> bytes:
        if not chunk:
            return chunk
        head = b""
        # "\r" ended the previous chunk, so this "\n" already has its CR
        if self._pending_cr and chunk[:1] == b"\n":
            head, chunk = b"\n", chunk[1:]
        self._pending_cr = chunk[-1:] == b"\r"
        return head + _BARE_LF.sub(b"\r\n", chunk)


def send_stream(
    source: BinaryIO,
    sock: socket.socket,
    ascii_mode: bool = False,
    on_chunk: Optional[ChunkCallback] = None,
) -> int:
    """Copy ``source`` to ``sock`` until EOF. Returns the number of source bytes sent."""
    encoder = AsciiEncoder() if ascii_mode else None
    total = 0
    while True:
        chunk = source.read(CHUNK_SIZE)
        if not chunk:
            break
        payload = encoder.encode(chunk) if encoder is not None else chunk
        try:
            sock.sendall(payload)
        except OSError as e:
            logger.debug("Data connection failed after %d bytes: %s", total, e)
            raise TransferAbortedError() from e
        total += len(chunk)
        if on_chunk is not None:
            on_chunk(len(chunk))
    return total


def receive_stream(
    sock: socket.socket,
    destination: BinaryIO,
    on_chunk: Optional[ChunkCallback] = None,
) -> int:
    """Copy everything the peer sends on ``sock`` into ``destination``."""
    total = 0
    while True:
        try:
            chunk = sock.recv(CHUNK_SIZE)
        except OSError as e:
            logger.debug("Data connection failed after %d bytes: %s", total, e)
            raise TransferAbortedError() from e
        if not chunk:
            break
        destination.write(chunk)
        total += len(chunk)
        if on_chunk is not None:
            on_chunk(len(chunk))
    return total
