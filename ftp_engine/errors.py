# -*- coding: utf-8 -*-
"""Exceptions that command handlers raise to produce an FTP reply."""

from __future__ import annotations


class FTPError(Exception):
    """Base class for every error raised by the engine."""


class ResponseError(FTPError):
    """A failure that carries the exact reply to send on the control connection.

    The dispatcher writes ``"<code> <message>"`` verbatim, so handlers can
    raise this anywhere instead of replying and returning early.
    """

    def __init__(self, code: int, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.code}, {self.message!r})"


class DataConnectionError(ResponseError):
    """The data connection could not be established (PASV/PORT, timeout, refused)."""

    def __init__(self, message: str = "An error occurred while opening the data connection") -> None:
        super().__init__(425, message)


class TransferAbortedError(ResponseError):
    """The data connection broke after it was established."""

    def __init__(self, message: str = "Connection closed; transfer aborted") -> None:
        super().__init__(426, message)
