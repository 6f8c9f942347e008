# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""MIME message composition for relay-mailer.

This module writes one email, headers and ``multipart/mixed`` body, into any
binary sink that has a ``write(bytes)`` method: the session's data stream in
production, a ``BytesIO`` in tests. The composer itself copies the body and
each attachment chunk by chunk; whether the whole message is held in memory
depends on the sink (the session's data stream buffers it until the end of
data).

Wire layout::

    From: robot@example.com
    To: a@b.com
    Subject: hi
    MIME-Version: 1.0
    Content-Type: multipart/mixed; boundary="<boundary>"
    Precedence: bulk

    --<boundary>
    Content-Type: text/plain

    <body bytes, unchanged>
    --<boundary>
    Content-Disposition: attachment; filename="report.pdf"
    Content-Transfer-Encoding: base64
    Content-Type: application/pdf

    <base64 lines>
    --<boundary>--

Lines end with CRLF.
"""

from __future__ import annotations

import binascii
import secrets
from email.header import Header
from typing import BinaryIO, Callable, Protocol

from .attachments import Attachment
from .errors import AttachmentReadError, MailerError, PartWriteError
from .logger import get_logger
from .models import Email

CRLF = b"\r\n"
COPY_CHUNK_SIZE = 64 * 1024
# 57 input bytes encode to one 76 character base64 line
BASE64_LINE_INPUT = 57
MAX_BOUNDARY_LENGTH = 70

logger = get_logger("Composer")


class Writable(Protocol):
    def write(self, data: bytes) -> int | None: ...


def new_boundary() -> str:
    """Return a random multipart boundary of 60 hex characters."""
    return secrets.token_hex(30)


def encode_header_value(value: str) -> str:
    """Return ``value`` unchanged when ASCII, else as RFC 2047 encoded words."""
    if value.isascii():
        return value
    return Header(value, "utf-8").encode(linesep="\r\n")


def _write(sink: Writable, data: bytes) -> None:
    try:
        sink.write(data)
    except (OSError, ValueError) as exc:
        raise PartWriteError(str(exc)) from exc


class Base64Encoder:
    """Streaming base64 encoder writing CRLF-terminated 76 character lines.

    Input is buffered until a full line worth of bytes is available;
    :meth:`close` flushes the remainder, including padding.
    """

    def __init__(self, sink: Writable):
        self._sink = sink
        self._pending = b""
        self.closed = False

    def write(self, data: bytes) -> int:
        if self.closed:
            raise ValueError("write to closed base64 encoder")
        buffered = self._pending + bytes(data)
        usable = len(buffered) - len(buffered) % BASE64_LINE_INPUT
        if usable:
            lines = [
                binascii.b2a_base64(buffered[i:i + BASE64_LINE_INPUT], newline=False) + CRLF
                for i in range(0, usable, BASE64_LINE_INPUT)
            ]
            _write(self._sink, b"".join(lines))
        self._pending = buffered[usable:]
        return len(data)

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._pending:
            _write(self._sink, binascii.b2a_base64(self._pending, newline=False) + CRLF)
            self._pending = b""


class MultipartWriter:
    """Writes boundary-delimited MIME parts into a sink.

    Each :meth:`create_part` call emits the delimiter and the part headers
    (sorted by name) and returns the sink for the part body. :meth:`close`
    emits the closing delimiter.
    """

    def __init__(self, sink: Writable, boundary: str | None = None):
        boundary = boundary or new_boundary()
        if len(boundary) > MAX_BOUNDARY_LENGTH or not boundary.isascii():
            raise ValueError(f"Invalid multipart boundary: {boundary!r}")
        self.boundary = boundary
        self._sink = sink
        self._parts = 0
        self.closed = False

    @property
    def parts(self) -> int:
        return self._parts

    def create_part(self, headers: dict[str, str]) -> Writable:
        if self.closed:
            raise ValueError("multipart writer is closed")
        delimiter = f"--{self.boundary}".encode("ascii") + CRLF
        if self._parts:
            delimiter = CRLF + delimiter
        block = b"".join(
            f"{name}: {headers[name]}".encode("utf-8") + CRLF for name in sorted(headers)
        )
        _write(self._sink, delimiter + block + CRLF)
        self._parts += 1
        return self._sink

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        _write(self._sink, CRLF + f"--{self.boundary}--".encode("ascii") + CRLF)


class MessageComposer:
    """Serializes one :class:`~relay_mailer.models.Email` for the DATA phase.

    Attributes:
        sender: Address written in the From header.
        email: The email to serialize. Its streams are consumed.
        boundary: Multipart boundary, random unless given.
    """

    def __init__(self, sender: str, email: Email, boundary: str | None = None):
        self.sender = sender
        self.email = email
        self.boundary = boundary or new_boundary()

    def headers(self) -> list[tuple[str, str]]:
        """Top-level header fields, in the order they are written."""
        return [
            ("From", self.sender),
            ("To", self.email.to),
            ("Subject", encode_header_value(self.email.subject)),
            ("MIME-Version", "1.0"),
            ("Content-Type", f'multipart/mixed; boundary="{self.boundary}"'),
            ("Precedence", "bulk"),
        ]

    def write_to(self, sink: Writable) -> None:
        """Write the full message into ``sink``.

        Raises:
            AttachmentReadError: If an attachment cannot be opened or read.
            PartWriteError: If the body cannot be read or ``sink`` rejects a write.
        """
        block = b"".join(f"{name}: {value}".encode("utf-8") + CRLF for name, value in self.headers())
        _write(sink, block + CRLF)

        mime_writer = MultipartWriter(sink, self.boundary)
        text_part = mime_writer.create_part({"Content-Type": "text/plain"})
        self._copy(self.email.body, text_part, lambda exc: PartWriteError(str(exc)))

        for attachment in self.email.attachments:
            self._write_attachment(mime_writer, attachment)

        mime_writer.close()
        logger.debug(
            "Composed message to %s with %d part(s)", self.email.to, mime_writer.parts
        )

    def _write_attachment(self, mime_writer: MultipartWriter, attachment: Attachment) -> None:
        part = mime_writer.create_part({
            "Content-Type": attachment.content_type,
            "Content-Disposition": f'attachment; filename="{attachment.filename}"',
            "Content-Transfer-Encoding": "base64",
        })

        def read_failed(exc: Exception) -> AttachmentReadError:
            return AttachmentReadError(str(exc), filename=attachment.filename)

        try:
            content = attachment.open()
        except OSError as exc:
            raise read_failed(exc) from exc

        try:
            encoder = Base64Encoder(part)
            self._copy(content, encoder, read_failed)
            encoder.close()
        finally:
            close = getattr(content, "close", None)
            if close is not None:
                close()

    @staticmethod
    def _copy(
        source: BinaryIO,
        sink: Writable,
        read_failed: Callable[[Exception], MailerError],
    ) -> None:
        while True:
            try:
                chunk = source.read(COPY_CHUNK_SIZE)
            except (OSError, ValueError) as exc:
                raise read_failed(exc) from exc
            if not chunk:
                return
            _write(sink, chunk)
