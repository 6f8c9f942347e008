# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Attachment sources for outgoing emails.

An attachment is anything that can hand out a readable binary stream and
declares a MIME content type and a display filename. The composer opens each
attachment once, reads the stream to the end, and closes it right after
encoding, whether encoding succeeded or not.

Variants:
    - StreamAttachment: wraps a stream the caller already opened
    - BytesAttachment: in-memory content
    - FileAttachment: a path on the local filesystem, opened lazily

Example:
    Mixing attachment sources::

        email.attachments.append(FileAttachment("/tmp/report.pdf"))
        email.attachments.append(BytesAttachment(b"a,b\\n1,2\\n", "data.csv"))
        email.attachments.append(
            StreamAttachment(sys.stdin.buffer, "stdin.log", content_type="text/plain")
        )
"""

from __future__ import annotations

import io
import mimetypes
from pathlib import Path
from typing import BinaryIO

from .errors import AttachmentReadError


def guess_content_type(filename: str) -> str:
    """Infer a MIME type from a filename extension.

    Unlike the ``application/octet-stream`` fallback used for message
    bodies, an unknown extension yields an empty string: the part is then
    sent with an empty Content-Type value.

    Example:
        >>> guess_content_type("report.pdf")
        'application/pdf'
        >>> guess_content_type("notes.unknownext")
        ''
    """
    mt, _ = mimetypes.guess_type(filename)
    return mt or ""


class Attachment:
    """Base class of every attachment source.

    Subclasses set ``filename`` and ``content_type`` and implement
    :meth:`open`.

    Attributes:
        filename: Name shown to the recipient.
        content_type: MIME type of the content, possibly empty.
    """

    filename: str = ""
    content_type: str = ""

    def open(self) -> BinaryIO:
        """Return a readable binary stream positioned at the content start.

        The caller reads it to the end and closes it when it has a
        ``close()`` method.

        Raises:
            NotImplementedError: If called on the base class directly.
        """
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}(filename={self.filename!r}, content_type={self.content_type!r})"


class StreamAttachment(Attachment):
    """Attachment backed by an already open readable stream.

    The stream can only be consumed once; a second :meth:`open` fails.
    """

    def __init__(self, content: BinaryIO, filename: str, content_type: str | None = None):
        self._content: BinaryIO | None = content
        self.filename = filename
        self.content_type = guess_content_type(filename) if content_type is None else content_type

    def open(self) -> BinaryIO:
        if self._content is None:
            raise AttachmentReadError(
                f"Attachment stream already consumed: {self.filename}", filename=self.filename
            )
        content, self._content = self._content, None
        return content


class BytesAttachment(Attachment):
    """Attachment whose content is held in memory."""

    def __init__(self, data: bytes, filename: str, content_type: str | None = None):
        self.data = bytes(data)
        self.filename = filename
        self.content_type = guess_content_type(filename) if content_type is None else content_type

    def open(self) -> BinaryIO:
        return io.BytesIO(self.data)


class FileAttachment(Attachment):
    """Attachment read from the local filesystem.

    The display name is the basename of ``path`` and the content type is
    inferred from its extension. The file is opened only when the message
    is composed, so no handle is held between building the email and
    sending it.
    """

    def __init__(self, path: str | Path, content_type: str | None = None):
        self.path = Path(path)
        self.filename = self.path.name
        self.content_type = guess_content_type(self.filename) if content_type is None else content_type

    def open(self) -> BinaryIO:
        return self.path.open("rb")
