# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Data models for relay-mailer.

Models:
    - SMTPConfig: Relay address, greeting name and credentials (pydantic)
    - MailerConfig: SMTP settings plus the default sender address (pydantic)
    - Email: One outgoing message with its body stream and attachments

Configuration models are frozen: one instance can be shared by any number
of sends. An :class:`Email` is single-use because its body stream (and each
attachment stream) is consumed by the send.
"""

from __future__ import annotations

import io
from dataclasses import dataclass, field
from pathlib import Path
from typing import Annotated, BinaryIO

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .attachments import Attachment, FileAttachment
from .errors import AttachmentReadError

DEFAULT_SMTP_PORT = 587
DEFAULT_TIMEOUT = 60.0


def split_address(address: str) -> tuple[str, int]:
    """Split a relay address into host and port.

    Accepts ``host``, ``host:port`` and bracketed IPv6 ``[addr]:port``.
    A missing port defaults to the submission port (587).

    Raises:
        ValueError: If the port is not a number between 1 and 65535.
    """
    host, port = address, ""
    if address.startswith("["):
        end = address.find("]")
        if end < 0:
            raise ValueError(f"Unterminated IPv6 address: {address}")
        host = address[1:end]
        port = address[end + 1:].removeprefix(":")
    elif address.count(":") == 1:
        host, port = address.split(":", 1)

    if not port:
        return host, DEFAULT_SMTP_PORT
    if not port.isdigit() or not 0 < int(port) < 65536:
        raise ValueError(f"Invalid port in relay address: {address}")
    return host, int(port)


class SMTPConfig(BaseModel):
    """Connection settings for an authenticated, STARTTLS-encrypted relay.

    Attributes:
        server: Address to dial, ``host`` or ``host:port``.
        hello: Name sent in EHLO and checked against the relay certificate.
            Empty means "use the host part of ``server``".
        username: AUTH PLAIN username.
        password: AUTH PLAIN password.
        timeout: Per-command timeout in seconds, ``None`` to wait forever.
        validate_certs: Verify the relay certificate during STARTTLS.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    server: Annotated[
        str,
        Field(min_length=1, description="Relay address (host or host:port)")
    ]
    hello: Annotated[
        str,
        Field(default="", description="Greeting name, defaults to the relay host")
    ]
    username: Annotated[str, Field(default="", description="SMTP username")]
    password: Annotated[str, Field(default="", description="SMTP password")]
    timeout: Annotated[
        float | None,
        Field(default=DEFAULT_TIMEOUT, gt=0, description="Per-command timeout in seconds")
    ]
    validate_certs: Annotated[
        bool,
        Field(default=True, description="Verify the relay TLS certificate")
    ]

    @field_validator("server")
    @classmethod
    def server_must_have_valid_port(cls, v: str) -> str:
        """Reject addresses whose port part is not a valid TCP port."""
        split_address(v)
        return v

    @property
    def host(self) -> str:
        return split_address(self.server)[0]

    @property
    def port(self) -> int:
        return split_address(self.server)[1]

    @property
    def greeting_name(self) -> str:
        """Name used for EHLO, TLS server name checks and AUTH scoping."""
        # The host, not the raw server string: "host:port" is not a valid
        # EHLO domain nor a certificate name. Identical when no port is given.
        return self.hello or self.host


class MailerConfig(BaseModel):
    """A relay plus the sender address used when an email names none.

    Matches the JSON configuration file layout::

        {"smtp": {"server": "...", "username": "...", "password": "..."},
         "from": "robot@example.com"}
    """

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    smtp: SMTPConfig
    from_: Annotated[
        str,
        Field(default="", alias="from", description="Default sender address")
    ]


@dataclass
class Email:
    """An email to send through a relay.

    Attributes:
        to: Recipient address.
        subject: Subject line.
        body: Readable binary stream holding the plain-text body. It is
            copied to the relay unchanged and read exactly once.
        from_: Sender override; empty means the mailer's default sender.
        attachments: Attachments, sent in list order.
    """

    to: str
    subject: str
    body: BinaryIO
    from_: str = ""
    attachments: list[Attachment] = field(default_factory=list)

    @classmethod
    def from_text(cls, to: str, subject: str, text: str, **kwargs) -> "Email":
        """Build an email whose body is a UTF-8 encoded string."""
        return cls(to=to, subject=subject, body=io.BytesIO(text.encode("utf-8")), **kwargs)

    def attach_file(self, path: str | Path) -> FileAttachment:
        """Append a file from the local filesystem as an attachment.

        The file is only checked here; it is opened when the message is
        composed and closed right after its content has been encoded.

        Raises:
            AttachmentReadError: If ``path`` is not a readable regular file.
        """
        attachment = FileAttachment(path)
        if not attachment.path.is_file():
            raise AttachmentReadError(
                f"Attachment not found: {attachment.path}", filename=attachment.filename
            )
        self.attachments.append(attachment)
        return attachment
