# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Send one email with attachments through an authenticated SMTP relay.

Features:
    - STARTTLS-encrypted, AUTH PLAIN authenticated relay sessions
    - ``multipart/mixed`` messages: a plain-text body plus base64 attachments
    - File, in-memory and stream attachment sources
    - One exception class per protocol phase
    - ``relay-mailer`` command line tool with a JSON settings file

Example::

    from relay_mailer import Email, Mailer, load_mailer_config

    mailer = Mailer(load_mailer_config("/etc/relay-mailer/config.json"))
    email = Email.from_text("a@b.com", "Nightly report", "See attached.")
    email.attach_file("/var/reports/nightly.csv")
    mailer.send_sync(email)
"""

from .attachments import Attachment, BytesAttachment, FileAttachment, StreamAttachment
from .config_loader import load_mailer_config
from .errors import (
    AttachmentReadError,
    AuthenticationError,
    ConfigurationError,
    DataPhaseError,
    HandshakeError,
    MailerError,
    PartWriteError,
    RecipientRejectedError,
    RelayConnectionError,
    SenderRejectedError,
    TLSNegotiationError,
)
from .models import Email, MailerConfig, SMTPConfig
from .session import Mailer, send_email

__all__ = [
    "Attachment",
    "AttachmentReadError",
    "AuthenticationError",
    "BytesAttachment",
    "ConfigurationError",
    "DataPhaseError",
    "Email",
    "FileAttachment",
    "HandshakeError",
    "Mailer",
    "MailerConfig",
    "MailerError",
    "PartWriteError",
    "RecipientRejectedError",
    "RelayConnectionError",
    "SMTPConfig",
    "SenderRejectedError",
    "StreamAttachment",
    "TLSNegotiationError",
    "load_mailer_config",
    "send_email",
]
