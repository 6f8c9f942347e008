# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""Exception hierarchy for relay-mailer.

Every phase of a send has its own exception class so callers can tell a
credential problem from a transport problem without inspecting messages.
All of them derive from :class:`MailerError` and carry a stable ``code``
string suitable for logs and exit reporting.

Phase errors keep the text of the underlying error unchanged and chain it
(``raise ... from exc``). The only exception is :class:`AuthenticationError`,
whose message is prefixed with ``"authenticating: "``.

Example:
    Telling authentication failures apart::

        try:
            await mailer.send(email)
        except AuthenticationError as exc:
            logger.error("Check the relay credentials: %s", exc)
        except MailerError as exc:
            logger.error("Send failed (%s): %s", exc.code, exc)
"""

from __future__ import annotations


class MailerError(RuntimeError):
    """Base class for every error raised while sending an email.

    Attributes:
        code: Stable machine-readable identifier of the failure kind.
        smtp_code: SMTP reply code returned by the relay, when there was one.
    """

    code = "mailer_error"

    def __init__(self, message: str, smtp_code: int | None = None):
        super().__init__(message)
        self.smtp_code = smtp_code


class ConfigurationError(MailerError):
    """Raised when the mailer configuration cannot be loaded or validated."""

    code = "configuration_error"


class RelayConnectionError(MailerError):
    """Raised when the TCP connection to the relay cannot be opened."""

    code = "connection_error"


class HandshakeError(MailerError):
    """Raised when the relay rejects both EHLO and HELO."""

    code = "handshake_error"


class TLSNegotiationError(MailerError):
    """Raised when STARTTLS fails or the relay certificate is not trusted."""

    code = "tls_error"


class AuthenticationError(MailerError):
    """Raised when the relay rejects the username/password exchange."""

    code = "authentication_error"
    prefix = "authenticating: "


class SenderRejectedError(MailerError):
    """Raised when the relay refuses the MAIL FROM address."""

    code = "sender_rejected"


class RecipientRejectedError(MailerError):
    """Raised when the relay refuses the RCPT TO address."""

    code = "recipient_rejected"


class DataPhaseError(MailerError):
    """Raised when the DATA phase cannot be opened or the message is refused."""

    code = "data_error"


class AttachmentReadError(MailerError):
    """Raised when an attachment cannot be opened or read.

    Attributes:
        filename: Display name of the attachment that failed.
    """

    code = "attachment_read_error"

    def __init__(self, message: str, filename: str = ""):
        super().__init__(message)
        self.filename = filename


class PartWriteError(MailerError):
    """Raised when a header or MIME part cannot be written to the data stream."""

    code = "part_write_error"
