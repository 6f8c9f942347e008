# Copyright 2025 Softwell S.r.l. - SPDX-License-Identifier: Apache-2.0
"""SMTP session driver: carries one email through one relay session.

Each send opens its own connection and walks the protocol strictly in order,
failing fast on the first error with an exception specific to the phase:

1. connect                       -> RelayConnectionError
2. EHLO (HELO fallback)          -> HandshakeError
3. STARTTLS + EHLO               -> TLSNegotiationError
4. AUTH PLAIN                    -> AuthenticationError ("authenticating: ...")
5. MAIL FROM                     -> SenderRejectedError
6. RCPT TO                       -> RecipientRejectedError
7. DATA, open the data stream    -> DataPhaseError
8. compose the message into it   -> AttachmentReadError / PartWriteError
9. end of data, close the stream -> DataPhaseError, then QUIT and close

A relay refusing DATA stops the send before any attachment is opened.
Once the connection exists, QUIT and close always run. Once the data stream
is open it is always closed, so a message whose composition failed halfway
is still terminated and handed to the relay; SMTP has no way to retract it.
Cleanup failures that follow another error are logged and never replace it.

Nothing is retried and no connection is reused: callers wanting a retry
build a fresh :class:`~relay_mailer.models.Email` and send again.

Example:
    Sending one email::

        config = MailerConfig.model_validate({
            "smtp": {"server": "mail.example.com:587", "username": "u", "password": "p"},
            "from": "robot@example.com",
        })
        mailer = Mailer(config)

        email = Email.from_text("a@b.com", "hi", "hello world")
        email.attach_file("/tmp/report.pdf")
        await mailer.send(email)
"""

from __future__ import annotations

import asyncio
import io
import re
from collections.abc import Iterator
from contextlib import contextmanager

import aiosmtplib

from .composer import MessageComposer
from .errors import (
    AuthenticationError,
    DataPhaseError,
    HandshakeError,
    MailerError,
    RecipientRejectedError,
    RelayConnectionError,
    SenderRejectedError,
    TLSNegotiationError,
)
from .logger import get_logger
from .models import Email, MailerConfig, SMTPConfig

logger = get_logger("Session")

# ssl.SSLError and socket errors are OSError subclasses
SMTP_ERRORS = (aiosmtplib.SMTPException, OSError)

START_MAIL_INPUT = 354
MESSAGE_ACCEPTED = 250
END_OF_DATA = b".\r\n"
LINE_ENDINGS_REGEX = re.compile(rb"(?:\r\n|\n|\r(?!\n))")
LEADING_PERIOD_REGEX = re.compile(rb"(?m)^\.")


@contextmanager
def _phase(error_cls: type[MailerError], prefix: str = "") -> Iterator[None]:
    """Translate transport and protocol errors into ``error_cls``."""
    try:
        yield
    except SMTP_ERRORS as exc:
        smtp_code = exc.code if isinstance(exc, aiosmtplib.SMTPResponseException) else None
        raise error_cls(f"{prefix}{exc}", smtp_code=smtp_code) from exc


class DataStream:
    """Write side of an open DATA phase.

    Created once the relay has answered DATA with 354. Writes are collected
    and :meth:`close` sends them with leading dots escaped and line endings
    normalised to CRLF, followed by the end-of-data marker, then waits for
    the relay's verdict on the message.
    """

    def __init__(self, smtp: aiosmtplib.SMTP):
        self._smtp = smtp
        self._buffer = io.BytesIO()
        self.size = 0
        self.closed = False

    def write(self, data: bytes) -> int:
        if self.closed:
            raise ValueError("write to closed data stream")
        written = self._buffer.write(data)
        self.size += written
        return written

    async def close(self) -> None:
        """Transmit everything written so far and end the message.

        Raises:
            DataPhaseError: If the connection is gone or the relay refuses
                the message.
        """
        if self.closed:
            return
        self.closed = True
        payload = self._buffer.getvalue()
        self._buffer.close()

        payload = LINE_ENDINGS_REGEX.sub(b"\r\n", payload)
        payload = LEADING_PERIOD_REGEX.sub(b"..", payload)
        if not payload.endswith(b"\r\n"):
            payload += b"\r\n"

        with _phase(DataPhaseError):
            protocol = self._smtp.protocol
            if protocol is None:
                raise aiosmtplib.SMTPServerDisconnected("Connection lost during the data phase")
            protocol.write(payload + END_OF_DATA)
            response = await protocol.read_response(timeout=self._smtp.timeout)
            if response.code != MESSAGE_ACCEPTED:
                raise aiosmtplib.SMTPDataError(response.code, response.message)


async def _connect(config: SMTPConfig) -> aiosmtplib.SMTP:
    # Plain connection: STARTTLS is issued explicitly after the greeting.
    smtp = aiosmtplib.SMTP(
        hostname=config.host,
        port=config.port,
        local_hostname=config.greeting_name,
        use_tls=False,
        start_tls=False,
        validate_certs=config.validate_certs,
        timeout=config.timeout,
    )
    try:
        with _phase(RelayConnectionError):
            await smtp.connect()
    except BaseException:
        smtp.close()
        raise
    logger.debug("Connected to %s:%d", config.host, config.port)
    return smtp


async def _greet(smtp: aiosmtplib.SMTP, name: str) -> None:
    with _phase(HandshakeError):
        try:
            await smtp.ehlo(hostname=name)
        except aiosmtplib.SMTPHeloError:
            logger.debug("EHLO refused, falling back to HELO")
            await smtp.helo(hostname=name)


async def _start_tls(smtp: aiosmtplib.SMTP, config: SMTPConfig) -> None:
    name = config.greeting_name
    with _phase(TLSNegotiationError):
        await smtp.starttls(server_hostname=name, validate_certs=config.validate_certs)
        # Server state is reset by STARTTLS (RFC 3207), greet again.
        await smtp.ehlo(hostname=name)
    logger.debug("TLS established with %s", name)


async def _authenticate(smtp: aiosmtplib.SMTP, config: SMTPConfig) -> None:
    if not config.validate_certs:
        logger.warning(
            "Sending credentials for %s to %s without certificate verification",
            config.username,
            config.server,
        )
    with _phase(AuthenticationError, prefix=AuthenticationError.prefix):
        await smtp.auth_plain(config.username, config.password)
    logger.debug("Authenticated as %s", config.username)


async def open_data_stream(smtp: aiosmtplib.SMTP) -> DataStream:
    """Issue DATA and return the stream the message is written into.

    Raises:
        DataPhaseError: If the connection is gone or DATA is not answered
            with 354.
    """
    with _phase(DataPhaseError):
        response = await smtp.execute_command(b"DATA")
        if response.code != START_MAIL_INPUT:
            raise aiosmtplib.SMTPDataError(response.code, response.message)
    return DataStream(smtp)


async def _hang_up(smtp: aiosmtplib.SMTP) -> None:
    try:
        if smtp.is_connected:
            await smtp.quit()
    except SMTP_ERRORS as exc:
        logger.warning("QUIT failed: %s", exc)
    finally:
        smtp.close()


async def send_email(config: SMTPConfig, email: Email, default_sender: str) -> None:
    """Send ``email`` through the relay described by ``config``.

    Args:
        config: Relay address, greeting name and credentials.
        email: The email to send. Its body and attachment streams are consumed.
        default_sender: Envelope and From address used when ``email.from_``
            is empty.

    Raises:
        RelayConnectionError: The relay could not be reached.
        HandshakeError: EHLO and HELO were both refused.
        TLSNegotiationError: STARTTLS failed.
        AuthenticationError: The credentials were refused.
        SenderRejectedError: MAIL FROM was refused.
        RecipientRejectedError: RCPT TO was refused.
        DataPhaseError: DATA or the message itself was refused.
        AttachmentReadError: An attachment could not be read.
        PartWriteError: The body or a part could not be written.
    """
    sender = email.from_ or default_sender
    smtp = await _connect(config)
    try:
        await _greet(smtp, config.greeting_name)
        await _start_tls(smtp, config)
        await _authenticate(smtp, config)

        with _phase(SenderRejectedError):
            await smtp.mail(sender)
        with _phase(RecipientRejectedError):
            await smtp.rcpt(email.to)

        stream = await open_data_stream(smtp)
        try:
            MessageComposer(sender, email).write_to(stream)
        except Exception:
            try:
                await stream.close()
            except DataPhaseError as exc:
                logger.warning("Closing the data stream after a failed write: %s", exc)
            raise
        await stream.close()
    finally:
        await _hang_up(smtp)

    logger.info(
        "Sent email to %s via %s (%d attachment(s), %d bytes)",
        email.to,
        config.server,
        len(email.attachments),
        stream.size,
    )


class Mailer:
    """Sends emails through a single relay with a default sender.

    A mailer holds only immutable configuration; every :meth:`send` opens
    and closes its own connection, so concurrent sends are independent.

    Attributes:
        config: Relay settings and default sender.
    """

    def __init__(self, config: MailerConfig):
        self.config = config

    @property
    def default_sender(self) -> str:
        return self.config.from_

    async def send(self, email: Email) -> None:
        """Connect to the relay, transmit ``email`` and disconnect.

        To bound the whole operation wrap it in ``asyncio.wait_for``; the
        connection is still shut down on cancellation.
        """
        await send_email(self.config.smtp, email, self.default_sender)

    def send_sync(self, email: Email) -> None:
        """Blocking variant of :meth:`send` for code without an event loop."""
        asyncio.run(self.send(email))
