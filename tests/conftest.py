"""Shared fixtures: a recording stand-in for ``aiosmtplib.SMTP``."""

import asyncio
import email
import email.message
import re
from typing import Any

import pytest
from aiosmtplib.response import SMTPResponse


class FakeRelay:
    """Collects every fake connection and the failures to inject.

    ``failures`` maps a method name to an exception raised the next time
    that method is called (one shot). ``replies`` maps ``data`` (the DATA
    command) or ``end_of_data`` (the final dot) to the ``(code, message)``
    answered the next time (one shot). ``delays`` maps a method name to a
    number of seconds to sleep before answering.
    """

    def __init__(self):
        self.connections: list["FakeSMTP"] = []
        self.failures: dict[str, Exception] = {}
        self.replies: dict[str, tuple[int, str]] = {}
        self.delays: dict[str, float] = {}

    @property
    def last(self) -> "FakeSMTP":
        return self.connections[-1]


class FakeProtocol:
    """Receives the message body written after DATA was accepted."""

    def __init__(self, smtp: "FakeSMTP"):
        self.smtp = smtp
        self.written: list[bytes] = []

    def write(self, data: bytes) -> None:
        self.written.append(bytes(data))

    async def read_response(self, timeout=None) -> SMTPResponse:
        raw = b"".join(self.written)
        self.written.clear()
        self.smtp.wire.append(raw)
        assert raw.endswith(b"\r\n.\r\n")
        self.smtp.payloads.append(re.sub(rb"(?m)^\.", b"", raw[:-3]))
        await self.smtp._record("end_of_data")
        return SMTPResponse(*self.smtp.relay.replies.pop("end_of_data", (250, "OK queued")))


class FakeSMTP:
    def __init__(self, relay: FakeRelay, **kwargs):
        self.relay = relay
        self.kwargs = kwargs
        self.timeout = kwargs.get("timeout")
        self.calls: list[tuple[Any, ...]] = []
        # Bytes as sent, and with dot-stuffing and the final dot removed
        self.wire: list[bytes] = []
        self.payloads: list[bytes] = []
        self.protocol: FakeProtocol | None = None
        self.is_connected = False
        self.closed = False

    async def _record(self, name: str, *args: Any) -> None:
        self.calls.append((name, *args))
        delay = self.relay.delays.get(name)
        if delay:
            await asyncio.sleep(delay)
        exc = self.relay.failures.pop(name, None)
        if exc is not None:
            raise exc

    @property
    def call_names(self) -> list[str]:
        return [call[0] for call in self.calls]

    async def connect(self):
        await self._record("connect")
        self.is_connected = True
        self.protocol = FakeProtocol(self)

    async def ehlo(self, hostname=None):
        await self._record("ehlo", hostname)

    async def helo(self, hostname=None):
        await self._record("helo", hostname)

    async def starttls(self, server_hostname=None, validate_certs=None):
        await self._record("starttls", server_hostname, validate_certs)

    async def auth_plain(self, username, password):
        await self._record("auth_plain", username, password)

    async def mail(self, sender):
        await self._record("mail", sender)

    async def rcpt(self, recipient):
        await self._record("rcpt", recipient)

    async def execute_command(self, *args: bytes) -> SMTPResponse:
        name = args[0].decode("ascii").lower()
        await self._record(name)
        return SMTPResponse(*self.relay.replies.pop(name, (354, "End data with <CR><LF>.<CR><LF>")))

    async def quit(self):
        await self._record("quit")
        self.is_connected = False
        self.protocol = None

    def close(self):
        self.calls.append(("close",))
        self.is_connected = False
        self.protocol = None
        self.closed = True

    def message(self) -> email.message.Message:
        return email.message_from_bytes(self.payloads[-1])


@pytest.fixture
def relay(monkeypatch) -> FakeRelay:
    """Replace aiosmtplib.SMTP in the session module with a recording fake."""
    fake_relay = FakeRelay()

    def factory(**kwargs):
        smtp = FakeSMTP(fake_relay, **kwargs)
        fake_relay.connections.append(smtp)
        return smtp

    monkeypatch.setattr("relay_mailer.session.aiosmtplib.SMTP", factory)
    return fake_relay
