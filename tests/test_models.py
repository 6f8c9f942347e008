"""Tests for configuration models and the Email value."""

import io

import pytest
from pydantic import ValidationError

from relay_mailer.attachments import FileAttachment
from relay_mailer.errors import AttachmentReadError
from relay_mailer.models import (
    DEFAULT_SMTP_PORT,
    Email,
    MailerConfig,
    SMTPConfig,
    split_address,
)


class TestSplitAddress:
    @pytest.mark.parametrize(
        "address,expected",
        [
            ("mail.example.com", ("mail.example.com", DEFAULT_SMTP_PORT)),
            ("mail.example.com:25", ("mail.example.com", 25)),
            ("10.0.0.5:2525", ("10.0.0.5", 2525)),
            ("[::1]:587", ("::1", 587)),
            ("[2001:db8::1]", ("2001:db8::1", DEFAULT_SMTP_PORT)),
        ],
    )
    def test_valid(self, address, expected):
        assert split_address(address) == expected

    @pytest.mark.parametrize("address", ["mail.example.com:smtp", "host:0", "host:70000", "[::1"])
    def test_invalid(self, address):
        with pytest.raises(ValueError):
            split_address(address)


class TestSMTPConfig:
    def test_greeting_defaults_to_relay_host(self):
        config = SMTPConfig(server="mail.example.com", username="u", password="p")
        assert config.hello == ""
        assert config.greeting_name == "mail.example.com"

    def test_greeting_ignores_port(self):
        assert SMTPConfig(server="mail.example.com:2525").greeting_name == "mail.example.com"

    def test_greeting_override(self):
        config = SMTPConfig(server="10.0.0.5:587", hello="relay.example.com")
        assert config.greeting_name == "relay.example.com"
        assert config.host == "10.0.0.5"
        assert config.port == 587

    def test_defaults(self):
        config = SMTPConfig(server="mail.example.com")
        assert config.timeout == 60.0
        assert config.validate_certs is True

    def test_is_frozen(self):
        config = SMTPConfig(server="mail.example.com")
        with pytest.raises(ValidationError):
            config.server = "other.example.com"

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            SMTPConfig(server="mail.example.com", port=25)

    def test_rejects_empty_server(self):
        with pytest.raises(ValidationError):
            SMTPConfig(server="")

    def test_rejects_bad_port(self):
        with pytest.raises(ValidationError, match="Invalid port"):
            SMTPConfig(server="mail.example.com:abc")


class TestMailerConfig:
    def test_from_alias(self):
        config = MailerConfig.model_validate(
            {"smtp": {"server": "mail.example.com"}, "from": "robot@example.com"}
        )
        assert config.from_ == "robot@example.com"
        assert config.smtp.server == "mail.example.com"

    def test_populate_by_field_name(self):
        config = MailerConfig(smtp=SMTPConfig(server="mail.example.com"), from_="robot@example.com")
        assert config.from_ == "robot@example.com"

    def test_from_is_optional(self):
        config = MailerConfig.model_validate({"smtp": {"server": "mail.example.com"}})
        assert config.from_ == ""


class TestEmail:
    def test_from_text_encodes_utf8(self):
        message = Email.from_text("a@b.com", "hi", "été", from_="me@example.com")
        assert message.body.read() == "été".encode("utf-8")
        assert message.from_ == "me@example.com"
        assert message.attachments == []

    def test_attachment_lists_are_not_shared(self):
        first = Email(to="a@b.com", subject="1", body=io.BytesIO())
        second = Email(to="a@b.com", subject="2", body=io.BytesIO())
        first.attachments.append(object())
        assert second.attachments == []

    def test_attach_file_appends_in_order(self, tmp_path):
        (tmp_path / "a.txt").write_text("a")
        (tmp_path / "b.pdf").write_bytes(b"%PDF")
        message = Email.from_text("a@b.com", "hi", "body")

        message.attach_file(tmp_path / "a.txt")
        message.attach_file(str(tmp_path / "b.pdf"))

        assert [type(a) for a in message.attachments] == [FileAttachment, FileAttachment]
        assert [a.filename for a in message.attachments] == ["a.txt", "b.pdf"]

    def test_attach_missing_file_fails_early(self, tmp_path):
        message = Email.from_text("a@b.com", "hi", "body")

        with pytest.raises(AttachmentReadError, match="Attachment not found"):
            message.attach_file(tmp_path / "missing.pdf")
        assert message.attachments == []

    def test_attach_directory_fails(self, tmp_path):
        with pytest.raises(AttachmentReadError):
            Email.from_text("a@b.com", "hi", "body").attach_file(tmp_path)
