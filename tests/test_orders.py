"""Unit tests for the mailer, orders, and quote e-mails."""

import dataclasses
import smtplib
from unittest.mock import Mock, patch

import pytest

from floorhub.entity_store import EntityStore
from floorhub.mailer import MailError, Mailer
from floorhub.models import CustomerInfo, OrderRequest, QuoteEmailRequest
from floorhub.orders import email_quote, place_order

from conftest import make_product


def _order_request(**overrides):
    fields = dict(
        product=make_product("MS110", name="Дуб Светлый"),
        user_name="Иван",
        user_email="ivan@example.com",
        phone_number="+70000000000",
        city="Москва",
        retail_point="ТЦ Пол",
        quantity=3,
        total_cost=19950.0,
    )
    fields.update(overrides)
    return OrderRequest(**fields)


class TestMailer:
    """Tests for Mailer.send."""

    def test_sends_over_starttls(self, settings):
        with patch("floorhub.mailer.smtplib.SMTP") as smtp:
            Mailer(settings).send("client@example.com", "Тема", "Текст")
        server = smtp.return_value
        smtp.assert_called_once_with("smtp.example.com", 587, timeout=30)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("bot@example.com", "secret")
        message = server.send_message.call_args[0][0]
        assert message["To"] == "client@example.com"
        server.quit.assert_called_once()

    def test_connection_failure(self, settings):
        with patch("floorhub.mailer.smtplib.SMTP", side_effect=OSError("refused")):
            with pytest.raises(MailError):
                Mailer(settings).send("client@example.com", "Тема", "Текст")

    def test_smtp_error_still_quits(self, settings):
        with patch("floorhub.mailer.smtplib.SMTP") as smtp:
            smtp.return_value.send_message.side_effect = smtplib.SMTPRecipientsRefused({})
            with pytest.raises(MailError):
                Mailer(settings).send("client@example.com", "Тема", "Текст")
        smtp.return_value.quit.assert_called_once()

    def test_unconfigured_host(self, settings):
        mailer = Mailer(dataclasses.replace(settings, smtp_host=""))
        assert mailer.configured is False
        with pytest.raises(MailError):
            mailer.send("client@example.com", "Тема", "Текст")


class TestPlaceOrder:
    """Tests for place_order."""

    def setup_method(self):
        self.store = EntityStore()
        self.mailer = Mock(spec=Mailer)

    def test_order_is_stored_and_sales_notified(self):
        entity = self.store.entity("LegalEntity").create({"name": "ООО Пол"})
        order = place_order(self.store, self.mailer, _order_request(legal_entity_id=entity["id"]), "sales@example.com")
        assert order["order_number"].startswith("ORD-")
        assert order["legal_entity_name"] == "ООО Пол"
        assert order["article_code"] == "MS110"
        assert order["notified"] is True
        to, subject, body = self.mailer.send.call_args[0]
        assert to == "sales@example.com"
        assert order["order_number"] in subject
        assert "Количество: 3" in body
        assert self.store.entity("Order").get(order["id"])["user_name"] == "Иван"

    def test_missing_legal_entity(self):
        order = place_order(self.store, self.mailer, _order_request(legal_entity_id="gone"), "sales@example.com")
        assert order["legal_entity_name"] == "Не указано"

    def test_mail_failure_keeps_order(self):
        self.mailer.send.side_effect = MailError("down")
        order = place_order(self.store, self.mailer, _order_request(), "sales@example.com")
        assert order["notified"] is False
        assert len(self.store.entity("Order").list()) == 1

    def test_no_sales_address_skips_mail(self):
        order = place_order(self.store, self.mailer, _order_request(), "")
        assert order["notified"] is False
        self.mailer.send.assert_not_called()


class TestEmailQuote:
    """Tests for email_quote."""

    def test_quote_sent_to_customer(self):
        mailer = Mock(spec=Mailer)
        request = QuoteEmailRequest(
            product=make_product("MS110", name="Дуб", price="1000", params={"Кол-во м2 в упаковке": "2"}),
            area=10,
            customer=CustomerInfo(email="client@example.com"),
        )
        quote = email_quote(mailer, request)
        assert quote.packages_needed == 6
        to, subject, body = mailer.send.call_args[0]
        assert to == "client@example.com"
        assert "Дуб" in subject
        assert "Необходимо упаковок: 6 шт" in body
