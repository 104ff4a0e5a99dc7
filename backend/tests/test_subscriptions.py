"""Subscription sign-up and confirmation tests"""
import httpx
import pytest
from fastapi import status

from mailroom.models.subscription import (
    STATUS_CONFIRMED, STATUS_PENDING_CONFIRMATION, Subscription, SubscriptionToken
)
from mailroom.services.subscription_service import generate_subscription_token, parse_subscription_token
from mailroom.utils.email_address import parse_email_address, parse_subscriber_name


def subscribe(client, name="le guin", email="ursula_le_guin@gmail.com"):
    return client.post("/subscriptions", json={"name": name, "email": email})


def sent_token(mock_email_client):
    """Token embedded in the most recent confirmation email"""
    text = mock_email_client.send_email.await_args.args[3]
    return text.split("subscription_token=")[1].split()[0]


@pytest.mark.critical
class TestSubscribe:
    """POST /subscriptions"""

    def test_valid_form_creates_pending_subscriber(self, client, db_session, mock_email_client):
        response = subscribe(client)

        assert response.status_code == status.HTTP_200_OK
        subscriber = db_session.query(Subscription).one()
        assert subscriber.email == "ursula_le_guin@gmail.com"
        assert subscriber.name == "le guin"
        assert subscriber.status == STATUS_PENDING_CONFIRMATION

    def test_confirmation_email_links_to_stored_token(self, client, db_session, mock_email_client):
        subscribe(client)

        mock_email_client.send_email.assert_awaited_once()
        assert mock_email_client.send_email.await_args.args[0] == "ursula_le_guin@gmail.com"
        token = db_session.query(SubscriptionToken).one()
        assert sent_token(mock_email_client) == token.subscription_token

    @pytest.mark.parametrize("body", [
        {"name": "le guin"},
        {"email": "ursula_le_guin@gmail.com"},
        {"name": "", "email": "ursula_le_guin@gmail.com"},
        {"name": "   ", "email": "ursula_le_guin@gmail.com"},
        {"name": "Ursula", "email": ""},
        {"name": "Ursula", "email": "definitely-not-an-email"},
        {"name": "<script>", "email": "ursula_le_guin@gmail.com"},
        {"name": "a" * 257, "email": "ursula_le_guin@gmail.com"},
    ])
    def test_invalid_form_is_rejected(self, client, db_session, mock_email_client, body):
        response = client.post("/subscriptions", json=body)

        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
        assert db_session.query(Subscription).count() == 0
        mock_email_client.send_email.assert_not_called()

    def test_email_failure_rolls_back(self, client, db_session, mock_email_client):
        mock_email_client.send_email.side_effect = httpx.ConnectError("connection refused")

        response = subscribe(client)

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert db_session.query(Subscription).count() == 0
        assert db_session.query(SubscriptionToken).count() == 0

    def test_subscribing_twice_resends_a_new_token(self, client, db_session, mock_email_client):
        subscribe(client)
        first_token = sent_token(mock_email_client)
        response = subscribe(client)
        second_token = sent_token(mock_email_client)

        assert response.status_code == status.HTTP_200_OK
        assert mock_email_client.send_email.await_count == 2
        assert first_token != second_token
        assert db_session.query(Subscription).count() == 1
        assert db_session.query(SubscriptionToken).count() == 2

    def test_confirmed_subscriber_is_not_emailed_again(self, client, mock_email_client, make_subscriber):
        make_subscriber("ursula_le_guin@gmail.com")

        response = subscribe(client)

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == STATUS_CONFIRMED
        mock_email_client.send_email.assert_not_called()


@pytest.mark.critical
class TestConfirmSubscription:
    """GET /subscriptions/confirm"""

    def test_link_confirms_subscriber(self, client, db_session, mock_email_client):
        subscribe(client)
        token = sent_token(mock_email_client)

        response = client.get("/subscriptions/confirm", params={"subscription_token": token})

        assert response.status_code == status.HTTP_200_OK
        subscriber = db_session.query(Subscription).one()
        db_session.refresh(subscriber)
        assert subscriber.status == STATUS_CONFIRMED

    def test_confirming_twice_is_fine(self, client, mock_email_client):
        subscribe(client)
        token = sent_token(mock_email_client)

        client.get("/subscriptions/confirm", params={"subscription_token": token})
        response = client.get("/subscriptions/confirm", params={"subscription_token": token})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == STATUS_CONFIRMED

    def test_missing_token_is_rejected(self, client):
        response = client.get("/subscriptions/confirm")
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_malformed_token_is_rejected(self, client):
        response = client.get("/subscriptions/confirm", params={"subscription_token": "short"})
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_unknown_token_is_unauthorized(self, client, db_session):
        response = client.get(
            "/subscriptions/confirm",
            params={"subscription_token": generate_subscription_token()}
        )
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.medium
class TestSubscriberValidation:
    """Name, email and token parsing"""

    def test_valid_name(self):
        assert parse_subscriber_name("Ursula Le Guin") == "Ursula Le Guin"

    def test_name_length_limit(self):
        assert parse_subscriber_name("a" * 256) == "a" * 256
        with pytest.raises(ValueError):
            parse_subscriber_name("a" * 257)

    @pytest.mark.parametrize("char", list('/()"<>\\{}'))
    def test_forbidden_characters(self, char):
        with pytest.raises(ValueError):
            parse_subscriber_name(f"Ursula{char}")

    @pytest.mark.parametrize("value", ["", "ursula.com", "@domain.com"])
    def test_invalid_emails(self, value):
        with pytest.raises(ValueError):
            parse_email_address(value)

    def test_generated_tokens_parse(self):
        token = generate_subscription_token()
        assert len(token) == 25
        assert parse_subscription_token(token) == token

    @pytest.mark.parametrize("value", ["", "a" * 24, "a" * 26, "a" * 24 + "!"])
    def test_malformed_tokens(self, value):
        with pytest.raises(ValueError):
            parse_subscription_token(value)
