"""Email service - transactional email through the provider's REST API"""
import logging
from typing import Optional
from urllib.parse import quote

import httpx
from fastapi import Request

from mailroom.core.config import settings

logger = logging.getLogger(__name__)


class EmailClient:
    """Thin async client for a Resend-compatible `POST /emails` endpoint.

    Each send is a single attempt bounded by `timeout` seconds. Non-2xx
    responses and transport errors surface as `httpx.HTTPError`; callers decide
    whether a failure is fatal.
    """

    def __init__(
        self,
        base_url: str,
        sender: str,
        authorization_token: str,
        timeout: float,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.sender = sender
        self.timeout = timeout
        self._authorization_token = authorization_token
        self._http_client = httpx.AsyncClient(transport=transport)

    @classmethod
    def from_settings(cls) -> "EmailClient":
        return cls(
            base_url=settings.EMAIL_API_BASE_URL,
            sender=settings.EMAIL_SENDER,
            authorization_token=settings.EMAIL_API_TOKEN,
            timeout=settings.email_timeout,
        )

    async def send_email(
        self,
        recipient: str,
        subject: str,
        html_content: str,
        text_content: str,
    ) -> None:
        """Send one email

        Raises:
            httpx.HTTPError: On timeout, connection failure or a non-2xx response
        """
        response = await self._http_client.post(
            f"{self.base_url}/emails",
            json={
                "from": self.sender,
                "to": recipient,
                "subject": subject,
                "html": html_content,
                "text": text_content,
            },
            headers={"Authorization": f"Bearer {self._authorization_token}"},
            timeout=self.timeout,
        )
        response.raise_for_status()

    async def aclose(self) -> None:
        await self._http_client.aclose()


def build_confirmation_link(subscription_token: str) -> str:
    """Link a subscriber follows to confirm their address"""
    return (
        f"{settings.BASE_URL.rstrip('/')}/subscriptions/confirm"
        f"?subscription_token={quote(subscription_token)}"
    )


async def send_confirmation_email(email_client: EmailClient, recipient: str, subscription_token: str) -> None:
    """Send the subscription confirmation link

    Raises:
        httpx.HTTPError: If the provider rejects the email or times out
    """
    confirmation_link = build_confirmation_link(subscription_token)

    html = f"""
    <p>Welcome to our newsletter!</p>
    <p>Click <a href="{confirmation_link}">here</a> to confirm your subscription.</p>
    """
    text = f"Welcome to our newsletter!\nVisit {confirmation_link} to confirm your subscription."

    await email_client.send_email(recipient, "Welcome!", html, text)
    logger.info(f"Confirmation email sent to {recipient}")


def get_email_client(request: Request) -> EmailClient:
    """Dependency: the application's shared email client"""
    return request.app.state.email_client
