import logging

import requests

from utils.errors import UpstreamError

logger = logging.getLogger(__name__)


class ResendMailer:
    """Sends HTML mail through the Resend HTTP API."""

    def __init__(self, api_key: str, api_url: str, from_address: str, timeout: int = 10):
        self.api_key = api_key
        self.api_url = api_url
        self.from_address = from_address
        self.timeout = timeout
        self.http = requests.Session()

    def send(self, to_email: str, subject: str, html: str) -> str:
        """Send one message and return the provider's message id."""
        try:
            resp = self.http.post(
                self.api_url,
                json={
                    "from": self.from_address,
                    "to": [to_email],
                    "subject": subject,
                    "html": html,
                },
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise UpstreamError(f"Email send failed: {exc}") from exc

        if not resp.ok:
            try:
                detail = resp.json()
            except ValueError:
                detail = resp.text
            raise UpstreamError(f"Email send failed: {detail}")

        message_id = resp.json().get("id")
        logger.info("Email %s sent to %s", message_id, to_email)
        return message_id
