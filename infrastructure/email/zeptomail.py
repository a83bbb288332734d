"""ZeptoMail implementation of MailSender.

Delivery is best-effort: every failure is logged and reported as ``False``,
never raised, so a mail fault cannot reach the request that queued it.
"""

from typing import Optional

import httpx

from config import EmailSettings
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)

_ZEPTO_API_URL = "https://api.zeptomail.in/v1.1/email"


class ZeptoMailSender:
    def __init__(self, settings: EmailSettings, http_client: HttpClient) -> None:
        self._settings = settings
        self._http = http_client

    def _authorization(self) -> str:
        token = self._settings.zepto_api_token
        if not token.startswith("Zoho-enczapikey "):
            token = f"Zoho-enczapikey {token}"
        return token

    async def send(
        self,
        address: str,
        subject: str,
        body: str,
        text_body: Optional[str] = None,
    ) -> bool:
        if not self._settings.zepto_api_token:
            log.error("zepto_mail_send_failed", reason="token_not_configured")
            return False

        payload: dict = {
            "from": {
                "address": self._settings.zepto_from_email,
                "name": self._settings.zepto_from_name,
            },
            "to": [{"email_address": {"address": address, "name": address}}],
            "subject": subject,
            "htmlbody": body,
        }
        if text_body:
            payload["textbody"] = text_body

        headers = {
            "Authorization": self._authorization(),
            "Content-Type": "application/json",
        }

        try:
            response = await self._http.post(
                _ZEPTO_API_URL, json=payload, headers=headers
            )
        except httpx.HTTPError as e:
            log.error(
                "email_send_error",
                to_email=address,
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        if response.status_code in (200, 201, 202):
            log.info("email_sent_success", to_email=address, subject=subject)
            return True
        log.error(
            "email_sent_failed",
            to_email=address,
            subject=subject,
            status_code=response.status_code,
            response=response.text[:200],
        )
        return False
