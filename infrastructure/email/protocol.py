"""MailSender protocol. The workflow depends on this, not the concrete implementation."""

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class MailMessage:
    address: str
    subject: str
    body: str  # HTML
    text_body: Optional[str] = None


class MailSender(Protocol):
    async def send(
        self,
        address: str,
        subject: str,
        body: str,
        text_body: Optional[str] = None,
    ) -> bool: ...
