"""IdentityProvider protocol. The workflow depends on this, not the concrete implementation.

Every method may raise an IdentityError subclass; anything else it raises is
treated by the workflow as an upstream fault.
"""

from dataclasses import dataclass, field
from typing import Protocol


@dataclass(frozen=True)
class SelectorToken:
    """One confirmation or reset attempt, as issued by the provider."""

    selector: str
    token: str


@dataclass(frozen=True)
class LoginResult:
    user_id: str
    username: str
    email: str
    session_id: str
    roles: list[str] = field(default_factory=list)


class IdentityProvider(Protocol):
    async def register_pending_user(
        self, email: str, password: str, username: str
    ) -> SelectorToken: ...

    async def login_with_username(self, username: str, password: str) -> LoginResult: ...

    async def logout_everywhere(self, session_id: str) -> None: ...

    async def forgot_password(self, email: str) -> SelectorToken: ...

    async def resend_confirmation(self, email: str) -> SelectorToken: ...

    async def confirm_email(self, selector: str, token: str) -> None: ...

    async def can_reset_password_or_throw(self, selector: str, token: str) -> None: ...

    async def reset_password(
        self, selector: str, token: str, new_password: str
    ) -> None: ...
