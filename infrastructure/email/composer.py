"""Renders verification and password-reset mails from Jinja2 templates."""

import os

from jinja2 import Environment, FileSystemLoader, select_autoescape

from infrastructure.email.protocol import MailMessage

_DEFAULT_TEMPLATE_DIR = os.path.join(
    os.path.dirname(os.path.dirname(os.path.dirname(__file__))),
    "templates",
    "emails",
)


class MailComposer:
    def __init__(
        self,
        app_name: str,
        app_url: str,
        code_ttl_seconds: int = 300,
        template_dir: str = _DEFAULT_TEMPLATE_DIR,
    ) -> None:
        self._app_name = app_name
        self._app_url = app_url
        self._ttl_minutes = max(1, code_ttl_seconds // 60)
        self._jinja = Environment(
            loader=FileSystemLoader(template_dir),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def _render(self, template_name: str, code: str) -> str:
        return self._jinja.get_template(template_name).render(
            code=code,
            app_name=self._app_name,
            app_url=self._app_url,
            ttl_minutes=self._ttl_minutes,
        )

    def verification_code(self, address: str, code: str) -> MailMessage:
        return MailMessage(
            address=address,
            subject=f"Verify your email - {self._app_name}",
            body=self._render("verification_code.html", code),
            text_body=(
                f"Your verification code is: {code}\n\n"
                f"This code expires in {self._ttl_minutes} minutes."
            ),
        )

    def password_reset_code(self, address: str, code: str) -> MailMessage:
        return MailMessage(
            address=address,
            subject=f"Reset your password - {self._app_name}",
            body=self._render("password_reset_code.html", code),
            text_body=(
                f"Your password reset code is: {code}\n\n"
                f"This code expires in {self._ttl_minutes} minutes. "
                f"If you did not ask for a reset, ignore this email."
            ),
        )
