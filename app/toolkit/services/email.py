"""
Email service for centralized email sending.

This module provides the EmailService class for sending emails with:
- Django template rendering for HTML and plain text
- Attachment handling (settlement PDFs)

Configuration:
    Email settings are read from Django settings:
    - EMAIL_BACKEND
    - EMAIL_HOST, EMAIL_PORT
    - DEFAULT_FROM_EMAIL

Usage:
    from toolkit.services.email import EmailService

    # Send email with template
    EmailService.send(
        to="owner@example.com",
        subject="Settlement PRELIQ_HE00001_ACME",
        template_name="settlements/email/settlement_delivery",
        context={"settlement": settlement},
        attachments=[("PRELIQ_HE00001_ACME.pdf", pdf_bytes, "application/pdf")],
    )
"""

from __future__ import annotations

import logging
from smtplib import SMTPException

from django.conf import settings
from django.core.mail import EmailMultiAlternatives
from django.template import TemplateDoesNotExist
from django.template.loader import render_to_string
from django.utils.html import strip_tags

from core.services import ServiceResult
from toolkit.helpers import mask_email

logger = logging.getLogger(__name__)


class EmailService:
    """
    Centralized email sending with template support.

    Both methods return a failed ServiceResult instead of raising when the
    backend fails; callers decide whether a failure is retryable.

    Usage:
        # Send template email
        result = EmailService.send(
            to="owner@example.com",
            subject="Settlement ready",
            template_name="settlements/email/settlement_delivery",
            context={"settlement": settlement},
        )

        # Send raw email
        result = EmailService.send_raw(
            to="owner@example.com",
            subject="Quick note",
            body_text="Plain text content",
            body_html="<p>HTML content</p>",
        )
    """

    @staticmethod
    def _recipients(to: str | list[str]) -> list[str]:
        if isinstance(to, str):
            return [to]
        return [address for address in to if address]

    @classmethod
    def send(
        cls,
        to: str | list[str],
        subject: str,
        template_name: str,
        context: dict,
        from_email: str | None = None,
        reply_to: str | None = None,
        attachments: list[tuple] | None = None,
    ) -> ServiceResult[list[str]]:
        """
        Send email using a template.

        Args:
            to: Recipient email address(es)
            subject: Email subject line
            template_name: Name of template (without extension)
                           Looks for: {template_name}.html and {template_name}.txt
            context: Template context variables
            from_email: Sender email (defaults to DEFAULT_FROM_EMAIL)
            reply_to: Reply-to address
            attachments: List of (filename, content, mimetype) tuples

        Returns:
            ServiceResult with the recipient list, or the failure reason
        """
        try:
            html_content = render_to_string(f"{template_name}.html", context)
        except TemplateDoesNotExist:
            html_content = None

        try:
            text_content = render_to_string(f"{template_name}.txt", context)
        except TemplateDoesNotExist:
            text_content = strip_tags(html_content) if html_content else ""

        return cls.send_raw(
            to=to,
            subject=subject,
            body_text=text_content,
            body_html=html_content,
            from_email=from_email,
            reply_to=reply_to,
            attachments=attachments,
        )

    @classmethod
    def send_raw(
        cls,
        to: str | list[str],
        subject: str,
        body_text: str,
        body_html: str | None = None,
        from_email: str | None = None,
        reply_to: str | None = None,
        attachments: list[tuple] | None = None,
    ) -> ServiceResult[list[str]]:
        """
        Send email with raw content (no template).

        Returns:
            ServiceResult with the recipient list, or the failure reason
        """
        recipients = cls._recipients(to)
        if not recipients:
            logger.warning("Email not sent: no recipients", extra={"subject": subject})
            return ServiceResult.failure("No recipients", error_code="EMAIL_NO_RECIPIENTS")

        email = EmailMultiAlternatives(
            subject=subject,
            body=body_text,
            from_email=from_email or settings.DEFAULT_FROM_EMAIL,
            to=recipients,
            reply_to=[reply_to] if reply_to else None,
        )
        if body_html:
            email.attach_alternative(body_html, "text/html")
        for filename, content, mimetype in attachments or ():
            email.attach(filename, content, mimetype)

        masked = [mask_email(address) for address in recipients]
        try:
            email.send(fail_silently=False)
        except (SMTPException, OSError) as e:
            logger.error(
                f"Failed to send email to {masked}: {e}",
                extra={"subject": subject},
                exc_info=True,
            )
            return ServiceResult.failure(str(e), error_code="EMAIL_SEND_FAILED")

        logger.info(f"Email sent to {masked}: {subject}")
        return ServiceResult.success(recipients)
