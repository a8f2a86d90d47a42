import logging
import smtplib
from dataclasses import dataclass
from email.mime.application import MIMEApplication
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from pathlib import Path
from typing import Any, Dict, Optional, Sequence

import resend
from jinja2 import Environment, FileSystemLoader, TemplateNotFound, select_autoescape

from app.core.config import ResendConfig, SMTPConfig

logger = logging.getLogger("marinenotes.mail")


@dataclass(frozen=True)
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass(frozen=True)
class SendResult:
    ok: bool
    provider: Optional[str] = None
    message_id: Optional[str] = None


class EmailService:
    _SENTINEL = object()

    def __init__(
        self,
        *,
        smtp_config: SMTPConfig | None | object = _SENTINEL,
        resend_config: ResendConfig | None | object = _SENTINEL,
    ):
        # 中文注释:
        # - smtp_config / resend_config 支持依赖注入，方便单测与不同环境切换。
        # - 若调用方显式传 None，则视为禁用该 provider。
        if smtp_config is self._SENTINEL:
            smtp_config = SMTPConfig.from_env()
        if resend_config is self._SENTINEL:
            resend_config = ResendConfig.from_env()

        self.smtp_config: SMTPConfig | None = smtp_config  # type: ignore[assignment]
        self.resend_config: ResendConfig | None = resend_config  # type: ignore[assignment]

        if self.resend_config:
            resend.api_key = self.resend_config.api_key

        # Path to templates: backend/app/core/templates
        templates_dir = Path(__file__).resolve().parent / "templates"
        self._jinja = Environment(
            loader=FileSystemLoader(str(templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
        )

    def is_configured(self) -> bool:
        return bool(self.smtp_config or self.resend_config)

    def render_template(self, template_name: str, context: Dict[str, Any]) -> str:
        return self._jinja.get_template(template_name).render(**context)

    def render_html(self, template_name: str, context: Dict[str, Any]) -> str:
        return self.render_template(f"{template_name}.html", context)

    def render_text(self, template_name: str, context: Dict[str, Any]) -> Optional[str]:
        # 纯文本版本可选
        try:
            return self.render_template(f"{template_name}.txt", context)
        except TemplateNotFound:
            return None

    def _send_smtp(
        self,
        *,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str | None,
        reply_to: str | None,
        attachments: Sequence[EmailAttachment],
    ) -> SendResult:
        assert self.smtp_config is not None
        body = MIMEMultipart("alternative")
        if text_body:
            body.attach(MIMEText(text_body, "plain", "utf-8"))
        body.attach(MIMEText(html_body, "html", "utf-8"))

        if attachments:
            msg = MIMEMultipart("mixed")
            msg.attach(body)
            for att in attachments:
                _, _, subtype = (att.content_type or "application/octet-stream").partition("/")
                part = MIMEApplication(att.content, _subtype=subtype or "octet-stream")
                part.add_header("Content-Disposition", "attachment", filename=att.filename)
                msg.attach(part)
        else:
            msg = body

        msg["Subject"] = subject
        msg["From"] = self.smtp_config.from_email
        msg["To"] = to_email
        if reply_to:
            msg["Reply-To"] = reply_to

        with smtplib.SMTP(self.smtp_config.host, self.smtp_config.port) as server:
            if self.smtp_config.use_starttls:
                server.starttls()
            if self.smtp_config.user and self.smtp_config.password:
                server.login(self.smtp_config.user, self.smtp_config.password)
            server.sendmail(self.smtp_config.from_email, [to_email], msg.as_string())
        return SendResult(ok=True, provider="smtp")

    def _send_resend(
        self,
        *,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str | None,
        reply_to: str | None,
        attachments: Sequence[EmailAttachment],
    ) -> SendResult:
        assert self.resend_config is not None
        params: Dict[str, Any] = {
            "from": self.resend_config.sender,
            "to": [to_email],
            "subject": subject,
            "html": html_body,
        }
        if text_body:
            params["text"] = text_body
        if reply_to:
            params["reply_to"] = reply_to
        if attachments:
            params["attachments"] = [
                {"filename": att.filename, "content": list(att.content)} for att in attachments
            ]
        resp = resend.Emails.send(params)
        message_id = None
        if isinstance(resp, dict):
            message_id = resp.get("id")
        else:
            message_id = getattr(resp, "id", None)
        return SendResult(ok=True, provider="resend", message_id=message_id)

    def deliver(
        self,
        *,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str | None = None,
        reply_to: str | None = None,
        attachments: Sequence[EmailAttachment] = (),
    ) -> SendResult:
        """
        发送邮件（同步）。

        中文注释:
        - 配置了 SMTP 时优先走 SMTP（单测会 patch smtplib.SMTP）。
        - SMTP 未配置但 Resend 已配置，则走 Resend。
        - 失败只记日志并返回 ok=False，不自动重试。
        """
        kwargs = dict(
            to_email=to_email,
            subject=subject,
            html_body=html_body,
            text_body=text_body,
            reply_to=reply_to,
            attachments=list(attachments or ()),
        )
        if self.smtp_config:
            try:
                return self._send_smtp(**kwargs)
            except Exception as e:
                logger.error("[SMTP] send failed: %s", e)
                return SendResult(ok=False, provider="smtp")

        if self.resend_config:
            try:
                return self._send_resend(**kwargs)
            except Exception as e:
                logger.error("[Resend] send failed: %s", e)
                return SendResult(ok=False, provider="resend")

        logger.warning("[Email] no provider configured, dropping mail to %s: %s", to_email, subject)
        return SendResult(ok=False)

    def send_email(
        self,
        *,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: str | None = None,
        reply_to: str | None = None,
        attachments: Sequence[EmailAttachment] = (),
    ) -> bool:
        return self.deliver(
            to_email=to_email,
            subject=subject,
            html_body=html_body,
            text_body=text_body,
            reply_to=reply_to,
            attachments=attachments,
        ).ok

    def send_template_email(
        self,
        *,
        to_email: str,
        subject: str,
        template_name: str,
        context: Dict[str, Any],
        reply_to: str | None = None,
        attachments: Sequence[EmailAttachment] = (),
    ) -> SendResult:
        if not self.is_configured():
            logger.warning("[Email] no provider configured, skip template %s", template_name)
            return SendResult(ok=False)
        try:
            html = self.render_html(template_name, context)
            text = self.render_text(template_name, context)
        except Exception as e:
            logger.error("[Email] template render failed: %s", e)
            return SendResult(ok=False)
        return self.deliver(
            to_email=to_email,
            subject=subject,
            html_body=html,
            text_body=text,
            reply_to=reply_to,
            attachments=attachments,
        )

