"""
Email Service
=============
Builds and delivers transactional email over SMTP:
- OTP codes for email verification and password reset
- Welcome and password-changed confirmations
- Report submission and review notifications

When SMTP is not configured, messages are written to the log instead.
"""

import html
import logging
import re
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

import aiosmtplib

from seminar_backend.core import config

logger = logging.getLogger(__name__)

_TAG_PATTERN = re.compile(r'<[^>]*>')


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    html: str
    text: Optional[str] = None
    kind: str = 'generic'

    @property
    def plain_text(self) -> str:
        if self.text:
            return self.text
        return re.sub(r'\n\s*\n+', '\n\n', _TAG_PATTERN.sub('', self.html)).strip()


class EmailService:
    """Async SMTP delivery with a log-only fallback."""

    def __init__(
        self,
        host: str = config.SMTP_HOST,
        port: int = config.SMTP_PORT,
        username: str = config.SMTP_USER,
        password: str = config.SMTP_PASSWORD,
        use_tls: bool = config.SMTP_USE_TLS,
        from_email: str = config.EMAIL_FROM_ADDRESS,
        from_name: str = config.EMAIL_FROM_NAME,
        enabled: bool = config.EMAIL_ENABLED,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_email = from_email
        self.from_name = from_name
        self.enabled = enabled

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.username and self.password)

    async def deliver(self, message: EmailMessage) -> bool:
        """
        Send one message.

        Returns False without contacting any server when SMTP is not
        configured. Raises on SMTP failure so the caller can retry.
        """
        if not self.is_configured:
            logger.warning('[Email] SMTP not configured, not sending "%s" to %s', message.subject, message.to)
            return False

        mime = MIMEMultipart('alternative')
        mime['From'] = f'{self.from_name} <{self.from_email}>'
        mime['To'] = message.to
        mime['Subject'] = message.subject
        mime.attach(MIMEText(message.plain_text, 'plain'))
        mime.attach(MIMEText(message.html, 'html'))

        await aiosmtplib.send(
            mime,
            hostname=self.host,
            port=self.port,
            username=self.username,
            password=self.password,
            start_tls=self.use_tls,
        )
        logger.info('[Email] Sent "%s" to %s', message.subject, message.to)
        return True


def _layout(heading: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
      <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background: linear-gradient(135deg, #667eea 0%, #764ba2 100%); color: white; padding: 30px; text-align: center; border-radius: 10px 10px 0 0; }}
        .content {{ background: #f9f9f9; padding: 30px; border-radius: 0 0 10px 10px; }}
        .code {{ font-size: 32px; letter-spacing: 8px; font-weight: bold; text-align: center; color: #667eea; margin: 20px 0; }}
        .footer {{ text-align: center; margin-top: 30px; color: #666; font-size: 12px; }}
      </style>
    </head>
    <body>
      <div class="container">
        <div class="header"><h1>{heading}</h1></div>
        <div class="content">{body}</div>
        <div class="footer"><p>{html.escape(config.EMAIL_FROM_NAME)}</p></div>
      </div>
    </body>
    </html>
    """


def otp_email(to: str, name: str, otp: str) -> EmailMessage:
    body = f"""
      <h2>Hello {html.escape(name)}!</h2>
      <p>Use the code below to verify your email address:</p>
      <div class="code">{otp}</div>
      <p>This code expires in {config.OTP_TTL_MINUTES} minutes.</p>
      <p>If you did not create an account, you can ignore this email.</p>
    """
    return EmailMessage(
        to=to,
        subject='Your Email Verification Code',
        html=_layout('Verify Your Email', body),
        text=f'Hello {name}, your verification code is {otp}. It expires in {config.OTP_TTL_MINUTES} minutes.',
        kind='verification_otp',
    )


def password_reset_otp_email(to: str, name: str, otp: str) -> EmailMessage:
    body = f"""
      <h2>Hello {html.escape(name)}!</h2>
      <p>We received a request to reset your password. Your reset code is:</p>
      <div class="code">{otp}</div>
      <p>This code expires in {config.OTP_TTL_MINUTES} minutes.</p>
      <p>If you did not request a reset, your password stays unchanged.</p>
    """
    return EmailMessage(
        to=to,
        subject='Password Reset Code',
        html=_layout('Password Reset', body),
        text=f'Hello {name}, your password reset code is {otp}. It expires in {config.OTP_TTL_MINUTES} minutes.',
        kind='reset_otp',
    )


def welcome_email(to: str, name: str, role: str) -> EmailMessage:
    body = f"""
      <h2>Hello {html.escape(name)}!</h2>
      <p>Your <strong>{html.escape(role)}</strong> account is ready.</p>
      <p>You can now sign in and start using the seminar dashboard.</p>
    """
    return EmailMessage(
        to=to,
        subject='Welcome to Seminar Report System',
        html=_layout('Welcome to Seminar Report System!', body),
        kind='welcome',
    )


def password_reset_confirmation_email(to: str, name: str) -> EmailMessage:
    body = f"""
      <h2>Hello {html.escape(name)}!</h2>
      <p>Your password was changed successfully.</p>
      <p>If you did not make this change, contact an administrator immediately.</p>
    """
    return EmailMessage(
        to=to,
        subject='Password Reset Successful',
        html=_layout('Password Changed', body),
        kind='reset_confirmation',
    )


def report_submitted_email(to: str, student_name: str, report_title: str) -> EmailMessage:
    body = f"""
      <h2>Hello {html.escape(student_name)}!</h2>
      <p>Your report <strong>{html.escape(report_title)}</strong> was submitted and is awaiting review.</p>
    """
    return EmailMessage(
        to=to,
        subject=f'Report Submitted: {report_title}',
        html=_layout('Report Submitted', body),
        kind='report_submitted',
    )


def report_reviewed_email(
    to: str,
    student_name: str,
    report_title: str,
    status: str,
    feedback: Optional[str] = None,
    grade: Optional[str] = None,
) -> EmailMessage:
    approved = status == 'approved'
    outcome = 'approved' if approved else 'returned for revision'
    details = ''
    if grade:
        details += f'<p><strong>Grade:</strong> {html.escape(grade)}</p>'
    if feedback:
        details += f'<p><strong>Feedback:</strong> {html.escape(feedback)}</p>'
    body = f"""
      <h2>Hello {html.escape(student_name)}!</h2>
      <p>Your report <strong>{html.escape(report_title)}</strong> was {outcome}.</p>
      {details}
    """
    subject = f'Report Approved: {report_title}' if approved else f'Report Requires Revision: {report_title}'
    return EmailMessage(
        to=to,
        subject=subject,
        html=_layout('Report Reviewed', body),
        kind=f'report_{status}',
    )
