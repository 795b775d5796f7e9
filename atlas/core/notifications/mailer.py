"""Outbound email over SMTP.

Settings come from the environment:
    SMTP_HOST, SMTP_PORT (587), SMTP_TLS (true), SMTP_USERNAME, SMTP_PASSWORD,
    SMTP_FROM_EMAIL, SMTP_FROM_NAME
"""

import os
import smtplib
import ssl
import logging
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

logger = logging.getLogger('atlas.core.notifications.mailer')


def get_smtp_config() -> dict:
    return {
        'host': os.environ.get('SMTP_HOST', ''),
        'port': int(os.environ.get('SMTP_PORT', '587') or 587),
        'use_tls': os.environ.get('SMTP_TLS', 'true').lower() == 'true',
        'username': os.environ.get('SMTP_USERNAME', ''),
        'password': os.environ.get('SMTP_PASSWORD', ''),
        'from_email': os.environ.get('SMTP_FROM_EMAIL', ''),
        'from_name': os.environ.get('SMTP_FROM_NAME', 'ATLAS HR'),
    }


def send_email(to_email: str, subject: str, body: str,
               html_body: Optional[str] = None) -> tuple[bool, str]:
    """Send an email using the configured SMTP server.

    Returns:
        tuple: (success: bool, error_message: str)
    """
    config = get_smtp_config()

    if not config['host']:
        logger.warning(f'SMTP host not configured, email to {to_email} not sent: {subject}')
        return False, 'SMTP host not configured'
    if not config['from_email']:
        return False, 'From email not configured'
    if not to_email:
        return False, 'Recipient address missing'

    try:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = subject
        msg['From'] = f"{config['from_name']} <{config['from_email']}>"
        msg['To'] = to_email
        msg.attach(MIMEText(body, 'plain'))
        if html_body:
            msg.attach(MIMEText(html_body, 'html'))

        with smtplib.SMTP(config['host'], config['port'], timeout=15) as server:
            if config['use_tls']:
                server.starttls(context=ssl.create_default_context())
            if config['username']:
                server.login(config['username'], config['password'])
            server.sendmail(config['from_email'], [to_email], msg.as_string())

        logger.info(f'Email sent to {to_email}: {subject}')
        return True, ''
    except Exception as e:
        logger.error(f'Failed to send email to {to_email}: {e}')
        return False, str(e)
