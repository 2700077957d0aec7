# integrations/email.py

import html
import logging

import requests
from flask import current_app

from howisyourday.errors import EmailDeliveryError

logger = logging.getLogger(__name__)

SENDGRID_SEND_URL = "https://api.sendgrid.com/v3/mail/send"
# SendGrid caps personalizations per request
MAX_PERSONALIZATIONS = 1000


class SendGridMailer:
    """Transactional email through the SendGrid v3 REST API."""

    def __init__(self, api_key, from_email, site_url, site_name="How Is Your Day",
                 timeout=10, session=None):
        self.api_key = api_key
        self.from_email = from_email
        self.site_url = site_url.rstrip("/")
        self.site_name = site_name
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config):
        return cls(
            api_key=config.get("SENDGRID_API_KEY"),
            from_email=config["SENDGRID_FROM_EMAIL"],
            site_url=config["SITE_URL"],
            site_name=config.get("SITE_NAME", "How Is Your Day"),
            timeout=config.get("HTTP_TIMEOUT_SECONDS", 10),
        )

    def _send(self, personalizations, subject, html_body, reply_to=None):
        if not self.api_key:
            raise EmailDeliveryError("SendGrid API key not configured")

        message = {
            "personalizations": personalizations,
            "from": {"email": self.from_email},
            "subject": subject,
            "content": [{"type": "text/html", "value": html_body}],
        }
        if reply_to:
            message["reply_to"] = {"email": reply_to}

        try:
            response = self.session.post(
                SENDGRID_SEND_URL,
                json=message,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            logger.error(f"SendGrid request failed: {e}")
            raise EmailDeliveryError("Failed to reach email provider") from e

        if response.status_code >= 400:
            logger.error(f"SendGrid error {response.status_code}: {response.text[:200]}")
            raise EmailDeliveryError(f"Email provider returned {response.status_code}")

    def confirmation_url(self, confirm_token):
        return f"{self.site_url}/api/subscribe/confirm?token={confirm_token}"

    def send_subscription_confirmation(self, to, confirm_token):
        """Send a newsletter subscription confirmation email."""
        confirm_url = self.confirmation_url(confirm_token)
        body = f"""
      <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>Welcome to {html.escape(self.site_name)}!</h2>
        <p>Thank you for subscribing to our newsletter.</p>
        <p>Please confirm your subscription by clicking the button below:</p>
        <div style="text-align: center; margin: 30px 0;">
          <a href="{confirm_url}"
             style="background-color: #4F46E5; color: white; padding: 12px 24px;
                    text-decoration: none; border-radius: 6px; display: inline-block;">
            Confirm Subscription
          </a>
        </div>
        <p style="color: #666; font-size: 14px;">
          If the button doesn't work, copy and paste this link into your browser:<br>
          <a href="{confirm_url}">{confirm_url}</a>
        </p>
        <p style="color: #666; font-size: 12px; margin-top: 40px;">
          If you didn't subscribe to this newsletter, you can safely ignore this email.
        </p>
      </div>
    """
        self._send(
            [{"to": [{"email": to}]}],
            f"Confirm your subscription to {self.site_name}",
            body,
        )
        logger.info(f"Sent subscription confirmation to {to}")

    def send_contact_email(self, from_email, name, message):
        """Forward a contact form message to the site owner."""
        safe_name = html.escape(name)
        safe_message = html.escape(message).replace("\n", "<br>")
        body = f"""
      <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2>New Contact Form Message</h2>
        <p><strong>From:</strong> {safe_name} ({html.escape(from_email)})</p>
        <div style="background-color: #f5f5f5; padding: 20px; border-radius: 6px; margin: 20px 0;">
          {safe_message}
        </div>
        <p style="color: #666; font-size: 14px;">
          Reply directly to this email to respond to {safe_name}.
        </p>
      </div>
    """
        self._send(
            [{"to": [{"email": self.from_email}]}],
            f"New contact form message from {name}",
            body,
            reply_to=from_email,
        )

    def send_newsletter(self, subject, content, recipients):
        """Send one newsletter; each recipient gets a separate personalization."""
        if not recipients:
            return 0
        for start in range(0, len(recipients), MAX_PERSONALIZATIONS):
            batch = recipients[start:start + MAX_PERSONALIZATIONS]
            self._send([{"to": [{"email": email}]} for email in batch], subject, content)
        logger.info(f"Sent newsletter '{subject}' to {len(recipients)} subscribers")
        return len(recipients)


def get_mailer():
    return current_app.extensions["mailer"]
