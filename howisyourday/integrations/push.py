# integrations/push.py

import logging
import re

import requests
from flask import current_app

from howisyourday.errors import PushDeliveryError

logger = logging.getLogger(__name__)

EXPO_PUSH_URL = "https://exp.host/--/api/v2/push/send"

# Expo accepts at most this many messages per request
PUSH_CHUNK_LIMIT = 100

_UUID_TOKEN = re.compile(r"^[a-z\d]{8}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{4}-[a-z\d]{12}$", re.IGNORECASE)


class ExpoPushGateway:
    """Client for the Expo push notification service."""

    def __init__(self, access_token=None, timeout=10, session=None):
        self.access_token = access_token
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config):
        return cls(
            access_token=config.get("EXPO_ACCESS_TOKEN"),
            timeout=config.get("HTTP_TIMEOUT_SECONDS", 10),
        )

    @staticmethod
    def is_push_token(token):
        """True for tokens Expo would accept as a destination."""
        if not isinstance(token, str):
            return False
        if token.startswith(("ExponentPushToken[", "ExpoPushToken[")) and token.endswith("]"):
            return True
        return bool(_UUID_TOKEN.match(token))

    @staticmethod
    def chunk_messages(messages, size=PUSH_CHUNK_LIMIT):
        return [messages[i:i + size] for i in range(0, len(messages), size)]

    def send_chunk(self, messages):
        """Send one chunk and return Expo's push tickets for it."""
        headers = {
            "Accept": "application/json",
            "Accept-Encoding": "gzip, deflate",
            "Content-Type": "application/json",
        }
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"

        try:
            response = self.session.post(EXPO_PUSH_URL, json=messages, headers=headers,
                                         timeout=self.timeout)
        except requests.RequestException as e:
            raise PushDeliveryError(f"Expo push request failed: {e}") from e

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            raise PushDeliveryError(f"Expo push error {response.status_code}: unexpected response body")

        if response.status_code >= 400 or "data" not in payload:
            errors = payload.get("errors") or response.text[:200]
            raise PushDeliveryError(f"Expo push error {response.status_code}: {errors}")

        return payload["data"]


def get_push_gateway():
    return current_app.extensions["push_gateway"]
