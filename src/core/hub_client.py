"""
Hub REST client

Delivers messages to a Gotify server through its ``POST /message`` API,
authenticated with an application token.
"""

import logging
from typing import Optional

import requests

from .plugin_interfaces import DeliveryError, MessageHandler

try:
    from ..models.message import Message
except ImportError:
    from models.message import Message


class GotifyMessageHandler(MessageHandler):
    """
    Production message handler backed by the hub's REST API.

    ``requests.Session`` is safe to share across the webhook's worker
    threads for plain POSTs.
    """

    def __init__(self, url: str, app_token: str, timeout: float = 10.0,
                 session: Optional[requests.Session] = None,
                 logger: Optional[logging.Logger] = None):
        """
        Initialize hub client.

        Args:
            url: Base URL of the hub, e.g. ``http://gotify.local``
            app_token: Application token messages are posted with
            timeout: Request timeout in seconds
            session: HTTP session to reuse (a new one is created if omitted)
            logger: Logger instance
        """
        self.url = url.rstrip('/')
        self.app_token = str(app_token)
        self.timeout = timeout
        self.session = session or requests.Session()
        self.logger = logger or logging.getLogger(__name__)

    def send_message(self, message: Message) -> None:
        body = {
            'message': message.message,
            'title': message.title,
            'priority': message.priority,
        }
        if message.extras:
            body['extras'] = message.extras

        try:
            response = self.session.post(
                f"{self.url}/message",
                json=body,
                headers={'X-Gotify-Key': self.app_token},
                timeout=self.timeout
            )
            response.raise_for_status()
        except requests.HTTPError as e:
            self.logger.error(
                f"Hub rejected message - "
                f"status={e.response.status_code if e.response is not None else 'unknown'}, "
                f"title={message.title!r}"
            )
            raise DeliveryError(f"hub returned an error: {e}") from e
        except requests.RequestException as e:
            self.logger.error(f"Hub unreachable - url={self.url}, error={e}")
            raise DeliveryError(f"hub request failed: {e}") from e

        self.logger.debug(f"Delivered message to hub - title={message.title!r}, size={len(message.message)}")

    def close(self) -> None:
        """Close the underlying HTTP session"""
        self.session.close()
