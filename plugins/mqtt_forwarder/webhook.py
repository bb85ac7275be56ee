"""
Inbound webhook for the MQTT Forwarder

``POST {basePath}/message`` records a message in the hub and then hands it
to the plugin for forwarding. The blocking part of each request runs on
Starlette's worker thread pool.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field, ValidationError
from starlette.concurrency import run_in_threadpool

from core.logging import get_structured_logger
from core.plugin_interfaces import DeliveryError
from models.message import Message

if TYPE_CHECKING:
    from plugins.mqtt_forwarder.plugin import MQTTForwarderPlugin


class MessageModel(BaseModel):
    """Request body of the message webhook"""
    message: str
    title: str = ""
    priority: int = 0
    extras: Dict[str, Any] = Field(default_factory=dict)
    id: Optional[int] = None
    appid: Optional[int] = None
    date: Optional[datetime] = None

    def to_message(self) -> Message:
        msg = Message(
            message=self.message,
            title=self.title,
            priority=self.priority,
            extras=dict(self.extras),
            id=self.id,
            appid=self.appid,
        )
        if self.date is not None:
            msg.date = self.date
        return msg


def forward_message(plugin: 'MQTTForwarderPlugin', message: Message) -> bool:
    """
    Record a message in the hub, then forward it to MQTT.

    Nothing is forwarded when the hub fails to record the message.

    Returns:
        True if published to the broker, False if queued

    Raises:
        DeliveryError: If the hub did not record the message
    """
    handler = plugin.message_handler
    if handler is None:
        raise DeliveryError("no message handler installed")

    handler.send_message(message)
    return plugin.handle_message(message)


def add_message_route(router: APIRouter, plugin: 'MQTTForwarderPlugin') -> None:
    """Add ``POST /message`` to ``router``"""
    logger = get_structured_logger('plugin_mqtt.webhook')

    @router.post("/message")
    async def post_message(request: Request):
        body = await request.body()
        try:
            payload = MessageModel.model_validate_json(body)
        except ValidationError as e:
            logger.info("webhook_rejected", reason="parse_error", errors=e.error_count())
            return JSONResponse(status_code=400, content={"error": "Failed to parse message"})

        message = payload.to_message()
        try:
            published = await run_in_threadpool(forward_message, plugin, message)
        except DeliveryError as e:
            logger.error("webhook_delivery_failed", error=str(e), title=message.title)
            return JSONResponse(status_code=500, content={"error": "Failed to send message to Gotify"})

        logger.debug("webhook_accepted", published=published, title=message.title)
        return {"status": "Message forwarded to MQTT and Gotify"}


def add_status_routes(router: APIRouter, plugin: 'MQTTForwarderPlugin', location: str = "") -> None:
    """Add ``GET /display`` and ``GET /health`` to ``router``"""

    @router.get("/display", response_class=PlainTextResponse)
    def get_display(request: Request):
        return plugin.get_display(location or str(request.base_url).rstrip('/'))

    @router.get("/health")
    def get_health():
        return plugin.get_health_status()
