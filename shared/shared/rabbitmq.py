import logging
import os
from datetime import datetime, timezone

import aio_pika

from .events import event_id_of

RABBIT_URL = os.getenv("RABBIT_URL")  # optional in dev, required if you want events

EXCHANGE_NAME = "domain_events"

logger = logging.getLogger(__name__)


class RabbitPublisher:
    """
    Publishes JSON event envelopes to the topic exchange shared by all services.

    Disabled when no broker URL is configured. Publish failures are logged
    and swallowed so a broker outage never fails a committed write. Each
    message carries the service name as app_id and the envelope's event_id
    as message_id, so consumers can drop redeliveries.
    """

    def __init__(self, service_name: str, rabbit_url: str | None = RABBIT_URL):
        self.service_name = service_name
        self.rabbit_url = rabbit_url
        self.enabled = bool(rabbit_url)
        self._reset()

    def _reset(self):
        self._connection: aio_pika.abc.AbstractRobustConnection | None = None
        self._channel: aio_pika.abc.AbstractChannel | None = None
        self._exchange: aio_pika.abc.AbstractExchange | None = None

    @property
    def connected(self) -> bool:
        return self._connection is not None and not self._connection.is_closed

    async def connect(self):
        if not self.enabled or self.connected:
            return

        try:
            self._connection = await aio_pika.connect_robust(self.rabbit_url)
            self._channel = await self._connection.channel()
            self._exchange = await self._channel.declare_exchange(
                EXCHANGE_NAME,
                aio_pika.ExchangeType.TOPIC,
                durable=True,
            )
            logger.info("[%s] connected to exchange %s", self.service_name, EXCHANGE_NAME)
        except Exception as e:
            logger.error("[%s] RabbitMQ connect failed: %s", self.service_name, e)
            self._reset()
            raise

    def build_message(self, message_body: str) -> aio_pika.Message:
        return aio_pika.Message(
            body=message_body.encode("utf-8"),
            content_type="application/json",
            delivery_mode=aio_pika.DeliveryMode.PERSISTENT,
            app_id=self.service_name,
            message_id=event_id_of(message_body),
            timestamp=datetime.now(timezone.utc),
        )

    async def publish(self, routing_key: str, message_body: str):
        if not self.enabled:
            return

        try:
            await self.connect()
        except Exception:
            return

        try:
            await self._exchange.publish(self.build_message(message_body), routing_key=routing_key)
        except Exception as e:
            logger.warning("[%s] RabbitMQ publish failed for %s: %s", self.service_name, routing_key, e)

    async def close(self):
        try:
            if self.connected:
                await self._connection.close()
        finally:
            self._reset()
