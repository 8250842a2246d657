"""
Solace Message Source
=====================

Queue receiver backed by the Solace PubSub+ Python API.

Requires the optional `solace-pubsubplus` package:
    pip install "swim-relay[solace]"

Messages are received from a durable queue with client acknowledgement;
nothing is acknowledged until the pipeline calls acknowledge().
"""

import logging
from typing import Any, Optional

from solace.messaging.config.retry_strategy import RetryStrategy
from solace.messaging.messaging_service import MessagingService
from solace.messaging.receiver.inbound_message import InboundMessage
from solace.messaging.receiver.persistent_message_receiver import (
    PersistentMessageReceiver,
)
from solace.messaging.resources.queue import Queue

from swim_relay.config import normalize_host_list


logger = logging.getLogger(__name__)


class SolaceMessage:
    """Adapter from an InboundMessage to the QueueMessage protocol."""

    def __init__(self, receiver: PersistentMessageReceiver, message: InboundMessage) -> None:
        self._receiver = receiver
        self._message = message
        self._text = message.get_payload_as_string()

    @property
    def is_text(self) -> bool:
        return self._text is not None

    def body_text(self) -> Optional[str]:
        return self._text

    def body_bytes(self, max_bytes: int) -> bytes:
        data = self._message.get_payload_as_bytes() or b""
        return data[:max_bytes]

    def body_length(self) -> int:
        if self._text is not None:
            return len(self._text.encode("utf-8"))
        return len(self._message.get_payload_as_bytes() or b"")

    def has_property(self, name: str) -> bool:
        return self._message.has_property(name)

    def get_property(self, name: str) -> Any:
        return self._message.get_property(name)

    def acknowledge(self) -> None:
        self._receiver.ack(self._message)


class SolaceMessageSource:
    """
    Persistent-queue receiver.

    Example:
        source = SolaceMessageSource(
            host="tcps://broker:55443",
            vpn="ITWS",
            username="user",
            password="secret",
            queue_name="queue.itws",
        )
        message = source.receive(timeout_ms=1000)
    """

    def __init__(
        self,
        host: str,
        vpn: str,
        username: str,
        password: str,
        queue_name: str,
        reconnect_attempts: int = 5,
        reconnect_interval_ms: int = 3000,
    ) -> None:
        broker_properties = {
            "solace.messaging.transport.host": normalize_host_list(host),
            "solace.messaging.service.vpn-name": vpn,
            "solace.messaging.authentication.scheme.basic.username": username,
            "solace.messaging.authentication.scheme.basic.password": password,
        }

        self._service = (
            MessagingService.builder()
            .from_properties(broker_properties)
            .with_reconnection_retry_strategy(
                RetryStrategy.parametrized_retry(reconnect_attempts, reconnect_interval_ms)
            )
            .build()
        )
        self._service.connect()

        queue = Queue.durable_exclusive_queue(queue_name)
        self._receiver = self._service.create_persistent_message_receiver_builder().build(queue)
        self._receiver.start()

        logger.info(f"Connected. Consuming queue: {queue_name}")

    def receive(self, timeout_ms: int) -> Optional[SolaceMessage]:
        message = self._receiver.receive_message(timeout=timeout_ms)
        if message is None:
            return None
        return SolaceMessage(self._receiver, message)

    def close(self) -> None:
        try:
            self._receiver.terminate()
        finally:
            self._service.disconnect()
        logger.info("Disconnected from broker")
