"""Outbound port for customer messages about an order."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class MessageKind(Enum):
    ORDER_PLACED = "order_placed"
    PAYMENT_CONFIRMED = "payment_confirmed"
    ORDER_CANCELLED = "order_cancelled"


@dataclass(frozen=True)
class OrderMessage:
    recipient: str
    order_id: str
    order_number: str
    kind: MessageKind
    subject: str
    body: str


@dataclass(frozen=True)
class DeliveryReceipt:
    delivered: bool
    message_id: str | None = None
    error: str | None = None


class OrderMailer(ABC):
    @abstractmethod
    def deliver(self, message: OrderMessage) -> DeliveryReceipt:
        """Hand ``message`` to the mail provider.

        A provider that refuses the message reports it through the receipt;
        transport failures may raise.
        """
        ...
