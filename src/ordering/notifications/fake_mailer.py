"""In-memory mailer: keeps every delivered order message in an outbox."""

from uuid import uuid4

from ordering.notifications.port import DeliveryReceipt, MessageKind, OrderMailer, OrderMessage


class FakeOrderMailer(OrderMailer):
    def __init__(self) -> None:
        self.outbox: list[OrderMessage] = []
        self.refusal: str | None = None
        self.raise_error = False

    def configure(self, refusal: str | None = None, raise_error: bool = False) -> None:
        """Refuse subsequent messages with ``refusal``, or raise on delivery."""
        self.refusal = refusal
        self.raise_error = raise_error

    def deliver(self, message: OrderMessage) -> DeliveryReceipt:
        if self.raise_error:
            raise ConnectionError("Mail provider unreachable")
        if self.refusal:
            return DeliveryReceipt(delivered=False, error=self.refusal)

        self.outbox.append(message)
        return DeliveryReceipt(delivered=True, message_id=f"msg-{uuid4().hex[:12]}")

    def messages_of(self, kind: MessageKind, order_id: str | None = None) -> list[OrderMessage]:
        return [
            message
            for message in self.outbox
            if message.kind == kind and (order_id is None or message.order_id == str(order_id))
        ]
