"""Buyer/seller messages on an order."""

from protean import handle
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.order.order import MessageType, Order
from ordering.order.queries import load_order


@ordering.command(part_of="Order")
class AddOrderMessage:
    order_id = Identifier(required=True)
    requester_id = Identifier(required=True)
    recipient_id = Identifier(required=True)
    text = Text(required=True)
    message_type = String(choices=MessageType, default=MessageType.MESSAGE.value)


@ordering.command_handler(part_of=Order)
class OrderMessagingHandler:
    @handle(AddOrderMessage)
    def add_order_message(self, command):
        order = load_order(command.order_id)
        order.add_message(
            sender_id=command.requester_id,
            recipient_id=command.recipient_id,
            text=command.text,
            message_type=MessageType.MESSAGE.value,
        )
        current_domain.repository_for(Order).add(order)


def add_order_message(order_id, requester_id, recipient_id, text) -> Order:
    current_domain.process(
        AddOrderMessage(order_id=order_id, requester_id=requester_id, recipient_id=recipient_id, text=text),
        asynchronous=False,
    )
    return load_order(order_id)
