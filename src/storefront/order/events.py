"""Domain events for the Order and FailedOrder aggregates."""

from protean.fields import Boolean, DateTime, Float, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """An order line was created at checkout."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    order_number = String()
    quantity = Integer(required=True)
    price = Float(required=True)
    payment_method = String(required=True)
    payment_status = String(required=True)
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderDelivered:
    """The order reached the customer."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    payment_status = String(required=True)
    delivered_at = DateTime(required=True)
    return_within_date = DateTime()


@storefront.event(part_of="Order")
class OrderCancelled:
    """The order was cancelled and its stock released."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    reason = String()
    refunded = Boolean(default=False)
    cancelled_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderReturned:
    """The customer returned the order."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    reason = String()
    refunded = Boolean(default=False)
    returned_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderRefunded:
    """A paid order was refunded into the customer's wallet."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    amount = Float(required=True)
    payment_method = String(required=True)
    refunded_at = DateTime(required=True)


@storefront.event(part_of="Order")
class FailedOrderPromoted:
    """A failed checkout was turned into a confirmed order."""

    __version__ = 1

    order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    order_number = String(required=True)
    promoted_at = DateTime(required=True)


@storefront.event(part_of="FailedOrder")
class FailedOrderRecorded:
    """A checkout attempt that never produced an order was kept for follow-up."""

    __version__ = 1

    failed_order_id = Identifier(required=True)
    user_id = Identifier(required=True)
    order_number = String(required=True)
    reason = String()
