"""Domain events for the Product aggregate and stock compensation."""

from protean.fields import Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Product")
class StockDecremented:
    """Units of a product were taken out of stock by a checkout."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    remaining = Integer(required=True)


@storefront.event(part_of="Product")
class StockRestored:
    """Units of a product were put back after a cancellation or return."""

    __version__ = 1

    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    remaining = Integer(required=True)
    order_id = Identifier()


@storefront.event(part_of="StockRestoration")
class StockRestorationDeferred:
    """A stock restore could not be applied and was recorded for retry."""

    __version__ = 1

    restoration_id = Identifier(required=True)
    order_id = Identifier(required=True)
    product_id = Identifier(required=True)
    quantity = Integer(required=True)
    reason = String()
