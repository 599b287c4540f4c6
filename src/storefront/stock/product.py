"""Product aggregate: the catalogue entry whose stock the storefront manages.

Catalogue maintenance (categories, image upload, editing) happens elsewhere;
the storefront only needs the commercial snapshot copied onto orders and the
stock counter that checkout decrements and settlement restores.
"""

import json

from protean.exceptions import ValidationError
from protean.fields import Boolean, Float, Integer, String, Text

from storefront.domain import storefront
from storefront.errors import InsufficientStock
from storefront.stock.events import StockDecremented, StockRestored


@storefront.aggregate
class Product:
    name = String(required=True, max_length=255)
    model = String(max_length=255)
    price = Float(required=True, min_value=0.0)
    images = Text()  # JSON array of {"secure_url": ..., "public_id": ...}
    stock = Integer(default=0, min_value=0)
    return_policy = Boolean(default=False)
    is_soft_deleted = Boolean(default=False)

    @classmethod
    def create(cls, name, price, stock=0, model=None, images=None, return_policy=False):
        return cls(
            name=name,
            model=model,
            price=price,
            stock=stock,
            images=json.dumps(images or []),
            return_policy=return_policy,
        )

    def image_records(self) -> list[dict]:
        return json.loads(self.images) if self.images else []

    def first_image_url(self) -> str | None:
        records = self.image_records()
        return records[0].get("secure_url") if records else None

    def has_stock_for(self, quantity: int) -> bool:
        return quantity <= (self.stock or 0)

    def decrement_stock(self, quantity: int) -> None:
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        if not self.has_stock_for(quantity):
            raise InsufficientStock(self.name, self.stock or 0, quantity)

        self.stock = self.stock - quantity

        self.raise_(
            StockDecremented(
                product_id=str(self.id),
                quantity=quantity,
                remaining=self.stock,
            )
        )

    def restore_stock(self, quantity: int, order_id=None) -> None:
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        self.stock = (self.stock or 0) + quantity

        self.raise_(
            StockRestored(
                product_id=str(self.id),
                quantity=quantity,
                remaining=self.stock,
                order_id=str(order_id) if order_id else None,
            )
        )
