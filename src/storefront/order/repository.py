"""Query methods over the Order collection."""

from storefront.domain import storefront
from storefront.order.order import Order
from storefront.utils.queries import fetch_all


@storefront.repository(part_of=Order)
class OrderRepository:
    def for_user(self, user_id) -> list[Order]:
        return fetch_all(self._dao.query.filter(user_id=str(user_id)))

    def all_orders(self) -> list[Order]:
        return fetch_all(self._dao.query)

    def by_idempotency_key(self, user_id, idempotency_key) -> list[Order]:
        return fetch_all(self._dao.query.filter(user_id=str(user_id), idempotency_key=idempotency_key))

    def by_order_number(self, order_number) -> list[Order]:
        return fetch_all(self._dao.query.filter(order_number=order_number))
