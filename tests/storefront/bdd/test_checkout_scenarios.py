"""BDD tests for checkout."""

from protean.exceptions import ValidationError
from pytest_bdd import parsers, scenarios, then, when

scenarios("features/checkout.feature")


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('"{user_id}" checks out {quantity:d} of "{name}" with "{method}" for {total:g}'))
def _(checkout, products, outcome, user_id, quantity, name, method, total):
    try:
        result = checkout(user_id, [{"product_id": products[name].id, "quantity": quantity}], total, payment_method=method)
    except ValidationError as exc:
        outcome["error"] = exc
        return

    outcome["result"] = result
    outcome["order_id"] = result["order_ids"][0]


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse("the checkout succeeds with {count:d} order"))
def _(outcome, count):
    assert outcome["error"] is None
    assert len(outcome["result"]["order_ids"]) == count


@then("the checkout is rejected")
def _(outcome):
    assert isinstance(outcome["error"], ValidationError)
    assert outcome["result"] is None
