"""Domain events for the Wallet aggregate."""

from protean.fields import Float, Identifier, String

from storefront.domain import storefront


@storefront.event(part_of="Wallet")
class WalletCredited:
    """Money was added to a customer's wallet."""

    __version__ = 1

    wallet_id = Identifier(required=True)
    user_id = Identifier(required=True)
    amount = Float(required=True)
    balance = Float(required=True)
    description = String(max_length=255)


@storefront.event(part_of="Wallet")
class WalletDebited:
    """Money was taken out of a customer's wallet."""

    __version__ = 1

    wallet_id = Identifier(required=True)
    user_id = Identifier(required=True)
    amount = Float(required=True)
    balance = Float(required=True)
    description = String(max_length=255)
