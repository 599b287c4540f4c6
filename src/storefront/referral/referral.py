"""Referral rewards: both sides of a successful referral get wallet credit.

A customer can be referred only once. The reward defaults to a random whole
amount inside the configured range and is credited to the referee and the
referrer with a "Referral reward" transaction each.
"""

import random
from datetime import UTC, datetime

import structlog
from protean.exceptions import ValidationError
from protean.fields import DateTime, Float, Identifier
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from storefront import settings
from storefront.domain import storefront
from storefront.utils.locking import process_serialized, wallet_key
from storefront.wallet.wallet import credit_wallet

logger = structlog.get_logger(__name__)

REWARD_DESCRIPTION = "Referral reward"


def random_reward() -> int:
    low, high = settings.referral_reward_range()
    return random.randint(low, high)


@storefront.aggregate
class Referral:
    referrer_id = Identifier(required=True)
    referee_id = Identifier(required=True)
    reward = Float(required=True)
    created_at = DateTime()

    @classmethod
    def create(cls, referrer_id, referee_id, reward):
        if str(referrer_id) == str(referee_id):
            raise ValidationError({"referee_id": ["Customers cannot refer themselves"]})
        if reward is None or reward <= 0:
            raise ValidationError({"reward": ["Referral reward must be positive"]})
        return cls(referrer_id=referrer_id, referee_id=referee_id, reward=reward, created_at=datetime.now(UTC))


@storefront.repository(part_of=Referral)
class ReferralRepository:
    def find_by_referee(self, referee_id) -> Referral | None:
        return self._dao.query.filter(referee_id=str(referee_id)).all().first


@storefront.command(part_of="Referral")
class RewardReferral:
    referrer_id = Identifier(required=True)
    referee_id = Identifier(required=True)
    reward = Float()


@storefront.command_handler(part_of=Referral)
class ReferralCommandHandler:
    @handle(RewardReferral)
    def reward_referral(self, command: RewardReferral) -> dict:
        repo = current_domain.repository_for(Referral)
        if repo.find_by_referee(command.referee_id) is not None:
            raise ValidationError({"referee_id": ["This customer has already been referred"]})

        reward = command.reward if command.reward is not None else random_reward()
        referral = Referral.create(command.referrer_id, command.referee_id, reward)
        repo.add(referral)

        credit_wallet(command.referee_id, reward, REWARD_DESCRIPTION)
        credit_wallet(command.referrer_id, reward, REWARD_DESCRIPTION)

        logger.info(
            "Referral rewarded",
            referrer_id=str(command.referrer_id),
            referee_id=str(command.referee_id),
            reward=reward,
        )
        return {"referral_id": str(referral.id), "reward": reward}


def reward_referral(referrer_id, referee_id, reward=None) -> dict:
    """Process ``RewardReferral`` while holding both wallets' locks."""
    command = RewardReferral(referrer_id=referrer_id, referee_id=referee_id, reward=reward)
    return process_serialized(
        command,
        wallet_key(str(referrer_id)),
        wallet_key(str(referee_id)),
        f"referral:{referee_id}",
    )
