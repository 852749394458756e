"""
Session authenticator for anonymous subscriptions.

The store only holds salted bcrypt hashes, so a presented token can never be
looked up directly. Mutations name the subscription id and check one hash;
session bootstrap (no id known yet) has to try every stored hash.
"""

import asyncio
import logging

from app.errors import AuthError, CredentialError
from app.models.subscription import Subscription
from app.services.credentials import TokenHasher
from app.services.subscription_store import SubscriptionStore

logger = logging.getLogger(__name__)


class SessionAuthenticator:
    """Resolves session tokens to subscriptions and authorizes mutations."""

    def __init__(self, store: SubscriptionStore, hasher: TokenHasher):
        self.store = store
        self.hasher = hasher

    async def hash_token(self, token: str) -> str:
        return await asyncio.to_thread(self.hasher.hash, token)

    async def verify_token(self, subscription_id: int, token: str) -> bool:
        """Check ``token`` against the subscription's stored hash.

        Unknown id, wrong token and a token belonging to another subscription
        all return False. An unknown id still pays for one bcrypt comparison.
        """
        subscription = await self.store.get_by_id(subscription_id)
        if subscription is None:
            return await asyncio.to_thread(self.hasher.verify_dummy, token)
        return await asyncio.to_thread(self.hasher.verify, token, subscription.session_token_hash)

    async def authorize(self, subscription_id: int, token: str) -> None:
        """Raise AuthError unless ``token`` owns ``subscription_id``."""
        if not await self.verify_token(subscription_id, token):
            logger.warning("Rejected session token for subscription %s", subscription_id)
            raise AuthError()

    async def find_by_session_token(self, token: str) -> Subscription | None:
        """Scan every subscription for one whose hash matches ``token``.

        Costs one bcrypt comparison per stored row. Keep it off the broadcast path.
        """
        subscriptions = await self.store.list_all()
        match = await asyncio.to_thread(self._scan, token, subscriptions)
        logger.info(
            "Session token scan over %d subscriptions: %s",
            len(subscriptions), "matched" if match else "no match",
        )
        return match

    def _scan(self, token: str, subscriptions: list[Subscription]) -> Subscription | None:
        for subscription in subscriptions:
            try:
                if self.hasher.verify(token, subscription.session_token_hash):
                    return subscription
            except CredentialError:
                logger.error("Subscription %s has a malformed token hash, skipping", subscription.id)
        return None
