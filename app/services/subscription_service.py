"""
Subscription Service - Applies Whop membership and payment events to Supabase.

Event delivery is not guaranteed exactly-once by the sender, and handling is
not idempotent: a redelivered payment grants credits again.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional

from supabase import Client, create_client

from app.config import get_settings

logger = logging.getLogger(__name__)


USERS_TABLE = "users"

ACTIVATION_ACTIONS = {
    "membership_activated",
    "membership.activated",
    "membership.went_valid",
}
DEACTIVATION_ACTIONS = {
    "membership_deactivated",
    "membership.deactivated",
    "membership.went_invalid",
}
PAYMENT_ACTIONS = {
    "payment_succeeded",
    "payment.succeeded",
}


@dataclass
class WebhookOutcome:
    """Result of handling one webhook event."""

    action: Optional[str]
    user_id: str
    applied: bool


def extract_action(payload: dict[str, Any]) -> Optional[str]:
    """Whop sends the event name as either ``action`` or ``type``."""
    return payload.get("action") or payload.get("type")


def extract_user_id(payload: dict[str, Any]) -> Optional[str]:
    """Find the Whop user id in any of the payload shapes Whop uses."""
    data = payload.get("data") or payload
    if not isinstance(data, dict):
        return None

    user = data.get("user") if isinstance(data.get("user"), dict) else {}
    membership = data.get("membership") if isinstance(data.get("membership"), dict) else {}
    return data.get("user_id") or user.get("id") or membership.get("user_id")


def _extract_plan_id(data: dict[str, Any]) -> Optional[str]:
    membership = data.get("membership") if isinstance(data.get("membership"), dict) else {}
    return data.get("plan_id") or membership.get("plan_id")


class SubscriptionService:
    """
    Handles subscription webhooks against the ``users`` table.

    The Supabase client is synchronous; calls run in the default executor.
    """

    def __init__(self, client: Optional[Client] = None):
        self.settings = get_settings()
        self._client = client

    def _get_client(self) -> Client:
        if self._client is None:
            if not self.settings.supabase_url or not self.settings.supabase_service_role_key:
                raise SubscriptionConfigError("Missing Supabase credentials")
            self._client = create_client(
                self.settings.supabase_url,
                self.settings.supabase_service_role_key,
            )
        return self._client

    async def handle_event(self, payload: dict[str, Any]) -> WebhookOutcome:
        """
        Apply one webhook event.

        Raises:
            SubscriptionConfigError: Supabase is not configured
            MissingUserIdError: The payload carries no user id
            SubscriptionStoreError: A database call failed
        """
        client = self._get_client()

        action = extract_action(payload)
        data = payload.get("data") or payload
        logger.info(f"Received webhook: action={action}")

        user_id = extract_user_id(payload)
        if not user_id:
            logger.error("No user_id found in webhook payload")
            raise MissingUserIdError("Missing user_id")

        if action in ACTIVATION_ACTIONS:
            await self._execute(
                lambda: client.table(USERS_TABLE)
                .update({
                    "subscription_status": "active",
                    "subscription_plan": _extract_plan_id(data),
                })
                .eq("whop_user_id", user_id)
                .execute(),
                "activating membership",
            )
            logger.info(f"User {user_id} subscription activated")
            return WebhookOutcome(action=action, user_id=user_id, applied=True)

        if action in DEACTIVATION_ACTIONS:
            await self._execute(
                lambda: client.table(USERS_TABLE)
                .update({"subscription_status": "inactive", "subscription_plan": None})
                .eq("whop_user_id", user_id)
                .execute(),
                "deactivating membership",
            )
            logger.info(f"User {user_id} subscription deactivated")
            return WebhookOutcome(action=action, user_id=user_id, applied=True)

        if action in PAYMENT_ACTIONS:
            applied = await self._grant_credits(client, user_id)
            return WebhookOutcome(action=action, user_id=user_id, applied=applied)

        logger.info(f"Unhandled webhook action: {action}")
        return WebhookOutcome(action=action, user_id=user_id, applied=False)

    async def _grant_credits(self, client: Client, user_id: str) -> bool:
        grant = self.settings.payment_credit_grant

        # A failed lookup is treated like a missing user: the payment may
        # arrive before the account row exists
        try:
            response = await self._execute(
                lambda: client.table(USERS_TABLE)
                .select("credits")
                .eq("whop_user_id", user_id)
                .limit(1)
                .execute(),
                "fetching user",
            )
            rows = response.data or []
        except SubscriptionStoreError:
            rows = []

        if not rows:
            logger.info(f"User {user_id} not found, skipping credit addition")
            return False

        current_credits = rows[0].get("credits") or 0
        await self._execute(
            lambda: client.table(USERS_TABLE)
            .update({"credits": current_credits + grant})
            .eq("whop_user_id", user_id)
            .execute(),
            "adding credits",
        )
        logger.info(f"Added {grant} credits to user {user_id}")
        return True

    async def _execute(self, query: Callable[[], Any], description: str) -> Any:
        loop = asyncio.get_event_loop()
        try:
            return await loop.run_in_executor(None, query)
        except Exception as e:
            logger.error(f"Error {description}: {e}")
            raise SubscriptionStoreError(f"Database error while {description}") from e


class SubscriptionError(Exception):
    """Exception raised when a subscription webhook cannot be applied."""
    pass


class SubscriptionConfigError(SubscriptionError):
    """Supabase credentials are missing."""
    pass


class MissingUserIdError(SubscriptionError):
    """The webhook payload has no user id."""
    pass


class SubscriptionStoreError(SubscriptionError):
    """A Supabase query failed."""
    pass
