"""
Webhook Router - Whop subscription events.
"""

import logging
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from fastapi.responses import JSONResponse

from app.schemas.responses import WebhookAckResponse
from app.services.subscription_service import (
    MissingUserIdError,
    SubscriptionConfigError,
    SubscriptionService,
    SubscriptionStoreError,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Webhooks"])


async def get_subscription_service(request: Request) -> SubscriptionService:
    """Get the subscription service from app state (initialized at startup)."""
    service = getattr(request.app.state, "subscription_service", None)
    if service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Subscription service not initialized",
        )
    return service


@router.post("/whop-webhook", response_model=WebhookAckResponse)
async def whop_webhook(
    payload: dict[str, Any] = Body(...),
    subscriptions: SubscriptionService = Depends(get_subscription_service),
):
    """
    Apply a Whop membership or payment event.

    Unknown actions are acknowledged without changes.
    """
    try:
        outcome = await subscriptions.handle_event(payload)
    except SubscriptionConfigError as e:
        logger.error(f"Webhook configuration error: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Server configuration error",
        )
    except MissingUserIdError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing user_id",
        )
    except SubscriptionStoreError:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Database error",
        )
    except Exception as e:
        logger.exception(f"Webhook error: {e}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error", "message": str(e) or "Unknown error"},
        )

    return WebhookAckResponse(success=True, action=outcome.action, user_id=outcome.user_id)
