"""
HTTP routes — OAuth redirects / callbacks and the Fitbit webhook.

    GET  /                         health check
    GET  /verified-role            start linking (Discord consent dialog)
    GET  /discord-oauth-callback   Discord redirect → Fitbit consent dialog
    GET  /fitbit-oauth-callback    Fitbit redirect → link + first sync
    GET  /fitbit-webhook           subscriber verification
    POST /fitbit-webhook           subscription notifications
"""

from __future__ import annotations

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response, status
from fastapi.responses import PlainTextResponse, RedirectResponse

from api.dependencies import get_services
from api.signing import sign_value, unsign_value
from core.services import Services
from utils.errors import WebhookPayloadError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["linked-roles"])

STATE_COOKIE = "clientState"


@router.get("/", response_class=PlainTextResponse)
async def index() -> str:
    return "👋"


@router.get("/verified-role")
async def verified_role(services: Services = Depends(get_services)) -> RedirectResponse:
    """
    Linked-roles verification URL configured in the Discord developer
    portal.  Sends the user to Discord's consent dialog and stores the
    signed state in a cookie so the callback can be checked against it.
    """
    request = await services.link_flow.start()
    response = RedirectResponse(request.url, status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        STATE_COOKIE,
        sign_value(request.state, services.settings.cookie_secret),
        max_age=services.settings.state_ttl_seconds,
        httponly=True,
        samesite="lax",
    )
    return response


@router.get("/discord-oauth-callback")
async def discord_oauth_callback(
    request: Request,
    code: str = Query(...),
    state: Optional[str] = Query(None),
    services: Services = Depends(get_services),
) -> RedirectResponse:
    """Discord redirect after consent.  Continues to the Fitbit consent dialog."""
    cookie_state = unsign_value(request.cookies.get(STATE_COOKIE), services.settings.cookie_secret)
    fitbit_request = await services.link_flow.complete_discord(code, state, cookie_state)
    response = RedirectResponse(fitbit_request.url, status_code=status.HTTP_302_FOUND)
    response.delete_cookie(STATE_COOKIE)
    return response


@router.get("/fitbit-oauth-callback", response_class=PlainTextResponse)
async def fitbit_oauth_callback(
    code: str = Query(...),
    state: Optional[str] = Query(None),
    services: Services = Depends(get_services),
) -> str:
    """Fitbit redirect after consent.  Stores tokens, links, pushes metadata."""
    result = await services.link_flow.complete_fitbit(code, state)
    logger.info(
        "Linking complete: Discord %s ↔ Fitbit %s",
        result.discord_user_id,
        result.fitbit_user_id,
    )
    return "You did it!  Now go back to Discord."


@router.get("/fitbit-webhook")
async def verify_fitbit_subscriber(
    verify: str = Query(""),
    services: Services = Depends(get_services),
) -> Response:
    """One-time subscriber verification (Fitbit sends ``?verify=<code>``)."""
    if services.webhook.verify(verify):
        logger.info("Fitbit subscriber verified")
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    return Response(status_code=status.HTTP_404_NOT_FOUND)


@router.post("/fitbit-webhook")
async def fitbit_webhook(
    request: Request,
    services: Services = Depends(get_services),
) -> Response:
    """Subscription notifications — re-sync every owner mentioned."""
    try:
        event = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise WebhookPayloadError(f"Webhook body is not JSON: {exc}") from exc
    if not isinstance(event, (dict, list)):
        raise WebhookPayloadError("Webhook body must be an object or a list")

    outcome = await services.webhook.handle(event)
    logger.info(
        "Webhook handled: %d synced, %d skipped", len(outcome.synced), len(outcome.skipped)
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)
