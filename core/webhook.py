"""
Webhook ingestor — entry point for Fitbit subscription notifications.

Fitbit POSTs a JSON list of notifications; each carries the ``ownerId``
of the Fitbit user whose data changed.  Redelivery is safe: ``sync`` only
ever overwrites the Discord metadata.
"""

from __future__ import annotations

import hmac
import logging
from typing import Any, Dict, List, Union

from pydantic import BaseModel, Field, ValidationError

from core.orchestrator import SyncOrchestrator, SyncResult
from utils.errors import UnlinkedUserError, WebhookPayloadError
from utils.schemas import WebhookNotification

logger = logging.getLogger(__name__)


class WebhookOutcome(BaseModel):
    synced: List[SyncResult] = Field(default_factory=list)
    skipped: List[str] = Field(default_factory=list)


class WebhookIngestor:
    def __init__(self, orchestrator: SyncOrchestrator, verification_code: str = ""):
        self._orchestrator = orchestrator
        self._verification_code = verification_code

    def verify(self, code: str) -> bool:
        """Subscriber verification handshake."""
        if not self._verification_code or not code:
            return False
        return hmac.compare_digest(code, self._verification_code)

    @staticmethod
    def owner_ids(event: Union[Dict[str, Any], List[Dict[str, Any]]]) -> List[str]:
        """Distinct owner ids in delivery order."""
        items = event if isinstance(event, list) else [event]
        if not items:
            raise WebhookPayloadError("Webhook payload carries no notifications")
        try:
            notifications = [WebhookNotification.model_validate(item) for item in items]
        except ValidationError as exc:
            raise WebhookPayloadError(f"Malformed webhook payload: {exc}") from exc
        return list(dict.fromkeys(n.owner_id for n in notifications))

    async def handle(self, event: Union[Dict[str, Any], List[Dict[str, Any]]]) -> WebhookOutcome:
        outcome = WebhookOutcome()
        for owner_id in self.owner_ids(event):
            try:
                outcome.synced.append(await self._orchestrator.sync(owner_id))
            except UnlinkedUserError as exc:
                logger.warning("Webhook for unlinked user skipped: %s", exc)
                outcome.skipped.append(owner_id)
        return outcome
