"""
Feishu Webhook API - Inbound event feed of the bot.
Handles the bot being added to a chat and join button presses.
"""

import json
import logging
from fastapi import APIRouter, Depends, Request, HTTPException

from ..channels.feishu import FeishuBot
from ..config import settings
from ..core.logging_config import payload_for_log
from ..core.runtime import AppContext
from ..storage import StoreError
from .deps import get_runtime

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/feishu", tags=["feishu"])

OK_RESPONSE = {"code": 0, "msg": "ok"}

# Track processed event IDs to avoid duplicate processing
_processed_events: set = set()
_MAX_PROCESSED_EVENTS = 1000


def _already_processed(event_id: str) -> bool:
    """Remember an event id; True if it was seen before."""
    if not event_id:
        return False
    if event_id in _processed_events:
        return True
    _processed_events.add(event_id)
    # Prevent unbounded growth
    if len(_processed_events) > _MAX_PROCESSED_EVENTS:
        excess = len(_processed_events) - _MAX_PROCESSED_EVENTS // 2
        for _ in range(excess):
            _processed_events.pop()
    return False


@router.post("/webhook")
async def feishu_webhook(request: Request, ctx: AppContext = Depends(get_runtime)):
    """
    Handle incoming Feishu webhook events.
    """
    raw_body = (await request.body()).decode("utf-8", errors="ignore")
    try:
        body = json.loads(raw_body)
    except json.JSONDecodeError:
        raise HTTPException(status_code=400, detail="Invalid JSON body")

    if settings.log_webhook_payloads and logger.isEnabledFor(logging.DEBUG):
        logger.debug(f"Webhook payload: {payload_for_log(body)}")

    bot = ctx.notifier if isinstance(ctx.notifier, FeishuBot) else None
    event = FeishuBot.parse_event(body)

    # Handle URL verification
    if event["type"] == "url_verification":
        return {"challenge": event["challenge"]}

    # Every other event must carry a valid signature when an encrypt key is configured
    if bot is not None and bot.encrypt_key:
        signature = request.headers.get("X-Lark-Signature", "")
        timestamp = request.headers.get("X-Lark-Request-Timestamp", "")
        nonce = request.headers.get("X-Lark-Request-Nonce", "")
        if not signature or not bot.verify_signature(timestamp, nonce, raw_body, signature):
            logger.warning("Rejected webhook with invalid signature")
            raise HTTPException(status_code=401, detail="Invalid signature")

    header = body.get("header", {})
    if _already_processed(header.get("event_id", "")):
        return OK_RESPONSE

    if event["type"] == "chat_added":
        try:
            await ctx.coordinator.on_chat_added(event["chat_id"], event["title"])
        except StoreError:
            logger.exception(f"Failed to register chat {event['chat_id']}")
        return OK_RESPONSE

    if event["type"] == "action":
        name_parts = list(event["name_parts"])
        if not name_parts and bot is not None and event["member_id"]:
            name = await bot.get_user_name(event["member_id"])
            if name:
                name_parts = [name]

        try:
            ack = await ctx.coordinator.handle_action(
                event["token"],
                member_id=event["member_id"],
                handle=event["handle"],
                name_parts=name_parts,
            )
            toast_type = "info"
        except StoreError:
            logger.exception(f"Failed to process action {event['token']!r} from {event['member_id']}")
            ack = "Something went wrong, please try again."
            toast_type = "error"
        return {"toast": {"type": toast_type, "content": ack}}

    logger.debug(f"Ignoring Feishu event {event.get('event_type')}")
    return OK_RESPONSE
