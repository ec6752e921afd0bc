"""
Feishu (Lark) Bot Integration.
Posts invitations as interactive cards and parses the webhook events the
coordinator reacts to: the bot being added to a chat and card button presses.
"""

import hashlib
import hmac
import json
import logging
import time
from typing import Dict, Any, Optional

import httpx

from .base import Notifier

logger = logging.getLogger(__name__)


class FeishuAPIError(Exception):
    """Feishu answered with a non-zero business code."""

    def __init__(self, code: int, msg: str):
        super().__init__(f"Feishu API error {code}: {msg}")
        self.code = code
        self.msg = msg


class FeishuBot(Notifier):
    """
    Feishu (Lark) bot client used as the bot's Notifier.
    """

    TENANT_TOKEN_URL = "https://open.feishu.cn/open-apis/auth/v3/tenant_access_token/internal"
    SEND_MESSAGE_URL = "https://open.feishu.cn/open-apis/im/v1/messages"
    GET_USER_URL = "https://open.feishu.cn/open-apis/contact/v3/users/{open_id}"

    # Refresh the tenant token this many seconds before Feishu expires it
    TOKEN_EXPIRY_MARGIN = 60

    def __init__(self, app_id: str, app_secret: str,
                 verification_token: Optional[str] = None,
                 encrypt_key: Optional[str] = None):
        """
        Initialize Feishu bot.

        Args:
            app_id: Feishu app ID
            app_secret: Feishu app secret
            verification_token: Webhook verification token
            encrypt_key: Key used to sign webhook requests
        """
        self.app_id = app_id
        self.app_secret = app_secret
        self.verification_token = verification_token
        self.encrypt_key = encrypt_key
        self._tenant_access_token: Optional[str] = None
        self._token_expires_at: float = 0.0

    @staticmethod
    def _check(data: Dict[str, Any]) -> Dict[str, Any]:
        code = data.get("code", 0)
        if code != 0:
            raise FeishuAPIError(code, data.get("msg", ""))
        return data

    async def get_tenant_access_token(self) -> str:
        """Fetch a fresh tenant access token."""
        async with httpx.AsyncClient(timeout=30.0) as client:
            resp = await client.post(
                self.TENANT_TOKEN_URL,
                json={"app_id": self.app_id, "app_secret": self.app_secret},
            )
            resp.raise_for_status()
            data = self._check(resp.json())

        self._tenant_access_token = data["tenant_access_token"]
        expire = int(data.get("expire", 7200))
        self._token_expires_at = time.monotonic() + max(0, expire - self.TOKEN_EXPIRY_MARGIN)
        return self._tenant_access_token

    async def _ensure_token(self) -> None:
        if not self._tenant_access_token or (
            self._token_expires_at and time.monotonic() >= self._token_expires_at
        ):
            await self.get_tenant_access_token()

    def _get_auth_headers(self) -> Dict[str, str]:
        """Get headers with tenant access token."""
        return {
            "Authorization": f"Bearer {self._tenant_access_token}",
            "Content-Type": "application/json",
        }

    async def _send(self, chat_id: str, msg_type: str, content: Dict[str, Any]) -> str:
        await self._ensure_token()

        url = f"{self.SEND_MESSAGE_URL}?receive_id_type=chat_id"
        payload = {
            "receive_id": chat_id,
            "msg_type": msg_type,
            "content": json.dumps(content, ensure_ascii=False),
        }

        async with httpx.AsyncClient(timeout=30.0) as client:
            resp = await client.post(url, json=payload, headers=self._get_auth_headers())
            resp.raise_for_status()
            data = self._check(resp.json())

        return data.get("data", {}).get("message_id", "")

    async def send_text_message(self, chat_id: str, text: str) -> str:
        """
        Send a text message to a Feishu chat.

        Returns:
            Message ID of the sent message
        """
        return await self._send(chat_id, "text", {"text": text})

    @staticmethod
    def build_invite_card(text: str, button_text: str, action_token: str) -> Dict[str, Any]:
        """Interactive card with the invitation text and one join button."""
        return {
            "config": {"wide_screen_mode": True},
            "elements": [
                {"tag": "div", "text": {"tag": "lark_md", "content": text}},
                {
                    "tag": "action",
                    "actions": [{
                        "tag": "button",
                        "text": {"tag": "plain_text", "content": button_text},
                        "type": "primary",
                        "value": {"action": action_token},
                    }],
                },
            ],
        }

    async def send_card_message(self, chat_id: str, card: Dict[str, Any]) -> str:
        """
        Send an interactive card to a Feishu chat.

        Returns:
            Message ID of the sent card
        """
        return await self._send(chat_id, "interactive", card)

    async def post_invite(self, chat_id: str, text: str, action_token: str, button_text: str) -> str:
        return await self.send_card_message(chat_id, self.build_invite_card(text, button_text, action_token))

    async def post_text(self, chat_id: str, text: str) -> str:
        return await self.send_text_message(chat_id, text)

    async def get_user_name(self, open_id: str) -> Optional[str]:
        """
        Look up a user's display name. Best effort: None when unavailable
        (missing contact permission, network failure, unknown user).
        """
        try:
            await self._ensure_token()
            url = self.GET_USER_URL.format(open_id=open_id)
            async with httpx.AsyncClient(timeout=10.0) as client:
                resp = await client.get(
                    url, params={"user_id_type": "open_id"}, headers=self._get_auth_headers()
                )
                resp.raise_for_status()
                data = self._check(resp.json())
        except (httpx.HTTPError, FeishuAPIError, KeyError) as e:
            logger.debug(f"User name lookup failed for {open_id}: {e}")
            return None

        return data.get("data", {}).get("user", {}).get("name") or None

    def verify_signature(self, timestamp: str, nonce: str,
                         body: str, signature: str) -> bool:
        """
        Verify the webhook event signature.

        Args:
            timestamp: X-Lark-Request-Timestamp header
            nonce: X-Lark-Request-Nonce header
            body: Raw request body
            signature: X-Lark-Signature header

        Returns:
            True if signature is valid
        """
        if not self.encrypt_key:
            return True

        content = timestamp + nonce + self.encrypt_key + body
        computed = hashlib.sha256(content.encode("utf-8")).hexdigest()
        return hmac.compare_digest(computed, signature)

    @staticmethod
    def parse_event(body: Dict[str, Any]) -> Dict[str, Any]:
        """
        Parse a Feishu webhook event body into a standardized format.

        Returns:
            One of:
              {"type": "url_verification", "challenge"}
              {"type": "chat_added", "chat_id", "title"}
              {"type": "action", "token", "chat_id", "member_id", "handle", "name_parts"}
              {"type": "unknown", "event_type", "raw"}
        """
        if "challenge" in body:
            return {"type": "url_verification", "challenge": body["challenge"]}

        header = body.get("header", {})
        event = body.get("event", {})
        event_type = header.get("event_type", body.get("type", ""))

        if event_type == "im.chat.member.bot.added_v1":
            return {
                "type": "chat_added",
                "chat_id": event.get("chat_id", ""),
                "title": event.get("name", ""),
            }

        if event_type == "card.action.trigger":
            operator = event.get("operator", {})
            value = event.get("action", {}).get("value", {})
            if isinstance(value, str):
                try:
                    value = json.loads(value)
                except json.JSONDecodeError:
                    value = {"action": value}
            return {
                "type": "action",
                "token": value.get("action", "") if isinstance(value, dict) else "",
                "chat_id": event.get("context", {}).get("open_chat_id", ""),
                "member_id": operator.get("open_id", ""),
                "handle": operator.get("user_id", ""),
                "name_parts": [],
            }

        return {"type": "unknown", "event_type": event_type, "raw": body}
