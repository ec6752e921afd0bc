"""
Notifier Base - Outbound messaging capability used by the invite coordinator.
"""

from abc import ABC, abstractmethod


class Notifier(ABC):
    """
    Posts messages into group chats.
    """

    @abstractmethod
    async def post_invite(self, chat_id: str, text: str, action_token: str, button_text: str) -> str:
        """
        Post an invitation with a single button.

        Pressing the button must come back through the inbound event feed as an
        action event carrying `action_token`.

        Returns:
            str: Reference of the posted message
        """
        pass

    @abstractmethod
    async def post_text(self, chat_id: str, text: str) -> str:
        """
        Post a plain text message.

        Returns:
            str: Reference of the posted message
        """
        pass
