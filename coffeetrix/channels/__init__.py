"""Channels module - outbound notifier contract and the Feishu implementation."""

from .base import Notifier
from .feishu import FeishuBot, FeishuAPIError

__all__ = ['Notifier', 'FeishuBot', 'FeishuAPIError']
