"""API module."""

from .feishu_webhook import router as feishu_router
from .admin import router as admin_router

__all__ = ['feishu_router', 'admin_router']
