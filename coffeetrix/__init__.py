"""Coffeetrix - Random Coffee bot for group chats."""

__version__ = "1.0.0"
