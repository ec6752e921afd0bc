"""
User-visible texts posted by the bot.
"""

from typing import Sequence

INTRO_MESSAGE = (
    "Hi! I'm the Random Coffee bot. Every day I'll post an invitation here. "
    "Press the button to join, and when signup closes I'll split everyone "
    "into small groups for a coffee chat."
)

DAILY_INVITE = (
    "Random Coffee time! Who's in today? "
    "Press the button below to sign up before the window closes."
)

JOIN_BUTTON = "I'm in!"

JOINED_ACK = "You're in! Groups are announced when signup closes."

ALREADY_JOINED_ACK = "You've already signed up for today."

SIGNUP_CLOSED_ACK = "Signup for this round is already closed."

NO_PARTICIPANTS = "Nobody signed up for Random Coffee today. See you tomorrow!"

RESULTS_HEADER = "Random Coffee groups for today:"

PLACEHOLDER_NAME = "Test participant {n}"


def format_groups(groups: Sequence[Sequence[str]]) -> str:
    """Render the results announcement from groups of display names."""
    lines = [RESULTS_HEADER]
    for i, names in enumerate(groups, 1):
        lines.append(f"Group {i}: {', '.join(names)}")
    return "\n".join(lines)
