"""
Group Partitioner - Splits the members of a session into small groups.

Members are shuffled and then consumed left to right in chunks of 2 or 3,
chosen so that a group of one never appears unless the input itself has a
single member:

    remaining == 1 -> join the last group (or form a lone group if none yet)
    remaining in (2, 4) -> take 2
    otherwise -> take 3
"""

import random
from dataclasses import dataclass, field
from typing import Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Group(Generic[T]):
    """An unordered set of members meeting together."""
    members: List[T] = field(default_factory=list)

    @property
    def size(self) -> int:
        return len(self.members)


def make_groups(members: Iterable[T], rng: Optional[random.Random] = None) -> List[Group[T]]:
    """
    Partition members into groups of 2-3.

    Args:
        members: Members to partition; the caller's collection is not modified
        rng: Shuffle source, seed it for reproducible groupings

    Returns:
        List of groups. Empty for no members, a single one-member group for
        exactly one member, otherwise groups of size 2 or 3.
    """
    pool = list(members)
    if not pool:
        return []

    if rng is None:
        rng = random.Random()
    rng.shuffle(pool)

    groups: List[Group[T]] = []
    i = 0
    n = len(pool)
    while i < n:
        remaining = n - i
        if remaining == 1:
            if groups:
                groups[-1].members.append(pool[i])
            else:
                groups.append(Group(members=[pool[i]]))
            break
        # 4 left would otherwise become 3 + 1
        step = 2 if remaining in (2, 4) else 3
        groups.append(Group(members=pool[i:i + step]))
        i += step

    return groups
