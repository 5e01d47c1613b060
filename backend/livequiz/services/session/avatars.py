"""Selectable player avatars."""

from __future__ import annotations

import random
from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class Avatar:
    id: str
    name: str
    icon: str
    color: str
    description: str

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict | None) -> "Avatar | None":
        if not data:
            return None
        known = get_avatar(data.get('id'))
        if known is not None:
            return known
        return cls(
            id=data.get('id') or 'custom',
            name=data.get('name') or '',
            icon=data.get('icon') or data.get('emoji') or '',
            color=data.get('color') or '',
            description=data.get('description') or '',
        )


AVATARS: tuple[Avatar, ...] = (
    Avatar('moses', 'Moses', '👨‍🦳', 'blue-indigo', 'The Deliverer'),
    Avatar('david', 'David', '👑', 'yellow-orange', 'The Psalmist King'),
    Avatar('mary', 'Mary', '👸', 'pink-rose', 'Mother of Jesus'),
    Avatar('noah', 'Noah', '🚢', 'green-teal', 'Builder of the Ark'),
    Avatar('abraham', 'Abraham', '👴', 'purple-violet', 'Father of Faith'),
    Avatar('esther', 'Esther', '👸🏽', 'red-pink', 'The Brave Queen'),
    Avatar('solomon', 'Solomon', '👨‍⚖️', 'amber-yellow', 'The Wise King'),
    Avatar('daniel', 'Daniel', '🦁', 'orange-red', 'The Fearless Prophet'),
    Avatar('ruth', 'Ruth', '🌾', 'emerald-green', 'The Faithful Daughter-in-law'),
    Avatar('joshua', 'Joshua', '⚔️', 'slate-gray', 'The Warrior'),
    Avatar('deborah', 'Deborah', '👩‍⚖️', 'cyan-blue', 'The Judge'),
    Avatar('elijah', 'Elijah', '🔥', 'red-orange', 'Prophet of Fire'),
)

_BY_ID = {avatar.id: avatar for avatar in AVATARS}


def get_avatar(avatar_id: str | None) -> Avatar | None:
    if avatar_id is None:
        return None
    return _BY_ID.get(avatar_id)


def pick_random_avatar(rng: random.Random | None = None) -> Avatar:
    """Return a uniformly random avatar from the catalog."""
    return (rng or random).choice(AVATARS)
