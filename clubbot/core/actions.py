# clubbot/core/actions.py
"""
Identifiants des contrôles interactifs (boutons persistants).

Format: ``cb|<kind>|<id>``. Tout ce qui ne suit pas ce format n'est pas à nous
et ``decode`` renvoie None.
"""
from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Optional

PREFIX = "cb"


class ActionKind(str, Enum):
    CLUB_APPROVE = "club.approve"
    CLUB_REJECT = "club.reject"
    CLUB_JOIN = "club.join"
    JOIN_APPROVE = "join.approve"
    JOIN_REJECT = "join.reject"
    TRANSFER_APPROVE = "transfer.approve"
    TRANSFER_DENY = "transfer.deny"
    EVENT_APPROVE = "event.approve"
    EVENT_REJECT = "event.reject"
    EVENT_JOIN = "event.join"
    EVENT_PREVIEW = "event.preview"


@dataclass(frozen=True)
class Action:
    kind: ActionKind
    entity_id: int

    def encode(self) -> str:
        return f"{PREFIX}|{self.kind.value}|{int(self.entity_id)}"


def encode(kind: ActionKind, entity_id: int) -> str:
    return Action(ActionKind(kind), int(entity_id)).encode()


def decode(custom_id: Optional[str]) -> Optional[Action]:
    if not custom_id:
        return None
    parts = custom_id.split("|")
    if len(parts) != 3 or parts[0] != PREFIX:
        return None
    try:
        kind = ActionKind(parts[1])
    except ValueError:
        return None
    if not parts[2].isdigit():
        return None
    return Action(kind, int(parts[2]))
