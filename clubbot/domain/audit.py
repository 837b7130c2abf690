import logging
from typing import Optional
from ..core.db.base import atomic
from ..persistence import audit as audit_db

log = logging.getLogger(__name__)

# Types stables, lus par l'export et /clubaudit
ACTIONS = frozenset({
    "club_registered", "club_approved", "club_rejected", "club_dissolved",
    "member_joined", "join_request_submitted", "join_request_approved", "join_request_rejected",
    "member_removed", "trusted_member_added", "trusted_member_removed",
    "moderator_added", "moderator_removed",
    "president_transfer_requested", "president_transfer_denied", "president_transferred",
    "event_created", "event_approved", "event_rejected", "event_joined",
    "event_payment_pending", "event_payment_confirmed", "event_completed",
})

def record(guild_id, action_type: str, performed_by, target_id="", details: Optional[dict] = None,
           club_id: Optional[int] = None) -> int:
    if action_type not in ACTIONS:
        raise ValueError(f"type d'audit inconnu: {action_type}")
    with atomic():
        entry_id = audit_db.insert(str(guild_id), action_type, str(performed_by), str(target_id or ""),
                                   details, club_id)
    log.info("audit %s club=%s by=%s target=%s", action_type, club_id, performed_by, target_id)
    return entry_id

def recent(guild_id, club_id: Optional[int] = None, limit: int = 20) -> list[dict]:
    return audit_db.recent(str(guild_id), club_id, limit)

def latest(club_id: int, action_type: str) -> Optional[dict]:
    return audit_db.latest(club_id, action_type)

def describe(entry: dict) -> str:
    """Ligne courte pour /clubaudit."""
    target = f" → <@{entry['target_id']}>" if str(entry.get("target_id") or "").isdigit() else ""
    return f"<t:{int(entry['ts'])}:R> `{entry['action_type']}` par <@{entry['performed_by']}>{target}"
