import logging
from clubbot.core.config import settings

log = logging.getLogger(__name__)

_warned = False

def verified_role_id() -> int:
    return settings.verified_role_id

def is_verified(member) -> bool:
    """Vrai si le membre porte le rôle vérifié. Sans rôle configuré, tout le monde passe."""
    global _warned
    rid = settings.verified_role_id
    if not rid:
        if not _warned:
            log.warning("VERIFIED_ROLE_ID non configuré: vérification désactivée")
            _warned = True
        return True
    return any(r.id == rid for r in getattr(member, "roles", []) or [])

def not_verified_message() -> str:
    rid = settings.verified_role_id
    return (f"🔒 Tu dois être vérifié (<@&{rid}>) pour faire ça." if rid
            else "🔒 Tu dois être vérifié pour faire ça.")
