"""
Qui peut faire quoi sur un club.

Ordre (le premier qui matche gagne) :
propriétaire du serveur → admin serveur → président → modérateur du club
→ membre de confiance / officer (post, approve) → membre actif (view) → refus.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional

from clubbot.core.config import settings
from ..persistence import clubs as clubs_db, members as members_db, trusted as trusted_db
from .errors import Forbidden

ACTIONS = ("view", "post", "moderate", "approve")

_OFFICER_ACTIONS = ("view", "post", "approve")

_LABELS = {
    "view": "voir ce club",
    "post": "publier pour ce club",
    "moderate": "modérer ce club",
    "approve": "valider les demandes de ce club",
}


@dataclass(frozen=True)
class Actor:
    user_id: int
    is_owner: bool = False
    is_admin: bool = False
    is_server_moderator: bool = False
    can_manage_guild: bool = False
    role_ids: frozenset = frozenset()

    @classmethod
    def from_member(cls, member) -> "Actor":
        role_ids = frozenset(r.id for r in (getattr(member, "roles", None) or []))
        perms = getattr(member, "guild_permissions", None)
        guild = getattr(member, "guild", None)
        is_admin = bool(perms and perms.administrator) or (
            bool(settings.admin_role_id) and settings.admin_role_id in role_ids)
        return cls(
            user_id=member.id,
            is_owner=guild is not None and guild.owner_id == member.id,
            is_admin=is_admin,
            is_server_moderator=bool(settings.moderator_role_id) and settings.moderator_role_id in role_ids,
            can_manage_guild=bool(perms and perms.manage_guild),
            role_ids=role_ids,
        )

    @property
    def uid(self) -> str:
        return str(self.user_id)

    @property
    def is_server_staff(self) -> bool:
        return self.is_owner or self.is_admin or self.is_server_moderator

    @property
    def can_review_clubs(self) -> bool:
        return self.is_owner or self.is_admin or self.can_manage_guild


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str
    level: str

    def __bool__(self) -> bool:
        return self.allowed


def resolve(actor: Actor, club: Optional[dict], membership: Optional[dict],
            is_trusted: bool, action: str) -> Decision:
    if action not in ACTIONS:
        raise ValueError(f"action inconnue: {action}")
    if club is None:
        return Decision(False, "Club introuvable.", "none")

    if actor.is_owner:
        return Decision(True, "Propriétaire du serveur", "owner")
    if actor.is_admin:
        return Decision(True, "Administrateur du serveur", "admin")
    if str(club.get("president_user_id")) == actor.uid:
        return Decision(True, "Président du club", "president")

    active = bool(membership) and membership.get("status") == "active"
    mod_role = club.get("moderator_role_id")
    holds_mod_role = bool(mod_role) and str(mod_role).isdigit() and int(mod_role) in actor.role_ids
    if holds_mod_role or (active and membership.get("role") == "moderator"):
        return Decision(True, "Modérateur du club", "moderator")

    if active and (is_trusted or membership.get("role") == "officer"):
        if action in _OFFICER_ACTIONS:
            return Decision(True, "Membre de confiance", "officer")
        return Decision(False, f"Les membres de confiance ne peuvent pas {_LABELS[action]}.", "officer")

    if active:
        if action == "view":
            return Decision(True, "Membre du club", "member")
        return Decision(False, f"Il faut être responsable du club pour {_LABELS[action]}.", "member")

    return Decision(False, "Tu n'es pas membre de ce club.", "none")


def check(actor: Actor, club_id: int, action: str) -> Decision:
    """Charge les lignes nécessaires puis résout. Ne lève jamais pour un club/membre absent."""
    club = clubs_db.get(club_id)
    if club is None:
        return Decision(False, "Club introuvable.", "none")
    membership = members_db.get(club_id, actor.uid)
    trusted = bool(membership) and trusted_db.is_trusted(club_id, actor.uid)
    return resolve(actor, club, membership, trusted, action)


def require(actor: Actor, club_id: int, action: str) -> Decision:
    decision = check(actor, club_id, action)
    if not decision.allowed:
        raise Forbidden(f"⛔ {decision.reason}", capability=action)
    return decision


def require_club_reviewer(actor: Actor) -> None:
    if not actor.can_review_clubs:
        raise Forbidden("⛔ Il faut la permission *Gérer le serveur* pour traiter les clubs.", capability="manage_guild")


def require_event_reviewer(actor: Actor) -> None:
    if not actor.is_server_staff:
        raise Forbidden("⛔ Seule l'équipe du serveur peut valider les événements.", capability="review_events")


def require_server_admin(actor: Actor) -> None:
    if not (actor.is_owner or actor.is_admin):
        raise Forbidden("⛔ Réservé aux administrateurs du serveur.", capability="admin")
