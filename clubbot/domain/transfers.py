# clubbot/domain/transfers.py
"""
Transfert de présidence.

- président ou propriétaire du serveur : exécution directe (après confirmation côté UI)
- admin / modérateur serveur : demande persistée, validée par le propriétaire en DM
- tout autre acteur : refus
"""
from __future__ import annotations
import logging, sqlite3
from typing import Optional
import discord

from clubbot.core import builders, provisioner
from ..core.db.base import atomic
from ..persistence import clubs as clubs_db, members as members_db, transfers as transfers_db
from . import audit
from .errors import (ValidationError, ConflictError, AlreadyResolved, NotFound, Forbidden,
                     CollaboratorError)
from .permissions import Actor

log = logging.getLogger(__name__)

DIRECT = "direct"
OWNER_APPROVAL = "owner_approval"


def check_preconditions(club: Optional[dict], candidate_id, candidate_verified: bool) -> None:
    if club is None:
        raise NotFound("❌ Club introuvable.")
    if club["status"] != "active":
        raise ConflictError(f"⚠️ Le club **{club['name']}** n'est pas actif.")
    cid = str(candidate_id)
    if cid == str(club["president_user_id"]):
        raise ValidationError("❌ Ce membre est déjà président du club.")
    if not candidate_verified:
        raise ValidationError("❌ Le nouveau président doit être vérifié.")
    if members_db.get_active(club["id"], cid) is None:
        raise ValidationError(f"❌ <@{cid}> doit être membre actif de **{club['name']}**.")
    other = clubs_db.live_club_for_president(club["guild_id"], cid)
    if other is not None and other["id"] != club["id"]:
        raise ConflictError(f"⚠️ <@{cid}> préside déjà **{other['name']}**.")


def transfer_mode(actor: Actor, club: dict) -> str:
    if actor.is_owner or str(actor.user_id) == str(club["president_user_id"]):
        return DIRECT
    if actor.is_admin or actor.is_server_moderator:
        return OWNER_APPROVAL
    raise Forbidden("⛔ Seul le président, le propriétaire ou l'équipe du serveur peut transférer la présidence.",
                    capability="transfer")


def prepare_transfer(actor: Actor, club_id: int, candidate_id, candidate_verified: bool) -> tuple[dict, str]:
    club = clubs_db.get(club_id)
    check_preconditions(club, candidate_id, candidate_verified)
    return club, transfer_mode(actor, club)


def _apply_transfer(guild_id, club: dict, candidate_id: str, *, initiator_id, approver_id=None,
                    request_id: Optional[int] = None) -> str:
    """Partie base de données. Doit tourner dans un atomic(). Renvoie l'ancien président."""
    old = str(club["president_user_id"])
    members_db.set_role(club["id"], old, "member")
    if not members_db.set_role(club["id"], candidate_id, "president"):
        raise ConflictError(f"⚠️ <@{candidate_id}> n'est plus membre actif du club.")
    try:
        clubs_db.set_president(club["id"], candidate_id)
    except sqlite3.IntegrityError:
        raise ConflictError(f"⚠️ <@{candidate_id}> préside déjà un autre club.") from None
    audit.record(guild_id, "president_transferred", initiator_id, candidate_id,
                 {"from": old, "to": candidate_id, "initiator": str(initiator_id),
                  "approver": str(approver_id) if approver_id else None, "request_id": request_id},
                 club_id=club["id"])
    return old


async def _after_transfer(guild, club_id: int, old_id: str, new_id: str, notifier) -> dict:
    club = clubs_db.get(club_id)
    role, _ = provisioner.club_roles(guild, club)
    try:
        mod_role = await provisioner.ensure_moderator_role(guild, club)
    except discord.HTTPException as e:
        log.warning("moderator role unavailable for club %s: %s", club_id, e)
        mod_role = None
    if mod_role is not None and str(mod_role.id) != str(club.get("moderator_role_id")):
        clubs_db.set_moderator_role(club_id, str(mod_role.id))
    member = await provisioner.resolve_member(guild, new_id)
    await provisioner.grant_roles(member, role, mod_role, reason=f"President of {club['name']}")

    await notifier.dm(new_id, content=f"👑 Tu es maintenant président(e) de **{club['name']}** !")
    await notifier.dm(old_id, content=f"ℹ️ La présidence de **{club['name']}** a été transférée à <@{new_id}>.")
    if club.get("channel_id"):
        await notifier.send(club["channel_id"], content=f"👑 <@{new_id}> est le nouveau président du club !")
    return clubs_db.get(club_id)


async def execute_transfer(guild, actor: Actor, club_id: int, candidate_id, *, candidate_verified: bool,
                           notifier) -> dict:
    """Exécution directe (président / propriétaire). Préconditions revérifiées."""
    club = clubs_db.get(club_id)
    check_preconditions(club, candidate_id, candidate_verified)
    if transfer_mode(actor, club) != DIRECT:
        raise Forbidden("⛔ Ce transfert doit être validé par le propriétaire du serveur.", capability="transfer")
    cid = str(candidate_id)
    with atomic():
        old = _apply_transfer(guild.id, club, cid, initiator_id=actor.user_id)
    log.info("club %s presidency transferred %s → %s by %s", club_id, old, cid, actor.user_id)
    return await _after_transfer(guild, club_id, old, cid, notifier)


async def request_transfer(guild, actor: Actor, club_id: int, candidate_id, *, candidate_verified: bool,
                           reason: str = "", notifier) -> dict:
    club = clubs_db.get(club_id)
    check_preconditions(club, candidate_id, candidate_verified)
    if transfer_mode(actor, club) != OWNER_APPROVAL:
        raise ValidationError("❌ Tu peux effectuer ce transfert directement.")
    if transfers_db.pending_for_club(club_id):
        raise ConflictError("⚠️ Une demande de transfert est déjà en attente pour ce club.")

    role = "admin" if actor.is_admin else "moderator"
    cid = str(candidate_id)
    try:
        with atomic():
            req_id = transfers_db.create(str(guild.id), club_id, str(actor.user_id), role, cid, reason)
            audit.record(guild.id, "president_transfer_requested", actor.user_id, cid,
                         {"request_id": req_id, "initiator_role": role, "reason": reason or ""}, club_id=club_id)
    except sqlite3.IntegrityError:
        raise ConflictError("⚠️ Une demande de transfert est déjà en attente pour ce club.") from None
    request = transfers_db.get(req_id)
    log.info("transfer request %s for club %s by %s", req_id, club_id, actor.user_id)

    delivered = await notifier.dm(guild.owner_id, embed=builders.transfer_request_embed(club, request),
                                  view=builders.transfer_review_view(req_id))
    if not delivered:
        with atomic():
            if transfers_db.resolve(req_id, "denied", "system"):
                audit.record(guild.id, "president_transfer_denied", "system", cid,
                             {"request_id": req_id, "reason": "owner_unreachable"}, club_id=club_id)
        raise CollaboratorError("❌ Impossible de joindre le propriétaire du serveur en DM : demande annulée.")
    return request


async def resolve_transfer_request(guild, actor: Actor, request_id: int, approve: bool, notifier, *,
                                   candidate_verified: bool) -> dict:
    if not actor.is_owner:
        raise Forbidden("⛔ Seul le propriétaire du serveur peut valider ce transfert.", capability="owner")
    req = transfers_db.get(request_id)
    if req is None:
        raise NotFound("❌ Demande de transfert introuvable.")
    if req["status"] != "pending":
        raise AlreadyResolved("Cette demande de transfert", req["status"])
    club = clubs_db.get(req["club_id"])
    cid = req["candidate_id"]

    if approve:
        check_preconditions(club, cid, candidate_verified)
        with atomic():
            if not transfers_db.resolve(request_id, "approved", str(actor.user_id)):
                raise AlreadyResolved("Cette demande de transfert", transfers_db.get(request_id)["status"])
            old = _apply_transfer(guild.id, club, cid, initiator_id=req["initiator_id"],
                                  approver_id=actor.user_id, request_id=request_id)
        log.info("transfer request %s approved by owner; club %s %s → %s", request_id, club["id"], old, cid)
        await _after_transfer(guild, club["id"], old, cid, notifier)
        await notifier.dm(req["initiator_id"],
                          content=f"✅ Le transfert de **{club['name']}** vers <@{cid}> a été approuvé.")
    else:
        with atomic():
            if not transfers_db.resolve(request_id, "denied", str(actor.user_id)):
                raise AlreadyResolved("Cette demande de transfert", transfers_db.get(request_id)["status"])
            audit.record(guild.id, "president_transfer_denied", actor.user_id, cid,
                         {"request_id": request_id}, club_id=req["club_id"])
        log.info("transfer request %s denied by owner", request_id)
        name = club["name"] if club else "?"
        await notifier.dm(req["initiator_id"], content=f"❌ Le transfert de **{name}** a été refusé par le propriétaire.")
    return transfers_db.get(request_id)
