# clubbot/domain/membership.py
from __future__ import annotations
import logging, sqlite3
from typing import Optional

from clubbot.core.config import settings
from clubbot.core import builders, provisioner
from ..core.db.base import atomic
from ..persistence import clubs as clubs_db, members as members_db
from ..persistence import join_requests as join_db, trusted as trusted_db
from . import audit
from .clubs import refresh_listing
from .errors import ValidationError, ConflictError, AlreadyResolved, CapacityReached, NotFound, Forbidden
from .permissions import Actor, require
from .verification import not_verified_message

log = logging.getLogger(__name__)

FULL_NAME_MAX = 100
REASON_MAX = 500
CONFIRM_TOKEN = "YES"

# ───────── Gardes ─────────

def _club_or_404(club_id: int) -> dict:
    club = clubs_db.get(club_id)
    if club is None:
        raise NotFound("❌ Club introuvable.")
    return club

def _ensure_capacity(club: dict) -> None:
    cap = club.get("max_members")
    if cap and members_db.count_active(club["id"]) >= int(cap):
        raise CapacityReached(f"⚠️ **{club['name']}** est complet ({cap} membres).")

def check_join_gates(club: dict, user_id, verified: bool) -> None:
    """Vérifié → club actif → pas déjà membre → pas de demande en cours → place dispo."""
    uid = str(user_id)
    if not verified:
        raise Forbidden(not_verified_message(), capability="verified")
    if club["status"] != "active":
        raise ConflictError(f"⚠️ **{club['name']}** n'accepte pas de membres pour le moment.")
    if members_db.get_active(club["id"], uid):
        raise ConflictError(f"⚠️ Tu es déjà membre de **{club['name']}**.")
    if join_db.pending_for(club["id"], uid):
        raise ConflictError("⚠️ Tu as déjà une demande en attente pour ce club.")
    _ensure_capacity(club)

def validate_join_form(full_name: str, confirmation: str, reason: str) -> tuple[str, str]:
    full_name = (full_name or "").strip()
    if not full_name or len(full_name) > FULL_NAME_MAX:
        raise ValidationError("❌ Indique ton nom complet.")
    if (confirmation or "").strip().upper() != CONFIRM_TOKEN:
        raise ValidationError(f"❌ Tape **{CONFIRM_TOKEN}** pour confirmer ta demande.")
    reason = (reason or "").strip()
    if len(reason) < settings.join_reason_min_len:
        raise ValidationError(f"❌ Motivation trop courte ({settings.join_reason_min_len} caractères min).")
    if len(reason) > REASON_MAX:
        raise ValidationError(f"❌ Motivation trop longue ({REASON_MAX} caractères max).")
    return full_name, reason

# ───────── Adhésion libre ─────────

async def join_club(guild, member, club_id: int, notifier, *, verified: bool) -> dict:
    club = _club_or_404(club_id)
    check_join_gates(club, member.id, verified)
    if club["require_approval"]:
        raise ConflictError("⚠️ Ce club fonctionne sur demande : utilise le formulaire.")

    uid = str(member.id)
    with atomic():
        _ensure_capacity(club)
        if not members_db.add_active(club_id, uid, str(guild.id), role="member"):
            raise ConflictError(f"⚠️ Tu es déjà membre de **{club['name']}**.")
        audit.record(guild.id, "member_joined", uid, uid, {"mode": "direct"}, club_id=club_id)
    log.info("user %s joined club %s", uid, club_id)

    role, _ = provisioner.club_roles(guild, club)
    await provisioner.grant_roles(member, role, reason=f"Joined {club['name']}")
    if club.get("channel_id"):
        await notifier.send(club["channel_id"], content=f"👋 Bienvenue <@{uid}> dans **{club['name']}** !")
    await refresh_listing(club, notifier)
    return club

# ───────── Adhésion sur demande ─────────

async def submit_join_request(guild, member, club_id: int, notifier, *, verified: bool, full_name: str,
                              confirmation: str, reason: str, email: Optional[str] = None) -> tuple[dict, int]:
    """Crée la demande et la pousse en DM aux responsables. Renvoie (demande, nb DM délivrés)."""
    full_name, reason = validate_join_form(full_name, confirmation, reason)
    club = _club_or_404(club_id)
    check_join_gates(club, member.id, verified)

    uid = str(member.id)
    try:
        with atomic():
            req_id = join_db.create(club_id, uid, str(guild.id), full_name, email, reason)
            audit.record(guild.id, "join_request_submitted", uid, req_id, {"full_name": full_name}, club_id=club_id)
    except sqlite3.IntegrityError:
        raise ConflictError("⚠️ Tu as déjà une demande en attente pour ce club.") from None
    request = join_db.get(req_id)

    delivered = 0
    for leader_id in members_db.leader_ids(club_id):
        ok = await notifier.dm(leader_id, embed=builders.join_request_embed(club, request),
                               view=builders.join_review_view(req_id))
        delivered += int(ok)
    if not delivered:
        log.warning("join request %s: no club leader reachable by DM", req_id)
    return request, delivered

def _load_pending_request(request_id: int, *, active: bool = False) -> tuple[dict, dict]:
    req = join_db.get(request_id)
    if req is None:
        raise NotFound("❌ Demande introuvable.")
    club = require_active_club(req["club_id"]) if active else _club_or_404(req["club_id"])
    return req, club

async def approve_join_request(guild, actor: Actor, request_id: int, notifier) -> dict:
    req, club = _load_pending_request(request_id, active=True)
    require(actor, club["id"], "approve")
    if req["status"] != "pending":
        raise AlreadyResolved("Cette demande", req["status"])

    with atomic():
        _ensure_capacity(require_active_club(club["id"]))
        if not join_db.resolve(request_id, "approved", str(actor.user_id)):
            raise AlreadyResolved("Cette demande", join_db.get(request_id)["status"])
        members_db.add_active(club["id"], req["user_id"], str(guild.id), role="member")
        audit.record(guild.id, "join_request_approved", actor.user_id, req["user_id"],
                     {"request_id": request_id}, club_id=club["id"])
    log.info("join request %s approved by %s", request_id, actor.user_id)

    member = await provisioner.resolve_member(guild, req["user_id"])
    role, _ = provisioner.club_roles(guild, club)
    await provisioner.grant_roles(member, role, reason=f"Joined {club['name']}")
    await notifier.dm(req["user_id"], content=f"✅ Ta demande pour **{club['name']}** a été acceptée !")
    await refresh_listing(club, notifier)
    return join_db.get(request_id)

async def reject_join_request(guild, actor: Actor, request_id: int, notifier) -> dict:
    req, club = _load_pending_request(request_id)
    require(actor, club["id"], "approve")
    if req["status"] != "pending":
        raise AlreadyResolved("Cette demande", req["status"])

    with atomic():
        if not join_db.resolve(request_id, "rejected", str(actor.user_id)):
            raise AlreadyResolved("Cette demande", join_db.get(request_id)["status"])
        audit.record(guild.id, "join_request_rejected", actor.user_id, req["user_id"],
                     {"request_id": request_id}, club_id=club["id"])
    log.info("join request %s rejected by %s", request_id, actor.user_id)
    await notifier.dm(req["user_id"], content=f"❌ Ta demande pour **{club['name']}** a été refusée.")
    return join_db.get(request_id)

# ───────── Gestion ─────────

async def remove_member(guild, actor: Actor, club_id: int, target_id, reason: str, notifier) -> dict:
    require(actor, club_id, "moderate")
    club = _club_or_404(club_id)
    tid = str(target_id)
    if tid == str(club["president_user_id"]):
        raise ValidationError("❌ Le président ne peut pas être retiré. Transfère d'abord la présidence.")
    if tid == str(actor.user_id):
        raise ValidationError("❌ Tu ne peux pas te retirer toi-même.")
    reason = (reason or "").strip()
    if not reason:
        raise ValidationError("❌ Un motif est obligatoire.")
    if len(reason) > REASON_MAX:
        raise ValidationError(f"❌ Motif trop long ({REASON_MAX} caractères max).")

    with atomic():
        if not members_db.mark_removed(club_id, tid, str(actor.user_id), reason):
            raise ConflictError(f"⚠️ <@{tid}> n'est pas membre actif de **{club['name']}**.")
        trusted_db.remove(club_id, tid)
        audit.record(guild.id, "member_removed", actor.user_id, tid, {"reason": reason}, club_id=club_id)
    log.info("user %s removed from club %s by %s", tid, club_id, actor.user_id)

    member = await provisioner.resolve_member(guild, tid)
    role, mod_role = provisioner.club_roles(guild, club)
    await provisioner.revoke_roles(member, role, mod_role, reason=f"Removed from {club['name']}")
    await notifier.dm(tid, content=f"ℹ️ Tu as été retiré(e) de **{club['name']}**.\nMotif : {reason}")
    await refresh_listing(club, notifier)
    return members_db.get(club_id, tid)

def _require_president(actor: Actor, club: dict) -> None:
    if str(actor.user_id) != str(club["president_user_id"]):
        raise Forbidden("⛔ Seul le président du club peut faire ça.", capability="president")

def _active_target(club: dict, target_id) -> dict:
    tid = str(target_id)
    if tid == str(club["president_user_id"]):
        raise ValidationError("❌ Le président a déjà tous les droits.")
    m = members_db.get_active(club["id"], tid)
    if m is None:
        raise ValidationError(f"❌ <@{tid}> doit être membre actif de **{club['name']}**.")
    return m

async def set_trusted(guild, actor: Actor, club_id: int, target_id, trusted: bool, notifier) -> bool:
    club = require_active_club(club_id)
    _require_president(actor, club)
    m = _active_target(club, target_id)
    tid = m["user_id"]

    with atomic():
        if trusted:
            if not trusted_db.add(club_id, tid, str(actor.user_id)):
                raise ConflictError(f"⚠️ <@{tid}> est déjà membre de confiance.")
            if m["role"] == "member":
                members_db.set_role(club_id, tid, "officer")
            audit.record(guild.id, "trusted_member_added", actor.user_id, tid, club_id=club_id)
        else:
            if not trusted_db.remove(club_id, tid):
                raise ConflictError(f"⚠️ <@{tid}> n'est pas membre de confiance.")
            if m["role"] == "officer":
                members_db.set_role(club_id, tid, "member")
            audit.record(guild.id, "trusted_member_removed", actor.user_id, tid, club_id=club_id)
    log.info("trusted=%s for %s in club %s", trusted, tid, club_id)

    text = (f"⭐ Tu es maintenant membre de confiance de **{club['name']}**." if trusted
            else f"ℹ️ Tu n'es plus membre de confiance de **{club['name']}**.")
    await notifier.dm(tid, content=text)
    return trusted

async def set_moderator(guild, actor: Actor, club_id: int, target_id, promote: bool, notifier) -> bool:
    club = require_active_club(club_id)
    _require_president(actor, club)
    m = _active_target(club, target_id)
    tid = m["user_id"]

    with atomic():
        if promote:
            if m["role"] == "moderator":
                raise ConflictError(f"⚠️ <@{tid}> est déjà modérateur.")
            members_db.set_role(club_id, tid, "moderator")
            audit.record(guild.id, "moderator_added", actor.user_id, tid, club_id=club_id)
        else:
            if m["role"] != "moderator":
                raise ConflictError(f"⚠️ <@{tid}> n'est pas modérateur.")
            members_db.set_role(club_id, tid, "officer" if trusted_db.is_trusted(club_id, tid) else "member")
            audit.record(guild.id, "moderator_removed", actor.user_id, tid, club_id=club_id)
    log.info("moderator=%s for %s in club %s", promote, tid, club_id)

    member = await provisioner.resolve_member(guild, tid)
    _, mod_role = provisioner.club_roles(guild, club)
    if promote:
        await provisioner.grant_roles(member, mod_role, reason=f"Moderator of {club['name']}")
        await notifier.dm(tid, content=f"🛡️ Tu es maintenant modérateur de **{club['name']}**.")
    else:
        await provisioner.revoke_roles(member, mod_role, reason=f"No longer moderator of {club['name']}")
        await notifier.dm(tid, content=f"ℹ️ Tu n'es plus modérateur de **{club['name']}**.")
    return promote

def require_active_club(club_id: int) -> dict:
    club = _club_or_404(club_id)
    if club["status"] != "active":
        raise ConflictError(f"⚠️ Le club **{club['name']}** n'est pas actif.")
    return club

def list_members(actor: Actor, club_id: int) -> tuple[dict, list[dict]]:
    require(actor, club_id, "view")
    club = _club_or_404(club_id)
    return club, members_db.list_active(club_id)
