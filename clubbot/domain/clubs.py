# clubbot/domain/clubs.py
from __future__ import annotations
import logging, sqlite3
from typing import Optional

from clubbot.core.config import settings
from clubbot.core import builders, provisioner
from ..core.db.base import atomic
from ..persistence import clubs as clubs_db, members as members_db
from . import audit
from .errors import ValidationError, ConflictError, AlreadyResolved, NotFound, Forbidden, ProvisioningError
from .permissions import Actor, require_club_reviewer, require_server_admin
from .text import slugify, parse_contact, is_http_url
from .verification import not_verified_message

log = logging.getLogger(__name__)

CATEGORIES = ("technical", "cultural", "sports", "social_service", "academic", "general")
NAME_MAX = 50
DESCRIPTION_MAX = 500

# ───────── Inscription ─────────

def _unique_slug(guild_id: str, name: str) -> str:
    base = slugify(name)
    slug, n = base, 1
    while clubs_db.slug_exists(guild_id, slug):
        n += 1
        slug = f"{base}-{n}"
    return slug

def validate_registration(name: str, description: str = "", category: str = "general",
                          contact: str = "", logo_url: Optional[str] = None,
                          max_members: Optional[int] = None) -> dict:
    name = (name or "").strip()
    if not name:
        raise ValidationError("❌ Le nom du club est obligatoire.")
    if len(name) > NAME_MAX:
        raise ValidationError(f"❌ Nom trop long ({NAME_MAX} caractères max).")
    description = (description or "").strip()
    if len(description) > DESCRIPTION_MAX:
        raise ValidationError(f"❌ Description trop longue ({DESCRIPTION_MAX} caractères max).")
    category = (category or "general").strip().lower()
    if category not in CATEGORIES:
        raise ValidationError(f"❌ Catégorie inconnue. Choix : {', '.join(CATEGORIES)}.")
    try:
        parsed = parse_contact(contact)
    except ValueError as e:
        raise ValidationError(f"❌ Email invalide : `{e}`.") from None
    logo_url = (logo_url or "").strip() or None
    if logo_url and not is_http_url(logo_url):
        raise ValidationError("❌ Le logo doit être une URL http(s).")
    if max_members is not None and int(max_members) <= 0:
        raise ValidationError("❌ La limite de membres doit être positive.")
    return {
        "name": name, "description": description, "category": category, "logo_url": logo_url,
        "contact_email": parsed["email"], "contact_phone": parsed["phone"], "website_url": parsed["website"],
        "max_members": int(max_members) if max_members is not None else None,
    }

def register_club(guild_id, proposer_id, *, verified: bool, name: str, description: str = "",
                  category: str = "general", contact: str = "", logo_url: Optional[str] = None,
                  max_members: Optional[int] = None, require_approval: bool = False) -> dict:
    """Crée le club en `pending`. Lève ValidationError / ConflictError / Forbidden."""
    if not verified:
        raise Forbidden(not_verified_message(), capability="verified")
    fields = validate_registration(name, description, category, contact, logo_url, max_members)
    gid, uid = str(guild_id), str(proposer_id)

    if clubs_db.find_by_name(gid, fields["name"]):
        raise ConflictError(f"⚠️ Un club nommé **{fields['name']}** existe déjà.")
    if clubs_db.live_club_for_president(gid, uid):
        raise ConflictError("⚠️ Tu as déjà un club en attente ou actif.")

    try:
        with atomic():
            slug = _unique_slug(gid, fields["name"])
            club_id = clubs_db.create(gid, fields.pop("name"), slug, uid,
                                      require_approval=require_approval, **fields)
            audit.record(gid, "club_registered", uid, club_id, {"slug": slug}, club_id=club_id)
    except sqlite3.IntegrityError:
        # Course perdue sur l'index président/slug
        raise ConflictError("⚠️ Tu as déjà un club en attente ou actif.") from None

    log.info("club %s registered by %s", club_id, uid)
    return clubs_db.get(club_id)

async def submit_registration(guild_id, proposer_id, notifier, *, verified: bool, **fields) -> tuple[dict, bool]:
    """Inscription + envoi sur le salon de validation. Renvoie (club, routé?)."""
    club = register_club(guild_id, proposer_id, verified=verified, **fields)
    if not settings.approval_channel_id:
        log.warning("APPROVAL_CHANNEL_ID not configured; club %s stays pending", club["id"])
        return club, False
    msg = await notifier.send(settings.approval_channel_id, embed=builders.club_review_embed(club),
                              view=builders.club_review_view(club["id"]))
    return club, msg is not None

# ───────── Validation ─────────

def _load_pending(club_id: int) -> dict:
    club = clubs_db.get(club_id)
    if club is None:
        raise NotFound("❌ Club introuvable.")
    if club["status"] != "pending":
        raise AlreadyResolved(f"Le club **{club['name']}**", club["status"])
    return club

async def approve_club(guild, actor: Actor, club_id: int, notifier) -> dict:
    require_club_reviewer(actor)
    club = _load_pending(club_id)

    result = await provisioner.ensure_club_infrastructure(guild, club)
    if not result.ok:
        raise ProvisioningError(result.error)

    with atomic():
        if not clubs_db.activate(club_id, role_id=str(result.role.id),
                                 moderator_role_id=str(result.moderator_role.id),
                                 category_id=str(result.category.id) if result.category else None,
                                 channel_id=str(result.text_channel.id),
                                 voice_channel_id=str(result.voice_channel.id)):
            current = clubs_db.get(club_id)
            raise AlreadyResolved(f"Le club **{club['name']}**", current["status"] if current else "?")
        members_db.add_active(club_id, club["president_user_id"], str(guild.id), role="president")
        audit.record(guild.id, "club_approved", actor.user_id, club_id,
                     {"role_id": str(result.role.id), "channel_id": str(result.text_channel.id)}, club_id=club_id)
    log.info("club %s approved by %s", club_id, actor.user_id)

    club = clubs_db.get(club_id)
    president = await provisioner.resolve_member(guild, club["president_user_id"])
    await provisioner.grant_roles(president, result.role, result.moderator_role, reason=f"President of {club['name']}")

    if settings.clubs_channel_id:
        msg = await notifier.send(settings.clubs_channel_id,
                                  embed=builders.club_listing_embed(club, members_db.count_active(club_id)),
                                  view=builders.club_join_view(club_id))
        if msg is not None:
            clubs_db.set_listing_message(club_id, str(msg.id))
    await notifier.send(result.text_channel.id, embed=builders.club_welcome_embed(club))
    await notifier.dm(club["president_user_id"],
                      content=f"🎉 Ton club **{club['name']}** a été approuvé ! Salon : <#{result.text_channel.id}>")
    return clubs_db.get(club_id)

async def reject_club(guild_id, actor: Actor, club_id: int, notifier, reason: str = "") -> dict:
    require_club_reviewer(actor)
    club = _load_pending(club_id)
    with atomic():
        if not clubs_db.transition(club_id, "pending", "rejected"):
            current = clubs_db.get(club_id)
            raise AlreadyResolved(f"Le club **{club['name']}**", current["status"] if current else "?")
        audit.record(guild_id, "club_rejected", actor.user_id, club_id,
                     {"name": club["name"], "reason": reason or ""}, club_id=club_id)
    log.info("club %s rejected by %s", club_id, actor.user_id)
    msg = f"❌ Ta demande de club **{club['name']}** a été refusée."
    if reason:
        msg += f"\nMotif : {reason}"
    await notifier.dm(club["president_user_id"], content=msg)
    return clubs_db.get(club_id)

def dissolve_club(guild_id, actor: Actor, club_id: int, reason: str = "") -> dict:
    require_server_admin(actor)
    club = clubs_db.get(club_id)
    if club is None:
        raise NotFound("❌ Club introuvable.")
    with atomic():
        if not clubs_db.transition(club_id, "active", "dissolved"):
            raise ConflictError(f"⚠️ Seul un club actif peut être dissous (statut : **{club['status']}**).")
        audit.record(guild_id, "club_dissolved", actor.user_id, club_id,
                     {"name": club["name"], "reason": reason or ""}, club_id=club_id)
    log.info("club %s dissolved by %s", club_id, actor.user_id)
    return clubs_db.get(club_id)

# ───────── Lecture ─────────

def find_club(guild_id, ident: str) -> dict:
    club = clubs_db.find_by_identifier(str(guild_id), ident)
    if club is None:
        raise NotFound(f"❌ Aucun club trouvé pour `{ident}`.")
    return club

def require_active(club: dict) -> dict:
    if club["status"] != "active":
        raise ConflictError(f"⚠️ Le club **{club['name']}** n'est pas actif (statut : **{club['status']}**).")
    return club

def browse(guild_id) -> list[dict]:
    return clubs_db.list_by_status(str(guild_id), "active")

def pending(guild_id) -> list[dict]:
    return clubs_db.list_by_status(str(guild_id), "pending")

def my_clubs(guild_id, user_id) -> list[dict]:
    return clubs_db.list_for_member(str(guild_id), str(user_id))

def info(guild_id, ident: str) -> tuple[dict, int]:
    club = find_club(guild_id, ident)
    return club, members_db.count_active(club["id"])

async def refresh_listing(club: dict, notifier) -> bool:
    """Met à jour le compteur de membres sur l'annonce publique."""
    if not (settings.clubs_channel_id and club.get("listing_message_id")):
        return False
    return await notifier.edit(settings.clubs_channel_id, club["listing_message_id"],
                               embed=builders.club_listing_embed(club, members_db.count_active(club["id"])),
                               view=builders.club_join_view(club["id"]))

async def refresh_listings(guild_id, notifier) -> int:
    """Resynchronise les annonces publiques de tous les clubs actifs. Renvoie le nombre mis à jour."""
    done = 0
    for club in clubs_db.list_by_status(str(guild_id), "active", limit=1000):
        done += int(await refresh_listing(club, notifier))
    return done
