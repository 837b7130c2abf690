# clubbot/domain/events.py
from __future__ import annotations
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from clubbot.core.config import settings
from clubbot.core import builders
from ..core.db.base import atomic
from ..persistence import clubs as clubs_db, events as events_db
from ..persistence import participants as participants_db, registrations as registrations_db
from . import audit
from .clock import parse_event_datetime, parse_deadline, now_local
from .errors import ValidationError, ConflictError, AlreadyResolved, CapacityReached, NotFound, Forbidden
from .permissions import Actor, require, require_event_reviewer, require_server_admin
from .text import is_http_url
from .verification import not_verified_message

log = logging.getLogger(__name__)

EVENT_TYPES = ("workshop", "seminar", "competition", "social", "meeting", "cultural", "sports", "other")
LOCATION_TYPES = ("physical", "virtual", "hybrid")
ELIGIBILITY_GROUPS = ("faculty", "batch")
TITLE_MAX = 100
DESCRIPTION_MAX = 2000

# Issues possibles d'un join
JOINED = "joined"
EXTERNAL_FORM = "external_form"
PAYMENT_REQUIRED = "payment_required"


@dataclass
class JoinOutcome:
    kind: str
    event: dict
    going: int = 0
    full: bool = False
    url: Optional[str] = None


# ───────── Validation ─────────

def _opt_int(value, label: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        n = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"❌ {label} doit être un nombre.") from None
    if n <= 0:
        raise ValidationError(f"❌ {label} doit être positif.")
    return n

def _opt_url(value, label: str) -> Optional[str]:
    v = (value or "").strip()
    if not v:
        return None
    if not is_http_url(v):
        raise ValidationError(f"❌ {label} doit être une URL http(s).")
    return v

def clean_eligibility(raw: Optional[dict]) -> dict:
    out = {}
    for group, ids in (raw or {}).items():
        if group not in ELIGIBILITY_GROUPS:
            raise ValidationError(f"❌ Critère d'éligibilité inconnu : `{group}`.")
        clean = [str(i).strip() for i in (ids or []) if str(i).strip()]
        if any(not i.isdigit() for i in clean):
            raise ValidationError("❌ Les critères d'éligibilité doivent être des ids de rôles.")
        if clean:
            out[group] = clean
    return out

def is_eligible(criteria: dict, role_ids) -> bool:
    """Un rôle parmi chaque groupe; tous les groupes non vides sont requis."""
    have = {str(r) for r in role_ids}
    return all(any(str(r) in have for r in ids) for ids in (criteria or {}).values() if ids)

def validate_event(*, title: str, event_type: str = "other", date: str, start_time: str, end_time: str = "",
                   description: str = "", venue: str = "", meeting_link: str = "", location_type: str = "physical",
                   min_participants=None, max_participants=None, registration_required: bool = False,
                   registration_deadline: Optional[str] = None, registration_fee=0,
                   external_form_url: Optional[str] = None, is_team_event: bool = False,
                   team_size_min=None, team_size_max=None, require_captain: bool = False,
                   eligibility: Optional[dict] = None, visibility: str = "guild",
                   poster_url: Optional[str] = None, now: Optional[datetime] = None) -> dict:
    now = now or now_local()
    title = (title or "").strip()
    if not title or len(title) > TITLE_MAX:
        raise ValidationError(f"❌ Titre obligatoire ({TITLE_MAX} caractères max).")
    description = (description or "").strip()
    if len(description) > DESCRIPTION_MAX:
        raise ValidationError(f"❌ Description trop longue ({DESCRIPTION_MAX} caractères max).")
    event_type = (event_type or "other").strip().lower()
    if event_type not in EVENT_TYPES:
        raise ValidationError(f"❌ Type inconnu. Choix : {', '.join(EVENT_TYPES)}.")

    try:
        when = parse_event_datetime(date, start_time)
    except ValueError:
        raise ValidationError("❌ Date/heure invalide (format `YYYY-MM-DD` et `HH:MM`).") from None
    if when <= now:
        raise ValidationError("❌ L'événement doit être dans le futur.")
    end_time = (end_time or "").strip()
    if end_time:
        try:
            parse_event_datetime(date, end_time)
        except ValueError:
            raise ValidationError("❌ Heure de fin invalide (format `HH:MM`).") from None

    location_type = (location_type or "physical").strip().lower()
    if location_type not in LOCATION_TYPES:
        raise ValidationError(f"❌ Lieu : {', '.join(LOCATION_TYPES)}.")
    venue = (venue or "").strip()
    meeting_link = (meeting_link or "").strip()
    if location_type in ("virtual", "hybrid") and not meeting_link:
        raise ValidationError("❌ Un lien de réunion est requis pour un événement en ligne.")
    if location_type in ("physical", "hybrid") and not venue:
        raise ValidationError("❌ Un lieu est requis pour un événement en présentiel.")
    if meeting_link and not is_http_url(meeting_link):
        raise ValidationError("❌ Le lien de réunion doit être une URL http(s).")

    min_p = _opt_int(min_participants, "Le minimum de participants")
    max_p = _opt_int(max_participants, "Le maximum de participants")
    if min_p and max_p and min_p > max_p:
        raise ValidationError("❌ Le minimum dépasse le maximum de participants.")

    deadline = (registration_deadline or "").strip() or None
    if deadline:
        try:
            dl = parse_deadline(deadline)
        except ValueError:
            raise ValidationError("❌ Date limite invalide (`YYYY-MM-DD` ou `YYYY-MM-DD HH:MM`).") from None
        if dl.date() > when.date() or (len(deadline) > 10 and dl > when):
            raise ValidationError("❌ La date limite d'inscription dépasse la date de l'événement.")

    try:
        fee = int(registration_fee or 0)
    except (TypeError, ValueError):
        raise ValidationError("❌ Les frais doivent être un nombre.") from None
    if fee < 0:
        raise ValidationError("❌ Les frais ne peuvent pas être négatifs.")

    t_min = t_max = None
    if is_team_event:
        t_min = _opt_int(team_size_min, "La taille d'équipe minimale")
        t_max = _opt_int(team_size_max, "La taille d'équipe maximale")
        if t_min and t_max and t_min > t_max:
            raise ValidationError("❌ Taille d'équipe : minimum > maximum.")

    visibility = (visibility or "guild").strip().lower()
    if visibility not in ("club", "guild"):
        raise ValidationError("❌ Visibilité : `club` ou `guild`.")

    return {
        "title": title, "description": description, "event_type": event_type,
        "event_date": when.strftime("%Y-%m-%d"), "start_time": when.strftime("%H:%M"), "end_time": end_time,
        "venue": venue, "meeting_link": meeting_link, "location_type": location_type,
        "min_participants": min_p, "max_participants": max_p,
        "registration_required": bool(registration_required), "registration_deadline": deadline,
        "registration_fee": fee, "external_form_url": _opt_url(external_form_url, "Le formulaire externe"),
        "is_team_event": bool(is_team_event), "team_size_min": t_min, "team_size_max": t_max,
        "require_captain": bool(require_captain and is_team_event), "visibility": visibility,
        "poster_url": _opt_url(poster_url, "L'affiche"),
        "eligibility": clean_eligibility(eligibility),
    }

# ───────── Création / validation ─────────

def _event_or_404(event_id: int) -> dict:
    ev = events_db.get(event_id)
    if ev is None:
        raise NotFound("❌ Événement introuvable.")
    return ev

def create_event(guild_id, actor: Actor, club_id: int, **fields) -> dict:
    require(actor, club_id, "post")
    club = clubs_db.get(club_id)
    if club["status"] != "active":
        raise ConflictError(f"⚠️ Le club **{club['name']}** n'est pas actif.")
    clean = validate_event(**fields)
    eligibility = clean.pop("eligibility")
    with atomic():
        event_id = events_db.create(club_id, str(guild_id), str(actor.user_id), eligibility, **clean)
        audit.record(guild_id, "event_created", actor.user_id, event_id, {"title": clean["title"]}, club_id=club_id)
    log.info("event %s created for club %s by %s", event_id, club_id, actor.user_id)
    return events_db.get(event_id)

async def submit_event(guild_id, actor: Actor, club_id: int, notifier, **fields) -> tuple[dict, bool]:
    ev = create_event(guild_id, actor, club_id, **fields)
    if not settings.approval_channel_id:
        log.warning("APPROVAL_CHANNEL_ID not configured; event %s stays pending", ev["id"])
        return ev, False
    club = clubs_db.get(club_id)
    msg = await notifier.send(settings.approval_channel_id, embed=builders.event_embed(ev, club),
                              view=builders.event_review_view(ev["id"]))
    return ev, msg is not None

async def approve_event(guild, actor: Actor, event_id: int, notifier) -> tuple[dict, bool]:
    """Renvoie (événement, annonce publiée ?). Un échec d'annonce n'annule pas l'approbation."""
    require_event_reviewer(actor)
    ev = _event_or_404(event_id)
    if ev["status"] != "pending":
        raise AlreadyResolved(f"L'événement **{ev['title']}**", ev["status"])
    with atomic():
        if not events_db.approve(event_id, str(actor.user_id)):
            raise AlreadyResolved(f"L'événement **{ev['title']}**", events_db.get(event_id)["status"])
        audit.record(guild.id, "event_approved", actor.user_id, event_id, club_id=ev["club_id"])
    log.info("event %s approved by %s", event_id, actor.user_id)

    ev = events_db.get(event_id)
    club = clubs_db.get(ev["club_id"])
    msg = await notifier.send(club.get("channel_id"), embed=builders.event_embed(ev, club, 0),
                              view=builders.event_listing_view(event_id))
    if msg is not None:
        with atomic():
            events_db.set_listing(event_id, str(club["channel_id"]), str(msg.id))
        if ev["visibility"] == "guild" and settings.event_announcements_channel_id:
            jump = notifier.jump_url(guild.id, club["channel_id"], msg.id)
            await notifier.send(settings.event_announcements_channel_id, embed=builders.event_embed(ev, club),
                                view=builders.event_announce_view(jump))
    else:
        log.warning("event %s approved but listing post failed", event_id)
    await notifier.dm(ev["created_by"], content=f"✅ Ton événement **{ev['title']}** a été approuvé !")
    return events_db.get(event_id), msg is not None

async def reject_event(guild, actor: Actor, event_id: int, notifier, reason: str = "") -> dict:
    require_event_reviewer(actor)
    ev = _event_or_404(event_id)
    if ev["status"] != "pending":
        raise AlreadyResolved(f"L'événement **{ev['title']}**", ev["status"])
    with atomic():
        if not events_db.transition(event_id, "pending", "rejected"):
            raise AlreadyResolved(f"L'événement **{ev['title']}**", events_db.get(event_id)["status"])
        audit.record(guild.id, "event_rejected", actor.user_id, event_id, {"reason": reason or ""},
                     club_id=ev["club_id"])
    log.info("event %s rejected by %s", event_id, actor.user_id)
    text = f"❌ Ton événement **{ev['title']}** a été refusé."
    if reason:
        text += f"\nMotif : {reason}"
    await notifier.dm(ev["created_by"], content=text)
    return events_db.get(event_id)

# ───────── Inscriptions ─────────

def seats_taken(ev: dict) -> int:
    taken = participants_db.count_going(ev["id"])
    if ev.get("registration_fee") and settings.fee_capacity_policy == "on_registration":
        taken += registrations_db.count_pending_unconfirmed(ev["id"])
    return taken

def _ensure_seat(ev: dict) -> None:
    cap = ev.get("max_participants")
    if cap and seats_taken(ev) >= int(cap):
        raise CapacityReached(f"⚠️ **{ev['title']}** est complet.")

def _is_full(ev: dict) -> bool:
    cap = ev.get("max_participants")
    return bool(cap) and seats_taken(ev) >= int(cap)

async def _refresh_listing(guild, ev: dict, notifier, *, announce_full: bool) -> tuple[int, bool]:
    club = clubs_db.get(ev["club_id"])
    going = participants_db.count_going(ev["id"])
    full = _is_full(ev)
    if ev.get("channel_id") and ev.get("message_id"):
        await notifier.edit(ev["channel_id"], ev["message_id"], embed=builders.event_embed(ev, club, going),
                            view=builders.event_listing_view(ev["id"], full=full))
    if full and announce_full:
        await notifier.dm(club["president_user_id"],
                          content=f"📢 **{ev['title']}** est complet ({going}/{ev['max_participants']}).")
    return going, full

async def join_event(guild, member, event_id: int, notifier, *, verified: bool,
                     now: Optional[datetime] = None) -> JoinOutcome:
    now = now or now_local()
    uid = str(member.id)
    if not verified:
        raise Forbidden(not_verified_message(), capability="verified")
    ev = _event_or_404(event_id)
    if not is_eligible(ev["eligibility"], (r.id for r in getattr(member, "roles", []) or [])):
        raise Forbidden("⛔ Tu n'es pas éligible pour cet événement.", capability="eligibility")
    reg = registrations_db.get(event_id, uid)
    if participants_db.get(event_id, uid) or (reg and reg["payment_status"] != "rejected"):
        raise ConflictError("⚠️ Tu es déjà inscrit(e) à cet événement.")
    if ev["status"] != "scheduled":
        raise ConflictError("⚠️ Cet événement n'est pas ouvert aux inscriptions.")
    if ev.get("registration_deadline") and now > parse_deadline(ev["registration_deadline"]):
        raise ConflictError("⚠️ Les inscriptions sont closes.")
    _ensure_seat(ev)

    if ev.get("external_form_url"):
        return JoinOutcome(EXTERNAL_FORM, ev, url=ev["external_form_url"])

    if ev.get("registration_fee"):
        with atomic():
            _ensure_seat(ev)
            if reg is not None:
                # Paiement refusé: nouvelle tentative sur la même ligne
                opened = registrations_db.reopen(event_id, uid)
            else:
                opened = registrations_db.create_pending(event_id, uid, str(guild.id))
            if not opened:
                raise ConflictError("⚠️ Ton inscription est déjà en attente de paiement.")
            audit.record(guild.id, "event_payment_pending", uid, event_id,
                         {"fee": ev["registration_fee"]}, club_id=ev["club_id"])
        log.info("user %s pending payment for event %s", uid, event_id)
        going, full = participants_db.count_going(event_id), _is_full(ev)
        if settings.fee_capacity_policy == "on_registration":
            going, full = await _refresh_listing(guild, ev, notifier, announce_full=full)
        return JoinOutcome(PAYMENT_REQUIRED, ev, going=going, full=full)

    with atomic():
        _ensure_seat(ev)
        if not participants_db.add_going(event_id, uid, str(guild.id)):
            raise ConflictError("⚠️ Tu es déjà inscrit(e) à cet événement.")
        audit.record(guild.id, "event_joined", uid, event_id, club_id=ev["club_id"])
    log.info("user %s joined event %s", uid, event_id)
    going, full = await _refresh_listing(guild, ev, notifier, announce_full=_is_full(ev))
    return JoinOutcome(JOINED, ev, going=going, full=full)

async def confirm_verified_payment(guild, event_id: int, user_id, verified_by, notifier) -> bool:
    """
    Appelé par le module paiement quand une preuve est validée.
    Passe l'inscription en `verified` puis crée la ligne participant (capacité revérifiée).
    Renvoie False si le participant existait déjà.
    """
    uid = str(user_id)
    ev = _event_or_404(event_id)
    reg = registrations_db.get(event_id, uid)
    if reg is None:
        raise NotFound("❌ Aucune inscription payante pour ce membre.")
    if reg["payment_status"] == "rejected":
        raise ConflictError("⚠️ Ce paiement a été refusé.")
    if participants_db.get(event_id, uid):
        return False

    with atomic():
        registrations_db.mark_verified(event_id, uid, str(verified_by))
        _ensure_seat(ev)
        participants_db.add_going(event_id, uid, str(guild.id))
        audit.record(guild.id, "event_payment_confirmed", verified_by, uid, {"event_id": event_id},
                     club_id=ev["club_id"])
    log.info("payment confirmed for user %s on event %s", uid, event_id)
    await _refresh_listing(guild, ev, notifier, announce_full=_is_full(ev))
    await notifier.dm(uid, content=f"✅ Paiement validé : tu participes à **{ev['title']}** !")
    return True

def list_participants(actor: Actor, event_id: int) -> tuple[dict, list[dict], list[dict]]:
    ev = _event_or_404(event_id)
    require(actor, ev["club_id"], "view")
    pending = registrations_db.list_pending(event_id) if ev.get("registration_fee") else []
    return ev, participants_db.list_going(event_id), pending

# ───────── Clôture ─────────

def complete_event(guild_id, actor: Actor, event_id: int) -> dict:
    require_server_admin(actor)
    ev = _event_or_404(event_id)
    with atomic():
        if not events_db.transition(event_id, "scheduled", "completed"):
            raise ConflictError(f"⚠️ Seul un événement programmé peut être clôturé (statut : **{ev['status']}**).")
        audit.record(guild_id, "event_completed", actor.user_id, event_id, club_id=ev["club_id"])
    log.info("event %s completed by %s", event_id, actor.user_id)
    return events_db.get(event_id)

def complete_due_events(now: Optional[datetime] = None, grace_h: Optional[int] = None) -> list[int]:
    """Clôture les événements programmés passés depuis plus de grace_h heures."""
    now = now or now_local()
    grace = timedelta(hours=settings.event_completion_grace_h if grace_h is None else grace_h)
    done = []
    for ev in events_db.list_scheduled_before(now.strftime("%Y-%m-%d")):
        try:
            when = parse_event_datetime(ev["event_date"], ev.get("end_time") or ev.get("start_time") or "")
        except ValueError:
            log.warning("event %s has an unparsable date: %s", ev["id"], ev["event_date"])
            continue
        if when + grace > now:
            continue
        with atomic():
            if events_db.transition(ev["id"], "scheduled", "completed"):
                audit.record(ev["guild_id"], "event_completed", "system", ev["id"], {"auto": True},
                             club_id=ev["club_id"])
                done.append(ev["id"])
    if done:
        log.info("auto-completed events: %s", done)
    return done

def upcoming(club_id: int) -> list[dict]:
    return events_db.list_for_club(club_id, ("scheduled",))
