# clubbot/core/builders.py
from __future__ import annotations
from typing import Dict, Iterable
import discord

from clubbot.core.actions import ActionKind, encode

FOOTER = "Clubs"

CATEGORY_LABELS = {
    "technical": "💻 Technique",
    "cultural": "🎭 Culturel",
    "sports": "⚽ Sport",
    "social_service": "🤝 Service social",
    "academic": "📚 Académique",
    "general": "✨ Général",
}

def _embed(title: str, desc: str = "", color: discord.Color | None = None) -> discord.Embed:
    e = discord.Embed(title=title, description=desc or "", color=color or discord.Color.blurple())
    e.set_footer(text=FOOTER)
    return e

def _button(kind: ActionKind, entity_id: int, label: str, style: discord.ButtonStyle,
            emoji: str | None = None, disabled: bool = False) -> discord.ui.Button:
    return discord.ui.Button(label=label, style=style, emoji=emoji, disabled=disabled,
                             custom_id=encode(kind, entity_id))

def _row(*buttons: discord.ui.Item) -> discord.ui.View:
    # Simple porteur de composants: le routage se fait dans on_interaction via le custom_id.
    # Une vue terminée n'est pas gardée dans le view store du client.
    v = discord.ui.View(timeout=None)
    for b in buttons:
        v.add_item(b)
    v.stop()
    return v

# ───────── Clubs ─────────

def club_review_embed(club: Dict) -> discord.Embed:
    e = _embed(f"🆕 Demande de club : {club['name']}", club.get("description") or "", discord.Color.orange())
    e.add_field(name="Président", value=f"<@{club['president_user_id']}>")
    e.add_field(name="Catégorie", value=CATEGORY_LABELS.get(club.get("category"), club.get("category") or "?"))
    contact = "\n".join(v for v in (club.get("contact_email"), club.get("contact_phone"), club.get("website_url")) if v)
    if contact:
        e.add_field(name="Contact", value=contact, inline=False)
    if club.get("logo_url"):
        e.set_thumbnail(url=club["logo_url"])
    e.add_field(name="ID", value=f"`{club['id']}` · `{club['slug']}`", inline=False)
    return e

def club_review_view(club_id: int) -> discord.ui.View:
    return _row(
        _button(ActionKind.CLUB_APPROVE, club_id, "Approuver", discord.ButtonStyle.success, "✅"),
        _button(ActionKind.CLUB_REJECT, club_id, "Rejeter", discord.ButtonStyle.danger, "✖️"),
    )

def club_listing_embed(club: Dict, member_count: int) -> discord.Embed:
    e = _embed(club["name"], club.get("description") or "", discord.Color.green())
    e.add_field(name="Catégorie", value=CATEGORY_LABELS.get(club.get("category"), "✨ Général"))
    cap = f"{member_count}/{club['max_members']}" if club.get("max_members") else str(member_count)
    e.add_field(name="Membres", value=cap)
    e.add_field(name="Président", value=f"<@{club['president_user_id']}>")
    e.add_field(name="Adhésion", value="Sur validation" if club.get("require_approval") else "Libre")
    if club.get("logo_url"):
        e.set_thumbnail(url=club["logo_url"])
    return e

def club_join_view(club_id: int) -> discord.ui.View:
    return _row(_button(ActionKind.CLUB_JOIN, club_id, "Rejoindre", discord.ButtonStyle.primary, "🙋"))

def club_welcome_embed(club: Dict) -> discord.Embed:
    return _embed(f"🎉 Bienvenue dans {club['name']} !",
                  f"Club approuvé. Président : <@{club['president_user_id']}>.\n"
                  "Utilisez ce salon pour organiser vos activités.", discord.Color.green())

def club_info_embed(club: Dict, member_count: int) -> discord.Embed:
    e = club_listing_embed(club, member_count)
    e.add_field(name="Statut", value=club["status"])
    if club.get("channel_id"):
        e.add_field(name="Salon", value=f"<#{club['channel_id']}>")
    e.add_field(name="ID", value=f"`{club['id']}` · `{club['slug']}`")
    return e

def club_list_embed(title: str, clubs: Iterable[Dict]) -> discord.Embed:
    lines = [f"• **{c['name']}** (`{c['slug']}`) · {CATEGORY_LABELS.get(c.get('category'), '')}" for c in clubs]
    return _embed(title, "\n".join(lines) or "_Aucun club._")

def resolved_embed(title: str, desc: str, ok: bool) -> discord.Embed:
    return _embed(title, desc, discord.Color.green() if ok else discord.Color.red())

# ───────── Adhésions ─────────

def join_request_embed(club: Dict, request: Dict) -> discord.Embed:
    e = _embed(f"📨 Demande d'adhésion : {club['name']}", request.get("interest_reason") or "")
    e.add_field(name="Membre", value=f"<@{request['user_id']}>")
    e.add_field(name="Nom", value=request.get("full_name") or "?")
    if request.get("email"):
        e.add_field(name="Email", value=request["email"])
    return e

def join_review_view(request_id: int) -> discord.ui.View:
    return _row(
        _button(ActionKind.JOIN_APPROVE, request_id, "Accepter", discord.ButtonStyle.success, "✅"),
        _button(ActionKind.JOIN_REJECT, request_id, "Refuser", discord.ButtonStyle.danger, "✖️"),
    )

def member_list_embed(club: Dict, members: Iterable[Dict]) -> discord.Embed:
    icons = {"president": "👑", "moderator": "🛡️", "officer": "⭐", "member": "•"}
    lines = [f"{icons.get(m['role'], '•')} <@{m['user_id']}> · {m['role']}" for m in members]
    return _embed(f"👥 Membres de {club['name']}", "\n".join(lines[:50]) or "_Aucun membre._")

# ───────── Présidence ─────────

def transfer_request_embed(club: Dict, request: Dict) -> discord.Embed:
    e = _embed("👑 Transfert de présidence à valider",
               f"<@{request['initiator_id']}> ({request['initiator_role']}) demande le transfert "
               f"de **{club['name']}**.", discord.Color.gold())
    e.add_field(name="Président actuel", value=f"<@{club['president_user_id']}>")
    e.add_field(name="Nouveau président", value=f"<@{request['candidate_id']}>")
    if request.get("reason"):
        e.add_field(name="Motif", value=request["reason"][:1024], inline=False)
    return e

def transfer_review_view(request_id: int) -> discord.ui.View:
    return _row(
        _button(ActionKind.TRANSFER_APPROVE, request_id, "Approuver", discord.ButtonStyle.success, "✅"),
        _button(ActionKind.TRANSFER_DENY, request_id, "Refuser", discord.ButtonStyle.danger, "✖️"),
    )

# ───────── Événements ─────────

def _when(ev: Dict) -> str:
    t = ev.get("start_time") or ""
    if ev.get("end_time"):
        t = f"{t}–{ev['end_time']}"
    return f"{ev['event_date']} {t}".strip()

def _where(ev: Dict) -> str:
    parts = []
    if ev.get("venue"):
        parts.append(f"📍 {ev['venue']}")
    if ev.get("meeting_link"):
        parts.append(f"🔗 {ev['meeting_link']}")
    return "\n".join(parts) or ev.get("location_type", "")

def event_embed(ev: Dict, club: Dict, going: int | None = None) -> discord.Embed:
    e = _embed(f"📅 {ev['title']}", ev.get("description") or "", discord.Color.teal())
    e.add_field(name="Club", value=club["name"])
    e.add_field(name="Type", value=ev.get("event_type") or "other")
    e.add_field(name="Quand", value=_when(ev))
    e.add_field(name="Où", value=_where(ev) or "?", inline=False)
    if going is not None:
        cap = f"{going}/{ev['max_participants']}" if ev.get("max_participants") else str(going)
        e.add_field(name="Participants", value=cap)
    if ev.get("registration_fee"):
        e.add_field(name="Frais", value=str(ev["registration_fee"]))
    if ev.get("registration_deadline"):
        e.add_field(name="Inscriptions jusqu'au", value=ev["registration_deadline"])
    if ev.get("poster_url"):
        e.set_image(url=ev["poster_url"])
    return e

def event_review_view(event_id: int) -> discord.ui.View:
    return _row(
        _button(ActionKind.EVENT_APPROVE, event_id, "Approuver", discord.ButtonStyle.success, "✅"),
        _button(ActionKind.EVENT_REJECT, event_id, "Rejeter", discord.ButtonStyle.danger, "✖️"),
    )

def event_listing_view(event_id: int, full: bool = False) -> discord.ui.View:
    return _row(
        _button(ActionKind.EVENT_JOIN, event_id, "Complet" if full else "Participer",
                discord.ButtonStyle.secondary if full else discord.ButtonStyle.primary, "🎟️", disabled=full),
        _button(ActionKind.EVENT_PREVIEW, event_id, "Participants", discord.ButtonStyle.secondary, "👥"),
    )

def event_announce_view(jump_url: str) -> discord.ui.View:
    return _row(discord.ui.Button(label="Voir l'événement", style=discord.ButtonStyle.link, url=jump_url))

def participants_embed(ev: Dict, participants: Iterable[Dict], pending: Iterable[Dict] = ()) -> discord.Embed:
    lines = []
    for p in participants:
        line = f"• <@{p['user_id']}>"
        if p.get("team_name"):
            line += f" · {p['team_name']}" + (" (capitaine)" if p.get("is_captain") else "")
        if p.get("registration_data"):
            line += f" · {p['registration_data'][:80]}"
        lines.append(line)
    e = _embed(f"👥 Participants : {ev['title']}", "\n".join(lines[:50]) or "_Personne pour l'instant._")
    pend = [f"• <@{r['user_id']}>" for r in pending]
    if pend:
        e.add_field(name="Paiement en attente", value="\n".join(pend[:25]), inline=False)
    return e
