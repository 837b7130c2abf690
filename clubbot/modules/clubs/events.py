# clubbot/modules/clubs/events.py
from __future__ import annotations
import logging
from typing import Optional
import discord
from discord import app_commands, Interaction

from clubbot.core import builders
from clubbot.core.actions import Action, ActionKind
from clubbot.domain import events as d_events
from clubbot.domain.verification import is_verified
from clubbot.persistence import events as events_db
from clubbot.modules.common.replies import guarded, reply
from clubbot.modules.common import checks

log = logging.getLogger(__name__)

TYPE_CHOICES = [app_commands.Choice(name=t, value=t) for t in d_events.EVENT_TYPES]
LOCATION_CHOICES = [
    app_commands.Choice(name="Présentiel", value="physical"),
    app_commands.Choice(name="En ligne", value="virtual"),
    app_commands.Choice(name="Hybride", value="hybrid"),
]
VISIBILITY_CHOICES = [
    app_commands.Choice(name="Tout le serveur", value="guild"),
    app_commands.Choice(name="Club seulement", value="club"),
]

# ─────────────────────────────
# Boutons
# ─────────────────────────────
async def _close_review(inter: Interaction, title: str, desc: str, ok: bool) -> None:
    if inter.message is None:
        return
    try:
        await inter.message.edit(embed=builders.resolved_embed(title, desc, ok), view=None)
    except discord.HTTPException as e:
        log.warning("Event review message edit failed: %s", e)

async def on_event_approve(inter: Interaction, action: Action):
    async with guarded(inter, "event approval"):
        ev = events_db.get(action.entity_id)
        guild, actor = await checks.guild_context(inter, ev["guild_id"] if ev else inter.guild_id)
        await inter.response.defer(ephemeral=True, thinking=True)
        ev, listed = await d_events.approve_event(guild, actor, action.entity_id, checks.notifier(inter))
        await _close_review(inter, f"✅ Événement approuvé : {ev['title']}", f"Par <@{inter.user.id}>", True)
        if listed:
            await reply(inter, f"✅ **{ev['title']}** est programmé et annoncé.")
        else:
            await reply(inter, f"✅ **{ev['title']}** est programmé, mais l'annonce n'a pas pu être publiée "
                               "dans le salon du club.")

async def on_event_reject(inter: Interaction, action: Action):
    async with guarded(inter, "event rejection"):
        ev = events_db.get(action.entity_id)
        guild, actor = await checks.guild_context(inter, ev["guild_id"] if ev else inter.guild_id)
        ev = await d_events.reject_event(guild, actor, action.entity_id, checks.notifier(inter))
        await _close_review(inter, f"❌ Événement rejeté : {ev['title']}", f"Par <@{inter.user.id}>", False)
        await reply(inter, f"❌ **{ev['title']}** a été rejeté.")

async def on_event_join(inter: Interaction, action: Action):
    async with guarded(inter, "event join"):
        if inter.guild is None:
            await reply(inter, "🚧 Inscris-toi depuis le serveur.")
            return
        out = await d_events.join_event(inter.guild, inter.user, action.entity_id, checks.notifier(inter),
                                        verified=is_verified(inter.user))
        title = out.event["title"]
        if out.kind == d_events.EXTERNAL_FORM:
            view = discord.ui.View()
            view.add_item(discord.ui.Button(label="Formulaire d'inscription", style=discord.ButtonStyle.link,
                                            url=out.url))
            await reply(inter, f"📝 L'inscription à **{title}** se fait via ce formulaire :", view=view)
        elif out.kind == d_events.PAYMENT_REQUIRED:
            await reply(inter, f"💳 Inscription à **{title}** enregistrée : frais de "
                               f"**{out.event['registration_fee']}** à régler. Ta place sera confirmée "
                               "après validation du paiement.")
        else:
            await reply(inter, f"🎟️ Tu participes à **{title}** !")

async def on_event_preview(inter: Interaction, action: Action):
    async with guarded(inter, "event participants"):
        ev = events_db.get(action.entity_id)
        guild, actor = await checks.guild_context(inter, ev["guild_id"] if ev else inter.guild_id)
        ev, going, pending = d_events.list_participants(actor, action.entity_id)
        await reply(inter, embed=builders.participants_embed(ev, going, pending))

ACTION_HANDLERS = {
    ActionKind.EVENT_APPROVE: on_event_approve,
    ActionKind.EVENT_REJECT: on_event_reject,
    ActionKind.EVENT_JOIN: on_event_join,
    ActionKind.EVENT_PREVIEW: on_event_preview,
}

# ─────────────────────────────
# Slash commands
# ─────────────────────────────
def register(tree: app_commands.CommandTree, guild_obj: Optional[discord.Object], client: discord.Client | None = None):
    group = app_commands.Group(name="clubevent", description="Événements des clubs")

    @group.command(name="create", description="Proposer un événement (validation par l'équipe du serveur)")
    @app_commands.describe(
        club="Nom ou slug du club", title="Titre", date="Date (YYYY-MM-DD)", start_time="Heure (HH:MM)",
        end_time="Heure de fin (HH:MM)", venue="Lieu", meeting_link="Lien de réunion",
        max_participants="Places max", min_participants="Participants min",
        registration_deadline="Date limite (YYYY-MM-DD [HH:MM])", fee="Frais d'inscription",
        external_form="URL d'un formulaire externe", poster="URL de l'affiche",
        team_size_min="Taille d'équipe min", team_size_max="Taille d'équipe max",
        faculty_roles="Rôles faculté autorisés (mentions ou ids)", batch_roles="Rôles promo autorisés",
    )
    @app_commands.choices(event_type=TYPE_CHOICES, location=LOCATION_CHOICES, visibility=VISIBILITY_CHOICES)
    async def create(inter: Interaction, club: str, title: str, date: str, start_time: str,
                     event_type: app_commands.Choice[str], location: app_commands.Choice[str],
                     description: str = "", end_time: str = "", venue: str = "", meeting_link: str = "",
                     max_participants: Optional[int] = None, min_participants: Optional[int] = None,
                     registration_deadline: str = "", fee: int = 0, external_form: str = "",
                     visibility: Optional[app_commands.Choice[str]] = None, poster: str = "",
                     team_event: bool = False, team_size_min: Optional[int] = None,
                     team_size_max: Optional[int] = None, require_captain: bool = False,
                     faculty_roles: str = "", batch_roles: str = ""):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "event creation"):
            c = checks.club_arg(inter, club)
            eligibility = {"faculty": checks.parse_role_ids(faculty_roles),
                           "batch": checks.parse_role_ids(batch_roles)}
            ev, routed = await d_events.submit_event(
                inter.guild_id, checks.actor(inter), c["id"], checks.notifier(inter),
                title=title, event_type=event_type.value, date=date, start_time=start_time, end_time=end_time,
                description=description, venue=venue, meeting_link=meeting_link, location_type=location.value,
                min_participants=min_participants, max_participants=max_participants,
                registration_required=bool(max_participants or fee or registration_deadline),
                registration_deadline=registration_deadline or None, registration_fee=fee,
                external_form_url=external_form or None, is_team_event=team_event,
                team_size_min=team_size_min, team_size_max=team_size_max, require_captain=require_captain,
                eligibility=eligibility, visibility=visibility.value if visibility else "guild",
                poster_url=poster or None,
            )
            if routed:
                await reply(inter, f"📨 **{ev['title']}** a été soumis à validation.")
            else:
                await reply(inter, f"📝 **{ev['title']}** est enregistré (en attente) mais le salon de "
                                   "validation est indisponible : préviens un administrateur.")

    @group.command(name="list", description="Événements à venir d'un club")
    @app_commands.describe(club="Nom ou slug du club")
    async def list_(inter: Interaction, club: str):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "event list"):
            c = checks.club_arg(inter, club)
            evs = d_events.upcoming(c["id"])
            lines = [f"• `#{e['id']}` **{e['title']}** · {e['event_date']} {e['start_time']}" for e in evs]
            await reply(inter, embed=discord.Embed(title=f"📅 {c['name']}",
                                                   description="\n".join(lines) or "_Aucun événement programmé._",
                                                   color=discord.Color.teal()))

    @group.command(name="participants", description="Voir les participants d'un événement")
    @app_commands.describe(event_id="Numéro de l'événement")
    async def participants(inter: Interaction, event_id: int):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "event participants"):
            ev, going, pending = d_events.list_participants(checks.actor(inter), event_id)
            await reply(inter, embed=builders.participants_embed(ev, going, pending))

    @group.command(name="complete", description="Clôturer un événement (admin)")
    @app_commands.describe(event_id="Numéro de l'événement")
    async def complete(inter: Interaction, event_id: int):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "event completion"):
            ev = d_events.complete_event(inter.guild_id, checks.actor(inter), event_id)
            await reply(inter, f"🏁 **{ev['title']}** est clôturé.")

    for cmd in (create, list_):
        cmd.autocomplete("club")(checks.club_autocomplete)

    if guild_obj:
        tree.add_command(group, guild=guild_obj)
    else:
        tree.add_command(group)
