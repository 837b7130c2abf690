# clubbot/modules/clubs/registration.py
from __future__ import annotations
import logging
from typing import Optional
import discord
from discord import app_commands, Interaction

from clubbot.core import builders
from clubbot.core.actions import Action, ActionKind
from clubbot.domain import clubs as d_clubs
from clubbot.domain.verification import is_verified, not_verified_message
from clubbot.persistence import clubs as clubs_db
from clubbot.modules.common.replies import guarded, reply
from clubbot.modules.common import checks

log = logging.getLogger(__name__)

CATEGORY_CHOICES = [app_commands.Choice(name=label, value=key) for key, label in builders.CATEGORY_LABELS.items()]

# ─────────────────────────────
# Formulaire d'inscription
# ─────────────────────────────
class ClubRegisterModal(discord.ui.Modal, title="Inscrire un club"):
    name = discord.ui.TextInput(label="Nom du club", max_length=d_clubs.NAME_MAX)
    description = discord.ui.TextInput(label="Description", style=discord.TextStyle.paragraph,
                                       max_length=d_clubs.DESCRIPTION_MAX, required=False)
    contact = discord.ui.TextInput(label="Contact (Email: / Phone: / Website:)", style=discord.TextStyle.paragraph,
                                   required=False, placeholder="Email: club@example.org\nPhone: +33 6 12 34 56 78")
    logo_url = discord.ui.TextInput(label="Logo (URL)", required=False, placeholder="https://…")
    max_members = discord.ui.TextInput(label="Limite de membres (vide = aucune)", required=False, max_length=5)

    def __init__(self, category: str, require_approval: bool):
        super().__init__()
        self.category = category
        self.require_approval = require_approval

    async def on_submit(self, inter: Interaction):
        async with guarded(inter, "club registration"):
            raw_max = (self.max_members.value or "").strip()
            if raw_max and not raw_max.isdigit():
                await reply(inter, "❌ La limite de membres doit être un nombre.")
                return
            club, routed = await d_clubs.submit_registration(
                inter.guild_id, inter.user.id, checks.notifier(inter),
                verified=is_verified(inter.user),
                name=self.name.value, description=self.description.value, category=self.category,
                contact=self.contact.value, logo_url=self.logo_url.value,
                max_members=int(raw_max) if raw_max else None, require_approval=self.require_approval,
            )
            if routed:
                await reply(inter, f"📨 **{club['name']}** est inscrit et attend la validation de l'équipe.")
            else:
                await reply(inter, f"📝 **{club['name']}** est inscrit (en attente), mais le salon de validation "
                                   "n'est pas disponible : préviens un administrateur.")

# ─────────────────────────────
# Boutons de validation
# ─────────────────────────────
async def _close_review(inter: Interaction, title: str, desc: str, ok: bool) -> None:
    if inter.message is None:
        return
    try:
        await inter.message.edit(embed=builders.resolved_embed(title, desc, ok), view=None)
    except discord.HTTPException as e:
        log.warning("Review message edit failed: %s", e)

async def on_club_approve(inter: Interaction, action: Action):
    async with guarded(inter, "club approval"):
        club = clubs_db.get(action.entity_id)
        guild, actor = await checks.guild_context(inter, club["guild_id"] if club else inter.guild_id)
        await inter.response.defer(ephemeral=True, thinking=True)
        club = await d_clubs.approve_club(guild, actor, action.entity_id, checks.notifier(inter))
        await _close_review(inter, f"✅ Club approuvé : {club['name']}", f"Par <@{inter.user.id}>", True)
        await reply(inter, f"✅ **{club['name']}** est actif : <#{club['channel_id']}>")

async def on_club_reject(inter: Interaction, action: Action):
    async with guarded(inter, "club rejection"):
        club = clubs_db.get(action.entity_id)
        guild, actor = await checks.guild_context(inter, club["guild_id"] if club else inter.guild_id)
        club = await d_clubs.reject_club(guild.id, actor, action.entity_id, checks.notifier(inter))
        await _close_review(inter, f"❌ Club rejeté : {club['name']}", f"Par <@{inter.user.id}>", False)
        await reply(inter, f"❌ **{club['name']}** a été rejeté.")

ACTION_HANDLERS = {
    ActionKind.CLUB_APPROVE: on_club_approve,
    ActionKind.CLUB_REJECT: on_club_reject,
}

# ─────────────────────────────
# Commande /clubregister
# ─────────────────────────────
def register(tree: app_commands.CommandTree, guild_obj: Optional[discord.Object], client: discord.Client | None = None):
    @tree.command(name="clubregister", description="Inscrire un nouveau club (validation par l'équipe)")
    @app_commands.describe(category="Catégorie du club", require_approval="Les adhésions passent par une demande")
    @app_commands.choices(category=CATEGORY_CHOICES)
    @app_commands.guilds(guild_obj) if guild_obj else (lambda f: f)
    async def clubregister(inter: Interaction, category: app_commands.Choice[str], require_approval: bool = False):
        if not await checks.require_guild(inter):
            return
        if not is_verified(inter.user):
            await inter.response.send_message(not_verified_message(), ephemeral=True)
            return
        await inter.response.send_modal(ClubRegisterModal(category.value, require_approval))
