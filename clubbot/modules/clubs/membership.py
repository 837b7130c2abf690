# clubbot/modules/clubs/membership.py
from __future__ import annotations
import logging
from typing import Optional
import discord
from discord import app_commands, Interaction

from clubbot.core import builders
from clubbot.core.actions import Action, ActionKind
from clubbot.domain import membership as d_membership
from clubbot.domain.verification import is_verified
from clubbot.persistence import clubs as clubs_db, join_requests as join_db
from clubbot.modules.common.replies import guarded, reply
from clubbot.modules.common import checks

log = logging.getLogger(__name__)

# ─────────────────────────────
# Demande d'adhésion
# ─────────────────────────────
class JoinRequestModal(discord.ui.Modal, title="Demande d'adhésion"):
    full_name = discord.ui.TextInput(label="Nom complet", max_length=d_membership.FULL_NAME_MAX)
    email = discord.ui.TextInput(label="Email (optionnel)", required=False, max_length=120)
    reason = discord.ui.TextInput(label="Pourquoi veux-tu rejoindre ce club ?", style=discord.TextStyle.paragraph,
                                  min_length=1, max_length=d_membership.REASON_MAX)
    confirmation = discord.ui.TextInput(label="Tape YES pour confirmer", max_length=5, placeholder="YES")

    def __init__(self, club_id: int, club_name: str):
        super().__init__(title=f"Rejoindre {club_name}"[:45])
        self.club_id = club_id

    async def on_submit(self, inter: Interaction):
        async with guarded(inter, "join request"):
            request, delivered = await d_membership.submit_join_request(
                inter.guild, inter.user, self.club_id, checks.notifier(inter),
                verified=is_verified(inter.user), full_name=self.full_name.value,
                confirmation=self.confirmation.value, reason=self.reason.value,
                email=(self.email.value or "").strip() or None,
            )
            msg = "📨 Demande envoyée aux responsables du club."
            if not delivered:
                msg += "\n⚠️ Aucun responsable n'a pu être prévenu en DM : relance-les directement."
            await reply(inter, msg)

async def open_join(inter: Interaction, club_id: int):
    club = clubs_db.get(club_id)
    if club is None:
        await reply(inter, "❌ Club introuvable.")
        return
    verified = is_verified(inter.user)
    if club["require_approval"]:
        # Gardes avant d'ouvrir le formulaire: évite de le remplir pour rien
        d_membership.check_join_gates(club, inter.user.id, verified)
        await inter.response.send_modal(JoinRequestModal(club_id, club["name"]))
        return
    await d_membership.join_club(inter.guild, inter.user, club_id, checks.notifier(inter), verified=verified)
    await reply(inter, f"✅ Bienvenue dans **{club['name']}** !")

async def on_club_join(inter: Interaction, action: Action):
    async with guarded(inter, "club join"):
        if inter.guild is None:
            await reply(inter, "🚧 Rejoins le club depuis le serveur.")
            return
        await open_join(inter, action.entity_id)

# ─────────────────────────────
# Boutons (DM des responsables)
# ─────────────────────────────
async def _resolve(inter: Interaction, action: Action, approve: bool):
    req = join_db.get(action.entity_id)
    guild, actor = await checks.guild_context(inter, req["guild_id"] if req else inter.guild_id)
    fn = d_membership.approve_join_request if approve else d_membership.reject_join_request
    req = await fn(guild, actor, action.entity_id, checks.notifier(inter))
    verdict = "acceptée ✅" if approve else "refusée ❌"
    if inter.message is not None:
        try:
            await inter.message.edit(embed=builders.resolved_embed(
                f"Demande {verdict}", f"<@{req['user_id']}> · par <@{inter.user.id}>", approve), view=None)
        except discord.HTTPException as e:
            log.warning("Join request message edit failed: %s", e)
    await reply(inter, f"Demande de <@{req['user_id']}> {verdict}.")

async def on_join_approve(inter: Interaction, action: Action):
    async with guarded(inter, "join approval"):
        await _resolve(inter, action, True)

async def on_join_reject(inter: Interaction, action: Action):
    async with guarded(inter, "join rejection"):
        await _resolve(inter, action, False)

ACTION_HANDLERS = {
    ActionKind.CLUB_JOIN: on_club_join,
    ActionKind.JOIN_APPROVE: on_join_approve,
    ActionKind.JOIN_REJECT: on_join_reject,
}

# ─────────────────────────────
# Slash commands
# ─────────────────────────────
def register(tree: app_commands.CommandTree, guild_obj: Optional[discord.Object], client: discord.Client | None = None):
    member_group = app_commands.Group(name="clubmember", description="Gestion des membres d'un club")
    mod_group = app_commands.Group(name="clubmod", description="Modérateurs d'un club (président)")

    @member_group.command(name="list", description="Lister les membres actifs d'un club")
    @app_commands.describe(club="Nom ou slug du club")
    async def member_list(inter: Interaction, club: str):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "member list"):
            c = checks.club_arg(inter, club)
            c, members = d_membership.list_members(checks.actor(inter), c["id"])
            await reply(inter, embed=builders.member_list_embed(c, members))

    @member_group.command(name="remove", description="Retirer un membre du club")
    @app_commands.describe(club="Nom ou slug du club", user="Membre à retirer", reason="Motif (obligatoire)")
    async def member_remove(inter: Interaction, club: str, user: discord.Member, reason: str):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "member removal"):
            c = checks.club_arg(inter, club)
            await d_membership.remove_member(inter.guild, checks.actor(inter), c["id"], user.id, reason,
                                             checks.notifier(inter))
            await reply(inter, f"✅ {user.mention} a été retiré(e) de **{c['name']}**.")

    @member_group.command(name="trust", description="Donner le statut de membre de confiance")
    @app_commands.describe(club="Nom ou slug du club", user="Membre")
    async def member_trust(inter: Interaction, club: str, user: discord.Member):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "trusted add"):
            c = checks.club_arg(inter, club)
            await d_membership.set_trusted(inter.guild, checks.actor(inter), c["id"], user.id, True,
                                           checks.notifier(inter))
            await reply(inter, f"⭐ {user.mention} est membre de confiance de **{c['name']}**.")

    @member_group.command(name="untrust", description="Retirer le statut de membre de confiance")
    @app_commands.describe(club="Nom ou slug du club", user="Membre")
    async def member_untrust(inter: Interaction, club: str, user: discord.Member):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "trusted remove"):
            c = checks.club_arg(inter, club)
            await d_membership.set_trusted(inter.guild, checks.actor(inter), c["id"], user.id, False,
                                           checks.notifier(inter))
            await reply(inter, f"ℹ️ {user.mention} n'est plus membre de confiance de **{c['name']}**.")

    @mod_group.command(name="add", description="Nommer un modérateur du club")
    @app_commands.describe(club="Nom ou slug du club", user="Membre")
    async def mod_add(inter: Interaction, club: str, user: discord.Member):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "moderator add"):
            c = checks.club_arg(inter, club)
            await d_membership.set_moderator(inter.guild, checks.actor(inter), c["id"], user.id, True,
                                             checks.notifier(inter))
            await reply(inter, f"🛡️ {user.mention} est modérateur de **{c['name']}**.")

    @mod_group.command(name="remove", description="Retirer un modérateur du club")
    @app_commands.describe(club="Nom ou slug du club", user="Membre")
    async def mod_remove(inter: Interaction, club: str, user: discord.Member):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "moderator remove"):
            c = checks.club_arg(inter, club)
            await d_membership.set_moderator(inter.guild, checks.actor(inter), c["id"], user.id, False,
                                             checks.notifier(inter))
            await reply(inter, f"ℹ️ {user.mention} n'est plus modérateur de **{c['name']}**.")

    for cmd in (member_list, member_remove, member_trust, member_untrust, mod_add, mod_remove):
        cmd.autocomplete("club")(checks.club_autocomplete)

    if guild_obj:
        tree.add_command(member_group, guild=guild_obj)
        tree.add_command(mod_group, guild=guild_obj)
    else:
        tree.add_command(member_group)
        tree.add_command(mod_group)
