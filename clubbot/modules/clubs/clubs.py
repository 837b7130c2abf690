# clubbot/modules/clubs/clubs.py
from __future__ import annotations
from typing import Optional
import discord
from discord import app_commands, Interaction

from clubbot.core import builders, provisioner
from clubbot.domain import clubs as d_clubs
from clubbot.domain.permissions import require_club_reviewer, require_server_admin
from clubbot.modules.clubs.membership import open_join
from clubbot.modules.common.replies import guarded, reply
from clubbot.modules.common import checks

# ─────────────────────────────
# /clubs
# ─────────────────────────────
def register(tree: app_commands.CommandTree, guild_obj: Optional[discord.Object], client: discord.Client | None = None):
    group = app_commands.Group(name="clubs", description="Annuaire des clubs")

    @group.command(name="browse", description="Clubs actifs du serveur")
    async def browse(inter: Interaction):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "clubs browse"):
            await reply(inter, embed=builders.club_list_embed("🏛️ Clubs actifs", d_clubs.browse(inter.guild_id)))

    @group.command(name="info", description="Détails d'un club")
    @app_commands.describe(club="Nom ou slug du club")
    async def info(inter: Interaction, club: str):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "club info"):
            c, count = d_clubs.info(inter.guild_id, club)
            await reply(inter, embed=builders.club_info_embed(c, count))

    @group.command(name="mine", description="Les clubs dont tu es membre")
    async def mine(inter: Interaction):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "my clubs"):
            clubs = d_clubs.my_clubs(inter.guild_id, inter.user.id)
            await reply(inter, embed=builders.club_list_embed("🎒 Mes clubs", clubs))

    @group.command(name="pending", description="Clubs en attente de validation (équipe)")
    async def pending(inter: Interaction):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "pending clubs"):
            require_club_reviewer(checks.actor(inter))
            await reply(inter, embed=builders.club_list_embed("⏳ Clubs en attente", d_clubs.pending(inter.guild_id)))

    @group.command(name="join", description="Rejoindre un club")
    @app_commands.describe(club="Nom ou slug du club")
    async def join(inter: Interaction, club: str):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "club join"):
            c = checks.club_arg(inter, club)
            await open_join(inter, c["id"])

    @group.command(name="dissolve", description="Dissoudre un club (admin)")
    @app_commands.describe(club="Nom ou slug du club", reason="Motif")
    async def dissolve(inter: Interaction, club: str, reason: str = ""):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "club dissolve"):
            c = checks.club_arg(inter, club)
            c = d_clubs.dissolve_club(inter.guild_id, checks.actor(inter), c["id"], reason)
            await reply(inter, f"🗑️ **{c['name']}** est dissous. Salons et rôles sont à nettoyer à la main.")

    for cmd in (info, join, dissolve):
        cmd.autocomplete("club")(checks.club_autocomplete)

    @tree.command(name="fixclubperms", description="Réappliquer les permissions des salons d'un club (admin)")
    @app_commands.describe(club="Nom ou slug du club")
    @app_commands.guilds(guild_obj) if guild_obj else (lambda f: f)
    async def fixclubperms(inter: Interaction, club: str):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "fix club permissions"):
            require_server_admin(checks.actor(inter))
            c = d_clubs.require_active(checks.club_arg(inter, club))
            await inter.response.defer(ephemeral=True, thinking=True)
            result = await provisioner.repair_club_permissions(inter.guild, c)
            if result.ok:
                await reply(inter, f"🔧 Permissions de **{c['name']}** réappliquées.")
            else:
                await reply(inter, f"❌ Réparation impossible : {result.error}")

    fixclubperms.autocomplete("club")(checks.club_autocomplete)

    if guild_obj:
        tree.add_command(group, guild=guild_obj)
    else:
        tree.add_command(group)
