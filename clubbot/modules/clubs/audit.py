# clubbot/modules/clubs/audit.py
from __future__ import annotations
from typing import Optional
import discord
from discord import app_commands, Interaction

from clubbot.domain import audit as d_audit
from clubbot.domain.permissions import require
from clubbot.modules.common.replies import guarded, reply
from clubbot.modules.common import checks

MAX_LIMIT = 25

def register(tree: app_commands.CommandTree, guild_obj: Optional[discord.Object], client: discord.Client | None = None):
    @tree.command(name="clubaudit", description="Historique des actions d'un club")
    @app_commands.describe(club="Nom ou slug du club", limit=f"Nombre d'entrées (max {MAX_LIMIT})")
    @app_commands.guilds(guild_obj) if guild_obj else (lambda f: f)
    async def clubaudit(inter: Interaction, club: str, limit: app_commands.Range[int, 1, MAX_LIMIT] = 10):
        if not await checks.require_guild(inter):
            return
        async with guarded(inter, "club audit"):
            c = checks.club_arg(inter, club)
            require(checks.actor(inter), c["id"], "moderate")
            entries = d_audit.recent(inter.guild_id, c["id"], limit)
            e = discord.Embed(title=f"🧾 Journal · {c['name']}",
                              description="\n".join(d_audit.describe(x) for x in entries) or "_Rien pour l'instant._",
                              color=discord.Color.dark_grey())
            await reply(inter, embed=e)

    clubaudit.autocomplete("club")(checks.club_autocomplete)
