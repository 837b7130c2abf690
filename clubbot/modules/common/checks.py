# clubbot/modules/common/checks.py
from __future__ import annotations
import re
from typing import Optional
import discord
from discord import app_commands, Interaction

from clubbot.core import provisioner
from clubbot.core.notify import Notifier
from clubbot.domain import clubs as d_clubs
from clubbot.domain.errors import NotFound, Forbidden
from clubbot.domain.permissions import Actor
from clubbot.persistence import clubs as clubs_db

_ID_RE = re.compile(r"\d{15,21}")

async def require_guild(inter: Interaction) -> bool:
    if inter.guild is None:
        await inter.response.send_message("🚧 Utilise cette commande sur le serveur.", ephemeral=True)
        return False
    return True

def notifier(inter: Interaction) -> Notifier:
    return Notifier(inter.client)

def actor(inter: Interaction) -> Actor:
    return Actor.from_member(inter.user)

async def guild_context(inter: Interaction, guild_id) -> tuple[discord.Guild, Actor]:
    """Pour les boutons cliqués en DM: retrouve la guild et le membre qui clique."""
    guild = inter.guild or inter.client.get_guild(int(guild_id))
    if guild is None:
        raise NotFound("❌ Serveur introuvable.")
    member = await provisioner.resolve_member(guild, inter.user.id)
    if member is None:
        raise Forbidden("⛔ Tu n'es plus membre de ce serveur.", capability="member")
    return guild, Actor.from_member(member)

def club_arg(inter: Interaction, ident: str) -> dict:
    return d_clubs.find_club(inter.guild_id, ident)

def parse_role_ids(raw: Optional[str]) -> list[str]:
    """'<@&123> 456' → ['123', '456']"""
    return _ID_RE.findall(raw or "")

async def club_autocomplete(inter: Interaction, current: str) -> list[app_commands.Choice[str]]:
    if inter.guild_id is None:
        return []
    cur = (current or "").lower()
    out = []
    for c in clubs_db.list_by_status(str(inter.guild_id), "active", limit=100):
        if cur in c["name"].lower() or cur in c["slug"]:
            out.append(app_commands.Choice(name=c["name"], value=c["slug"]))
        if len(out) >= 25:
            break
    return out
