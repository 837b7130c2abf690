# clubbot/modules/common/replies.py
from __future__ import annotations
import logging
from contextlib import asynccontextmanager
import discord
from discord import Interaction

from clubbot.domain.errors import ClubError

log = logging.getLogger(__name__)

GENERIC_ERROR = "⚠️ Erreur inattendue, réessaie dans un instant."

async def reply(inter: Interaction, content: str | None = None, *, embed: discord.Embed | None = None,
                view: discord.ui.View | None = None, ephemeral: bool = True) -> None:
    """Répond ou fait un followup selon l'état de l'interaction."""
    kw = {"ephemeral": ephemeral}
    if content is not None:
        kw["content"] = content
    if embed is not None:
        kw["embed"] = embed
    if view is not None:
        kw["view"] = view
    try:
        if inter.response.is_done():
            await inter.followup.send(**kw)
        else:
            await inter.response.send_message(**kw)
    except discord.HTTPException as e:
        log.warning("Reply failed for interaction %s: %s", getattr(inter, "id", "?"), e)

@asynccontextmanager
async def guarded(inter: Interaction, what: str):
    """
    Frontière d'interaction: les erreurs métier deviennent une réponse éphémère,
    le reste est loggé avec la stack et un message générique part à l'utilisateur.
    """
    try:
        yield
    except ClubError as e:
        log.info("%s refused for %s: %s", what, getattr(inter.user, "id", "?"), e.message)
        await reply(inter, e.message)
    except Exception:
        log.exception("%s failed", what)
        await reply(inter, GENERIC_ERROR)
