# clubbot/core/notify.py
from __future__ import annotations
import logging
from typing import Optional
import discord

log = logging.getLogger(__name__)

def _payload(content, embed, view) -> dict:
    kw = {}
    if content is not None:
        kw["content"] = content
    if embed is not None:
        kw["embed"] = embed
    if view is not None:
        kw["view"] = view
    return kw

class Notifier:
    """
    Envois best-effort: un DM/post/édition raté est loggé en WARNING et renvoie
    False/None, jamais d'exception vers le workflow appelant.
    """

    def __init__(self, client: discord.Client):
        self.client = client

    @staticmethod
    def jump_url(guild_id, channel_id, message_id) -> str:
        return f"https://discord.com/channels/{guild_id}/{channel_id}/{message_id}"

    async def _channel(self, channel_id):
        if not channel_id:
            return None
        cid = int(channel_id)
        ch = self.client.get_channel(cid)
        if ch is None:
            try:
                ch = await self.client.fetch_channel(cid)
            except discord.HTTPException as e:
                log.warning("Channel %s fetch failed: %s", cid, e)
                return None
        return ch

    async def dm(self, user_id, *, content: str | None = None, embed: discord.Embed | None = None,
                 view: discord.ui.View | None = None) -> bool:
        try:
            uid = int(user_id)
            user = self.client.get_user(uid) or await self.client.fetch_user(uid)
            await user.send(**_payload(content, embed, view))
            return True
        except discord.HTTPException as e:
            log.warning("DM to %s failed: %s", user_id, e)
            return False

    async def send(self, channel_id, *, content: str | None = None, embed: discord.Embed | None = None,
                   view: discord.ui.View | None = None) -> Optional[discord.Message]:
        ch = await self._channel(channel_id)
        if ch is None:
            if channel_id:
                log.warning("Channel %s unavailable; message dropped", channel_id)
            return None
        try:
            return await ch.send(**_payload(content, embed, view))
        except discord.HTTPException as e:
            log.warning("Post in channel %s failed: %s", channel_id, e)
            return None

    async def edit(self, channel_id, message_id, *, content: str | None = None,
                   embed: discord.Embed | None = None, view: discord.ui.View | None = None) -> bool:
        ch = await self._channel(channel_id)
        if ch is None or not message_id:
            return False
        try:
            await ch.get_partial_message(int(message_id)).edit(**_payload(content, embed, view))
            return True
        except discord.HTTPException as e:
            log.warning("Edit of message %s in %s failed: %s", message_id, channel_id, e)
            return False
