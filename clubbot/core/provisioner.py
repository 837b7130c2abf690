# clubbot/core/provisioner.py
from __future__ import annotations
import logging, random
from dataclasses import dataclass
from typing import Optional
import discord

from clubbot.core.config import settings
from clubbot.domain.text import slugify
from clubbot.persistence import clubs as clubs_db

log = logging.getLogger(__name__)

# 41 couleurs de rôle
PALETTE = (
    0x5865F2, 0x00D9FF, 0x3498DB, 0x1ABC9C, 0x00BCD4,
    0x57F287, 0x2ECC71, 0x27AE60, 0x00FF7F, 0x32CD32,
    0xFEE75C, 0xF1C40F, 0xFFD700, 0xFFA500,
    0xF26522, 0xE74C3C, 0xED4245, 0xFF6347, 0xFF4500, 0xDC143C,
    0xEB459E, 0xE91E63, 0xFF1493, 0xFF69B4, 0xBA55D3,
    0x9B59B6, 0x8E44AD, 0x7B68EE, 0x9370DB, 0xDA70D6,
    0xA0522D, 0xCD853F, 0xD2691E, 0x8B4513,
    0x00CED1, 0x20B2AA, 0x4169E1, 0xFF8C00, 0xB22222, 0xC71585, 0x6A5ACD,
)

_BOT_TEXT = discord.PermissionOverwrite(
    view_channel=True, manage_channels=True, send_messages=True, manage_messages=True,
    embed_links=True, attach_files=True, read_message_history=True, mention_everyone=True,
)
_BOT_VOICE = discord.PermissionOverwrite(view_channel=True, manage_channels=True, connect=True)
_MEMBER_TEXT = discord.PermissionOverwrite(
    view_channel=True, send_messages=True, read_message_history=True,
    add_reactions=True, attach_files=True, embed_links=True,
)
_MOD_TEXT = discord.PermissionOverwrite(
    view_channel=True, send_messages=True, read_message_history=True, add_reactions=True,
    attach_files=True, embed_links=True, manage_messages=True, manage_threads=True, mention_everyone=True,
)
_MEMBER_VOICE = discord.PermissionOverwrite(view_channel=True, connect=True, speak=True, stream=True)
_MOD_VOICE = discord.PermissionOverwrite(
    view_channel=True, connect=True, speak=True, stream=True, mute_members=True, move_members=True,
)
_HIDDEN = discord.PermissionOverwrite(view_channel=False)


@dataclass
class ProvisionResult:
    ok: bool
    role: Optional[discord.Role] = None
    moderator_role: Optional[discord.Role] = None
    category: Optional[discord.CategoryChannel] = None
    text_channel: Optional[discord.TextChannel] = None
    voice_channel: Optional[discord.VoiceChannel] = None
    error: str = ""


def moderator_role_name(club_name: str) -> str:
    return f"{club_name} - Moderator"

def pick_colour(guild: discord.Guild) -> int:
    used = set()
    for rid in clubs_db.active_role_ids(str(guild.id)):
        role = guild.get_role(int(rid)) if str(rid).isdigit() else None
        if role is not None and role.colour.value:
            used.add(role.colour.value)
    free = [c for c in PALETTE if c not in used]
    return random.choice(free or PALETTE)

def _privileged_roles(guild: discord.Guild) -> list[discord.Role]:
    roles = []
    for rid in settings.privileged_role_ids():
        role = guild.get_role(rid)
        if role is not None:
            roles.append(role)
    return roles

def _text_overwrites(guild, me, role, mod_role) -> dict:
    ow = {guild.default_role: _HIDDEN, me: _BOT_TEXT, role: _MEMBER_TEXT, mod_role: _MOD_TEXT}
    for r in _privileged_roles(guild):
        ow.setdefault(r, _MEMBER_TEXT)
    return ow

def _voice_overwrites(guild, me, role, mod_role) -> dict:
    ow = {guild.default_role: _HIDDEN, me: _BOT_VOICE, role: _MEMBER_VOICE, mod_role: _MOD_VOICE}
    for r in _privileged_roles(guild):
        ow.setdefault(r, _MEMBER_VOICE)
    return ow

async def _apply(channel, overwrites: dict, reason: str) -> None:
    for target, ow in overwrites.items():
        await channel.set_permissions(target, overwrite=ow, reason=reason)

async def _ensure_role(guild: discord.Guild, name: str, colour: int, reason: str) -> discord.Role:
    role = discord.utils.get(guild.roles, name=name)
    if role is not None:
        return role
    return await guild.create_role(name=name, colour=discord.Colour(colour), hoist=True,
                                   mentionable=True, reason=reason)

async def _ensure_category(guild: discord.Guild, me: discord.Member) -> discord.CategoryChannel:
    wanted = settings.clubs_category_name
    for cat in guild.categories:
        if cat.name.lower() == wanted.lower():
            # Catégorie partagée: on ne touche qu'à l'accès du bot
            await cat.set_permissions(me, overwrite=_BOT_TEXT, reason="Club infrastructure")
            return cat
    return await guild.create_category(
        wanted, overwrites={guild.default_role: _HIDDEN, me: _BOT_TEXT}, reason="Creating clubs category")

async def ensure_moderator_role(guild: discord.Guild, club: dict) -> discord.Role:
    """Rôle modérateur du club: par id stocké, puis par nom, sinon recréé."""
    rid = club.get("moderator_role_id")
    role = guild.get_role(int(rid)) if rid and str(rid).isdigit() else None
    if role is None:
        base = guild.get_role(int(club["role_id"])) if str(club.get("role_id") or "").isdigit() else None
        colour = base.colour.value if base is not None else pick_colour(guild)
        role = await _ensure_role(guild, moderator_role_name(club["name"]), colour,
                                  f"Club moderator role: {club['name']}")
    return role

async def ensure_club_infrastructure(guild: discord.Guild, club: dict) -> ProvisionResult:
    """
    Crée ou réutilise rôle, rôle modérateur, catégorie, salon texte et vocal.
    Idempotent: relancer après un échec partiel réutilise ce qui existe déjà.
    """
    me = guild.me
    if me is None:
        return ProvisionResult(ok=False, error="bot member not found in guild")
    name = club["name"]
    reason = f"Club approved: {name}"
    try:
        colour = pick_colour(guild)
        role = await _ensure_role(guild, name, colour, reason)
        mod_role = await _ensure_role(guild, moderator_role_name(name), role.colour.value or colour,
                                      f"Club moderator role: {name}")
        category = await _ensure_category(guild, me)

        text_name = slugify(name)
        text_ow = _text_overwrites(guild, me, role, mod_role)
        text = discord.utils.get(category.text_channels, name=text_name)
        if text is None:
            topic = (club.get("description") or "")[:1024] or f"Official channel for {name}"
            text = await guild.create_text_channel(text_name, category=category, overwrites=text_ow,
                                                   topic=topic, reason=reason)
        else:
            await _apply(text, text_ow, reason)

        voice_ow = _voice_overwrites(guild, me, role, mod_role)
        voice = discord.utils.get(category.voice_channels, name=name)
        if voice is None:
            voice = await guild.create_voice_channel(name, category=category, overwrites=voice_ow, reason=reason)
        else:
            await _apply(voice, voice_ow, reason)
    except discord.HTTPException as e:
        log.warning("Provisioning failed for club %s: %s", club.get("id"), e)
        return ProvisionResult(ok=False, error=getattr(e, "text", "") or str(e))

    log.info("Provisioned club %s: role=%s text=%s voice=%s", club.get("id"), role.id, text.id, voice.id)
    return ProvisionResult(ok=True, role=role, moderator_role=mod_role, category=category,
                           text_channel=text, voice_channel=voice)

async def repair_club_permissions(guild: discord.Guild, club: dict) -> ProvisionResult:
    """Réapplique l'accès bot + rôles privilégiés sur les salons d'un club actif."""
    me = guild.me
    if me is None:
        return ProvisionResult(ok=False, error="bot member not found in guild")

    def _get(key):
        v = club.get(key)
        return guild.get_channel(int(v)) if v and str(v).isdigit() else None

    text, voice, category = _get("channel_id"), _get("voice_channel_id"), _get("category_id")
    if text is None and voice is None:
        return ProvisionResult(ok=False, error="club channels not found")
    reason = f"Repair club permissions: {club['name']}"
    try:
        if category is not None:
            await category.set_permissions(me, overwrite=_BOT_TEXT, reason=reason)
        if text is not None:
            await text.set_permissions(me, overwrite=_BOT_TEXT, reason=reason)
            for r in _privileged_roles(guild):
                await text.set_permissions(r, overwrite=_MEMBER_TEXT, reason=reason)
        if voice is not None:
            await voice.set_permissions(me, overwrite=_BOT_VOICE, reason=reason)
            for r in _privileged_roles(guild):
                await voice.set_permissions(r, overwrite=_MEMBER_VOICE, reason=reason)
    except discord.HTTPException as e:
        log.warning("Permission repair failed for club %s: %s", club.get("id"), e)
        return ProvisionResult(ok=False, error=getattr(e, "text", "") or str(e))
    return ProvisionResult(ok=True, category=category, text_channel=text, voice_channel=voice)

# ───────── Rôles des membres ─────────

def club_roles(guild: discord.Guild, club: dict) -> tuple[Optional[discord.Role], Optional[discord.Role]]:
    def _role(key):
        v = club.get(key)
        return guild.get_role(int(v)) if v and str(v).isdigit() else None
    return _role("role_id"), _role("moderator_role_id")

async def resolve_member(guild: discord.Guild, user_id) -> Optional[discord.Member]:
    uid = int(user_id)
    member = guild.get_member(uid)
    if member is not None:
        return member
    try:
        return await guild.fetch_member(uid)
    except discord.HTTPException as e:
        log.warning("Member %s not resolvable in guild %s: %s", uid, guild.id, e)
        return None

async def grant_roles(member: Optional[discord.Member], *roles, reason: str = "") -> bool:
    roles = [r for r in roles if r is not None]
    if member is None or not roles:
        return False
    try:
        await member.add_roles(*roles, reason=reason or None)
        return True
    except discord.HTTPException as e:
        log.warning("Role grant to %s failed: %s", member.id, e)
        return False

async def revoke_roles(member: Optional[discord.Member], *roles, reason: str = "") -> bool:
    roles = [r for r in roles if r is not None]
    if member is None or not roles:
        return False
    try:
        await member.remove_roles(*roles, reason=reason or None)
        return True
    except discord.HTTPException as e:
        log.warning("Role removal from %s failed: %s", member.id, e)
        return False
