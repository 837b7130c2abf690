# clubbot/core/client.py
from __future__ import annotations
import logging, importlib, inspect, os
import discord
from discord import app_commands
from discord.ext import tasks

from .config import settings
from .db.base import get_conn
from .db.migrations import migrate_if_needed
from .actions import decode

from clubbot.core.event_ticker import EventCompletionTicker
from clubbot.core.notify import Notifier
from clubbot.domain import clubs as d_clubs

# ── Logging
log = logging.getLogger("clubbot")
logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")

# ── Discord client
intents = discord.Intents.default()
intents.members = True
client = discord.Client(intents=intents)
tree = app_commands.CommandTree(client)

# ── Guilds de test (supporte 1..n guilds)
SYNC_SCOPE = settings.sync_scope

def _list_from_env(var: str) -> list[int]:
    raw = os.getenv(var, "").strip()
    if not raw:
        return []
    out: list[int] = []
    for part in raw.split(","):
        s = part.strip()
        if s.isdigit():
            out.append(int(s))
    return out

if SYNC_SCOPE in ("guild", "both"):
    TEST_GUILD_IDS = _list_from_env("TEST_GUILD_IDS") or ([int(settings.guild_id)] if settings.guild_id else [])
else:
    TEST_GUILD_IDS = []

TEST_GUILDS = [discord.Object(id=g) for g in TEST_GUILD_IDS]

# ═══════════════════════════════════════════════════════════════════
# Où publier chaque module
MODULES_GLOBAL = [
    "clubbot.modules.clubs.clubs",
    "clubbot.modules.clubs.registration",
    "clubbot.modules.clubs.membership",
    "clubbot.modules.clubs.transfer",
    "clubbot.modules.clubs.events",
]

MODULES_TEST_ONLY = [
    "clubbot.modules.clubs.audit",
]

# Boutons persistants: ActionKind → handler(inter, action), rempli à l'import des modules
ACTION_HANDLERS: dict = {}

# Utilitaires d'enregistrement
def _call_with_best_signature(fn, guild_obj_for_register: discord.Object | None):
    candidates = [
        (tree, guild_obj_for_register, client),   # register(tree, guild, client)
        (tree, guild_obj_for_register),           # register(tree, guild)
        (tree,),                                  # register(tree)
    ]
    for params in candidates:
        try:
            return fn(*params)
        except TypeError:
            continue
    sig = inspect.signature(fn)
    log.warning("Impossible d'appeler %s avec une signature connue (sig=%s)", fn.__name__, sig)

def _register_one_module(dotted: str, guild_obj_for_register: discord.Object | None):
    mod = importlib.import_module(dotted)
    ACTION_HANDLERS.update(getattr(mod, "ACTION_HANDLERS", {}) or {})
    if hasattr(mod, "register") and callable(mod.register):
        log.info("Register via register(): %s (guild=%s)", dotted, getattr(guild_obj_for_register, "id", None))
        return _call_with_best_signature(mod.register, guild_obj_for_register)
    log.warning("Module %s: pas de register() trouvé, ignoré.", dotted)

def _register_modules(modules: list[str], guilds: list[discord.Object | None]):
    for dotted in modules:
        for g in guilds:
            try:
                _register_one_module(dotted, g)
            except Exception as e:
                log.exception("Échec d'enregistrement du module %s sur %s: %s", dotted, getattr(g, "id", None), e)

# ═══════════════════════════════════════════════════════════════════

async def dispatch_component(inter: discord.Interaction) -> bool:
    """Route un clic de bouton `cb|…` vers son handler. False si le custom_id n'est pas à nous."""
    if inter.type != discord.InteractionType.component:
        return False
    action = decode((inter.data or {}).get("custom_id"))
    if action is None:
        return False
    handler = ACTION_HANDLERS.get(action.kind)
    if handler is None:
        log.warning("No handler for action %s", action.kind.value)
        return False
    await handler(inter, action)
    return True

@client.event
async def on_interaction(inter: discord.Interaction):
    try:
        await dispatch_component(inter)
    except Exception:
        log.exception("Interaction routing failed")

_booted = False

@client.event
async def on_ready():
    global _booted
    log.info("Boot: SYNC_SCOPE=%s • TEST_GUILD_IDS=%s", SYNC_SCOPE, TEST_GUILD_IDS)
    if _booted:
        # Reconnexion: commandes déjà enregistrées
        return
    _booted = True

    try:
        if SYNC_SCOPE == "guild":
            if not TEST_GUILDS:
                raise RuntimeError("SYNC_SCOPE=guild mais aucune guild de test n'est définie.")
            _register_modules(MODULES_GLOBAL + MODULES_TEST_ONLY, TEST_GUILDS)
            for g in TEST_GUILDS:
                synced_g = await tree.sync(guild=g)
                log.info("Synced %d commands on guild %s: %s", len(synced_g), g.id, [c.name for c in synced_g])
        else:  # "global" | "both"
            _register_modules(MODULES_GLOBAL, [None])
            _register_modules(MODULES_TEST_ONLY, TEST_GUILDS or [None])
            g_synced = await tree.sync()
            log.info("Synced %d GLOBAL commands: %s", len(g_synced), [c.name for c in g_synced])
            if SYNC_SCOPE == "both":
                for g in TEST_GUILDS:
                    tree.copy_global_to(guild=g)
                    y_synced = await tree.sync(guild=g)
                    log.info("Copied & synced %d commands to guild %s: %s",
                             len(y_synced), g.id, [c.name for c in y_synced])

    except discord.Forbidden as e:
        log.error("403 Missing Access au sync. Invite le bot avec le scope applications.commands. %s", e)
    except Exception as e:
        log.exception("Sync error: %s", e)

    EventCompletionTicker.start(client)
    if not daily_tick.is_running():
        daily_tick.start()
    log.info("clubbot connecté en %s", client.user)

@tasks.loop(hours=24)
async def daily_tick():
    notifier = Notifier(client)
    for g in client.guilds:
        try:
            n = await d_clubs.refresh_listings(g.id, notifier)
            log.info("Tick quotidien: guild %s, %d annonces de clubs rafraîchies", g.id, n)
        except Exception:
            log.exception("Daily listing refresh failed for guild %s", g.id)

def run():
    # 1) Migrations au boot
    migrate_if_needed(get_conn())

    # 2) Lancement du client
    client.run(settings.token)
