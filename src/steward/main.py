"""
Steward Community Bot
=====================

A Discord community-management bot. Members set personal reminders and
moderators run timed polls; two background schedulers deliver the reminders
and close the polls without anyone invoking them.
"""

import os
import sys
from pathlib import Path

def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. STEWARD_HOME environment variable, if set.
    2. If running in a frozen/compiled context (e.g., PyInstaller, Nuitka), use the executable's directory.
    3. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("STEWARD_HOME"):
        return Path(env_home).resolve()

    if getattr(sys, "frozen", False) or getattr(sys, "compiled", False):
        return Path(sys.argv[0]).resolve().parent

    return Path(__file__).resolve().parents[2]

BASE_DIR = resolve_base_dir()
os.chdir(BASE_DIR)

import asyncio
import discord
from dotenv import load_dotenv

from steward.configuration.app_configuration import app_config
from steward.services import StewardServices, build_services
from steward.util.logger import get_logger, handle_exception


logger = get_logger("main")


def load_environment() -> str:
    """Load environment variables and return the Discord bot token.

    Raises
    ------
    SystemExit
        If the required ``DISCORD_BOT_TOKEN`` variable is missing.
    """
    load_dotenv(dotenv_path=BASE_DIR / ".env")
    token = os.getenv("DISCORD_BOT_TOKEN")
    if not token:
        logger.critical("'DISCORD_BOT_TOKEN' environment variable not set. Bot cannot start.")
        sys.exit(1)
    return token


def build_intents() -> discord.Intents:
    """Intents for guild, member, message and reaction events.

    Reactions are required for poll tallies; the message content intent
    lets the bot read poll message embeds when closing them.
    """
    intents = discord.Intents.default()
    intents.message_content = True
    intents.guilds = True
    intents.messages = True
    intents.reactions = True
    intents.members = True
    return intents


def load_cogs(discord_bot_instance: discord.Bot, services: StewardServices) -> None:
    """Register the command and scheduler cogs with the bot."""
    from steward.cog.commands import poll_cmds, reminder_cmds
    from steward.cog.listener import scheduler_cog

    reminder_cmds.setup(discord_bot_instance, services)
    poll_cmds.setup(discord_bot_instance, services)
    scheduler_cog.setup(discord_bot_instance, services)

    logger.info("All cogs loaded successfully.")


def create_bot() -> discord.Bot:
    """Instantiate the bot, its services and its cogs."""
    bot = discord.Bot(intents=build_intents())
    services = build_services(bot, app_config)
    logger.info("Keyed store at %s (fail_open=%s)", services.store.data_dir, services.store.fail_open)
    load_cogs(bot, services)
    return bot


async def start_bot(bot: discord.Bot, token: str) -> None:
    """Connect to Discord and keep running until the connection is closed."""
    logger.info("Attempting to connect to Discord…")
    try:
        await bot.start(token)
    except asyncio.CancelledError:
        logger.info("Discord bot start cancelled; shutting down")
    finally:
        logger.info("Discord bot start routine finished.")


async def shutdown_runtime(bot: discord.Bot | None = None) -> None:
    """Unload the cogs (stopping both scheduler loops) and close the connection.

    Nothing is flushed: the store is written on every mutation, so work in
    flight is simply redone or dropped at the next tick after restart.
    """
    if bot is None:
        return
    for name in list(bot.cogs):
        try:
            bot.remove_cog(name)
        except Exception as exc:
            logger.exception("Error while unloading cog %s: %s", name, exc)
    if not bot.is_closed():
        await bot.close()
    logger.info("Shutdown complete.")


async def async_main() -> int:
    """Bootstrap the bot and run it, returning an exit code."""
    token = load_environment()

    try:
        bot = create_bot()
    except Exception as exc:
        logger.critical("Failed to initialize Discord bot: %s", exc)
        return 1

    exit_code = 0
    try:
        await start_bot(bot, token)
    except discord.LoginFailure as exc:
        logger.critical("Discord rejected the bot token: %s", exc)
        exit_code = 1
    except Exception as exc:
        logger.critical("Discord bot runtime error: %s", exc)
        exit_code = 1
    finally:
        await shutdown_runtime(bot)

    return exit_code


def main() -> int:
    """Entrypoint that orchestrates the async runtime and returns the process code."""
    logger.info("Starting Steward…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0
    except SystemExit as exit_exc:
        code = exit_exc.code
        if isinstance(code, int):
            return code
        if code is None:
            return 1
        try:
            return int(code)
        except (ValueError, TypeError):
            logger.warning("SystemExit.code is not an int (%r); defaulting to 1", code)
            return 1
    except Exception as exc:
        logger.critical("An unexpected error occurred while running the bot: %s", exc)
        return 1


if __name__ == "__main__":
    sys.excepthook = handle_exception
    sys.exit(main())
