import asyncio
import logging
from typing import Optional

import discord
from discord.ext import commands
from discord import app_commands

from fitleague.config import Config
from fitleague.database.database import Database
from fitleague.operations.challenge_operations import ChallengeOperations
from fitleague.operations.submission_operations import SubmissionOperations
from fitleague.services.auto_approval_service import AutoApprovalService
from fitleague.services.configuration import ConfigurationService
from fitleague.services.event_bus import LeagueEventBus
from fitleague.services.leaderboard import LeaderboardService
from fitleague.services.submission_locks import SubmissionLocks
from fitleague.utils.logger import setup_logger
from fitleague.utils.redis_utils import RedisUtils


class LeagueBot(commands.Bot):
    def __init__(self):
        intents = discord.Intents.default()
        intents.guilds = True
        intents.members = True

        super().__init__(
            command_prefix='!',
            intents=intents,
            help_command=None
        )

        # Attach app command error handler
        self.tree.on_error = self.on_app_command_error

        self.db: Optional[Database] = None
        self.config_service: Optional[ConfigurationService] = None
        self.event_bus = LeagueEventBus()
        self.redis_client = None
        self.submission_ops: Optional[SubmissionOperations] = None
        self.challenge_ops: Optional[ChallengeOperations] = None
        self.leaderboard_service: Optional[LeaderboardService] = None
        self.auto_approval_service: Optional[AutoApprovalService] = None
        self.logger = setup_logger(__name__)

    async def setup_hook(self):
        """Called when the bot is starting up"""
        self.logger.info("Setting up FitLeague bot...")

        # Initialize database
        self.db = Database()
        await self.db.initialize()

        # Initialize configuration service and load configs
        self.config_service = ConfigurationService(self.db.session_factory)
        await self.config_service.load_all()
        self.logger.info("Configuration service initialized")

        # Cross-process submission locks when Redis is configured
        self.redis_client = await RedisUtils.create_redis_client()

        self.submission_ops = SubmissionOperations(
            self.db,
            event_bus=self.event_bus,
            locks=SubmissionLocks(self.redis_client),
        )
        self.challenge_ops = ChallengeOperations(self.db, event_bus=self.event_bus)
        self.leaderboard_service = LeaderboardService(
            self.db.session_factory,
            self.config_service,
            event_bus=self.event_bus,
        )
        self.auto_approval_service = AutoApprovalService(
            self.db.session_factory,
            self.config_service,
            event_bus=self.event_bus,
        )

        # Load cogs
        await self.load_cogs()

        # Sync slash commands
        await self._sync_commands()

        self.logger.info("FitLeague bot setup complete!")

    async def load_cogs(self):
        """Load all cogs"""
        cogs_to_load = [
            'fitleague.cogs.submissions',
            'fitleague.cogs.leaderboard',
            'fitleague.cogs.challenges',
        ]

        for cog in cogs_to_load:
            try:
                await self.load_extension(cog)
                self.logger.info(f"Loaded cog: {cog}")
            except Exception as e:
                self.logger.error(f"Failed to load cog {cog}: {e}", exc_info=True)

    async def _sync_commands(self):
        """Sync slash commands with Discord"""
        if not self.tree.get_commands():
            self.logger.warning("No application commands found to sync. Check for cog loading errors.")
            return

        try:
            guild_ids = Config.get_guild_ids()

            if guild_ids:
                self.logger.info(f"Attempting to sync commands to {len(guild_ids)} guild(s): {guild_ids}...")
                total_synced = 0
                for guild_id in guild_ids:
                    try:
                        guild = discord.Object(id=guild_id)
                        self.tree.copy_global_to(guild=guild)
                        synced = await self.tree.sync(guild=guild)
                        self.logger.info(f"Successfully synced {len(synced)} command(s) to guild {guild_id}")
                        total_synced += len(synced)
                    except discord.errors.Forbidden:
                        self.logger.error(f"Permission error syncing to guild {guild_id}. Ensure the bot has the 'application.commands' scope and is in the guild.", exc_info=True)
                    except discord.errors.HTTPException as e:
                        self.logger.error(f"HTTP error syncing to guild {guild_id}. Status: {e.status}, Response: {e.text}", exc_info=True)

                self.logger.info(f"Multi-guild sync complete: {total_synced} total command instances deployed")
            else:
                self.logger.info("Attempting to sync commands globally... (Note: This can take up to an hour to propagate)")
                synced = await self.tree.sync()
                self.logger.info(f"Successfully synced {len(synced)} command(s) globally")
        except Exception as e:
            self.logger.error(f"Failed to sync commands: {e}", exc_info=True)

    async def on_ready(self):
        """Called when the bot is ready"""
        self.logger.info(f'{self.user} has connected to Discord!')
        self.logger.info(f'Bot is in {len(self.guilds)} guilds')

        await self.change_presence(
            activity=discord.Game(name="FitLeague | /leaderboard")
        )

    async def on_app_command_error(self, interaction: discord.Interaction, error: app_commands.AppCommandError):
        """Global error handler for slash commands"""
        command_name = interaction.command.name if interaction.command else 'Unknown'
        if isinstance(error, app_commands.CheckFailure):
            self.logger.info(f"Permission denied for command '{command_name}' by user {interaction.user}")
            title, description = "❌ Permission Denied", "You don't have the required permissions to use this command."
        elif isinstance(error, app_commands.CommandOnCooldown):
            title, description = "❌ Command is on cooldown", f"Try again in {error.retry_after:.2f} seconds."
        else:
            self.logger.error(f"Error in app command '{command_name}': {error}", exc_info=True)
            title, description = "❌ An unexpected error occurred", "The league hosts have been notified."

        error_embed = discord.Embed(title=title, description=description, color=discord.Color.red())
        try:
            if interaction.response.is_done():
                await interaction.followup.send(embed=error_embed, ephemeral=True)
            else:
                await interaction.response.send_message(embed=error_embed, ephemeral=True)
        except Exception as e:
            self.logger.error(f"Failed to send error response: {e}")

    async def close(self):
        """Cleanup when bot is shutting down"""
        self.logger.info("Shutting down FitLeague bot...")
        if self.redis_client:
            await self.redis_client.aclose()
        if self.db:
            await self.db.close()
        await super().close()


async def main():
    """Main entry point"""
    Config.validate()

    bot = LeagueBot()
    try:
        await bot.start(Config.DISCORD_TOKEN)
    except KeyboardInterrupt:
        await bot.close()
    except Exception as e:
        logging.error(f"Fatal error: {e}", exc_info=True)
        await bot.close()


def run():
    asyncio.run(main())


if __name__ == "__main__":
    run()
