"""
Submissions Cog - Daily workout and rest day entries

Slash commands for submitting entries and reviewing them, plus the hourly
auto-approval sweep for entries nobody reviewed in time.
"""

from datetime import date
from typing import Optional

import discord
from discord import app_commands
from discord.ext import commands, tasks

from fitleague.constants import ScoringConstants
from fitleague.data_models.submission import WorkoutMetric
from fitleague.database.models import EntryKind, SubmissionStatus
from fitleague.utils.embeds import review_embed, submission_embed
from fitleague.utils.error_embeds import ErrorEmbeds
from fitleague.utils.errors import LeagueEngineError
from fitleague.utils.league_time import local_date_for_offset
from fitleague.utils.logger import setup_logger

logger = setup_logger(__name__)

UtcOffset = app_commands.Range[int, ScoringConstants.MIN_UTC_OFFSET_MINUTES, ScoringConstants.MAX_UTC_OFFSET_MINUTES]


def _parse_date(value: Optional[str], utc_offset: int, now) -> date:
    if not value:
        return local_date_for_offset(now, utc_offset)
    return date.fromisoformat(value)


class SubmissionsCog(commands.Cog):
    """Daily entry submission and review"""

    def __init__(self, bot):
        self.bot = bot
        self.submission_ops = bot.submission_ops
        self.auto_approval = bot.auto_approval_service
        self.logger = logger

    async def cog_load(self):
        self.auto_approve_pending.start()

    def cog_unload(self):
        """Stop background tasks when cog is unloaded"""
        self.auto_approve_pending.cancel()

    @tasks.loop(hours=1)
    async def auto_approve_pending(self):
        """Approve entries left pending past the review deadline"""
        try:
            approved = await self.auto_approval.sweep()
            if approved:
                self.logger.info(f"Auto-approval sweep approved {len(approved)} entries")
        except Exception as e:
            self.logger.error(f"Error in auto-approval task: {e}", exc_info=True)

    @auto_approve_pending.before_loop
    async def before_auto_approve(self):
        await self.bot.wait_until_ready()

    async def _send_error(self, interaction: discord.Interaction, embed: discord.Embed):
        if interaction.response.is_done():
            await interaction.followup.send(embed=embed, ephemeral=True)
        else:
            await interaction.response.send_message(embed=embed, ephemeral=True)

    async def _submit(
        self,
        interaction: discord.Interaction,
        league_id: int,
        kind: EntryKind,
        entry_date: Optional[str],
        utc_offset: int,
        overwrite: bool,
        workout_type: Optional[str] = None,
        metric: Optional[WorkoutMetric] = None,
        proof: Optional[discord.Attachment] = None,
        notes: Optional[str] = None,
        exemption_reason: Optional[str] = None,
    ):
        await interaction.response.defer(ephemeral=True)
        member = await self.submission_ops.get_member_by_discord_id(interaction.user.id, league_id)
        if member is None:
            await self._send_error(interaction, ErrorEmbeds.not_a_member())
            return

        try:
            day = _parse_date(entry_date, utc_offset, self.submission_ops.clock())
        except ValueError:
            await self._send_error(interaction, ErrorEmbeds.invalid_input("Date must be in YYYY-MM-DD format."))
            return

        # Overwrites replace the entry as it is now; a concurrent change turns into a conflict
        expected_version = None
        if overwrite:
            current = await self.submission_ops.get_current_submission(member.id, day)
            expected_version = current.version if current else None

        try:
            result = await self.submission_ops.submit_entry(
                member_id=member.id,
                league_id=league_id,
                entry_date=day,
                kind=kind,
                workout_type=workout_type,
                metric=metric,
                overwrite=overwrite,
                expected_version=expected_version,
                proof_url=proof.url if proof else None,
                notes=notes,
                utc_offset_minutes=utc_offset,
                exemption_reason=exemption_reason,
            )
        except LeagueEngineError as e:
            await self._send_error(interaction, ErrorEmbeds.engine_error(e))
            return

        await interaction.followup.send(embed=submission_embed(result), ephemeral=True)

    @app_commands.command(name="submit-workout", description="Log today's workout")
    @app_commands.describe(
        league_id="League to submit for",
        workout_type="Activity, e.g. run, walk, yoga, steps",
        duration="Minutes",
        distance="Kilometres",
        steps="Step count",
        holes="Golf holes played",
        proof="Screenshot or photo of the activity",
        entry_date="YYYY-MM-DD, defaults to today",
        utc_offset="Your offset from UTC in minutes, e.g. 330 for IST",
        overwrite="Replace the entry you already submitted for this date",
    )
    async def submit_workout(
        self,
        interaction: discord.Interaction,
        league_id: int,
        workout_type: str,
        duration: Optional[float] = None,
        distance: Optional[float] = None,
        steps: Optional[int] = None,
        holes: Optional[int] = None,
        proof: Optional[discord.Attachment] = None,
        notes: Optional[str] = None,
        entry_date: Optional[str] = None,
        utc_offset: UtcOffset = 0,
        overwrite: bool = False,
    ):
        try:
            metric = WorkoutMetric.from_fields(duration, distance, steps, holes)
        except LeagueEngineError as e:
            await self._send_error(interaction, ErrorEmbeds.engine_error(e))
            return
        await self._submit(
            interaction, league_id, EntryKind.WORKOUT, entry_date, utc_offset, overwrite,
            workout_type=workout_type.strip().lower(), metric=metric, proof=proof, notes=notes,
        )

    @app_commands.command(name="submit-rest", description="Log a rest day")
    @app_commands.describe(
        league_id="League to submit for",
        entry_date="YYYY-MM-DD, defaults to today",
        utc_offset="Your offset from UTC in minutes",
        exemption_reason="Why this rest day should count once your allowance is used",
        overwrite="Replace the entry you already submitted for this date",
    )
    async def submit_rest(
        self,
        interaction: discord.Interaction,
        league_id: int,
        notes: Optional[str] = None,
        entry_date: Optional[str] = None,
        utc_offset: UtcOffset = 0,
        overwrite: bool = False,
        exemption_reason: Optional[str] = None,
    ):
        await self._submit(
            interaction, league_id, EntryKind.REST, entry_date, utc_offset, overwrite,
            notes=notes, exemption_reason=exemption_reason,
        )

    @app_commands.command(name="review", description="Approve or reject a daily entry")
    @app_commands.describe(
        league_id="League the entry belongs to",
        submission_id="Entry number",
        decision="approved or rejected",
        reason="Shown to the member on rejection",
    )
    @app_commands.choices(decision=[
        app_commands.Choice(name="Approve", value=SubmissionStatus.APPROVED.value),
        app_commands.Choice(name="Reject", value=SubmissionStatus.REJECTED.value),
    ])
    async def review(
        self,
        interaction: discord.Interaction,
        league_id: int,
        submission_id: int,
        decision: app_commands.Choice[str],
        reason: Optional[str] = None,
    ):
        await interaction.response.defer(ephemeral=True)
        reviewer = await self.submission_ops.get_member_by_discord_id(interaction.user.id, league_id)
        if reviewer is None:
            await self._send_error(interaction, ErrorEmbeds.not_a_member())
            return

        try:
            result = await self.submission_ops.review_submission(
                submission_id=submission_id,
                reviewer_id=reviewer.id,
                decision=decision.value,
                rejection_reason=reason,
            )
        except LeagueEngineError as e:
            await self._send_error(interaction, ErrorEmbeds.engine_error(e))
            return

        await interaction.followup.send(
            embed=review_embed(submission_id, result.submission.status.value, result.changed),
            ephemeral=True,
        )


async def setup(bot):
    await bot.add_cog(SubmissionsCog(bot))
