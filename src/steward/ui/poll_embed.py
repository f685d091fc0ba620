"""
Embed creation for polls: the open poll, its results, and the closed state.
"""

import datetime
from typing import Optional, Sequence

import discord

from steward.datatypes.schedule_datatypes import Poll, PollResult
from steward.scheduler.poll_tally import POLL_EMOJIS, generate_progress_bar
from steward.util.format_utils import discord_timestamp

POLL_COLOR = discord.Color.from_rgb(0x9B, 0x59, 0xB6)
CLOSED_COLOR = discord.Color.from_rgb(0x7F, 0x8C, 0x8D)


def build_poll_embed(
    question: str,
    options: Sequence[str],
    author_tag: str,
    *,
    anonymous: bool = False,
    end_time: Optional[int] = None,
) -> discord.Embed:
    """
    Create the embed for a freshly posted poll.

    Args:
        question: Poll question, shown as the title.
        options: Option labels; each line is prefixed with its positional emoji.
        author_tag: Display tag of the member who created the poll.
        anonymous: Adds an "Anonymous voting" note to the footer.
        end_time: Epoch ms when the poll closes, or None for an open-ended poll.
    """
    embed = discord.Embed(
        title=f"📊 {question}",
        description="\n".join(f"{POLL_EMOJIS[i]} {option}" for i, option in enumerate(options)),
        color=POLL_COLOR,
        timestamp=datetime.datetime.now(datetime.timezone.utc),
    )
    embed.set_footer(text=f"Poll by {author_tag}{' • Anonymous voting' if anonymous else ''}")
    if end_time is not None:
        embed.add_field(
            name="Poll Ends",
            value=f"{discord_timestamp(end_time, 'R')} ({discord_timestamp(end_time, 'f')})",
            inline=False,
        )
    return embed


def format_results_text(result: PollResult) -> str:
    """One block per option, highest count first, with a progress bar."""
    blocks = [
        f"{entry.emoji} **{entry.option}**\n"
        f"{generate_progress_bar(entry.percentage)} {entry.count} votes ({entry.percentage}%)"
        for entry in result.sorted_results
    ]
    return "\n\n".join(blocks)


def build_poll_results_embed(poll: Poll, result: PollResult) -> discord.Embed:
    """
    Create the results announcement for a closed poll.

    A single winner gets a "Winner" field, a tie lists every tied option
    under "Tie!", and a poll nobody voted in says so under "Result".
    """
    embed = discord.Embed(
        title=f"📊 Poll Results: {poll.question}",
        description=format_results_text(result),
        color=POLL_COLOR,
        timestamp=datetime.datetime.now(datetime.timezone.utc),
    )
    embed.set_footer(text=f"Poll ended • Total votes: {result.total_votes}")

    if result.no_votes:
        embed.add_field(name="Result", value="No votes were cast.", inline=False)
    elif result.winner is not None:
        winner = result.winner
        embed.add_field(
            name="Winner",
            value=f"{winner.emoji} **{winner.option}** with {winner.count} votes",
            inline=False,
        )
    else:
        embed.add_field(
            name="Tie!",
            value="\n".join(f"{entry.emoji} {entry.option}" for entry in result.winners),
            inline=False,
        )
    return embed


def build_closed_poll_embed(original: discord.Embed) -> discord.Embed:
    """Grey out a poll's original embed and mark it as ended."""
    closed = original.copy()
    closed.colour = CLOSED_COLOR
    closed.set_footer(text="Poll ended")
    return closed
