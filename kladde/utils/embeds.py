"""
Embed builders for the Kegelkladde commands.

Keeps formatting out of the cog so that commands only translate between
Discord interactions and service calls.
"""

import discord
from typing import Dict, Iterable, List, Optional

from kladde.data_models.ranking import RankingView
from kladde.data_models.settlement import CashBalance, GamedayCashBalance, SettlementLine
from kladde.data_models.statistics import ClubStatistics
from kladde.database.models import Gameday, GamedayStatus
from kladde.utils.exceptions import KladdeException
from kladde.utils.money import format_euro

# Discord embed field value limit
FIELD_LIMIT = 1024

STATUS_COLORS = {
    GamedayStatus.NOT_STARTED: discord.Color.light_grey(),
    GamedayStatus.IN_PROGRESS: discord.Color.green(),
    GamedayStatus.SETTLEMENT: discord.Color.orange(),
    GamedayStatus.ARCHIVED: discord.Color.dark_grey(),
}


def _chunk_lines(lines: Iterable[str], limit: int = FIELD_LIMIT) -> List[str]:
    chunks, current = [], ''
    for line in lines:
        if current and len(current) + len(line) + 1 > limit:
            chunks.append(current)
            current = ''
        current = f"{current}\n{line}" if current else line
    if current:
        chunks.append(current)
    return chunks


class ErrorEmbeds:
    """Error embed factory."""

    @staticmethod
    def kladde_error(error: KladdeException) -> discord.Embed:
        return discord.Embed(
            title="Fehler",
            description=error.user_message,
            color=discord.Color.red()
        )

    @staticmethod
    def command_error(error: str) -> discord.Embed:
        """Create embed for unexpected command errors."""
        return discord.Embed(
            title="Befehlsfehler",
            description=f"Es ist ein Fehler aufgetreten: {error}\n\nBitte erneut versuchen oder den Admin fragen.",
            color=discord.Color.red()
        )


class KladdeEmbeds:
    @staticmethod
    def gameday(gameday: Gameday, title_prefix: str = "Spieltag") -> discord.Embed:
        status = gameday.gameday_status
        embed = discord.Embed(
            title=f"{title_prefix} #{gameday.id} – {gameday.match_date.strftime('%d.%m.%Y')}",
            description=gameday.note or None,
            color=STATUS_COLORS[status]
        )
        embed.add_field(name="Status", value=status.label, inline=True)
        if gameday.lane_cost is not None:
            embed.add_field(name="Bahnmiete", value=format_euro(gameday.lane_cost), inline=True)
        return embed

    @staticmethod
    def gameday_list(gamedays: List[Gameday]) -> discord.Embed:
        embed = discord.Embed(title="Spieltage", color=discord.Color.blue())
        if not gamedays:
            embed.description = "Noch keine Spieltage angelegt."
            return embed
        lines = [
            f"`#{gameday.id:>3}` {gameday.match_date.strftime('%d.%m.%Y')} – {gameday.gameday_status.label}"
            + (f" ({gameday.note})" if gameday.note else '')
            for gameday in gamedays
        ]
        embed.description = _chunk_lines(lines, 4000)[0]
        return embed

    @staticmethod
    def settlement(gameday: Gameday, lines: List[SettlementLine], names: Dict[int, str]) -> discord.Embed:
        embed = KladdeEmbeds.gameday(gameday, title_prefix="Abrechnung")
        rows = []
        for line in lines:
            marker = '' if line.present else ' (abwesend)'
            rows.append(
                f"**{names.get(line.member_id, line.member_id)}**{marker}: "
                f"{format_euro(line.amount_owed)} – bezahlt {format_euro(line.paid)} – "
                f"offen **{format_euro(line.remaining)}**"
            )
        for index, chunk in enumerate(_chunk_lines(rows) or ["Keine Mitglieder."]):
            embed.add_field(name="Mitglieder" if index == 0 else "​", value=chunk, inline=False)
        return embed

    @staticmethod
    def cash_balance(balance: CashBalance,
                     gameday_balance: Optional[GamedayCashBalance] = None) -> discord.Embed:
        embed = discord.Embed(
            title="Kasse",
            description=f"Kassenstand: **{format_euro(balance.balance)}**",
            color=discord.Color.gold()
        )
        embed.add_field(name="Anfangsbestand", value=format_euro(balance.starting_balance), inline=True)
        embed.add_field(name="Einzahlungen", value=format_euro(balance.total_paid), inline=True)
        embed.add_field(name="Einnahmen", value=format_euro(balance.total_income), inline=True)
        embed.add_field(name="Kosten", value=format_euro(balance.total_costs), inline=True)
        embed.add_field(name="Ausgaben", value=format_euro(balance.total_expenses), inline=True)

        if gameday_balance:
            items = [f"+ {item.name}: {format_euro(item.amount)}" for item in gameday_balance.income_items]
            items += [f"− {item.name}: {format_euro(item.amount)}" for item in gameday_balance.cost_items]
            embed.add_field(
                name=f"Spieltag #{gameday_balance.gameday_id}",
                value=(
                    f"Vorher: {format_euro(gameday_balance.previous_balance)}\n"
                    f"Bezahlt: {format_euro(gameday_balance.gameday_paid)}\n"
                    + ('\n'.join(items) if items else "Keine Einträge")
                )[:FIELD_LIMIT],
                inline=False
            )
        return embed

    @staticmethod
    def ranking(view: RankingView, names: Dict[int, str]) -> discord.Embed:
        is_monte = view.ranking_type == 'monte'
        embed = discord.Embed(
            title="Monte-Wertung" if is_monte else "Medaillenspiegel",
            color=discord.Color.gold()
        )
        rows = []
        for entry in view.standings:
            name = names.get(entry.member_id, entry.display_name)
            if is_monte:
                extra = f"{entry.wins} Siege"
            else:
                extra = f"🥇 {entry.gold} 🥈 {entry.silver} · {entry.wins} Siege"
            rows.append(f"`{entry.rank:>2}.` **{name}** – {entry.total} Pkt. ({extra})")
        embed.description = _chunk_lines(rows, 4000)[0] if rows else "Noch keine Punkte in dieser Runde."

        if view.history:
            history = [
                f"Runde {round_win.round_number}: {names.get(round_win.winner_member_id, round_win.winner_member_id)}"
                f" ({round_win.winning_score} Pkt., Spieltag #{round_win.winning_gameday_id})"
                for round_win in view.history[:10]
            ]
            embed.add_field(name="Rundensieger", value=_chunk_lines(history)[0], inline=False)
        return embed

    @staticmethod
    def statistics(statistics: ClubStatistics) -> discord.Embed:
        embed = discord.Embed(
            title="Statistik",
            description=f"{statistics.total_gamedays} Spieltage, davon {statistics.archived_gamedays} archiviert",
            color=discord.Color.blue()
        )
        rows = [
            f"**{member.display_name}**: {member.gamedays_attended}/{member.gamedays_total} anwesend · "
            f"alle 9: {member.alle9} · Kranz: {member.kranz} · Pudel: {member.pudel}"
            for member in statistics.members
        ]
        for index, chunk in enumerate(_chunk_lines(rows) or ["Keine Mitglieder."]):
            embed.add_field(name="Mitglieder" if index == 0 else "​", value=chunk, inline=False)
        return embed
