import discord
from discord import app_commands
from discord.ext import commands
from typing import Dict, Optional
import logging

from kladde.database.models import SIDE_GAME_KEYS
from kladde.services.cash_balance_service import CashBalanceService
from kladde.services.edit_locks import EditLockService
from kladde.services.gameday_service import GamedayService
from kladde.services.ranking_service import RankingService
from kladde.services.settlement_service import SettlementService
from kladde.services.statistics_service import StatisticsService
from kladde.operations.member_operations import MemberOperations
from kladde.utils.embeds import ErrorEmbeds, KladdeEmbeds
from kladde.utils.exceptions import KladdeException
from kladde.utils.money import format_euro

logger = logging.getLogger(__name__)

ATTENDANCE_FIELD_CHOICES = [
    app_commands.Choice(name=label, value=value)
    for label, value in (
        ("Anwesend", "present"),
        ("Strafen", "penalties"),
        ("Bezahlt", "paid"),
        ("Triclops", "triclops"),
        ("Alle 9", "alle9"),
        ("Kranz", "kranz"),
        ("Pudel", "pudel"),
        ("VA", "va"),
        ("Monte", "monte"),
        ("Monte Extrapunkt", "monte_extra"),
        ("Monte Stechen", "monte_tiebreak"),
        ("Aussteigen", "aussteigen"),
        ("Aussteigen Stechen", "aussteigen_tiebreak"),
        ("6-Tage-Rennen", "sechs_tage"),
    )
]


INITIAL_VALUE_CHOICES = [
    app_commands.Choice(name=label, value=value)
    for label, value in (
        ("Alle 9", "initial_alle9"),
        ("Kranz", "initial_kranz"),
        ("Monte-Punkte", "initial_monte_points"),
        ("Medaillen-Punkte", "initial_medaillen_points"),
        ("Monte-Siege", "initial_monte_siege"),
        ("Medaillen-Siege", "initial_medaillen_siege"),
    )
]

class KladdeCog(commands.Cog):
    """Gameday bookkeeping, cash balance and rankings"""

    def __init__(self, bot):
        self.bot = bot
        self.gameday_service = GamedayService(bot.db, bot.config_service)
        self.settlement_service = SettlementService(bot.db)
        self.cash_balance_service = CashBalanceService(bot.db, bot.config_service)
        self.ranking_service = RankingService(bot.db)
        self.statistics_service = StatisticsService(bot.db)
        self.member_ops = MemberOperations(bot.db)

    async def _member_names(self) -> Dict[int, str]:
        members = await self.member_ops.get_ordered_members(active_only=False)
        return {member.id: member.display_name for member in members}

    async def _send_error(self, interaction: discord.Interaction, error: Exception, command: str):
        if isinstance(error, KladdeException):
            logger.info(f"{command} rejected: {error}")
            embed = ErrorEmbeds.kladde_error(error)
        else:
            logger.error(f"Error in {command} command: {error}", exc_info=True)
            embed = ErrorEmbeds.command_error("Unerwarteter Fehler.")
        await interaction.followup.send(embed=embed, ephemeral=True)

    # Gamedays

    @app_commands.command(name="spieltag-neu", description="Neuen Spieltag anlegen")
    @app_commands.describe(datum="Datum (TT.MM.JJJJ), leer = nächster Termin", notiz="Optionale Notiz")
    @app_commands.default_permissions(manage_guild=True)
    async def create_gameday(self, interaction: discord.Interaction,
                             datum: Optional[str] = None, notiz: Optional[str] = None):
        await interaction.response.defer()
        try:
            match_date = datum or await self.gameday_service.next_match_date()
            gameday = await self.gameday_service.create_gameday(match_date, notiz)
            await interaction.followup.send(embed=KladdeEmbeds.gameday(gameday, title_prefix="Neuer Spieltag"))
        except Exception as e:
            await self._send_error(interaction, e, "spieltag-neu")

    @app_commands.command(name="spieltage", description="Alle Spieltage anzeigen")
    async def list_gamedays(self, interaction: discord.Interaction):
        await interaction.response.defer()
        try:
            gamedays = await self.gameday_service.list_gamedays()
            await interaction.followup.send(embed=KladdeEmbeds.gameday_list(gamedays))
        except Exception as e:
            await self._send_error(interaction, e, "spieltage")

    @app_commands.command(name="spieltag-status", description="Status eines Spieltags ändern")
    @app_commands.describe(spieltag="Spieltag-Nummer", richtung="Vor oder zurück")
    @app_commands.choices(richtung=[
        app_commands.Choice(name="weiter", value="advance"),
        app_commands.Choice(name="zurück", value="revert"),
    ])
    @app_commands.default_permissions(manage_guild=True)
    async def change_status(self, interaction: discord.Interaction, spieltag: int,
                            richtung: app_commands.Choice[str]):
        await interaction.response.defer()
        try:
            if richtung.value == "advance":
                await self.gameday_service.advance_status(spieltag)
            else:
                await self.gameday_service.revert_status(spieltag)
            gameday = await self.gameday_service.get_gameday(spieltag)
            await interaction.followup.send(embed=KladdeEmbeds.gameday(gameday))
        except Exception as e:
            await self._send_error(interaction, e, "spieltag-status")

    @app_commands.command(name="spieltag-loeschen", description="Spieltag mit allen Einträgen löschen")
    @app_commands.describe(spieltag="Spieltag-Nummer")
    @app_commands.default_permissions(manage_guild=True)
    async def delete_gameday(self, interaction: discord.Interaction, spieltag: int):
        await interaction.response.defer(ephemeral=True)
        try:
            await self.gameday_service.delete_gameday(spieltag)
            await interaction.followup.send(f"🗑️ Spieltag #{spieltag} gelöscht.", ephemeral=True)
        except Exception as e:
            await self._send_error(interaction, e, "spieltag-loeschen")

    # Attendance

    @app_commands.command(name="eintragen", description="Wert für ein Mitglied eintragen")
    @app_commands.describe(spieltag="Spieltag-Nummer", mitglied="Mitglied", feld="Feld", wert="Neuer Wert")
    @app_commands.choices(feld=ATTENDANCE_FIELD_CHOICES)
    async def update_attendance(self, interaction: discord.Interaction, spieltag: int, mitglied: int,
                                feld: app_commands.Choice[str], wert: str):
        await interaction.response.defer()
        lock_key = EditLockService.row_key(spieltag, mitglied)
        holder = str(interaction.user.id)
        if not await self.bot.edit_locks.try_lock(lock_key, holder):
            await interaction.followup.send("⏳ Diese Zeile wird gerade von jemand anderem bearbeitet.", ephemeral=True)
            return
        try:
            line = await self.gameday_service.update_attendance(spieltag, mitglied, {feld.value: wert})
            names = await self._member_names()
            await interaction.followup.send(
                f"✅ {names.get(mitglied, mitglied)}: {feld.name} = {wert} – offen {format_euro(line.remaining)}"
            )
        except Exception as e:
            await self._send_error(interaction, e, "eintragen")
        finally:
            await self.bot.edit_locks.release(lock_key, holder)

    @app_commands.command(name="streichen", description="Nebenspiel für ein Mitglied streichen oder zurücknehmen")
    @app_commands.describe(spieltag="Spieltag-Nummer", mitglied="Mitglied", spiel="Nebenspiel")
    @app_commands.choices(spiel=[app_commands.Choice(name=key, value=key) for key in SIDE_GAME_KEYS])
    async def toggle_struck_game(self, interaction: discord.Interaction, spieltag: int, mitglied: int,
                                 spiel: app_commands.Choice[str]):
        await interaction.response.defer()
        try:
            struck = await self.gameday_service.toggle_struck_game(spieltag, mitglied, spiel.value)
            state = "gestrichen" if spiel.value in struck else "wieder gewertet"
            await interaction.followup.send(f"✅ {spiel.name} {state}.")
        except Exception as e:
            await self._send_error(interaction, e, "streichen")

    @app_commands.command(name="spieltag-bahnmiete", description="Bahnmiete eines Spieltags vermerken")
    @app_commands.describe(spieltag="Spieltag-Nummer", betrag="Betrag in €, leer = entfernen")
    @app_commands.default_permissions(manage_guild=True)
    async def set_lane_cost(self, interaction: discord.Interaction, spieltag: int, betrag: Optional[str] = None):
        await interaction.response.defer()
        try:
            gameday = await self.gameday_service.set_lane_cost(spieltag, betrag)
            await interaction.followup.send(embed=KladdeEmbeds.gameday(gameday))
        except Exception as e:
            await self._send_error(interaction, e, "spieltag-bahnmiete")

    # Custom games

    @app_commands.command(name="spiel-neu", description="Eigenes Spiel zu einem Spieltag hinzufügen")
    @app_commands.describe(spieltag="Spieltag-Nummer", name="Name des Spiels (max. 30 Zeichen)")
    async def add_custom_game(self, interaction: discord.Interaction, spieltag: int, name: str):
        await interaction.response.defer()
        try:
            custom_game = await self.gameday_service.add_custom_game(spieltag, name)
            await interaction.followup.send(f"✅ Spiel #{custom_game.id} '{custom_game.name}' angelegt.")
        except Exception as e:
            await self._send_error(interaction, e, "spiel-neu")

    @app_commands.command(name="spiel-umbenennen", description="Eigenes Spiel umbenennen")
    @app_commands.describe(spiel="Spiel-Nummer", name="Neuer Name")
    async def rename_custom_game(self, interaction: discord.Interaction, spiel: int, name: str):
        await interaction.response.defer()
        try:
            custom_game = await self.gameday_service.rename_custom_game(spiel, name)
            await interaction.followup.send(f"✅ Spiel #{custom_game.id} heißt jetzt '{custom_game.name}'.")
        except Exception as e:
            await self._send_error(interaction, e, "spiel-umbenennen")

    @app_commands.command(name="spiel-loeschen", description="Eigenes Spiel mit allen Einsätzen löschen")
    @app_commands.describe(spiel="Spiel-Nummer")
    async def delete_custom_game(self, interaction: discord.Interaction, spiel: int):
        await interaction.response.defer()
        try:
            await self.gameday_service.delete_custom_game(spiel)
            await interaction.followup.send(f"🗑️ Spiel #{spiel} gelöscht.")
        except Exception as e:
            await self._send_error(interaction, e, "spiel-loeschen")

    @app_commands.command(name="spiel-wert", description="Einsatz eines Mitglieds bei einem eigenen Spiel eintragen")
    @app_commands.describe(spiel="Spiel-Nummer", mitglied="Mitglied", betrag="Betrag in €")
    async def set_custom_game_value(self, interaction: discord.Interaction, spiel: int, mitglied: int, betrag: str):
        await interaction.response.defer()
        try:
            line = await self.gameday_service.set_custom_game_value(spiel, mitglied, betrag)
            names = await self._member_names()
            await interaction.followup.send(
                f"✅ {names.get(mitglied, mitglied)}: eigene Spiele {format_euro(line.custom_game_total)}"
                f" – offen {format_euro(line.remaining)}"
            )
        except Exception as e:
            await self._send_error(interaction, e, "spiel-wert")

    # Members

    @app_commands.command(name="startwerte", description="Startwerte eines Mitglieds aus der alten Kladde setzen")
    @app_commands.describe(mitglied="Mitglied", feld="Startwert", wert="Anzahl")
    @app_commands.choices(feld=INITIAL_VALUE_CHOICES)
    @app_commands.default_permissions(manage_guild=True)
    async def set_initial_value(self, interaction: discord.Interaction, mitglied: int,
                                feld: app_commands.Choice[str], wert: int):
        await interaction.response.defer(ephemeral=True)
        try:
            await self.member_ops.set_initial_values(mitglied, {feld.value: wert})
            names = await self._member_names()
            await interaction.followup.send(
                f"✅ {names.get(mitglied, mitglied)}: {feld.name} = {wert}", ephemeral=True
            )
        except Exception as e:
            await self._send_error(interaction, e, "startwerte")

    @update_attendance.autocomplete('mitglied')
    @toggle_struck_game.autocomplete('mitglied')
    @set_custom_game_value.autocomplete('mitglied')
    @set_initial_value.autocomplete('mitglied')
    async def member_autocomplete(self, interaction: discord.Interaction,
                                  current: str) -> list[app_commands.Choice[int]]:
        """Provide member name suggestions."""
        try:
            members = await self.member_ops.get_ordered_members(active_only=True)
            return [
                app_commands.Choice(name=member.display_name, value=member.id)
                for member in members
                if current.lower() in member.display_name.lower()
            ][:25]  # Discord limit
        except Exception as e:
            logger.error(f"Error in member autocomplete: {e}")
            return []

    # Settlement and cash

    @app_commands.command(name="abrechnung", description="Abrechnung eines Spieltags anzeigen")
    @app_commands.describe(spieltag="Spieltag-Nummer")
    async def settlement(self, interaction: discord.Interaction, spieltag: int):
        await interaction.response.defer()
        try:
            gameday = await self.gameday_service.get_gameday(spieltag)
            lines = await self.settlement_service.compute_settlement(spieltag)
            names = await self._member_names()
            await interaction.followup.send(embed=KladdeEmbeds.settlement(gameday, lines, names))
        except Exception as e:
            await self._send_error(interaction, e, "abrechnung")

    @app_commands.command(name="kasse", description="Kassenstand anzeigen")
    @app_commands.describe(spieltag="Optional: Kassenstand aus Sicht eines Spieltags")
    async def cash_balance(self, interaction: discord.Interaction, spieltag: Optional[int] = None):
        await interaction.response.defer()
        try:
            balance = await self.cash_balance_service.compute_cash_balance()
            gameday_balance = None
            if spieltag is not None:
                gameday_balance = await self.cash_balance_service.compute_cash_balance_for_gameday(spieltag)
            await interaction.followup.send(embed=KladdeEmbeds.cash_balance(balance, gameday_balance))
        except Exception as e:
            await self._send_error(interaction, e, "kasse")

    @app_commands.command(name="eintrag", description="Einnahme oder Kosten zu einem Spieltag buchen")
    @app_commands.describe(spieltag="Spieltag-Nummer", art="Einnahme oder Kosten", name="Bezeichnung",
                           betrag="Betrag in €")
    @app_commands.choices(art=[
        app_commands.Choice(name="Einnahme", value="income"),
        app_commands.Choice(name="Kosten", value="cost"),
    ])
    @app_commands.default_permissions(manage_guild=True)
    async def add_entry(self, interaction: discord.Interaction, spieltag: int,
                        art: app_commands.Choice[str], name: str, betrag: str):
        await interaction.response.defer()
        try:
            entry = await self.gameday_service.add_entry(spieltag, art.value, name, betrag)
            await interaction.followup.send(f"✅ {art.name} '{entry.name}' über {format_euro(entry.amount)} gebucht.")
        except Exception as e:
            await self._send_error(interaction, e, "eintrag")

    @app_commands.command(name="ausgabe", description="Vereinsausgabe erfassen")
    @app_commands.describe(betrag="Betrag in €", beschreibung="Wofür?", datum="Datum (TT.MM.JJJJ), leer = heute")
    @app_commands.default_permissions(manage_guild=True)
    async def add_expense(self, interaction: discord.Interaction, betrag: str, beschreibung: str,
                          datum: Optional[str] = None):
        await interaction.response.defer()
        try:
            expense = await self.cash_balance_service.add_expense(betrag, beschreibung, datum)
            await interaction.followup.send(
                f"✅ Ausgabe '{expense.description}' über {format_euro(expense.amount)} erfasst."
            )
        except Exception as e:
            await self._send_error(interaction, e, "ausgabe")

    @app_commands.command(name="anfangsbestand", description="Anfangsbestand der Kasse setzen")
    @app_commands.describe(betrag="Betrag in €")
    @app_commands.default_permissions(manage_guild=True)
    async def set_starting_balance(self, interaction: discord.Interaction, betrag: str):
        await interaction.response.defer(ephemeral=True)
        try:
            amount = await self.cash_balance_service.set_starting_balance(betrag)
            await interaction.followup.send(f"✅ Anfangsbestand: {format_euro(amount)}", ephemeral=True)
        except Exception as e:
            await self._send_error(interaction, e, "anfangsbestand")

    # Rankings

    @app_commands.command(name="monte", description="Monte-Wertung anzeigen")
    async def monte(self, interaction: discord.Interaction):
        await interaction.response.defer()
        try:
            view = await self.ranking_service.get_monte_standings()
            names = await self._member_names()
            await interaction.followup.send(embed=KladdeEmbeds.ranking(view, names))
        except Exception as e:
            await self._send_error(interaction, e, "monte")

    @app_commands.command(name="medaillen", description="Medaillenspiegel anzeigen")
    async def medaillen(self, interaction: discord.Interaction):
        await interaction.response.defer()
        try:
            view = await self.ranking_service.get_medaillen_standings()
            names = await self._member_names()
            await interaction.followup.send(embed=KladdeEmbeds.ranking(view, names))
        except Exception as e:
            await self._send_error(interaction, e, "medaillen")

    @app_commands.command(name="statistik", description="Statistik der Mitglieder anzeigen")
    async def statistics(self, interaction: discord.Interaction):
        await interaction.response.defer()
        try:
            statistics = await self.statistics_service.get_club_statistics()
            await interaction.followup.send(embed=KladdeEmbeds.statistics(statistics))
        except Exception as e:
            await self._send_error(interaction, e, "statistik")


async def setup(bot):
    await bot.add_cog(KladdeCog(bot))
