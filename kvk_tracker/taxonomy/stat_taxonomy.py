"""
Statistic taxonomy for roster snapshot exports.

Roster exports arrive with whatever header names the exporting tool (or the
officer editing the sheet) chose. Every tracked value is projected onto one
canonical ``Statistic`` name through an alias table, so the rest of the engine
never sees a raw header.

Default alias tables live here; ``config/default.toml`` ``[normalizer]`` may
replace them wholesale.

Alias order matters twice: within one statistic the first matching alias
wins, and statistics claim headers in table order. Specific names
(``"tech power"``) therefore sit before broad ones (``"tech"``).

Usage example::

    from kvk_tracker.taxonomy.stat_taxonomy import Statistic

    stat = Statistic.HONOR_POINT   # "honorPoint"

This module has NO imports from any other ``kvk_tracker`` package.
"""

from enum import StrEnum


class Statistic(StrEnum):
    """Canonical statistic names tracked across snapshots."""

    HONOR_POINT = "honorPoint"
    """Honor accumulated during the KvK window."""

    POWER = "power"
    """Total governor power."""

    KILL_POINTS = "killPoints"
    """Total kill points."""

    KILLS = "kills"

    T1_KILLS = "t1Kills"
    T2_KILLS = "t2Kills"
    T3_KILLS = "t3Kills"
    T4_KILLS = "t4Kills"
    T5_KILLS = "t5Kills"

    TOTAL_KILLS = "totalKills"
    """Units killed over all tiers. Derived from the tier columns when the
    export has no column of its own."""

    DEAD_TROOPS = "deadTroops"
    """Troops lost (dead, not wounded)."""

    TROOPS_POWER = "troopsPower"
    TECH_POWER = "techPower"
    BUILDING_POWER = "buildingPower"
    COMMANDER_POWER = "commanderPower"

    CITY_HALL = "cityHall"
    """City Hall level."""

    # Alliance activity exports
    HELP_TIMES = "helpTimes"
    RSS_TRADING = "rssTrading"
    BUILDING_SCORE = "buildingScore"
    TECH_DONATION = "techDonation"


TIER_KILL_STATISTICS: tuple[Statistic, ...] = (
    Statistic.T1_KILLS,
    Statistic.T2_KILLS,
    Statistic.T3_KILLS,
    Statistic.T4_KILLS,
    Statistic.T5_KILLS,
)


DEFAULT_ID_ALIASES: list[str] = [
    "id", "governorId", "governor id", "gov id", "playerId", "player id",
]

DEFAULT_NAME_ALIASES: list[str] = [
    "name", "governorName", "governor name", "playerName", "player name",
]

DEFAULT_ALLIANCE_ALIASES: list[str] = [
    "alliance", "allianz", "alliance tag", "alliance name",
]

DEFAULT_STAT_ALIASES: dict[str, list[str]] = {
    Statistic.HONOR_POINT:     ["honorPoint", "honor", "honour", "honor points", "points"],
    Statistic.POWER:           ["power", "macht"],
    Statistic.KILL_POINTS:     ["killPoints", "kill points", "total kill points", "kp"],
    Statistic.KILLS:           ["kills"],
    Statistic.T1_KILLS:        ["t1Kills", "t1 kills", "tier 1 kills", "t1", "tier1"],
    Statistic.T2_KILLS:        ["t2Kills", "t2 kills", "tier 2 kills", "t2", "tier2"],
    Statistic.T3_KILLS:        ["t3Kills", "t3 kills", "tier 3 kills", "t3", "tier3"],
    Statistic.T4_KILLS:        ["t4Kills", "t4 kills", "tier 4 kills", "t4", "tier4"],
    Statistic.T5_KILLS:        ["t5Kills", "t5 kills", "tier 5 kills", "t5", "tier5"],
    Statistic.TOTAL_KILLS:     ["totalKills", "total kills"],
    Statistic.DEAD_TROOPS:     ["deadTroops", "dead troops", "dead", "deads"],
    Statistic.TROOPS_POWER:    ["troopsPower", "troops power", "troop power"],
    Statistic.TECH_POWER:      ["techPower", "tech power"],
    Statistic.BUILDING_POWER:  ["buildingPower", "building power"],
    Statistic.COMMANDER_POWER: ["commanderPower", "commander power"],
    Statistic.CITY_HALL:       ["cityHall", "city hall", "ch"],
    Statistic.HELP_TIMES:      ["helpTimes", "help times", "helps", "help"],
    Statistic.RSS_TRADING:     ["rssTrading", "rss trading", "rss assistance", "resources"],
    Statistic.BUILDING_SCORE:  ["buildingScore", "building", "build", "construction"],
    Statistic.TECH_DONATION:   ["techDonation", "tech donation", "tech", "technology"],
}
