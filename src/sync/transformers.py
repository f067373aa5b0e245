"""
API-Football payload -> store row transforms.

Each transform takes one item of a provider ``response`` list and returns
the row(s) to upsert. Transforms are pure; a malformed item raises
KeyError/TypeError/ValueError and is counted as one error by the handler.

Natural conflict keys per table are declared next to the transforms in
TABLES so handlers and tests agree on them.
"""

from datetime import date
from typing import Any, Iterator, Optional


# table -> natural conflict key columns
TABLES = {
    "countries": ("country_id",),
    "leagues": ("league_id", "season_year"),
    "seasons": ("season_year",),
    "venues": ("venue_id",),
    "teams": ("team_id",),
    "coaches": ("coach_id",),
    "fixtures": ("fixture_id",),
    "league_standings": ("league_id", "season_year", "team_id"),
    "players": ("player_id",),
    "injuries": ("fixture_id", "player_id"),
    "transfers": ("player_id", "transfer_date", "team_in_id"),
    "odds": ("fixture_id", "bookmaker_id", "bet_id"),
}


def hash_code(text: str) -> int:
    """
    Stable non-negative 32-bit id for a string.

    Countries have no numeric id in the provider, so their code (or name)
    is hashed; the same input always yields the same id.
    """
    value = 0
    for char in text:
        value = (value * 31 + ord(char)) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return abs(value)


def _nested(item: dict, *path: str) -> Any:
    """item[a][b]... with None for any missing level."""
    current: Any = item
    for key in path:
        if not isinstance(current, dict):
            return None
        current = current.get(key)
    return current


def _required(value: Any, name: str) -> Any:
    if value is None:
        raise ValueError(f"missing {name}")
    return value


def transform_country(item: dict) -> dict:
    name = _required(item.get("name"), "country name")
    code = item.get("code")
    return {
        "country_id": hash_code(code or name),
        "name": name,
        "code": code or name[:3].upper(),
        "flag_url": item.get("flag"),
    }


def current_season_year(seasons: Optional[list], default: Optional[int] = None) -> int:
    """Year of the season flagged current, else the latest listed season."""
    if seasons:
        for season in seasons:
            if season.get("current"):
                return int(season["year"])
        return int(max(season["year"] for season in seasons))
    return default if default is not None else date.today().year


def transform_league(item: dict, default_season: Optional[int] = None) -> dict:
    league = _required(item.get("league"), "league")
    country = item.get("country") or {}
    country_key = country.get("code") or country.get("name")
    return {
        "league_id": _required(league.get("id"), "league id"),
        "name": league.get("name"),
        "type": league.get("type"),
        "logo_url": league.get("logo"),
        "country_id": hash_code(country_key) if country_key else None,
        "season_year": current_season_year(item.get("seasons"), default_season),
    }


def season_row(season_year: int) -> dict:
    """European season convention: August to the end of July."""
    return {
        "season_year": season_year,
        "start_date": f"{season_year}-08-01",
        "end_date": f"{season_year + 1}-07-31",
    }


def transform_venue(item: dict) -> dict:
    return {
        "venue_id": _required(item.get("id"), "venue id"),
        "name": item.get("name"),
        "address": item.get("address"),
        "city": item.get("city"),
        "country": item.get("country"),
        "capacity": item.get("capacity"),
        "surface": item.get("surface"),
        "image_url": item.get("image"),
    }


def transform_team(item: dict) -> dict:
    team = _required(item.get("team"), "team")
    country = team.get("country")
    return {
        "team_id": _required(team.get("id"), "team id"),
        "name": team.get("name"),
        "code": team.get("code"),
        "country_id": hash_code(country) if country else None,
        "founded_year": team.get("founded"),
        "national": bool(team.get("national", False)),
        "venue_id": _nested(item, "venue", "id"),
        "logo_url": team.get("logo"),
    }


def transform_coach(item: dict, team_id: Optional[int] = None) -> dict:
    return {
        "coach_id": _required(item.get("id"), "coach id"),
        "name": item.get("name"),
        "firstname": item.get("firstname"),
        "lastname": item.get("lastname"),
        "age": item.get("age"),
        "nationality": item.get("nationality"),
        "team_id": _nested(item, "team", "id") or team_id,
        "photo_url": item.get("photo"),
    }


def transform_fixture(item: dict) -> dict:
    fixture = _required(item.get("fixture"), "fixture")
    return {
        "fixture_id": _required(fixture.get("id"), "fixture id"),
        "league_id": _nested(item, "league", "id"),
        "season_year": _nested(item, "league", "season"),
        "round": _nested(item, "league", "round"),
        "date_utc": fixture.get("date"),
        "timestamp": fixture.get("timestamp"),
        "referee": fixture.get("referee"),
        "venue_id": _nested(fixture, "venue", "id"),
        "status": _nested(fixture, "status", "short"),
        "status_long": _nested(fixture, "status", "long"),
        "elapsed": _nested(fixture, "status", "elapsed"),
        "home_team_id": _nested(item, "teams", "home", "id"),
        "away_team_id": _nested(item, "teams", "away", "id"),
        "home_goals": _nested(item, "goals", "home"),
        "away_goals": _nested(item, "goals", "away"),
        "home_goals_halftime": _nested(item, "score", "halftime", "home"),
        "away_goals_halftime": _nested(item, "score", "halftime", "away"),
    }


def transform_standings(item: dict) -> Iterator[dict]:
    """One /standings item holds every group table of a league-season."""
    league = _required(item.get("league"), "league")
    league_id = _required(league.get("id"), "league id")
    season_year = _required(league.get("season"), "season")

    for group in league.get("standings") or []:
        for entry in group:
            totals = entry.get("all") or {}
            yield {
                "league_id": league_id,
                "season_year": season_year,
                "team_id": _required(_nested(entry, "team", "id"), "team id"),
                "rank": entry.get("rank"),
                "points": entry.get("points"),
                "goals_diff": entry.get("goalsDiff"),
                "group_name": entry.get("group"),
                "form": entry.get("form"),
                "status": entry.get("status"),
                "description": entry.get("description"),
                "played": totals.get("played"),
                "win": totals.get("win"),
                "draw": totals.get("draw"),
                "lose": totals.get("lose"),
                "goals_for": _nested(totals, "goals", "for"),
                "goals_against": _nested(totals, "goals", "against"),
            }


def transform_player(item: dict) -> dict:
    player = _required(item.get("player"), "player")
    statistics = item.get("statistics") or [{}]
    first = statistics[0]
    return {
        "player_id": _required(player.get("id"), "player id"),
        "name": player.get("name"),
        "firstname": player.get("firstname"),
        "lastname": player.get("lastname"),
        "age": player.get("age"),
        "nationality": player.get("nationality"),
        "height": player.get("height"),
        "weight": player.get("weight"),
        "injured": bool(player.get("injured", False)),
        "photo_url": player.get("photo"),
        "team_id": _nested(first, "team", "id"),
        "league_id": _nested(first, "league", "id"),
        "season_year": _nested(first, "league", "season"),
        "position": _nested(first, "games", "position"),
    }


def transform_injury(item: dict) -> dict:
    return {
        "fixture_id": _required(_nested(item, "fixture", "id"), "fixture id"),
        "player_id": _required(_nested(item, "player", "id"), "player id"),
        "team_id": _nested(item, "team", "id"),
        "league_id": _nested(item, "league", "id"),
        "season_year": _nested(item, "league", "season"),
        "type": _nested(item, "player", "type"),
        "reason": _nested(item, "player", "reason"),
        "date": _nested(item, "fixture", "date"),
    }


def transform_transfers(item: dict) -> Iterator[dict]:
    """One /transfers item lists the whole transfer history of a player."""
    player_id = _required(_nested(item, "player", "id"), "player id")
    for transfer in item.get("transfers") or []:
        yield {
            "player_id": player_id,
            "transfer_date": _required(transfer.get("date"), "transfer date"),
            "type": transfer.get("type"),
            "team_in_id": _required(_nested(transfer, "teams", "in", "id"), "incoming team id"),
            "team_out_id": _nested(transfer, "teams", "out", "id"),
        }


def transform_odds(item: dict) -> Iterator[dict]:
    """Flatten fixture -> bookmaker -> bet into one row per bet market."""
    fixture_id = _required(_nested(item, "fixture", "id"), "fixture id")
    for bookmaker in item.get("bookmakers") or []:
        for bet in bookmaker.get("bets") or []:
            yield {
                "fixture_id": fixture_id,
                "bookmaker_id": _required(bookmaker.get("id"), "bookmaker id"),
                "bookmaker_name": bookmaker.get("name"),
                "bet_id": _required(bet.get("id"), "bet id"),
                "bet_name": bet.get("name"),
                "values": bet.get("values") or [],
                "updated_at": item.get("update"),
            }
