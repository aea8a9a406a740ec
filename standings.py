"""
League table computation.

calculate_standings folds played fixtures into per-player rows and orders
them by points, goal difference, goals scored and finally name.
"""

import unicodedata
from collections import deque

STATUS_PLAYED = "PLAYED"
POINTS_FOR_WIN = 3
POINTS_FOR_DRAW = 1
FORM_LENGTH = 5

RESULT_WIN = "W"
RESULT_DRAW = "D"
RESULT_LOSS = "L"


def player_display_name(player):
    return player.get("name") or f"Player {player['id']}"


def new_standing(player):
    return {
        "player_id": player["id"],
        "player_name": player_display_name(player),
        "team": player.get("assigned_team") or player.get("preferred_club"),
        "played": 0,
        "won": 0,
        "drawn": 0,
        "lost": 0,
        "goals_for": 0,
        "goals_against": 0,
        "goal_difference": 0,
        "points": 0,
        "form": deque(maxlen=FORM_LENGTH),
    }


def is_counted(fixture):
    return (
        fixture.get("status") == STATUS_PLAYED
        and fixture.get("home_score") is not None
        and fixture.get("away_score") is not None
    )


def _record(row, scored, conceded):
    row["played"] += 1
    row["goals_for"] += scored
    row["goals_against"] += conceded
    if scored > conceded:
        row["won"] += 1
        row["points"] += POINTS_FOR_WIN
        result = RESULT_WIN
    elif scored < conceded:
        row["lost"] += 1
        result = RESULT_LOSS
    else:
        row["drawn"] += 1
        row["points"] += POINTS_FOR_DRAW
        result = RESULT_DRAW
    # newest first; deque drops the oldest entry past FORM_LENGTH
    row["form"].appendleft(result)


def apply_fixture_to_standings(standings, fixture):
    home = standings.get(fixture["home_player_id"])
    away = standings.get(fixture["away_player_id"])
    if not home or not away:
        return
    home_score = fixture["home_score"]
    away_score = fixture["away_score"]
    _record(home, home_score, away_score)
    _record(away, away_score, home_score)


def name_sort_key(name):
    # accented letters sort with their base letter
    decomposed = unicodedata.normalize("NFKD", name or "")
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).casefold()


def standing_sort_key(row):
    return (
        -row["points"],
        -row["goal_difference"],
        -row["goals_for"],
        name_sort_key(row["player_name"]),
    )


def calculate_standings(fixtures, players):
    standings = {player["id"]: new_standing(player) for player in players}

    for fixture in fixtures:
        if is_counted(fixture):
            apply_fixture_to_standings(standings, fixture)

    for row in standings.values():
        row["goal_difference"] = row["goals_for"] - row["goals_against"]
        row["form"] = list(row["form"])

    ordered = sorted(standings.values(), key=standing_sort_key)
    for idx, row in enumerate(ordered, start=1):
        row["position"] = idx
    return ordered


def result_for(fixture, player_id):
    if fixture["home_player_id"] == player_id:
        scored, conceded = fixture["home_score"], fixture["away_score"]
    elif fixture["away_player_id"] == player_id:
        scored, conceded = fixture["away_score"], fixture["home_score"]
    else:
        raise ValueError(f"Player {player_id} is not part of fixture {fixture.get('id')}.")
    if scored > conceded:
        return RESULT_WIN
    if scored < conceded:
        return RESULT_LOSS
    return RESULT_DRAW


def recent_results(fixtures, player_id, limit=FORM_LENGTH):
    """Played fixtures of one player, newest first, from that player's side."""
    results = []
    for fixture in fixtures:
        if not is_counted(fixture):
            continue
        if player_id not in (fixture["home_player_id"], fixture["away_player_id"]):
            continue
        is_home = fixture["home_player_id"] == player_id
        results.append(
            {
                "fixture_id": fixture.get("id"),
                "matchday": fixture.get("matchday"),
                "is_home": is_home,
                "home_team": fixture.get("home_team"),
                "away_team": fixture.get("away_team"),
                "home_score": fixture["home_score"],
                "away_score": fixture["away_score"],
                "opponent_id": fixture["away_player_id"] if is_home else fixture["home_player_id"],
                "result": result_for(fixture, player_id),
            }
        )
    results.reverse()
    return results[:limit] if limit is not None else results


def find_standing(standings, player_id):
    for row in standings:
        if row["player_id"] == player_id:
            found = dict(row)
            found["total_players"] = len(standings)
            return found
    return None
