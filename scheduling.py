"""
Round-robin fixture generation and automatic team assignment.

Pure functions over plain player mappings; persistence lives in app.py.
"""

from datetime import date, timedelta

BYE = None
DEFAULT_ROUNDS = 2
DEFAULT_MATCHDAYS_PER_WEEKEND = 2
DAYS_BETWEEN_WEEKENDS = 7
STATUS_SCHEDULED = "SCHEDULED"

AVAILABLE_TEAMS = [
    "Arsenal",
    "Aston Villa",
    "Bournemouth",
    "Brentford",
    "Brighton",
    "Chelsea",
    "Crystal Palace",
    "Everton",
    "Fulham",
    "Ipswich Town",
    "Leicester City",
    "Liverpool",
    "Man City",
    "Man United",
    "Newcastle",
    "Nottingham Forest",
    "Southampton",
    "Spurs",
    "West Ham",
    "Wolves",
]


def prepare_rotation(player_ids):
    roster = list(player_ids)
    if len(roster) % 2 != 0:
        roster.append(BYE)
    return roster


def capture_pairs(rotation):
    half = len(rotation) // 2
    return [(rotation[i], rotation[-(i + 1)]) for i in range(half)]


def rotate_players(rotation):
    if len(rotation) <= 2:
        return rotation[:]
    return [rotation[0], rotation[-1], *rotation[1:-1]]


def build_round_robin(player_ids):
    """
    Build one leg of a round robin using the circle method.

    Slot 0 stays pinned while the other slots rotate one step per matchday.
    Returns N-1 matchdays (N padded to even), each a list of (home, away)
    pairs where BYE marks the sitting-out slot.
    """
    rotation = prepare_rotation(player_ids)
    if len(rotation) < 2:
        return []

    matchdays = []
    current = rotation[:]
    for matchday_index in range(len(rotation) - 1):
        pairs = capture_pairs(current)
        # the pinned slot alternates home and away
        if matchday_index % 2 == 1:
            home, away = pairs[0]
            pairs[0] = (away, home)
        matchdays.append(pairs)
        current = rotate_players(current)
    return matchdays


def is_bye_pair(home_id, away_id):
    return home_id is BYE or away_id is BYE


def team_for(player):
    return player.get("assigned_team") or player.get("preferred_club")


def scheduled_date_for(matchday, start_date, matchdays_per_weekend):
    weekend_index = (matchday - 1) // matchdays_per_weekend
    return start_date + timedelta(days=DAYS_BETWEEN_WEEKENDS * weekend_index)


def _check_player_ids(players):
    ids = []
    for player in players:
        player_id = player.get("id")
        if player_id is None:
            raise ValueError("Every player needs an id.")
        ids.append(player_id)
    if len(set(ids)) != len(ids):
        raise ValueError("Player ids must be unique.")
    return ids


def generate_round_robin_fixtures(
    players,
    rounds=DEFAULT_ROUNDS,
    matchdays_per_weekend=DEFAULT_MATCHDAYS_PER_WEEKEND,
    start_date=None,
):
    """
    Generate a full multi-leg round-robin schedule.

    Every even-numbered leg mirrors the previous one with home and away
    swapped. Matchdays are numbered continuously across legs, so the
    schedule spans (N - 1) * rounds matchdays for N padded to even.
    Pairings against the BYE are dropped once the schedule is built.
    """
    if rounds < 1:
        raise ValueError("At least one round is required.")
    if matchdays_per_weekend < 1:
        raise ValueError("At least one matchday per weekend is required.")
    if len(players) < 2:
        return []

    player_ids = _check_player_ids(players)
    by_id = {player["id"]: player for player in players}
    if start_date is None:
        start_date = date.today()

    leg = build_round_robin(player_ids)
    matchdays_per_leg = len(leg)

    pairings = []
    for leg_index in range(rounds):
        mirrored = leg_index % 2 == 1
        for matchday_index, pairs in enumerate(leg):
            matchday = matchday_index + 1 + leg_index * matchdays_per_leg
            for home_id, away_id in pairs:
                if mirrored:
                    home_id, away_id = away_id, home_id
                pairings.append((matchday, leg_index + 1, home_id, away_id))

    fixtures = []
    for matchday, leg_number, home_id, away_id in pairings:
        if is_bye_pair(home_id, away_id):
            continue
        home = by_id[home_id]
        away = by_id[away_id]
        fixtures.append(
            {
                "id": len(fixtures) + 1,
                "matchday": matchday,
                "leg": leg_number,
                "home_player_id": home_id,
                "away_player_id": away_id,
                "home_team": team_for(home),
                "away_team": team_for(away),
                "home_score": None,
                "away_score": None,
                "status": STATUS_SCHEDULED,
                "scheduled_date": scheduled_date_for(
                    matchday, start_date, matchdays_per_weekend
                ),
            }
        )
    return fixtures


def assign_teams_automatically(players, teams_locked=False):
    """
    Fill in assigned_team for every player that has none.

    With teams unlocked everyone simply gets their preferred club. With teams
    locked each club goes to one player only: already assigned clubs are
    reserved first, then preferred clubs in roster order, then the first
    club still free.
    """
    updated = [dict(player) for player in players]
    taken = {player["assigned_team"] for player in updated if player.get("assigned_team")}

    for player in updated:
        if player.get("assigned_team"):
            continue
        preferred = player.get("preferred_club")
        if not teams_locked:
            player["assigned_team"] = preferred
            continue
        if preferred and preferred not in taken:
            choice = preferred
        else:
            choice = next((team for team in AVAILABLE_TEAMS if team not in taken), None)
        player["assigned_team"] = choice
        if choice:
            taken.add(choice)
    return updated
