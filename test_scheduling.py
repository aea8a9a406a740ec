"""
Tests for round-robin fixture generation and team assignment.
"""

from collections import Counter, defaultdict
from datetime import date

import pytest

from scheduling import (
    AVAILABLE_TEAMS,
    assign_teams_automatically,
    build_round_robin,
    generate_round_robin_fixtures,
)

START = date(2025, 1, 4)


def players_for(make_player, count):
    return [make_player(i) for i in range(1, count + 1)]


def by_matchday(fixtures):
    grouped = defaultdict(list)
    for fixture in fixtures:
        grouped[fixture["matchday"]].append(fixture)
    return grouped


def test_fewer_than_two_players_gives_no_fixtures(make_player):
    assert generate_round_robin_fixtures([]) == []
    assert generate_round_robin_fixtures([make_player(1)]) == []


@pytest.mark.parametrize("rounds", [0, -1])
def test_rounds_must_be_positive(make_player, rounds):
    with pytest.raises(ValueError):
        generate_round_robin_fixtures(players_for(make_player, 4), rounds=rounds)


def test_matchdays_per_weekend_must_be_positive(make_player):
    with pytest.raises(ValueError):
        generate_round_robin_fixtures(
            players_for(make_player, 4), matchdays_per_weekend=0
        )


def test_duplicate_player_ids_are_rejected(make_player):
    with pytest.raises(ValueError):
        generate_round_robin_fixtures([make_player(1), make_player(1), make_player(2)])


@pytest.mark.parametrize("count", [2, 3, 4, 5, 6, 7, 10])
@pytest.mark.parametrize("rounds", [1, 2, 3])
def test_fixture_and_matchday_counts(make_player, count, rounds):
    fixtures = generate_round_robin_fixtures(
        players_for(make_player, count), rounds=rounds, start_date=START
    )
    padded = count + count % 2

    assert len(fixtures) == rounds * count * (count - 1) // 2
    matchdays = {fixture["matchday"] for fixture in fixtures}
    assert matchdays == set(range(1, (padded - 1) * rounds + 1))


@pytest.mark.parametrize("count", [2, 3, 4, 5, 8, 9])
def test_players_appear_once_per_matchday(make_player, count):
    fixtures = generate_round_robin_fixtures(
        players_for(make_player, count), rounds=2, start_date=START
    )

    for matchday, day_fixtures in by_matchday(fixtures).items():
        seen = Counter()
        for fixture in day_fixtures:
            assert fixture["home_player_id"] != fixture["away_player_id"]
            seen[fixture["home_player_id"]] += 1
            seen[fixture["away_player_id"]] += 1
        assert all(times == 1 for times in seen.values()), matchday
        if count % 2 == 0:
            assert len(seen) == count
            assert len(day_fixtures) == count // 2
        else:
            # exactly one player sits out against the bye
            assert len(seen) == count - 1


@pytest.mark.parametrize("count", [4, 5, 6])
def test_every_pair_meets_once_per_leg(make_player, count):
    fixtures = generate_round_robin_fixtures(
        players_for(make_player, count), rounds=2, start_date=START
    )

    for leg in (1, 2):
        pairs = Counter(
            frozenset({fixture["home_player_id"], fixture["away_player_id"]})
            for fixture in fixtures
            if fixture["leg"] == leg
        )
        assert len(pairs) == count * (count - 1) // 2
        assert set(pairs.values()) == {1}


def test_second_leg_mirrors_home_and_away(make_player):
    fixtures = generate_round_robin_fixtures(
        players_for(make_player, 6), rounds=2, start_date=START
    )
    first = {
        (f["home_player_id"], f["away_player_id"]) for f in fixtures if f["leg"] == 1
    }
    second = {
        (f["home_player_id"], f["away_player_id"]) for f in fixtures if f["leg"] == 2
    }

    assert second == {(away, home) for home, away in first}


def test_double_round_robin_balances_home_games(make_player):
    fixtures = generate_round_robin_fixtures(
        players_for(make_player, 7), rounds=2, start_date=START
    )
    home = Counter(f["home_player_id"] for f in fixtures)
    away = Counter(f["away_player_id"] for f in fixtures)

    for player_id in range(1, 8):
        assert home[player_id] == away[player_id] == 6


def test_pinned_player_alternates_home_and_away():
    leg = build_round_robin([1, 2, 3, 4, 5, 6])
    homes = [any(home == 1 for home, _ in pairs) for pairs in leg]

    assert homes == [True, False, True, False, True]


def test_odd_roster_uses_bye_slot():
    leg = build_round_robin([1, 2, 3])

    assert len(leg) == 3
    for pairs in leg:
        assert sum(1 for home, away in pairs if home is None or away is None) == 1


def test_scheduled_dates_group_matchdays_into_weekends(make_player):
    fixtures = generate_round_robin_fixtures(
        players_for(make_player, 4),
        rounds=2,
        matchdays_per_weekend=2,
        start_date=START,
    )
    dates = {f["matchday"]: f["scheduled_date"] for f in fixtures}

    assert dates[1] == dates[2] == date(2025, 1, 4)
    assert dates[3] == dates[4] == date(2025, 1, 11)
    assert dates[5] == dates[6] == date(2025, 1, 18)


def test_fixtures_are_numbered_and_scheduled(make_player):
    fixtures = generate_round_robin_fixtures(
        players_for(make_player, 5), rounds=1, start_date=START
    )

    assert [f["id"] for f in fixtures] == list(range(1, len(fixtures) + 1))
    assert {f["status"] for f in fixtures} == {"SCHEDULED"}
    assert all(f["home_score"] is None and f["away_score"] is None for f in fixtures)


def test_fixture_teams_prefer_assigned_team(make_player):
    players = [
        make_player(1, assigned_team="Arsenal", preferred_club="Chelsea"),
        make_player(2, preferred_club="Liverpool"),
    ]
    fixtures = generate_round_robin_fixtures(players, rounds=1, start_date=START)
    fixture = fixtures[0]
    teams = {
        fixture["home_player_id"]: fixture["home_team"],
        fixture["away_player_id"]: fixture["away_team"],
    }

    assert teams == {1: "Arsenal", 2: "Liverpool"}


def test_assign_teams_unlocked_uses_preferred_club(make_player):
    players = [
        make_player(1, preferred_club="Arsenal"),
        make_player(2, preferred_club="Arsenal"),
    ]
    updated = assign_teams_automatically(players)

    assert [p["assigned_team"] for p in updated] == ["Arsenal", "Arsenal"]
    assert players[0]["assigned_team"] is None


def test_assign_teams_locked_gives_unique_clubs(make_player):
    players = [
        make_player(1, assigned_team="Aston Villa", preferred_club="Spurs"),
        make_player(2, preferred_club="Arsenal"),
        make_player(3, preferred_club="Arsenal"),
        make_player(4, preferred_club="Aston Villa"),
    ]
    updated = assign_teams_automatically(players, teams_locked=True)
    teams = [p["assigned_team"] for p in updated]

    assert teams == ["Aston Villa", "Arsenal", AVAILABLE_TEAMS[2], AVAILABLE_TEAMS[3]]
    assert len(set(teams)) == len(teams)


def test_four_legs_alternate_between_original_and_mirror(make_player):
    fixtures = generate_round_robin_fixtures(
        players_for(make_player, 5), rounds=4, start_date=START
    )
    matchdays_per_leg = 5

    def leg_pairings(leg):
        return {
            (
                f["matchday"] - (leg - 1) * matchdays_per_leg,
                f["home_player_id"],
                f["away_player_id"],
            )
            for f in fixtures
            if f["leg"] == leg
        }

    first = leg_pairings(1)
    mirrored = {(matchday, away, home) for matchday, home, away in first}

    assert leg_pairings(2) == mirrored
    assert leg_pairings(3) == first
    assert leg_pairings(4) == mirrored
