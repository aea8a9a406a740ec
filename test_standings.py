import pytest

from standings import calculate_standings, find_standing, recent_results, result_for


def played(fixture_id, home, away, home_score, away_score, matchday=1):
    return {
        "id": fixture_id,
        "matchday": matchday,
        "home_player_id": home,
        "away_player_id": away,
        "home_team": f"Club {home}",
        "away_team": f"Club {away}",
        "home_score": home_score,
        "away_score": away_score,
        "status": "PLAYED",
    }


@pytest.fixture
def trio(make_player):
    return [
        make_player(1, name="Alice"),
        make_player(2, name="bob"),
        make_player(3, name="Carol"),
    ]


def rows_by_id(table):
    return {row["player_id"]: row for row in table}


def test_every_player_gets_a_row_without_games(make_player):
    players = [make_player(1, name="carl"), make_player(2, name="bob"), make_player(3, name="Alice")]
    table = calculate_standings([], players)

    assert [row["player_name"] for row in table] == ["Alice", "bob", "carl"]
    assert [row["position"] for row in table] == [1, 2, 3]
    assert all(row["played"] == 0 and row["points"] == 0 for row in table)
    assert all(row["form"] == [] for row in table)


def test_points_goals_and_records(trio):
    fixtures = [
        played(1, 1, 2, 2, 1),
        played(2, 2, 3, 0, 0, matchday=2),
        played(3, 3, 1, 3, 1, matchday=3),
    ]
    table = calculate_standings(fixtures, trio)
    rows = rows_by_id(table)

    assert [row["player_id"] for row in table] == [3, 1, 2]
    assert rows[3]["points"] == 4
    assert (rows[3]["won"], rows[3]["drawn"], rows[3]["lost"]) == (1, 1, 0)
    assert (rows[3]["goals_for"], rows[3]["goals_against"], rows[3]["goal_difference"]) == (3, 1, 2)
    assert rows[1]["points"] == 3
    assert rows[1]["goal_difference"] == -1
    assert rows[2]["points"] == 1
    assert rows[2]["played"] == 2
    assert rows[1]["form"] == ["L", "W"]
    assert rows[3]["form"] == ["W", "D"]


def test_unplayed_and_incomplete_fixtures_are_ignored(trio):
    scheduled = played(1, 1, 2, None, None)
    scheduled["status"] = "SCHEDULED"
    missing_score = played(2, 1, 3, 2, None)
    cancelled = played(3, 2, 3, 1, 0)
    cancelled["status"] = "CANCELLED"
    stranger = played(4, 1, 99, 5, 0)

    table = calculate_standings([scheduled, missing_score, cancelled, stranger], trio)

    assert all(row["played"] == 0 for row in table)


def test_goal_difference_breaks_points_tie(make_player):
    players = [make_player(i, name=name) for i, name in enumerate("ABCD", start=1)]
    fixtures = [played(1, 1, 3, 3, 0), played(2, 2, 4, 1, 0)]

    table = calculate_standings(fixtures, players)

    assert [row["player_name"] for row in table] == ["A", "B", "D", "C"]


def test_goals_for_breaks_goal_difference_tie(make_player):
    players = [make_player(i, name=name) for i, name in enumerate("DCBA", start=1)]
    fixtures = [played(1, 2, 1, 3, 1), played(2, 3, 4, 2, 0)]

    table = calculate_standings(fixtures, players)

    assert [row["player_name"] for row in table] == ["C", "B", "D", "A"]


def test_name_is_the_final_tiebreak(make_player):
    players = [
        make_player(1, name="zoe"),
        make_player(2, name="Adam"),
        make_player(3, name="mia"),
        make_player(4, name="Ben"),
    ]
    fixtures = [played(1, 1, 2, 1, 1), played(2, 3, 4, 1, 1)]

    table = calculate_standings(fixtures, players)

    assert [row["player_name"] for row in table] == ["Adam", "Ben", "mia", "zoe"]


def test_ordering_is_stable_for_shuffled_input(make_player):
    players = [make_player(i, name=f"P{i}") for i in range(1, 7)]
    fixtures = [played(1, 1, 2, 1, 0), played(2, 3, 4, 1, 0), played(3, 5, 6, 1, 0)]

    forward = calculate_standings(fixtures, players)
    backward = calculate_standings(list(reversed(fixtures)), list(reversed(players)))

    assert [row["player_id"] for row in forward] == [row["player_id"] for row in backward]


def test_form_keeps_the_last_five_newest_first(make_player):
    players = [make_player(1, name="A"), make_player(2, name="B")]
    scores = [(1, 0), (2, 0), (1, 1), (0, 1), (3, 2), (0, 2), (2, 2)]
    fixtures = [
        played(idx, 1, 2, home, away, matchday=idx)
        for idx, (home, away) in enumerate(scores, start=1)
    ]

    rows = rows_by_id(calculate_standings(fixtures, players))

    assert rows[1]["form"] == ["D", "L", "W", "L", "D"]
    assert rows[2]["form"] == ["D", "W", "L", "W", "D"]
    assert rows[1]["played"] == 7


def test_result_for_each_side():
    fixture = played(1, 1, 2, 2, 1)

    assert result_for(fixture, 1) == "W"
    assert result_for(fixture, 2) == "L"
    assert result_for(played(2, 1, 2, 0, 0), 2) == "D"
    with pytest.raises(ValueError):
        result_for(fixture, 3)


def test_recent_results_from_player_perspective():
    fixtures = [
        played(1, 1, 2, 2, 1, matchday=1),
        played(2, 3, 1, 0, 0, matchday=2),
        played(3, 2, 3, 4, 0, matchday=3),
        played(4, 2, 1, 3, 1, matchday=4),
    ]

    results = recent_results(fixtures, 1, limit=2)

    assert [r["fixture_id"] for r in results] == [4, 2]
    assert results[0]["is_home"] is False
    assert results[0]["result"] == "L"
    assert results[0]["opponent_id"] == 2
    assert results[1]["result"] == "D"
    assert len(recent_results(fixtures, 1, limit=None)) == 3


def test_find_standing_reports_table_size(trio):
    table = calculate_standings([played(1, 2, 3, 1, 0)], trio)

    found = find_standing(table, 2)

    assert found["position"] == 1
    assert found["total_players"] == 3
    assert find_standing(table, 42) is None


def test_accented_names_sort_with_their_base_letter(make_player):
    players = [
        make_player(1, name="zoe"),
        make_player(2, name="Émile"),
        make_player(3, name="Frank"),
        make_player(4, name="ada"),
    ]

    table = calculate_standings([], players)

    assert [row["player_name"] for row in table] == ["ada", "Émile", "Frank", "zoe"]
