import csv
import io
import os
from datetime import date, datetime, timezone

from flask import Flask, Response, abort, g, jsonify, request

from db_adapter import DB_ERRORS, get_db_connection, init_schema
from scheduling import (
    DEFAULT_MATCHDAYS_PER_WEEKEND,
    DEFAULT_ROUNDS,
    assign_teams_automatically,
    generate_round_robin_fixtures,
)
from standings import calculate_standings, find_standing, recent_results
from validation import (
    parse_bool,
    parse_int_in_range,
    parse_iso_date,
    parse_league_status,
    parse_result_scores,
    validate_registration,
)

DEFAULT_LEAGUE_NAME = os.getenv("LEAGUE_NAME", "Weekend League")
FORFEIT_SCORE = os.getenv("FORFEIT_SCORE", "3-0")
MAX_ROUNDS = 4
MAX_MATCHDAYS_PER_WEEKEND = 7

SETTINGS_LEAGUE_NAME = "league_name"
SETTINGS_STATUS = "league_status"
SETTINGS_ROUNDS = "rounds"
SETTINGS_MATCHDAYS_PER_WEEKEND = "matchdays_per_weekend"
SETTINGS_TEAMS_LOCKED = "teams_locked"
SETTINGS_START_DATE = "start_date"
SETTINGS_END_DATE = "end_date"
SETTINGS_MAX_PLAYERS = "max_players"

LEAGUE_DRAFT = "DRAFT"
LEAGUE_ACTIVE = "ACTIVE"

FIXTURE_SCHEDULED = "SCHEDULED"
FIXTURE_PLAYED = "PLAYED"
FIXTURE_CANCELLED = "CANCELLED"
FIXTURE_STATUSES = (FIXTURE_SCHEDULED, FIXTURE_PLAYED, FIXTURE_CANCELLED)

REPORT_NONE = "NONE"
REPORT_PENDING = "PENDING"
REPORT_CONFLICT = "CONFLICT"
REPORT_APPROVED = "APPROVED"

ROLE_ADMIN = "ADMIN"

PLAYER_QUERY = "SELECT * FROM players WHERE id = %s"
FIXTURE_QUERY = """
    SELECT f.*, hp.name AS home_name, ap.name AS away_name
    FROM fixtures f
    LEFT JOIN players hp ON hp.id = f.home_player_id
    LEFT JOIN players ap ON ap.id = f.away_player_id
"""
STANDINGS_CSV_HEADERS = [
    "position",
    "player",
    "team",
    "P",
    "W",
    "D",
    "L",
    "GF",
    "GA",
    "GD",
    "Pts",
    "form",
]


def parse_forfeit_score(raw):
    try:
        winner, loser = (int(part) for part in raw.split("-"))
    except ValueError:
        raise RuntimeError(f"FORFEIT_SCORE must look like '3-0', got {raw!r}")
    if winner <= loser or loser < 0:
        raise RuntimeError("FORFEIT_SCORE must give the winner more goals")
    return winner, loser


def parse_max_players(raw):
    if not raw.strip():
        return ""
    try:
        value = int(raw)
    except ValueError:
        raise RuntimeError(f"LEAGUE_MAX_PLAYERS must be a whole number, got {raw!r}")
    if value < 2:
        raise RuntimeError("LEAGUE_MAX_PLAYERS must allow at least two players")
    return str(value)


FORFEIT_WINNER_GOALS, FORFEIT_LOSER_GOALS = parse_forfeit_score(FORFEIT_SCORE)
DEFAULT_MAX_PLAYERS = parse_max_players(os.getenv("LEAGUE_MAX_PLAYERS", "20"))

app = Flask(__name__)


def get_db():
    if "db" not in g:
        try:
            g.db = get_db_connection()
        except DB_ERRORS as e:
            app.logger.error("Database connection error: %s", e)
            raise RuntimeError(
                f"Unable to connect to database. Please contact admin. Error: {e}"
            )
    return g.db


def close_db(error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


app.teardown_appcontext(close_db)


def init_db():
    db = get_db()
    init_schema(db)
    ensure_default_settings(db)
    db.commit()


@app.before_request
def ensure_db_ready():
    init_db()


def ensure_default_settings(db):
    defaults = {
        SETTINGS_LEAGUE_NAME: DEFAULT_LEAGUE_NAME,
        SETTINGS_STATUS: LEAGUE_DRAFT,
        SETTINGS_ROUNDS: str(DEFAULT_ROUNDS),
        SETTINGS_MATCHDAYS_PER_WEEKEND: str(DEFAULT_MATCHDAYS_PER_WEEKEND),
        SETTINGS_TEAMS_LOCKED: "0",
        SETTINGS_START_DATE: "",
        SETTINGS_END_DATE: "",
        SETTINGS_MAX_PLAYERS: DEFAULT_MAX_PLAYERS,
    }
    for key, value in defaults.items():
        db.execute(
            "INSERT INTO settings (key, value) VALUES (%s, %s) ON CONFLICT (key) DO NOTHING",
            (key, value),
        )


def get_setting(db, key, default=None):
    row = db.execute("SELECT value FROM settings WHERE key = %s", (key,)).fetchone()
    if not row:
        return default
    return row["value"]


def set_setting(db, key, value):
    db.execute(
        "INSERT INTO settings (key, value) VALUES (%s, %s) ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value",
        (key, "" if value is None else str(value)),
    )


def get_int_setting(db, key, default):
    try:
        return int(get_setting(db, key, default))
    except (TypeError, ValueError):
        return default


def load_league_settings(db):
    max_players = get_setting(db, SETTINGS_MAX_PLAYERS, "")
    return {
        "name": get_setting(db, SETTINGS_LEAGUE_NAME, DEFAULT_LEAGUE_NAME),
        "status": get_setting(db, SETTINGS_STATUS, LEAGUE_DRAFT),
        "rounds": get_int_setting(db, SETTINGS_ROUNDS, DEFAULT_ROUNDS),
        "matchdays_per_weekend": get_int_setting(
            db, SETTINGS_MATCHDAYS_PER_WEEKEND, DEFAULT_MATCHDAYS_PER_WEEKEND
        ),
        "teams_locked": get_setting(db, SETTINGS_TEAMS_LOCKED, "0") == "1",
        "start_date": get_setting(db, SETTINGS_START_DATE) or None,
        "end_date": get_setting(db, SETTINGS_END_DATE) or None,
        "max_players": int(max_players) if max_players else None,
    }


def utc_now():
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


def serialize_value(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def error_response(message, status=400):
    return jsonify({"error": message}), status


def get_json_payload():
    return request.get_json(silent=True) or {}


@app.errorhandler(404)
def not_found(error):
    return error_response(error.description or "Not found.", 404)


@app.errorhandler(405)
def method_not_allowed(error):
    return error_response("Method not allowed.", 405)


@app.errorhandler(500)
def internal_error(error):
    app.logger.error("Unhandled error: %s", getattr(error, "original_exception", None) or error)
    return error_response("Something went wrong. Please try again.", 500)


def report_claims(fixture):
    """Return the (home_score, away_score) claimed by each side, or None."""
    claims = []
    for side in ("home", "away"):
        home_score = fixture.get(f"{side}_report_home_score")
        away_score = fixture.get(f"{side}_report_away_score")
        if home_score is None or away_score is None:
            claims.append(None)
        else:
            claims.append((home_score, away_score))
    return tuple(claims)


def claim_view(claim):
    if claim is None:
        return None
    return {"home_score": claim[0], "away_score": claim[1]}


def build_player_view(row):
    data = {key: serialize_value(value) for key, value in row.items()}
    data["approved"] = bool(data.get("approved"))
    data["available"] = bool(data.get("available"))
    return data


def build_fixture_view(row, player_id=None):
    data = {key: serialize_value(value) for key, value in row.items()}
    data["forfeit"] = bool(data.get("forfeit"))
    data["home_confirmed"] = bool(data.get("home_confirmed"))
    data["away_confirmed"] = bool(data.get("away_confirmed"))
    data["report_status"] = data.get("report_status") or REPORT_NONE
    data["can_report"] = data.get("status") == FIXTURE_SCHEDULED
    home_claim, away_claim = report_claims(row)
    data["home_report"] = claim_view(home_claim)
    data["away_report"] = claim_view(away_claim)
    if player_id is not None:
        data["is_home"] = data.get("home_player_id") == player_id
    return data


def fetch_player_or_404(db, player_id):
    player = db.execute(PLAYER_QUERY, (player_id,)).fetchone()
    if not player:
        abort(404, description="Player not found.")
    return player


def fetch_fixture_or_404(db, fixture_id):
    fixture = db.execute(f"{FIXTURE_QUERY} WHERE f.id = %s", (fixture_id,)).fetchone()
    if not fixture:
        abort(404, description="Fixture not found.")
    return fixture


def collect_approved_players(db):
    return db.execute(
        "SELECT * FROM players WHERE approved = TRUE ORDER BY created_at ASC, id ASC"
    ).fetchall()


def fetch_played_fixtures(db, player_id=None):
    query = f"{FIXTURE_QUERY} WHERE f.status = %s"
    params = [FIXTURE_PLAYED]
    if player_id is not None:
        query += " AND (f.home_player_id = %s OR f.away_player_id = %s)"
        params.extend([player_id, player_id])
    query += " ORDER BY f.matchday ASC, f.id ASC"
    return db.execute(query, tuple(params)).fetchall()


def load_standings(db):
    return calculate_standings(fetch_played_fixtures(db), collect_approved_players(db))


def count_players(db):
    row = db.execute(
        """
        SELECT
            SUM(CASE WHEN approved = TRUE THEN 1 ELSE 0 END) AS approved,
            SUM(CASE WHEN approved = TRUE THEN 0 ELSE 1 END) AS pending
        FROM players
        """
    ).fetchone()
    return {
        "approved_players": int(row["approved"] or 0),
        "pending_players": int(row["pending"] or 0),
    }


def _parse_optional_limit(raw):
    if raw is None or raw == "":
        return None
    return parse_int_in_range(raw, "Limit", 1)


# ---------------------------------------------------------------------------
# League
# ---------------------------------------------------------------------------


@app.route("/api/league/status", methods=["GET"])
def league_status():
    db = get_db()
    settings = load_league_settings(db)
    settings.update(count_players(db))
    settings["total_fixtures"] = db.execute(
        "SELECT COUNT(*) AS count FROM fixtures"
    ).fetchone()["count"]
    return jsonify(settings)


def _apply_league_updates(db, data, current):
    updates = {}
    if "name" in data:
        name = str(data.get("name") or "").strip()
        if not name:
            raise ValueError("League name cannot be empty.")
        updates[SETTINGS_LEAGUE_NAME] = name
    if "status" in data:
        updates[SETTINGS_STATUS] = parse_league_status(data.get("status"))
    if "rounds" in data:
        updates[SETTINGS_ROUNDS] = parse_int_in_range(
            data.get("rounds"), "Rounds", 1, MAX_ROUNDS
        )
    if "matchdays_per_weekend" in data:
        updates[SETTINGS_MATCHDAYS_PER_WEEKEND] = parse_int_in_range(
            data.get("matchdays_per_weekend"),
            "Matchdays per weekend",
            1,
            MAX_MATCHDAYS_PER_WEEKEND,
        )
    if "teams_locked" in data:
        updates[SETTINGS_TEAMS_LOCKED] = "1" if parse_bool(data.get("teams_locked")) else "0"
    if "max_players" in data:
        raw = data.get("max_players")
        updates[SETTINGS_MAX_PLAYERS] = (
            "" if raw in (None, "") else parse_int_in_range(raw, "Max players", 2)
        )

    start_date = current["start_date"]
    end_date = current["end_date"]
    for field, key in (("start_date", SETTINGS_START_DATE), ("end_date", SETTINGS_END_DATE)):
        if field not in data:
            continue
        raw = data.get(field)
        value = "" if raw in (None, "") else parse_iso_date(raw, field).isoformat()
        updates[key] = value
        if field == "start_date":
            start_date = value or None
        else:
            end_date = value or None
    if start_date and end_date and end_date < start_date:
        raise ValueError("End date cannot be before the start date.")

    for key, value in updates.items():
        set_setting(db, key, value)
    return updates


@app.route("/api/league/status", methods=["PATCH"])
def update_league_status():
    db = get_db()
    data = get_json_payload()
    try:
        updates = _apply_league_updates(db, data, load_league_settings(db))
        db.commit()
    except ValueError as exc:
        return error_response(str(exc))
    except DB_ERRORS as exc:
        db.rollback()
        app.logger.error("Error updating league settings: %s", exc)
        return error_response("Failed to update league settings.", 500)
    app.logger.info("League settings updated: %s", ", ".join(sorted(updates)) or "none")
    return jsonify(
        {"message": "League status updated successfully.", "league": load_league_settings(db)}
    )


# ---------------------------------------------------------------------------
# Registration & players
# ---------------------------------------------------------------------------


@app.route("/api/register", methods=["POST"])
def register():
    db = get_db()
    settings = load_league_settings(db)
    if settings["status"] != LEAGUE_DRAFT:
        return error_response("Registration is closed. League has already started.")

    try:
        cleaned = validate_registration(get_json_payload())
    except ValueError as exc:
        return error_response(str(exc))

    exists = db.execute(
        "SELECT 1 FROM players WHERE UPPER(gamer_tag) = %s",
        (cleaned["gamer_tag"].upper(),),
    ).fetchone()
    if exists:
        return error_response("PSN ID / Game Tag already registered.", 409)

    max_players = settings["max_players"]
    if max_players is not None:
        total = db.execute("SELECT COUNT(*) AS count FROM players").fetchone()["count"]
        if total >= max_players:
            return error_response("The league is full.", 409)

    try:
        player_id = db.insert(
            """
            INSERT INTO players (name, gamer_tag, location, console, preferred_club, approved, created_at)
            VALUES (%s, %s, %s, %s, %s, %s, %s)
            """,
            (
                cleaned["name"],
                cleaned["gamer_tag"],
                cleaned["location"],
                cleaned["console"],
                cleaned["preferred_club"],
                False,
                utc_now(),
            ),
        )
        db.commit()
    except DB_ERRORS as exc:
        db.rollback()
        app.logger.error("Error registering %s: %s", cleaned["gamer_tag"], exc)
        return error_response("Registration failed. Please try again.", 500)
    app.logger.info("New signup %s (%s) pending approval", cleaned["gamer_tag"], player_id)
    player = db.execute(PLAYER_QUERY, (player_id,)).fetchone()
    return (
        jsonify(
            {
                "message": "Registration successful! Pending admin approval before you appear on the roster.",
                "player": build_player_view(player),
            }
        ),
        201,
    )


@app.route("/api/players", methods=["GET"])
def list_players():
    db = get_db()
    status = request.args.get("status", "approved").strip().lower()
    clauses = {
        "approved": "WHERE approved = TRUE",
        "pending": "WHERE approved = FALSE",
        "all": "",
    }
    if status not in clauses:
        return error_response("Status must be one of approved, pending, all.")
    rows = db.execute(
        f"SELECT * FROM players {clauses[status]} ORDER BY created_at ASC, id ASC"
    ).fetchall()
    return jsonify({"players": [build_player_view(row) for row in rows]})


@app.route("/api/admin/players/<int:player_id>/approve", methods=["POST"])
def admin_approve_player(player_id):
    db = get_db()
    player = fetch_player_or_404(db, player_id)
    if player["approved"]:
        return jsonify(
            {"message": f"{player['name']} is already approved.", "player": build_player_view(player)}
        )

    try:
        db.execute(
            "UPDATE players SET approved = TRUE, approved_at = %s WHERE id = %s",
            (utc_now(), player_id),
        )
        db.commit()
    except DB_ERRORS as exc:
        db.rollback()
        app.logger.error("Error approving player %s: %s", player_id, exc)
        return error_response("Failed to approve player.", 500)
    app.logger.info("Approved player %s", player_id)
    player = db.execute(PLAYER_QUERY, (player_id,)).fetchone()
    return jsonify({"message": f"Approved {player['name']}.", "player": build_player_view(player)})


@app.route("/api/admin/players/<int:player_id>/reject", methods=["POST"])
def admin_reject_player(player_id):
    db = get_db()
    player = fetch_player_or_404(db, player_id)
    if player["approved"]:
        return error_response(
            f"{player['name']} is already approved. Use delete if removal is required.",
            409,
        )

    try:
        db.execute("DELETE FROM players WHERE id = %s", (player_id,))
        db.commit()
    except DB_ERRORS as exc:
        db.rollback()
        app.logger.error("Error rejecting signup %s: %s", player_id, exc)
        return error_response("Failed to reject signup.", 500)
    app.logger.info("Rejected signup %s", player_id)
    return jsonify({"message": f"Rejected signup for {player['name']}."})


@app.route("/api/admin/players/<int:player_id>/promote", methods=["POST"])
def admin_promote_player(player_id):
    db = get_db()
    fetch_player_or_404(db, player_id)
    try:
        db.execute("UPDATE players SET role = %s WHERE id = %s", (ROLE_ADMIN, player_id))
        db.commit()
    except DB_ERRORS as exc:
        db.rollback()
        app.logger.error("Error promoting player %s: %s", player_id, exc)
        return error_response("Failed to promote player.", 500)
    player = db.execute(PLAYER_QUERY, (player_id,)).fetchone()
    return jsonify({"message": f"{player['name']} is now an admin.", "player": build_player_view(player)})


@app.route("/api/admin/players/<int:player_id>", methods=["DELETE"])
def admin_delete_player(player_id):
    db = get_db()
    player = fetch_player_or_404(db, player_id)
    removed = db.execute(
        "SELECT COUNT(*) AS count FROM fixtures WHERE home_player_id = %s OR away_player_id = %s",
        (player_id, player_id),
    ).fetchone()["count"]
    try:
        db.execute("DELETE FROM players WHERE id = %s", (player_id,))
        db.commit()
    except DB_ERRORS as exc:
        db.rollback()
        app.logger.error("Error deleting player %s: %s", player_id, exc)
        return error_response("Failed to delete player.", 500)
    app.logger.info("Deleted player %s and %s fixture(s)", player_id, removed)
    return jsonify(
        {"message": f"Deleted {player['name']}.", "fixtures_removed": removed}
    )


@app.route("/api/player/<int:player_id>/availability", methods=["POST"])
def update_availability(player_id):
    db = get_db()
    fetch_player_or_404(db, player_id)
    data = get_json_payload()
    if "available" not in data:
        return error_response("Missing 'available' flag.")
    available = parse_bool(data.get("available"))
    try:
        db.execute(
            "UPDATE players SET available = %s WHERE id = %s", (available, player_id)
        )
        db.commit()
    except DB_ERRORS as exc:
        db.rollback()
        app.logger.error("Error updating availability for %s: %s", player_id, exc)
        return error_response("Failed to update availability.", 500)
    return jsonify({"player_id": player_id, "available": available})


@app.route("/api/admin/assign-teams", methods=["POST"])
def admin_assign_teams():
    db = get_db()
    data = get_json_payload()
    if "teams_locked" in data:
        teams_locked = parse_bool(data.get("teams_locked"))
    else:
        teams_locked = load_league_settings(db)["teams_locked"]

    players = collect_approved_players(db)
    updated = assign_teams_automatically(players, teams_locked=teams_locked)
    try:
        for before, after in zip(players, updated):
            if before.get("assigned_team") == after["assigned_team"]:
                continue
            db.execute(
                "UPDATE players SET assigned_team = %s WHERE id = %s",
                (after["assigned_team"], after["id"]),
            )
            db.execute(
                "UPDATE fixtures SET home_team = %s WHERE home_player_id = %s AND status = %s",
                (after["assigned_team"], after["id"], FIXTURE_SCHEDULED),
            )
            db.execute(
                "UPDATE fixtures SET away_team = %s WHERE away_player_id = %s AND status = %s",
                (after["assigned_team"], after["id"], FIXTURE_SCHEDULED),
            )
        db.commit()
    except DB_ERRORS as exc:
        db.rollback()
        app.logger.error("Error assigning teams: %s", exc)
        return error_response("Failed to assign teams.", 500)

    return jsonify(
        {
            "message": "Teams assigned successfully.",
            "players": [build_player_view(row) for row in collect_approved_players(db)],
        }
    )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


def _persist_fixtures(db, fixtures):
    now = utc_now()
    for fixture in fixtures:
        db.execute(
            """
            INSERT INTO fixtures (
                matchday,
                leg,
                home_player_id,
                away_player_id,
                home_team,
                away_team,
                status,
                scheduled_date,
                report_status,
                created_at
            )
            VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
            """,
            (
                fixture["matchday"],
                fixture["leg"],
                fixture["home_player_id"],
                fixture["away_player_id"],
                fixture["home_team"],
                fixture["away_team"],
                fixture["status"],
                fixture["scheduled_date"].isoformat(),
                REPORT_NONE,
                now,
            ),
        )
    return len(fixtures)


@app.route("/api/admin/generate-fixtures", methods=["POST"])
def admin_generate_fixtures():
    db = get_db()
    data = get_json_payload()
    settings = load_league_settings(db)

    try:
        rounds = parse_int_in_range(
            data.get("rounds", settings["rounds"]), "Rounds", 1, MAX_ROUNDS
        )
        matchdays_per_weekend = parse_int_in_range(
            data.get("matchdays_per_weekend", settings["matchdays_per_weekend"]),
            "Matchdays per weekend",
            1,
            MAX_MATCHDAYS_PER_WEEKEND,
        )
        raw_start = data.get("start_date") or settings["start_date"]
        start_date = parse_iso_date(raw_start, "start_date") if raw_start else date.today()
    except ValueError as exc:
        return error_response(str(exc))

    players = collect_approved_players(db)
    if len(players) < 2:
        return error_response("Need at least two approved players to generate fixtures.")

    played = db.execute(
        "SELECT COUNT(*) AS count FROM fixtures WHERE status = %s", (FIXTURE_PLAYED,)
    ).fetchone()["count"]
    if played > 0 and data.get("confirm") != "yes":
        return error_response(
            f"Regenerating fixtures will DELETE {played} played fixture(s). All standings will be lost! Send confirm=yes to proceed.",
            409,
        )

    fixtures = generate_round_robin_fixtures(
        players,
        rounds=rounds,
        matchdays_per_weekend=matchdays_per_weekend,
        start_date=start_date,
    )

    try:
        db.execute("DELETE FROM fixtures")
        inserted = _persist_fixtures(db, fixtures)
        set_setting(db, SETTINGS_ROUNDS, rounds)
        set_setting(db, SETTINGS_MATCHDAYS_PER_WEEKEND, matchdays_per_weekend)
        set_setting(db, SETTINGS_START_DATE, start_date.isoformat())
        set_setting(db, SETTINGS_STATUS, LEAGUE_ACTIVE)
        db.commit()
    except DB_ERRORS as exc:
        db.rollback()
        app.logger.error("Error generating fixtures: %s", exc)
        return error_response("Failed to generate fixtures.", 500)

    app.logger.info(
        "Generated %s fixtures for %s players over %s round(s)", inserted, len(players), rounds
    )
    rows = db.execute(f"{FIXTURE_QUERY} ORDER BY f.matchday ASC, f.id ASC").fetchall()
    return (
        jsonify(
            {
                "message": "Fixtures generated successfully.",
                "total_fixtures": inserted,
                "matchdays": max((fixture["matchday"] for fixture in fixtures), default=0),
                "fixtures": [build_fixture_view(row) for row in rows],
            }
        ),
        201,
    )


@app.route("/api/fixtures", methods=["GET"])
def list_fixtures():
    db = get_db()
    clauses = []
    params = []
    try:
        matchday = request.args.get("matchday", "").strip()
        if matchday and matchday != "all":
            clauses.append("f.matchday = %s")
            params.append(parse_int_in_range(matchday, "Matchday", 1))
        status = request.args.get("status", "").strip().upper()
        if status and status != "ALL":
            if status not in FIXTURE_STATUSES:
                raise ValueError(f"Status must be one of {', '.join(FIXTURE_STATUSES)}.")
            clauses.append("f.status = %s")
            params.append(status)
        player_id = request.args.get("player_id", "").strip()
        if player_id:
            player_id = parse_int_in_range(player_id, "Player id", 1)
            clauses.append("(f.home_player_id = %s OR f.away_player_id = %s)")
            params.extend([player_id, player_id])
    except ValueError as exc:
        return error_response(str(exc))

    where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
    rows = db.execute(
        f"{FIXTURE_QUERY} {where} ORDER BY f.matchday ASC, f.id ASC", tuple(params)
    ).fetchall()
    fixtures = [build_fixture_view(row) for row in rows]
    return jsonify({"fixtures": fixtures, "total_fixtures": len(fixtures)})


@app.route("/api/player/<int:player_id>/fixtures", methods=["GET"])
def player_fixtures(player_id):
    db = get_db()
    fetch_player_or_404(db, player_id)
    try:
        limit = _parse_optional_limit(request.args.get("limit"))
    except ValueError as exc:
        return error_response(str(exc))
    rows = db.execute(
        f"""
        {FIXTURE_QUERY}
        WHERE f.status = %s AND (f.home_player_id = %s OR f.away_player_id = %s)
        ORDER BY f.matchday ASC, f.id ASC
        """,
        (FIXTURE_SCHEDULED, player_id, player_id),
    ).fetchall()
    if limit is not None:
        rows = rows[:limit]
    return jsonify({"fixtures": [build_fixture_view(row, player_id) for row in rows]})


@app.route("/api/admin/fixtures/<int:fixture_id>/cancel", methods=["POST"])
def admin_cancel_fixture(fixture_id):
    db = get_db()
    fixture = fetch_fixture_or_404(db, fixture_id)
    if fixture["status"] == FIXTURE_PLAYED:
        return error_response("Played fixtures cannot be cancelled.", 409)
    try:
        db.execute(
            """
            UPDATE fixtures
            SET status = %s, report_status = %s,
                home_report_home_score = NULL, home_report_away_score = NULL,
                away_report_home_score = NULL, away_report_away_score = NULL,
                home_confirmed = 0, away_confirmed = 0
            WHERE id = %s
            """,
            (FIXTURE_CANCELLED, REPORT_NONE, fixture_id),
        )
        db.commit()
    except DB_ERRORS as exc:
        db.rollback()
        app.logger.error("Error cancelling fixture %s: %s", fixture_id, exc)
        return error_response("Failed to cancel fixture.", 500)
    app.logger.info("Cancelled fixture %s", fixture_id)
    return jsonify(
        {"message": "Fixture cancelled.", "fixture": build_fixture_view(fetch_fixture_or_404(db, fixture_id))}
    )


def _record_final_score(db, fixture_id, home_score, away_score, forfeit=False):
    db.execute(
        """
        UPDATE fixtures
        SET home_score = %s, away_score = %s,
            status = %s, report_status = %s,
            forfeit = %s, played_at = %s
        WHERE id = %s
        """,
        (
            home_score,
            away_score,
            FIXTURE_PLAYED,
            REPORT_APPROVED,
            1 if forfeit else 0,
            utc_now(),
            fixture_id,
        ),
    )


@app.route("/api/admin/fixtures/<int:fixture_id>/forfeit", methods=["POST"])
def admin_forfeit_fixture(fixture_id):
    db = get_db()
    fixture = fetch_fixture_or_404(db, fixture_id)
    if fixture["status"] == FIXTURE_CANCELLED:
        return error_response("Cancelled fixtures cannot be forfeited.", 409)
    try:
        winner_id = parse_int_in_range(get_json_payload().get("winner_id"), "Winner id", 1)
    except ValueError as exc:
        return error_response(str(exc))

    if winner_id == fixture["home_player_id"]:
        home_score, away_score = FORFEIT_WINNER_GOALS, FORFEIT_LOSER_GOALS
    elif winner_id == fixture["away_player_id"]:
        home_score, away_score = FORFEIT_LOSER_GOALS, FORFEIT_WINNER_GOALS
    else:
        return error_response("Winner must be one of the fixture's players.")

    try:
        _record_final_score(db, fixture_id, home_score, away_score, forfeit=True)
        db.commit()
    except DB_ERRORS as exc:
        db.rollback()
        app.logger.error("Error recording forfeit for fixture %s: %s", fixture_id, exc)
        return error_response("Failed to record forfeit.", 500)
    app.logger.info("Fixture %s forfeited in favour of player %s", fixture_id, winner_id)
    return jsonify(
        {"message": "Forfeit recorded.", "fixture": build_fixture_view(fetch_fixture_or_404(db, fixture_id))}
    )


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------


def _apply_player_report(db, fixture, player_id, home_score, away_score):
    """Record one side's claim and return the message for the reporter.

    Each side keeps its own claim so a dispute still shows both scores.
    """
    side = "home" if fixture["home_player_id"] == player_id else "away"
    home_claim, away_claim = report_claims(fixture)
    opponent_claim = away_claim if side == "home" else home_claim

    db.execute(
        f"""
        UPDATE fixtures
        SET {side}_report_home_score = %s, {side}_report_away_score = %s,
            {side}_confirmed = 1
        WHERE id = %s
        """,
        (home_score, away_score, fixture["id"]),
    )

    if opponent_claim == (home_score, away_score):
        db.execute(
            """
            UPDATE fixtures
            SET home_score = %s, away_score = %s,
                status = %s, report_status = %s,
                played_at = %s
            WHERE id = %s
            """,
            (home_score, away_score, FIXTURE_PLAYED, REPORT_APPROVED, utc_now(), fixture["id"]),
        )
        return "Result confirmed by both players."

    if opponent_claim is None:
        report_status = REPORT_PENDING
        message = "Result submitted. Waiting for your opponent to confirm."
    elif fixture["report_status"] == REPORT_CONFLICT:
        report_status = REPORT_CONFLICT
        message = "Report updated. An admin will review the conflicting scores."
    else:
        report_status = REPORT_CONFLICT
        message = "Reported score does not match your opponent's report. An admin will review it."

    db.execute(
        "UPDATE fixtures SET report_status = %s WHERE id = %s",
        (report_status, fixture["id"]),
    )
    return message


@app.route("/api/result", methods=["POST"])
def report_result():
    db = get_db()
    data = get_json_payload()
    try:
        fixture_id = parse_int_in_range(data.get("fixture_id"), "Fixture id", 1)
        player_id = parse_int_in_range(data.get("player_id"), "Player id", 1)
        home_score, away_score = parse_result_scores(data)
    except ValueError as exc:
        return error_response(str(exc))

    fixture = fetch_fixture_or_404(db, fixture_id)
    if player_id not in (fixture["home_player_id"], fixture["away_player_id"]):
        return error_response("Player not involved in this fixture.", 403)
    if fixture["status"] != FIXTURE_SCHEDULED:
        return error_response("Reporting for this fixture has closed.", 409)

    try:
        message = _apply_player_report(db, fixture, player_id, home_score, away_score)
        db.commit()
    except DB_ERRORS as exc:
        db.rollback()
        app.logger.error("Error saving result for fixture %s: %s", fixture_id, exc)
        return error_response("Error saving result. Please try again.", 500)

    app.logger.info(
        "Player %s reported %s-%s for fixture %s", player_id, home_score, away_score, fixture_id
    )
    return jsonify(
        {"message": message, "fixture": build_fixture_view(fetch_fixture_or_404(db, fixture_id))}
    )


@app.route("/api/admin/results", methods=["GET"])
def admin_list_results():
    db = get_db()
    rows = db.execute(
        f"""
        {FIXTURE_QUERY}
        WHERE f.status = %s AND f.report_status IN (%s, %s)
        ORDER BY f.matchday ASC, f.id ASC
        """,
        (FIXTURE_SCHEDULED, REPORT_PENDING, REPORT_CONFLICT),
    ).fetchall()
    return jsonify({"results": [build_fixture_view(row) for row in rows]})


@app.route("/api/admin/results/<int:fixture_id>/approve", methods=["POST"])
def admin_approve_result(fixture_id):
    db = get_db()
    fixture = fetch_fixture_or_404(db, fixture_id)
    if fixture["status"] == FIXTURE_CANCELLED:
        return error_response("Cancelled fixtures cannot be approved.", 409)

    data = get_json_payload()
    try:
        if "home_score" in data or "away_score" in data:
            home_score, away_score = parse_result_scores(data)
        elif fixture["report_status"] == REPORT_CONFLICT:
            raise ValueError("The players reported different scores. Provide home_score and away_score.")
        else:
            home_claim, away_claim = report_claims(fixture)
            claim = home_claim or away_claim
            if claim is None:
                raise ValueError("No reported score to approve. Provide home_score and away_score.")
            home_score, away_score = claim
    except ValueError as exc:
        return error_response(str(exc))

    try:
        _record_final_score(db, fixture_id, home_score, away_score)
        db.commit()
    except DB_ERRORS as exc:
        db.rollback()
        app.logger.error("Error approving result for fixture %s: %s", fixture_id, exc)
        return error_response("Failed to approve result.", 500)

    app.logger.info("Admin approved %s-%s for fixture %s", home_score, away_score, fixture_id)
    return jsonify(
        {"message": "Result approved.", "fixture": build_fixture_view(fetch_fixture_or_404(db, fixture_id))}
    )


@app.route("/api/admin/results/approve-all", methods=["POST"])
def admin_approve_all_results():
    db = get_db()
    try:
        approved = db.execute(
            """
            UPDATE fixtures
            SET home_score = COALESCE(home_report_home_score, away_report_home_score),
                away_score = COALESCE(home_report_away_score, away_report_away_score),
                status = %s, report_status = %s, played_at = %s
            WHERE status = %s
              AND report_status = %s
              AND COALESCE(home_report_home_score, away_report_home_score) IS NOT NULL
              AND COALESCE(home_report_away_score, away_report_away_score) IS NOT NULL
            """,
            (FIXTURE_PLAYED, REPORT_APPROVED, utc_now(), FIXTURE_SCHEDULED, REPORT_PENDING),
        ).rowcount
        db.commit()
    except DB_ERRORS as exc:
        db.rollback()
        app.logger.error("Error approving pending results: %s", exc)
        return error_response("Failed to approve results.", 500)

    app.logger.info("Approved %s pending result(s)", approved)
    return jsonify({"message": f"Approved {approved} pending result(s).", "approved": approved})


# ---------------------------------------------------------------------------
# Standings & stats
# ---------------------------------------------------------------------------


@app.route("/api/standings", methods=["GET"])
def standings():
    db = get_db()
    return jsonify({"standings": load_standings(db)})


@app.route("/api/standings.csv", methods=["GET"])
def standings_csv():
    db = get_db()
    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(STANDINGS_CSV_HEADERS)
    for row in load_standings(db):
        writer.writerow(
            [
                row["position"],
                row["player_name"],
                row["team"] or "",
                row["played"],
                row["won"],
                row["drawn"],
                row["lost"],
                row["goals_for"],
                row["goals_against"],
                row["goal_difference"],
                row["points"],
                "".join(row["form"]),
            ]
        )
    csv_data = output.getvalue()
    output.close()
    return Response(
        csv_data,
        mimetype="text/csv",
        headers={"Content-Disposition": "attachment; filename=standings.csv"},
    )


@app.route("/api/player/<int:player_id>/standing", methods=["GET"])
def player_standing(player_id):
    db = get_db()
    fetch_player_or_404(db, player_id)
    standing = find_standing(load_standings(db), player_id)
    if standing is None:
        abort(404, description="Player is not on the league table yet.")
    return jsonify(standing)


@app.route("/api/player/<int:player_id>/results", methods=["GET"])
def player_results(player_id):
    db = get_db()
    fetch_player_or_404(db, player_id)
    try:
        limit = _parse_optional_limit(request.args.get("limit", "5"))
    except ValueError as exc:
        return error_response(str(exc))
    fixtures = fetch_played_fixtures(db, player_id=player_id)
    return jsonify({"results": recent_results(fixtures, player_id, limit=limit)})


@app.route("/api/admin/stats", methods=["GET"])
def admin_stats():
    db = get_db()
    stats = count_players(db)
    rows = db.execute(
        "SELECT status, COUNT(*) AS count FROM fixtures GROUP BY status"
    ).fetchall()
    by_status = {status: 0 for status in FIXTURE_STATUSES}
    by_status.update({row["status"]: row["count"] for row in rows})
    stats["fixtures"] = by_status
    stats["open_reports"] = db.execute(
        "SELECT COUNT(*) AS count FROM fixtures WHERE status = %s AND report_status IN (%s, %s)",
        (FIXTURE_SCHEDULED, REPORT_PENDING, REPORT_CONFLICT),
    ).fetchone()["count"]
    stats["goals"] = int(
        db.execute(
            "SELECT COALESCE(SUM(home_score + away_score), 0) AS goals FROM fixtures WHERE status = %s",
            (FIXTURE_PLAYED,),
        ).fetchone()["goals"]
    )
    return jsonify(stats)


@app.route("/api/admin/reset", methods=["POST"])
def admin_reset_data():
    db = get_db()
    try:
        db.execute("DELETE FROM fixtures")
        db.execute("DELETE FROM players")
        if db.postgres:
            db.execute("ALTER SEQUENCE players_id_seq RESTART WITH 1")
            db.execute("ALTER SEQUENCE fixtures_id_seq RESTART WITH 1")
        else:
            db.execute("DELETE FROM sqlite_sequence WHERE name IN ('players', 'fixtures')")
        set_setting(db, SETTINGS_STATUS, LEAGUE_DRAFT)
        db.commit()
    except DB_ERRORS as exc:
        db.rollback()
        app.logger.error("Error clearing league data: %s", exc)
        return error_response("Failed to clear league data.", 500)

    app.logger.warning("All league data cleared")
    return jsonify({"message": "All league data cleared."})


if __name__ == "__main__":
    app.run(debug=True)
