"""
Request payload validation.

Every parser raises ValueError with a message that is safe to show to the
player; the routes turn that into a 400 response.
"""

from datetime import date

from scheduling import AVAILABLE_TEAMS

CONSOLES = ("PS5", "XBOX", "PC")
LEAGUE_STATUSES = ("DRAFT", "ACTIVE", "COMPLETE")
MAX_SCORE = 99

FIFA_CLUBS = AVAILABLE_TEAMS + [
    "Atletico Madrid",
    "Bayern Munich",
    "Borussia Dortmund",
    "FC Barcelona",
    "Inter",
    "Juventus",
    "AC Milan",
    "Paris Saint-Germain",
    "Real Madrid",
]


def _clean_text(data, key):
    value = data.get(key)
    if value is None:
        return ""
    return str(value).strip()


def _check_length(value, label, minimum, maximum):
    if len(value) < minimum:
        raise ValueError(f"{label} must be at least {minimum} characters.")
    if len(value) > maximum:
        raise ValueError(f"{label} must be at most {maximum} characters.")


def validate_registration(data):
    name = _clean_text(data, "name")
    gamer_tag = _clean_text(data, "gamer_tag")
    location = _clean_text(data, "location")
    console = _clean_text(data, "console").upper()
    preferred_club = _clean_text(data, "preferred_club")

    _check_length(name, "Name", 2, 50)
    _check_length(gamer_tag, "PSN ID / Game Tag", 3, 30)
    _check_length(location, "Location", 2, 100)
    if console not in CONSOLES:
        raise ValueError("Please select a console (PS5, XBOX or PC).")
    if preferred_club not in FIFA_CLUBS:
        raise ValueError("Please select a valid FIFA club.")

    return {
        "name": name,
        "gamer_tag": gamer_tag,
        "location": location,
        "console": console,
        "preferred_club": preferred_club,
    }


def parse_int_in_range(value, label, minimum, maximum=None):
    if isinstance(value, bool):
        raise ValueError(f"{label} must be an integer.")
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be an integer.")
    if number < minimum:
        raise ValueError(f"{label} must be at least {minimum}.")
    if maximum is not None and number > maximum:
        raise ValueError(f"{label} must be at most {maximum}.")
    return number


def parse_score(value, label):
    raw = "" if value is None else str(value).strip()
    if not raw or isinstance(value, bool):
        raise ValueError(f"Please provide the {label}.")
    try:
        score = int(raw)
    except ValueError:
        raise ValueError("Scores must be integers.")
    if score < 0:
        raise ValueError("Scores cannot be negative.")
    if score > MAX_SCORE:
        raise ValueError(
            f"Unrealistic {label}. Scores should be under 100. If this is correct, admin can manually edit."
        )
    return score


def parse_result_scores(data):
    home_score = parse_score(data.get("home_score"), "home score")
    away_score = parse_score(data.get("away_score"), "away score")
    return home_score, away_score


def parse_league_status(value):
    status = str(value or "").strip().upper()
    if status not in LEAGUE_STATUSES:
        raise ValueError(f"Status must be one of {', '.join(LEAGUE_STATUSES)}.")
    return status


def parse_bool(value):
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    return str(value or "").strip().lower() in ("1", "true", "yes", "on")


def parse_iso_date(value, label):
    try:
        return date.fromisoformat(str(value).strip())
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a date in YYYY-MM-DD format.")
