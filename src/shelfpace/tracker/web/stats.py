"""Statistics and reading goal routes."""

from flask import Blueprint, request

from ..exceptions import GoalNotFoundError
from ..stats.analytics import parse_range_date
from ..stats.schemas import ReadingGoalCreate, ReadingGoalUpdate
from .helpers import no_content, parse_body, services, to_json, to_json_list

bp = Blueprint("stats", __name__, url_prefix="/api")


@bp.get("/stats/daily")
def daily_stats():
    """Completed sessions on one day (default: today, UTC)."""
    day = parse_range_date(request.args.get("date"))
    if day is None:
        day = services().analytics.today()
    return to_json(services().analytics.get_daily_reading_stats(day))


@bp.get("/stats/overview")
def overview():
    """Totals, streaks, goals and forecasts for ?from=&to= (YYYY-MM-DD)."""
    range_from = parse_range_date(request.args.get("from"))
    range_to = parse_range_date(request.args.get("to"))
    return to_json(services().analytics.get_overview(range_from, range_to))


@bp.get("/reading-goals")
def list_goals():
    active_only = request.args.get("active", "").lower() in ("1", "true", "yes")
    return to_json_list(services().goals.list_goals(active_only=active_only))


@bp.post("/reading-goals")
def create_goal():
    return to_json(services().goals.create_goal(parse_body(ReadingGoalCreate)), 201)


@bp.get("/reading-goals/<goal_id>")
def get_goal(goal_id: str):
    goal = services().goals.get_goal(goal_id)
    if not goal:
        raise GoalNotFoundError(goal_id)
    return to_json(goal)


@bp.patch("/reading-goals/<goal_id>")
def update_goal(goal_id: str):
    data = parse_body(ReadingGoalUpdate)
    goal = services().goals.update_goal(goal_id, data)
    if not goal:
        raise GoalNotFoundError(goal_id)
    return to_json(goal)


@bp.delete("/reading-goals/<goal_id>")
def delete_goal(goal_id: str):
    if not services().goals.delete_goal(goal_id):
        raise GoalNotFoundError(goal_id)
    return no_content()
