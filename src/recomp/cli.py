"""CLI interface using Typer."""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from datetime import date, timedelta
from pathlib import Path
from typing import NoReturn, Optional

import typer
from rich.console import Console
from rich.table import Table

from recomp.app_logging import configure_logging
from recomp.config import get_settings
from recomp.db import get_db
from recomp.db.queries import (
    BodyCompQueries,
    DailyRecordQueries,
    EstimateQueries,
    SqliteEstimateRepository,
    TargetQueries,
    UserQueries,
)
from recomp.errors import MissingUnitError, ValidationError
from recomp.tracking.engine import EngineResult, recompute_estimate
from recomp.tracking.models import MassUnit, TDEEEstimate, UserProfile

# Assumed when a prediction has no planned intake
DEFAULT_DEFICIT_PERCENT = 20.0
DEFAULT_SURPLUS_PERCENT = -10.0

app = typer.Typer(
    help="Adaptive TDEE and body composition estimation from daily logs",
    no_args_is_help=True,
)
console = Console()

user_app = typer.Typer(help="Manage user profiles")
log_app = typer.Typer(help="Log and import daily weight and intake records")
tdee_app = typer.Typer(help="Adaptive TDEE estimates, projections and targets")
scan_app = typer.Typer(help="Manage body composition scans")
bodycomp_app = typer.Typer(help="Partition ratio and body composition predictions")

app.add_typer(user_app, name="user")
app.add_typer(log_app, name="log")
app.add_typer(tdee_app, name="tdee")
app.add_typer(scan_app, name="scan")
app.add_typer(bodycomp_app, name="bodycomp")


# ============================================================================
# Helpers
# ============================================================================


def output_json(response: dict) -> None:
    """Output JSON response to stdout."""
    print(json.dumps(response, indent=2))


def fail(
    command: str,
    errors: list[str],
    suggestions: Optional[list[str]] = None,
    json_output: bool = False,
) -> NoReturn:
    """Report an error in the requested format and exit with code 1."""
    suggestions = suggestions or []
    if json_output:
        output_json({
            "success": False,
            "command": command,
            "errors": errors,
            "suggestions": suggestions,
        })
    else:
        for error in errors:
            console.print(f"[red]{error}[/red]")
        for suggestion in suggestions:
            console.print(suggestion)
    raise typer.Exit(1)


def _get_user(conn, user_id: Optional[int], command: str, json_output: bool) -> UserProfile:
    uid = user_id or UserQueries.get_default_user_id(conn)
    profile = UserQueries.get_user(conn, uid) if uid else None
    if profile is None:
        fail(
            command,
            ["No user profile found"],
            ["Create one with: recomp user create --age 35 --sex male --height 178"],
            json_output,
        )
    return profile


def _mass(value_kg: float, unit: MassUnit) -> float:
    return round(unit.from_kg(value_kg), 1)


def _load_points(conn, user_id: int, command: str, json_output: bool):
    try:
        return DailyRecordQueries.get_points(conn, user_id)
    except MissingUnitError as e:
        fail(
            command,
            [str(e)],
            ["Tag legacy records once with: recomp log migrate-units --unit kg (or lb)"],
            json_output,
        )


def _run_engine(
    conn,
    profile: UserProfile,
    previous: Optional[TDEEEstimate],
    command: str,
    json_output: bool,
) -> EngineResult:
    points = _load_points(conn, profile.user_id, command, json_output)
    activity = UserQueries.get_activity(conn, profile.user_id)
    return recompute_estimate(
        points,
        profile=profile,
        activity=activity,
        config=get_settings().engine,
        previous=previous,
    )


def _estimate_data(estimate: TDEEEstimate, unit: MassUnit) -> dict:
    return {
        "estimated_tdee": round(estimate.estimated_tdee),
        "confidence": estimate.confidence.value,
        "confidence_score": round(estimate.confidence_score, 2),
        "standard_error": round(estimate.standard_error),
        "source": estimate.source.value,
        "current_weight": _mass(estimate.current_weight, unit),
        "unit": unit.value,
        "data_points_used": estimate.data_points_used,
        "window_days": estimate.window_days,
        "r_squared": round(estimate.r_squared, 3) if estimate.r_squared is not None else None,
    }


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
) -> None:
    """Configure logging before any command runs."""
    configure_logging(logging.DEBUG if verbose else get_settings().defaults.log_level)


# ============================================================================
# User commands
# ============================================================================


@user_app.command("create")
def user_create(
    age: int = typer.Option(..., "--age", help="Age in years"),
    sex: str = typer.Option(..., "--sex", help="Sex (male/female)"),
    height: float = typer.Option(..., "--height", help="Height in cm"),
    body_fat: Optional[float] = typer.Option(None, "--body-fat", help="Body fat percent"),
    name: Optional[str] = typer.Option(None, "--name", help="Display name"),
    unit: str = typer.Option("kg", "--unit", help="Display unit for masses (kg/lb)"),
    activity: str = typer.Option(
        "moderate",
        "--activity",
        help="Activity level (sedentary/light/moderate/active/very_active)",
    ),
    workouts: int = typer.Option(0, "--workouts", help="Workouts per week"),
    workout_minutes: float = typer.Option(0.0, "--workout-minutes", help="Average workout length"),
    intensity: str = typer.Option("moderate", "--intensity", help="Workout intensity (light/moderate/intense)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Create a user profile."""
    from recomp.tracking.formula import ActivityConfig

    try:
        profile = UserProfile(
            user_id=None,
            age=age,
            sex=sex,
            height_cm=height,
            body_fat_percent=body_fat,
            name=name,
            display_unit=MassUnit.parse(unit),
        )
        activity_config = ActivityConfig(activity, workouts, workout_minutes, intensity)
    except ValueError as e:
        fail("user create", [str(e)], json_output=json_output)

    db = get_db()
    with db.get_connection() as conn:
        user_id = UserQueries.create_user(conn, profile, activity_config)

    if json_output:
        output_json({
            "success": True,
            "command": "user create",
            "data": {
                "user_id": user_id,
                "profile": {
                    "age": age,
                    "sex": sex,
                    "height_cm": height,
                    "body_fat_percent": body_fat,
                    "display_unit": profile.display_unit.value,
                    "activity_level": activity_config.activity_level.value,
                },
            },
            "human_summary": f"Created user profile (ID: {user_id})",
        })
    else:
        console.print(f"[green]Created user profile (ID: {user_id})[/green]")


@user_app.command("show")
def user_show(
    user_id: Optional[int] = typer.Option(None, "--id", help="User ID (default: first user)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show a user profile."""
    db = get_db()
    with db.get_connection() as conn:
        profile = _get_user(conn, user_id, "user show", json_output)
        activity = UserQueries.get_activity(conn, profile.user_id)

    if json_output:
        output_json({
            "success": True,
            "command": "user show",
            "data": {
                "user_id": profile.user_id,
                "name": profile.name,
                "age": profile.age,
                "sex": profile.sex,
                "height_cm": profile.height_cm,
                "body_fat_percent": profile.body_fat_percent,
                "display_unit": profile.display_unit.value,
                "activity_level": activity.activity_level.value,
                "workouts_per_week": activity.workouts_per_week,
            },
            "human_summary": f"User {profile.user_id}: {profile.sex}, {profile.age}y, {profile.height_cm:.0f} cm",
        })
    else:
        console.print(f"[bold]User Profile (ID: {profile.user_id})[/bold]")
        if profile.name:
            console.print(f"  Name: {profile.name}")
        console.print(f"  Age: {profile.age}")
        console.print(f"  Sex: {profile.sex}")
        console.print(f"  Height: {profile.height_cm:.0f} cm")
        if profile.body_fat_percent is not None:
            console.print(f"  Body fat: {profile.body_fat_percent:.1f}%")
        console.print(f"  Activity: {activity.activity_level.value}, {activity.workouts_per_week} workouts/week")
        console.print(f"  Display unit: {profile.display_unit.value}")


# ============================================================================
# Daily log commands
# ============================================================================


@log_app.command("add")
def log_add(
    weight: Optional[float] = typer.Option(None, "--weight", "-w", help="Body mass"),
    unit: Optional[str] = typer.Option(None, "--unit", help="Mass unit (kg/lb); defaults to the profile's unit"),
    calories: Optional[float] = typer.Option(None, "--calories", "-c", help="Calories eaten"),
    day: Optional[str] = typer.Option(None, "--date", "-d", help="Date (YYYY-MM-DD, default: today)"),
    incomplete: bool = typer.Option(False, "--incomplete", help="Intake log for the day is incomplete"),
    steps: Optional[float] = typer.Option(None, "--steps", help="Step count"),
    exercise_calories: Optional[float] = typer.Option(None, "--exercise-calories", help="Tracked workout calories"),
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Log a day's weight, intake and activity (replaces that day's record)."""
    if weight is None and calories is None:
        fail("log add", ["Nothing to log; pass --weight and/or --calories"], json_output=json_output)

    db = get_db()
    with db.get_connection() as conn:
        profile = _get_user(conn, user_id, "log add", json_output)
        try:
            log_date = date.fromisoformat(day) if day else date.today()
            point = DailyRecordQueries.upsert_record(
                conn,
                profile.user_id,
                log_date,
                weight,
                unit or profile.display_unit,
                calories,
                not incomplete,
                steps,
                exercise_calories,
            )
        except ValueError as e:
            fail("log add", [str(e)], json_output=json_output)

    display = profile.display_unit
    summary = f"Logged {point.date.isoformat()}"
    if point.body_mass_kg is not None:
        summary += f": {_mass(point.body_mass_kg, display)} {display.value}"
    if point.calories is not None:
        summary += f", {point.calories:.0f} kcal"

    if json_output:
        output_json({
            "success": True,
            "command": "log add",
            "data": {
                "date": point.date.isoformat(),
                "body_mass_kg": point.body_mass_kg,
                "calories": point.calories,
                "is_complete": point.is_complete,
            },
            "human_summary": summary,
        })
    else:
        console.print(f"[green]{summary}[/green]")


@log_app.command("import")
def log_import(
    csv_path: Path = typer.Argument(..., help="CSV with date, body_mass, unit, calories columns"),
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Import daily records from a CSV file. Every mass must carry a unit."""
    from recomp.data.records_loader import RecordsLoader

    if not csv_path.exists():
        fail("log import", [f"File not found: {csv_path}"], json_output=json_output)

    db = get_db()
    with db.get_connection() as conn:
        profile = _get_user(conn, user_id, "log import", json_output)
        try:
            counts = RecordsLoader(conn).load_from_csv(csv_path, profile.user_id)
        except MissingUnitError as e:
            fail(
                "log import",
                [str(e)],
                ["Add a unit (kg or lb) to every row that has a body_mass"],
                json_output,
            )
        except ValidationError as e:
            fail("log import", [str(e)], json_output=json_output)

    if json_output:
        output_json({
            "success": True,
            "command": "log import",
            "data": counts,
            "human_summary": f"Imported {counts['loaded']} record(s)",
        })
    else:
        console.print(f"[green]Imported {counts['loaded']} record(s)[/green]")
        console.print(f"  With weight: {counts['with_mass']}")
        console.print(f"  With calories: {counts['with_calories']}")


@log_app.command("list")
def log_list(
    days: int = typer.Option(30, "--days", "-d", help="Number of days to show"),
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List recent daily records with the weight trend."""
    from recomp.tracking.ema import calculate_trend_from_scratch

    db = get_db()
    with db.get_connection() as conn:
        profile = _get_user(conn, user_id, "log list", json_output)
        points = _load_points(conn, profile.user_id, "log list", json_output)

    unit = profile.display_unit
    cutoff = date.today() - timedelta(days=days)
    trend = dict(
        calculate_trend_from_scratch(
            [(p.date, p.body_mass_kg) for p in points if p.body_mass_kg is not None],
            get_settings().engine.conditioning.trend_smoothing,
        )
    )
    recent = [p for p in points if p.date >= cutoff]

    if json_output:
        output_json({
            "success": True,
            "command": "log list",
            "data": {
                "unit": unit.value,
                "entries": [
                    {
                        "date": p.date.isoformat(),
                        "body_mass": _mass(p.body_mass_kg, unit) if p.body_mass_kg is not None else None,
                        "trend": _mass(trend[p.date], unit) if p.date in trend else None,
                        "calories": p.calories,
                        "is_complete": p.is_complete,
                    }
                    for p in recent
                ],
            },
            "human_summary": f"{len(recent)} entries over {days} days",
        })
        return

    if not recent:
        console.print("No entries found")
        return

    table = Table(title=f"Daily Log (last {days} days)")
    table.add_column("Date", style="cyan")
    table.add_column(f"Weight ({unit.value})", justify="right")
    table.add_column("Trend", justify="right", style="blue")
    table.add_column("Calories", justify="right")
    table.add_column("Complete")
    for p in recent:
        table.add_row(
            p.date.isoformat(),
            f"{unit.from_kg(p.body_mass_kg):.1f}" if p.body_mass_kg is not None else "-",
            f"{unit.from_kg(trend[p.date]):.1f}" if p.date in trend else "-",
            f"{p.calories:.0f}" if p.calories is not None else "-",
            "yes" if p.is_complete else "[yellow]no[/yellow]",
        )
    console.print(table)


@log_app.command("migrate-units")
def log_migrate_units(
    unit: str = typer.Option(..., "--unit", help="Unit the legacy records were entered in (kg/lb)"),
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Tag legacy records that have a weight but no unit."""
    db = get_db()
    with db.get_connection() as conn:
        profile = _get_user(conn, user_id, "log migrate-units", json_output)
        record_ids = DailyRecordQueries.find_missing_units(conn, profile.user_id)
        try:
            migrated = DailyRecordQueries.migrate_units(conn, record_ids, unit)
        except ValidationError as e:
            fail("log migrate-units", [str(e)], json_output=json_output)

    if json_output:
        output_json({
            "success": True,
            "command": "log migrate-units",
            "data": {"migrated": migrated, "record_ids": record_ids},
            "human_summary": f"Tagged {migrated} record(s) as {unit}",
        })
    else:
        console.print(f"[green]Tagged {migrated} record(s) as {unit}[/green]")


# ============================================================================
# TDEE commands
# ============================================================================


@tdee_app.command("estimate")
def tdee_estimate(
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Recompute the adaptive TDEE estimate from the logged records."""
    from recomp.tracking.store import EstimateStore

    db = get_db()
    store = EstimateStore(SqliteEstimateRepository(db))
    with db.get_connection() as conn:
        profile = _get_user(conn, user_id, "tdee estimate", json_output)
        result = _run_engine(conn, profile, store.get(profile.user_id), "tdee estimate", json_output)

    estimate = result.estimate
    quality = result.quality
    if estimate is None:
        fail(
            "tdee estimate",
            ["Not enough data for an estimate"],
            list(quality.suggestions),
            json_output,
        )
    store.upsert(profile.user_id, estimate)

    unit = profile.display_unit
    if json_output:
        data = _estimate_data(estimate, unit)
        data.update({
            "strategy": result.selection.strategy,
            "authoritative": result.authoritative,
            "formula_tdee": round(result.formula.estimated_tdee) if result.formula else None,
            "divergence_percent": (
                round(result.selection.divergence_percent, 1)
                if result.selection.divergence_percent is not None else None
            ),
            "notes": list(result.selection.notes),
            "quality": {
                "sufficient": quality.sufficient,
                "reason_codes": sorted(code.value for code in quality.reason_codes),
                "usable_points": quality.usable_points,
                "coverage": round(quality.coverage, 2),
            },
            "suggestions": list(quality.suggestions),
        })
        output_json({
            "success": True,
            "command": "tdee estimate",
            "data": data,
            "human_summary": (
                f"TDEE: {estimate.estimated_tdee:.0f} kcal/day ({estimate.confidence.value})"
            ),
        })
        return

    label = "measured" if result.authoritative else "provisional"
    console.print(f"[green]Updated TDEE estimate[/green] ({label}, {result.selection.strategy})")
    console.print(
        f"  [bold]TDEE: {estimate.estimated_tdee:.0f} ± {estimate.standard_error:.0f} kcal/day[/bold]"
    )
    console.print(f"  Confidence: {estimate.confidence.value} ({estimate.confidence_score:.0%})")
    console.print(f"  Trend weight: {_mass(estimate.current_weight, unit)} {unit.value}")
    if result.formula is not None and result.authoritative:
        console.print(f"  Formula estimate: {result.formula.estimated_tdee:.0f} kcal/day")
    for note in result.selection.notes:
        console.print(f"  [yellow]{note}[/yellow]")
    for suggestion in quality.suggestions:
        console.print(f"  [dim]{suggestion}[/dim]")


@tdee_app.command("analysis")
def tdee_analysis(
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Show the regression behind the baseline estimate."""
    from recomp.tracking.selector import compare_with_formula

    db = get_db()
    with db.get_connection() as conn:
        profile = _get_user(conn, user_id, "tdee analysis", json_output)
        result = _run_engine(conn, profile, None, "tdee analysis", json_output)

    analysis = result.analysis
    if analysis is None:
        fail(
            "tdee analysis",
            ["Not enough conditioned data for a regression"],
            list(result.quality.suggestions),
            json_output,
        )
    comparison = (
        compare_with_formula(result.selection.best_adaptive, result.formula)
        if result.formula is not None else None
    )

    if json_output:
        output_json({
            "success": True,
            "command": "tdee analysis",
            "data": {
                "estimated_tdee": round(analysis.estimated_tdee),
                "burn_rate_per_kg": round(analysis.burn_rate_per_kg, 2),
                "energy_per_kg": round(analysis.energy_per_kg),
                "r_squared": round(analysis.r_squared, 3),
                "standard_error": round(analysis.standard_error),
                "outliers_excluded": analysis.outliers_excluded,
                "points": [
                    {
                        "date": p.date.isoformat(),
                        "weight": round(p.weight, 2),
                        "calories": round(p.calories),
                        "actual_change_rate": round(p.actual_change_rate, 4),
                        "predicted_change_rate": round(p.predicted_change_rate, 4),
                    }
                    for p in analysis.points
                ],
                "formula_comparison": comparison.recommendation if comparison else None,
            },
            "human_summary": f"Regression TDEE {analysis.estimated_tdee:.0f} kcal/day, R² {analysis.r_squared:.2f}",
        })
        return

    console.print("[bold]Regression analysis[/bold]")
    console.print(f"  Implied TDEE: {analysis.estimated_tdee:.0f} kcal/day")
    console.print(f"  Energy per kg: {analysis.energy_per_kg:.0f} kcal")
    console.print(f"  R²: {analysis.r_squared:.2f}   SE: {analysis.standard_error:.0f} kcal/day")
    if analysis.outliers_excluded:
        console.print(f"  Outliers excluded: {analysis.outliers_excluded}")
    if comparison is not None:
        console.print(f"  {comparison.recommendation}")

    table = Table(title="Conditioned samples")
    table.add_column("Date", style="cyan")
    table.add_column("Calories", justify="right")
    table.add_column("Actual kg/day", justify="right")
    table.add_column("Predicted", justify="right")
    table.add_column("Residual", justify="right")
    for p in analysis.points:
        table.add_row(
            p.date.isoformat(),
            f"{p.calories:.0f}",
            f"{p.actual_change_rate:+.3f}",
            f"{p.predicted_change_rate:+.3f}",
            f"{p.residual:+.3f}",
        )
    console.print(table)


@tdee_app.command("predict")
def tdee_predict(
    calories: Optional[float] = typer.Option(None, "--calories", "-c", help="Planned daily intake (default: current target)"),
    horizons: Optional[list[int]] = typer.Option(None, "--horizon", help="Days ahead (repeatable)"),
    goal_weight: Optional[float] = typer.Option(None, "--goal-weight", help="Target weight in the display unit"),
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Project weight at future horizons for a planned intake."""
    from recomp.tracking.projection import predict_goal_date, predict_weights
    from recomp.tracking.serialization import serialize_prediction

    db = get_db()
    with db.get_connection() as conn:
        profile = _get_user(conn, user_id, "tdee predict", json_output)
        estimate = EstimateQueries.get_estimate(conn, profile.user_id)
        target = TargetQueries.get_target(conn, profile.user_id)

    if estimate is None:
        fail(
            "tdee predict",
            ["No TDEE estimate yet"],
            ["Run: recomp tdee estimate"],
            json_output,
        )
    intake = calories if calories is not None else (target.calories if target else estimate.estimated_tdee)
    unit = profile.display_unit
    try:
        predictions = predict_weights(
            estimate.current_weight, estimate, intake, horizons or get_settings().defaults.horizons
        )
    except ValidationError as e:
        fail("tdee predict", [str(e)], json_output=json_output)
    goal = None
    if goal_weight is not None:
        goal = predict_goal_date(estimate.current_weight, unit.to_kg(goal_weight), estimate, intake)

    if json_output:
        goal_data = None
        if goal is not None:
            goal_data = {
                "days_required": goal.days_required,
                "earliest_days": goal.earliest_days,
                "latest_days": goal.latest_days,
            }
        output_json({
            "success": True,
            "command": "tdee predict",
            "data": {
                "target_calories": intake,
                "unit": "kg",
                "predictions": [serialize_prediction(p) for p in predictions],
                "goal": goal_data,
            },
            "human_summary": f"{len(predictions)} projection(s) at {intake:.0f} kcal/day",
        })
        return

    table = Table(title=f"Weight projection at {intake:.0f} kcal/day")
    table.add_column("Days", justify="right")
    table.add_column(f"Expected ({unit.value})", justify="right")
    table.add_column("Range", justify="right", style="dim")
    for p in predictions:
        table.add_row(
            str(p.horizon_days),
            f"{unit.from_kg(p.predicted_weight):.1f}",
            f"{unit.from_kg(p.lower_bound):.1f} - {unit.from_kg(p.upper_bound):.1f}",
        )
    console.print(table)
    if goal_weight is not None:
        if goal is None:
            console.print(f"[yellow]{intake:.0f} kcal/day does not move toward {goal_weight} {unit.value}[/yellow]")
        else:
            console.print(
                f"Goal of {goal_weight} {unit.value} in about {goal.days_required} days "
                f"({goal.earliest_days}-{goal.latest_days})"
            )


@tdee_app.command("target")
def tdee_target(
    goal_offset: Optional[float] = typer.Option(
        None, "--offset", help="Daily deficit (negative) or surplus vs TDEE (default: stored offset)"
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Show the decision without saving"),
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Sync the calorie target with the current estimate when it is reliable."""
    from recomp.tracking.selector import decide_target_sync

    db = get_db()
    with db.get_connection() as conn:
        profile = _get_user(conn, user_id, "tdee target", json_output)
        previous = EstimateQueries.get_estimate(conn, profile.user_id)
        result = _run_engine(conn, profile, previous, "tdee target", json_output)
        target = TargetQueries.get_target(conn, profile.user_id)

        if result.estimate is None:
            fail("tdee target", ["Not enough data for an estimate"], list(result.quality.suggestions), json_output)

        offset = goal_offset if goal_offset is not None else (target.goal_offset if target else 0.0)
        decision = decide_target_sync(
            result.estimate,
            result.authoritative,
            target.calories if target else None,
            offset,
            get_settings().engine.selector.min_target_change,
        )
        applied = decision.should_update and not dry_run
        if applied:
            TargetQueries.set_target(conn, profile.user_id, decision.proposed_target, offset, result.as_of)

    if json_output:
        output_json({
            "success": True,
            "command": "tdee target",
            "data": {
                "should_update": decision.should_update,
                "applied": applied,
                "reason": decision.reason.value,
                "proposed_target": decision.proposed_target,
                "current_target": decision.current_target,
                "change": decision.change,
                "informational": decision.informational,
            },
            "human_summary": decision.message,
        })
    elif applied:
        console.print(f"[green]{decision.message}[/green]")
    else:
        console.print(decision.message)


# ============================================================================
# Scan commands
# ============================================================================


def _scan_row(scan, unit: MassUnit) -> dict:
    return {
        "scan_id": scan.scan_id,
        "date": scan.scan_date.isoformat(),
        "total_mass": _mass(scan.total_mass_kg, unit),
        "fat_mass": _mass(scan.fat_mass_kg, unit),
        "lean_mass": _mass(scan.lean_mass_kg, unit),
        "body_fat_percent": round(scan.body_fat_percent, 1),
        "confidence": scan.confidence.value,
        "is_baseline": scan.is_baseline,
        "provider": scan.provider,
    }


def _calibration_data(profile) -> dict:
    return {
        "learned_p_ratio": round(profile.learned_p_ratio, 3) if profile.learned_p_ratio is not None else None,
        "confidence": round(profile.p_ratio_confidence, 3),
        "tier": profile.p_ratio_tier.value,
        "data_points": profile.p_ratio_data_points,
    }


@scan_app.command("add")
def scan_add(
    total: float = typer.Option(..., "--total", help="Total body mass"),
    fat: float = typer.Option(..., "--fat", help="Fat mass"),
    lean: float = typer.Option(..., "--lean", help="Lean soft tissue mass"),
    unit: str = typer.Option(..., "--unit", help="Unit of all masses (kg/lb)"),
    bone: Optional[float] = typer.Option(None, "--bone", help="Bone mineral content"),
    body_fat: Optional[float] = typer.Option(None, "--body-fat", help="Reported body fat percent"),
    day: Optional[str] = typer.Option(None, "--date", "-d", help="Scan date (YYYY-MM-DD, default: today)"),
    time_of_day: str = typer.Option("morning_fasted", "--time", help="morning_fasted/morning_fed/afternoon/evening"),
    hydration: str = typer.Option("unknown", "--hydration", help="normal/dehydrated/overhydrated/unknown"),
    recent_workout: bool = typer.Option(False, "--recent-workout", help="Trained shortly before the scan"),
    provider: Optional[str] = typer.Option(None, "--provider", help="Scan provider or device"),
    notes: Optional[str] = typer.Option(None, "--notes", help="Notes"),
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Add a body composition scan and recalibrate the personal P-ratio."""
    from recomp.bodycomp.models import DEXAScan, ScanConditions
    from recomp.bodycomp.prediction import accuracy_to_dict, backtest_stored_prediction
    from recomp.bodycomp.profile import add_scan

    db = get_db()
    with db.get_connection() as conn:
        user = _get_user(conn, user_id, "scan add", json_output)
        try:
            scan = DEXAScan.create(
                scan_date=date.fromisoformat(day) if day else date.today(),
                total_mass=total,
                fat_mass=fat,
                lean_mass=lean,
                unit=unit,
                bone_mineral=bone,
                body_fat_percent=body_fat,
                conditions=ScanConditions(time_of_day, hydration, recent_workout),
                provider=provider,
                notes=notes,
            )
            profile = add_scan(BodyCompQueries.load_profile(conn, user.user_id), scan)
        except ValueError as e:
            fail("scan add", [str(e)], json_output=json_output)
        profile = BodyCompQueries.save_profile(conn, profile)
        stored = next(s for s in profile.scans if s.scan_date == scan.scan_date)
        accuracy = backtest_stored_prediction(
            BodyCompQueries.get_prediction(conn, user.user_id), profile.scans, stored
        )

    display = user.display_unit
    if json_output:
        output_json({
            "success": True,
            "command": "scan add",
            "data": {
                "scan": _scan_row(stored, display),
                "calibration": _calibration_data(profile),
                "prediction_check": accuracy_to_dict(accuracy) if accuracy else None,
            },
            "human_summary": (
                f"Added scan for {stored.scan_date.isoformat()} "
                f"({stored.body_fat_percent:.1f}% body fat, {stored.confidence.value} confidence)"
            ),
        })
        return

    console.print(
        f"[green]Added scan for {stored.scan_date.isoformat()}[/green] "
        f"({stored.body_fat_percent:.1f}% body fat, {stored.confidence.value} confidence)"
    )
    if profile.learned_p_ratio is not None:
        console.print(
            f"  Personal P-ratio: {profile.learned_p_ratio:.2f} "
            f"({profile.p_ratio_tier.value} confidence, {profile.p_ratio_data_points} comparison(s))"
        )
    if accuracy is not None:
        verdict = "within" if accuracy.within_range else "outside"
        console.print(
            f"  Previous prediction: {accuracy.predicted_body_fat:.1f}% body fat, actual "
            f"{accuracy.actual_body_fat:.1f}% ({verdict} the predicted range)"
        )


@scan_app.command("list")
def scan_list(
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """List scans and the current calibration."""
    db = get_db()
    with db.get_connection() as conn:
        user = _get_user(conn, user_id, "scan list", json_output)
        profile = BodyCompQueries.load_profile(conn, user.user_id)

    unit = user.display_unit
    if json_output:
        output_json({
            "success": True,
            "command": "scan list",
            "data": {
                "unit": unit.value,
                "scans": [_scan_row(s, unit) for s in profile.scans],
                "calibration": _calibration_data(profile),
            },
            "human_summary": f"{len(profile.scans)} scan(s)",
        })
        return

    if not profile.scans:
        console.print("No scans found")
        return
    table = Table(title="Body composition scans")
    table.add_column("Date", style="cyan")
    table.add_column(f"Total ({unit.value})", justify="right")
    table.add_column("Fat", justify="right")
    table.add_column("Lean", justify="right")
    table.add_column("BF%", justify="right")
    table.add_column("Confidence")
    for s in profile.scans:
        table.add_row(
            s.scan_date.isoformat(),
            f"{unit.from_kg(s.total_mass_kg):.1f}",
            f"{unit.from_kg(s.fat_mass_kg):.1f}",
            f"{unit.from_kg(s.lean_mass_kg):.1f}",
            f"{s.body_fat_percent:.1f}",
            s.confidence.value,
        )
    console.print(table)
    if profile.learned_p_ratio is not None:
        console.print(f"Personal P-ratio: {profile.learned_p_ratio:.2f} ({profile.p_ratio_tier.value})")


@scan_app.command("remove")
def scan_remove(
    day: str = typer.Option(..., "--date", "-d", help="Date of the scan to remove (YYYY-MM-DD)"),
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Remove a scan and recalibrate."""
    from recomp.bodycomp.profile import remove_scan

    db = get_db()
    with db.get_connection() as conn:
        user = _get_user(conn, user_id, "scan remove", json_output)
        try:
            profile = remove_scan(BodyCompQueries.load_profile(conn, user.user_id), date.fromisoformat(day))
        except ValueError as e:
            fail("scan remove", [str(e)], json_output=json_output)
        profile = BodyCompQueries.save_profile(conn, profile)

    if json_output:
        output_json({
            "success": True,
            "command": "scan remove",
            "data": {"removed": day, "calibration": _calibration_data(profile)},
            "human_summary": f"Removed scan for {day}",
        })
    else:
        console.print(f"[green]Removed scan for {day}[/green]")


# ============================================================================
# Body composition commands
# ============================================================================


def _pratio_inputs(
    user: UserProfile,
    profile,
    protein: float,
    sets: float,
    deficit_percent: float,
    weight_kg: Optional[float],
    body_fat: Optional[float],
):
    from recomp.bodycomp.models import PRatioInputs

    scan = profile.latest_scan
    mass = weight_kg or (scan.total_mass_kg if scan else None)
    bf = body_fat or (scan.body_fat_percent if scan else user.body_fat_percent)
    if mass is None or bf is None:
        raise ValidationError("body mass and body fat are required when there is no scan")
    return PRatioInputs(
        avg_daily_protein_g=protein,
        body_mass_kg=mass,
        avg_weekly_sets=sets,
        deficit_percent=deficit_percent,
        body_fat_percent=bf,
        sex=user.sex,
        training_age=profile.training_age,
        is_enhanced=profile.is_enhanced,
        lean_mass_kg=scan.lean_mass_kg if scan else None,
        personal_history=profile.personal_history,
    )


def _print_recommendations(recommendations) -> None:
    if not recommendations:
        return
    console.print("[bold]Recommendations[/bold]")
    colors = {"high": "red", "medium": "yellow", "low": "blue"}
    for rec in recommendations:
        color = colors[rec.priority.value]
        console.print(f"  [{color}]{rec.priority.value}[/{color}] {rec.title}: {rec.description}")
        if rec.current_value is not None:
            console.print(f"    [dim]now {rec.current_value}, target {rec.target_value}[/dim]")


@bodycomp_app.command("pratio")
def bodycomp_pratio(
    protein: float = typer.Option(..., "--protein", help="Average protein intake (g/day)"),
    sets: float = typer.Option(..., "--sets", help="Hard sets per week"),
    deficit_percent: float = typer.Option(..., "--deficit", help="Deficit as % of TDEE (negative = surplus)"),
    weight: Optional[float] = typer.Option(None, "--weight", help="Body mass in the display unit (default: latest scan)"),
    body_fat: Optional[float] = typer.Option(None, "--body-fat", help="Body fat percent (default: latest scan)"),
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Predict the fat fraction of upcoming mass change."""
    from recomp.bodycomp.p_ratio import calculate_p_ratio, describe_p_ratio, explain_p_ratio_factors
    from recomp.bodycomp.prediction import blend_p_ratio
    from recomp.bodycomp.recommendations import (
        estimate_improvement_potential,
        generate_recommendations,
        recommendation_to_dict,
        summarize_recommendations,
    )

    db = get_db()
    with db.get_connection() as conn:
        user = _get_user(conn, user_id, "bodycomp pratio", json_output)
        profile = BodyCompQueries.load_profile(conn, user.user_id)

    try:
        weight_kg = user.display_unit.to_kg(weight) if weight is not None else None
        inputs = _pratio_inputs(user, profile, protein, sets, deficit_percent, weight_kg, body_fat)
    except ValueError as e:
        fail("bodycomp pratio", [str(e)], json_output=json_output)

    factors = calculate_p_ratio(inputs, profile.modifiers)
    blended, weight_learned = blend_p_ratio(factors.final_p_ratio, profile, user.sex)
    explanations = explain_p_ratio_factors(factors)
    recommendations = generate_recommendations(factors, inputs)
    potential = estimate_improvement_potential(factors)

    if json_output:
        output_json({
            "success": True,
            "command": "bodycomp pratio",
            "data": {
                "model_p_ratio": round(factors.final_p_ratio, 3),
                "confidence_range": [round(v, 3) for v in factors.confidence_range],
                "blended_p_ratio": round(blended, 3),
                "calibration_weight": round(weight_learned, 3),
                "is_surplus": factors.is_surplus,
                "factors": {
                    "protein": factors.protein_factor,
                    "training": factors.training_factor,
                    "deficit": factors.deficit_factor,
                    "body_fat": factors.body_fat_factor,
                    "training_age": factors.age_factor,
                    "enhanced": factors.enhanced_factor,
                },
                "explanations": explanations,
                "recommendations": [recommendation_to_dict(r) for r in recommendations],
                "recommendation_summary": summarize_recommendations(recommendations),
                "improvement_potential": {
                    "potential_p_ratio": round(potential.potential_p_ratio, 3),
                    "improvement_percent": potential.improvement_percent,
                },
            },
            "human_summary": f"P-ratio {blended:.2f}: {describe_p_ratio(blended)}",
        })
        return

    console.print(f"[bold]P-ratio: {blended:.2f}[/bold]  {describe_p_ratio(blended)}")
    low, high = factors.confidence_range
    console.print(f"  Model: {factors.final_p_ratio:.2f} (range {low:.2f}-{high:.2f})")
    if weight_learned > 0:
        console.print(f"  Personal calibration weight: {weight_learned:.0%}")
    for line in explanations:
        console.print(f"  - {line}")
    _print_recommendations(recommendations)
    if potential.improvement_percent > 0:
        console.print(
            f"  Optimizing protein, training and deficit could reach {potential.potential_p_ratio:.2f} "
            f"(+{potential.improvement_percent}%)"
        )


@bodycomp_app.command("predict")
def bodycomp_predict(
    protein: float = typer.Option(..., "--protein", help="Average protein intake (g/day)"),
    sets: float = typer.Option(..., "--sets", help="Hard sets per week"),
    target_weight: Optional[float] = typer.Option(None, "--target-weight", help="Target weight in the display unit"),
    calories: Optional[float] = typer.Option(None, "--calories", "-c", help="Planned intake, used with --date"),
    on: Optional[str] = typer.Option(None, "--date", "-d", help="Prediction date (YYYY-MM-DD)"),
    scenarios: bool = typer.Option(False, "--scenarios", help="Show standard weight-loss scenarios"),
    user_id: Optional[int] = typer.Option(None, "--user", help="User ID"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
) -> None:
    """Predict body composition at a target weight or date."""
    from recomp.bodycomp.p_ratio import calculate_p_ratio
    from recomp.bodycomp.prediction import (
        forecast_body_composition,
        generate_weight_scenarios,
        predict_body_composition,
        prediction_to_dict,
    )
    from recomp.bodycomp.recommendations import (
        generate_recommendations,
        recommendation_to_dict,
        summarize_recommendations,
    )

    db = get_db()
    with db.get_connection() as conn:
        user = _get_user(conn, user_id, "bodycomp predict", json_output)
        profile = BodyCompQueries.load_profile(conn, user.user_id)
        estimate = EstimateQueries.get_estimate(conn, user.user_id)

    scan = profile.latest_scan
    if scan is None:
        fail("bodycomp predict", ["No scans recorded"], ["Add one with: recomp scan add"], json_output)
    if target_weight is None and calories is None and not scenarios:
        fail(
            "bodycomp predict",
            ["Pass --target-weight, --calories with --date, or --scenarios"],
            json_output=json_output,
        )
    if calories is not None and (estimate is None or on is None):
        fail(
            "bodycomp predict",
            ["Forecasting from intake needs a TDEE estimate and --date"],
            ["Run: recomp tdee estimate"],
            json_output,
        )

    unit = user.display_unit
    tdee = estimate.estimated_tdee if estimate else None
    if calories is not None:
        deficit_kcal = tdee - calories
        deficit_percent = deficit_kcal / tdee * 100
    else:
        # Without planned intake assume a typical deficit or surplus
        losing = target_weight is None or unit.to_kg(target_weight) < scan.total_mass_kg
        deficit_percent = DEFAULT_DEFICIT_PERCENT if losing else DEFAULT_SURPLUS_PERCENT
        deficit_kcal = tdee * deficit_percent / 100 if tdee else 0.0

    try:
        inputs = _pratio_inputs(user, profile, protein, sets, deficit_percent, None, None)
        inputs = replace(inputs, avg_daily_deficit_kcal=deficit_kcal)
        target_date = date.fromisoformat(on) if on else None
    except ValueError as e:
        fail("bodycomp predict", [str(e)], json_output=json_output)

    factors = calculate_p_ratio(inputs, profile.modifiers)
    recommendations = generate_recommendations(factors, inputs)
    if scenarios:
        predictions = generate_weight_scenarios(scan, factors, profile, sex=user.sex)
    elif calories is not None:
        predictions = [
            forecast_body_composition(scan, profile, inputs, estimate, calories, target_date)
        ]
    else:
        predictions = [
            predict_body_composition(
                scan, unit.to_kg(target_weight), factors, profile, target_date, inputs, user.sex
            )
        ]

    if not scenarios:
        with db.get_connection() as conn:
            BodyCompQueries.save_prediction(
                conn,
                user.user_id,
                prediction_to_dict(predictions[0]),
                date.today(),
                scan.scan_id,
            )

    if json_output:
        output_json({
            "success": True,
            "command": "bodycomp predict",
            "data": {
                "unit": "kg",
                "predictions": [
                    {**prediction_to_dict(p), "summary": p.summary()} for p in predictions
                ],
                "recommendations": [recommendation_to_dict(r) for r in recommendations],
                "recommendation_summary": summarize_recommendations(recommendations),
            },
            "human_summary": f"{len(predictions)} prediction(s) from the {scan.scan_date.isoformat()} scan",
        })
        return

    for p in predictions:
        console.print(f"[bold]Target {unit.from_kg(p.target_weight):.1f} {unit.value}[/bold]")
        console.print(
            f"  Body fat {p.predicted_body_fat_percent:.1f}% "
            f"(optimistic {p.body_fat_percent_range.optimistic:.1f}%, "
            f"pessimistic {p.body_fat_percent_range.pessimistic:.1f}%)"
        )
        console.print(
            f"  Fat {unit.from_kg(p.predicted_fat_mass):.1f}, lean {unit.from_kg(p.predicted_lean_mass):.1f} {unit.value}"
        )
        console.print(f"  Confidence: {p.confidence_level.value}")
        for factor in p.confidence_factors:
            console.print(f"  [dim]{factor}[/dim]")
    if not scenarios:
        console.print()
        console.print(predictions[0].summary())
    _print_recommendations(recommendations)


if __name__ == "__main__":
    app()
