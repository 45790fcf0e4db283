"""Logistics validator (the Logistician).

Checks whether each day's schedule is physically doable for the travel group:
time ordering, transit between consecutive stops, buffer, density and total
active time.
"""

from collections.abc import Sequence
from dataclasses import dataclass

from backend.daystream.config import Settings
from backend.daystream.models.itinerary import Day
from backend.daystream.models.request import GroupProfile
from backend.daystream.models.verdicts import (
    ConflictType,
    DayLogistics,
    LogisticsConflict,
    LogisticsStatus,
    LogisticsVerdict,
)
from backend.daystream.verification.schedule import (
    estimate_transit_minutes,
    format_minutes,
    parse_duration_to_minutes,
    parse_time_to_minutes,
)

# Window used to compute slack for a day
DAY_START_MINUTES = 8 * 60
DAY_END_MINUTES = 22 * 60

RELAXED_MIN_BUFFER_MINUTES = 180
RELAXED_MAX_ACTIVITIES = 3


@dataclass(frozen=True)
class LogisticsValidatorConfig:
    max_activities_per_day: int = 5
    min_buffer_minutes: int = 15
    toddler_buffer_minutes: int = 30
    elderly_buffer_minutes: int = 20
    large_group_size: int = 4
    large_group_extra_minutes: int = 10
    max_activity_hours_per_day: int = 10
    walking_threshold_km: float = 2.0

    @classmethod
    def from_settings(cls, settings: Settings) -> "LogisticsValidatorConfig":
        return cls(
            max_activities_per_day=settings.max_activities_per_day,
            min_buffer_minutes=settings.min_buffer_minutes,
            toddler_buffer_minutes=settings.toddler_buffer_minutes,
            elderly_buffer_minutes=settings.elderly_buffer_minutes,
            large_group_size=settings.large_group_size,
            large_group_extra_minutes=settings.large_group_extra_minutes,
            max_activity_hours_per_day=settings.max_activity_hours_per_day,
            walking_threshold_km=settings.walking_threshold_km,
        )


def required_buffer_minutes(
    profile: GroupProfile, config: LogisticsValidatorConfig | None = None
) -> int:
    """Minimum gap between activities for this group, on top of transit."""
    cfg = config or LogisticsValidatorConfig()
    buffer = cfg.min_buffer_minutes

    if profile.has_toddler:
        buffer = max(buffer, cfg.toddler_buffer_minutes)
    if profile.has_elderly or profile.has_mobility_issues:
        buffer = max(buffer, cfg.elderly_buffer_minutes)
    if profile.group_size > cfg.large_group_size:
        buffer += cfg.large_group_extra_minutes

    return buffer


def _density_conflict(
    day: Day, profile: GroupProfile, cfg: LogisticsValidatorConfig
) -> LogisticsConflict | None:
    count = len(day.activities)
    if count > cfg.max_activities_per_day:
        return LogisticsConflict(
            day=day.day,
            type=ConflictType.density,
            severity="error",
            activity1=f"{count} activities",
            issue=(
                f"Too many activities ({count}) for one day. "
                f"Maximum recommended: {cfg.max_activities_per_day}"
            ),
            suggestion=f"Remove {count - cfg.max_activities_per_day} activities from Day {day.day}",
        )
    if count >= cfg.max_activities_per_day - 1 and profile.has_toddler:
        return LogisticsConflict(
            day=day.day,
            type=ConflictType.density,
            severity="warning",
            activity1=f"{count} activities",
            issue=f"{count} activities may be too many for a family with young children",
            suggestion=(
                f"Consider reducing to {cfg.max_activities_per_day - 2} activities for Day {day.day}"
            ),
        )
    return None


def validate_day(
    day: Day,
    profile: GroupProfile,
    required_buffer: int,
    config: LogisticsValidatorConfig | None = None,
) -> DayLogistics:
    """Validate one day's schedule.

    Args:
        day: The day to check
        profile: Travel group composition
        required_buffer: Minutes of slack needed after transit
        config: Limits

    Returns:
        DayLogistics with status, totals and conflicts
    """
    cfg = config or LogisticsValidatorConfig()
    conflicts: list[LogisticsConflict] = []
    total_duration = 0
    total_transit = 0

    density = _density_conflict(day, profile, cfg)
    if density:
        conflicts.append(density)

    activities = day.activities
    for current, following in zip(activities, activities[1:] + [None]):
        duration = parse_duration_to_minutes(current.duration)
        total_duration += duration

        if following is None:
            continue

        end = parse_time_to_minutes(current.time) + duration
        next_start = parse_time_to_minutes(following.time)

        if end > next_start:
            conflicts.append(
                LogisticsConflict(
                    day=day.day,
                    type=ConflictType.timing,
                    severity="error",
                    activity1=current.name,
                    activity2=following.name,
                    issue=(
                        f'"{current.name}" ends at {format_minutes(end)} but '
                        f'"{following.name}" starts at {format_minutes(next_start)}'
                    ),
                    suggestion=(
                        f'Move "{following.name}" to start after '
                        f"{format_minutes(end + required_buffer)}"
                    ),
                )
            )
            continue

        transit = estimate_transit_minutes(
            current.coordinates,
            following.coordinates,
            current.transport_mode,
            cfg.walking_threshold_km,
        )
        total_transit += transit
        available = next_start - end

        if available < transit:
            conflicts.append(
                LogisticsConflict(
                    day=day.day,
                    type=ConflictType.transit,
                    severity="error",
                    activity1=current.name,
                    activity2=following.name,
                    issue=f"Only {available}min between activities, but transit takes ~{transit}min",
                    suggestion=(
                        f"Add {transit - available + required_buffer}min gap "
                        "or choose closer locations"
                    ),
                )
            )
        elif available < transit + required_buffer:
            who = "children" if profile.has_toddler else "the group"
            conflicts.append(
                LogisticsConflict(
                    day=day.day,
                    type=ConflictType.buffer,
                    severity="warning",
                    activity1=current.name,
                    activity2=following.name,
                    issue=(
                        f"Only {available - transit}min buffer after transit "
                        f"(need {required_buffer}min)"
                    ),
                    suggestion=f"Consider {required_buffer}min buffer for comfort, especially with {who}",
                )
            )

    active = total_duration + total_transit
    max_minutes = cfg.max_activity_hours_per_day * 60
    if active > max_minutes:
        conflicts.append(
            LogisticsConflict(
                day=day.day,
                type=ConflictType.duration,
                severity="warning",
                activity1=f"{round(active / 60)}h total",
                issue=(
                    f"Day has {round(active / 60)}h of activities/transit "
                    f"(max recommended: {cfg.max_activity_hours_per_day}h)"
                ),
                suggestion=f"Reduce total activity time by {round((active - max_minutes) / 60)}h",
            )
        )

    buffer = max(0, (DAY_END_MINUTES - DAY_START_MINUTES) - active)
    errors = sum(1 for c in conflicts if c.severity == "error")
    warnings = len(conflicts) - errors

    if errors:
        status = LogisticsStatus.IMPOSSIBLE
    elif warnings > 1:
        status = LogisticsStatus.TIGHT
    elif (
        not conflicts
        and len(activities) <= RELAXED_MAX_ACTIVITIES
        and buffer > RELAXED_MIN_BUFFER_MINUTES
    ):
        status = LogisticsStatus.RELAXED
    else:
        status = LogisticsStatus.APPROVED

    return DayLogistics(
        day=day.day,
        date=day.date,
        status=status,
        activity_count=len(activities),
        total_duration_minutes=total_duration,
        total_transit_minutes=total_transit,
        buffer_minutes=buffer,
        conflicts=conflicts,
    )


def validate_logistics(
    days: Sequence[Day],
    group_profile: GroupProfile | None = None,
    config: LogisticsValidatorConfig | None = None,
) -> LogisticsVerdict:
    """Validate every day's logistics and roll them up.

    Aggregate status: IMPOSSIBLE if any error; TIGHT if any day is TIGHT or
    more than two warnings overall; RELAXED if every day is RELAXED;
    otherwise APPROVED.
    """
    cfg = config or LogisticsValidatorConfig()
    profile = group_profile or GroupProfile()
    logs: list[str] = []

    logs.append(f"[Logistician] Starting logistics validation for {len(days)} days")
    logs.append(
        f"[Logistician] Group profile: toddler={profile.has_toddler}, "
        f"elderly={profile.has_elderly}, size={profile.group_size}"
    )

    buffer = required_buffer_minutes(profile, cfg)
    logs.append(f"[Logistician] Required buffer between activities: {buffer} minutes")

    per_day: list[DayLogistics] = []
    conflicts: list[LogisticsConflict] = []
    flagged_days: list[int] = []

    for day in days:
        result = validate_day(day, profile, buffer, cfg)
        per_day.append(result)
        conflicts.extend(result.conflicts)

        if result.status == LogisticsStatus.IMPOSSIBLE:
            flagged_days.append(day.day)
            day_errors = sum(1 for c in result.conflicts if c.severity == "error")
            logs.append(f"[Logistician] Day {day.day} REJECTED: {day_errors} impossible conflicts")
        elif result.status == LogisticsStatus.TIGHT:
            day_warnings = sum(1 for c in result.conflicts if c.severity == "warning")
            logs.append(
                f"[Logistician] Day {day.day} WARNING: Schedule is tight with {day_warnings} warnings"
            )
        else:
            logs.append(
                f"[Logistician] Day {day.day} APPROVED: {result.activity_count} activities, "
                f"{result.buffer_minutes}min buffer"
            )

    error_count = sum(1 for c in conflicts if c.severity == "error")
    warning_count = len(conflicts) - error_count

    if error_count:
        status = LogisticsStatus.IMPOSSIBLE
        logs.append(
            f"[Logistician] FINAL VERDICT: IMPOSSIBLE - {error_count} blocking conflicts found"
        )
    elif warning_count > 2 or any(d.status == LogisticsStatus.TIGHT for d in per_day):
        status = LogisticsStatus.TIGHT
        logs.append(
            f"[Logistician] FINAL VERDICT: TIGHT - {warning_count} warnings, "
            "schedule may be stressful"
        )
    elif per_day and all(d.status == LogisticsStatus.RELAXED for d in per_day):
        status = LogisticsStatus.RELAXED
        logs.append(
            "[Logistician] FINAL VERDICT: RELAXED - Comfortable schedule with good buffer time"
        )
    else:
        status = LogisticsStatus.APPROVED
        logs.append("[Logistician] FINAL VERDICT: APPROVED - Schedule is feasible")

    return LogisticsVerdict(
        status=status,
        total_conflicts=len(conflicts),
        error_count=error_count,
        warning_count=warning_count,
        required_buffer_minutes=buffer,
        per_day=per_day,
        conflicts=conflicts,
        flagged_days=flagged_days,
        suggestions=logistics_suggestions(conflicts, profile),
        logs=logs,
    )


def logistics_suggestions(
    conflicts: Sequence[LogisticsConflict], profile: GroupProfile
) -> list[str]:
    if not conflicts:
        return ["Schedule looks good! All logistics validated."]

    by_type: dict[ConflictType, list[LogisticsConflict]] = {}
    for conflict in conflicts:
        by_type.setdefault(conflict.type, []).append(conflict)

    suggestions: list[str] = []

    if ConflictType.timing in by_type:
        timing_days = sorted({c.day for c in by_type[ConflictType.timing]})
        plural = "s" if len(timing_days) > 1 else ""
        suggestions.append(
            f"Fix time ordering on Day{plural} {', '.join(map(str, timing_days))}."
        )
    if ConflictType.transit in by_type:
        suggestions.append("Allow more travel time between activities or choose closer locations.")
    if ConflictType.buffer in by_type and profile.has_toddler:
        suggestions.append(
            "Add rest breaks for the family - toddlers need downtime between activities."
        )
    if ConflictType.density in by_type:
        suggestions.append(
            f"Reduce activities per day (currently {by_type[ConflictType.density][0].activity1})."
        )
    if ConflictType.duration in by_type:
        suggestions.append("Shorten overall day length - the schedule is too packed.")

    return suggestions


def is_logistically_feasible(
    days: Sequence[Day], group_profile: GroupProfile | None = None
) -> bool:
    """Quick check: anything but IMPOSSIBLE is feasible."""
    return validate_logistics(days, group_profile).status != LogisticsStatus.IMPOSSIBLE


def format_logistics_feedback(verdict: LogisticsVerdict) -> str:
    """Render a verdict as provider feedback (empty when acceptable)."""
    if verdict.acceptable:
        return ""

    impossible = verdict.status == LogisticsStatus.IMPOSSIBLE
    lines = [
        f"LOGISTICS VALIDATION {'FAILED' if impossible else 'WARNING'}:",
        f"- Total conflicts: {verdict.total_conflicts} "
        f"({verdict.error_count} errors, {verdict.warning_count} warnings)",
    ]

    if verdict.flagged_days:
        lines.append(f"- Problem days: {', '.join(map(str, verdict.flagged_days))}")

    for error in [c for c in verdict.conflicts if c.severity == "error"][:3]:
        lines.append(f"  - Day {error.day}: {error.issue}")

    if impossible:
        lines.append(f"REQUIRED: Fix the {verdict.error_count} impossible conflicts before proceeding.")

    lines.append(f"SUGGESTIONS: {' '.join(verdict.suggestions)}")
    return "\n".join(lines)
