"""Role durations and overlap-free tenure arithmetic."""

import logging
from datetime import date

from models.schemas.candidate import Company, Role, RoleWithDuration
from models.schemas.fit_assessment import MatchType
from services import keyword_matcher

logger = logging.getLogger(__name__)


def _month_index(d: date) -> int:
    return d.year * 12 + (d.month - 1)


def calculate_role_duration(start: date | None, end: date | None, today: date | None = None) -> int:
    """Whole months between start and end (or today for current roles)."""
    if start is None:
        return 0
    end = end or today or date.today()
    return max(0, _month_index(end) - _month_index(start))


def enrich_roles_with_duration(
    roles: list[Role], companies: list[Company], today: date | None = None
) -> list[RoleWithDuration]:
    names = {c.id: c.name for c in companies}
    enriched = []
    for role in roles:
        months = calculate_role_duration(role.start_date, role.end_date, today)
        enriched.append(RoleWithDuration(
            **role.model_dump(),
            company=names.get(role.company_id, ""),
            duration_months=months,
            duration_years=months // 12,
        ))
    return enriched


def _interval(role: RoleWithDuration, today: date) -> tuple[int, int] | None:
    if role.start_date is None:
        return None
    start = _month_index(role.start_date)
    end = _month_index(role.end_date or today)
    if end <= start:
        return None
    return start, end


def total_tenure_months(roles: list[RoleWithDuration], today: date | None = None) -> int:
    """Months covered by the union of role intervals.

    Concurrent roles (a side job, an overlapping transfer) are counted once.
    """
    today = today or date.today()
    intervals = sorted(iv for iv in (_interval(r, today) for r in roles) if iv)
    total = 0
    cur_start = cur_end = None
    for start, end in intervals:
        if cur_end is None or start > cur_end:
            if cur_end is not None:
                total += cur_end - cur_start
            cur_start, cur_end = start, end
        else:
            cur_end = max(cur_end, end)
    if cur_end is not None:
        total += cur_end - cur_start
    return total


def classify_role(role: RoleWithDuration, specific_role: str) -> MatchType:
    """How well a role's title and specialty match a required role."""
    text = role.title
    if role.specialty:
        text += f" | {role.specialty}"
    return keyword_matcher.classify_match(specific_role, text)


def split_roles_by_relevance(
    roles: list[RoleWithDuration], specific_role: str
) -> tuple[list[RoleWithDuration], list[RoleWithDuration]]:
    """Partition roles into (matching, related) for a required role."""
    matching: list[RoleWithDuration] = []
    related: list[RoleWithDuration] = []
    for role in roles:
        match_type = classify_role(role, specific_role)
        if match_type in (MatchType.EXACT, MatchType.SYNONYM):
            matching.append(role)
        elif match_type == MatchType.RELATED:
            related.append(role)
    return matching, related


def format_tenure_calculation(roles: list[RoleWithDuration], total_months: int) -> str:
    """Human-readable tally, e.g. 'PM at Acme (24mo) + APM at Beta (12mo) = 36mo = 3.0yr'."""
    if not roles:
        return f"{total_months}mo = {total_months / 12:.1f}yr"
    parts = " + ".join(f"{r.title} at {r.company or 'Unknown'} ({r.duration_months}mo)" for r in roles)
    return f"{parts} = {total_months}mo = {total_months / 12:.1f}yr"
