"""Plain-text rendering of the usage report for the terminal."""

from datetime import datetime
from typing import Dict, List, Optional

from .codec import parse_timestamp

RULE = "=" * 60
BAR_UNIT = 10


def render_report(report: Dict) -> str:
    overview = report["overview"]
    if not overview["total_sessions"]:
        return "No data yet. Use the application to collect some events.\n"

    lines: List[str] = []
    _section(lines, "OVERVIEW")
    lines.append(f"Sessions:            {overview['unique_sessions']}")
    lines.append(f"Unique users:        {overview['unique_users']}")
    lines.append(f"Events:              {overview['total_events']}")
    lines.append(f"Events per session:  {overview['events_per_session']:.2f}")
    lines.append("")

    _section(lines, "EVENTS BY TYPE")
    for row in report["events_by_type"]:
        bar = "█" * (row["count"] // BAR_UNIT)
        lines.append(f"{row['event_name']:<30} {row['count']:>5} ({row['percentage']:.1f}%) {bar}")
    lines.append("")

    calculations = report["calculations"]
    if calculations["total"]:
        _render_calculations(lines, calculations)

    if report["sliders"]:
        _section(lines, "SLIDER INTERACTIONS")
        for slider, count in report["sliders"].items():
            lines.append(f"{slider:<20} {count} changes")
        lines.append("")

    _render_engagement(lines, report["engagement"])
    _render_time_range(lines, report["time_range"])

    if report["top_users"]:
        _section(lines, f"TOP {len(report['top_users'])} ACTIVE USERS")
        for index, row in enumerate(report["top_users"], start=1):
            lines.append(f"{index}. User {row['user_id']}: {row['events']} events")
        lines.append("")

    _section(lines, "RECOMMENDATIONS")
    for item in report["recommendations"]:
        marker = "[!]" if item["level"] == "warning" else "[+]"
        lines.append(f"{marker} {item['message']}")
    lines.append("")
    return "\n".join(lines)


def _render_calculations(lines: List[str], calculations: Dict) -> None:
    _section(lines, "CALCULATIONS")
    lines.append(f"Total calculations: {calculations['total']}")
    lines.append("")

    price = calculations["price"]
    if price["count"]:
        lines.append("Property price:")
        lines.append(f"  Average: {format_number(round(price['mean']))}")
        lines.append(f"  Minimum: {format_number(price['min'])}")
        lines.append(f"  Maximum: {format_number(price['max'])}")
        lines.append("")

    down_payment = calculations["down_payment"]
    if down_payment["count"]:
        lines.append("Down payment:")
        lines.append(f"  Average: {format_number(round(down_payment['mean']))}")
        lines.append("")

    rate = calculations["rate"]
    if rate["count"]:
        lines.append("Interest rate:")
        lines.append(f"  Average: {rate['mean']:.2f}%")
        lines.append(f"  Minimum: {rate['min']:g}%")
        lines.append(f"  Maximum: {rate['max']:g}%")
        lines.append("")

    term = calculations["term_years"]
    if term["count"]:
        lines.append("Loan term:")
        lines.append(f"  Average: {term['mean']:.1f} years")
        lines.append("")


def _render_engagement(lines: List[str], engagement: Dict) -> None:
    _section(lines, "CONVERSION AND ENGAGEMENT")
    conversion = engagement["conversion"]
    if conversion["status"] == "ok":
        lines.append(f"Conversion rate: {conversion['rate']:.1f}% (ran a calculation)")
        share_rate = engagement["share_rate"]
        if engagement["shares"] and share_rate["status"] == "ok":
            lines.append(f"Share rate: {share_rate['rate']:.1f}% (shared a calculation)")
    else:
        lines.append("Conversion rate: not computed (no app_opened events)")
    lines.append(f"Calculations per session: {engagement['calculations_per_session']:.2f}")
    lines.append("")


def _render_time_range(lines: List[str], time_range: Dict) -> None:
    _section(lines, "TIME RANGE")
    if time_range["first_event"] is None:
        lines.append("No event timestamps recorded")
        lines.append("")
        return

    lines.append(f"First event: {format_date(parse_timestamp(time_range['first_event']))}")
    lines.append(f"Last event:  {format_date(parse_timestamp(time_range['last_event']))}")
    days = time_range["days_span"]
    if days > 0:
        lines.append(f"Collection period: {days} {'day' if days == 1 else 'days'}")
        lines.append(f"Sessions per day: {time_range['sessions_per_day']:.2f}")
    lines.append("")


def _section(lines: List[str], title: str) -> None:
    lines.extend([RULE, title, RULE])


def format_number(value: float) -> str:
    """Group thousands with spaces: ``1234567`` becomes ``1 234 567``."""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = f"{value:,}" if isinstance(value, int) else f"{value:,.2f}"
    return text.replace(",", " ")


def format_date(value: Optional[datetime]) -> str:
    if value is None:
        return "-"
    return value.strftime("%d.%m.%Y, %H:%M")
