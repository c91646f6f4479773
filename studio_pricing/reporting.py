"""
Reporting utilities for presenting an estimate as tables and CSV.

Frames hold raw numbers; currency formatting is left to the caller so the
same frames feed both the UI and the CSV export.
"""

from __future__ import annotations

from typing import Dict, List

import pandas as pd

from .cost_engine import Breakdown
from .formatting import format_timeline


REPORT_TITLE = "Studio Price Calculator Report"

SECTION_SUMMARY = "SUMMARY"
SECTION_DEVELOPMENT = "DEVELOPMENT COSTS"
SECTION_INFRASTRUCTURE = "INFRASTRUCTURE COSTS"
SECTION_OTHER_SERVICES = "OTHER SERVICES"
SECTION_RETAINER = "SUPPORT RETAINER"
SECTION_CATALOG = "SERVICE CATALOG"
SECTION_ASSUMPTIONS = "CALCULATION ASSUMPTIONS"


def _field_frame(rows: List[tuple]) -> pd.DataFrame:
    return pd.DataFrame(rows, columns=["Field", "Value"])


def build_summary_frame(breakdown: Breakdown) -> pd.DataFrame:
    totals = breakdown.totals
    timeline = breakdown.timeline
    rows = [
        ("Project Type", breakdown.scope_label),
        ("Estimated Users", breakdown.user_count),
        ("Storage (GB)", breakdown.gb_storage),
        ("Estimated Timeline (weeks)", timeline.adjusted_weeks),
        ("Estimated Timeline", format_timeline(timeline.adjusted_weeks)),
    ]
    if breakdown.visibility.show_development:
        rows += [
            ("Weekly Development Cost", breakdown.development.total_weekly_cost),
            ("Monthly Development Cost", breakdown.development.monthly_cost),
            ("Total Development Cost", breakdown.development.total_cost),
        ]
    if breakdown.visibility.show_infrastructure:
        rows += [
            ("Monthly Infrastructure Cost", totals.monthly_infrastructure),
            ("Yearly Infrastructure Cost", totals.yearly_infrastructure),
        ]
    if breakdown.visibility.show_retainer:
        rows.append(("Monthly Retainer Cost", breakdown.retainer.monthly_cost))
    rows += [
        ("Initial Investment", totals.initial_investment),
        ("Ongoing Monthly Cost", totals.ongoing_monthly),
        ("First Year Total", totals.first_year_total),
    ]
    return _field_frame(rows)


def build_development_frame(breakdown: Breakdown) -> pd.DataFrame:
    development = breakdown.development
    records = [
        {
            "Role": r.title,
            "Weekly Hours": r.weekly_hours,
            "Hourly Rate": r.hourly_rate,
            "Weekly Cost": r.weekly_cost,
            "Project Hours": r.project_hours,
            "Project Cost": r.project_cost,
            "Reference Hours": r.reference_hours,
        }
        for r in development.roles
    ]
    records.append(
        {
            "Role": "TOTAL",
            "Weekly Hours": development.total_weekly_hours,
            "Hourly Rate": None,
            "Weekly Cost": development.total_weekly_cost,
            "Project Hours": sum(r.project_hours for r in development.roles),
            "Project Cost": development.total_cost,
            "Reference Hours": sum(r.reference_hours for r in development.roles),
        }
    )
    return pd.DataFrame(records)


def build_infrastructure_frame(breakdown: Breakdown) -> pd.DataFrame:
    records = [
        {
            "Service": line.category.label,
            "Provider": line.provider or "",
            "Monthly Cost": line.final_cost,
            "Free Tier": line.free_tier,
        }
        for line in breakdown.infrastructure_lines
    ]
    records.append(
        {"Service": "TOTAL MONTHLY", "Provider": "", "Monthly Cost": breakdown.infrastructure.monthly_total, "Free Tier": None}
    )
    records.append(
        {"Service": "TOTAL YEARLY", "Provider": "", "Monthly Cost": breakdown.infrastructure.yearly_total, "Free Tier": None}
    )
    return pd.DataFrame(records)


def build_other_services_frame(breakdown: Breakdown) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"Name": s.name, "Monthly Cost": s.cost, "Description": s.description or ""}
            for s in breakdown.other_services
        ],
        columns=["Name", "Monthly Cost", "Description"],
    )


def build_retainer_frame(breakdown: Breakdown) -> pd.DataFrame:
    retainer = breakdown.retainer
    return _field_frame(
        [
            ("Weekly Hours", retainer.hours),
            ("Blended Hourly Rate", retainer.weighted_hourly_rate),
            ("Weekly Cost", retainer.weekly_cost),
            ("Monthly Cost", retainer.monthly_cost),
            ("Yearly Cost", retainer.yearly_cost),
            ("First Year (after development)", retainer.first_year_cost),
        ]
    )


def build_catalog_frame(breakdown: Breakdown) -> pd.DataFrame:
    rows = []
    for category, options in breakdown.provider_catalog.items():
        for option in options:
            rows.append(
                {
                    "Category": category.label,
                    "Provider": option.name,
                    "Base Monthly Cost": option.base_cost,
                    "Description": option.description,
                }
            )
    return pd.DataFrame(rows, columns=["Category", "Provider", "Base Monthly Cost", "Description"])


def build_assumptions_frame(breakdown: Breakdown) -> pd.DataFrame:
    timeline = breakdown.timeline
    return pd.DataFrame(
        [
            ("Team Size", f"{breakdown.development.team_size} people"),
            ("Productive Hours", f"{breakdown.development.total_weekly_hours:g} hours/week"),
            ("Base Timeline", f"{timeline.base_weeks} weeks"),
            ("Adjusted Timeline", f"{timeline.adjusted_weeks} weeks"),
            ("Timeline Multiplier", f"{timeline.multiplier:.2f}x"),
            ("User Count", breakdown.user_count),
        ],
        columns=["Assumption", "Value"],
    )


def build_ledger_frame(breakdown: Breakdown) -> pd.DataFrame:
    """Every recorded cost line, in calculation order."""
    return pd.DataFrame(
        [
            {
                "section": line.section,
                "key": line.key,
                "description": line.description,
                "quantity": line.quantity,
                "unit": line.unit,
                "unit_cost": line.unit_cost,
                "total": line.total,
                "notes": line.notes or "",
            }
            for line in breakdown.lines
        ],
        columns=["section", "key", "description", "quantity", "unit", "unit_cost", "total", "notes"],
    )


def build_report_frames(breakdown: Breakdown) -> Dict[str, pd.DataFrame]:
    """
    Section title -> DataFrame, in report order.

    Hidden sections are left out; the summary and assumptions are always present.
    """
    visibility = breakdown.visibility
    frames: Dict[str, pd.DataFrame] = {SECTION_SUMMARY: build_summary_frame(breakdown)}
    if visibility.show_development:
        frames[SECTION_DEVELOPMENT] = build_development_frame(breakdown)
    if visibility.show_infrastructure:
        frames[SECTION_INFRASTRUCTURE] = build_infrastructure_frame(breakdown)
        frames[SECTION_OTHER_SERVICES] = build_other_services_frame(breakdown)
        frames[SECTION_CATALOG] = build_catalog_frame(breakdown)
    if visibility.show_retainer:
        frames[SECTION_RETAINER] = build_retainer_frame(breakdown)
    frames[SECTION_ASSUMPTIONS] = build_assumptions_frame(breakdown)
    return frames


def generate_csv(breakdown: Breakdown, title: str = REPORT_TITLE) -> str:
    parts = [f"{title}\n\n"]
    for section, frame in build_report_frames(breakdown).items():
        parts.append(f"{section}\n")
        parts.append(frame.to_csv(index=False, lineterminator="\n"))
        parts.append("\n")
    return "".join(parts)
