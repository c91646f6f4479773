"""
Studio Price Calculator
Interactive cost and timeline estimator for software projects
"""

import logging

import pandas as pd
import plotly.graph_objects as go
import streamlit as st

from studio_pricing.cost_engine import CostEngine
from studio_pricing.formatting import format_currency, format_timeline
from studio_pricing.parameters import (
    add_other_service,
    remove_other_service,
    reset_parameters,
    select_provider,
    set_adjusted_weeks,
    set_free_tier,
    set_gb_storage,
    set_retainer_hours,
    set_role_hours,
    set_role_rate,
    set_scope,
    set_user_count,
    set_visibility,
)
from studio_pricing.reference_data import InfraCategory, Scope, load_reference_data
from studio_pricing.reporting import (
    build_catalog_frame,
    build_development_frame,
    build_infrastructure_frame,
    build_ledger_frame,
    generate_csv,
)
from studio_pricing.state_codec import decode_state, encode_state
from studio_pricing.timeline import adjustment_bounds

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
logger = logging.getLogger("studio_pricing.app")

# Page config
st.set_page_config(
    page_title="Studio Price Calculator",
    page_icon="💸",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.title("💸 Studio Price Calculator")
st.markdown("**Estimate project costs and timelines based on scope and team composition**")


# Reference data is static; load once per server process
@st.cache_resource
def load_reference():
    return load_reference_data()


reference = load_reference()

# === SESSION STATE ===
# Parameters are seeded from the URL once per session, then only changed
# through the update functions.
if "params" not in st.session_state:
    decoded = decode_state(dict(st.query_params), reference=reference)
    for error in decoded.errors:
        st.toast(f"Ignored shared setting: {error}")
    st.session_state.params = decoded.params

params = st.session_state.params

# === TOP CONTROLS ===
top_left, top_right = st.columns([3, 1])
with top_left:
    results_only = st.toggle("Results only", value=params.visibility.results_only)
    if results_only != params.visibility.results_only:
        params = set_visibility(params, results_only=results_only)
with top_right:
    if st.button("Reset", help="Restore default parameters"):
        # Keyed widgets hold their own values; drop them so defaults show through
        for key in [k for k in st.session_state.keys() if k != "params"]:
            del st.session_state[key]
        st.session_state.params = reset_parameters(reference)
        logger.info("Parameters reset to defaults")
        st.rerun()

# Sidebar - Input Parameters
if not params.visibility.results_only:
    st.sidebar.header("Project Parameters")

    st.sidebar.markdown("### Scope")
    scope_options = [s for s in Scope]
    scope = st.sidebar.radio(
        "Project Scope",
        options=scope_options,
        index=scope_options.index(params.scope),
        format_func=lambda s: reference.scope(s).label,
        help="Changing scope resets the timeline to the base estimate"
    )
    if scope != params.scope:
        params = set_scope(params, scope, reference)
    st.sidebar.caption(reference.scope(params.scope).description)

    st.sidebar.markdown("### Team Composition")
    for role in params.roles:
        with st.sidebar.expander(role.title, expanded=role.weekly_hours > 0):
            rate = st.number_input(
                "Hourly Rate ($)",
                min_value=0.0,
                value=float(role.hourly_rate),
                step=5.0,
                key=f"rate:{role.id}",
            )
            hours = st.slider(
                "Weekly Hours",
                min_value=0,
                max_value=40,
                value=int(role.weekly_hours),
                step=1,
                key=f"hours:{role.id}",
            )
        if rate != role.hourly_rate:
            params = set_role_rate(params, role.id, rate)
        if hours != int(role.weekly_hours):
            params = set_role_hours(params, role.id, hours)

    st.sidebar.markdown("### Usage")
    user_count = st.sidebar.slider(
        "Estimated User Count",
        min_value=0,
        max_value=10000,
        value=min(params.user_count, 10000),
        step=100,
        help="Monthly active users; drives hosting/database/CDN/CI scaling and auth billing"
    )
    if user_count != min(params.user_count, 10000):
        params = set_user_count(params, user_count)

    gb_storage = st.sidebar.number_input(
        "Storage (GB)",
        min_value=0,
        value=int(params.gb_storage),
        step=1,
        help=f"First {reference.storage_calculator.base_free_gb:g} GB are free"
    )
    if gb_storage != params.gb_storage:
        params = set_gb_storage(params, gb_storage)

    retainer_hours = st.sidebar.slider(
        "Weekly Support Hours",
        min_value=0,
        max_value=40,
        value=int(min(params.retainer_hours, 40)),
        step=1,
        disabled=not params.visibility.show_retainer,
    )
    if retainer_hours != int(min(params.retainer_hours, 40)):
        params = set_retainer_hours(params, retainer_hours)

    st.sidebar.markdown("### Sections")
    show_development = st.sidebar.checkbox("Include development", value=params.visibility.show_development)
    show_infrastructure = st.sidebar.checkbox("Include infrastructure", value=params.visibility.show_infrastructure)
    show_retainer = st.sidebar.checkbox("Include support retainer", value=params.visibility.show_retainer)
    params = set_visibility(
        params,
        show_development=show_development,
        show_infrastructure=show_infrastructure,
        show_retainer=show_retainer,
    )

    st.sidebar.markdown("### Infrastructure")
    default_label = "Scope default"
    for category in InfraCategory:
        with st.sidebar.expander(category.label):
            free = st.checkbox(
                "Use free tier",
                value=params.free_tier.is_free(category),
                key=f"free:{category.value}",
            )
            if free != params.free_tier.is_free(category):
                params = set_free_tier(params, category, free)
            options = reference.providers(params.scope, category) if category.accepts_provider else []
            if options:
                names = [default_label] + [o.name for o in options]
                current = params.providers.get(category)
                choice = st.selectbox(
                    "Provider",
                    options=names,
                    index=names.index(current) if current in names else 0,
                    format_func=lambda n, opts=options: n if n == default_label else next(
                        f"{o.name} ({format_currency(o.base_cost)}/mo)" for o in opts if o.name == n
                    ),
                    disabled=free,
                    key=f"provider:{params.scope.value}:{category.value}",
                )
                selected = None if choice == default_label else choice
                if selected != current:
                    params = select_provider(params, category, selected, reference)

    with st.sidebar.expander("Other Services"):
        for service in params.other_services:
            col_a, col_b = st.columns([3, 1])
            col_a.write(f"**{service.name}** {format_currency(service.cost)}/mo")
            if col_b.button("✕", key=f"remove:{service.id}"):
                params = remove_other_service(params, service.id)
        with st.form("add_service", clear_on_submit=True):
            new_name = st.text_input("Service Name", placeholder="e.g., Email Service")
            new_cost = st.number_input("Monthly Cost ($)", min_value=0.0, step=5.0)
            new_description = st.text_input("Description (optional)")
            if st.form_submit_button("Add"):
                params = add_other_service(params, new_name, new_cost, new_description)

# === CALCULATE ===
engine = CostEngine(reference)
breakdown = engine.calculate(params)

# Timeline adjustment needs the base schedule, so it is rendered after calculation
timeline = breakdown.timeline
if not params.visibility.results_only and timeline.base_weeks > 0:
    low, high = adjustment_bounds(timeline.base_weeks, reference.timeline_calculator)
    st.sidebar.markdown("### Timeline")
    adjusted = st.sidebar.slider(
        "Adjust Timeline (weeks)",
        min_value=low,
        max_value=high,
        value=timeline.adjusted_weeks,
        step=1,
        key=f"timeline:{params.scope.value}:{timeline.base_weeks}",
    )
    st.sidebar.caption(
        f"Faster ({format_timeline(low)}) · Slower ({format_timeline(high)}) · "
        f"Base estimate: {format_timeline(timeline.base_weeks)}"
    )
    if adjusted != timeline.adjusted_weeks:
        params = set_adjusted_weeks(params, adjusted, reference)
        breakdown = engine.calculate(params)
        timeline = breakdown.timeline

st.session_state.params = params
st.query_params.from_dict(encode_state(params, reference))

for warning in breakdown.diagnostics.get("warnings", []):
    logger.debug("Estimate warning: %s", warning["message"])

# === KEY METRICS ===
totals = breakdown.totals
col1, col2, col3, col4 = st.columns(4)
with col1:
    st.metric("Project Scope", breakdown.scope_label)
with col2:
    st.metric(
        "Timeline",
        format_timeline(timeline.adjusted_weeks),
        help=f"{timeline.multiplier:.2f}x of the {timeline.base_weeks}-week base estimate"
    )
with col3:
    st.metric("Initial Investment", format_currency(totals.initial_investment))
with col4:
    st.metric("First Year Total", format_currency(totals.first_year_total))

# === TABS ===
tab1, tab2, tab3, tab4, tab5 = st.tabs(["📊 Summary", "👩‍💻 Development", "☁️ Infrastructure", "🛠️ Retainer", "📋 Ledger"])

with tab1:
    st.subheader("Total Project Cost Summary")
    left, right = st.columns(2)
    with left:
        st.markdown("### Ongoing Costs (Monthly)")
        st.metric("Total Monthly", format_currency(totals.ongoing_monthly))
        if params.visibility.show_infrastructure:
            st.write(f"Infrastructure: {format_currency(totals.monthly_infrastructure)}/mo")
        if params.visibility.show_retainer:
            st.write(f"Support Retainer: {format_currency(breakdown.retainer.monthly_cost)}/mo")
    with right:
        composition = {
            "Development": breakdown.development.yearly_cost if params.visibility.show_development else 0.0,
            "Infrastructure": totals.yearly_infrastructure,
            "Retainer": breakdown.retainer.first_year_cost if params.visibility.show_retainer else 0.0,
        }
        fig = go.Figure(
            data=[go.Bar(x=list(composition.keys()), y=list(composition.values()))]
        )
        fig.update_layout(title="First Year Cost Composition", yaxis_title="USD", height=320)
        st.plotly_chart(fig, use_container_width=True)

with tab2:
    if not params.visibility.show_development:
        st.info("Development costs are excluded from totals.")
    elif breakdown.development.total_weekly_hours <= 0:
        st.info("No development resources allocated")
    else:
        dev_df = build_development_frame(breakdown)
        st.dataframe(
            dev_df.style.format(
                {
                    "Hourly Rate": "${:,.0f}",
                    "Weekly Cost": "${:,.0f}",
                    "Project Cost": "${:,.0f}",
                },
                na_rep="",
            ),
            use_container_width=True
        )
        st.metric("Estimated Development Cost", format_currency(breakdown.development.total_cost))

with tab3:
    if not params.visibility.show_infrastructure:
        st.info("Infrastructure costs are excluded from totals.")
    else:
        st.caption(f"Monthly costs based on {breakdown.user_count:,} users and {breakdown.gb_storage:,} GB")
        infra_df = build_infrastructure_frame(breakdown)
        st.dataframe(
            infra_df.style.format({"Monthly Cost": "${:,.2f}"}),
            use_container_width=True
        )
        monthly = pd.Series(
            {line.category.label: line.final_cost for line in breakdown.infrastructure_lines}
        )
        monthly = monthly[monthly > 0]
        if not monthly.empty:
            pie = go.Figure(data=[go.Pie(labels=monthly.index.tolist(), values=monthly.values.tolist(), hole=0.4)])
            pie.update_layout(title="Monthly Infrastructure by Category", height=360)
            st.plotly_chart(pie, use_container_width=True)
        with st.expander("View source services"):
            st.dataframe(build_catalog_frame(breakdown), use_container_width=True)

with tab4:
    retainer = breakdown.retainer
    if not params.visibility.show_retainer:
        st.info("Support retainer is excluded from totals.")
    else:
        st.write(f"Average Hourly Rate: {format_currency(retainer.weighted_hourly_rate)}/hour")
        st.write(f"Weekly Retainer Cost: {format_currency(retainer.weekly_cost)}/week")
        st.metric("Monthly Retainer Cost", format_currency(retainer.monthly_cost))
        st.caption(
            "Retainer covers maintenance, bug fixes and minor improvements after development. "
            "First-year figures count only the weeks remaining after the development window."
        )

with tab5:
    st.dataframe(build_ledger_frame(breakdown), use_container_width=True)

# === EXPORT ===
st.divider()
csv_text = generate_csv(breakdown)
st.download_button(
    "Download CSV Report",
    csv_text.encode("utf-8"),
    file_name="studio_price_calculator_report.csv",
    mime="text/csv",
)
