import logging

import pandas as pd
import streamlit as st

from arc.access.auth_bootstrap import (
    VIEW_ADVISOR,
    VIEW_HOD_HUB,
    AccessDenied,
    resume,
    sign_in,
    sign_out,
)
from arc.access.backend_client import AuthError, BackendClient
from arc.access.profile_resolver import ProfileLookupError
from arc.access.session_store import JsonFileStorage, SessionStore
from arc.assist.generative import GenerativeAssistant
from arc.config import ConfigError, configure_logging, load_settings
from arc.registry import field_resolver
from arc.registry.field_catalog import FieldCatalog
from arc.registry.notifications import NotificationBroadcaster
from arc.registry.query_fallback import RegistryQueryError, StudentQueryEngine
from arc.registry.update_requests import (
    check_and_auto_clear_updates,
    fetch_needs_updation,
    fetch_students_with_pending_updates,
    set_needs_updation,
)
from portal_state import LatestRequestGuard, load_section_records
from roster_analyzer import (
    BATCH_SIZE,
    HIGH_CGPA_THRESHOLD,
    SORT_ASC,
    SORT_OPTIONS,
    calculate_section_aggregates,
    filter_roster,
    frame_to_records,
    generate_roster_brief,
    generate_roster_pdf,
    paginate,
    records_to_frame,
    sort_roster,
    toggle_sort,
)

logger = logging.getLogger(__name__)

# View reached from the HOD hub once a section is picked
VIEW_HOD_SECTION = "HOD_SECTION"

# Page config
st.set_page_config(
    page_title="A.R.C. Portal",
    page_icon="🎓",
    layout="wide",
    initial_sidebar_state="expanded"
)

st.markdown("""
<style>
    :root {
        --primary-color: #6b46c1;
        --accent-color: #f6ad55;
        --text-dark: #1f2937;
        --text-light: #6b7280;
        --border-color: #e5e7eb;
    }

    #MainMenu {visibility: hidden;}
    footer {visibility: hidden;}

    h1 {
        color: var(--primary-color);
        font-weight: 800;
        letter-spacing: -0.02em;
        text-transform: uppercase;
    }

    [data-testid="stMetricValue"] {
        font-size: 1.8rem;
        font-weight: 800;
        color: var(--primary-color);
    }

    [data-testid="stMetricLabel"] {
        font-size: 0.75rem;
        font-weight: 700;
        color: var(--text-light);
        text-transform: uppercase;
        letter-spacing: 0.1em;
    }

    .stButton > button {
        border-radius: 0.75rem;
        font-weight: 700;
        text-transform: uppercase;
        letter-spacing: 0.05em;
    }
</style>
""", unsafe_allow_html=True)


# ============================================================================
# BOOT
# ============================================================================

try:
    settings = load_settings()
except ConfigError as e:
    st.error(f"❌ Configuration error: {e}")
    st.stop()

configure_logging(settings.log_level)


@st.cache_resource
def apply_column_aliases(path):
    if path:
        field_resolver.apply_alias_overrides(field_resolver.load_alias_overrides(path))
    return True


try:
    apply_column_aliases(settings.column_aliases_file)
except (OSError, ValueError) as e:
    st.error(f"❌ Column alias file could not be loaded: {e}")
    st.stop()

state = st.session_state

if "arc_client" not in state:
    state["arc_client"] = BackendClient(
        settings.backend_url, settings.backend_anon_key, timeout=settings.request_timeout,
    )
client = state["arc_client"]

session_store = SessionStore(
    JsonFileStorage(settings.session_file) if settings.session_file else state,
    settings.backend_url,
)
engine = StudentQueryEngine(client)
assistant = GenerativeAssistant(
    settings.gemini_api_key, model=settings.gemini_model, timeout=settings.request_timeout,
)
guard = LatestRequestGuard(state, active_key="active_section")

if "broadcaster" not in state:
    try:
        state["broadcaster"] = NotificationBroadcaster.from_config(client, settings.notifications_table)
    except ConfigError as e:
        st.error(f"❌ Configuration error: {e}")
        st.stop()
broadcaster = state["broadcaster"]

if "field_catalog" not in state:
    state["field_catalog"] = FieldCatalog()
catalog = state["field_catalog"]


def enter_portal(portal):
    state["portal"] = portal
    state["view"] = portal.view_mode
    state["active_section"] = portal.section if portal.view_mode == VIEW_ADVISOR else None
    state["welcome"] = assistant.welcome_message(portal.display_name)
    reset_roster()


def reset_roster():
    for key in ("roster_records", "roster_section", "roster_error", "selected_reg_no"):
        state.pop(key, None)
    state["display_limit"] = BATCH_SIZE
    state["search"] = ""
    state["sort_field"] = "name"
    state["sort_direction"] = SORT_ASC


def leave_portal():
    sign_out(client, session_store)
    for key in ("portal", "view", "active_section", "welcome"):
        state.pop(key, None)
    reset_roster()


if "portal" not in state and not state.get("boot_checked"):
    state["boot_checked"] = True
    try:
        resumed = resume(client, session_store)
        if resumed is not None:
            enter_portal(resumed)
    except AccessDenied as e:
        state["auth_error"] = str(e)
    except AuthError as e:
        logger.warning("[app] session resume failed: %s", e)
    except ProfileLookupError as e:
        logger.error("[app] profile lookup failed during resume: %s", e)
        state["auth_error"] = "Profile lookup failed. Please sign in again."


@st.cache_data(ttl=300, show_spinner=False)
def cached_sections(_engine, user_id):
    return _engine.fetch_available_sections()


# ============================================================================
# LOGIN
# ============================================================================

def render_login():
    left, right = st.columns([1.1, 1])

    with left:
        st.markdown("# A.R.C. Portal")
        st.markdown("Automated Reporting Central: section registry and schema command.")

    with right:
        st.markdown("### Login")
        with st.form("login_form"):
            email = st.text_input("Access Identity", placeholder="asection@college.edu")
            password = st.text_input("Secret Phrase", type="password")
            submitted = st.form_submit_button("Authenticate", type="primary", use_container_width=True)

        if state.get("auth_error"):
            st.error(state["auth_error"])

        if submitted:
            state.pop("auth_error", None)
            with st.spinner("Authenticating..."):
                try:
                    portal = sign_in(client, session_store, email, password)
                except AccessDenied as e:
                    state["auth_error"] = str(e)
                except AuthError as e:
                    state["auth_error"] = str(e)
                except ProfileLookupError as e:
                    logger.error("[app] profile lookup failed: %s", e)
                    sign_out(client, session_store)
                    state["auth_error"] = "Profile lookup failed. Please try again."
                else:
                    enter_portal(portal)
            st.rerun()

        with st.expander("Security Inquiry"):
            if st.button("Analyze passphrase strength"):
                analysis = assistant.analyze_security(password)
                st.metric("Strength", analysis.strength.upper())
                st.write(analysis.feedback)
                for tip in analysis.tips:
                    st.markdown(f"- {tip}")


# ============================================================================
# HOD HUB
# ============================================================================

def render_hod_hub(portal):
    st.markdown("# A.R.C. Command")
    st.caption(state.get("welcome", ""))
    st.markdown("## Select a Section")

    try:
        sections = cached_sections(engine, portal.session.user.id)
    except RegistryQueryError as e:
        logger.error("[app] section listing failed: %s", e)
        st.error(f"❌ Could not load sections: {e}")
        sections = []

    if not sections:
        st.info("No sections found in the registry.")
        return

    cols = st.columns(6)
    for i, section in enumerate(sections):
        with cols[i % 6]:
            if st.button(f"Section {section}", key=f"hub_{section}", use_container_width=True):
                state["active_section"] = section
                state["view"] = VIEW_HOD_SECTION
                reset_roster()
                st.rerun()


# ============================================================================
# SECTION DASHBOARD
# ============================================================================

def load_roster(section, force=False):
    if not force and state.get("roster_section") == section and "roster_records" in state:
        return
    token = guard.issue("roster", section)
    try:
        records = load_section_records(engine, section)
        error = None
    except RegistryQueryError as e:
        logger.error("[app] roster load for %s failed: %s", section, e)
        records, error = [], str(e)
    if guard.commit("roster", token, "roster_records", records):
        state["roster_section"] = section
        state["roster_error"] = error


def render_detail(record):
    st.markdown(f"### {record.initials} · {record.name}")
    st.caption(record.reg_no)
    col1, col2, col3 = st.columns(3)
    with col1:
        st.markdown("**Identity**")
        st.write(f"Father Name: {record.father_name}")
        st.write(f"Registry Mobile: {record.mobile}")
        st.write(f"Official Linked: {record.official_email}")
        st.write(f"Residency Status: {'Hosteller' if record.is_hosteller else 'Day Scholar'}")
        st.write(f"Resident Vector: {record.current_address}")
    with col2:
        st.markdown("**Academic**")
        st.write(f"Aggregate CGPA: {float(record.cgpa_overall):.2f}")
        st.write(f"10th Level: {record.tenth_percentage}%")
        st.write(f"12th Level: {record.twelfth_percentage}%")
        st.write(f"Placement Track: {record.category}")
    with col3:
        st.markdown("**Competitive**")
        st.write(f"LC Rating: {record.lc_rating}")
        st.write(f"LC Solved: {record.lc_total}")
        st.write(f"Tech Stack: {', '.join(record.tech_stack)}")
        st.write(f"COE Stream: {record.coe_name}")


def render_command_center(section):
    st.sidebar.markdown("## Command Center")

    with st.sidebar.expander("🔄 Need Updation"):
        current = fetch_needs_updation(client, section)
        options = catalog.labels()
        chosen = st.multiselect(
            "Fields students must update",
            options=options,
            default=[label for label in current if label in options],
        )
        if st.button("Request Data Sync", use_container_width=True):
            result = set_needs_updation(client, section, chosen)
            if result.success:
                broadcaster.broadcast(section, chosen)
                st.success(f"✅ {len(chosen)} field(s) requested for section {section}")
            else:
                message = f"❌ Update request failed: {result.error}"
                if result.note:
                    message += f" ({result.note})"
                st.error(message)

        summary = fetch_students_with_pending_updates(client, section, engine)
        if summary.error:
            st.warning(f"Pending status unavailable: {summary.error}")
        elif summary.required_fields:
            st.caption(
                f"{len(summary.students)} of {summary.total_students} students still pending"
            )
            if summary.students:
                st.dataframe(
                    pd.DataFrame([
                        {"Reg No": s.reg_no, "Name": s.name, "Missing": ", ".join(s.missing_fields)}
                        for s in summary.students
                    ]),
                    use_container_width=True,
                    hide_index=True,
                )
            elif summary.total_students:
                outcome = check_and_auto_clear_updates(client, section, engine)
                if outcome.get("cleared"):
                    st.success(outcome["message"])
                elif outcome.get("error"):
                    st.error(outcome["error"])

    with st.sidebar.expander("➕ Inject New Field"):
        new_label = st.text_input("Field name", placeholder="E.G. HACKATHON_WINS")
        category = st.selectbox("Category", catalog.categories)
        if st.button("Confirm Field Injection", use_container_width=True):
            if catalog.add_field(new_label, category):
                st.success(f"Added {new_label.strip().upper()} to {category}")
            else:
                st.info("Nothing added (blank or already present).")

    with st.sidebar.expander("🗑️ Delete Field"):
        options = {f"{d.category} :: {d.label}": (d.category, d.label) for d in catalog.descriptors()}
        doomed = st.multiselect("Fields to prune", list(options))
        if st.button("Prune Selected", use_container_width=True):
            removed = catalog.remove_fields(options[key] for key in doomed)
            st.success(f"Removed {removed} field(s) for this session")

    with st.sidebar.expander("🧭 Schema Check"):
        if st.button("Inspect registry columns", use_container_width=True):
            try:
                columns = engine.fetch_student_columns()
            except RegistryQueryError as e:
                st.error(f"❌ {e}")
            else:
                resolved = field_resolver.resolve_columns(columns, "students")
                unmatched = field_resolver.get_unmatched_columns(columns, resolved)
                st.write(f"{len(resolved)} recognized, {len(unmatched)} unrecognized")
                if unmatched:
                    st.code("\n".join(unmatched))


def render_dashboard(portal, section):
    header_left, header_right = st.columns([4, 1])
    with header_left:
        st.markdown("# A.R.C. Command")
        st.caption(f"Section {section} • {'HOD' if state.get('view') == VIEW_HOD_SECTION else 'Advisor'} Node")
    with header_right:
        if state.get("view") == VIEW_HOD_SECTION and st.button("← Sections"):
            state["view"] = VIEW_HOD_HUB
            state["active_section"] = None
            reset_roster()
            st.rerun()
        if st.button("🔄 Refresh"):
            load_roster(section, force=True)

    load_roster(section)
    if state.get("roster_error"):
        st.error(f"❌ Could not load the roster: {state['roster_error']}")

    df = records_to_frame(state.get("roster_records", []))
    aggregates = calculate_section_aggregates(df)

    col1, col2, col3 = st.columns(3)
    with col1:
        st.metric("Avg Section CGPA", aggregates["cgpa"], help="Academic Health")
    with col2:
        st.metric("Avg LC Pulse (Cnt/Rtg)", aggregates["lc"], help="Logic Pulse")
    with col3:
        st.metric("Residency Ratio", aggregates["residency"], help="Registry Population")

    search_col, *sort_cols = st.columns([3] + [1] * len(SORT_OPTIONS))
    with search_col:
        state["search"] = st.text_input(
            "Filter Identity Registry", value=state.get("search", ""), label_visibility="collapsed",
            placeholder="Filter Identity Registry...",
        )
    for col, (field, label) in zip(sort_cols, SORT_OPTIONS.items()):
        with col:
            arrow = ""
            if state.get("sort_field") == field:
                arrow = " ▲" if state.get("sort_direction") == SORT_ASC else " ▼"
            if st.button(f"{label}{arrow}", key=f"sort_{field}", use_container_width=True):
                state["sort_field"], state["sort_direction"] = toggle_sort(
                    state.get("sort_field", "name"), state.get("sort_direction", SORT_ASC), field,
                )
                st.rerun()

    visible = sort_roster(
        filter_roster(df, state.get("search", "")),
        state.get("sort_field", "name"),
        ascending=state.get("sort_direction", SORT_ASC) == SORT_ASC,
    )
    page = paginate(visible, state.get("display_limit", BATCH_SIZE))

    table = pd.DataFrame({
        "Reg No": page["reg_no"],
        "Identity Node": page["name"],
        "GPA Index": page["cgpa_overall"].map(lambda v: f"{float(v):.2f}"),
        "LC Pulse": page["lc_rating"],
        "Authorization": page["placement_status"],
    })
    st.dataframe(
        table.style.apply(
            lambda row: [
                "color: #059669; font-weight: 700" if c == "GPA Index" and float(row[c]) >= HIGH_CGPA_THRESHOLD else ""
                for c in row.index
            ],
            axis=1,
        ),
        use_container_width=True,
        hide_index=True,
    )

    if state.get("display_limit", BATCH_SIZE) < len(visible):
        if st.button("Synchronize Next Batch", use_container_width=True):
            state["display_limit"] = state.get("display_limit", BATCH_SIZE) + BATCH_SIZE
            st.rerun()

    if not visible.empty:
        picked = st.selectbox(
            "Open profile",
            [None] + list(visible.index),
            format_func=lambda i: "Select a student" if i is None else f"{visible.at[i, 'reg_no']} · {visible.at[i, 'name']}",
        )
        if picked is not None:
            record = frame_to_records(visible.loc[[picked]])[0]
            with st.container(border=True):
                render_detail(record)

    st.markdown("---")
    with st.expander("📄 Section Brief"):
        brief = generate_roster_brief(visible, section, aggregates)
        st.code(brief, language=None)
        st.download_button(
            label="📥 Download Section Roster (PDF)",
            data=generate_roster_pdf(visible, section, aggregates),
            file_name=f"section_{section}_roster.pdf",
            mime="application/pdf",
            use_container_width=True
        )

    render_command_center(section)


# ============================================================================
# ROUTING
# ============================================================================

portal = state.get("portal")

if portal is None:
    render_login()
else:
    with st.sidebar:
        st.markdown(f"**{portal.display_name}**")
        st.caption("Authorized")
        if st.button("Log out", use_container_width=True):
            leave_portal()
            st.rerun()
        st.markdown("---")

    view = state.get("view")
    if view == VIEW_HOD_HUB:
        render_hod_hub(portal)
    elif view in (VIEW_ADVISOR, VIEW_HOD_SECTION) and state.get("active_section"):
        render_dashboard(portal, state["active_section"])
    else:
        leave_portal()
        st.rerun()
