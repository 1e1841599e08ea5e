"""
Streamlit UI for the Roof Estimator.

Features:
- Step-by-step quick estimate (property, roof details, contact, estimate)
- Answers kept in the session between reruns
- Price range with the factors behind it
- Rules tab showing the pricing table in effect
"""
import streamlit as st
import pandas as pd
import sys
from pathlib import Path

# Add src to path for imports
src_path = Path(__file__).parent.parent.parent
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from roof_estimator.config.settings import configure_logging, get_settings
from roof_estimator.engine import PricingEngine
from roof_estimator.engine.models import JobType, RoofIssue, RoofMaterial, RoofPitch, TimelineUrgency
from roof_estimator.funnel.store import Address, CONTACT_METHODS, FunnelStore, LAST_STEP
from roof_estimator.services.rules_service import RulesService
from roof_estimator.services.supabase_client import get_supabase_client


st.set_page_config(
    page_title="Roof Estimator",
    layout="wide",
    initial_sidebar_state="expanded"
)

configure_logging()


@st.cache_resource
def get_rules_service():
    """Get cached rules service."""
    return RulesService(get_supabase_client, rules_csv_path=get_settings().rules_csv)


@st.cache_data(ttl=300)
def load_rules():
    """Active rules and where they came from; reloaded every five minutes."""
    loaded = get_rules_service().load_active_rules()
    return loaded.rules, loaded.source


try:
    rules, rules_source = load_rules()
    engine = PricingEngine(rules)
except Exception as e:
    st.error(f"System Error: {e}")
    st.stop()

# One store per browser session; its persisted answers live beside it
if 'funnel' not in st.session_state:
    st.session_state.funnel = FunnelStore(st.session_state)
store = st.session_state.funnel
state = store.state


def label(value: str) -> str:
    return value.replace('_', ' ').title()


def money(value: float) -> str:
    return f"${value:,.0f}"


def index_of(options, value) -> int:
    return options.index(value) if value in options else 0


# ============================================================================
# SIDEBAR
# ============================================================================
with st.sidebar:
    st.header("🏠 Roof Estimator")
    st.progress(state.current_step / LAST_STEP, text=f"Step {state.current_step} of {LAST_STEP}")

    st.divider()
    st.success(f"🔧 **{len(engine.rules)} Rules Active** ({rules_source})")

    if st.button("🔄 Start Over", use_container_width=True):
        store.reset()
        st.rerun()


# ============================================================================
# MAIN TABS
# ============================================================================
tab1, tab2 = st.tabs(["⚡ Quick Estimate", "🔧 Rules"])

# ----------------------------------------------------------------------------
# TAB 1: Quick Estimate
# ----------------------------------------------------------------------------
with tab1:
    if state.error:
        st.error(state.error)

    if state.current_step == 1:
        st.subheader("Property")
        address = state.address
        with st.form("property_form"):
            street = st.text_input("Street Address", value=address.street_address if address else "")
            c1, c2, c3 = st.columns([2, 1, 1])
            city = c1.text_input("City", value=address.city if address else "")
            us_state = c2.text_input("State", value=address.state if address else "MS")
            zip_code = c3.text_input("ZIP", value=address.zip_code if address else "")

            job_options = list(JobType)
            job_type = st.selectbox(
                "What do you need?", job_options,
                index=index_of(job_options, state.job_type), format_func=lambda j: label(j.value),
            )
            description = st.text_area("Tell us about the job", value=state.job_description)

            if st.form_submit_button("Next ➡️", type="primary"):
                if not street.strip():
                    store.set_error("Please enter the property address")
                else:
                    store.set_error(None)
                    store.set_address(Address(
                        street_address=street.strip(),
                        city=city.strip(),
                        state=us_state.strip().upper(),
                        zip_code=zip_code.strip(),
                    ))
                    store.set_job_type(job_type)
                    store.set_job_description(description)
                    store.next_step()
                st.rerun()

    elif state.current_step == 2:
        st.subheader("Roof Details")
        with st.form("details_form"):
            c1, c2 = st.columns(2)
            materials = list(RoofMaterial)
            material = c1.selectbox(
                "Material", materials,
                index=index_of(materials, state.roof_material), format_func=lambda m: label(m.value),
            )
            pitches = list(RoofPitch)
            pitch = c2.selectbox(
                "Pitch", pitches,
                index=index_of(pitches, state.roof_pitch), format_func=lambda p: label(p.value),
            )
            size = c1.number_input(
                "Roof size (sqft, 0 if unknown)", min_value=0, step=100,
                value=int(state.roof_size_sqft or 0),
            )
            stories = c2.number_input("Stories", min_value=1, max_value=5, value=int(state.stories or 1))

            f1, f2, f3 = st.columns(3)
            skylights = f1.checkbox("Skylights", value=state.has_skylights)
            chimneys = f2.checkbox("Chimneys", value=state.has_chimneys)
            solar = f3.checkbox("Solar panels", value=state.has_solar_panels)

            issues = st.multiselect(
                "Any problems?", list(RoofIssue),
                default=state.issues, format_func=lambda i: label(i.value),
            )
            urgencies = list(TimelineUrgency)
            urgency = st.selectbox(
                "How soon?", urgencies,
                index=index_of(urgencies, state.timeline_urgency), format_func=lambda u: label(u.value),
            )
            insurance = st.checkbox("Insurance claim", value=state.has_insurance_claim)

            b1, b2 = st.columns(2)
            back = b1.form_submit_button("⬅️ Back")
            forward = b2.form_submit_button("Next ➡️", type="primary")

            if back or forward:
                store.set_roof_details(
                    roof_material=material,
                    roof_pitch=pitch,
                    roof_size_sqft=float(size) or None,
                    stories=int(stories),
                    has_skylights=skylights,
                    has_chimneys=chimneys,
                    has_solar_panels=solar,
                )
                store.set_issues(issues)
                store.set_timeline(timeline_urgency=urgency, has_insurance_claim=insurance)
                if back:
                    store.prev_step()
                else:
                    store.next_step()
                st.rerun()

    elif state.current_step == 3:
        st.subheader("Contact")
        with st.form("contact_form"):
            c1, c2 = st.columns(2)
            first_name = c1.text_input("First name", value=state.first_name)
            last_name = c2.text_input("Last name", value=state.last_name)
            email = c1.text_input("Email", value=state.email)
            phone = c2.text_input("Phone", value=state.phone)
            method = st.radio(
                "Preferred contact", CONTACT_METHODS,
                index=index_of(list(CONTACT_METHODS), state.preferred_contact_method), horizontal=True,
            )
            terms = st.checkbox("I agree to the terms", value=state.consent_terms)

            b1, b2 = st.columns(2)
            back = b1.form_submit_button("⬅️ Back")
            forward = b2.form_submit_button("See my estimate 💰", type="primary")

            if back or forward:
                store.set_contact(
                    first_name=first_name.strip(),
                    last_name=last_name.strip(),
                    email=email.strip(),
                    phone=phone.strip(),
                    preferred_contact_method=method,
                    consent_terms=terms,
                )
                if back:
                    store.set_error(None)
                    store.prev_step()
                elif not terms:
                    store.set_error("Please accept the terms to see your estimate")
                else:
                    store.set_error(None)
                    store.set_estimate(engine.calculate(store.to_pricing_input()))
                    store.next_step()
                st.rerun()

    else:
        st.subheader("Your Estimate")
        if state.estimate is None:
            store.set_estimate(engine.calculate(store.to_pricing_input()))
        estimate = state.estimate

        m1, m2, m3 = st.columns(3)
        m1.metric("Low", money(estimate['price_low']))
        m2.metric("Likely", money(estimate['price_likely']))
        m3.metric("High", money(estimate['price_high']))

        st.caption("Estimates are valid for 30 days and subject to an on-site inspection.")

        if estimate['factors']:
            factors = pd.DataFrame(estimate['factors'])
            factors['impact'] = factors['impact'].map(money)
            st.dataframe(
                factors.rename(columns={'name': 'Factor', 'impact': 'Impact', 'description': 'Details'}),
                use_container_width=True, hide_index=True,
            )
            st.download_button(
                "📥 Download CSV",
                data=pd.DataFrame(estimate['factors']).to_csv(index=False),
                file_name="roof_estimate.csv",
                mime="text/csv",
            )

        if st.button("⬅️ Change answers"):
            store.set_current_step(2)
            st.rerun()

# ----------------------------------------------------------------------------
# TAB 2: Rules
# ----------------------------------------------------------------------------
with tab2:
    st.subheader("🔧 Pricing Rules In Effect")
    rules_df = pd.DataFrame([r.to_dict() for r in engine.rules])
    if rules_df.empty:
        st.info("No rules loaded")
    else:
        categories = ['All'] + sorted(rules_df['rule_category'].unique())
        category = st.selectbox("Category", categories)
        if category != 'All':
            rules_df = rules_df[rules_df['rule_category'] == category]

        c1, c2 = st.columns(2)
        c1.metric("Rules", len(rules_df))
        c2.metric("Source", rules_source)
        st.dataframe(rules_df, use_container_width=True, hide_index=True)
