"""
Claim

Landing page for claim links: a person listed as an item in a group signs
in and takes over their own profile.
"""

import sys
from pathlib import Path

# Add paths for imports
frontend_dir = Path(__file__).parent.parent
project_root = frontend_dir.parent
sys.path.insert(0, str(frontend_dir))
sys.path.insert(0, str(project_root))

from auth import check_password, require_user

from dotenv import load_dotenv
load_dotenv()

import streamlit as st

from scale_session import get_app, show_error
from src.scale.exceptions import ClaimError

# Page config
st.set_page_config(
    page_title="Claim Profile",
    page_icon="🔗",
    layout="centered"
)

# Password protection
if not check_password():
    st.stop()

st.title("Claim your profile")

token = st.query_params.get("token") or st.text_input("Claim code")
if not token:
    st.info("Open the claim link you received, or paste its code above.")
    st.stop()

scale_app = get_app()

try:
    claim_token = scale_app.claims.get_claim_token(token)
except ClaimError as e:
    st.error(e.message)
    st.stop()
except Exception as e:
    show_error(e, "Loading claim link")
    st.stop()

group = scale_app.repository.get_group(claim_token.group_id)
obj = scale_app.repository.get_object(claim_token.object_id)
if group is None or obj is None:
    st.error("Invalid or expired claim link")
    st.stop()

st.markdown(f"You've been listed as **{obj.name}** in **{group.name}**.")
if claim_token.email:
    st.caption(f"This link was sent to {claim_token.email}.")

user = require_user()

if st.button("Claim this profile", type="primary"):
    try:
        claimed = scale_app.claims.claim_profile(token, user)
        st.success(f"You are now {claimed.display_name} in {group.name}.")
        st.session_state["selected_group_id"] = group.id
        st.session_state["claimed_group"] = True
    except Exception as e:
        show_error(e, "Claiming profile")

if st.session_state.get("claimed_group"):
    if st.button("Open group"):
        st.session_state.pop("claimed_group", None)
        st.switch_page("pages/02_Group.py")
