"""
Scale - Peer Rating Groups - Main Entry Point
"""
import streamlit as st
import sys
from pathlib import Path

# Add frontend directory and project root to path for imports
frontend_dir = Path(__file__).parent
project_root = frontend_dir.parent
if str(frontend_dir) not in sys.path:
    sys.path.insert(0, str(frontend_dir))
if str(project_root) not in sys.path:
    sys.path.insert(0, str(project_root))

from dotenv import load_dotenv
load_dotenv()

from auth import check_password, render_user_sidebar
from scale_session import get_app, show_error

st.set_page_config(
    page_title="Scale",
    page_icon="📈",
    layout="wide",
    initial_sidebar_state="expanded"
)

# Password protection
if not check_password():
    st.stop()  # Do not continue if check_password is not True

# Custom CSS
st.markdown("""
<style>
    .main-header {
        font-size: 3rem;
        font-weight: bold;
        color: #6366f1;
        margin-bottom: 1rem;
        text-align: center;
    }
    .sub-header {
        font-size: 1.5rem;
        color: #555;
        margin-bottom: 2rem;
        text-align: center;
    }
</style>
""", unsafe_allow_html=True)

user = render_user_sidebar()
scale_app = get_app()


def open_group(group_id: str) -> None:
    st.session_state["selected_group_id"] = group_id
    st.switch_page("pages/02_Group.py")


def render_group_list(groups, key_prefix: str) -> None:
    if not groups:
        st.caption("Nothing here yet.")
        return
    for group in groups:
        col1, col2 = st.columns([4, 1])
        with col1:
            badge = "⭐ " if group.is_featured else ""
            st.markdown(f"**{badge}{group.name}**")
            st.caption(
                f"{len(group.metrics)} metrics · {group.rating_count} ratings · "
                f"{group.view_count} views"
            )
        with col2:
            if st.button("Open", key=f"{key_prefix}_{group.id}"):
                open_group(group.id)


# Header
st.markdown('<p class="main-header">📈 Scale</p>', unsafe_allow_html=True)
st.markdown('<p class="sub-header">Rate anything with your group, see where everyone lands</p>', unsafe_allow_html=True)

st.markdown("---")

try:
    public_groups = scale_app.repository.list_groups({"is_public": True})
    featured = [g for g in public_groups if g.is_featured]
    trending = scale_app.groups.trending_groups(limit=5)
    popular = scale_app.groups.popular_groups(limit=5)
except Exception as e:
    show_error(e, "Loading groups")
    st.stop()

col1, col2 = st.columns([2, 1])

with col1:
    st.markdown("""
    ## Welcome!

    **Scale** lets a group rate people, teams or anything else on metrics the
    captain defines, then plots the averages on a two-axis graph:

    - 📊 **Graph**: pick any two metrics as axes and see where every item lands
    - 🗂️ **Table**: sort by name or by any metric
    - 🎚️ **Rate**: slide each metric, your rating overwrites your previous one
    - 🔗 **Claim**: people invited as items can claim their own profile
    """)

    if featured:
        st.markdown("### ⭐ Featured")
        render_group_list(featured, "featured")

with col2:
    st.markdown("### 🔥 Trending")
    render_group_list(trending, "trending")
    st.markdown("### 🏆 Popular")
    render_group_list(popular, "popular")

if user:
    invitations = scale_app.members.list_user_invitations(user.email)
    if invitations:
        st.info(f"You have {len(invitations)} pending invitation(s). Open **My Groups** to respond.")
