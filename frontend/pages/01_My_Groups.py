"""
My Groups

Groups the signed-in user captains, belongs to or follows; pending
invitations; and the create-group form.
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
import pandas as pd

from scale_session import get_app, show_error
from src.scale.models import is_captain

# Page config
st.set_page_config(
    page_title="My Groups",
    page_icon="👥",
    layout="wide"
)

# Password protection
if not check_password():
    st.stop()

user = require_user()
scale_app = get_app()

st.title("My Groups")

DEFAULT_METRICS = pd.DataFrame([
    {"name": "Skill", "description": "", "min_value": 0.0, "max_value": 100.0,
     "prefix": "", "suffix": "", "applicable_categories": ""},
    {"name": "Effort", "description": "", "min_value": 0.0, "max_value": 100.0,
     "prefix": "", "suffix": "", "applicable_categories": ""},
])


def open_group(group_id: str) -> None:
    st.session_state["selected_group_id"] = group_id
    st.switch_page("pages/02_Group.py")


def metrics_from_editor(df: pd.DataFrame) -> list:
    """Rows of the metric editor as metric dicts; blank names are skipped."""
    metrics = []
    for row in df.to_dict("records"):
        name = str(row.get("name") or "").strip()
        if not name:
            continue
        categories = str(row.get("applicable_categories") or "")
        metrics.append({
            "name": name,
            "description": str(row.get("description") or ""),
            "min_value": float(row.get("min_value") or 0),
            "max_value": float(row.get("max_value") or 0),
            "prefix": row.get("prefix") or "",
            "suffix": row.get("suffix") or "",
            "applicable_categories": [c.strip() for c in categories.split(",") if c.strip()],
        })
    return metrics


# ============================================================================
# Invitations
# ============================================================================

invitations = scale_app.members.list_user_invitations(user.email)
if invitations:
    st.subheader(f"📬 Invitations ({len(invitations)})")
    for invitation in invitations:
        col1, col2, col3 = st.columns([4, 1, 1])
        with col1:
            st.markdown(f"**{invitation.group_name}**")
            st.caption(f"Invited by {invitation.invited_by_name or 'a captain'}")
        with col2:
            if st.button("Accept", key=f"accept_{invitation.id}"):
                try:
                    scale_app.members.respond_to_invitation(invitation.id, user, accept=True)
                    st.rerun()
                except Exception as e:
                    show_error(e, "Accepting invitation")
        with col3:
            if st.button("Decline", key=f"decline_{invitation.id}"):
                try:
                    scale_app.members.respond_to_invitation(invitation.id, user, accept=False)
                    st.rerun()
                except Exception as e:
                    show_error(e, "Declining invitation")
    st.markdown("---")

# ============================================================================
# Group list
# ============================================================================

tab_groups, tab_create = st.tabs(["👥 My Groups", "➕ Create Group"])

with tab_groups:
    include_followed = st.checkbox("Include followed groups", value=True)
    try:
        groups = scale_app.members.list_user_groups(user.id, include_followed=include_followed)
    except Exception as e:
        show_error(e, "Loading groups")
        groups = []

    if not groups:
        st.info("You're not in any groups yet. Create one or accept an invitation.")

    for group in groups:
        col1, col2 = st.columns([5, 1])
        with col1:
            role = "👑 Captain" if is_captain(group, user.id) else "Member"
            st.markdown(f"**{group.name}** · {role}")
            st.caption(
                f"{len(group.metrics)} metrics · {group.rating_count} ratings · "
                f"last activity {group.last_activity_at:%Y-%m-%d %H:%M}"
            )
        with col2:
            if st.button("Open", key=f"open_{group.id}"):
                open_group(group.id)

with tab_create:
    with st.form("create_group_form"):
        name = st.text_input("Group name *")
        description = st.text_area("Description")
        categories = st.text_input("Item categories (comma separated, optional)", placeholder="Player, Team")
        col1, col2 = st.columns(2)
        with col1:
            is_public = st.checkbox("Public (anyone can view)", value=True)
        with col2:
            is_open = st.checkbox("Open (anyone signed in can rate)", value=False)

        st.markdown("**Metrics**")
        metric_df = st.data_editor(
            DEFAULT_METRICS,
            num_rows="dynamic",
            use_container_width=True,
            column_config={
                "prefix": st.column_config.SelectboxColumn("prefix", options=["", "#", "$", "€", "£"]),
                "suffix": st.column_config.SelectboxColumn(
                    "suffix",
                    options=["", "%", "K", "M", "B", "T", " thousand", " million", " billion", " trillion"],
                ),
            },
            key="metric_editor",
        )

        if st.form_submit_button("Create Group", type="primary"):
            try:
                group = scale_app.groups.create_group(
                    user,
                    name=name,
                    description=description,
                    metrics=metrics_from_editor(metric_df),
                    item_categories=[c.strip() for c in categories.split(",") if c.strip()],
                    is_public=is_public,
                    is_open=is_open,
                )
                st.session_state["created_group_id"] = group.id
            except Exception as e:
                show_error(e, "Creating group")

    if st.session_state.get("created_group_id"):
        open_group(st.session_state.pop("created_group_id"))
