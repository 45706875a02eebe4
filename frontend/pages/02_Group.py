"""
Group

Graph, table and rating views for one group, plus the captain's
management tools.
"""

import sys
from pathlib import Path

# Add paths for imports
frontend_dir = Path(__file__).parent.parent
project_root = frontend_dir.parent
sys.path.insert(0, str(frontend_dir))
sys.path.insert(0, str(project_root))

from auth import check_password, render_user_sidebar

from dotenv import load_dotenv
load_dotenv()

import streamlit as st

from scale_session import get_app, get_popup_controller, show_error
from src.scale.export import export_scores_to_json, table_to_excel_bytes
from src.scale.graph.axis_selection import resolve_axis_selection
from src.scale.models import (
    NO_METRIC,
    ClaimStatus,
    MemberRole,
    ObjectType,
    RatingMode,
    can_user_rate,
    can_user_view,
    is_captain,
    metric_applies_to_object,
)
from src.scale.scoring.aggregation import user_ratings_by_cell
from src.scale.services import ImageUpload, changed_ratings, claim_url, rateable_objects, slider_default
from src.scale.table.table_view import NAME_COLUMN, SortState, build_table_rows
from src.visualization.scale_charts import render_scale_graph, render_score_table

# Page config
st.set_page_config(
    page_title="Group",
    page_icon="📊",
    layout="wide"
)

# Password protection
if not check_password():
    st.stop()

user = render_user_sidebar()
user_id = user.id if user else None
scale_app = get_app()

# ============================================================================
# Group selection
# ============================================================================

group_id = st.query_params.get("group") or st.session_state.get("selected_group_id")
if not group_id:
    public_groups = scale_app.repository.list_groups({"is_public": True})
    if not public_groups:
        st.info("No groups to show yet.")
        st.stop()
    choice = st.selectbox("Group", public_groups, format_func=lambda g: g.name)
    group_id = choice.id
st.session_state["selected_group_id"] = group_id

# Live subscription; the snapshot is complete once all three listeners fired
with scale_app.scoreboard(group_id) as board:
    snapshot = board.snapshot

if snapshot is None:
    st.error("Group not found")
    st.stop()

group = snapshot.group
objects = snapshot.objects
scores = snapshot.index
metrics = group.ordered_metrics
members = scale_app.members.list_members(group_id, include_followers=True)
captain = is_captain(group, user_id)

if not can_user_view(group, user_id, members):
    st.error("This group is private.")
    st.stop()

viewed_key = f"viewed_{group_id}"
if viewed_key not in st.session_state:
    st.session_state[viewed_key] = True
    try:
        scale_app.groups.record_view(group_id)
    except Exception as e:
        show_error(e, "Recording view")

st.title(group.name)
if group.description:
    st.markdown(group.description)
st.caption(f"{len(objects)} items · {len(metrics)} metrics · {group.rating_count} ratings")

if not metrics:
    st.warning("This group has no metrics yet.")

own_ratings = user_ratings_by_cell(snapshot.ratings, user_id) if user_id else {}

tab_names = ["📊 Graph", "🗂️ Table", "🎚️ Rate", "👥 Members"]
if captain:
    tab_names.append("⚙️ Manage")
tabs = st.tabs(tab_names)


def metric_label(metric_id: str) -> str:
    if metric_id == NO_METRIC:
        return "None"
    metric = group.get_metric(metric_id)
    return metric.name if metric else metric_id


# ============================================================================
# Graph
# ============================================================================

with tabs[0]:
    axis_key = f"axes_{group_id}"
    current = st.session_state.get(axis_key, (None, None))
    selection = resolve_axis_selection(group, current[0], current[1])
    options = [NO_METRIC] + [m.id for m in metrics]

    col1, col2 = st.columns(2)
    with col1:
        y_choice = st.selectbox(
            "Y axis" + (" 🔒" if selection.y_locked else ""),
            options,
            index=options.index(selection.y_metric_id) if selection.y_metric_id in options else 0,
            format_func=metric_label,
            disabled=selection.y_locked,
            key=f"y_axis_{group_id}",
        )
    with col2:
        x_choice = st.selectbox(
            "X axis" + (" 🔒" if selection.x_locked else ""),
            options,
            index=options.index(selection.x_metric_id) if selection.x_metric_id in options else 0,
            format_func=metric_label,
            disabled=selection.x_locked,
            key=f"x_axis_{group_id}",
        )
    st.session_state[axis_key] = (x_choice, y_choice)
    selection = resolve_axis_selection(group, x_choice, y_choice)
    x_metric = group.get_metric(selection.x_metric_id)
    y_metric = group.get_metric(selection.y_metric_id)

    popup = get_popup_controller(group_id)
    active = popup.active

    graph_col, detail_col = st.columns([3, 1])
    with graph_col:
        clicked = render_scale_graph(
            group, objects, scores, x_metric, y_metric,
            highlight_id=active.object_id if active else None,
            key=f"graph_{group_id}",
        )

    # A new marker click pins its popup; clearing the selection is a click outside
    selection_key = f"graph_selection_{group_id}"
    if clicked != st.session_state.get(selection_key):
        st.session_state[selection_key] = clicked
        if clicked:
            popup.click(clicked)
        else:
            popup.outside_click(inside_popup=False, inside_anchor=False)
        active = popup.active

    with detail_col:
        obj = next((o for o in objects if active and o.id == active.object_id), None)
        if obj is None:
            st.caption("Click an item to see its scores.")
        else:
            if obj.display_image:
                st.image(obj.display_image, width=96)
            st.markdown(f"### {obj.display_name}")
            if obj.category:
                st.caption(obj.category)
            if obj.description:
                st.markdown(obj.description)
            if obj.object_type == ObjectType.LINK and obj.link_url:
                st.markdown(f"[Open link]({obj.link_url})")
            for metric in metrics:
                if not metric_applies_to_object(metric, obj):
                    continue
                score = scores.get(obj.id, metric.id)
                if score and score.is_rated:
                    value = metric.format_value(score.average_value, decimals=1)
                    st.metric(metric.name, value, help=f"{score.total_ratings} ratings")
                else:
                    st.metric(metric.name, "–", help="Not rated yet")
                mine = own_ratings.get((obj.id, metric.id))
                if mine is not None:
                    st.caption(f"Your rating: {metric.format_value(mine)}")
            if st.button("Close", key=f"close_popup_{group_id}"):
                popup.close()
                st.rerun()

# ============================================================================
# Table
# ============================================================================

with tabs[1]:
    sort_key = f"sort_{group_id}"
    sort_state: SortState = st.session_state.get(sort_key, SortState())
    sort_options = [NAME_COLUMN] + [m.id for m in metrics]

    col1, col2, col3 = st.columns([2, 1, 1])
    with col1:
        column = st.selectbox(
            "Sort by",
            [None] + sort_options,
            index=([None] + sort_options).index(sort_state.column) if sort_state.column in sort_options else 0,
            format_func=lambda c: "Default order" if c is None else ("Name" if c == NAME_COLUMN else metric_label(c)),
            key=f"sort_column_{group_id}",
        )
    with col2:
        direction = st.radio(
            "Direction", ["desc", "asc"],
            index=0 if sort_state.direction == "desc" else 1,
            horizontal=True,
            key=f"sort_direction_{group_id}",
        )
    with col3:
        include_hidden = captain and st.checkbox("Show hidden", key=f"hidden_{group_id}")
    sort_state = SortState(column=column, direction=direction)
    st.session_state[sort_key] = sort_state

    rows = build_table_rows(objects, metrics, scores, own_ratings, sort_state, include_hidden=include_hidden)
    render_score_table(rows, metrics, show_visibility=include_hidden)

    col1, col2 = st.columns(2)
    with col1:
        st.download_button(
            "📥 Download Excel",
            data=table_to_excel_bytes(group, objects, scores, sort_state, include_hidden),
            file_name=f"{group.name}_scores.xlsx",
            mime="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        )
    with col2:
        st.download_button(
            "📥 Download JSON",
            data=export_scores_to_json(group, objects, scores),
            file_name=f"{group.name}_scores.json",
            mime="application/json",
        )

# ============================================================================
# Rate
# ============================================================================

with tabs[2]:
    if user is None:
        st.info("Sign in to rate.")
    elif not can_user_rate(group, user_id, members):
        st.info("Only group members can rate. Join or ask the captain for an invitation.")
    else:
        targets = rateable_objects(group, objects, user_id)
        if not targets:
            st.caption("Nothing to rate yet.")
        else:
            targets_by_id = {o.id: o for o in targets}
            target_id = st.selectbox(
                "Item",
                list(targets_by_id),
                format_func=lambda oid: targets_by_id[oid].display_name,
                key=f"rate_target_{group_id}",
            )
            obj = targets_by_id[target_id]
            applicable = [m for m in metrics if metric_applies_to_object(m, obj)]
            with st.form(f"rate_form_{group_id}_{obj.id}"):
                values = {}
                for metric in applicable:
                    existing = own_ratings.get((obj.id, metric.id))
                    values[(obj.id, metric.id)] = st.slider(
                        metric.name,
                        min_value=float(metric.min_value),
                        max_value=float(metric.max_value),
                        value=float(slider_default(metric, existing)),
                        key=f"slider_{obj.id}_{metric.id}",
                        help=metric.description or None,
                    )
                if not applicable:
                    st.caption("No metric applies to this item.")
                submitted = st.form_submit_button("Save ratings", type="primary", disabled=not applicable)

            if submitted:
                changed = changed_ratings(values, own_ratings, applicable)
                if not changed:
                    st.info("Move a slider to rate.")
                else:
                    try:
                        scale_app.ratings.submit_ratings(group_id, user_id, changed)
                        st.success(f"Saved {len(changed)} rating(s)")
                        st.rerun()
                    except Exception as e:
                        show_error(e, "Saving ratings")

# ============================================================================
# Members
# ============================================================================

with tabs[3]:
    active_members = [m for m in members if m.role != MemberRole.FOLLOWER]
    followers = [m for m in members if m.role == MemberRole.FOLLOWER]
    for member in active_members:
        col1, col2 = st.columns([5, 1])
        with col1:
            badge = "👑 " if member.user_id == group.captain_id or member.user_id in group.co_captain_ids else ""
            st.markdown(f"{badge}**{member.name or member.email}** · {member.status.value}")
        with col2:
            if captain and member.user_id != group.captain_id:
                if st.button("Remove", key=f"remove_member_{member.id}"):
                    try:
                        scale_app.members.remove_member(group_id, user_id, member.id)
                        st.rerun()
                    except Exception as e:
                        show_error(e, "Removing member")
    st.caption(f"{len(followers)} follower(s)")

    if user:
        mine = next((m for m in members if m.user_id == user_id), None)
        col1, col2, col3 = st.columns(3)
        with col1:
            if mine is None and group.is_open and st.button("Join group"):
                try:
                    scale_app.members.join_group(group_id, user)
                    st.rerun()
                except Exception as e:
                    show_error(e, "Joining group")
        with col2:
            if mine is None and group.is_public and st.button("Follow"):
                try:
                    scale_app.members.follow_group(group_id, user)
                    st.rerun()
                except Exception as e:
                    show_error(e, "Following group")
            elif mine is not None and mine.role == MemberRole.FOLLOWER and st.button("Unfollow"):
                scale_app.members.unfollow_group(group_id, user_id)
                st.rerun()
        with col3:
            if mine is not None and mine.role == MemberRole.MEMBER and st.button("Leave group"):
                try:
                    scale_app.members.leave_group(group_id, user_id)
                    st.rerun()
                except Exception as e:
                    show_error(e, "Leaving group")

        if mine is not None and mine.role == MemberRole.MEMBER and not captain:
            with st.expander("Suggest an item"):
                with st.form(f"submit_item_{group_id}"):
                    name = st.text_input("Name")
                    description = st.text_area("Description")
                    category = st.selectbox("Category", [None] + group.item_categories) if group.item_categories else None
                    if st.form_submit_button("Submit for review"):
                        try:
                            scale_app.objects.submit_object(group_id, user, name, description=description, category=category)
                            st.success("Submitted. The captain will review it.")
                        except Exception as e:
                            show_error(e, "Submitting item")

        unclaimed_people = [o for o in objects if o.object_type == ObjectType.USER and o.claim_status == ClaimStatus.UNCLAIMED]
        if unclaimed_people:
            with st.expander("Is one of these you? Request to claim"):
                target = st.selectbox("Item", unclaimed_people, format_func=lambda o: o.name, key=f"claim_target_{group_id}")
                if st.button("Request claim"):
                    try:
                        scale_app.claims.create_claim_request(group_id, target.id, user)
                        st.success("Request sent to the captain.")
                    except Exception as e:
                        show_error(e, "Requesting claim")

    if st.button("🔗 Share"):
        scale_app.groups.record_share(group_id)
        st.code(f"{scale_app.settings.app_base_url.rstrip('/')}/Group?group={group_id}")

# ============================================================================
# Manage (captain only)
# ============================================================================

if captain:
    with tabs[4]:
        st.subheader("Add item")
        with st.form(f"add_item_{group_id}", clear_on_submit=True):
            col1, col2 = st.columns(2)
            with col1:
                name = st.text_input("Name *")
                object_type = st.selectbox("Type", list(ObjectType), format_func=lambda t: t.value.title())
                category = st.selectbox("Category", [None] + group.item_categories) if group.item_categories else None
            with col2:
                description = st.text_area("Description")
                link_url = st.text_input("Link URL (link items)")
                image_file = st.file_uploader("Image", type=["png", "jpg", "jpeg", "gif", "webp"])
            if st.form_submit_button("Add item", type="primary"):
                image = None
                if image_file is not None:
                    image = ImageUpload(image_file.getvalue(), image_file.name, image_file.type or "application/octet-stream")
                try:
                    scale_app.objects.add_object(
                        group_id, user_id, name,
                        object_type=object_type,
                        description=description or None,
                        link_url=link_url or None,
                        category=category,
                        image=image,
                    )
                    st.rerun()
                except Exception as e:
                    show_error(e, "Adding item")

        st.subheader("Items")
        for obj in objects:
            with st.expander(f"{obj.display_name}{'' if obj.visible_in_graph else ' (hidden)'}"):
                col1, col2, col3 = st.columns(3)
                with col1:
                    if st.button("Hide" if obj.visible_in_graph else "Show", key=f"vis_{obj.id}"):
                        scale_app.objects.set_visibility(obj.id, user_id, not obj.visible_in_graph)
                        st.rerun()
                with col2:
                    mode = st.selectbox(
                        "Who rates",
                        list(RatingMode),
                        index=list(RatingMode).index(obj.rating_mode),
                        format_func=lambda m: "Everyone" if m == RatingMode.GROUP else "Captain only",
                        key=f"mode_{obj.id}",
                    )
                    if mode != obj.rating_mode:
                        scale_app.objects.set_rating_mode(obj.id, user_id, mode)
                        st.rerun()
                with col3:
                    if st.button("🗑️ Remove", key=f"remove_{obj.id}"):
                        try:
                            removed = scale_app.objects.remove_object(obj.id, user_id)
                            st.toast(f"Removed {obj.display_name} and {removed} ratings")
                            st.rerun()
                        except Exception as e:
                            show_error(e, "Removing item")

                for metric in metrics:
                    enabled = metric_applies_to_object(metric, obj)
                    toggled = st.checkbox(metric.name, value=enabled, key=f"metric_{obj.id}_{metric.id}")
                    if toggled != enabled:
                        try:
                            scale_app.objects.set_metric_enabled(obj.id, user_id, metric.id, toggled)
                            st.rerun()
                        except Exception as e:
                            show_error(e, "Updating metric")

                if obj.object_type == ObjectType.USER and obj.claim_status != ClaimStatus.CLAIMED:
                    if st.button("Create claim link", key=f"claim_link_{obj.id}"):
                        try:
                            token = scale_app.claims.create_claim_token(group_id, obj.id, user_id)
                            st.code(claim_url(token.token, scale_app.settings.app_base_url))
                        except Exception as e:
                            show_error(e, "Creating claim link")

        pending_items = scale_app.objects.list_pending_objects(group_id)
        claim_requests = scale_app.claims.list_pending_requests(group_id)
        if pending_items or claim_requests:
            st.subheader("Review")
        for pending in pending_items:
            col1, col2, col3 = st.columns([4, 1, 1])
            with col1:
                st.markdown(f"**{pending.name}** suggested by {pending.submitted_by_name or pending.submitted_by}")
            with col2:
                if st.button("Approve", key=f"approve_{pending.id}"):
                    scale_app.objects.review_pending_object(pending.id, user_id, approve=True)
                    st.rerun()
            with col3:
                if st.button("Reject", key=f"reject_{pending.id}"):
                    scale_app.objects.review_pending_object(pending.id, user_id, approve=False)
                    st.rerun()
        by_id = {o.id: o for o in objects}
        for request in claim_requests:
            claimant = next((m for m in members if m.user_id == request.claimant_id), None)
            col1, col2, col3 = st.columns([4, 1, 1])
            with col1:
                target = by_id.get(request.object_id)
                who = claimant.name if claimant else request.claimant_id
                st.markdown(f"**{who}** wants to claim **{target.name if target else request.object_id}**")
            with col2:
                if st.button("Approve", key=f"approve_claim_{request.id}"):
                    try:
                        scale_app.claims.respond_to_claim_request(
                            request.id, user_id, approve=True,
                            claimant_name=claimant.name if claimant else "",
                            claimant_image_url=claimant.image_url if claimant else None,
                        )
                        st.rerun()
                    except Exception as e:
                        show_error(e, "Approving claim")
            with col3:
                if st.button("Reject", key=f"reject_claim_{request.id}"):
                    scale_app.claims.respond_to_claim_request(request.id, user_id, approve=False)
                    st.rerun()

        st.subheader("Invite")
        with st.form(f"invite_{group_id}", clear_on_submit=True):
            email = st.text_input("Email")
            if st.form_submit_button("Send invitation"):
                try:
                    scale_app.members.invite(group_id, user, email)
                    st.success(f"Invited {email}")
                except Exception as e:
                    show_error(e, "Inviting")

        st.subheader("Settings")
        with st.form(f"settings_{group_id}"):
            axis_options = [NO_METRIC] + [m.id for m in metrics]

            def axis_index(metric_id):
                return axis_options.index(metric_id) if metric_id in axis_options else 0

            # Unset defaults show the axis viewers actually get
            effective_defaults = resolve_axis_selection(group.model_copy(update={
                "locked_x_metric_id": None,
                "locked_y_metric_id": None,
            }))

            col1, col2 = st.columns(2)
            with col1:
                default_x = st.selectbox("Default X axis", axis_options, index=axis_index(effective_defaults.x_metric_id), format_func=metric_label)
                locked_x = st.selectbox("Lock X axis", axis_options, index=axis_index(group.locked_x_metric_id), format_func=metric_label)
                is_public = st.checkbox("Public", value=group.is_public)
            with col2:
                default_y = st.selectbox("Default Y axis", axis_options, index=axis_index(effective_defaults.y_metric_id), format_func=metric_label)
                locked_y = st.selectbox("Lock Y axis", axis_options, index=axis_index(group.locked_y_metric_id), format_func=metric_label)
                is_open = st.checkbox("Open", value=group.is_open)
            captain_control = st.checkbox(
                "Captain can edit claimed profiles",
                value=group.captain_control_enabled,
            )
            if st.form_submit_button("Save settings"):
                try:
                    scale_app.groups.update_settings(
                        group_id, user_id,
                        default_x_metric_id=default_x,
                        default_y_metric_id=default_y,
                        locked_x_metric_id=locked_x,
                        locked_y_metric_id=locked_y,
                        is_public=is_public,
                        is_open=is_open,
                        captain_control_enabled=captain_control,
                    )
                    st.rerun()
                except Exception as e:
                    show_error(e, "Saving settings")

        with st.expander("⚠️ Delete group"):
            confirm = st.text_input("Type the group name to confirm")
            if st.button("Delete group", type="primary", disabled=confirm != group.name):
                try:
                    scale_app.groups.delete_group(group_id, user_id)
                    st.session_state.pop("selected_group_id", None)
                    st.session_state["group_deleted"] = True
                except Exception as e:
                    show_error(e, "Deleting group")
            if st.session_state.pop("group_deleted", False):
                st.switch_page("Home.py")
