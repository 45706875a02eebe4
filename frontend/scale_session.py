"""
Shared Streamlit state for Scale pages.
"""
import logging
from typing import Optional

import streamlit as st

from src.scale.demo_data import create_demo_store
from src.scale.exceptions import ScaleError
from src.scale.factory import ScaleApp, create_scale_app
from src.scale.graph.popup import PopupController
from src.utils.config import get_settings
from src.utils.logging import setup_logging

logger = logging.getLogger(__name__)


@st.cache_resource
def get_app() -> ScaleApp:
    """One application container per Streamlit server process."""
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_file)
    if settings.has_database:
        return create_scale_app(settings)
    logger.warning("No database configured, serving the demo groups from memory")
    return create_scale_app(settings, store=create_demo_store())


def get_popup_controller(group_id: str) -> PopupController:
    key = f"popup_{group_id}"
    if key not in st.session_state:
        st.session_state[key] = PopupController(get_settings().popup_hover_grace_seconds)
    return st.session_state[key]


def show_error(error: Exception, context: Optional[str] = None) -> None:
    """Render a Scale error for the user; unexpected errors are logged."""
    if isinstance(error, ScaleError):
        st.error(error.message)
        return
    logger.error(f"{context or 'Operation'} failed: {error}")
    st.error(f"{context or 'Operation'} failed. Please try again.")
