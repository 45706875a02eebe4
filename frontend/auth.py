"""
Authentication module for Scale
"""
import uuid
from typing import Optional

import streamlit as st

from src.scale.models import UserIdentity
from src.utils.config import get_settings

USER_KEY = "scale_user"


def check_password():
    """Returns `True` if the user had the correct password (or none is configured)."""
    settings = get_settings()
    if not settings.has_password:
        return True

    def password_entered():
        """Checks whether a password entered by the user is correct."""
        if st.session_state["password"] == settings.app_password:
            st.session_state["password_correct"] = True
            del st.session_state["password"]  # Don't store password
        else:
            st.session_state["password_correct"] = False

    # First run, show input for password
    if "password_correct" not in st.session_state:
        st.markdown("## 🔒 Authentication Required")
        st.text_input(
            "Password", type="password", on_change=password_entered, key="password"
        )
        st.info("Please enter the password to access Scale.")
        return False
    # Password not correct, show input + error
    elif not st.session_state["password_correct"]:
        st.markdown("## 🔒 Authentication Required")
        st.text_input(
            "Password", type="password", on_change=password_entered, key="password"
        )
        st.error("😕 Password incorrect")
        return False
    else:
        # Password correct
        return True


def user_id_for_email(email: str) -> str:
    """Stable user id derived from the sign-in email."""
    return str(uuid.uuid5(uuid.NAMESPACE_URL, f"mailto:{email.strip().lower()}"))


class SessionIdentityProvider:
    """IdentityProvider backed by Streamlit session state."""

    def current_user(self) -> Optional[UserIdentity]:
        return st.session_state.get(USER_KEY)

    def sign_in(self, name: str, email: str, image_url: Optional[str] = None) -> UserIdentity:
        user = UserIdentity(
            id=user_id_for_email(email),
            name=name.strip() or email.split("@")[0],
            email=email.strip().lower(),
            image_url=image_url or None,
        )
        st.session_state[USER_KEY] = user
        return user

    def sign_out(self) -> None:
        st.session_state.pop(USER_KEY, None)


def get_identity() -> SessionIdentityProvider:
    return SessionIdentityProvider()


def render_user_sidebar() -> Optional[UserIdentity]:
    """Show the signed-in user (or a sign-in form) in the sidebar."""
    identity = get_identity()
    user = identity.current_user()
    with st.sidebar:
        if user:
            st.markdown(f"**Signed in as** {user.name}")
            st.caption(user.email)
            if st.button("Sign out", key="sign_out"):
                identity.sign_out()
                st.rerun()
        else:
            with st.form("sign_in_form"):
                st.markdown("**Sign in**")
                name = st.text_input("Name")
                email = st.text_input("Email")
                if st.form_submit_button("Sign in"):
                    if "@" not in email:
                        st.error("Enter a valid email")
                    else:
                        identity.sign_in(name, email)
                        st.rerun()
    return user


def require_user() -> UserIdentity:
    """Stop the page unless someone is signed in."""
    user = render_user_sidebar()
    if user is None:
        st.info("Sign in from the sidebar to continue.")
        st.stop()
    return user
