"""Login and registration pages.

Plain HTML forms posting to the /auth endpoints, which talk to the auth
service and set the session cookie.
"""

from html import escape

from fastapi import Request
from nicegui import ui

FORM_CLASSES = "w-full max-w-sm mx-auto mt-24 p-6 bg-white rounded-xl shadow"
INPUT_STYLE = "width:100%;padding:8px;margin:4px 0 12px;border:1px solid #e5e7eb;border-radius:8px"
BUTTON_STYLE = (
    "width:100%;padding:10px;border:none;border-radius:8px;color:white;"
    "background:linear-gradient(135deg,#667eea 0%,#764ba2 100%);cursor:pointer"
)


def _notice(text: str, color: str) -> None:
    ui.label(text).classes(f"text-sm text-{color}-600 mb-2")


@ui.page("/login")
def login_page(request: Request) -> None:
    """Email/password sign-in form."""
    params = request.query_params
    redirected_from = escape(params.get("redirectedFrom", ""), quote=True)

    with ui.column().classes(FORM_CLASSES):
        ui.label("Sign in").classes("text-xl font-semibold")
        if params.get("registered"):
            _notice("Account created. Check your email to confirm it, then sign in.", "green")
        if params.get("error"):
            _notice(params["error"], "red")
        ui.html(
            f"""
            <form method="post" action="/auth/login">
                <input type="hidden" name="redirectedFrom" value="{redirected_from}">
                <label>Email</label>
                <input name="email" type="email" required style="{INPUT_STYLE}">
                <label>Password</label>
                <input name="password" type="password" required style="{INPUT_STYLE}">
                <button type="submit" style="{BUTTON_STYLE}">Sign in</button>
            </form>
            """,
            sanitize=False,
        ).classes("w-full")
        ui.link("Create an account", "/register").classes("text-sm")


@ui.page("/register")
def register_page(request: Request) -> None:
    """Account registration form."""
    error = request.query_params.get("error")

    with ui.column().classes(FORM_CLASSES):
        ui.label("Create an account").classes("text-xl font-semibold")
        if error:
            _notice(error, "red")
        ui.html(
            f"""
            <form method="post" action="/auth/register">
                <label>Full name</label>
                <input name="full_name" type="text" style="{INPUT_STYLE}">
                <label>Email</label>
                <input name="email" type="email" required style="{INPUT_STYLE}">
                <label>Password</label>
                <input name="password" type="password" minlength="8" required style="{INPUT_STYLE}">
                <button type="submit" style="{BUTTON_STYLE}">Register</button>
            </form>
            """,
            sanitize=False,
        ).classes("w-full")
        ui.link("Already have an account? Sign in", "/login").classes("text-sm")
