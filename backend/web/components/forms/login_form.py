"""
Sign-in page form.

Renders the email/password form posting to `/login`. When a Google OAuth
client id is configured, it also renders the Google sign-in button; the
browser receives a Google ID token and posts it to `/login/federated`.
"""
from typing import Optional

from ..base import Component
from .fields import TextInputField


class LoginForm(Component):
    def __init__(
        self,
        *,
        error: Optional[str] = None,
        email: str = "",
        google_client_id: Optional[str] = None,
    ):
        self.error = error
        self.email = email
        self.google_client_id = google_client_id

    def render(self) -> str:
        email_field = TextInputField("email", "Email", required=True)
        password_field = TextInputField("password", "Password", required=True)
        error_html = (
            f'<div class="form-error" role="alert">{self.escape(self.error)}</div>' if self.error else ""
        )
        return f"""
    <section class="login-card">
        <h1>GT Staff Hub</h1>
        <p class="text-muted">Sign in with your school account.</p>
        {error_html}
        <form method="post" action="/login" class="login-form">
            {email_field.render(value=self.email, input_type="email", autocomplete="username")}
            {password_field.render(input_type="password", autocomplete="current-password")}
            <div class="form-actions">
                <button type="submit" class="button button--primary">Sign in</button>
            </div>
        </form>
        {self._render_federated()}
    </section>"""

    def _render_federated(self) -> str:
        if not self.google_client_id:
            return ""
        onload_attrs = self.attributes(
            id="g_id_onload",
            data_client_id=self.google_client_id,
            data_callback="gtHandleGoogleCredential",
            data_auto_prompt="false",
        )
        return f"""
        <form method="post" action="/login/federated" class="federated-login-form" id="federated-login-form">
            <input type="hidden" name="id_token" value="">
            <input type="hidden" name="provider_id" value="google.com">
        </form>
        <div {onload_attrs}></div>
        <div class="g_id_signin" data-type="standard" data-text="signin_with"></div>
        <script src="https://accounts.google.com/gsi/client" async></script>
        <script src="/static/js/federated-login.js" defer></script>"""
