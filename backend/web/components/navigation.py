"""
Navigation Component for GT Staff Hub

Role-based sidebar. Managers land on the dashboard, everyone else on tasks;
admins additionally see the administration section.
"""

from typing import List, Optional, Tuple

from identity_access.domain import ROLE_LABELS, UserRecord

from .base import Component

NavItem = Tuple[str, str]

_COMMON_ITEMS: List[NavItem] = [
    ("/tasks", "Tasks"),
    ("/groups", "Groups"),
]


def nav_items_for(role: Optional[str]) -> List[NavItem]:
    """Return the (href, label) pairs visible to `role`."""
    items: List[NavItem] = []
    if role in ("manager", "admin"):
        items.append(("/dashboard", "Dashboard"))
    items.extend(_COMMON_ITEMS)
    if role == "admin":
        items.append(("/admin", "Administration"))
    return items


class Navigation(Component):
    def __init__(self, user: Optional[UserRecord] = None, current_path: str = "/"):
        self.user = user
        self.current_path = current_path

    def render(self) -> str:
        if self.user is None:
            return self._render_public_nav()

        links = "".join(self._render_item(href, label) for href, label in nav_items_for(self.user.role))
        role_label = ROLE_LABELS.get(self.user.role, self.user.role)
        return f"""
    <aside class="sidebar" id="sidebar" aria-label="Sidebar">
        <nav class="sidebar-nav" role="navigation" aria-label="Main navigation">
            <div class="sidebar-header">
                <span class="sidebar-title">GT Staff Hub</span>
            </div>
            <div class="sidebar-items">
                {links}
                <a href="/logout" class="nav-item nav-item--logout">Sign out</a>
            </div>
            <div class="sidebar-footer">
                <div class="user-name">{self.escape(self.user.name)}</div>
                <div class="user-role">{self.escape(role_label)}</div>
            </div>
        </nav>
    </aside>"""

    def _render_item(self, href: str, label: str) -> str:
        active = self.current_path == href or self.current_path.startswith(href + "/")
        attrs = self.attributes(
            href=href,
            class_="nav-item nav-item--active" if active else "nav-item",
            aria_current="page" if active else None,
        )
        return f"<a {attrs}>{self.escape(label)}</a>"

    def _render_public_nav(self) -> str:
        return """
    <header class="public-header">
        <span class="sidebar-title">GT Staff Hub</span>
        <a href="/login" class="nav-item">Sign in</a>
    </header>"""
