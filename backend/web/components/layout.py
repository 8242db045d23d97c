"""
Layout Component for GT Staff Hub

Wraps pre-rendered page content into a complete HTML document.
"""

from typing import Optional

from identity_access.domain import UserRecord

from .base import Component
from .navigation import Navigation


class Layout(Component):
    """Main layout component that assembles the complete page"""

    def __init__(
        self,
        title: str,
        content: str,
        user: Optional[UserRecord] = None,
        show_nav: bool = True,
        current_path: str = "/",
    ):
        """
        Args:
            title: Page title (will be escaped)
            content: Main content HTML (pre-rendered components)
            user: Signed-in user, if any
            show_nav: Whether to render the sidebar
            current_path: Current URL path for active link highlighting
        """
        self.title = title
        self.content = content
        self.user = user
        self.show_nav = show_nav
        self.current_path = current_path

    def render(self) -> str:
        nav_html = Navigation(self.user, self.current_path).render() if self.show_nav else ""
        return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{self.escape(self.title)} - GT Staff Hub</title>
    <link rel="stylesheet" href="/static/css/gtstaff.css">
</head>
<body>
    <a href="#main-content" class="skip-link">Skip to main content</a>
    {nav_html}
    <main id="main-content" class="main-content" role="main">
        {self.content}
    </main>
</body>
</html>"""
