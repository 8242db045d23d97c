"""
Base class for server-rendered HTML components.

Components are plain Python objects with a `render()` method returning an
HTML string. All user-controlled text goes through `escape()`.
"""

from typing import Any, Optional
import html


class Component:
    """Common helpers for GT Staff Hub components."""

    def render(self) -> str:
        raise NotImplementedError("Subclasses must implement render()")

    @staticmethod
    def escape(text: Optional[str]) -> str:
        """Escape HTML entities; None renders as an empty string."""
        return html.escape(str(text)) if text is not None else ""

    @staticmethod
    def attributes(**attrs: Any) -> str:
        """Build an HTML attribute string.

        A trailing underscore maps reserved names (`class_` -> `class`), inner
        underscores become hyphens (`aria_label` -> `aria-label`). True renders
        a bare boolean attribute, False and None drop the attribute.

        Example:
            >>> Component.attributes(type="email", required=True, class_="form-input")
            'type="email" required class="form-input"'
        """
        parts = []
        for key, value in attrs.items():
            name = key[:-1] if key.endswith("_") else key.replace("_", "-")
            if value is True:
                parts.append(name)
            elif value is not False and value is not None:
                parts.append(f'{name}="{html.escape(str(value))}"')
        return " ".join(parts)
