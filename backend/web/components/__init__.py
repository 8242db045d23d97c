"""
GT Staff Hub UI components.

Server-rendered HTML built from small Python classes.
"""

from .base import Component
from .layout import Layout
from .navigation import Navigation, nav_items_for
from .forms import LoginForm, TextInputField

__all__ = [
    "Component",
    "Layout",
    "Navigation",
    "nav_items_for",
    "LoginForm",
    "TextInputField",
]
