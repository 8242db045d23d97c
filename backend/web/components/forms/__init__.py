"""
Form components for GT Staff Hub.
"""

from .fields import TextInputField
from .login_form import LoginForm

__all__ = [
    "TextInputField",
    "LoginForm",
]
