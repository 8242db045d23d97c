"""
Form field components.

A field renders its label, the input, and an optional error line so the sign-in
forms share one markup structure.
"""

from typing import Optional

from ..base import Component


class TextInputField(Component):
    """Single-line input (text, email or password) with label and error text."""

    def __init__(
        self,
        field_id: str,
        label: str,
        *,
        required: bool = False,
        error_text: Optional[str] = None,
    ) -> None:
        self.field_id = field_id
        self.label = label
        self.required = required
        self.error_text = error_text

    def render(
        self,
        *,
        value: str = "",
        input_type: str = "text",
        autocomplete: Optional[str] = None,
        **attrs: str,
    ) -> str:
        input_attrs = self.attributes(
            id=self.field_id,
            name=self.field_id,
            type=input_type,
            # Never echo a password back into the page.
            value=None if input_type == "password" else value,
            autocomplete=autocomplete,
            required=self.required,
            aria_invalid="true" if self.error_text else "false",
            **attrs,
        )
        error_html = (
            f'<p class="form-error" role="alert" id="{self.field_id}-error">{self.escape(self.error_text)}</p>'
            if self.error_text
            else ""
        )
        return (
            '<div class="form-field">'
            f'<label for="{self.escape(self.field_id)}" class="form-label">{self.escape(self.label)}</label>'
            f"<input {input_attrs}>"
            f"{error_html}"
            "</div>"
        )
