"""
Invitation email templates rendered with Jinja2.

Template files look like this::

    Subject: Coffee chat, {{ recipient_name }}?
    ---
    Hi {{ recipient_name }},
    {% for slot in availabilities %}
    - {{ slot }}
    {% endfor %}
    {{ sender_name }}
"""

from pathlib import Path
from typing import Sequence, Tuple

from jinja2 import Environment, StrictUndefined, TemplateError as JinjaTemplateError

from ..domain.exceptions import TemplateError

SUBJECT_PREFIX = "Subject:"
SEPARATOR = "---"


class EmailTemplate:
    """
    Parsed subject and body templates.
    """

    def __init__(self, subject_template: str, body_template: str, name: str = "template"):
        self.subject_template = subject_template
        self.body_template = body_template
        self.name = name

        environment = Environment(undefined=StrictUndefined, keep_trailing_newline=True)
        try:
            self._subject = environment.from_string(subject_template)
            self._body = environment.from_string(body_template)
        except JinjaTemplateError as exc:
            raise TemplateError(f"Failed to parse template '{name}': {exc}") from exc

    @classmethod
    def load(cls, template_path: Path) -> "EmailTemplate":
        """
        Load and parse a template file.

        Raises:
            TemplateError: If the file cannot be read or has no subject/separator header
        """
        try:
            content = Path(template_path).read_text(encoding="utf-8")
        except OSError as exc:
            raise TemplateError(f"Failed to read template file '{template_path}': {exc}") from exc

        lines = content.splitlines()
        if len(lines) < 2 or not lines[0].startswith(SUBJECT_PREFIX) or lines[1].strip() != SEPARATOR:
            raise TemplateError(
                f"Template format error in '{template_path}': "
                f"expected a '{SUBJECT_PREFIX}' line followed by a '{SEPARATOR}' separator"
            )

        subject = lines[0][len(SUBJECT_PREFIX):].strip()
        body = "\n".join(lines[2:])

        return cls(subject, body, name=Path(template_path).name)

    @classmethod
    def from_content(cls, subject: str, body: str, name: str = "inline_template") -> "EmailTemplate":
        """Create a template from subject and body strings."""
        return cls(subject, body, name=name)

    def render(
        self,
        recipient_name: str,
        sender_name: str,
        availabilities: Sequence[str],
    ) -> Tuple[str, str]:
        """
        Render the subject and body for one recipient.

        Returns:
            (subject, body)

        Raises:
            TemplateError: If rendering fails, e.g. an unknown variable is used
        """
        context = {
            "recipient_name": recipient_name,
            "sender_name": sender_name,
            "availabilities": list(availabilities),
        }
        try:
            subject = self._subject.render(**context)
            body = self._body.render(**context)
        except JinjaTemplateError as exc:
            raise TemplateError(f"Failed to render template '{self.name}': {exc}") from exc

        return subject.strip(), body
