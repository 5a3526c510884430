"""
Token Engine - Evaluates token templates against a form submission

Supports:
- Submission values ([webform_submission:values:element_key])
- Nested values ([webform_submission:values:address:city])
- Submission properties ([webform_submission:sid], [webform_submission:created])
- Form properties ([webform:title], [webform_submission:webform:title])
"""

import logging
import re
from typing import Any, Callable, Dict, Optional, Protocol

from src.schema.models import FormDefinition, Submission

logger = logging.getLogger(__name__)

SUBMISSION_TOKEN_TYPE = "webform_submission"
FORM_TOKEN_TYPE = "webform"


class TokenService(Protocol):
    """Evaluates token templates."""

    def evaluate(
        self,
        template: str,
        submission: Submission,
        form: Optional[FormDefinition] = None,
        decrypt: Optional[Callable[[Any], Any]] = None,
    ) -> str:
        """Replace every token of the template."""


class TokenTemplateEngine:
    """Token replacement for submission-driven templates"""

    # Pattern for tokens: [type:name] or [type:name:sub:...]
    TOKEN_PATTERN = re.compile(r"\[([^\s\[\]:]+):([^\[\]]+)\]")

    def scan(self, text: str) -> Dict[str, Dict[str, str]]:
        """
        Find tokens in a text

        Returns:
            {token type: {token name: raw token}}
        """
        tokens: Dict[str, Dict[str, str]] = {}
        if not isinstance(text, str):
            return tokens

        for match in self.TOKEN_PATTERN.finditer(text):
            token_type, name = match.group(1), match.group(2)
            tokens.setdefault(token_type, {})[name] = match.group(0)
        return tokens

    def replace(
        self,
        token: str,
        submission: Submission,
        form: Optional[FormDefinition] = None,
    ) -> str:
        """Return the value of a single token; unknown tokens are left as they are"""
        match = self.TOKEN_PATTERN.fullmatch(token)
        if not match:
            return token

        token_type, name = match.group(1), match.group(2)
        parts = name.split(":")

        if token_type == FORM_TOKEN_TYPE:
            value = self._form_value(parts, form, submission)
        elif token_type == SUBMISSION_TOKEN_TYPE:
            value = self._submission_value(parts, submission, form)
        else:
            value = None

        if value is None:
            logger.debug(f"Token not replaced: {token}")
            return token
        return value

    def evaluate(
        self,
        template: str,
        submission: Submission,
        form: Optional[FormDefinition] = None,
        decrypt: Optional[Callable[[Any], Any]] = None,
    ) -> str:
        """
        Evaluate a template

        Args:
            template: Text with tokens (e.g., "Profile for [webform_submission:values:name]")
            submission: Submission the tokens are read from
            form: Form definition, for [webform:*] tokens
            decrypt: Applied to each submission token value before substitution

        Returns:
            Evaluated text
        """
        if not template or submission is None:
            return ""

        def substitute(match: re.Match) -> str:
            raw = match.group(0)
            value = self.replace(raw, submission, form)
            if value == raw:
                return raw
            if decrypt is not None and match.group(1) == SUBMISSION_TOKEN_TYPE:
                value = decrypt(value)
            return self._render(value)

        # Single pass, substituted values are never scanned again
        return self.TOKEN_PATTERN.sub(substitute, template)

    def _submission_value(
        self,
        parts: list,
        submission: Submission,
        form: Optional[FormDefinition],
    ) -> Optional[str]:
        head = parts[0]
        if head == "values":
            if len(parts) < 2:
                return None
            value: Any = submission.data
            for key in parts[1:]:
                if isinstance(value, dict) and key in value:
                    value = value[key]
                elif isinstance(value, list) and key.isdigit() and int(key) < len(value):
                    value = value[int(key)]
                else:
                    return ""
            return self._render(value)

        if head == FORM_TOKEN_TYPE:
            return self._form_value(parts[1:] or ["title"], form, submission)

        if len(parts) == 1 and submission.has_property(head):
            return self._render(submission.get_property(head))

        return None

    def _form_value(
        self,
        parts: list,
        form: Optional[FormDefinition],
        submission: Submission,
    ) -> Optional[str]:
        name = parts[0] if parts else "title"
        if name == "id":
            return form.id if form else submission.form_id
        if form is None:
            return None
        if name in ("title", "label"):
            return form.label
        return None

    @staticmethod
    def _render(value: Any) -> str:
        """Convert a submission value to text"""
        if value is None:
            return ""
        if isinstance(value, bool):
            return "1" if value else "0"
        if isinstance(value, list):
            return ", ".join(TokenTemplateEngine._render(v) for v in value if v not in (None, ""))
        if isinstance(value, dict):
            return ", ".join(TokenTemplateEngine._render(v) for v in value.values() if v not in (None, ""))
        return str(value)
