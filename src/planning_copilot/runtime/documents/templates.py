"""Render planning documents from recorded phase responses."""

from __future__ import annotations

from typing import Mapping

from ...prompts import load as load_prompt

NOT_DEFINED = "Not defined yet"
_RESPONSE_KEYS = ("welcome", "vision", "requirements", "goals", "roles", "architecture")
_FILE_NAMES = {"blueprint": "BLUEPRINT.md", "prd": "PRD.md", "mvp": "MVP.md"}


def render_document(doc_type: str, project_name: str, responses: Mapping[str, str]) -> str:
    """Fill the ``doc_type`` template with the project's phase answers.

    Phases without an answer render as "Not defined yet".
    """
    fields = {key: (responses.get(key) or NOT_DEFINED) for key in _RESPONSE_KEYS}
    template = load_prompt(f"documents/{doc_type}.md")
    return template.format(project_name=project_name, **fields) + "\n"


def document_file_name(doc_type: str) -> str:
    return _FILE_NAMES.get(doc_type, f"{doc_type.upper()}.md")
