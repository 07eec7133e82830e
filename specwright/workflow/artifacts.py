"""
Artifact locations and "does this look finished" checks.

Project layout under <outputs>/projects/<project_id>/:
  questions/
    pm_questions.json
    ux_questions.json
    engineer_questions.json
  documents/
    prd.md
    design_brief.md
    technical_specification.md
"""

import json
import logging
from pathlib import Path

from specwright.lib.types import Agent

logger = logging.getLogger(__name__)

# Markers that mean a document is still a stub. Matched case-insensitively.
PLACEHOLDER_MARKERS = [
    "TODO",
    "PLACEHOLDER",
    "Coming soon",
    "TBD",
    "To be determined",
    "Fill this in",
]

# Question text written by templates before the agent fills them in.
QUESTION_PLACEHOLDERS = ["Waiting for", "placeholder"]


def questions_path(project_dir: Path, agent: Agent) -> Path:
    return project_dir / "questions" / f"{agent.value}_questions.json"


def document_path(project_dir: Path, document: str) -> Path:
    return project_dir / "documents" / f"{document}.md"


def questions_file_ok(path: Path) -> bool:
    """Questions JSON exists with at least one real question.

    Expects {"questions": [{"question": "...", "answer": "..."}, ...]}.
    """
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError):
        return False

    questions = data.get("questions") if isinstance(data, dict) else None
    if not isinstance(questions, list) or not questions:
        return False

    for q in questions:
        text = q.get("question") if isinstance(q, dict) else None
        if not isinstance(text, str) or not text.strip():
            return False
        if any(marker in text for marker in QUESTION_PLACEHOLDERS):
            return False

    return True


def markdown_file_ok(path: Path, min_length: int) -> bool:
    """Markdown exists, is at least min_length chars and has no placeholder markers."""
    try:
        content = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        return False

    if len(content.strip()) < min_length:
        return False

    upper = content.upper()
    return not any(marker.upper() in upper for marker in PLACEHOLDER_MARKERS)
