"""
Schema checks for project_status.json.

One schema ships with the package. Its validator is built on first use and
reused for every read and write.
"""

import json
from functools import lru_cache
from pathlib import Path

from jsonschema import Draft202012Validator

SCHEMA_PATH = Path(__file__).parent.parent / "schemas" / "project_status.schema.json"


class StatusSchemaError(Exception):
    """A status record does not match the bundled schema."""

    def __init__(self, problems: list[str], path: Path | None = None):
        self.problems = problems
        self.path = path
        where = f" for {path}" if path else ""
        super().__init__(f"Invalid project status{where}: " + "; ".join(problems))


@lru_cache(maxsize=None)
def status_validator() -> Draft202012Validator:
    schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
    Draft202012Validator.check_schema(schema)
    return Draft202012Validator(schema)


def _describe(error) -> str:
    location = "/".join(str(p) for p in error.absolute_path) or "(root)"
    return f"{location}: {error.message}"


def status_problems(data) -> list[str]:
    """Every schema violation in data, ordered by location. Empty when valid."""
    errors = sorted(
        status_validator().iter_errors(data),
        key=lambda e: [str(p) for p in e.absolute_path],
    )
    return [_describe(e) for e in errors]


def validate_status(data) -> None:
    """Raises StatusSchemaError listing every violation."""
    problems = status_problems(data)
    if problems:
        raise StatusSchemaError(problems)


def validate_status_before_write(data, path: Path) -> None:
    """Refuse to persist an invalid record to path."""
    problems = status_problems(data)
    if problems:
        raise StatusSchemaError(problems, path)
