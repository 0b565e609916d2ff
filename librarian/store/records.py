"""JSON records exchanged through the key-value store.

Field names are camelCase on the wire (``userId``, ``totalBooks``) and
snake_case in Python.
"""

import json
import re
from datetime import datetime, timezone
from typing import Any

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    field_validator,
)
from pydantic.alias_generators import to_camel

from librarian.utils.exceptions import BookValidationError

MISSING_REQUIRED_FIELDS = "Missing required fields: title and author"
UNKNOWN_TITLE = "Unknown"

_YEAR_ONLY = re.compile(r"^-?\d{1,4}$")


def utc_timestamp() -> str:
    """ISO-8601 UTC timestamp with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace(
        "+00:00", "Z"
    )


def format_success_rate(success_count: int, total_books: int) -> str:
    """Success percentage with two decimals, or ``N/A`` for an empty batch."""
    if total_books <= 0:
        return "N/A"
    return f"{success_count / total_books * 100:.2f}%"


class WireRecord(BaseModel):
    """Base for records stored as JSON strings."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class BookSubmission(WireRecord):
    """One validated entry from a pending batch."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        extra="ignore",
    )

    title: str
    author: str
    isbn: str | None = None
    published_year: int | None = None
    genre: str | None = None
    description: str | None = None

    @classmethod
    def from_raw(cls, raw: Any) -> "BookSubmission":
        """
        Validate an unvalidated submission mapping.

        Empty strings in optional fields are treated as absent. ``publishedDate``
        may be a year or an ISO-8601 date; only the year is kept.

        Raises:
            BookValidationError: If title/author are missing or a field is invalid
        """
        if not isinstance(raw, dict) or not (
            _is_present(raw.get("title")) and _is_present(raw.get("author"))
        ):
            raise BookValidationError(MISSING_REQUIRED_FIELDS)

        fields = {key: (None if value == "" else value) for key, value in raw.items()}
        if fields.get("publishedYear") is None and fields.get("publishedDate") is not None:
            fields["publishedYear"] = parse_published_year(fields["publishedDate"])

        try:
            return cls.model_validate(fields)
        except ValidationError as e:
            problems = ", ".join(
                f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
                for err in e.errors()
            )
            raise BookValidationError(f"Invalid book fields: {problems}") from e


def submission_title(raw: Any) -> str:
    """Title to report for a submission, valid or not."""
    if isinstance(raw, dict) and _is_present(raw.get("title")):
        return str(raw["title"])
    return UNKNOWN_TITLE


def parse_published_year(value: Any) -> int:
    """
    Reduce a publication date to its year.

    Raises:
        BookValidationError: If the value is not a year or an ISO-8601 date
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        text = value.strip()
        if _YEAR_ONLY.match(text):
            return int(text)
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00")).year
        except ValueError:
            pass
    raise BookValidationError(f"Invalid publishedDate: {value!r}")


def _is_present(value: Any) -> bool:
    if isinstance(value, str):
        return bool(value.strip())
    return value is not None and value is not False


class FailureDetail(WireRecord):
    """A rejected submission: its original position, title and error text."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True
    )

    index: int = 0
    title: str = UNKNOWN_TITLE
    error: str = ""

    @field_validator("title", "error", mode="before")
    @classmethod
    def blank_to_default(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None or v == "":
            return UNKNOWN_TITLE if info.field_name == "title" else ""
        return v


class BatchStatus(WireRecord):
    """Outcome summary of one ingestion pass over a user's pending batch."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, coerce_numbers_to_str=True
    )

    user_id: str = Field(min_length=1)
    total_books: int
    success_count: int = 0
    failure_count: int = 0
    timestamp: str | None = None
    failures: list[FailureDetail] = Field(default_factory=list)

    @field_validator("success_count", "failure_count", "failures", mode="before")
    @classmethod
    def null_to_empty(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None:
            return [] if info.field_name == "failures" else 0
        return v

    @classmethod
    def from_record(cls, raw: str) -> "BatchStatus | None":
        """
        Parse a stored status record for reporting.

        Only a missing ``userId`` or ``totalBooks`` makes a record unusable;
        other fields are coerced (numeric ids to text, null lists to empty,
        untitled failures to ``Unknown``).

        Returns:
            The status, or None if the record is malformed
        """
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            return None
        if not isinstance(data, dict) or not data.get("userId") or data.get("totalBooks") is None:
            return None
        try:
            return cls.model_validate(data)
        except ValidationError:
            return None

    def record_success(self) -> None:
        self.success_count += 1

    def record_failure(self, index: int, title: str, error: str) -> None:
        self.failure_count += 1
        self.failures.append(FailureDetail(index=index, title=title, error=error))

    @property
    def success_rate(self) -> str:
        return format_success_rate(self.success_count, self.total_books)

    @property
    def has_failures(self) -> bool:
        return self.failure_count > 0 or bool(self.failures)


class BatchErrorRecord(WireRecord):
    """Written when a whole batch could not be processed."""

    user_id: str
    error: str
    timestamp: str = Field(default_factory=utc_timestamp)
    status: str = "failed"


class ReportErrorRecord(WireRecord):
    """Written when a status report could not be rendered or sent.

    ``retry_count`` is always written as zero and nothing reads it back.
    """

    user_id: str
    original_key: str
    error: str
    timestamp: str = Field(default_factory=utc_timestamp)
    retry_count: int = 0
