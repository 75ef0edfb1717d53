from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, StrictInt, field_validator

# --- Stored documents ---


class Company(BaseModel):
    """Parent document in federation mode."""

    id: str = Field(..., min_length=1, description="Unique exact-match key")
    name: str = Field(..., description="Free text; also sortable through name.keyword")


class Report(BaseModel):
    """Child document in federation mode, joined to Company through company_id."""

    id: str = Field(..., min_length=1, description="Unique exact-match key")
    name: str = Field(..., description="Free text")
    company_id: str = Field(..., min_length=1, description="Foreign key referencing Company.id")
    tags: list[str] = Field(default_factory=list, description="Matched as text or through tags.keyword")
    status: str = Field(..., description="Exact-match status, e.g. 'published' or 'draft'")


class NestedChild(BaseModel):
    """Embedded child object; it only exists inside its parent document."""

    name: str
    grade: int
    hobbies: str = ""


class NestedParent(BaseModel):
    """Parent document in nested mode with its embedded children."""

    name: str
    age: int
    children: list[NestedChild] = Field(default_factory=list)


# --- Filters ---


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class _Filter(BaseModel):
    """Base for filter records: every field optional, unknown keys ignored."""

    model_config = ConfigDict(extra="ignore")

    def is_empty(self) -> bool:
        """True when no field would contribute a query clause."""
        return not any(value is not None for value in self.model_dump().values())


class CompanyFilter(_Filter):
    id: str | None = None
    name: str | None = None

    @field_validator("id", "name", mode="before")
    @classmethod
    def _strip(cls, v: object) -> object:
        return _blank_to_none(v)


class ReportFilter(_Filter):
    id: str | None = None
    name: str | None = None
    tags: list[str] | None = None
    status: str | None = None

    @field_validator("id", "name", "status", mode="before")
    @classmethod
    def _strip(cls, v: object) -> object:
        return _blank_to_none(v)

    @field_validator("tags")
    @classmethod
    def _clean_tags(cls, v: list[str] | None) -> list[str] | None:
        """Drop blanks and duplicates, preserving order; an empty result means no tag filter."""
        if v is None:
            return None
        seen: set[str] = set()
        out: list[str] = []
        for tag in v:
            t = tag.strip()
            if t and t not in seen:
                seen.add(t)
                out.append(t)
        return out or None


class ParentFilter(_Filter):
    name: str | None = None
    age: StrictInt | None = None

    @field_validator("name", mode="before")
    @classmethod
    def _strip(cls, v: object) -> object:
        return _blank_to_none(v)


class ChildFilter(_Filter):
    name: str | None = None
    grade: StrictInt | None = None
    hobbies: str | None = None

    @field_validator("name", "hobbies", mode="before")
    @classmethod
    def _strip(cls, v: object) -> object:
        return _blank_to_none(v)


__all__ = [
    "Company",
    "Report",
    "NestedChild",
    "NestedParent",
    "CompanyFilter",
    "ReportFilter",
    "ParentFilter",
    "ChildFilter",
]
