"""
Identifier filters for find / count / find_one / remove_many.

Filters match on the identifier only; entity contents are opaque.
Unknown keys are rejected rather than silently ignored.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Iterable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from blobfs.core.errors import BadRequestError


class FindFilters(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    search: str | None = None  # substring
    pattern: str | None = None  # fnmatch glob, e.g. "reports/*.pdf"
    prefix: str | None = None
    sort: Literal["asc", "desc"] | None = None
    offset: int = Field(default=0, ge=0)
    limit: int | None = Field(default=None, ge=0)

    def matches(self, identifier: str) -> bool:
        if self.prefix is not None and not identifier.startswith(self.prefix):
            return False
        if self.search is not None and self.search not in identifier:
            return False
        if self.pattern is not None and not fnmatch.fnmatchcase(identifier, self.pattern):
            return False
        return True

    def apply(self, identifiers: Iterable[str], *, paginate: bool = True) -> list[str]:
        """Filter, order and (optionally) page a sequence of identifiers."""
        selected = sorted(
            (i for i in identifiers if self.matches(i)),
            reverse=self.sort == "desc",
        )
        if not paginate:
            return selected
        end = None if self.limit is None else self.offset + self.limit
        return selected[self.offset : end]


def parse_filters(value: Any) -> FindFilters:
    """Coerce None, a dict or a FindFilters into FindFilters."""
    if value is None:
        return FindFilters()
    if isinstance(value, FindFilters):
        return value
    if isinstance(value, dict):
        try:
            return FindFilters.model_validate(value)
        except ValidationError as e:
            raise BadRequestError(
                f"Invalid filters:\n{e}", data={"errors": e.errors(include_url=False)}
            ) from e
    raise BadRequestError(f"Filters must be a mapping, got {type(value).__name__}")
