"""Debug scoping configuration models.

Encodes the ``logger-debug.json`` contract: simple allow-lists of
identities and applications, plus ordered "between" rules that open and
close observation ranges across a stream of log calls. Field names
accept both the snake_case Python names and the camelCase keys used in
the JSON file.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, StrictBool, StrictStr


class BetweenRule(BaseModel):
    """A stateful range filter activated and deactivated by pattern matches."""

    model_config = {"extra": "forbid", "populate_by_name": True}

    action: Literal["include", "exclude"]
    exact_match: StrictBool = Field(default=False, alias="exactMatch")
    search_log: StrictBool = Field(default=False, alias="searchLog")
    start_identities: list[StrictStr] = Field(alias="startIdentities")
    end_identities: list[StrictStr] = Field(alias="endIdentities")


class ScopingConfig(BaseModel):
    """Scoping section of the debug configuration."""

    model_config = {"extra": "forbid", "populate_by_name": True}

    status: Literal["enabled", "disabled"]
    filter_identities: list[StrictStr] = Field(
        default_factory=list, alias="filterIdentities"
    )
    filtered_applications: list[StrictStr] = Field(
        default_factory=list, alias="filteredApplications"
    )
    between: list[BetweenRule] = Field(default_factory=list)

    @property
    def enabled(self) -> bool:
        return self.status == "enabled"

    @property
    def has_filters(self) -> bool:
        """True when at least one allow-list entry or between rule exists."""
        return bool(self.filter_identities or self.filtered_applications or self.between)


class DebugConfig(BaseModel):
    """Root of a ``logger-debug.json`` document. Unrelated sections are ignored."""

    model_config = {"extra": "ignore"}

    scoping: ScopingConfig
