"""
Pydantic models for leftwm state snapshots.

leftwm writes one JSON object per line to its state socket. Each object is
decoded into a Snapshot at the socket boundary so the formatter never sees
a half-valid document.
"""

from typing import FrozenSet, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictInt, ValidationError, field_validator

from .errors import SnapshotDecodeError


class Viewport(BaseModel):
    """A screen region that leftwm assigns tags to and one bar renders."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    x: StrictInt = Field(..., description="Left edge in pixels")
    y: StrictInt = Field(..., description="Top edge in pixels")
    w: StrictInt = Field(..., ge=0, description="Width in pixels")
    tags: List[str] = Field(default_factory=list, description="Tags shown on this viewport")

    @property
    def tag_set(self) -> FrozenSet[str]:
        return frozenset(self.tags)


class Snapshot(BaseModel):
    """One complete leftwm state report."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    viewports: List[Viewport] = Field(..., description="Viewports in stable order")
    desktop_names: List[str] = Field(..., description="All tag names, in display order")
    active_desktop: List[str] = Field(..., description="Tags currently focused")
    window_title: Optional[str] = Field(..., description="Title of the focused window")

    @field_validator('window_title')
    @classmethod
    def normalize_title(cls, v: Optional[str]) -> str:
        """leftwm reports null when nothing is focused."""
        return v or ""

    @property
    def active_set(self) -> FrozenSet[str]:
        return frozenset(self.active_desktop)

    @property
    def visible_tags(self) -> FrozenSet[str]:
        """Union of the tags shown on every viewport."""
        tags = set()
        for viewport in self.viewports:
            tags.update(viewport.tags)
        return frozenset(tags)

    def viewport_tags(self, index: int) -> FrozenSet[str]:
        """Tags of viewport `index`, empty when the index is out of range."""
        if 0 <= index < len(self.viewports):
            return self.viewports[index].tag_set
        return frozenset()

    @classmethod
    def from_line(cls, line: str) -> 'Snapshot':
        """Decode one line read from the state socket.

        Args:
            line: A single JSON document

        Returns:
            Validated Snapshot

        Raises:
            SnapshotDecodeError: If the line is not JSON or violates the schema
        """
        try:
            return cls.model_validate_json(line)
        except ValidationError as e:
            errors = e.errors()
            if any(err["type"] == "json_invalid" for err in errors):
                raise SnapshotDecodeError("line is not valid JSON", invalid_json=True) from e
            fields = [".".join(str(part) for part in err["loc"]) for err in errors]
            raise SnapshotDecodeError(
                f"{len(errors)} schema error(s) at {', '.join(fields)}",
                fields=fields
            ) from e
