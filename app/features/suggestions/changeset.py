"""
Suggestion change-sets.

A change-set travels and is stored in this shape:

    {
        "name": {"old": "Acme", "new": "Acme Ltd"},
        "files": {"new": {"added": ["<file id>"], "removed": ["<file id>"]}},
        "service_points": {"new": {
            "updates": [{"id": "<sp id>", "diff": {"notes": {"new": "..."}}}],
            "deletes": ["<sp id>"],
        }},
    }

and is parsed into a list of typed entries so the apply step never has to
guess at the shape of a value.
"""
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter, ValidationError

FILES_KEY = "files"
SERVICE_POINTS_KEY = "service_points"
_SERVICE_POINTS_ALIASES = (SERVICE_POINTS_KEY, "servicePoints")

# Contractor fields a suggestion may change. Visibility is gated by the hide
# permissions and is never proposable.
PROPOSABLE_FIELDS = frozenset({
    "name",
    "inn",
    "has_chain",
    "status",
    "general_description",
    "general_notes",
    "general_individual_terms",
    "primary_city_id",
    "agreement_id",
    "manager_id",
})


class ChangeSetError(ValueError):
    """The change-set is malformed or empty."""


class FieldChange(BaseModel):
    kind: Literal["field"] = "field"
    field: str
    old: Any = None
    new: Any = None


class FileAddition(BaseModel):
    kind: Literal["file_addition"] = "file_addition"
    file_ids: list[str]


class FileRemoval(BaseModel):
    kind: Literal["file_removal"] = "file_removal"
    file_ids: list[str]


class ServicePointChange(BaseModel):
    kind: Literal["service_point_update"] = "service_point_update"
    service_point_id: str
    fields: dict[str, Any]


class ServicePointRemoval(BaseModel):
    kind: Literal["service_point_removal"] = "service_point_removal"
    service_point_ids: list[str]


Change = Annotated[
    Union[FieldChange, FileAddition, FileRemoval, ServicePointChange, ServicePointRemoval],
    Field(discriminator="kind"),
]


class _FilesDiff(BaseModel):
    added: list[str] = Field(default_factory=list)
    removed: list[str] = Field(default_factory=list)


class _ServicePointUpdate(BaseModel):
    id: str
    diff: dict[str, Any] = Field(default_factory=dict)


class _ServicePointsDiff(BaseModel):
    updates: list[_ServicePointUpdate] = Field(default_factory=list)
    deletes: list[str] = Field(default_factory=list)


_files_adapter = TypeAdapter(_FilesDiff)
_service_points_adapter = TypeAdapter(_ServicePointsDiff)


def _unwrap_new(key: str, value: Any) -> Any:
    if not isinstance(value, dict) or "new" not in value:
        raise ChangeSetError(f"Change for '{key}' must be an object with a 'new' value")
    return value["new"]


class ChangeSet(BaseModel):
    entries: list[Change] = Field(default_factory=list)

    @classmethod
    def parse(cls, raw: Any) -> "ChangeSet":
        """
        Parse the wire/storage shape into typed entries.

        Raises:
            ChangeSetError: if the payload is not an object, an entry is malformed,
            a field cannot be proposed, or nothing would change
        """
        if not isinstance(raw, dict):
            raise ChangeSetError("changes must be an object")

        entries: list = []
        for key, value in raw.items():
            if key == FILES_KEY:
                try:
                    files = _files_adapter.validate_python(_unwrap_new(key, value))
                except ValidationError:
                    raise ChangeSetError("files change must list 'added' and 'removed' ids")
                if files.added:
                    entries.append(FileAddition(file_ids=list(dict.fromkeys(files.added))))
                if files.removed:
                    entries.append(FileRemoval(file_ids=list(dict.fromkeys(files.removed))))
            elif key in _SERVICE_POINTS_ALIASES:
                try:
                    points = _service_points_adapter.validate_python(_unwrap_new(key, value))
                except ValidationError:
                    raise ChangeSetError("service_points change must list 'updates' and 'deletes'")
                for point in points.updates:
                    fields = {
                        name: _unwrap_new(f"{key}.{point.id}.{name}", diff)
                        for name, diff in point.diff.items()
                        # service point attachments are not part of the workflow
                        if name != FILES_KEY
                    }
                    if fields:
                        entries.append(ServicePointChange(service_point_id=point.id, fields=fields))
                if points.deletes:
                    entries.append(ServicePointRemoval(service_point_ids=list(dict.fromkeys(points.deletes))))
            elif key in PROPOSABLE_FIELDS:
                old = value.get("old") if isinstance(value, dict) else None
                entries.append(FieldChange(field=key, old=old, new=_unwrap_new(key, value)))
            else:
                raise ChangeSetError(f"Field '{key}' cannot be changed by a suggestion")

        if not entries:
            raise ChangeSetError("changes must not be empty")
        return cls(entries=entries)

    @classmethod
    def from_diff(cls, old: dict, new: dict) -> "ChangeSet":
        """Build field changes for every key of `new` whose value differs from `old`."""
        entries = [
            FieldChange(field=key, old=old.get(key), new=value)
            for key, value in new.items()
            if old.get(key) != value
        ]
        for entry in entries:
            if entry.field not in PROPOSABLE_FIELDS:
                raise ChangeSetError(f"Field '{entry.field}' cannot be changed by a suggestion")
        if not entries:
            raise ChangeSetError("changes must not be empty")
        return cls(entries=entries)

    def of_kind(self, kind: type) -> list:
        return [entry for entry in self.entries if isinstance(entry, kind)]

    @property
    def field_changes(self) -> list[FieldChange]:
        return self.of_kind(FieldChange)

    @property
    def added_file_ids(self) -> list[str]:
        return [file_id for entry in self.of_kind(FileAddition) for file_id in entry.file_ids]

    @property
    def removed_file_ids(self) -> list[str]:
        return [file_id for entry in self.of_kind(FileRemoval) for file_id in entry.file_ids]

    @property
    def service_point_changes(self) -> list[ServicePointChange]:
        return self.of_kind(ServicePointChange)

    @property
    def removed_service_point_ids(self) -> list[str]:
        return [sp_id for entry in self.of_kind(ServicePointRemoval) for sp_id in entry.service_point_ids]

    def to_payload(self) -> dict:
        """Serialize back to the storage shape."""
        payload: dict[str, Any] = {}
        for change in self.field_changes:
            payload[change.field] = {"old": change.old, "new": change.new}

        if self.added_file_ids or self.removed_file_ids:
            payload[FILES_KEY] = {"new": {"added": self.added_file_ids, "removed": self.removed_file_ids}}

        updates = [
            {"id": change.service_point_id, "diff": {k: {"new": v} for k, v in change.fields.items()}}
            for change in self.service_point_changes
        ]
        deletes = self.removed_service_point_ids
        if updates or deletes:
            payload[SERVICE_POINTS_KEY] = {"new": {"updates": updates, "deletes": deletes}}

        return payload
