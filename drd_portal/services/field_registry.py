"""
Addressable fields for reviewer edit suggestions

Each submission kind exposes a closed set of fields. A suggestion names one of
them; accepting it goes through the field's setter, so no free-form path is
ever applied to the payload.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Type

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, create_model

from drd_portal.core.exceptions import ValidationError, UnknownFieldError
from drd_portal.models.submission import Submission
from drd_portal.schemas.payloads import SubmissionPayload


class _TitleValue(BaseModel):
    value: str = Field(..., min_length=1, max_length=500)


def _first_error(exc: PydanticValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    return errors[0].get("msg", str(exc))


@dataclass(frozen=True)
class EditableField:
    name: str
    path: str
    value_model: Type[BaseModel]

    def validate(self, value: Any) -> Any:
        """Validate a candidate value and return its JSON-friendly form"""
        try:
            parsed = self.value_model(value=value)
        except PydanticValidationError as e:
            raise ValidationError(f"Invalid value for '{self.name}': {_first_error(e)}", field=self.name)
        return parsed.model_dump(mode="json")["value"]

    def read(self, submission: Submission) -> Any:
        if self.path == "title":
            return submission.title
        return (submission.payload or {}).get(self.name)

    def write(self, submission: Submission, value: Any) -> None:
        value = self.validate(value)
        if self.path == "title":
            submission.title = value
            return
        # Reassign so the JSON column is flagged as changed
        payload = dict(submission.payload or {})
        payload[self.name] = value
        submission.payload = payload


TITLE_FIELD = EditableField(name="title", path="title", value_model=_TitleValue)


def payload_field(payload_model: Type[SubmissionPayload], name: str) -> EditableField:
    """Field backed by one attribute of a kind's payload model"""
    info = payload_model.model_fields[name]
    value_model = create_model(
        f"{payload_model.__name__}_{name}",
        value=(info.annotation, info),
    )
    return EditableField(name=name, path=f"payload.{name}", value_model=value_model)


class FieldRegistry:
    def __init__(self, kind: str, fields: Iterable[EditableField]):
        self.kind = kind
        self._fields: Dict[str, EditableField] = {f.name: f for f in fields}

    def get(self, name: str) -> EditableField:
        field = self._fields.get(name)
        if field is None:
            raise UnknownFieldError(name, self.kind)
        return field

    def __contains__(self, name: str) -> bool:
        return name in self._fields

    @property
    def names(self) -> List[str]:
        return list(self._fields)


def build_registry(kind: str, payload_model: Type[SubmissionPayload], names: Iterable[str]) -> FieldRegistry:
    fields = []
    for name in names:
        fields.append(TITLE_FIELD if name == "title" else payload_field(payload_model, name))
    return FieldRegistry(kind, fields)
