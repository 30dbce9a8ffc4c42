from pydantic import BaseModel, ConfigDict

from seminar_backend.core.errors import ValidationError
from seminar_backend.models.ids import is_valid_id


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


def require_valid_id(value: str | None, label: str = 'id') -> str:
    if not is_valid_id(value):
        raise ValidationError(f'Invalid {label}')
    return value.lower()


def clean_text(value: str | None) -> str | None:
    if value is None:
        return None
    return value.strip()
