from typing import Literal

from pydantic import BaseModel, ValidationError, field_validator


class SettingsSchema(BaseModel):
    db_path: str = "tracker.db"
    storage_key: str = "miprogreso_db"
    weight_unit: Literal["kg", "lb"] = "kg"
    export_indent: int = 2
    log_level: str = "WARNING"

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"unknown log level: {value}")
        return level


def validate_settings(data: dict) -> SettingsSchema:
    try:
        return SettingsSchema(**data)
    except ValidationError as e:
        raise ValueError(str(e))
