import os
import yaml

from settings_schema import SettingsSchema, validate_settings


class YamlConfig:
    """Load and save settings to a YAML file."""

    ENV_OVERRIDES = {
        "MINDREP_DB_PATH": "db_path",
        "MINDREP_LOG_LEVEL": "log_level",
    }

    def __init__(self, path: str = "settings.yaml") -> None:
        self.path = path

    def load(self) -> dict:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"{self.path} must contain a mapping")
        return data

    def save(self, data: dict) -> None:
        with open(self.path, "w", encoding="utf-8") as f:
            yaml.safe_dump(dict(data), f)

    def settings(self) -> SettingsSchema:
        """Return validated settings with environment overrides applied."""
        data = self.load()
        for env_key, key in self.ENV_OVERRIDES.items():
            value = os.environ.get(env_key)
            if value:
                data[key] = value
        return validate_settings(data)
