import logging
from pathlib import Path
from typing import List

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from models.schema import PunchKind

DEFAULT_CONFIG = {
    "overtime": {
        "threshold_hours": 40.0,
        "multiplier": 1.5,
    },
    "schedule": {
        "workdays": [0, 1, 2, 3, 4],
        "start_hour": 7.0,
        "end_hour": 16.0,
        "lunch_start": 12.0,
        "lunch_end": 13.0,
    },
    "break_kinds": ["meal", "rest"],
}


class OvertimeSettings(BaseModel):
    """Weekly overtime rule"""
    threshold_hours: float = Field(40.0, ge=0, description="Weekly work hours before overtime applies")
    multiplier: float = Field(1.5, ge=1, description="Pay multiplier for hours above the threshold")


class ScheduleSettings(BaseModel):
    """Expected weekly schedule used for progress estimates"""
    workdays: List[int] = Field([0, 1, 2, 3, 4], description="Scheduled weekdays, Monday=0")
    start_hour: float = Field(7.0, ge=0, le=24)
    end_hour: float = Field(16.0, ge=0, le=24)
    lunch_start: float = Field(12.0, ge=0, le=24)
    lunch_end: float = Field(13.0, ge=0, le=24)

    @field_validator("workdays")
    @classmethod
    def check_workdays(cls, value: List[int]) -> List[int]:
        for day in value:
            if day < 0 or day > 6:
                raise ValueError(f"workday {day} is not a weekday number (0-6)")
        return sorted(set(value))

    @model_validator(mode="after")
    def check_order(self) -> "ScheduleSettings":
        if not self.start_hour <= self.lunch_start <= self.lunch_end <= self.end_hour:
            raise ValueError("schedule must satisfy start <= lunch_start <= lunch_end <= end")
        return self

    @property
    def morning_hours(self) -> float:
        return self.lunch_start - self.start_hour

    @property
    def daily_hours(self) -> float:
        return (self.end_hour - self.start_hour) - (self.lunch_end - self.lunch_start)


class EngineSettings(BaseModel):
    overtime: OvertimeSettings = OvertimeSettings()
    schedule: ScheduleSettings = ScheduleSettings()
    break_kinds: List[PunchKind] = [PunchKind.MEAL, PunchKind.REST]

    @field_validator("break_kinds")
    @classmethod
    def check_break_kinds(cls, value: List[PunchKind]) -> List[PunchKind]:
        if PunchKind.WORK in value:
            raise ValueError("work is not a break kind")
        return value


def _deep_merge(base: dict, override: dict) -> dict:
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(path: str = "config.yaml") -> EngineSettings:
    """Load YAML settings merged over the defaults. A missing file yields the defaults."""
    config_path = Path(path)
    if config_path.exists():
        with open(config_path, "r", encoding="utf-8") as f:
            user_config = yaml.safe_load(f) or {}
        logging.info(f"Loaded engine configuration from {config_path}")
        return EngineSettings(**_deep_merge(DEFAULT_CONFIG, user_config))
    return EngineSettings(**DEFAULT_CONFIG)
