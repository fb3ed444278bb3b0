from pydantic import BaseModel, Field, ValidationError


class EngineSettings(BaseModel):
    time_budget: float = Field(120.0, ge=0)
    default_stamina: float = Field(100.0, ge=0)
    time_weight: float = Field(0.5, ge=0)
    fatigue_weight: float = Field(0.5, ge=0)
    max_exercises: int | None = Field(12, ge=0)
    balance_enabled: bool = False
    balance_max_share: float = Field(0.4, gt=0, le=1)
    balance_min_selected: int = Field(4, ge=0)
    plate_increment: float = Field(2.5, gt=0)
    exploratory_weight: float = Field(20.0, ge=0)
    catalog_ttl_seconds: float = Field(3600.0, ge=0)
    gamma: float = Field(0.95, ge=0, le=1)


def validate_settings(data: dict) -> EngineSettings:
    try:
        return EngineSettings(**data)
    except ValidationError as e:
        raise ValueError(str(e))
