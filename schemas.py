from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from tiers import ReportSettings


class TierIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., min_length=1, max_length=100)
    categories: list[str] = Field(default_factory=list)
    color: Optional[str] = Field(default=None, max_length=9)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Tier name must not be blank")
        return value

    @field_validator("categories")
    @classmethod
    def _clean_categories(cls, value: list[str]) -> list[str]:
        cleaned: list[str] = []
        for category in value:
            category = category.strip()
            if category and category not in cleaned:
                cleaned.append(category)
        return cleaned


class SettingsIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tiers: list[TierIn] = Field(default_factory=list)
    subcategory_depth: int = Field(default=0, ge=0, le=10)

    @model_validator(mode="after")
    def _unique_tier_names(self) -> "SettingsIn":
        names = [tier.name for tier in self.tiers]
        if len(names) != len(set(names)):
            raise ValueError("Tier names must be unique")
        return self

    @classmethod
    def from_settings(cls, settings: ReportSettings) -> "SettingsIn":
        return cls(
            tiers=[
                TierIn(name=t.name, categories=list(t.categories), color=t.color)
                for t in settings.tiers
            ],
            subcategory_depth=settings.subcategory_depth,
        )


class CategoryIn(BaseModel):
    category: str = Field(..., min_length=1, max_length=200)
