"""Explicit configuration for the reconciliation pipeline"""

from pydantic import BaseModel, ConfigDict, Field

from ... import config


class SyncSettings(BaseModel):
    """Immutable settings handed to the reconciler, materializer and sync service"""

    model_config = ConfigDict(frozen=True)

    platform_fee_percentage: float = 7.0
    operating_timezone: str = "America/Los_Angeles"
    default_category_by_platform: dict[str, str] = Field(default_factory=dict)
    default_category_name: str = "Platform Services"
    platform_icon_by_platform: dict[str, str] = Field(default_factory=dict)
    default_platform_icon: str = "calendar"
    lookback_days: int = 1
    lookahead_days: int = 7

    @classmethod
    def from_env(cls) -> "SyncSettings":
        return cls(
            platform_fee_percentage=config.PLATFORM_FEE_PERCENTAGE,
            operating_timezone=config.OPERATING_TIMEZONE,
            default_category_by_platform=dict(config.DEFAULT_CATEGORY_BY_PLATFORM),
            default_category_name=config.DEFAULT_CATEGORY_NAME,
            platform_icon_by_platform=dict(config.PLATFORM_ICON_BY_PLATFORM),
            default_platform_icon=config.DEFAULT_PLATFORM_ICON,
            lookback_days=config.SYNC_LOOKBACK_DAYS,
            lookahead_days=config.SYNC_LOOKAHEAD_DAYS,
        )

    def default_category_for(self, platform: str) -> str:
        return self.default_category_by_platform.get(platform, self.default_category_name)

    def icon_for(self, platform: str) -> str:
        return self.platform_icon_by_platform.get(platform, self.default_platform_icon)
