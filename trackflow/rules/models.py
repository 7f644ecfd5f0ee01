from pydantic import BaseModel, Field


class ProjectRules(BaseModel):
    slug: str
    rules_version: str


class IngestionRules(BaseModel):
    allowed_event_types: list[str]
    max_id_length: int = Field(default=128, ge=1)
    max_timestamp_age_seconds: int = Field(default=7 * 24 * 3600, ge=0)
    max_timestamp_future_seconds: int = Field(default=300, ge=0)


class HostRuleModel(BaseModel):
    source: str
    medium: str
    hosts: list[str]


class ClassifierRules(BaseModel):
    social: list[HostRuleModel]
    search: list[HostRuleModel]
    launch: list[HostRuleModel]


class AnalyticsRules(BaseModel):
    periods: dict[str, int]
    default_period: str = "30d"
    default_limit: int = Field(default=10, ge=1)
    max_limit: int = Field(default=100, ge=1)
    retention_weeks: int = Field(default=8, ge=1)
    max_funnel_steps: int = Field(default=10, ge=2)
    realtime_window_minutes: int = Field(default=5, ge=1)
    realtime_max_visitors: int = Field(default=20, ge=1)
    query_timeout_seconds: float = Field(default=10.0, gt=0)


class AuthRules(BaseModel):
    jwt_algorithm: str = "HS256"
    token_ttl_minutes: int = Field(default=60 * 24, ge=1)


class Rules(BaseModel):
    project: ProjectRules
    ingestion: IngestionRules
    classifier: ClassifierRules
    analytics: AnalyticsRules
    auth: AuthRules
