"""Configuration schema for metaloc using nested Pydantic models."""

from typing import Annotated, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..model.labels import LabelOption


class RepositoryConfig(BaseModel):
    """Dataverse environment configuration."""

    url: str = Field(
        ...,
        description="Environment URL (e.g., https://contoso.crm.dynamics.com)",
        pattern=r"^https?://.*",
    )
    token: str = Field(
        default="",
        description="OAuth bearer token; may be supplied through METALOC_TOKEN instead",
    )
    api_version: str = Field(
        default="9.2",
        description="Web API version",
        pattern=r"^\d+\.\d+$",
    )
    timeout: Annotated[float, Field(gt=0, le=600)] = Field(
        default=30.0,
        description="HTTP request timeout in seconds",
    )
    max_retries: Annotated[int, Field(ge=0, le=10)] = Field(
        default=3,
        description="Retries on request timeout, with exponential backoff",
    )
    locale_settle_seconds: Annotated[float, Field(ge=0, le=60)] = Field(
        default=2.0,
        description="Delay after switching the operator's locale before fetching localized layouts",
    )

    @field_validator("url")
    @classmethod
    def validate_repository_url(cls, v: str) -> str:
        """Validate and normalize environment URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("Repository URL must start with http:// or https://")
        return v.rstrip("/")


class ServicesConfig(BaseModel):
    """External services configuration."""

    repository: RepositoryConfig


class ExportOptionsConfig(BaseModel):
    """Which kinds of labels to export."""

    entities: bool = Field(default=True, description="Export table display names and descriptions")
    attributes: bool = Field(default=True, description="Export column display names and descriptions")
    relationships: bool = Field(default=True, description="Export relationship menu labels")
    local_option_sets: bool = Field(default=True, description="Export local choice values")
    global_option_sets: bool = Field(default=True, description="Export global choice values")
    booleans: bool = Field(default=True, description="Export yes/no option labels")
    views: bool = Field(default=True, description="Export view names and descriptions")
    charts: bool = Field(default=True, description="Export chart names and descriptions")
    forms: bool = Field(default=True, description="Export form names and descriptions")
    form_tabs: bool = Field(default=True, description="Export form tab captions")
    form_sections: bool = Field(default=True, description="Export form section captions")
    form_fields: bool = Field(default=True, description="Export form field captions")
    sitemaps: bool = Field(default=True, description="Export site map area, group and sub-area titles")
    dashboards: bool = Field(default=True, description="Export dashboard names and layout captions")
    label_option: Literal["both", "names", "descriptions"] = Field(
        default="both",
        description="Export names, descriptions, or both",
    )

    @property
    def label_filter(self) -> LabelOption:
        return LabelOption(self.label_option)

    @property
    def needs_form_snapshots(self) -> bool:
        return self.forms or self.form_tabs or self.form_sections or self.form_fields

    @property
    def needs_option_sets(self) -> bool:
        return self.local_option_sets or self.global_option_sets


class ExportConfig(BaseModel):
    """Export run configuration."""

    solution: str | None = Field(
        default=None,
        description="Unique name of the solution whose tables are exported",
    )
    tables: list[str] = Field(
        default_factory=list,
        description="Explicit table logical names, used instead of a solution",
    )
    all_languages: bool = Field(
        default=True,
        description="Export every installed language",
    )
    languages: list[Annotated[int, Field(gt=0)]] = Field(
        default_factory=list,
        description="Language codes to export when all_languages is false; the base language is always added",
    )
    options: ExportOptionsConfig = Field(default_factory=ExportOptionsConfig)
    output_path: str = Field(
        default="translations.xlsx",
        description="Path of the workbook to write",
    )

    @field_validator("tables")
    @classmethod
    def normalize_tables(cls, v: list[str]) -> list[str]:
        """Logical names are lowercase."""
        return [name.strip().lower() for name in v if name.strip()]


class ImportConfig(BaseModel):
    """Import run configuration."""

    progress_log_interval: Annotated[int, Field(ge=1, le=10000)] = Field(
        default=10,
        description="Log a progress line every N processed units",
    )
    baseline_path: str | None = Field(
        default=None,
        description="Previously exported workbook; cells equal to it are not written back",
    )


class LocalizationConfig(BaseModel):
    """Localization configuration."""

    language: str = Field(
        default="en",
        description="Language code for operator messages",
        pattern=r"^[a-z]{2}$",
    )

    @field_validator("language")
    @classmethod
    def validate_language(cls, v: str) -> str:
        """Validate and normalize language code."""
        return v.lower()


class SystemConfig(BaseModel):
    """System configuration."""

    localization: LocalizationConfig = Field(default_factory=LocalizationConfig)


class MetalocConfig(BaseModel):
    """
    Configuration model for metaloc with nested structure.

    This model defines all configuration options with validation,
    type hints, and default values.
    """

    services: ServicesConfig
    export: ExportConfig = Field(default_factory=ExportConfig)
    import_settings: ImportConfig = Field(default_factory=ImportConfig)
    system: SystemConfig = Field(default_factory=SystemConfig)

    model_config: ClassVar[ConfigDict] = ConfigDict(
        str_strip_whitespace=True,
        validate_assignment=True,
        extra="forbid",
        frozen=False,
    )
