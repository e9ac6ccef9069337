"""Tests for the configuration schema."""

import pytest
from pydantic import ValidationError

from metaloc.config.schema import (
    ExportConfig,
    ExportOptionsConfig,
    ImportConfig,
    LocalizationConfig,
    MetalocConfig,
    RepositoryConfig,
    ServicesConfig,
)
from metaloc.model.labels import LabelOption


class TestRepositoryConfig:
    """Test repository connection settings."""

    def test_defaults(self) -> None:
        config = RepositoryConfig(url="https://contoso.crm.dynamics.com/")

        assert config.url == "https://contoso.crm.dynamics.com"
        assert config.token == ""
        assert config.api_version == "9.2"
        assert config.timeout == 30.0
        assert config.max_retries == 3
        assert config.locale_settle_seconds == 2.0

    @pytest.mark.parametrize("url", ["contoso.crm.dynamics.com", "ftp://contoso"])
    def test_invalid_url(self, url: str) -> None:
        with pytest.raises(ValidationError):
            _ = RepositoryConfig(url=url)

    def test_bounds(self) -> None:
        with pytest.raises(ValidationError):
            _ = RepositoryConfig(url="https://x", timeout=0)
        with pytest.raises(ValidationError):
            _ = RepositoryConfig(url="https://x", max_retries=11)
        with pytest.raises(ValidationError):
            _ = RepositoryConfig(url="https://x", api_version="v9")


class TestExportConfig:
    """Test export selection settings."""

    def test_tables_normalized(self) -> None:
        config = ExportConfig(tables=[" Account ", "", "CONTACT"])

        assert config.tables == ["account", "contact"]

    def test_language_codes_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            _ = ExportConfig(languages=[0])

    def test_label_filter(self) -> None:
        options = ExportOptionsConfig(label_option="descriptions")

        assert options.label_filter is LabelOption("descriptions")

    def test_invalid_label_option(self) -> None:
        with pytest.raises(ValidationError):
            _ = ExportOptionsConfig(label_option="titles")  # pyright: ignore[reportArgumentType]

    def test_needs_form_snapshots(self) -> None:
        assert ExportOptionsConfig().needs_form_snapshots
        assert ExportOptionsConfig(form_fields=True, forms=False, form_tabs=False, form_sections=False).needs_form_snapshots
        assert not ExportOptionsConfig(
            forms=False, form_tabs=False, form_sections=False, form_fields=False
        ).needs_form_snapshots


class TestMetalocConfig:
    """Test the root configuration model."""

    def test_defaults(self, base_config: MetalocConfig) -> None:
        assert base_config.export == ExportConfig()
        assert base_config.import_settings == ImportConfig()
        assert base_config.system.localization.language == "en"

    def test_extra_keys_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _ = MetalocConfig(
                services=ServicesConfig(repository=RepositoryConfig(url="https://x")),
                unknown=True,  # pyright: ignore[reportCallIssue]
            )

    def test_validate_assignment(self, base_config: MetalocConfig) -> None:
        with pytest.raises(ValidationError):
            base_config.import_settings = "fast"  # pyright: ignore[reportAttributeAccessIssue]

    def test_import_interval_bounds(self) -> None:
        with pytest.raises(ValidationError):
            _ = ImportConfig(progress_log_interval=0)

    def test_localization_language(self) -> None:
        with pytest.raises(ValidationError):
            _ = LocalizationConfig(language="english")
