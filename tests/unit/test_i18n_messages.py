"""
Tests for the internationalization (i18n) module.

Covers fallback to source strings, catalog loading and message formatting.
"""

from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest

from metaloc import i18n


@pytest.fixture(autouse=True)
def reset_i18n() -> None:
    """Restore the source-string translator before each test."""
    i18n._ = lambda x: x
    i18n._current_language = "en"  # pyright: ignore[reportPrivateUsage]


class TestI18nModule:
    """Test cases for the i18n module."""

    def test_setup_without_catalog_falls_back(self, tmp_path: Path) -> None:
        """Test that a missing catalog keeps the source strings."""
        i18n.setup_i18n("fr", locale_dir=tmp_path)

        assert i18n.get_current_language() == "fr"
        assert i18n.t("Reading workbook...") == "Reading workbook..."

    def test_setup_uses_catalog(self, tmp_path: Path) -> None:
        """Test that loaded catalogs translate messages."""
        catalog = MagicMock()
        catalog.gettext.side_effect = lambda message: {"Import complete": "Importation terminée"}.get(message, message)  # pyright: ignore[reportUnknownLambdaType]

        with patch("metaloc.i18n.gettext.translation", return_value=catalog) as mock_translation:
            i18n.setup_i18n("fr", locale_dir=tmp_path)

        mock_translation.assert_called_once_with("messages", localedir=tmp_path, languages=["fr"], fallback=True)
        assert i18n.t("Import complete") == "Importation terminée"
        assert i18n.t("Saving layouts") == "Saving layouts"

    def test_setup_failure_keeps_english(self, tmp_path: Path) -> None:
        """Test that an unreadable catalog leaves English active."""
        with patch("metaloc.i18n.gettext.translation", side_effect=OSError("corrupt")):
            i18n.setup_i18n("de", locale_dir=tmp_path)

        assert i18n.get_current_language() == "en"

    def test_translate_with_formatting(self) -> None:
        """Test translation with string formatting."""
        assert i18n.translate("Updating {sheet}", sheet="Views") == "Updating Views"

    def test_translate_formatting_error(self) -> None:
        """Test that missing format arguments return the unformatted string."""
        assert i18n.translate("Updating {sheet}", count=1) == "Updating {sheet}"
