"""
Internationalization (i18n) support for metaloc.

This module loads gettext translation files from the locale directory and
provides functions to translate operator-facing status messages. Missing
catalogs fall back to the source strings.

Usage Examples:
    >>> from metaloc import i18n
    >>> i18n.setup_i18n("fr")
    >>> i18n.t("Exporting {count} tables...", count=3)
"""

import gettext
import logging
from pathlib import Path
from typing import Callable

logger = logging.getLogger(__name__)

# Global translation function
_: Callable[[str], str] = lambda x: x  # Default fallback

_current_language: str = "en"
_locale_dir: Path | None = None
_domain: str = "messages"


def setup_i18n(language: str = "en", locale_dir: Path | None = None) -> None:
    """
    Setup internationalization for the specified language.

    Args:
        language: Language code (e.g., 'en', 'fr', 'de')
        locale_dir: Custom locale directory path. If None, uses the package 'locale' directory
    """
    global _, _current_language, _locale_dir

    _locale_dir = locale_dir if locale_dir is not None else Path(__file__).parent / "locale"

    try:
        translation = gettext.translation(
            _domain,
            localedir=_locale_dir,
            languages=[language],
            fallback=True,
        )
    except OSError as e:
        logger.warning(f"Failed to load translations for {language}: {e}")
        logger.info("Using default English strings")
        _current_language = "en"
        return

    _ = translation.gettext
    _current_language = language
    logger.debug(f"Loaded translations for language: {language} from {_locale_dir}")


def get_current_language() -> str:
    """
    Get the currently configured language.

    Returns:
        The current language code (e.g., 'en', 'fr')
    """
    return _current_language


def translate(message: str, **kwargs: object) -> str:
    """
    Translate a message with optional formatting.

    Args:
        message: The message to translate
        **kwargs: Format arguments for the translated string

    Returns:
        The translated and formatted message
    """
    translated = _(message)
    if kwargs:
        try:
            return translated.format(**kwargs)
        except (KeyError, ValueError) as e:
            logger.warning(f"Translation formatting error for '{message}': {e}")
            return translated
    return translated


# Convenience alias
t = translate
