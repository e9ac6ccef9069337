"""
Language sweep over the operator's active locale.

Form and dashboard layouts are only served in the caller's active locale, so
they have to be fetched once per output language. The sweep switches the
locale for each language in turn and always puts the original one back on
exit, whether the body finished or raised.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from typing import TYPE_CHECKING

from ..model.nodes import UserSettings
from ..repository.base import MetadataRepository
from ..utils.core.exceptions import LocaleRestoreError

if TYPE_CHECKING:
    from types import TracebackType

logger = logging.getLogger(__name__)

SleepFunc = Callable[[float], Awaitable[None]]


class LanguageSweep:
    """Async context manager that owns the operator's locale for its duration."""

    def __init__(
        self,
        repository: MetadataRepository,
        base_language: int,
        settle_seconds: float = 2.0,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """
        Initialize the sweep.

        Args:
            repository: Repository exposing the user settings operations
            base_language: The repository's base language code
            settle_seconds: Delay after a switch before the new locale is served
            sleep: Awaitable sleep, replaceable in tests
        """
        self.repository: MetadataRepository = repository
        self.base_language: int = base_language
        self.settle_seconds: float = settle_seconds
        self._sleep: SleepFunc = sleep
        self._original: UserSettings | None = None
        self._active: int | None = None

    @property
    def original(self) -> UserSettings:
        if self._original is None:
            raise RuntimeError("LanguageSweep not entered. Use as async context manager.")
        return self._original

    @property
    def active_language(self) -> int | None:
        return self._active

    async def __aenter__(self) -> LanguageSweep:
        self._original = await self.repository.get_user_settings()
        self._active = self._original.ui_language
        logger.info(f"User language is {self._original.ui_language} (locale {self._original.locale})")
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        original = self._original
        if original is None or self._active == original.ui_language:
            return

        logger.info(f"Reverting user language to {original.ui_language}")
        try:
            await self.repository.set_user_language(original.user_id, original.ui_language)
        except Exception as e:
            raise LocaleRestoreError(
                f"Failed to restore user language {original.ui_language}: {e}",
                original_language=original.ui_language,
                user_message="Your language settings could not be restored; reset them manually.",
            ) from e
        self._active = original.ui_language

    async def switch_to(self, language_code: int) -> None:
        """Make ``language_code`` the active locale, waiting for it to settle."""
        if language_code == self._active:
            return
        logger.info(f"Updating user language to {language_code}")
        await self.repository.set_user_language(self.original.user_id, language_code)
        self._active = language_code
        if self.settle_seconds > 0:
            await self._sleep(self.settle_seconds)

    async def languages(self, language_codes: list[int]) -> AsyncIterator[tuple[int, bool]]:
        """
        Switch to each language in turn.

        Yields:
            ``(language_code, is_base)`` with the locale already active
        """
        for code in language_codes:
            await self.switch_to(code)
            yield code, code == self.base_language
