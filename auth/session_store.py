from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import Callable

from auth.models import Credential, ProfileInfo
from explorer.constants import LOGGER
from explorer.state_file import StateFile

SessionListener = Callable[[Credential | None], None]


class SessionStore(ABC):
    """Holds the current credential and profile, and notifies listeners on change.

    Writes are expected to come only from the refresh coordinator; readers
    call ``get_credential`` and ``is_expired``.
    """

    def __init__(self, *, clock_skew_seconds: float = 0.0, clock: Callable[[], float] = time.time) -> None:
        self._clock_skew_seconds = clock_skew_seconds
        self._clock = clock
        self._listeners: list[SessionListener] = []

    @abstractmethod
    def get_credential(self) -> Credential | None:
        raise NotImplementedError

    @abstractmethod
    def _store_credential(self, credential: Credential | None) -> None:
        raise NotImplementedError

    @abstractmethod
    def get_profile(self) -> ProfileInfo | None:
        raise NotImplementedError

    @abstractmethod
    def set_profile(self, profile: ProfileInfo | None) -> None:
        raise NotImplementedError

    def set_credential(self, credential: Credential) -> None:
        self._store_credential(credential)
        self._notify(credential)

    def clear(self) -> None:
        self._store_credential(None)
        self.set_profile(None)
        self._notify(None)

    def is_expired(self) -> bool:
        credential = self.get_credential()
        if credential is None:
            return True
        return credential.is_expired(now=self._clock(), skew_seconds=self._clock_skew_seconds)

    def add_listener(self, listener: SessionListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, credential: Credential | None) -> None:
        for listener in list(self._listeners):
            try:
                listener(credential)
            except Exception:
                LOGGER.exception("Session listener %r failed", listener)


class MemorySessionStore(SessionStore):
    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._credential: Credential | None = None
        self._profile: ProfileInfo | None = None

    def get_credential(self) -> Credential | None:
        return self._credential

    def _store_credential(self, credential: Credential | None) -> None:
        self._credential = credential

    def get_profile(self) -> ProfileInfo | None:
        return self._profile

    def set_profile(self, profile: ProfileInfo | None) -> None:
        self._profile = profile


class FileSessionStore(MemorySessionStore):
    """Write-through store persisted in a :class:`StateFile`."""

    CREDENTIAL_KEY = "credential"
    PROFILE_KEY = "profile"

    def __init__(self, state_file: StateFile, **kwargs) -> None:
        super().__init__(**kwargs)
        self._state_file = state_file

        stored_credential = state_file.read(self.CREDENTIAL_KEY)
        if stored_credential is not None:
            self._credential = Credential.from_payload(stored_credential)
        stored_profile = state_file.read(self.PROFILE_KEY)
        if stored_profile is not None:
            self._profile = ProfileInfo.from_payload(stored_profile)

    def _store_credential(self, credential: Credential | None) -> None:
        super()._store_credential(credential)
        self._state_file.write(
            self.CREDENTIAL_KEY,
            None if credential is None else credential.to_payload(),
        )

    def set_profile(self, profile: ProfileInfo | None) -> None:
        super().set_profile(profile)
        self._state_file.write(
            self.PROFILE_KEY,
            None if profile is None else profile.to_payload(),
        )
