"""
Profile Directory Module

Verification and online status belong to the account-management layer, not
to the ledger. The ledger only reads them when reporting account info.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict
import threading


@dataclass(frozen=True)
class ProfileFlags:
    """Profile status reported alongside an account"""
    verified: bool = False
    online: bool = False


class ProfileDirectory(ABC):
    """Abstract interface for the profile collaborator"""

    @abstractmethod
    def get_flags(self, account_id: int) -> ProfileFlags:
        """Flags for an account; unknown accounts report both flags False"""
        pass


class InMemoryProfileDirectory(ProfileDirectory):
    """In-memory profile directory for tests and standalone use"""

    def __init__(self):
        self._flags: Dict[int, ProfileFlags] = {}
        self._lock = threading.Lock()

    def get_flags(self, account_id: int) -> ProfileFlags:
        with self._lock:
            return self._flags.get(account_id, ProfileFlags())

    def set_verified(self, account_id: int, verified: bool = True) -> None:
        with self._lock:
            current = self._flags.get(account_id, ProfileFlags())
            self._flags[account_id] = ProfileFlags(verified=verified, online=current.online)

    def set_online(self, account_id: int, online: bool = True) -> None:
        with self._lock:
            current = self._flags.get(account_id, ProfileFlags())
            self._flags[account_id] = ProfileFlags(verified=current.verified, online=online)
