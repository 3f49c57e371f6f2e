"""
In‑memory record store for users.

``UserStore`` keeps every user record in a dictionary keyed by its
identifier.  Identifiers are minted from a counter that only ever
grows, so they are unique for the lifetime of the store and never
reused after a delete.  All access to the collection goes through the
store's methods, each of which takes the ``ReadWriteLock`` exactly
once: mutations (``create``, ``update``, ``delete``) run under
exclusive access, reads (``get``, ``list``) under shared access.

The store knows nothing about validation or transports.  Absence is
reported with ``None``/``False``; translating it into an error is the
service layer's job.

Records handed out are detached from stored state: the tag list is
copied on the way in and on the way out, and the avatar is ``bytes``
which is immutable.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Optional

from .rwlock import ReadWriteLock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserAttributes:
    """Mutable payload of a user record, replaced as a whole on update."""

    name: str = ""
    email: str = ""
    phone: str = ""
    address: str = ""
    bio: str = ""
    tags: List[str] = field(default_factory=list)
    avatar: bytes = b""

    def copy(self) -> "UserAttributes":
        return replace(self, tags=list(self.tags), avatar=bytes(self.avatar))


@dataclass(frozen=True)
class User:
    """A user record: identifier plus attribute bundle."""

    id: str
    attributes: UserAttributes

    def copy(self) -> "User":
        return User(id=self.id, attributes=self.attributes.copy())


def _id_key(user_id: str) -> int:
    return int(user_id)


class UserStore:
    """Concurrency‑safe, in‑memory repository for users."""

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._users: Dict[str, User] = {}
        self._next_id = 0

    def create(self, attributes: UserAttributes) -> User:
        """Mint the next identifier and store a copy of ``attributes``."""
        with self._lock.write_locked():
            self._next_id += 1
            user = User(id=str(self._next_id), attributes=attributes.copy())
            self._users[user.id] = user
        logger.debug("Stored user %s", user.id)
        return user.copy()

    def update(self, user_id: str, attributes: UserAttributes) -> Optional[User]:
        """Replace the attribute bundle of ``user_id``.

        Returns ``None`` if no such user exists.  The existence check and
        the replacement happen inside a single exclusive section.
        """
        with self._lock.write_locked():
            if user_id not in self._users:
                return None
            user = User(id=user_id, attributes=attributes.copy())
            self._users[user_id] = user
        return user.copy()

    def get(self, user_id: str) -> Optional[User]:
        with self._lock.read_locked():
            user = self._users.get(user_id)
        return user.copy() if user is not None else None

    def delete(self, user_id: str) -> bool:
        """Remove ``user_id``; return whether it existed."""
        with self._lock.write_locked():
            return self._users.pop(user_id, None) is not None

    def list(self) -> List[User]:
        """Return every stored user sorted by ascending identifier."""
        with self._lock.read_locked():
            users = list(self._users.values())
        users.sort(key=lambda u: _id_key(u.id))
        return [u.copy() for u in users]

    def __len__(self) -> int:
        with self._lock.read_locked():
            return len(self._users)
