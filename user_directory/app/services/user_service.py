"""
Business logic for users.

``UserService`` is the single place where attribute payloads are
normalised and validated and where store outcomes become errors from
the taxonomy in ``errors``.  Both the HTTP and the gRPC front‑end call
the same instance, so a given bad input yields the same error kind on
either protocol.

Normalisation trims surrounding whitespace from the string fields and
from every tag, and drops tags that end up empty.  Identifiers are
trimmed before lookup.  ``update`` replaces the whole attribute bundle;
fields left out of the payload are cleared, not preserved.
"""

import functools
import logging
from typing import Iterable, List, Optional

from ..core.store import User, UserAttributes, UserStore
from .errors import InternalError, InvalidInputError, NotFoundError, ServiceError

logger = logging.getLogger(__name__)


def _translate_errors(func):
    """Re‑raise anything that is not a ``ServiceError`` as ``InternalError``."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ServiceError:
            raise
        except Exception as exc:
            logger.exception("Unexpected failure in %s", func.__name__)
            raise InternalError(f"internal error: {exc}") from exc

    return wrapper


def _clean(value: Optional[str]) -> str:
    return (value or "").strip()


def _clean_tags(tags: Optional[Iterable[str]]) -> List[str]:
    cleaned = []
    for tag in tags or ():
        tag = _clean(tag)
        if tag:
            cleaned.append(tag)
    return cleaned


def normalize_attributes(attributes: UserAttributes) -> UserAttributes:
    """Return a trimmed copy of ``attributes`` with empty tags dropped."""
    return UserAttributes(
        name=_clean(attributes.name),
        email=_clean(attributes.email),
        phone=_clean(attributes.phone),
        address=_clean(attributes.address),
        bio=_clean(attributes.bio),
        tags=_clean_tags(attributes.tags),
        avatar=bytes(attributes.avatar or b""),
    )


def validate_attributes(attributes: UserAttributes) -> None:
    """Check a normalised bundle; raise ``InvalidInputError`` on violation."""
    if not attributes.name:
        raise InvalidInputError("name is required")
    if not attributes.email or "@" not in attributes.email:
        raise InvalidInputError("email must contain '@'")


def validate_identifier(user_id: Optional[str]) -> str:
    """Return the trimmed identifier or raise ``InvalidInputError``."""
    user_id = _clean(user_id)
    if not user_id:
        raise InvalidInputError("id is required")
    return user_id


class UserService:
    """Protocol‑agnostic operations over a ``UserStore``.

    Parameters
    ----------
    store : UserStore
        The store this service owns.  It is injected rather than
        created here so one instance can be shared by both front‑ends
        and swapped out in tests.
    """

    def __init__(self, store: UserStore) -> None:
        self._store = store

    @_translate_errors
    def create(self, attributes: UserAttributes) -> User:
        """Normalise, validate and store a new user."""
        attributes = normalize_attributes(attributes)
        validate_attributes(attributes)
        user = self._store.create(attributes)
        logger.info("Created user %s", user.id)
        return user

    @_translate_errors
    def update(self, user_id: str, attributes: UserAttributes) -> User:
        """Replace the attributes of an existing user.

        Raises ``InvalidInputError`` for a blank id or bad payload and
        ``NotFoundError`` if the user does not exist.
        """
        user_id = validate_identifier(user_id)
        attributes = normalize_attributes(attributes)
        validate_attributes(attributes)
        user = self._store.update(user_id, attributes)
        if user is None:
            raise NotFoundError(f"user {user_id} not found")
        logger.info("Updated user %s", user_id)
        return user

    @_translate_errors
    def get(self, user_id: str) -> User:
        user_id = validate_identifier(user_id)
        user = self._store.get(user_id)
        if user is None:
            raise NotFoundError(f"user {user_id} not found")
        return user

    @_translate_errors
    def delete(self, user_id: str) -> None:
        """Remove a user; raises ``NotFoundError`` if it did not exist."""
        user_id = validate_identifier(user_id)
        if not self._store.delete(user_id):
            raise NotFoundError(f"user {user_id} not found")
        logger.info("Deleted user %s", user_id)

    @_translate_errors
    def list(self) -> List[User]:
        return self._store.list()
