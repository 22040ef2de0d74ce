"""
User creation extension points.

Subscribers can inspect or rewrite the user record before and after a user
is created. Hooks run synchronously, in registration order; each receives
the current record and must return it (possibly a rewritten copy).

Example:
    hooks = UserCreateHooks()

    @hooks.pre_create
    def default_locale(user: dict) -> dict:
        user["profile"].setdefault("locale", "en")
        return user
"""

import logging
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

UserRecord = Dict[str, Any]
UserHook = Callable[[UserRecord], UserRecord]

PRE_USER_CREATE = "openam_api.preusercreate"
POST_USER_CREATE = "openam_api.postusercreate"


class UserCreateHooks:
    """Ordered pre/post user-create hook lists."""

    def __init__(self):
        self._hooks: Dict[str, List[UserHook]] = {
            PRE_USER_CREATE: [],
            POST_USER_CREATE: [],
        }

    def register_pre_create(self, hook: UserHook) -> UserHook:
        """Register a hook run before the user is created."""
        self._hooks[PRE_USER_CREATE].append(hook)
        logger.debug(f"Registered pre-create hook {getattr(hook, '__name__', hook)!r}")
        return hook

    def register_post_create(self, hook: UserHook) -> UserHook:
        """Register a hook run after the user is created."""
        self._hooks[POST_USER_CREATE].append(hook)
        logger.debug(f"Registered post-create hook {getattr(hook, '__name__', hook)!r}")
        return hook

    # Decorator spellings
    pre_create = register_pre_create
    post_create = register_post_create

    def dispatch(self, event: str, user: UserRecord) -> UserRecord:
        """Run every hook of an event over the record and return the result."""
        for hook in self._hooks[event]:
            result = hook(user)
            if result is None:
                raise TypeError(
                    f"{event} hook {getattr(hook, '__name__', hook)!r} must return the user record"
                )
            user = result
        return user

    def run_pre_create(self, user: UserRecord) -> UserRecord:
        return self.dispatch(PRE_USER_CREATE, user)

    def run_post_create(self, user: UserRecord) -> UserRecord:
        return self.dispatch(POST_USER_CREATE, user)
