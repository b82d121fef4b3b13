"""User directory used to resolve assignees.

Identity lives outside the engine; the directory only answers "who is
user X and what role do they hold" so assignment can check that the
assignee handles departments.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from src.models.complaint import Actor


@runtime_checkable
class UserDirectory(Protocol):
    async def get_user(self, user_id: str) -> Actor | None: ...


class InMemoryUserDirectory:
    __slots__ = ("_users",)

    def __init__(self, users: list[Actor] | None = None) -> None:
        self._users: dict[str, Actor] = {}
        for user in users or []:
            self.register(user)

    def register(self, user: Actor) -> None:
        self._users[user.id] = user

    async def get_user(self, user_id: str) -> Actor | None:
        return self._users.get(user_id)
