"""Hierarchy resolver: who sits below whom in the reports-to graph.

The reports-to relation is a directed graph with an edge from each user to
their manager. A user's downline is everyone reachable by walking those edges
backwards: direct reports, their reports, and so on. The walk is a
breadth-first search that asks storage for one level of the tree at a time
and never enqueues a user twice, so it finishes even when the data contains a
cycle (a manager who, directly or indirectly, reports to their own report).

Results are computed per call; nothing is cached between requests, so a
manager change is visible on the very next request.
"""

import enum
import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, Mapping, Optional, Set, Union

from sqlalchemy.orm import Query, Session

from fieldforce.models.role import SUPER_ADMIN_ROLE
from fieldforce.models.user import User

logger = logging.getLogger("fieldforce.hierarchy")


class Unrestricted(enum.Enum):
    """Visibility sentinel meaning "do not filter by user"."""

    ALL = "unrestricted"


UNRESTRICTED = Unrestricted.ALL

Visibility = Union[Set[str], Unrestricted]


class SubordinateLookup(ABC):
    """Answers "who reports directly to any of these users?"."""

    @abstractmethod
    def direct_reports(self, manager_ids: Iterable[str]) -> Iterable[str]:
        """IDs of every user whose manager is in ``manager_ids``."""
        pass


class SqlSubordinateLookup(SubordinateLookup):
    """One ``IN`` query against the users table per BFS level."""

    def __init__(self, db: Session):
        self.db = db

    def direct_reports(self, manager_ids: Iterable[str]) -> Iterable[str]:
        ids = list(manager_ids)
        if not ids:
            return []
        rows = self.db.query(User.id).filter(User.reports_to_id.in_(ids)).all()
        return [user_id for (user_id,) in rows]


class MappingSubordinateLookup(SubordinateLookup):
    """In-memory graph built from a ``{user_id: manager_id}`` mapping."""

    def __init__(self, reports_to: Mapping[str, Optional[str]]):
        self.children: Dict[str, Set[str]] = {}
        for user_id, manager_id in reports_to.items():
            if manager_id is not None:
                self.children.setdefault(manager_id, set()).add(user_id)

    def direct_reports(self, manager_ids: Iterable[str]) -> Iterable[str]:
        found: Set[str] = set()
        for manager_id in manager_ids:
            found |= self.children.get(manager_id, set())
        return found


class HierarchyResolver:
    """Computes downlines and the user IDs a caller may see."""

    def __init__(self, lookup: SubordinateLookup):
        self.lookup = lookup

    def downline(self, user_id: str) -> Set[str]:
        """``user_id`` plus all of its direct and indirect subordinates."""
        visited = {user_id}
        frontier = [user_id]
        depth = 0
        while frontier:
            next_frontier = []
            for subordinate_id in self.lookup.direct_reports(frontier):
                if subordinate_id not in visited:
                    visited.add(subordinate_id)
                    next_frontier.append(subordinate_id)
            frontier = next_frontier
            depth += 1
        logger.debug("Downline of %s: %d users across %d levels", user_id, len(visited), depth)
        return visited

    def visible_user_ids(self, user_id: str, role_name: str) -> Visibility:
        """UNRESTRICTED for the super admin, otherwise the caller's downline."""
        if role_name == SUPER_ADMIN_ROLE:
            return UNRESTRICTED
        return self.downline(user_id)


def apply_visibility(query: Query, column, visible: Visibility) -> Query:
    """Narrow ``query`` to rows whose ``column`` is in the visible set."""
    if visible is UNRESTRICTED:
        return query
    return query.filter(column.in_(visible))
