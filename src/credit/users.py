"""Ranking of the most active GitHub users of a location."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import CollectionError, MalformedResponse
from .github_client import GitHubClient
from .models import Cursor, UserContribution

logger = logging.getLogger(__name__)

PAGE_SIZE = 10
MAX_PAGES = 10 * (100 // PAGE_SIZE)

USER_COUNT_QUERY = """
query($query: String!) {
  search(type: USER, query: $query, first: 1) {
    userCount
  }
}
"""

USER_SEARCH_QUERY = """
query($query: String!, $first: Int!, $after: String) {
  search(type: USER, query: $query, first: $first, after: $after) {
    pageInfo {
      hasNextPage
      endCursor
    }
    nodes {
      ... on User {
        login
        name
        followers {
          totalCount
        }
        contributionsCollection {
          contributionCalendar {
            totalContributions
          }
          restrictedContributionsCount
        }
      }
    }
  }
}
"""


def _search_string(location: str) -> str:
    return f"type:user location:{location} sort:followers-desc"


def _decode_user(node: Dict[str, Any]) -> UserContribution:
    try:
        collection = node["contributionsCollection"]
        total = int(collection["contributionCalendar"]["totalContributions"])
        restricted = int(collection["restrictedContributionsCount"])
        return UserContribution(
            login=str(node["login"]),
            name=node.get("name"),
            followers=int(node["followers"]["totalCount"]),
            public_contributions=total - restricted,
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedResponse(f"Unexpected user payload: {node!r}") from exc


def user_count(client: GitHubClient, location: str) -> int:
    """Count all users who list ``location`` on their profile."""
    data = client.execute(USER_COUNT_QUERY, {"query": _search_string(location)}).data
    try:
        return int(data["search"]["userCount"])
    except (KeyError, TypeError, ValueError) as exc:
        raise MalformedResponse(f"Unexpected user count payload: {data!r}") from exc


def _search_page(client: GitHubClient, location: str, cursor: Cursor) -> Tuple[List[UserContribution], Cursor]:
    variables = {"query": _search_string(location), "first": PAGE_SIZE, "after": cursor.end_cursor}
    try:
        data = client.execute(USER_SEARCH_QUERY, variables).data
    except CollectionError as exc:
        raise exc.for_collection(location, "users") from exc

    try:
        search = data["search"]
        page_info = search["pageInfo"]
        # Non-user results (organizations) come back as empty objects.
        users = [_decode_user(node) for node in search["nodes"] if node]
    except (KeyError, TypeError) as exc:
        raise MalformedResponse(f"Unexpected user search payload: {data!r}") from exc

    return users, Cursor(end_cursor=page_info.get("endCursor"), has_next_page=bool(page_info.get("hasNextPage")))


def search_users(client: GitHubClient, location: str, max_pages: int = MAX_PAGES) -> List[UserContribution]:
    """Page through the users of ``location``, most followed first.

    Paging stops after ``max_pages`` or once a page ends with a user without
    followers.
    """
    users: List[UserContribution] = []
    cursor = Cursor()
    page_number = 0

    while cursor.has_next_page and page_number < max_pages:
        page, cursor = _search_page(client, location, cursor)
        page_number += 1
        users.extend(page)
        logger.debug("Fetched user page", extra={"location": location, "page": page_number, "users": len(page)})

        if not page or page[-1].followers == 0:
            break

    return users


def rank_users(users: Sequence[UserContribution]) -> List[UserContribution]:
    """Keep the top 100 users by contributions among the 250 most followed of the top 500."""
    by_contributions = sorted(users, key=lambda user: (-user.public_contributions, user.login))[:500]
    by_followers = sorted(by_contributions, key=lambda user: (-user.followers, user.login))[:250]
    return sorted(by_followers, key=lambda user: (-user.public_contributions, user.login))[:100]


def user_contributions(client: GitHubClient, location: str) -> Tuple[int, List[UserContribution]]:
    """Return the total user count of ``location`` and its ranked top users."""
    total = user_count(client, location)
    ranked = rank_users(search_users(client, location))
    logger.info("Ranked users", extra={"location": location, "total_users": total, "ranked": len(ranked)})
    return total, ranked


def users_to_dict(total_users: int, users: Sequence[UserContribution]) -> Dict[str, Any]:
    """Convert a users ranking to its JSON-serializable mapping.

    Args:
        total_users: Number of users found for the location.
        users: Ranked users, most active first.

    Returns:
        Mapping with ``total_users`` and the ``contributions`` list.
    """
    return {
        "total_users": total_users,
        "contributions": [
            {
                "login": user.login,
                "name": user.name,
                "public_contributions": user.public_contributions,
            }
            for user in users
        ],
    }
