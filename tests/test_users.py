"""Tests for ranking the most active users of a location."""

import sys
from pathlib import Path
from unittest.mock import Mock

import pytest

# Add src directory to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from credit.errors import MalformedResponse, RateLimitExhausted
from credit.models import GraphQLResponse, UserContribution
from credit.users import rank_users, search_users, user_contributions, users_to_dict


def _user_node(login, followers, total, restricted=0):
    return {
        "login": login,
        "name": login.title(),
        "followers": {"totalCount": followers},
        "contributionsCollection": {
            "contributionCalendar": {"totalContributions": total},
            "restrictedContributionsCount": restricted,
        },
    }


def _search_page(nodes, end_cursor=None, has_next=False):
    return GraphQLResponse(
        data={"search": {"pageInfo": {"hasNextPage": has_next, "endCursor": end_cursor}, "nodes": nodes}}
    )


def test_search_users_stops_at_user_without_followers():
    """Verify paging stops once a page ends with a user who has no followers."""
    client = Mock()
    client.execute.side_effect = [
        _search_page([_user_node("ada", 50, 900), _user_node("bob", 10, 400)], "c1", True),
        _search_page([_user_node("cat", 2, 100), _user_node("dan", 0, 50)], "c2", True),
        _search_page([_user_node("eve", 0, 10)], None, False),
    ]

    users = search_users(client, "Vancouver")

    assert [user.login for user in users] == ["ada", "bob", "cat", "dan"]
    assert client.execute.call_count == 2
    assert client.execute.call_args_list[1].args[1]["after"] == "c1"


def test_search_users_respects_page_limit():
    """Verify no more than max_pages pages are requested."""
    client = Mock()
    client.execute.return_value = _search_page([_user_node("ada", 50, 900)], "c", True)

    search_users(client, "Vancouver", max_pages=3)

    assert client.execute.call_count == 3


def test_search_users_skips_non_user_results_and_subtracts_restricted():
    """Verify empty organization nodes are ignored and private contributions excluded."""
    client = Mock()
    client.execute.return_value = _search_page([{}, _user_node("ada", 5, 900, restricted=100)])

    users = search_users(client, "Vancouver")

    assert users == [UserContribution(login="ada", name="Ada", followers=5, public_contributions=800)]


def test_search_users_rejects_malformed_users():
    """Verify user nodes without contribution data raise MalformedResponse."""
    client = Mock()
    client.execute.return_value = _search_page([{"login": "ada"}])

    with pytest.raises(MalformedResponse):
        search_users(client, "Vancouver")


def test_search_users_annotates_rate_limit_errors():
    """Verify quota failures name the searched location."""
    client = Mock()
    client.execute.side_effect = RateLimitExhausted("quota")

    with pytest.raises(RateLimitExhausted) as excinfo:
        search_users(client, "Vancouver")

    assert excinfo.value.repository == "Vancouver"
    assert excinfo.value.kind == "users"


def test_rank_users_prefers_followed_then_active_users():
    """Verify ranking keeps active users among the most followed."""
    users = [
        UserContribution(login=f"user{i:03d}", name=None, followers=i, public_contributions=1000 - i)
        for i in range(600)
    ]

    ranked = rank_users(users)

    assert len(ranked) == 100
    # The 500 most active are user000..user499; of those the 250 most followed are user250..user499.
    assert ranked[0].login == "user250"
    assert ranked[-1].login == "user349"


def test_user_contributions_returns_total_and_ranking():
    """Verify the total user count is fetched alongside the ranked users."""
    client = Mock()
    client.execute.side_effect = [
        GraphQLResponse(data={"search": {"userCount": 4321}}),
        _search_page([_user_node("ada", 5, 10), _user_node("bob", 9, 30)]),
    ]

    total, users = user_contributions(client, "Vancouver")

    assert total == 4321
    assert [user.login for user in users] == ["bob", "ada"]
    assert users_to_dict(total, users)["contributions"][0] == {
        "login": "bob",
        "name": "Bob",
        "public_contributions": 30,
    }
