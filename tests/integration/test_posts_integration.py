"""
Integration tests for PostStore and its pagers against LocalStack.
"""

import pytest

from petlodge import PostCriteria
from petlodge.exceptions import ConditionalCheckFailedError, PostNotFoundError


def _new_post(title: str, city: str = "Berlin", pet_type: str = "cat") -> dict:
    return {
        "title": title,
        "description": f"{title} needs a sitter",
        "pet_type": pet_type,
        "city": city,
        "startDate": "2024-03-01",
        "endDate": "2024-03-10",
        "keywords": "friendly",
    }


def _drain(fetch):
    """Follows tokens until the stream ends, collecting every item."""
    items, token = [], None
    while True:
        batch = fetch(token)
        items.extend(batch.items)
        if not batch.has_more:
            return items
        token = batch.next_token


@pytest.mark.integration
class TestPostCrudIntegration:
    def test_create_and_get(self, integration_store):
        created = integration_store.create_post(_new_post("Miso"), owner="mia")

        fetched = integration_store.get_post(created.id)

        assert fetched == created
        assert fetched.owner == "mia"
        assert fetched.keywords == ["friendly"]

    def test_update_by_owner(self, integration_store):
        created = integration_store.create_post(_new_post("Miso"), owner="mia")

        updated = integration_store.update_post(
            created.id, {"title": "Miso (updated)", "keywords": None}, owner="mia"
        )

        assert updated.title == "Miso (updated)"
        assert updated.keywords is None or updated.keywords == []
        assert updated.updated_at >= created.updated_at

    def test_update_by_other_owner(self, integration_store):
        created = integration_store.create_post(_new_post("Miso"), owner="mia")

        with pytest.raises(ConditionalCheckFailedError):
            integration_store.update_post(created.id, {"title": "Mine now"}, owner="leo")

        assert integration_store.get_post(created.id).title == "Miso"

    def test_delete(self, integration_store):
        created = integration_store.create_post(_new_post("Miso"), owner="mia")

        integration_store.delete_post(created.id, owner="mia")

        assert integration_store.get_post(created.id) is None
        with pytest.raises(PostNotFoundError):
            integration_store.delete_post(created.id)


@pytest.mark.integration
class TestPostListingIntegration:
    def test_filtered_listing(self, integration_store):
        integration_store.create_post(_new_post("Miso"), owner="mia")
        integration_store.create_post(_new_post("Rex", city="Paris", pet_type="dog"), owner="leo")
        integration_store.create_post(_new_post("Nala", city="Paris"), owner="leo")

        paris = _drain(
            lambda token: integration_store.list_posts(
                PostCriteria(city="Paris"), limit=1, token=token
            )
        )
        mine = _drain(lambda token: integration_store.list_my_posts("mia", token=token))

        assert sorted(p.title for p in paris) == ["Nala", "Rex"]
        assert [p.title for p in mine] == ["Miso"]

    def test_search_by_title(self, integration_store):
        integration_store.create_post(_new_post("Quiet cat Miso"), owner="mia")
        integration_store.create_post(_new_post("Loud dog Rex", pet_type="dog"), owner="leo")

        found = _drain(lambda token: integration_store.search_posts("Miso", token=token))

        assert [p.title for p in found] == ["Quiet cat Miso"]

    def test_pager_walk(self, integration_store):
        for i in range(5):
            integration_store.create_post(_new_post(f"Pet {i}"), owner="mia")

        pager = integration_store.posts_pager(page_size=2)

        third = pager.fetch_page(3)
        first = pager.fetch_page(1)
        second = pager.fetch_page(2)

        assert (first.count, second.count, third.count) == (2, 2, 1)
        assert third.has_next is False
        titles = [p.title for p in first.items + second.items + third.items]
        assert sorted(titles) == [f"Pet {i}" for i in range(5)]

    def test_pager_past_the_end(self, integration_store):
        for i in range(3):
            integration_store.create_post(_new_post(f"Pet {i}"), owner="mia")

        result = integration_store.posts_pager(page_size=2).fetch_page(10)

        assert result.page == 2
        assert result.count == 1
        assert result.has_next is False


@pytest.mark.integration
class TestCommentsIntegration:
    def test_comment_thread(self, integration_store):
        post = integration_store.create_post(_new_post("Miso"), owner="mia")
        other = integration_store.create_post(_new_post("Rex"), owner="leo")
        for text in ["I can help", "Me too", "Still needed?"]:
            integration_store.add_comment(post.id, text, owner="leo")
        integration_store.add_comment(other.id, "Cute", owner="mia")

        pager = integration_store.comments_pager(post.id, page_size=2)
        first = pager.fetch_page(1)
        second = pager.fetch_page(2)

        assert first.count == 2
        assert first.has_next is True
        assert second.count == 1
        contents = {c.content for c in first.items + second.items}
        assert contents == {"I can help", "Me too", "Still needed?"}
        assert all(c.post_id == post.id for c in first.items + second.items)
