"""Tests for threaded comment retrieval."""

from uuid import uuid4

import pytest

from blogapi.comments.exceptions import DatabaseError
from blogapi.comments.tree import CommentTreeBuilder
from blogapi.core.redis import comment_count_key, comment_list_key

from ..conftest import POST_ID


@pytest.fixture
def tree(repository, authors, cache) -> CommentTreeBuilder:
    return CommentTreeBuilder(repository, authors, cache, page_size=20)


def ids(nodes) -> list[int]:
    return [node.id for node in nodes]


class TestCommentTree:
    """Tests for CommentTreeBuilder.get_comments."""

    @pytest.mark.asyncio
    async def test_empty_post(self, tree, cache) -> None:
        assert await tree.get_comments(POST_ID) == []
        assert await cache.get(comment_list_key(POST_ID)) == "[]"

    @pytest.mark.asyncio
    async def test_reply_is_nested_under_root(self, tree, repository, alice, bob) -> None:
        root = repository.add(POST_ID, alice, "root")
        reply = repository.add(POST_ID, bob, "reply", parent=root)

        nodes = await tree.get_comments(POST_ID)

        assert ids(nodes) == [root.id]
        assert nodes[0].author.name == "alice"
        assert ids(nodes[0].replies) == [reply.id]
        assert nodes[0].replies[0].parent_comment_id == root.id
        assert nodes[0].replies[0].replies is None

    @pytest.mark.asyncio
    async def test_roots_newest_first_and_replies_oldest_first(
        self, tree, repository, alice, bob
    ) -> None:
        older = repository.add(POST_ID, alice, "older")
        newer = repository.add(POST_ID, alice, "newer")
        first = repository.add(POST_ID, bob, "first", parent=older)
        second = repository.add(POST_ID, bob, "second", parent=older)

        nodes = await tree.get_comments(POST_ID)

        assert ids(nodes) == [newer.id, older.id]
        assert ids(nodes[1].replies) == [first.id, second.id]

    @pytest.mark.asyncio
    async def test_tree_stops_at_max_depth(self, tree, repository, alice) -> None:
        level0 = repository.add(POST_ID, alice)
        level1 = repository.add(POST_ID, alice, parent=level0)
        level2 = repository.add(POST_ID, alice, parent=level1)
        level3 = repository.add(POST_ID, alice, parent=level2)
        repository.add(POST_ID, alice, parent=level3)

        nodes = await tree.get_comments(POST_ID)

        node = nodes[0]
        for expected in (level1, level2, level3):
            assert ids(node.replies) == [expected.id]
            node = node.replies[0]
        assert node.replies is None

    @pytest.mark.asyncio
    async def test_deleted_reply_is_replaced_by_its_replies(
        self, tree, repository, alice, bob
    ) -> None:
        root = repository.add(POST_ID, alice)
        deleted = repository.add(POST_ID, bob, parent=root, is_deleted=True)
        orphan = repository.add(POST_ID, alice, parent=deleted)
        sibling = repository.add(POST_ID, bob, parent=root)

        nodes = await tree.get_comments(POST_ID)

        assert ids(nodes[0].replies) == [orphan.id, sibling.id]
        assert nodes[0].replies[0].parent_comment_id == deleted.id

    @pytest.mark.asyncio
    async def test_deleted_root_lifts_replies_to_top_level(
        self, tree, repository, alice, bob
    ) -> None:
        root = repository.add(POST_ID, alice, is_deleted=True)
        reply = repository.add(POST_ID, bob, parent=root)
        repository.add(POST_ID, alice, is_deleted=True)

        nodes = await tree.get_comments(POST_ID)

        assert ids(nodes) == [reply.id]

    @pytest.mark.asyncio
    async def test_fully_deleted_thread_takes_no_page_slot(
        self, repository, authors, cache, alice, bob
    ) -> None:
        tree = CommentTreeBuilder(repository, authors, cache, page_size=1)
        live = repository.add(POST_ID, alice, "still here")
        root = repository.add(POST_ID, bob, is_deleted=True)
        repository.add(POST_ID, alice, parent=root, is_deleted=True)

        nodes = await tree.get_comments(POST_ID)

        assert ids(nodes) == [live.id]

    @pytest.mark.asyncio
    async def test_deleted_root_keeps_live_grandchild(
        self, tree, repository, alice, bob
    ) -> None:
        root = repository.add(POST_ID, alice, is_deleted=True)
        child = repository.add(POST_ID, bob, parent=root, is_deleted=True)
        grandchild = repository.add(POST_ID, alice, "deep", parent=child)

        nodes = await tree.get_comments(POST_ID)

        assert ids(nodes) == [grandchild.id]

    @pytest.mark.asyncio
    async def test_deleted_root_with_live_reply_beyond_depth_is_hidden(
        self, repository, authors, cache, alice
    ) -> None:
        repository.max_depth = 1
        tree = CommentTreeBuilder(repository, authors, cache, max_depth=1)
        root = repository.add(POST_ID, alice, is_deleted=True)
        child = repository.add(POST_ID, alice, parent=root, is_deleted=True)
        repository.add(POST_ID, alice, parent=child)

        assert await tree.get_comments(POST_ID) == []

    @pytest.mark.asyncio
    async def test_deleted_leaf_disappears(self, tree, repository, alice) -> None:
        root = repository.add(POST_ID, alice)
        repository.add(POST_ID, alice, parent=root, is_deleted=True)

        nodes = await tree.get_comments(POST_ID)

        assert nodes[0].replies is None

    @pytest.mark.asyncio
    async def test_unknown_author(self, tree, repository) -> None:
        repository.add(POST_ID, uuid4())

        nodes = await tree.get_comments(POST_ID)

        assert nodes[0].author.name == "unknown"

    @pytest.mark.asyncio
    async def test_authors_resolved_once_per_build(
        self, tree, repository, authors, alice
    ) -> None:
        root = repository.add(POST_ID, alice)
        repository.add(POST_ID, alice, parent=root)
        repository.add(POST_ID, alice, parent=root)

        await tree.get_comments(POST_ID)

        assert authors.resolved == [alice]

    @pytest.mark.asyncio
    async def test_paging(self, tree, repository, cache, alice) -> None:
        comments = [repository.add(POST_ID, alice, f"c{i}") for i in range(25)]

        first = await tree.get_comments(POST_ID, page=1)
        second = await tree.get_comments(POST_ID, page=2)
        third = await tree.get_comments(POST_ID, page=3)

        newest_first = list(reversed(ids(comments)))
        assert ids(first) == newest_first[:20]
        assert ids(second) == newest_first[20:]
        assert third == []

    @pytest.mark.asyncio
    async def test_first_page_served_from_cache(self, tree, repository, alice) -> None:
        repository.add(POST_ID, alice)

        cold = await tree.get_comments(POST_ID)
        warm = await tree.get_comments(POST_ID)

        assert warm == cold
        assert repository.find_roots_calls == 1

    @pytest.mark.asyncio
    async def test_later_pages_are_not_cached(self, tree, repository, alice) -> None:
        repository.add(POST_ID, alice)

        await tree.get_comments(POST_ID, page=2)
        await tree.get_comments(POST_ID, page=2)

        assert repository.find_roots_calls == 2

    @pytest.mark.asyncio
    async def test_cache_expires(self, tree, repository, cache, alice) -> None:
        repository.add(POST_ID, alice)
        await tree.get_comments(POST_ID)

        cache.advance(3601)
        await tree.get_comments(POST_ID)

        assert repository.find_roots_calls == 2

    @pytest.mark.asyncio
    async def test_corrupt_cache_entry_is_rebuilt(
        self, tree, repository, cache, alice
    ) -> None:
        root = repository.add(POST_ID, alice)
        await cache.set_with_ttl(comment_list_key(POST_ID), "{not json", 60)

        nodes = await tree.get_comments(POST_ID)

        assert ids(nodes) == [root.id]

    @pytest.mark.asyncio
    async def test_cache_failure_falls_back_to_store(
        self, tree, repository, cache, alice
    ) -> None:
        root = repository.add(POST_ID, alice)
        cache.failing.update({"get", "set"})

        nodes = await tree.get_comments(POST_ID)

        assert ids(nodes) == [root.id]

    @pytest.mark.asyncio
    async def test_store_failure_is_not_cached(
        self, tree, repository, cache, alice
    ) -> None:
        repository.add(POST_ID, alice)
        repository.fail = True

        with pytest.raises(DatabaseError) as exc_info:
            await tree.get_comments(POST_ID)

        assert exc_info.value.code == "INTERNAL_ERROR"
        assert await cache.get(comment_list_key(POST_ID)) is None


class TestCommentCount:
    """Tests for CommentTreeBuilder.count."""

    @pytest.mark.asyncio
    async def test_count_miss_reads_store_and_caches(
        self, tree, repository, cache, alice
    ) -> None:
        repository.add(POST_ID, alice)
        repository.add(POST_ID, alice)
        repository.add(POST_ID, alice, is_deleted=True)

        assert await tree.count(POST_ID) == 2
        assert await cache.get(comment_count_key(POST_ID)) == "2"

    @pytest.mark.asyncio
    async def test_count_hit_skips_store(self, tree, repository, cache) -> None:
        await cache.set_with_ttl(comment_count_key(POST_ID), "7", 60)
        repository.fail = True

        assert await tree.count(POST_ID) == 7

    @pytest.mark.asyncio
    async def test_count_cache_failure_reads_store(
        self, tree, repository, cache, alice
    ) -> None:
        repository.add(POST_ID, alice)
        cache.failing.update({"get", "set"})

        assert await tree.count(POST_ID) == 1

    @pytest.mark.asyncio
    async def test_count_store_failure(self, tree, repository) -> None:
        repository.fail = True

        with pytest.raises(DatabaseError):
            await tree.count(POST_ID)
