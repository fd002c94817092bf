"""Tests for the threaded discussion engine."""
import sqlite3

import pytest

import discussion
from discussion import (
    MAX_CONTENT_LEN,
    create_node,
    delete_node,
    get_node,
    list_thread,
    subject_key,
    toggle_like,
    update_node,
)
from errors import EmptyContentError, InvalidInputError, NodeNotFoundError, ParentNotFoundError

SUBJECT = subject_key("Tôi muốn đi ngủ", "nung")


@pytest.fixture()
def clock(monkeypatch):
    """Deterministic, strictly increasing timestamps."""
    now = [1_000_000.0]

    def fake_time():
        now[0] += 1
        return now[0]

    monkeypatch.setattr(discussion.time, "time", fake_time)
    return now


def test_subject_key_is_stable_and_normalized():
    assert subject_key("  Tôi muốn ĐI NGỦ ", "nung") == SUBJECT
    assert SUBJECT.startswith("tr_")
    assert len(SUBJECT) == 3 + 16
    assert subject_key("Tôi muốn đi ngủ", "central") != SUBJECT


def test_create_top_level_node(db):
    node = create_node(SUBJECT, "alice", "  Hay quá!  ")
    assert node.content == "Hay quá!"
    assert node.depth == 1
    assert node.parent_id is None
    assert node.like_count == 0
    assert node.author_id == "alice"


def test_anonymous_author_allowed(db):
    assert create_node(SUBJECT, None, "Ẩn danh").author_id is None


@pytest.mark.parametrize("content", ["", "   ", None])
def test_empty_content_rejected(db, content):
    with pytest.raises(EmptyContentError):
        create_node(SUBJECT, "alice", content)


def test_overlong_content_rejected(db):
    with pytest.raises(InvalidInputError):
        create_node(SUBJECT, "alice", "x" * (MAX_CONTENT_LEN + 1))


def test_reply_to_missing_parent(db):
    with pytest.raises(ParentNotFoundError):
        create_node(SUBJECT, "alice", "reply", parent_id=999)


def test_reply_across_subjects_rejected(db):
    root = create_node(SUBJECT, "alice", "root")
    with pytest.raises(InvalidInputError):
        create_node(subject_key("khác", "nung"), "bob", "reply", parent_id=root.id)


def test_depth_is_capped(db):
    root = create_node(SUBJECT, "alice", "d1")
    d2 = create_node(SUBJECT, "bob", "d2", parent_id=root.id)
    d3 = create_node(SUBJECT, "carol", "d3", parent_id=d2.id)
    assert (d2.depth, d2.parent_id) == (2, root.id)
    assert (d3.depth, d3.parent_id) == (3, d2.id)

    # replying to a depth-3 node lands beside it, under the same parent
    flattened = create_node(SUBJECT, "dave", "d4?", parent_id=d3.id)
    assert flattened.parent_id == d2.id
    assert flattened.depth == 3

    again = create_node(SUBJECT, "erin", "d5?", parent_id=flattened.id)
    assert again.parent_id == d2.id
    assert again.depth <= discussion.MAX_DEPTH


def test_list_thread_assembles_replies(db, clock):
    root = create_node(SUBJECT, "alice", "root")
    r1 = create_node(SUBJECT, "bob", "first reply", parent_id=root.id)
    r2 = create_node(SUBJECT, "carol", "second reply", parent_id=root.id)
    nested = create_node(SUBJECT, "dave", "nested", parent_id=r1.id)
    create_node(subject_key("khác", "nung"), "erin", "other subject")

    top, total = list_thread(SUBJECT)
    assert total == 1
    assert len(top) == 1
    assert [r.id for r in top[0].replies] == [r1.id, r2.id]
    assert [n.id for n in top[0].replies[0].replies] == [nested.id]
    assert top[0].replies[0].replies[0].depth == 3
    assert top[0].liked_by_viewer is None


def test_list_thread_sorting_and_pagination(db, clock):
    a = create_node(SUBJECT, "alice", "a")
    b = create_node(SUBJECT, "bob", "b")
    c = create_node(SUBJECT, "carol", "c")
    toggle_like(a.id, "u1")
    toggle_like(a.id, "u2")
    toggle_like(c.id, "u1")

    newest, total = list_thread(SUBJECT, sort="newest")
    assert [n.id for n in newest] == [c.id, b.id, a.id]
    assert total == 3

    oldest, _ = list_thread(SUBJECT, sort="oldest")
    assert [n.id for n in oldest] == [a.id, b.id, c.id]

    liked, _ = list_thread(SUBJECT, sort="most_liked")
    assert [n.id for n in liked] == [a.id, c.id, b.id]

    page2, total = list_thread(SUBJECT, page=2, page_size=2, sort="oldest")
    assert [n.id for n in page2] == [c.id]
    assert total == 3


def test_most_liked_ties_go_to_newer_node(db, clock):
    a = create_node(SUBJECT, "alice", "a")
    b = create_node(SUBJECT, "bob", "b")
    c = create_node(SUBJECT, "carol", "c")
    toggle_like(a.id, "u1")
    toggle_like(c.id, "u1")

    liked, _ = list_thread(SUBJECT, sort="most_liked")
    assert [n.id for n in liked] == [c.id, a.id, b.id]


def test_most_liked_ties_on_same_timestamp_use_id(db, monkeypatch):
    monkeypatch.setattr(discussion.time, "time", lambda: 1_000_000.0)
    first = create_node(SUBJECT, "alice", "first")
    second = create_node(SUBJECT, "bob", "second")

    liked, _ = list_thread(SUBJECT, sort="most_liked")
    assert [n.id for n in liked] == [second.id, first.id]


def test_list_thread_marks_viewer_likes(db):
    root = create_node(SUBJECT, "alice", "root")
    reply = create_node(SUBJECT, "bob", "reply", parent_id=root.id)
    toggle_like(reply.id, "viewer")

    top, _ = list_thread(SUBJECT, viewer_id="viewer")
    assert top[0].liked_by_viewer is False
    assert top[0].replies[0].liked_by_viewer is True


@pytest.mark.parametrize("kwargs", [
    {"sort": "random"},
    {"page": 0},
    {"page_size": 0},
    {"page_size": discussion.MAX_PAGE_SIZE + 1},
])
def test_list_thread_rejects_bad_params(db, kwargs):
    with pytest.raises(InvalidInputError):
        list_thread(SUBJECT, **kwargs)


def test_empty_thread(db):
    assert list_thread(SUBJECT) == ([], 0)


def test_toggle_like_round_trip(db):
    node = create_node(SUBJECT, "alice", "root")
    assert toggle_like(node.id, "bob") == (True, 1)
    assert toggle_like(node.id, "carol") == (True, 2)
    assert toggle_like(node.id, "bob") == (False, 1)
    assert get_node(node.id).like_count == 1


def test_like_count_never_negative(db):
    node = create_node(SUBJECT, "alice", "root")
    conn = sqlite3.connect(str(db))
    conn.execute("INSERT INTO discussion_likes (node_id, user_id, created_at) VALUES (?, ?, ?)", (node.id, "bob", 0))
    conn.commit()
    conn.close()

    assert toggle_like(node.id, "bob") == (False, 0)


def test_toggle_like_missing_node(db):
    with pytest.raises(NodeNotFoundError):
        toggle_like(42, "bob")


def test_toggle_like_requires_user(db):
    node = create_node(SUBJECT, "alice", "root")
    with pytest.raises(InvalidInputError):
        toggle_like(node.id, "")


def test_update_node(db, clock):
    node = create_node(SUBJECT, "alice", "root")
    updated = update_node(node.id, "edited")
    assert updated.content == "edited"
    assert updated.updated_at > node.updated_at
    assert updated.created_at == node.created_at

    with pytest.raises(EmptyContentError):
        update_node(node.id, " ")
    with pytest.raises(NodeNotFoundError):
        update_node(999, "edited")


def test_delete_node_removes_subtree_and_likes(db):
    root = create_node(SUBJECT, "alice", "root")
    reply = create_node(SUBJECT, "bob", "reply", parent_id=root.id)
    create_node(SUBJECT, "carol", "nested", parent_id=reply.id)
    sibling = create_node(SUBJECT, "dave", "other root")
    toggle_like(reply.id, "erin")

    assert delete_node(root.id) == 3
    top, total = list_thread(SUBJECT)
    assert [n.id for n in top] == [sibling.id]
    assert total == 1

    conn = sqlite3.connect(str(db))
    likes = conn.execute("SELECT COUNT(*) FROM discussion_likes").fetchone()[0]
    conn.close()
    assert likes == 0

    with pytest.raises(NodeNotFoundError):
        delete_node(root.id)
