"""API tests for the comment and moderator routers."""

import pytest
from fastapi.testclient import TestClient

from comment_engine.comments.models import TargetType


ARTICLE = int(TargetType.ARTICLE)
ARTICLE_ID = 42
OWNER_ID = 99
BASE = "/v1/comments"
ADMIN = "/v1/admin/comments"


def _as(user_id: int) -> dict[str, str]:
    return {"X-User-Id": str(user_id)}


@pytest.fixture
def api(client: TestClient) -> TestClient:
    """Client whose comment service knows a few users and one target owner."""
    service = client.app.state.comment_service
    service.users.add(1, "alice")
    service.users.add(2, "bob")
    service.users.add(3, "carol")
    service.users.add(OWNER_ID, "owner")
    service.ownership.set_owner(ARTICLE, ARTICLE_ID, OWNER_ID)
    return client


def _post_root(api: TestClient, content: str = "Great article", user_id: int = 1):
    return api.post(
        BASE,
        json={"target_type": ARTICLE, "target_id": ARTICLE_ID, "content": content},
        headers=_as(user_id),
    )


class TestCreate:
    """Tests for comment creation endpoints."""

    def test_create_root(self, api: TestClient):
        response = _post_root(api)

        assert response.status_code == 201
        data = response.json()
        assert data["floor_number"] == 1
        assert data["author"] == {"id": 1, "name": "alice", "avatar": ""}
        assert data["root_id"] == data["id"]

    def test_actor_header_required(self, api: TestClient):
        response = api.post(
            BASE,
            json={"target_type": ARTICLE, "target_id": ARTICLE_ID, "content": "hi"},
        )

        assert response.status_code == 422
        assert response.json()["error"] is True

    def test_blank_content(self, api: TestClient):
        response = _post_root(api, content="   ")

        assert response.status_code == 422

    def test_unknown_target_type(self, api: TestClient):
        response = api.post(
            BASE,
            json={"target_type": 9, "target_id": ARTICLE_ID, "content": "hello"},
            headers=_as(1),
        )

        assert response.status_code == 422

    def test_rejected_content(self, api: TestClient):
        response = _post_root(api, content="快来加微信领红包")

        assert response.status_code == 422
        assert response.json()["message"] == "Comentario rejeitado pela moderacao"

    def test_unknown_user(self, api: TestClient):
        response = _post_root(api, user_id=500)

        assert response.status_code == 404

    def test_reply_and_thread(self, api: TestClient):
        root = _post_root(api).json()

        reply = api.post(
            f"{BASE}/{root['id']}/replies",
            json={"content": "Agreed, thanks"},
            headers=_as(2),
        )
        thread = api.get(f"{BASE}/{root['id']}/thread")

        assert reply.status_code == 201
        assert reply.json()["depth"] == 1
        assert reply.json()["reply_chain"] == [root["id"]]
        assert thread.status_code == 200
        assert [c["id"] for c in thread.json()["items"]] == [
            root["id"],
            reply.json()["id"],
        ]

    def test_reply_to_missing_parent(self, api: TestClient):
        response = api.post(
            f"{BASE}/12345/replies", json={"content": "hello"}, headers=_as(2)
        )

        assert response.status_code == 404


class TestReads:
    """Tests for listing endpoints."""

    def test_list_target_comments(self, api: TestClient):
        _post_root(api)
        _post_root(api, user_id=2)

        response = api.get(f"{BASE}/target/{ARTICLE}/{ARTICLE_ID}?sort=floor")

        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 2
        assert [c["floor_number"] for c in data["items"]] == [1, 2]

    def test_invalid_sort(self, api: TestClient):
        response = api.get(f"{BASE}/target/{ARTICLE}/{ARTICLE_ID}?sort=random")

        assert response.status_code == 422

    def test_missing_comment(self, api: TestClient):
        response = api.get(f"{BASE}/999")

        assert response.status_code == 404
        assert response.json()["message"] == "Comentario nao encontrado"

    def test_stats_and_floor_building(self, api: TestClient):
        _post_root(api)
        _post_root(api)

        stats = api.get(f"{BASE}/target/{ARTICLE}/{ARTICLE_ID}/stats")
        building = api.get(
            f"{BASE}/target/{ARTICLE}/{ARTICLE_ID}/floor-building/1"
        )
        missing = api.get(f"{BASE}/target/{ARTICLE}/{ARTICLE_ID}/floor-building/2")

        assert stats.json()["total_comments"] == 2
        assert building.json()["floor_count"] == 2
        assert missing.status_code == 404

    def test_user_comments(self, api: TestClient):
        _post_root(api)

        response = api.get(f"{BASE}/user/1")
        stats = api.get(f"{BASE}/user/1/stats")

        assert response.json()["total"] == 1
        assert stats.json()["total_comments"] == 1


class TestInteractions:
    """Tests for likes, deletion and owner actions."""

    def test_like_twice_conflicts(self, api: TestClient):
        comment_id = _post_root(api).json()["id"]

        first = api.post(f"{BASE}/{comment_id}/like", headers=_as(2))
        second = api.post(f"{BASE}/{comment_id}/like", headers=_as(2))

        assert first.status_code == 200
        assert first.json()["like_count"] == 1
        assert second.status_code == 409

    def test_delete_own_comment_only(self, api: TestClient):
        comment_id = _post_root(api).json()["id"]

        forbidden = api.delete(f"{BASE}/{comment_id}", headers=_as(2))
        deleted = api.delete(f"{BASE}/{comment_id}", headers=_as(1))

        assert forbidden.status_code == 403
        assert deleted.status_code == 204
        assert api.get(f"{BASE}/{comment_id}").status_code == 404

    def test_pin_by_owner(self, api: TestClient):
        comment_id = _post_root(api).json()["id"]

        denied = api.post(f"{BASE}/{comment_id}/pin", headers=_as(1))
        pinned = api.post(f"{BASE}/{comment_id}/pin", headers=_as(OWNER_ID))

        assert denied.status_code == 403
        assert pinned.json()["is_pinned"] is True

    def test_author_reply(self, api: TestClient):
        comment_id = _post_root(api).json()["id"]

        created = api.post(
            f"{BASE}/{comment_id}/author-replies",
            json={"content": "Thanks for reading"},
            headers=_as(OWNER_ID),
        )
        listed = api.get(f"{BASE}/{comment_id}/author-replies")

        assert created.status_code == 201
        assert [r["content"] for r in listed.json()] == ["Thanks for reading"]


class TestReportsAndModeration:
    """Tests for reports and the moderator surface."""

    def test_third_report_folds_comment(self, api: TestClient):
        comment_id = _post_root(api).json()["id"]

        outcomes = [
            api.post(
                f"{BASE}/{comment_id}/reports",
                json={"reason": 1, "description": "spam"},
                headers=_as(reporter),
            ).json()
            for reporter in (2, 3, OWNER_ID)
        ]

        assert [o["folded"] for o in outcomes] == [False, False, True]
        assert outcomes[-1]["report_count"] == 3
        assert api.get(f"{BASE}/{comment_id}").json()["status"] == 4

    def test_handle_report_once(self, api: TestClient):
        comment_id = _post_root(api).json()["id"]
        api.post(f"{BASE}/{comment_id}/reports", json={"reason": 4}, headers=_as(2))

        pending = api.get(f"{ADMIN}/reports", headers=_as(OWNER_ID)).json()
        report_id = pending["items"][0]["id"]
        handled = api.post(
            f"{ADMIN}/reports/{report_id}/handle",
            json={"approved": True, "result": "abusive"},
            headers=_as(OWNER_ID),
        )
        again = api.post(
            f"{ADMIN}/reports/{report_id}/handle",
            json={"approved": False},
            headers=_as(OWNER_ID),
        )

        assert handled.status_code == 200
        assert handled.json()["handler_id"] == OWNER_ID
        assert again.status_code == 409
        assert api.get(f"{BASE}/{comment_id}").status_code == 404

    def test_sensitive_word_takes_effect(self, api: TestClient):
        saved = api.post(
            f"{ADMIN}/sensitive-words",
            json={"word": "forbidden", "level": 2, "action": 2},
            headers=_as(OWNER_ID),
        )
        rejected = _post_root(api, content="this is forbidden text")
        disabled = api.post(
            f"{ADMIN}/sensitive-words/forbidden/disable", headers=_as(OWNER_ID)
        )
        accepted = _post_root(api, content="this is forbidden text")

        assert saved.status_code == 201
        assert rejected.status_code == 422
        assert disabled.status_code == 200
        assert accepted.status_code == 201

    def test_fold_rule_validation(self, api: TestClient):
        ok = api.put(
            f"{ADMIN}/fold-rules",
            json={"name": "reports", "rule_type": 3, "config": {"threshold": 5}},
            headers=_as(OWNER_ID),
        )
        bad = api.put(
            f"{ADMIN}/fold-rules",
            json={"name": "reports", "rule_type": 3, "config": {"threshold": 0}},
            headers=_as(OWNER_ID),
        )

        assert ok.status_code == 200
        assert ok.json()["config"] == {"threshold": 5}
        assert bad.status_code == 422

    def test_refresh_hot_list(self, api: TestClient):
        first = _post_root(api).json()["id"]
        _post_root(api, user_id=2)
        api.post(f"{BASE}/{first}/like", headers=_as(3))

        refreshed = api.post(
            f"{ADMIN}/hot/{ARTICLE}/{ARTICLE_ID}/refresh", headers=_as(OWNER_ID)
        )
        hot = api.get(f"{BASE}/target/{ARTICLE}/{ARTICLE_ID}/hot")

        assert refreshed.status_code == 200
        assert refreshed.json()[0]["comment_id"] == first
        assert [e["comment_id"] for e in hot.json()] == [
            e["comment_id"] for e in refreshed.json()
        ]

    def test_batch_fold(self, api: TestClient):
        comment_id = _post_root(api).json()["id"]

        response = api.post(
            f"{ADMIN}/batch-fold",
            json={"comment_ids": [comment_id, 555]},
            headers=_as(OWNER_ID),
        )

        assert response.json() == {"requested": 2, "affected": 1}

    def test_purge_comment(self, api: TestClient):
        comment_id = _post_root(api).json()["id"]

        purged = api.delete(f"{ADMIN}/{comment_id}/purge", headers=_as(OWNER_ID))
        missing = api.get(f"{BASE}/{comment_id}")
        again = api.delete(f"{ADMIN}/{comment_id}/purge", headers=_as(OWNER_ID))

        assert purged.status_code == 204
        assert missing.status_code == 404
        assert again.status_code == 404
