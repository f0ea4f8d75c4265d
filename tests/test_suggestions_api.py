"""
API tests for the suggestion workflow: creation, review and listing.
"""
import pytest

from app.core.database.engine import AsyncSessionLocal
from app.features.contractors.models import ContractorFile
from app.features.permissions.models import Permission
from app.features.suggestions.workflow import approve_suggestion, load_suggestion, reject_suggestion
from tests.conftest import auth


@pytest.fixture
async def manager(make_user):
    """Reviewer owning the contractor."""
    return await make_user("manager", [Permission.EDIT_OWN_CLIENT, Permission.VIEW_ALL_CLIENTS])


@pytest.fixture
async def suggester(make_user):
    return await make_user("suggester", [Permission.SUGGEST_EDITS, Permission.VIEW_ALL_CLIENTS])


@pytest.fixture
async def contractor(make_contractor, manager):
    return await make_contractor("Acme", manager=manager, inn="100")


async def _suggest(client, user, contractor, changes, comment=None):
    response = await client.post(
        "/suggestions",
        json={"contractor_id": contractor.id, "changes": changes, "comment": comment},
        headers=auth(user),
    )
    assert response.status_code == 201, response.text
    return response.json()


async def _review(client, user, suggestion_id, action, **extra):
    return await client.put(
        f"/suggestions/{suggestion_id}",
        json={"action": action, **extra},
        headers=auth(user),
    )


class TestCreate:

    async def test_requires_suggest_permission(self, client, make_user, contractor):
        user = await make_user("viewer", [Permission.VIEW_ALL_CLIENTS])

        response = await client.post(
            "/suggestions",
            json={"contractor_id": contractor.id, "changes": {"name": {"old": "Acme", "new": "X"}}},
            headers=auth(user),
        )

        assert response.status_code == 403

    async def test_unknown_contractor_is_404(self, client, suggester):
        response = await client.post(
            "/suggestions",
            json={"contractor_id": "missing", "changes": {"name": {"new": "X"}}},
            headers=auth(suggester),
        )

        assert response.status_code == 404

    async def test_empty_changes_are_rejected(self, client, suggester, contractor):
        response = await client.post(
            "/suggestions",
            json={"contractor_id": contractor.id, "changes": {}},
            headers=auth(suggester),
        )

        assert response.status_code == 400

    async def test_client_id_alias_is_accepted(self, client, suggester, contractor):
        response = await client.post(
            "/suggestions",
            json={"client_id": contractor.id, "changes": {"inn": {"old": "100", "new": "200"}}},
            headers=auth(suggester),
        )

        assert response.status_code == 201
        assert response.json()["contractor_id"] == contractor.id

    async def test_added_files_are_linked_and_pending(self, client, suggester, contractor):
        uploaded = await client.post(
            f"/contractors/{contractor.id}/files",
            json=[{"filename": "scan.pdf", "storage_path": "scan.pdf", "is_pending": True}],
            headers=auth(suggester),
        )
        file_id = uploaded.json()[0]["id"]

        suggestion = await _suggest(
            client, suggester, contractor, {"files": {"new": {"added": [file_id], "removed": []}}}
        )

        assert [f["id"] for f in suggestion["files"]] == [file_id]
        assert suggestion["files"][0]["is_pending"] is True

    async def test_unused_pending_uploads_are_dropped(self, client, suggester, contractor, session):
        uploaded = await client.post(
            f"/contractors/{contractor.id}/files",
            json=[
                {"filename": "used.pdf", "storage_path": "used.pdf", "is_pending": True},
                {"filename": "stale.pdf", "storage_path": "stale.pdf", "is_pending": True},
            ],
            headers=auth(suggester),
        )
        used_id, stale_id = (f["id"] for f in uploaded.json())

        await _suggest(client, suggester, contractor, {"files": {"new": {"added": [used_id], "removed": []}}})

        assert await session.get(ContractorFile, used_id, populate_existing=True) is not None
        assert await session.get(ContractorFile, stale_id, populate_existing=True) is None

    async def test_cannot_claim_files_uploaded_by_someone_else(self, client, make_user, suggester, contractor):
        other = await make_user("other", [Permission.SUGGEST_EDITS])
        uploaded = await client.post(
            f"/contractors/{contractor.id}/files",
            json=[{"filename": "theirs.pdf", "storage_path": "theirs.pdf", "is_pending": True}],
            headers=auth(other),
        )

        response = await client.post(
            "/suggestions",
            json={
                "contractor_id": contractor.id,
                "changes": {"files": {"new": {"added": [uploaded.json()[0]["id"]], "removed": []}}},
            },
            headers=auth(suggester),
        )

        assert response.status_code == 400


class TestApprove:

    async def test_approve_applies_changes_once(self, client, suggester, manager, contractor):
        suggestion = await _suggest(client, suggester, contractor, {"name": {"old": "Acme", "new": "Acme Ltd"}})

        first = await _review(client, manager, suggestion["id"], "approve", review_comment="ok")
        edited = await client.put(f"/contractors/{contractor.id}", json={"name": "Manual"}, headers=auth(manager))
        second = await _review(client, manager, suggestion["id"], "approve", review_comment="again")

        assert first.status_code == 200
        assert first.json()["status"] == "APPROVED"
        assert first.json()["reviewed_by_id"] == manager.id
        assert edited.status_code == 200

        assert second.status_code == 200
        assert second.json()["review_comment"] == "ok"
        assert second.json()["reviewed_at"] == first.json()["reviewed_at"]
        current = await client.get(f"/contractors/{contractor.id}", headers=auth(manager))
        assert current.json()["name"] == "Manual"

    async def test_reject_after_approve_conflicts(self, client, suggester, manager, contractor):
        suggestion = await _suggest(client, suggester, contractor, {"name": {"old": "Acme", "new": "X"}})

        await _review(client, manager, suggestion["id"], "approve")
        response = await _review(client, manager, suggestion["id"], "reject")

        assert response.status_code == 409

    async def test_accepted_fields_limit_what_is_applied(self, client, suggester, manager, contractor):
        suggestion = await _suggest(client, suggester, contractor, {
            "name": {"old": "Acme", "new": "Acme Ltd"},
            "inn": {"old": "100", "new": "999"},
        })

        response = await _review(client, manager, suggestion["id"], "approve", accepted_fields=["inn"])

        assert response.status_code == 200
        current = (await client.get(f"/contractors/{contractor.id}", headers=auth(manager))).json()
        assert current["name"] == "Acme"
        assert current["inn"] == "999"

    async def test_invalid_value_leaves_suggestion_pending(self, client, suggester, manager, contractor):
        suggestion = await _suggest(client, suggester, contractor, {"status": {"old": "ACTIVE", "new": "BANKRUPT"}})

        response = await _review(client, manager, suggestion["id"], "approve")
        fetched = await client.get(f"/suggestions/{suggestion['id']}", headers=auth(manager))

        assert response.status_code == 400
        assert fetched.json()["status"] == "PENDING"

    async def test_approve_applies_service_point_changes(
        self, client, suggester, manager, contractor, make_service_point
    ):
        kept = await make_service_point(contractor, "Kept", fronts_count=5)
        removed = await make_service_point(contractor, "Removed")
        suggestion = await _suggest(client, suggester, contractor, {
            "servicePoints": {"new": {
                "updates": [{"id": kept.id, "diff": {"fronts_on_service": {"new": 4}}}],
                "deletes": [removed.id],
            }},
        })

        response = await _review(client, manager, suggestion["id"], "approve")

        assert response.status_code == 200
        points = (await client.get(f"/contractors/{contractor.id}/service-points", headers=auth(manager))).json()
        assert [(p["name"], p["fronts_on_service"]) for p in points] == [("Kept", 4)]

    async def test_approve_publishes_files(self, client, suggester, manager, contractor, session):
        kept = await client.post(
            f"/contractors/{contractor.id}/files",
            json=[{"filename": "old.pdf", "storage_path": "old.pdf"}],
            headers=auth(manager),
        )
        new = await client.post(
            f"/contractors/{contractor.id}/files",
            json=[{"filename": "new.pdf", "storage_path": "new.pdf", "is_pending": True}],
            headers=auth(suggester),
        )
        old_id, new_id = kept.json()[0]["id"], new.json()[0]["id"]
        suggestion = await _suggest(
            client, suggester, contractor, {"files": {"new": {"added": [new_id], "removed": [old_id]}}}
        )

        response = await _review(client, manager, suggestion["id"], "approve")

        assert response.status_code == 200
        listed = await client.get(f"/contractors/{contractor.id}/files", headers=auth(manager))
        assert [f["id"] for f in listed.json()] == [new_id]
        assert await session.get(ContractorFile, old_id, populate_existing=True) is None

    async def test_reviewer_needs_edit_rights(self, client, make_user, suggester, contractor):
        outsider = await make_user("outsider", [Permission.EDIT_OWN_CLIENT, Permission.VIEW_ALL_CLIENTS])
        suggestion = await _suggest(client, suggester, contractor, {"name": {"old": "Acme", "new": "X"}})

        response = await _review(client, outsider, suggestion["id"], "approve")

        assert response.status_code == 403


class TestReject:

    async def test_reject_drops_pending_files_and_keeps_contractor(
        self, client, suggester, manager, contractor, session
    ):
        uploaded = await client.post(
            f"/contractors/{contractor.id}/files",
            json=[{"filename": "scan.pdf", "storage_path": "scan.pdf", "is_pending": True}],
            headers=auth(suggester),
        )
        file_id = uploaded.json()[0]["id"]
        suggestion = await _suggest(client, suggester, contractor, {
            "name": {"old": "Acme", "new": "X"},
            "files": {"new": {"added": [file_id], "removed": []}},
        })

        first = await _review(client, manager, suggestion["id"], "reject", review_comment="no")
        second = await _review(client, manager, suggestion["id"], "reject")
        opposite = await _review(client, manager, suggestion["id"], "approve")

        assert first.status_code == 200
        assert first.json()["status"] == "REJECTED"
        assert second.status_code == 200
        assert second.json()["reviewed_at"] == first.json()["reviewed_at"]
        assert opposite.status_code == 409
        assert await session.get(ContractorFile, file_id, populate_existing=True) is None
        current = await client.get(f"/contractors/{contractor.id}", headers=auth(manager))
        assert current.json()["name"] == "Acme"

    async def test_published_file_cannot_be_pulled_into_a_suggestion(self, client, suggester, manager, contractor):
        published = await client.post(
            f"/contractors/{contractor.id}/files",
            json=[{"filename": "contract.pdf", "storage_path": "contract.pdf"}],
            headers=auth(manager),
        )
        file_id = published.json()[0]["id"]

        response = await client.post(
            "/suggestions",
            json={"contractor_id": contractor.id, "changes": {"files": {"new": {"added": [file_id], "removed": []}}}},
            headers=auth(suggester),
        )
        listed = await client.get(f"/contractors/{contractor.id}/files", headers=auth(manager))

        assert response.status_code == 400
        assert [f["id"] for f in listed.json()] == [file_id]

    async def test_file_linked_elsewhere_survives_rejection(self, client, suggester, manager, contractor, session):
        uploaded = await client.post(
            f"/contractors/{contractor.id}/files",
            json=[{"filename": "scan.pdf", "storage_path": "scan.pdf", "is_pending": True}],
            headers=auth(suggester),
        )
        file_id = uploaded.json()[0]["id"]
        await _suggest(client, suggester, contractor, {"files": {"new": {"added": [file_id], "removed": []}}})

        hijack = await client.post(
            "/suggestions",
            json={"contractor_id": contractor.id, "changes": {"files": {"new": {"added": [file_id], "removed": []}}}},
            headers=auth(suggester),
        )
        other = await _suggest(client, suggester, contractor, {"name": {"old": "Acme", "new": "X"}})
        rejected = await _review(client, manager, other["id"], "reject")

        assert hijack.status_code == 400
        assert rejected.status_code == 200
        assert await session.get(ContractorFile, file_id, populate_existing=True) is not None


class TestConcurrentReview:

    async def test_second_reviewer_loses_the_claim(self, client, suggester, manager, contractor):
        suggestion = await _suggest(client, suggester, contractor, {"name": {"old": "Acme", "new": "Acme Ltd"}})

        async with AsyncSessionLocal() as first, AsyncSessionLocal() as second:
            seen_by_first = await load_suggestion(first, suggestion["id"])
            seen_by_second = await load_suggestion(second, suggestion["id"])

            rejected = await reject_suggestion(first, seen_by_first, manager, review_comment="no")
            approved = await approve_suggestion(second, seen_by_second, manager)
            await second.rollback()

        fetched = await client.get(f"/suggestions/{suggestion['id']}", headers=auth(manager))
        current = await client.get(f"/contractors/{contractor.id}", headers=auth(manager))

        assert rejected is True
        assert approved is False
        assert fetched.json()["status"] == "REJECTED"
        assert fetched.json()["review_comment"] == "no"
        assert current.json()["name"] == "Acme"

    async def test_losing_the_opposite_decision_conflicts(self, client, suggester, manager, contractor):
        suggestion = await _suggest(client, suggester, contractor, {"name": {"old": "Acme", "new": "Acme Ltd"}})

        async with AsyncSessionLocal() as db:
            await reject_suggestion(db, await load_suggestion(db, suggestion["id"]), manager)

        response = await _review(client, manager, suggestion["id"], "approve")

        assert response.status_code == 409


class TestListing:

    async def test_reviewers_see_suggestions_on_owned_contractors(
        self, client, make_user, make_contractor, suggester, manager, contractor
    ):
        other = await make_contractor("Other")
        await _suggest(client, suggester, contractor, {"name": {"old": "Acme", "new": "A"}})
        await _suggest(client, suggester, other, {"name": {"old": "Other", "new": "B"}})
        senior = await make_user("senior", [Permission.EDIT_ALL_CLIENTS])

        as_manager = await client.get("/suggestions", headers=auth(manager))
        as_senior = await client.get("/suggestions", params={"status": "PENDING"}, headers=auth(senior))
        as_author = await client.get("/suggestions", params={"mine": "true"}, headers=auth(suggester))

        assert [s["contractor_id"] for s in as_manager.json()] == [contractor.id]
        assert len(as_senior.json()) == 2
        assert len(as_author.json()) == 2

    async def test_count(self, client, suggester, manager, contractor):
        suggestion = await _suggest(client, suggester, contractor, {"name": {"old": "Acme", "new": "A"}})
        await _suggest(client, suggester, contractor, {"inn": {"old": "100", "new": "1"}})
        await _review(client, manager, suggestion["id"], "reject")

        response = await client.get("/suggestions/count", headers=auth(manager))

        assert response.json() == {"count": 1, "managed_clients_count": 1}

    async def test_author_can_read_own_suggestion(self, client, make_user, suggester, contractor):
        suggestion = await _suggest(client, suggester, contractor, {"name": {"old": "Acme", "new": "A"}})
        stranger = await make_user("stranger", [Permission.VIEW_ALL_CLIENTS])

        own = await client.get(f"/suggestions/{suggestion['id']}", headers=auth(suggester))
        foreign = await client.get(f"/suggestions/{suggestion['id']}", headers=auth(stranger))

        assert own.status_code == 200
        assert foreign.status_code == 403
