"""
HTTP tests for task endpoints: role rules, filtering, and the places the
dependency graph reaches into the task lifecycle (completion, deletion).
"""

from datetime import date, timedelta

import pytest

from taskboard.models import TaskStatus

MANAGER_HEADERS = {"Authorization": "Bearer manager-token"}
USER_HEADERS = {"Authorization": "Bearer user-token"}
OTHER_HEADERS = {"Authorization": "Bearer other-token"}


def _future(days: int = 5) -> str:
    return (date.today() + timedelta(days=days)).isoformat()


class TestCreateTask:

    @pytest.mark.asyncio
    async def test_manager_creates_pending_task(self, client, manager, user):
        response = await client.post(
            "/tasks/",
            json={"title": "Set up CI", "description": "GitHub Actions", "due_date": _future(), "assigned_to": user.id},
            headers=MANAGER_HEADERS,
        )

        assert response.status_code == 201
        body = response.json()
        assert body["message"] == "Task created successfully"
        assert body["data"]["status"] == "pending"
        assert body["data"]["created_by"] == manager.id
        assert body["data"]["assigned_to"] == user.id

    @pytest.mark.asyncio
    async def test_status_in_payload_is_ignored(self, client, manager):
        response = await client.post(
            "/tasks/",
            json={"title": "Sneaky", "status": "completed"},
            headers=MANAGER_HEADERS,
        )

        assert response.status_code == 201
        assert response.json()["data"]["status"] == "pending"

    @pytest.mark.asyncio
    async def test_user_cannot_create(self, client, user):
        response = await client.post("/tasks/", json={"title": "Nope"}, headers=USER_HEADERS)

        assert response.status_code == 403
        assert response.json()["message"] == "Unauthorized. Only managers can create tasks."

    @pytest.mark.asyncio
    async def test_due_date_must_be_after_today(self, client, manager):
        response = await client.post(
            "/tasks/",
            json={"title": "Late", "due_date": date.today().isoformat()},
            headers=MANAGER_HEADERS,
        )

        assert response.status_code == 422
        assert "due_date" in response.json()["errors"]

    @pytest.mark.asyncio
    async def test_unknown_assignee(self, client, manager):
        response = await client.post(
            "/tasks/",
            json={"title": "Orphan", "assigned_to": 999},
            headers=MANAGER_HEADERS,
        )

        assert response.status_code == 422
        assert "assigned_to" in response.json()["errors"]

    @pytest.mark.asyncio
    async def test_title_required(self, client, manager):
        response = await client.post("/tasks/", json={"description": "no title"}, headers=MANAGER_HEADERS)

        assert response.status_code == 422
        assert "title" in response.json()["errors"]


class TestListTasks:

    @pytest.mark.asyncio
    async def test_manager_sees_all_newest_first(self, client, make_task, user):
        first = await make_task(assigned_to=user.id)
        second = await make_task()

        response = await client.get("/tasks/", headers=MANAGER_HEADERS)

        assert response.status_code == 200
        page = response.json()["data"]
        assert [t["id"] for t in page["items"]] == [second, first]
        assert page["total"] == 2
        assert page["page"] == 1
        assert page["last_page"] == 1

    @pytest.mark.asyncio
    async def test_user_sees_only_assigned(self, client, make_task, user, other_user):
        mine = await make_task(assigned_to=user.id)
        await make_task(assigned_to=other_user.id)
        await make_task()

        response = await client.get("/tasks/", headers=USER_HEADERS)

        items = response.json()["data"]["items"]
        assert [t["id"] for t in items] == [mine]

    @pytest.mark.asyncio
    async def test_filters(self, client, make_task, user):
        done = await make_task(status=TaskStatus.COMPLETED, assigned_to=user.id)
        await make_task(status=TaskStatus.PENDING)

        response = await client.get("/tasks/", params={"status": "completed"}, headers=MANAGER_HEADERS)
        assert [t["id"] for t in response.json()["data"]["items"]] == [done]

        response = await client.get("/tasks/", params={"assigned_user": user.id}, headers=MANAGER_HEADERS)
        assert [t["id"] for t in response.json()["data"]["items"]] == [done]

        response = await client.get(
            "/tasks/",
            params={"due_date_from": _future(1), "due_date_to": _future(30)},
            headers=MANAGER_HEADERS,
        )
        assert response.json()["data"]["total"] == 2

        response = await client.get(
            "/tasks/",
            params={"due_date_from": _future(30), "due_date_to": _future(60)},
            headers=MANAGER_HEADERS,
        )
        assert response.json()["data"]["total"] == 0

    @pytest.mark.asyncio
    async def test_invalid_status_filter(self, client, manager):
        response = await client.get("/tasks/", params={"status": "archived"}, headers=MANAGER_HEADERS)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_pagination(self, client, make_task):
        for _ in range(5):
            await make_task()

        response = await client.get("/tasks/", params={"per_page": 2, "page": 3}, headers=MANAGER_HEADERS)

        page = response.json()["data"]
        assert len(page["items"]) == 1
        assert page["total"] == 5
        assert page["last_page"] == 3


class TestShowTask:

    @pytest.mark.asyncio
    async def test_detail_includes_dependency_ids(self, client, make_task):
        t, d, child = await make_task(), await make_task(), await make_task()
        await client.post(f"/tasks/{t}/dependencies", json={"depends_on_task_id": d}, headers=MANAGER_HEADERS)
        await client.post(f"/tasks/{child}/dependencies", json={"depends_on_task_id": t}, headers=MANAGER_HEADERS)

        response = await client.get(f"/tasks/{t}", headers=MANAGER_HEADERS)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["dependency_ids"] == [d]
        assert data["dependent_ids"] == [child]
        assert data["can_be_completed"] is False

    @pytest.mark.asyncio
    async def test_user_cannot_view_unassigned(self, client, make_task, user):
        t = await make_task()

        response = await client.get(f"/tasks/{t}", headers=USER_HEADERS)

        assert response.status_code == 403
        assert response.json()["message"] == "Unauthorized. You can only view tasks assigned to you."

    @pytest.mark.asyncio
    async def test_missing(self, client, manager):
        response = await client.get("/tasks/31337", headers=MANAGER_HEADERS)

        assert response.status_code == 404
        assert response.json() == {"success": False, "error": "not_found", "message": "Task not found"}


class TestUpdateTask:

    @pytest.mark.asyncio
    async def test_manager_updates_fields(self, client, make_task):
        t = await make_task()

        response = await client.put(
            f"/tasks/{t}",
            json={"title": "Renamed", "status": "in_progress"},
            headers=MANAGER_HEADERS,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Task updated successfully"
        assert body["data"]["title"] == "Renamed"
        assert body["data"]["status"] == "in_progress"

    @pytest.mark.asyncio
    async def test_assignee_updates_status_only(self, client, make_task, user):
        t = await make_task(assigned_to=user.id)

        response = await client.patch(f"/tasks/{t}", json={"status": "in_progress"}, headers=USER_HEADERS)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "in_progress"

        response = await client.patch(
            f"/tasks/{t}",
            json={"status": "pending", "title": "Mine now"},
            headers=USER_HEADERS,
        )
        assert response.status_code == 422
        assert "title" in response.json()["errors"]

    @pytest.mark.asyncio
    async def test_non_assignee_cannot_update(self, client, make_task, user, other_user):
        t = await make_task(assigned_to=user.id)

        response = await client.patch(f"/tasks/{t}", json={"status": "in_progress"}, headers=OTHER_HEADERS)

        assert response.status_code == 403
        assert response.json()["message"] == "Unauthorized. You can only update tasks assigned to you."

    @pytest.mark.asyncio
    async def test_completion_gated_on_dependencies(self, client, make_task, set_status, user):
        t = await make_task(assigned_to=user.id)
        d = await make_task(status=TaskStatus.IN_PROGRESS)
        await client.post(f"/tasks/{t}/dependencies", json={"depends_on_task_id": d}, headers=MANAGER_HEADERS)

        response = await client.patch(f"/tasks/{t}", json={"status": "completed"}, headers=USER_HEADERS)
        assert response.status_code == 422
        body = response.json()
        assert body["error"] == "incomplete_dependencies"
        assert body["message"] == "Cannot complete task. Some dependencies are not yet completed."

        shown = await client.get(f"/tasks/{t}", headers=USER_HEADERS)
        assert shown.json()["data"]["status"] == "pending"

        await set_status(d, TaskStatus.COMPLETED)

        response = await client.patch(f"/tasks/{t}", json={"status": "completed"}, headers=USER_HEADERS)
        assert response.status_code == 200
        assert response.json()["data"]["status"] == "completed"

    @pytest.mark.asyncio
    async def test_completed_task_recompleted_with_new_incomplete_dependency(self, client, make_task):
        """A completed task that gains an incomplete dependency cannot be re-completed."""
        t = await make_task(status=TaskStatus.COMPLETED)
        d = await make_task(status=TaskStatus.PENDING)
        added = await client.post(f"/tasks/{t}/dependencies", json={"depends_on_task_id": d}, headers=MANAGER_HEADERS)
        assert added.status_code == 201

        response = await client.put(f"/tasks/{t}", json={"status": "completed"}, headers=MANAGER_HEADERS)

        assert response.status_code == 422
        assert response.json()["error"] == "incomplete_dependencies"

    @pytest.mark.asyncio
    async def test_manager_also_gated(self, client, make_task):
        t, d = await make_task(), await make_task()
        await client.post(f"/tasks/{t}/dependencies", json={"depends_on_task_id": d}, headers=MANAGER_HEADERS)

        response = await client.put(f"/tasks/{t}", json={"status": "completed"}, headers=MANAGER_HEADERS)

        assert response.status_code == 422


class TestDeleteTask:

    @pytest.mark.asyncio
    async def test_blocked_by_dependents(self, client, make_task):
        parent, child = await make_task(), await make_task()
        await client.post(f"/tasks/{child}/dependencies", json={"depends_on_task_id": parent}, headers=MANAGER_HEADERS)

        response = await client.delete(f"/tasks/{parent}", headers=MANAGER_HEADERS)
        assert response.status_code == 422
        assert response.json()["error"] == "dependents_exist"

        await client.delete(f"/tasks/{child}/dependencies/{parent}", headers=MANAGER_HEADERS)

        response = await client.delete(f"/tasks/{parent}", headers=MANAGER_HEADERS)
        assert response.status_code == 200
        assert response.json()["message"] == "Task deleted successfully"

        response = await client.get(f"/tasks/{parent}", headers=MANAGER_HEADERS)
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_delete_removes_own_dependencies(self, client, make_task):
        t, d = await make_task(), await make_task()
        await client.post(f"/tasks/{t}/dependencies", json={"depends_on_task_id": d}, headers=MANAGER_HEADERS)

        response = await client.delete(f"/tasks/{t}", headers=MANAGER_HEADERS)
        assert response.status_code == 200

        dependents = await client.get(f"/tasks/{d}/dependents", headers=MANAGER_HEADERS)
        assert dependents.json()["data"] == []

    @pytest.mark.asyncio
    async def test_user_cannot_delete(self, client, make_task, user):
        t = await make_task(assigned_to=user.id)

        response = await client.delete(f"/tasks/{t}", headers=USER_HEADERS)

        assert response.status_code == 403
        assert response.json()["message"] == "Unauthorized. Only managers can delete tasks."


class TestProfileAndHealth:

    @pytest.mark.asyncio
    async def test_profile_provisions_user_from_claims(self, client):
        response = await client.get("/auth/profile", headers=USER_HEADERS)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["email"] == "alice@taskapp.com"
        assert data["role"] == "user"

    @pytest.mark.asyncio
    async def test_profile_requires_token(self, client):
        response = await client.get("/auth/profile")

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_health(self, client):
        response = await client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
