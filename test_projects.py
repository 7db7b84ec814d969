import pytest
from unittest.mock import AsyncMock, patch
from sqlalchemy import select

from choreograph.models.project import project_members
from choreograph.models.user import User
from choreograph.services.project_service import ProjectService

API = "/api/v1"


class TestProjectsApi:
    """Тесты проектов и участников"""

    @pytest.mark.asyncio
    async def test_create_and_list(self, client, signup, create_project):
        headers, user = await signup("owner@example.com")
        other_headers, _ = await signup("other@example.com")

        project = await create_project(headers, "  Launch  ")
        assert project["name"] == "Launch"
        assert project["owner_id"] == user["id"]

        mine = await client.get(f"{API}/projects", headers=headers)
        theirs = await client.get(f"{API}/projects", headers=other_headers)
        assert [item["id"] for item in mine.json()] == [project["id"]]
        assert theirs.json() == []

    @pytest.mark.asyncio
    async def test_detail_lists_owner_as_member(self, client, signup, create_project):
        headers, user = await signup("owner@example.com")
        project = await create_project(headers)

        response = await client.get(f"{API}/projects/{project['id']}", headers=headers)

        assert response.status_code == 200
        members = response.json()["members"]
        assert members == [{"id": user["id"], "email": "owner@example.com", "name": "Test User", "is_owner": True}]

    @pytest.mark.asyncio
    async def test_members_lifecycle(self, client, signup, create_project):
        """Владелец добавляет и удаляет участника; участник видит проект"""
        owner_headers, _ = await signup("owner@example.com")
        member_headers, member = await signup("member@example.com", name="Member")
        project = await create_project(owner_headers)
        members_url = f"{API}/projects/{project['id']}/members"

        added = await client.post(members_url, json={"email": "MEMBER@example.com"}, headers=owner_headers)
        assert added.status_code == 201
        assert {item["email"] for item in added.json()} == {"owner@example.com", "member@example.com"}

        again = await client.post(members_url, json={"email": "member@example.com"}, headers=owner_headers)
        assert again.status_code == 400

        unknown = await client.post(members_url, json={"email": "ghost@example.com"}, headers=owner_headers)
        assert unknown.status_code == 404

        visible = await client.get(f"{API}/projects", headers=member_headers)
        assert [item["id"] for item in visible.json()] == [project["id"]]

        listed = await client.get(members_url, headers=member_headers)
        assert listed.status_code == 200

        removed = await client.delete(f"{members_url}/{member['id']}", headers=owner_headers)
        assert removed.status_code == 204

        gone = await client.get(f"{API}/projects/{project['id']}", headers=member_headers)
        assert gone.status_code == 403

    @pytest.mark.asyncio
    async def test_owner_cannot_be_removed(self, client, signup, create_project):
        headers, user = await signup("owner@example.com")
        project = await create_project(headers)

        response = await client.delete(
            f"{API}/projects/{project['id']}/members/{user['id']}", headers=headers
        )
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_owner_only_operations(self, client, signup, create_project):
        """Участник не может менять, удалять проект и управлять участниками"""
        owner_headers, _ = await signup("owner@example.com")
        member_headers, _ = await signup("member@example.com")
        await signup("third@example.com")
        project = await create_project(owner_headers)
        url = f"{API}/projects/{project['id']}"
        await client.post(f"{url}/members", json={"email": "member@example.com"}, headers=owner_headers)

        renamed = await client.put(url, json={"name": "Mine now"}, headers=member_headers)
        invited = await client.post(f"{url}/members", json={"email": "third@example.com"}, headers=member_headers)
        deleted = await client.delete(url, headers=member_headers)

        assert renamed.status_code == 403
        assert invited.status_code == 403
        assert deleted.status_code == 403

    @pytest.mark.asyncio
    async def test_update_and_delete(self, client, signup, create_project):
        headers, _ = await signup("owner@example.com")
        project = await create_project(headers)
        url = f"{API}/projects/{project['id']}"
        await client.post(f"{url}/columns", json={"name": "Todo"}, headers=headers)
        await client.post(f"{url}/tasks", json={"title": "Task"}, headers=headers)

        updated = await client.put(url, json={"description": "Q4 launch"}, headers=headers)
        assert updated.status_code == 200
        assert updated.json()["description"] == "Q4 launch"
        assert updated.json()["name"] == "Test Project"

        deleted = await client.delete(url, headers=headers)
        assert deleted.status_code == 204
        assert (await client.get(url, headers=headers)).status_code == 404

    @pytest.mark.asyncio
    async def test_invalid_project_id(self, client, signup):
        headers, _ = await signup("owner@example.com")

        response = await client.get(f"{API}/projects/not-a-number", headers=headers)

        assert response.status_code == 400
        assert response.json()["message"] == "Invalid input"


class TestUsersApi:
    """Тесты профиля и поиска пользователей"""

    @pytest.mark.asyncio
    async def test_profile(self, client, signup):
        headers, user = await signup("alice@example.com", name="Alice")

        profile = await client.get(f"{API}/users/profile", headers=headers)
        assert profile.json() == user

        updated = await client.put(f"{API}/users/profile", json={"name": "Alice Smith"}, headers=headers)
        assert updated.status_code == 200
        assert updated.json()["name"] == "Alice Smith"

    @pytest.mark.asyncio
    async def test_search_excludes_self(self, client, signup):
        headers, _ = await signup("alice@example.com", name="Alice")
        await signup("alina@example.com", name="Alina")
        await signup("bob@example.com", name="Bob")

        response = await client.get(f"{API}/users/search/ali", headers=headers)

        assert response.status_code == 200
        assert [item["name"] for item in response.json()] == ["Alina"]

    @pytest.mark.asyncio
    async def test_profile_projects_summary(self, client, signup, create_project):
        owner_headers, _ = await signup("owner@example.com")
        member_headers, _ = await signup("member@example.com")
        owned = await create_project(member_headers, "Own")
        shared = await create_project(owner_headers, "Shared")
        await client.post(
            f"{API}/projects/{shared['id']}/members",
            json={"email": "member@example.com"},
            headers=owner_headers,
        )

        response = await client.get(f"{API}/users/profile/projects", headers=member_headers)

        body = response.json()
        assert body["total"] == 2
        assert body["owned"] == 1
        assert body["member"] == 1
        assert {item["id"] for item in body["projects"]} == {owned["id"], shared["id"]}


class TestHealth:
    @pytest.mark.asyncio
    async def test_health_endpoints(self, client):
        root = await client.get("/")
        health = await client.get(f"{API}/health")

        assert root.status_code == 200
        assert health.json() == {"status": "ok"}


class TestAddMember:
    """Тесты добавления участника на уровне сервиса"""

    @pytest.mark.asyncio
    async def test_concurrent_insert_reported_as_existing_member(self, db, project):
        """Строка участника появилась между проверкой и вставкой - False вместо IntegrityError"""
        user = User(email="member@example.com", name="Member", hashed_password="x")
        db.add(user)
        await db.commit()
        user_id = user.id
        await db.execute(project_members.insert().values(user_id=user_id, project_id=project.id))
        await db.commit()

        with patch('choreograph.services.project_service.ProjectService.is_member', new=AsyncMock(return_value=False)):
            added = await ProjectService.add_member(db, project.id, user_id)

        assert added is False
        rows = await db.execute(
            select(project_members.c.user_id).where(project_members.c.project_id == project.id)
        )
        assert sorted(row[0] for row in rows) == sorted([project.owner_id, user_id])

    @pytest.mark.asyncio
    async def test_new_member_added(self, db, project):
        user = User(email="member@example.com", name="Member", hashed_password="x")
        db.add(user)
        await db.commit()

        assert await ProjectService.add_member(db, project.id, user.id) is True
        assert await ProjectService.is_member(db, project.id, user.id) is True
        assert await ProjectService.add_member(db, project.id, user.id) is False
