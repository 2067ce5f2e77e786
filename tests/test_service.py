"""End-to-end tests for the to-do HTTP API."""

from __future__ import annotations

import unittest

from fastapi.testclient import TestClient

from todoapp.memory import MemoryDatabase
from todoapp.service import create_app
from todoapp.sessions import SessionIssuer
from todoapp.users import CredentialStore

PASSWORD = "SuperSecret123!"


class TodoServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.backend = MemoryDatabase()
        self.backend.initialize()
        self.issuer = SessionIssuer("tests-secret-key")
        self.app = create_app(backend=self.backend, issuer=self.issuer)
        self.client = TestClient(self.app)

    def tearDown(self) -> None:
        self.client.close()

    def _register(self, username: str = "alice", email: str = "alice@example.com") -> dict:
        response = self.client.post(
            "/auth/register",
            json={"username": username, "email": email, "password": PASSWORD},
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    def _headers(self, token: str) -> dict:
        return {"Authorization": f"Bearer {token}"}

    def _create_task(self, token: str, **payload) -> dict:
        response = self.client.post("/tasks", json=payload, headers=self._headers(token))
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------
    def test_register_then_login(self) -> None:
        registered = self._register()
        self.assertEqual(registered["user"]["username"], "alice")
        self.assertEqual(registered["user"]["email"], "alice@example.com")
        self.assertIn("createdAt", registered["user"])
        self.assertNotIn("password", registered["user"])
        self.assertNotIn("credential_hash", registered["user"])
        self.assertTrue(registered["token"])

        login = self.client.post(
            "/auth/login",
            json={"email": "ALICE@example.com", "password": PASSWORD},
        )
        self.assertEqual(login.status_code, 200, login.text)
        payload = login.json()
        self.assertEqual(payload["user"]["id"], registered["user"]["id"])
        self.assertIsNotNone(self.issuer.verify(payload["token"]))

    def test_login_failures_do_not_reveal_account_existence(self) -> None:
        self._register()

        wrong_password = self.client.post(
            "/auth/login",
            json={"email": "alice@example.com", "password": "not-the-password"},
        )
        unknown_email = self.client.post(
            "/auth/login",
            json={"email": "nobody@example.com", "password": PASSWORD},
        )

        self.assertEqual(wrong_password.status_code, 401)
        self.assertEqual(unknown_email.status_code, 401)
        self.assertEqual(wrong_password.json(), unknown_email.json())
        self.assertEqual(wrong_password.json(), {"error": "Invalid credentials"})

    def test_login_requires_both_fields(self) -> None:
        response = self.client.post("/auth/login", json={"email": "alice@example.com"})
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Email and password are required"})

    def test_register_with_used_email_is_rejected(self) -> None:
        self._register()

        duplicate = self.client.post(
            "/auth/register",
            json={"username": "alice2", "email": "alice@example.com", "password": PASSWORD},
        )

        self.assertEqual(duplicate.status_code, 400)
        self.assertEqual(duplicate.json(), {"error": "User already exists"})
        self.assertEqual(len(CredentialStore(self.backend).list_all()), 1)

    def test_register_requires_all_fields(self) -> None:
        response = self.client.post("/auth/register", json={"username": "alice"})
        self.assertEqual(response.status_code, 400)
        self.assertIn("required", response.json()["error"])

    def test_register_rejects_short_password(self) -> None:
        response = self.client.post(
            "/auth/register",
            json={"username": "alice", "email": "alice@example.com", "password": "12345"},
        )
        self.assertEqual(response.status_code, 400)

    def test_demo_login_requires_seeded_account(self) -> None:
        missing = self.client.post("/auth/demo")
        self.assertEqual(missing.status_code, 404)
        self.assertEqual(missing.json(), {"error": "Demo user not found"})

        CredentialStore(self.backend).create("demo", "demo@example.com", "demo123")
        found = self.client.post("/auth/demo")
        self.assertEqual(found.status_code, 200, found.text)
        self.assertEqual(found.json()["user"]["username"], "demo")

    def test_demo_login_ignores_account_with_other_email(self) -> None:
        CredentialStore(self.backend).create("demo", "someone@example.com", "their-password")

        response = self.client.post("/auth/demo")

        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Demo user not found"})

    def test_demo_login_disabled(self) -> None:
        CredentialStore(self.backend).create("demo", "demo@example.com", "demo123")
        app = create_app(backend=self.backend, issuer=self.issuer, demo_enabled=False)

        with TestClient(app) as client:
            response = client.post("/auth/demo")

        self.assertEqual(response.status_code, 404)

    def test_profile_returns_user_without_credentials(self) -> None:
        registered = self._register()

        response = self.client.get("/auth/profile", headers=self._headers(registered["token"]))

        self.assertEqual(response.status_code, 200, response.text)
        user = response.json()["user"]
        self.assertEqual(user["id"], registered["user"]["id"])
        self.assertEqual(set(user), {"id", "username", "email", "createdAt", "updatedAt"})
        self.assertNotIn("$2b$", response.text)

    def test_profile_of_vanished_user_is_not_found(self) -> None:
        token = self.issuer.issue("no-such-user", "ghost@example.com")
        response = self.client.get("/auth/profile", headers=self._headers(token))
        self.assertEqual(response.status_code, 404)

    def test_missing_or_invalid_token_is_rejected(self) -> None:
        missing = self.client.get("/tasks")
        self.assertEqual(missing.status_code, 401)
        self.assertEqual(missing.headers.get("www-authenticate"), "Bearer")
        self.assertIn("error", missing.json())

        invalid = self.client.get("/tasks", headers=self._headers("not-a-token"))
        self.assertEqual(invalid.status_code, 401)

        foreign = SessionIssuer("some-other-secret").issue("x", "x@example.com")
        self.assertEqual(self.client.get("/tasks", headers=self._headers(foreign)).status_code, 401)

    # ------------------------------------------------------------------
    # Tasks
    # ------------------------------------------------------------------
    def test_task_crud_lifecycle(self) -> None:
        token = self._register()["token"]
        headers = self._headers(token)

        created = self._create_task(token, title="Write tests", description="for the API")
        self.assertEqual(created["status"], "incomplete")
        self.assertEqual(created["description"], "for the API")
        task_id = created["id"]

        fetched = self.client.get(f"/tasks/{task_id}", headers=headers)
        self.assertEqual(fetched.status_code, 200)
        self.assertEqual(fetched.json(), created)

        updated = self.client.put(f"/tasks/{task_id}", json={"title": "Write more tests"}, headers=headers)
        self.assertEqual(updated.status_code, 200, updated.text)
        self.assertEqual(updated.json()["title"], "Write more tests")
        self.assertEqual(updated.json()["description"], "for the API")

        toggled = self.client.patch(f"/tasks/{task_id}/toggle", headers=headers)
        self.assertEqual(toggled.status_code, 200)
        self.assertEqual(toggled.json()["status"], "completed")

        deleted = self.client.delete(f"/tasks/{task_id}", headers=headers)
        self.assertEqual(deleted.status_code, 204)
        self.assertEqual(deleted.content, b"")

        again = self.client.delete(f"/tasks/{task_id}", headers=headers)
        self.assertEqual(again.status_code, 404)
        self.assertEqual(again.json(), {"error": "Task not found"})

    def test_create_task_requires_title(self) -> None:
        token = self._register()["token"]
        response = self.client.post("/tasks", json={"description": "no title"}, headers=self._headers(token))
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json(), {"error": "Title is required"})

    def test_create_task_rejects_unknown_status(self) -> None:
        token = self._register()["token"]
        response = self.client.post(
            "/tasks",
            json={"title": "Task", "status": "archived"},
            headers=self._headers(token),
        )
        self.assertEqual(response.status_code, 400)
        self.assertIn("status", response.json()["error"])

    def test_update_rejects_null_title(self) -> None:
        token = self._register()["token"]
        task = self._create_task(token, title="Keep")
        response = self.client.put(f"/tasks/{task['id']}", json={"title": None}, headers=self._headers(token))
        self.assertEqual(response.status_code, 400)

    def test_cross_owner_access_is_not_found(self) -> None:
        alice = self._register()["token"]
        bob = self._register("bob", "bob@example.com")["token"]
        task = self._create_task(alice, title="Alice only")
        bob_headers = self._headers(bob)

        self.assertEqual(self.client.get(f"/tasks/{task['id']}", headers=bob_headers).status_code, 404)
        self.assertEqual(
            self.client.put(f"/tasks/{task['id']}", json={"title": "Bob"}, headers=bob_headers).status_code,
            404,
        )
        self.assertEqual(self.client.patch(f"/tasks/{task['id']}/toggle", headers=bob_headers).status_code, 404)
        self.assertEqual(self.client.delete(f"/tasks/{task['id']}", headers=bob_headers).status_code, 404)

        listing = self.client.get("/tasks", headers=bob_headers).json()
        self.assertEqual(listing["tasks"], [])
        self.assertEqual(listing["stats"]["total"], 0)

        still_there = self.client.get(f"/tasks/{task['id']}", headers=self._headers(alice))
        self.assertEqual(still_there.json()["title"], "Alice only")

    def test_list_returns_tasks_stats_and_filters(self) -> None:
        token = self._register()["token"]
        self._create_task(token, title="A", status="incomplete")
        self._create_task(token, title="B", status="completed")

        response = self.client.get("/tasks", headers=self._headers(token))

        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertEqual(sorted(task["title"] for task in payload["tasks"]), ["A", "B"])
        self.assertEqual(
            payload["stats"],
            {"total": 2, "completed": 1, "incomplete": 1, "completionRate": 50},
        )
        self.assertEqual(
            payload["filters"],
            {"status": "all", "sortBy": "createdAt", "sortOrder": "desc", "search": ""},
        )

    def test_list_applies_status_search_and_sort(self) -> None:
        token = self._register()["token"]
        headers = self._headers(token)
        self._create_task(token, title="Read book", status="completed")
        self._create_task(token, title="Read paper", status="incomplete")
        self._create_task(token, title="Archive notes", status="completed")
        self._create_task(token, title="Banana bread", description="read the recipe", status="completed")

        completed = self.client.get("/tasks", params={"status": "completed", "sortBy": "title", "sortOrder": "asc"}, headers=headers)
        self.assertEqual(
            [task["title"] for task in completed.json()["tasks"]],
            ["Archive notes", "Banana bread", "Read book"],
        )

        searched = self.client.get(
            "/tasks",
            params={"search": "READ", "status": "completed", "sortBy": "title", "sortOrder": "desc"},
            headers=headers,
        )
        payload = searched.json()
        self.assertEqual([task["title"] for task in payload["tasks"]], ["Read book", "Banana bread"])
        self.assertEqual(
            payload["filters"],
            {"status": "completed", "sortBy": "title", "sortOrder": "desc", "search": "READ"},
        )
        self.assertEqual(payload["stats"]["total"], 4)

    def test_list_with_unknown_status_is_empty(self) -> None:
        token = self._register()["token"]
        headers = self._headers(token)
        self._create_task(token, title="A", status="completed")

        response = self.client.get("/tasks", params={"status": "done"}, headers=headers)

        self.assertEqual(response.status_code, 200, response.text)
        payload = response.json()
        self.assertEqual(payload["tasks"], [])
        self.assertEqual(payload["filters"]["status"], "done")
        self.assertEqual(payload["stats"]["total"], 1)

    def test_list_rejects_unknown_ordering(self) -> None:
        token = self._register()["token"]
        headers = self._headers(token)
        for params in ({"sortBy": "priority"}, {"sortOrder": "up"}):
            response = self.client.get("/tasks", params=params, headers=headers)
            self.assertEqual(response.status_code, 400, params)
            self.assertIn("error", response.json())

    def test_stats_endpoint(self) -> None:
        token = self._register()["token"]
        headers = self._headers(token)

        empty = self.client.get("/tasks/stats", headers=headers)
        self.assertEqual(empty.status_code, 200)
        self.assertEqual(empty.json(), {"total": 0, "completed": 0, "incomplete": 0, "completionRate": 0})

        for index in range(3):
            self._create_task(token, title=f"task {index}", status="completed" if index == 0 else "incomplete")
        stats = self.client.get("/tasks/stats", headers=headers).json()
        self.assertEqual(stats, {"total": 3, "completed": 1, "incomplete": 2, "completionRate": 33})

    def test_unknown_task_is_not_found(self) -> None:
        token = self._register()["token"]
        response = self.client.get("/tasks/does-not-exist", headers=self._headers(token))
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.json(), {"error": "Task not found"})

    def test_unexpected_error_renders_internal_error_without_logging(self) -> None:
        class BrokenDatabase(MemoryDatabase):
            def list_tasks(self, owner_id):
                raise RuntimeError("storage exploded")

        backend = BrokenDatabase()
        backend.initialize()
        app = create_app(backend=backend, issuer=self.issuer)
        token = self.issuer.issue("someone", "someone@example.com")

        with TestClient(app, raise_server_exceptions=False) as client:
            with self.assertNoLogs("todoapp.service", level="ERROR"):
                response = client.get("/tasks", headers=self._headers(token))

        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {"error": "Internal server error"})

    def test_health_reports_database_status(self) -> None:
        response = self.client.get("/health")
        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["status"], "OK")
        self.assertEqual(payload["database"], "Connected")


if __name__ == "__main__":  # pragma: no cover
    unittest.main()
