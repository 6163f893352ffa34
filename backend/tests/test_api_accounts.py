"""
Auth, profile, document upload/review and the notification inbox.
"""
import io
from pathlib import Path

import pytest
from fastapi import HTTPException, UploadFile
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from ridesharex.api.routers import documents
from ridesharex.core.config import Settings, get_settings
from ridesharex.main import app


# ===================================================================
# Auth
# ===================================================================

class TestAuth:

    async def test_register_starts_pending(self, client):
        resp = await client.post(
            "/api/auth/register",
            json={"name": "Thandi", "email": "Thandi@Example.com", "password": "s3cret-pass", "role": "host"},
        )
        assert resp.status_code == 201, resp.text
        body = resp.json()
        assert body["token_type"] == "bearer"
        assert body["user"]["email"] == "thandi@example.com"
        assert body["user"]["role"] == "host"
        assert body["user"]["approval_status"] == "pending"
        assert body["user"]["document_status"] == "not_uploaded"

    async def test_cannot_self_register_as_admin(self, client):
        resp = await client.post(
            "/api/auth/register",
            json={"name": "Eve", "email": "eve@example.com", "password": "s3cret-pass", "role": "admin"},
        )
        assert resp.status_code == 422
        assert resp.json()["code"] == "validation_error"

    async def test_duplicate_email(self, client, renter):
        resp = await client.post(
            "/api/auth/register",
            json={"name": "Again", "email": renter.email, "password": "s3cret-pass"},
        )
        assert resp.status_code == 400

    async def test_login_refresh_logout(self, client, renter):
        resp = await client.post("/api/auth/login", json={"email": renter.email, "password": "password123"})
        assert resp.status_code == 200
        refresh = resp.json()["refresh_token"]
        access = resp.json()["access_token"]

        resp = await client.get("/api/users/me", headers={"Authorization": f"Bearer {access}"})
        assert resp.status_code == 200
        assert resp.json()["id"] == renter.id

        resp = await client.post("/api/auth/refresh", json={"refresh_token": refresh})
        assert resp.status_code == 200
        refresh = resp.json()["refresh_token"]

        resp = await client.post("/api/auth/logout", json={"refresh_token": refresh})
        assert resp.status_code == 200

        resp = await client.post("/api/auth/refresh", json={"refresh_token": refresh})
        assert resp.status_code == 401

    async def test_wrong_password(self, client, renter):
        resp = await client.post("/api/auth/login", json={"email": renter.email, "password": "nope-nope"})
        assert resp.status_code == 401
        assert resp.json() == {"code": "http_error", "message": "Invalid credentials"}

    async def test_access_token_is_not_a_refresh_token(self, client, renter, auth):
        access = auth(renter)["Authorization"].split(" ", 1)[1]
        resp = await client.post("/api/auth/refresh", json={"refresh_token": access})
        assert resp.status_code == 401

    async def test_profile_update_cannot_touch_approval(self, client, db, make_user, auth):
        user = await make_user("renter", approval_status="pending")
        resp = await client.patch(
            "/api/users/me",
            json={"name": "New Name", "approval_status": "approved"},
            headers=auth(user),
        )
        assert resp.status_code == 200
        assert resp.json()["name"] == "New Name"
        assert resp.json()["approval_status"] == "pending"


# ===================================================================
# Documents
# ===================================================================

PDF = ("licence.pdf", b"%PDF-1.4 fake licence", "application/pdf")


class TestDocuments:

    async def _upload(self, client, user, auth, document_type="license", file=PDF):
        return await client.post(
            "/api/documents",
            data={"document_type": document_type},
            files={"file": file},
            headers=auth(user),
        )

    async def test_upload_starts_pending(self, client, renter, auth, tmp_path):
        resp = await self._upload(client, renter, auth)
        assert resp.status_code == 201, resp.text
        doc = resp.json()["data"]
        assert doc["status"] == "pending"
        assert doc["file_name"] == "licence.pdf"
        assert doc["file_url"].startswith("/static/uploads/documents/")
        assert len(list((tmp_path / "uploads" / "documents").iterdir())) == 1

        resp = await client.get("/api/documents/mine", headers=auth(renter))
        assert resp.json()["document_status"] == "pending"
        assert len(resp.json()["items"]) == 1

    async def test_rejects_unsupported_type(self, client, renter, auth):
        resp = await self._upload(client, renter, auth, file=("notes.txt", b"hello", "text/plain"))
        assert resp.status_code == 400

    async def test_rejects_oversized_file(self, client, renter, auth, monkeypatch, tmp_path):
        monkeypatch.setattr(get_settings(), "MAX_UPLOAD_BYTES", 4)
        resp = await self._upload(client, renter, auth)
        assert resp.status_code == 413
        assert not (tmp_path / "uploads" / "documents").exists()

    def test_copy_stops_at_the_limit(self, tmp_path, monkeypatch):
        settings = get_settings()
        monkeypatch.setattr(settings, "STATIC_UPLOAD_DIR", str(tmp_path / "uploads"))
        monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 8)
        monkeypatch.setattr(documents, "CHUNK_SIZE", 4)
        # no size recorded, as for a streamed part
        upload = UploadFile(file=io.BytesIO(b"x" * 64), filename="big.pdf")

        with pytest.raises(HTTPException) as exc:
            documents._save_upload(upload, user_id=1)
        assert exc.value.status_code == 413
        assert list((tmp_path / "uploads" / "documents").iterdir()) == []
        # nothing past the limit was read
        assert upload.file.tell() == 12

    async def test_review_updates_user_document_status(self, client, admin, renter, auth, publisher):
        doc_id = (await self._upload(client, renter, auth)).json()["data"]["id"]

        resp = await client.get("/api/documents", params={"status": "pending"}, headers=auth(admin))
        assert [d["id"] for d in resp.json()["items"]] == [doc_id]

        resp = await client.put(
            f"/api/documents/{doc_id}/status", json={"status": "approved"}, headers=auth(admin)
        )
        assert resp.status_code == 200, resp.text
        assert resp.json()["data"]["status"] == "approved"
        assert resp.json()["data"]["reviewed_by_id"] == admin.id

        resp = await client.get("/api/users/me", headers=auth(renter))
        assert resp.json()["document_status"] == "approved"
        assert publisher.sent[0][1]["type"] == "document_approved"

    async def test_rejection_keeps_reason(self, client, admin, renter, auth):
        doc_id = (await self._upload(client, renter, auth, document_type="id")).json()["data"]["id"]
        resp = await client.put(
            f"/api/documents/{doc_id}/status",
            json={"status": "rejected", "reason": "unreadable"},
            headers=auth(admin),
        )
        assert resp.json()["data"]["rejection_reason"] == "unreadable"

        resp = await client.get("/api/users/me", headers=auth(renter))
        assert resp.json()["document_status"] == "rejected"

    async def test_owner_cannot_review_own_document(self, client, renter, auth):
        doc_id = (await self._upload(client, renter, auth)).json()["data"]["id"]
        resp = await client.put(
            f"/api/documents/{doc_id}/status", json={"status": "approved"}, headers=auth(renter)
        )
        assert resp.status_code == 403


class TestStaticPaths:

    def test_uploads_are_served_from_the_mounted_static_dir(self):
        mount = next(r for r in app.routes if getattr(r, "name", None) == "static")
        static_dir = Path(mount.app.directory)
        assert static_dir.is_absolute()
        assert static_dir == Path(get_settings().STATIC_DIR)
        assert Path(Settings().STATIC_UPLOAD_DIR) == static_dir / "uploads"

    def test_defaults_do_not_depend_on_working_directory(self, tmp_path, monkeypatch):
        before = Settings()
        monkeypatch.chdir(tmp_path)
        after = Settings()
        assert after.STATIC_DIR == before.STATIC_DIR
        assert after.STATIC_UPLOAD_DIR == before.STATIC_UPLOAD_DIR


# ===================================================================
# Notifications
# ===================================================================

class TestNotifications:

    async def _approve(self, client, admin, listing, auth):
        resp = await client.patch(
            f"/api/admin/vehicles/{listing.id}/approve", json={"status": "approved"}, headers=auth(admin)
        )
        assert resp.status_code == 200

    async def test_inbox_and_read_flags(self, client, admin, host, make_listing, auth):
        first = await make_listing(host, status="pending")
        second = await make_listing(host, status="pending")
        await self._approve(client, admin, first, auth)
        await self._approve(client, admin, second, auth)

        resp = await client.get("/api/notifications", headers=auth(host))
        body = resp.json()
        assert body["total"] == 2
        assert body["unread"] == 2
        newest = body["items"][0]
        assert newest["type"] == "listing_approved"
        assert newest["is_sent"] is True
        assert newest["data"]["entity_id"] == second.id

        resp = await client.patch(f"/api/notifications/{newest['id']}/read", headers=auth(host))
        assert resp.status_code == 200
        assert resp.json()["data"]["is_read"] is True

        resp = await client.get("/api/notifications", params={"unread_only": True}, headers=auth(host))
        assert resp.json()["total"] == 1
        assert resp.json()["unread"] == 1

        resp = await client.patch("/api/notifications/read-all", headers=auth(host))
        assert resp.json()["updated"] == 1

        resp = await client.get("/api/notifications", headers=auth(host))
        assert resp.json()["unread"] == 0

    async def test_cannot_read_someone_elses(self, client, admin, host, renter, make_listing, auth):
        listing = await make_listing(host, status="pending")
        await self._approve(client, admin, listing, auth)
        notification_id = (await client.get("/api/notifications", headers=auth(host))).json()["items"][0]["id"]

        resp = await client.patch(f"/api/notifications/{notification_id}/read", headers=auth(renter))
        assert resp.status_code == 404

    async def test_requires_auth(self, client):
        resp = await client.get("/api/notifications")
        assert resp.status_code == 401


class TestNotificationSocket:

    def test_rejects_missing_token(self):
        client = TestClient(app)
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect("/api/notifications/ws"):
                pass
        assert exc.value.code == 4001

    def test_ignores_query_string_token(self):
        client = TestClient(app)
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect("/api/notifications/ws?token=whatever"):
                pass
        assert exc.value.code == 4001

    def test_rejects_bad_bearer(self):
        client = TestClient(app)
        with pytest.raises(WebSocketDisconnect) as exc:
            with client.websocket_connect("/api/notifications/ws", subprotocols=["bearer.not-a-jwt"]):
                pass
        assert exc.value.code == 4001
