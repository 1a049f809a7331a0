"""
HTTP tests: routes, auth dependencies and error rendering, with get_db pointed
at an in-memory database.
"""
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

import httpx
from sqlalchemy import func, select

from config import settings
from database import get_db
from main import app
from models import Deal, Note
from services import pipeline
from services.errors import ValidationFailed
from tests.helpers import (
    BROKER_ID,
    OTHER_BROKER_ID,
    VENDOR_ID,
    auth_headers,
    make_sessionmaker,
    sample_application,
    seed_tenants,
)

BROKER = auth_headers(BROKER_ID)
OTHER_BROKER = auth_headers(OTHER_BROKER_ID)
VENDOR = auth_headers(VENDOR_ID)


class ApiTestCase(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.engine, self.Session = await make_sessionmaker()
        async with self.Session() as session:
            await seed_tenants(session)

        async def override_get_db():
            async with self.Session() as session:
                try:
                    yield session
                    await session.commit()
                except Exception:
                    await session.rollback()
                    raise

        app.dependency_overrides[get_db] = override_get_db
        self.client = httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")

    async def asyncTearDown(self):
        await self.client.aclose()
        app.dependency_overrides.clear()
        await self.engine.dispose()

    async def _submit_deal(self) -> dict:
        resp = await self.client.post(
            "/api/deals",
            headers=VENDOR,
            json={
                "customerName": "Harbor Logistics LLC",
                "equipmentType": "Forklift",
                "dealAmount": 42000,
                "applicationData": sample_application(),
                "submit": True,
                "prequalification": {
                    "ficoScore": 700,
                    "yearsInBusiness": 5,
                    "hasPublicRecords": "no",
                    "annualRevenue": 200000,
                    "dealAmount": 80000,
                },
            },
        )
        self.assertEqual(resp.status_code, 201, resp.text)
        return resp.json()


class TestAuth(ApiTestCase):
    async def test_health_needs_no_token(self):
        resp = await self.client.get("/health")
        self.assertEqual(resp.json(), {"status": "ok"})

    async def test_missing_token_rejected(self):
        resp = await self.client.get("/api/deals")
        self.assertIn(resp.status_code, (401, 403))

    async def test_bad_token_rejected(self):
        resp = await self.client.get("/api/deals", headers={"Authorization": "Bearer not-a-jwt"})
        self.assertEqual(resp.status_code, 401)

    async def test_me_for_vendor(self):
        resp = await self.client.get("/api/me", headers=VENDOR)
        body = resp.json()
        self.assertEqual(body["userType"], "vendor")
        self.assertEqual(body["brokerId"], BROKER_ID)

    async def test_unregistered_user_can_sign_up_as_broker(self):
        headers = auth_headers("new-user", "owner@newbroker.example.com")
        resp = await self.client.get("/api/deals", headers=headers)
        self.assertEqual(resp.status_code, 403)

        resp = await self.client.post(
            "/api/brokers", headers=headers, json={"companyName": "New Broker Co", "subscriptionTier": "premium"}
        )
        self.assertEqual(resp.status_code, 201, resp.text)
        self.assertEqual(resp.json()["email"], "owner@newbroker.example.com")

        me = (await self.client.get("/api/me", headers=headers)).json()
        self.assertEqual(me["userType"], "broker")
        self.assertEqual(me["paymentStatus"], "active")

        again = await self.client.post("/api/brokers", headers=headers, json={"companyName": "Again"})
        self.assertEqual(again.status_code, 400)


class TestVendorOnboarding(ApiTestCase):
    async def test_invited_vendor_must_change_password_first(self):
        resp = await self.client.post(
            "/api/vendors",
            headers=BROKER,
            json={
                "email": "fresh@vendor.example.com",
                "firstName": "Ari",
                "lastName": "Stone",
                "companyName": "Stone Equipment",
                "userId": "vendor-fresh",
            },
        )
        self.assertEqual(resp.status_code, 201, resp.text)
        body = resp.json()
        self.assertEqual(len(body["tempPassword"]), 12)
        self.assertTrue(body["vendor"]["mustChangePassword"])

        fresh = auth_headers("vendor-fresh")
        self.assertEqual((await self.client.get("/api/deals", headers=fresh)).status_code, 403)
        ack = await self.client.post("/api/vendors/me/password-changed", headers=fresh)
        self.assertEqual(ack.status_code, 200)
        self.assertFalse(ack.json()["mustChangePassword"])
        self.assertEqual((await self.client.get("/api/deals", headers=fresh)).status_code, 200)

    async def test_vendor_cannot_invite(self):
        resp = await self.client.post(
            "/api/vendors",
            headers=VENDOR,
            json={"email": "x@example.com", "firstName": "X", "lastName": "Y", "companyName": "Z"},
        )
        self.assertEqual(resp.status_code, 403)

    async def test_list_vendors(self):
        resp = await self.client.get("/api/vendors", headers=BROKER)
        self.assertEqual([v["id"] for v in resp.json()], [VENDOR_ID])


class TestPrequalificationRoute(ApiTestCase):
    async def test_green(self):
        resp = await self.client.post(
            "/api/prequalification",
            headers=VENDOR,
            json={
                "ficoScore": 700,
                "yearsInBusiness": 5,
                "hasPublicRecords": "no",
                "annualRevenue": 200000,
                "dealAmount": 80000,
                "customerName": "Harbor Logistics LLC",
            },
        )
        self.assertEqual(resp.status_code, 200)
        body = resp.json()
        self.assertEqual(body["score"], "green")
        self.assertTrue(body["canProceed"])
        self.assertEqual(body["prequalData"]["customerName"], "Harbor Logistics LLC")

    async def test_any_signed_in_user_can_score(self):
        # no broker or vendor record behind this identity
        resp = await self.client.post(
            "/api/prequalification",
            headers=auth_headers("prospect", "prospect@example.com"),
            json={"ficoScore": 550, "yearsInBusiness": 5, "hasPublicRecords": "no", "annualRevenue": 1, "dealAmount": 1},
        )
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["score"], "red")

    async def test_out_of_range_is_422(self):
        resp = await self.client.post(
            "/api/prequalification",
            headers=VENDOR,
            json={"ficoScore": 900, "yearsInBusiness": 5, "hasPublicRecords": "no", "annualRevenue": 1, "dealAmount": 1},
        )
        self.assertEqual(resp.status_code, 422)


class TestDealRoutes(ApiTestCase):
    async def test_create_and_read(self):
        deal = await self._submit_deal()
        self.assertEqual(deal["currentStage"], "new")
        self.assertEqual(deal["brokerId"], BROKER_ID)
        self.assertEqual(deal["prequalificationScore"], "green")

        resp = await self.client.get(f"/api/deals/{deal['id']}", headers=BROKER)
        self.assertEqual(resp.status_code, 200)
        resp = await self.client.get(f"/api/deals/{deal['id']}", headers=OTHER_BROKER)
        self.assertEqual(resp.status_code, 404)

    async def test_mismatched_broker_is_400(self):
        resp = await self.client.post(
            "/api/deals",
            headers=VENDOR,
            json={"customerName": "A", "equipmentType": "B", "dealAmount": 10, "brokerId": OTHER_BROKER_ID},
        )
        self.assertEqual(resp.status_code, 400)

    async def test_stage_change_flow(self):
        deal = await self._submit_deal()
        url = f"/api/deals/{deal['id']}/stage"

        resp = await self.client.post(url, headers=VENDOR, json={"stage": "review"})
        self.assertEqual(resp.status_code, 403)

        resp = await self.client.post(url, headers=BROKER, json={"stage": "review", "expectedStage": "new"})
        self.assertEqual(resp.status_code, 200, resp.text)
        body = resp.json()
        self.assertTrue(body["changed"])
        self.assertEqual(body["deal"]["currentStage"], "review")
        self.assertIn("'new'", body["note"]["message"])
        self.assertIn("'review'", body["note"]["message"])

        resp = await self.client.post(url, headers=BROKER, json={"stage": "review"})
        self.assertFalse(resp.json()["changed"])

        resp = await self.client.post(url, headers=BROKER, json={"stage": "new"})
        self.assertEqual(resp.status_code, 409)

        resp = await self.client.post(url, headers=BROKER, json={"stage": "approved", "expectedStage": "new"})
        self.assertEqual(resp.status_code, 409)

        resp = await self.client.post(url, headers=BROKER, json={"stage": "documentation"})
        self.assertEqual(resp.status_code, 422)

        notes = (await self.client.get(f"/api/deals/{deal['id']}/notes", headers=VENDOR)).json()
        self.assertEqual(len(notes), 1)

    async def test_board_and_filter(self):
        deal = await self._submit_deal()
        board = (await self.client.get("/api/deals/board", headers=BROKER)).json()
        self.assertEqual(board[0]["stage"], "new")
        self.assertEqual([d["id"] for d in board[0]["deals"]], [deal["id"]])

        filtered = (await self.client.get("/api/deals?stage=review", headers=BROKER)).json()
        self.assertEqual(filtered, [])

    async def test_vendor_edit_window(self):
        deal = await self._submit_deal()
        url = f"/api/deals/{deal['id']}"
        resp = await self.client.patch(url, headers=VENDOR, json={"customerName": "Harbor Freight"})
        self.assertEqual(resp.status_code, 200)
        await self.client.post(f"{url}/stage", headers=BROKER, json={"stage": "review"})
        resp = await self.client.patch(url, headers=VENDOR, json={"customerName": "Too Late"})
        self.assertEqual(resp.status_code, 403)
        resp = await self.client.patch(url, headers=BROKER, json={"currentStage": "funded"})
        self.assertEqual(resp.status_code, 422)

    async def test_notes_and_documents(self):
        deal = await self._submit_deal()
        base = f"/api/deals/{deal['id']}"
        resp = await self.client.post(f"{base}/notes", headers=VENDOR, json={"message": "Invoice attached"})
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.json()["authorType"], "vendor")

        with tempfile.TemporaryDirectory() as tmp, patch.object(settings, "upload_dir", tmp):
            resp = await self.client.post(
                f"{base}/documents",
                headers=VENDOR,
                files={"file": ("invoice #1.pdf", b"%PDF-1.4 test", "application/pdf")},
            )
            self.assertEqual(resp.status_code, 201, resp.text)
            doc = resp.json()
            self.assertEqual(doc["fileName"], "invoice #1.pdf")
            self.assertTrue(doc["filePath"].startswith(f"applications/{VENDOR_ID}/"))
            self.assertTrue(doc["filePath"].endswith("-invoice__1.pdf"))
            self.assertTrue((Path(tmp) / doc["filePath"]).exists())

            resp = await self.client.post(
                f"{base}/documents",
                headers=VENDOR,
                files={"file": ("run.exe", b"MZ", "application/x-msdownload")},
            )
            self.assertEqual(resp.status_code, 400)

        docs = (await self.client.get(f"{base}/documents", headers=BROKER)).json()
        self.assertEqual(len(docs), 1)

    async def test_same_name_uploads_keep_separate_files(self):
        deal = await self._submit_deal()
        url = f"/api/deals/{deal['id']}/documents"
        with tempfile.TemporaryDirectory() as tmp, patch.object(settings, "upload_dir", tmp):
            paths = []
            for body in (b"%PDF-1.4 first", b"%PDF-1.4 second"):
                resp = await self.client.post(url, headers=VENDOR, files={"file": ("quote.pdf", body, "application/pdf")})
                self.assertEqual(resp.status_code, 201, resp.text)
                paths.append(resp.json()["filePath"])
            self.assertNotEqual(paths[0], paths[1])
            self.assertEqual((Path(tmp) / paths[0]).read_bytes(), b"%PDF-1.4 first")
            self.assertEqual((Path(tmp) / paths[1]).read_bytes(), b"%PDF-1.4 second")

    async def test_failed_upload_leaves_no_file(self):
        deal = await self._submit_deal()
        with tempfile.TemporaryDirectory() as tmp, patch.object(settings, "upload_dir", tmp), patch.object(
            pipeline, "add_document", side_effect=ValidationFailed("rejected")
        ):
            resp = await self.client.post(
                f"/api/deals/{deal['id']}/documents",
                headers=VENDOR,
                files={"file": ("quote.pdf", b"%PDF-1.4", "application/pdf")},
            )
            self.assertEqual(resp.status_code, 400)
            self.assertEqual([p for p in Path(tmp).rglob("*") if p.is_file()], [])

    async def test_delete_deal(self):
        deal = await self._submit_deal()
        url = f"/api/deals/{deal['id']}"
        await self.client.post(f"{url}/notes", headers=BROKER, json={"message": "Looks good"})
        self.assertEqual((await self.client.delete(url, headers=VENDOR)).status_code, 403)
        self.assertEqual((await self.client.delete(url, headers=BROKER)).status_code, 204)
        self.assertEqual((await self.client.get(url, headers=BROKER)).status_code, 404)
        self.assertEqual((await self.client.get(f"{url}/notes", headers=BROKER)).status_code, 404)

    async def test_draft_then_submit(self):
        resp = await self.client.post(
            "/api/deals",
            headers=VENDOR,
            json={"customerName": "Draft Application", "equipmentType": "TBD", "dealAmount": 0},
        )
        draft = resp.json()
        self.assertEqual(draft["currentStage"], "draft")
        url = f"/api/deals/{draft['id']}"

        resp = await self.client.post(f"{url}/submit", headers=VENDOR)
        self.assertEqual(resp.status_code, 400)

        await self.client.patch(
            url, headers=VENDOR, json={"dealAmount": 42000, "applicationData": sample_application()}
        )
        resp = await self.client.post(f"{url}/submit", headers=VENDOR)
        self.assertEqual(resp.status_code, 200, resp.text)
        self.assertEqual(resp.json()["currentStage"], "new")


class TestCommitFailure(ApiTestCase):
    async def test_failed_commit_is_reported(self):
        deal = await self._submit_deal()

        async def failing_get_db():
            async with self.Session() as session:
                try:
                    yield session
                    raise RuntimeError("commit failed")
                except Exception:
                    await session.rollback()
                    raise

        app.dependency_overrides[get_db] = failing_get_db
        transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            resp = await client.post(f"/api/deals/{deal['id']}/stage", headers=BROKER, json={"stage": "review"})
        self.assertEqual(resp.status_code, 500)

        async with self.Session() as session:
            stored = await session.get(Deal, deal["id"])
            self.assertEqual(stored.current_stage, "new")
            notes = await session.execute(select(func.count(Note.id)))
            self.assertEqual(notes.scalar_one(), 0)


if __name__ == "__main__":
    unittest.main()
