import json
import os
import sqlite3
import tempfile
from pathlib import Path
from unittest import mock

from aiohttp import FormData
from aiohttp.test_utils import AioHTTPTestCase

from schematransfer import auth, form, module, paths
from schematransfer.api import create_app
from schematransfer.constants import DEFAULT_SETTINGS
from schematransfer.db import SchemaStore

MODULE_ID = "0a6e2f3c-5a1d-4c53-9d0e-1f4b6c2a7e01"
FORM_ID = "1b7f3a4d-6b2e-4d64-8e1f-2a5c7d3b8f02"


class TransferApiTests(AioHTTPTestCase):
    def setUp(self):
        self.temp_dir = tempfile.TemporaryDirectory()
        self.addCleanup(self.temp_dir.cleanup)
        db_path = str(Path(self.temp_dir.name) / "schematransfer.db")
        with mock.patch("schematransfer.db.get_db_path", return_value=db_path):
            self.store = SchemaStore()
        with self.store.transaction(write=True) as conn:
            auth.create_login_tx(conn, "admin", admin=True, token="admin-token")
            self.user_id = auth.create_login_tx(conn, "editor", token="user-token")

        self.temp_files = []

        def _unique_file_path():
            path = paths.get_unique_file_path(directory=self.temp_dir.name)
            self.temp_files.append(path)
            return path

        for name, replacement in (
            ("get_unique_file_path", _unique_file_path),
            ("get_unique_dir", lambda: paths.get_unique_dir(directory=self.temp_dir.name)),
        ):
            patcher = mock.patch(f"schematransfer.api.{name}", side_effect=replacement)
            patcher.start()
            self.addCleanup(patcher.stop)
        super().setUp()

    async def get_application(self):
        return create_app(self.store)

    def _seed_module(self):
        with self.store.transaction(write=True) as conn:
            module.set_tx(conn, {"id": MODULE_ID, "name": "crm", "language_main": "en_us"})
            form.set_tx(
                conn,
                {
                    "id": FORM_ID,
                    "module_id": MODULE_ID,
                    "name": "contacts",
                    "fields": [{"content": "data", "flags": []}],
                },
            )

    def _upload(self, token, *documents):
        data = FormData()
        if token is not None:
            data.add_field("token", token)
        for index, doc in enumerate(documents):
            body = doc if isinstance(doc, bytes) else json.dumps(doc).encode("utf-8")
            data.add_field("file", body, filename=f"module{index}.json", content_type="application/json")
        return data

    def _module_count(self):
        with self.store.transaction() as conn:
            return conn.execute("SELECT COUNT(*) FROM module").fetchone()[0]

    async def test_health(self):
        resp = await self.client.get("/transfer/health")
        self.assertEqual(resp.status, 200)
        body = await resp.json()
        self.assertTrue(body["ok"])
        self.assertEqual(body["schema_version"], "3.11")

    async def test_export_requires_admin_token(self):
        self._seed_module()

        resp = await self.client.get("/transfer/export", params={"module_id": MODULE_ID})
        self.assertEqual(resp.status, 401)
        resp = await self.client.get("/transfer/export", params={"token": "wrong", "module_id": MODULE_ID})
        self.assertEqual(resp.status, 401)
        resp = await self.client.get("/transfer/export", params={"token": "user-token", "module_id": MODULE_ID})
        self.assertEqual(resp.status, 403)
        self.assertEqual(self.temp_files, [])

    async def test_export_rejects_missing_or_unknown_module(self):
        resp = await self.client.get("/transfer/export", params={"token": "admin-token"})
        self.assertEqual(resp.status, 400)
        resp = await self.client.get("/transfer/export", params={"token": "admin-token", "module_id": "crm"})
        self.assertEqual(resp.status, 400)

        resp = await self.client.get("/transfer/export", params={"token": "admin-token", "module_id": MODULE_ID})
        self.assertEqual(resp.status, 404)
        self.assertEqual(len(self.temp_files), 1)
        self.assertFalse(os.path.exists(self.temp_files[0]))

    async def test_export_streams_file_and_removes_it(self):
        self._seed_module()

        resp = await self.client.get("/transfer/export", params={"token": "admin-token", "module_id": MODULE_ID})

        self.assertEqual(resp.status, 200)
        self.assertIn("attachment", resp.headers["Content-Disposition"])
        self.assertIn(MODULE_ID, resp.headers["Content-Disposition"])
        doc = json.loads(await resp.text())
        self.assertEqual(doc["module"]["name"], "crm")
        self.assertEqual([f["name"] for f in doc["forms"]], ["contacts"])
        self.assertEqual(len(self.temp_files), 1)
        self.assertFalse(os.path.exists(self.temp_files[0]))

    async def test_import_creates_module(self):
        self._seed_module()
        resp = await self.client.get("/transfer/export", params={"token": "admin-token", "module_id": MODULE_ID})
        doc = json.loads(await resp.text())
        with self.store.transaction(write=True) as conn:
            module.del_tx(conn, MODULE_ID)

        resp = await self.client.post("/transfer/import", data=self._upload("admin-token", doc))

        self.assertEqual(resp.status, 200)
        self.assertEqual(await resp.json(), {"success": True})
        with self.store.transaction() as conn:
            self.assertEqual(module.get_tx(conn, [MODULE_ID])[0]["name"], "crm")
            self.assertEqual(len(form.get_tx(conn, MODULE_ID)[0]["fields"]), 1)
        leftovers = [name for name in os.listdir(self.temp_dir.name) if name.startswith(("import_", "transfer_"))]
        self.assertEqual(leftovers, [])

    async def test_import_requires_admin_token_before_files(self):
        doc = {"version": "1.0", "module": {"id": MODULE_ID, "name": "crm", "language_main": "en_us"}}

        resp = await self.client.post("/transfer/import", data=self._upload(None, doc))
        self.assertEqual(resp.status, 401)
        self.assertFalse((await resp.json())["success"])

        resp = await self.client.post("/transfer/import", data=self._upload("user-token", doc))
        self.assertEqual(resp.status, 403)
        self.assertEqual(self._module_count(), 0)

    async def test_import_failure_reports_and_imports_nothing(self):
        good = {"version": "1.0", "module": {"id": MODULE_ID, "name": "crm", "language_main": "en_us"}}
        bad = {"version": "1.0", "module": {"name": "Not Valid", "language_main": "en_us"}}

        resp = await self.client.post("/transfer/import", data=self._upload("admin-token", good, bad))
        self.assertEqual(resp.status, 400)
        self.assertFalse((await resp.json())["success"])

        resp = await self.client.post("/transfer/import", data=self._upload("admin-token", b"{broken"))
        self.assertEqual(resp.status, 400)
        self.assertEqual(self._module_count(), 0)

    async def test_import_storage_failure_is_server_error(self):
        doc = {"version": "1.0", "module": {"id": MODULE_ID, "name": "crm", "language_main": "en_us"}}

        with mock.patch(
            "schematransfer.transfer.import_from_files",
            side_effect=sqlite3.OperationalError("disk I/O error"),
        ):
            with self.assertLogs("SchemaTransfer", level="ERROR"):
                resp = await self.client.post("/transfer/import", data=self._upload("admin-token", doc))

        self.assertEqual(resp.status, 500)
        self.assertEqual(await resp.json(), {"success": False, "error": "could not finish module import"})

    async def test_import_without_files_is_rejected(self):
        resp = await self.client.post("/transfer/import", data=self._upload("admin-token"))
        self.assertEqual(resp.status, 400)
        resp = await self.client.post("/transfer/import", json={"token": "admin-token"})
        self.assertEqual(resp.status, 400)

    async def test_settings_round_trip_fills_defaults(self):
        headers = {"Authorization": "Bearer admin-token"}

        resp = await self.client.get("/settings", params={"login_id": str(self.user_id)}, headers=headers)
        self.assertEqual(resp.status, 404)

        resp = await self.client.put(
            "/settings",
            json={"login_id": self.user_id, "settings": {"dark": True, "font_size": 120}},
            headers=headers,
        )
        self.assertEqual(resp.status, 200)
        saved = await resp.json()
        self.assertEqual(saved, {**DEFAULT_SETTINGS, "dark": True, "font_size": 120})

        resp = await self.client.get("/settings", params={"login_id": str(self.user_id)}, headers=headers)
        self.assertEqual(await resp.json(), saved)

    async def test_settings_reject_bad_requests(self):
        resp = await self.client.get("/settings", params={"login_id": str(self.user_id)})
        self.assertEqual(resp.status, 401)
        resp = await self.client.get(
            "/settings",
            params={"login_id": str(self.user_id)},
            headers={"Authorization": "Bearer user-token"},
        )
        self.assertEqual(resp.status, 403)

        headers = {"Authorization": "Bearer admin-token"}
        resp = await self.client.get("/settings", headers=headers)
        self.assertEqual(resp.status, 400)
        resp = await self.client.put(
            "/settings",
            json={"login_id": self.user_id, "login_template_id": 1, "settings": {}},
            headers=headers,
        )
        self.assertEqual(resp.status, 400)
        resp = await self.client.put(
            "/settings",
            json={"login_id": self.user_id, "settings": {"spacing": "wide"}},
            headers=headers,
        )
        self.assertEqual(resp.status, 400)
