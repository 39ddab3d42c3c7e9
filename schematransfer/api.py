import asyncio
import json
import logging
import os
import shutil
import sqlite3
from datetime import datetime, timezone

from aiohttp import web

from . import VERSION, auth, compatible, login_setting, transfer
from .constants import APP_NAME, SCHEMA_VERSION
from .db import SchemaStore
from .paths import get_unique_dir, get_unique_file_path
from .utils import normalize_id

logger = logging.getLogger("SchemaTransfer")

STORE_KEY = web.AppKey("store", SchemaStore)

_CHUNK_SIZE = 64 * 1024


def _json_response(obj, status=200):
    return web.Response(
        status=status,
        text=json.dumps(obj, ensure_ascii=False),
        content_type="application/json",
    )


def _bad_request(msg):
    return _json_response({"error": msg}, status=400)


def _download_name(module_id):
    stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
    return f"module-{module_id}-{stamp}.json"


def _remove_temp_file(file_path):
    try:
        os.remove(file_path)
    except OSError as exc:
        # The response is already sent; cleanup failures must not fail the request.
        logger.warning("Could not delete temporary transfer file %s: %s", file_path, exc)


def _admin_error(store, token):
    """Return (status, message) if the token does not belong to an admin login, else None."""
    try:
        login = auth.authenticate(store, token)
    except PermissionError as exc:
        return 401, str(exc)
    try:
        auth.require_admin(login)
    except PermissionError as exc:
        return 403, str(exc)
    return None


def _bearer_token(request):
    header = request.headers.get("Authorization", "")
    if header.lower().startswith("bearer "):
        return header[7:]
    return ""


def _optional_int(value):
    if value in (None, ""):
        return None
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid id: {value}") from exc


def setup_routes(routes):
    @routes.get("/transfer/health")
    async def health(request):
        store = request.app[STORE_KEY]
        return _json_response({"ok": True, "db_path": store.db_path, "schema_version": store.get_schema_version()})

    @routes.get("/transfer/export")
    async def export_module(request):
        store = request.app[STORE_KEY]
        error = _admin_error(store, request.query.get("token", ""))
        if error is not None:
            return _json_response({"error": error[1]}, status=error[0])
        try:
            module_id = normalize_id(request.query.get("module_id", ""))
        except ValueError as exc:
            return _bad_request(str(exc))
        if module_id is None:
            return _bad_request("missing module_id")

        file_path = get_unique_file_path()
        try:
            try:
                await asyncio.to_thread(
                    transfer.export_to_file,
                    store,
                    module_id,
                    file_path,
                    store.config["transfer_timeout"],
                )
            except KeyError:
                return _json_response({"error": "module not found"}, status=404)
            except TimeoutError as exc:
                logger.error("Module export timed out: %s", exc)
                return _json_response({"error": str(exc)}, status=504)
            except Exception:
                logger.exception("Could not finish module export")
                return _json_response({"error": "could not finish module export"}, status=500)

            response = web.StreamResponse(
                headers={
                    "Content-Type": "application/json",
                    "Content-Disposition": f'attachment; filename="{_download_name(module_id)}"',
                }
            )
            await response.prepare(request)
            with open(file_path, "rb") as fh:
                for chunk in iter(lambda: fh.read(_CHUNK_SIZE), b""):
                    await response.write(chunk)
            await response.write_eof()
            return response
        finally:
            _remove_temp_file(file_path)

    @routes.post("/transfer/import")
    async def import_module(request):
        store = request.app[STORE_KEY]
        if not (request.content_type or "").lower().startswith("multipart/"):
            return _json_response({"success": False, "error": "multipart upload required"}, status=400)

        # fixed part order: token first, then transfer files
        reader = await request.multipart()
        upload_dir = get_unique_dir()
        file_paths = []
        token = ""
        try:
            while True:
                part = await reader.next()
                if part is None:
                    break
                if part.name == "token":
                    token = await part.text()
                    continue

                error = _admin_error(store, token)
                if error is not None:
                    return _json_response({"success": False, "error": error[1]}, status=error[0])

                file_path = os.path.join(upload_dir, f"{len(file_paths)}.json")
                with open(file_path, "wb") as fh:
                    while True:
                        chunk = await part.read_chunk(_CHUNK_SIZE)
                        if not chunk:
                            break
                        fh.write(chunk)
                file_paths.append(file_path)

            if not file_paths:
                return _json_response({"success": False, "error": "missing transfer file"}, status=400)

            try:
                await asyncio.to_thread(
                    transfer.import_from_files,
                    store,
                    file_paths,
                    store.config["transfer_timeout"],
                )
            except (ValueError, KeyError, TimeoutError, sqlite3.IntegrityError) as exc:
                # rejected file contents
                logger.error("Could not finish module import: %s", exc)
                return _json_response({"success": False, "error": str(exc)}, status=400)
            except Exception:
                logger.exception("Could not finish module import")
                return _json_response({"success": False, "error": "could not finish module import"}, status=500)
            return _json_response({"success": True})
        finally:
            shutil.rmtree(upload_dir, ignore_errors=True)

    @routes.get("/settings")
    async def get_settings(request):
        store = request.app[STORE_KEY]
        error = _admin_error(store, _bearer_token(request))
        if error is not None:
            return _json_response({"error": error[1]}, status=error[0])
        try:
            login_id = _optional_int(request.query.get("login_id"))
            login_template_id = _optional_int(request.query.get("login_template_id"))
            with store.transaction() as conn:
                settings = login_setting.get_tx(conn, login_id, login_template_id)
        except ValueError as exc:
            return _bad_request(str(exc))
        except KeyError:
            return _json_response({"error": "settings not found"}, status=404)
        return _json_response(settings)

    @routes.put("/settings")
    async def put_settings(request):
        store = request.app[STORE_KEY]
        error = _admin_error(store, _bearer_token(request))
        if error is not None:
            return _json_response({"error": error[1]}, status=error[0])
        try:
            payload = await request.json()
        except Exception:
            return _bad_request("invalid JSON body")
        if not isinstance(payload, dict):
            return _bad_request("request body must be a JSON object")
        settings = compatible.migrate("settings", payload.get("settings"))
        try:
            login_id = _optional_int(payload.get("login_id"))
            login_template_id = _optional_int(payload.get("login_template_id"))
            with store.transaction(write=True) as conn:
                login_setting.set_tx(conn, login_id, login_template_id, settings)
                settings = login_setting.get_tx(conn, login_id, login_template_id)
        except ValueError as exc:
            return _bad_request(str(exc))
        return _json_response(settings)


def create_app(store=None):
    app = web.Application()
    app[STORE_KEY] = store or SchemaStore.get()
    routes = web.RouteTableDef()
    setup_routes(routes)
    app.add_routes(routes)
    return app


def main():
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    banner = f" {APP_NAME} {VERSION} "
    logger.info("=" * 40 + banner + "=" * 40)
    logger.info(f"Schema version: {SCHEMA_VERSION}")
    port = int(os.environ.get("SCHEMATRANSFER_PORT", "8080"))
    web.run_app(create_app(), port=port)
