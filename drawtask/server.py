"""
HTTP API for accounts, tasks, statistics and uploads.

All API responses are JSON objects with a ``success`` flag; failures
carry an ``error`` message.
"""

import argparse
import json
import logging
from pathlib import Path
from typing import Dict, Optional

from aiohttp import web

from .accounts import AccountRegistry
from .config_manager import ConfigManager, config_manager
from .dispatcher import Dispatcher
from .drawtask_logger import configure_logging
from .errors import DrawtaskError, NotFoundError, ValidationError
from .models import utc_now
from .stats import collect_stats
from .store import SnapshotStore
from .tasks import TaskRepository
from .uploads import inline_upload

logger = logging.getLogger("drawtask.server")

STORE_KEY = web.AppKey("store", SnapshotStore)
ACCOUNTS_KEY = web.AppKey("accounts", AccountRegistry)
TASKS_KEY = web.AppKey("tasks", TaskRepository)
DISPATCHER_KEY = web.AppKey("dispatcher", Dispatcher)
SETTINGS_KEY = web.AppKey("settings", dict)

routes = web.RouteTableDef()


# ==========================================
# Helpers
# ==========================================

def error_response(e: Exception) -> web.Response:
    if isinstance(e, ValidationError):
        status = 400
    elif isinstance(e, NotFoundError):
        status = 404
    elif isinstance(e, DrawtaskError):
        status = 500
        logger.error(f"Request failed: {type(e).__name__} - {e}")
    else:
        status = 500
        logger.exception(f"Unexpected error: {type(e).__name__} - {e}")
    return web.json_response({"success": False, "error": str(e) or type(e).__name__}, status=status)


async def read_json(request: web.Request) -> Dict:
    if not request.can_read_body:
        return {}
    try:
        data = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ValidationError("Request body is not valid JSON", [str(e)]) from e
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


# ==========================================
# Accounts
# ==========================================

@routes.get("/api/accounts")
async def list_accounts(request):
    """List accounts with masked API keys"""
    try:
        accounts = await request.app[ACCOUNTS_KEY].list()
        return web.json_response({"success": True, "accounts": accounts})
    except Exception as e:
        return error_response(e)


@routes.post("/api/accounts")
async def add_account(request):
    try:
        data = await read_json(request)
        account = await request.app[ACCOUNTS_KEY].add(data)
        return web.json_response({"success": True, "account": account})
    except Exception as e:
        return error_response(e)


@routes.put("/api/accounts/{id}")
async def update_account(request):
    try:
        data = await read_json(request)
        account = await request.app[ACCOUNTS_KEY].update(request.match_info["id"], data)
        return web.json_response({"success": True, "account": account})
    except Exception as e:
        return error_response(e)


@routes.delete("/api/accounts/{id}")
async def remove_account(request):
    try:
        await request.app[ACCOUNTS_KEY].remove(request.match_info["id"])
        return web.json_response({"success": True})
    except Exception as e:
        return error_response(e)


@routes.put("/api/accounts/{id}/default")
async def set_default_account(request):
    try:
        account = await request.app[ACCOUNTS_KEY].set_default(request.match_info["id"])
        return web.json_response({"success": True, "account": account})
    except Exception as e:
        return error_response(e)


# ==========================================
# Tasks
# ==========================================

@routes.get("/api/tasks")
async def list_tasks(request):
    """List tasks, optionally filtered by ?status= and ?model="""
    try:
        tasks = await request.app[TASKS_KEY].list(
            status=request.query.get("status"),
            model=request.query.get("model"),
        )
        return web.json_response({"success": True, "tasks": tasks})
    except Exception as e:
        return error_response(e)


@routes.get("/api/tasks/{id}")
async def get_task(request):
    try:
        task = await request.app[TASKS_KEY].get(request.match_info["id"])
        return web.json_response({"success": True, "task": task})
    except Exception as e:
        return error_response(e)


@routes.post("/api/tasks")
async def create_task(request):
    """
    Create a task and dispatch it in the background.

    Expects JSON body:
    {
        "type": str,              # e.g. text2img / img2img
        "model": str,             # Model code
        "prompt": str,
        "count": int,             # optional, default 1
        "referenceImage": str,    # optional data URI
        "baseImage": str,         # optional data URI
        "refStyleImage": str      # optional data URI
    }

    Responds immediately with the pending task.
    """
    try:
        data = await read_json(request)
        task = await request.app[DISPATCHER_KEY].submit(data)
        return web.json_response({"success": True, "task": task})
    except Exception as e:
        return error_response(e)


@routes.post("/api/tasks/{id}/resubmit")
async def resubmit_task(request):
    try:
        data = await read_json(request)
        task = await request.app[DISPATCHER_KEY].resubmit(
            request.match_info["id"], data.get("prompt") or None
        )
        return web.json_response({"success": True, "task": task})
    except Exception as e:
        return error_response(e)


@routes.delete("/api/tasks/{id}")
async def remove_task(request):
    try:
        await request.app[TASKS_KEY].remove(request.match_info["id"])
        return web.json_response({"success": True})
    except Exception as e:
        return error_response(e)


# ==========================================
# Stats / Upload / Health
# ==========================================

@routes.get("/api/stats")
async def get_stats(request):
    try:
        stats = await collect_stats(request.app[STORE_KEY])
        return web.json_response({"success": True, "stats": stats})
    except Exception as e:
        return error_response(e)


@routes.post("/api/upload")
async def upload_image(request):
    """Convert an uploaded image (multipart field ``image``) to a data URI"""
    settings = request.app[SETTINGS_KEY]
    try:
        if not request.content_type.startswith("multipart/"):
            raise ValidationError("Please upload a file")

        reader = await request.multipart()
        while True:
            part = await reader.next()
            if part is None:
                raise ValidationError("Please upload a file")
            if part.name == "image" and part.filename:
                break
            await part.release()

        image = await inline_upload(part, settings["upload_dir"], settings["max_upload_bytes"])
        return web.json_response({"success": True, "image": image})
    except Exception as e:
        return error_response(e)


@routes.get("/api/health")
async def health(request):
    return web.json_response({"success": True, "status": "ok", "timestamp": utc_now()})


# ==========================================
# Pages and static files
# ==========================================

def _page_response(request, page_key: str) -> web.StreamResponse:
    settings = request.app[SETTINGS_KEY]
    path = Path(settings["root_dir"]) / settings[page_key]
    if not path.is_file():
        raise web.HTTPNotFound()
    return web.FileResponse(path)


@routes.get("/")
async def index_page(request):
    return _page_response(request, "index_page")


@routes.get("/admin")
async def admin_page(request):
    return _page_response(request, "admin_page")


async def public_file(request):
    """Serve files from the public directory; registered after the API routes"""
    public_dir = Path(request.app[SETTINGS_KEY]["public_dir"]).resolve()
    target = (public_dir / request.match_info["path"]).resolve()
    if public_dir not in target.parents or not target.is_file():
        raise web.HTTPNotFound()
    return web.FileResponse(target)


# ==========================================
# Application
# ==========================================

def build_settings(config: ConfigManager, root_dir: Optional[str] = None) -> Dict:
    root = Path(root_dir or Path.cwd())
    uploads = config.get_upload_settings()
    static = config.get_static_settings()
    storage = config.get_storage_settings()
    return {
        "root_dir": str(root),
        "data_file": str(root / storage["data_file"]),
        "upload_dir": str(root / uploads["dir"]),
        "max_upload_bytes": int(uploads["max_size_mb"]) * 1024 * 1024,
        "public_dir": str(root / static["public_dir"]),
        "index_page": static["index_page"],
        "admin_page": static["admin_page"],
        "provider_defaults": config.get_provider_defaults(),
        "request_timeout": config.get_request_timeout(),
    }


async def _on_startup(app: web.Application):
    settings = app[SETTINGS_KEY]
    await app[STORE_KEY].init_storage()
    for directory in (settings["upload_dir"], settings["public_dir"]):
        try:
            Path(directory).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.error(f"Could not create directory {directory}: {e}")


async def _on_shutdown(app: web.Application):
    dispatcher = app[DISPATCHER_KEY]
    if dispatcher.in_flight:
        logger.info(f"Waiting for {len(dispatcher.in_flight)} in-flight dispatch(es)")
        await dispatcher.drain()


def create_app(config: Optional[ConfigManager] = None,
               root_dir: Optional[str] = None) -> web.Application:
    """Build the aiohttp application with its store, registries and dispatcher"""
    settings = build_settings(config or config_manager, root_dir)

    # JSON bodies may carry inline images
    app = web.Application(client_max_size=settings["max_upload_bytes"] + 1024 * 1024)

    store = SnapshotStore(settings["data_file"])
    app[SETTINGS_KEY] = settings
    app[STORE_KEY] = store
    app[ACCOUNTS_KEY] = AccountRegistry(store)
    app[TASKS_KEY] = TaskRepository(store)
    app[DISPATCHER_KEY] = Dispatcher(
        store,
        provider_defaults=settings["provider_defaults"],
        request_timeout=settings["request_timeout"],
    )

    app.add_routes(routes)
    app.router.add_get("/{path:.+}", public_file)
    app.on_startup.append(_on_startup)
    app.on_shutdown.append(_on_shutdown)
    return app


def main(argv=None):
    parser = argparse.ArgumentParser(description="AI image generation task manager")
    parser.add_argument("--config", help="Path to config.yaml")
    parser.add_argument("--root", help="Directory holding data, uploads and pages")
    args = parser.parse_args(argv)

    config = ConfigManager(args.config) if args.config else config_manager
    configure_logging(level=config.get_log_level(), include_timestamp=True)

    server = config.get_server_settings()
    app = create_app(config, args.root)
    settings = app[SETTINGS_KEY]

    logger.info("🎨 Drawtask server starting")
    logger.info(f"   Address:   http://{server['host']}:{server['port']}")
    logger.info(f"   Health:    http://localhost:{server['port']}/api/health")
    logger.info(f"   Data file: {settings['data_file']}")

    web.run_app(app, host=server["host"], port=int(server["port"]), print=None)


if __name__ == "__main__":
    main()
