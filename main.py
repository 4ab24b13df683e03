# main.py – desktop backend →  uvicorn main:app --host 127.0.0.1 --port 8765

import os
from contextlib import asynccontextmanager
from typing import Any, Awaitable, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware

from instagrap import commands
from instagrap.exporters import ResultsExporter
from instagrap.login import LoginCapture
from instagrap.models import (
    CreatePresetRequest,
    CreateTodoRequest,
    DeleteArtifactsRequest,
    ExportResultsRequest,
    LoginRequest,
    OperationIdRequest,
    PresetIdRequest,
    RegisterStateRequest,
    RemoteScrapeRequest,
    RenamePresetRequest,
    SaveFileRequest,
    ScrapeStatusRequest,
    SetActiveCriteriaRequest,
    SetTodoPresetRequest,
    TodoIdRequest,
    UpdatePresetContentRequest,
    UpdatePromptRequest,
    UpdateTodoStatusRequest,
)
from instagrap.proxy import RemoteApi
from instagrap.state import StateManager

###############################################################################
# 1. App + shared handles
###############################################################################

def create_app(
    manager: Optional[StateManager] = None,
    api: Optional[RemoteApi] = None,
    login: Optional[LoginCapture] = None,
    exporter: Optional[ResultsExporter] = None,
) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: state is loaded once and held for the process lifetime
        app.state.manager  = manager or StateManager.from_disk()
        app.state.api      = api or RemoteApi()
        app.state.login    = login or LoginCapture()
        app.state.exporter = exporter or ResultsExporter()
        print("✅ desktop backend ready.")

        yield

        print("🛑   desktop backend stopped.")

    app = FastAPI(title="InstaGrap Desktop Backend", version="1.0", lifespan=lifespan)

    # the webview/Vite dev-server calls this API from another origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=os.getenv("INSTAGRAP_ALLOWED_ORIGINS", "http://localhost:5173,tauri://localhost").split(","),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_routes(app)
    return app


async def _invoke(name: str, call: Awaitable[Any]) -> Any:
    """Run one command; any failure reaches the UI as a plain message."""
    try:
        return await call
    except HTTPException:
        raise
    except Exception as exc:
        print(f"❌ ERROR in {name}: {exc}")
        raise HTTPException(400, str(exc)) from exc


###############################################################################
# 2. Command routes – POST /commands/<name>
###############################################################################

def _register_routes(app: FastAPI) -> None:

    def handles(request: Request):
        s = request.app.state
        return s.manager, s.api

    @app.get("/health")
    async def health():
        return {"ok": True}

    # ------------------------------------------------------------- login
    @app.post("/commands/login_and_upload")
    async def login_and_upload(body: LoginRequest, request: Request):
        manager, _ = handles(request)
        return await _invoke(
            "login_and_upload",
            commands.login_and_upload(manager, request.app.state.login, body.bucket_url),
        )

    @app.post("/commands/proxy_register_state")
    async def proxy_register_state(body: RegisterStateRequest, request: Request):
        _, api = handles(request)
        return await _invoke("proxy_register_state", commands.proxy_register_state(api, body.gcs_uri))

    @app.post("/commands/proxy_login_status")
    async def proxy_login_status(request: Request):
        _, api = handles(request)
        return await _invoke("proxy_login_status", commands.proxy_login_status(api))

    # ------------------------------------------------------------ scraping
    @app.post("/commands/proxy_remote_scrape")
    async def proxy_remote_scrape(body: RemoteScrapeRequest, request: Request):
        manager, api = handles(request)
        return await _invoke("proxy_remote_scrape", commands.proxy_remote_scrape(
            manager,
            api,
            target             = body.target,
            target_yes         = body.target_yes,
            batch_size         = body.batch_size,
            num_bio_pages      = body.num_bio_pages,
            criteria_preset_id = body.criteria_preset_id,
            criteria_text      = body.criteria_text,
        ))

    @app.post("/commands/proxy_scrape_status")
    async def proxy_scrape_status(body: ScrapeStatusRequest, request: Request):
        _, api = handles(request)
        return await _invoke(
            "proxy_scrape_status",
            commands.proxy_scrape_status(api, body.exec_id, body.target, body.legacy_operation),
        )

    @app.post("/commands/proxy_delete_scrape_artifacts")
    async def proxy_delete_scrape_artifacts(body: DeleteArtifactsRequest, request: Request):
        _, api = handles(request)
        return await _invoke(
            "proxy_delete_scrape_artifacts",
            commands.proxy_delete_scrape_artifacts(api, body.target, body.exec_id),
        )

    # ---------------------------------------------------------- operations
    @app.post("/commands/get_persistent_operations")
    async def get_persistent_operations(request: Request):
        manager, _ = handles(request)
        return await _invoke("get_persistent_operations", commands.get_persistent_operations(manager))

    @app.post("/commands/check_persistent_operation_status")
    async def check_persistent_operation_status(body: OperationIdRequest, request: Request):
        manager, api = handles(request)
        return await _invoke(
            "check_persistent_operation_status",
            commands.check_persistent_operation_status(manager, api, body.operation_id),
        )

    @app.post("/commands/clear_completed_operations")
    async def clear_completed_operations(request: Request):
        manager, _ = handles(request)
        return await _invoke("clear_completed_operations", commands.clear_completed_operations(manager))

    @app.post("/commands/remove_persistent_operation")
    async def remove_persistent_operation(body: OperationIdRequest, request: Request):
        manager, _ = handles(request)
        return await _invoke(
            "remove_persistent_operation",
            commands.remove_persistent_operation(manager, body.operation_id),
        )

    # --------------------------------------------------------------- files
    @app.post("/commands/save_file_dialog")
    async def save_file_dialog(body: SaveFileRequest, request: Request):
        exporter = request.app.state.exporter
        path = await _invoke(
            "save_file_dialog",
            commands.save_file_dialog(exporter, body.content, body.filename, body.file_type),
        )
        return {"path": str(path)}

    @app.post("/commands/export_results")
    async def export_results(body: ExportResultsRequest, request: Request):
        exporter = request.app.state.exporter
        path = await _invoke("export_results", commands.export_results(exporter, body.results, body.format))
        return {"path": str(path)}

    # ----------------------------------------------------- remote criteria
    @app.post("/commands/get_classification_criteria")
    async def get_classification_criteria(request: Request):
        _, api = handles(request)
        return await _invoke("get_classification_criteria", commands.get_classification_criteria(api))

    @app.post("/commands/update_classification_prompt")
    async def update_classification_prompt(body: UpdatePromptRequest, request: Request):
        _, api = handles(request)
        return await _invoke(
            "update_classification_prompt",
            commands.update_classification_prompt(api, body.criteria),
        )

    @app.post("/commands/reset_classification_prompt")
    async def reset_classification_prompt(request: Request):
        _, api = handles(request)
        return await _invoke("reset_classification_prompt", commands.reset_classification_prompt(api))

    # --------------------------------------------------------------- todos
    @app.post("/commands/create_todo")
    async def create_todo(body: CreateTodoRequest, request: Request):
        manager, _ = handles(request)
        return await _invoke("create_todo", commands.create_todo(
            manager,
            target_account     = body.target_account,
            target_count       = body.target_count,
            bio_agents         = body.bio_agents,
            batch_size         = body.batch_size,
            criteria_preset_id = body.criteria_preset_id,
        ))

    @app.post("/commands/get_todos")
    async def get_todos(request: Request):
        manager, _ = handles(request)
        return await _invoke("get_todos", commands.get_todos(manager))

    @app.post("/commands/update_todo_status")
    async def update_todo_status(body: UpdateTodoStatusRequest, request: Request):
        manager, _ = handles(request)
        return await _invoke("update_todo_status", commands.update_todo_status(
            manager,
            body.todo_id,
            body.status,
            operation_id  = body.operation_id,
            exec_id       = body.exec_id,
            results       = body.results,
            error_message = body.error_message,
        ))

    @app.post("/commands/toggle_todo_manual_complete")
    async def toggle_todo_manual_complete(body: TodoIdRequest, request: Request):
        manager, _ = handles(request)
        return await _invoke(
            "toggle_todo_manual_complete",
            commands.toggle_todo_manual_complete(manager, body.todo_id),
        )

    @app.post("/commands/delete_todo")
    async def delete_todo(body: TodoIdRequest, request: Request):
        manager, _ = handles(request)
        return await _invoke("delete_todo", commands.delete_todo(manager, body.todo_id))

    @app.post("/commands/set_todo_criteria_preset")
    async def set_todo_criteria_preset(body: SetTodoPresetRequest, request: Request):
        manager, _ = handles(request)
        return await _invoke(
            "set_todo_criteria_preset",
            commands.set_todo_criteria_preset(manager, body.todo_id, body.preset_id),
        )

    # ------------------------------------------------------------- presets
    @app.post("/commands/get_saved_criteria")
    async def get_saved_criteria(request: Request):
        manager, _ = handles(request)
        return await _invoke("get_saved_criteria", commands.get_saved_criteria(manager))

    @app.post("/commands/create_criteria_preset")
    async def create_criteria_preset(body: CreatePresetRequest, request: Request):
        manager, _ = handles(request)
        return await _invoke(
            "create_criteria_preset",
            commands.create_criteria_preset(manager, body.name, body.criteria),
        )

    @app.post("/commands/rename_criteria_preset")
    async def rename_criteria_preset(body: RenamePresetRequest, request: Request):
        manager, _ = handles(request)
        return await _invoke("rename_criteria_preset", commands.rename_criteria_preset(manager, body.id, body.name))

    @app.post("/commands/update_criteria_preset_content")
    async def update_criteria_preset_content(body: UpdatePresetContentRequest, request: Request):
        manager, _ = handles(request)
        return await _invoke(
            "update_criteria_preset_content",
            commands.update_criteria_preset_content(manager, body.id, body.criteria),
        )

    @app.post("/commands/delete_criteria_preset")
    async def delete_criteria_preset(body: PresetIdRequest, request: Request):
        manager, _ = handles(request)
        return await _invoke("delete_criteria_preset", commands.delete_criteria_preset(manager, body.id))

    @app.post("/commands/set_active_criteria")
    async def set_active_criteria(body: SetActiveCriteriaRequest, request: Request):
        manager, _ = handles(request)
        return await _invoke("set_active_criteria", commands.set_active_criteria(manager, body.id))


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="127.0.0.1", port=int(os.getenv("PORT", 8765)))
