"""
Command handlers behind the desktop UI.

Each handler receives the StateManager (and RemoteApi / LoginCapture
where needed) explicitly. The state lock is taken per read or mutation and
is never held across a network call.
"""

import time
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .exporters import ResultsExporter
from .login import LoginCapture
from .models import ScrapingOperation, Todo, TodoStatus, utc_now_iso
from .proxy import ProxyError, RemoteApi
from .state import StateManager, StateStore


###############################################################################
# Login
###############################################################################

async def login_and_upload(manager: StateManager, login: LoginCapture, bucket_url: str) -> str:
    uri = await login.login_and_upload(bucket_url)
    print(f"🚀 DONE – state uploaded to {uri}")
    with manager.locked() as store:
        store.record_login_uri(uri)
    return uri


async def proxy_register_state(api: RemoteApi, gcs_uri: str) -> None:
    await api.register_state(gcs_uri)


async def proxy_login_status(api: RemoteApi) -> Any:
    return await api.login_status()


###############################################################################
# Remote scraping
###############################################################################

def resolve_job_criteria(
    store: StateStore,
    criteria_preset_id: Optional[str],
    criteria_text: Optional[str],
) -> Tuple[Optional[str], Optional[str]]:
    """Pick (preset id, criteria text) for one job.

    Raw text wins over a preset id; an unknown preset id means the
    classifier's default criteria.
    """
    if criteria_text is not None:
        return criteria_preset_id, criteria_text
    if criteria_preset_id is not None:
        preset = store.find_preset(criteria_preset_id)
        if preset is not None:
            print(f"🔧 [DEBUG] Using provided preset id: id={preset.id} name={preset.name} ({len(preset.criteria)} chars)")
            return preset.id, preset.criteria
        print("⚠️ [DEBUG] Provided preset id not found; proceeding with backend default criteria")
        return None, None
    print("ℹ️ [DEBUG] No preset id provided; proceeding with backend default criteria")
    return None, None


def record_scrape_response(store: StateStore, target: str, target_yes: int, result: Any) -> None:
    """Fold a /remote-scrape response into the local operations list."""
    if not isinstance(result, dict):
        return
    status = result.get("status")
    if status == "queued":
        operation_id = result.get("operation")
        if not isinstance(operation_id, str):
            return
        exec_id = result.get("exec_id")
        store.add_operation(ScrapingOperation(
            operation_id=operation_id,
            target_account=target,
            target_count=target_yes,
            started_at=utc_now_iso(),
            status="running",
            exec_id=exec_id if isinstance(exec_id, str) else None,
        ))
        print(f"✅ Operation saved to persistent storage: {operation_id}")
    elif status == "completed":
        results = result.get("results")
        if not isinstance(results, list):
            return
        store.add_operation(ScrapingOperation(
            operation_id=f"completed_{int(time.time())}",
            target_account=target,
            target_count=target_yes,
            started_at=utc_now_iso(),
            status="completed",
            results=results,
        ))
        print("✅ Completed operation saved to persistent storage")


async def proxy_remote_scrape(
    manager: StateManager,
    api: RemoteApi,
    target: str,
    target_yes: int,
    batch_size: int,
    num_bio_pages: int,
    criteria_preset_id: Optional[str] = None,
    criteria_text: Optional[str] = None,
) -> Any:
    print(f"🔍 [DEBUG] Proxy remote scrape called with: target={target}, target_yes={target_yes}, batch_size={batch_size}")
    # per-job selection only; the classifier's global prompt is left alone
    with manager.locked() as store:
        preset_id, text = resolve_job_criteria(store, criteria_preset_id, criteria_text)

    result = await api.remote_scrape({
        "target": target,
        "target_yes": target_yes,
        "batch_size": batch_size,
        "num_bio_pages": num_bio_pages,
        "criteria_preset_id": preset_id,
        "criteria_text": text,
    })

    with manager.locked() as store:
        record_scrape_response(store, target, target_yes, result)
    return result


async def proxy_scrape_status(
    api: RemoteApi,
    exec_id: str,
    target: str,
    legacy_operation: Optional[str] = None,
) -> Any:
    return await api.scrape_status(exec_id, target, legacy_operation)


async def proxy_delete_scrape_artifacts(api: RemoteApi, target: str, exec_id: str) -> None:
    print(f"🧹 [DEBUG] Deleting GCS artifacts for: target={target} exec_id={exec_id}")
    await api.delete_scrape_artifacts(target, exec_id)


###############################################################################
# Persistent operations
###############################################################################

def _cached_status(operation: ScrapingOperation) -> Dict[str, Any]:
    return {
        "status": operation.status,
        "results": operation.results,
        "error_message": operation.error_message,
    }


async def get_persistent_operations(manager: StateManager) -> Dict[str, Any]:
    with manager.locked() as store:
        operations = store.get_operations()
    return {"operations": [op.model_dump(mode="json") for op in operations]}


async def check_persistent_operation_status(manager: StateManager, api: RemoteApi, operation_id: str) -> Any:
    with manager.locked() as store:
        operation = store.get_operation(operation_id)
    if operation is None:
        raise LookupError("Operation not found")
    if operation.status != "running":
        return _cached_status(operation)

    try:
        status_result = await api.scrape_status(
            operation.exec_id or "",
            operation.target_account,
            operation.operation_id,
        )
    except (ProxyError, httpx.HTTPError, ValueError) as exc:
        print(f"⚠️ Status check failed for {operation_id}, returning cached status: {exc}")
        return _cached_status(operation)

    status = status_result.get("status") if isinstance(status_result, dict) else None
    if not isinstance(status, str):
        return _cached_status(operation)

    with manager.locked() as store:
        if status == "completed":
            results = status_result.get("results")
            if isinstance(results, list):
                store.update_operation(operation_id, "completed", results, None)
        elif status == "failed":
            message = status_result.get("message")
            store.update_operation(
                operation_id, "failed", None, message if isinstance(message, str) else "Unknown error"
            )
    return status_result


async def clear_completed_operations(manager: StateManager) -> None:
    with manager.locked() as store:
        store.clear_completed_operations()


async def remove_persistent_operation(manager: StateManager, operation_id: str) -> None:
    with manager.locked() as store:
        store.remove_operation(operation_id)


###############################################################################
# Files
###############################################################################

async def save_file_dialog(exporter: ResultsExporter, content: str, filename: str, file_type: str = "") -> Path:
    return exporter.save_and_open(content, filename)


async def export_results(exporter: ResultsExporter, results: List[Any], fmt: str = "csv") -> Path:
    return exporter.export_results(results, fmt)


###############################################################################
# Classification criteria (remote)
###############################################################################

async def get_classification_criteria(api: RemoteApi) -> Any:
    return await api.get_criteria()


async def update_classification_prompt(api: RemoteApi, criteria: str) -> Any:
    return await api.update_prompt(criteria)


async def reset_classification_prompt(api: RemoteApi) -> Any:
    return await api.reset_prompt()


###############################################################################
# Todos
###############################################################################

async def create_todo(
    manager: StateManager,
    target_account: str,
    target_count: int,
    bio_agents: int,
    batch_size: int,
    criteria_preset_id: Optional[str] = None,
) -> None:
    with manager.locked() as store:
        preset = store.find_preset(criteria_preset_id) if criteria_preset_id else None
        todo = Todo(
            id=str(uuid.uuid4()),
            target_account=target_account,
            target_count=target_count,
            bio_agents=bio_agents,
            batch_size=batch_size,
            criteria_preset_id=criteria_preset_id,
            criteria_preset_name=preset.name if preset else None,
        )
        store.add_todo(todo)
    print(f"✅ Todo created: {todo.id}")


async def get_todos(manager: StateManager) -> Dict[str, Any]:
    with manager.locked() as store:
        todos = store.get_todos()
    return {"todos": [t.model_dump(mode="json") for t in todos]}


async def update_todo_status(
    manager: StateManager,
    todo_id: str,
    status: TodoStatus,
    operation_id: Optional[str] = None,
    exec_id: Optional[str] = None,
    results: Optional[List[Any]] = None,
    error_message: Optional[str] = None,
) -> None:
    with manager.locked() as store:
        store.update_todo(todo_id, status, operation_id, results, error_message, exec_id=exec_id)
    print(f"✅ Todo {todo_id} status updated to {status}")


async def toggle_todo_manual_complete(manager: StateManager, todo_id: str) -> None:
    with manager.locked() as store:
        store.toggle_todo_manual_complete(todo_id)
    print(f"✅ Todo {todo_id} manually completed toggled")


async def delete_todo(manager: StateManager, todo_id: str) -> None:
    with manager.locked() as store:
        store.delete_todo(todo_id)
    print(f"✅ Todo {todo_id} deleted")


async def set_todo_criteria_preset(manager: StateManager, todo_id: str, preset_id: Optional[str]) -> None:
    with manager.locked() as store:
        store.set_todo_preset(todo_id, preset_id)
    print(f"set_todo_criteria_preset: todo_id={todo_id} preset_id={preset_id}")


###############################################################################
# Saved criteria presets (local)
###############################################################################

async def get_saved_criteria(manager: StateManager) -> Dict[str, Any]:
    with manager.locked() as store:
        presets = store.get_presets()
        active_id = store.active_criteria_id
    return {
        "presets": [p.model_dump(mode="json") for p in presets],
        "active_id": active_id,
    }


async def create_criteria_preset(manager: StateManager, name: str, criteria: str) -> str:
    with manager.locked() as store:
        return store.add_criteria_preset(name, criteria)


async def rename_criteria_preset(manager: StateManager, preset_id: str, name: str) -> None:
    with manager.locked() as store:
        store.rename_criteria_preset(preset_id, name)


async def update_criteria_preset_content(manager: StateManager, preset_id: str, criteria: str) -> None:
    with manager.locked() as store:
        store.update_criteria_preset(preset_id, criteria)


async def delete_criteria_preset(manager: StateManager, preset_id: str) -> None:
    with manager.locked() as store:
        store.delete_criteria_preset(preset_id)


async def set_active_criteria(manager: StateManager, preset_id: Optional[str]) -> None:
    with manager.locked() as store:
        store.set_active_criteria(preset_id)
