"""
Local state persisted as a single JSON document.

StateStore owns the in-memory AppState and rewrites the whole file after
every mutation. StateManager guards one StateStore with a lock; command
handlers only ever reach the store through StateManager.locked().
"""

import json
import os
import tempfile
import threading
import time
import uuid
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional

from pydantic import ValidationError

from .config import AppConfig, state_file_path
from .models import (
    AppState,
    SavedCriteriaPreset,
    ScrapingOperation,
    Todo,
    TodoStatus,
    utc_now_iso,
)


class StateFileError(RuntimeError):
    """The state file could not be read, parsed or written."""


class StateLockError(RuntimeError):
    """The state lock could not be acquired."""


class PresetNotFoundError(LookupError):
    def __str__(self) -> str:
        return "Criteria preset not found"


class StateStore:
    """In-memory AppState mirrored to one JSON file."""

    def __init__(self, path: Optional[Path], state: Optional[AppState] = None):
        # None: no resolvable config dir, state lives in memory and saves fail
        self.path = Path(path) if path is not None else None
        self.state = state or AppState()

    # ------------------------------------------------------------------ disk
    @classmethod
    def load(cls, path: Path) -> "StateStore":
        path = Path(path)
        if not path.exists():
            print("ℹ️ No existing state file found, creating new state")
            return cls(path)
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise StateFileError(f"Failed to read state file: {exc}") from exc
        try:
            state = AppState.model_validate_json(raw)
        except ValidationError as exc:
            raise StateFileError(f"Failed to parse state file: {exc}") from exc
        print(f"✅ App state loaded from {path}")
        return cls(path, state)

    def save(self) -> None:
        if self.path is None:
            raise StateFileError("Failed to write state file: Could not find config directory")
        payload = json.dumps(self.state.model_dump(mode="json"), indent=2, ensure_ascii=False)
        tmp_path: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding="utf-8",
                dir=self.path.parent,
                prefix=".state-",
                suffix=".json",
                delete=False,
            ) as tf:
                tf.write(payload)
                tmp_path = tf.name
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as exc:
            raise StateFileError(f"Failed to write state file: {exc}") from exc
        finally:
            if tmp_path:
                try:
                    os.remove(tmp_path)
                except OSError:
                    pass
        print(f"✅ App state saved to {self.path}")

    def snapshot(self) -> AppState:
        return self.state.model_copy(deep=True)

    # ------------------------------------------------------------ operations
    def add_operation(self, operation: ScrapingOperation) -> None:
        # one operation per account: a new scrape of the same target replaces the old one
        self.state.scraping_operations = [
            op for op in self.state.scraping_operations
            if op.target_account != operation.target_account
        ]
        self.state.scraping_operations.append(operation.model_copy(deep=True))
        self.save()

    def update_operation(
        self,
        operation_id: str,
        status: str,
        results: Optional[List[Any]] = None,
        error_message: Optional[str] = None,
    ) -> None:
        operation = self._find_operation(operation_id)
        if operation is None:
            return
        operation.status = status
        operation.results = results
        operation.error_message = error_message
        self.save()

    def get_operation(self, operation_id: str) -> Optional[ScrapingOperation]:
        operation = self._find_operation(operation_id)
        return operation.model_copy(deep=True) if operation else None

    def get_operations(self) -> List[ScrapingOperation]:
        return [op.model_copy(deep=True) for op in self.state.scraping_operations]

    def get_running_operations(self) -> List[ScrapingOperation]:
        return [op.model_copy(deep=True) for op in self.state.scraping_operations if op.status == "running"]

    def clear_completed_operations(self) -> None:
        self.state.scraping_operations = [
            op for op in self.state.scraping_operations if op.status == "running"
        ]
        self.save()

    def remove_operation(self, operation_id: str) -> None:
        before = len(self.state.scraping_operations)
        self.state.scraping_operations = [
            op for op in self.state.scraping_operations if op.operation_id != operation_id
        ]
        self.save()
        print(f"✅ Removed operation {operation_id} ({before} -> {len(self.state.scraping_operations)} operations)")

    def _find_operation(self, operation_id: str) -> Optional[ScrapingOperation]:
        return next((op for op in self.state.scraping_operations if op.operation_id == operation_id), None)

    # ----------------------------------------------------------------- todos
    def add_todo(self, todo: Todo) -> None:
        self.state.todos.append(todo.model_copy(deep=True))
        self.save()

    def update_todo(
        self,
        todo_id: str,
        status: TodoStatus,
        operation_id: Optional[str] = None,
        results: Optional[List[Any]] = None,
        error_message: Optional[str] = None,
        exec_id: Optional[str] = None,
    ) -> None:
        todo = self._find_todo(todo_id)
        if todo is None:
            return
        todo.status = status
        todo.operation_id = operation_id
        todo.results = results
        todo.error_message = error_message
        if exec_id is not None:
            todo.exec_id = exec_id

        if status == "running" and todo.started_at is None:
            todo.started_at = utc_now_iso()
        elif status in ("completed", "failed") and todo.completed_at is None:
            todo.completed_at = utc_now_iso()
        self.save()

    def set_todo_preset(self, todo_id: str, preset_id: Optional[str]) -> None:
        todo = self._find_todo(todo_id)
        if todo is None:
            return
        preset = self._find_preset(preset_id) if preset_id else None
        todo.criteria_preset_id = preset_id
        todo.criteria_preset_name = preset.name if preset else None
        self.save()

    def toggle_todo_manual_complete(self, todo_id: str) -> None:
        todo = self._find_todo(todo_id)
        if todo is None:
            return
        todo.manually_completed = not todo.manually_completed
        if todo.manually_completed:
            todo.status = "completed"
            todo.completed_at = utc_now_iso()
        else:
            todo.status = "pending"
            todo.completed_at = None
        self.save()

    def delete_todo(self, todo_id: str) -> None:
        self.state.todos = [t for t in self.state.todos if t.id != todo_id]
        self.save()

    def get_todos(self) -> List[Todo]:
        return [t.model_copy(deep=True) for t in self.state.todos]

    def _find_todo(self, todo_id: str) -> Optional[Todo]:
        return next((t for t in self.state.todos if t.id == todo_id), None)

    # --------------------------------------------------------------- presets
    def add_criteria_preset(self, name: str, criteria: str) -> str:
        now = utc_now_iso()
        preset = SavedCriteriaPreset(
            id=str(uuid.uuid4()),
            name=name,
            criteria=criteria,
            created_at=now,
            updated_at=now,
        )
        self.state.saved_criteria.append(preset)
        self.save()
        return preset.id

    def rename_criteria_preset(self, preset_id: str, new_name: str) -> None:
        preset = self._find_preset(preset_id)
        if preset is None:
            return
        preset.name = new_name
        preset.updated_at = utc_now_iso()
        self.save()

    def update_criteria_preset(self, preset_id: str, new_criteria: str) -> None:
        preset = self._find_preset(preset_id)
        if preset is None:
            return
        preset.criteria = new_criteria
        preset.updated_at = utc_now_iso()
        self.save()

    def delete_criteria_preset(self, preset_id: str) -> None:
        self.state.saved_criteria = [p for p in self.state.saved_criteria if p.id != preset_id]
        if self.state.active_criteria_id == preset_id:
            self.state.active_criteria_id = None
        self.save()

    def set_active_criteria(self, preset_id: Optional[str]) -> None:
        if preset_id is not None and self._find_preset(preset_id) is None:
            raise PresetNotFoundError(preset_id)
        self.state.active_criteria_id = preset_id
        self.save()

    def find_preset(self, preset_id: str) -> Optional[SavedCriteriaPreset]:
        preset = self._find_preset(preset_id)
        return preset.model_copy() if preset else None

    def get_presets(self) -> List[SavedCriteriaPreset]:
        return [p.model_copy() for p in self.state.saved_criteria]

    @property
    def active_criteria_id(self) -> Optional[str]:
        return self.state.active_criteria_id

    def _find_preset(self, preset_id: str) -> Optional[SavedCriteriaPreset]:
        return next((p for p in self.state.saved_criteria if p.id == preset_id), None)

    # ----------------------------------------------------------------- login
    def record_login_uri(self, gcs_uri: str) -> None:
        self.state.last_login_gcs_uri = gcs_uri
        self.save()


class StateManager:
    """Lock-guarded owner of the process-wide StateStore."""

    def __init__(self, store: StateStore, lock_timeout: float = AppConfig.STATE_LOCK_TIMEOUT_S):
        self._store = store
        self._lock = threading.Lock()
        self._lock_timeout = lock_timeout

    @classmethod
    def from_disk(cls, path: Optional[Path] = None) -> "StateManager":
        try:
            if path is None:
                try:
                    path = state_file_path()
                except OSError as exc:
                    raise StateFileError(str(exc)) from exc
            store = StateStore.load(path)
        except StateFileError as exc:
            # an unreadable state file must not stop the app from starting
            print(f"⚠️ {exc}; starting with empty state")
            store = StateStore(path)
        return cls(store)

    @contextmanager
    def locked(self) -> Iterator[StateStore]:
        started = time.monotonic()
        if not self._lock.acquire(timeout=self._lock_timeout):
            waited = time.monotonic() - started
            raise StateLockError(f"Failed to lock state: timed out after {waited:.1f}s")
        try:
            yield self._store
        finally:
            self._lock.release()
