"""
Google Cloud Storage upload and local result export functionality.
"""

import csv
import io
import json
import os
import subprocess
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from google.cloud import storage

from .config import AppConfig, download_dir


def parse_gcs_destination(bucket_url: str, now: Optional[datetime] = None) -> Tuple[str, str]:
    """Split ``gs://bucket[/object]`` into (bucket, object).

    A missing object name is replaced by a UTC-timestamped one.
    """
    if not bucket_url.startswith(AppConfig.GCS_SCHEME):
        raise ValueError("Invalid GCS URL: must start with gs://")
    trimmed = bucket_url[len(AppConfig.GCS_SCHEME):]
    bucket, _, blob_name = trimmed.partition("/")
    if not bucket:
        raise ValueError("Invalid GCS URL: missing bucket name")
    if not blob_name:
        stamp = (now or datetime.now(timezone.utc)).strftime("%Y%m%dT%H%M%SZ")
        blob_name = f"{AppConfig.STATE_OBJECT_PREFIX}{stamp}.json"
    return bucket, blob_name


class GcsUploader:
    """Single-object uploads using the ambient Google credentials."""

    def __init__(
        self,
        project_id: Optional[str] = AppConfig.GCP_PROJECT_ID,
        client_factory: Callable[..., Any] = storage.Client,
    ):
        self.project_id = project_id
        self._client_factory = client_factory

    def upload_to_gcs(
        self,
        local_path: str,
        bucket_name: str,
        destination_blob: str,
        content_type: str = "application/json",
    ) -> str:
        """Upload a local file and return its gs:// URI."""
        client = self._client_factory(project=self.project_id)
        print("🔍 [DEBUG] Google Cloud authentication configured successfully")
        bucket = client.bucket(bucket_name)
        blob = bucket.blob(destination_blob)
        blob.upload_from_filename(local_path, content_type=content_type)
        uri = f"gs://{bucket_name}/{destination_blob}"
        print(f"✅ Upload successful to {uri}")
        return uri


class ResultsExporter:
    """Renders scrape results and hands files to the desktop."""

    def __init__(self, target_dir: Optional[Path] = None, opener: Optional[Callable[[Path], None]] = None):
        self.target_dir = target_dir
        self._opener = opener or open_with_default_app

    @staticmethod
    def results_to_csv(results: List[Dict]) -> str:
        buf = io.StringIO()
        writer = csv.writer(buf, lineterminator="\n")
        writer.writerow(AppConfig.CSV_HEADERS)
        for profile in results:
            profile = profile if isinstance(profile, dict) else {}
            writer.writerow([profile.get("username") or "", profile.get("url") or ""])
        return buf.getvalue().rstrip("\n")

    @staticmethod
    def results_to_json(results: List[Any]) -> str:
        return json.dumps(results, indent=2, ensure_ascii=False)

    @staticmethod
    def export_filename(extension: str, today: Optional[datetime] = None) -> str:
        stamp = (today or datetime.now(timezone.utc)).strftime("%Y-%m-%d")
        return f"{AppConfig.DOWNLOAD_FILENAME_PREFIX}_{stamp}.{extension}"

    def save_and_open(self, content: str, filename: str) -> Path:
        """Write text into the download directory and open it."""
        directory = self.target_dir or download_dir()
        directory.mkdir(parents=True, exist_ok=True)
        file_path = directory / Path(filename).name
        try:
            file_path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise OSError(f"Failed to write file: {exc}") from exc
        print(f"✅ File saved to: {file_path}")
        self._opener(file_path)
        return file_path

    def export_results(self, results: List[Any], fmt: str = "csv") -> Path:
        if not results:
            raise ValueError("No results to download")
        if fmt == "csv":
            content = self.results_to_csv(results)
        elif fmt == "json":
            content = self.results_to_json(results)
        else:
            raise ValueError(f"Unsupported export format: {fmt}")
        print(f"🔍 [DEBUG] Preparing {fmt.upper()} download for {len(results)} profiles")
        return self.save_and_open(content, self.export_filename(fmt))


def open_with_default_app(path: Path) -> None:
    try:
        if sys.platform == "darwin":
            subprocess.Popen(["open", str(path)])
        elif sys.platform.startswith("win"):
            os.startfile(str(path))  # type: ignore[attr-defined]
        else:
            subprocess.Popen(["xdg-open", str(path)])
    except OSError as exc:
        print(f"⚠️ Could not open {path}: {exc}")
