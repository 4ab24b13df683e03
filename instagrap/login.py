"""
Interactive Instagram login capture.

Opens a visible Chrome window on a persistent profile, waits for the user
to log in and press the injected DONE button, then uploads the context's
storage_state JSON to Google Cloud Storage so the remote scraper can reuse
the session.
"""

import asyncio
import json
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlayTimeout
from playwright.async_api import async_playwright

from .config import AppConfig, profile_dir_path
from .exporters import GcsUploader, parse_gcs_destination


class LoginFlowError(RuntimeError):
    """Browser launch, user wait or state capture failed."""


DONE_BUTTON_SCRIPT = """
{
    const createButton = () => {
        if (document.getElementById('%(id)s')) return;
        const btn = document.createElement('button');
        btn.id = '%(id)s';
        btn.textContent = '✓ DONE – send cookies';
        btn.style = 'position:fixed;top:1rem;right:1rem;z-index:999999;padding:.6rem 1.2rem;background:#38bdf8;color:#fff;border:none;border-radius:.5rem;cursor:pointer;';
        btn.onclick = () => {
            btn.setAttribute('data-clicked', '1');
            btn.textContent = '✓ Sending…';
            window.__pw_done = true;
        };
        document.body.appendChild(btn);
    };

    if (document.readyState === 'loading') {
        window.addEventListener('DOMContentLoaded', createButton);
    } else {
        createButton();
    }
}
""" % {"id": AppConfig.DONE_BUTTON_ID}

DONE_CLICKED_SELECTOR = f"#{AppConfig.DONE_BUTTON_ID}[data-clicked='1']"


class LoginCapture:
    """Drives the manual login window and uploads the captured session."""

    def __init__(
        self,
        uploader: Optional[GcsUploader] = None,
        profile_dir: Optional[Path] = None,
        playwright_factory: Callable[[], Any] = async_playwright,
        wait_timeout_ms: int = AppConfig.LOGIN_WAIT_TIMEOUT_MS,
    ):
        self.uploader = uploader or GcsUploader()
        self.profile_dir = profile_dir
        self._playwright_factory = playwright_factory
        self.wait_timeout_ms = wait_timeout_ms

    async def capture_state(self) -> Dict[str, Any]:
        """Run the browser until the user clicks DONE; return storage_state."""
        profile_dir = self.profile_dir or profile_dir_path()
        profile_dir.mkdir(parents=True, exist_ok=True)

        async with self._playwright_factory() as pw:
            try:
                context = await pw.chromium.launch_persistent_context(
                    user_data_dir=str(profile_dir),
                    headless=False,
                    channel=AppConfig.BROWSER_CHANNEL,
                    args=AppConfig.BROWSER_ARGS,
                    timeout=AppConfig.BROWSER_LAUNCH_TIMEOUT_MS,
                )
            except PlaywrightError as exc:
                raise LoginFlowError(f"Failed to launch browser: {exc}") from exc
            print(f"[login] browser launched with profile {profile_dir}")

            try:
                page = await context.new_page()
                # before goto so every navigation gets the button
                await page.add_init_script(DONE_BUTTON_SCRIPT)
                await page.goto(AppConfig.LOGIN_URL, timeout=self.wait_timeout_ms)
                print("[login] waiting for the user to press DONE")
                await page.wait_for_selector(DONE_CLICKED_SELECTOR, timeout=self.wait_timeout_ms)
                print("✅ User clicked DONE")
                return await context.storage_state()
            except PlayTimeout as exc:
                raise LoginFlowError(f"wait cancelled or timed-out: {exc}") from exc
            except PlaywrightError as exc:
                raise LoginFlowError(str(exc)) from exc
            finally:
                try:
                    await context.close()
                except PlaywrightError as exc:
                    print(f"[login] context close ignored ({type(exc).__name__}: {exc})")

    async def login_and_upload(self, bucket_url: str) -> str:
        """Capture a logged-in session and upload it; returns the gs:// URI."""
        bucket, blob_name = parse_gcs_destination(bucket_url)
        state = await self.capture_state()

        with tempfile.NamedTemporaryFile(mode="w", suffix=".json", delete=False, encoding="utf-8") as tf:
            json.dump(state, tf)
            tmp_path = tf.name
        print(f"✅ State file written to {tmp_path}")
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(
                None,
                lambda: self.uploader.upload_to_gcs(tmp_path, bucket, blob_name),
            )
        finally:
            try:
                os.remove(tmp_path)
            except OSError:
                pass
