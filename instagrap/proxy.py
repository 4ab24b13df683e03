"""
HTTP proxy calls to the remote scrape API and the bio classifier.

Every call is one request/response round trip; nothing is retried or
cached. Failures are raised as ProxyError with the status code and body
so the command layer can hand the message straight to the UI.
"""

from typing import Any, Dict, Optional

import httpx

from .config import AppConfig


class ProxyError(RuntimeError):
    """A remote call failed or returned something unusable."""


def _cause_chain(exc: BaseException) -> str:
    chain = ""
    seen = {id(exc)}
    src = exc.__cause__ or exc.__context__
    while src is not None and id(src) not in seen:
        seen.add(id(src))
        chain += f"; caused_by: {src}"
        src = src.__cause__ or src.__context__
    return chain


def _request_url(exc: httpx.RequestError) -> Optional[str]:
    try:
        return str(exc.request.url)
    except RuntimeError:
        return None


class RemoteApi:
    """Client for the two remote services the desktop app talks to."""

    def __init__(
        self,
        api_base: str = AppConfig.API_BASE,
        classify_api_base: str = AppConfig.CLASSIFY_API_BASE,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_base = api_base.rstrip("/")
        self.classify_api_base = classify_api_base.rstrip("/")
        self._transport = transport

    def _client(self, timeout: httpx.Timeout) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=timeout,
            transport=self._transport,
            headers={"User-Agent": AppConfig.USER_AGENT},
        )

    @staticmethod
    def _json_or_error(resp: httpx.Response, what: str = "HTTP error") -> Any:
        if not resp.is_success:
            body = resp.text or "Unknown error"
            raise ProxyError(f"{what} {resp.status_code}: {body}")
        try:
            return resp.json()
        except ValueError as exc:
            raise ProxyError(f"Failed to parse JSON response: {exc}") from exc

    # ------------------------------------------------------------- scrape API
    async def register_state(self, gcs_uri: str) -> None:
        print(f"🔍 [DEBUG] Attempting to register state with URI: {gcs_uri}")
        if not gcs_uri.startswith(AppConfig.GCS_SCHEME):
            raise ValueError("Invalid GCS URI: must start with gs://")

        url = f"{self.api_base}/register-state"
        print(f"🔍 [DEBUG] Sending POST request to: {url}")
        async with self._client(AppConfig.REGISTER_TIMEOUT) as client:
            try:
                resp = await client.post(url, json={"gcs_uri": gcs_uri})
            except httpx.RequestError as exc:
                raise ProxyError(f"Network error: {exc}") from exc

        print(f"🔍 [DEBUG] Response status: {resp.status_code}")
        if not resp.is_success:
            raise ProxyError(f"HTTP error {resp.status_code}: {resp.text or 'Unknown error'}")
        try:
            print(f"✅ [DEBUG] Registration successful: {resp.json()}")
        except ValueError as exc:
            # the server accepted it; an odd body is not a failure
            print(f"⚠️ [DEBUG] Response received but couldn't parse JSON: {exc}")

    async def login_status(self) -> Any:
        url = f"{self.api_base}/login-status"
        print(f"DBG proxy_login_status URL={url}")
        async with self._client(AppConfig.LOGIN_STATUS_TIMEOUT) as client:
            try:
                resp = await client.get(url)
            except httpx.TimeoutException as exc:
                print(f"DBG proxy_login_status timeout: {exc!r}")
                return {"status": "none", "ok": False, "message": "timeout"}
            except httpx.RequestError as exc:
                detail = (
                    f"network error: {exc!r} | is_timeout=False "
                    f"is_connect={isinstance(exc, httpx.ConnectError)} "
                    f"url={_request_url(exc)!r}{_cause_chain(exc)}"
                )
                print(f"DBG proxy_login_status error: {detail}")
                raise ProxyError(detail) from exc

        if not resp.is_success:
            print(f"DBG login-status http_status={resp.status_code} body={resp.text}")
            raise ProxyError(f"HTTP {resp.status_code}: {resp.text}")
        try:
            return resp.json()
        except ValueError as exc:
            preview = resp.text[:500]
            raise ProxyError(f"JSON parse error: {exc} | body_preview={preview}") from exc

    async def scrape_status(
        self,
        exec_id: str,
        target: str,
        legacy_operation: Optional[str] = None,
    ) -> Any:
        async with self._client(AppConfig.SCRAPE_TIMEOUT) as client:
            try:
                if exec_id:
                    resp = await client.get(
                        f"{self.api_base}/scrape-status",
                        params={"target": target, "exec_id": exec_id},
                    )
                    if resp.status_code != 404:
                        return self._json_or_error(resp, "HTTP")
                    print(f"⚠️ scrape-status 404 for exec_id={exec_id}; trying legacy status")

                if legacy_operation:
                    resp = await client.get(
                        f"{self.api_base}/legacy-scrape-status",
                        params={"operation": legacy_operation},
                    )
                    if not resp.is_success:
                        raise ProxyError(f"HTTP {resp.status_code} (legacy): {resp.text}")
                    return self._json_or_error(resp, "HTTP")
            except httpx.RequestError as exc:
                raise ProxyError(f"Network error: {exc}") from exc

        raise ProxyError("No valid identifier to check status")

    async def remote_scrape(self, body: Dict[str, Any]) -> Any:
        print(f"🔍 [DEBUG] Making request to backend with body: {body}")
        async with self._client(AppConfig.SCRAPE_TIMEOUT) as client:
            try:
                resp = await client.post(f"{self.api_base}/remote-scrape", json=body)
            except httpx.RequestError as exc:
                raise ProxyError(f"Network error: {exc}") from exc
        print(f"🔍 [DEBUG] Backend response status: {resp.status_code}")
        result = self._json_or_error(resp)
        print(f"🔍 [DEBUG] Backend response: {result}")
        return result

    async def delete_scrape_artifacts(self, target: str, exec_id: str) -> None:
        async with self._client(AppConfig.SCRAPE_TIMEOUT) as client:
            try:
                resp = await client.delete(
                    f"{self.api_base}/scrape-artifacts",
                    params={"target": target, "exec_id": exec_id},
                )
            except httpx.RequestError as exc:
                raise ProxyError(f"Network error: {exc}") from exc
        if not resp.is_success:
            raise ProxyError(f"HTTP {resp.status_code}: {resp.text}")

    # ----------------------------------------------------------- classifier
    async def get_criteria(self) -> Any:
        print(f"🔍 [DEBUG] Getting classification criteria from: {self.classify_api_base}")
        async with self._client(AppConfig.CRITERIA_TIMEOUT) as client:
            try:
                resp = await client.get(f"{self.classify_api_base}/criteria")
            except httpx.RequestError as exc:
                raise ProxyError(f"Network error: {exc}") from exc
        return self._json_or_error(resp)

    async def update_prompt(self, criteria: str) -> Any:
        url = f"{self.classify_api_base}/prompt"
        print(f"🔍 [DEBUG] Sending PUT request to: {url}")
        async with self._client(AppConfig.CRITERIA_TIMEOUT) as client:
            try:
                # only the criteria; the classifier composes header/footer itself
                resp = await client.put(url, json={"criteria": criteria})
            except httpx.RequestError as exc:
                raise ProxyError(f"Network error: {exc}") from exc
        result = self._json_or_error(resp)
        print("✅ [DEBUG] Classification criteria updated successfully")
        return result

    async def reset_prompt(self) -> Any:
        url = f"{self.classify_api_base}/prompt/reset"
        print(f"🔍 [DEBUG] Sending POST request to: {url}")
        async with self._client(AppConfig.CRITERIA_TIMEOUT) as client:
            try:
                resp = await client.post(url, json={})
            except httpx.RequestError as exc:
                raise ProxyError(f"Network error: {exc}") from exc
        result = self._json_or_error(resp)
        print("✅ [DEBUG] Classification prompt reset successfully")
        return result
