"""Async HTTP client for the TaskFlow REST API."""

from typing import Any, Optional

import httpx


class ApiError(Exception):
    """Non-2xx response from the API."""

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"{status_code}: {message}")


class TaskflowClient:
    """Thin wrapper over ``httpx.AsyncClient`` that carries the bearer token.

    ``signup`` and ``login`` store the returned token so later calls are
    authenticated. Pass ``transport`` to talk to an in-process app.
    """

    def __init__(
        self,
        base_url: str,
        token: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        timeout: float = 10.0,
    ) -> None:
        self.token = token
        self._http = httpx.AsyncClient(base_url=base_url, transport=transport, timeout=timeout)

    async def __aenter__(self) -> "TaskflowClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def _request(self, method: str, path: str, json: Any = None) -> Any:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        response = await self._http.request(method, path, json=json, headers=headers)
        if response.is_error:
            message = response.reason_phrase
            try:
                body = response.json()
            except ValueError:
                body = None
            if isinstance(body, dict) and body.get("error"):
                message = body["error"]
            raise ApiError(response.status_code, message)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # -- auth ----------------------------------------------------------------

    async def signup(self, email: str, password: str, name: Optional[str] = None) -> dict:
        body = {"email": email, "password": password}
        if name is not None:
            body["name"] = name
        result = await self._request("POST", "/auth/signup", json=body)
        self.token = result["token"]
        return result["user"]

    async def login(self, email: str, password: str) -> dict:
        result = await self._request(
            "POST", "/auth/login", json={"email": email, "password": password}
        )
        self.token = result["token"]
        return result["user"]

    async def me(self) -> dict:
        return await self._request("GET", "/auth/me")

    # -- tasks ---------------------------------------------------------------

    async def list_tasks(self) -> list[dict]:
        data = await self._request("GET", "/tasks")
        return data if isinstance(data, list) else []

    async def create_task(self, fields: dict) -> dict:
        return await self._request("POST", "/tasks", json=fields)

    async def update_task(self, task: dict) -> dict:
        """PUT the full field set of ``task`` (must include ``id``)."""
        body = {k: v for k, v in task.items() if k != "id"}
        return await self._request("PUT", f"/tasks/{task['id']}", json=body)

    async def delete_task(self, task_id: int) -> None:
        await self._request("DELETE", f"/tasks/{task_id}")

    async def health(self) -> dict:
        return await self._request("GET", "/health")
