"""Thin endpoint helpers grouped by API area.

Every method issues one HTTP verb against a fixed path template through the
pipeline; none of them adds behaviour beyond picking the path and options.
"""

import contextlib
from typing import Any, Union

from .errors import RequestError
from .pipeline import HttpPipeline


def _params(**kw) -> dict[str, Any]:
    return {k: v for k, v in kw.items() if v is not None}


class _Group:
    def __init__(self, pipeline: HttpPipeline):
        self.pipeline = pipeline


class AuthApi(_Group):
    async def register(self, payload: dict):
        return await self.pipeline.post("/auth/register", json=payload)

    async def login(self, credentials: dict):
        """Log in and store the returned token on the pipeline's session."""
        resp = await self.pipeline.post("/auth/login", json=credentials)
        data = resp.data if isinstance(resp.data, dict) else {}
        token = data.get("access_token") or data.get("token")
        if token:
            self.pipeline.session.login(token)
        return resp

    async def me(self):
        return await self.pipeline.get("/auth/me")

    async def sessions(self):
        return await self.pipeline.get("/auth/sessions")

    async def revoke_session(self, session_id: str):
        return await self.pipeline.delete(f"/auth/sessions/{session_id}")

    async def revoke_all_sessions(self):
        return await self.pipeline.delete("/auth/sessions")

    async def forgot_password(self, email: str):
        return await self.pipeline.post("/auth/forgot-password", json={"email": email})

    async def reset_password(self, payload: dict):
        return await self.pipeline.post("/auth/reset-password", json=payload)

    async def change_password(self, payload: dict):
        return await self.pipeline.post("/auth/change-password", json=payload)

    async def logout(self):
        """Invalidate the server-side session; the local token is cleared regardless."""
        try:
            return await self.pipeline.post("/auth/logout")
        finally:
            self.pipeline.session.logout()

    async def logout_all(self):
        try:
            return await self.pipeline.post("/auth/logout-all")
        finally:
            self.pipeline.session.logout()

    async def validate(self, token: str):
        return await self.pipeline.post("/auth/validate", json={"token": token})


class UsersApi(_Group):
    async def list(self, **filters):
        return await self.pipeline.get("/users", params=_params(**filters))

    async def get(self, user_id: str):
        return await self.pipeline.get(f"/users/{user_id}")

    async def update(self, user_id: str, payload: dict):
        return await self.pipeline.patch(f"/users/{user_id}", json=payload)

    async def approve(self, user_id: str):
        return await self.pipeline.patch(f"/users/{user_id}/approve")

    async def reject(self, user_id: str, reason: Union[str, None] = None):
        return await self.pipeline.patch(f"/users/{user_id}/reject", json=_params(reason=reason))

    async def suspend(self, user_id: str, reason: Union[str, None] = None):
        return await self.pipeline.patch(f"/users/{user_id}/suspend", json=_params(reason=reason))

    async def activate(self, user_id: str):
        return await self.pipeline.patch(f"/users/{user_id}/activate")

    async def delete(self, user_id: str):
        return await self.pipeline.delete(f"/users/{user_id}")


class TasksApi(_Group):
    async def create(self, payload: dict):
        return await self.pipeline.post("/tasks", json=payload)

    async def list(self, **filters):
        return await self.pipeline.get("/tasks", params=_params(**filters))

    async def assigned(self):
        return await self.pipeline.get("/tasks/assigned")

    async def mark_done(self, task_id: str, payload: Union[dict, None] = None):
        return await self.pipeline.patch(f"/tasks/{task_id}/done", json=payload or {})

    async def approve(self, task_id: str):
        return await self.pipeline.patch(f"/tasks/{task_id}/approve")

    async def reject(self, task_id: str, reason: Union[str, None] = None):
        return await self.pipeline.patch(f"/tasks/{task_id}/reject", json=_params(reason=reason))

    async def update(self, task_id: str, payload: dict):
        return await self.pipeline.patch(f"/tasks/{task_id}", json=payload)

    async def delete(self, task_id: str):
        return await self.pipeline.delete(f"/tasks/{task_id}")


class DisputesApi(_Group):
    async def create(self, payload: dict):
        return await self.pipeline.post("/disputes", json=payload)

    async def list(self, **filters):
        return await self.pipeline.get("/disputes", params=_params(**filters))

    async def respond(self, dispute_id: str, message: str):
        return await self.pipeline.post(
            f"/disputes/{dispute_id}/respond", json={"message": message}
        )

    async def update(self, dispute_id: str, payload: dict):
        return await self.pipeline.patch(f"/disputes/{dispute_id}", json=payload)

    async def close(self, dispute_id: str, resolution: Union[str, None] = None):
        return await self.pipeline.patch(
            f"/disputes/{dispute_id}/close", json=_params(resolution=resolution)
        )

    async def delete(self, dispute_id: str):
        return await self.pipeline.delete(f"/disputes/{dispute_id}")


class MerchantsApi(_Group):
    async def create(self, payload: dict):
        return await self.pipeline.post("/merchants", json=payload)

    async def list(self, **filters):
        return await self.pipeline.get("/merchants", params=_params(**filters))

    async def get(self, merchant_id: str):
        return await self.pipeline.get(f"/merchants/{merchant_id}")

    async def me(self):
        # 404 means the caller has no merchant record yet
        return await self.pipeline.get("/merchants/me", allow_not_found=True)

    async def update_me(self, payload: dict):
        return await self.pipeline.patch("/merchants/me", json=payload)

    async def update(self, merchant_id: str, payload: dict):
        return await self.pipeline.patch(f"/merchants/{merchant_id}", json=payload)

    async def add_transaction(self, merchant_id: str, payload: dict):
        return await self.pipeline.post(f"/merchants/{merchant_id}/transactions", json=payload)

    async def transactions(self, merchant_id: str, **filters):
        return await self.pipeline.get(
            f"/merchants/{merchant_id}/transactions", params=_params(**filters)
        )

    async def flagged(self):
        return await self.pipeline.get("/merchants/flagged")


class AnalyticsApi(_Group):
    async def overview(self):
        return await self.pipeline.get("/analytics/overview")

    async def users(self):
        return await self.pipeline.get("/analytics/users")

    async def tasks(self):
        return await self.pipeline.get("/analytics/tasks")

    async def merchants(self):
        return await self.pipeline.get("/analytics/merchants")


class ContentApi(_Group):
    async def list(self):
        return await self.pipeline.get("/content")

    async def get(self, section: str):
        return await self.pipeline.get(f"/content/{section}")

    async def save(self, section: str, payload: dict):
        return await self.pipeline.post(f"/content/{section}", json=payload)

    async def delete(self, section: str):
        return await self.pipeline.delete(f"/content/{section}")


class FormsApi(_Group):
    async def submit(self, fields: dict, files: Any = None):
        return await self.pipeline.post(
            "/forms/submit",
            data=fields,
            files=files,
            timeout=self.pipeline.transport_config.upload_timeout if files else None,
        )

    async def list(self, **filters):
        return await self.pipeline.get("/forms", params=_params(**filters))

    async def get(self, form_id: str):
        return await self.pipeline.get(f"/forms/{form_id}")

    async def mine_latest(self):
        # 404 means nothing submitted yet
        return await self.pipeline.get("/forms/mine/latest", allow_not_found=True)

    async def update(self, form_id: str, payload: dict):
        return await self.pipeline.patch(f"/forms/{form_id}", json=payload)

    async def delete(self, form_id: str):
        return await self.pipeline.delete(f"/forms/{form_id}")


class UploadsApi(_Group):
    async def single(self, files: Any, fields: Union[dict, None] = None):
        return await self.pipeline.post(
            "/upload/single",
            data=fields,
            files=files,
            timeout=self.pipeline.transport_config.upload_timeout,
        )

    async def multiple(self, files: Any, fields: Union[dict, None] = None):
        return await self.pipeline.post(
            "/upload/multiple",
            data=fields,
            files=files,
            timeout=self.pipeline.transport_config.upload_timeout,
        )

    async def list(self, next_cursor: Union[str, None] = None):
        return await self.pipeline.get("/upload/list", params=_params(nextCursor=next_cursor))

    async def delete(self, public_id: str):
        return await self.pipeline.delete(f"/upload/{public_id}")


class HealthApi(_Group):
    async def check(self):
        return await self.pipeline.get("/health")

    async def detailed(self):
        return await self.pipeline.get("/health/detailed")


class SecurityApi(_Group):
    """Session management for the security screens."""

    async def active_sessions(self):
        return await self.pipeline.get("/auth/sessions")

    async def revoke(self, session_id: Union[str, None] = None):
        if session_id is None:
            return await self.pipeline.delete("/auth/sessions")
        return await self.pipeline.delete(f"/auth/sessions/{session_id}")

    async def validate_token(self, token: Union[str, None] = None) -> bool:
        """True if the server still accepts the token (the stored one by default)."""
        token = token or self.pipeline.session.token
        if not token:
            return False
        try:
            resp = await self.pipeline.post("/auth/validate", json={"token": token})
        except RequestError as e:
            if e.status == 401:  # noqa: PLR2004, http status code can be constant
                return False
            raise
        data = resp.data if isinstance(resp.data, dict) else {}
        return bool(data.get("valid"))


class ApiClient:
    """All endpoint groups bound to one pipeline."""

    def __init__(self, pipeline: Union[HttpPipeline, None] = None, **kwargs):
        self.pipeline = pipeline or HttpPipeline(**kwargs)
        self._own_pipeline = pipeline is None
        self.auth = AuthApi(self.pipeline)
        self.users = UsersApi(self.pipeline)
        self.tasks = TasksApi(self.pipeline)
        self.disputes = DisputesApi(self.pipeline)
        self.merchants = MerchantsApi(self.pipeline)
        self.analytics = AnalyticsApi(self.pipeline)
        self.content = ContentApi(self.pipeline)
        self.forms = FormsApi(self.pipeline)
        self.uploads = UploadsApi(self.pipeline)
        self.health = HealthApi(self.pipeline)
        self.security = SecurityApi(self.pipeline)

    async def close(self):
        if self._own_pipeline:
            with contextlib.suppress(Exception):
                await self.pipeline.close()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()
        return False
