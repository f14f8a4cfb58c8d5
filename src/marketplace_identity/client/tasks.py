"""Task listing mixin for BackendClient."""
from typing import Any

from ..utils.constants import ENDPOINT_TASKS, ENDPOINT_USER_TASKS


class TasksMixin:
    """Mixin providing the task reads consumed by ownership reconciliation."""

    async def get_all_tasks(self) -> list[dict[str, Any]]:
        """List all tasks.

        The backend answers either with a bare list or with {"data": [...]}.

        Returns:
            List of task dictionaries.
        """
        payload = await self.get(ENDPOINT_TASKS)
        return _task_list(payload)

    async def get_user_tasks(self, user_id: Any) -> list[dict[str, Any]]:
        payload = await self.get(ENDPOINT_USER_TASKS.format(user_id=user_id))
        return _task_list(payload)


def _task_list(payload: Any) -> list[dict[str, Any]]:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict) and isinstance(payload.get("data"), list):
        return payload["data"]
    return []
