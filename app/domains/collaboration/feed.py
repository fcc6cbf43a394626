import logging
from typing import Awaitable, Callable, Dict, List, Tuple

from app.domains.projects.entities import Project

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[Project], Awaitable[None]]


class ChangeFeed:
    """Рассылка сохранённых версий проекта подписчикам"""

    def __init__(self):
        # {(owner_id, project_id): [callback]}
        self._subscribers: Dict[Tuple[str, str], List[ChangeCallback]] = {}

    def subscribe(self, owner_id: str, project_id: str, callback: ChangeCallback) -> Callable[[], None]:
        key = (owner_id, project_id)
        callbacks = self._subscribers.setdefault(key, [])
        callbacks.append(callback)

        def unsubscribe() -> None:
            if callback in callbacks:
                callbacks.remove(callback)
            if not callbacks and self._subscribers.get(key) is callbacks:
                del self._subscribers[key]

        return unsubscribe

    def subscriber_count(self, owner_id: str, project_id: str) -> int:
        return len(self._subscribers.get((owner_id, project_id), []))

    async def publish(self, project: Project) -> None:
        for callback in list(self._subscribers.get((project.owner_id, project.id), [])):
            try:
                await callback(project)
            except Exception as e:
                logger.error(f"Change subscriber failed for project {project.id}: {e}")


change_feed = ChangeFeed()
