from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple
import json
import logging
import uuid

from app.core.db import SessionLocal
from app.core.exceptions import WorkflowError
from app.core.security import verify_token
from app.domains.collaboration.feed import ChangeFeed, change_feed
from app.domains.collaboration.presence import PresenceTracker, presence_tracker
from app.domains.identity.entities import Actor
from app.domains.projects.entities import Project, utcnow
from app.domains.projects.schemas import ProjectResponse
from app.domains.projects.services import ProjectService

logger = logging.getLogger(__name__)

router = APIRouter()

ProjectLoader = Callable[[], Awaitable[Project]]


class ConnectionManager:
    def __init__(self, feed: ChangeFeed, presence: PresenceTracker):
        # Хранилище активных соединений: {project_id: {connection_id: (user_id, websocket)}}
        # Один участник может держать несколько вкладок
        self.active_connections: Dict[str, Dict[str, Tuple[str, WebSocket]]] = {}
        # Отписки от ленты изменений: {project_id: unsubscribe}
        self._unsubscribers: Dict[str, Callable[[], None]] = {}
        self.feed = feed
        self.presence = presence

    async def connect(self, websocket: WebSocket, project: Project, actor: Actor) -> str:
        """Подключение участника к проекту; возвращает идентификатор соединения"""
        await websocket.accept()

        if project.id not in self.active_connections:
            self.active_connections[project.id] = {}
            self._unsubscribers[project.id] = self.feed.subscribe(
                project.owner_id, project.id, self._on_project_changed
            )
            logger.info(f"Created new project session for {project.id}")

        connection_id = uuid.uuid4().hex
        self.active_connections[project.id][connection_id] = (actor.uid, websocket)
        self.presence.heartbeat(project.id, actor.uid, {"name": actor.display_name, "email": actor.email}, utcnow())

        await websocket.send_text(json.dumps({
            "type": "connected",
            "data": {
                "project_id": project.id,
                "user_id": actor.uid,
                "connection_id": connection_id,
                "revision": project.revision,
                "active_users": self.presence.others(project.id, actor.uid, utcnow())
            }
        }, default=str))
        await self.broadcast_presence(project.id)
        logger.info(f"User {actor.uid} connected to project {project.id}")
        return connection_id

    def user_ids(self, project_id: str) -> Set[str]:
        return {user_id for user_id, _ in self.active_connections.get(project_id, {}).values()}

    def disconnect(self, project_id: str, connection_id: str):
        """Отключение одного соединения; присутствие снимается с последним соединением участника"""
        connections = self.active_connections.get(project_id)
        if not connections or connection_id not in connections:
            return

        user_id, _ = connections.pop(connection_id)

        # Если нет больше подключений к проекту, отписываемся от изменений
        if not connections:
            del self.active_connections[project_id]
            unsubscribe = self._unsubscribers.pop(project_id, None)
            if unsubscribe:
                unsubscribe()

        if user_id not in self.user_ids(project_id):
            self.presence.clear(project_id, user_id)
        logger.info(f"User {user_id} disconnected from project {project_id}")

    async def broadcast_to_project(self, project_id: str, message: dict, exclude_user: Optional[str] = None):
        """Рассылка сообщения всем соединениям проекта"""
        if project_id not in self.active_connections:
            return

        message_json = json.dumps(message, default=str)
        disconnected = []

        for connection_id, (user_id, websocket) in list(self.active_connections[project_id].items()):
            if exclude_user and user_id == exclude_user:
                continue

            try:
                await websocket.send_text(message_json)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.warning(f"Dropping connection of {user_id} on project {project_id}: {e}")
                disconnected.append(connection_id)

        # Удаляем отключенные соединения
        for connection_id in disconnected:
            self.disconnect(project_id, connection_id)

    async def broadcast_presence(self, project_id: str):
        users = [entry.to_dict() for entry in self.presence.active(project_id, utcnow()).values()]
        await self.broadcast_to_project(project_id, {"type": "presence", "data": {"users": users}})

    async def _on_project_changed(self, project: Project):
        await self.broadcast_to_project(project.id, {
            "type": "project_updated",
            "data": ProjectResponse.model_validate(project).model_dump(mode="json")
        })

    async def handle_message(
        self,
        websocket: WebSocket,
        project: Project,
        actor: Actor,
        message: Any,
        reload: ProjectLoader
    ):
        """Обработка одного сообщения клиента"""
        body = (message.get("data") or {}) if isinstance(message, dict) else None
        if not isinstance(body, dict):
            await websocket.send_text(json.dumps({"type": "error", "message": "Message must be a JSON object"}))
            return

        message_type = message.get("type")

        if message_type == "heartbeat":
            self.presence.heartbeat(project.id, actor.uid, {
                "name": body.get("name") or actor.display_name,
                "email": actor.email,
                "avatar": body.get("avatar")
            }, utcnow())
            await self.broadcast_presence(project.id)

        elif message_type == "typing":
            self.presence.set_typing(
                project.id, actor.uid, bool(body.get("is_typing")), body.get("question_id"), utcnow()
            )
            await self.broadcast_presence(project.id)

        elif message_type == "ping":
            # Ответ на ping для поддержания соединения
            await websocket.send_text(json.dumps({"type": "pong"}))

        elif message_type == "sync_request":
            # Запрос актуального состояния проекта
            current = await reload()
            await websocket.send_text(json.dumps({
                "type": "sync_response",
                "data": ProjectResponse.model_validate(current).model_dump(mode="json")
            }))

        else:
            await websocket.send_text(json.dumps({"type": "error", "message": f"Unknown message type: {message_type}"}))

    async def serve(self, websocket: WebSocket, project: Project, actor: Actor, reload: ProjectLoader):
        """Цикл обработки сообщений одного соединения"""
        connection_id = await self.connect(websocket, project, actor)

        try:
            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    message = None
                await self.handle_message(websocket, project, actor, message, reload)

        except WebSocketDisconnect:
            pass

        except WorkflowError as e:
            logger.error(f"WebSocket error on project {project.id}: {e}")
            await websocket.close(code=status.WS_1011_INTERNAL_ERROR)

        finally:
            self.disconnect(project.id, connection_id)
            await self.broadcast_presence(project.id)


manager = ConnectionManager(change_feed, presence_tracker)


@router.websocket("/ws/users/{owner_id}/projects/{project_id}")
async def websocket_endpoint(websocket: WebSocket, owner_id: str, project_id: str, token: str = ""):
    """WebSocket эндпоинт: присутствие и рассылка изменений проекта"""
    payload = verify_token(token)
    if payload is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    try:
        actor = Actor.from_claims(payload)
        async with SessionLocal() as session:
            project = await ProjectService(session).load_project(owner_id, project_id, actor)
    except (WorkflowError, ValueError) as e:
        logger.info(f"WebSocket rejected for project {project_id}: {e}")
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    async def reload() -> Project:
        async with SessionLocal() as session:
            return await ProjectService(session).load_project(owner_id, project_id, actor)

    await manager.serve(websocket, project, actor, reload)
