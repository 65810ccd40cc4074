from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from starlette.websockets import WebSocketState
from typing import Dict, Tuple
import json
import logging

from app.domains.artifacts.coordinator import DraftObserver, FailureObserver, SyncCoordinator, SyncFailure
from app.domains.artifacts.entities import Draft
from app.domains.artifacts.services import ArtifactSessionManager

logger = logging.getLogger(__name__)

router = APIRouter()


class ConnectionManager:
    def __init__(self):
        # Хранилище активных соединений: {chat_id: {client_id: websocket}}
        self.active_connections: Dict[str, Dict[str, WebSocket]] = {}
        # Подписки на координатор: одна на чат, пока есть хотя бы одно соединение
        self.subscriptions: Dict[str, Tuple[SyncCoordinator, DraftObserver, FailureObserver]] = {}

    async def connect(self, websocket: WebSocket, chat_id: str, client_id: str, coordinator: SyncCoordinator):
        """Подключение клиента к потоку артефакта чата"""
        await websocket.accept()

        self.active_connections.setdefault(chat_id, {})[client_id] = websocket
        self.bind(chat_id, coordinator)
        logger.info(f"Client {client_id} connected to artifact stream of chat {chat_id}")

    def bind(self, chat_id: str, coordinator: SyncCoordinator):
        """Подписка чата на его текущий координатор"""
        subscription = self.subscriptions.get(chat_id)
        if subscription is not None and subscription[0] is coordinator:
            return

        self._unsubscribe(chat_id)
        self._subscribe(chat_id, coordinator)

    def disconnect(self, chat_id: str, client_id: str, websocket: WebSocket = None):
        """Отключение клиента"""
        clients = self.active_connections.get(chat_id)
        if clients is not None:
            # Соединение с тем же client_id могло уже смениться новым
            if websocket is None or clients.get(client_id) is websocket:
                clients.pop(client_id, None)

            # Если больше нет подключений к чату, снимаем подписку
            if not clients:
                del self.active_connections[chat_id]
                self._unsubscribe(chat_id)

        logger.info(f"Client {client_id} disconnected from chat {chat_id}")

    async def close_chat(self, chat_id: str):
        """Отключение всех клиентов чата после закрытия сессии"""
        clients = self.active_connections.pop(chat_id, {})
        self._unsubscribe(chat_id)

        for client_id, websocket in clients.items():
            try:
                await websocket.close(code=1000)
            except RuntimeError as e:
                logger.warning(f"Failed to close connection of client {client_id} of chat {chat_id}: {e}")

        if clients:
            logger.info(f"Closed {len(clients)} connections of chat {chat_id}")

    async def broadcast(self, chat_id: str, message: dict):
        """Рассылка сообщения всем клиентам чата"""
        if chat_id not in self.active_connections:
            return

        message_json = json.dumps(message)
        disconnected_clients = []

        for client_id, websocket in list(self.active_connections[chat_id].items()):
            try:
                await websocket.send_text(message_json)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.warning(f"Failed to send to client {client_id} of chat {chat_id}: {e}")
                disconnected_clients.append((client_id, websocket))

        for client_id, websocket in disconnected_clients:
            self.disconnect(chat_id, client_id, websocket)

    def _subscribe(self, chat_id: str, coordinator: SyncCoordinator):
        async def publish_draft(draft: Draft):
            await self.broadcast(chat_id, {"type": "draft", "data": draft.to_dict()})

        async def publish_failure(failure: SyncFailure):
            await self.broadcast(chat_id, {"type": "error", "data": failure.to_dict()})

        coordinator.subscribe(publish_draft)
        coordinator.on_failure(publish_failure)
        self.subscriptions[chat_id] = (coordinator, publish_draft, publish_failure)

    def _unsubscribe(self, chat_id: str):
        subscription = self.subscriptions.pop(chat_id, None)
        if subscription is None:
            return

        coordinator, publish_draft, publish_failure = subscription
        coordinator.unsubscribe(publish_draft)
        coordinator.remove_failure_observer(publish_failure)


connections = ConnectionManager()


async def send_error(websocket: WebSocket, message: str):
    await websocket.send_text(json.dumps({
        "type": "error",
        "data": {"kind": "malformed_delta", "message": message}
    }))


@router.websocket("/chats/{chat_id}/stream/{client_id}")
async def artifact_stream(websocket: WebSocket, chat_id: str, client_id: str):
    """WebSocket эндпоинт потока дельт артефакта"""
    manager: ArtifactSessionManager = websocket.app.state.sessions

    await connections.connect(websocket, chat_id, client_id, manager.get_or_create(chat_id).coordinator)

    try:
        # Сервер закрывает соединение сам при закрытии сессии чата
        while websocket.application_state == WebSocketState.CONNECTED:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await send_error(websocket, "Message is not valid JSON")
                continue

            if not isinstance(message, dict):
                await send_error(websocket, "Message must be a JSON object")
                continue

            # Сессия могла быть закрыта и создана заново
            coordinator = manager.get_or_create(chat_id).coordinator
            connections.bind(chat_id, coordinator)

            message_type = message.get("type")

            if message_type == "delta":
                # position позволяет отбросить повторную доставку
                position = message.get("position")
                coordinator.submit(message.get("data"), position if isinstance(position, int) else None)

            elif message_type == "deltas":
                # Весь накопленный массив дельт, обрабатываются только новые
                records = message.get("data")
                if records is None:
                    records = []
                if not isinstance(records, list):
                    await send_error(websocket, "'deltas' message must carry a list")
                    continue
                coordinator.ingest(records)

            elif message_type == "ping":
                await websocket.send_text(json.dumps({"type": "pong"}))

            elif message_type == "sync_request":
                await coordinator.drain()
                draft = coordinator.draft
                await websocket.send_text(json.dumps({
                    "type": "sync_response",
                    "data": {
                        "draft": draft.to_dict() if draft else None,
                        "processed": coordinator.processed_count,
                        "last_message_id": coordinator.last_message_id
                    }
                }))

            else:
                logger.warning(f"Unknown message type {message_type!r} from client {client_id}")

        connections.disconnect(chat_id, client_id, websocket)

    except WebSocketDisconnect:
        connections.disconnect(chat_id, client_id, websocket)

    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        connections.disconnect(chat_id, client_id, websocket)
        raise
