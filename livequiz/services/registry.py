import logging
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional


class ConnectionRole(str, Enum):
    HOST = "host"
    PARTICIPANT = "participant"


@dataclass
class Connection:
    """One open real-time channel."""

    id: str
    websocket: Any
    role: Optional[ConnectionRole] = None
    session_id: Optional[int] = None
    participant_id: Optional[int] = None
    host_principal_id: Optional[int] = None

    @property
    def is_host(self) -> bool:
        return self.role == ConnectionRole.HOST

    @property
    def is_participant(self) -> bool:
        return self.role == ConnectionRole.PARTICIPANT


class ConnectionRegistry:
    """Tracks open connections, their role and session affiliation."""

    def __init__(self):
        self.logger = logging.getLogger("runtime")
        self.connections: Dict[str, Connection] = {}

    def register(self, websocket) -> str:
        connection_id = str(uuid.uuid4())
        while connection_id in self.connections:
            connection_id = str(uuid.uuid4())
        self.connections[connection_id] = Connection(id=connection_id, websocket=websocket)
        return connection_id

    def bind(
        self,
        connection_id: str,
        role: ConnectionRole,
        session_id: int,
        participant_id: Optional[int] = None,
        host_principal_id: Optional[int] = None,
    ) -> Optional[Connection]:
        connection = self.connections.get(connection_id)
        if not connection:
            return None
        connection.role = role
        connection.session_id = session_id
        connection.participant_id = participant_id
        connection.host_principal_id = host_principal_id
        return connection

    def resolve(self, connection_id: str) -> Optional[Connection]:
        return self.connections.get(connection_id)

    def for_each_in_session(
        self, session_id: int, predicate: Optional[Callable[[Connection], bool]] = None
    ) -> List[Connection]:
        # Copy so callers may await between sends while connections come and go
        return [
            conn
            for conn in list(self.connections.values())
            if conn.session_id == session_id and (predicate is None or predicate(conn))
        ]

    def unbind(self, connection_id: str) -> Optional[Connection]:
        connection = self.connections.get(connection_id)
        if connection:
            connection.role = None
            connection.session_id = None
            connection.participant_id = None
            connection.host_principal_id = None
        return connection

    def unregister(self, connection_id: str) -> Optional[Connection]:
        return self.connections.pop(connection_id, None)

    async def send(self, connection: Connection, message: dict) -> bool:
        try:
            await connection.websocket.send_json(message)
            return True
        except Exception as exc:
            self.logger.warning("Send failed connection=%s type=%s: %s", connection.id, message.get("type"), exc)
            return False

    async def send_to(self, connection_id: Optional[str], message: dict) -> bool:
        connection = self.connections.get(connection_id) if connection_id else None
        if not connection:
            return False
        return await self.send(connection, message)

    async def broadcast(
        self, session_id: int, message: dict, predicate: Optional[Callable[[Connection], bool]] = None
    ) -> int:
        delivered = 0
        for conn in self.for_each_in_session(session_id, predicate):
            if await self.send(conn, message):
                delivered += 1
        return delivered
