"""Support chat: active rooms and the per-room message log."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from apps.storefront.errors import NotFoundError, StorageError
from apps.storefront.models.chat import ChatRoom, ChatMessage


class NewMessage(BaseModel):
    message: str = Field(min_length=1, max_length=4000)
    sender_username: str = Field(min_length=1, max_length=128)
    sender_email: EmailStr | None = None
    is_staff: bool = True


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def serialize_message(m: ChatMessage) -> dict:
    return {
        "id": m.id,
        "room_id": m.room_id,
        "sender_username": m.sender_username,
        "sender_email": m.sender_email,
        "message": m.message,
        "is_staff": bool(m.is_staff),
        "message_type": m.message_type,
        "created_at": _iso(m.created_at),
    }


def serialize_room(r: ChatRoom) -> dict:
    return {
        "id": r.id,
        "name": r.name,
        "type": r.type,
        "is_active": bool(r.is_active),
        "created_at": _iso(r.created_at),
        "chat_participants": [
            {
                "id": p.id,
                "username": p.username,
                "email": p.email,
                "is_staff": bool(p.is_staff),
                "is_online": bool(p.is_online),
                "last_seen": _iso(p.last_seen),
            }
            for p in r.participants
        ],
    }


def list_active_rooms(db: Session) -> list[ChatRoom]:
    q = (
        select(ChatRoom)
        .where(ChatRoom.is_active.is_(True))
        .options(selectinload(ChatRoom.participants))
        .order_by(ChatRoom.created_at.desc(), ChatRoom.id.desc())
    )
    return list(db.execute(q).scalars().all())


def _require_room(db: Session, room_id: int) -> ChatRoom:
    room = db.get(ChatRoom, room_id)
    if not room:
        raise NotFoundError("room_not_found", "Chat room not found")
    return room


def list_messages(db: Session, room_id: int) -> list[ChatMessage]:
    _require_room(db, room_id)
    q = (
        select(ChatMessage)
        .where(ChatMessage.room_id == room_id)
        .order_by(ChatMessage.created_at.asc(), ChatMessage.id.asc())
    )
    return list(db.execute(q).scalars().all())


def create_message(db: Session, room_id: int, data: NewMessage) -> ChatMessage:
    _require_room(db, room_id)
    msg = ChatMessage(
        room_id=room_id,
        sender_username=data.sender_username,
        sender_email=str(data.sender_email) if data.sender_email else None,
        message=data.message,
        is_staff=data.is_staff,
        message_type="text",
        created_at=datetime.utcnow(),
    )
    db.add(msg)
    try:
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        raise StorageError("message_create_failed", "Failed to send message") from e
    db.refresh(msg)
    return msg
