"""Admin support chat endpoints polled by the chat view."""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from apps.storefront.auth import get_current_admin
from apps.storefront.deps import get_db
from apps.storefront.models.admin import AdminUser
from apps.storefront.services import chat

router = APIRouter()


@router.get("/rooms")
def rooms(db: Session = Depends(get_db), _: AdminUser = Depends(get_current_admin)):
    return {"rooms": [chat.serialize_room(r) for r in chat.list_active_rooms(db)]}


@router.get("/messages/{room_id}")
def messages(room_id: int, db: Session = Depends(get_db), _: AdminUser = Depends(get_current_admin)):
    return {"messages": [chat.serialize_message(m) for m in chat.list_messages(db, room_id)]}


@router.post("/messages/{room_id}")
def send_message(
    room_id: int,
    data: chat.NewMessage,
    db: Session = Depends(get_db),
    _: AdminUser = Depends(get_current_admin),
):
    msg = chat.create_message(db, room_id, data)
    return {"message": chat.serialize_message(msg)}
