"""Support chat rooms, participants and messages."""
from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Boolean, ForeignKey, Text, Index
from sqlalchemy.orm import relationship

from apps.storefront.database import Base


class ChatRoom(Base):
    __tablename__ = "chat_rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    type = Column(String(32), nullable=False, default="support")
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    participants = relationship("ChatParticipant", back_populates="room", order_by="ChatParticipant.id")
    messages = relationship("ChatMessage", back_populates="room")


class ChatParticipant(Base):
    __tablename__ = "chat_participants"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("chat_rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    username = Column(String(128), nullable=False)
    email = Column(String(255), nullable=True)
    is_staff = Column(Boolean, default=False, nullable=False)
    is_online = Column(Boolean, default=False, nullable=False)
    last_seen = Column(DateTime, nullable=True)

    room = relationship("ChatRoom", back_populates="participants")


class ChatMessage(Base):
    __tablename__ = "chat_messages"

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("chat_rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    sender_username = Column(String(128), nullable=False)
    sender_email = Column(String(255), nullable=True)
    message = Column(Text, nullable=False)
    is_staff = Column(Boolean, default=False, nullable=False)
    message_type = Column(String(16), nullable=False, default="text")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    room = relationship("ChatRoom", back_populates="messages")

    __table_args__ = (Index("ix_chat_messages_room_created", "room_id", "created_at"),)
