"""Database table definitions for channels, blocks, and their connections"""

from typing import Optional

from sqlalchemy import Column, ForeignKey, Index, Integer, String, Text
from sqlmodel import Field, SQLModel


class ChannelRow(SQLModel, table=True):
    """A named collection of blocks"""
    __tablename__ = "channels"
    id: str = Field(..., sa_column=Column(String(36), primary_key=True))
    title: str = Field(..., sa_column=Column(Text, nullable=False))
    description: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    created_at: str = Field(..., sa_column=Column(String(32), nullable=False, index=True),
                            description="ISO-8601 UTC text; sorts lexically")
    updated_at: str = Field(..., sa_column=Column(String(32), nullable=False))


class BlockRow(SQLModel, table=True):
    """A unit of content stored as its type tag plus the JSON of the content union"""
    __tablename__ = "blocks"
    id: str = Field(..., sa_column=Column(String(36), primary_key=True))
    content_type: str = Field(..., sa_column=Column(String(16), nullable=False))
    content_json: str = Field(..., sa_column=Column(Text, nullable=False))
    created_at: str = Field(..., sa_column=Column(String(32), nullable=False))
    updated_at: str = Field(..., sa_column=Column(String(32), nullable=False))
    source_url: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    source_title: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    creator: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    original_date: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))
    notes: Optional[str] = Field(default=None, sa_column=Column(Text, nullable=True))


class ConnectionRow(SQLModel, table=True):
    """Many-to-many link between blocks and channels with an ordering position"""
    __tablename__ = "connections"
    __table_args__ = (Index("ix_connections_channel_position", "channel_id", "position"),)
    block_id: str = Field(..., sa_column=Column(
        String(36), ForeignKey("blocks.id", ondelete="CASCADE"), primary_key=True))
    channel_id: str = Field(..., sa_column=Column(
        String(36), ForeignKey("channels.id", ondelete="CASCADE"), primary_key=True))
    position: int = Field(..., sa_column=Column(Integer, nullable=False))
    connected_at: str = Field(..., sa_column=Column(String(32), nullable=False))


REQUIRED_TABLES = (ChannelRow.__tablename__, BlockRow.__tablename__, ConnectionRow.__tablename__)
