from __future__ import annotations
from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, Float, String, Boolean, ForeignKey, DateTime, Text, text, func
from .authz import Base


class PokerTable(Base):
    __tablename__ = 'poker_tables'

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    small_blind: Mapped[float] = mapped_column(Float, nullable=False)
    big_blind: Mapped[float] = mapped_column(Float, nullable=False)
    minimum_buy_in: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    location: Mapped[Optional[str]] = mapped_column(String(255))
    food: Mapped[Optional[str]] = mapped_column(String(255))
    creator_id: Mapped[int] = mapped_column(ForeignKey('users.id'), nullable=False, index=True)
    # Nullable: a table may live outside any group.
    group_id: Mapped[Optional[int]] = mapped_column(ForeignKey('groups.id'), nullable=True, index=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text('1'), index=True)
    game_date: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    players = relationship('Player', back_populates='table', cascade='all, delete-orphan', order_by='Player.id')


class Player(Base):
    __tablename__ = 'players'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    table_id: Mapped[int] = mapped_column(ForeignKey('poker_tables.id', ondelete='CASCADE'), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(128), nullable=False, index=True)
    nickname: Mapped[Optional[str]] = mapped_column(String(128))
    chips: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_buy_in: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    show_me: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    payment_method: Mapped[Optional[str]] = mapped_column(String(64))
    payment_comment: Mapped[Optional[str]] = mapped_column(Text)

    table = relationship('PokerTable', back_populates='players')
    buy_ins = relationship('BuyIn', back_populates='player', cascade='all, delete-orphan', order_by='BuyIn.id')
    cash_outs = relationship('CashOut', back_populates='player', cascade='all, delete-orphan', order_by='CashOut.id')


class BuyIn(Base):
    __tablename__ = 'buy_ins'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    player_id: Mapped[int] = mapped_column(ForeignKey('players.id', ondelete='CASCADE'), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    player = relationship('Player', back_populates='buy_ins')


class CashOut(Base):
    __tablename__ = 'cash_outs'
    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    player_id: Mapped[int] = mapped_column(ForeignKey('players.id', ondelete='CASCADE'), nullable=False, index=True)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now())

    player = relationship('Player', back_populates='cash_outs')

__all__ = ['PokerTable', 'Player', 'BuyIn', 'CashOut']
