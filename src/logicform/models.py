from __future__ import annotations

from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class FormModel(Base):
    __tablename__ = "forms"

    id = Column(String, primary_key=True)
    public_id = Column(String, unique=True, index=True)
    name = Column(String, nullable=False)
    description = Column(Text, default="")
    status = Column(String, default="inactive")
    # field definitions and logic rules are kept as the JSON documents the
    # editor sends, in form order and rule order
    fields_json = Column(Text, default="[]")
    logic_json = Column(Text, default="[]")
    settings_json = Column(Text, default="{}")
    webhook_url = Column(Text, default="")
    webhook_on_submit = Column(Boolean, default=False)
    created_at = Column(DateTime)
    updated_at = Column(DateTime)


class SubmissionModel(Base):
    __tablename__ = "submissions"

    id = Column(String, primary_key=True)
    form_id = Column(String, index=True)
    data_json = Column(Text)
    fired_rules_json = Column(Text, default="[]")
    created_at = Column(DateTime)
