"""
Plugin activity log on a relational store (SQLAlchemy). Records installs, updates, activations,
deactivations and deletions; answers the plugin_logs tool's filtered queries and summaries.
"""

import json
import os
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional

from loguru import logger
from sqlalchemy import Column, DateTime, Integer, String, Text, create_engine, func
from sqlalchemy.engine.base import Engine
from sqlalchemy.orm import Session as SQLAlchemySession
from sqlalchemy.orm import declarative_base, scoped_session, sessionmaker
from sqlalchemy.pool import StaticPool

Base = declarative_base()

VALID_ACTIONS = ("installed", "updated", "activated", "deactivated", "deleted")
_ORDER_COLUMNS = ("date_time", "plugin_name", "action", "id")


class PluginLogModel(Base):
    __tablename__ = "mpai_plugin_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    plugin_slug = Column(String(255), index=True, nullable=False)
    plugin_name = Column(String(255), index=True, nullable=False)
    plugin_version = Column(String(50), default="")
    plugin_prev_version = Column(String(50), default="")
    action = Column(String(20), index=True, nullable=False)
    user_id = Column(Integer, default=0)
    user_login = Column(String(60), default="")
    date_time = Column(DateTime, index=True, nullable=False, default=datetime.now)
    context = Column(Text, default="")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "plugin_slug": self.plugin_slug,
            "plugin_name": self.plugin_name,
            "plugin_version": self.plugin_version or "",
            "plugin_prev_version": self.plugin_prev_version or "",
            "action": self.action,
            "user_id": self.user_id or 0,
            "user_login": self.user_login or "",
            "date_time": self.date_time,
            "context": json.loads(self.context) if self.context else {},
        }


class SqlPluginLogStore:
    def __init__(self, database_url: str, echo: bool = False):
        self.database_url = database_url
        self.engine: Engine = self._create_engine(database_url, echo)
        self._session_factory = scoped_session(sessionmaker(bind=self.engine))
        Base.metadata.create_all(self.engine)
        logger.debug("Plugin log store ready at {}", database_url)

    @staticmethod
    def _create_engine(database_url: str, echo: bool) -> Engine:
        if not database_url:
            raise RuntimeError("Plugin log database URL is not set. Set plugin_log_database_url or MPAI_PLUGIN_LOG_DB.")
        if not database_url.startswith("sqlite"):
            return create_engine(database_url, echo=echo)
        path = database_url.split("sqlite:///", 1)[1] if "sqlite:///" in database_url else ""
        if not path or path == ":memory:":
            return create_engine(
                database_url, echo=echo, connect_args={"check_same_thread": False}, poolclass=StaticPool
            )
        parent = os.path.dirname(os.path.abspath(path))
        os.makedirs(parent, exist_ok=True)
        return create_engine(database_url, echo=echo, connect_args={"check_same_thread": False})

    def get_session(self) -> SQLAlchemySession:
        return self._session_factory()

    def close_session(self) -> None:
        self._session_factory.remove()

    def log_action(
        self,
        plugin_slug: str,
        plugin_name: str,
        action: str,
        plugin_version: str = "",
        plugin_prev_version: str = "",
        user_id: int = 0,
        user_login: str = "",
        context: Optional[Dict[str, Any]] = None,
        date_time: Optional[datetime] = None,
    ) -> int:
        """Insert one log entry; returns its id. Raises ValueError for an unknown action."""
        if action not in VALID_ACTIONS:
            raise ValueError(f"Invalid plugin log action: {action}")
        session = self.get_session()
        try:
            row = PluginLogModel(
                plugin_slug=plugin_slug,
                plugin_name=plugin_name,
                plugin_version=plugin_version or "",
                plugin_prev_version=plugin_prev_version or "",
                action=action,
                user_id=user_id or 0,
                user_login=user_login or "",
                date_time=date_time or datetime.now(),
                context=json.dumps(context) if context else "",
            )
            session.add(row)
            session.commit()
            return row.id
        except Exception:
            session.rollback()
            raise
        finally:
            self.close_session()

    def _filtered(self, session: SQLAlchemySession, plugin_name: str = "", plugin_slug: str = "", action: str = "",
                  date_from: Optional[datetime] = None, date_to: Optional[datetime] = None):
        query = session.query(PluginLogModel)
        if plugin_name:
            query = query.filter(PluginLogModel.plugin_name.ilike(f"%{plugin_name}%"))
        if plugin_slug:
            query = query.filter(PluginLogModel.plugin_slug == plugin_slug)
        if action:
            query = query.filter(PluginLogModel.action == action)
        if date_from is not None:
            query = query.filter(PluginLogModel.date_time >= date_from)
        if date_to is not None:
            query = query.filter(PluginLogModel.date_time <= date_to)
        return query

    def get_logs(
        self,
        plugin_name: str = "",
        plugin_slug: str = "",
        action: str = "",
        date_from: Optional[datetime] = None,
        date_to: Optional[datetime] = None,
        orderby: str = "date_time",
        order: str = "DESC",
        limit: int = 25,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        column = getattr(PluginLogModel, orderby if orderby in _ORDER_COLUMNS else "date_time")
        ordering = column.asc() if str(order).upper() == "ASC" else column.desc()
        session = self.get_session()
        try:
            query = self._filtered(session, plugin_name, plugin_slug, action, date_from, date_to)
            query = query.order_by(ordering, PluginLogModel.id.desc())
            if limit:
                query = query.limit(int(limit)).offset(int(offset or 0))
            return [row.to_dict() for row in query.all()]
        finally:
            self.close_session()

    def count_logs(self, **filters: Any) -> int:
        session = self.get_session()
        try:
            return self._filtered(session, **filters).count()
        finally:
            self.close_session()

    def get_activity_summary(self, days: int = 30) -> Dict[str, Any]:
        """Counts by action, per-day counts, most active plugins (max 25) and the 10 latest entries."""
        since = datetime.now() - timedelta(days=days)
        session = self.get_session()
        try:
            action_counts = [
                {"action": action, "count": count}
                for action, count in session.query(PluginLogModel.action, func.count(PluginLogModel.id))
                .filter(PluginLogModel.date_time >= since)
                .group_by(PluginLogModel.action)
                .all()
            ]
            day = func.date(PluginLogModel.date_time)
            daily_counts = [
                {"date": str(d), "count": count}
                for d, count in session.query(day, func.count(PluginLogModel.id))
                .filter(PluginLogModel.date_time >= since)
                .group_by(day)
                .order_by(day)
                .all()
            ]
            most_active = []
            grouped = (
                session.query(PluginLogModel.plugin_name, func.count(PluginLogModel.id).label("count"),
                              func.max(PluginLogModel.date_time).label("last_date"))
                .filter(PluginLogModel.date_time >= since)
                .group_by(PluginLogModel.plugin_name)
                .order_by(func.count(PluginLogModel.id).desc())
                .limit(25)
                .all()
            )
            for name, count, last_date in grouped:
                last = (
                    session.query(PluginLogModel.action)
                    .filter(PluginLogModel.plugin_name == name, PluginLogModel.date_time >= since)
                    .order_by(PluginLogModel.date_time.desc(), PluginLogModel.id.desc())
                    .first()
                )
                most_active.append({
                    "plugin_name": name,
                    "count": count,
                    "last_action": last[0] if last else "",
                    "last_date": last_date,
                })
            recent = (
                session.query(PluginLogModel)
                .filter(PluginLogModel.date_time >= since)
                .order_by(PluginLogModel.date_time.desc(), PluginLogModel.id.desc())
                .limit(10)
                .all()
            )
            return {
                "action_counts": action_counts,
                "daily_counts": daily_counts,
                "most_active_plugins": most_active,
                "recent_activity": [row.to_dict() for row in recent],
            }
        finally:
            self.close_session()

    def prune(self, retention_days: int) -> int:
        """Delete entries older than retention_days. 0 disables pruning. Returns rows deleted."""
        if not retention_days or retention_days <= 0:
            return 0
        cutoff = datetime.now() - timedelta(days=retention_days)
        session = self.get_session()
        try:
            deleted = session.query(PluginLogModel).filter(PluginLogModel.date_time < cutoff).delete(synchronize_session=False)
            session.commit()
            if deleted:
                logger.info("Pruned {} plugin log entries older than {} days", deleted, retention_days)
            return deleted
        except Exception:
            session.rollback()
            raise
        finally:
            self.close_session()
