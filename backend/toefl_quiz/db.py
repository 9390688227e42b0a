from __future__ import annotations
from sqlalchemy import create_engine, event, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./app.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}
# In-memory SQLite lives per connection, so every session must share one
_pool_args = {"poolclass": StaticPool} if DATABASE_URL in ("sqlite://", "sqlite:///:memory:") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True, **_pool_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:
	# SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection
	module = type(dbapi_connection).__module__
	if module.startswith("sqlite3"):
		cursor = dbapi_connection.cursor()
		cursor.execute("PRAGMA foreign_keys=ON")
		cursor.close()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Best-effort lightweight migrations for development (SQLite-friendly)
def ensure_schema() -> None:
	try:
		inspector = inspect(engine)
		tables = set(inspector.get_table_names())
	except Exception:
		return
	if "auth_users" in tables:
		cols = {c["name"] for c in inspector.get_columns("auth_users")}
		with engine.begin() as conn:
			if "email" not in cols:
				conn.exec_driver_sql("ALTER TABLE auth_users ADD COLUMN email VARCHAR(256)")
			if "subscription_status" not in cols:
				conn.exec_driver_sql("ALTER TABLE auth_users ADD COLUMN subscription_status VARCHAR(16) DEFAULT 'free' NOT NULL")
			if "subscription_end" not in cols:
				conn.exec_driver_sql("ALTER TABLE auth_users ADD COLUMN subscription_end DATETIME")
			if "daily_quizzes_count" not in cols:
				conn.exec_driver_sql("ALTER TABLE auth_users ADD COLUMN daily_quizzes_count INTEGER DEFAULT 0 NOT NULL")
			if "last_quiz_date" not in cols:
				conn.exec_driver_sql("ALTER TABLE auth_users ADD COLUMN last_quiz_date DATE")
			if "streak_days" not in cols:
				conn.exec_driver_sql("ALTER TABLE auth_users ADD COLUMN streak_days INTEGER DEFAULT 0 NOT NULL")
			if "last_activity_date" not in cols:
				conn.exec_driver_sql("ALTER TABLE auth_users ADD COLUMN last_activity_date DATE")
