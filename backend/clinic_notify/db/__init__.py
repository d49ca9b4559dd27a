from clinic_notify.db.base import Base
from clinic_notify.db.session import get_db, engine, SessionLocal
from clinic_notify.db.tables import ALL_TABLE_NAMES, EXTERNAL_TABLE_NAMES, OWNED_TABLE_NAMES

__all__ = ["get_db", "engine", "SessionLocal", "Base", "ALL_TABLE_NAMES", "EXTERNAL_TABLE_NAMES", "OWNED_TABLE_NAMES"]
