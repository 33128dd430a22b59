"""Helpers for reading and seeding store rows in tests."""

from datetime import datetime

from sqlalchemy import func, select

from campus_leasing.store import AuditLogEntry


def get_row(store, model, row_id):
    with store.session() as session:
        return session.get(model, row_id)


def mark_deleted(store, model, row_id, when=None):
    """Set a row's deletion timestamp directly, bypassing the audit trail."""
    with store.transaction() as session:
        session.get(model, row_id).mark_deleted(when)


def audit_entries(store):
    with store.session() as session:
        return list(
            session.scalars(select(AuditLogEntry).order_by(AuditLogEntry.timestamp))
        )


def audit_count(store):
    with store.session() as session:
        return session.scalar(select(func.count()).select_from(AuditLogEntry))


def at(day, hour=12):
    return datetime(2026, 3, day, hour, 0, 0)
