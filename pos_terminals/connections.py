"""Credential Store access for terminal connections."""
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.orm import Session

from pos_terminals.models import TerminalConnection, utcnow

logger = logging.getLogger(__name__)

MERCADOPAGO = "mercadopago"


def get_connection(db: Session, user_id: str, provider: str = MERCADOPAGO):
    return db.query(TerminalConnection).filter_by(user_id=user_id, provider=provider).first()


def save_connection(db: Session, user_id: str, provider: str, **fields) -> TerminalConnection:
    """Insert or update the single connection row for (user, provider)."""
    connection = get_connection(db, user_id, provider)
    if connection is None:
        connection = TerminalConnection(user_id=user_id, provider=provider)
        db.add(connection)

    for key, value in fields.items():
        setattr(connection, key, value)
    connection.updated_at = utcnow()

    db.commit()
    db.refresh(connection)
    logger.info(f"Saved {provider} connection for user {user_id}")
    return connection


def select_device(db: Session, user_id: str, device_id: str, device_name: str, provider: str = MERCADOPAGO) -> int:
    """Store the selected terminal; returns the number of rows updated."""
    updated = (
        db.query(TerminalConnection)
        .filter_by(user_id=user_id, provider=provider)
        .update(
            {
                TerminalConnection.selected_device_id: device_id,
                TerminalConnection.selected_device_name: device_name,
                TerminalConnection.updated_at: utcnow(),
            },
            synchronize_session=False,
        )
    )
    db.commit()
    return updated


def update_tokens(db: Session, connection: TerminalConnection, token_data: dict) -> TerminalConnection:
    connection.access_token = token_data["access_token"]
    connection.refresh_token = token_data.get("refresh_token") or connection.refresh_token
    connection.token_expires_at = expires_at_from(token_data.get("expires_in"))
    connection.updated_at = utcnow()
    db.commit()
    db.refresh(connection)
    return connection


def delete_connection(db: Session, user_id: str, provider: str = MERCADOPAGO) -> int:
    deleted = db.query(TerminalConnection).filter_by(user_id=user_id, provider=provider).delete()
    db.commit()
    return deleted


def expires_at_from(expires_in):
    if not expires_in:
        return None
    return utcnow() + timedelta(seconds=int(expires_in))


def is_expired(connection: TerminalConnection, now=None) -> bool:
    if connection.token_expires_at is None:
        return False
    expires_at = connection.token_expires_at
    # SQLite hands back naive datetimes
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at < (now or datetime.now(timezone.utc))


def sanitize(connection: TerminalConnection) -> dict:
    return {
        "id": connection.id,
        "provider": connection.provider,
        "status": connection.status,
        "selected_device_id": connection.selected_device_id,
        "selected_device_name": connection.selected_device_name,
        "connected_at": connection.created_at.isoformat() if connection.created_at else None,
        "live_mode": connection.live_mode,
    }
