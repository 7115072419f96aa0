import json
import logging
import threading
import uuid
from contextlib import contextmanager

from sqlalchemy import Column, String, Text, create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from config import DEFAULT_DATABASE_URL
from errors import ConfigurationError, ProfileNotFoundError
from models import PROFILE_FIELDS

logger = logging.getLogger(__name__)

CLIENTS_KEY = "appd_automator_clients"
SELECTED_KEY = "appd_automator_selected"

Base = declarative_base()


class KeyValue(Base):
    __tablename__ = "kv_store"
    key = Column(String, primary_key=True)
    value = Column(Text)  # JSON blob


engine = None
SessionLocal = sessionmaker()

# every mutation rewrites the whole blob
_write_lock = threading.Lock()


def init_db(url=DEFAULT_DATABASE_URL):
    global engine
    connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
    if engine is not None:
        engine.dispose()
    engine = create_engine(url, connect_args=connect_args)
    SessionLocal.configure(bind=engine)
    Base.metadata.create_all(bind=engine)


def _read(sess, key, default):
    row = sess.get(KeyValue, key)
    if row is None or row.value is None:
        return default
    try:
        return json.loads(row.value)
    except ValueError:
        logger.warning("Discarding unreadable value stored under %s", key)
        return default


def _write(sess, key, value):
    row = sess.get(KeyValue, key)
    if row is None:
        row = KeyValue(key=key)
        sess.add(row)
    row.value = json.dumps(value)


def _find(clients, client_id):
    for c in clients:
        if c.get("id") == client_id:
            return c
    raise ProfileNotFoundError(f"Client {client_id} not found")


def _require_identity(client):
    if not str(client.get("name") or "").strip() or not str(client.get("controllerUrl") or "").strip():
        raise ConfigurationError("Client name and controller URL are required.")


@contextmanager
def _mutation():
    """Serialized read-modify-write session over the profile blob."""
    with _write_lock:
        sess = SessionLocal()
        try:
            yield sess
            sess.commit()
        except Exception:
            sess.rollback()
            raise
        finally:
            sess.close()


def list_clients():
    sess = SessionLocal()
    try:
        return _read(sess, CLIENTS_KEY, [])
    finally:
        sess.close()


def get_client(client_id):
    return _find(list_clients(), client_id)


def add_client(fields):
    client = {"id": str(uuid.uuid4())}
    for name in PROFILE_FIELDS:
        client[name] = fields.get(name) or ""
    _require_identity(client)

    with _mutation() as sess:
        clients = _read(sess, CLIENTS_KEY, [])
        clients.append(client)
        _write(sess, CLIENTS_KEY, clients)
        if not _read(sess, SELECTED_KEY, None):
            _write(sess, SELECTED_KEY, client["id"])
    logger.info("Added client %s (%s)", client["name"], client["id"])
    return client


def update_client(client_id, fields):
    with _mutation() as sess:
        clients = _read(sess, CLIENTS_KEY, [])
        client = _find(clients, client_id)
        merged = dict(client)
        merged.update({k: v for k, v in fields.items() if k in PROFILE_FIELDS and v is not None})
        _require_identity(merged)
        client.update(merged)
        _write(sess, CLIENTS_KEY, clients)
    return client


def delete_client(client_id):
    """Remove a profile and return the id that is selected afterwards."""
    with _mutation() as sess:
        clients = _read(sess, CLIENTS_KEY, [])
        _find(clients, client_id)
        remaining = [c for c in clients if c.get("id") != client_id]
        _write(sess, CLIENTS_KEY, remaining)
        selected = _read(sess, SELECTED_KEY, None)
        if selected == client_id:
            selected = remaining[0]["id"] if remaining else None
            _write(sess, SELECTED_KEY, selected)
    logger.info("Deleted client %s", client_id)
    return selected


def select_client(client_id):
    with _mutation() as sess:
        _find(_read(sess, CLIENTS_KEY, []), client_id)
        _write(sess, SELECTED_KEY, client_id)
    return client_id


def get_selected_client_id():
    sess = SessionLocal()
    try:
        clients = _read(sess, CLIENTS_KEY, [])
        selected = _read(sess, SELECTED_KEY, None)
    finally:
        sess.close()
    if any(c.get("id") == selected for c in clients):
        return selected
    return clients[0]["id"] if clients else None
