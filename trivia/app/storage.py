"""Storage backends for player records."""
from datetime import datetime, timezone
from typing import Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import PersistenceFailure
from .models import PlayerState


class InMemoryBackend:
    """Dict-backed store, used by tests and embedded controllers."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.payloads: Dict[str, str] = dict(initial or {})

    def get(self, player_id: str) -> Optional[str]:
        return self.payloads.get(player_id)

    def put(self, player_id: str, payload: str, schema_version: int) -> None:
        self.payloads[player_id] = payload


class SqlAlchemyBackend:
    """Stores payloads in the player_state table, one session per operation."""

    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def get(self, player_id: str) -> Optional[str]:
        db = self.session_factory()
        try:
            row = db.query(PlayerState).filter(PlayerState.player_id == player_id).first()
            return row.payload_json if row else None
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"could not read player {player_id}") from exc
        finally:
            db.close()

    def put(self, player_id: str, payload: str, schema_version: int) -> None:
        db = self.session_factory()
        try:
            row = db.query(PlayerState).filter(PlayerState.player_id == player_id).first()
            now_utc = datetime.now(timezone.utc).isoformat()
            if row:
                row.payload_json = payload
                row.schema_version = schema_version
                row.updated_ts_utc = now_utc
            else:
                db.add(PlayerState(
                    player_id=player_id,
                    schema_version=schema_version,
                    payload_json=payload,
                    updated_ts_utc=now_utc,
                ))
            db.commit()
        except SQLAlchemyError as exc:
            db.rollback()
            raise PersistenceFailure(f"could not write player {player_id}") from exc
        finally:
            db.close()
