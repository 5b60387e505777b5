"""FastAPI dependencies: caller identity, cron authorisation and service wiring."""

import hmac
from typing import Annotated, Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from src.core.config import Settings, get_settings
from src.db.database import get_db
from src.db.sql_repository import SQLGameRepository
from src.notifications.notifier import LoggingNotifier, Notifier
from src.services.scheduler import DeadlineScheduler
from src.services.skate_service import SkateService
from src.skate.rules import TurnRules

_notifier: Notifier = LoggingNotifier()


def get_notifier() -> Notifier:
    return _notifier


def get_current_user(
    x_user_id: Annotated[Optional[str], Header()] = None,
) -> str:
    """Authentication happens upstream; the gateway forwards the verified user ID."""
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required"
        )
    return x_user_id.strip()


def get_service(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
) -> SkateService:
    return SkateService(
        SQLGameRepository(db),
        notifier,
        rules=TurnRules.from_settings(settings),
        my_games_limit=settings.my_games_limit,
    )


def get_scheduler(
    db: Annotated[Session, Depends(get_db)],
    settings: Annotated[Settings, Depends(get_settings)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
) -> DeadlineScheduler:
    return DeadlineScheduler(
        SQLGameRepository(db), notifier, rules=TurnRules.from_settings(settings)
    )


def verify_cron_secret(
    settings: Annotated[Settings, Depends(get_settings)],
    authorization: Annotated[Optional[str], Header()] = None,
) -> None:
    """Cron endpoints require `Authorization: Bearer <CRON_SECRET>`."""
    if settings.cron_secret is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Cron endpoints are not configured",
        )
    expected = f"Bearer {settings.cron_secret}"
    if authorization is None or not hmac.compare_digest(
        authorization.encode(), expected.encode()
    ):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


CurrentUser = Annotated[str, Depends(get_current_user)]
Service = Annotated[SkateService, Depends(get_service)]
Scheduler = Annotated[DeadlineScheduler, Depends(get_scheduler)]
