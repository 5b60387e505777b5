"""A round: the setter films a trick, the responder films an attempt, the setter judges."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Self
from uuid import UUID, uuid4

from src.core.exceptions import InvalidStateError
from src.core.models import RoundModel
from src.core.shared_types import RoundOutcome


@dataclass
class Round:
    id: UUID
    game_id: UUID
    setter_id: str
    trick: str
    setter_video_url: str
    responder_video_url: Optional[str]
    outcome: RoundOutcome
    created_at: datetime
    resolved_at: Optional[datetime] = None
    disputed_by: Optional[str] = None
    dispute_outcome: Optional[RoundOutcome] = None
    disputed_at: Optional[datetime] = None
    dispute_resolved_at: Optional[datetime] = None

    @classmethod
    def propose(
        cls, game_id: UUID, setter_id: str, trick: str, video_url: str, now: datetime
    ) -> Self:
        return cls(
            id=uuid4(),
            game_id=game_id,
            setter_id=setter_id,
            trick=trick,
            setter_video_url=video_url,
            responder_video_url=None,
            outcome=RoundOutcome.PENDING,
            created_at=now,
        )

    @classmethod
    def from_model(cls, model: RoundModel) -> Self:
        known = {outcome.value for outcome in RoundOutcome}
        if model.outcome not in known:
            raise InvalidStateError(f"Invalid round outcome: {model.outcome!r}")
        if model.dispute_outcome is not None and model.dispute_outcome not in known:
            raise InvalidStateError(f"Invalid dispute outcome: {model.dispute_outcome!r}")
        return cls(
            id=model.id,
            game_id=model.game_id,
            setter_id=model.setter_id,
            trick=model.trick,
            setter_video_url=model.setter_video_url,
            responder_video_url=model.responder_video_url,
            outcome=RoundOutcome(model.outcome),
            created_at=model.created_at,
            resolved_at=model.resolved_at,
            disputed_by=model.disputed_by,
            dispute_outcome=(
                RoundOutcome(model.dispute_outcome) if model.dispute_outcome else None
            ),
            disputed_at=model.disputed_at,
            dispute_resolved_at=model.dispute_resolved_at,
        )

    def to_model(self) -> RoundModel:
        return RoundModel(
            id=self.id,
            game_id=self.game_id,
            setter_id=self.setter_id,
            trick=self.trick,
            setter_video_url=self.setter_video_url,
            responder_video_url=self.responder_video_url,
            outcome=self.outcome.value,
            created_at=self.created_at,
            resolved_at=self.resolved_at,
            disputed_by=self.disputed_by,
            dispute_outcome=self.dispute_outcome.value if self.dispute_outcome else None,
            disputed_at=self.disputed_at,
            dispute_resolved_at=self.dispute_resolved_at,
        )

    @property
    def is_open(self) -> bool:
        return self.outcome == RoundOutcome.PENDING

    @property
    def has_both_videos(self) -> bool:
        return bool(self.setter_video_url) and bool(self.responder_video_url)

    @property
    def is_disputed(self) -> bool:
        return self.disputed_by is not None

    @property
    def has_pending_dispute(self) -> bool:
        return self.is_disputed and self.dispute_outcome is None

    def attach_response(self, video_url: str) -> None:
        if not self.is_open:
            raise InvalidStateError("Round has already been resolved")
        if self.responder_video_url is not None:
            raise InvalidStateError("Round is not awaiting a reply")
        self.responder_video_url = video_url

    def open_dispute(self, disputed_by: str, now: datetime) -> None:
        """The responder contests a 'missed' ruling. One dispute per round."""
        if self.outcome != RoundOutcome.MISSED:
            raise InvalidStateError("Can only dispute a missed ruling")
        if self.is_disputed:
            raise InvalidStateError("This ruling has already been disputed")
        self.disputed_by = disputed_by
        self.disputed_at = now

    def settle_dispute(self, final_outcome: RoundOutcome, now: datetime) -> None:
        """Final word on a disputed ruling. 'landed' overturns it, 'missed' lets it stand."""
        if not self.has_pending_dispute:
            raise InvalidStateError("Round has no dispute awaiting resolution")
        if final_outcome == RoundOutcome.PENDING:
            raise InvalidStateError("A dispute can only be resolved as landed or missed")
        self.dispute_outcome = final_outcome
        self.dispute_resolved_at = now
        self.outcome = final_outcome

    def resolve(self, outcome: RoundOutcome, now: datetime) -> None:
        if not self.is_open:
            raise InvalidStateError("Round has already been resolved")
        if outcome == RoundOutcome.PENDING:
            raise InvalidStateError("A round can only be resolved as landed or missed")
        if not self.has_both_videos:
            raise InvalidStateError("Both videos must be uploaded before resolving")
        self.outcome = outcome
        self.resolved_at = now
