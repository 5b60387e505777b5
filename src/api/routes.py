"""HTTP routes. Thin: parse, call the service, convert the result."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from src.api.dependencies import CurrentUser, Scheduler, Service, verify_cron_secret
from src.api.models import (
    CreateGameRequest,
    CronResponse,
    ErrorResponse,
    GameDetailResponse,
    GameResponse,
    MyGamesResponse,
    PlayerStatsResponse,
    ProposeTrickRequest,
    ResolveRoundRequest,
    RespondRequest,
    ResponseVideoRequest,
    RoundResponse,
)

_errors = {
    400: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}

games_router = APIRouter(prefix="/api/games", tags=["games"], responses=_errors)
cron_router = APIRouter(
    prefix="/api/cron", tags=["cron"], dependencies=[Depends(verify_cron_secret)]
)


# --- GAMES ---
@games_router.post(
    "/create", response_model=GameResponse, status_code=status.HTTP_201_CREATED
)
def create_game(
    request: CreateGameRequest, user: CurrentUser, service: Service
) -> GameResponse:
    game = service.create_game(challenger_id=user, opponent_id=request.opponent_id)
    return GameResponse.from_model(game)


@games_router.get("/my-games", response_model=MyGamesResponse)
def my_games(user: CurrentUser, service: Service) -> MyGamesResponse:
    return MyGamesResponse.from_player_games(service.my_games(user))


@games_router.get("/stats/me", response_model=PlayerStatsResponse)
def my_stats(user: CurrentUser, service: Service) -> PlayerStatsResponse:
    return PlayerStatsResponse.from_stats(user, service.player_stats(user))


@games_router.get("/{game_id}", response_model=GameDetailResponse)
def get_game(game_id: UUID, user: CurrentUser, service: Service) -> GameDetailResponse:
    game, rounds = service.get_game(game_id, user)
    return GameDetailResponse(
        game=GameResponse.from_model(game),
        rounds=[RoundResponse.from_model(r) for r in rounds],
    )


@games_router.post("/{game_id}/respond", response_model=GameResponse)
def respond(
    game_id: UUID, request: RespondRequest, user: CurrentUser, service: Service
) -> GameResponse:
    game = service.respond_to_challenge(game_id, user, request.accept)
    return GameResponse.from_model(game)


@games_router.post(
    "/{game_id}/rounds",
    response_model=RoundResponse,
    status_code=status.HTTP_201_CREATED,
)
def propose_trick(
    game_id: UUID, request: ProposeTrickRequest, user: CurrentUser, service: Service
) -> RoundResponse:
    round_ = service.propose_trick(game_id, user, request.trick, request.video_url)
    return RoundResponse.from_model(round_)


@games_router.post("/{game_id}/rounds/{round_id}/video", response_model=RoundResponse)
def submit_response_video(
    game_id: UUID,
    round_id: UUID,
    request: ResponseVideoRequest,
    user: CurrentUser,
    service: Service,
) -> RoundResponse:
    round_ = service.submit_response_video(game_id, round_id, user, request.video_url)
    return RoundResponse.from_model(round_)


@games_router.post("/{game_id}/rounds/{round_id}/resolve", response_model=GameResponse)
def resolve_round(
    game_id: UUID,
    round_id: UUID,
    request: ResolveRoundRequest,
    user: CurrentUser,
    service: Service,
) -> GameResponse:
    game = service.resolve_round(game_id, round_id, user, request.outcome)
    return GameResponse.from_model(game)


@games_router.post(
    "/{game_id}/rounds/{round_id}/dispute",
    response_model=RoundResponse,
    status_code=status.HTTP_201_CREATED,
)
def file_dispute(
    game_id: UUID, round_id: UUID, user: CurrentUser, service: Service
) -> RoundResponse:
    return RoundResponse.from_model(service.file_dispute(game_id, round_id, user))


@games_router.post(
    "/{game_id}/rounds/{round_id}/dispute/resolve", response_model=GameResponse
)
def resolve_dispute(
    game_id: UUID,
    round_id: UUID,
    request: ResolveRoundRequest,
    user: CurrentUser,
    service: Service,
) -> GameResponse:
    game = service.resolve_dispute(game_id, round_id, user, request.outcome)
    return GameResponse.from_model(game)


@games_router.post("/{game_id}/forfeit", response_model=GameResponse)
def forfeit(game_id: UUID, user: CurrentUser, service: Service) -> GameResponse:
    return GameResponse.from_model(service.forfeit_game(game_id, user))


# --- CRON TRIGGERS ---
@cron_router.post("/forfeit-expired", response_model=CronResponse)
def forfeit_expired(scheduler: Scheduler) -> CronResponse:
    return CronResponse(job="forfeit-expired", count=scheduler.forfeit_expired_games())


@cron_router.post("/deadline-warnings", response_model=CronResponse)
def deadline_warnings(scheduler: Scheduler) -> CronResponse:
    return CronResponse(
        job="deadline-warnings", count=scheduler.notify_deadline_warnings()
    )


@cron_router.post("/forfeit-stalled", response_model=CronResponse)
def forfeit_stalled(scheduler: Scheduler) -> CronResponse:
    return CronResponse(job="forfeit-stalled", count=scheduler.forfeit_stalled_games())
