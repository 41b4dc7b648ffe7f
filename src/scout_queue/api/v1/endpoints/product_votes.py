# src/scout_queue/api/v1/endpoints/product_votes.py
"""Product vote endpoints: voting, funding queue, bounty and investigations.

Handlers are plain ``def`` so FastAPI runs them in its threadpool; the
services block on the database and on retry backoff.
"""

from fastapi import APIRouter, Query

from scout_queue.schemas.common import ErrorResponse
from scout_queue.schemas.product_vote import (
    ContributionCreate,
    ContributionResponse,
    InvestigationOut,
    InvestigationsResponse,
    LeaderboardEntryOut,
    LeaderboardResponse,
    ProductInfoOut,
    QueueResponse,
    RecordOut,
    StatusResponse,
    TrendingResponse,
    VoteCreate,
    VoteResponse,
)
from scout_queue.services.bounty import BountyService
from scout_queue.services.projector import (
    FILTER_MOST_VOTED,
    Investigation,
    ProjectorService,
    RecordView,
)
from scout_queue.services.voting import ProductInfo, VotingService

from ..dependencies import (
    FingerprintHeader,
    IdentityDep,
    SessionDep,
    TokenSubjectDep,
    resolve_identity,
)

router = APIRouter(
    prefix="/product-votes",
    tags=["product-votes"],
    responses={
        400: {"model": ErrorResponse, "description": "Invalid or missing input"},
        500: {"model": ErrorResponse, "description": "Storage unavailable"},
        503: {"model": ErrorResponse, "description": "Too many concurrent updates"},
    },
)


def _record_out(view: RecordView) -> RecordOut:
    return RecordOut(
        barcode=view.barcode,
        product_name=view.product_name,
        brand=view.brand,
        image_url=view.image_url,
        total_votes=view.total_votes,
        total_weighted_votes=view.total_weighted_votes,
        unique_voters=view.unique_voters,
        total_contributors=view.total_contributors,
        funding_progress=view.funding_progress,
        funding_threshold=view.funding_threshold,
        status=view.status,
        scans_last_24h=view.scans_last_24h,
        velocity_score=view.velocity_score,
        urgency_flag=view.urgency_flag,
        created_at=view.created_at,
        updated_at=view.updated_at,
    )


def _investigation_out(item: Investigation) -> InvestigationOut:
    view = item.record
    return InvestigationOut(
        barcode=view.barcode,
        product_name=view.product_name,
        brand=view.brand,
        image_url=view.image_url,
        status=item.progress_status,
        record_status=view.status,
        queue_position=item.queue_position,
        funding_progress=view.funding_progress,
        total_weighted_votes=view.total_weighted_votes,
        your_vote_rank=item.your_vote_rank,
        your_scout_number=item.your_scout_number,
        your_weight=item.your_weight,
        total_scouts=view.unique_voters,
        is_first_scout=item.is_first_scout,
        did_contribute_photos=item.did_contribute_photos,
        is_trending=item.is_trending,
        velocity_change_24h=view.scans_last_24h,
        created_at=view.created_at,
        updated_at=view.updated_at,
    )


@router.post("/", response_model=VoteResponse, response_model_by_alias=True)
def cast_vote(
    vote_data: VoteCreate,
    db: SessionDep,
    subject: TokenSubjectDep,
    x_fingerprint: FingerprintHeader = None,
) -> VoteResponse:
    """Register a search, scan or member scan for a barcode."""
    info = None
    if vote_data.product_info is not None:
        info = ProductInfo(
            name=vote_data.product_info.name,
            brand=vote_data.product_info.brand,
            image_url=vote_data.product_info.image_url,
        )
    outcome = VotingService(db).cast_vote(
        vote_data.barcode,
        vote_data.vote_type,
        resolve_identity(subject, vote_data.fingerprint, x_fingerprint),
        info,
        notify_on_complete=vote_data.notify_on_complete,
    )
    return VoteResponse(
        total_votes=outcome.total_votes,
        total_weighted_votes=outcome.total_weighted_votes,
        unique_voters=outcome.unique_voters,
        your_vote_rank=outcome.your_vote_rank,
        voter_number=outcome.voter_number,
        weight_applied=outcome.weight_applied,
        is_new_voter=outcome.is_new_voter,
        funding_progress=outcome.funding_progress,
        funding_threshold=outcome.funding_threshold,
        scans_last_24h=outcome.scans_last_24h,
        urgency_flag=outcome.urgency_flag,
        product_info=ProductInfoOut(
            barcode=outcome.barcode,
            name=outcome.product_info.name,
            brand=outcome.product_info.brand,
            image_url=outcome.product_info.image_url,
        ),
        message=outcome.message,
    )


@router.get("/status", response_model=StatusResponse, response_model_by_alias=True)
def get_status(db: SessionDep, barcode: str | None = None) -> StatusResponse:
    """Return the standing of a single barcode."""
    view = ProjectorService(db).status(barcode)
    record = view.record
    return StatusResponse(
        barcode=view.barcode,
        exists=view.exists,
        total_votes=view.total_votes,
        total_weighted_votes=view.total_weighted_votes,
        funding_progress=view.funding_progress,
        funding_threshold=view.funding_threshold,
        status=view.status,
        rank=view.rank,
        unique_voters=record.unique_voters if record else None,
        product_name=record.product_name if record else None,
        brand=record.brand if record else None,
        image_url=record.image_url if record else None,
        scans_last_24h=record.scans_last_24h if record else None,
        urgency_flag=record.urgency_flag if record else None,
    )


@router.get("/leaderboard", response_model=LeaderboardResponse, response_model_by_alias=True)
def get_leaderboard(
    db: SessionDep,
    limit: int | None = Query(None),
) -> LeaderboardResponse:
    """Return the most-wanted products still collecting votes."""
    board = ProjectorService(db).leaderboard(limit)
    return LeaderboardResponse(
        leaderboard=[
            LeaderboardEntryOut(rank=entry.rank, **_record_out(entry.record).model_dump())
            for entry in board.entries
        ],
        total=board.total,
    )


@router.get("/queue", response_model=QueueResponse, response_model_by_alias=True)
def get_queue(
    db: SessionDep,
    page: int | None = Query(1),
    limit: int | None = Query(None),
    filter: str = Query(FILTER_MOST_VOTED),
) -> QueueResponse:
    """Return one page of the funding queue."""
    result = ProjectorService(db).queue(page, limit, filter)
    return QueueResponse(
        products=[_record_out(view) for view in result.products],
        total=result.total,
        page=result.page,
        total_pages=result.total_pages,
        filter=result.filter,
    )


@router.get("/trending", response_model=TrendingResponse, response_model_by_alias=True)
def get_trending(
    db: SessionDep,
    limit: int | None = Query(None),
) -> TrendingResponse:
    """Return products with the most scan activity in the last day."""
    views = ProjectorService(db).trending(limit)
    return TrendingResponse(products=[_record_out(view) for view in views])


@router.post(
    "/contribute",
    response_model=ContributionResponse,
    response_model_by_alias=True,
    responses={404: {"model": ErrorResponse, "description": "Barcode has no votes yet"}},
)
def contribute_photos(
    contribution: ContributionCreate,
    db: SessionDep,
    subject: TokenSubjectDep,
    x_fingerprint: FingerprintHeader = None,
) -> ContributionResponse:
    """Attach photo evidence to a barcode and claim the bounty when eligible."""
    outcome = BountyService(db).contribute(
        contribution.barcode,
        resolve_identity(subject, contribution.fingerprint, x_fingerprint),
        contribution.evidence_reference_id,
    )
    return ContributionResponse(
        success=True,
        bounty_awarded=outcome.bounty_awarded,
        bonus_weight=outcome.bonus_weight,
        total_weighted_votes=outcome.total_weighted_votes,
        funding_progress=outcome.funding_progress,
        reason=outcome.reason,
        message=outcome.message,
    )


@router.get("/mine", response_model=InvestigationsResponse, response_model_by_alias=True)
def get_my_investigations(db: SessionDep, identity: IdentityDep) -> InvestigationsResponse:
    """Return every product the caller voted on, with their part in each."""
    result = ProjectorService(db).my_investigations(identity)
    return InvestigationsResponse(
        investigations=[_investigation_out(item) for item in result.investigations],
        total_investigations=result.total_investigations,
        results_ready=result.results_ready,
    )
