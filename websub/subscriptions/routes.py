"""Subscriber API routes."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import ValidationError

from websub.core.fastapi import REQUEST_ID_HEADER, add_request_id_header
from websub.subscriptions.config import SubscriberSettings
from websub.subscriptions.content import ContentAuthenticator
from websub.subscriptions.database import DatabaseService
from websub.subscriptions.errors import NotificationRejected, WebSubError
from websub.subscriptions.models import SubscriptionMode, SubscriptionState
from websub.subscriptions.schemas import (
    SubscriptionListResponse,
    SubscriptionResponse,
    VerificationQuery,
)
from websub.subscriptions.service import (
    CallbackURLBuilder,
    SubscriptionService,
    intent_from_request,
)
from websub.subscriptions.verification import VerificationHandler

logger = structlog.get_logger("websub")

router = APIRouter(tags=["websub"])


def get_settings(request: Request) -> SubscriberSettings:
    return request.app.state.settings


def get_database(request: Request) -> DatabaseService:
    return request.app.state.database


def get_callbacks(request: Request) -> CallbackURLBuilder:
    return request.app.state.callbacks


def get_subscription_service(request: Request) -> SubscriptionService:
    return request.app.state.subscription_service


def get_verification_handler(request: Request) -> VerificationHandler:
    return request.app.state.verification_handler


def get_content_authenticator(request: Request) -> ContentAuthenticator:
    return request.app.state.content_authenticator


@router.get("/subscribe")
async def subscribe(
    response: Response,
    topic: str | None = Query(None, description="Topic URL to follow"),
    mode: SubscriptionMode | None = Query(None, description="subscribe (default) or unsubscribe"),
    hub: str | None = Query(None, description="Preferred hub, skips discovery"),
    callback: str | None = Query(None, description="Callback to unsubscribe"),
    lease_seconds: int | None = Query(None, ge=0, description="Requested lease"),
    service: SubscriptionService = Depends(get_subscription_service),
) -> Response:
    """
    Subscribe to, or unsubscribe from, a topic.

    Returns the stored subscription with 202 when the hub accepts the
    request; otherwise relays the hub's status and body unchanged.
    """
    request_id = add_request_id_header(response)
    logger.info(
        "A user attempting to change a subscription",
        request_id=request_id,
        mode=(mode or SubscriptionMode.SUBSCRIBE).value,
        topic=topic,
        hub=hub,
        callback=callback
    )

    try:
        intent = intent_from_request(
            topic=topic,
            mode=mode,
            hub=hub,
            callback=callback,
            lease_seconds=lease_seconds,
        )
        outcome = await service.subscribe(intent)
    except WebSubError as e:
        logger.warning(
            "Subscription request failed",
            request_id=request_id,
            error_type=type(e).__name__,
            error=e.message,
            topic=topic,
            callback=callback,
            mode=(mode or SubscriptionMode.SUBSCRIBE).value
        )
        raise HTTPException(
            status_code=e.status_code,
            detail=e.message,
            headers={REQUEST_ID_HEADER: request_id},
        ) from e

    headers = {REQUEST_ID_HEADER: request_id}
    if outcome.reply.accepted:
        return JSONResponse(
            status_code=status.HTTP_202_ACCEPTED,
            content=SubscriptionResponse.model_validate(outcome.subscription).model_dump(mode="json"),
            headers=headers,
        )

    return Response(
        content=outcome.reply.body,
        status_code=outcome.reply.status_code,
        media_type=outcome.reply.content_type,
        headers=headers,
    )


@router.get("/callback/{callback_id}")
async def verify(
    callback_id: str,
    request: Request,
    callbacks: CallbackURLBuilder = Depends(get_callbacks),
    handler: VerificationHandler = Depends(get_verification_handler),
) -> Response:
    """Answer a hub's verification of intent."""
    callback = callbacks.from_path(request.url.path)
    try:
        query = VerificationQuery.model_validate(dict(request.query_params))
    except ValidationError as e:
        logger.warning("Malformed verification request", callback=callback, errors=str(e.errors()))
        return Response(status_code=status.HTTP_400_BAD_REQUEST)

    logger.info(
        "A hub attempting verification",
        callback=callback,
        mode=query.mode.value,
        topic=query.topic,
        lease_seconds=query.lease_seconds
    )

    try:
        result = await handler.verify(
            callback=callback,
            mode=query.mode,
            topic=query.topic,
            challenge=query.challenge,
            lease_seconds=query.lease_seconds,
        )
    except WebSubError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message) from e

    if result.body:
        return PlainTextResponse(content=result.body, status_code=result.status_code)
    return Response(status_code=result.status_code)


@router.post("/callback/{callback_id}")
async def receive_content(
    callback_id: str,
    request: Request,
    settings: SubscriberSettings = Depends(get_settings),
    callbacks: CallbackURLBuilder = Depends(get_callbacks),
    authenticator: ContentAuthenticator = Depends(get_content_authenticator),
) -> Response:
    """Accept a content notification pushed by the hub."""
    response = Response(status_code=status.HTTP_202_ACCEPTED)
    request_id = add_request_id_header(response)
    callback = callbacks.from_path(request.url.path)

    body = await request.body()
    if len(body) > settings.max_body_bytes:
        logger.warning(
            "Notification body too large",
            callback=callback,
            request_id=request_id,
            body_size=len(body),
            limit=settings.max_body_bytes,
        )
        return Response(
            status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
            headers={REQUEST_ID_HEADER: request_id},
        )

    logger.info("Incoming notification", callback=callback, request_id=request_id, body_size=len(body))

    try:
        await authenticator.authenticate(
            callback=callback,
            link_headers=request.headers.getlist("link"),
            body=body,
            content_type=request.headers.get("content-type"),
        )
    except NotificationRejected:
        return Response(status_code=status.HTTP_404_NOT_FOUND, headers={REQUEST_ID_HEADER: request_id})
    except WebSubError as e:
        raise HTTPException(
            status_code=e.status_code,
            detail=e.message,
            headers={REQUEST_ID_HEADER: request_id},
        ) from e

    return response


@router.get("/subscriptions", response_model=SubscriptionListResponse)
async def list_subscriptions(
    state: SubscriptionState | None = Query(None, description="Only subscriptions in this state"),
    page: int = Query(1, ge=1, description="Page number"),
    size: int = Query(50, ge=1, le=100, description="Items per page"),
    database: DatabaseService = Depends(get_database),
) -> SubscriptionListResponse:
    """List stored subscriptions with pagination."""
    try:
        skip = (page - 1) * size
        subscriptions, total = await database.list_subscriptions(state=state, skip=skip, limit=size)
    except WebSubError as e:
        logger.error("Failed to list subscriptions", error=e.message)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to list subscriptions"
        ) from e

    return SubscriptionListResponse(
        subscriptions=[SubscriptionResponse.model_validate(sub) for sub in subscriptions],
        total=total,
        page=page,
        size=size
    )


@router.get("/subscriptions/{subscription_id}", response_model=SubscriptionResponse)
async def get_subscription(
    subscription_id: int,
    database: DatabaseService = Depends(get_database),
) -> SubscriptionResponse:
    """Get a specific subscription."""
    subscription = await database.get_subscription(subscription_id)

    if not subscription:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Subscription not found"
        )

    return SubscriptionResponse.model_validate(subscription)
