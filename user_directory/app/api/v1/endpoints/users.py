"""
User endpoints for API v1.

Thin translation between HTTP and ``UserService``: request bodies are
turned into ``UserAttributes``, results into ``UserRead`` and service
errors into ``HTTPException`` using ``HTTP_STATUS``.  Handlers are
plain functions so FastAPI runs them on its worker thread pool.
"""

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from user_directory.app.schemas.user import UserList, UserPayload, UserRead
from user_directory.app.services.errors import ErrorKind, ServiceError
from user_directory.app.services.user_service import UserService

router = APIRouter()

HTTP_STATUS = {
    ErrorKind.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorKind.INTERNAL: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def get_user_service(request: Request) -> UserService:
    """Return the service instance attached by ``create_app``."""
    return request.app.state.user_service


def _http_error(exc: ServiceError) -> HTTPException:
    return HTTPException(status_code=HTTP_STATUS[exc.kind], detail=exc.message)


@router.post("/", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(payload: UserPayload, service: UserService = Depends(get_user_service)) -> UserRead:
    """Create a user and return it with its newly assigned id."""
    try:
        user = service.create(payload.to_attributes())
    except ServiceError as exc:
        raise _http_error(exc)
    return UserRead.from_user(user)


@router.get("/", response_model=UserList)
def list_users(service: UserService = Depends(get_user_service)) -> UserList:
    """Return all users ordered by ascending id."""
    try:
        users = service.list()
    except ServiceError as exc:
        raise _http_error(exc)
    return UserList(users=[UserRead.from_user(u) for u in users])


@router.get("/{user_id}", response_model=UserRead)
def get_user(user_id: str, service: UserService = Depends(get_user_service)) -> UserRead:
    try:
        user = service.get(user_id)
    except ServiceError as exc:
        raise _http_error(exc)
    return UserRead.from_user(user)


@router.put("/{user_id}", response_model=UserRead)
def update_user(
    user_id: str,
    payload: UserPayload,
    service: UserService = Depends(get_user_service),
) -> UserRead:
    """Replace every attribute of a user.

    Fields missing from the body are cleared rather than kept.
    """
    try:
        user = service.update(user_id, payload.to_attributes())
    except ServiceError as exc:
        raise _http_error(exc)
    return UserRead.from_user(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT, response_class=Response)
def delete_user(user_id: str, service: UserService = Depends(get_user_service)) -> Response:
    try:
        service.delete(user_id)
    except ServiceError as exc:
        raise _http_error(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
