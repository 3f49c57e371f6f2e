"""
gRPC servicer for ``userdir.v1.UserService``.

``UserServicer`` converts protobuf requests into ``UserAttributes``,
calls ``UserService`` and converts results back.  Service errors abort
the RPC with the status code from ``GRPC_STATUS`` and the service
message as details, mirroring what the HTTP front‑end does with HTTP
statuses.

Handlers run on the event loop shared with the HTTP listener and the
lifecycle manager, so every service call goes to a worker thread: a
handler waiting on the store lock must not stall the loop.
"""

import asyncio
import logging

import grpc
from grpc_reflection.v1alpha import reflection

from ..core.store import User, UserAttributes
from ..services.errors import ErrorKind, ServiceError
from ..services.user_service import UserService
from . import messages as pb

logger = logging.getLogger(__name__)

GRPC_STATUS = {
    ErrorKind.INVALID_INPUT: grpc.StatusCode.INVALID_ARGUMENT,
    ErrorKind.NOT_FOUND: grpc.StatusCode.NOT_FOUND,
    ErrorKind.INTERNAL: grpc.StatusCode.INTERNAL,
}


def to_proto(user: User):
    attrs = user.attributes
    return pb.User(
        id=user.id,
        name=attrs.name,
        email=attrs.email,
        phone=attrs.phone,
        address=attrs.address,
        bio=attrs.bio,
        tags=list(attrs.tags),
        avatar=attrs.avatar,
    )


def attributes_from_request(request) -> UserAttributes:
    return UserAttributes(
        name=request.name,
        email=request.email,
        phone=request.phone,
        address=request.address,
        bio=request.bio,
        tags=list(request.tags),
        avatar=bytes(request.avatar),
    )


class UserServicer:
    """Implements the five ``UserService`` RPCs on top of ``UserService``."""

    def __init__(self, service: UserService) -> None:
        self._service = service

    async def _abort(self, context: grpc.aio.ServicerContext, exc: ServiceError) -> None:
        logger.debug("RPC failed (%s): %s", exc.kind.value, exc.message)
        await context.abort(GRPC_STATUS[exc.kind], exc.message)

    async def CreateUser(self, request, context):
        try:
            user = await asyncio.to_thread(self._service.create, attributes_from_request(request))
        except ServiceError as exc:
            await self._abort(context, exc)
        return pb.UserResponse(user=to_proto(user))

    async def GetUser(self, request, context):
        try:
            user = await asyncio.to_thread(self._service.get, request.id)
        except ServiceError as exc:
            await self._abort(context, exc)
        return pb.UserResponse(user=to_proto(user))

    async def UpdateUser(self, request, context):
        try:
            user = await asyncio.to_thread(self._service.update, request.id, attributes_from_request(request))
        except ServiceError as exc:
            await self._abort(context, exc)
        return pb.UserResponse(user=to_proto(user))

    async def DeleteUser(self, request, context):
        try:
            await asyncio.to_thread(self._service.delete, request.id)
        except ServiceError as exc:
            await self._abort(context, exc)
        return pb.DeleteUserResponse()

    async def ListUsers(self, request, context):
        try:
            users = await asyncio.to_thread(self._service.list)
        except ServiceError as exc:
            await self._abort(context, exc)
        return pb.ListUsersResponse(users=[to_proto(u) for u in users])


def generic_handler(servicer: UserServicer) -> grpc.GenericRpcHandler:
    """Build the method table that routes RPC paths to ``servicer``."""
    handlers = {}
    for method_name, (request_name, response_name) in pb.METHODS.items():
        handlers[method_name] = grpc.unary_unary_rpc_method_handler(
            getattr(servicer, method_name),
            request_deserializer=pb.MESSAGE_CLASSES[request_name].FromString,
            response_serializer=pb.MESSAGE_CLASSES[response_name].SerializeToString,
        )
    return grpc.method_handlers_generic_handler(pb.SERVICE_NAME, handlers)


def create_server(service: UserService, enable_reflection: bool = True) -> grpc.aio.Server:
    """Construct an asyncio gRPC server with the user service registered.

    No port is bound here; ``GrpcListener`` does that so bind failures
    surface during startup.
    """
    server = grpc.aio.server()
    server.add_generic_rpc_handlers((generic_handler(UserServicer(service)),))
    if enable_reflection:
        reflection.enable_server_reflection(
            (pb.SERVICE_NAME, reflection.SERVICE_NAME),
            server,
            pool=pb.DESCRIPTOR_POOL,
        )
    return server


class UserServiceStub:
    """Client stub for ``userdir.v1.UserService``.

    Works with both ``grpc.insecure_channel`` and
    ``grpc.aio.insecure_channel``; with the latter every call returns
    an awaitable.
    """

    def __init__(self, channel) -> None:
        for method_name, (request_name, response_name) in pb.METHODS.items():
            setattr(
                self,
                method_name,
                channel.unary_unary(
                    pb.method_path(method_name),
                    request_serializer=pb.MESSAGE_CLASSES[request_name].SerializeToString,
                    response_deserializer=pb.MESSAGE_CLASSES[response_name].FromString,
                ),
            )

