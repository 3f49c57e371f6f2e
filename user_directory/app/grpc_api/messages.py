"""
Protobuf message classes for the ``userdir.v1`` gRPC contract.

The messages are described once as a ``FileDescriptorProto`` and
turned into concrete classes by the protobuf runtime at import time,
so no generated ``*_pb2`` module has to be kept in sync.  The same
contract is written out in ``proto/user/v1/user.proto`` for clients
that generate their own stubs.

``DESCRIPTOR_POOL`` holds the file so server reflection can serve it.
"""

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

PACKAGE = "userdir.v1"
SERVICE_NAME = f"{PACKAGE}.UserService"
FILE_NAME = "userdir/v1/user.proto"

_F = descriptor_pb2.FieldDescriptorProto

# (name, type, label[, message type]); field numbers follow list order.
_ATTRIBUTE_FIELDS = [
    ("name", _F.TYPE_STRING, _F.LABEL_OPTIONAL),
    ("email", _F.TYPE_STRING, _F.LABEL_OPTIONAL),
    ("phone", _F.TYPE_STRING, _F.LABEL_OPTIONAL),
    ("address", _F.TYPE_STRING, _F.LABEL_OPTIONAL),
    ("bio", _F.TYPE_STRING, _F.LABEL_OPTIONAL),
    ("tags", _F.TYPE_STRING, _F.LABEL_REPEATED),
    ("avatar", _F.TYPE_BYTES, _F.LABEL_OPTIONAL),
]

_ID_FIELD = ("id", _F.TYPE_STRING, _F.LABEL_OPTIONAL)

_MESSAGES = {
    "User": [_ID_FIELD] + _ATTRIBUTE_FIELDS,
    "CreateUserRequest": list(_ATTRIBUTE_FIELDS),
    "UpdateUserRequest": [_ID_FIELD] + _ATTRIBUTE_FIELDS,
    "GetUserRequest": [_ID_FIELD],
    "DeleteUserRequest": [_ID_FIELD],
    "DeleteUserResponse": [],
    "ListUsersRequest": [],
    "UserResponse": [("user", _F.TYPE_MESSAGE, _F.LABEL_OPTIONAL, "User")],
    "ListUsersResponse": [("users", _F.TYPE_MESSAGE, _F.LABEL_REPEATED, "User")],
}

# method name -> (request message, response message)
METHODS = {
    "CreateUser": ("CreateUserRequest", "UserResponse"),
    "GetUser": ("GetUserRequest", "UserResponse"),
    "UpdateUser": ("UpdateUserRequest", "UserResponse"),
    "DeleteUser": ("DeleteUserRequest", "DeleteUserResponse"),
    "ListUsers": ("ListUsersRequest", "ListUsersResponse"),
}


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(name=FILE_NAME, package=PACKAGE, syntax="proto3")
    for message_name, fields in _MESSAGES.items():
        message = file_proto.message_type.add(name=message_name)
        for number, spec in enumerate(fields, start=1):
            name, field_type, label = spec[:3]
            field = message.field.add(name=name, number=number, type=field_type, label=label)
            if field_type == _F.TYPE_MESSAGE:
                field.type_name = f".{PACKAGE}.{spec[3]}"
    service = file_proto.service.add(name="UserService")
    for method_name, (request_name, response_name) in METHODS.items():
        service.method.add(
            name=method_name,
            input_type=f".{PACKAGE}.{request_name}",
            output_type=f".{PACKAGE}.{response_name}",
        )
    return file_proto


DESCRIPTOR_POOL = descriptor_pool.DescriptorPool()
DESCRIPTOR_POOL.AddSerializedFile(_build_file().SerializeToString())


def _message_class(name: str):
    return message_factory.GetMessageClass(DESCRIPTOR_POOL.FindMessageTypeByName(f"{PACKAGE}.{name}"))


User = _message_class("User")
CreateUserRequest = _message_class("CreateUserRequest")
UpdateUserRequest = _message_class("UpdateUserRequest")
GetUserRequest = _message_class("GetUserRequest")
DeleteUserRequest = _message_class("DeleteUserRequest")
DeleteUserResponse = _message_class("DeleteUserResponse")
ListUsersRequest = _message_class("ListUsersRequest")
UserResponse = _message_class("UserResponse")
ListUsersResponse = _message_class("ListUsersResponse")

MESSAGE_CLASSES = {
    "User": User,
    "CreateUserRequest": CreateUserRequest,
    "UpdateUserRequest": UpdateUserRequest,
    "GetUserRequest": GetUserRequest,
    "DeleteUserRequest": DeleteUserRequest,
    "DeleteUserResponse": DeleteUserResponse,
    "ListUsersRequest": ListUsersRequest,
    "UserResponse": UserResponse,
    "ListUsersResponse": ListUsersResponse,
}


def method_path(method_name: str) -> str:
    """Full RPC path, e.g. ``/userdir.v1.UserService/CreateUser``."""
    return f"/{SERVICE_NAME}/{method_name}"
