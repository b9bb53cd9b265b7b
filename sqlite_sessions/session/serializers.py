"""
Pluggable session serializers.

A serializer turns a session value into the payload stored in the
``data`` column and back. Anything with ``encode``/``decode`` methods
works; the store never looks inside the payload.
"""

import json
from typing import Any, Protocol, Union, runtime_checkable

Payload = Union[str, bytes]


@runtime_checkable
class Serializer(Protocol):
    """Capability interface for session serializers."""

    def encode(self, value: Any) -> Payload:
        ...

    def decode(self, data: Payload) -> Any:
        ...


class JSONSerializer:
    """
    Default serializer: compact JSON text.

    Numbers, strings, lists and nested objects round-trip; any other
    value makes ``encode`` raise ``TypeError``/``ValueError``.
    """

    def encode(self, value: Any) -> str:
        return json.dumps(value, separators=(",", ":"), allow_nan=False)

    def decode(self, data: Payload) -> Any:
        return json.loads(data)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, JSONSerializer)

    def __hash__(self) -> int:
        return hash(JSONSerializer)

    def __repr__(self) -> str:
        return "JSONSerializer()"
