from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List


@dataclass(frozen=True)
class Position:
    x: float = 0.0
    y: float = 0.0

    def __add__(self, other: "Position") -> "Position":
        return Position(self.x + other.x, self.y + other.y)

    def __sub__(self, other: "Position") -> "Position":
        return Position(self.x - other.x, self.y - other.y)

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    @staticmethod
    def from_value(value: Any) -> "Position":
        """Accept a Position, an {x, y} mapping or an (x, y) pair."""
        if isinstance(value, Position):
            return value
        if value is None:
            return Position()
        if isinstance(value, dict):
            return Position(float(value.get("x", 0)), float(value.get("y", 0)))
        x, y = value
        return Position(float(x), float(y))


class ConnectionType(Enum):
    SIMPLE = "simple"
    FUNCTION_CALL = "function_call"

    @staticmethod
    def parse(value: Any) -> "ConnectionType":
        if isinstance(value, ConnectionType):
            return value
        if value is None:
            return ConnectionType.SIMPLE
        try:
            return ConnectionType(value)
        except ValueError:
            raise ValueError(f"Unknown connection type '{value}'") from None


@dataclass(frozen=True)
class FunctionArgument:
    name: str
    type: str

    def to_dict(self) -> Dict[str, str]:
        return {"name": self.name, "type": self.type}


class PropertyKind(Enum):
    TEXT = "text"
    CODE = "code"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ARGUMENTS = "arguments"

    @staticmethod
    def validate(value: Any, kind: "PropertyKind") -> bool:
        if kind in (PropertyKind.TEXT, PropertyKind.CODE):
            return isinstance(value, str)
        elif kind == PropertyKind.NUMBER:
            return isinstance(value, (int, float)) and not isinstance(value, bool)
        elif kind == PropertyKind.BOOLEAN:
            return isinstance(value, bool)
        elif kind == PropertyKind.ARGUMENTS:
            if not isinstance(value, (list, tuple)):
                return False
            for item in value:
                if isinstance(item, FunctionArgument):
                    continue
                if not isinstance(item, dict):
                    return False
                if not isinstance(item.get("name", ""), str) or not isinstance(item.get("type", ""), str):
                    return False
            return True

        return False

    def coerce(self, value: Any) -> Any:
        """
        Normalise *value* to the canonical representation of this kind.

        Numeric strings become numbers and argument lists become plain
        ``{name, type}`` dicts. Raises ValueError when the value cannot be
        represented.
        """
        if self == PropertyKind.NUMBER and isinstance(value, str):
            try:
                number = float(value)
            except ValueError:
                raise ValueError(f"'{value}' is not a number") from None
            return int(number) if number.is_integer() and "." not in value else number

        if not PropertyKind.validate(value, self):
            raise ValueError(
                f"expected a {self.value} value, got {type(value).__name__}"
            )

        if self == PropertyKind.ARGUMENTS:
            args: List[Dict[str, str]] = []
            for item in value:
                if isinstance(item, FunctionArgument):
                    args.append(item.to_dict())
                else:
                    args.append({"name": item.get("name", ""), "type": item.get("type", "")})
            return args
        return value
