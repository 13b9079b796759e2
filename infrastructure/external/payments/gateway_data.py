"""
Ordered parameter container shared by request signing and response/notify parsing.

Both the signer and the notify validator read the same projection
(`to_canonical_string`), so the bytes that get signed and the bytes that get
verified always come from one code path. Entries keep insertion order; the
canonical string is therefore order-sensitive and deterministic.
"""
from __future__ import annotations

import html
import json
import re
from decimal import Decimal
from enum import Enum
from typing import Any, Iterator, Mapping, Optional, Type, TypeVar
from urllib.parse import parse_qsl, quote

from pydantic import BaseModel

from infrastructure.external.payments.exceptions import MalformedResponseError


SIGN = "sign"
SIGN_TYPE = "sign_type"
SIGNATURE_FIELDS = frozenset({SIGN, SIGN_TYPE})

M = TypeVar("M", bound=BaseModel)

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")


class StringCase(str, Enum):
    SNAKE = "snake"  # out_trade_no
    CAMEL = "camel"  # outTradeNo
    PASCAL = "pascal"  # OutTradeNo
    KEBAB = "kebab"  # out-trade-no
    LOWER = "lower"  # outtradeno


def _words(name: str) -> list[str]:
    parts = re.split(r"[_\-\s]+", _CAMEL_BOUNDARY.sub("_", name))
    return [p.lower() for p in parts if p]


def convert_case(name: str, case: StringCase) -> str:
    words = _words(name)
    if not words:
        return name
    if case is StringCase.SNAKE:
        return "_".join(words)
    if case is StringCase.KEBAB:
        return "-".join(words)
    if case is StringCase.LOWER:
        return "".join(words)
    if case is StringCase.PASCAL:
        return "".join(w.capitalize() for w in words)
    return words[0] + "".join(w.capitalize() for w in words[1:])


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def _stringify(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Decimal):
        return format(value, "f")
    if isinstance(value, BaseModel):
        return value.model_dump_json(exclude_none=True)
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False, separators=(",", ":"))
    return str(value)


class GatewayData:
    """Insertion-ordered key/value pairs for one request/response cycle."""

    def __init__(self, items: Optional[Mapping[str, Any]] = None) -> None:
        self._values: dict[str, Any] = {}
        if items:
            for key, value in items.items():
                self.add(key, value)

    # ----- mutation -----------------------------------------------------
    def add(self, key: str, value: Any) -> bool:
        """Insert or overwrite one entry. Empty values are ignored."""
        if not key or _is_empty(value):
            return False
        self._values[key] = value
        return True

    def add_object(self, obj: BaseModel | Mapping[str, Any], case: StringCase = StringCase.SNAKE) -> None:
        """Merge the public fields of `obj` in declaration order."""
        if isinstance(obj, BaseModel):
            for name, info in type(obj).model_fields.items():
                if info.exclude:
                    continue
                self.add(convert_case(name, case), getattr(obj, name))
        elif isinstance(obj, Mapping):
            for name, value in obj.items():
                self.add(convert_case(str(name), case), value)
        else:
            raise TypeError(f"Cannot read parameters from {type(obj).__name__}")

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    # ----- access -------------------------------------------------------
    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def get_string(self, key: str) -> str:
        value = self._values.get(key)
        return "" if value is None else _stringify(value)

    def first(self) -> tuple[str, Any]:
        for item in self._values.items():
            return item
        raise MalformedResponseError("Parameter set is empty")

    def keys(self) -> list[str]:
        return list(self._values)

    def items(self) -> list[tuple[str, Any]]:
        return list(self._values.items())

    def __contains__(self, key: object) -> bool:
        return key in self._values

    def __len__(self) -> int:
        return len(self._values)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __repr__(self) -> str:
        return f"GatewayData({self.keys()!r})"

    # ----- projections --------------------------------------------------
    def _pairs(self, include_signature_fields: bool) -> Iterator[tuple[str, str]]:
        for key, value in self._values.items():
            if not include_signature_fields and key in SIGNATURE_FIELDS:
                continue
            yield key, _stringify(value)

    def to_canonical_string(self, include_signature_fields: bool = False) -> str:
        """`k1=v1&k2=v2` over raw values; the exact input to sign/verify."""
        return "&".join(f"{k}={v}" for k, v in self._pairs(include_signature_fields))

    def to_url_encoded_body(self) -> str:
        """All fields, values percent-encoded (HTTP body or redirect query)."""
        return "&".join(f"{k}={quote(v, safe='')}" for k, v in self._pairs(True))

    def to_form(self, action_url: str) -> str:
        """Auto-submitting HTML form that posts every field to `action_url`."""
        inputs = "".join(
            f"<input type='hidden' name='{html.escape(k, quote=True)}' value='{html.escape(v, quote=True)}'/>"
            for k, v in self._pairs(True)
        )
        return (
            f"<form name='gateway_form' id='gateway_form' action='{html.escape(action_url, quote=True)}' method='post'>"
            f"{inputs}"
            "<input type='submit' value='ok' style='display:none;'/></form>"
            "<script>document.forms['gateway_form'].submit();</script>"
        )

    def to_object(self, model_cls: Type[M], case: StringCase = StringCase.SNAKE) -> M:
        """Materialize entries into `model_cls`, mapping wire names back to attributes."""
        wire_to_attr = {convert_case(name, case): name for name in model_cls.model_fields}
        data = {wire_to_attr.get(key, key): value for key, value in self._values.items()}
        return model_cls.model_validate(data)

    # ----- ingestion ----------------------------------------------------
    def from_structured(self, obj: Any) -> "GatewayData":
        """Replace contents with the entries of a mapping."""
        if not isinstance(obj, Mapping):
            raise MalformedResponseError(
                "Payload is not an object",
                details={"type": type(obj).__name__},
            )
        self._values = {}
        for key, value in obj.items():
            self.add(str(key), value)
        return self

    def from_json(self, text: str | bytes) -> "GatewayData":
        """Replace contents by parsing a JSON object."""
        try:
            parsed = json.loads(text)
        except (TypeError, ValueError) as exc:
            raise MalformedResponseError("Payload is not valid JSON") from exc
        return self.from_structured(parsed)

    def from_form(self, text: str | bytes, encoding: str = "utf-8") -> "GatewayData":
        """Replace contents by parsing an `application/x-www-form-urlencoded` body."""
        if isinstance(text, bytes):
            text = text.decode(encoding)
        return self.from_structured(dict(parse_qsl(text, keep_blank_values=True)))
