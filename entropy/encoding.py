"""
Binary value encodings for the HTTP surface.

A revealed value is returned as a tagged blob so clients can pick whatever
is convenient to decode:

    {"encoding": "hex",    "data": "a1b2…"}          # lowercase, no 0x
    {"encoding": "base64", "data": "obI…"}           # standard alphabet, padded
    {"encoding": "array",  "data": [161, 178, …]}    # one int per byte
"""

from __future__ import annotations

import base64
import binascii
from enum import Enum
from typing import List, Union

from pydantic import BaseModel, Field

from .utils.bytes import as_bytes, from_hex


class BinaryEncoding(str, Enum):
    HEX = "hex"
    BASE64 = "base64"
    ARRAY = "array"


class Blob(BaseModel):
    encoding: BinaryEncoding = Field(BinaryEncoding.HEX, description="How `data` is encoded")
    data: Union[str, List[int]]

    @classmethod
    def encode(cls, value: bytes, encoding: BinaryEncoding = BinaryEncoding.HEX) -> "Blob":
        raw = as_bytes(value)
        enc = BinaryEncoding(encoding)
        if enc is BinaryEncoding.HEX:
            return cls(encoding=enc, data=raw.hex())
        if enc is BinaryEncoding.BASE64:
            return cls(encoding=enc, data=base64.b64encode(raw).decode("ascii"))
        return cls(encoding=enc, data=list(raw))

    def to_bytes(self) -> bytes:
        """Decode ``data`` back to raw bytes (ValueError if it does not match ``encoding``)."""
        if self.encoding is BinaryEncoding.ARRAY:
            if not isinstance(self.data, list):
                raise ValueError("array blob must carry a list of ints")
            if any(not 0 <= b <= 255 for b in self.data):
                raise ValueError("array blob values must be in [0, 255]")
            return bytes(self.data)
        if not isinstance(self.data, str):
            raise ValueError(f"{self.encoding.value} blob must carry a string")
        if self.encoding is BinaryEncoding.HEX:
            return from_hex(self.data)
        try:
            return base64.b64decode(self.data, validate=True)
        except binascii.Error as e:
            raise ValueError(f"invalid base64 data: {e}") from e


__all__ = ["BinaryEncoding", "Blob"]
