"""
On-chain chess event payloads.

Events ride in the transaction payload field and are read back by an external
indexer. Two encodings exist:

Text events (the publish format)
================================
``KC|<kind>|<gameId>|<fields...>``, ASCII, no JSON:

    KC|GI|<gameId>|<player>        game init
    KC|GJ|<gameId>|<player>        join
    KC|GM|<gameId>|<ply>|<uci>     move
    KC|GC|<gameId>|<seq>|<base64>  chat fragment
    KC|GR|<gameId>|<player>        resign
    KC|GD|<gameId>|<player>        draw

Player fields carry the last 12 characters of the player's address.

Binary move records
===================
Fixed 62-byte layout:

    magic      6  b"KCHS1\\0"
    version    1  0x01
    type       1  move=1, resign=2, draw offer=3
    game id   16  ASCII, zero padded
    ply        2  big-endian
    move       4  ASCII UCI, zero padded
    prev txid 32  zeros for the first move
"""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass
from enum import Enum, IntEnum

from pydantic import BaseModel, field_validator

from kaswallet.constants import MAX_PAYLOAD_BYTES
from kaswallet.errors import PayloadError

PAYLOAD_PREFIX = "KC"
FIELD_SEPARATOR = "|"
PLAYER_TAG_LENGTH = 12
MAX_GAME_ID_LENGTH = 32
# 45 bytes of message encode to exactly 60 base64 characters
MAX_CHAT_BYTES = 45

GAME_ID_RE = re.compile(r"^[A-Za-z0-9_-]{1,32}$")
UCI_RE = re.compile(r"^[a-h][1-8][a-h][1-8][qrbn]?$")


class EventKind(str, Enum):
    INIT = "GI"
    JOIN = "GJ"
    MOVE = "GM"
    CHAT = "GC"
    RESIGN = "GR"
    DRAW = "GD"


PLAYER_EVENTS = (EventKind.INIT, EventKind.JOIN, EventKind.RESIGN, EventKind.DRAW)


class GameEvent(BaseModel):
    kind: EventKind
    game_id: str
    player: str = ""
    ply: int = 0
    move: str = ""
    seq: int = 0
    message: str = ""

    @field_validator("game_id")
    @classmethod
    def validate_game_id(cls, v: str) -> str:
        if not GAME_ID_RE.match(v):
            raise ValueError("game_id must be 1-32 chars of [A-Za-z0-9_-]")
        return v

    @field_validator("move")
    @classmethod
    def validate_move(cls, v: str) -> str:
        if v and not UCI_RE.match(v):
            raise ValueError(f"Invalid UCI move: {v!r}")
        return v

    @field_validator("ply", "seq")
    @classmethod
    def validate_counter(cls, v: int) -> int:
        if not 0 <= v <= 0xFFFF:
            raise ValueError("Counter out of range (0-65535)")
        return v

    @field_validator("player")
    @classmethod
    def validate_player(cls, v: str) -> str:
        if FIELD_SEPARATOR in v:
            raise ValueError("player must not contain '|'")
        return v

    @classmethod
    def init(cls, game_id: str, player: str) -> GameEvent:
        return cls(kind=EventKind.INIT, game_id=game_id, player=player)

    @classmethod
    def join(cls, game_id: str, player: str) -> GameEvent:
        return cls(kind=EventKind.JOIN, game_id=game_id, player=player)

    @classmethod
    def make_move(cls, game_id: str, ply: int, move: str) -> GameEvent:
        if not move:
            raise PayloadError("Move event requires a UCI move")
        return cls(kind=EventKind.MOVE, game_id=game_id, ply=ply, move=move)

    @classmethod
    def chat(cls, game_id: str, seq: int, message: str) -> GameEvent:
        return cls(kind=EventKind.CHAT, game_id=game_id, seq=seq, message=message)

    @classmethod
    def resign(cls, game_id: str, player: str) -> GameEvent:
        return cls(kind=EventKind.RESIGN, game_id=game_id, player=player)

    @classmethod
    def draw(cls, game_id: str, player: str) -> GameEvent:
        return cls(kind=EventKind.DRAW, game_id=game_id, player=player)


def shorten_player(player: str) -> str:
    return player[-PLAYER_TAG_LENGTH:]


def _encode_chat(message: str) -> str:
    raw = message.encode("utf-8")[:MAX_CHAT_BYTES]
    # Drop a multi-byte character split by the cut
    raw = raw.decode("utf-8", errors="ignore").encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def encode_event(event: GameEvent) -> bytes:
    if event.kind in PLAYER_EVENTS:
        fields = [shorten_player(event.player)]
    elif event.kind == EventKind.MOVE:
        if not event.move:
            raise PayloadError("Move event requires a UCI move")
        fields = [str(event.ply), event.move]
    elif event.kind == EventKind.CHAT:
        fields = [str(event.seq), _encode_chat(event.message)]
    else:
        raise PayloadError(f"Unknown event kind: {event.kind}")

    text = FIELD_SEPARATOR.join([PAYLOAD_PREFIX, event.kind.value, event.game_id, *fields])
    try:
        payload = text.encode("ascii")
    except UnicodeEncodeError as e:
        raise PayloadError("Event fields must be ASCII") from e
    if not is_payload_safe(payload):
        raise PayloadError(f"Payload too large: {len(payload)} > {MAX_PAYLOAD_BYTES} bytes")
    return payload


def decode_event(payload: bytes) -> GameEvent:
    try:
        text = payload.decode("ascii")
    except UnicodeDecodeError as e:
        raise PayloadError("Payload is not ASCII") from e

    parts = text.split(FIELD_SEPARATOR)
    if parts[0] != PAYLOAD_PREFIX or len(parts) < 3:
        raise PayloadError("Not a chess event payload")

    try:
        kind = EventKind(parts[1])
    except ValueError as e:
        raise PayloadError(f"Unknown event kind: {parts[1]!r}") from e

    game_id = parts[2]
    try:
        if kind in PLAYER_EVENTS:
            if len(parts) != 4:
                raise PayloadError(f"{kind.name} event expects 4 fields, got {len(parts)}")
            return GameEvent(kind=kind, game_id=game_id, player=parts[3])
        if len(parts) != 5:
            raise PayloadError(f"{kind.name} event expects 5 fields, got {len(parts)}")
        if kind == EventKind.MOVE:
            return GameEvent(kind=kind, game_id=game_id, ply=int(parts[3]), move=parts[4])
        message = base64.b64decode(parts[4], validate=True).decode("utf-8")
        return GameEvent(kind=kind, game_id=game_id, seq=int(parts[3]), message=message)
    except ValueError as e:
        # pydantic ValidationError, binascii.Error and int parsing errors
        raise PayloadError(f"Malformed {kind.name} event: {e}") from e


def is_payload_safe(payload: bytes) -> bool:
    return len(payload) <= MAX_PAYLOAD_BYTES


RECORD_MAGIC = b"KCHS1\x00"
RECORD_VERSION = 0x01
RECORD_GAME_ID_LENGTH = 16
RECORD_MOVE_LENGTH = 4
RECORD_SIZE = 6 + 1 + 1 + RECORD_GAME_ID_LENGTH + 2 + RECORD_MOVE_LENGTH + 32


class RecordType(IntEnum):
    MOVE = 0x01
    RESIGN = 0x02
    DRAW_OFFER = 0x03


@dataclass(frozen=True)
class MoveRecord:
    record_type: RecordType
    game_id: str
    ply: int
    move: str
    prev_txid: str = ""


def encode_move_record(record: MoveRecord) -> bytes:
    game_id = record.game_id.encode("ascii")
    if not game_id or len(game_id) > RECORD_GAME_ID_LENGTH:
        raise PayloadError(f"Record game id must be 1-{RECORD_GAME_ID_LENGTH} ASCII bytes")
    if not 0 <= record.ply <= 0xFFFF:
        raise PayloadError(f"Ply out of range: {record.ply}")
    move = record.move.encode("ascii")
    if (record.move and not UCI_RE.match(record.move)) or len(move) > RECORD_MOVE_LENGTH:
        raise PayloadError(f"Move does not fit a 4-byte record: {record.move!r}")

    if record.prev_txid:
        try:
            prev = bytes.fromhex(record.prev_txid)
        except ValueError as e:
            raise PayloadError("prev_txid is not hex") from e
        if len(prev) != 32:
            raise PayloadError("prev_txid must be 32 bytes")
    else:
        prev = bytes(32)

    return b"".join(
        [
            RECORD_MAGIC,
            bytes([RECORD_VERSION, int(record.record_type)]),
            game_id.ljust(RECORD_GAME_ID_LENGTH, b"\x00"),
            record.ply.to_bytes(2, "big"),
            move.ljust(RECORD_MOVE_LENGTH, b"\x00"),
            prev,
        ]
    )


def decode_move_record(data: bytes) -> MoveRecord:
    if len(data) != RECORD_SIZE:
        raise PayloadError(f"Move record must be {RECORD_SIZE} bytes, got {len(data)}")
    if data[:6] != RECORD_MAGIC:
        raise PayloadError("Bad move record magic")
    if data[6] != RECORD_VERSION:
        raise PayloadError(f"Unsupported move record version: {data[6]}")
    try:
        record_type = RecordType(data[7])
    except ValueError as e:
        raise PayloadError(f"Unknown move record type: {data[7]}") from e

    offset = 8
    game_id = data[offset : offset + RECORD_GAME_ID_LENGTH].rstrip(b"\x00")
    offset += RECORD_GAME_ID_LENGTH
    ply = int.from_bytes(data[offset : offset + 2], "big")
    offset += 2
    move = data[offset : offset + RECORD_MOVE_LENGTH].rstrip(b"\x00")
    offset += RECORD_MOVE_LENGTH
    prev = data[offset : offset + 32]

    try:
        return MoveRecord(
            record_type=record_type,
            game_id=game_id.decode("ascii"),
            ply=ply,
            move=move.decode("ascii"),
            prev_txid="" if prev == bytes(32) else prev.hex(),
        )
    except UnicodeDecodeError as e:
        raise PayloadError("Move record contains non-ASCII text") from e
