"""
Automaton Export

Hands a finished automaton to a serialization codec in a stable order
(state id ascending, edges in declaration order) and renders a
human-readable listing for diagnostics.
"""

import io
import json
import logging
import struct
from pathlib import Path
from typing import Any, Dict, Tuple

from rich import box
from rich.console import Console
from rich.table import Table
from rich.text import Text

from grammaton.errors import AutomatonInvariantError, ExportError
from .model import Automaton, Edge, State


logger = logging.getLogger("grammaton.automaton.export")


def to_dict(automaton: Automaton) -> Dict[str, Any]:
    """Plain-data view of an automaton in canonical order."""
    return {
        'start': automaton.start,
        'states': [
            {
                'id': state.id,
                'final': state.final,
                'edges': [[edge.trigger, edge.dest] for edge in state.edges],
            }
            for state in sorted(automaton.states, key=lambda s: s.id)
        ],
    }


def from_dict(data: Dict[str, Any]) -> Automaton:
    """
    Rebuild an automaton from to_dict() output.

    Raises:
        ExportError: malformed data or broken structural invariants
    """
    try:
        states = [
            State(int(item['id']), [Edge(str(trigger), int(dest)) for trigger, dest in item['edges']],
                  bool(item['final']))
            for item in data['states']
        ]
        automaton = Automaton(int(data['start']), states)
    except (KeyError, TypeError, ValueError) as e:
        raise ExportError(f"Malformed automaton data: {e}") from e

    try:
        automaton.check()
    except AutomatonInvariantError as e:
        raise ExportError(f"Decoded automaton is inconsistent: {e}") from e
    return automaton


class AutomatonCodec:
    """Turns the plain-data automaton view into bytes and back."""

    name = "codec"

    def encode(self, data: Dict[str, Any]) -> bytes:
        raise NotImplementedError

    def decode(self, payload: bytes) -> Dict[str, Any]:
        raise NotImplementedError


class JsonCodec(AutomatonCodec):
    """Canonical JSON: sorted keys, compact separators, UTF-8."""

    name = "json"

    def encode(self, data: Dict[str, Any]) -> bytes:
        return json.dumps(data, sort_keys=True, separators=(",", ":"), ensure_ascii=False).encode("utf-8")

    def decode(self, payload: bytes) -> Dict[str, Any]:
        return json.loads(payload.decode("utf-8"))


class BinaryCodec(AutomatonCodec):
    """
    Compact versioned binary format.

    Layout:
        magic "GRMA" | version u8 | start varint | state count varint
        per state: flags u8 (bit 0 = final) | edge count varint
        per edge:  trigger length varint | UTF-8 trigger | dest varint

    Varints are unsigned LEB128.
    """

    name = "binary"
    MAGIC = b"GRMA"
    VERSION = 1

    def encode(self, data: Dict[str, Any]) -> bytes:
        out = bytearray(self.MAGIC)
        out += struct.pack("<B", self.VERSION)
        out += _varint(data['start'])
        out += _varint(len(data['states']))
        for state in data['states']:
            out += struct.pack("<B", 1 if state['final'] else 0)
            out += _varint(len(state['edges']))
            for trigger, dest in state['edges']:
                raw = trigger.encode("utf-8")
                out += _varint(len(raw))
                out += raw
                out += _varint(dest)
        return bytes(out)

    def decode(self, payload: bytes) -> Dict[str, Any]:
        if payload[:4] != self.MAGIC:
            raise ExportError("Not a grammaton automaton (bad magic)")
        if len(payload) < 5:
            raise ExportError("Truncated automaton header")
        version = payload[4]
        if version != self.VERSION:
            raise ExportError(f"Unsupported automaton format version {version}")

        pos = 5
        start, pos = _read_varint(payload, pos)
        count, pos = _read_varint(payload, pos)
        states = []
        for state_id in range(count):
            if pos >= len(payload):
                raise ExportError("Truncated state record")
            flags = payload[pos]
            pos += 1
            edge_count, pos = _read_varint(payload, pos)
            edges = []
            for _ in range(edge_count):
                length, pos = _read_varint(payload, pos)
                if pos + length > len(payload):
                    raise ExportError("Truncated trigger")
                trigger = payload[pos:pos + length].decode("utf-8")
                pos += length
                dest, pos = _read_varint(payload, pos)
                edges.append([trigger, dest])
            states.append({'id': state_id, 'final': bool(flags & 1), 'edges': edges})

        if pos != len(payload):
            raise ExportError(f"{len(payload) - pos} trailing bytes after automaton")
        return {'start': start, 'states': states}


def _varint(value: int) -> bytes:
    if value < 0:
        raise ExportError(f"Cannot encode negative value {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def _read_varint(payload: bytes, pos: int) -> Tuple[int, int]:
    result = 0
    shift = 0
    while True:
        if pos >= len(payload):
            raise ExportError("Truncated varint")
        byte = payload[pos]
        pos += 1
        result |= (byte & 0x7F) << shift
        if not byte & 0x80:
            return result, pos
        shift += 7


CODECS = {
    'binary': BinaryCodec,
    'json': JsonCodec,
}


def get_codec(name: str) -> AutomatonCodec:
    try:
        return CODECS[name]()
    except KeyError:
        raise ExportError(f"Unknown output format: {name} (choose from {', '.join(sorted(CODECS))})") from None


def export(automaton: Automaton, codec: AutomatonCodec = None) -> bytes:
    """
    Serialize an automaton.

    Args:
        automaton: Finished automaton
        codec: Codec to delegate to (default: BinaryCodec)

    Returns:
        Encoded bytes; identical automata always give identical bytes
    """
    codec = codec or BinaryCodec()
    payload = codec.encode(to_dict(automaton))
    logger.debug(f"Encoded {automaton.num_states} states as {len(payload)} bytes ({codec.name})")
    return payload


def load(payload: bytes, codec: AutomatonCodec = None) -> Automaton:
    """
    Inverse of export().

    Codec failures propagate unchanged; ExportError means the decoded data
    does not describe a valid automaton.
    """
    codec = codec or BinaryCodec()
    return from_dict(codec.decode(payload))


def write_automaton(path, automaton: Automaton, codec: AutomatonCodec = None) -> int:
    """Write an encoded automaton to `path`; returns the number of bytes written."""
    payload = export(automaton, codec)
    Path(path).write_bytes(payload)
    logger.info(f"Wrote automaton ({automaton.num_states} states, {len(payload)} bytes) to {path}")
    return len(payload)


def read_automaton(path, codec: AutomatonCodec = None) -> Automaton:
    return load(Path(path).read_bytes(), codec)


def render_debug(automaton: Automaton, width: int = 120) -> str:
    """
    Plain-text listing of every state for diagnostics.

    Each row shows the state id, whether it is final, and its edges as
    'trigger' -> dest (ε for an empty trigger).
    """
    table = Table(box=box.SIMPLE)
    table.add_column("State", justify="right")
    table.add_column("Final")
    table.add_column("Edges", overflow="fold")

    for state in sorted(automaton.states, key=lambda s: s.id):
        label = f"{state.id}*" if state.id == automaton.start else str(state.id)
        edges = ", ".join(
            f"{edge.trigger!r} -> {edge.dest}" if edge.trigger else f"ε -> {edge.dest}"
            for edge in state.edges
        )
        table.add_row(label, "yes" if state.final else "", Text(edges or "-"))

    console = Console(file=io.StringIO(), record=True, width=width, color_system=None)
    console.print(Text(f"Automaton: {automaton.num_states} states, {automaton.num_edges} edges, start {automaton.start}"))
    console.print(table)
    return console.export_text()
