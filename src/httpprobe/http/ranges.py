"""
=============================================================================
BYTE RANGES (RFC 7233, single-range subset)
=============================================================================

Parsing and resolution of the ``Range`` request header, plus the paced
chunk generator used to deliver a synthetic body.

=============================================================================
FROM HEADER TO BYTES ON THE WIRE
=============================================================================

    Range: bytes=10-20         numbytes = 30
        │
        ▼
    parse_request_range()  ──►  RangeSpec(first=10, last=20)
        │
        ▼
    get_request_range()    ──►  (10, 20)          resolved against 30
        │
        ▼
    is_satisfiable()       ──►  True              else 416 + bytes */30
        │
        ▼
    iter_range_chunks()    ──►  RangeChunk(b"klmnopqrstu", delay)

=============================================================================
RESOLUTION RULES
=============================================================================

    header              first       last        resolved (upper = 30)
    ─────────────────   ─────────   ─────────   ─────────────────────
    (absent)            None        None        [0, 29]
    bytes=-5            None        5           [25, 29]   "last 5 bytes"
    bytes=7-            7           None        [7, 29]
    bytes=10-20         10          20          [10, 20]
    bytes=20-10         20          10          [20, 10]   → 416
    bytes=0-99          0           99          [0, 99]    → 416

Both-present spans are taken verbatim; clamping never happens, so an
out-of-bounds request is reported to the client rather than quietly
trimmed.

=============================================================================
SYNTHETIC CONTENT
=============================================================================

The "resource" is never stored. The byte at logical offset ``i`` is
``a + (i mod 26)``, so any sub-range can be produced on its own and a
client can check exactly which offsets it received:

    offset:  0 1 2 ... 25 26 27 ...
    byte:    a b c ...  z  a  b ...

=============================================================================
"""

import re
from dataclasses import dataclass
from typing import Iterator, NamedTuple, Optional, Tuple


RANGE_UNIT_PREFIX = "bytes="

# Signed decimal, nothing else. int() alone would also take " 5" and "1_0".
_INTEGER_PATTERN = re.compile(r"^[+-]?\d+$")


def parse_int(value: Optional[str]) -> Optional[int]:
    """
    Parse a strictly decimal integer, returning None when it isn't one.

    Shared by the Range header parser and the range handler's path and
    query parameters.
    """
    if value is None or not _INTEGER_PATTERN.match(value):
        return None
    return int(value)


@dataclass(frozen=True)
class RangeSpec:
    """
    A parsed ``bytes=<first>-<last>`` value. Either side may be missing.

    Attributes:
        first: First byte position, or None ("from the start" / suffix form)
        last:  Last byte position, or None ("to the end")
    """

    first: Optional[int] = None
    last: Optional[int] = None

    def resolve(self, upper_bound: int) -> Tuple[int, int]:
        """Resolve against the resource length. See the module table."""
        if self.first is None and self.last is None:
            return 0, upper_bound - 1
        if self.first is None:
            # Suffix form: the last N bytes
            return max(0, upper_bound - self.last), upper_bound - 1
        if self.last is None:
            return self.first, upper_bound - 1
        return self.first, self.last


class RangeChunk(NamedTuple):
    """
    One flushable piece of a paced body and its pause.

    The pause follows the write, except when ``delay_first`` is set: the
    trailing partial chunk waits first and is flushed last.
    """

    data: bytes
    delay: float
    delay_first: bool = False


def parse_request_range(range_header: Optional[str]) -> RangeSpec:
    """
    Parse a ``Range`` header value.

    Lenient: anything that is not ``bytes=...`` yields an empty spec
    (the full body), and a side that does not parse as an integer is
    treated as absent. Only the first
    two ``-``-separated components are looked at, so multi-range values
    like ``bytes=0-5,7-9`` degrade rather than fail.

    Args:
        range_header: Raw header value, or None when the header is absent.

    Returns:
        RangeSpec with whichever bounds were present.
    """
    if not range_header:
        return RangeSpec()

    range_header = range_header.strip()
    if not range_header.startswith(RANGE_UNIT_PREFIX):
        return RangeSpec()

    components = range_header[len(RANGE_UNIT_PREFIX):].split("-")

    first = parse_int(components[0]) if len(components) > 0 else None
    last = parse_int(components[1]) if len(components) > 1 else None
    return RangeSpec(first=first, last=last)


def get_request_range(range_header: Optional[str], upper_bound: int) -> Tuple[int, int]:
    """Parse and resolve in one step: ``(first_byte_pos, last_byte_pos)``."""
    return parse_request_range(range_header).resolve(upper_bound)


def is_satisfiable(first: int, last: int, upper_bound: int) -> bool:
    """
    Whether a resolved span can be served.

    The bounds are compared against ``upper_bound`` itself, not
    ``upper_bound - 1``: a span ending exactly at the length is let
    through, matching the service's historic behaviour.
    """
    return not (first > last or first > upper_bound or last > upper_bound)


def content_range(first: int, last: int, total: int) -> str:
    """``Content-Range`` value for a served span."""
    return f"bytes {first}-{last}/{total}"


def unsatisfied_content_range(total: int) -> str:
    """``Content-Range`` value sent with 416."""
    return f"bytes */{total}"


def synthetic_byte(offset: int) -> int:
    """Byte value at a logical offset of the synthetic resource."""
    return ord("a") + offset % 26


def synthetic_bytes(first: int, last: int) -> bytes:
    """The synthetic content for the inclusive span ``[first, last]``."""
    return bytes(synthetic_byte(i) for i in range(first, last + 1))


def pause_per_byte(duration: float, total: int) -> float:
    """
    Seconds to spend per byte so that ``total`` bytes take ``duration``.

    Zero when there is nothing to pace (no duration, or an empty resource).
    """
    if duration <= 0 or total <= 0:
        return 0.0
    return duration / total


def iter_range_chunks(
    first: int,
    last: int,
    chunk_size: int,
    pause: float = 0.0,
) -> Iterator[RangeChunk]:
    """
    Generate the body for ``[first, last]`` as paced chunks.

    =====================================================================
    PACING
    =====================================================================

        chunk_size = 4, pause = 0.1s/byte, span of 10 bytes

        RangeChunk(b"abcd", 0.4)         full chunk, 4 bytes × 0.1
        RangeChunk(b"efgh", 0.4)         full chunk
        RangeChunk(b"ij",   0.2, True)   trailing partial chunk, 2 bytes × 0.1

    A full chunk is written and flushed, then the consumer waits
    ``delay``. The trailing partial chunk is the other way round
    (``delay_first``): it waits its share first and is flushed last.

        write abcd ─ 0.4s ─ write efgh ─ 0.4s ─ 0.2s ─ write ij

    The generator holds no resources, so a consumer that stops early
    (peer gone) can simply ``close()`` it.
    =====================================================================

    Args:
        first: First byte position (inclusive)
        last: Last byte position (inclusive)
        chunk_size: Bytes per chunk, at least 1
        pause: Seconds per byte (see pause_per_byte)

    Yields:
        RangeChunk(data, delay, delay_first)
    """
    chunk_size = max(1, chunk_size)
    chunk = bytearray()

    for offset in range(first, last + 1):
        chunk.append(synthetic_byte(offset))
        if len(chunk) == chunk_size:
            yield RangeChunk(bytes(chunk), pause * chunk_size)
            chunk = bytearray()

    if chunk:
        yield RangeChunk(bytes(chunk), pause * len(chunk), delay_first=True)
