"""Raster command generation for LabelManager tape printers."""

from __future__ import annotations

import logging
from enum import IntEnum
from typing import BinaryIO

log = logging.getLogger(__name__)

ESC = 0x1B
SYN = 0x16

_TS_FLUSH_THRESHOLD = 4096


class TapeWidth(IntEnum):
    """Tape widths, as encoded in the low byte of the page media type."""

    MM6 = 0
    MM9 = 1
    MM12 = 2
    MM19 = 3
    MM24 = 4
    MM32 = 5


class CutOption(IntEnum):
    """What separates consecutive labels."""

    CUT = 0
    CHAIN_MARKS = 1


class Alignment(IntEnum):
    """Where the printed image is placed along the label."""

    CENTER = 0
    LEFT = 1
    RIGHT = 2


class TapeColor(IntEnum):
    """Tape colour codes sent to the printer."""

    BLACK_ON_WHITE = 0
    BLACK_ON_BLUE = 1
    BLACK_ON_RED = 2
    BLACK_ON_SILVER = 3
    BLACK_ON_YELLOW = 4
    BLACK_ON_GOLD = 5
    BLACK_ON_GREEN = 6
    BLACK_ON_FLUORESCENT_GREEN = 7
    BLACK_ON_FLUORESCENT_RED = 8
    WHITE_ON_CLEAR = 9
    WHITE_ON_BLACK = 10
    BLUE_ON_WHITE = 11
    RED_ON_WHITE = 12


def request_status_command() -> bytes:
    """Return the command that asks the printer for its status."""
    return bytes([ESC, ord("A")])


def reverse_bits(value: int) -> int:
    """Return the byte with its bit order reversed."""
    return int(f"{value & 0xFF:08b}"[::-1], 2)


class PrintEnvironment:
    """Destination for printer data: a binary stream, or an in-memory buffer."""

    def __init__(self, stream: BinaryIO | None = None) -> None:
        self.stream = stream
        self.written = bytearray()

    def write_data(self, data: bytes) -> None:
        """Deliver a block of printer data."""
        if self.stream is None:
            self.written += data
        else:
            self.stream.write(bytes(data))
            self.stream.flush()


class LabelManagerDriver:
    """Turns raster lines into LabelManager printer commands."""

    def __init__(self, environment: PrintEnvironment) -> None:
        self.environment = environment

        # job parameters
        self.cut_option = CutOption.CUT
        self.alignment = Alignment.CENTER
        self.continuous_paper = False
        self.print_chain_marks_at_doc_end = False
        self.auto_paper = False  # trailing empty lines are not sent
        self.tape_alignment_offset = 0
        self.tape_color = TapeColor.BLACK_ON_WHITE

        # device parameters
        self.device_name = ""
        self.support_auto_cut = True
        self.ts_device = False
        self.max_printable_width = 96  # in dots
        self.normal_leader = 75
        self.min_leader = 55
        self.aligned_leader = 43
        self.min_page_lines = 133

        # job state
        self._last_dot_tab: int | None = None
        self._last_bytes_per_line: int | None = None
        self._empty_lines = 0
        self._page_no = 1
        self._page_line_count = 0
        self._raster_lines: list[bytes] = []
        self._ts_buffer = bytearray()

    @property
    def _max_bytes_per_line(self) -> int:
        return self.max_printable_width // 8

    # document and page framing

    def start_doc(self) -> None:
        """Begin a document: clear the head and select the tape colour."""
        self._page_no = 1
        self._send(bytes(self._max_bytes_per_line))
        self._send_tape_color(self.tape_color)

    def end_doc(self) -> None:
        """Finish a document: feed to the cutter and cut or mark."""
        if self.print_chain_marks_at_doc_end:
            self._send_chain_mark()
        self._send_skip_lines(self.min_leader)
        if self.support_auto_cut and not self.print_chain_marks_at_doc_end:
            self._send_cut()
        if self.ts_device:
            self._flush_ts()
            self._end_ts()

    def start_page(self) -> None:
        """Begin a label, separating it from the previous one."""
        self._last_dot_tab = None
        self._last_bytes_per_line = None
        self._page_line_count = 0
        self._empty_lines = 0
        self._raster_lines.clear()

        leader = self.normal_leader
        if self._page_no > 1:
            if self.cut_option == CutOption.CUT and self.support_auto_cut:
                self._send_skip_lines(self.min_leader)
                leader -= self.min_leader
                self._send_cut()
            else:
                self._send_chain_mark()
        else:
            leader -= self.min_leader  # already at the cutter

        if not self.continuous_paper:
            self._send_skip_lines(leader)

    def end_page(self) -> None:
        """Finish a label, padding it to its minimum length."""
        if self.auto_paper:
            self._page_line_count -= self._empty_lines

        if self.alignment == Alignment.LEFT:
            min_length = self.min_page_lines + (self.normal_leader - self.aligned_leader)
            if self._page_line_count < min_length:
                self._send_skip_lines(min_length - self._page_line_count)
            self._send_cached_lines()

        if not self.continuous_paper:
            trailer = self.normal_leader
            if self.alignment != Alignment.CENTER:
                trailer = self.aligned_leader
            if self.alignment != Alignment.LEFT:
                min_length = self.min_page_lines + (self.normal_leader - trailer)
                if self._page_line_count < min_length:
                    trailer += min_length - self._page_line_count
            if not self.auto_paper:
                trailer += self._empty_lines
            self._empty_lines = 0
            self._send_skip_lines(trailer)

        self._page_no += 1

    # raster data

    def process_raster_line(self, line: bytes) -> None:
        """Accept one raster line of the current label."""
        self._page_line_count += 1
        line = bytes(line[: self._max_bytes_per_line])
        if self.alignment == Alignment.LEFT:
            self._raster_lines.append(line)
        else:
            self._emit_line(line)

    def _emit_line(self, line: bytes) -> None:
        shifted = self._shift(line, self._shift_value(len(line)))
        leader, trailer = _blanks(shifted)

        if leader + trailer == len(shifted):
            self._empty_lines += 1
            return

        if self._empty_lines:
            self._send_skip_lines(self._empty_lines)
        self._empty_lines = 0

        if self._last_dot_tab != leader:
            self._send_dot_tab(leader)
            self._last_dot_tab = leader

        bytes_per_line = len(shifted) - leader - trailer
        if self._last_bytes_per_line != bytes_per_line:
            self._last_bytes_per_line = bytes_per_line
            self._send_bytes_per_line(bytes_per_line)

        self._send(bytes([SYN]))
        self._send(bytes(shifted[leader : leader + bytes_per_line]))

    def _send_cached_lines(self) -> None:
        for line in reversed(self._raster_lines):
            self._emit_line(bytes(reverse_bits(b) for b in reversed(line)))

    def _shift_value(self, line_size: int) -> int:
        return (self.max_printable_width - line_size * 8) // 2 + self.tape_alignment_offset

    def _shift(self, data: bytes, shift: int) -> bytearray:
        shifted = bytearray(self._max_bytes_per_line)
        if shift >= 0:
            _shift_right(data, shifted, shift)
        else:
            _shift_left(data, shifted, -shift)
        return shifted

    # command output

    def _send(self, data: bytes) -> None:
        if self.ts_device:
            self._ts_buffer += data
            log.debug("buffered command data, %d bytes", len(self._ts_buffer))
            if len(self._ts_buffer) > _TS_FLUSH_THRESHOLD:
                self._flush_ts()
        else:
            self.environment.write_data(bytes(data))

    def _flush_ts(self) -> None:
        if not self._ts_buffer:
            return
        size = len(self._ts_buffer) & 0xFFFFFFFF
        log.debug("flushing buffered command data, %d bytes", size)
        prefix = bytes([ESC, ord("Y"), 1]) + size.to_bytes(4, "big")
        self.environment.write_data(prefix + bytes(self._ts_buffer))
        self._ts_buffer.clear()

    def _end_ts(self) -> None:
        self.environment.write_data(bytes([ESC, ord("Y"), 0, 0, 0, 0, 0]))

    def _send_dot_tab(self, value: int) -> None:
        self._send(bytes([ESC, ord("B"), value & 0xFF]))

    def _send_cut(self) -> None:
        self._send(bytes([ESC, ord("E")]))

    def _send_chain_mark(self) -> None:
        width = self._max_bytes_per_line
        self._send(bytes([ESC, ord("B"), 0, ESC, ord("D"), width & 0xFF, SYN]))
        self._send(bytes([0x99]) * width)
        self._last_dot_tab = None
        self._last_bytes_per_line = None

    def _send_bytes_per_line(self, value: int) -> None:
        self._send(bytes([ESC, ord("D"), value & 0xFF]))

    def _send_skip_lines(self, count: int) -> None:
        if count > 0:
            self._send_bytes_per_line(0)
            self._send(bytes([SYN]) * count)
            self._last_bytes_per_line = None

    def _send_tape_color(self, color: TapeColor) -> None:
        self._send(bytes([ESC, ord("C"), int(color) & 0xFF]))


def _blanks(line: bytes | bytearray) -> tuple[int, int]:
    """Count zero bytes at the start and at the end of a line."""
    leader = len(line) - len(bytes(line).lstrip(b"\x00"))
    if leader == len(line):
        return leader, 0
    trailer = len(line) - len(bytes(line).rstrip(b"\x00"))
    return leader, trailer


def _shift_right(data: bytes, shifted: bytearray, shift: int) -> None:
    byte_offset, bits = divmod(shift, 8)
    room = len(shifted) - byte_offset
    if room <= 0 or not data:
        return
    shifted[byte_offset] = data[0] >> bits
    limit = min(len(data), room)
    for i in range(1, limit):
        shifted[byte_offset + i] = ((data[i - 1] << (8 - bits)) | (data[i] >> bits)) & 0xFF
    if max(limit, 1) < room:
        shifted[byte_offset + len(data)] = (data[-1] << (8 - bits)) & 0xFF


def _shift_left(data: bytes, shifted: bytearray, shift: int) -> None:
    room = len(shifted) - shift // 8
    bits = shift % 8
    if room <= 0 or not data:
        return
    limit = min(len(data) - 1, room)
    for i in range(limit):
        shifted[i] = ((data[i] << bits) | (data[i + 1] >> (8 - bits))) & 0xFF
    if limit < room:
        shifted[len(data) - 1] = (data[-1] << bits) & 0xFF