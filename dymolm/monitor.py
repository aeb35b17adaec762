"""Status polling for LabelManager printers attached to the local machine."""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Iterable
from enum import Enum, IntEnum, auto
from typing import BinaryIO

from dymolm.driver import PrintEnvironment, TapeWidth, request_status_command

log = logging.getLogger(__name__)

_POLL_INTERVAL = 0.1


class StatusBits(IntEnum):
    """Bits of the first status byte reported by the printer."""

    CASSETTE_SIZE_T0 = 0x01
    CASSETTE_SIZE_T1 = 0x02
    CASSETTE_SIZE = 0x03
    GENERAL_ERROR = 0x04
    HEAD_OVERHEAT = 0x08
    SLOT_STATUS = 0x10
    BUSY = 0x20
    CASSETTE_PRESENT = 0x40
    AUTO_CUTTER = 0x80
    NO_POWER = 0x80
    INCORRECT_SIZE = 0xFF


class JobStatus(Enum):
    """Job state reported back to the print system."""

    OK = auto()
    PAPER_SIZE_ERROR = auto()
    ERROR = auto()
    HEAD_OVERHEAT = auto()
    SLOT_STATUS_ERROR = auto()
    BUSY = auto()
    PAPER_SIZE_UNDEFINED_ERROR = auto()


def job_status_for(status: int) -> JobStatus:
    """Map a printer status byte to the job status it stands for."""
    if status == StatusBits.INCORRECT_SIZE:
        return JobStatus.PAPER_SIZE_ERROR
    if status & StatusBits.GENERAL_ERROR:
        return JobStatus.ERROR
    if status & StatusBits.HEAD_OVERHEAT:
        return JobStatus.HEAD_OVERHEAT
    if status & StatusBits.SLOT_STATUS:
        return JobStatus.SLOT_STATUS_ERROR
    if status & StatusBits.BUSY:
        return JobStatus.BUSY
    if not status & StatusBits.CASSETTE_PRESENT:
        return JobStatus.PAPER_SIZE_UNDEFINED_ERROR
    return JobStatus.OK


_PRESENCE_ONLY = frozenset(
    name.casefold()
    for name in (
        "DYMO LabelWriter DUO Tape 128",
        "DYMO LabelWriter 450 DUO Tape",
        "DYMO LabelMANAGER 400",
        "DYMO LabelMANAGER PC II",
        "DYMO LabelMANAGER PC",
    )
)

_CASSETTE_TYPE_DEVICES = frozenset(
    name.casefold()
    for name in (
        "DYMO LabelMANAGER PnP",
        "DYMO LabelMANAGER 420P",
        "DYMO LabelManager 500TS",
    )
)

# cassette type reported in the second status byte; 0 means "not reported"
_CASSETTE_TYPES = {
    0x01: {TapeWidth.MM6},
    0x02: {TapeWidth.MM9},
    0x03: {TapeWidth.MM12},
    0x04: {TapeWidth.MM19},
    0x05: {TapeWidth.MM24},
}

_DUO_TAPE_SIZES = {
    0x00: {TapeWidth.MM6},
    0x01: {TapeWidth.MM9, TapeWidth.MM12},
    0x02: {TapeWidth.MM19},
    0x03: {TapeWidth.MM24},
}

_LABELPOINT_SIZES = {
    0x01: {TapeWidth.MM6},
    0x02: {TapeWidth.MM19, TapeWidth.MM24},
    0x03: {TapeWidth.MM9, TapeWidth.MM12},
}


def _second_byte(status: bytes) -> int:
    if len(status) < 2:
        raise ValueError("status reply is too short to hold the cassette type")
    return status[1] & 0xFF


def _cassette_type_matches(tape_width: TapeWidth | None, status: bytes) -> bool:
    cassette = _second_byte(status)
    return cassette == 0 or tape_width in _CASSETTE_TYPES.get(cassette, set())


def tape_size_matches(device_name: str, tape_width: TapeWidth | None, status: bytes) -> bool:
    """Tell whether the loaded cassette suits the tape width of the job."""
    name = device_name.casefold()
    present = bool(status[0] & StatusBits.CASSETTE_PRESENT)
    size_bits = status[0] & StatusBits.CASSETTE_SIZE

    if name in _PRESENCE_ONLY:
        return present
    if name == "dymo labelwriter duo tape":
        return present and tape_width in _DUO_TAPE_SIZES[size_bits]
    if name == "dymo labelmanager 450":
        return _cassette_type_matches(tape_width, status)
    if name == "dymo labelpoint 350":
        return tape_width in _LABELPOINT_SIZES.get(size_bits, set())
    if name in _CASSETTE_TYPE_DEVICES:
        return present and _cassette_type_matches(tape_width, status)
    return True


class StatusEnvironment(PrintEnvironment):
    """Print environment with a status channel back from the printer.

    Status replies are taken from a queue; the last queued reply keeps
    being returned once the others are used up, and an empty queue
    means the status could not be read.
    """

    def __init__(
        self,
        stream: BinaryIO | None = None,
        responses: Iterable[bytes] = (),
    ) -> None:
        super().__init__(stream)
        self.responses: list[bytes] = [bytes(r) for r in responses]
        self.job_statuses: list[JobStatus] = []

    def queue_response(self, data: bytes, count: int = 1) -> None:
        """Add a status reply to be returned by the next reads."""
        self.responses.extend([bytes(data)] * count)

    def write_data(self, data: bytes) -> None:
        """Deliver a block of printer data."""
        super().write_data(data)

    def read_data(self) -> bytes:
        """Return the next status reply, or empty bytes if none is available."""
        if not self.responses:
            return b""
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]

    def set_job_status(self, status: JobStatus) -> None:
        """Record the job status reported by the monitor."""
        log.info("job status: %s", status.name)
        self.job_statuses.append(status)


class LabelManagerLanguageMonitor:
    """Checks the printer's status before the first label of a document."""

    def __init__(
        self,
        environment: StatusEnvironment,
        use_sleep: bool = True,
        read_status_timeout: float = 10,
    ) -> None:
        self.environment = environment
        self.use_sleep = use_sleep
        self.read_status_timeout = read_status_timeout
        self.device_name = ""
        self.tape_width: TapeWidth | None = None
        self.page_data = bytearray()
        self.pages_finished = 0
        self._first_page = True

    def start_doc(self) -> None:
        """Begin a document."""
        self._first_page = True
        self.pages_finished = 0

    def end_doc(self) -> int:
        """Finish a document and return the number of labels it held."""
        log.debug("end of document after %d page(s)", self.pages_finished)
        self._first_page = True
        return self.pages_finished

    def start_page(self) -> None:
        """Begin a label; the status is checked before the first one."""
        log.debug("start of page")
        if self._first_page:
            self.check_status()
        self._first_page = False

    def end_page(self) -> None:
        """Finish a label and count it."""
        self.pages_finished += 1
        log.debug("end of page %d", self.pages_finished)

    def process_data(self, data: bytes) -> None:
        """Keep printer data of the current label."""
        self.page_data += data

    def is_local(self) -> bool:
        """Tell whether the printer is attached to a local USB port."""
        return os.environ.get("DEVICE_URI", "").startswith("usb://")

    def check_status(self) -> None:
        """Poll the printer until it is ready, reporting problems meanwhile."""
        self._report(StatusBits.CASSETTE_PRESENT)
        if not self.is_local():
            return

        while True:
            began = time.monotonic()
            status = self._read_status()
            while (not status or status[0] & StatusBits.BUSY) and self._elapsed(began) < self.read_status_timeout:
                if self.use_sleep:
                    time.sleep(_POLL_INTERVAL)
                status = self._read_status()

            if self._elapsed(began) >= self.read_status_timeout:
                log.debug("timed out reading printer status")
                self._report(StatusBits.BUSY)
                break

            first = status[0]
            if first & StatusBits.CASSETTE_PRESENT and not tape_size_matches(
                self.device_name, self.tape_width, status
            ):
                first = StatusBits.INCORRECT_SIZE

            if (
                first == StatusBits.INCORRECT_SIZE
                or first & StatusBits.GENERAL_ERROR
                or first & StatusBits.HEAD_OVERHEAT
                or first & StatusBits.SLOT_STATUS
                or not first & StatusBits.CASSETTE_PRESENT
            ):
                self._report(first)
            else:
                self._report(StatusBits.CASSETTE_PRESENT)
                break

        self.page_data.clear()

    @staticmethod
    def _elapsed(began: float) -> float:
        return time.monotonic() - began

    def _read_status(self) -> bytes:
        self.environment.write_data(request_status_command())
        status = bytes(self.environment.read_data())
        log.debug("status read returned %d bytes", len(status))
        return status

    def _report(self, status: int) -> None:
        self.environment.set_job_status(job_status_for(status))