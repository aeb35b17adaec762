import io

import pytest

from dymolm.driver import (
    Alignment,
    CutOption,
    LabelManagerDriver,
    PrintEnvironment,
    TapeColor,
    request_status_command,
    reverse_bits,
)

ESC = 0x1B
SYN = 0x16


class ChunkEnvironment(PrintEnvironment):
    def __init__(self):
        super().__init__()
        self.chunks = []

    def write_data(self, data):
        self.chunks.append(bytes(data))
        super().write_data(data)


def cmd(*parts):
    out = bytearray()
    for part in parts:
        out += part.encode() if isinstance(part, str) else bytes([part])
    return bytes(out)


def skip(count):
    return cmd(ESC, "D", 0) + bytes([SYN]) * count


@pytest.fixture
def env():
    return PrintEnvironment()


@pytest.fixture
def driver(env):
    return LabelManagerDriver(env)


def test_request_status_command():
    assert request_status_command() == cmd(ESC, "A")


def test_reverse_bits_pinned_values():
    assert reverse_bits(0x01) == 0x80
    assert reverse_bits(0) == 0
    assert reverse_bits(0xFF) == 0xFF


@pytest.mark.parametrize("value", range(256))
def test_reverse_bits_round_trip(value):
    assert reverse_bits(reverse_bits(value)) == value


def test_environment_writes_to_stream():
    stream = io.BytesIO()
    environment = PrintEnvironment(stream)
    LabelManagerDriver(environment).start_doc()
    assert stream.getvalue() == bytes(12) + cmd(ESC, "C", 0)
    assert environment.written == b""


def test_start_doc_defaults(driver, env):
    driver.start_doc()
    assert bytes(env.written) == bytes(12) + cmd(ESC, "C", 0)


def test_start_doc_tape_color_and_width(driver, env):
    driver.tape_color = TapeColor.WHITE_ON_BLACK
    driver.max_printable_width = 128
    driver.start_doc()
    assert bytes(env.written) == bytes(128 // 8) + cmd(ESC, "C", int(TapeColor.WHITE_ON_BLACK))


def test_first_page_leader(driver, env):
    driver.start_page()
    assert bytes(env.written) == skip(driver.normal_leader - driver.min_leader)


def test_first_page_continuous_paper_sends_nothing(driver, env):
    driver.continuous_paper = True
    driver.start_page()
    assert bytes(env.written) == b""


def test_second_page_is_cut(driver, env):
    driver.start_page()
    driver.end_page()
    env.written.clear()
    driver.start_page()
    expected = skip(driver.min_leader) + cmd(ESC, "E") + skip(driver.normal_leader - driver.min_leader)
    assert bytes(env.written) == expected


def test_second_page_chain_marks(driver, env):
    driver.cut_option = CutOption.CHAIN_MARKS
    driver.start_page()
    driver.end_page()
    env.written.clear()
    driver.start_page()
    chain = cmd(ESC, "B", 0, ESC, "D", 12, SYN) + bytes([0x99]) * 12
    assert bytes(env.written) == chain + skip(driver.normal_leader)


def test_second_page_without_auto_cut_uses_chain_mark(driver, env):
    driver.support_auto_cut = False
    driver.start_page()
    driver.end_page()
    env.written.clear()
    driver.start_page()
    assert bytes(env.written).startswith(cmd(ESC, "B", 0, ESC, "D", 12, SYN))
    assert cmd(ESC, "E") not in bytes(env.written)


def test_full_width_line(driver, env):
    line = bytes([0xFF]) * 12
    driver.process_raster_line(line)
    assert bytes(env.written) == cmd(ESC, "B", 0, ESC, "D", len(line), SYN) + line


def test_narrow_line_is_centered(driver, env):
    line = bytes([0xFF]) * 10
    driver.process_raster_line(line)
    assert bytes(env.written) == cmd(ESC, "B", 1, ESC, "D", len(line), SYN) + line


def test_repeated_line_reuses_tab_and_length(driver, env):
    line = bytes([0xFF]) * 12
    driver.process_raster_line(line)
    driver.process_raster_line(line)
    head = cmd(ESC, "B", 0, ESC, "D", len(line))
    assert bytes(env.written) == head + bytes([SYN]) + line + bytes([SYN]) + line


def test_empty_lines_become_skip(driver, env):
    line = bytes([0xFF]) * 12
    for _ in range(3):
        driver.process_raster_line(bytes(12))
    assert bytes(env.written) == b""
    driver.process_raster_line(line)
    assert bytes(env.written) == skip(3) + cmd(ESC, "B", 0, ESC, "D", 12, SYN) + line


def test_long_line_is_truncated(driver, env):
    driver.process_raster_line(bytes([0xFF]) * 20)
    assert bytes(env.written) == cmd(ESC, "B", 0, ESC, "D", 12, SYN) + bytes([0xFF]) * 12


def test_positive_byte_offset_clips_line(driver, env):
    driver.tape_alignment_offset = 8
    line = bytes([0xFF]) * 12
    driver.process_raster_line(line)
    expected = cmd(ESC, "B", 1, ESC, "D", len(line) - 1, SYN) + line[:-1]
    assert bytes(env.written) == expected


def test_negative_byte_offset_clips_line(driver, env):
    driver.tape_alignment_offset = -8
    line = bytes([0xFF]) * 12
    driver.process_raster_line(line)
    expected = cmd(ESC, "B", 0, ESC, "D", len(line) - 1, SYN) + line[:-1]
    assert bytes(env.written) == expected


def test_bit_offset_shifts_data(driver, env):
    driver.tape_alignment_offset = 4
    driver.process_raster_line(bytes([0xFF]) * 12)
    assert bytes(env.written).endswith(bytes([SYN, 0x0F]) + bytes([0xFF]) * 11)


def test_end_page_pads_to_min_length(driver, env):
    driver.end_page()
    assert bytes(env.written) == skip(driver.normal_leader + driver.min_page_lines)


def test_end_page_continuous_paper_sends_nothing(driver, env):
    driver.continuous_paper = True
    driver.end_page()
    assert bytes(env.written) == b""


def test_left_alignment_caches_and_reverses(driver, env):
    driver.alignment = Alignment.LEFT
    driver.start_page()
    mark = len(env.written)
    first = bytes([0x0F]) * 12
    second = bytes([0x03]) * 12
    driver.process_raster_line(first)
    driver.process_raster_line(second)
    assert len(env.written) == mark
    driver.end_page()
    out = bytes(env.written[mark:])
    sent_first = bytes([SYN]) + bytes([reverse_bits(0x03)]) * 12
    sent_second = bytes([SYN]) + bytes([reverse_bits(0x0F)]) * 12
    assert out.index(sent_first) < out.index(sent_second)
    assert first not in out


def test_auto_paper_drops_trailing_empty_lines():
    outputs = []
    for auto in (False, True):
        env = PrintEnvironment()
        drv = LabelManagerDriver(env)
        drv.auto_paper = auto
        drv.min_page_lines = 0
        drv.start_page()
        drv.process_raster_line(bytes([0xFF]) * 12)
        for _ in range(5):
            drv.process_raster_line(bytes(12))
        drv.end_page()
        outputs.append(bytes(env.written))
    assert len(outputs[0]) - len(outputs[1]) == 5
    assert outputs[0].startswith(outputs[1][: -outputs[1][::-1].index(bytes([0x00]))])


def test_end_doc_cuts(driver, env):
    driver.end_doc()
    assert bytes(env.written) == skip(driver.min_leader) + cmd(ESC, "E")


def test_end_doc_without_auto_cut(driver, env):
    driver.support_auto_cut = False
    driver.end_doc()
    assert bytes(env.written) == skip(driver.min_leader)


def test_end_doc_chain_marks(driver, env):
    driver.print_chain_marks_at_doc_end = True
    driver.end_doc()
    chain = cmd(ESC, "B", 0, ESC, "D", 12, SYN) + bytes([0x99]) * 12
    assert bytes(env.written) == chain + skip(driver.min_leader)


def _run_job(driver, lines):
    driver.start_doc()
    driver.start_page()
    for line in lines:
        driver.process_raster_line(line)
    driver.end_page()
    driver.end_doc()


def _unframe(chunks):
    assert chunks[-1] == cmd(ESC, "Y", 0, 0, 0, 0, 0)
    payload = bytearray()
    for chunk in chunks[:-1]:
        assert chunk[:3] == cmd(ESC, "Y", 1)
        assert int.from_bytes(chunk[3:7], "big") == len(chunk) - 7
        payload += chunk[7:]
    return bytes(payload)


def test_ts_device_frames_output():
    lines = [bytes([0xAA]) * 12, bytes(12), bytes([0x55]) * 8]
    plain_env = PrintEnvironment()
    _run_job(LabelManagerDriver(plain_env), lines)

    ts_env = ChunkEnvironment()
    ts_driver = LabelManagerDriver(ts_env)
    ts_driver.ts_device = True
    _run_job(ts_driver, lines)

    assert len(ts_env.chunks) == 2
    assert _unframe(ts_env.chunks) == bytes(plain_env.written)


def test_ts_device_flushes_large_jobs():
    lines = [bytes([0xFF, 0x00]) * 6, bytes([0x00, 0xFF]) * 6] * 200
    plain_env = PrintEnvironment()
    _run_job(LabelManagerDriver(plain_env), lines)

    ts_env = ChunkEnvironment()
    ts_driver = LabelManagerDriver(ts_env)
    ts_driver.ts_device = True
    _run_job(ts_driver, lines)

    assert len(ts_env.chunks) >= 3
    assert _unframe(ts_env.chunks) == bytes(plain_env.written)


def test_ts_device_end_doc_with_nothing_buffered():
    env = ChunkEnvironment()
    drv = LabelManagerDriver(env)
    drv.ts_device = True
    drv.min_leader = 0
    drv.support_auto_cut = False
    drv.end_doc()
    assert env.chunks == [cmd(ESC, "Y", 0, 0, 0, 0, 0)]