# dymolm

Builds the byte stream that DYMO LabelManager and LabelWriter DUO tape
printers understand, checks the printer's status before a job, and applies
model-specific settings and job options to the command generator.

The package has no dependencies beyond the standard library.

## Generating printer commands

`LabelManagerDriver` in `dymolm.driver` turns 1-bit raster lines (8 dots
per byte) into printer commands. It hands every block of output to
`environment.write_data(data)`. `PrintEnvironment` is such an environment:
given a binary stream it writes to it and flushes after each block; given
none it collects the bytes in its `written` attribute.

```python
from dymolm.driver import Alignment, LabelManagerDriver, PrintEnvironment

env = PrintEnvironment()            # or PrintEnvironment(open("out.bin", "wb"))
driver = LabelManagerDriver(env)
driver.alignment = Alignment.CENTER

driver.start_doc()
driver.start_page()
for line in raster_lines:
    driver.process_raster_line(line)
driver.end_page()
driver.end_doc()

printer_bytes = bytes(env.written)
```

What the driver does:

- `start_doc()` clears the print head and selects the tape colour;
  `end_doc()` optionally prints a chain mark, feeds to the cutter and cuts
  when the device supports it.
- `start_page()` separates a label from the previous one by a cut or a chain
  mark and feeds the leader; `end_page()` feeds the trailer, padding short
  labels to the model's minimum length.
- `process_raster_line(line)` centres each line on the print head (plus
  `tape_alignment_offset`), drops leading and trailing blank bytes, and
  collapses runs of empty lines into a single feed. Lines wider than the
  printable width are cut off. With `Alignment.LEFT` the lines of a label
  are held until `end_page()` and then sent in reverse order, each mirrored.
- With `ts_device` set, output is buffered and sent in length-prefixed
  blocks (`ESC 'Y' 1` and a 4-byte big-endian size) whenever the buffer
  passes 4096 bytes and at the end of the document, which ends with
  `ESC 'Y' 0 0 0 0 0`.

Job and device settings are plain attributes of the driver:
`cut_option`, `alignment`, `continuous_paper`,
`print_chain_marks_at_doc_end`, `auto_paper`, `tape_alignment_offset`,
`tape_color`, `device_name`, `support_auto_cut`, `ts_device`,
`max_printable_width`, `normal_leader`, `min_leader`, `aligned_leader` and
`min_page_lines`.

The enumerations `TapeWidth`, `CutOption`, `Alignment` and `TapeColor`
describe these settings. `request_status_command()` returns the status query
(`ESC 'A'`), and `reverse_bits(value)` mirrors the bits of one byte.

## Device profiles and options

`dymolm.options` holds a `DeviceProfile` (print width, leader lengths,
minimum label length, cutter support) for each supported model.
`profile_for(model_name)` looks one up without regard to case and returns
`None` for an unknown model; `DeviceProfile.apply(driver)` sets the driver
up for it.

```python
from dymolm.options import apply_page_options, apply_ppd_options

apply_ppd_options(
    driver,
    {
        "DymoCutOptions": "Cut",              # or "ChainMarks"
        "DymoLabelAlignment": "Left",         # "Center", "Left", "Right"
        "DymoPrintChainMarksAtDocEnd": "0",
        "DymoContinuousPaper": "0",
        "DymoTapeColor": "0",
    },
    "DYMO LabelMANAGER 450",
)
apply_page_options(driver, media_type)
```

`apply_ppd_options` takes the marked choices as a mapping; a missing
alignment, chain-mark, continuous-paper or tape-colour choice is logged as a
warning. `apply_page_options` reads the tape width from the low byte of the
page media type and automatic paper from the remaining bits, and sets the
per-model tape-centre correction.

`apply_ppd_options_with_monitor` and `apply_page_options_with_monitor` do
the same and also give a status monitor the device name and tape width.

## Status checking

`LabelManagerLanguageMonitor` in `dymolm.monitor` checks the printer before
the first label of each document (`start_page()` calls `check_status()`).
It first reports `JobStatus.OK`; only when the `DEVICE_URI` environment
variable starts with `usb://` does it query the printer, polling while the
reply is missing or busy until `read_status_timeout` seconds pass (sleeping
briefly between polls when `use_sleep` is true). A timeout is reported as
`JobStatus.BUSY`; an error, a missing cassette or a cassette that does not
suit the job's tape width is reported and the printer polled again until
it is ready. `end_doc()` returns the number of labels finished.

The monitor's environment follows `StatusEnvironment`: `write_data`,
`read_data` and `set_job_status`. `StatusEnvironment` itself answers status
reads from a queue (`queue_response(data, count)`); the last reply repeats
once the others are used up, and an empty queue means the status could not
be read. Reported statuses are collected in `job_statuses`.

`job_status_for(status)` and `tape_size_matches(device_name, tape_width,
status)` expose the status decoding on their own; `StatusBits` names the
bits of the status byte.

## What the package does not do

There is no command-line program or print-system filter: the package does
not read raster files or PPD files, and it does not talk to a USB device by
itself. The caller supplies raster lines, the marked option choices as a
mapping, the page media type, and an environment object that carries bytes
to and from the printer.