# chemconv/batch.py
"""Multi-file conversion: one-to-one, aggregated and split output files."""

from __future__ import annotations

import io
import logging
import os
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import IO, Dict, List, Optional, Sequence, Union

from tqdm import tqdm

from .conversion import Conversion
from .errors import ConversionError, FileOpenError, InvalidOptionError
from .formats.base import Format
from .options import OptionScope
from .reporter import ConversionStats, FileStats

logger = logging.getLogger(__name__)

WILDCARD = "*"

PathLike = Union[str, "os.PathLike[str]"]


def batch_file_name(template: PathLike, input_file: PathLike) -> str:
    """Replace the first wildcard in ``template`` with the base name of ``input_file``.

    The base name has its directory and its last extension removed, so
    ``batch_file_name("out_*.mol", "data/a.xyz")`` gives ``"out_a.mol"``.
    A template without a wildcard is returned unchanged.
    """
    template = os.fspath(template)
    if WILDCARD not in template:
        return template
    stem = os.path.splitext(os.path.basename(os.fspath(input_file)))[0]
    return template.replace(WILDCARD, stem, 1)


def incremented_file_name(template: PathLike, count: int) -> str:
    """Replace the first wildcard in ``template`` with ``count``."""
    template = os.fspath(template)
    if WILDCARD not in template:
        return template
    return template.replace(WILDCARD, str(count), 1)


@dataclass
class FileError:
    path: str
    error: BaseException

    def __str__(self) -> str:
        return f"{self.path}: {self.error}"


@dataclass
class BatchResult:
    """Outcome of :func:`full_convert`.

    Attributes:
        output_files: Output paths actually written, in creation order.
        counts: Objects written per input file.
        errors: Files that failed to open or convert; the batch carried on.
        stats: Counters for the whole batch, with one entry per input file.
    """

    output_files: List[str] = field(default_factory=list)
    counts: Dict[str, int] = field(default_factory=dict)
    errors: List[FileError] = field(default_factory=list)
    stats: ConversionStats = field(default_factory=ConversionStats)

    @property
    def ok(self) -> bool:
        return not self.errors

    @property
    def total(self) -> int:
        return sum(self.counts.values())


def _open_input(path: str, fmt: Format) -> IO:
    mode = "rb" if fmt.capabilities.read_binary else "r"
    encoding = None if "b" in mode else "utf-8"
    try:
        return open(path, mode, encoding=encoding)
    except OSError as exc:
        raise FileOpenError(path, exc) from exc


def _open_output(path: str, fmt: Format) -> IO:
    mode = "wb" if fmt.capabilities.write_binary else "w"
    encoding = None if "b" in mode else "utf-8"
    try:
        return open(path, mode, encoding=encoding)
    except OSError as exc:
        raise FileOpenError(path, exc) from exc


class _BatchRun:
    """State shared by the three topologies of one :func:`full_convert` call."""

    def __init__(self, session: Conversion, input_files: Sequence[PathLike], progress: bool):
        self.session = session
        self.input_files = [os.fspath(p) for p in input_files]
        self.progress = progress
        self.result = BatchResult()
        self._explicit_in = session.in_format is not None

    def files(self):
        return tqdm(
            self.input_files,
            desc="Converting",
            unit="file",
            disable=not self.progress or len(self.input_files) < 2,
        )

    def add_output(self, path: str) -> None:
        if path not in self.result.output_files:
            self.result.output_files.append(path)
            logger.info("Wrote %s", path)

    def open_input(self, path: str) -> IO:
        """Select the input format for ``path`` and open it."""
        session = self.session
        if not self._explicit_in:
            session.set_in_format(session.resolve_format(path, "input"))
        stream = _open_input(path, session.in_format)
        session.set_in_stream(stream, path)
        logger.info("Reading %s", path)
        return stream

    def record_error(self, path: str, exc: ConversionError) -> None:
        if isinstance(exc, FileOpenError):
            logger.warning("Skipping %s: cannot open file (%s)", path, exc.reason)
        else:
            logger.warning("Conversion of %s failed: %s", path, exc)
        self.result.errors.append(FileError(path, exc))
        file_stats = self.result.stats.per_file.setdefault(path, FileStats(name=path))
        file_stats.error = str(exc)

    def record_counts(self, path: str, before: ConversionStats, written: int) -> None:
        after = self.session.stats
        read = after.n_read - before.n_read
        discarded = after.n_discarded - before.n_discarded

        stats = self.result.stats
        stats.n_read += read
        stats.n_written += written
        stats.n_discarded += discarded
        file_stats = stats.per_file.setdefault(path, FileStats(name=path))
        file_stats.read += read
        file_stats.written += written
        file_stats.discarded += discarded
        self.result.counts[path] = self.result.counts.get(path, 0) + written

    def snapshot(self) -> ConversionStats:
        stats = self.session.stats
        return ConversionStats(
            n_read=stats.n_read,
            n_written=stats.n_written,
            n_discarded=stats.n_discarded,
            n_failed=stats.n_failed,
        )

    def convert_file(self, path: str, convert) -> None:
        """Open ``path`` and run ``convert(path)``, isolating its failures."""
        before = self.snapshot()
        written = 0
        try:
            with self.open_input(path):
                written = convert(path)
        except ConversionError as exc:
            written = getattr(exc, "count", written)
            self.record_error(path, exc)
            self.result.stats.n_failed += 1
        self.record_counts(path, before, written)

    # ---------------------- topologies ---------------------- #

    def one_to_one(self, template: str) -> None:
        session = self.session

        def convert(path: str) -> int:
            out_path = batch_file_name(template, path)
            with _open_output(out_path, session.out_format) as out:
                session.set_out_stream(out, out_path)
                try:
                    n = session.convert()
                finally:
                    session.finish_output()
            self.add_output(out_path)
            return n

        for path in self.files():
            self.convert_file(path, convert)

    def aggregate(self, template: Optional[str]) -> None:
        session = self.session
        last = len(self.input_files) - 1

        with ExitStack() as stack:
            if template is not None:
                out = stack.enter_context(_open_output(template, session.out_format))
                session.set_out_stream(out, template)
            elif session.out_stream is None:
                raise ConversionError("Aggregation without an output file needs an output stream")
            try:
                for i, path in enumerate(self.files()):
                    session.more_files_to_come = i < last
                    self.convert_file(path, lambda _path: session.convert())
            finally:
                session.more_files_to_come = False
            # the last file may have failed before its run could end the output
            session.finish_output()
        if template is not None:
            self.add_output(template)

    def split(self, template: str) -> None:
        session = self.session
        binary = session.out_format.capabilities.write_binary
        counter = 0

        def convert(path: str) -> int:
            nonlocal counter
            written = 0
            while True:
                buffer: Union[io.BytesIO, io.StringIO] = (
                    io.BytesIO() if binary else io.StringIO()
                )
                out_path = incremented_file_name(template, counter + 1)
                session.set_out_stream(buffer, out_path)
                try:
                    n = session.convert()
                except ConversionError as exc:
                    exc.count = written
                    raise
                if n == 0:
                    return written
                session.finish_output()
                counter += 1
                written += n
                with _open_output(out_path, session.out_format) as out:
                    out.write(buffer.getvalue())
                self.add_output(out_path)

        saved = session.one_object_only
        session.one_object_only = True
        try:
            for path in self.files():
                self.convert_file(path, convert)
        finally:
            session.one_object_only = saved


def full_convert(
    session: Conversion,
    input_files: Sequence[PathLike],
    output_template: Optional[PathLike] = None,
    *,
    split: Optional[bool] = None,
    aggregate: Optional[bool] = None,
    progress: bool = False,
) -> BatchResult:
    """Convert several input files with one session.

    The topology is chosen from the arguments and the session options:

    - split (option ``m``): each object goes to its own output file named by
      substituting a 1-based counter for the wildcard in ``output_template``.
      A format that can only write one object per file with a wildcard
      template and a single input file also implies splitting.
    - aggregate (option ``j``, or no ``output_template``): every input file
      feeds one output, ``output_template`` itself or the session's output
      stream. ``more_files_to_come`` is set for all files but the last.
    - otherwise one-to-one: each input file gets the output named by
      :func:`batch_file_name`. A template without a wildcard is reused, so
      later files overwrite earlier ones.

    Input files that cannot be opened or fail to convert are logged,
    recorded in the result and skipped.

    Args:
        session: Session carrying formats, options and transforms. Its input
            format, if set, is used for every file; otherwise it is resolved
            from each file's extension.
        input_files: Input file paths, in order.
        output_template: Output path, optionally containing ``*``.
        split: Force split mode on or off; ``None`` defers to option ``m``.
        aggregate: Force aggregation on or off; ``None`` defers to option ``j``.
        progress: Show a tqdm progress bar over the input files.

    Raises:
        InvalidOptionError: If split and aggregation are both requested, or
            splitting is requested without an output template.
        UnresolvedFormatError: If the output format cannot be determined.
    """
    template = os.fspath(output_template) if output_template is not None else None
    if split is None:
        split = session.is_option("m", OptionScope.GENERIC) is not None
    if split and template is None:
        raise InvalidOptionError("Split mode needs an output file template")
    if aggregate is None:
        aggregate = session.is_option("j", OptionScope.GENERIC) is not None or template is None

    if session.out_format is None:
        session.set_out_format(session.resolve_format(template or session.out_filename, "output"))
    if (
        not split
        and not aggregate
        and session.out_format.capabilities.write_one_only
        and len(input_files) == 1
        and WILDCARD in (template or "")
    ):
        split = True

    if split and aggregate:
        raise InvalidOptionError("Split and aggregate modes cannot be combined")

    run = _BatchRun(session, input_files, progress)
    if split:
        logger.info("Splitting %d file(s) into %s", len(run.input_files), template)
        run.split(template)
    elif aggregate:
        logger.info("Joining %d file(s) into %s", len(run.input_files), template or "<stream>")
        run.aggregate(template)
    else:
        run.one_to_one(template)

    result = run.result
    logger.info(
        "%d objects converted into %d file(s), %d file error(s)",
        result.total,
        len(result.output_files),
        len(result.errors),
    )
    return result
