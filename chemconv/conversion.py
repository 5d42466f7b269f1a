# chemconv/conversion.py
"""The conversion session: one input/output pair driven object by object."""

from __future__ import annotations

import enum
import io
import logging
import os
from collections import deque
from typing import IO, Any, Deque, Dict, List, Optional, Sequence, Tuple, Union

from .errors import (
    ConversionError,
    FormatReadError,
    FormatWriteError,
    HandleStateError,
    InvalidOptionError,
    NoDefaultFormatError,
    UnresolvedFormatError,
)
from .formats.base import Format
from .formats.registry import FormatRegistry, get_default_registry
from .options import OptionScope, OptionStore
from .pipeline import HandleState, ObjectHandle
from .reporter import ConversionStats
from .transforms import TransformStep, apply_transforms

logger = logging.getLogger(__name__)

FormatSpec = Union[str, Format]

GENERIC_OPTIONS: Dict[str, str] = {
    "f": 'f"N"  convert starting at object number N (1-based)',
    "l": 'l"N"  stop after object number N',
    "m": "m     batch only: write each object to its own output file",
    "j": "j     batch only: join all input files into one output file",
}


class SessionState(str, enum.Enum):
    IDLE = "idle"
    CONFIGURED = "configured"
    STREAMING = "streaming"
    DONE = "done"
    ERROR = "error"


class Conversion:
    """Read objects with one format and write them with another.

    The session does not own its streams. It owns every object an input
    format hands it through :meth:`add_object` until an output format takes
    it with :meth:`take_object`, or until the session discards it.

    Objects are processed strictly one at a time. The session reads one
    object ahead so that :meth:`is_last` is accurate while the current
    object is written.

    Args:
        in_stream: Already-open input stream.
        out_stream: Already-open output stream.
        registry: Registry used to resolve formats; defaults to the process
            registry.
        in_filename: Input file name, used for extension lookup and titles.
        out_filename: Output file name, used for extension lookup.
        transforms: Steps applied to every object before it is written.
    """

    def __init__(
        self,
        in_stream: Optional[IO] = None,
        out_stream: Optional[IO] = None,
        *,
        registry: Optional[FormatRegistry] = None,
        in_filename: Optional[str] = None,
        out_filename: Optional[str] = None,
        transforms: Optional[Sequence[TransformStep]] = None,
    ):
        self.registry = registry if registry is not None else get_default_registry()
        self.options = OptionStore()
        self.transforms: List[TransformStep] = list(transforms or [])
        self.stats = ConversionStats()

        self.start_number = 0
        self.end_number = 0
        self.more_files_to_come = False
        self.one_object_only = False

        self._in_stream: Optional[IO] = None
        self._out_stream: Optional[IO] = None
        self._in_format: Optional[Format] = None
        self._out_format: Optional[Format] = None
        self.in_filename = ""
        self.out_filename = out_filename or ""

        self._state = SessionState.IDLE
        self._pending: Deque[ObjectHandle] = deque()
        self._in_flight: Optional[ObjectHandle] = None
        self._index = 0
        self._count = 0
        self._output_index = 0
        self._exhausted = False
        self._current_ordinal = 0
        self._stream_start = 0
        self._output_ended = False
        self._r_inpos: Optional[int] = None
        self._w_inpos: Optional[int] = None
        self._api_write = False

        if in_stream is not None or in_filename:
            self.set_in_stream(in_stream, in_filename)
        if out_stream is not None:
            self.set_out_stream(out_stream, out_filename)

    # ---------------------- streams ---------------------- #

    @property
    def in_stream(self) -> Optional[IO]:
        return self._in_stream

    @property
    def out_stream(self) -> Optional[IO]:
        return self._out_stream

    def set_in_stream(self, stream: Optional[IO], filename: Optional[str] = None) -> None:
        """Attach a new input stream and reset per-stream bookkeeping."""
        self.discard_pending()
        self._in_stream = stream
        if filename is not None:
            self.in_filename = os.fspath(filename)
        self._index = 0
        self._exhausted = False
        self._current_ordinal = 0
        self._stream_start = 0
        self._r_inpos = None
        self._w_inpos = None

    def set_out_stream(self, stream: Optional[IO], filename: Optional[str] = None) -> None:
        """Attach a new output stream; the output index restarts at zero."""
        self._out_stream = stream
        if filename is not None:
            self.out_filename = os.fspath(filename)
        self._output_index = 0
        self._output_ended = False

    @property
    def title(self) -> str:
        """Default title for objects that carry none: the input file name."""
        return os.path.basename(self.in_filename) if self.in_filename else ""

    # ---------------------- formats ---------------------- #

    @property
    def in_format(self) -> Optional[Format]:
        return self._in_format

    @property
    def out_format(self) -> Optional[Format]:
        return self._out_format

    def _lookup(self, spec: FormatSpec) -> Format:
        if isinstance(spec, Format):
            fmt = spec
        else:
            fmt = self.registry.find_by_id(spec)
            if fmt is None:
                raise UnresolvedFormatError(f"Unknown format '{spec}'")
        return fmt.make_new_instance() or fmt

    def set_in_format(self, spec: FormatSpec) -> None:
        """Select the input format by identifier or instance.

        Raises:
            UnresolvedFormatError: If the identifier is unknown or the format
                cannot read.
        """
        fmt = self._lookup(spec)
        if not fmt.capabilities.readable:
            raise UnresolvedFormatError(f"Format '{spec}' is not readable")
        self._in_format = fmt
        self._mark_configured()

    def set_out_format(self, spec: FormatSpec) -> None:
        """Select the output format by identifier or instance.

        Raises:
            UnresolvedFormatError: If the identifier is unknown or the format
                cannot write.
        """
        fmt = self._lookup(spec)
        if not fmt.capabilities.writable:
            raise UnresolvedFormatError(f"Format '{spec}' is not writable")
        self._out_format = fmt
        self._mark_configured()

    def set_in_and_out_formats(self, in_spec: FormatSpec, out_spec: FormatSpec) -> None:
        self.set_in_format(in_spec)
        self.set_out_format(out_spec)

    def format_id(self, fmt: Optional[Format]) -> str:
        if fmt is None:
            return "<none>"
        return self.registry.id_of(fmt) or type(fmt).__name__

    def resolve_format(self, filename: str, side: str) -> Format:
        """Resolve a format from the extension of ``filename``, else the default.

        Returns the registered instance; ``set_in_format``/``set_out_format``
        create the per-use instance.

        Raises:
            NoDefaultFormatError: If neither yields a format.
        """
        fmt = self.registry.find_by_extension(filename) if filename else None
        if fmt is None:
            try:
                fmt = self.registry.default_format()
            except NoDefaultFormatError as exc:
                raise NoDefaultFormatError(
                    f"Cannot determine the {side} format for {filename or '<stream>'!r} "
                    "and no default format is registered"
                ) from exc
            logger.debug("Using default format for %s side", side)
        return fmt

    def _mark_configured(self) -> None:
        if self._state in (SessionState.IDLE, SessionState.DONE, SessionState.ERROR):
            if self._in_format is not None and self._out_format is not None:
                self._state = SessionState.CONFIGURED

    def _configure(self) -> None:
        if self._in_format is None:
            self.set_in_format(self.resolve_format(self.in_filename, "input"))
        if self._out_format is None:
            self.set_out_format(self.resolve_format(self.out_filename, "output"))
        if self._in_stream is None:
            raise ConversionError("No input stream has been set")
        if self._out_stream is None:
            raise ConversionError("No output stream has been set")
        self._state = SessionState.CONFIGURED

    @property
    def state(self) -> SessionState:
        return self._state

    # ---------------------- options ---------------------- #

    def is_option(
        self, opt: str, scope: OptionScope = OptionScope.OUTPUT
    ) -> Optional[str]:
        """Return the option text (``""`` without text) or ``None`` if unset."""
        return self.options.get(opt, scope)

    def add_option(
        self, opt: str, scope: OptionScope, text: Optional[str] = None
    ) -> None:
        self.options.set(opt, scope, text)

    def remove_option(self, opt: str, scope: OptionScope) -> bool:
        return self.options.remove(opt, scope)

    def set_options(self, spec: str, scope: OptionScope) -> None:
        """Set several single-character options from a string like ``ab"text"c``."""
        self.options.parse_compact(spec, scope)

    def _int_option(self, opt: str) -> Optional[int]:
        text = self.options.get(opt, OptionScope.GENERIC)
        if text is None:
            return None
        try:
            value = int(text)
        except ValueError:
            raise InvalidOptionError(
                f"Option '{opt}' needs an integer object number, got {text!r}"
            ) from None
        if value < 0:
            raise InvalidOptionError(f"Option '{opt}' must not be negative, got {value}")
        return value

    def _apply_generic_options(self) -> None:
        first = self._int_option("f")
        if first is not None:
            self.start_number = first
        last = self._int_option("l")
        if last is not None:
            if last < 1:
                raise InvalidOptionError(
                    f"Option 'l' needs an object number of at least 1, got {last}"
                )
            self.end_number = last
        if self.end_number and self.start_number > self.end_number:
            raise InvalidOptionError(
                f"First object {self.start_number} is after last object "
                f"{self.end_number}"
            )

    @staticmethod
    def describe_options() -> str:
        """Help text for the generic options understood by every session."""
        lines = ["Generic options:"]
        lines.extend(f"  {text}" for text in GENERIC_OPTIONS.values())
        return "\n".join(lines)

    # ---------------------- positions ---------------------- #

    def _tell(self) -> Optional[int]:
        stream = self._in_stream
        seekable = getattr(stream, "seekable", None)
        if seekable is None:
            return None
        try:
            return stream.tell() if seekable() else None
        except OSError:
            # text streams refuse tell() while being iterated line by line
            return None

    @property
    def read_position(self) -> Optional[int]:
        """Input position at which the object currently being read began."""
        return self._r_inpos

    @property
    def in_position(self) -> Optional[int]:
        """Input position at which the object currently being written began."""
        return self._w_inpos

    def source_text(self) -> Union[str, bytes]:
        """Return the raw input text of the object currently being written.

        Only available when the input stream is seekable; the stream
        position is restored afterwards.

        Raises:
            HandleStateError: If no object is being written.
            io.UnsupportedOperation: If positions were not recorded.
        """
        handle = self._in_flight
        if handle is None:
            raise HandleStateError("No object is being written")
        if handle.start is None or handle.end is None or self._in_stream is None:
            raise io.UnsupportedOperation("Input stream does not report positions")

        stream = self._in_stream
        saved = stream.tell()
        chunks = []
        try:
            stream.seek(handle.start)
            while stream.tell() < handle.end:
                line = stream.readline()
                if not line:
                    break
                chunks.append(line)
            empty = stream.read(0)
        finally:
            stream.seek(saved)
        return empty.join(chunks)

    # ---------------------- pipeline interface ---------------------- #

    def add_object(self, obj: Any) -> int:
        """Hand a freshly read object to the session.

        Called by input formats from ``read_chem_object``. Objects outside
        the configured start/end bounds, and objects vetoed by a transform,
        are discarded immediately, so pending objects are always written.

        Returns:
            Number of objects now pending.
        """
        if self._state is not SessionState.STREAMING:
            raise HandleStateError("add_object() called outside a conversion run")

        self._index += 1
        end = self._tell()
        handle = ObjectHandle(obj, ordinal=self._index, start=self._r_inpos, end=end)
        self._r_inpos = end
        self.stats.n_read += 1

        if self._index < self.start_number or (
            self.end_number and self._index > self.end_number
        ):
            handle.discard()
            self.stats.n_discarded += 1
            logger.debug("Object #%d is outside the requested range", handle.ordinal)
            return len(self._pending)

        try:
            transformed = apply_transforms(obj, self.transforms)
        except Exception as exc:
            handle.discard()
            if isinstance(exc, ConversionError):
                raise
            raise FormatReadError(
                f"Transform failed for object #{handle.ordinal}: {exc}", self._count
            ) from exc
        if transformed is None:
            handle.discard()
            self.stats.n_discarded += 1
        else:
            if transformed is not obj:
                handle.replace(transformed)
            self._pending.append(handle)
        return len(self._pending)

    def take_object(self) -> ObjectHandle:
        """Remove the next pending object (FIFO) for an output format.

        The caller must ``consume()`` or ``discard()`` the returned handle
        before returning from ``write_chem_object``.
        """
        if not self._pending:
            raise HandleStateError("No pending object to take")
        handle = self._pending.popleft()
        self._in_flight = handle
        self._current_ordinal = handle.ordinal
        self._w_inpos = handle.start
        return handle

    def discard_pending(self) -> int:
        """Explicitly drop every pending object; return how many were dropped."""
        dropped = 0
        while self._pending:
            self._pending.popleft().discard()
            dropped += 1
        if dropped:
            self.stats.n_discarded += dropped
            logger.debug("Discarded %d pending objects", dropped)
        return dropped

    def is_last(self) -> bool:
        """True while writing the final object of this run.

        Always False while ``more_files_to_come`` is set, so formats do not
        finalize their output between aggregated input files.
        """
        if self._api_write:
            return True
        if self.more_files_to_come:
            return False
        if self.one_object_only:
            return True
        if self._pending:
            return False
        return self._exhausted or self._end_reached()

    def is_first_input(self) -> bool:
        """True while processing the first object read from the current input stream.

        Objects passed over by ``skip_objects`` were never read, so after a
        skip the first object built counts as the first input.
        """
        return self._current_ordinal <= self._stream_start + 1

    @property
    def index(self) -> int:
        """Number of objects read from the current input stream."""
        return self._index

    @property
    def count(self) -> int:
        """Objects written by the current (or last) run, even after a failure."""
        return self._count

    @property
    def output_index(self) -> int:
        """Objects written to the current output stream so far."""
        return self._output_index

    def set_output_index(self, index: int) -> None:
        self._output_index = index

    def finish_output(self) -> None:
        """Let the output format terminate the current output stream.

        Runs ``write_end`` at most once per output stream. ``convert`` calls it
        itself unless ``more_files_to_come`` or ``one_object_only`` is set; in
        those cases the caller finishes the stream once all runs are done.

        Raises:
            FormatWriteError: If the output format failed to finish the stream.
        """
        if self._output_ended or self._out_format is None or self._out_stream is None:
            return
        self._output_ended = True
        try:
            self._out_format.write_end(self)
        except ConversionError:
            raise
        except Exception as exc:
            raise FormatWriteError(f"Failed to finish output: {exc}", self._count) from exc

    @property
    def exhausted(self) -> bool:
        """True once the input format reported that nothing is left."""
        return self._exhausted and not self._pending

    # ---------------------- conversion loop ---------------------- #

    def convert(self, in_stream: Optional[IO] = None, out_stream: Optional[IO] = None) -> int:
        """Convert objects until the input is exhausted or a bound is reached.

        Successive calls on the same input stream continue where the previous
        run stopped, which is how one-object-per-run splitting works.

        Returns:
            Number of objects written by this run.

        Raises:
            UnresolvedFormatError: If a format cannot be determined.
            FormatReadError: If reading or transforming an object failed.
            FormatWriteError: If writing an object failed.
        """
        if in_stream is not None:
            self.set_in_stream(in_stream)
        if out_stream is not None:
            self.set_out_stream(out_stream)
        self._count = 0
        try:
            self._configure()
            self._apply_generic_options()
            self._state = SessionState.STREAMING
            logger.info(
                "Converting %s -> %s%s",
                self.format_id(self._in_format),
                self.format_id(self._out_format),
                f" ({self.in_filename})" if self.in_filename else "",
            )
            if self._index == 0 and self.start_number > 1:
                self._skip_to_start()
            while not self._run_complete():
                try:
                    self._fill_pending()
                except FormatReadError:
                    # input ends at the failure; keep what was read before it
                    self._exhausted = True
                    while self._pending and not self._run_complete():
                        self._write_front(self._pending[0])
                    raise
                if not self._pending:
                    break
                self._write_front(self._pending[0])
            if not self.more_files_to_come and not self.one_object_only:
                self.finish_output()
        except ConversionError as exc:
            self._state = SessionState.ERROR
            if isinstance(exc, (FormatReadError, FormatWriteError)):
                exc.count = self._count
            self.discard_pending()
            self.stats.n_failed += 1
            logger.error(
                "Conversion stopped after %d objects: %s", self._count, exc
            )
            raise

        self._state = SessionState.DONE
        logger.info("%d objects converted", self._count)
        return self._count

    def _run_complete(self) -> bool:
        return self.one_object_only and self._count >= 1

    def _end_reached(self) -> bool:
        return bool(self.end_number) and self._index >= self.end_number

    def _input_bound_reached(self) -> bool:
        if self._end_reached():
            return True
        return self.one_object_only and self._count + len(self._pending) >= 1

    def _fill_pending(self) -> None:
        while (
            not self._exhausted
            and not self._input_bound_reached()
            and len(self._pending) < 2
        ):
            self._read_next()

    def _read_next(self) -> None:
        self._r_inpos = self._tell()
        self._current_ordinal = self._index + 1
        try:
            more = self._in_format.read_chem_object(self)
        except ConversionError:
            raise
        except Exception as exc:
            raise FormatReadError(
                f"Failed to read object #{self._current_ordinal}"
                f" from {self.title or '<stream>'}: {exc}",
                self._count,
            ) from exc
        if not more or self._in_format.capabilities.read_one_only:
            self._exhausted = True

    def _skip_to_start(self) -> None:
        n = self.start_number - 1
        try:
            skipped = self._in_format.skip_objects(n, self)
        except ConversionError:
            raise
        except Exception as exc:
            raise FormatReadError(f"Failed to skip {n} objects: {exc}") from exc
        if skipped:
            self._index += n
            self._stream_start = self._index
            logger.debug("Skipped %d objects", n)
        else:
            logger.debug("Format cannot skip; reading and discarding %d objects", n)

    def _release_in_flight(self) -> Tuple[Optional[ObjectHandle], bool]:
        handle, self._in_flight = self._in_flight, None
        leaked = handle is not None and handle.live
        if leaked:
            handle.discard()
            self.stats.n_discarded += 1
            logger.error(
                "%s left object #%d unconsumed; discarded",
                self.format_id(self._out_format),
                handle.ordinal,
            )
        return handle, leaked

    def _write_front(self, handle: ObjectHandle) -> None:
        try:
            self._out_format.write_chem_object(self)
        except Exception as exc:
            self._release_in_flight()
            if isinstance(exc, ConversionError):
                raise
            raise FormatWriteError(
                f"Failed to write object #{handle.ordinal}: {exc}", self._count
            ) from exc

        taken, leaked = self._release_in_flight()
        if taken is not handle:
            raise HandleStateError(
                f"{self.format_id(self._out_format)} did not take object "
                f"#{handle.ordinal} from the session"
            )
        if leaked:
            raise HandleStateError(
                f"{self.format_id(self._out_format)} returned without consuming "
                f"object #{handle.ordinal}"
            )
        if taken.state is HandleState.CONSUMED:
            self._count += 1
            self._output_index += 1
            self.stats.n_written += 1
        else:
            self.stats.n_discarded += 1

    # ---------------------- API interface ---------------------- #

    def read(self, in_stream: Optional[IO] = None) -> Optional[Any]:
        """Read a single object with the input format's API entry point.

        Returns:
            The object, or ``None`` at end of input.
        """
        if in_stream is not None:
            self.set_in_stream(in_stream)
        if self._in_format is None:
            self.set_in_format(self.resolve_format(self.in_filename, "input"))
        if self._in_stream is None:
            raise ConversionError("No input stream has been set")

        self._r_inpos = self._tell()
        self._current_ordinal = self._index + 1
        try:
            obj = self._in_format.read_object(self)
        except ConversionError:
            raise
        except Exception as exc:
            raise FormatReadError(f"Failed to read object: {exc}") from exc
        if obj is None:
            self._exhausted = True
        else:
            self._index += 1
        return obj

    def write(self, obj: Any, out_stream: Optional[IO] = None) -> None:
        """Write a single object with the output format's API entry point.

        The object is not consumed; the caller keeps ownership. The format's
        ``write_end`` runs after the object, so each call writes a complete
        document.
        """
        if out_stream is not None:
            self.set_out_stream(out_stream)
        if self._out_format is None:
            self.set_out_format(self.resolve_format(self.out_filename, "output"))
        if self._out_stream is None:
            raise ConversionError("No output stream has been set")

        self._api_write = True
        try:
            self._out_format.write_object(obj, self)
            self._output_index += 1
            self._out_format.write_end(self)
        except ConversionError:
            raise
        except Exception as exc:
            raise FormatWriteError(f"Failed to write object: {exc}") from exc
        finally:
            self._api_write = False

    def read_string(self, text: Union[str, bytes]) -> Optional[Any]:
        """Read one object from ``text``, which becomes the input stream."""
        stream = io.BytesIO(text) if isinstance(text, bytes) else io.StringIO(text)
        return self.read(stream)

    def write_string(self, obj: Any) -> Union[str, bytes]:
        """Write ``obj`` to a string, leaving the session's output stream intact."""
        if self._out_format is None:
            self.set_out_format(self.resolve_format(self.out_filename, "output"))
        binary = self._out_format.capabilities.write_binary
        buffer: Union[io.BytesIO, io.StringIO] = io.BytesIO() if binary else io.StringIO()

        saved_stream, saved_index = self._out_stream, self._output_index
        self._out_stream, self._output_index = buffer, 0
        try:
            self.write(obj)
        finally:
            self._out_stream, self._output_index = saved_stream, saved_index
        return buffer.getvalue()

    def __repr__(self) -> str:
        return (
            f"<Conversion {self.format_id(self._in_format)} -> "
            f"{self.format_id(self._out_format)} state={self._state.value}>"
        )
