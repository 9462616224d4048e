"""A single HTTP transfer driven by a table of options."""

from __future__ import annotations

import codecs
import contextlib
import enum
import io
import os
import sys
import warnings
from dataclasses import dataclass
from http.cookiejar import MozillaCookieJar
from typing import Any, BinaryIO, ClassVar, Iterator, MutableMapping
from urllib.parse import quote

import requests
from requests.structures import CaseInsensitiveDict

NO_EFFECTIVE_URL = "NO_EFFECIVE_URL"
_CHUNK = 16384
_FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


class Option(enum.Enum):
    """Settings a transfer understands."""

    URL = enum.auto()
    CUSTOMREQUEST = enum.auto()
    POST = enum.auto()
    PUT = enum.auto()
    UPLOAD = enum.auto()
    POSTFIELDS = enum.auto()
    POSTFIELDSIZE = enum.auto()
    INFILESIZE = enum.auto()
    INFILESIZE_LARGE = enum.auto()
    HTTPHEADER = enum.auto()
    USERAGENT = enum.auto()
    FOLLOWLOCATION = enum.auto()
    MAXREDIRS = enum.auto()
    PROXY = enum.auto()
    SSL_VERIFYHOST = enum.auto()
    SSL_VERIFYPEER = enum.auto()
    COOKIEFILE = enum.auto()
    COOKIEJAR = enum.auto()
    COOKIELIST = enum.auto()
    # Callback targets; the transfer itself always receives the data.
    HEADERDATA = enum.auto()
    WRITEDATA = enum.auto()
    READDATA = enum.auto()


_DEFAULTS: dict[Option, Any] = {
    Option.SSL_VERIFYHOST: False,
    Option.SSL_VERIFYPEER: False,
    Option.MAXREDIRS: -1,
}

_MESSAGES = {
    0: "No error",
    1: "Unsupported protocol",
    3: "URL using bad/illegal format or missing URL",
    5: "Couldn't resolve proxy name",
    6: "Couldn't resolve host name",
    7: "Couldn't connect to server",
    23: "Failed writing received data to disk/application",
    26: "Failed to open/read local data from file/application",
    28: "Timeout was reached",
    35: "SSL connect error",
    47: "Number of redirects hit maximum amount",
    56: "Failure when receiving data from the peer",
}


@dataclass(frozen=True)
class Result:
    """Outcome code of a transfer."""

    code: int = 0

    OK: ClassVar[int] = 0
    UNSUPPORTED_PROTOCOL: ClassVar[int] = 1
    URL_MALFORMAT: ClassVar[int] = 3
    COULDNT_RESOLVE_PROXY: ClassVar[int] = 5
    COULDNT_RESOLVE_HOST: ClassVar[int] = 6
    COULDNT_CONNECT: ClassVar[int] = 7
    WRITE_ERROR: ClassVar[int] = 23
    READ_ERROR: ClassVar[int] = 26
    OPERATION_TIMEDOUT: ClassVar[int] = 28
    SSL_CONNECT_ERROR: ClassVar[int] = 35
    TOO_MANY_REDIRECTS: ClassVar[int] = 47
    RECV_ERROR: ClassVar[int] = 56

    @property
    def text(self) -> str:
        return _MESSAGES.get(self.code, "Unknown error")

    def is_ok(self) -> bool:
        return self.code == self.OK

    def raise_for_error(self, detail: str = "") -> None:
        """Raise TransferError unless the result is OK."""
        if not self.is_ok():
            raise TransferError(self, detail)


class TransferError(Exception):
    """A transfer failed; carries the result code and a detail message."""

    def __init__(self, result: Result, detail: str = "") -> None:
        super().__init__(detail or result.text)
        self.result = result
        self.detail = detail


def _as_bytes(value: bytes | bytearray | str) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


def _as_text(value: bytes | bytearray | str) -> str:
    return value if isinstance(value, str) else bytes(value).decode("utf-8", "replace")


def parse_header_line(line: bytes | str) -> tuple[bytes, bytes] | None:
    """Split a reply header line into name and trimmed value, or None without a colon."""
    data = _as_bytes(line)
    colon = data.find(b":")
    if colon == -1:
        return None
    return data[:colon], data[colon + 1:].strip()


def _request_header(line: bytes | str) -> tuple[str, str | None] | None:
    text = _as_text(line)
    colon = text.find(":")
    if colon != -1:
        value = text[colon + 1:].strip()
        return text[:colon].strip(), value or None
    if text.rstrip().endswith(";"):
        return text.rstrip()[:-1].strip(), ""
    return None


def _stream_size(stream: Any) -> int:
    size = getattr(stream, "size", None)
    if callable(size):
        return size()
    position = stream.tell()
    end = stream.seek(0, io.SEEK_END)
    stream.seek(position)
    return end


def _classify(exc: requests.RequestException) -> int:
    exceptions = requests.exceptions
    if isinstance(exc, exceptions.TooManyRedirects):
        return Result.TOO_MANY_REDIRECTS
    if isinstance(exc, exceptions.ProxyError):
        return Result.COULDNT_RESOLVE_PROXY
    if isinstance(exc, exceptions.SSLError):
        return Result.SSL_CONNECT_ERROR
    if isinstance(exc, exceptions.Timeout):
        return Result.OPERATION_TIMEDOUT
    if isinstance(exc, exceptions.InvalidSchema):
        return Result.UNSUPPORTED_PROTOCOL
    if isinstance(exc, (exceptions.MissingSchema, exceptions.InvalidURL)):
        return Result.URL_MALFORMAT
    if isinstance(exc, exceptions.ConnectionError):
        message = str(exc)
        if "resolve" in message or "Name or service not known" in message:
            return Result.COULDNT_RESOLVE_HOST
        return Result.COULDNT_CONNECT
    return Result.RECV_ERROR


class _Upload:
    """Request body that pulls its data through Transfer.read_chunk."""

    def __init__(self, transfer: Transfer, length: int) -> None:
        self._transfer = transfer
        self._length = length

    def __iter__(self) -> Iterator[bytes]:
        while chunk := self._transfer.read_chunk(_CHUNK):
            yield chunk

    def __len__(self) -> int:
        return self._length


class Transfer:
    """One HTTP exchange configured by options, collecting body and headers."""

    def __init__(self) -> None:
        self.request_options: dict[Option, Any] = {}
        self.reply_headers: list[tuple[bytes, bytes]] = []
        self.out_file: str | os.PathLike[str] | None = None
        self.inp_file: BinaryIO | str | os.PathLike[str] | None = None
        self.reply_url = ""
        self.payload_chunk_size = 0
        self.payload_file_position = 0
        self.text_codec: str | None = None
        self.error_buffer = ""
        self._buffer = bytearray()
        self._last = Result()
        self._source: Any = None
        self._session = requests.Session()
        self._session.headers.clear()
        self._session.headers["Accept"] = "*/*"

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> Transfer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def buffer(self) -> bytes:
        """Body received by the last transfer when no output file is set."""
        return bytes(self._buffer)

    def last_error(self) -> Result:
        return self._last

    def escape(self, text: str) -> str:
        """Percent-encode everything except unreserved characters."""
        return quote(text.encode("utf-8"), safe="")

    def record_header(self, line: bytes | str) -> tuple[bytes, bytes] | None:
        """Store a reply header line; lines without a colon are ignored."""
        pair = parse_header_line(line)
        if pair is not None:
            self.reply_headers.append(pair)
        return pair

    def read_chunk(self, size: int) -> bytes:
        """Read the next piece of upload data, staying inside the payload chunk."""
        stream = self._source if self._source is not None else self.inp_file
        if stream is None or isinstance(stream, (str, os.PathLike)):
            return b""
        position = stream.tell()
        if self.payload_chunk_size == 0:
            count = min(size, _stream_size(stream) - position)
        else:
            relative = position - self.payload_file_position
            count = min(size, self.payload_chunk_size - relative)
        if count <= 0:
            return b""
        return stream.read(count)

    def exec(self, options: MutableMapping[Option, Any] | None = None) -> str:
        """Perform the transfer and return the body as text."""
        if options is None:
            options = self.request_options
        for key, value in _DEFAULTS.items():
            options.setdefault(key, value)
        settings = {Option(key): value for key, value in options.items()}

        self._buffer = bytearray()
        self.error_buffer = ""
        self.reply_url = ""
        try:
            with contextlib.ExitStack() as stack:
                sink = self._open_output(stack)
                stack.enter_context(self._opened_input())
                self._perform(settings, sink)
            self._last = Result()
        except TransferError as exc:
            self._last = exc.result
            self.error_buffer = exc.detail or exc.result.text

        if not self.reply_url:
            url = settings.get(Option.URL)
            self.reply_url = _as_text(url) if url else NO_EFFECTIVE_URL

        raw = bytes(self._buffer).split(b"\0", 1)[0]
        encoding = "utf-8"
        if self.text_codec:
            try:
                encoding = codecs.lookup(self.text_codec).name
            except LookupError:
                pass
        return raw.decode(encoding, errors="replace")

    def _open_output(self, stack: contextlib.ExitStack) -> BinaryIO | None:
        if self.out_file is None:
            return None
        try:
            return stack.enter_context(open(self.out_file, "wb"))
        except OSError as exc:
            raise TransferError(Result(Result.WRITE_ERROR), str(exc)) from exc

    @contextlib.contextmanager
    def _opened_input(self) -> Iterator[None]:
        target = self.inp_file
        if target is None:
            yield
            return
        if isinstance(target, (str, os.PathLike)):
            try:
                stream: Any = open(target, "rb")
            except OSError as exc:
                raise TransferError(Result(Result.READ_ERROR), str(exc)) from exc
            closer = stream.close
        else:
            stream = target
            opener = getattr(stream, "open", None)
            if callable(opener):
                opener()
                closer = stream.close
            else:
                stream.seek(0)
                closer = None
        if self.payload_chunk_size:
            stream.seek(self.payload_file_position)
        self._source = stream
        try:
            yield
        finally:
            self._source = None
            if closer is not None:
                closer()

    def _apply_cookie_command(self, settings: dict[Option, Any]) -> None:
        command = settings.get(Option.COOKIELIST)
        if not command:
            return
        command = _as_text(command).upper()
        if command == "ALL":
            self._session.cookies.clear()
        elif command == "SESS":
            self._session.cookies.clear_session_cookies()
        elif command == "FLUSH":
            self._save_cookies(settings)
        elif command == "RELOAD":
            self._load_cookies(settings)

    def _load_cookies(self, settings: dict[Option, Any]) -> None:
        path = settings.get(Option.COOKIEFILE)
        if not path:
            return
        jar = MozillaCookieJar()
        try:
            jar.load(os.fspath(path), ignore_discard=True, ignore_expires=True)
        except OSError:
            return
        for cookie in jar:
            self._session.cookies.set_cookie(cookie)

    def _save_cookies(self, settings: dict[Option, Any]) -> None:
        path = settings.get(Option.COOKIEJAR)
        if not path:
            return
        jar = MozillaCookieJar(os.fspath(path))
        for cookie in self._session.cookies:
            jar.set_cookie(cookie)
        with contextlib.suppress(OSError):
            jar.save(ignore_discard=True, ignore_expires=True)

    def _method(self, settings: dict[Option, Any]) -> str:
        custom = settings.get(Option.CUSTOMREQUEST)
        if custom:
            return _as_text(custom).upper()
        if Option.POSTFIELDS in settings or settings.get(Option.POST):
            return "POST"
        if settings.get(Option.PUT) or settings.get(Option.UPLOAD):
            return "PUT"
        return "GET"

    def _headers(self, settings: dict[Option, Any]) -> CaseInsensitiveDict:
        headers: CaseInsensitiveDict = CaseInsensitiveDict()
        agent = settings.get(Option.USERAGENT)
        if agent:
            headers["User-Agent"] = _as_text(agent)
        for line in settings.get(Option.HTTPHEADER) or ():
            parsed = _request_header(line)
            if parsed is not None:
                headers[parsed[0]] = parsed[1]
        return headers

    def _body(self, settings: dict[Option, Any], headers: CaseInsensitiveDict) -> Any:
        if Option.POSTFIELDS in settings:
            fields = settings[Option.POSTFIELDS]
            body = _as_bytes(fields if fields is not None else b"")
            limit = settings.get(Option.POSTFIELDSIZE, -1)
            if limit is not None and 0 <= limit < len(body):
                body = body[:limit]
            if "Content-Type" not in headers:
                headers["Content-Type"] = _FORM_CONTENT_TYPE
            return body
        uploading = any(settings.get(key) for key in (Option.POST, Option.PUT, Option.UPLOAD))
        if self._source is None or not uploading:
            return None
        length = settings.get(Option.INFILESIZE_LARGE, settings.get(Option.INFILESIZE, -1))
        if length is not None and length >= 0:
            return _Upload(self, int(length))
        return iter(_Upload(self, 0))

    def _record_response(self, response: requests.Response) -> None:
        raw = getattr(response.raw, "headers", None)
        if raw is not None and hasattr(raw, "iteritems"):
            pairs = raw.iteritems()
        else:
            pairs = response.headers.items()
        for name, value in pairs:
            self.record_header(f"{name}: {value}\r\n".encode("latin-1", "replace"))

    def _perform(self, settings: dict[Option, Any], sink: BinaryIO | None) -> None:
        url = settings.get(Option.URL)
        if not url:
            raise TransferError(Result(Result.URL_MALFORMAT), "No URL set")

        headers = self._headers(settings)
        body = self._body(settings, headers)
        max_redirects = settings.get(Option.MAXREDIRS, -1)
        self._session.max_redirects = sys.maxsize if max_redirects < 0 else int(max_redirects)
        proxy = settings.get(Option.PROXY)
        proxies = {"http": _as_text(proxy), "https": _as_text(proxy)} if proxy else None

        self._apply_cookie_command(settings)
        self._load_cookies(settings)

        try:
            with warnings.catch_warnings():
                warnings.filterwarnings("ignore", message="Unverified HTTPS request")
                response = self._session.request(
                    self._method(settings),
                    _as_text(url),
                    data=body,
                    headers=headers,
                    allow_redirects=bool(settings.get(Option.FOLLOWLOCATION, False)),
                    verify=bool(settings.get(Option.SSL_VERIFYPEER, False)),
                    proxies=proxies,
                    stream=True,
                )
            with response:
                self.reply_url = response.url
                for step in (*response.history, response):
                    self._record_response(step)
                for chunk in response.iter_content(_CHUNK):
                    if sink is None:
                        self._buffer.extend(chunk)
                    else:
                        sink.write(chunk)
        except requests.RequestException as exc:
            raise TransferError(Result(_classify(exc)), str(exc)) from exc
        except OSError as exc:
            raise TransferError(Result(Result.WRITE_ERROR), str(exc)) from exc

        self._save_cookies(settings)