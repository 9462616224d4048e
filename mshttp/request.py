"""High-level HTTP request built on a transfer or on the external executor process."""

from __future__ import annotations

import io
import logging
import os
import subprocess
from typing import Any, BinaryIO, Union

from .cookiejar import CookieJar
from .datastream import ExecutorReply, ExecutorRequest, StreamType
from .multibuffer import MultiBuffer
from .proxy import NetworkProxy
from .transfer import Option, Result, Transfer

logger = logging.getLogger(__name__)

EXECUTOR_PROGRAM = "ccross-curl"

_METHODS = ("post", "get", "put", "delete")

_POST_AGENT = (
    "User-Agent: Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/72.0.3626.122 Safari/537.36 Vivaldi/2.3.1440.60"
)
_DEFAULT_AGENT = (
    "User-Agent: Mozilla/5.0 (Windows NT 6.1; WOW64; rv:15.0) Gecko/20100101 Firefox/15.0.1"
)

Payload = Union[bytes, bytearray, memoryview]
InputStream = Union[Payload, str, "os.PathLike[str]", MultiBuffer, BinaryIO]


def _text(value: str | bytes | bytearray) -> str:
    return value if isinstance(value, str) else bytes(value).decode("utf-8", "replace")


def _stream_size(stream: Any) -> int:
    size = getattr(stream, "size", None)
    if callable(size):
        return size()
    position = stream.tell()
    end = stream.seek(0, io.SEEK_END)
    stream.seek(position)
    return end


def _read_all(device: BinaryIO) -> bytes:
    device.seek(0)
    return device.read()


class HttpRequest:
    """An HTTP request with query items, headers and an optional body."""

    def __init__(self, proxy: NetworkProxy | None = None) -> None:
        self.transfer = Transfer()
        self.request_method: str | None = None
        self.request_url: str | None = None
        self.query_items: dict[str, str] = {}
        self.request_headers: dict[str, str] = {}
        self.proxy: NetworkProxy | None = None
        self.cookie_jar: CookieJar | None = None
        self.reply_text = ""
        self.reply_error_text = ""
        self.last_result = Result()

        self.stream_type = StreamType.NONE
        self.stream_bytes = b""
        self.stream_file = ""
        self.stream_multi_buffer: list[tuple[StreamType, bytes]] = []

        if proxy is not None:
            self.set_proxy(proxy)

    def close(self) -> None:
        self.transfer.close()

    def __enter__(self) -> HttpRequest:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @property
    def _options(self) -> dict[Option, Any]:
        return self.transfer.request_options

    # configuration

    def set_proxy(self, proxy: NetworkProxy) -> None:
        self._options[Option.PROXY] = proxy.proxy_string()
        self.proxy = proxy

    def disable_proxy(self) -> None:
        if Option.PROXY in self._options:
            del self._options[Option.PROXY]
            self.proxy = None

    def set_method(self, method: str) -> bool:
        """Set the method; only post, get, put and delete are accepted."""
        if method.lower() in _METHODS:
            self.request_method = method.upper()
            return True
        return False

    def set_payload_chunk_data(self, size: int, pos: int) -> None:
        """Limit an upload to ``size`` bytes starting at ``pos`` of the input."""
        self.transfer.payload_chunk_size = size
        self.transfer.payload_file_position = pos

    def set_request_url(self, url: str) -> None:
        self.request_url = url

    def add_query_item(self, name: str, value: str) -> None:
        self.query_items[name] = value

    def add_header(self, name: str | bytes, value: str | bytes) -> None:
        self.request_headers[_text(name)] = _text(value)

    def get_reply_header(self, name: str | bytes) -> str | None:
        """Value of the first reply header with exactly this name, or None."""
        key = name.encode("utf-8") if isinstance(name, str) else bytes(name)
        for header, value in self.transfer.reply_headers:
            if header == key:
                return value.decode("utf-8", "replace")
        return None

    def set_output_file(self, file_name: str | os.PathLike[str]) -> None:
        """Write the reply body to a file, creating its directory if needed."""
        path = os.fspath(file_name)
        self.transfer.out_file = path
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)

    def set_input_data_stream(self, data: InputStream) -> None:
        """Record a request body for the executor: bytes, a file or a multi-buffer."""
        if isinstance(data, (bytes, bytearray, memoryview)):
            self.stream_type = StreamType.BYTE_ARRAY
            self.stream_bytes = bytes(data)
        elif isinstance(data, MultiBuffer):
            self.stream_type = StreamType.MULTI_BUFFER
            for slot in data.items:
                if slot.file_name:
                    self.stream_multi_buffer.append(
                        (StreamType.FILE, slot.file_name.encode("utf-8"))
                    )
                elif slot.device is not None:
                    self.stream_multi_buffer.append(
                        (StreamType.BYTE_ARRAY, _read_all(slot.device))
                    )
        elif isinstance(data, (str, os.PathLike)):
            self.stream_type = StreamType.FILE
            self.stream_file = os.fspath(data)
        else:
            name = getattr(data, "name", "")
            self.stream_type = StreamType.FILE
            self.stream_file = name if isinstance(name, str) else ""

    def reply_url(self) -> str:
        return self.transfer.reply_url

    def set_cookie_jar(self, jar: CookieJar) -> None:
        self.cookie_jar = jar
        self._options[Option.COOKIEJAR] = jar.file_name()
        self._options[Option.COOKIEFILE] = jar.file_name()
        self._options[Option.COOKIELIST] = "RELOAD"

    # helpers

    def _query(self, escape: bool = False) -> str:
        quote = self.transfer.escape if escape else (lambda value: value)
        return "&".join(f"{name}={quote(value)}" for name, value in self.query_items.items())

    def _url(self) -> str:
        return self.request_url or ""

    def _url_with_query(self, query: str) -> str:
        return f"{self._url()}?{query}"

    def _url_if_query(self, query: str) -> str:
        return self._url_with_query(query) if query else self._url()

    def _boundary_content_type(self) -> bool | None:
        """None without a Content-Type header, else whether it names a boundary."""
        content_type = self.request_headers.get("Content-Type")
        if content_type is None:
            return None
        return "boundary=" in content_type

    def _drop_content_length(self) -> None:
        self.request_headers.pop("Content-Length", None)

    def _start(self, agent: str, method: str | None) -> None:
        self._options[Option.USERAGENT] = agent
        if method is not None:
            self._options[Option.CUSTOMREQUEST] = method

    def _set_post_fields(self, body: bytes) -> None:
        self._options[Option.POSTFIELDS] = body
        self._options[Option.POSTFIELDSIZE] = len(body)

    def _upload_size(self, stream: Any) -> int:
        if self.transfer.payload_chunk_size:
            return self.transfer.payload_chunk_size
        return _stream_size(stream)

    def _run(self) -> None:
        if self.request_headers:
            self._options[Option.HTTPHEADER] = [
                f"{name}: {value}" for name, value in self.request_headers.items()
            ]
        self._options[Option.FOLLOWLOCATION] = 1
        self.transfer.exec()
        self._finish(self.transfer.last_error(), self.transfer.buffer())

    def _finish(self, result: Result, body: bytes) -> None:
        self.last_result = result
        if result.is_ok():
            self.reply_error_text = ""
            if self.transfer.out_file is None:
                self.reply_text = body.decode("utf-8", "replace")
        else:
            self.reply_error_text = result.text + self.transfer.error_buffer
            logger.warning("request failed: %s", self.reply_error_text)

    # request executors

    def post(self, data: Payload | BinaryIO | MultiBuffer = b"") -> None:
        """Send a POST with in-memory data or with data read from a stream."""
        self._start(_POST_AGENT, "POST")
        self._options[Option.URL] = self._url()
        if isinstance(data, (bytes, bytearray, memoryview)):
            self._post_bytes(bytes(data))
        else:
            self._post_stream(data)
        self._run()

    def _post_bytes(self, data: bytes) -> None:
        if not data:
            self._options[Option.URL] = self._url()
            self._set_post_fields(self._query(escape=True).encode("utf-8"))
            self._drop_content_length()
            return
        boundary = self._boundary_content_type()
        if boundary is None:
            return
        self._options[Option.URL] = self._url_with_query(self._query())
        self._set_post_fields(data)
        if boundary:
            self._drop_content_length()

    def _post_stream(self, data: Any) -> None:
        if _stream_size(data) == 0:
            self._options[Option.URL] = self._url()
            self._set_post_fields(self._query().encode("utf-8"))
            self._drop_content_length()
            return
        boundary = self._boundary_content_type()
        if boundary is None:
            return
        query = self._query()
        if boundary:
            self._options[Option.URL] = self._url_with_query(query)
        else:
            self._options[Option.URL] = self._url_if_query(query)
            self._options[Option.UPLOAD] = 1
        self._options[Option.POST] = 1
        self._options[Option.READDATA] = self.transfer
        self._options[Option.INFILESIZE_LARGE] = self._upload_size(data)
        self.transfer.inp_file = data

    def put(self, data: Payload | BinaryIO | MultiBuffer = b"") -> None:
        """Send a PUT with in-memory data or with data read from a stream."""
        self._start(_DEFAULT_AGENT, "PUT")
        self._options[Option.URL] = self._url()
        if isinstance(data, (bytes, bytearray, memoryview)):
            self._put_bytes(bytes(data))
        else:
            self._put_stream(data)
        self._run()

    def _put_bytes(self, data: bytes) -> None:
        if not data:
            self._options[Option.URL] = self._url_with_query(self._query())
            self._drop_content_length()
            return
        boundary = self._boundary_content_type()
        if boundary is None:
            return
        self._options[Option.URL] = self._url_with_query(self._query())
        self._set_post_fields(data)
        if boundary:
            self._drop_content_length()

    def _put_stream(self, data: Any) -> None:
        if _stream_size(data) == 0:
            self._options[Option.URL] = self._url_with_query(self._query(escape=True))
            self._drop_content_length()
            return
        boundary = self._boundary_content_type()
        if boundary is None:
            return
        query = self._query()
        self._options[Option.PUT] = 1
        self._options[Option.READDATA] = self.transfer
        if boundary:
            self._options[Option.URL] = self._url_with_query(query)
            self._options[Option.INFILESIZE] = _stream_size(data)
        else:
            self._options[Option.URL] = self._url_if_query(query)
            self._options[Option.INFILESIZE_LARGE] = self._upload_size(data)
        self.transfer.inp_file = data

    def delete_resource(self) -> None:
        """Send a DELETE, with the query items in the URL."""
        self._start(_DEFAULT_AGENT, "DELETE")
        self._options[Option.URL] = self._url_if_query(self._query())
        self._run()

    def get(self) -> None:
        """Send a GET, with the query items in the URL."""
        self._start(_DEFAULT_AGENT, None)
        if self.query_items:
            self._options[Option.URL] = self._url_with_query(self._query())
        else:
            self._options[Option.URL] = self._url()
        self._run()

    # executor process

    def build_executor_request(self) -> ExecutorRequest:
        """Describe this request for the executor process."""
        out_file = self.transfer.out_file
        return ExecutorRequest(
            method=self.request_method,
            url=self.request_url,
            query_items=dict(self.query_items),
            headers=dict(self.request_headers),
            payload_chunk_size=self.transfer.payload_chunk_size,
            payload_file_position=self.transfer.payload_file_position,
            proxy=None if self.proxy is None else self.proxy.proxy_string(),
            cookie=None if self.cookie_jar is None else self.cookie_jar.read(),
            out_file=None if out_file is None else os.fspath(out_file),
            stream_type=self.stream_type,
            payload=self.stream_bytes,
            payload_file=self.stream_file,
            multi_buffer=list(self.stream_multi_buffer),
        )

    def exec(self) -> None:
        """Run the request in the executor process and take over its reply."""
        completed = subprocess.run(
            [EXECUTOR_PROGRAM],
            input=self.build_executor_request().encode(),
            capture_output=True,
            check=False,
        )
        self.read_executor_output(completed.stdout)

    def read_executor_output(self, output: bytes | str) -> None:
        """Apply the executor's base64-encoded reply to this request."""
        reply = ExecutorReply.decode(output)
        self.transfer.reply_headers = list(reply.headers)
        self.transfer.error_buffer = reply.error
        self.transfer.reply_url = reply.reply_url
        if reply.cookie is not None and self.cookie_jar is not None:
            self.cookie_jar.write(reply.cookie)
        self._finish(reply.result, reply.body.split(b"\0", 1)[0])

    def raw_exec(self, url: str) -> None:
        """Send a GET to ``url``."""
        self.request_url = url
        self.request_method = "get"
        self.get()

    def read_reply_text(self) -> str:
        return self.reply_text

    def reply_ok(self) -> bool:
        return self.last_result.is_ok()

    def print_reply_error(self) -> None:
        print(self.reply_error_text)