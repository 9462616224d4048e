# mshttp

A small HTTP request library for code that talks to cloud storage services.
It builds GET, POST, PUT and DELETE requests from a URL, query items and
headers, uploads payloads from bytes, files or a `MultiBuffer` (several byte
strings and files read as one stream), keeps cookies in a temporary cookie
file, and can send traffic through a proxy. Requests are carried out with
`requests`.

## Installing

```
pip install .
```

For running the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `mshttp.request` – `HttpRequest`, the high-level request object.
- `mshttp.transfer` – `Transfer`, one HTTP exchange driven by a table of
  `Option` settings; `Result` (outcome code and message), `TransferError`,
  `parse_header_line`.
- `mshttp.multibuffer` – `MultiBuffer` and its `Slot` parts.
- `mshttp.cookiejar` – `CookieJar`, a temporary cookie file.
- `mshttp.proxy` – `NetworkProxy` and `ProxyType`.
- `mshttp.datastream` – the binary stream format for the executor process:
  `DataStreamWriter`, `DataStreamReader`, `ExecutorRequest`, `ExecutorReply`,
  `StreamType`.

## Making a request

```python
from mshttp.request import HttpRequest

with HttpRequest() as req:
    req.set_request_url("https://httpbin.example.com/get")
    req.add_header("X-Test", "value")
    req.add_query_item("q", "1")
    req.get()

    if req.reply_ok():
        print(req.read_reply_text())
        print(req.reply_url())
        print(req.get_reply_header("Content-Type"))
    else:
        req.print_reply_error()
```

`get()`, `post(data)`, `put(data)` and `delete_resource()` pick the HTTP
method themselves. Query items are appended to the URL as `name=value`
joined by `&`; they are not percent-encoded, except for an empty-body POST,
where they are sent escaped as form fields in the body. Redirects are
followed.

Failures do not raise: `reply_ok()` reports whether the last request
succeeded, `last_result` holds its `Result` (`code`, `text`), and
`reply_error_text` the message that `print_reply_error()` prints.

`set_method` accepts only `get`, `post`, `put` and `delete`, in any case, and
returns `False` for anything else. The method it stores is what is handed to
the executor process (see below); `get()`, `post()` and the others do not
look at it.

`raw_exec(url)` sets the URL and sends a GET.

## Uploading

`post` and `put` take bytes or a readable, seekable binary stream, such as an
open file or a `MultiBuffer`:

```python
from mshttp.multibuffer import MultiBuffer
from mshttp.request import HttpRequest

body = MultiBuffer()
body.append(b"------bound\r\nContent-Disposition: form-data; name=\"file\"\r\n\r\n")
body.append("payload.json")          # a path, read when the buffer is read
body.append(b"\r\n------bound--\r\n")

req = HttpRequest()
req.set_request_url("https://storage.example.com/upload")
req.add_header("Content-Type", "multipart/form-data; boundary=----bound")
req.post(body)
```

A non-empty body is only sent when the request has a `Content-Type` header.
With a `boundary=` in it any `Content-Length` header is dropped; without one
the body is sent as it is. An empty body sends the query items as form fields
(POST) or in the URL (PUT).

For chunked uploads from a stream, `set_payload_chunk_data(size, pos)` sends
only `size` bytes starting at offset `pos` of the input.

To write a response straight to disk, call `set_output_file(path)` before the
request; missing parent directories are created, and `read_reply_text()`
then stays unchanged.

`MultiBuffer` must be opened (`open()` or a `with` block) before `read`;
`seek` may not pass the end, and `write` raises `io.UnsupportedOperation`.

## Proxies and cookies

```python
from mshttp.cookiejar import CookieJar
from mshttp.proxy import NetworkProxy, ProxyType
from mshttp.request import HttpRequest

proxy = NetworkProxy()
proxy.set_from_string("http://127.0.0.1:3128")   # or just "127.0.0.1:3128"
req = HttpRequest(proxy)

other = NetworkProxy(host="127.0.0.1", port=1080)
other.set_type(ProxyType.SOCKS5)
req.set_proxy(other)
req.disable_proxy()

jar = CookieJar()
req.set_cookie_jar(jar)
```

`set_type` gives the scheme `socks5` for `ProxyType.SOCKS5` and `http` for
every other type. SOCKS proxies work only where `requests` has SOCKS support
installed; otherwise the request fails with `Result.UNSUPPORTED_PROTOCOL`.

The cookie jar stores cookies in Mozilla `cookies.txt` format in a temporary
file, which is deleted by `close()` (or at the end of a `with` block). Cookies
are loaded from it before each request and saved back afterwards, so one jar
shared between requests carries cookies from one reply into the next request.

## Executor protocol

`HttpRequest.build_executor_request()` describes a request as an
`ExecutorRequest`, whose `encode()` gives the base64 text of its binary
stream form. `HttpRequest.exec()` runs the program `ccross-curl`
(`mshttp.request.EXECUTOR_PROGRAM`), writes that text to its standard input
and passes its standard output to `read_executor_output()`, which decodes an
`ExecutorReply` and takes over its headers, body, result code, error text,
effective URL and cookies.

## What this package does not do

The executor program itself is not part of this package: `exec()` only works
where a `ccross-curl` program that speaks this protocol is installed.
The package has no command-line program of its own.