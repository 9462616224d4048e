"""Proxy description and its textual form."""

from __future__ import annotations

import enum

_NO_PROXY_STRING = "ggggggg"


class ProxyType(enum.Enum):
    """Kinds of proxy a request can go through."""

    DEFAULT = 0
    SOCKS5 = 1
    NO_PROXY = 2
    HTTP = 3
    HTTP_CACHING = 4
    FTP_CACHING = 5


class NetworkProxy:
    """A proxy given by scheme, host and port."""

    def __init__(self, scheme: str = "", host: str = "", port: int | str = "") -> None:
        self.scheme = scheme
        self.host = host
        self.port = port

    @property
    def port(self) -> str:
        return self._port

    @port.setter
    def port(self, value: int | str) -> None:
        self._port = str(value)

    def __repr__(self) -> str:
        return f"NetworkProxy(scheme={self.scheme!r}, host={self.host!r}, port={self.port!r})"

    def proxy_string(self) -> str:
        """Return the proxy as ``scheme://host:port``."""
        if self.host:
            return f"{self.scheme}://{self.host}:{self.port}"
        return _NO_PROXY_STRING

    def set_from_string(self, addr: str) -> None:
        """Set the proxy from ``scheme://host:port`` or ``host:port``."""
        if "http" in addr or "socks5" in addr:
            colon = addr.find(":")
            scheme = addr if colon == -1 else addr[:colon]
            addr = addr[colon + 3:]
        else:
            scheme = "http"

        last_colon = addr.rfind(":")
        if last_colon == -1:
            host = addr
            port = addr
        else:
            host = addr[:last_colon]
            port = addr[last_colon + 1:]

        self.host = host
        self.port = port
        self.scheme = scheme

    def set_type(self, proxy_type: ProxyType) -> None:
        """Set the scheme from a proxy type; anything but SOCKS5 means http."""
        self.scheme = "socks5" if proxy_type is ProxyType.SOCKS5 else "http"