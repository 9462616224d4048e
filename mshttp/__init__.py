"""HTTP requests with proxies, cookie jars, multi-part upload buffers and an executor protocol."""

__version__ = "0.1.0"