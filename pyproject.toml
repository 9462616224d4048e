[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mshttp"
version = "0.1.0"
description = "HTTP request builder with proxies, cookie jars, multi-part upload buffers and an out-of-process executor protocol"
requires-python = ">=3.10"
keywords = ["http", "requests", "proxy", "cookies", "multipart", "upload"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Internet :: WWW/HTTP",
    "Topic :: Software Development :: Libraries :: Python Modules",
]
dependencies = [
    "requests",
]

[project.optional-dependencies]
test = [
    "pytest",
    "responses",
]

[tool.hatch.build.targets.wheel]
packages = ["mshttp"]

[tool.pytest.ini_options]
addopts = "-ra"
