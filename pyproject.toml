[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "grpc_middleware"
version = "0.1.0"
description = "Building blocks for RPC interceptors: call contexts, metadata helpers, status codes, request validation, Prometheus-style metrics and backoff utilities."
requires-python = ">=3.10"
dependencies = []
keywords = ["grpc", "rpc", "middleware", "interceptor", "metrics", "prometheus", "validation", "metadata", "backoff"]
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
    "Topic :: Software Development :: Libraries",
    "Topic :: System :: Monitoring",
]

[project.optional-dependencies]
test = ["pytest"]

[tool.hatch.build.targets.wheel]
packages = ["grpc_middleware"]

[tool.pytest.ini_options]
addopts = "-ra"
