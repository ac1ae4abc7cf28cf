"""grpc-gen — protoc orchestration driven by a declarative config file."""

__version__ = "0.4.0"
