"""Bridge protoc plugin requests into an in-process code generator."""

__version__ = "0.1.0"
