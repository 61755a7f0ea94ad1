"""HTTP control plane for resumable FPL indexing executions."""

__version__ = "0.1.0"
