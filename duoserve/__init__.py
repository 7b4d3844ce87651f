"""TCP and UDP echo server on localhost with a worker thread pool and slash commands."""

__version__ = "1.0.0"
__all__ = ["cli", "server", "threadpool"]