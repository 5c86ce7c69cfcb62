class QueueUnavailableError(Exception):
    """Raised when the queue transport (broker) cannot be reached."""
