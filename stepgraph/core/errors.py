class GraphError(Exception):
    """Base class of all errors raised while building or running a graph."""


class InvalidArgumentError(GraphError):
    pass


class AlreadyExistsError(GraphError):
    pass


class NotFoundError(GraphError):
    pass


class FailedPreconditionError(GraphError):
    """Raised when running an op whose state is not ready, e.g. an uninitialized variable."""
