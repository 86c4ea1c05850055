"""A submodule for custom portfolio-live Exceptions."""


class UnknownTopicError(KeyError):
    """The topic name does not correspond to a resource kind and phase.

    Topics are named ``"{resource kind}-{phase}"``, for example
    ``group-being-edited``. This error is raised when a client asks to
    subscribe to, or read the stored notifications of, a topic that
    does not follow that pattern. It subclasses `KeyError` so it may be
    handled in the same way as any other failed lookup.
    """


class UnknownMessageTypeError(ValueError):
    """A websocket message had a ``messageType`` we do not understand.

    The websocket protocol is described in `.websockets`. A message with a
    missing or unrecognised type is reported back to the client that sent
    it, and the connection remains open.
    """


class LogConfigurationError(RuntimeError):
    """The package logger could not be configured.

    This is raised if `.configure_relay_logger` is given a log level that
    `logging` does not recognise.
    """


class ServerNotRunningError(RuntimeError):
    """The RelayServer is not running.

    This exception is raised when a function assumes the `.RelayServer` is
    running, and it is not. This might be because the function needs to call
    code in the async event loop from a thread.
    """
