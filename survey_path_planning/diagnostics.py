import logging

LOGGER_NAME = "survey_path_planning"

INFO = "info"
WARNING = "warning"
ERROR = "error"

_LEVELS = {
    INFO: logging.INFO,
    WARNING: logging.WARNING,
    ERROR: logging.ERROR,
}


class Diagnostics:
    """
    Collects planner events and forwards them to the standard logger and,
    optionally, to a caller supplied sink.

    sink: callable(level, message, context) or None
    logger: logging.Logger, defaults to the package logger

    Records accumulate for the lifetime of the instance; call clear() before
    reusing one instance for another plan.
    """

    def __init__(self, sink=None, logger=None):
        self.sink = sink
        self.logger = logger or logging.getLogger(LOGGER_NAME)
        self.records = []

    def emit(self, level, message, **context):
        self.records.append((level, message, context))
        if context:
            details = ", ".join(f"{k}={v}" for k, v in context.items())
            self.logger.log(_LEVELS[level], "%s (%s)", message, details)
        else:
            self.logger.log(_LEVELS[level], "%s", message)
        if self.sink is not None:
            self.sink(level, message, context)

    def info(self, message, **context):
        self.emit(INFO, message, **context)

    def warning(self, message, **context):
        self.emit(WARNING, message, **context)

    def error(self, message, **context):
        self.emit(ERROR, message, **context)

    def messages(self, level=None):
        return [msg for lvl, msg, _ in self.records if level is None or lvl == level]

    def clear(self):
        self.records = []


def ensure(diagnostics):
    return diagnostics if diagnostics is not None else Diagnostics()
