"""Handle exceptions generated from 'user' code"""

import traceback


class InvalidTask(Exception):
    """Invalid task instance. User error on specifying the task."""
    pass


class ConfigError(Exception):
    """Error parsing or validating a buildwatch.yaml file."""
    pass


class FragmentError(Exception):
    """A guide fragment could not be located or evaluated."""
    pass


class BaseFail(Exception):
    """Save info about a task failure.

    :ivar message: (str) human readable description
    :ivar exception: original exception, if any
    """

    def __init__(self, msg, exception=None):
        super().__init__(msg)
        self.message = msg
        self.exception = exception
        if exception is not None:
            self.traceback = traceback.format_exception(
                type(exception), exception, exception.__traceback__)
        else:
            self.traceback = []

    def get_name(self):
        """used to display the failure kind"""
        return self.__class__.__name__

    def get_msg(self):
        """return full exception description (includes traceback)"""
        return "%s\n%s" % (self.message, "".join(self.traceback))

    def __repr__(self):
        return "(<%s> %s)" % (self.get_name(), self.message)


class TaskFailed(BaseFail):
    """Task body reported a failure without raising (returned a BaseFail
    or ``False``, or passed an error to its ``done`` callback)."""
    pass


class TaskError(BaseFail):
    """Task body raised an unexpected exception."""
    pass
