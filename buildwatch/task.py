
"""Task Units are the smallest schedulable actions managed by buildwatch"""

import asyncio
import functools
import inspect
from collections.abc import Callable

from .exceptions import BaseFail, InvalidTask, TaskError, TaskFailed


def first_line(doc):
    """extract first non-blank line from text, to extract docstring title"""
    if doc is not None:
        for line in doc.splitlines():
            striped = line.strip()
            if striped:
                return striped
    return ''


class TaskUnit(object):
    """TaskUnit

    @ivar name: (string) display name, used on diagnostics
    @ivar body: (callable) plain function or coroutine function. Plain
                functions are executed on the loop's default executor.
    @ivar doc: (string) task documentation (first line only)
    @ivar meta: (dict) extra info from user/plugin not used by buildwatch

    The unit completes when the awaitable returned by `run()` settles.
    A body signals failure by raising, by returning a BaseFail instance
    or by returning False. Nothing about a run is stored on the unit, so
    the same unit may be executed any number of times, concurrently too.
    """

    string_types = (str, )
    # list of valid types/values for each task attribute.
    valid_attr = {'name': (string_types, ()),
                  'body': ((Callable,), ()),
                  'doc': (string_types, (None,)),
                  'meta': ((dict,), (None,)),
                  }

    def __init__(self, name, body, doc=None, meta=None):
        self.check_attr(name, 'name', name, self.valid_attr['name'])
        self.check_attr(name, 'body', body, self.valid_attr['body'])
        self.check_attr(name, 'doc', doc, self.valid_attr['doc'])
        self.check_attr(name, 'meta', meta, self.valid_attr['meta'])
        if not name.strip():
            raise InvalidTask("Task name must not be empty.")

        self.name = name
        self.body = body
        if doc is None:
            doc = inspect.getdoc(body)
        self.doc = first_line(doc)
        self.meta = meta

    @classmethod
    def from_callback(cls, name, fn, doc=None, meta=None):
        """Create a unit from a body using a `done` callback.

        `fn(done)` is called on the event loop thread. The unit completes
        on the first call to `done()` (success) or `done(error)` (failure);
        later calls are ignored. `done` may be called from any thread.
        A body that never calls `done` never completes.
        """
        async def body():
            loop = asyncio.get_running_loop()
            settled = loop.create_future()

            def _settle(error):
                if not settled.done():
                    settled.set_result(error)

            def done(error=None):
                loop.call_soon_threadsafe(_settle, error)

            fn(done)
            error = await settled
            if error is not None:
                if isinstance(error, BaseFail):
                    return error
                if isinstance(error, BaseException):
                    return TaskError("Task '%s' reported an error" % name,
                                     error)
                return TaskFailed("Task '%s' failed: %s" % (name, error))

        functools.update_wrapper(body, fn)
        return cls(name, body, doc=doc, meta=meta)

    @staticmethod
    def check_attr(task, attr, value, valid):
        """check input task attribute is correct type/value

        @param task (string): task name
        @param attr (string): attribute name
        @param value: actual input from user
        @param valid (list): of valid types/value accepted
        @raises InvalidTask if invalid input
        """
        if isinstance(value, valid[0]):
            return
        if value in valid[1]:
            return

        # input value didnt match any valid type/value, raise exception
        msg = "Task '%s' attribute '%s' must be " % (task, attr)
        accept = ", ".join([getattr(v, '__name__', str(v)) for v in
                            (valid[0] + valid[1])])
        msg += "{%s} got:%r %s" % (accept, value, type(value))
        raise InvalidTask(msg)

    async def run(self):
        """Execute the body and wait for its completion signal.

        @return failure: None on success, a BaseFail instance otherwise
        """
        try:
            if inspect.iscoroutinefunction(self.body):
                returned = await self.body()
            else:
                loop = asyncio.get_running_loop()
                returned = await loop.run_in_executor(None, self.body)
                if inspect.isawaitable(returned):
                    returned = await returned
        except Exception as exception:
            return TaskError("Task '%s' raised %s: %s" % (
                self.name, type(exception).__name__, exception), exception)

        if isinstance(returned, BaseFail):
            return returned
        if returned is False:
            return TaskFailed("Task '%s' returned False" % self.name)
        return None

    def title(self):
        """String representation on output."""
        return self.name

    def __repr__(self):
        return f"<TaskUnit: {self.name}>"
