"""Watch mode: filesystem events -> route runs -> reload notifications.

Example:
    from buildwatch.watch import Dispatcher, CommandNotifier

    dispatcher = Dispatcher(table, CommandNotifier("browser-sync reload"))
    asyncio.run(dispatcher.serve_forever())
"""

from .dispatcher import Dispatcher, RouteEventHandler
from .reload import (
    ReloadNotifier,
    LogNotifier,
    CallbackNotifier,
    RecordingNotifier,
    CommandNotifier,
)

__all__ = [
    'Dispatcher',
    'RouteEventHandler',
    'ReloadNotifier',
    'LogNotifier',
    'CallbackNotifier',
    'RecordingNotifier',
    'CommandNotifier',
]
