"""Tests for Dispatcher and RouteEventHandler."""

import asyncio
from unittest.mock import MagicMock

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileClosedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from buildwatch.compose import parallel, series
from buildwatch.routing import Route, RouteTable
from buildwatch.task import TaskUnit
from buildwatch.watch import Dispatcher, RecordingNotifier, RouteEventHandler


class Trace:
    """Shared event log for units and the notifier."""

    def __init__(self):
        self.events = []

    def unit(self, name, delay=0.0, fail=False):
        async def body():
            self.events.append(('start', name))
            await asyncio.sleep(delay)
            self.events.append(('end', name))
            if fail:
                raise RuntimeError(name)
        return TaskUnit(name, body)


class TracingNotifier(RecordingNotifier):
    def __init__(self, trace):
        super().__init__()
        self.trace = trace

    def notify(self, route):
        super().notify(route)
        self.trace.events.append(('notify', route.name))


def dispatch_and_wait(dispatcher, *paths):
    async def go():
        tasks = []
        for path in paths:
            tasks.extend(dispatcher.dispatch(path))
        await dispatcher.wait_idle()
        return [t.result() for t in tasks]
    return asyncio.run(go())


class TestDispatch:
    """Tests for dispatching change events to routes."""

    def test_styles_scenario(self, tmp_path):
        """Editing a style runs compile then optimize, then one reload."""
        trace = Trace()
        route = Route.create(
            "src/styles/**/*.scss",
            series(trace.unit('compileStyles', 0.01), trace.unit('optimizeStyles')),
            name='styles', base_path=tmp_path)
        notifier = TracingNotifier(trace)
        dispatcher = Dispatcher(RouteTable([route]), notifier)

        results = dispatch_and_wait(dispatcher, tmp_path / "src/styles/base/_reset.scss")

        assert trace.events == [
            ('start', 'compileStyles'), ('end', 'compileStyles'),
            ('start', 'optimizeStyles'), ('end', 'optimizeStyles'),
            ('notify', 'styles'),
        ]
        assert len(results) == 1 and results[0].success

    def test_one_notify_for_many_leaves(self, tmp_path):
        trace = Trace()
        route = Route.create("src/**/*", parallel(*(trace.unit(str(i), 0.01 * i)
                                                    for i in range(5))),
                             name='all', base_path=tmp_path)
        notifier = TracingNotifier(trace)
        dispatcher = Dispatcher(RouteTable([route]), notifier)

        dispatch_and_wait(dispatcher, tmp_path / "src/a.txt")

        assert notifier.count == 1
        # notify comes after every leaf finished
        assert trace.events[-1] == ('notify', 'all')
        assert sum(1 for kind, _ in trace.events if kind == 'end') == 5

    def test_notify_after_failed_run(self, tmp_path):
        trace = Trace()
        route = Route.create("*.js", series(trace.unit('a', fail=True), trace.unit('b')),
                             name='scripts', base_path=tmp_path)
        notifier = TracingNotifier(trace)
        dispatcher = Dispatcher(RouteTable([route]), notifier)

        results = dispatch_and_wait(dispatcher, tmp_path / "app.js")

        assert results[0].failed
        assert notifier.names() == ['scripts']
        assert ('start', 'b') not in trace.events

    def test_failure_keeps_dispatcher_alive(self, tmp_path):
        trace = Trace()
        route = Route.create("*.js", trace.unit('a', fail=True), name='scripts',
                             base_path=tmp_path)
        notifier = TracingNotifier(trace)
        dispatcher = Dispatcher(RouteTable([route]), notifier)

        dispatch_and_wait(dispatcher, tmp_path / "app.js")
        dispatch_and_wait(dispatcher, tmp_path / "app.js")

        assert notifier.count == 2
        assert dispatcher.runs_completed == 2

    def test_raising_notifier_does_not_break_run(self, tmp_path):
        trace = Trace()
        route = Route.create("*.js", trace.unit('a'), name='scripts',
                             base_path=tmp_path)
        notifier = MagicMock()
        notifier.notify.side_effect = ConnectionError("browser gone")
        dispatcher = Dispatcher(RouteTable([route]), notifier)

        results = dispatch_and_wait(dispatcher, tmp_path / "app.js")

        assert results[0].success
        notifier.notify.assert_called_once_with(route)
        assert dispatcher.runs_completed == 1

    def test_overlapping_routes_run_independently(self, tmp_path):
        trace = Trace()
        views = Route.create("src/views/**/*.pug",
                             parallel(trace.unit('views'), trace.unit('guide')),
                             name='views', base_path=tmp_path)
        everything = Route.create("src/**/*", trace.unit('lint'), name='lint',
                                  base_path=tmp_path)
        notifier = TracingNotifier(trace)
        dispatcher = Dispatcher(RouteTable([views, everything]), notifier)

        results = dispatch_and_wait(dispatcher, tmp_path / "src/views/index.pug")

        assert len(results) == 2
        assert sorted(notifier.names()) == ['lint', 'views']

    def test_no_match_no_run(self, tmp_path):
        trace = Trace()
        route = Route.create("*.js", trace.unit('a'), base_path=tmp_path)
        notifier = TracingNotifier(trace)
        dispatcher = Dispatcher(RouteTable([route]), notifier)

        assert dispatch_and_wait(dispatcher, tmp_path / "style.css") == []
        assert notifier.count == 0

    def test_rapid_events_not_coalesced(self, tmp_path):
        trace = Trace()
        route = Route.create("*.js", trace.unit('a', 0.02), name='scripts',
                             base_path=tmp_path)
        notifier = TracingNotifier(trace)
        dispatcher = Dispatcher(RouteTable([route]), notifier)

        results = dispatch_and_wait(dispatcher, *[tmp_path / "app.js"] * 3)

        assert len(results) == 3
        assert notifier.count == 3
        # runs overlap: all three started before the first one ended
        starts = [i for i, e in enumerate(trace.events) if e == ('start', 'a')]
        first_end = trace.events.index(('end', 'a'))
        assert all(s < first_end for s in starts)

    def test_notify_disabled(self, tmp_path):
        trace = Trace()
        route = Route.create("*.scss", trace.unit('styles'), notify=False,
                             base_path=tmp_path)
        notifier = TracingNotifier(trace)
        dispatcher = Dispatcher(RouteTable([route]), notifier)

        results = dispatch_and_wait(dispatcher, tmp_path / "main.scss")

        assert results[0].success
        assert notifier.count == 0


class TestRouteEventHandler:
    """Tests for translating watchdog events."""

    def make_handler(self, tmp_path):
        route = Route.create("src/**/*.js", TaskUnit('x', lambda: None),
                             base_path=tmp_path)
        calls = []
        handler = RouteEventHandler(route, lambda r, p: calls.append((r, p)))
        return route, handler, calls

    def test_matching_file_event(self, tmp_path):
        route, handler, calls = self.make_handler(tmp_path)
        path = str(tmp_path / "src" / "app.js")

        handler.dispatch(FileModifiedEvent(path))

        assert calls == [(route, path)]

    def test_non_matching_file(self, tmp_path):
        _, handler, calls = self.make_handler(tmp_path)
        handler.dispatch(FileModifiedEvent(str(tmp_path / "src" / "app.css")))
        assert calls == []

    def test_directory_event_ignored(self, tmp_path):
        _, handler, calls = self.make_handler(tmp_path)
        handler.dispatch(DirModifiedEvent(str(tmp_path / "src")))
        assert calls == []

    def test_closed_event_ignored(self, tmp_path):
        _, handler, calls = self.make_handler(tmp_path)
        handler.dispatch(FileClosedEvent(str(tmp_path / "src" / "app.js")))
        assert calls == []

    def test_move_into_pattern_triggers_once(self, tmp_path):
        route, handler, calls = self.make_handler(tmp_path)
        src = str(tmp_path / "src" / "app.js.tmp")
        dest = str(tmp_path / "src" / "app.js")

        handler.dispatch(FileMovedEvent(src, dest))

        assert calls == [(route, dest)]


class TestStartStop:
    """Tests for subscription lifecycle."""

    def test_one_subscription_per_route_root(self, tmp_path):
        (tmp_path / "src" / "styles").mkdir(parents=True)
        (tmp_path / "src" / "views").mkdir(parents=True)
        styles = Route.create("src/styles/**/*.scss", TaskUnit('s', lambda: None),
                              base_path=tmp_path)
        views = Route.create("src/views/*.pug", TaskUnit('v', lambda: None),
                             base_path=tmp_path)
        missing = Route.create("nowhere/*.js", TaskUnit('m', lambda: None),
                               base_path=tmp_path)
        observer = MagicMock()
        dispatcher = Dispatcher(RouteTable([styles, views, missing]),
                                RecordingNotifier(),
                                observer_factory=lambda: observer)

        async def go():
            await dispatcher.start()
            dispatcher.stop()

        asyncio.run(go())

        scheduled = [(c.args[0].route, c.args[1]) for c in observer.schedule.call_args_list]
        assert scheduled == [
            (styles, str(tmp_path.resolve() / "src" / "styles")),
            (views, str(tmp_path.resolve() / "src" / "views")),
        ]
        observer.start.assert_called_once()
        observer.stop.assert_called_once()
        observer.join.assert_called_once()

    def test_nested_roots_scheduled_once(self, tmp_path):
        (tmp_path / "src" / "scripts").mkdir(parents=True)
        route = Route.create(["src/**/*.js", "src/scripts/*.js"],
                             TaskUnit('s', lambda: None), base_path=tmp_path)
        observer = MagicMock()
        dispatcher = Dispatcher(RouteTable([route]), RecordingNotifier(),
                                observer_factory=lambda: observer)

        async def go():
            await dispatcher.start()
            dispatcher.stop()

        asyncio.run(go())

        roots = [c.args[1] for c in observer.schedule.call_args_list]
        assert roots == [str(tmp_path.resolve() / "src")]

    def test_double_start(self, tmp_path):
        dispatcher = Dispatcher(RouteTable([]), RecordingNotifier(),
                                observer_factory=MagicMock)

        async def go():
            await dispatcher.start()
            with pytest.raises(RuntimeError):
                await dispatcher.start()
            dispatcher.stop()

        asyncio.run(go())

    def test_filesystem_change_triggers_run(self, tmp_path):
        """End to end with a real watchdog observer."""
        styles_dir = tmp_path / "src" / "styles"
        styles_dir.mkdir(parents=True)
        out = tmp_path / "out.css"

        def compile_styles():
            out.write_text((styles_dir / "main.scss").read_text())

        route = Route.create("src/styles/**/*.scss", TaskUnit('styles', compile_styles),
                             name='styles', base_path=tmp_path)

        async def go():
            reloaded = asyncio.Event()

            class EventNotifier(RecordingNotifier):
                def notify(self, route):
                    super().notify(route)
                    reloaded.set()

            notifier = EventNotifier()
            dispatcher = Dispatcher(RouteTable([route]), notifier)
            await dispatcher.start()
            try:
                await asyncio.sleep(0.2)
                (styles_dir / "main.scss").write_text("body { color: red; }")
                await asyncio.wait_for(reloaded.wait(), timeout=10)
                # a save may emit several events; wait for a run that saw the content
                for _ in range(100):
                    await dispatcher.wait_idle()
                    if out.exists() and out.read_text():
                        break
                    await asyncio.sleep(0.1)
            finally:
                dispatcher.stop()
            return notifier

        notifier = asyncio.run(go())

        assert notifier.count >= 1
        assert out.read_text() == "body { color: red; }"
