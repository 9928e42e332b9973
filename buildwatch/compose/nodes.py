"""Composition nodes: Leaf, Series and Parallel.

A composition is a tree evaluated at invocation time. Nodes are frozen
and hold no run state, so one node may be shared by several parents or
run several times at once.
"""

from dataclasses import dataclass
from typing import Callable, Tuple, Union

from buildwatch.exceptions import InvalidTask
from buildwatch.task import TaskUnit


class Node:
    """Base class of all composition nodes."""

    def describe(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class Leaf(Node):
    """A single TaskUnit."""

    task: TaskUnit

    def describe(self) -> str:
        return self.task.name


@dataclass(frozen=True)
class Series(Node):
    """Children run strictly one after another."""

    children: Tuple[Node, ...] = ()

    def describe(self) -> str:
        return "series(%s)" % ", ".join(c.describe() for c in self.children)


@dataclass(frozen=True)
class Parallel(Node):
    """Children run concurrently, joined at the end."""

    children: Tuple[Node, ...] = ()

    def describe(self) -> str:
        return "parallel(%s)" % ", ".join(c.describe() for c in self.children)


NodeLike = Union[Node, TaskUnit, Callable]


def as_node(item) -> Node:
    """Wrap a TaskUnit or plain callable into a Leaf.

    Nodes are returned unchanged.

    Raises:
        InvalidTask: If item is not a Node, TaskUnit or callable
    """
    if isinstance(item, Node):
        return item
    if isinstance(item, TaskUnit):
        return Leaf(item)
    if callable(item):
        name = getattr(item, 'display_name', None) or getattr(
            item, '__name__', repr(item))
        return Leaf(TaskUnit(name, item))
    raise InvalidTask(
        "Composition members must be Node, TaskUnit or callable. "
        "Got '%r' (%s)" % (item, type(item)))


def series(*items: NodeLike) -> Series:
    """Compose items to run one after another.

    Example:
        build = series(compile_styles, optimize_styles)
    """
    return Series(tuple(as_node(item) for item in items))


def parallel(*items: NodeLike) -> Parallel:
    """Compose items to run concurrently.

    Example:
        build = parallel(views, guide)
    """
    return Parallel(tuple(as_node(item) for item in items))


def describe(item: NodeLike) -> str:
    """Render a composition as a compact string for logs and listings."""
    return as_node(item).describe()


def iter_tasks(item: NodeLike):
    """Yield every TaskUnit in a composition, depth first, in order."""
    node = as_node(item)
    if isinstance(node, Leaf):
        yield node.task
    else:
        for child in node.children:
            yield from iter_tasks(child)
