#
# Copyright 2025 The Project Oak Authors
#
# Licensed under the Apache License, Version 2.0 (the 'License');
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an 'AS IS' BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
#

"""Flow Policy Library - Lattices.

Provides finite partial-order lattices built from covering edges, with
meet, join and precede operations and a cartesian product with a second
"state" lattice.

A lattice specification names the immediate children of each element:

    {
      "name": "DataType",
      "edges": {
        "UniqueID": ["AccountID", "IPAddress"],
        "Location": ["IPAddress"]
      }
    }

TOP and BOTTOM are synthesized, so the specification above yields:

                  TOP
                 /   \\
          UniqueID   Location
              /   \\    /
      AccountID   IPAddress
              \\     /
               BOTTOM
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from functools import reduce
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Mapping, Optional, Tuple

from .error import LatticeSpecError, ProductError, UnknownValueError

logger = logging.getLogger(__name__)

TOP = "TOP"
BOTTOM = "BOTTOM"
SEPARATOR = ":"

_RESERVED_CHARS = frozenset("{}" + SEPARATOR)


@dataclass(frozen=True)
class Edge:
    """Covering relation: `to` is an immediate child of `from_`."""

    from_: str
    to: str


@dataclass(frozen=True)
class ProductValue:
    """Element of a product lattice: a base element and a state element.

    The text form is `base:state`; a TOP state is left out, so the plain
    element `UniqueID` is the product value `UniqueID:TOP`.
    """

    base: str
    state: str = TOP

    @classmethod
    def parse(cls, text: str) -> ProductValue:
        base, sep, state = text.partition(SEPARATOR)
        return cls(base, state if sep else TOP)

    @property
    def is_bottom(self) -> bool:
        """Either component is BOTTOM."""
        return self.base == BOTTOM or self.state == BOTTOM

    def __str__(self) -> str:
        if self.state == TOP:
            return self.base
        return f"{self.base}{SEPARATOR}{self.state}"


@dataclass(eq=False)
class Lattice:
    """Named finite partial order with a unique TOP and BOTTOM.

    Lattices are compared by identity: a policy registry shares them by
    reference. The optional `state` lattice turns values of the form
    `base:state` into product values, operated on component-wise.
    """

    name: str
    edges: Tuple[Edge, ...]
    state: Optional[Lattice] = field(default=None, repr=False)

    def __post_init__(self) -> None:
        self.edges = tuple(self.edges)
        self._children: Dict[str, List[str]] = {}
        self._parents: Dict[str, List[str]] = {}
        for edge in self.edges:
            self._children.setdefault(edge.from_, []).append(edge.to)
            self._parents.setdefault(edge.to, []).append(edge.from_)
        self._elements = frozenset(self._children) | frozenset(self._parents)

    @classmethod
    def from_dict(cls, spec: Mapping[str, Any]) -> Lattice:
        """Builds a lattice from a decoded JSON specification.

        Raises:
            LatticeSpecError: If `name` or `edges` is missing or malformed,
              an element name is unusable, or the edges form a cycle.
        """
        if not isinstance(spec, Mapping):
            raise LatticeSpecError(f"expected an object, got {type(spec).__name__}")
        name = spec.get("name")
        if not isinstance(name, str) or not name:
            raise LatticeSpecError("missing lattice 'name'")
        edge_map = spec.get("edges")
        if not isinstance(edge_map, Mapping):
            raise LatticeSpecError(f"lattice {name} has no 'edges' object")

        nodes: List[str] = []
        edges: List[Edge] = []
        for from_, tos in edge_map.items():
            if not isinstance(tos, list) or not all(isinstance(to, str) for to in tos):
                raise LatticeSpecError(
                    f"lattice {name}: children of {from_} must be a list of strings"
                )
            for node in [from_, *tos]:
                _check_element_name(name, node)
                if node not in nodes:
                    nodes.append(node)
            for to in tos:
                edge = Edge(from_, to)
                if edge not in edges:
                    edges.append(edge)

        # Elements without a parent hang off TOP; elements without a child
        # (singletons included) fall onto BOTTOM.
        has_parent = {edge.to for edge in edges}
        has_child = {edge.from_ for edge in edges}
        edges.extend(Edge(TOP, n) for n in nodes if n != TOP and n not in has_parent)
        edges.extend(Edge(n, BOTTOM) for n in nodes if n != BOTTOM and n not in has_child)
        if not edges:
            edges.append(Edge(TOP, BOTTOM))
        _check_acyclic(name, edges)

        logger.debug("Built lattice %s with %d edges", name, len(edges))
        return cls(name, tuple(edges))

    @classmethod
    def from_json(cls, text: str) -> Lattice:
        """Builds a lattice from a JSON object string."""
        return cls.from_dict(_decode(text))

    @property
    def top(self) -> str:
        return TOP

    @property
    def bottom(self) -> str:
        return BOTTOM

    @property
    def elements(self) -> FrozenSet[str]:
        """Every element on either side of an edge, TOP and BOTTOM included."""
        return self._elements

    def contains(self, value: str) -> bool:
        """Check if value is an element, or a product value of this lattice."""
        if self._is_product(value):
            pv = ProductValue.parse(value)
            return pv.base in self._elements and self.state.contains(pv.state)
        return value in self._elements

    def product(self, state: Lattice) -> None:
        """Attaches `state` as the second component of product values.

        The state lattice is shared, not copied. A lattice takes at most one
        state and must get it before any product value is evaluated.

        Raises:
            ProductError: If a different state lattice is already attached.
        """
        if self.state is not None and self.state is not state:
            raise ProductError(self.name, self.state.name)
        self.state = state
        logger.debug("Attached state lattice %s to %s", state.name, self.name)

    def children_of(self, nodes: Iterable[str]) -> List[str]:
        """Immediate children of `nodes`, deduplicated and sorted."""
        return sorted({c for n in set(nodes) for c in self._children.get(n, ())})

    def parents_of(self, nodes: Iterable[str]) -> List[str]:
        """Immediate parents of `nodes`, deduplicated and sorted."""
        return sorted({p for n in set(nodes) for p in self._parents.get(n, ())})

    def meet(self, a: str, b: str) -> str:
        """Greatest lower bound (a ∧ b)."""
        if self._is_product(a) or self._is_product(b):
            return self._componentwise(a, b, self.meet, self.state.meet)
        return self._bound(a, b, self.children_of, self._greatest)

    def join(self, a: str, b: str) -> str:
        """Least upper bound (a ∨ b)."""
        if self._is_product(a) or self._is_product(b):
            return self._componentwise(a, b, self.join, self.state.join)
        return self._bound(a, b, self.parents_of, self._least)

    def precede(self, a: str, b: str) -> bool:
        """Check if a ≤ b, i.e. a is b or one of its descendants."""
        if self._is_product(a) or self._is_product(b):
            pa, pb = ProductValue.parse(a), ProductValue.parse(b)
            return self.precede(pa.base, pb.base) and self.state.precede(
                pa.state, pb.state
            )
        self._check(a)
        self._check(b)
        frontier = [b]
        # Children of BOTTOM are empty, so the walk ends below it.
        while frontier:
            if a in frontier:
                return True
            frontier = self.children_of(frontier)
        return False

    def allow(self, pattrs: List[str], aattrs: List[str]) -> bool:
        """Check if every annotation value falls under some policy value."""
        return all(any(self.precede(a, p) for p in pattrs) for a in aattrs)

    def overlap(self, pattrs: List[str], aattrs: List[str]) -> List[str]:
        """Intersection (⊓) of policy values with annotation values.

        For each policy value p, the join over annotation values a of
        meet(p, a). Empty when there are no annotation values.
        """
        if not aattrs:
            return []
        return [
            reduce(self.join, (self.meet(p, a) for a in aattrs)) for p in pattrs
        ]

    def deny(self, pattrs: List[str], aattrs: List[str]) -> bool:
        """Check if no part of the overlap is BOTTOM."""
        return not any(
            ProductValue.parse(v).is_bottom for v in self.overlap(pattrs, aattrs)
        )

    def _is_product(self, value: str) -> bool:
        return self.state is not None and SEPARATOR in value

    def _check(self, value: str) -> None:
        if value not in self._elements:
            raise UnknownValueError(value, self.name)

    def _componentwise(
        self,
        a: str,
        b: str,
        base_op: Callable[[str, str], str],
        state_op: Callable[[str, str], str],
    ) -> str:
        pa, pb = ProductValue.parse(a), ProductValue.parse(b)
        return str(ProductValue(base_op(pa.base, pb.base), state_op(pa.state, pb.state)))

    def _bound(
        self,
        a: str,
        b: str,
        expand: Callable[[Iterable[str]], List[str]],
        pick: Callable[[List[str]], str],
    ) -> str:
        """Alternating frontier search for the first common bound of a and b.

        Each round widens one frontier by a level and swaps the two, until
        they share elements.
        """
        self._check(a)
        self._check(b)
        first, second = [a], [b]
        stalled = 0
        while True:
            common = [e for e in first if e in second]
            if len(common) == 1:
                return common[0]
            if common:
                return pick(sorted(common))
            grown = [e for e in expand(first) if e not in first]
            stalled = 0 if grown else stalled + 1
            if stalled > 1:
                raise LatticeSpecError(
                    f"{a} and {b} have no common bound in lattice {self.name}"
                )
            first, second = second, first + grown

    def _greatest(self, candidates: List[str]) -> str:
        """The candidate that the others precede."""
        best = candidates[0]
        for c in candidates[1:]:
            if self.precede(best, c):
                best = c
        return best

    def _least(self, candidates: List[str]) -> str:
        """The candidate that precedes the others."""
        best = candidates[0]
        for c in candidates[1:]:
            if self.precede(c, best):
                best = c
        return best


def parse_lattice(text: str) -> Lattice:
    """Builds one lattice from a JSON object string."""
    return Lattice.from_json(text)


def parse_lattices(text: str) -> List[Lattice]:
    """Builds lattices from a JSON list of lattice objects (or a single one)."""
    data = _decode(text)
    if isinstance(data, Mapping):
        return [Lattice.from_dict(data)]
    if not isinstance(data, list):
        raise LatticeSpecError(f"expected a list of lattices, got {type(data).__name__}")
    return [Lattice.from_dict(spec) for spec in data]


def load_lattices(path: str) -> List[Lattice]:
    """Reads lattices from a JSON file."""
    with open(path, "r") as f:
        return parse_lattices(f.read())


def _decode(text: str) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise LatticeSpecError(str(exc)) from exc


def _check_element_name(lattice: str, node: str) -> None:
    if not isinstance(node, str) or not node or any(
        ch.isspace() or ch in _RESERVED_CHARS for ch in node
    ):
        raise LatticeSpecError(f"lattice {lattice}: {node!r} is not a valid element name")


def _check_acyclic(lattice: str, edges: List[Edge]) -> None:
    children: Dict[str, List[str]] = {}
    indegree: Dict[str, int] = {}
    for edge in edges:
        children.setdefault(edge.from_, []).append(edge.to)
        indegree.setdefault(edge.from_, 0)
        indegree[edge.to] = indegree.get(edge.to, 0) + 1

    ready = [n for n, d in indegree.items() if d == 0]
    visited = 0
    while ready:
        node = ready.pop()
        visited += 1
        for child in children.get(node, ()):
            indegree[child] -= 1
            if indegree[child] == 0:
                ready.append(child)
    if visited != len(indegree):
        raise LatticeSpecError(f"lattice {lattice} has a cycle")
