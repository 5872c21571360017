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

"""Flow Policy Library - Parser.

Grammar of policy text:

    Policy := ("ALLOW" | "DENY") Clause ("EXCEPT" "{" Policy+ "}")?
    Clause := (LatticeName LatticeValue)*

Tokens are separated by whitespace; braces are tokens of their own.
"""

from __future__ import annotations

import logging
import re
from types import MappingProxyType
from typing import Iterable, List, Mapping

from .clause import Annotation, Clause, Pair
from .error import (
    ClauseArityError,
    ExceptBraceError,
    ExceptModeError,
    ModeError,
    RegistryError,
    UnknownClauseValueError,
    UnknownLatticeError,
)
from .lattice import Lattice
from .policy import EXCEPT, Mode, Policy

logger = logging.getLogger(__name__)

LEFT_BRACE = "{"
RIGHT_BRACE = "}"

_TOKEN = re.compile(r"[{}]|[^\s{}]+")


def tokenize(text: str) -> List[str]:
    """Split policy or clause text into tokens."""
    return _TOKEN.findall(text)


class PolicyParser:
    """Builds policies, clauses and annotations over a set of lattices.

    Every value is checked against the lattice it is paired with, so the
    trees handed out only hold known elements. Nothing is returned on error.

    Raises:
        RegistryError: If no lattices are given or two share a name.
    """

    def __init__(self, lattices: Iterable[Lattice]):
        registry = {}
        for lattice in lattices:
            if lattice.name in registry:
                raise RegistryError(f"duplicate lattice name {lattice.name}")
            registry[lattice.name] = lattice
        if not registry:
            raise RegistryError("policy needs at least one lattice")
        self._lattices = MappingProxyType(registry)

    @property
    def lattices(self) -> Mapping[str, Lattice]:
        return self._lattices

    def parse_policy(self, text: str) -> Policy:
        """Parse policy text into a Policy tree.

        Raises:
            PolicySyntaxError: On the first malformed or unknown token.
        """
        policy = self._parse_policy_tokens(tokenize(text))
        logger.debug("Parsed policy: %s", policy)
        return policy

    def parse_clause(self, text: str) -> Clause:
        return self._parse_clause_tokens(tokenize(text))

    def parse_annotation(self, text: str) -> Annotation:
        return Annotation(self.parse_clause(text).pairs)

    def lattice_name(self, token: str) -> str:
        """Returns the token if it names a lattice."""
        if token not in self._lattices:
            raise UnknownLatticeError(token)
        return token

    def lattice_value(self, token: str, name: str) -> str:
        """Returns the token if it is a value of lattice `name`."""
        if not self._lattices[name].contains(token):
            raise UnknownClauseValueError(token, name)
        return token

    def _parse_clause_tokens(self, tokens: List[str]) -> Clause:
        if len(tokens) % 2:
            raise ClauseArityError(tuple(tokens))
        pairs = []
        for name_token, value_token in zip(tokens[::2], tokens[1::2]):
            name = self.lattice_name(name_token)
            pairs.append(Pair(name, self.lattice_value(value_token, name)))
        return Clause(tuple(pairs))

    def _parse_policy_tokens(self, tokens: List[str]) -> Policy:
        if not tokens:
            raise ModeError("")
        if tokens[0] not in (Mode.ALLOW.value, Mode.DENY.value):
            raise ModeError(tokens[0])
        mode = Mode(tokens[0])

        end = tokens.index(EXCEPT) if EXCEPT in tokens else len(tokens)
        clause_tokens = tokens[1:end]
        for token in clause_tokens:
            if token in (LEFT_BRACE, RIGHT_BRACE):
                raise ExceptBraceError(f"unexpected {token} before {EXCEPT}")
        clause = self._parse_clause_tokens(clause_tokens)

        excepts = ()
        if end < len(tokens):
            excepts = tuple(
                self._parse_policy_tokens(group)
                for group in self._split_excepts(mode, tokens[end + 1 :])
            )
        return Policy(mode, clause, excepts, self._lattices)

    def _split_excepts(self, mode: Mode, tokens: List[str]) -> List[List[str]]:
        """Split the tokens after EXCEPT into one token list per sibling."""
        if not tokens or tokens[0] != LEFT_BRACE:
            raise ExceptBraceError(f"{EXCEPT} is not followed by {LEFT_BRACE}")
        if tokens[-1] != RIGHT_BRACE:
            raise ExceptBraceError(f"except clauses do not end with {RIGHT_BRACE}")
        body = tokens[1:-1]
        if not body:
            raise ExceptBraceError("no except clause between the braces")

        expected = mode.opposite.value
        if body[0] != expected:
            raise ExceptModeError(expected, body[0])

        groups: List[List[str]] = []
        depth = 0
        for token in body:
            if token == LEFT_BRACE:
                depth += 1
            elif token == RIGHT_BRACE:
                depth -= 1
                if depth < 0:
                    raise ExceptBraceError(f"unmatched {RIGHT_BRACE}")
            elif depth == 0 and token == expected:
                groups.append([])
            elif depth == 0 and token == mode.value:
                raise ExceptModeError(expected, token)
            groups[-1].append(token)
        if depth:
            raise ExceptBraceError(f"unmatched {LEFT_BRACE}")
        return groups
