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

"""Flow Policy Library - Exceptions.

Informative exceptions for malformed lattices and policy text.
"""

from dataclasses import dataclass
from typing import Tuple


class FlowPolicyError(Exception):
    """Base class for every error raised by this library."""


@dataclass
class LatticeSpecError(FlowPolicyError):
    """Lattice specification cannot be turned into a lattice."""

    reason: str

    def __str__(self) -> str:
        return f"Invalid lattice specification: {self.reason}"


@dataclass
class RegistryError(FlowPolicyError):
    """Set of lattices cannot back a policy."""

    reason: str

    def __str__(self) -> str:
        return f"Invalid lattice registry: {self.reason}"


@dataclass
class ProductError(FlowPolicyError):
    """Lattice already has a state lattice attached."""

    lattice: str
    state: str

    def __str__(self) -> str:
        return f"Lattice {self.lattice} already has state lattice {self.state}"


@dataclass
class UnknownValueError(FlowPolicyError):
    """Value is not an element of the lattice."""

    value: str
    lattice: str

    def __str__(self) -> str:
        return f"{self.value} is not a valid value in lattice {self.lattice}"


class PolicySyntaxError(FlowPolicyError):
    """Base class for errors in policy, clause or annotation text."""


@dataclass
class UnknownLatticeError(PolicySyntaxError):
    """Attribute name does not match any registered lattice."""

    name: str

    def __str__(self) -> str:
        return f"{self.name} is not a valid lattice name"


@dataclass
class UnknownClauseValueError(PolicySyntaxError, UnknownValueError):
    """Clause value is not an element of the lattice it is paired with."""


@dataclass
class ClauseArityError(PolicySyntaxError):
    """Clause is not composed of name-value pairs."""

    tokens: Tuple[str, ...]

    def __str__(self) -> str:
        return f"Clause is not composed of name-value pairs: {' '.join(self.tokens)!r}"


@dataclass
class ModeError(PolicySyntaxError):
    """Policy does not start with ALLOW or DENY."""

    token: str

    def __str__(self) -> str:
        if not self.token:
            return "Policy is empty, expected ALLOW or DENY"
        return f"Policy starts with {self.token!r}, expected ALLOW or DENY"


@dataclass
class ExceptBraceError(PolicySyntaxError):
    """Except clauses are not wrapped by matching braces."""

    reason: str

    def __str__(self) -> str:
        return f"Except clause isn't wrapped by {{ and }}: {self.reason}"


@dataclass
class ExceptModeError(PolicySyntaxError):
    """Except clause does not have the opposite mode of its parent."""

    expected: str
    found: str

    def __str__(self) -> str:
        return f"Except clause starts with {self.found!r}, expected {self.expected}"
