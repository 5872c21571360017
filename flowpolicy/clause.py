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

"""Flow Policy Library - Clauses.

Provides Pair, Clause and Annotation: ordered lists of lattice attributes.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator, List, Tuple


@dataclass(frozen=True)
class Pair:
    """Attribute name (a lattice) and value (an element of that lattice)."""

    name: str
    value: str

    def __str__(self) -> str:
        return f"{self.name} {self.value}"


@dataclass(frozen=True)
class Clause:
    """Ordered attribute pairs.

    A name may repeat, e.g. `DataType IPAddress DataType AccountID`.
    """

    pairs: Tuple[Pair, ...] = ()

    def values_of(self, name: str) -> List[str]:
        """Values paired with `name`, in order."""
        return [p.value for p in self.pairs if p.name == name]

    def __iter__(self) -> Iterator[Pair]:
        return iter(self.pairs)

    def __len__(self) -> int:
        return len(self.pairs)

    def __getitem__(self, index: int) -> Pair:
        return self.pairs[index]

    def __str__(self) -> str:
        return " ".join(str(p) for p in self.pairs)


@dataclass(frozen=True)
class Annotation(Clause):
    """Clause used as the label of data or a program element."""
