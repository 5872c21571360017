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

"""Flow Policy Library - Policies.

A policy is an ALLOW or DENY rule over lattice attributes with nested
EXCEPT carve-outs of the opposite mode:

    DENY DataType UniqueID
    EXCEPT {
      ALLOW DataType AccountID DataType Location
      ALLOW DataType AccountID DataType IPAddress
    }

Evaluation follows the inference rules of the policy language: an ALLOW
rule permits annotations whose values fall under its clause unless an
except revokes them; a DENY rule forbids annotations that overlap its
clause unless an except permits the overlap.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Mapping, Tuple

from .clause import Annotation, Clause, Pair
from .error import ExceptModeError
from .lattice import Lattice

logger = logging.getLogger(__name__)

EXCEPT = "EXCEPT"


class Mode(Enum):
    ALLOW = "ALLOW"
    DENY = "DENY"

    @property
    def opposite(self) -> Mode:
        return Mode.DENY if self is Mode.ALLOW else Mode.ALLOW

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Policy:
    """Policy node: mode, clause and except sub-policies.

    `lattices` maps lattice names to lattices. The same read-only mapping
    is shared by every node of a tree and is left out of equality.
    """

    mode: Mode
    clause: Clause = Clause()
    excepts: Tuple[Policy, ...] = ()
    lattices: Mapping[str, Lattice] = field(
        default_factory=dict, compare=False, repr=False
    )

    def __post_init__(self) -> None:
        for ex in self.excepts:
            if ex.mode is not self.mode.opposite:
                raise ExceptModeError(str(self.mode.opposite), str(ex.mode))

    def apply_on(self, annotation: Clause) -> bool:
        """Decide whether the policy permits the annotation.

        Returns:
            True if the annotation is allowed, False if it is denied.
        """
        if self.mode is Mode.ALLOW:
            result = self._apply_allow(annotation)
        else:
            result = self._apply_deny(annotation)
        logger.debug("%s %s on [%s]: %s", self.mode, self.clause, annotation, result)
        return result

    def _apply_allow(self, annotation: Clause) -> bool:
        for name, lattice in self.lattices.items():
            if not lattice.allow(self.clause.values_of(name), annotation.values_of(name)):
                return False
        # Excepts are DENY rules; any one firing revokes the permission.
        return all(ex.apply_on(annotation) for ex in self.excepts)

    def _apply_deny(self, annotation: Clause) -> bool:
        # One lattice without overlap is enough for the annotation to escape.
        for name, lattice in self.lattices.items():
            if not lattice.deny(self.clause.values_of(name), annotation.values_of(name)):
                return True

        # Excepts only ever see what this rule matched.
        overlap = Annotation(
            tuple(
                Pair(name, value)
                for name, lattice in self.lattices.items()
                for value in lattice.overlap(
                    annotation.values_of(name), self.clause.values_of(name)
                )
            )
        )
        return any(ex.apply_on(overlap) for ex in self.excepts)

    def __str__(self) -> str:
        head = " ".join(part for part in (str(self.mode), str(self.clause)) if part)
        if not self.excepts:
            return head
        body = " ".join(str(ex) for ex in self.excepts)
        return f"{head} {EXCEPT} {{ {body} }}"
