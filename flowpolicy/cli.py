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

"""Evaluate annotations against a flow policy.

Usage Examples:
    # Is a node labelled with IPAddress allowed?
    python3 -m flowpolicy --lattices lattices.json \\
        --policy 'ALLOW DataType TOP EXCEPT { DENY DataType IPAddress DataType AccountID }' \\
        'DataType IPAddress' 'DataType IPAddress DataType AccountID'

    # Use TypeState as the state of DataType and read the policy from a file:
    python3 -m flowpolicy --lattices lattices.json --product DataType=TypeState \\
        --policy @policy.txt 'DataType UniqueID:Hashed'
"""

import argparse
import logging
import sys
from typing import List, Optional

from .error import FlowPolicyError, RegistryError
from .lattice import Lattice, load_lattices
from .parser import PolicyParser

EXIT_ALLOWED = 0
EXIT_DENIED = 1
EXIT_ERROR = 2


def attach_products(lattices: List[Lattice], products: List[str]) -> List[Lattice]:
    """Attach state lattices given as BASE=STATE.

    Returns the lattices that act as policy dimensions, i.e. all but the
    ones only used as a state.
    """
    by_name = {lattice.name: lattice for lattice in lattices}
    bases, states = set(), set()
    for product in products:
        base, sep, state = product.partition("=")
        if not sep or not base or not state:
            raise RegistryError(f"--product expects BASE=STATE, got {product!r}")
        for name in (base, state):
            if name not in by_name:
                raise RegistryError(f"--product names unknown lattice {name}")
        by_name[base].product(by_name[state])
        bases.add(base)
        states.add(state)
    return [l for l in lattices if l.name not in states or l.name in bases]


def read_policy(value: str) -> str:
    """Policy text, read from a file when given as @path."""
    if value.startswith("@"):
        with open(value[1:], "r") as f:
            return f.read()
    return value


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Evaluate annotations against a flow policy."
    )
    parser.add_argument(
        "--lattices",
        required=True,
        help="JSON file with a lattice object or a list of lattice objects.",
    )
    parser.add_argument(
        "--product",
        action="append",
        default=[],
        metavar="BASE=STATE",
        help="Attach lattice STATE as the state of lattice BASE.",
    )
    parser.add_argument(
        "--policy",
        required=True,
        help="Policy text, or @path to read it from a file.",
    )
    parser.add_argument(
        "--show",
        action="store_true",
        help="Print the parsed policy.",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging.",
    )
    parser.add_argument(
        "annotations",
        nargs="+",
        help="Annotations, e.g. 'DataType IPAddress Purpose Sharing'.",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        lattices = attach_products(load_lattices(args.lattices), args.product)
        policy_parser = PolicyParser(lattices)
        policy = policy_parser.parse_policy(read_policy(args.policy))
        annotations = [policy_parser.parse_annotation(a) for a in args.annotations]
    except (OSError, FlowPolicyError) as e:
        print(f"error: {e}", file=sys.stderr)
        return EXIT_ERROR

    if args.show:
        print(policy)

    status = EXIT_ALLOWED
    for text, annotation in zip(args.annotations, annotations):
        allowed = policy.apply_on(annotation)
        if not allowed:
            status = EXIT_DENIED
        print(f"{'ALLOW' if allowed else 'DENY'}\t{text}")
    return status


if __name__ == "__main__":
    sys.exit(main())
