"""Flow Policy Library.

Classification lattices and an ALLOW/DENY/EXCEPT policy language for
information flow control.
"""

from .clause import Annotation, Clause, Pair
from .error import (
    ClauseArityError,
    ExceptBraceError,
    ExceptModeError,
    FlowPolicyError,
    LatticeSpecError,
    ModeError,
    PolicySyntaxError,
    ProductError,
    RegistryError,
    UnknownClauseValueError,
    UnknownLatticeError,
    UnknownValueError,
)
from .lattice import (
    BOTTOM,
    TOP,
    Edge,
    Lattice,
    ProductValue,
    load_lattices,
    parse_lattice,
    parse_lattices,
)
from .parser import PolicyParser, tokenize
from .policy import Mode, Policy

__all__ = [
    # Lattices
    "TOP",
    "BOTTOM",
    "Edge",
    "ProductValue",
    "Lattice",
    "parse_lattice",
    "parse_lattices",
    "load_lattices",
    # Clauses
    "Pair",
    "Clause",
    "Annotation",
    # Policies
    "Mode",
    "Policy",
    "PolicyParser",
    "tokenize",
    # Errors
    "FlowPolicyError",
    "LatticeSpecError",
    "RegistryError",
    "ProductError",
    "UnknownValueError",
    "PolicySyntaxError",
    "UnknownLatticeError",
    "UnknownClauseValueError",
    "ClauseArityError",
    "ModeError",
    "ExceptBraceError",
    "ExceptModeError",
]
