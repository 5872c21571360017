"""Unit tests for policy evaluation."""

import pytest
from flowpolicy import Annotation, Mode, PolicyParser, parse_lattice

DATA_TYPE = """{ "name": "DataType",
    "edges": {
        "UniqueID": ["AccountID", "IPAddress"],
        "Location": ["IPAddress"] } }"""

PURPOSE = '{ "name": "Purpose", "edges": { "Sharing": [], "Analytics": [] } }'

TYPE_STATE = """{ "name": "TypeState",
    "edges": {
        "Encrypted": [],
        "Hashed": [],
        "Truncated": ["Redacted"] } }"""


@pytest.fixture
def parser():
    return PolicyParser([parse_lattice(DATA_TYPE), parse_lattice(PURPOSE)])


@pytest.fixture
def product_parser():
    data_type = parse_lattice(DATA_TYPE)
    data_type.product(parse_lattice(TYPE_STATE))
    return PolicyParser([data_type])


def apply(parser, policy, annotation):
    return parser.parse_policy(policy).apply_on(parser.parse_annotation(annotation))


EXCEPT_PAIR = "ALLOW DataType TOP EXCEPT { DENY DataType IPAddress DataType AccountID }"


class TestApplyOn:
    @pytest.mark.parametrize(
        "policy, annotation, want",
        [
            ("DENY DataType IPAddress DataType AccountID", "DataType IPAddress", True),
            ("DENY DataType IPAddress", "DataType IPAddress DataType AccountID", False),
            (EXCEPT_PAIR, "DataType IPAddress", True),
            (EXCEPT_PAIR, "DataType IPAddress DataType AccountID", False),
        ],
    )
    def test_apply_on(self, parser, policy, annotation, want):
        assert apply(parser, policy, annotation) is want

    def test_allow_requires_every_value(self, parser):
        policy = "ALLOW DataType UniqueID"
        assert apply(parser, policy, "DataType AccountID DataType IPAddress")
        assert not apply(parser, policy, "DataType AccountID DataType Location")

    def test_allow_accepts_any_listed_bound(self, parser):
        policy = "ALLOW DataType AccountID DataType Location"
        assert apply(parser, policy, "DataType IPAddress DataType AccountID")
        assert not apply(parser, policy, "DataType UniqueID")

    def test_allow_checks_every_lattice(self, parser):
        policy = "ALLOW DataType TOP"
        assert apply(parser, policy, "DataType UniqueID")
        assert not apply(parser, policy, "DataType UniqueID Purpose Sharing")

    def test_empty_annotation_is_allowed(self, parser):
        policy = parser.parse_policy("ALLOW DataType UniqueID")
        assert policy.apply_on(Annotation())

    def test_deny_except_sees_overlap(self, parser):
        """The except is matched against the intersection with UniqueID."""
        policy = "DENY DataType UniqueID EXCEPT { ALLOW DataType AccountID }"
        assert apply(parser, policy, "DataType AccountID")
        assert not apply(parser, policy, "DataType IPAddress")
        # Location overlaps UniqueID at IPAddress, which the except does not cover.
        assert not apply(parser, policy, "DataType Location")

    def test_deny_with_sibling_excepts(self, parser):
        policy = """DENY DataType UniqueID
        EXCEPT {
          ALLOW DataType AccountID
          ALLOW DataType IPAddress
        }"""
        assert apply(parser, policy, "DataType AccountID")
        assert apply(parser, policy, "DataType IPAddress")
        assert not apply(parser, policy, "DataType UniqueID")

    def test_nested_excepts(self, parser):
        """Deny UniqueID for any purpose, except AccountID unless it is shared."""
        policy = """DENY DataType UniqueID Purpose TOP
        EXCEPT {
          ALLOW DataType AccountID Purpose TOP
          EXCEPT { DENY Purpose Sharing }
        }"""
        assert apply(parser, policy, "DataType AccountID Purpose Analytics")
        assert not apply(parser, policy, "DataType AccountID Purpose Sharing")
        assert not apply(parser, policy, "DataType IPAddress Purpose Analytics")

    def test_deny_drops_lattices_missing_from_its_clause(self, parser):
        """Excepts under a DENY only see lattices the DENY clause names.

        Purpose is not in the outer clause, so the nested DENY on Purpose
        sees no Purpose values and always fires.
        """
        policy = """DENY DataType UniqueID
        EXCEPT {
          ALLOW DataType AccountID Purpose TOP
          EXCEPT { DENY Purpose Sharing }
        }"""
        assert not apply(parser, policy, "DataType AccountID Purpose Analytics")

    def test_deny_escapes_on_any_lattice_without_overlap(self, parser):
        """A single lattice without overlap lets the annotation through.

        DataType AccountID does not overlap IPAddress, so the annotation
        escapes even though Purpose Sharing overlaps.
        """
        policy = "DENY DataType IPAddress Purpose Sharing"
        assert apply(parser, policy, "DataType AccountID Purpose Sharing")
        assert not apply(parser, policy, "DataType IPAddress Purpose Sharing")

    def test_deny_without_values_for_a_lattice(self, parser):
        """A lattice the annotation says nothing about never rescues it."""
        policy = "DENY DataType IPAddress Purpose Sharing"
        assert not apply(parser, policy, "DataType IPAddress")

    def test_policy_is_reusable(self, parser):
        policy = parser.parse_policy(EXCEPT_PAIR)
        annotations = ["DataType IPAddress", "DataType IPAddress DataType AccountID"]
        first = [policy.apply_on(parser.parse_annotation(a)) for a in annotations]
        second = [policy.apply_on(parser.parse_annotation(a)) for a in annotations]
        assert first == second == [True, False]


class TestApplyOnProducts:
    def test_allow_product_value(self, product_parser):
        policy = "ALLOW DataType UniqueID:Hashed"
        assert apply(product_parser, policy, "DataType AccountID:Hashed")
        assert not apply(product_parser, policy, "DataType AccountID")
        assert not apply(product_parser, policy, "DataType AccountID:Encrypted")

    def test_deny_except_product_value(self, product_parser):
        policy = "DENY DataType UniqueID EXCEPT { ALLOW DataType UniqueID:Hashed }"
        assert apply(product_parser, policy, "DataType AccountID:Hashed")
        assert not apply(product_parser, policy, "DataType AccountID:Truncated")
        assert not apply(product_parser, policy, "DataType AccountID")

    def test_deny_escapes_on_disjoint_state(self, product_parser):
        policy = "DENY DataType UniqueID:Encrypted"
        assert apply(product_parser, policy, "DataType UniqueID:Hashed")
        assert not apply(product_parser, policy, "DataType AccountID:Encrypted")


class TestMode:
    def test_opposite(self):
        assert Mode.ALLOW.opposite is Mode.DENY
        assert Mode.DENY.opposite is Mode.ALLOW
