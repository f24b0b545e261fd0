import pytest

from ...core.error import (
    DuplicateClaimName,
    InvalidClaimName,
    InvalidPragma,
    InvalidTypeParameter,
    UnknownClaim,
)
from ..claim_type import BoolType, ClaimDef, PropHash, PropType, ScalarType
from ..cred_type import CredentialType, compute_type_id, parse_cred_type, parse_pragma


class TestParseCredType:
    def test_parse(self):
        cred_type = parse_cred_type(
            "@revocable(16); age:uint<8>; gender:prop<8,c,1>; verified:bool;"
        )
        assert cred_type.revocable == 16
        assert cred_type.is_revocable
        assert cred_type.type_id == 0
        assert cred_type.claim_names == ["age", "gender", "verified"]
        assert cred_type.claims[1] == ClaimDef("gender", PropType(8, PropHash.CUSTOM, 1))
        assert cred_type.claim("verified").type == BoolType()
        assert cred_type.index_of("gender") == 1
        with pytest.raises(UnknownClaim):
            cred_type.index_of("missing")

    def test_unit(self):
        cred_type = parse_cred_type("")
        assert cred_type.claims == ()
        assert not cred_type.is_revocable
        assert cred_type.definition() == ""

    def test_definition_round_trip(self):
        cred_type = parse_cred_type("a:uint<64>;b:prop<16,k,2>;c:bool;@revocable(20)")
        assert cred_type.definition() == "a:uint<64>;b:prop<16,k,2>;c:bool;@revocable(20)"
        assert parse_cred_type(cred_type.definition()) == cred_type

    def test_with_type_id(self):
        cred_type = parse_cred_type("val:uint<248>")
        typed = cred_type.with_type_id(3)
        assert typed.type_id == 3
        assert cred_type.type_id == 0
        assert typed != cred_type
        assert "type_id=3" in repr(typed)

    def test_equality_includes_variant(self):
        a = CredentialType([ClaimDef("x", ScalarType(8))])
        b = CredentialType([ClaimDef("x", ScalarType(8))])
        c = CredentialType([ClaimDef("x", ScalarType(16))])
        assert a == b
        assert a != c
        assert a != "x"

    @pytest.mark.parametrize(
        "text",
        [
            "@revocable(249);age:uint<256>;",
            "@revocable(1);age:uint<256>;",
            "@dota(4);age:uint<256>;",
            "@revocable(33, 44)",
            "@revocable(-1)",
            '@revocable("1")',
            "@revocable(8);@revocable(8)",
            "@revocable",
        ],
    )
    def test_invalid_pragmas(self, text):
        with pytest.raises(InvalidPragma):
            parse_cred_type(text)

    def test_invalid_claims(self):
        with pytest.raises(DuplicateClaimName):
            parse_cred_type("a:uint<8>;a:bool")
        with pytest.raises(InvalidClaimName):
            parse_cred_type("sig_a:uint<8>")
        with pytest.raises(InvalidTypeParameter):
            parse_cred_type("a:uint<256>")

    def test_parse_pragma(self):
        pragma = parse_pragma("@revocable( 16 )")
        assert pragma.name == "revocable"
        assert pragma.values == ("16",)


class TestTypeID:
    def test_compute_type_id(self):
        assert compute_type_id(
            "0x5B38Da6a701c568545dCfcB03FcB875f56beddC4", "SuperType"
        ) == 1373315977952188719538328827245433171644805209404

    def test_lowercase_creator(self):
        assert compute_type_id(
            "0x5b38da6a701c568545dcfcb03fcb875f56beddc4", "SuperType"
        ) == compute_type_id("0x5B38Da6a701c568545dCfcB03FcB875f56beddC4", "SuperType")

    def test_distinct_names(self):
        creator = "0x5B38Da6a701c568545dCfcB03FcB875f56beddC4"
        assert compute_type_id(creator, "A") != compute_type_id(creator, "B")
        assert compute_type_id(creator, "A") < 1 << 160
