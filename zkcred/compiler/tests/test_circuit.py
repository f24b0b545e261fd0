import json
from unittest import IsolatedAsyncioTestCase, TestCase
from unittest import mock

from ...backend.base import BaseCircuitCompiler, CompiledCircuit
from ...core.error import InvalidTypeParameter
from ...credential.cred_type import parse_cred_type
from ..circuit import MAX_PUBLIC_SIGNALS, Circuit, gen_circuit, gen_field_def, setup_type


class TestCircuit(TestCase):
    def setUp(self):
        self.cred_type = parse_cred_type(
            "age:uint<8>;tag:prop<16,k,2>;ok:bool;@revocable(20)"
        ).with_type_id(12)

    def test_fields(self):
        circuit = gen_circuit(self.cred_type)
        age, tag, ok = circuit.fields
        assert age.inputs == ["age"]
        assert age.operations == ["age_lb", "age_ub"]
        assert [o.ceiling for o in age.outputs] == [256, 256]
        assert tag.operations == ["tag_eq_check0", "tag_eq_check1"]
        assert [o.name for o in tag.outputs] == ["out_tag_eq0", "out_tag_eq1"]
        assert tag.outputs[0].ceiling == 1 << 17
        assert ok.outputs[0].ceiling == 4

    def test_signal_defs(self):
        circuit = Circuit(self.cred_type)
        assert len(circuit.intrinsic_signal_defs) == 9
        assert len(circuit.public_signal_defs) == 14
        assert circuit.intrinsic_signal_indexes["revocation_root"] == 8
        assert "public_signals=14" in repr(circuit)

    def test_check_public_signals(self):
        circuit = Circuit(parse_cred_type("ok:bool").with_type_id(2))
        good = [1, 2, 3, 4, 5, 6, 7, 8, 3]
        assert circuit.check_public_signals(good)
        assert not circuit.check_public_signals(good[:-1])
        assert not circuit.check_public_signals(good[:-1] + [4])
        assert not circuit.check_public_signals([1, 2, 1 << 160] + good[3:])
        assert not circuit.check_public_signals([-1] + good[1:])

    def test_too_many_signals(self):
        claims = ";".join(f"c{i}:prop<8,c,8>" for i in range(32))
        with self.assertRaises(InvalidTypeParameter):
            Circuit(parse_cred_type(claims))
        claims = ";".join(f"c{i}:prop<8,c,8>" for i in range(31))
        assert len(Circuit(parse_cred_type(claims)).public_signal_defs) <= MAX_PUBLIC_SIGNALS

    def test_source(self):
        source = json.loads(Circuit(self.cred_type).source())
        assert source["version"] == 1
        assert source["type_id"] == "12"
        assert source["revocable"] == 20
        assert source["claims"][1]["type"] == "prop<16,k,2>"
        assert source["public_signals"][0] == {
            "name": "context",
            "ceiling": str(1 << 160),
        }

    def test_gen_field_def_x(self):
        with self.assertRaises(InvalidTypeParameter):
            gen_field_def(mock.MagicMock(type="uint<8>"))


class TestSetupType(IsolatedAsyncioTestCase):
    async def test_setup(self):
        cred_type = parse_cred_type("val:uint<248>").with_type_id(3)
        compiled = CompiledCircuit(
            constraint_count=10,
            verifying_key={"protocol": "x"},
            proving_key_artifact="file://x",
        )
        compiler = mock.MagicMock(spec=BaseCircuitCompiler)
        compiler.compile = mock.AsyncMock(return_value=compiled)

        result = await setup_type(cred_type, compiler)
        assert result is compiled
        source = json.loads(compiler.compile.call_args[0][0])
        assert source["type_id"] == "3"
        assert len(source["public_signals"]) == 10
