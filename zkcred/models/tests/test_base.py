import json

from unittest import TestCase

from marshmallow import EXCLUDE, fields

from ..base import BaseModel, BaseModelError, BaseModelSchema, resolve_class
from ..valid import BigIntStr


class ModelImpl(BaseModel):
    class Meta:
        schema_class = "SchemaImpl"

    def __init__(self, *, attr=None, big=None):
        self.attr = attr
        self.big = big


class SchemaImpl(BaseModelSchema):
    class Meta:
        model_class = ModelImpl
        unknown = EXCLUDE

    attr = fields.String(required=True)
    big = BigIntStr(required=False, allow_none=True)


class TestBase(TestCase):
    def test_model_validate_fails(self):
        with self.assertRaises(BaseModelError):
            ModelImpl.deserialize({})

    def test_deserialize(self):
        model = ModelImpl.deserialize({"attr": "x", "big": str(1 << 200)})
        assert model.attr == "x"
        assert model.big == 1 << 200
        assert ModelImpl.deserialize(None, none2none=True) is None

    def test_serialize_skips_none(self):
        model = ModelImpl(attr="x")
        assert model.serialize() == {"attr": "x"}
        assert json.loads(model.serialize(as_string=True)) == {"attr": "x"}

    def test_json_round_trip(self):
        model = ModelImpl(attr="x", big=12)
        assert ModelImpl.from_json(model.to_json()) == model
        with self.assertRaises(BaseModelError):
            ModelImpl.from_json("{not json")

    def test_equality(self):
        assert ModelImpl(attr="x") == ModelImpl(attr="x")
        assert ModelImpl(attr="x") != ModelImpl(attr="y")
        assert ModelImpl(attr="x") != "x"

    def test_repr(self):
        assert "attr='x'" in repr(ModelImpl(attr="x"))

    def test_resolve_class(self):
        assert resolve_class(ModelImpl) is ModelImpl
        assert resolve_class("SchemaImpl", ModelImpl) is SchemaImpl
        with self.assertRaises(BaseModelError):
            resolve_class("Missing", ModelImpl)
        with self.assertRaises(TypeError):
            resolve_class(12)

    def test_abstract_model(self):
        class Bare(BaseModel):
            pass

        with self.assertRaises(TypeError):
            Bare()
