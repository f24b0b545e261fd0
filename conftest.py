import pytest

from zkcred.crypto import field


@pytest.fixture(autouse=True)
def prepared_field():
    field.reset()
    field.prepare()
    yield
    field.reset()
