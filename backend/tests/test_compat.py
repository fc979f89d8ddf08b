import pytest

from dynaload.core.compat import ARTIFACT_FORMAT, artifact_format_supported, is_dev_build


@pytest.mark.parametrize('fmt,expected', [
    (ARTIFACT_FORMAT, True),
    ('1.7', True),
    ('1.0.1', True),
    ('2.0', False),
    ('0.9', False),
    ('', False),
    (None, False),
    ('one-point-oh', False),
])
def test_artifact_format_supported(fmt, expected):
    assert artifact_format_supported(fmt) is expected


@pytest.mark.parametrize('value,expected', [
    ('0.0.0+local', True),
    ('1.2.0.dev3', True),
    ('1.4.2+g1a2b3c', True),
    ('not a version', True),
    ('0.1.0', False),
    ('1.4.2', False),
    ('', False),
    (None, False),
])
def test_is_dev_build(value, expected):
    assert is_dev_build(value) is expected
