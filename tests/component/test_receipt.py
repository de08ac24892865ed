import sys
import os

import pytest

sys.path.append(os.path.join(os.path.dirname(__file__), '..', '..'))
import ranktally.component.receipt as receipt


def test_serialize_ranking():
    assert receipt.serialize_ranking([3, 1, 2]) == b'[3,1,2]'
    assert receipt.serialize_ranking(()) == b'[]'


@pytest.mark.parametrize('ranking', [[1, '2'], [1.0], [True]])
def test_serialize_ranking_invalid(ranking):
    with pytest.raises(TypeError):
        receipt.serialize_ranking(ranking)


def test_receipt_known_value():
    assert receipt.receipt_for([3, 1, 2], b'salt') == (
        'a46ce2caff1e43d0fdebc4725c12231ee2000610e29c0768c604e3f966c86a16'
    )
    assert receipt.receipt_for((), b'salt') == (
        'dc8aa2c145811392d6d810d3f72d74a872e46bf3ebc9b65b45683dbea63416d0'
    )


def test_receipt_recomputes():
    salt = receipt.generate_salt()
    issued = receipt.receipt_for((2, 1), salt)
    assert len(issued) == 64
    assert issued == issued.lower()
    assert receipt.verify_receipt(issued, [2, 1], salt)
    assert receipt.verify_receipt(issued.upper(), [2, 1], salt)


def test_receipt_changes():
    salt = bytes(range(32))
    base = receipt.receipt_for([1, 2, 3], salt)
    assert receipt.receipt_for([1, 2, 4], salt) != base
    assert receipt.receipt_for([1, 3, 2], salt) != base
    changed_salt = bytes([1]) + salt[1:]
    assert receipt.receipt_for([1, 2, 3], changed_salt) != base
    assert not receipt.verify_receipt(base, [1, 2, 4], salt)


def test_bad_salt():
    with pytest.raises(TypeError):
        receipt.receipt_for([1], 'salt')
    with pytest.raises(ValueError):
        receipt.receipt_for([1], b'')


def test_generate_salt():
    salt = receipt.generate_salt()
    assert isinstance(salt, bytes)
    assert len(salt) == receipt.SALT_BYTES
    assert salt != receipt.generate_salt()


def test_receipt_included():
    published = ['ab' * 32, 'cd' * 32]
    assert receipt.receipt_included(' ' + 'AB' * 32 + '\n', published)
    assert not receipt.receipt_included('ef' * 32, published)
