"""Tests for the password generator."""

import string

import pytest

from vaultify import config
from vaultify.generator import generate_password


def test_default_length():
    assert len(generate_password()) == config.PASSWORD_GENERATOR_DEFAULT_LENGTH


@pytest.mark.parametrize("length", [8, 33, 128])
def test_requested_length(length):
    assert len(generate_password(length)) == length


def test_single_class():
    password = generate_password(64, uppercase=False, lowercase=False, symbols=False)
    assert set(password) <= set(string.digits)


def test_exclude_ambiguous():
    password = generate_password(128, lowercase=False, symbols=False, exclude_ambiguous=True)
    assert not set(password) & set(config.PASSWORD_GENERATOR_AMBIGUOUS_CHARS)


def test_no_class_selected():
    with pytest.raises(ValueError):
        generate_password(uppercase=False, lowercase=False, digits=False, symbols=False)


@pytest.mark.parametrize("length", [0, 7, 129])
def test_length_out_of_bounds(length):
    with pytest.raises(ValueError):
        generate_password(length)


def test_passwords_differ():
    assert len({generate_password() for _ in range(10)}) == 10
