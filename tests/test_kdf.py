import os

import pytest
from argon2.exceptions import HashingError

from secure_vault.crypto import kdf
from secure_vault.crypto.kdf import (
    DEFAULT_MEM_COST_KIB,
    DEFAULT_PARALLELISM,
    DEFAULT_TIME_COST,
    DERIVED_KEY_LEN,
    KDF_MEM_MAX_KIB,
    KDF_MEM_MIN_KIB,
    SALT_LEN,
    KdfParams,
    derive_key,
    recommended_params,
    resolve_kdf_params,
    validate_stored_kdf_params,
)
from secure_vault.errors import KdfError


def test_recommended_params_defaults() -> None:
    params = recommended_params()
    assert params == KdfParams()
    assert params.mem_cost_kib == DEFAULT_MEM_COST_KIB == 64 * 1024
    assert params.time_cost == DEFAULT_TIME_COST == 3
    assert params.parallelism == DEFAULT_PARALLELISM == 4
    assert params.output_len == DERIVED_KEY_LEN == 32


def test_derive_key_is_deterministic(fast_kdf: KdfParams) -> None:
    salt = os.urandom(SALT_LEN)
    first = derive_key(bytearray(b"correct horse"), salt, fast_kdf)
    second = derive_key(bytearray(b"correct horse"), salt, fast_kdf)

    assert isinstance(first, bytearray)
    assert len(first) == DERIVED_KEY_LEN
    assert first == second


def test_derive_key_depends_on_salt_and_password(fast_kdf: KdfParams) -> None:
    salt = os.urandom(SALT_LEN)
    base = derive_key(bytearray(b"pw"), salt, fast_kdf)

    assert derive_key(bytearray(b"pw"), os.urandom(SALT_LEN), fast_kdf) != base
    assert derive_key(bytearray(b"pw2"), salt, fast_kdf) != base


def test_derive_key_wipes_password(fast_kdf: KdfParams) -> None:
    password = bytearray(b"super secret")
    derive_key(password, os.urandom(SALT_LEN), fast_kdf)
    assert password == bytearray(len(password))


def test_derive_key_rejects_short_salt(fast_kdf: KdfParams) -> None:
    password = bytearray(b"pw")
    with pytest.raises(KdfError):
        derive_key(password, b"\x00" * 16, fast_kdf)
    assert password == bytearray(2)


@pytest.mark.parametrize(
    "params",
    [
        KdfParams(mem_cost_kib=KDF_MEM_MIN_KIB, time_cost=0, parallelism=4),
        KdfParams(mem_cost_kib=KDF_MEM_MIN_KIB, time_cost=3, parallelism=0),
        KdfParams(mem_cost_kib=16, time_cost=3, parallelism=4),
    ],
    ids=["time-zero", "parallelism-zero", "memory-below-lanes"],
)
def test_derive_key_rejects_unusable_params(params: KdfParams) -> None:
    password = bytearray(b"hunter2")
    with pytest.raises(KdfError):
        derive_key(password, os.urandom(SALT_LEN), params)
    assert password == bytearray(len(password))


def test_derive_key_wraps_hashing_error(monkeypatch: pytest.MonkeyPatch, fast_kdf: KdfParams) -> None:
    def _boom(**_kwargs: object) -> bytes:
        raise HashingError("out of memory")

    monkeypatch.setattr(kdf, "hash_secret_raw", _boom)
    password = bytearray(b"pw")

    with pytest.raises(KdfError):
        derive_key(password, os.urandom(SALT_LEN), fast_kdf)
    assert password == bytearray(2)


def test_resolve_kdf_params_applies_overrides() -> None:
    params = resolve_kdf_params(mem_cost_kib=KDF_MEM_MIN_KIB, time_cost=5, parallelism=2)
    assert params == KdfParams(mem_cost_kib=KDF_MEM_MIN_KIB, time_cost=5, parallelism=2)

    inherited = resolve_kdf_params(time_cost=4, base=params)
    assert inherited.mem_cost_kib == KDF_MEM_MIN_KIB
    assert inherited.parallelism == 2
    assert inherited.time_cost == 4


@pytest.mark.parametrize(
    "overrides",
    [
        {"time_cost": 2},
        {"time_cost": 11},
        {"mem_cost_kib": KDF_MEM_MIN_KIB - 1},
        {"mem_cost_kib": KDF_MEM_MAX_KIB + 1},
        {"parallelism": 0},
        {"parallelism": 9},
    ],
)
def test_resolve_kdf_params_rejects_out_of_policy(overrides: dict[str, int]) -> None:
    with pytest.raises(KdfError):
        resolve_kdf_params(**overrides)


def test_validate_stored_kdf_params() -> None:
    assert validate_stored_kdf_params(recommended_params()) == recommended_params()
    with pytest.raises(KdfError, match="Container has invalid Argon2 parameters"):
        validate_stored_kdf_params(KdfParams(mem_cost_kib=1024, time_cost=1, parallelism=1))
