"""Key derivation helpers using Argon2id."""

from __future__ import annotations

from dataclasses import dataclass

from argon2.exceptions import HashingError
from argon2.low_level import ARGON2_VERSION, Type, hash_secret_raw

from secure_vault.crypto.secure_memory import secure_zeroize
from secure_vault.errors import KdfError

DEFAULT_MEM_COST_KIB = 64 * 1024  # 64 MiB
DEFAULT_TIME_COST = 3
DEFAULT_PARALLELISM = 4
DERIVED_KEY_LEN = 32
SALT_LEN = 32

# Policy bounds. The time cost may only be raised above the default.
KDF_MEM_MIN_KIB = 32 * 1024
KDF_MEM_MAX_KIB = 2 * 1024 * 1024
KDF_TIME_MIN = DEFAULT_TIME_COST
KDF_TIME_MAX = 10
KDF_PARALLELISM_MIN = 1
KDF_PARALLELISM_MAX = 8


@dataclass(frozen=True)
class KdfParams:
    mem_cost_kib: int = DEFAULT_MEM_COST_KIB
    time_cost: int = DEFAULT_TIME_COST
    parallelism: int = DEFAULT_PARALLELISM
    output_len: int = DERIVED_KEY_LEN


def _check_primitive_range(salt: bytes, params: KdfParams) -> None:
    if len(salt) != SALT_LEN:
        raise KdfError(f"Salt must be {SALT_LEN} bytes long, got {len(salt)}")
    if params.output_len != DERIVED_KEY_LEN:
        raise KdfError(f"Unsupported output length: {params.output_len}")
    if params.time_cost < 1:
        raise KdfError("Argon2 time cost must be at least 1")
    if params.parallelism < 1:
        raise KdfError("Argon2 parallelism must be at least 1")
    if params.mem_cost_kib < 8 * params.parallelism:
        raise KdfError("Argon2 memory must be at least 8 KiB per lane")


def derive_key(password: bytearray, salt: bytes, params: KdfParams) -> bytearray:
    """Derive a 256-bit key from ``password`` using Argon2id.

    ``password`` is wiped before this function returns, whether derivation
    succeeded or not. The result is a ``bytearray`` so the caller can wipe it
    after last use.
    """

    try:
        _check_primitive_range(salt, params)
        raw = hash_secret_raw(
            secret=bytes(password),
            salt=salt,
            time_cost=params.time_cost,
            memory_cost=params.mem_cost_kib,
            parallelism=params.parallelism,
            hash_len=params.output_len,
            type=Type.ID,
            version=ARGON2_VERSION,
        )
    except HashingError as exc:
        raise KdfError(f"Argon2 derivation failed: {exc}") from exc
    finally:
        secure_zeroize(password)
    return bytearray(raw)


def recommended_params() -> KdfParams:
    """Return recommended default Argon2id parameters."""

    return KdfParams()


def _validate_kdf_params(params: KdfParams) -> KdfParams:
    if not (KDF_MEM_MIN_KIB <= params.mem_cost_kib <= KDF_MEM_MAX_KIB):
        raise KdfError(
            f"Argon2 memory must be between {KDF_MEM_MIN_KIB} and {KDF_MEM_MAX_KIB} KiB",
        )
    if not (KDF_TIME_MIN <= params.time_cost <= KDF_TIME_MAX):
        raise KdfError(
            f"Argon2 time cost must be between {KDF_TIME_MIN} and {KDF_TIME_MAX}",
        )
    if not (KDF_PARALLELISM_MIN <= params.parallelism <= KDF_PARALLELISM_MAX):
        raise KdfError(
            "Argon2 parallelism must be between "
            f"{KDF_PARALLELISM_MIN} and {KDF_PARALLELISM_MAX}",
        )
    if params.output_len != DERIVED_KEY_LEN:
        raise KdfError(f"Unsupported output length: {params.output_len}")
    return params


def validate_stored_kdf_params(params: KdfParams) -> KdfParams:
    """Check parameters read back from a container header."""

    try:
        return _validate_kdf_params(params)
    except KdfError as exc:
        raise KdfError("Container has invalid Argon2 parameters") from exc


def resolve_kdf_params(
    *,
    mem_cost_kib: int | None = None,
    time_cost: int | None = None,
    parallelism: int | None = None,
    base: KdfParams | None = None,
) -> KdfParams:
    """Build validated Argon2 parameters using overrides when provided."""
    defaults = base or recommended_params()
    candidate = KdfParams(
        mem_cost_kib=mem_cost_kib if mem_cost_kib is not None else defaults.mem_cost_kib,
        time_cost=time_cost if time_cost is not None else defaults.time_cost,
        parallelism=parallelism if parallelism is not None else defaults.parallelism,
    )
    return _validate_kdf_params(candidate)
