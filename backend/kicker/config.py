import logging
import os

logger = logging.getLogger(__name__)


def _canon_prefix(val):
    """
    Normalize API prefix to always be exactly like '/api':
      - defaults to '/api' when unset/empty
      - ensures a single leading slash
      - removes any trailing slash (except for root)
    """
    val = (val or "/api").strip()
    if not val.startswith("/"):
        val = "/" + val
    if len(val) > 1 and val.endswith("/"):
        val = val[:-1]
    return val


def _parse_int(env_var: str, default: int) -> int:
    raw_value = os.getenv(env_var)
    if raw_value is None or not raw_value.strip():
        return default

    try:
        return int(raw_value)
    except ValueError:
        logger.warning(
            "%s is not a valid integer (got %r); defaulting to %d",
            env_var,
            raw_value,
            default,
        )
        return default


API_PREFIX = _canon_prefix(os.getenv("API_PREFIX"))

MUTATION_POLICIES = {"reject", "queue"}
STORAGE_BACKENDS = {"database", "memory"}


def get_win_rule() -> str:
    """Return the configured match-winning rule string.

    There is no default; a ``RuntimeError`` is raised when ``KICKER_WIN_RULE``
    is unset.
    """

    rule = (os.getenv("KICKER_WIN_RULE") or "").strip()
    if not rule:
        raise RuntimeError("KICKER_WIN_RULE environment variable is required")
    return rule


def get_default_best_of() -> int:
    return _parse_int("KICKER_DEFAULT_BEST_OF", 3)


def get_mutation_policy() -> str:
    policy = (os.getenv("KICKER_MUTATION_POLICY") or "reject").strip().lower()
    if policy not in MUTATION_POLICIES:
        logger.warning(
            "KICKER_MUTATION_POLICY must be one of %s (got %r); defaulting to 'reject'",
            sorted(MUTATION_POLICIES),
            policy,
        )
        return "reject"
    return policy


def get_storage_backend() -> str:
    backend = (os.getenv("KICKER_STORAGE") or "database").strip().lower()
    if backend not in STORAGE_BACKENDS:
        raise RuntimeError(
            f"KICKER_STORAGE must be one of {sorted(STORAGE_BACKENDS)}, got {backend!r}"
        )
    return backend
