"""Payment redirect tokens and the redirect query-parameter contract.

A token is 25 distinct words from a fixed 50-word vocabulary joined by ``-``.
The provider sends the payer back with ``paymentMethod``, ``transactionId``,
``paymentAmount``, optional ``paymentFee`` and ``status`` in the query string.
"""
from __future__ import annotations

import math
import secrets
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from urllib.parse import parse_qs

VOCABULARY: tuple[str, ...] = (
    "alpha", "beta", "gamma", "delta", "epsilon", "zeta", "eta", "theta", "iota", "kappa",
    "lambda", "mu", "nu", "xi", "omicron", "pi", "rho", "sigma", "tau", "upsilon",
    "phi", "chi", "psi", "omega", "prime", "quantum", "nexus", "matrix", "vector", "cipher",
    "phoenix", "storm", "blade", "shadow", "crystal", "thunder", "lightning", "fire", "ice", "wind",
    "earth", "water", "light", "dark", "void", "star", "moon", "sun", "galaxy", "cosmos",
)
WORDS_PER_TOKEN = 25
DELIMITER = "-"

_VOCABULARY_SET = frozenset(VOCABULARY)

if len(_VOCABULARY_SET) != len(VOCABULARY):
    raise ValueError("payment token vocabulary contains duplicates")
if len(VOCABULARY) < WORDS_PER_TOKEN:
    raise ValueError("payment token vocabulary is smaller than the words per token")


def token_entropy_bits() -> float:
    """log2(50 * 49 * ... * 26) for the default sizes."""
    n = len(VOCABULARY)
    return sum(math.log2(n - i) for i in range(WORDS_PER_TOKEN))


def generate_token() -> str:
    # Partial Fisher-Yates over the vocabulary indexes with a CSPRNG.
    pool = list(VOCABULARY)
    for i in range(WORDS_PER_TOKEN):
        j = i + secrets.randbelow(len(pool) - i)
        pool[i], pool[j] = pool[j], pool[i]
    return DELIMITER.join(pool[:WORDS_PER_TOKEN])


def is_well_formed_token(token: str | None) -> bool:
    if not token or not isinstance(token, str):
        return False
    words = token.split(DELIMITER)
    if len(words) != WORDS_PER_TOKEN:
        return False
    if len(set(words)) != WORDS_PER_TOKEN:
        return False
    return all(w in _VOCABULARY_SET for w in words)


def mask_token(token: str | None) -> str:
    """Short prefix for logs."""
    if not token:
        return "-"
    return token.split(DELIMITER, 1)[0] + "-…"


@dataclass(frozen=True)
class PaymentRedirectParams:
    payment_method: str | None
    transaction_id: str | None
    payment_amount: Decimal | None
    payment_fee: Decimal | None
    status: str | None
    is_valid: bool

    def to_dict(self) -> dict:
        return {
            "paymentMethod": self.payment_method,
            "transactionId": self.transaction_id,
            "paymentAmount": float(self.payment_amount) if self.payment_amount is not None else None,
            "paymentFee": float(self.payment_fee) if self.payment_fee is not None else None,
            "status": self.status,
            "isValid": self.is_valid,
        }


def _parse_decimal(value) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        d = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return None
    if not d.is_finite():
        return None
    return d


def _text(value) -> str | None:
    if value is None:
        return None
    t = str(value).strip()
    return t or None


def _first_values(raw: str | Mapping | None) -> dict:
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        out = {}
        for key, value in raw.items():
            if isinstance(value, (list, tuple)):
                value = value[0] if value else None
            out[key] = value
        return out
    query = str(raw)
    if query.startswith("?"):
        query = query[1:]
    return {k: v[0] for k, v in parse_qs(query, keep_blank_values=True).items() if v}


def parse_redirect_params(raw: str | Mapping | None) -> PaymentRedirectParams:
    """Parse a raw query string (or an already-split mapping). Pure and total."""
    values = _first_values(raw)
    payment_method = _text(values.get("paymentMethod"))
    transaction_id = _text(values.get("transactionId"))
    payment_amount = _parse_decimal(values.get("paymentAmount"))
    payment_fee = _parse_decimal(values.get("paymentFee"))
    status = _text(values.get("status"))
    status = status.lower() if status else None
    return PaymentRedirectParams(
        payment_method=payment_method,
        transaction_id=transaction_id,
        payment_amount=payment_amount,
        payment_fee=payment_fee,
        status=status,
        is_valid=bool(payment_method and transaction_id and payment_amount is not None and status),
    )
