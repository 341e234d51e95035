"""Merchant signatures for grouping uncategorized transactions.

A signature is a short, lossy key such as ``"amazon com"`` derived from a raw
statement description. Transactions sharing a signature are offered to the
user as one group so a single keyword rule can categorize all of them.
"""

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from statement_categorizer.core import settings
from statement_categorizer.models import UNCATEGORIZED, MerchantCluster, Transaction

US_STATE_CODES: frozenset[str] = frozenset({
    "al", "ak", "az", "ar", "ca", "co", "ct", "de", "fl", "ga",
    "hi", "id", "il", "in", "ia", "ks", "ky", "la", "me", "md",
    "ma", "mi", "mn", "ms", "mo", "mt", "ne", "nv", "nh", "nj",
    "nm", "ny", "nc", "nd", "oh", "ok", "or", "pa", "ri", "sc",
    "sd", "tn", "tx", "ut", "vt", "va", "wa", "wv", "wi", "wy",
})

DEFAULT_NOISE_TOKENS: tuple[str, ...] = ("pos", "wdr", "dbt")

_NON_TOKEN_CHARS = re.compile(r"[^a-z0-9 ]+")
_WHITESPACE_RUN = re.compile(r"\s+")
_ALPHA_ONLY = re.compile(r"[a-z]+")
_HAS_DIGIT = re.compile(r"[0-9]")
_HAS_ALPHA = re.compile(r"[a-z]")


@dataclass(frozen=True)
class ClusterSettings:
    state_codes: frozenset[str] = US_STATE_CODES
    noise_tokens: frozenset[str] = field(default_factory=lambda: frozenset(DEFAULT_NOISE_TOKENS))
    # Tokens with this many characters or fewer are dropped.
    min_token_length: int = 1
    min_city_length: int = 3
    max_signature_tokens: int = 3

    @classmethod
    def from_env(cls) -> "ClusterSettings":
        return cls(
            noise_tokens=frozenset(
                token.lower()
                for token in settings.get_env_list("CLUSTER_NOISE_TOKENS", DEFAULT_NOISE_TOKENS)
            ),
            min_token_length=settings.get_env_int("CLUSTER_MIN_TOKEN_LENGTH", 1, min_value=0),
            min_city_length=settings.get_env_int("CLUSTER_MIN_CITY_LENGTH", 3, min_value=1),
            max_signature_tokens=settings.get_env_int("CLUSTER_SIGNATURE_TOKENS", 3, min_value=1),
        )


DEFAULT_CLUSTER_SETTINGS = ClusterSettings()


def _tokenize(description: str, min_token_length: int) -> list[str]:
    cleaned = _NON_TOKEN_CHARS.sub(" ", description.lower())
    cleaned = _WHITESPACE_RUN.sub(" ", cleaned).strip()
    if not cleaned:
        return []
    return [token for token in cleaned.split(" ") if len(token) > min_token_length]


def _drop_city_state(tokens: list[str], config: ClusterSettings) -> list[str]:
    if not tokens or tokens[-1] not in config.state_codes:
        return tokens
    tokens = tokens[:-1]
    if tokens:
        city = tokens[-1]
        if _ALPHA_ONLY.fullmatch(city) and len(city) >= config.min_city_length:
            tokens = tokens[:-1]
    return tokens


def merchant_signature(
    description: str,
    config: ClusterSettings = DEFAULT_CLUSTER_SETTINGS,
) -> str:
    """Reduce a description to its merchant signature; ``""`` means no signature."""
    tokens = _drop_city_state(_tokenize(description, config.min_token_length), config)

    kept: list[str] = []
    for token in tokens:
        if _HAS_DIGIT.search(token) or not _HAS_ALPHA.search(token):
            continue
        if token in config.noise_tokens or token in kept:
            continue
        kept.append(token)

    return " ".join(kept[:config.max_signature_tokens])


def cluster_uncategorized(
    transactions: Iterable[Transaction],
    config: ClusterSettings = DEFAULT_CLUSTER_SETTINGS,
) -> list[MerchantCluster]:
    """Group uncategorized transactions by signature, largest group first."""
    counts: dict[str, int] = {}
    samples: dict[str, str] = {}
    for tx in transactions:
        if tx.category != UNCATEGORIZED:
            continue
        signature = merchant_signature(tx.description, config)
        if not signature:
            continue
        if signature in counts:
            counts[signature] += 1
        else:
            counts[signature] = 1
            samples[signature] = tx.description

    # sorted() is stable, so equal counts keep first-seen order.
    ordered = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [
        MerchantCluster(signature=signature, count=count, sample=samples[signature])
        for signature, count in ordered
    ]


def filter_clusters(clusters: Sequence[MerchantCluster], query: str | None) -> list[MerchantCluster]:
    needle = (query or "").strip().lower()
    if not needle:
        return list(clusters)
    return [
        cluster
        for cluster in clusters
        if needle in cluster.signature.lower() or needle in cluster.sample.lower()
    ]
