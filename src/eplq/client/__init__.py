"""Key-holder components: codec, predicates, search and administration."""
from eplq.client.admin import PoiAdmin
from eplq.client.crypto import CryptoCodec, derive_key, key_from_passphrase
from eplq.client.predicate import (
    EncryptedInnerProductPredicate,
    inner_product_predicate,
    within_range,
)
from eplq.client.search import ProximityQueryEngine, validate_query

__all__ = [
    "CryptoCodec",
    "EncryptedInnerProductPredicate",
    "PoiAdmin",
    "ProximityQueryEngine",
    "derive_key",
    "inner_product_predicate",
    "key_from_passphrase",
    "validate_query",
    "within_range",
]
