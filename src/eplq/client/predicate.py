"""
Membership predicates.

`within_range` is what the search path uses. The inner-product predicate is
a primitive for predicate-encryption style matching: its plaintext form and
a Paillier form (query vector encrypted with LightPHE) share one contract.
"""
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

import numpy as np
from lightphe import LightPHE
from lightphe.models.Tensor import EncryptedTensor

from eplq.shared.errors import DimensionMismatchError
from eplq.shared.geo import haversine_distance_km

Vector = Union[Sequence[float], np.ndarray]


@dataclass
class EncryptedQuery:
    """
    Encrypted query vector.

    The ciphertext is a LightPHE EncryptedTensor; `dimension` travels with
    it so the data holder can check vector lengths.
    """
    dimension: int
    encrypted_data: EncryptedTensor


def within_range(
    center_lat: float,
    center_lon: float,
    point_lat: float,
    point_lon: float,
    radius_km: float,
) -> bool:
    """True iff the point lies within `radius_km` of the center (inclusive)."""
    return haversine_distance_km(center_lat, center_lon, point_lat, point_lon) <= radius_km


def _check_dimensions(query_length: int, data_length: int) -> None:
    if query_length != data_length:
        raise DimensionMismatchError(
            f"Vector lengths differ: query has {query_length}, data has {data_length}"
        )


def _check_non_negative(values: Sequence[float], name: str) -> None:
    if any(v < 0 for v in values):
        raise ValueError(
            f"Paillier inner product needs non-negative values; {name} vector has negative entries"
        )


def inner_product_predicate(
    query_vector: Vector,
    data_vector: Vector,
    threshold: float,
) -> bool:
    """
    Dot product threshold test.

    Args:
        query_vector: Query vector
        data_vector: Data vector of the same length
        threshold: Inclusive upper bound

    Returns:
        True iff query . data <= threshold

    Raises:
        DimensionMismatchError: if the vectors differ in length
    """
    _check_dimensions(len(query_vector), len(data_vector))
    product = float(np.dot(
        np.asarray(query_vector, dtype=np.float64),
        np.asarray(data_vector, dtype=np.float64),
    ))
    return product <= threshold


class EncryptedInnerProductPredicate:
    """
    Inner-product predicate over a Paillier-encrypted query vector.

    The key holder encrypts the query; the data holder computes the
    encrypted dot product against its plaintext vector without seeing the
    query; the key holder decrypts the scalar and applies the threshold.

    Paillier works on non-negative fixed-point values, so both vectors are
    expected to be non-negative.
    """

    DEFAULT_KEY_SIZE = 2048  # bits
    DEFAULT_PRECISION = 5    # decimal places

    def __init__(
        self,
        key_size: int = DEFAULT_KEY_SIZE,
        precision: int = DEFAULT_PRECISION,
        keys: Optional[dict] = None,
    ):
        """
        Initialize the cryptosystem.

        Args:
            key_size: Paillier key size in bits
            precision: Decimal precision for fixed-point encoding
            keys: Pre-existing key pair dict
        """
        self.key_size = key_size
        self.precision = precision
        self._cs = LightPHE(
            algorithm_name="Paillier",
            keys=keys,
            key_size=key_size,
            precision=precision,
        )

    @property
    def public_key(self) -> dict:
        """Public key portion, safe to share with the data holder."""
        return {"public_key": self._cs.cs.keys.get("public_key", {})}

    @property
    def has_private_key(self) -> bool:
        return self._cs.cs.keys.get("private_key") is not None

    def encrypt_query(self, query_vector: Vector) -> EncryptedQuery:
        """
        Encrypt the query vector.

        Raises:
            ValueError: if the vector has negative entries
        """
        if isinstance(query_vector, np.ndarray):
            query_vector = query_vector.tolist()
        values = list(query_vector)
        _check_non_negative(values, "query")
        return EncryptedQuery(
            dimension=len(values),
            encrypted_data=self._cs.encrypt(values, silent=True),
        )

    @staticmethod
    def encrypted_inner_product(
        encrypted_query: EncryptedQuery,
        data_vector: Vector,
    ) -> EncryptedTensor:
        """
        Data-holder side: Enc(query) . data.

        Raises:
            DimensionMismatchError: if the vectors differ in length
            ValueError: if the data vector has negative entries
        """
        if isinstance(data_vector, np.ndarray):
            data_vector = data_vector.tolist()
        _check_dimensions(encrypted_query.dimension, len(data_vector))
        _check_non_negative(data_vector, "data")
        return encrypted_query.encrypted_data @ list(data_vector)

    def decrypt_inner_product(self, encrypted_product: EncryptedTensor) -> float:
        """Decrypt an encrypted dot product."""
        if not self.has_private_key:
            raise ValueError("Cannot decrypt without private key")

        result = self._cs.decrypt(encrypted_product)
        # LightPHE returns a list for tensor operations
        if isinstance(result, list):
            return result[0]
        return result

    def evaluate(
        self,
        query_vector: Vector,
        data_vector: Vector,
        threshold: float,
    ) -> bool:
        """
        Full predicate round: encrypt, multiply, decrypt, compare.

        Same contract as `inner_product_predicate`, up to fixed-point
        precision.
        """
        _check_dimensions(len(query_vector), len(data_vector))
        encrypted = self.encrypted_inner_product(self.encrypt_query(query_vector), data_vector)
        return self.decrypt_inner_product(encrypted) <= threshold

    def evaluate_many(
        self,
        query_vector: Vector,
        data_vectors: List[Vector],
        threshold: float,
    ) -> List[bool]:
        """Evaluate one encrypted query against several data vectors."""
        for data_vector in data_vectors:
            _check_dimensions(len(query_vector), len(data_vector))
        encrypted_query = self.encrypt_query(query_vector)
        return [
            self.decrypt_inner_product(self.encrypted_inner_product(encrypted_query, vec)) <= threshold
            for vec in data_vectors
        ]
