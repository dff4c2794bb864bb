"""
EPLQ: privacy-preserving proximity search over encrypted points of interest.

Records are encrypted before they reach the store; only a 0.1 degree
approximate region is kept in the clear. Searches decrypt candidates with
the record key, test them against the radius and rank them by distance.
"""

__version__ = "0.1.0"
