from .providers import ProviderAdapter, get_adapter, available_providers
from .normalization import Normalization, sanitize_document, parse_amount
from .suppression import Suppression, SuppressionContext
from .filtering import TransactionFilter
from .sorting import Sorting
from .merge import TransactionMerge
from .aggregation import Aggregation

__all__ = [
    "ProviderAdapter", "get_adapter", "available_providers",
    "Normalization", "sanitize_document", "parse_amount",
    "Suppression", "SuppressionContext",
    "TransactionFilter",
    "Sorting",
    "TransactionMerge",
    "Aggregation",
]
