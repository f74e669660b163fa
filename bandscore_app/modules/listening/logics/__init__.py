from .aggregator import score
from .band_mapper import raw_to_band
from .comparator import is_correct
from .normalizer import canonicalize_pairs, normalize

__all__ = ['score', 'raw_to_band', 'is_correct', 'canonicalize_pairs', 'normalize']
