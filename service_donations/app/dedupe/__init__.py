from .tracker import DedupeTracker, normalize_donor_key

__all__ = ["DedupeTracker", "normalize_donor_key"]
