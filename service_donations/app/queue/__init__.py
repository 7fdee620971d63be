from .donation_queue import AlreadyProcessedError, DonationQueue

__all__ = ["AlreadyProcessedError", "DonationQueue"]
