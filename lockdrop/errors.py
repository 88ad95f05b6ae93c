"""Exceptions raised by the lockdrop statistics engine"""


class LockdropError(Exception):
    """Base exception for lockdrop statistics errors"""
    pass


class NetworkUnavailable(LockdropError):
    """The event source or balance oracle could not be reached"""
    pass


class EmptyDatasetError(LockdropError):
    """No events were available to build a series from"""
    pass


class InvalidTermError(LockdropError):
    """A lock event carried a term tag outside the known lock terms"""
    pass


class MalformedAddressError(LockdropError):
    """An address supplied for lookup is not a valid Ethereum address"""
    pass
