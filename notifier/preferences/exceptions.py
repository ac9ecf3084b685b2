"""Preference gate exceptions."""


class PreferenceError(Exception):
    """Base exception for preference handling."""


class InvalidUnsubscribeToken(PreferenceError):
    """An unsubscribe token could not be decoded or failed its signature check."""


class ProtectedPreferenceError(PreferenceError):
    """A caller tried to disable a preference that cannot be turned off."""
