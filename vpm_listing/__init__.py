"""VPM Listing Builder — builds a package listing and its website from a listing source."""

__version__ = "0.1.0"
