"""Implementation package of tetcomplex. Import public names from ``tetcomplex``."""
