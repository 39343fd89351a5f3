"""Folio - table-of-contents engine for collaborative book publishing."""
