"""Input/output of election data: audit exports and BLT ballot files.

This subpackage is structured into modules by file format. Both formats load
into the common :class:`core.ElectionData` container, which holds everything
needed to count the election again.
"""
