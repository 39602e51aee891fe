"""Result ranking components.

Contents
- ``fusion``: deduplication, total-order ranking and pagination
- ``enrichment``: suggestions, search tips and result quality
"""
