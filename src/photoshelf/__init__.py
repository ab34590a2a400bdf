"""
photoshelf - Photo asset lifecycle manager

Manages the lifecycle of uploaded photographs:
- Upload validation and placement in the upload directory tree
- Photo metadata catalog with tag filtering, backed by DuckDB
- Thumbnail and preview generation through an external or in-process generator
- Consistent deletion of a photo together with all of its variants
"""

__version__ = "0.1.0"
__author__ = "photoshelf"
__description__ = "Photo asset lifecycle manager"
