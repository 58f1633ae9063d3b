"""dbseed — synthetic relational data seeding.

Populates a relational schema with structurally valid synthetic rows:
CHECK-constraint inference, FK cycle analysis, value and row generation,
FK resolution, and dialect-aware SQL rendering.
"""

__version__ = "0.1.0"
