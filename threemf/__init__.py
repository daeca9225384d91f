"""3MF geometry, XML reading and writing, materials and production extension data, and an STL importer."""

__version__ = "0.1.0"