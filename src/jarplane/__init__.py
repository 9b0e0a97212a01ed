"""JarPlane - class index over a local Maven repository."""

__version__ = "0.1.0"
