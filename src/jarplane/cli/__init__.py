"""JarPlane CLI."""
