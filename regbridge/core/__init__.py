"""Register bridge core: transforms, catalog, dispatch and lifecycle."""
