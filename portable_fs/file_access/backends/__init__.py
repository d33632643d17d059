# portable_fs/file_access/backends/__init__.py
"""
Backend adapters.

Each adapter implements the File/Folder contracts over one native storage
API. They are imported lazily by the registry; import a module from here
directly only to use a backend without going through the resolver.
"""
