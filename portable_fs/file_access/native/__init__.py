# portable_fs/file_access/native/__init__.py
"""
Native storage APIs wrapped by the isolated and managed backends.
"""
