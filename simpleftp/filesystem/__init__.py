"""File system module for SimpleFTP.

This module provides the file abstraction over both substrates:
- CommonFile, LocalFile, RemoteFile: Uniform file contract
- LocalFileSystem, RemoteFileSystem: Add, remove, list, copy and move
- FileService: Background file operations on temporary connections
- Path resolvers: Local, remote and symbolic canonicalization
- Exceptions: File system error types
"""
