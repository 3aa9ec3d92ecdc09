"""SimpleFTP core.

Connection lifecycle, a uniform local/remote file abstraction,
cross-filesystem copy and move, path resolution and per-target save
scheduling on top of ftplib.
"""

__version__ = "1.0.0"
