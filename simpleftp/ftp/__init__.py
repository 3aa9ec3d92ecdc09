"""FTP module for SimpleFTP.

This module handles the FTP session side:
- FTPServer: Server descriptor
- FTPConnection: Connection lifecycle and remote operations
- FTPLookup: Listing parsing and remote path queries
- ConnectionMonitor: Idle and liveness checks
- FTPConnectionManager: Shared connection ownership
- Exceptions: FTP-specific error types
"""
