"""Upload module for SimpleFTP.

This module handles saving file contents:
- FileUploader: Backup-then-replace save tasks for local and remote files
- UploadScheduler: Per-target FIFO scheduling of save tasks
"""
