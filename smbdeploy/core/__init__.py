"""Core functionality (run context, entries, SMB session, worker pool)"""
from .run_context import RunContext, NullReporter
from .file_entry import FileEntry, EntryFlag
from .smb_session import SmbSession
from .workers import WorkerPool

__all__ = ["RunContext", "NullReporter", "FileEntry", "EntryFlag", "SmbSession", "WorkerPool"]
