"""
SMB session: connection lifecycle plus the primitive file operations the
transfer engine and indexer are built on
"""
import socket
import uuid
from collections import namedtuple
from typing import Optional

from smbprotocol.connection import Connection
from smbprotocol.exceptions import SMBException, SMBResponseException
from smbprotocol.file_info import FileBasicInformation, FileDispositionInformation, FileInformationClass, InfoType
from smbprotocol.open import (
    CreateDisposition,
    CreateOptions,
    DirectoryAccessMask,
    FileAttributes,
    FilePipePrinterAccessMask,
    ImpersonationLevel,
    Open,
    ShareAccess,
    SMB2SetInfoRequest,
)
from smbprotocol.session import Session
from smbprotocol.tree import TreeConnect

from ..errors import (
    AuthenticationFailed,
    ProtocolError,
    RemotePathExists,
    RemotePathNotFound,
    ServerConnectionError,
    ServerUnreachable,
    ShareNotFound,
)
from ..utils.retry import plural
from .file_entry import filetime_from_datetime

# NT status codes the session reacts to
STATUS_NO_MORE_FILES = 0x80000006
STATUS_OBJECT_NAME_NOT_FOUND = 0xC0000034
STATUS_OBJECT_NAME_COLLISION = 0xC0000035
STATUS_OBJECT_PATH_NOT_FOUND = 0xC000003A
STATUS_DELETE_PENDING = 0xC0000056
STATUS_FILE_IS_A_DIRECTORY = 0xC00000BA
STATUS_BAD_NETWORK_NAME = 0xC00000CC
STATUS_NOT_A_DIRECTORY = 0xC0000103

_NOT_FOUND = frozenset((
    STATUS_OBJECT_NAME_NOT_FOUND,
    STATUS_OBJECT_PATH_NOT_FOUND,
    STATUS_DELETE_PENDING,
))
_WRONG_KIND = frozenset((STATUS_FILE_IS_A_DIRECTORY, STATUS_NOT_A_DIRECTORY))

_SHARE_ALL = ShareAccess.FILE_SHARE_READ | ShareAccess.FILE_SHARE_WRITE | ShareAccess.FILE_SHARE_DELETE

RemoteItem = namedtuple("RemoteItem", "name is_folder last_write_time size hidden")


def _status_of(exc: Exception) -> int:
    if isinstance(exc, SMBResponseException):
        return exc.status
    return 0


def _protocol_error(exc: Exception, path: str, action: str) -> ProtocolError:
    status = _status_of(exc)
    message = f"{action} failed for `{path}`: {exc}"
    if status == STATUS_OBJECT_NAME_COLLISION:
        return RemotePathExists(message, status, path)
    if status in _NOT_FOUND:
        return RemotePathNotFound(message, status, path)
    return ProtocolError(message, status, path)


class SmbSession:
    """
    Wraps a smbprotocol Connection + Session + TreeConnect for one share.

    Paths given to the file operations are relative to the share root and
    use backslashes. Every protocol failure is re-raised as ProtocolError.
    """

    def __init__(self, config, ctx):
        self.config = config
        self.ctx = ctx
        self._connection: Optional[Connection] = None
        self._session: Optional[Session] = None
        self._tree: Optional[TreeConnect] = None

    # ── connection ─────────────────────────────────────────────────────────

    @classmethod
    def connect(cls, config, ctx) -> Optional["SmbSession"]:
        """Connect a new session; None if it failed (the error is on *ctx*)."""
        session = cls(config, ctx)
        return session if session._connect() else None

    @property
    def connected(self) -> bool:
        return self._tree is not None

    @property
    def response_timeout(self) -> float:
        return self.config.server_connection.response_timeout_ms / 1000

    @property
    def unc_share(self) -> str:
        conn = self.config.server_connection
        return rf"\\{conn.server_address}\{conn.share_name}"

    def _connect(self) -> bool:
        if self.ctx.cancelled():
            return False
        try:
            self._probe()
            self._open_session()
        except ServerConnectionError as exc:
            self.ctx.fail(exc)
            self.disconnect()
            return False

        if self.ensure_file_store() is None:
            self.disconnect()
            return False
        return True

    def _probe(self):
        conn = self.config.server_connection
        try:
            with socket.create_connection((conn.server_address, conn.port),
                                          timeout=conn.connect_timeout_ms / 1000):
                pass
        except OSError as exc:
            raise ServerUnreachable(f"Server is not responding ({conn.server_address}:{conn.port}: {exc})") from exc

    def _open_session(self):
        conn = self.config.server_connection

        self._connection = Connection(uuid.uuid4(), conn.server_address, conn.port)
        try:
            self._connection.connect(timeout=self.response_timeout)
        except Exception as exc:
            raise ServerConnectionError(f"Could not connect to the server: {exc}") from exc

        user = f"{conn.domain}\\{conn.user_name}" if conn.domain else conn.user_name
        self._session = Session(self._connection, username=user, password=conn.password,
                                require_encryption=conn.encrypt)
        try:
            self._session.connect()
        except Exception as exc:
            raise AuthenticationFailed(f"Server authentication failed: {exc}") from exc

    def ensure_file_store(self) -> Optional[TreeConnect]:
        """
        Return the tree connect handle, connecting it if needed with the
        bounded retry. A share the server does not know is fatal at once.
        """
        if self._tree is not None:
            return self._tree
        if self.ctx.cancelled():
            return None
        if self._session is None:
            self.ctx.fail(ProtocolError("Session is not connected"))
            return None

        attempts = self.config.attempts
        last_exc = None
        for n in range(1, attempts + 1):
            tree = TreeConnect(self._session, self.unc_share)
            try:
                tree.connect()
                self._tree = tree
                return tree
            except SMBResponseException as exc:
                last_exc = exc
                if exc.status == STATUS_BAD_NETWORK_NAME:
                    self.ctx.fail(ShareNotFound(
                        f"Network share `{self.config.server_connection.share_name}` not found on the server"))
                    return None
            except SMBException as exc:
                last_exc = exc
            if n < attempts:
                self.ctx.retrying(n, attempts, self.unc_share)
                if not self.ctx.wait(self.config.write_retry_delay_seconds):
                    return None

        detail = f" ({last_exc})" if last_exc else ""
        self.ctx.fail(f"Could not connect to the file share `{self.config.server_connection.share_name}` "
                      f"after {plural(attempts, 'attempt', 'attempts')}{detail}")
        return None

    def disconnect(self):
        """Logoff then close the transport. Safe to call more than once."""
        tree, session, connection = self._tree, self._session, self._connection
        self._tree = self._session = self._connection = None
        try:
            if tree is not None:
                tree.disconnect()
        except Exception:
            pass
        try:
            if session is not None:
                session.disconnect(close=True, timeout=self.response_timeout)
        except Exception:
            pass
        try:
            if connection is not None:
                connection.disconnect(close=True)
        except Exception:
            pass

    # ── primitives ──────────────────────────────────────────────────────────

    @property
    def max_write_size(self) -> int:
        if self._connection is None:
            raise ProtocolError("Session is not connected")
        return self._connection.max_write_size

    def _open(self, path: str, access: int, disposition: int, options: int,
              attributes: int = FileAttributes.FILE_ATTRIBUTE_NORMAL,
              share: int = _SHARE_ALL) -> Open:
        if self._tree is None:
            raise ProtocolError("No file share connected", path=path)
        handle = Open(self._tree, path)
        self._round_trip(handle.create(ImpersonationLevel.Impersonation, access, attributes, share,
                                       disposition, options, send=False))
        return handle

    def _round_trip(self, prepared):
        """
        Send a request built with send=False and wait at most response_timeout
        for the reply. A server that stays silent raises SMBException.
        """
        message, unpack = prepared
        request = self._connection.send(message, sid=self._session.session_id, tid=self._tree.tree_connect_id)
        self._connection.receive(request, timeout=self.response_timeout)
        return unpack(request)

    def _set_info(self, handle: Open, info, info_class: int):
        request = SMB2SetInfoRequest()
        request["info_type"] = InfoType.SMB2_0_INFO_FILE
        request["file_info_class"] = info_class
        request["file_id"] = handle.file_id
        request["buffer"] = info
        sent = self._connection.send(request, sid=self._session.session_id, tid=self._tree.tree_connect_id)
        self._connection.receive(sent, timeout=self.response_timeout)

    def _exists(self, path: str, options: int) -> bool:
        try:
            handle = self._open(path, FilePipePrinterAccessMask.FILE_READ_ATTRIBUTES,
                                CreateDisposition.FILE_OPEN, options)
        except SMBException as exc:
            if _status_of(exc) in _NOT_FOUND or _status_of(exc) in _WRONG_KIND:
                return False
            raise _protocol_error(exc, path, "Existence check") from exc
        self._close_quietly(handle)
        return True

    def file_exists(self, path: str) -> bool:
        return self._exists(path, CreateOptions.FILE_NON_DIRECTORY_FILE)

    def folder_exists(self, path: str) -> bool:
        return self._exists(path, CreateOptions.FILE_DIRECTORY_FILE)

    def create_folder(self, path: str):
        """Create one folder level. RemotePathExists if it is already there."""
        try:
            handle = self._open(path, FilePipePrinterAccessMask.GENERIC_WRITE,
                                CreateDisposition.FILE_CREATE, CreateOptions.FILE_DIRECTORY_FILE,
                                attributes=FileAttributes.FILE_ATTRIBUTE_DIRECTORY)
        except SMBException as exc:
            raise _protocol_error(exc, path, "Create folder") from exc
        self._close_quietly(handle)

    def open_for_write(self, path: str, overwrite: bool) -> Open:
        disposition = CreateDisposition.FILE_OVERWRITE if overwrite else CreateDisposition.FILE_CREATE
        try:
            return self._open(path, FilePipePrinterAccessMask.GENERIC_WRITE, disposition,
                              CreateOptions.FILE_NON_DIRECTORY_FILE, share=ShareAccess.FILE_SHARE_READ)
        except SMBException as exc:
            raise _protocol_error(exc, path, "Open for write") from exc

    def write(self, handle: Open, offset: int, data: bytes):
        try:
            written = self._round_trip(handle.write(data, offset, send=False))
        except SMBException as exc:
            raise _protocol_error(exc, handle.file_name, "Write") from exc
        if written != len(data):
            raise ProtocolError(f"Short write at offset {offset:,}: {written:,} of {len(data):,} bytes",
                                path=handle.file_name)

    def close(self, handle: Open):
        if not handle.connected:
            return
        try:
            self._round_trip(handle.close(get_attributes=False, send=False))
        except SMBException as exc:
            raise _protocol_error(exc, handle.file_name, "Close") from exc

    def _close_quietly(self, handle: Open):
        try:
            self.close(handle)
        except ProtocolError:
            pass

    def set_last_write_time(self, path: str, filetime: int):
        """Metadata-only open; sets last-write time and leaves every other field alone."""
        try:
            handle = self._open(path, FilePipePrinterAccessMask.FILE_WRITE_ATTRIBUTES,
                                CreateDisposition.FILE_OPEN, 0)
        except SMBException as exc:
            raise _protocol_error(exc, path, "Open for attributes") from exc
        try:
            info = FileBasicInformation()
            info["creation_time"] = 0
            info["last_access_time"] = 0
            info["last_write_time"] = filetime
            info["change_time"] = 0
            info["file_attributes"] = 0
            self._set_info(handle, info, FileInformationClass.FILE_BASIC_INFORMATION)
        except SMBException as exc:
            raise _protocol_error(exc, path, "Set last write time") from exc
        finally:
            self._close_quietly(handle)

    def delete(self, path: str, is_folder: bool):
        """Open with delete intent and mark delete-pending."""
        options = CreateOptions.FILE_DIRECTORY_FILE if is_folder else CreateOptions.FILE_NON_DIRECTORY_FILE
        try:
            handle = self._open(path, FilePipePrinterAccessMask.DELETE | FilePipePrinterAccessMask.FILE_READ_ATTRIBUTES,
                                CreateDisposition.FILE_OPEN, options)
        except SMBException as exc:
            raise _protocol_error(exc, path, "Open for delete") from exc
        try:
            info = FileDispositionInformation()
            info["delete_pending"] = True
            self._set_info(handle, info, FileInformationClass.FILE_DISPOSITION_INFORMATION)
        except SMBException as exc:
            raise _protocol_error(exc, path, "Delete") from exc
        finally:
            self._close_quietly(handle)

    def list_folder(self, path: str) -> list:
        """Entries of one folder, without the . and .. pseudo entries."""
        try:
            handle = self._open(path, DirectoryAccessMask.FILE_LIST_DIRECTORY | DirectoryAccessMask.FILE_READ_ATTRIBUTES,
                                CreateDisposition.FILE_OPEN, CreateOptions.FILE_DIRECTORY_FILE,
                                attributes=FileAttributes.FILE_ATTRIBUTE_DIRECTORY,
                                share=ShareAccess.FILE_SHARE_READ | ShareAccess.FILE_SHARE_WRITE)
        except SMBException as exc:
            raise _protocol_error(exc, path, "Open folder") from exc

        raw = []
        try:
            while True:
                try:
                    raw.extend(self._round_trip(handle.query_directory(
                        "*", FileInformationClass.FILE_ID_FULL_DIRECTORY_INFORMATION, send=False)))
                except SMBResponseException as exc:
                    if exc.status == STATUS_NO_MORE_FILES:
                        break
                    raise
        except SMBException as exc:
            raise _protocol_error(exc, path, "Query directory") from exc
        finally:
            self._close_quietly(handle)

        items = []
        for entry in raw:
            name = entry["file_name"].get_value().decode("utf-16-le")
            if name in (".", ".."):
                continue
            attributes = entry["file_attributes"].get_value()
            items.append(RemoteItem(
                name=name,
                is_folder=bool(attributes & FileAttributes.FILE_ATTRIBUTE_DIRECTORY),
                last_write_time=filetime_from_datetime(entry["last_write_time"].get_value()),
                size=entry["end_of_file"].get_value(),
                hidden=bool(attributes & FileAttributes.FILE_ATTRIBUTE_HIDDEN),
            ))
        return items
