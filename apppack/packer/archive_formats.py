"""
Archive writers for the supported container formats.

Both back ends share one capability, ``compress(virtual_path, real_path,
info)``, plus ``close()`` for finalization:
- tar.gz: gzip compressor wrapping a tar container, symlinks stored natively
- zip: zip container, symlinks stored as an entry holding the link text
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import stat
import tarfile
import time
import zipfile
from typing import BinaryIO, Dict, List, Optional

from .base_types import EntryInfo, EntryIOError

logger = logging.getLogger(__name__)

FORMAT_TAR_GZ = "tar.gz"
FORMAT_ZIP = "zip"
SUPPORTED_FORMATS = (FORMAT_TAR_GZ, FORMAT_ZIP)

# Timestamp range representable in a zip header
ZIP_EPOCH = (1980, 1, 1, 0, 0, 0)
ZIP_MAX_DATE_TIME = (2107, 12, 31, 23, 59, 58)


class ArchiveWriter:
    """Base class for archive writers.

    A writer session owns one output pipeline and the running set of
    virtual paths already written. The set only ever grows.
    """

    format_name = ""

    def __init__(self, fileobj: BinaryIO):
        self.fileobj = fileobj
        self._written: Dict[str, None] = {}
        self._closed = False

    def compress(self, name: str, fpath: str, info: EntryInfo) -> bool:
        """Serialize one file or symlink entry under ``name``.

        Returns True when the entry was stored; raises ``EntryIOError`` on
        any I/O failure.
        """
        raise NotImplementedError

    def _finalize(self) -> None:
        raise NotImplementedError

    def close(self) -> None:
        """Flush and close the container pipeline exactly once.

        Raises ``EntryIOError`` when the trailer cannot be written.
        """
        if self._closed:
            return
        self._closed = True
        try:
            self._finalize()
        except (OSError, tarfile.TarError) as e:
            raise EntryIOError(f"Cannot finalize {self.format_name} archive: {e}",
                               getattr(self.fileobj, 'name', None)) from e

    def is_written(self, name: str) -> bool:
        return name in self._written

    def mark_written(self, name: str) -> None:
        self._written[name] = None

    @property
    def entry_names(self) -> List[str]:
        """Virtual paths in the order they were written."""
        return list(self._written)

    def __enter__(self) -> 'ArchiveWriter':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is None:
            self.close()
            return
        # the error already propagating is the one to report
        try:
            self.close()
        except EntryIOError as e:
            logger.warning(f"Archive not finalized after earlier failure: {e}")

    @staticmethod
    def _read_link(fpath: str) -> str:
        try:
            return os.readlink(fpath)
        except OSError as e:
            raise EntryIOError(f"Cannot read symlink {fpath}: {e}", fpath) from e


class TarGzWriter(ArchiveWriter):
    """tar container over a gzip compressor."""

    format_name = FORMAT_TAR_GZ

    def __init__(self, fileobj: BinaryIO, compresslevel: int = 9):
        super().__init__(fileobj)
        # mtime=0 and an empty name keep the gzip header reproducible
        self._gz = gzip.GzipFile(filename='', mode='wb', fileobj=fileobj,
                                 compresslevel=compresslevel, mtime=0)
        self._tar = tarfile.open(fileobj=self._gz, mode='w', format=tarfile.PAX_FORMAT)

    def _build_header(self, name: str, info: EntryInfo, link: str) -> tarfile.TarInfo:
        hdr = tarfile.TarInfo(name=name)
        hdr.mode = info.permissions
        hdr.mtime = int(info.mtime)
        hdr.uid = info.uid
        hdr.gid = info.gid
        if info.is_symlink:
            hdr.type = tarfile.SYMTYPE
            hdr.linkname = link
            hdr.size = 0
        else:
            hdr.type = tarfile.REGTYPE
            hdr.size = info.size
        return hdr

    def compress(self, name: str, fpath: str, info: EntryInfo) -> bool:
        link = self._read_link(fpath) if info.is_symlink else ''
        hdr = self._build_header(name, info, link)

        try:
            if info.is_symlink:
                self._tar.addfile(hdr)
            else:
                with open(fpath, 'rb') as fr:
                    self._tar.addfile(hdr, fr)
            self._gz.flush()
        except (OSError, tarfile.TarError) as e:
            raise EntryIOError(f"Cannot write {name} to tar archive: {e}", fpath) from e

        return True

    def _finalize(self) -> None:
        # inner to outer: tar trailer first, then the gzip stream
        try:
            self._tar.close()
        finally:
            self._gz.close()


class ZipWriter(ArchiveWriter):
    """zip container; symlinks are stored as their link text."""

    format_name = FORMAT_ZIP

    def __init__(self, fileobj: BinaryIO, compression: int = zipfile.ZIP_DEFLATED):
        super().__init__(fileobj)
        self._zip = zipfile.ZipFile(fileobj, mode='w', compression=compression)

    def _build_header(self, name: str, info: EntryInfo) -> zipfile.ZipInfo:
        date_time = time.localtime(info.mtime)[:6]
        if date_time < ZIP_EPOCH:
            date_time = ZIP_EPOCH
        elif date_time > ZIP_MAX_DATE_TIME:
            date_time = ZIP_MAX_DATE_TIME

        hdr = zipfile.ZipInfo(filename=name, date_time=date_time)
        hdr.compress_type = self._zip.compression
        hdr.create_system = 3  # unix, so external_attr carries the mode
        hdr.external_attr = (info.mode & 0xFFFF) << 16
        if stat.S_ISREG(info.mode):
            hdr.file_size = info.size
        return hdr

    def compress(self, name: str, fpath: str, info: EntryInfo) -> bool:
        hdr = self._build_header(name, info)

        if info.is_symlink:
            link = self._read_link(fpath)
            try:
                self._zip.writestr(hdr, link.encode('utf-8'))
            except OSError as e:
                raise EntryIOError(f"Cannot write {name} to zip archive: {e}", fpath) from e
            return True

        try:
            with open(fpath, 'rb') as fr, self._zip.open(hdr, mode='w') as w:
                shutil.copyfileobj(fr, w)
        except OSError as e:
            raise EntryIOError(f"Cannot write {name} to zip archive: {e}", fpath) from e

        return True

    def _finalize(self) -> None:
        # writes the central directory; the underlying file stays open
        self._zip.close()


def normalize_format(archive_format: Optional[str]) -> str:
    """Map a format selector to a supported format, defaulting to tar.gz."""
    fmt = (archive_format or FORMAT_TAR_GZ).strip().lower().lstrip('.')
    if fmt not in SUPPORTED_FORMATS:
        logger.warning(f"Unknown archive format '{archive_format}', using {FORMAT_TAR_GZ}")
        return FORMAT_TAR_GZ
    return fmt


def create_archive_writer(archive_format: str, fileobj: BinaryIO) -> ArchiveWriter:
    """Create archive writer based on the format selector."""
    writers = {
        FORMAT_TAR_GZ: TarGzWriter,
        FORMAT_ZIP: ZipWriter,
    }

    writer_class = writers[normalize_format(archive_format)]
    return writer_class(fileobj)
