"""Record-level zip output for DOCX containers.

``zipfile`` recompresses everything it writes, so an entry that is merely
copied would come out with different compressed bytes. ``ArchiveWriter``
instead appends the source local record of a copied entry verbatim (header,
compressed payload and data descriptor) and builds a new local record only
for entries whose content changed. The central directory is rebuilt from the
source ``ZipInfo`` metadata, so an archive whose entries are all copied is
written back byte for byte.
"""

import struct
import zipfile
import zlib
from dataclasses import dataclass
from typing import BinaryIO, List, Optional, Tuple

from docx_cleaner.shared.errors import ContainerIOError, InvalidContainerError

LOCAL_HEADER = struct.Struct("<4s2B4HL2L2H")
CENTRAL_HEADER = struct.Struct("<4s4B4HL2L5H2L")
END_RECORD = struct.Struct("<4s4H2LH")

LOCAL_SIGNATURE = b"PK\x03\x04"
CENTRAL_SIGNATURE = b"PK\x01\x02"
END_SIGNATURE = b"PK\x05\x06"
DESCRIPTOR_SIGNATURE = b"PK\x07\x08"

DATA_DESCRIPTOR_FLAG = 0x08
UTF8_NAME_FLAG = 0x800
ZIP64_EXTRA_ID = 0x0001

MAX_UINT16 = 0xFFFF
MAX_UINT32 = 0xFFFFFFFF

# Methods a rewritten entry can be recompressed with
WRITABLE_COMPRESSION = (zipfile.ZIP_STORED, zipfile.ZIP_DEFLATED)

# ZipInfo attributes carried over verbatim to the output entry
_PRESERVED_ATTRIBUTES = (
    "orig_filename",
    "compress_type",
    "comment",
    "extra",
    "create_system",
    "create_version",
    "extract_version",
    "reserved",
    "flag_bits",
    "volume",
    "internal_attr",
    "external_attr",
    "CRC",
    "compress_size",
    "file_size",
)

DateTime = Tuple[int, int, int, int, int, int]


def _extra_records(extra: bytes):
    offset = 0
    while offset + 4 <= len(extra):
        header_id, size = struct.unpack("<HH", extra[offset:offset + 4])
        end = offset + 4 + size
        yield header_id, extra[offset:end]
        offset = end


def strip_zip64_extra(extra: bytes) -> bytes:
    """Drop zip64 records from an extra field; sizes are written as 32-bit fields."""
    return b"".join(
        record for header_id, record in _extra_records(extra) if header_id != ZIP64_EXTRA_ID
    )


def has_zip64_extra(extra: bytes) -> bool:
    return any(header_id == ZIP64_EXTRA_ID for header_id, _ in _extra_records(extra))


def clone_zip_info(info: zipfile.ZipInfo, date_time: Optional[DateTime] = None) -> zipfile.ZipInfo:
    """Copy the metadata of ``info`` into a fresh ZipInfo for the output."""
    clone = zipfile.ZipInfo(info.filename, date_time or info.date_time)
    for attribute in _PRESERVED_ATTRIBUTES:
        setattr(clone, attribute, getattr(info, attribute))
    return clone


def dos_date_time(date_time: DateTime) -> Tuple[int, int]:
    """Pack ``(Y, M, D, h, m, s)`` into the DOS time and date words."""
    year, month, day, hour, minute, second = date_time
    dos_time = hour << 11 | minute << 5 | second // 2
    dos_date = (year - 1980) << 9 | month << 5 | day
    return dos_time, dos_date


def encode_name(info: zipfile.ZipInfo) -> Tuple[bytes, int]:
    """Return the stored name bytes and the flag bits to write with them."""
    if not info.flag_bits & UTF8_NAME_FLAG:
        try:
            return info.orig_filename.encode("cp437"), info.flag_bits
        except UnicodeEncodeError:
            pass
    return info.orig_filename.encode("utf-8"), info.flag_bits | UTF8_NAME_FLAG


def compress(data: bytes, compress_type: int) -> bytes:
    if compress_type == zipfile.ZIP_STORED:
        return data
    if compress_type == zipfile.ZIP_DEFLATED:
        compressor = zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION, zlib.DEFLATED, -15)
        return compressor.compress(data) + compressor.flush()
    raise ValueError(f"Cannot write compression method {compress_type}")


@dataclass
class LocalRecord:
    """Raw bytes of one entry as stored in the source archive."""

    header: bytes      # fixed header, name and extra field
    extra: bytes
    payload: bytes     # compressed data
    descriptor: bytes = b""

    @property
    def raw(self) -> bytes:
        return self.header + self.payload + self.descriptor


def _read_exact(fp: BinaryIO, size: int, info: zipfile.ZipInfo, what: str) -> bytes:
    data = fp.read(size)
    if len(data) != size:
        raise InvalidContainerError(f"Truncated {what}", info.filename)
    return data


def read_local_record(fp: BinaryIO, info: zipfile.ZipInfo) -> LocalRecord:
    """Read the local record of ``info`` from the source archive file.

    Raises:
        InvalidContainerError: The local header is missing or the record is cut short
    """
    fp.seek(info.header_offset)
    fixed = _read_exact(fp, LOCAL_HEADER.size, info, "local file header")
    if fixed[:4] != LOCAL_SIGNATURE:
        raise InvalidContainerError("Bad local file header signature", info.filename)

    name_length, extra_length = LOCAL_HEADER.unpack(fixed)[-2:]
    name_and_extra = _read_exact(fp, name_length + extra_length, info, "local file header")
    payload = _read_exact(fp, info.compress_size, info, "entry data")
    extra = name_and_extra[name_length:]

    descriptor = b""
    if info.flag_bits & DATA_DESCRIPTOR_FLAG:
        sizes_length = 16 if has_zip64_extra(extra) else 8
        descriptor = _read_exact(fp, 4, info, "data descriptor")
        if descriptor == DESCRIPTOR_SIGNATURE:
            descriptor += _read_exact(fp, 4, info, "data descriptor")
        descriptor += _read_exact(fp, sizes_length, info, "data descriptor")

    return LocalRecord(fixed + name_and_extra, extra, payload, descriptor)


def _require_uint32(info: zipfile.ZipInfo, *values: int) -> None:
    if any(value > MAX_UINT32 for value in values):
        raise ContainerIOError("Entry needs ZIP64 records, which are not written", info.filename)


class ArchiveWriter:
    """Writes a zip archive one local record at a time.

    ``close`` appends the central directory and the end record; the
    underlying file object is left open for the caller.

    Examples:
        >>> with open(path, "rb") as source, open(out, "wb") as fp:
        ...     writer = ArchiveWriter(fp)
        ...     for info in zin.infolist():
        ...         writer.copy_record(info, read_local_record(source, info))
        ...     writer.close(zin.comment)
    """

    def __init__(self, fp: BinaryIO) -> None:
        self.fp = fp
        self.entries: List[zipfile.ZipInfo] = []

    def copy_record(self, info: zipfile.ZipInfo, record: LocalRecord) -> zipfile.ZipInfo:
        """Append a source local record unchanged."""
        entry = clone_zip_info(info)
        entry.header_offset = self.fp.tell()
        _require_uint32(entry, entry.header_offset)
        self.fp.write(record.raw)
        self.entries.append(entry)
        return entry

    def write_record(
        self,
        info: zipfile.ZipInfo,
        record: LocalRecord,
        data: bytes,
        date_time: Optional[DateTime] = None,
    ) -> zipfile.ZipInfo:
        """Append a new local record holding ``data`` with the metadata of ``info``.

        The payload is recompressed with the entry's own method at zlib's
        default level; sizes and CRC are written in the local header.
        """
        entry = clone_zip_info(info, date_time)
        try:
            payload = compress(data, entry.compress_type)
        except ValueError as e:
            raise InvalidContainerError(str(e), info.filename) from e

        entry.flag_bits &= ~DATA_DESCRIPTOR_FLAG
        entry.CRC = zlib.crc32(data)
        entry.file_size = len(data)
        entry.compress_size = len(payload)
        entry.header_offset = self.fp.tell()
        _require_uint32(entry, entry.file_size, entry.compress_size, entry.header_offset)

        name, flag_bits = encode_name(entry)
        local_extra = strip_zip64_extra(record.extra)
        dos_time, dos_date = dos_date_time(entry.date_time)
        self.fp.write(LOCAL_HEADER.pack(
            LOCAL_SIGNATURE, entry.extract_version, entry.reserved, flag_bits,
            entry.compress_type, dos_time, dos_date, entry.CRC,
            entry.compress_size, entry.file_size, len(name), len(local_extra),
        ))
        self.fp.write(name)
        self.fp.write(local_extra)
        self.fp.write(payload)
        self.entries.append(entry)
        return entry

    def _central_record(self, entry: zipfile.ZipInfo) -> bytes:
        _require_uint32(entry, entry.file_size, entry.compress_size)
        name, flag_bits = encode_name(entry)
        extra = strip_zip64_extra(entry.extra)
        dos_time, dos_date = dos_date_time(entry.date_time)
        header = CENTRAL_HEADER.pack(
            CENTRAL_SIGNATURE, entry.create_version, entry.create_system,
            entry.extract_version, entry.reserved, flag_bits, entry.compress_type,
            dos_time, dos_date, entry.CRC, entry.compress_size, entry.file_size,
            len(name), len(extra), len(entry.comment), entry.volume,
            entry.internal_attr, entry.external_attr, entry.header_offset,
        )
        return header + name + extra + entry.comment

    def close(self, comment: bytes = b"") -> None:
        """Write the central directory and the end of central directory record."""
        start = self.fp.tell()
        for entry in self.entries:
            self.fp.write(self._central_record(entry))
        size = self.fp.tell() - start

        count = len(self.entries)
        if count > MAX_UINT16 or start > MAX_UINT32 or size > MAX_UINT32:
            raise ContainerIOError("Archive needs ZIP64 records, which are not written")
        self.fp.write(END_RECORD.pack(
            END_SIGNATURE, 0, 0, count, count, size, start, len(comment),
        ))
        self.fp.write(comment)
