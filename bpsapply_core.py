# apply a BPS patch held in memory to an original file held in memory;
# see https://gist.github.com/khadiwala/32550f44efcc36a5b6a470ff2d4c9c22

import io, struct
from collections import namedtuple
from zlib import crc32

from bpsapply_errors import (
    ChecksumMismatch, HeaderError, MetadataSizeError, OutOfBoundsCopy,
    SourceSizeMismatch, TargetSizeMismatch, TruncatedPatchError,
)
from bpsapply_int import read_int, read_signed_int

FORMAT_ID = b"BPS1"

# enumerate BPS actions (types of blocks);
# note that "source" and "target" here refer to *encoder*'s input files
(SOURCE_READ, TARGET_READ, SOURCE_COPY, TARGET_COPY) = range(4)

# descriptions of BPS actions; value: (name, buffer to read from)
ACTION_DESCRIPTIONS = {
    SOURCE_READ: ("SourceRead", "original"),
    TARGET_READ: ("TargetRead", "patch"),
    SOURCE_COPY: ("SourceCopy", "original"),
    TARGET_COPY: ("TargetCopy", "patched"),
}

# largest metadata size that can still be added to a signed 64-bit offset
MAX_METADATA_SIZE = 2 ** 63 - 1

FOOTER_SIZE = 3 * 4

Header = namedtuple(
    "Header", ("source_size", "target_size", "metadata", "stream")
)

Action = namedtuple("Action", ("kind", "length"))

def parse_header(patch):
    # validate the file format id and decode the header;
    # return a Header whose stream is everything after the metadata

    if patch[:4] != FORMAT_ID:
        raise HeaderError(f"Not a BPS1 patch (file format id {patch[:4]!r}).")

    handle = io.BytesIO(patch)
    handle.seek(len(FORMAT_ID))
    sourceSize = read_int(handle)
    targetSize = read_int(handle)
    metadataSize = read_int(handle)
    if metadataSize > MAX_METADATA_SIZE:
        raise MetadataSizeError(f"Illegal metadata size {metadataSize}.")

    metadata = handle.read(metadataSize)
    if len(metadata) < metadataSize:
        raise TruncatedPatchError("Unexpected end of patch in metadata.")

    return Header(
        sourceSize, targetSize, metadata, bytes(patch[handle.tell():])
    )

def decode_action(word):
    # get type and length of block from its first BPS integer
    return Action(word & 3, (word >> 2) + 1)

class PatchExecutor:
    """Interprets the instruction stream of a BPS patch.

    Owns the patched data under construction and the two relative offsets
    used by SourceCopy and TargetCopy. The offsets persist from one action
    to the next. The stream must end with the 12-byte footer, which is left
    unread.
    """

    def __init__(self, source, stream, verbose=False):
        self.source = source
        self.target = bytearray()
        self.source_offset = 0  # read offset in source (used by SourceCopy)
        self.target_offset = 0  # read offset in target (used by TargetCopy)
        self.verbose = verbose
        self._stream = io.BytesIO(stream)
        self._stream_size = len(stream)

        # statistics (source/target read/copy block/byte count)
        self.block_counts = 4 * [0]
        self.byte_counts = 4 * [0]

    @property
    def remaining(self):
        return self._stream_size - self._stream.tell()

    def footer(self):
        return self._stream.getvalue()[-FOOTER_SIZE:]

    def run(self):
        if self.verbose:
            print(
                "Address in instruction stream / patched file size before "
                "action / action / buffer to copy from / address to copy "
                "from / bytes to output:"
            )

        while self.remaining > FOOTER_SIZE:
            self.step()

        if self.remaining != FOOTER_SIZE:
            raise TruncatedPatchError(
                f"Instructions end {FOOTER_SIZE - self.remaining} byte(s) "
                "too late for the 12-byte footer. (Corrupt patch?)"
            )

        if self.verbose:
            print("Number of blocks and bytes by type:")
            for kind in range(4):
                print(
                    f"{self.byte_counts[kind]} bytes in "
                    f"{self.block_counts[kind]} blocks of type "
                    f"{ACTION_DESCRIPTIONS[kind][0]}."
                )

        return self.target

    def step(self):
        # decode and execute one action

        origStreamPos = self._stream.tell()
        origTargetSize = len(self.target)

        action = decode_action(read_int(self._stream))

        if action.kind == SOURCE_READ:
            readAddr = self._source_read(action.length)
        elif action.kind == TARGET_READ:
            readAddr = self._target_read(action.length)
        elif action.kind == SOURCE_COPY:
            readAddr = self._source_copy(action.length)
        else:
            readAddr = self._target_copy(action.length)

        self.block_counts[action.kind] += 1
        self.byte_counts[action.kind] += action.length

        if self.verbose:
            (name, bufName) = ACTION_DESCRIPTIONS[action.kind]
            print(
                f"{origStreamPos:10} {origTargetSize:10} {name} "
                f"{bufName:10} {readAddr:10} {action.length:10}"
            )

        return action

    def _source_read(self, length):
        # copy from same address in original file
        pos = len(self.target)
        if pos + length > len(self.source):
            raise OutOfBoundsCopy(
                "SourceRead: tried to read from invalid position in "
                "original file."
            )
        self.target.extend(self.source[pos:pos+length])
        return pos

    def _target_read(self, length):
        # copy from current address in patch
        pos = self._stream.tell()
        data = self._stream.read(length)
        if len(data) < length:
            raise TruncatedPatchError(
                "TargetRead: unexpected end of patch file."
            )
        self.target.extend(data)
        return pos

    def _source_copy(self, length):
        # copy from any address in original file
        self.source_offset += read_signed_int(self._stream)
        start = self.source_offset
        if start < 0 or start + length > len(self.source):
            raise OutOfBoundsCopy(
                "SourceCopy: tried to read from invalid position in "
                "original file."
            )
        self.target.extend(self.source[start:start+length])
        self.source_offset += length
        return start

    def _target_copy(self, length):
        # copy from any address in patched file
        self.target_offset += read_signed_int(self._stream)
        start = self.target_offset
        if not 0 <= start < len(self.target):
            raise OutOfBoundsCopy(
                "TargetCopy: tried to read from invalid position in "
                "patched file."
            )
        # one byte at a time: the block may read bytes it has just written
        # (e.g. a run of one repeated byte); the offset stays below the
        # target size because both grow by one per byte
        target = self.target
        for _ in range(length):
            target.append(target[self.target_offset])
            self.target_offset += 1
        return start

def verify_checksums(source, target, patch):
    # compare CRC32s of original, patched and patch (except for the CRC at
    # the end) against the footer; raise on the first mismatch

    expectedCrcs = struct.unpack("<3L", patch[-FOOTER_SIZE:])
    actualCrcs = (crc32(source), crc32(target), crc32(patch[:-4]))
    for (which, expected, actual) in zip(
        ("source", "target", "patch"), expectedCrcs, actualCrcs
    ):
        if expected != actual:
            raise ChecksumMismatch(which, expected, actual)

def apply_patch(patch, source, verbose=False):
    # apply BPS patch to source; return patched data as bytes

    header = parse_header(patch)
    if verbose:
        print(
            f"Expected file sizes: original={header.source_size}, "
            f"patched={header.target_size}."
        )
        if header.metadata:
            print(
                "Metadata:", header.metadata.decode("ascii", errors="replace")
            )
        else:
            print("No metadata.")

    if header.source_size != len(source):
        raise SourceSizeMismatch(header.source_size, len(source))

    # create output data by repeatedly appending data
    executor = PatchExecutor(
        source, header.stream, verbose
    )
    target = executor.run()

    if header.target_size != len(target):
        raise TargetSizeMismatch(header.target_size, len(target))

    if verbose:
        print(
            "Expected CRC32s: input={:08x}, output={:08x}, patch={:08x}."
            .format(*struct.unpack("<3L", executor.footer()))
        )
    verify_checksums(source, target, patch)

    return bytes(target)
