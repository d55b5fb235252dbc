import argparse, os, sys

from bpsapply_core import apply_patch
from bpsapply_errors import BpsError

def parse_args(argv=None):
    # parse command line arguments

    parser = argparse.ArgumentParser(
        description="Applies a BPS patch to a file."
    )

    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Print more info. (CRC32 checksums are of zlib variety and "
        "hexadecimal.)"
    )

    parser.add_argument(
        "patch_file", help="Patch file (.bps) to read."
    )
    parser.add_argument(
        "orig_file", help="Original (unpatched) file to read."
    )
    parser.add_argument(
        "output_file",
        help="Patched copy of orig_file to write. Overwritten if it exists."
    )

    args = parser.parse_args(argv)

    if not os.path.isfile(args.patch_file):
        sys.exit("Patch file not found.")
    if not os.path.isfile(args.orig_file):
        sys.exit("Original file not found.")

    return args

def main(argv=None):
    args = parse_args(argv)

    # read input files
    try:
        with open(args.patch_file, "rb") as handle:
            patch = handle.read()
        with open(args.orig_file, "rb") as handle:
            orig = handle.read()
    except OSError:
        sys.exit("Error reading input files.")

    # create patched data
    try:
        patchedData = apply_patch(patch, orig, args.verbose)
    except BpsError as error:
        sys.exit(f"Error: {error}")

    # write patched data
    try:
        with open(args.output_file, "wb") as handle:
            handle.write(patchedData)
    except OSError:
        sys.exit("Error writing output file.")

if __name__ == "__main__":
    main()
