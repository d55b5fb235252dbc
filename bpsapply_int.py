# BPS integers: a bijective base-128 encoding, least significant group first;
# the final byte has its MSB set, all other bytes have it clear;
# e.g. b"\x12\x34\x89" = (0x12<<0) + ((0x34+1)<<7) + ((0x09+1)<<14) = 0x29a92

import io

from bpsapply_errors import MalformedVarint

# largest unsigned integer accepted when decoding
MAX_UINT = 2 ** 64 - 1

def read_int(handle):
    # read an unsigned BPS integer starting from current position of handle

    decoded = 0
    multiplier = 1
    while True:
        byte = handle.read(1)
        if not byte:
            raise MalformedVarint("Unexpected end of data in BPS integer.")
        byte = byte[0]
        decoded += (byte & 0x7f) * multiplier
        if decoded > MAX_UINT:
            raise MalformedVarint("BPS integer too large. (Corrupt patch?)")
        elif byte & 0x80:
            return decoded
        multiplier <<= 7
        decoded += multiplier

def decode_signed(n):
    # LSB is the sign (1 = negative), the other bits are the magnitude
    return (-1 if n & 1 else 1) * (n >> 1)

def read_signed_int(handle):
    # read a signed BPS integer
    return decode_signed(read_int(handle))

def decode_int(data):
    # decode an unsigned BPS integer from the start of data;
    # return (value, rest of data)

    handle = io.BytesIO(data)
    value = read_int(handle)
    return (value, bytes(data[handle.tell():]))

def encode_int(n):
    # convert a nonnegative integer into BPS format; return bytes

    if not 0 <= n <= MAX_UINT:
        raise ValueError(f"BPS integer out of range: {n}")

    encoded = bytearray()
    while True:
        if n <= 0x7f:
            encoded.append(n | 0x80)
            break
        encoded.append(n & 0x7f)
        n = (n >> 7) - 1
    return bytes(encoded)

def encode_signed(n):
    # encode a signed BPS integer
    return encode_int((abs(n) << 1) | (1 if n < 0 else 0))
