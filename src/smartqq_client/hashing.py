"""Signing hash required by the friend and group list endpoints."""

_HEX_DIGITS = "0123456789ABCDEF"
_SALT = ("EC", "OK")


def sign(uin: int, secret: str) -> str:
    """
    Compute the 16-character hash the web client sends as ``hash``.

    Args:
        uin: Numeric account id of the logged-in user
        secret: The ``ptwebqq`` token

    Returns:
        16 uppercase hexadecimal characters
    """
    n = [0, 0, 0, 0]
    for index, char in enumerate(secret):
        n[index % 4] ^= ord(char)

    v = [
        (uin >> 24) & 0xFF ^ ord(_SALT[0][0]),
        (uin >> 16) & 0xFF ^ ord(_SALT[0][1]),
        (uin >> 8) & 0xFF ^ ord(_SALT[1][0]),
        uin & 0xFF ^ ord(_SALT[1][1]),
    ]

    u = [n[i >> 1] if i % 2 == 0 else v[i >> 1] for i in range(8)]

    return "".join(
        _HEX_DIGITS[(value >> 4) & 0xF] + _HEX_DIGITS[value & 0xF] for value in u
    )
