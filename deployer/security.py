def verify_secret(secret: str, expected: str) -> bool:
    if not expected or len(secret) != len(expected):
        return False
    diff = 0
    for x, y in zip(secret.encode(), expected.encode()):
        diff |= x ^ y
    return diff == 0
