"""Polish tax identifier checks."""

_NIP_WEIGHTS = (6, 5, 7, 2, 3, 4, 5, 6, 7)


def normalize_nip(value: str | None) -> str:
    """Strip separators and an optional PL prefix."""
    if not value:
        return ""
    cleaned = value.strip().upper()
    if cleaned.startswith("PL"):
        cleaned = cleaned[2:]
    return "".join(ch for ch in cleaned if ch.isalnum())


def is_valid_nip(value: str | None) -> bool:
    """Check a NIP: ten digits with a mod-11 check digit."""
    nip = normalize_nip(value)
    if len(nip) != 10 or not nip.isdigit():
        return False
    checksum = sum(int(d) * w for d, w in zip(nip[:9], _NIP_WEIGHTS)) % 11
    return checksum == int(nip[9])
