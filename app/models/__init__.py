from nanoid import generate

# Data models

ID_ALPHABET = "0123456789abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ"


def generate_id() -> str:
    """Generate a document id"""
    return generate(alphabet=ID_ALPHABET, size=10)
